from dataclasses import dataclass
from enum import Enum

LIFETIME_LABEL = "pod.kubernetes.io/lifetime"

RESYNC_INTERVAL = 30  # seconds between full sweeps
MAX_CONCURRENT_RECONCILES = 1  # in-flight reconciles from the watch path


@dataclass(frozen=True)
class PodKey:
    namespace: str
    name: str

    @classmethod
    def fromPod(cls, pod):
        return cls(pod.metadata.namespace, pod.metadata.name)

    def __str__(self):
        return f"{self.namespace}/{self.name}"


class Decision(Enum):
    """Result of the expiry check on one pod"""
    EXPIRED = "expired"
    NOT_EXPIRED = "not_expired"
    NO_LABEL = "no_label"            # pod is exempt
    INVALID_LABEL = "invalid_label"  # malformed lifetime, treated as exempt
    NOT_RUNNING = "not_running"      # no running container


class Outcome(Enum):
    """Result of one reconciliation"""
    NOT_FOUND = "not_found"
    EXEMPT = "exempt"
    INVALID_LABEL = "invalid_label"
    NOT_RUNNING = "not_running"
    NOT_EXPIRED = "not_expired"
    DELETED = "deleted"
    ALREADY_GONE = "already_gone"


DECISION_OUTCOMES = {
    Decision.NO_LABEL: Outcome.EXEMPT,
    Decision.INVALID_LABEL: Outcome.INVALID_LABEL,
    Decision.NOT_RUNNING: Outcome.NOT_RUNNING,
    Decision.NOT_EXPIRED: Outcome.NOT_EXPIRED,
}
