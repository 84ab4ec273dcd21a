import re
from datetime import datetime, timezone, timedelta

from errors import LifetimeLabelError
from poddata import LIFETIME_LABEL, Decision, PodKey

# base-10 seconds, no sign, unit or fraction
_LIFETIME_PATTERN = re.compile(r"[0-9]+")


def parseLifetime(value) -> timedelta:
    """Convert a lifetime label value ("300") into a timedelta"""
    if not isinstance(value, str) or not _LIFETIME_PATTERN.fullmatch(value):
        raise LifetimeLabelError(value)
    try:
        return timedelta(seconds=int(value))
    except OverflowError:
        raise LifetimeLabelError(value)


def _asUTC(ts: datetime) -> datetime:
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    return ts


class Pod():
    """
    Read-only view over a V1Pod used for the lifetime decision.
    Nothing here talks to the API server.
    """
    def __init__(self, pod):
        self.pod = pod
        self.podName: str = pod.metadata.name
        self.namespace: str = pod.metadata.namespace
        self.key = PodKey(self.namespace, self.podName)

    def getTimestamp(self):
        """Current time in UTC"""
        return datetime.now(timezone.utc)

    def getLifetimeLabel(self):
        labels = self.pod.metadata.labels or {}
        return labels.get(LIFETIME_LABEL)

    def getLifetime(self):
        """
        return:
            - None when the pod has no lifetime label
            - timedelta of the allowed lifetime
        raise LifetimeLabelError when the label is malformed
        """
        value = self.getLifetimeLabel()
        if value is None:
            return None
        return parseLifetime(value)

    def getLatestStartTime(self):
        """
        Start time of the most recently started container that is still running.
        None if no container is running.
        """
        latest = None
        status = self.pod.status
        if status is None:
            return None

        for cs in status.container_statuses or []:
            running = cs.state.running if cs.state else None
            if running is None or running.started_at is None:
                continue
            started = _asUTC(running.started_at)
            if latest is None or started > latest:
                latest = started
        return latest

    def getExpiryTime(self):
        """
        Latest container start + lifetime.
        None when no policy applies or the expiry is past the representable range.
        raise LifetimeLabelError when the label is malformed
        """
        lifetime = self.getLifetime()
        started = self.getLatestStartTime()
        if lifetime is None or started is None:
            return None
        try:
            return started + lifetime
        except OverflowError:
            return None

    def shouldDelete(self, now=None):
        """
        Decide whether the pod outlived its lifetime label.

        return:
            - Decision
            - reason: str
        """
        now = _asUTC(now) if now is not None else self.getTimestamp()

        try:
            lifetime = self.getLifetime()
        except LifetimeLabelError as e:
            return Decision.INVALID_LABEL, str(e)
        if lifetime is None:
            return Decision.NO_LABEL, "no lifetime label"

        if self.getLatestStartTime() is None:
            return Decision.NOT_RUNNING, "no running containers"

        seconds = int(lifetime.total_seconds())
        expiry = self.getExpiryTime()
        if expiry is None:
            return Decision.NOT_EXPIRED, f"lifetime {seconds}s never expires"
        if now > expiry:
            return Decision.EXPIRED, f"lifetime {seconds}s expired at {expiry.isoformat()}"
        return Decision.NOT_EXPIRED, f"expires at {expiry.isoformat()}"
