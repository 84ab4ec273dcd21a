import logging

from errors import PodNotFound
from pod import Pod
from poddata import DECISION_OUTCOMES, Decision, Outcome, PodKey


class PodLifetimeReconciler():
    """
    Deletes a pod once its newest running container outlived the lifetime label.
    Every call re-reads the pod, so it is safe to run repeatedly and concurrently.
    """
    def __init__(self, store):
        self.store = store

    def reconcile(self, key: PodKey, now=None) -> Outcome:
        try:
            obj = self.store.getPod(key)
        except PodNotFound:
            # already deleted
            return Outcome.NOT_FOUND

        pod = Pod(obj)
        decision, reason = pod.shouldDelete(now)

        if decision is Decision.INVALID_LABEL:
            logging.error(f"Pod {key}: {reason}, skipping")
        elif decision is not Decision.EXPIRED:
            logging.debug(f"Pod {key}: {reason}, skipping")

        if decision is not Decision.EXPIRED:
            return DECISION_OUTCOMES[decision]

        logging.info(f"Pod {key} lifetime expired ({reason}), deleting pod")
        return self.deletePod(key)

    def deletePod(self, key: PodKey) -> Outcome:
        try:
            self.store.deletePod(key)
        except PodNotFound:
            logging.info(f"Pod {key} was already gone")
            return Outcome.ALREADY_GONE
        return Outcome.DELETED
