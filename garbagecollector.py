import logging
import threading
import time
from collections import Counter
from datetime import datetime, timezone, timedelta
from enum import Enum

from errors import PodLifetimeError, PodListError
from poddata import RESYNC_INTERVAL, PodKey


class SweeperState(Enum):
    IDLE = "idle"
    LISTING = "listing"
    RECONCILING = "reconciling"
    STOPPED = "stopped"


class GarbageCollector():
    """
    Periodic resync: every interval lists all pods and runs the reconciler on
    each one in turn. Runs independently of the pod watch.
    """
    def __init__(self, store, reconciler, interval=RESYNC_INTERVAL, stop_event=None):
        self.store = store
        self.reconciler = reconciler
        self.intervalTime: float = interval
        self.count = 0
        self.state = SweeperState.IDLE
        self.current = None  # index of the pod being reconciled
        self._stop_event = stop_event or threading.Event()

    def manage(self):
        """Fixed-rate loop, returns once the stop event is set"""
        start_anchor = time.perf_counter()
        logging.info(f"Periodic expired pod recheck every {self.intervalTime}s")

        while not self._stop_event.is_set():
            target_time = start_anchor + ((self.count + 1) * self.intervalTime)
            sleep_time = target_time - time.perf_counter()

            if sleep_time > 0:
                wakeup_wall = datetime.now(timezone.utc) + timedelta(seconds=sleep_time)
                logging.debug(f"Next recheck in {sleep_time:.2f}s "
                              f"(at {wakeup_wall.strftime('%Y-%m-%d %H:%M:%S %Z')})")
                if self._stop_event.wait(sleep_time):
                    break
            else:
                logging.warning(f"Recheck overran by {-sleep_time:.3f}s; skipping sleep to realign")

            self.count += 1
            self.sweep()

            # at most one pending tick is kept after a long sweep
            elapsed_ticks = int((time.perf_counter() - start_anchor) // self.intervalTime)
            self.count = max(self.count, elapsed_ticks - 1)

        self.state = SweeperState.STOPPED
        logging.info("Stopping periodic expired pod recheck")

    def stop(self):
        self._stop_event.set()

    def sweep(self) -> Counter:
        """
        Reconcile every pod once.

        return: Counter of Outcome per pod, empty when listing failed
        """
        summary = Counter()
        logging.info(f"Periodic expired pod recheck started ({self.count} times)")
        start_ts = time.perf_counter()

        self.state = SweeperState.LISTING
        try:
            pods = self.store.listPods()
        except PodListError as e:
            logging.error(f"{e}, skipping this recheck")
            self.state = SweeperState.IDLE
            return summary
        except Exception as e:
            logging.exception(f"Unexpected error while listing pods, skipping this recheck: {e}")
            self.state = SweeperState.IDLE
            return summary

        self.state = SweeperState.RECONCILING
        for i, p in enumerate(pods):
            if self._stop_event.is_set():
                logging.info(f"Recheck interrupted after {i} of {len(pods)} pods")
                break
            self.current = i
            key = PodKey.fromPod(p)
            try:
                summary[self.reconciler.reconcile(key)] += 1
            except PodLifetimeError as e:
                logging.error(f"Failed to reconcile pod {key}: {e}")
            except Exception as e:
                logging.exception(f"Unexpected error while reconciling pod {key}: {e}")

        self.current = None
        self.state = SweeperState.IDLE
        elapsed = time.perf_counter() - start_ts
        logging.info(f"Recheck finished for {len(pods)} pods [{elapsed:.3f}s]")
        return summary
