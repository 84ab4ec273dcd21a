import logging
import queue
import threading

from kubernetes import watch
from kubernetes.client.exceptions import ApiException

from errors import PodLifetimeError
from poddata import MAX_CONCURRENT_RECONCILES, PodKey

POD_EVENTS = {"ADDED", "MODIFIED", "DELETED"}


class ReconcileWorker(threading.Thread):
    """Takes pod keys off the work queue and reconciles them one at a time"""
    def __init__(self, worker_id, watcher):
        super().__init__(name=f"reconcile-worker-{worker_id}")
        self.worker_id = worker_id
        self.watcher = watcher
        self.daemon = True

    def run(self):
        work_queue = self.watcher.work_queue
        while not self.watcher.stop_event.is_set():
            try:
                key = work_queue.get(timeout=1)
            except queue.Empty:
                continue

            try:
                self.watcher.process(key)
            finally:
                work_queue.task_done()


class PodWatcher():
    """
    Event trigger: every pod change enqueues the pod key, and the workers run the
    reconciler on it. Failed reconciles are put back on the queue after a delay.
    """
    def __init__(self, store, reconciler, stop_event=None, workers=MAX_CONCURRENT_RECONCILES,
                 requeue_delay=5, watch_timeout=300):
        self.store = store
        self.reconciler = reconciler
        self.stop_event = stop_event or threading.Event()
        self.num_workers: int = workers
        self.requeue_delay: float = requeue_delay
        self.watch_timeout: int = watch_timeout

        self.work_queue = queue.Queue()
        self.resource_version = None
        self.workers: list = []
        self._watch = None
        self._watch_thread = None
        self._timers: set = set()
        self._timers_lock = threading.Lock()

    def start(self):
        for i in range(self.num_workers):
            worker = ReconcileWorker(i, self)
            worker.start()
            self.workers.append(worker)

        self._watch_thread = threading.Thread(target=self.watchLoop, name="pod-watch", daemon=True)
        self._watch_thread.start()
        logging.info(f"Watching pods with {self.num_workers} reconcile worker(s)")

    def stop(self, timeout=None):
        self.stop_event.set()
        if self._watch is not None:
            self._watch.stop()
        with self._timers_lock:
            for t in self._timers:
                t.cancel()
            self._timers.clear()

        if self._watch_thread is not None:
            self._watch_thread.join(timeout)
        for worker in self.workers:
            worker.join(timeout)

    def enqueue(self, key: PodKey):
        self.work_queue.put(key)

    def requeue(self, key: PodKey):
        """Deliver the key again after requeue_delay seconds"""
        if self.stop_event.is_set():
            return

        def _fire():
            with self._timers_lock:
                self._timers.discard(timer)
            if not self.stop_event.is_set():
                self.enqueue(key)

        timer = threading.Timer(self.requeue_delay, _fire)
        timer.daemon = True
        with self._timers_lock:
            self._timers.add(timer)
        timer.start()

    def process(self, key: PodKey):
        """Run one reconcile, redelivering the key when it fails"""
        try:
            outcome = self.reconciler.reconcile(key)
        except PodLifetimeError as e:
            logging.error(f"Failed to reconcile pod {key}, retrying in {self.requeue_delay}s: {e}")
            self.requeue(key)
            return None
        except Exception as e:
            logging.exception(f"Unexpected error while reconciling pod {key}: {e}")
            self.requeue(key)
            return None
        return outcome

    def handleEvent(self, event_type, obj):
        if event_type == "ERROR":
            logging.error(f"Pod watch returned an error: {obj}")
            return

        metadata = getattr(obj, "metadata", None)
        if metadata is None:
            return
        if metadata.resource_version:
            self.resource_version = metadata.resource_version
        if event_type in POD_EVENTS:
            self.enqueue(PodKey.fromPod(obj))

    def watchOnce(self):
        """Consume one watch stream until it times out or is stopped"""
        self._watch = watch.Watch()
        try:
            for event_type, obj in self.store.watchPods(self._watch, self.resource_version, self.watch_timeout):
                if self.stop_event.is_set():
                    break
                self.handleEvent(event_type, obj)
        finally:
            self._watch.stop()

    def watchLoop(self):
        while not self.stop_event.is_set():
            try:
                self.watchOnce()
            except ApiException as e:
                if e.status == 410:
                    # resource version too old, relist from scratch
                    logging.info("Pod watch expired, restarting from a fresh list")
                    self.resource_version = None
                    continue
                logging.error(f"Pod watch failed: {e}")
                self.stop_event.wait(self.requeue_delay)
            except Exception as e:
                logging.exception(f"Pod watch failed: {e}")
                self.stop_event.wait(self.requeue_delay)
        logging.info("Pod watch stopped")
