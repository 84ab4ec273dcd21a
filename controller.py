import logging
import signal
import sys
import threading

from kubernetes import client, config

from errors import ConfigurationError
from garbagecollector import GarbageCollector
from poddata import MAX_CONCURRENT_RECONCILES
from podstore import PodStore
from podwatcher import PodWatcher
from reconciler import PodLifetimeReconciler
from settings import Settings, loadSettings, setupLogging


def loadKubeConfig(settings: Settings):
    """Use the in-cluster service account when available, else the kubeconfig file"""
    if settings.kubeconfig:
        config.load_kube_config(config_file=settings.kubeconfig, context=settings.context or None)
        return
    try:
        config.load_incluster_config()
    except config.ConfigException:
        config.load_kube_config(context=settings.context or None)


class PodLifetimeController():
    """
    Binds the reconciler to pod events (one reconcile in flight) and runs the
    periodic resync in its own thread. Both share one stop event.
    """
    def __init__(self, store, settings=None, stop_event=None):
        self.store = store
        self.settings = settings or Settings()
        self.stop_event = stop_event or threading.Event()

        self.reconciler = PodLifetimeReconciler(store)
        self.watcher = None
        self.gc = None
        self.gc_thread = None

    def setupWithManager(self):
        self.gc = GarbageCollector(self.store, self.reconciler,
                                   interval=self.settings.resync_interval,
                                   stop_event=self.stop_event)
        self.gc_thread = threading.Thread(target=self.runGarbageCollector, name="pod-resync", daemon=True)
        self.gc_thread.start()

        self.watcher = PodWatcher(self.store, self.reconciler,
                                  stop_event=self.stop_event,
                                  workers=MAX_CONCURRENT_RECONCILES,
                                  requeue_delay=self.settings.requeue_delay,
                                  watch_timeout=self.settings.watch_timeout)
        self.watcher.start()

    def runGarbageCollector(self):
        try:
            self.gc.manage()
        except Exception as e:
            logging.exception(f"Failed to run periodic expired pod recheck: {e}")

    def stop(self, timeout=10):
        self.stop_event.set()
        if self.watcher is not None:
            self.watcher.stop(timeout)
        if self.gc_thread is not None:
            self.gc_thread.join(timeout)

    def wait(self):
        while not self.stop_event.wait(1):
            pass


def main(config_path=None):
    try:
        settings = loadSettings(config_path)
    except ConfigurationError as e:
        print(e, file=sys.stderr)
        return 1

    setupLogging(settings)
    loadKubeConfig(settings)

    store = PodStore(client.CoreV1Api(), namespace=settings.namespace)
    controller = PodLifetimeController(store, settings)

    def signal_handler(sig, frame):
        logging.info(f"Received signal {sig}, shutting down")
        controller.stop_event.set()

    signal.signal(signal.SIGINT, signal_handler)
    signal.signal(signal.SIGTERM, signal_handler)

    controller.setupWithManager()
    logging.info("Pod lifetime controller started")
    controller.wait()
    controller.stop()
    logging.info("Pod lifetime controller stopped")
    return 0


if __name__ == "__main__":
    sys.exit(main())
