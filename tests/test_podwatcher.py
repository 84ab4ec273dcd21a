import logging
import threading
import time
from datetime import datetime, timedelta, timezone

import pytest
from kubernetes.client.exceptions import ApiException

from conftest import FakeStore, make_pod, running
from poddata import Outcome, PodKey
from podwatcher import PodWatcher
from reconciler import PodLifetimeReconciler


def wait_until(predicate, timeout=5):
    deadline = time.time() + timeout
    while time.time() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return predicate()


class ScriptedStore(FakeStore):
    """FakeStore whose watch replays a list of batches, one per watch call"""

    def __init__(self, pods=(), batches=()):
        super().__init__(pods)
        self.batches = list(batches)
        self.watch_versions = []

    def watchPods(self, watch, resource_version=None, timeout=300):
        self.watch_versions.append(resource_version)
        if not self.batches:
            time.sleep(0.02)
            return
        batch = self.batches.pop(0)
        if isinstance(batch, Exception):
            raise batch
        for event in batch:
            yield event


def expired_pod(name="old"):
    started = datetime.now(timezone.utc) - timedelta(seconds=60)
    return make_pod(name, lifetime="10", statuses=[running(started)])


def test_handle_event_enqueues_pod_key():
    pod = make_pod("a")
    watcher = PodWatcher(FakeStore(), reconciler=None)
    for event_type in ("ADDED", "MODIFIED", "DELETED"):
        watcher.handleEvent(event_type, pod)

    keys = [watcher.work_queue.get_nowait() for _ in range(3)]
    assert keys == [PodKey("default", "a")] * 3
    assert watcher.resource_version == "1"


def test_handle_error_event_is_ignored():
    watcher = PodWatcher(FakeStore(), reconciler=None)
    watcher.handleEvent("ERROR", {"code": 500})
    assert watcher.work_queue.empty()


def test_process_success_returns_outcome():
    pod = expired_pod()
    store = FakeStore([pod])
    watcher = PodWatcher(store, PodLifetimeReconciler(store))
    assert watcher.process(PodKey.fromPod(pod)) is Outcome.DELETED


def test_process_failure_is_redelivered():
    stop_event = threading.Event()
    pod = expired_pod()
    store = FakeStore([pod])
    store.delete_error = "internal error"
    watcher = PodWatcher(store, PodLifetimeReconciler(store), stop_event=stop_event, requeue_delay=0.01)

    assert watcher.process(PodKey.fromPod(pod)) is None
    assert watcher.work_queue.get(timeout=2) == PodKey.fromPod(pod)
    stop_event.set()


def test_unexpected_error_is_redelivered():
    class BrokenReconciler:
        def reconcile(self, key):
            raise RuntimeError("boom")

    watcher = PodWatcher(FakeStore(), BrokenReconciler(), requeue_delay=0.01)
    assert watcher.process(PodKey("default", "a")) is None
    assert watcher.work_queue.get(timeout=2) == PodKey("default", "a")
    watcher.stop_event.set()


def test_no_redelivery_after_stop():
    watcher = PodWatcher(FakeStore(), reconciler=None, requeue_delay=0.01)
    watcher.stop_event.set()
    watcher.requeue(PodKey("default", "a"))
    time.sleep(0.05)
    assert watcher.work_queue.empty()


def test_events_reach_reconciler_one_at_a_time():
    pods = [expired_pod(f"p{i}") for i in range(5)]
    active = []
    peak = []
    lock = threading.Lock()

    class SlowReconciler:
        def __init__(self):
            self.done = []

        def reconcile(self, key):
            with lock:
                active.append(key)
                peak.append(len(active))
            time.sleep(0.01)
            with lock:
                active.remove(key)
            self.done.append(key)
            return Outcome.NOT_EXPIRED

    store = ScriptedStore(pods, batches=[[("ADDED", p) for p in pods]])
    reconciler = SlowReconciler()
    watcher = PodWatcher(store, reconciler)
    watcher.start()
    try:
        assert wait_until(lambda: len(reconciler.done) == 5)
    finally:
        watcher.stop(timeout=5)

    assert max(peak) == 1
    assert len(watcher.workers) == 1


def test_watch_deletes_expired_pod_end_to_end():
    pod = expired_pod()
    store = ScriptedStore([pod], batches=[[("ADDED", pod), ("MODIFIED", pod)]])
    watcher = PodWatcher(store, PodLifetimeReconciler(store))
    watcher.start()
    try:
        assert wait_until(lambda: len(store.get_calls) == 2)
    finally:
        watcher.stop(timeout=5)

    # second event finds the pod gone
    assert store.delete_calls == [PodKey.fromPod(pod)]


def test_watch_gone_resets_resource_version():
    pod = make_pod("a")
    store = ScriptedStore(batches=[[("ADDED", pod)], ApiException(status=410, reason="Gone")])
    watcher = PodWatcher(store, reconciler=None, requeue_delay=0.01)

    watcher.watchOnce()
    assert watcher.resource_version == "1"
    with pytest.raises(ApiException):
        watcher.watchOnce()

    thread = threading.Thread(target=watcher.watchLoop, daemon=True)
    store.batches = [ApiException(status=410, reason="Gone")]
    thread.start()
    assert wait_until(lambda: len(store.watch_versions) >= 4)
    watcher.stop_event.set()
    thread.join(5)

    assert store.watch_versions[2] == "1"
    assert store.watch_versions[3] is None


def test_watch_failure_is_retried():
    store = ScriptedStore(batches=[ApiException(status=500, reason="boom"), RuntimeError("broken pipe")])
    watcher = PodWatcher(store, reconciler=None, requeue_delay=0.01)

    thread = threading.Thread(target=watcher.watchLoop, daemon=True)
    thread.start()
    assert wait_until(lambda: len(store.watch_versions) >= 3)
    watcher.stop_event.set()
    thread.join(5)

    assert not thread.is_alive()


def test_delete_failure_logged_once(caplog):
    pod = expired_pod()
    store = FakeStore([pod])
    store.delete_error = "internal error"
    watcher = PodWatcher(store, PodLifetimeReconciler(store), requeue_delay=60)

    with caplog.at_level(logging.ERROR):
        watcher.process(PodKey.fromPod(pod))
    watcher.stop()

    errors = [r for r in caplog.records if r.levelno >= logging.ERROR]
    assert len(errors) == 1
    assert "internal error" in errors[0].getMessage()
