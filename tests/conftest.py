"""
Test fixtures: kubernetes model builders and an in-memory pod store.
"""

from datetime import datetime, timedelta, timezone

import pytest
from kubernetes import client

from errors import PodDeleteError, PodListError, PodNotFound
from poddata import LIFETIME_LABEL, PodKey

NOW = datetime(2025, 6, 1, 12, 0, 0, tzinfo=timezone.utc)


def running(started_at, name="app"):
    return client.V1ContainerStatus(
        name=name, image="busybox", image_id="", ready=True, restart_count=0,
        state=client.V1ContainerState(running=client.V1ContainerStateRunning(started_at=started_at)),
    )


def terminated(name="done"):
    return client.V1ContainerStatus(
        name=name, image="busybox", image_id="", ready=False, restart_count=0,
        state=client.V1ContainerState(terminated=client.V1ContainerStateTerminated(exit_code=0)),
    )


def waiting(name="pending"):
    return client.V1ContainerStatus(
        name=name, image="busybox", image_id="", ready=False, restart_count=0,
        state=client.V1ContainerState(waiting=client.V1ContainerStateWaiting(reason="ContainerCreating")),
    )


def make_pod(name="pod-a", namespace="default", lifetime=None, statuses=None, labels=None):
    labels = dict(labels or {})
    if lifetime is not None:
        labels[LIFETIME_LABEL] = lifetime
    return client.V1Pod(
        metadata=client.V1ObjectMeta(name=name, namespace=namespace, labels=labels or None,
                                     resource_version="1"),
        status=client.V1PodStatus(phase="Running", container_statuses=statuses),
    )


def ago(seconds):
    return NOW - timedelta(seconds=seconds)


class FakeStore:
    """Dict-backed stand-in for PodStore that records calls"""

    def __init__(self, pods=()):
        self.pods = {PodKey.fromPod(p): p for p in pods}
        self.get_calls = []
        self.delete_calls = []
        self.list_error = None
        self.delete_error = None

    def getPod(self, key):
        self.get_calls.append(key)
        if key not in self.pods:
            raise PodNotFound(key)
        return self.pods[key]

    def listPods(self):
        if self.list_error is not None:
            raise PodListError(self.list_error)
        return list(self.pods.values())

    def deletePod(self, key):
        self.delete_calls.append(key)
        if self.delete_error is not None:
            raise PodDeleteError(key, self.delete_error)
        if key not in self.pods:
            raise PodNotFound(key)
        del self.pods[key]


@pytest.fixture
def store():
    return FakeStore()
