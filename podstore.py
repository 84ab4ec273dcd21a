from kubernetes import client
from kubernetes.client.exceptions import ApiException
from urllib3.exceptions import HTTPError

from errors import PodDeleteError, PodListError, PodNotFound, PodReadError
from poddata import PodKey


class PodStore():
    """
    Thin wrapper over CoreV1Api with the get/list/delete/watch calls the
    controller needs. API and connection errors are translated into controller errors.
    """
    def __init__(self, api=None, namespace=None):
        self.v1 = api if api is not None else client.CoreV1Api()
        self.namespace = namespace or None  # None means all namespaces

    def getPod(self, key: PodKey):
        try:
            return self.v1.read_namespaced_pod(key.name, key.namespace)
        except ApiException as e:
            if e.status == 404:
                raise PodNotFound(key)
            raise PodReadError(key, e)
        except HTTPError as e:
            raise PodReadError(key, e)

    def listPods(self) -> list:
        try:
            if self.namespace:
                pod_list = self.v1.list_namespaced_pod(self.namespace)
            else:
                pod_list = self.v1.list_pod_for_all_namespaces()
        except (ApiException, HTTPError) as e:
            raise PodListError(e)
        return pod_list.items or []

    def deletePod(self, key: PodKey):
        try:
            self.v1.delete_namespaced_pod(key.name, key.namespace)
        except ApiException as e:
            if e.status == 404:
                raise PodNotFound(key)
            raise PodDeleteError(key, e)
        except HTTPError as e:
            raise PodDeleteError(key, e)

    def watchPods(self, watch, resource_version=None, timeout=300):
        """
        Stream (event type, V1Pod) pairs.
        Without resource_version the server first sends ADDED for every existing pod.
        """
        kwargs = {"timeout_seconds": timeout}
        if resource_version:
            kwargs["resource_version"] = resource_version

        if self.namespace:
            stream = watch.stream(self.v1.list_namespaced_pod, self.namespace, **kwargs)
        else:
            stream = watch.stream(self.v1.list_pod_for_all_namespaces, **kwargs)

        for event in stream:
            yield event["type"], event["object"]
