import uuid
from contextlib import contextmanager
from typing import Any, Dict, Iterator, List, Optional, Tuple, Type

import kubernetes
import orjson
import yaml
from kubernetes.client import ApiClient, CoreV1Api, CustomObjectsApi, V1DeleteOptions
from kubernetes.client.exceptions import ApiException

from egress_gateway._internal.core.consts import DEFAULT_USER_AGENT
from egress_gateway._internal.core.errors import (
    ObjectConflictError,
    ObjectNotFoundError,
    ObjectStoreError,
)
from egress_gateway._internal.core.models.objects import Event, Resource, ResourceT, Secret
from egress_gateway._internal.core.store.base import ObjectStore
from egress_gateway._internal.utils.common import get_current_datetime
from egress_gateway._internal.utils.logging import get_logger

logger = get_logger(__name__)


def get_api_client(kubeconfig: Optional[str] = None) -> ApiClient:
    """
    Builds an API client from a kubeconfig file, or from the in-cluster
    service account when no kubeconfig is given.
    """
    if kubeconfig is None:
        kubernetes.config.load_incluster_config()
        return ApiClient()
    with open(kubeconfig) as f:
        config_dict = yaml.safe_load(f)
    return kubernetes.config.new_client_from_config_dict(config_dict=config_dict)


class KubernetesObjectStore(ObjectStore):
    def __init__(self, api_client: ApiClient):
        self._api_client = api_client
        self._core_api = CoreV1Api(api_client=api_client)
        self._custom_api = CustomObjectsApi(api_client=api_client)

    def get(self, kind: Type[ResourceT], namespace: str, name: str) -> ResourceT:
        with _translate_api_errors(kind, namespace, name):
            if _is_secret(kind):
                data = self._serialize(self._core_api.read_namespaced_secret(name, namespace))
            else:
                group, version = _split_api_version(kind)
                data = self._custom_api.get_namespaced_custom_object(
                    group, version, namespace, kind.PLURAL, name
                )
        return _parse(kind, data)

    def list(self, kind: Type[ResourceT], namespace: Optional[str] = None) -> List[ResourceT]:
        with _translate_api_errors(kind, namespace or "*", "*"):
            if _is_secret(kind):
                if namespace is None:
                    response = self._core_api.list_secret_for_all_namespaces()
                else:
                    response = self._core_api.list_namespaced_secret(namespace)
                items = [self._serialize(item) for item in response.items]
            else:
                group, version = _split_api_version(kind)
                if namespace is None:
                    response = self._custom_api.list_cluster_custom_object(
                        group, version, kind.PLURAL
                    )
                else:
                    response = self._custom_api.list_namespaced_custom_object(
                        group, version, namespace, kind.PLURAL
                    )
                items = response.get("items", [])
        return [_parse(kind, item) for item in items]

    def create(self, obj: ResourceT) -> ResourceT:
        kind = type(obj)
        namespace, name = obj.metadata.namespace, obj.metadata.name
        body = _to_body(obj)
        with _translate_api_errors(kind, namespace, name):
            if _is_secret(kind):
                data = self._serialize(self._core_api.create_namespaced_secret(namespace, body))
            else:
                group, version = _split_api_version(kind)
                data = self._custom_api.create_namespaced_custom_object(
                    group, version, namespace, kind.PLURAL, body
                )
        return _parse(kind, data)

    def update(self, obj: ResourceT) -> ResourceT:
        kind = type(obj)
        namespace, name = obj.metadata.namespace, obj.metadata.name
        body = _to_body(obj)
        with _translate_api_errors(kind, namespace, name):
            if _is_secret(kind):
                data = self._serialize(
                    self._core_api.replace_namespaced_secret(name, namespace, body)
                )
            else:
                group, version = _split_api_version(kind)
                data = self._custom_api.replace_namespaced_custom_object(
                    group, version, namespace, kind.PLURAL, name, body
                )
        return _parse(kind, data)

    def update_status(self, obj: ResourceT) -> ResourceT:
        kind = type(obj)
        if _is_secret(kind):
            raise ObjectStoreError("Secrets have no status")
        namespace, name = obj.metadata.namespace, obj.metadata.name
        group, version = _split_api_version(kind)
        with _translate_api_errors(kind, namespace, name):
            data = self._custom_api.replace_namespaced_custom_object_status(
                group, version, namespace, kind.PLURAL, name, _to_body(obj)
            )
        return _parse(kind, data)

    def delete(self, kind: Type[Resource], namespace: str, name: str):
        options = V1DeleteOptions(propagation_policy="Background")
        with _translate_api_errors(kind, namespace, name):
            if _is_secret(kind):
                self._core_api.delete_namespaced_secret(name, namespace, body=options)
            else:
                group, version = _split_api_version(kind)
                self._custom_api.delete_namespaced_custom_object(
                    group, version, namespace, kind.PLURAL, name, body=options
                )

    def create_event(self, event: Event):
        now = get_current_datetime().isoformat()
        body = _to_body(event)
        involved = event.involved_object
        body["metadata"]["name"] = f"{involved.name}.{uuid.uuid4().hex[:16]}"
        body.update(
            firstTimestamp=now,
            lastTimestamp=now,
            count=1,
            source={"component": DEFAULT_USER_AGENT},
        )
        try:
            self._core_api.create_namespaced_event(event.metadata.namespace, body)
        except ApiException as e:
            # Events are best effort and must not fail a reconcile
            logger.warning(
                "Failed to record event %s for %s/%s: %s",
                event.reason,
                involved.namespace,
                involved.name,
                e.reason,
            )

    def _serialize(self, obj: Any) -> Dict[str, Any]:
        return self._api_client.sanitize_for_serialization(obj)


def _split_api_version(kind: Type[Resource]) -> Tuple[str, str]:
    group, version = kind.API_VERSION.split("/", 1)
    return group, version


def _to_body(obj: Resource) -> Dict[str, Any]:
    return orjson.loads(obj.json(by_alias=True, exclude_none=True))


def _parse(kind: Type[ResourceT], data: Dict[str, Any]) -> ResourceT:
    return kind.__response__.parse_obj(data)


@contextmanager
def _translate_api_errors(kind: Type[Resource], namespace: str, name: str) -> Iterator[None]:
    try:
        yield
    except ApiException as e:
        if e.status == 404:
            raise ObjectNotFoundError(f"{kind.KIND} {namespace}/{name} not found") from e
        if e.status == 409:
            raise ObjectConflictError(f"{kind.KIND} {namespace}/{name}: {e.reason}") from e
        raise ObjectStoreError(f"{kind.KIND} {namespace}/{name}: {e.status} {e.reason}") from e


def _is_secret(kind: Type[Resource]) -> bool:
    # Objects parsed from API responses are instances of the lenient
    # `__response__` variant, so compare by kind name rather than class.
    return kind.KIND == Secret.KIND
