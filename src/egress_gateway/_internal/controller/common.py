from abc import ABC, abstractmethod
from typing import ClassVar, NamedTuple, Optional, Type

from egress_gateway._internal.core.azure.manager import AzureManager
from egress_gateway._internal.core.errors import (
    BackendError,
    ConfigurationError,
    ObjectConflictError,
)
from egress_gateway._internal.core.models.objects import (
    Event,
    ObjectMeta,
    Resource,
    add_finalizer,
)
from egress_gateway._internal.core.store.base import ObjectStore
from egress_gateway._internal.utils.logging import get_logger

logger = get_logger(__name__)

EVENT_TYPE_NORMAL = "Normal"
EVENT_TYPE_WARNING = "Warning"


class ReconcileResult(NamedTuple):
    requeue: bool = False
    requeue_after: Optional[float] = None


def fmt(obj: Resource) -> str:
    return f"{obj.kind}({obj.namespaced_name})"


class Reconciler(ABC):
    """
    Base of the per-kind reconcilers. `reconcile()` is the entry point:
    it never raises, errors are logged, recorded as events on the object
    and turned into a requeue.
    """

    KIND: ClassVar[Type[Resource]]
    FINALIZER: ClassVar[str]

    def __init__(self, store: ObjectStore, manager: AzureManager):
        self.store = store
        self.manager = manager

    def reconcile(self, obj: Resource) -> ReconcileResult:
        try:
            return self._reconcile(obj)
        except ConfigurationError as e:
            logger.warning("%s: invalid configuration: %s", fmt(obj), e)
            self.record_event(obj, EVENT_TYPE_WARNING, "InvalidConfiguration", str(e))
            self._on_configuration_error(obj, e)
            return ReconcileResult()
        except ObjectConflictError as e:
            logger.debug("%s: conflict, retrying: %s", fmt(obj), e)
            return ReconcileResult(requeue=True)
        except BackendError as e:
            logger.warning("%s: reconcile failed: %r", fmt(obj), e)
            self.record_event(obj, EVENT_TYPE_WARNING, "ReconcileError", str(e))
            return ReconcileResult(requeue=True)
        except Exception as e:
            logger.exception("%s: got exception when reconciling", fmt(obj))
            self.record_event(
                obj, EVENT_TYPE_WARNING, "ReconcileError", f"Unexpected error: {e!r}"
            )
            return ReconcileResult(requeue=True)

    @abstractmethod
    def _reconcile(self, obj: Resource) -> ReconcileResult:
        pass

    def _on_configuration_error(self, obj: Resource, error: ConfigurationError):
        pass

    def ensure_finalizer(self, obj: Resource) -> Resource:
        if add_finalizer(obj, self.FINALIZER):
            logger.debug("%s: adding finalizer", fmt(obj))
            return self.store.update(obj)
        return obj

    def record_event(self, obj: Resource, event_type: str, reason: str, message: str):
        self.store.create_event(
            Event(
                metadata=ObjectMeta(name=obj.metadata.name, namespace=obj.metadata.namespace),
                involved_object=obj.to_reference(),
                reason=reason,
                message=message,
                type=event_type,
            )
        )
