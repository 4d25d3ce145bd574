from abc import ABC, abstractmethod
from typing import List, Optional, Type

from egress_gateway._internal.core.errors import ObjectNotFoundError
from egress_gateway._internal.core.models.objects import Event, Resource, ResourceT


class ObjectStore(ABC):
    """
    Declarative object store the reconcilers read desired state from and write status to.

    Implementations must honour finalizers (deletion only marks an object while
    finalizers remain), reject stale `resourceVersion` writes with
    `ObjectConflictError`, cascade deletion to controlled objects, and raise
    `ObjectNotFoundError` for missing objects.
    """

    @abstractmethod
    def get(self, kind: Type[ResourceT], namespace: str, name: str) -> ResourceT:
        pass

    @abstractmethod
    def list(self, kind: Type[ResourceT], namespace: Optional[str] = None) -> List[ResourceT]:
        pass

    @abstractmethod
    def create(self, obj: ResourceT) -> ResourceT:
        pass

    @abstractmethod
    def update(self, obj: ResourceT) -> ResourceT:
        """
        Updates metadata and spec. The status is left untouched.
        """
        pass

    @abstractmethod
    def update_status(self, obj: ResourceT) -> ResourceT:
        pass

    @abstractmethod
    def delete(self, kind: Type[Resource], namespace: str, name: str):
        pass

    @abstractmethod
    def create_event(self, event: Event):
        pass

    def get_or_none(self, kind: Type[ResourceT], namespace: str, name: str) -> Optional[ResourceT]:
        try:
            return self.get(kind, namespace, name)
        except ObjectNotFoundError:
            return None
