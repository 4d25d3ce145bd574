from datetime import datetime
from typing import ClassVar, Dict, List, Optional, TypeVar

from pydantic import Field, validator
from typing_extensions import Annotated

from egress_gateway._internal.core.models.common import CoreModel


class OwnerReference(CoreModel):
    api_version: str
    kind: str
    name: str
    uid: str
    controller: Optional[bool] = None
    block_owner_deletion: Optional[bool] = None


class ObjectReference(CoreModel):
    api_version: Optional[str] = None
    kind: Optional[str] = None
    name: Optional[str] = None
    namespace: Optional[str] = None
    uid: Optional[str] = None


class ObjectMeta(CoreModel):
    name: str
    namespace: str = "default"
    uid: str = ""
    resource_version: Optional[str] = None
    deletion_timestamp: Optional[datetime] = None
    finalizers: List[str] = []
    owner_references: List[OwnerReference] = []
    labels: Dict[str, str] = {}
    annotations: Dict[str, str] = {}


class Resource(CoreModel):
    """
    Base for every object persisted in the object store.
    `KIND`, `API_VERSION` and `PLURAL` identify the collection the object lives in.
    """

    KIND: ClassVar[str] = ""
    API_VERSION: ClassVar[str] = ""
    PLURAL: ClassVar[str] = ""

    api_version: Optional[str] = None
    kind: Optional[str] = None
    metadata: ObjectMeta

    @validator("api_version", always=True)
    def _default_api_version(cls, v):
        return v or cls.API_VERSION

    @validator("kind", always=True)
    def _default_kind(cls, v):
        return v or cls.KIND

    @property
    def namespaced_name(self) -> str:
        return f"{self.metadata.namespace}/{self.metadata.name}"

    @property
    def is_being_deleted(self) -> bool:
        return self.metadata.deletion_timestamp is not None

    def to_reference(self) -> ObjectReference:
        return ObjectReference(
            api_version=self.api_version,
            kind=self.kind,
            name=self.metadata.name,
            namespace=self.metadata.namespace,
            uid=self.metadata.uid,
        )


ResourceT = TypeVar("ResourceT", bound=Resource)


class Secret(Resource):
    KIND: ClassVar[str] = "Secret"
    API_VERSION: ClassVar[str] = "v1"
    PLURAL: ClassVar[str] = "secrets"

    type: str = "Opaque"
    data: Annotated[Dict[str, str], Field(description="Base64 encoded values")] = {}


class Event(Resource):
    KIND: ClassVar[str] = "Event"
    API_VERSION: ClassVar[str] = "v1"
    PLURAL: ClassVar[str] = "events"

    involved_object: ObjectReference
    reason: str
    message: str
    type: str = "Normal"


def contains_finalizer(obj: Resource, finalizer: str) -> bool:
    return finalizer in obj.metadata.finalizers


def add_finalizer(obj: Resource, finalizer: str) -> bool:
    """
    Returns True if the finalizer was added.
    """
    if contains_finalizer(obj, finalizer):
        return False
    obj.metadata.finalizers = obj.metadata.finalizers + [finalizer]
    return True


def remove_finalizer(obj: Resource, finalizer: str) -> bool:
    """
    Returns True if the finalizer was removed.
    """
    if not contains_finalizer(obj, finalizer):
        return False
    obj.metadata.finalizers = [f for f in obj.metadata.finalizers if f != finalizer]
    return True


def set_controller_reference(owner: Resource, obj: Resource):
    """
    Makes `owner` the controlling owner of `obj` so that deleting the owner
    cascades to `obj`. Replaces a previous reference to the same owner.
    """
    if owner.metadata.namespace != obj.metadata.namespace:
        raise ValueError(
            "Cross-namespace owner references are not allowed:"
            f" {owner.namespaced_name} -> {obj.namespaced_name}"
        )
    reference = OwnerReference(
        api_version=owner.api_version,
        kind=owner.kind,
        name=owner.metadata.name,
        uid=owner.metadata.uid,
        controller=True,
        block_owner_deletion=True,
    )
    references = [
        r
        for r in obj.metadata.owner_references
        if not (r.kind == reference.kind and r.name == reference.name)
    ]
    for r in references:
        if r.controller:
            raise ValueError(f"{obj.namespaced_name} is already controlled by {r.kind} {r.name}")
    obj.metadata.owner_references = references + [reference]


def is_owned_by(obj: Resource, owner: Resource) -> bool:
    return any(r.uid == owner.metadata.uid for r in obj.metadata.owner_references)
