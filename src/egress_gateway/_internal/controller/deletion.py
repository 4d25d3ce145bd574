from enum import Enum

from egress_gateway._internal.core.models.objects import Resource, contains_finalizer


class DeletionState(str, Enum):
    """
    Lifecycle of an object carrying a finalizer.

    ACTIVE -> CHILDREN_PENDING -> SELF_CLEANUP -> REMOVED
    """

    ACTIVE = "active"
    # Deleting, dependent objects are not gone yet
    CHILDREN_PENDING = "children_pending"
    # Deleting, dependents are gone and the object's own cloud resources are cleaned up
    SELF_CLEANUP = "self_cleanup"
    # Deleting, the finalizer has already been removed
    REMOVED = "removed"


def get_deletion_state(
    obj: Resource, finalizer: str, children_exist: bool = False
) -> DeletionState:
    if not obj.is_being_deleted:
        return DeletionState.ACTIVE
    if not contains_finalizer(obj, finalizer):
        return DeletionState.REMOVED
    if children_exist:
        return DeletionState.CHILDREN_PENDING
    return DeletionState.SELF_CLEANUP
