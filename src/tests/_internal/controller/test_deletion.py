import pytest

from egress_gateway._internal.controller.deletion import DeletionState, get_deletion_state
from egress_gateway._internal.testing.common import get_vm_configuration
from egress_gateway._internal.utils.common import get_current_datetime

FINALIZER = "test-finalizer"


def get_object(finalizers=(), deleted: bool = False):
    obj = get_vm_configuration()
    obj.metadata.finalizers = list(finalizers)
    if deleted:
        obj.metadata.deletion_timestamp = get_current_datetime()
    return obj


class TestGetDeletionState:
    @pytest.mark.parametrize("children_exist", [False, True])
    @pytest.mark.parametrize("finalizers", [(), (FINALIZER,)])
    def test_active_if_not_deleted(self, finalizers, children_exist: bool):
        obj = get_object(finalizers=finalizers)
        assert get_deletion_state(obj, FINALIZER, children_exist) == DeletionState.ACTIVE

    @pytest.mark.parametrize("children_exist", [False, True])
    def test_removed_without_own_finalizer(self, children_exist: bool):
        obj = get_object(finalizers=["other"], deleted=True)
        assert get_deletion_state(obj, FINALIZER, children_exist) == DeletionState.REMOVED

    def test_children_pending(self):
        obj = get_object(finalizers=[FINALIZER], deleted=True)
        assert (
            get_deletion_state(obj, FINALIZER, children_exist=True)
            == DeletionState.CHILDREN_PENDING
        )

    def test_self_cleanup(self):
        obj = get_object(finalizers=[FINALIZER], deleted=True)
        assert get_deletion_state(obj, FINALIZER) == DeletionState.SELF_CLEANUP
