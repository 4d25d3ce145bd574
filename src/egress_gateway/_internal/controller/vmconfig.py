from typing import List

from egress_gateway._internal.controller.agentpool import resolve_agent_pool
from egress_gateway._internal.controller.common import ReconcileResult, Reconciler, fmt
from egress_gateway._internal.controller.deletion import DeletionState, get_deletion_state
from egress_gateway._internal.controller.publicipprefix import (
    ensure_public_ip_prefix,
    ensure_public_ip_prefix_deleted,
)
from egress_gateway._internal.core.consts import VM_CONFIG_FINALIZER_NAME
from egress_gateway._internal.core.models.gateways import (
    GatewayVMConfiguration,
    GatewayVMConfigurationStatus,
    GatewayVMProfile,
)
from egress_gateway._internal.core.models.objects import remove_finalizer
from egress_gateway._internal.utils.logging import get_logger

logger = get_logger(__name__)


class GatewayVMConfigurationReconciler(Reconciler):
    """
    Attaches the gateway IP configuration to every NIC of the gateway pool
    and manages the public IP prefix the gateway egresses through.
    """

    KIND = GatewayVMConfiguration
    FINALIZER = VM_CONFIG_FINALIZER_NAME

    def _reconcile(self, vm_config: GatewayVMConfiguration) -> ReconcileResult:
        state = get_deletion_state(vm_config, self.FINALIZER)
        if state == DeletionState.REMOVED:
            return ReconcileResult()
        if state != DeletionState.ACTIVE:
            return self._ensure_deleted(vm_config)

        logger.info("%s: reconciling", fmt(vm_config))
        vm_config = self.ensure_finalizer(vm_config)
        pool, prefix_length = resolve_agent_pool(self.manager, vm_config.spec)
        prefix = ensure_public_ip_prefix(self.manager, vm_config, prefix_length)
        profiles = pool.reconcile(vm_config, prefix.prefix_id, want_ip_config=True)
        if not prefix.is_managed:
            ensure_public_ip_prefix_deleted(self.manager, vm_config)

        profiles = sorted(profiles, key=lambda p: p.node_name)
        status = GatewayVMConfigurationStatus(
            egress_ip_prefix=prefix.prefix or _get_private_egress_ips(profiles) or None,
            gateway_vm_profiles=profiles,
        )
        if status != vm_config.status:
            logger.info(
                "%s: updating status: egress prefix %s, %d gateway nodes",
                fmt(vm_config),
                status.egress_ip_prefix,
                len(profiles),
            )
            vm_config.status = status
            self.store.update_status(vm_config)
        return ReconcileResult()

    def _ensure_deleted(self, vm_config: GatewayVMConfiguration) -> ReconcileResult:
        logger.info("%s: reconciling deletion", fmt(vm_config))
        pool, _ = resolve_agent_pool(self.manager, vm_config.spec)
        pool.reconcile(vm_config, "", want_ip_config=False)
        ensure_public_ip_prefix_deleted(self.manager, vm_config)
        logger.info("%s: removing finalizer", fmt(vm_config))
        remove_finalizer(vm_config, self.FINALIZER)
        self.store.update(vm_config)
        return ReconcileResult()


def _get_private_egress_ips(profiles: List[GatewayVMProfile]) -> str:
    # Without public IPs the gateway egresses through the secondary private IPs
    return ",".join(p.secondary_ip for p in profiles if p.secondary_ip)
