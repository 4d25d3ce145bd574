from typing import Optional

from egress_gateway._internal.controller.agentpool import resolve_agent_pool
from egress_gateway._internal.controller.common import ReconcileResult, Reconciler, fmt
from egress_gateway._internal.controller.deletion import DeletionState, get_deletion_state
from egress_gateway._internal.controller.loadbalancer import reconcile_lb_rule
from egress_gateway._internal.core.consts import LB_CONFIG_FINALIZER_NAME
from egress_gateway._internal.core.models.gateways import (
    GatewayLBConfiguration,
    GatewayLBConfigurationStatus,
    GatewayVMConfiguration,
    GatewayVMConfigurationSpec,
)
from egress_gateway._internal.core.models.objects import (
    ObjectMeta,
    is_owned_by,
    remove_finalizer,
    set_controller_reference,
)
from egress_gateway._internal.utils.logging import get_logger

logger = get_logger(__name__)


class GatewayLBConfigurationReconciler(Reconciler):
    """
    Converges the gateway's rule and probe on the shared load balancer and
    owns the GatewayVMConfiguration that attaches the pool NICs to it.
    """

    KIND = GatewayLBConfiguration
    FINALIZER = LB_CONFIG_FINALIZER_NAME

    def _reconcile(self, lb_config: GatewayLBConfiguration) -> ReconcileResult:
        vm_config = self.store.get_or_none(
            GatewayVMConfiguration, lb_config.metadata.namespace, lb_config.metadata.name
        )
        state = get_deletion_state(
            lb_config, self.FINALIZER, children_exist=vm_config is not None
        )
        if state == DeletionState.REMOVED:
            return ReconcileResult()
        if state == DeletionState.CHILDREN_PENDING:
            if not vm_config.is_being_deleted:
                logger.info("%s: deleting gateway VM configuration", fmt(lb_config))
                self.store.delete(
                    GatewayVMConfiguration, vm_config.metadata.namespace, vm_config.metadata.name
                )
            logger.info("%s: waiting for gateway VM configuration deletion", fmt(lb_config))
            return ReconcileResult(requeue=True)
        if state == DeletionState.SELF_CLEANUP:
            return self._ensure_deleted(lb_config)

        logger.info("%s: reconciling", fmt(lb_config))
        lb_config = self.ensure_finalizer(lb_config)
        pool, _ = resolve_agent_pool(self.manager, lb_config.spec)
        frontend_ip, port = reconcile_lb_rule(
            self.manager, lb_config, pool.get_unique_id(), need_lb=True
        )
        vm_config = self._reconcile_vm_config(lb_config, vm_config)

        status = GatewayLBConfigurationStatus(frontend_ip=frontend_ip, server_port=port)
        if not vm_config.is_being_deleted:
            status.egress_ip_prefix = vm_config.status.egress_ip_prefix
        if status != lb_config.status:
            logger.info(
                "%s: updating status: frontend %s, port %s, egress prefix %s",
                fmt(lb_config),
                status.frontend_ip,
                status.server_port,
                status.egress_ip_prefix,
            )
            lb_config.status = status
            self.store.update_status(lb_config)
        return ReconcileResult(requeue=status.egress_ip_prefix is None)

    def _reconcile_vm_config(
        self,
        lb_config: GatewayLBConfiguration,
        vm_config: Optional[GatewayVMConfiguration],
    ) -> GatewayVMConfiguration:
        spec = GatewayVMConfigurationSpec(**lb_config.spec.copy_pool_spec())
        if vm_config is None:
            logger.info("%s: creating gateway VM configuration", fmt(lb_config))
            vm_config = GatewayVMConfiguration(
                metadata=ObjectMeta(
                    name=lb_config.metadata.name, namespace=lb_config.metadata.namespace
                ),
                spec=spec,
            )
            set_controller_reference(lb_config, vm_config)
            return self.store.create(vm_config)
        if vm_config.is_being_deleted:
            return vm_config
        if vm_config.spec.copy_pool_spec() == spec.copy_pool_spec() and is_owned_by(
            vm_config, lb_config
        ):
            return vm_config
        logger.info("%s: updating gateway VM configuration", fmt(lb_config))
        vm_config.spec = spec
        set_controller_reference(lb_config, vm_config)
        return self.store.update(vm_config)

    def _ensure_deleted(self, lb_config: GatewayLBConfiguration) -> ReconcileResult:
        logger.info("%s: reconciling deletion", fmt(lb_config))
        pool, _ = resolve_agent_pool(self.manager, lb_config.spec)
        reconcile_lb_rule(self.manager, lb_config, pool.get_unique_id(), need_lb=False)
        logger.info("%s: removing finalizer", fmt(lb_config))
        remove_finalizer(lb_config, self.FINALIZER)
        self.store.update(lb_config)
        return ReconcileResult()
