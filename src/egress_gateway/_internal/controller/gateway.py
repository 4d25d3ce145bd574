import base64
from typing import Optional

from egress_gateway._internal.controller.common import (
    EVENT_TYPE_NORMAL,
    ReconcileResult,
    Reconciler,
    fmt,
)
from egress_gateway._internal.controller.deletion import DeletionState, get_deletion_state
from egress_gateway._internal.controller.validation import validate_gateway_spec
from egress_gateway._internal.core.consts import (
    GATEWAY_FINALIZER_NAME,
    WIREGUARD_PRIVATE_KEY_NAME,
    WIREGUARD_PUBLIC_KEY_NAME,
)
from egress_gateway._internal.core.errors import (
    ConfigurationError,
    ObjectNotFoundError,
    ObjectStoreError,
)
from egress_gateway._internal.core.models.gateways import (
    GatewayLBConfiguration,
    GatewayLBConfigurationSpec,
    GatewayState,
    GatewayWireguardProfile,
    StaticGatewayConfiguration,
    StaticGatewayConfigurationStatus,
)
from egress_gateway._internal.core.models.objects import (
    ObjectMeta,
    ObjectReference,
    Resource,
    Secret,
    is_owned_by,
    remove_finalizer,
    set_controller_reference,
)
from egress_gateway._internal.utils.crypto import generate_wireguard_key_pair
from egress_gateway._internal.utils.logging import get_logger

logger = get_logger(__name__)


class StaticGatewayConfigurationReconciler(Reconciler):
    """
    Owns the wireguard key secret and the GatewayLBConfiguration of a gateway
    and reports their state in the gateway status.
    """

    KIND = StaticGatewayConfiguration
    FINALIZER = GATEWAY_FINALIZER_NAME

    def _reconcile(self, gw_config: StaticGatewayConfiguration) -> ReconcileResult:
        lb_config = self.store.get_or_none(
            GatewayLBConfiguration, gw_config.metadata.namespace, gw_config.metadata.name
        )
        state = get_deletion_state(
            gw_config, self.FINALIZER, children_exist=lb_config is not None
        )
        if state == DeletionState.REMOVED:
            return ReconcileResult()
        if state != DeletionState.ACTIVE:
            return self._ensure_deleted(gw_config, lb_config, state)

        logger.info("%s: reconciling", fmt(gw_config))
        validate_gateway_spec(gw_config.spec)
        gw_config = self.ensure_finalizer(gw_config)
        secret = self._reconcile_wireguard_key(gw_config)
        lb_config = self._reconcile_lb_config(gw_config, lb_config)

        status = _get_status(gw_config, secret, lb_config)
        if status != gw_config.status:
            if status.state != gw_config.status.state:
                logger.info(
                    "%s: gateway state has changed %s -> %s",
                    fmt(gw_config),
                    gw_config.status.state.upper(),
                    status.state.upper(),
                )
                if status.state == GatewayState.READY:
                    wireguard_profile = status.gateway_wireguard_profile
                    self.record_event(
                        gw_config,
                        EVENT_TYPE_NORMAL,
                        "Ready",
                        f"Gateway is serving on {wireguard_profile.wireguard_server_ip}"
                        f":{wireguard_profile.wireguard_server_port}",
                    )
            gw_config.status = status
            self.store.update_status(gw_config)
        return ReconcileResult(requeue=status.state != GatewayState.READY)

    def _on_configuration_error(self, gw_config: Resource, error: ConfigurationError):
        gw_config = self.store.get_or_none(
            StaticGatewayConfiguration, gw_config.metadata.namespace, gw_config.metadata.name
        )
        if gw_config is None or gw_config.is_being_deleted:
            return
        if gw_config.status.state == GatewayState.ERROR and gw_config.status.message == str(error):
            return
        gw_config.status.state = GatewayState.ERROR
        gw_config.status.message = str(error)
        try:
            self.store.update_status(gw_config)
        except ObjectStoreError as e:
            logger.warning("%s: failed to update status: %s", fmt(gw_config), e)

    def _reconcile_wireguard_key(self, gw_config: StaticGatewayConfiguration) -> Secret:
        namespace, name = gw_config.metadata.namespace, gw_config.metadata.name
        secret = self.store.get_or_none(Secret, namespace, name)
        if secret is None:
            logger.info("%s: creating wireguard key secret", fmt(gw_config))
            secret = Secret(metadata=ObjectMeta(name=name, namespace=namespace))
            _set_wireguard_keys(secret)
            set_controller_reference(gw_config, secret)
            return self.store.create(secret)
        update = False
        if WIREGUARD_PRIVATE_KEY_NAME not in secret.data:
            logger.info("%s: generating missing wireguard key", fmt(gw_config))
            _set_wireguard_keys(secret)
            update = True
        if not is_owned_by(secret, gw_config):
            set_controller_reference(gw_config, secret)
            update = True
        if update:
            secret = self.store.update(secret)
        return secret

    def _reconcile_lb_config(
        self,
        gw_config: StaticGatewayConfiguration,
        lb_config: Optional[GatewayLBConfiguration],
    ) -> GatewayLBConfiguration:
        spec = GatewayLBConfigurationSpec(**gw_config.spec.copy_pool_spec())
        if lb_config is None:
            logger.info("%s: creating gateway LB configuration", fmt(gw_config))
            lb_config = GatewayLBConfiguration(
                metadata=ObjectMeta(
                    name=gw_config.metadata.name, namespace=gw_config.metadata.namespace
                ),
                spec=spec,
            )
            set_controller_reference(gw_config, lb_config)
            return self.store.create(lb_config)
        if lb_config.is_being_deleted:
            return lb_config
        if lb_config.spec.copy_pool_spec() == spec.copy_pool_spec() and is_owned_by(
            lb_config, gw_config
        ):
            return lb_config
        logger.info("%s: updating gateway LB configuration", fmt(gw_config))
        lb_config.spec = spec
        set_controller_reference(gw_config, lb_config)
        return self.store.update(lb_config)

    def _ensure_deleted(
        self,
        gw_config: StaticGatewayConfiguration,
        lb_config: Optional[GatewayLBConfiguration],
        state: DeletionState,
    ) -> ReconcileResult:
        namespace, name = gw_config.metadata.namespace, gw_config.metadata.name
        logger.info("%s: reconciling deletion", fmt(gw_config))
        try:
            self.store.delete(Secret, namespace, name)
        except ObjectNotFoundError:
            pass
        if state == DeletionState.CHILDREN_PENDING:
            if not lb_config.is_being_deleted:
                logger.info("%s: deleting gateway LB configuration", fmt(gw_config))
                self.store.delete(GatewayLBConfiguration, namespace, name)
            logger.info("%s: waiting for gateway LB configuration deletion", fmt(gw_config))
            return ReconcileResult(requeue=True)
        logger.info("%s: removing finalizer", fmt(gw_config))
        remove_finalizer(gw_config, self.FINALIZER)
        self.store.update(gw_config)
        return ReconcileResult()


def _set_wireguard_keys(secret: Secret):
    private_key, public_key = generate_wireguard_key_pair()
    secret.data = {
        **secret.data,
        WIREGUARD_PRIVATE_KEY_NAME: base64.b64encode(private_key.encode()).decode(),
        WIREGUARD_PUBLIC_KEY_NAME: base64.b64encode(public_key.encode()).decode(),
    }


def _get_status(
    gw_config: StaticGatewayConfiguration,
    secret: Secret,
    lb_config: GatewayLBConfiguration,
) -> StaticGatewayConfigurationStatus:
    profile = GatewayWireguardProfile(
        wireguard_private_key_secret_ref=ObjectReference(
            api_version=Secret.API_VERSION,
            kind=Secret.KIND,
            name=secret.metadata.name,
            namespace=secret.metadata.namespace,
        ),
    )
    if WIREGUARD_PUBLIC_KEY_NAME in secret.data:
        profile.wireguard_public_key = base64.b64decode(
            secret.data[WIREGUARD_PUBLIC_KEY_NAME]
        ).decode()
    public_ip_prefix = None
    if not lb_config.is_being_deleted:
        profile.wireguard_server_ip = lb_config.status.frontend_ip
        profile.wireguard_server_port = lb_config.status.server_port
        public_ip_prefix = lb_config.status.egress_ip_prefix
    ready = profile.wireguard_server_ip is not None and profile.wireguard_server_port is not None
    return StaticGatewayConfigurationStatus(
        state=GatewayState.READY if ready else GatewayState.PROVISIONING,
        public_ip_prefix=public_ip_prefix,
        gateway_wireguard_profile=profile,
    )
