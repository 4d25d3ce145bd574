from typing import NamedTuple

from azure.core.exceptions import ResourceNotFoundError
from azure.mgmt.network.models import PublicIPPrefix, PublicIPPrefixSku

from egress_gateway._internal.core.azure.manager import AzureManager
from egress_gateway._internal.core.azure.utils import (
    get_managed_public_ip_prefix_name,
    parse_public_ip_prefix_id,
)
from egress_gateway._internal.core.consts import (
    MAX_PUBLIC_IP_PREFIX_SIZE,
    MIN_PUBLIC_IP_PREFIX_SIZE,
)
from egress_gateway._internal.core.errors import ConfigurationError, PublicIPPrefixError
from egress_gateway._internal.core.models.gateways import GatewayVMConfiguration
from egress_gateway._internal.utils.common import equal_fold
from egress_gateway._internal.utils.logging import get_logger

logger = get_logger(__name__)


class PublicIPPrefixResult(NamedTuple):
    # CIDR of the prefix, empty when no prefix is used
    prefix: str
    prefix_id: str
    is_managed: bool


NO_PUBLIC_IP_PREFIX = PublicIPPrefixResult(prefix="", prefix_id="", is_managed=False)


def ensure_public_ip_prefix(
    manager: AzureManager, vm_config: GatewayVMConfiguration, prefix_length: int
) -> PublicIPPrefixResult:
    """
    Resolves the public IP prefix the gateway egresses through.

    A prefix supplied with `publicIpPrefixId` is only referenced.
    Otherwise a prefix named after the VM configuration UID is looked up
    and created if it does not exist yet.
    """
    spec = vm_config.spec
    if not spec.provision_public_ips:
        return NO_PUBLIC_IP_PREFIX

    check_public_ip_prefix_length(prefix_length)
    if spec.public_ip_prefix_id:
        subscription_id, resource_group, name = parse_public_ip_prefix_id(spec.public_ip_prefix_id)
        if not equal_fold(subscription_id, manager.subscription_id):
            raise ConfigurationError(
                f"public ip prefix subscription({subscription_id}) is not in the same"
                f" subscription({manager.subscription_id})"
            )
        prefix = manager.get_public_ip_prefix(name, resource_group)
        if prefix.prefix_length != prefix_length:
            raise ConfigurationError(
                f"provided public ip prefix has invalid length({prefix.prefix_length}),"
                f" required({prefix_length})"
            )
        return PublicIPPrefixResult(
            prefix=_get_ip_prefix(prefix), prefix_id=prefix.id, is_managed=False
        )

    name = get_managed_public_ip_prefix_name(vm_config.metadata.uid)
    try:
        prefix = manager.get_public_ip_prefix(name)
    except ResourceNotFoundError:
        logger.info("Creating managed public ip prefix %s/%d", name, prefix_length)
        prefix = manager.create_or_update_public_ip_prefix(
            PublicIPPrefix(
                location=manager.location,
                prefix_length=prefix_length,
                public_ip_address_version="IPv4",
                sku=PublicIPPrefixSku(name="Standard", tier="Regional"),
            ),
            name,
        )
    return PublicIPPrefixResult(
        prefix=_get_ip_prefix(prefix), prefix_id=prefix.id, is_managed=True
    )


def ensure_public_ip_prefix_deleted(manager: AzureManager, vm_config: GatewayVMConfiguration):
    """
    Deletes the managed public IP prefix of the VM configuration if it exists.
    """
    name = get_managed_public_ip_prefix_name(vm_config.metadata.uid)
    try:
        manager.get_public_ip_prefix(name)
    except ResourceNotFoundError:
        return
    logger.info("Deleting managed public ip prefix %s", name)
    try:
        manager.delete_public_ip_prefix(name)
    except ResourceNotFoundError:
        pass


def check_public_ip_prefix_length(prefix_length: int):
    if not MIN_PUBLIC_IP_PREFIX_SIZE <= prefix_length <= MAX_PUBLIC_IP_PREFIX_SIZE:
        raise ConfigurationError(
            f"public ip prefix length {prefix_length} is out of range"
            f" [{MIN_PUBLIC_IP_PREFIX_SIZE}, {MAX_PUBLIC_IP_PREFIX_SIZE}]"
        )


def _get_ip_prefix(prefix: PublicIPPrefix) -> str:
    if not prefix.ip_prefix:
        raise PublicIPPrefixError(f"public ip prefix {prefix.name} has no allocated ip prefix")
    return prefix.ip_prefix
