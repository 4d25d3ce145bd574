"""
Convergence of the gateway IP configuration on network interfaces.

The same steps apply to three representations of a network interface:
a scale set model, a scale set instance model and a standalone NIC.
Each of them gets the gateway IP configuration added, replaced or removed,
and the primary IP configuration joins the LB backend pool only while
the gateway IP configuration is present.
"""

from typing import Any, Callable, List, NamedTuple, Optional

from azure.mgmt.compute.models import (
    ApiEntityReference,
    SubResource,
    VirtualMachineScaleSetIPConfiguration,
    VirtualMachineScaleSetNetworkConfiguration,
    VirtualMachineScaleSetPublicIPAddressConfiguration,
)
from azure.mgmt.network.models import (
    BackendAddressPool,
    NetworkInterface,
    NetworkInterfaceIPConfiguration,
    PublicIPAddress,
)
from azure.mgmt.network.models import Subnet as NetworkSubnet

from egress_gateway._internal.core.errors import NetworkInterfaceError
from egress_gateway._internal.utils.common import equal_fold
from egress_gateway._internal.utils.logging import get_logger

logger = get_logger(__name__)

IP_VERSION_IPV4 = "IPv4"
PROVISIONING_STATE_FAILED = "Failed"


# Scale set network configurations


def get_primary_vmss_network_configuration(
    interfaces: Optional[List[VirtualMachineScaleSetNetworkConfiguration]],
) -> VirtualMachineScaleSetNetworkConfiguration:
    for nic in interfaces or []:
        if nic.primary:
            return nic
    raise NetworkInterfaceError("vmss(vm) primary network interface not found")


def _get_primary_vmss_ip_configuration(
    nic: VirtualMachineScaleSetNetworkConfiguration,
) -> Optional[VirtualMachineScaleSetIPConfiguration]:
    for ip_config in nic.ip_configurations or []:
        if ip_config.primary:
            return ip_config
    return None


def get_expected_vmss_ip_config(
    ip_config_name: str,
    ip_prefix_id: str,
    primary_nic: VirtualMachineScaleSetNetworkConfiguration,
) -> VirtualMachineScaleSetIPConfiguration:
    primary_ip_config = _get_primary_vmss_ip_configuration(primary_nic)
    if primary_ip_config is None or primary_ip_config.subnet is None:
        raise NetworkInterfaceError(
            f"primary network interface {primary_nic.name} has no primary IP configuration subnet"
        )
    public_ip_config = None
    if ip_prefix_id != "":
        public_ip_config = VirtualMachineScaleSetPublicIPAddressConfiguration(
            name=ip_config_name,
            public_ip_prefix=SubResource(id=ip_prefix_id),
        )
    return VirtualMachineScaleSetIPConfiguration(
        name=ip_config_name,
        primary=False,
        private_ip_address_version=IP_VERSION_IPV4,
        subnet=ApiEntityReference(id=primary_ip_config.subnet.id),
        public_ip_address_configuration=public_ip_config,
    )


def different_vmss_ip_config(
    a: VirtualMachineScaleSetIPConfiguration,
    b: VirtualMachineScaleSetIPConfiguration,
) -> bool:
    if bool(a.primary) != bool(b.primary):
        return True
    if not equal_fold(a.private_ip_address_version, b.private_ip_address_version):
        return True
    if (a.subnet is None) != (b.subnet is None):
        return True
    if a.subnet is not None and not equal_fold(a.subnet.id, b.subnet.id):
        return True
    pip_a, pip_b = a.public_ip_address_configuration, b.public_ip_address_configuration
    if (pip_a is None) != (pip_b is None):
        return True
    if pip_a is not None:
        if pip_a.name != pip_b.name:
            return True
        prefix_a, prefix_b = pip_a.public_ip_prefix, pip_b.public_ip_prefix
        if (prefix_a is None) != (prefix_b is None):
            return True
        if prefix_a is not None and not equal_fold(prefix_a.id, prefix_b.id):
            return True
    return False


def reconcile_vmss_network_interfaces(
    interfaces: Optional[List[VirtualMachineScaleSetNetworkConfiguration]],
    ip_config_name: str,
    ip_prefix_id: str,
    backend_pool_id: str,
    want_ip_config: bool,
) -> bool:
    """
    Converges the network configurations of a scale set or scale set instance in place.
    Returns True if they changed and must be written back.
    """
    primary_nic = get_primary_vmss_network_configuration(interfaces)
    expected = get_expected_vmss_ip_config(ip_config_name, ip_prefix_id, primary_nic)
    ip_configs = list(primary_nic.ip_configurations or [])
    need_update = False
    found = False
    for ip_config in ip_configs:
        if not equal_fold(ip_config.name, ip_config_name):
            continue
        if not want_ip_config:
            logger.debug("Found unwanted ipConfig %s, dropping", ip_config_name)
            ip_configs.remove(ip_config)
            need_update = True
        elif different_vmss_ip_config(ip_config, expected):
            logger.debug(
                "Found ipConfig %s with different configuration, dropping", ip_config_name
            )
            ip_configs.remove(ip_config)
            need_update = True
        else:
            found = True
        break
    if want_ip_config and not found:
        ip_configs.append(expected)
        need_update = True
    primary_nic.ip_configurations = ip_configs

    primary_ip_config = _get_primary_vmss_ip_configuration(primary_nic)
    pools = list(primary_ip_config.load_balancer_backend_address_pools or [])
    if _reconcile_backend_pools(pools, backend_pool_id, len(ip_configs) > 1, SubResource):
        primary_ip_config.load_balancer_backend_address_pools = pools
        need_update = True
    return need_update


# Standalone network interfaces


def get_primary_nic_ip_configuration(nic: NetworkInterface) -> NetworkInterfaceIPConfiguration:
    for ip_config in nic.ip_configurations or []:
        if ip_config.primary:
            return ip_config
    raise NetworkInterfaceError(f"network interface {nic.name} has no primary IP configuration")


def get_nic_ip_configuration(
    nic: NetworkInterface, ip_config_name: str
) -> Optional[NetworkInterfaceIPConfiguration]:
    for ip_config in nic.ip_configurations or []:
        if equal_fold(ip_config.name, ip_config_name):
            return ip_config
    return None


def get_expected_nic_ip_config(
    ip_config_name: str,
    subnet_id: str,
    public_ip_id: Optional[str],
) -> NetworkInterfaceIPConfiguration:
    return NetworkInterfaceIPConfiguration(
        name=ip_config_name,
        primary=False,
        private_ip_address_version=IP_VERSION_IPV4,
        subnet=NetworkSubnet(id=subnet_id),
        public_ip_address=PublicIPAddress(id=public_ip_id) if public_ip_id else None,
    )


def different_nic_ip_config(
    a: NetworkInterfaceIPConfiguration,
    b: NetworkInterfaceIPConfiguration,
) -> bool:
    if bool(a.primary) != bool(b.primary):
        return True
    if not equal_fold(a.private_ip_address_version, b.private_ip_address_version):
        return True
    if (a.subnet is None) != (b.subnet is None):
        return True
    if a.subnet is not None and not equal_fold(a.subnet.id, b.subnet.id):
        return True
    if (a.public_ip_address is None) != (b.public_ip_address is None):
        return True
    if a.public_ip_address is not None and not equal_fold(
        a.public_ip_address.id, b.public_ip_address.id
    ):
        return True
    return False


class NICChanges(NamedTuple):
    need_update: bool
    # Public IPs that were attached to a removed gateway IP configuration
    detached_public_ip_ids: List[str]


def reconcile_nic_ip_configurations(
    nic: NetworkInterface,
    expected: NetworkInterfaceIPConfiguration,
    backend_pool_id: str,
    want_ip_config: bool,
) -> NICChanges:
    """
    Converges the IP configurations of a standalone NIC in place.
    `expected` is the gateway IP configuration the NIC should carry if `want_ip_config`.
    """
    primary_ip_config = get_primary_nic_ip_configuration(nic)
    ip_configs = list(nic.ip_configurations or [])
    need_update = False
    detached_public_ip_ids = []
    existing = get_nic_ip_configuration(nic, expected.name)
    found = False
    if existing is not None:
        if not want_ip_config or different_nic_ip_config(existing, expected):
            logger.debug("Dropping ipConfig %s from nic %s", expected.name, nic.name)
            ip_configs.remove(existing)
            need_update = True
            if existing.public_ip_address is not None and (
                expected.public_ip_address is None
                or not equal_fold(existing.public_ip_address.id, expected.public_ip_address.id)
                or not want_ip_config
            ):
                detached_public_ip_ids.append(existing.public_ip_address.id)
        else:
            found = True
    if want_ip_config and not found:
        ip_configs.append(expected)
        need_update = True
    nic.ip_configurations = ip_configs

    pools = list(primary_ip_config.load_balancer_backend_address_pools or [])
    if _reconcile_backend_pools(pools, backend_pool_id, len(ip_configs) > 1, BackendAddressPool):
        primary_ip_config.load_balancer_backend_address_pools = pools
        need_update = True
    return NICChanges(need_update=need_update, detached_public_ip_ids=detached_public_ip_ids)


def _reconcile_backend_pools(
    pools: list,
    backend_pool_id: str,
    want_member: bool,
    reference_cls: Callable[..., Any],
) -> bool:
    """
    Adds or removes the backend pool reference in `pools` in place.
    Returns True if `pools` changed.
    """
    matches = [pool for pool in pools if equal_fold(pool.id, backend_pool_id)]
    if want_member and not matches:
        pools.append(reference_cls(id=backend_pool_id))
        return True
    if not want_member and matches:
        for pool in matches:
            pools.remove(pool)
        return True
    return False
