import re
from typing import Tuple

from azure.core.exceptions import HttpResponseError, ResourceNotFoundError

from egress_gateway._internal.core.consts import MANAGED_RESOURCE_PREFIX
from egress_gateway._internal.core.errors import ConfigurationError
from egress_gateway._internal.utils.common import fnv64a

_PUBLIC_IP_PREFIX_ID_REGEX = re.compile(
    r"(?i).*/subscriptions/(.+)/resourceGroups/(.+)"
    r"/providers/Microsoft.Network/publicIPPrefixes/(.+)"
)


def get_resource_name_from_resource_id(resource_id: str) -> str:
    return resource_id.split("/")[-1]


def get_resource_group_id(subscription_id: str, resource_group: str) -> str:
    return f"/subscriptions/{subscription_id}/resourceGroups/{resource_group}"


def _get_network_resource_id(
    subscription_id: str, resource_group: str, resource_type: str, name: str
) -> str:
    return (
        f"{get_resource_group_id(subscription_id, resource_group)}"
        f"/providers/Microsoft.Network/{resource_type}/{name}"
    )


def get_load_balancer_id(subscription_id: str, resource_group: str, load_balancer: str) -> str:
    return _get_network_resource_id(
        subscription_id, resource_group, "loadBalancers", load_balancer
    )


def get_frontend_ip_configuration_id(
    subscription_id: str, resource_group: str, load_balancer: str, frontend: str
) -> str:
    lb_id = get_load_balancer_id(subscription_id, resource_group, load_balancer)
    return f"{lb_id}/frontendIPConfigurations/{frontend}"


def get_backend_address_pool_id(
    subscription_id: str, resource_group: str, load_balancer: str, backend: str
) -> str:
    lb_id = get_load_balancer_id(subscription_id, resource_group, load_balancer)
    return f"{lb_id}/backendAddressPools/{backend}"


def get_probe_id(subscription_id: str, resource_group: str, load_balancer: str, probe: str) -> str:
    lb_id = get_load_balancer_id(subscription_id, resource_group, load_balancer)
    return f"{lb_id}/probes/{probe}"


def get_subnet_id(subscription_id: str, resource_group: str, network: str, subnet: str) -> str:
    network_id = _get_network_resource_id(
        subscription_id, resource_group, "virtualNetworks", network
    )
    return f"{network_id}/subnets/{subnet}"


def get_public_ip_prefix_id(subscription_id: str, resource_group: str, prefix: str) -> str:
    return _get_network_resource_id(subscription_id, resource_group, "publicIPPrefixes", prefix)


def parse_public_ip_prefix_id(prefix_id: str) -> Tuple[str, str, str]:
    """
    Returns subscription ID, resource group and name of the public IP prefix.
    """
    match = _PUBLIC_IP_PREFIX_ID_REGEX.fullmatch(prefix_id)
    if match is None:
        raise ConfigurationError(f"Failed to parse public IP prefix ID {prefix_id!r}")
    subscription_id, resource_group, name = match.groups()
    return subscription_id, resource_group, name


def get_managed_public_ip_prefix_name(vm_config_uid: str) -> str:
    return f"{MANAGED_RESOURCE_PREFIX}-{vm_config_uid}"


def get_public_ip_name(prefix_name: str, nic_name: str) -> str:
    return f"{prefix_name}-{fnv64a(nic_name.encode()):x}"


def get_gateway_ip_config_name(namespace: str, name: str) -> str:
    return f"{namespace}_{name}"


def is_not_found(error: Exception) -> bool:
    if isinstance(error, ResourceNotFoundError):
        return True
    return isinstance(error, HttpResponseError) and error.status_code == 404
