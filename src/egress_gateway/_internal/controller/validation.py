from typing import List

from egress_gateway._internal.core.consts import (
    MAX_PUBLIC_IP_PREFIX_SIZE,
    MIN_PUBLIC_IP_PREFIX_SIZE,
)
from egress_gateway._internal.core.errors import ConfigurationError
from egress_gateway._internal.core.models.gateways import GatewayPoolSpec


def validate_gateway_spec(spec: GatewayPoolSpec):
    """
    Raises `ConfigurationError` listing every problem found in the gateway spec.
    """
    errors: List[str] = []
    nodepool = bool(spec.gateway_nodepool_name)
    vmss_profile = spec.gateway_vmss_profile
    vm_pool_profile = spec.gateway_vm_pool_profile

    if nodepool and (vmss_profile is not None or vm_pool_profile is not None):
        errors.append(
            "gatewayNodepoolName and gatewayVmssProfile/gatewayVmPoolProfile"
            " cannot be set together"
        )
    if not nodepool and vmss_profile is None and vm_pool_profile is None:
        errors.append(
            "Either gatewayNodepoolName or gatewayVmssProfile/gatewayVmPoolProfile"
            " must be provided"
        )
    if vmss_profile is not None and vm_pool_profile is not None:
        errors.append("gatewayVmssProfile and gatewayVmPoolProfile cannot be set together")

    if vmss_profile is not None:
        if vmss_profile.vmss_resource_group == "":
            errors.append("gatewayVmssProfile.vmssResourceGroup must be provided")
        if vmss_profile.vmss_name == "":
            errors.append("gatewayVmssProfile.vmssName must be provided")
        _check_prefix_size(errors, "gatewayVmssProfile", vmss_profile.public_ip_prefix_size)
    if vm_pool_profile is not None:
        if vm_pool_profile.vm_resource_group == "":
            errors.append("gatewayVmPoolProfile.vmResourceGroup must be provided")
        if vm_pool_profile.pool_name == "":
            errors.append("gatewayVmPoolProfile.poolName must be provided")
        _check_prefix_size(errors, "gatewayVmPoolProfile", vm_pool_profile.public_ip_prefix_size)

    if not spec.provision_public_ips and spec.public_ip_prefix_id:
        errors.append("PublicIpPrefixId should be empty when ProvisionPublicIps is false")

    if errors:
        raise ConfigurationError("; ".join(errors))


def _check_prefix_size(errors: List[str], field: str, size: int):
    if size < MIN_PUBLIC_IP_PREFIX_SIZE or size > MAX_PUBLIC_IP_PREFIX_SIZE:
        errors.append(
            f"{field}.publicIpPrefixSize must be in the range"
            f" [{MIN_PUBLIC_IP_PREFIX_SIZE}, {MAX_PUBLIC_IP_PREFIX_SIZE}]"
        )
