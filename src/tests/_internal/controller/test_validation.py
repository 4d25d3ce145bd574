import pytest

from egress_gateway._internal.controller.validation import validate_gateway_spec
from egress_gateway._internal.core.errors import ConfigurationError
from egress_gateway._internal.core.models.gateways import StaticGatewayConfigurationSpec

VMSS_PROFILE = dict(vmss_resource_group="rg", vmss_name="vmss", public_ip_prefix_size=31)
VM_POOL_PROFILE = dict(vm_resource_group="rg", pool_name="gwpool", public_ip_prefix_size=31)


class TestValidateGatewaySpec:
    @pytest.mark.parametrize(
        "spec",
        [
            dict(gateway_nodepool_name="gwpool"),
            dict(gateway_vmss_profile=VMSS_PROFILE),
            dict(gateway_vm_pool_profile=VM_POOL_PROFILE),
            dict(gateway_vmss_profile=VMSS_PROFILE, provision_public_ips=False),
            dict(gateway_vmss_profile=VMSS_PROFILE, public_ip_prefix_id="/prefix"),
            dict(gateway_vmss_profile={**VMSS_PROFILE, "public_ip_prefix_size": 0}),
        ],
    )
    def test_valid(self, spec: dict):
        validate_gateway_spec(StaticGatewayConfigurationSpec(**spec))

    @pytest.mark.parametrize(
        "spec, error",
        [
            (dict(), "Either gatewayNodepoolName or"),
            (
                dict(gateway_nodepool_name="gwpool", gateway_vmss_profile=VMSS_PROFILE),
                "cannot be set together",
            ),
            (
                dict(gateway_vmss_profile=VMSS_PROFILE, gateway_vm_pool_profile=VM_POOL_PROFILE),
                "gatewayVmssProfile and gatewayVmPoolProfile cannot be set together",
            ),
            (
                dict(gateway_vmss_profile={**VMSS_PROFILE, "vmss_resource_group": ""}),
                "vmssResourceGroup must be provided",
            ),
            (
                dict(gateway_vmss_profile={**VMSS_PROFILE, "vmss_name": ""}),
                "vmssName must be provided",
            ),
            (
                dict(gateway_vmss_profile={**VMSS_PROFILE, "public_ip_prefix_size": 32}),
                "publicIpPrefixSize must be in the range",
            ),
            (
                dict(gateway_vm_pool_profile={**VM_POOL_PROFILE, "pool_name": ""}),
                "poolName must be provided",
            ),
            (
                dict(gateway_vm_pool_profile={**VM_POOL_PROFILE, "public_ip_prefix_size": -1}),
                "publicIpPrefixSize must be in the range",
            ),
            (
                dict(
                    gateway_vmss_profile=VMSS_PROFILE,
                    provision_public_ips=False,
                    public_ip_prefix_id="/prefix",
                ),
                "PublicIpPrefixId should be empty",
            ),
        ],
    )
    def test_invalid(self, spec: dict, error: str):
        with pytest.raises(ConfigurationError, match=error):
            validate_gateway_spec(StaticGatewayConfigurationSpec(**spec))

    def test_reports_all_errors(self):
        spec = StaticGatewayConfigurationSpec(
            gateway_vmss_profile={**VMSS_PROFILE, "vmss_name": "", "public_ip_prefix_size": 40},
            provision_public_ips=False,
            public_ip_prefix_id="/prefix",
        )
        with pytest.raises(ConfigurationError) as e:
            validate_gateway_spec(spec)
        assert len(str(e.value).split("; ")) == 3
