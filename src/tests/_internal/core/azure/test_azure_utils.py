import pytest
from azure.core.exceptions import HttpResponseError, ResourceNotFoundError

from egress_gateway._internal.core.azure import utils as azure_utils
from egress_gateway._internal.core.errors import ConfigurationError

PREFIX_ID = (
    "/subscriptions/sub/resourceGroups/rg/providers/Microsoft.Network/publicIPPrefixes/prefix"
)


def get_http_error(status_code: int) -> HttpResponseError:
    error = HttpResponseError("request failed")
    error.status_code = status_code
    return error


class TestResourceIds:
    def test_load_balancer_id(self):
        assert azure_utils.get_load_balancer_id("sub", "rg", "lb") == (
            "/subscriptions/sub/resourceGroups/rg/providers/Microsoft.Network/loadBalancers/lb"
        )

    def test_lb_child_ids(self):
        lb_id = azure_utils.get_load_balancer_id("sub", "rg", "lb")
        assert azure_utils.get_frontend_ip_configuration_id("sub", "rg", "lb", "fe") == (
            f"{lb_id}/frontendIPConfigurations/fe"
        )
        assert azure_utils.get_backend_address_pool_id("sub", "rg", "lb", "be") == (
            f"{lb_id}/backendAddressPools/be"
        )
        assert azure_utils.get_probe_id("sub", "rg", "lb", "probe") == f"{lb_id}/probes/probe"

    def test_subnet_id(self):
        assert azure_utils.get_subnet_id("sub", "rg", "vnet", "subnet") == (
            "/subscriptions/sub/resourceGroups/rg/providers/Microsoft.Network"
            "/virtualNetworks/vnet/subnets/subnet"
        )

    def test_public_ip_prefix_id(self):
        assert azure_utils.get_public_ip_prefix_id("sub", "rg", "prefix") == PREFIX_ID

    def test_resource_name(self):
        assert azure_utils.get_resource_name_from_resource_id(PREFIX_ID) == "prefix"


class TestParsePublicIPPrefixId:
    def test_parses(self):
        assert azure_utils.parse_public_ip_prefix_id(PREFIX_ID) == ("sub", "rg", "prefix")

    def test_case_insensitive(self):
        prefix_id = (
            "/SUBSCRIPTIONS/sub/RESOURCEGROUPS/rg/PROVIDERS/microsoft.network"
            "/PUBLICIPPREFIXES/prefix"
        )
        assert azure_utils.parse_public_ip_prefix_id(prefix_id) == ("sub", "rg", "prefix")

    @pytest.mark.parametrize(
        "prefix_id",
        [
            "",
            "prefix",
            azure_utils.get_load_balancer_id("sub", "rg", "lb"),
        ],
    )
    def test_malformed(self, prefix_id: str):
        with pytest.raises(ConfigurationError, match="Failed to parse public IP prefix ID"):
            azure_utils.parse_public_ip_prefix_id(prefix_id)


class TestNames:
    def test_managed_public_ip_prefix_name(self):
        assert azure_utils.get_managed_public_ip_prefix_name("uid") == "egressgateway-uid"

    def test_public_ip_name(self):
        # FNV-1a 64 of "a"
        assert azure_utils.get_public_ip_name("prefix", "a") == "prefix-af63dc4c8601ec8c"

    def test_public_ip_name_is_stable_per_nic(self):
        assert azure_utils.get_public_ip_name("prefix", "nic1") == (
            azure_utils.get_public_ip_name("prefix", "nic1")
        )
        assert azure_utils.get_public_ip_name("prefix", "nic1") != (
            azure_utils.get_public_ip_name("prefix", "nic2")
        )

    def test_gateway_ip_config_name(self):
        assert azure_utils.get_gateway_ip_config_name("ns", "gw") == "ns_gw"


class TestIsNotFound:
    def test_resource_not_found(self):
        assert azure_utils.is_not_found(ResourceNotFoundError("not found"))

    def test_http_404(self):
        assert azure_utils.is_not_found(get_http_error(404))

    @pytest.mark.parametrize("error", [get_http_error(500), ValueError("not found")])
    def test_other_errors(self, error: Exception):
        assert not azure_utils.is_not_found(error)
