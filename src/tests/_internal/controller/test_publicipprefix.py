from unittest.mock import MagicMock

import pytest

from egress_gateway._internal.controller.publicipprefix import (
    NO_PUBLIC_IP_PREFIX,
    PublicIPPrefixResult,
    ensure_public_ip_prefix,
    ensure_public_ip_prefix_deleted,
)
from egress_gateway._internal.core.azure import utils as azure_utils
from egress_gateway._internal.core.errors import ConfigurationError, PublicIPPrefixError
from egress_gateway._internal.testing.common import (
    RESOURCE_GROUP,
    SUBSCRIPTION_ID,
    get_azure_manager,
    get_not_found_error,
    get_poller,
    get_public_ip_prefix,
    get_vm_configuration,
)

MANAGED_PREFIX_NAME = "egressgateway-vmcfg1"


@pytest.fixture
def network_client() -> MagicMock:
    return MagicMock()


class TestEnsurePublicIPPrefix:
    def test_returns_nothing_if_public_ips_disabled(self, network_client: MagicMock):
        manager = get_azure_manager(network_client=network_client)
        vm_config = get_vm_configuration(provision_public_ips=False)
        assert ensure_public_ip_prefix(manager, vm_config, 31) == NO_PUBLIC_IP_PREFIX
        network_client.public_ip_prefixes.get.assert_not_called()

    def test_uses_provided_prefix(self, network_client: MagicMock):
        prefix = get_public_ip_prefix("byo", resource_group="byoRG")
        network_client.public_ip_prefixes.get.return_value = prefix
        manager = get_azure_manager(network_client=network_client)
        vm_config = get_vm_configuration(public_ip_prefix_id=prefix.id)
        result = ensure_public_ip_prefix(manager, vm_config, 31)
        assert result == PublicIPPrefixResult(
            prefix="1.2.3.4/31", prefix_id=prefix.id, is_managed=False
        )
        network_client.public_ip_prefixes.get.assert_called_once_with(
            resource_group_name="byoRG", public_ip_prefix_name="byo"
        )
        network_client.public_ip_prefixes.begin_create_or_update.assert_not_called()

    def test_provided_prefix_takes_precedence_over_managed(self, network_client: MagicMock):
        prefix = get_public_ip_prefix("byo")
        network_client.public_ip_prefixes.get.return_value = prefix
        manager = get_azure_manager(network_client=network_client)
        vm_config = get_vm_configuration(public_ip_prefix_id=prefix.id)
        result = ensure_public_ip_prefix(manager, vm_config, 31)
        assert not result.is_managed
        names = [
            c.kwargs["public_ip_prefix_name"]
            for c in network_client.public_ip_prefixes.get.call_args_list
        ]
        assert MANAGED_PREFIX_NAME not in names

    def test_raises_if_provided_prefix_is_in_other_subscription(
        self, network_client: MagicMock
    ):
        manager = get_azure_manager(network_client=network_client)
        prefix_id = azure_utils.get_public_ip_prefix_id("otherSub", RESOURCE_GROUP, "byo")
        vm_config = get_vm_configuration(public_ip_prefix_id=prefix_id)
        with pytest.raises(ConfigurationError, match="subscription"):
            ensure_public_ip_prefix(manager, vm_config, 31)

    def test_subscription_is_compared_case_insensitively(self, network_client: MagicMock):
        prefix = get_public_ip_prefix("byo")
        network_client.public_ip_prefixes.get.return_value = prefix
        manager = get_azure_manager(network_client=network_client)
        prefix_id = azure_utils.get_public_ip_prefix_id(
            SUBSCRIPTION_ID.upper(), RESOURCE_GROUP, "byo"
        )
        vm_config = get_vm_configuration(public_ip_prefix_id=prefix_id)
        assert ensure_public_ip_prefix(manager, vm_config, 31).prefix == "1.2.3.4/31"

    def test_raises_if_provided_prefix_has_other_length(self, network_client: MagicMock):
        prefix = get_public_ip_prefix("byo", ip_prefix="1.2.3.0/28", prefix_length=28)
        network_client.public_ip_prefixes.get.return_value = prefix
        manager = get_azure_manager(network_client=network_client)
        vm_config = get_vm_configuration(public_ip_prefix_id=prefix.id)
        with pytest.raises(ConfigurationError, match="invalid length"):
            ensure_public_ip_prefix(manager, vm_config, 31)

    def test_raises_if_provided_prefix_length_is_out_of_range(self, network_client: MagicMock):
        prefix = get_public_ip_prefix("byo", ip_prefix="1.2.3.4/32", prefix_length=32)
        network_client.public_ip_prefixes.get.return_value = prefix
        manager = get_azure_manager(network_client=network_client)
        vm_config = get_vm_configuration(public_ip_prefix_id=prefix.id)
        with pytest.raises(ConfigurationError, match="out of range"):
            ensure_public_ip_prefix(manager, vm_config, 32)
        network_client.public_ip_prefixes.get.assert_not_called()

    def test_raises_if_provided_prefix_id_is_malformed(self, network_client: MagicMock):
        manager = get_azure_manager(network_client=network_client)
        vm_config = get_vm_configuration(public_ip_prefix_id="/not/a/prefix")
        with pytest.raises(ConfigurationError):
            ensure_public_ip_prefix(manager, vm_config, 31)

    def test_returns_existing_managed_prefix(self, network_client: MagicMock):
        prefix = get_public_ip_prefix(MANAGED_PREFIX_NAME)
        network_client.public_ip_prefixes.get.return_value = prefix
        manager = get_azure_manager(network_client=network_client)
        result = ensure_public_ip_prefix(manager, get_vm_configuration(), 31)
        assert result == PublicIPPrefixResult(
            prefix="1.2.3.4/31", prefix_id=prefix.id, is_managed=True
        )
        network_client.public_ip_prefixes.get.assert_called_once_with(
            resource_group_name=RESOURCE_GROUP, public_ip_prefix_name=MANAGED_PREFIX_NAME
        )
        network_client.public_ip_prefixes.begin_create_or_update.assert_not_called()

    def test_creates_managed_prefix(self, network_client: MagicMock):
        prefix = get_public_ip_prefix(
            MANAGED_PREFIX_NAME, ip_prefix="5.6.7.0/30", prefix_length=30
        )
        network_client.public_ip_prefixes.get.side_effect = get_not_found_error()
        network_client.public_ip_prefixes.begin_create_or_update.return_value = get_poller(prefix)
        manager = get_azure_manager(network_client=network_client)
        result = ensure_public_ip_prefix(manager, get_vm_configuration(), 30)
        assert result == PublicIPPrefixResult(
            prefix="5.6.7.0/30", prefix_id=prefix.id, is_managed=True
        )
        call = network_client.public_ip_prefixes.begin_create_or_update.call_args
        assert call.kwargs["public_ip_prefix_name"] == MANAGED_PREFIX_NAME
        assert call.kwargs["resource_group_name"] == RESOURCE_GROUP
        parameters = call.kwargs["parameters"]
        assert parameters.prefix_length == 30
        assert parameters.public_ip_address_version == "IPv4"
        assert parameters.sku.name == "Standard"
        assert parameters.sku.tier == "Regional"

    @pytest.mark.parametrize("prefix_length", [-1, 32])
    def test_raises_if_managed_prefix_length_is_out_of_range(
        self, network_client: MagicMock, prefix_length: int
    ):
        manager = get_azure_manager(network_client=network_client)
        with pytest.raises(ConfigurationError, match="out of range"):
            ensure_public_ip_prefix(manager, get_vm_configuration(), prefix_length)
        network_client.public_ip_prefixes.get.assert_not_called()

    def test_raises_if_prefix_is_not_allocated(self, network_client: MagicMock):
        prefix = get_public_ip_prefix(MANAGED_PREFIX_NAME, ip_prefix=None)
        network_client.public_ip_prefixes.get.return_value = prefix
        manager = get_azure_manager(network_client=network_client)
        with pytest.raises(PublicIPPrefixError):
            ensure_public_ip_prefix(manager, get_vm_configuration(), 31)


class TestEnsurePublicIPPrefixDeleted:
    def test_deletes_managed_prefix(self, network_client: MagicMock):
        network_client.public_ip_prefixes.get.return_value = get_public_ip_prefix(
            MANAGED_PREFIX_NAME
        )
        network_client.public_ip_prefixes.begin_delete.return_value = get_poller()
        manager = get_azure_manager(network_client=network_client)
        ensure_public_ip_prefix_deleted(manager, get_vm_configuration())
        network_client.public_ip_prefixes.begin_delete.assert_called_once_with(
            resource_group_name=RESOURCE_GROUP, public_ip_prefix_name=MANAGED_PREFIX_NAME
        )

    def test_does_nothing_if_prefix_does_not_exist(self, network_client: MagicMock):
        network_client.public_ip_prefixes.get.side_effect = get_not_found_error()
        manager = get_azure_manager(network_client=network_client)
        ensure_public_ip_prefix_deleted(manager, get_vm_configuration())
        network_client.public_ip_prefixes.begin_delete.assert_not_called()

    def test_tolerates_concurrent_deletion(self, network_client: MagicMock):
        network_client.public_ip_prefixes.get.return_value = get_public_ip_prefix(
            MANAGED_PREFIX_NAME
        )
        network_client.public_ip_prefixes.begin_delete.side_effect = get_not_found_error()
        manager = get_azure_manager(network_client=network_client)
        ensure_public_ip_prefix_deleted(manager, get_vm_configuration())
