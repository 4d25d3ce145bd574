from typing import List, Optional

from azure.core.credentials import TokenCredential
from azure.core.exceptions import HttpResponseError
from azure.core.polling import LROPoller
from azure.mgmt import compute as compute_mgmt
from azure.mgmt import network as network_mgmt
from azure.mgmt.compute.models import (
    VirtualMachine,
    VirtualMachineScaleSet,
    VirtualMachineScaleSetVM,
)
from azure.mgmt.network.models import (
    LoadBalancer,
    NetworkInterface,
    PublicIPAddress,
    PublicIPPrefix,
    Subnet,
)

from egress_gateway._internal import settings
from egress_gateway._internal.core.azure import utils as azure_utils
from egress_gateway._internal.core.azure.auth import get_cloud
from egress_gateway._internal.core.consts import DEFAULT_USER_AGENT
from egress_gateway._internal.core.errors import (
    ComputeError,
    ConfigurationError,
    LoadBalancerConflictError,
)
from egress_gateway._internal.core.models.config import CloudConfig
from egress_gateway._internal.utils.logging import get_logger

logger = get_logger(__name__)


class AzureManager:
    """
    Thin facade over the Azure network and compute management clients.

    Every method is a blocking round trip. Resource groups default to the ones
    from the cloud config. Not found conditions are raised as
    `azure.core.exceptions.ResourceNotFoundError`, see `azure_utils.is_not_found`.
    Throttling and transient errors are retried by the azure-core retry policy.
    """

    def __init__(
        self,
        config: CloudConfig,
        credential: TokenCredential,
        network_client: Optional[network_mgmt.NetworkManagementClient] = None,
        compute_client: Optional[compute_mgmt.ComputeManagementClient] = None,
    ):
        self.config = config.copy()
        if self.config.user_agent == "":
            self.config.user_agent = DEFAULT_USER_AGENT
        if self.config.load_balancer_resource_group == "":
            self.config.load_balancer_resource_group = self.config.resource_group
        if self.config.vnet_resource_group == "":
            self.config.vnet_resource_group = self.config.resource_group
        if network_client is None or compute_client is None:
            cloud = get_cloud(self.config.cloud)
            client_kwargs = dict(
                credential=credential,
                subscription_id=self.config.subscription_id,
                base_url=cloud.resource_manager_url,
                credential_scopes=[cloud.credential_scope],
                user_agent=self.config.user_agent,
                retry_total=settings.AZURE_RETRY_TOTAL,
                retry_backoff_factor=settings.AZURE_RETRY_BACKOFF_FACTOR,
            )
            if network_client is None:
                network_client = network_mgmt.NetworkManagementClient(**client_kwargs)
            if compute_client is None:
                compute_client = compute_mgmt.ComputeManagementClient(**client_kwargs)
        self._network_client = network_client
        self._compute_client = compute_client

    @property
    def subscription_id(self) -> str:
        return self.config.subscription_id

    @property
    def location(self) -> str:
        return self.config.location

    @property
    def resource_group(self) -> str:
        return self.config.resource_group

    @property
    def load_balancer_name(self) -> str:
        return self.config.load_balancer_name

    @property
    def load_balancer_resource_group(self) -> str:
        return self.config.load_balancer_resource_group

    def get_lb_frontend_ip_configuration_id(self, name: str) -> str:
        return azure_utils.get_frontend_ip_configuration_id(
            self.subscription_id,
            self.load_balancer_resource_group,
            self.load_balancer_name,
            name,
        )

    def get_lb_backend_address_pool_id(self, name: str) -> str:
        return azure_utils.get_backend_address_pool_id(
            self.subscription_id,
            self.load_balancer_resource_group,
            self.load_balancer_name,
            name,
        )

    def get_lb_probe_id(self, name: str) -> str:
        return azure_utils.get_probe_id(
            self.subscription_id,
            self.load_balancer_resource_group,
            self.load_balancer_name,
            name,
        )

    def get_public_ip_prefix_id(self, name: str, resource_group: str = "") -> str:
        return azure_utils.get_public_ip_prefix_id(
            self.subscription_id, resource_group or self.resource_group, name
        )

    # Load balancer

    def get_lb(self) -> LoadBalancer:
        return self._network_client.load_balancers.get(
            resource_group_name=self.load_balancer_resource_group,
            load_balancer_name=self.load_balancer_name,
        )

    def create_or_update_lb(self, lb: LoadBalancer, etag: Optional[str] = None) -> LoadBalancer:
        """
        Writes the load balancer. If `etag` is given, the write is conditional
        and `LoadBalancerConflictError` is raised if the load balancer changed since it was read.
        """
        kwargs = {}
        if etag is not None:
            kwargs["headers"] = {"If-Match": etag}
        try:
            poller = self._network_client.load_balancers.begin_create_or_update(
                resource_group_name=self.load_balancer_resource_group,
                load_balancer_name=self.load_balancer_name,
                parameters=lb,
                **kwargs,
            )
        except HttpResponseError as e:
            if e.status_code == 412:
                raise LoadBalancerConflictError(
                    f"Load balancer {self.load_balancer_name} was modified concurrently"
                ) from e
            raise
        return _wait(poller, f"load balancer {self.load_balancer_name} update")

    def delete_lb(self):
        poller = self._network_client.load_balancers.begin_delete(
            resource_group_name=self.load_balancer_resource_group,
            load_balancer_name=self.load_balancer_name,
        )
        _wait(poller, f"load balancer {self.load_balancer_name} deletion")

    # Virtual machine scale sets

    def list_vmss(self, resource_group: str = "") -> List[VirtualMachineScaleSet]:
        return list(
            self._compute_client.virtual_machine_scale_sets.list(
                resource_group_name=resource_group or self.resource_group,
            )
        )

    def get_vmss(self, vmss_name: str, resource_group: str = "") -> VirtualMachineScaleSet:
        _require(vmss_name, "vmss name")
        return self._compute_client.virtual_machine_scale_sets.get(
            resource_group_name=resource_group or self.resource_group,
            vm_scale_set_name=vmss_name,
        )

    def create_or_update_vmss(
        self,
        vmss: VirtualMachineScaleSet,
        vmss_name: str,
        resource_group: str = "",
    ) -> VirtualMachineScaleSet:
        _require(vmss_name, "vmss name")
        poller = self._compute_client.virtual_machine_scale_sets.begin_create_or_update(
            resource_group_name=resource_group or self.resource_group,
            vm_scale_set_name=vmss_name,
            parameters=vmss,
        )
        return _wait(poller, f"vmss {vmss_name} update")

    def list_vmss_instances(
        self, vmss_name: str, resource_group: str = ""
    ) -> List[VirtualMachineScaleSetVM]:
        _require(vmss_name, "vmss name")
        return list(
            self._compute_client.virtual_machine_scale_set_vms.list(
                resource_group_name=resource_group or self.resource_group,
                virtual_machine_scale_set_name=vmss_name,
            )
        )

    def get_vmss_instance(
        self, vmss_name: str, instance_id: str, resource_group: str = ""
    ) -> VirtualMachineScaleSetVM:
        _require(vmss_name, "vmss name")
        _require(instance_id, "vmss instance ID")
        return self._compute_client.virtual_machine_scale_set_vms.get(
            resource_group_name=resource_group or self.resource_group,
            vm_scale_set_name=vmss_name,
            instance_id=instance_id,
        )

    def update_vmss_instance(
        self,
        vm: VirtualMachineScaleSetVM,
        vmss_name: str,
        instance_id: str,
        resource_group: str = "",
    ) -> VirtualMachineScaleSetVM:
        _require(vmss_name, "vmss name")
        _require(instance_id, "vmss instance ID")
        poller = self._compute_client.virtual_machine_scale_set_vms.begin_update(
            resource_group_name=resource_group or self.resource_group,
            vm_scale_set_name=vmss_name,
            instance_id=instance_id,
            parameters=vm,
        )
        return _wait(poller, f"vmss {vmss_name} instance {instance_id} update")

    # Virtual machines

    def list_vms(self, resource_group: str = "") -> List[VirtualMachine]:
        return list(
            self._compute_client.virtual_machines.list(
                resource_group_name=resource_group or self.resource_group,
            )
        )

    def get_vm(self, vm_name: str, resource_group: str = "") -> VirtualMachine:
        _require(vm_name, "vm name")
        return self._compute_client.virtual_machines.get(
            resource_group_name=resource_group or self.resource_group,
            vm_name=vm_name,
        )

    # Network interfaces

    def get_nic(self, nic_name: str, resource_group: str = "") -> NetworkInterface:
        _require(nic_name, "network interface name")
        return self._network_client.network_interfaces.get(
            resource_group_name=resource_group or self.resource_group,
            network_interface_name=nic_name,
        )

    def get_vmss_nic(
        self,
        vmss_name: str,
        instance_id: str,
        nic_name: str,
        resource_group: str = "",
    ) -> NetworkInterface:
        _require(vmss_name, "vmss name")
        _require(instance_id, "vmss instance ID")
        _require(nic_name, "network interface name")
        network_interfaces = self._network_client.network_interfaces
        return network_interfaces.get_virtual_machine_scale_set_network_interface(
            resource_group_name=resource_group or self.resource_group,
            virtual_machine_scale_set_name=vmss_name,
            virtualmachine_index=instance_id,
            network_interface_name=nic_name,
        )

    def create_or_update_nic(
        self, nic: NetworkInterface, nic_name: str, resource_group: str = ""
    ) -> NetworkInterface:
        _require(nic_name, "network interface name")
        poller = self._network_client.network_interfaces.begin_create_or_update(
            resource_group_name=resource_group or self.resource_group,
            network_interface_name=nic_name,
            parameters=nic,
        )
        return _wait(poller, f"network interface {nic_name} update")

    # Public IP prefixes

    def get_public_ip_prefix(self, prefix_name: str, resource_group: str = "") -> PublicIPPrefix:
        _require(prefix_name, "public IP prefix name")
        return self._network_client.public_ip_prefixes.get(
            resource_group_name=resource_group or self.resource_group,
            public_ip_prefix_name=prefix_name,
        )

    def create_or_update_public_ip_prefix(
        self, prefix: PublicIPPrefix, prefix_name: str, resource_group: str = ""
    ) -> PublicIPPrefix:
        _require(prefix_name, "public IP prefix name")
        poller = self._network_client.public_ip_prefixes.begin_create_or_update(
            resource_group_name=resource_group or self.resource_group,
            public_ip_prefix_name=prefix_name,
            parameters=prefix,
        )
        return _wait(poller, f"public IP prefix {prefix_name} creation")

    def delete_public_ip_prefix(self, prefix_name: str, resource_group: str = ""):
        _require(prefix_name, "public IP prefix name")
        poller = self._network_client.public_ip_prefixes.begin_delete(
            resource_group_name=resource_group or self.resource_group,
            public_ip_prefix_name=prefix_name,
        )
        _wait(poller, f"public IP prefix {prefix_name} deletion")

    # Public IP addresses

    def get_public_ip(self, ip_name: str, resource_group: str = "") -> PublicIPAddress:
        _require(ip_name, "public IP name")
        return self._network_client.public_ip_addresses.get(
            resource_group_name=resource_group or self.resource_group,
            public_ip_address_name=ip_name,
        )

    def create_or_update_public_ip(
        self, ip: PublicIPAddress, ip_name: str, resource_group: str = ""
    ) -> PublicIPAddress:
        _require(ip_name, "public IP name")
        poller = self._network_client.public_ip_addresses.begin_create_or_update(
            resource_group_name=resource_group or self.resource_group,
            public_ip_address_name=ip_name,
            parameters=ip,
        )
        return _wait(poller, f"public IP {ip_name} creation")

    def delete_public_ip(self, ip_name: str, resource_group: str = ""):
        _require(ip_name, "public IP name")
        poller = self._network_client.public_ip_addresses.begin_delete(
            resource_group_name=resource_group or self.resource_group,
            public_ip_address_name=ip_name,
        )
        _wait(poller, f"public IP {ip_name} deletion")

    # Subnets

    def get_subnet(self) -> Subnet:
        return self._network_client.subnets.get(
            resource_group_name=self.config.vnet_resource_group,
            virtual_network_name=self.config.vnet_name,
            subnet_name=self.config.subnet_name,
        )


def _require(value: str, what: str):
    if value == "":
        raise ConfigurationError(f"{what} is empty")


def _wait(poller: LROPoller, operation: str):
    result = poller.result(timeout=settings.AZURE_OPERATION_TIMEOUT_SECONDS)
    if not poller.done():
        logger.error("Timed out waiting for %s", operation)
        raise ComputeError(f"Timed out waiting for {operation}")
    return result
