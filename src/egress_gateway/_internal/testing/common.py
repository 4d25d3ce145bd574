import copy
import uuid
from typing import Dict, List, Optional, Tuple
from unittest.mock import MagicMock

from azure.core.exceptions import ResourceNotFoundError
from azure.mgmt.compute.models import (
    ApiEntityReference,
    OSProfile,
    SubResource,
    VirtualMachineScaleSet,
    VirtualMachineScaleSetIPConfiguration,
    VirtualMachineScaleSetNetworkConfiguration,
    VirtualMachineScaleSetNetworkProfile,
    VirtualMachineScaleSetVM,
    VirtualMachineScaleSetVMNetworkProfileConfiguration,
    VirtualMachineScaleSetVMProfile,
)
from azure.mgmt.network.models import (
    LoadBalancer,
    NetworkInterface,
    NetworkInterfaceIPConfiguration,
    PublicIPPrefix,
    Subnet,
)

from egress_gateway._internal.core.azure import utils as azure_utils
from egress_gateway._internal.core.azure.manager import AzureManager
from egress_gateway._internal.core.models.config import CloudConfig
from egress_gateway._internal.core.models.gateways import (
    GatewayLBConfiguration,
    GatewayLBConfigurationSpec,
    GatewayPoolSpec,
    GatewayVMConfiguration,
    GatewayVMConfigurationSpec,
    StaticGatewayConfiguration,
    StaticGatewayConfigurationSpec,
)
from egress_gateway._internal.core.models.objects import ObjectMeta

SUBSCRIPTION_ID = "testSub"
TENANT_ID = "testTenant"
RESOURCE_GROUP = "testRG"
LOCATION = "eastus"
LB_NAME = "testLB"
VNET_NAME = "testVnet"
SUBNET_NAME = "testSubnet"
SUBNET_ID = azure_utils.get_subnet_id(SUBSCRIPTION_ID, RESOURCE_GROUP, VNET_NAME, SUBNET_NAME)


def get_cloud_config(**kwargs) -> CloudConfig:
    values = dict(
        cloud="AzurePublicCloud",
        location=LOCATION,
        subscription_id=SUBSCRIPTION_ID,
        tenant_id=TENANT_ID,
        aad_client_id="testClientID",
        aad_client_secret="testClientSecret",
        resource_group=RESOURCE_GROUP,
        load_balancer_name=LB_NAME,
        vnet_name=VNET_NAME,
        subnet_name=SUBNET_NAME,
    )
    values.update(kwargs)
    return CloudConfig(**values)


def get_azure_manager(
    network_client: Optional[MagicMock] = None,
    compute_client: Optional[MagicMock] = None,
    config: Optional[CloudConfig] = None,
) -> AzureManager:
    if network_client is None:
        network_client = MagicMock()
        network_client.subnets.get.return_value = Subnet(id=SUBNET_ID, name=SUBNET_NAME)
    return AzureManager(
        config=config or get_cloud_config(),
        credential=MagicMock(),
        network_client=network_client,
        compute_client=compute_client or MagicMock(),
    )


def get_poller(result=None) -> MagicMock:
    poller = MagicMock()
    poller.result.return_value = result
    poller.done.return_value = True
    return poller


def get_not_found_error(what: str = "resource") -> ResourceNotFoundError:
    return ResourceNotFoundError(f"{what} not found")


class FakeLoadBalancerOperations:
    """
    Stands in for `NetworkManagementClient.load_balancers` and keeps
    the load balancer in memory. New frontends get private IPs
    allocated from `10.0.0.0/24` on write, as Azure does.
    """

    def __init__(self, lb: Optional[LoadBalancer] = None):
        self.lb = copy.deepcopy(lb)
        self.writes: List[LoadBalancer] = []
        self.write_headers: List[Dict[str, str]] = []
        self.deleted = False
        self._next_ip = 4

    def get(self, resource_group_name: str, load_balancer_name: str) -> LoadBalancer:
        if self.lb is None:
            raise get_not_found_error(f"load balancer {load_balancer_name}")
        return copy.deepcopy(self.lb)

    def begin_create_or_update(
        self,
        resource_group_name: str,
        load_balancer_name: str,
        parameters: LoadBalancer,
        headers: Optional[Dict[str, str]] = None,
    ) -> MagicMock:
        lb = copy.deepcopy(parameters)
        lb.name = load_balancer_name
        for frontend in lb.frontend_ip_configurations or []:
            if frontend.private_ip_address is None:
                frontend.private_ip_address = f"10.0.0.{self._next_ip}"
                self._next_ip += 1
        lb.etag = str(uuid.uuid4())
        self.lb = lb
        self.writes.append(copy.deepcopy(lb))
        self.write_headers.append(headers or {})
        return get_poller(copy.deepcopy(lb))

    def begin_delete(self, resource_group_name: str, load_balancer_name: str) -> MagicMock:
        self.lb = None
        self.deleted = True
        return get_poller()


class FakePublicIPPrefixOperations:
    """
    Stands in for `NetworkManagementClient.public_ip_prefixes`.
    Created prefixes are allocated from `1.2.3.0/24`.
    """

    def __init__(self):
        self.prefixes: Dict[str, PublicIPPrefix] = {}
        self.deleted: List[str] = []

    def get(self, resource_group_name: str, public_ip_prefix_name: str) -> PublicIPPrefix:
        prefix = self.prefixes.get(public_ip_prefix_name)
        if prefix is None:
            raise get_not_found_error(f"public ip prefix {public_ip_prefix_name}")
        return copy.deepcopy(prefix)

    def begin_create_or_update(
        self,
        resource_group_name: str,
        public_ip_prefix_name: str,
        parameters: PublicIPPrefix,
    ) -> MagicMock:
        prefix = copy.deepcopy(parameters)
        prefix.name = public_ip_prefix_name
        prefix.id = azure_utils.get_public_ip_prefix_id(
            SUBSCRIPTION_ID, resource_group_name, public_ip_prefix_name
        )
        prefix.ip_prefix = f"1.2.3.4/{parameters.prefix_length}"
        self.prefixes[public_ip_prefix_name] = prefix
        return get_poller(copy.deepcopy(prefix))

    def begin_delete(self, resource_group_name: str, public_ip_prefix_name: str) -> MagicMock:
        if public_ip_prefix_name not in self.prefixes:
            raise get_not_found_error(f"public ip prefix {public_ip_prefix_name}")
        del self.prefixes[public_ip_prefix_name]
        self.deleted.append(public_ip_prefix_name)
        return get_poller()


def get_lb(
    frontends: Optional[list] = None,
    backends: Optional[list] = None,
    rules: Optional[list] = None,
    probes: Optional[list] = None,
    etag: Optional[str] = "etag-1",
) -> LoadBalancer:
    lb = LoadBalancer(
        location=LOCATION,
        frontend_ip_configurations=frontends or [],
        backend_address_pools=backends or [],
        load_balancing_rules=rules or [],
        probes=probes or [],
    )
    lb.name = LB_NAME
    lb.etag = etag
    return lb


def get_vmss_network_configurations(
    extra_ip_configs: Optional[List[VirtualMachineScaleSetIPConfiguration]] = None,
    backend_pool_ids: Optional[List[str]] = None,
) -> List[VirtualMachineScaleSetNetworkConfiguration]:
    primary_ip_config = VirtualMachineScaleSetIPConfiguration(
        name="ipconfig1",
        primary=True,
        subnet=ApiEntityReference(id=SUBNET_ID),
        load_balancer_backend_address_pools=[SubResource(id=i) for i in backend_pool_ids or []],
    )
    return [
        VirtualMachineScaleSetNetworkConfiguration(
            name="nic",
            primary=True,
            ip_configurations=[primary_ip_config] + list(extra_ip_configs or []),
        )
    ]


def get_vmss(
    name: str = "vmss",
    unique_id: str = "vmss1",
    tags: Optional[Dict[str, str]] = None,
    interfaces: Optional[List[VirtualMachineScaleSetNetworkConfiguration]] = None,
    provisioning_state: str = "Succeeded",
) -> VirtualMachineScaleSet:
    vmss = VirtualMachineScaleSet(
        location=LOCATION,
        tags=tags,
        virtual_machine_profile=VirtualMachineScaleSetVMProfile(
            network_profile=VirtualMachineScaleSetNetworkProfile(
                network_interface_configurations=(
                    interfaces if interfaces is not None else get_vmss_network_configurations()
                ),
            ),
        ),
    )
    vmss.name = name
    vmss.unique_id = unique_id
    vmss.provisioning_state = provisioning_state
    return vmss


def get_vmss_vm(
    instance_id: str = "0",
    computer_name: str = "vmss000000",
    interfaces: Optional[List[VirtualMachineScaleSetNetworkConfiguration]] = None,
    provisioning_state: str = "Succeeded",
) -> VirtualMachineScaleSetVM:
    vm = VirtualMachineScaleSetVM(
        location=LOCATION,
        os_profile=OSProfile(computer_name=computer_name),
        network_profile_configuration=VirtualMachineScaleSetVMNetworkProfileConfiguration(
            network_interface_configurations=(
                interfaces if interfaces is not None else get_vmss_network_configurations()
            ),
        ),
    )
    vm.name = f"vmss_{instance_id}"
    vm.instance_id = instance_id
    vm.provisioning_state = provisioning_state
    return vm


def get_nic(
    name: str = "nic",
    primary_ip: str = "10.0.0.5",
    secondary_ip_configs: Optional[List[NetworkInterfaceIPConfiguration]] = None,
    provisioning_state: str = "Succeeded",
) -> NetworkInterface:
    nic = NetworkInterface(
        location=LOCATION,
        ip_configurations=[
            NetworkInterfaceIPConfiguration(
                name="ipconfig1",
                primary=True,
                private_ip_address=primary_ip,
                private_ip_address_version="IPv4",
                subnet=Subnet(id=SUBNET_ID),
            )
        ]
        + list(secondary_ip_configs or []),
    )
    nic.name = name
    nic.provisioning_state = provisioning_state
    return nic


def get_public_ip_prefix(
    name: str,
    ip_prefix: str = "1.2.3.4/31",
    prefix_length: int = 31,
    resource_group: str = RESOURCE_GROUP,
    subscription_id: str = SUBSCRIPTION_ID,
) -> PublicIPPrefix:
    prefix = PublicIPPrefix(location=LOCATION, prefix_length=prefix_length)
    prefix.id = azure_utils.get_public_ip_prefix_id(subscription_id, resource_group, name)
    prefix.name = name
    prefix.ip_prefix = ip_prefix
    return prefix


def get_gateway_vmss_clients(
    vmss: Optional[VirtualMachineScaleSet] = None,
    instances: Optional[List[VirtualMachineScaleSetVM]] = None,
    nic: Optional[NetworkInterface] = None,
) -> Tuple[MagicMock, MagicMock]:
    """
    Returns network and compute clients serving one gateway scale set.
    The scale set and instance models are returned by reference, so updates
    made to them by the caller are seen on the next read.
    """
    network_client = MagicMock()
    network_client.load_balancers = FakeLoadBalancerOperations(get_lb())
    network_client.public_ip_prefixes = FakePublicIPPrefixOperations()
    network_client.subnets.get.return_value = Subnet(id=SUBNET_ID, name=SUBNET_NAME)
    network_interfaces = network_client.network_interfaces
    network_interfaces.get_virtual_machine_scale_set_network_interface.return_value = (
        nic or get_nic()
    )

    compute_client = MagicMock()
    compute_client.virtual_machine_scale_sets.get.return_value = vmss or get_vmss()
    compute_client.virtual_machine_scale_sets.begin_create_or_update.return_value = get_poller()
    compute_client.virtual_machine_scale_set_vms.list.return_value = (
        instances if instances is not None else [get_vmss_vm()]
    )
    compute_client.virtual_machine_scale_set_vms.begin_update.return_value = get_poller()
    return network_client, compute_client


def get_metadata(name: str = "test", namespace: str = "testns", uid: str = "") -> ObjectMeta:
    return ObjectMeta(name=name, namespace=namespace, uid=uid)


def get_pool_spec(**kwargs) -> dict:
    values = dict(
        gateway_vmss_profile=dict(
            vmss_resource_group=RESOURCE_GROUP, vmss_name="vmss", public_ip_prefix_size=31
        )
    )
    values.update(kwargs)
    return GatewayPoolSpec(**values).copy_pool_spec()


def get_static_gateway_configuration(
    name: str = "test", namespace: str = "testns", uid: str = "", **spec
) -> StaticGatewayConfiguration:
    return StaticGatewayConfiguration(
        metadata=get_metadata(name, namespace, uid),
        spec=StaticGatewayConfigurationSpec(**get_pool_spec(**spec)),
    )


def get_lb_configuration(
    name: str = "test", namespace: str = "testns", uid: str = "cfg1", **spec
) -> GatewayLBConfiguration:
    return GatewayLBConfiguration(
        metadata=get_metadata(name, namespace, uid),
        spec=GatewayLBConfigurationSpec(**get_pool_spec(**spec)),
    )


def get_vm_configuration(
    name: str = "test", namespace: str = "testns", uid: str = "vmcfg1", **spec
) -> GatewayVMConfiguration:
    return GatewayVMConfiguration(
        metadata=get_metadata(name, namespace, uid),
        spec=GatewayVMConfigurationSpec(**get_pool_spec(**spec)),
    )
