import uuid
from abc import ABC, abstractmethod
from typing import List, Optional, Tuple

from azure.core.exceptions import ResourceNotFoundError
from azure.mgmt.compute.models import (
    VirtualMachine,
    VirtualMachineScaleSet,
    VirtualMachineScaleSetVM,
    VirtualMachineScaleSetVMProfile,
    VirtualMachineScaleSetVMNetworkProfileConfiguration,
)
from azure.mgmt.network.models import (
    NetworkInterface,
    PublicIPAddress,
    PublicIPAddressSku,
    SubResource,
)

from egress_gateway._internal.controller import nic as nic_utils
from egress_gateway._internal.controller.publicipprefix import check_public_ip_prefix_length
from egress_gateway._internal.core.azure import utils as azure_utils
from egress_gateway._internal.core.azure.manager import AzureManager
from egress_gateway._internal.core.consts import (
    AKS_NODEPOOL_IP_PREFIX_SIZE_TAG_KEY,
    AKS_NODEPOOL_TAG_KEY,
)
from egress_gateway._internal.core.errors import (
    ComputeError,
    ConfigurationError,
    NetworkInterfaceError,
)
from egress_gateway._internal.core.models.gateways import (
    GatewayPoolSpec,
    GatewayVMConfiguration,
    GatewayVMProfile,
)
from egress_gateway._internal.utils.common import equal_fold, fnv64a
from egress_gateway._internal.utils.logging import get_logger

logger = get_logger(__name__)

# Namespace of the name-based UUIDs identifying discrete VM pools
VM_POOL_NAMESPACE = uuid.UUID("2c96e82c-842f-11f0-8ea5-6bee14278ecd")


class AgentPool(ABC):
    """
    A set of compute instances hosting gateway traffic.
    """

    @abstractmethod
    def get_unique_id(self) -> str:
        """
        Returns a stable non-empty identifier of the pool.
        It names the pool's LB frontend and backend pool.
        """
        pass

    @abstractmethod
    def reconcile(
        self,
        vm_config: GatewayVMConfiguration,
        ip_prefix_id: str,
        want_ip_config: bool,
    ) -> List[GatewayVMProfile]:
        """
        Adds (`want_ip_config=True`) or removes the gateway IP configuration on every
        member NIC of the pool. Returns the resulting per-node profiles whose
        `secondary_ip` is the gateway IP configuration's private IP.
        Nothing is returned when removing.
        """
        pass


class VMSSAgentPool(AgentPool):
    def __init__(self, manager: AzureManager, vmss: VirtualMachineScaleSet, resource_group: str):
        self.manager = manager
        self.vmss = vmss
        self.resource_group = resource_group

    def get_unique_id(self) -> str:
        if not self.vmss.unique_id:
            raise ComputeError(f"gateway vmss {self.vmss.name} does not have UID")
        return self.vmss.unique_id

    def reconcile(
        self,
        vm_config: GatewayVMConfiguration,
        ip_prefix_id: str,
        want_ip_config: bool,
    ) -> List[GatewayVMProfile]:
        vmss_name = self.vmss.name
        ip_config_name = azure_utils.get_gateway_ip_config_name(
            vm_config.metadata.namespace, vm_config.metadata.name
        )
        backend_pool_id = self.manager.get_lb_backend_address_pool_id(self.get_unique_id())
        vm_profile = self.vmss.virtual_machine_profile
        if vm_profile is None or vm_profile.network_profile is None:
            raise ComputeError(f"vmss {vmss_name} has empty network profile")
        network_profile = vm_profile.network_profile
        need_update = nic_utils.reconcile_vmss_network_interfaces(
            interfaces=network_profile.network_interface_configurations,
            ip_config_name=ip_config_name,
            ip_prefix_id=ip_prefix_id,
            backend_pool_id=backend_pool_id,
            want_ip_config=want_ip_config,
        )
        if need_update or self.vmss.provisioning_state == nic_utils.PROVISIONING_STATE_FAILED:
            logger.info("Updating vmss %s", vmss_name)
            # Only the network profile is sent so that other model changes are not reapplied
            self.manager.create_or_update_vmss(
                VirtualMachineScaleSet(
                    location=self.vmss.location,
                    virtual_machine_profile=VirtualMachineScaleSetVMProfile(
                        network_profile=network_profile
                    ),
                ),
                vmss_name,
                self.resource_group,
            )

        profiles = []
        for instance in self.manager.list_vmss_instances(vmss_name, self.resource_group):
            profile = self._reconcile_instance(
                instance, ip_config_name, ip_prefix_id, backend_pool_id, want_ip_config
            )
            if profile is not None:
                profiles.append(profile)
        return profiles

    def _reconcile_instance(
        self,
        instance: VirtualMachineScaleSetVM,
        ip_config_name: str,
        ip_prefix_id: str,
        backend_pool_id: str,
        want_ip_config: bool,
    ) -> Optional[GatewayVMProfile]:
        vmss_name = self.vmss.name
        instance_id = instance.instance_id
        if (
            instance.network_profile_configuration is None
            or not instance.network_profile_configuration.network_interface_configurations
        ):
            raise ComputeError(f"vmss vm({instance_id}) has empty network profile")
        interfaces = instance.network_profile_configuration.network_interface_configurations
        try:
            need_update = nic_utils.reconcile_vmss_network_interfaces(
                interfaces=interfaces,
                ip_config_name=ip_config_name,
                ip_prefix_id=ip_prefix_id,
                backend_pool_id=backend_pool_id,
                want_ip_config=want_ip_config,
            )
        except NetworkInterfaceError as e:
            raise NetworkInterfaceError(f"vmss vm({instance_id}): {e}") from e
        force_update = instance.provisioning_state == nic_utils.PROVISIONING_STATE_FAILED
        if force_update:
            logger.info(
                "Forcing update of vmss %s instance %s in failed state", vmss_name, instance_id
            )
        if need_update or force_update:
            logger.info("Updating vmss %s instance %s", vmss_name, instance_id)
            network_profile = VirtualMachineScaleSetVMNetworkProfileConfiguration(
                network_interface_configurations=interfaces,
            )
            self.manager.update_vmss_instance(
                VirtualMachineScaleSetVM(
                    location=instance.location,
                    network_profile_configuration=network_profile,
                ),
                vmss_name,
                instance_id,
                self.resource_group,
            )
        if not want_ip_config:
            return None
        # The private IP of a new IP configuration is only known once allocated
        primary_nic = nic_utils.get_primary_vmss_network_configuration(interfaces)
        nic = self.manager.get_vmss_nic(
            vmss_name, instance_id, primary_nic.name, self.resource_group
        )
        return _get_vm_profile(_get_instance_node_name(instance), nic, ip_config_name)


class VMAgentPool(AgentPool):
    """
    A pool of standalone VMs tagged with the pool name.
    """

    def __init__(self, manager: AzureManager, pool_name: str, resource_group: str):
        self.manager = manager
        self.pool_name = pool_name
        self.resource_group = resource_group

    def get_unique_id(self) -> str:
        return str(uuid.uuid3(VM_POOL_NAMESPACE, self.pool_name))

    def list_vms(self) -> List[VirtualMachine]:
        return [
            vm
            for vm in self.manager.list_vms(self.resource_group)
            if equal_fold((vm.tags or {}).get(AKS_NODEPOOL_TAG_KEY), self.pool_name)
        ]

    def reconcile(
        self,
        vm_config: GatewayVMConfiguration,
        ip_prefix_id: str,
        want_ip_config: bool,
    ) -> List[GatewayVMProfile]:
        ip_config_name = azure_utils.get_gateway_ip_config_name(
            vm_config.metadata.namespace, vm_config.metadata.name
        )
        backend_pool_id = self.manager.get_lb_backend_address_pool_id(self.get_unique_id())
        profiles = []
        for vm in self.list_vms():
            nic_id = _get_primary_nic_id(vm)
            nic_name = azure_utils.get_resource_name_from_resource_id(nic_id)
            nic_resource_group = (
                _get_resource_group_from_resource_id(nic_id) or self.resource_group
            )
            nic = self.manager.get_nic(nic_name, nic_resource_group)
            nic = self._reconcile_nic(
                nic,
                nic_resource_group,
                ip_config_name,
                ip_prefix_id,
                backend_pool_id,
                want_ip_config,
            )
            if want_ip_config:
                node_name = vm.os_profile.computer_name if vm.os_profile else vm.name
                profiles.append(_get_vm_profile(node_name, nic, ip_config_name))
        return profiles

    def _reconcile_nic(
        self,
        nic: NetworkInterface,
        resource_group: str,
        ip_config_name: str,
        ip_prefix_id: str,
        backend_pool_id: str,
        want_ip_config: bool,
    ) -> NetworkInterface:
        force_update = nic.provisioning_state == nic_utils.PROVISIONING_STATE_FAILED
        if force_update:
            logger.info("Forcing update of nic %s in failed state", nic.name)
        primary_ip_config = nic_utils.get_primary_nic_ip_configuration(nic)
        if primary_ip_config.subnet is None or not primary_ip_config.subnet.id:
            raise NetworkInterfaceError(f"no subnet ID found for nic {nic.name}")
        if want_ip_config and not force_update:
            # Private IPs are only allocated by a NIC write
            gateway_ip_config = nic_utils.get_nic_ip_configuration(nic, ip_config_name)
            if not primary_ip_config.private_ip_address or (
                gateway_ip_config is not None and not gateway_ip_config.private_ip_address
            ):
                force_update = True
                logger.info("Forcing update of nic %s without private ip", nic.name)
        public_ip_id = None
        if want_ip_config and ip_prefix_id != "":
            public_ip_id = self._ensure_public_ip(nic.name, ip_prefix_id, resource_group).id
        expected = nic_utils.get_expected_nic_ip_config(
            ip_config_name, primary_ip_config.subnet.id, public_ip_id
        )
        changes = nic_utils.reconcile_nic_ip_configurations(
            nic, expected, backend_pool_id, want_ip_config
        )
        if not changes.need_update and not force_update:
            return nic
        logger.info("Updating nic %s", nic.name)
        nic = self.manager.create_or_update_nic(nic, nic.name, resource_group)
        for detached_id in changes.detached_public_ip_ids:
            self._delete_detached_public_ip(detached_id, nic.name, resource_group)
        return nic

    def _ensure_public_ip(
        self, nic_name: str, ip_prefix_id: str, resource_group: str
    ) -> PublicIPAddress:
        prefix_name = azure_utils.get_resource_name_from_resource_id(ip_prefix_id)
        ip_name = azure_utils.get_public_ip_name(prefix_name, nic_name)
        try:
            public_ip = self.manager.get_public_ip(ip_name, resource_group)
            if public_ip.public_ip_prefix is not None and equal_fold(
                public_ip.public_ip_prefix.id, ip_prefix_id
            ):
                return public_ip
        except ResourceNotFoundError:
            pass
        logger.info("Creating public ip %s from prefix %s", ip_name, prefix_name)
        return self.manager.create_or_update_public_ip(
            PublicIPAddress(
                location=self.manager.location,
                sku=PublicIPAddressSku(name="Standard", tier="Regional"),
                public_ip_address_version=nic_utils.IP_VERSION_IPV4,
                public_ip_allocation_method="Static",
                public_ip_prefix=SubResource(id=ip_prefix_id),
            ),
            ip_name,
            resource_group,
        )

    def _delete_detached_public_ip(self, public_ip_id: str, nic_name: str, resource_group: str):
        ip_name = azure_utils.get_resource_name_from_resource_id(public_ip_id)
        # Only public IPs created for this NIC are owned by the controller
        if not ip_name.endswith(f"-{fnv64a(nic_name.encode()):x}"):
            return
        logger.info("Deleting detached public ip %s", ip_name)
        try:
            self.manager.delete_public_ip(
                ip_name, _get_resource_group_from_resource_id(public_ip_id) or resource_group
            )
        except ResourceNotFoundError:
            pass


def resolve_agent_pool(manager: AzureManager, spec: GatewayPoolSpec) -> Tuple[AgentPool, int]:
    """
    Returns the pool `spec` selects and the public IP prefix length it is configured with.
    """
    selectors = [
        spec.gateway_nodepool_name,
        spec.gateway_vmss_profile,
        spec.gateway_vm_pool_profile,
    ]
    selected = [s for s in selectors if s]
    if len(selected) != 1:
        raise ConfigurationError(
            "exactly one of gatewayNodepoolName, gatewayVmssProfile"
            " and gatewayVmPoolProfile must be set"
        )
    if spec.gateway_nodepool_name:
        return _get_nodepool_vmss(manager, spec.gateway_nodepool_name)
    if spec.gateway_vmss_profile is not None:
        profile = spec.gateway_vmss_profile
        resource_group = profile.vmss_resource_group or manager.resource_group
        vmss = manager.get_vmss(profile.vmss_name, resource_group)
        return VMSSAgentPool(manager, vmss, resource_group), profile.public_ip_prefix_size
    profile = spec.gateway_vm_pool_profile
    resource_group = profile.vm_resource_group or manager.resource_group
    return (
        VMAgentPool(manager, profile.pool_name, resource_group),
        profile.public_ip_prefix_size,
    )


def _get_nodepool_vmss(manager: AzureManager, nodepool_name: str) -> Tuple[AgentPool, int]:
    for vmss in manager.list_vmss():
        tags = vmss.tags or {}
        if not equal_fold(tags.get(AKS_NODEPOOL_TAG_KEY), nodepool_name):
            continue
        prefix_size_tag = tags.get(AKS_NODEPOOL_IP_PREFIX_SIZE_TAG_KEY)
        if prefix_size_tag is None:
            raise ConfigurationError(f"nodepool {nodepool_name} does not have IP prefix size")
        try:
            prefix_size = int(prefix_size_tag)
        except ValueError as e:
            raise ConfigurationError(
                f"failed to parse nodepool IP prefix size: {prefix_size_tag}"
            ) from e
        check_public_ip_prefix_length(prefix_size)
        return VMSSAgentPool(manager, vmss, manager.resource_group), prefix_size
    raise ComputeError(f"gateway VMSS for nodepool {nodepool_name} not found")


def _get_primary_nic_id(vm: VirtualMachine) -> str:
    if vm.network_profile is None or not vm.network_profile.network_interfaces:
        raise ComputeError(f"vm {vm.name} has empty network profile")
    interfaces = vm.network_profile.network_interfaces
    if len(interfaces) == 1:
        return interfaces[0].id
    for interface in interfaces:
        if interface.primary:
            return interface.id
    raise NetworkInterfaceError(f"vm {vm.name} primary network interface not found")


def _get_resource_group_from_resource_id(resource_id: str) -> Optional[str]:
    parts = resource_id.split("/")
    for i, part in enumerate(parts[:-1]):
        if part.lower() == "resourcegroups":
            return parts[i + 1]
    return None


def _get_instance_node_name(instance: VirtualMachineScaleSetVM) -> str:
    if instance.os_profile is not None and instance.os_profile.computer_name:
        return instance.os_profile.computer_name.lower()
    return instance.name


def _get_vm_profile(
    node_name: str, nic: NetworkInterface, ip_config_name: str
) -> GatewayVMProfile:
    primary_ip = None
    secondary_ip = None
    for ip_config in nic.ip_configurations or []:
        if equal_fold(ip_config.name, ip_config_name):
            secondary_ip = ip_config.private_ip_address
        elif ip_config.primary:
            primary_ip = ip_config.private_ip_address
    return GatewayVMProfile(node_name=node_name, primary_ip=primary_ip, secondary_ip=secondary_ip)
