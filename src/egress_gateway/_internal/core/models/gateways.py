from enum import Enum
from typing import ClassVar, List, Optional

from pydantic import Field
from typing_extensions import Annotated

from egress_gateway._internal.core.consts import API_GROUP, API_VERSION
from egress_gateway._internal.core.models.common import CoreModel
from egress_gateway._internal.core.models.objects import ObjectReference, Resource

GATEWAY_API_VERSION = f"{API_GROUP}/{API_VERSION}"


class GatewayState(str, Enum):
    PROVISIONING = "Provisioning"
    READY = "Ready"
    ERROR = "Error"


class GatewayVMSSProfile(CoreModel):
    vmss_resource_group: Annotated[
        str, Field(description="The resource group of the gateway scale set")
    ] = ""
    vmss_name: Annotated[str, Field(description="The name of the gateway scale set")] = ""
    public_ip_prefix_size: Annotated[
        int, Field(description="The length of the public IP prefix to allocate")
    ] = 0


class GatewayVMPoolProfile(CoreModel):
    vm_resource_group: Annotated[
        str, Field(description="The resource group of the gateway VMs")
    ] = ""
    pool_name: Annotated[
        str, Field(description="The value of the pool name tag of the gateway VMs")
    ] = ""
    public_ip_prefix_size: Annotated[
        int, Field(description="The length of the public IP prefix to allocate")
    ] = 0


class GatewayPoolSpec(CoreModel):
    gateway_nodepool_name: Annotated[
        Optional[str], Field(description="The name of the AKS gateway nodepool")
    ] = None
    gateway_vmss_profile: Optional[GatewayVMSSProfile] = None
    gateway_vm_pool_profile: Optional[GatewayVMPoolProfile] = None
    provision_public_ips: Annotated[
        bool, Field(description="Whether to allocate public IPs for egress traffic")
    ] = True
    public_ip_prefix_id: Annotated[
        Optional[str], Field(description="The resource ID of a bring-your-own public IP prefix")
    ] = None

    def copy_pool_spec(self) -> dict:
        return self.dict(
            include={
                "gateway_nodepool_name",
                "gateway_vmss_profile",
                "gateway_vm_pool_profile",
                "provision_public_ips",
                "public_ip_prefix_id",
            }
        )


class StaticGatewayConfigurationSpec(GatewayPoolSpec):
    default_route: Annotated[
        str, Field(description="The default route of the pods using the gateway")
    ] = "staticEgressGateway"
    exclude_cidrs: List[str] = []


class GatewayWireguardProfile(CoreModel):
    wireguard_server_ip: Annotated[Optional[str], Field(alias="wireguardServerIP")] = None
    wireguard_server_port: Optional[int] = None
    wireguard_public_key: Optional[str] = None
    wireguard_private_key_secret_ref: Optional[ObjectReference] = None


class StaticGatewayConfigurationStatus(CoreModel):
    state: GatewayState = GatewayState.PROVISIONING
    message: Optional[str] = None
    public_ip_prefix: Optional[str] = None
    gateway_wireguard_profile: GatewayWireguardProfile = GatewayWireguardProfile()


class StaticGatewayConfiguration(Resource):
    KIND: ClassVar[str] = "StaticGatewayConfiguration"
    API_VERSION: ClassVar[str] = GATEWAY_API_VERSION
    PLURAL: ClassVar[str] = "staticgatewayconfigurations"

    spec: StaticGatewayConfigurationSpec = StaticGatewayConfigurationSpec()
    status: StaticGatewayConfigurationStatus = StaticGatewayConfigurationStatus()


class GatewayLBConfigurationSpec(GatewayPoolSpec):
    pass


class GatewayLBConfigurationStatus(CoreModel):
    frontend_ip: Optional[str] = None
    server_port: Optional[int] = None
    egress_ip_prefix: Optional[str] = None


class GatewayLBConfiguration(Resource):
    KIND: ClassVar[str] = "GatewayLBConfiguration"
    API_VERSION: ClassVar[str] = GATEWAY_API_VERSION
    PLURAL: ClassVar[str] = "gatewaylbconfigurations"

    spec: GatewayLBConfigurationSpec = GatewayLBConfigurationSpec()
    status: GatewayLBConfigurationStatus = GatewayLBConfigurationStatus()


class GatewayVMConfigurationSpec(GatewayPoolSpec):
    pass


class GatewayVMProfile(CoreModel):
    node_name: str
    primary_ip: Optional[str] = None
    secondary_ip: Optional[str] = None


class GatewayVMConfigurationStatus(CoreModel):
    egress_ip_prefix: Optional[str] = None
    gateway_vm_profiles: List[GatewayVMProfile] = []


class GatewayVMConfiguration(Resource):
    KIND: ClassVar[str] = "GatewayVMConfiguration"
    API_VERSION: ClassVar[str] = GATEWAY_API_VERSION
    PLURAL: ClassVar[str] = "gatewayvmconfigurations"

    spec: GatewayVMConfigurationSpec = GatewayVMConfigurationSpec()
    status: GatewayVMConfigurationStatus = GatewayVMConfigurationStatus()
