from pathlib import Path
from typing import Union

import yaml
from pydantic import Field
from typing_extensions import Annotated

from egress_gateway._internal.core.errors import ConfigurationError
from egress_gateway._internal.core.models.common import CoreModel


class CloudConfig(CoreModel):
    cloud: Annotated[str, Field(description="The Azure cloud name, e.g. AzurePublicCloud")] = ""
    location: Annotated[str, Field(description="The Azure location of the gateway resources")] = ""
    subscription_id: Annotated[str, Field(description="The subscription ID")] = ""
    tenant_id: Annotated[str, Field(description="The tenant ID")] = ""
    use_user_assigned_identity: Annotated[
        bool, Field(description="Authenticate with a user assigned managed identity")
    ] = False
    user_assigned_identity_id: Annotated[
        str, Field(description="The client ID of the user assigned identity")
    ] = ""
    aad_client_id: Annotated[str, Field(description="The AAD application client ID")] = ""
    aad_client_secret: Annotated[str, Field(description="The AAD application client secret")] = ""
    user_agent: Annotated[str, Field(description="The user agent for Azure requests")] = ""
    resource_group: Annotated[
        str, Field(description="The default resource group of the gateway nodes")
    ] = ""
    load_balancer_name: Annotated[str, Field(description="The name of the gateway ILB")] = ""
    load_balancer_resource_group: Annotated[
        str, Field(description="The resource group of the gateway ILB")
    ] = ""
    vnet_name: Annotated[
        str, Field(description="The virtual network where the gateway ILB is deployed")
    ] = ""
    vnet_resource_group: Annotated[
        str, Field(description="The resource group of the virtual network")
    ] = ""
    subnet_name: Annotated[
        str, Field(description="The subnet where the gateway ILB frontends are placed")
    ] = ""

    def trim_space(self):
        for field_name, field in self.__fields__.items():
            if field.type_ is str:
                setattr(self, field_name, getattr(self, field_name).strip())

    def validate_config(self):
        if self.cloud == "":
            raise ConfigurationError("cloud is empty")
        if self.location == "":
            raise ConfigurationError("location is empty")
        if self.subscription_id == "":
            raise ConfigurationError("subscription ID is empty")
        if self.use_user_assigned_identity:
            if self.user_assigned_identity_id == "":
                raise ConfigurationError("user assigned identity ID is empty")
        elif self.aad_client_id == "" or self.aad_client_secret == "":
            raise ConfigurationError("AAD client ID or AAD client secret is empty")
        if self.resource_group == "":
            raise ConfigurationError("resource group is empty")
        if self.load_balancer_name == "":
            raise ConfigurationError("load balancer name is empty")
        if self.vnet_name == "":
            raise ConfigurationError("virtual network name is empty")
        if self.subnet_name == "":
            raise ConfigurationError("virtual network subnet name is empty")


def load_cloud_config(path: Union[str, Path]) -> CloudConfig:
    """
    Loads the cloud config from a YAML or JSON file (JSON is valid YAML).
    Unknown keys are ignored so that a full cloud-provider config file can be reused.
    """
    path = Path(path)
    try:
        with open(path) as f:
            data = yaml.safe_load(f)
    except OSError as e:
        raise ConfigurationError(f"Failed to read cloud config {path}: {e}") from e
    except yaml.YAMLError as e:
        raise ConfigurationError(f"Failed to parse cloud config {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"Cloud config {path} must be a mapping")
    config = CloudConfig.__response__.parse_obj(data)
    config.trim_space()
    return config


def get_cloud_config_or_error(path: Union[str, Path]) -> CloudConfig:
    config = load_cloud_config(path)
    config.validate_config()
    return config
