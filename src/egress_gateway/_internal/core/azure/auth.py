from typing import Dict, NamedTuple, Union

from azure.core.exceptions import ClientAuthenticationError
from azure.identity import (
    AzureAuthorityHosts,
    ClientSecretCredential,
    DefaultAzureCredential,
    ManagedIdentityCredential,
)

from egress_gateway._internal.core.errors import BackendAuthError, ConfigurationError
from egress_gateway._internal.core.models.config import CloudConfig

AzureCredential = Union[ClientSecretCredential, ManagedIdentityCredential, DefaultAzureCredential]


class AzureCloud(NamedTuple):
    authority_host: str
    resource_manager_url: str

    @property
    def credential_scope(self) -> str:
        return f"{self.resource_manager_url}/.default"


AZURE_CLOUDS: Dict[str, AzureCloud] = {
    "azurepubliccloud": AzureCloud(
        authority_host=AzureAuthorityHosts.AZURE_PUBLIC_CLOUD,
        resource_manager_url="https://management.azure.com",
    ),
    "azurechinacloud": AzureCloud(
        authority_host=AzureAuthorityHosts.AZURE_CHINA,
        resource_manager_url="https://management.chinacloudapi.cn",
    ),
    "azureusgovernmentcloud": AzureCloud(
        authority_host=AzureAuthorityHosts.AZURE_GOVERNMENT,
        resource_manager_url="https://management.usgovcloudapi.net",
    ),
}


def get_cloud(name: str) -> AzureCloud:
    cloud = AZURE_CLOUDS.get(name.lower())
    if cloud is None:
        raise ConfigurationError(f"Unknown Azure cloud {name!r}")
    return cloud


def authenticate(config: CloudConfig) -> AzureCredential:
    credential = get_credential(config)
    check_credential(credential, get_cloud(config.cloud))
    return credential


def get_credential(config: CloudConfig) -> AzureCredential:
    cloud = get_cloud(config.cloud)
    if config.use_user_assigned_identity:
        return ManagedIdentityCredential(client_id=config.user_assigned_identity_id)
    if config.aad_client_id != "" and config.aad_client_secret != "":
        return ClientSecretCredential(
            tenant_id=config.tenant_id,
            client_id=config.aad_client_id,
            client_secret=config.aad_client_secret,
            authority=cloud.authority_host,
        )
    return DefaultAzureCredential(authority=cloud.authority_host)


def check_credential(credential: AzureCredential, cloud: AzureCloud):
    try:
        credential.get_token(cloud.credential_scope)
    except ClientAuthenticationError as e:
        raise BackendAuthError(f"Failed to authenticate to Azure: {e.message}") from e
