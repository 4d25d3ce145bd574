GATEWAY_FINALIZER_NAME = "static-gateway-configuration-controller.microsoft.com"
LB_CONFIG_FINALIZER_NAME = "gateway-lb-configuration-controller.microsoft.com"
VM_CONFIG_FINALIZER_NAME = "gateway-vm-configuration-controller.microsoft.com"

WIREGUARD_PRIVATE_KEY_NAME = "WireguardPrivateKey"
WIREGUARD_PUBLIC_KEY_NAME = "WireguardPublicKey"

# Half-open range [WIREGUARD_PORT_START, WIREGUARD_PORT_END)
WIREGUARD_PORT_START = 6000
WIREGUARD_PORT_END = 7000

MANAGED_RESOURCE_PREFIX = "egressgateway"
GATEWAY_HEALTH_PROBE_ENDPOINT_PREFIX = "/gw"

AKS_NODEPOOL_TAG_KEY = "aks-managed-poolName"
AKS_NODEPOOL_IP_PREFIX_SIZE_TAG_KEY = "aks-managed-gatewayIPPrefixSize"

MIN_PUBLIC_IP_PREFIX_SIZE = 0
MAX_PUBLIC_IP_PREFIX_SIZE = 31

DEFAULT_USER_AGENT = "kube-egress-gateway-controller"

API_GROUP = "egressgateway.kubernetes.azure.com"
API_VERSION = "v1alpha1"
