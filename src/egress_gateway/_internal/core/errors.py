class EgressGatewayError(Exception):
    pass


class ConfigurationError(EgressGatewayError):
    """
    The desired spec or the controller configuration is invalid.
    Retrying without changing the input will not help.
    """

    pass


class BackendError(EgressGatewayError):
    pass


class BackendAuthError(BackendError):
    pass


class ComputeError(BackendError):
    pass


class LoadBalancerError(ComputeError):
    pass


class PortAllocationError(LoadBalancerError):
    pass


class LoadBalancerConflictError(LoadBalancerError):
    """
    The load balancer changed since it was read and the conditional write was rejected.
    """

    pass


class NetworkInterfaceError(ComputeError):
    pass


class PublicIPPrefixError(ComputeError):
    pass


class ObjectStoreError(EgressGatewayError):
    pass


class ObjectNotFoundError(ObjectStoreError):
    pass


class ObjectConflictError(ObjectStoreError):
    pass
