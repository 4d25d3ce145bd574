from enum import Enum

from egress_gateway._internal.utils.env import environ


class LogFormat(str, Enum):
    RICH = "rich"
    STANDARD = "standard"
    JSON = "json"


ROOT_LOG_LEVEL = environ.get_str("EGRESS_GATEWAY_ROOT_LOG_LEVEL", default="ERROR").upper()
LOG_LEVEL = environ.get_str("EGRESS_GATEWAY_LOG_LEVEL", default="INFO").upper()
LOG_FORMAT = environ.get_enum("EGRESS_GATEWAY_LOG_FORMAT", LogFormat, default=LogFormat.STANDARD)

# Port the gateway daemon serves health probes on.
LB_PROBE_PORT = environ.get_int("EGRESS_GATEWAY_LB_PROBE_PORT", default=8082)

RECONCILE_INTERVAL_SECONDS = environ.get_int(
    "EGRESS_GATEWAY_RECONCILE_INTERVAL_SECONDS", default=30
)

# Send the load balancer ETag as If-Match so that concurrent writers
# sharing one load balancer fail instead of overwriting each other.
LB_ETAG_CHECK_ENABLED = environ.get_bool("EGRESS_GATEWAY_LB_ETAG_CHECK", default=True)

# Restrict reconciliation to one namespace. All namespaces if not set.
WATCH_NAMESPACE = environ.get_str("EGRESS_GATEWAY_WATCH_NAMESPACE")

AZURE_RETRY_TOTAL = environ.get_int("EGRESS_GATEWAY_AZURE_RETRY_TOTAL", default=5)
AZURE_RETRY_BACKOFF_FACTOR = 0.8
AZURE_OPERATION_TIMEOUT_SECONDS = environ.get_int(
    "EGRESS_GATEWAY_AZURE_OPERATION_TIMEOUT_SECONDS", default=600
)
