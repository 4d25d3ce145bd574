import argparse

from rich.console import Console
from rich.markup import escape
from rich.theme import Theme
from rich_argparse import RichHelpFormatter

from egress_gateway._internal import settings
from egress_gateway._internal.controller.manager import ControllerManager
from egress_gateway._internal.core.azure.auth import authenticate
from egress_gateway._internal.core.azure.manager import AzureManager
from egress_gateway._internal.core.errors import EgressGatewayError
from egress_gateway._internal.core.models.config import get_cloud_config_or_error
from egress_gateway._internal.core.store.kubernetes import KubernetesObjectStore, get_api_client
from egress_gateway._internal.utils.logging import configure_logging, get_logger
from egress_gateway.version import __version__ as version

logger = get_logger(__name__)

_colors = {
    "secondary": "grey58",
    "success": "green",
    "warning": "yellow",
    "error": "red",
    "code": "bold sea_green3",
}

console = Console(theme=Theme(_colors))


def get_parser() -> argparse.ArgumentParser:
    RichHelpFormatter.usage_markup = True
    RichHelpFormatter.styles["code"] = _colors["code"]
    RichHelpFormatter.styles["argparse.args"] = _colors["code"]
    RichHelpFormatter.styles["argparse.groups"] = "bold grey74"
    RichHelpFormatter.styles["argparse.text"] = "grey74"

    parser = argparse.ArgumentParser(
        prog="egress-gateway-controller",
        description=(
            "Provisions static egress gateways: load balancer rules, gateway NIC"
            " IP configurations and public IP prefixes for [code]StaticGatewayConfiguration[/]"
            " objects."
        ),
        formatter_class=RichHelpFormatter,
    )
    parser.add_argument(
        "-v",
        "--version",
        action="version",
        version=f"{version}",
        help="Show the controller version",
    )
    parser.add_argument(
        "--cloud-config",
        required=True,
        metavar="PATH",
        help="The path of the Azure cloud config file",
    )
    parser.add_argument(
        "--kubeconfig",
        metavar="PATH",
        help="The path of the kubeconfig file. Defaults to the in-cluster config",
    )
    parser.add_argument(
        "--probe-port",
        type=int,
        default=settings.LB_PROBE_PORT,
        help=f"The gateway health probe port. Defaults to {settings.LB_PROBE_PORT}",
    )
    parser.add_argument(
        "--interval",
        type=int,
        default=settings.RECONCILE_INTERVAL_SECONDS,
        help=(
            "Seconds between reconcile passes."
            f" Defaults to {settings.RECONCILE_INTERVAL_SECONDS}"
        ),
    )
    parser.add_argument(
        "--namespace",
        default=settings.WATCH_NAMESPACE,
        help="Only reconcile objects in this namespace. Defaults to all namespaces",
    )
    parser.add_argument(
        "--once",
        action="store_true",
        help="Run a single reconcile pass and exit",
    )
    return parser


def main():
    parser = get_parser()
    args = parser.parse_args()
    configure_logging()

    try:
        if args.probe_port <= 0 or args.probe_port > 65535:
            parser.error(f"invalid probe port {args.probe_port}")
        if args.interval <= 0:
            parser.error(f"invalid interval {args.interval}")
        settings.LB_PROBE_PORT = args.probe_port

        config = get_cloud_config_or_error(args.cloud_config)
        credential = authenticate(config)
        azure_manager = AzureManager(config, credential)
        store = KubernetesObjectStore(get_api_client(args.kubeconfig))
        controller_manager = ControllerManager(
            store=store,
            manager=azure_manager,
            namespace=args.namespace,
            interval=args.interval,
        )
        if args.once:
            results = controller_manager.run_once()
            logger.info("Reconciled %d objects", len(results))
            return
        controller_manager.start()
    except EgressGatewayError as e:
        console.print(f"[error]{escape(str(e))}[/]")
        logger.debug(e, exc_info=True)
        exit(1)


if __name__ == "__main__":
    main()
