"""
Convergence of the shared gateway load balancer.

Frontend and backend pool are named after the agent pool and shared by every
gateway using that pool. Rule and probe are named after the owning
GatewayLBConfiguration. The load balancer is read once and written once per pass.
"""

from typing import List, NamedTuple, Optional, Tuple

from azure.core.exceptions import ResourceNotFoundError
from azure.mgmt.network.models import (
    BackendAddressPool,
    FrontendIPConfiguration,
    LoadBalancer,
    LoadBalancerSku,
    LoadBalancingRule,
    Probe,
    SubResource,
    Subnet,
)

from egress_gateway._internal import settings
from egress_gateway._internal.core.azure.manager import AzureManager
from egress_gateway._internal.core.consts import (
    GATEWAY_HEALTH_PROBE_ENDPOINT_PREFIX,
    WIREGUARD_PORT_END,
    WIREGUARD_PORT_START,
)
from egress_gateway._internal.core.errors import LoadBalancerError, PortAllocationError
from egress_gateway._internal.core.models.gateways import GatewayLBConfiguration
from egress_gateway._internal.utils.common import equal_fold
from egress_gateway._internal.utils.logging import get_logger

logger = get_logger(__name__)

PROTOCOL_UDP = "Udp"
PROBE_PROTOCOL_HTTP = "Http"
IP_VERSION_IPV4 = "IPv4"


class LBPropertyNames(NamedTuple):
    frontend_name: str
    backend_name: str
    rule_name: str
    probe_name: str


class LBRuleResult(NamedTuple):
    frontend_ip: Optional[str]
    port: Optional[int]


def get_lb_property_names(
    pool_unique_id: str, lb_config: GatewayLBConfiguration
) -> LBPropertyNames:
    return LBPropertyNames(
        frontend_name=pool_unique_id,
        backend_name=pool_unique_id,
        rule_name=lb_config.metadata.uid,
        probe_name=lb_config.metadata.uid,
    )


def get_probe_request_path(lb_config_uid: str) -> str:
    return f"{GATEWAY_HEALTH_PROBE_ENDPOINT_PREFIX}/{lb_config_uid}"


def get_expected_lb_rule(
    name: str, frontend_id: str, backend_id: str, probe_id: str
) -> LoadBalancingRule:
    return LoadBalancingRule(
        name=name,
        protocol=PROTOCOL_UDP,
        enable_floating_ip=True,
        frontend_ip_configuration=SubResource(id=frontend_id),
        backend_address_pool=SubResource(id=backend_id),
        probe=SubResource(id=probe_id),
    )


def get_expected_lb_probe(name: str, lb_config_uid: str) -> Probe:
    return Probe(
        name=name,
        protocol=PROBE_PROTOCOL_HTTP,
        port=settings.LB_PROBE_PORT,
        request_path=get_probe_request_path(lb_config_uid),
    )


def same_lb_rule_config(a: LoadBalancingRule, b: LoadBalancingRule) -> bool:
    def same_sub_resource(s: Optional[SubResource], t: Optional[SubResource]) -> bool:
        if s is None or t is None:
            return s is None and t is None
        return equal_fold(s.id, t.id)

    if not same_sub_resource(a.frontend_ip_configuration, b.frontend_ip_configuration):
        logger.debug("lb rule %s frontendIPConfigurations are different", a.name)
        return False
    if not same_sub_resource(a.backend_address_pool, b.backend_address_pool):
        logger.debug("lb rule %s backendAddressPools are different", a.name)
        return False
    if not same_sub_resource(a.probe, b.probe):
        logger.debug("lb rule %s probes are different", a.name)
        return False
    if not equal_fold(a.protocol, b.protocol):
        logger.debug("lb rule %s protocols are different", a.name)
        return False
    if bool(a.enable_floating_ip) != bool(b.enable_floating_ip):
        logger.debug("lb rule %s enableFloatingIPs are different", a.name)
        return False
    return True


def same_lb_probe_config(a: Probe, b: Probe) -> bool:
    return (
        (a.request_path or "") == (b.request_path or "")
        and a.port == b.port
        and equal_fold(a.protocol, b.protocol)
    )


def select_port_for_lb_rule(
    target_rule: LoadBalancingRule, lb_rules: List[LoadBalancingRule]
) -> int:
    """
    Returns the lowest port of the wireguard port range not used by rules
    sharing the target rule's backend pool.
    """
    target_backend_id = target_rule.backend_address_pool.id
    ports = [False] * (WIREGUARD_PORT_END - WIREGUARD_PORT_START)
    for rule in lb_rules:
        if rule.backend_address_pool is None or not equal_fold(
            rule.backend_address_pool.id, target_backend_id
        ):
            continue
        if (
            rule.frontend_port is None
            or rule.backend_port is None
            or rule.frontend_port != rule.backend_port
            or rule.backend_port < WIREGUARD_PORT_START
            or rule.backend_port >= WIREGUARD_PORT_END
        ):
            raise PortAllocationError(
                f"found rule {rule.name} with invalid LB port:"
                f" frontend {rule.frontend_port}, backend {rule.backend_port}"
            )
        ports[rule.backend_port - WIREGUARD_PORT_START] = True
    for i, in_use in enumerate(ports):
        if not in_use:
            return WIREGUARD_PORT_START + i
    raise PortAllocationError("No available ports")


def reconcile_lb_rule(
    manager: AzureManager,
    lb_config: GatewayLBConfiguration,
    pool_unique_id: str,
    need_lb: bool,
) -> LBRuleResult:
    """
    Ensures (`need_lb=True`) or retracts the LB frontend, backend pool, rule and probe
    of the gateway. Returns the frontend IP and the rule's port when `need_lb`.
    """
    lb, is_new_lb = _get_or_new_lb(manager, need_lb)
    if lb is None:
        logger.info("Load balancer %s not found, nothing to clean up", manager.load_balancer_name)
        return LBRuleResult(frontend_ip=None, port=None)

    names = get_lb_property_names(pool_unique_id, lb_config)
    frontend_id = manager.get_lb_frontend_ip_configuration_id(names.frontend_name)
    backend_id = manager.get_lb_backend_address_pool_id(names.backend_name)
    probe_id = manager.get_lb_probe_id(names.probe_name)
    update_lb = is_new_lb

    frontends = list(lb.frontend_ip_configurations or [])
    backends = list(lb.backend_address_pools or [])
    rules = list(lb.load_balancing_rules or [])
    probes = list(lb.probes or [])

    frontend_ip = None
    new_frontend = False
    frontend = _find_by_name(frontends, names.frontend_name)
    if frontend is not None:
        if (
            not equal_fold(frontend.private_ip_address_version, IP_VERSION_IPV4)
            or frontend.private_ip_address is None
        ):
            raise LoadBalancerError(
                f"LB frontend {names.frontend_name} does not have an IPv4 private address"
            )
        frontend_ip = frontend.private_ip_address
    elif need_lb:
        logger.info("Creating LB frontend %s", names.frontend_name)
        subnet = manager.get_subnet()
        frontends.append(
            FrontendIPConfiguration(
                id=frontend_id,
                name=names.frontend_name,
                private_ip_address_version=IP_VERSION_IPV4,
                private_ip_allocation_method="Dynamic",
                subnet=Subnet(id=subnet.id),
            )
        )
        new_frontend = True
        update_lb = True

    if _find_by_name(backends, names.backend_name) is None and need_lb:
        logger.info("Creating LB backend pool %s", names.backend_name)
        backends.append(BackendAddressPool(id=backend_id, name=names.backend_name))
        update_lb = True

    expected_rule = get_expected_lb_rule(names.rule_name, frontend_id, backend_id, probe_id)
    expected_probe = get_expected_lb_probe(names.probe_name, lb_config.metadata.uid)

    port = None
    rule = _find_by_name(rules, names.rule_name)
    if rule is not None:
        if not need_lb:
            logger.info("Dropping LB rule %s", names.rule_name)
            rules.remove(rule)
            update_lb = True
        elif not same_lb_rule_config(rule, expected_rule):
            logger.info("Found LB rule %s with different configuration, dropping", rule.name)
            rules.remove(rule)
            rule = None
            update_lb = True
        else:
            port = rule.frontend_port
    if rule is None and need_lb:
        port = select_port_for_lb_rule(expected_rule, rules)
        logger.info("Creating LB rule %s with port %d", names.rule_name, port)
        expected_rule.frontend_port = port
        expected_rule.backend_port = port
        rules.append(expected_rule)
        update_lb = True

    probe = _find_by_name(probes, names.probe_name)
    if probe is not None:
        if not need_lb:
            logger.info("Dropping LB probe %s", names.probe_name)
            probes.remove(probe)
            update_lb = True
        elif not same_lb_probe_config(probe, expected_probe):
            logger.info("Found LB probe %s with different configuration, dropping", probe.name)
            probes.remove(probe)
            probe = None
            update_lb = True
    if probe is None and need_lb:
        logger.info("Creating LB probe %s", names.probe_name)
        probes.append(expected_probe)
        update_lb = True

    if not need_lb:
        rule_ref_count = sum(
            1
            for r in rules
            if r.frontend_ip_configuration is not None
            and equal_fold(r.frontend_ip_configuration.id, frontend_id)
        )
        if rule_ref_count == 0:
            if frontend is not None:
                logger.info("Dropping unused LB frontend %s", names.frontend_name)
                frontends.remove(frontend)
                update_lb = True
            backend = _find_by_name(backends, names.backend_name)
            if backend is not None:
                logger.info("Dropping unused LB backend pool %s", names.backend_name)
                backends.remove(backend)
                update_lb = True
        if len(frontends) == 0:
            logger.info("Deleting load balancer %s without frontends", manager.load_balancer_name)
            manager.delete_lb()
            return LBRuleResult(frontend_ip=None, port=None)

    if not update_lb:
        return LBRuleResult(frontend_ip=frontend_ip, port=port)

    lb.frontend_ip_configurations = frontends
    lb.backend_address_pools = backends
    lb.load_balancing_rules = rules
    lb.probes = probes
    logger.info("Updating load balancer %s", manager.load_balancer_name)
    etag = None
    if settings.LB_ETAG_CHECK_ENABLED and not is_new_lb:
        etag = lb.etag
    updated_lb = manager.create_or_update_lb(lb, etag=etag)
    if not need_lb:
        return LBRuleResult(frontend_ip=None, port=None)
    if new_frontend:
        frontend = _find_by_name(updated_lb.frontend_ip_configurations or [], names.frontend_name)
        if frontend is None or frontend.private_ip_address is None:
            raise LoadBalancerError(
                f"LB frontend {names.frontend_name} has no private IP after the update"
            )
        frontend_ip = frontend.private_ip_address
    return LBRuleResult(frontend_ip=frontend_ip, port=port)


def _get_or_new_lb(
    manager: AzureManager, need_lb: bool
) -> Tuple[Optional[LoadBalancer], bool]:
    """
    Returns the load balancer and whether it does not exist yet.
    A missing load balancer is only synthesized in memory when `need_lb`.
    """
    try:
        lb = manager.get_lb()
    except ResourceNotFoundError:
        if not need_lb:
            return None, False
        logger.info("Load balancer %s not found, creating", manager.load_balancer_name)
        lb = LoadBalancer(
            location=manager.location,
            sku=LoadBalancerSku(name="Standard"),
            frontend_ip_configurations=[],
            backend_address_pools=[],
            load_balancing_rules=[],
            probes=[],
        )
        return lb, True
    return lb, False


def _find_by_name(items: list, name: str):
    for item in items:
        if equal_fold(item.name, name):
            return item
    return None
