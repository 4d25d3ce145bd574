from typing import Dict, List, Optional

from apscheduler.schedulers.blocking import BlockingScheduler
from apscheduler.triggers.interval import IntervalTrigger

from egress_gateway._internal import settings
from egress_gateway._internal.controller.common import ReconcileResult, Reconciler, fmt
from egress_gateway._internal.controller.gateway import StaticGatewayConfigurationReconciler
from egress_gateway._internal.controller.lbconfig import GatewayLBConfigurationReconciler
from egress_gateway._internal.controller.vmconfig import GatewayVMConfigurationReconciler
from egress_gateway._internal.core.azure.manager import AzureManager
from egress_gateway._internal.core.errors import ObjectStoreError
from egress_gateway._internal.core.store.base import ObjectStore
from egress_gateway._internal.utils.common import get_current_datetime
from egress_gateway._internal.utils.logging import get_logger

logger = get_logger(__name__)


class ControllerManager:
    """
    Periodically reconciles every object of each managed kind.

    Each kind is processed by a single job with `max_instances=1`,
    so an object is never reconciled by two passes at the same time.
    Objects of a kind are processed sequentially.
    """

    def __init__(
        self,
        store: ObjectStore,
        manager: AzureManager,
        namespace: Optional[str] = settings.WATCH_NAMESPACE,
        interval: int = settings.RECONCILE_INTERVAL_SECONDS,
    ):
        self.store = store
        self.namespace = namespace
        self.interval = interval
        self.reconcilers: List[Reconciler] = [
            StaticGatewayConfigurationReconciler(store, manager),
            GatewayLBConfigurationReconciler(store, manager),
            GatewayVMConfigurationReconciler(store, manager),
        ]
        self._scheduler: Optional[BlockingScheduler] = None

    def run_once(self) -> Dict[str, ReconcileResult]:
        """
        Runs every reconciler over all of its objects one time.
        Returns the results keyed by the formatted object name.
        """
        results = {}
        for reconciler in self.reconcilers:
            results.update(self.process_kind(reconciler))
        return results

    def process_kind(self, reconciler: Reconciler) -> Dict[str, ReconcileResult]:
        kind = reconciler.KIND
        try:
            objects = self.store.list(kind, self.namespace)
        except ObjectStoreError as e:
            logger.error("Failed to list %s objects: %s", kind.KIND, e)
            return {}
        results = {}
        for obj in objects:
            result = reconciler.reconcile(obj)
            if result.requeue:
                logger.debug("%s: will be reconciled again on the next pass", fmt(obj))
            results[fmt(obj)] = result
        return results

    def start(self):
        """
        Starts the reconcile loop.
        Blocks until `stop()` is called or the process is interrupted.
        """
        self._scheduler = BlockingScheduler()
        for reconciler in self.reconcilers:
            self._scheduler.add_job(
                self.process_kind,
                IntervalTrigger(seconds=self.interval),
                args=[reconciler],
                id=reconciler.KIND.KIND,
                max_instances=1,
                coalesce=True,
                # First pass right away instead of after the first interval
                next_run_time=get_current_datetime(),
            )
        logger.info(
            "Starting controller, reconcile interval %ss, namespace %s",
            self.interval,
            self.namespace or "<all>",
        )
        try:
            self._scheduler.start()
        except (KeyboardInterrupt, SystemExit):
            logger.info("Controller stopped")

    def stop(self):
        if self._scheduler is not None and self._scheduler.running:
            self._scheduler.shutdown(wait=False)
