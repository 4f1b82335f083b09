"""
Scaling orchestrator for sql-scalerctl

Coordinates the decision cycle for one instance:
1. Reconcile - bring the state up to date with any in-flight operation
2. Suggest - ask the configured scaling method for a size
3. Decide - deny, or check cooldown and start a resize
4. Record - persist the new operation, publish the event, count the outcome
"""

from collections.abc import Callable
from typing import Any

from .cloudsql import CloudSqlAdminClient, OperationStatusProvider, ScaleExecutor
from .constants import EVENT_SCALING, EVENT_SCALING_FAILURE
from .cooldown import is_blocked
from .counters import ScalerCounters
from .db import DatabaseRegistry
from .errors import InvalidPayloadError
from .log import bind_request_context, clear_request_context, get_logger
from .models import DenialReason, InstanceConfig, ScalingState, StateKey
from .publisher import DownstreamPublisher
from .reconciler import LroReconciler
from .scaling_methods import get_scaling_method
from .settings import Settings
from .state import PostgresStateStore, StateStore, now_millis

logger = get_logger(__name__)


class ScalingOrchestrator:
    """
    Makes and carries out the scaling decision for one instance per call

    Guarantees at most one resize in flight per instance: a new resize is only
    started when the reconciled state records no operation. If starting the
    resize fails, nothing is recorded, so the next request retries cleanly.
    """

    def __init__(
        self,
        status_provider: OperationStatusProvider,
        executor: ScaleExecutor,
        publisher: DownstreamPublisher,
        counters: ScalerCounters,
        clock: Callable[[], int] = now_millis,
    ):
        self.status_provider = status_provider
        self.executor = executor
        self.publisher = publisher
        self.counters = counters
        self.clock = clock

    def process(self, config: InstanceConfig, store: StateStore) -> None:
        """Process one scaling request for ``config``"""
        logger.info(
            "Scaling request received",
            extra={"current_size": config.current_size, "units": config.units},
        )
        key = StateKey.for_config(config)
        now = self.clock()

        reconciler = LroReconciler(self.status_provider, store, self.counters)
        state = reconciler.reconcile(config, store.get(key))

        suggested_size = get_scaling_method(config).calculate_size(config)

        if suggested_size == config.current_size == config.max_size:
            logger.info(
                f"Has {config.current_size} {config.units}, no scaling possible "
                "- at max_size"
            )
            self._deny(config, suggested_size, DenialReason.MAX_SIZE)
            return

        if suggested_size == config.current_size:
            logger.info(
                f"Has {config.current_size} {config.units}, no scaling needed "
                "- at current size or min_size"
            )
            self._deny(config, suggested_size, DenialReason.CURRENT_SIZE)
            return

        if state.scaling_operation_id:
            if state.scaling_requested_size != suggested_size:
                logger.warning(
                    "Has ongoing scaling operation to a different size",
                    extra={
                        "operation_id": state.scaling_operation_id,
                        "requested_size": state.scaling_requested_size,
                        "suggested_size": suggested_size,
                    },
                )
            logger.info(
                "No scaling possible - last scaling operation still in progress",
                extra={
                    "operation_id": state.scaling_operation_id,
                    "requested_size": state.scaling_requested_size,
                    "started_minutes_ago": round(
                        (now - state.last_scaling_timestamp) / 60_000, 1
                    ),
                },
            )
            self._deny(config, suggested_size, DenialReason.IN_PROGRESS)
            return

        if is_blocked(config, suggested_size, state, now):
            logger.info(
                f"Has {config.current_size} {config.units}, no scaling possible "
                "- within cooldown period"
            )
            self._deny(config, suggested_size, DenialReason.WITHIN_COOLDOWN)
            return

        self._scale(config, suggested_size, state, store, key, now)

    def _deny(
        self, config: InstanceConfig, suggested_size: int, reason: DenialReason
    ) -> None:
        self.counters.inc_scaling_denied(config, suggested_size, reason)

    def _scale(
        self,
        config: InstanceConfig,
        suggested_size: int,
        state: ScalingState,
        store: StateStore,
        key: StateKey,
        now: int,
    ) -> None:
        try:
            operation_id = self.executor.execute(config, suggested_size)
        except Exception as e:
            logger.error(
                "Unsuccessful scaling attempt",
                extra={"suggested_size": suggested_size, "error": str(e)},
                exc_info=True,
            )
            self.counters.inc_scaling_failed(
                config, config.scaling_method, config.current_size, suggested_size
            )
            self.publisher.publish(EVENT_SCALING_FAILURE, config, suggested_size)
            return

        state.scaling_operation_id = operation_id
        state.last_scaling_timestamp = now
        state.last_scaling_complete_timestamp = None
        state.scaling_method = config.scaling_method
        state.scaling_previous_size = config.current_size
        state.scaling_requested_size = suggested_size
        store.update_state(key, state)

        logger.info(
            "Scaling operation started",
            extra={
                "operation_id": operation_id,
                "previous_size": config.current_size,
                "suggested_size": suggested_size,
            },
        )
        self.publisher.publish(EVENT_SCALING, config, suggested_size)


def build_orchestrator(settings: Settings, counters: ScalerCounters) -> ScalingOrchestrator:
    """Wire the orchestrator to the Cloud SQL Admin API and Pub/Sub"""
    cloudsql = CloudSqlAdminClient(
        api_root=settings.cloudsql_api_root, tier_prefix=settings.tier_prefix
    )
    return ScalingOrchestrator(
        status_provider=cloudsql,
        executor=cloudsql,
        publisher=DownstreamPublisher(),
        counters=counters,
    )


def build_state_store(settings: Settings, registry: DatabaseRegistry) -> StateStore:
    return PostgresStateStore(registry, table=settings.state_table)


def handle_scaling_request(
    payload: dict[str, Any],
    orchestrator: ScalingOrchestrator,
    store_factory: Callable[[InstanceConfig], StateStore],
    counters: ScalerCounters,
) -> bool:
    """
    Handle one inbound scaling request end to end

    Never raises. Counters are flushed whatever the outcome.

    Returns:
        True if the request was processed, False if it failed
    """
    try:
        config = InstanceConfig.from_payload(payload)
    except InvalidPayloadError as e:
        logger.error("Failed to parse scaling request", extra={"error": str(e)})
        counters.inc_requests_failed()
        counters.flush()
        return False

    bind_request_context(config.project_id, config.instance_id)
    try:
        store = store_factory(config)
        try:
            orchestrator.process(config, store)
        finally:
            store.close()
        counters.inc_requests_success()
        return True
    except Exception as e:
        logger.error(
            "Failed to process scaling request",
            extra={"error": str(e)},
            exc_info=True,
        )
        counters.inc_requests_failed()
        return False
    finally:
        counters.flush()
        clear_request_context()
