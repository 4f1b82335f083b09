"""
Reconciliation of in-flight scaling operations for sql-scalerctl

Before a new decision is made, any resize operation recorded in the scaling
state is looked up in the Cloud SQL Admin API and the state is brought up to
date with its outcome.
"""

from datetime import datetime

from .cloudsql import OperationStatusProvider
from .constants import OPERATION_TYPE_UPDATE
from .counters import ScalerCounters
from .errors import OperationQueryError
from .log import get_logger
from .models import InstanceConfig, ScalingState, StateKey
from .state import StateStore, datetime_to_millis

logger = get_logger(__name__)


def parse_operation_time(value: str | None) -> int | None:
    """Parse an RFC 3339 timestamp into epoch millis, or None if unparsable"""
    if not value:
        return None
    try:
        return datetime_to_millis(datetime.fromisoformat(value))
    except (TypeError, ValueError):
        return None


class LroReconciler:
    """
    Brings ScalingState up to date with the outcome of its recorded operation

    Outcomes:
    1. No recorded operation: state returned untouched, nothing written
    2. Status unavailable or unexpected: the operation is assumed to have
       completed successfully
    3. Still running: state unchanged
    4. Failed: operation cleared and the cooldown clock reset
    5. Succeeded: completion time recorded and operation cleared

    In cases 2-5 the resulting state is always written back to the store.
    """

    def __init__(
        self,
        status_provider: OperationStatusProvider,
        store: StateStore,
        counters: ScalerCounters,
    ):
        self.status_provider = status_provider
        self.store = store
        self.counters = counters

    def reconcile(self, config: InstanceConfig, state: ScalingState) -> ScalingState:
        if not state.scaling_operation_id:
            return state

        try:
            self._apply_operation_status(config, state)
        finally:
            self.store.update_state(StateKey.for_config(config), state)

        return state

    def _apply_operation_status(
        self, config: InstanceConfig, state: ScalingState
    ) -> None:
        operation_id = state.scaling_operation_id
        try:
            operation = self.status_provider.query(config.project_id, operation_id)
            if operation is None:
                raise OperationQueryError(
                    f"GetOperation({operation_id}) returned no results"
                )
            if operation.operation_type != OPERATION_TYPE_UPDATE:
                raise OperationQueryError(
                    f"GetOperation({operation_id}) contained no "
                    f"{OPERATION_TYPE_UPDATE} operation"
                )
        except Exception as e:
            logger.error(
                "Failed to retrieve state of operation, assume completed",
                extra={"operation_id": operation_id, "error": str(e)},
            )
            self._record_inferred_success(config, state)
            return

        # The operation does not carry the requested size
        requested_size = (
            state.scaling_requested_size
            if state.scaling_requested_size is not None
            else config.current_size
        )
        log_ctx = {
            "operation_id": operation_id,
            "requested_size": requested_size,
            "start_time": operation.start_time,
            "end_time": operation.end_time,
        }

        if not operation.is_done:
            logger.info("Last scaling request IN PROGRESS", extra=log_ctx)
            return

        if operation.error:
            logger.error(
                "Last scaling request FAILED",
                extra={**log_ctx, "error": operation.error_message},
            )
            self.counters.inc_scaling_failed(
                config,
                state.scaling_method,
                state.scaling_previous_size,
                requested_size,
            )
            state.last_scaling_timestamp = 0
            state.last_scaling_complete_timestamp = 0
            state.clear_operation()
            return

        logger.info("Last scaling request SUCCEEDED", extra=log_ctx)
        end_timestamp = parse_operation_time(operation.end_time)
        if end_timestamp:
            state.last_scaling_complete_timestamp = end_timestamp
        else:
            logger.warning(
                "Failed to parse operation endTime, using start of operation",
                extra={"end_time": operation.end_time},
            )
            state.last_scaling_complete_timestamp = state.last_scaling_timestamp

        self.counters.record_scaling_duration(
            state.last_scaling_complete_timestamp - state.last_scaling_timestamp,
            config,
            state.scaling_method,
            state.scaling_previous_size,
            requested_size,
        )
        self.counters.inc_scaling_success(
            config,
            state.scaling_method,
            state.scaling_previous_size,
            requested_size,
        )
        state.clear_operation()

    def _record_inferred_success(
        self, config: InstanceConfig, state: ScalingState
    ) -> None:
        state.last_scaling_complete_timestamp = state.last_scaling_timestamp
        self.counters.record_scaling_duration(
            0,
            config,
            state.scaling_method,
            state.scaling_previous_size,
            state.scaling_requested_size,
        )
        self.counters.inc_scaling_success(
            config,
            state.scaling_method,
            state.scaling_previous_size,
            state.scaling_requested_size,
        )
        state.clear_operation()
