"""
Scaler counters for sql-scalerctl

Records scaling outcomes as Prometheus metrics and pushes them to a
Pushgateway at the end of every request. Counter updates never raise; a failed
push is logged and otherwise ignored.
"""

from prometheus_client import CollectorRegistry, Counter, Histogram, pushadd_to_gateway

from .constants import COUNTERS_PREFIX, DEFAULT_COUNTERS_JOB
from .log import get_logger
from .models import DenialReason, InstanceConfig

logger = get_logger(__name__)

_OPERATION_LABELS = (
    "project_id",
    "instance_id",
    "scaling_method",
    "previous_size",
    "requested_size",
)

_DENIED_LABELS = (
    "project_id",
    "instance_id",
    "scaling_method",
    "requested_size",
    "reason",
)

# Scaling operations take minutes
_DURATION_BUCKETS_MS = (
    30_000,
    60_000,
    120_000,
    300_000,
    600_000,
    900_000,
    1_800_000,
    3_600_000,
)


def _label(value) -> str:
    return "" if value is None else str(value)


class ScalerCounters:
    """Process-wide scaling counters, pushed on flush()"""

    def __init__(
        self,
        pushgateway_url: str | None = None,
        job: str = DEFAULT_COUNTERS_JOB,
        registry: CollectorRegistry | None = None,
    ):
        self.pushgateway_url = pushgateway_url
        self.job = job
        self.registry = registry or CollectorRegistry()

        self.scaling_success = Counter(
            f"{COUNTERS_PREFIX}scaling_success",
            "The number of scaling events that succeeded",
            _OPERATION_LABELS,
            registry=self.registry,
        )
        self.scaling_failed = Counter(
            f"{COUNTERS_PREFIX}scaling_failed",
            "The number of scaling events that failed",
            _OPERATION_LABELS,
            registry=self.registry,
        )
        self.scaling_denied = Counter(
            f"{COUNTERS_PREFIX}scaling_denied",
            "The number of scaling events denied",
            _DENIED_LABELS,
            registry=self.registry,
        )
        self.scaling_duration = Histogram(
            f"{COUNTERS_PREFIX}scaling_duration_ms",
            "Time taken to complete a scaling operation, in milliseconds",
            _OPERATION_LABELS,
            buckets=_DURATION_BUCKETS_MS,
            registry=self.registry,
        )
        self.requests_success = Counter(
            f"{COUNTERS_PREFIX}requests_success",
            "The number of scaling request messages handled successfully",
            registry=self.registry,
        )
        self.requests_failed = Counter(
            f"{COUNTERS_PREFIX}requests_failed",
            "The number of scaling request messages that failed",
            registry=self.registry,
        )

    @staticmethod
    def _operation_labels(
        config: InstanceConfig,
        scaling_method: str | None,
        previous_size: int | None,
        requested_size: int | None,
    ) -> dict[str, str]:
        return {
            "project_id": config.project_id,
            "instance_id": config.instance_id,
            "scaling_method": _label(scaling_method),
            "previous_size": _label(previous_size),
            "requested_size": _label(requested_size),
        }

    def inc_scaling_success(
        self,
        config: InstanceConfig,
        scaling_method: str | None,
        previous_size: int | None,
        requested_size: int | None,
    ) -> None:
        self.scaling_success.labels(
            **self._operation_labels(
                config, scaling_method, previous_size, requested_size
            )
        ).inc()

    def inc_scaling_failed(
        self,
        config: InstanceConfig,
        scaling_method: str | None,
        previous_size: int | None,
        requested_size: int | None,
    ) -> None:
        self.scaling_failed.labels(
            **self._operation_labels(
                config, scaling_method, previous_size, requested_size
            )
        ).inc()

    def inc_scaling_denied(
        self, config: InstanceConfig, suggested_size: int, reason: DenialReason
    ) -> None:
        self.scaling_denied.labels(
            project_id=config.project_id,
            instance_id=config.instance_id,
            scaling_method=_label(config.scaling_method),
            requested_size=_label(suggested_size),
            reason=DenialReason(reason).value,
        ).inc()

    def record_scaling_duration(
        self,
        duration_ms: int,
        config: InstanceConfig,
        scaling_method: str | None,
        previous_size: int | None,
        requested_size: int | None,
    ) -> None:
        self.scaling_duration.labels(
            **self._operation_labels(
                config, scaling_method, previous_size, requested_size
            )
        ).observe(duration_ms)

    def inc_requests_success(self) -> None:
        self.requests_success.inc()

    def inc_requests_failed(self) -> None:
        self.requests_failed.inc()

    def flush(self) -> None:
        """Push all counters to the Pushgateway, if one is configured"""
        if not self.pushgateway_url:
            logger.trace("No Pushgateway configured, skipping counter flush")
            return
        try:
            pushadd_to_gateway(self.pushgateway_url, job=self.job, registry=self.registry)
            logger.debug("Counters flushed", extra={"gateway": self.pushgateway_url})
        except Exception as e:
            logger.error(
                "Failed to flush counters",
                extra={"gateway": self.pushgateway_url, "error": str(e)},
            )
