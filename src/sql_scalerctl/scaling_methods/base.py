"""
Base scaling method interface for sql-scalerctl

Defines the ScalingMethod abstract base class and the metric range evaluation
shared by metric-driven methods:

* classify each metric sample against its threshold +- margin band
* detect whether the instance is overloaded
* log a sizing suggestion per metric
"""

from abc import ABC, abstractmethod
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from ..constants import OVERLOAD_METRIC, OVERLOAD_THRESHOLD
from ..log import get_logger
from ..models import InstanceConfig, MetricSample

logger = get_logger(__name__)


class RelativeToRange(str, Enum):
    """Where a metric value sits relative to its range"""

    BELOW = "BELOW"
    WITHIN = "WITHIN"
    ABOVE = "ABOVE"


@dataclass(frozen=True)
class MetricRange:
    min: float
    max: float


def get_range(threshold: float, margin: float) -> MetricRange:
    """Build the [threshold - margin, threshold + margin] range, clamped to [0, 100]"""
    return MetricRange(
        min=max(threshold - margin, 0),
        max=min(threshold + margin, 100),
    )


def compare_metric_value_with_range(metric: MetricSample) -> RelativeToRange:
    metric_range = get_range(metric.threshold, metric.margin)

    if metric.value < metric_range.min:
        return RelativeToRange.BELOW
    if metric.value > metric_range.max:
        return RelativeToRange.ABOVE
    return RelativeToRange.WITHIN


def metric_value_within_range(metric: MetricSample) -> bool:
    return compare_metric_value_with_range(metric) == RelativeToRange.WITHIN


def is_overload_sample(metric: MetricSample) -> bool:
    """Whether this sample alone puts the instance into overload"""
    return metric.name == OVERLOAD_METRIC and metric.value > OVERLOAD_THRESHOLD


def get_scale_suggestion_message(
    config: InstanceConfig, suggested_size: int, relative_to_range: RelativeToRange
) -> str:
    """Describe a per-metric scaling suggestion"""
    if relative_to_range == RelativeToRange.WITHIN:
        return "no change suggested"
    if suggested_size > config.max_size:
        return (
            f"however, cannot scale to {suggested_size} because it is higher than "
            f"MAX {config.max_size} {config.units}"
        )
    if suggested_size < config.min_size:
        return (
            f"however, cannot scale to {suggested_size} because it is lower than "
            f"MIN {config.min_size} {config.units}"
        )
    if suggested_size == config.current_size:
        return (
            "the suggested size is equal to the current size: "
            f"{config.current_size} {config.units}"
        )
    return (
        f"suggesting to scale from {config.current_size} to {suggested_size} "
        f"{config.units}."
    )


def _log_suggestion(
    config: InstanceConfig, metric: MetricSample, suggested_size: int
) -> None:
    relative_to_range = compare_metric_value_with_range(metric)
    metric_range = get_range(metric.threshold, metric.margin)

    if metric.name == OVERLOAD_METRIC and config.is_overloaded:
        position = f"ABOVE the {OVERLOAD_THRESHOLD} overload threshold"
        relative_to_range = RelativeToRange.ABOVE
    else:
        position = (
            f"{relative_to_range.value} the range "
            f"[{metric_range.min}%-{metric_range.max}%]"
        )

    logger.debug(
        f"{metric.name}={metric.value}%, {position} => "
        + get_scale_suggestion_message(config, suggested_size, relative_to_range),
        extra={"metric": metric.name, "suggested_size": suggested_size},
    )


class ScalingMethod(ABC):
    """
    Abstract base class for all scaling methods

    A scaling method turns the current configuration and metric samples of an
    instance into a suggested size. Methods are stateless; one instance can
    serve any number of requests.
    """

    NAME: str = ""

    @abstractmethod
    def calculate_size(self, config: InstanceConfig) -> int:
        """
        Compute the suggested size for an instance

        Args:
            config: Instance configuration including current size and metrics

        Returns:
            Suggested size, in the instance's units
        """

    def _loop_through_metrics(
        self,
        config: InstanceConfig,
        suggest_for_metric: Callable[[InstanceConfig, MetricSample], int],
    ) -> int:
        """
        Get the maximum suggested size across all metrics

        Resets and re-derives ``config.is_overloaded`` before asking
        ``suggest_for_metric`` for each sample. The result is never below
        ``min_size`` nor above ``max_size``.
        """
        logger.debug(
            f"{self.NAME} size suggestions",
            extra={
                "min_size": config.min_size,
                "current_size": config.current_size,
                "max_size": config.max_size,
                "units": config.units,
            },
        )

        max_suggested_size = config.min_size
        config.is_overloaded = False

        for metric in config.metrics:
            if is_overload_sample(metric):
                config.is_overloaded = True

            suggested_size = suggest_for_metric(config, metric)
            _log_suggestion(config, metric, suggested_size)

            max_suggested_size = max(max_suggested_size, suggested_size)

        max_suggested_size = min(max_suggested_size, config.max_size)
        logger.debug(
            f"Final {self.NAME} suggestion: {max_suggested_size} {config.units}",
            extra={"suggested_size": max_suggested_size},
        )
        return max_suggested_size
