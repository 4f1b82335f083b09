"""
Fixed scaling method for sql-scalerctl

Default method. Moves the instance up or down a fixed ascending list of
allowed sizes, one position per out-of-range metric, or several positions at
once when the instance is overloaded.
"""

from bisect import bisect_left

from ..constants import AVAILABLE_VCPUS, OVERLOAD_METRIC, SCALING_METHOD_FIXED
from ..log import get_logger
from ..models import InstanceConfig, MetricSample
from .base import ScalingMethod, get_range, metric_value_within_range

logger = get_logger(__name__)


class FixedScalingMethod(ScalingMethod):
    """
    Fixed scaling method implementation

    For every metric outside its range:
    1. Above range: suggest the next allowed size
    2. Below range: suggest the previous allowed size
    3. CPU overload: jump ``overload_step_size + 1`` allowed sizes up

    Suggestions are clamped to the ends of the allowed list.
    """

    NAME = SCALING_METHOD_FIXED

    def __init__(self, allowed_sizes: tuple[int, ...] = AVAILABLE_VCPUS):
        self.allowed_sizes = tuple(sorted(allowed_sizes))

    def calculate_size(self, config: InstanceConfig) -> int:
        return self._loop_through_metrics(config, self._suggest_for_metric)

    def _position_of(self, size: int) -> int:
        """Index of ``size`` in the allowed list, or of the next size up"""
        return min(bisect_left(self.allowed_sizes, size), len(self.allowed_sizes) - 1)

    def _suggest_for_metric(self, config: InstanceConfig, metric: MetricSample) -> int:
        if metric_value_within_range(metric):
            return config.current_size

        top = len(self.allowed_sizes) - 1
        current_idx = self._position_of(config.current_size)

        if metric.name == OVERLOAD_METRIC and config.is_overloaded:
            logger.debug(
                f"Metric {metric.name} overloaded, using overload_step_size",
                extra={"overload_step_size": config.overload_step_size},
            )
            return self.allowed_sizes[
                min(current_idx + config.overload_step_size + 1, top)
            ]

        if metric.value > get_range(metric.threshold, metric.margin).max:
            return self.allowed_sizes[min(current_idx + 1, top)]
        return self.allowed_sizes[max(current_idx - 1, 0)]
