"""
Direct scaling method for sql-scalerctl

Suggests scaling straight to max_size, ignoring current metrics. Useful to
pre-provision an instance ahead of a known load event such as a batch job,
and to scale it back once the job is finished.
"""

from ..constants import SCALING_METHOD_DIRECT
from ..log import get_logger
from ..models import InstanceConfig
from .base import ScalingMethod

logger = get_logger(__name__)


class DirectScalingMethod(ScalingMethod):
    """Always suggests the configured maximum size"""

    NAME = SCALING_METHOD_DIRECT

    def calculate_size(self, config: InstanceConfig) -> int:
        logger.debug(
            f"Final {self.NAME} suggestion: {config.max_size} {config.units}",
            extra={"suggested_size": config.max_size},
        )
        return config.max_size
