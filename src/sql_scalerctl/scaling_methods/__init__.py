from ..constants import DEFAULT_SCALING_METHOD
from ..log import get_logger
from ..models import InstanceConfig
from .base import ScalingMethod
from .direct import DirectScalingMethod
from .fixed import FixedScalingMethod

logger = get_logger(__name__)

SCALING_METHOD_REGISTRY: dict[str, type[ScalingMethod]] = {
    FixedScalingMethod.NAME: FixedScalingMethod,
    DirectScalingMethod.NAME: DirectScalingMethod,
}


def get_scaling_method(config: InstanceConfig) -> ScalingMethod:
    """
    Look up the scaling method named by ``config.scaling_method``

    Unknown names fall back to the default method, and the config is updated
    so that anything persisted afterwards records the method actually used.
    """
    method_name = (config.scaling_method or "").upper()
    method_class = SCALING_METHOD_REGISTRY.get(method_name)

    if method_class is None:
        logger.warning(
            "Unknown scaling method, using default",
            extra={
                "scaling_method": config.scaling_method,
                "default": DEFAULT_SCALING_METHOD,
            },
        )
        method_class = SCALING_METHOD_REGISTRY[DEFAULT_SCALING_METHOD]
        method_name = DEFAULT_SCALING_METHOD

    config.scaling_method = method_name
    logger.info("Using scaling method", extra={"scaling_method": method_name})
    return method_class()


__all__ = [
    "SCALING_METHOD_REGISTRY",
    "DirectScalingMethod",
    "FixedScalingMethod",
    "ScalingMethod",
    "get_scaling_method",
]
