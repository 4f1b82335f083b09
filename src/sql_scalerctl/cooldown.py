"""
Post-scaling cooldown policy for sql-scalerctl

Decides whether a new resize must wait because a previous one happened too
recently. Windows are configured per direction, with a separate window while
the instance is overloaded.
"""

from .constants import MS_IN_1_MIN, SCALE_IN_REPEAT_WINDOW_MINUTES
from .log import get_logger
from .models import InstanceConfig, ScalingState

logger = get_logger(__name__)


def _cooling_minutes(config: InstanceConfig, scale_out: bool) -> float:
    if config.is_overloaded:
        if config.overload_cooling_minutes is None:
            logger.info(
                "No cooldown period defined for overload situations, "
                "using scale-out cooldown",
                extra={"scale_out_cooling_minutes": config.scale_out_cooling_minutes},
            )
            return config.scale_out_cooling_minutes
        return config.overload_cooling_minutes
    if scale_out:
        return config.scale_out_cooling_minutes
    return config.scale_in_cooling_minutes


def is_blocked(
    config: InstanceConfig, suggested_size: int, state: ScalingState, now: int
) -> bool:
    """
    Check if a resize to ``suggested_size`` is still in cooldown

    Args:
        config: Instance configuration with cooldown windows
        suggested_size: Size the scaling method suggested
        state: Current scaling state of the instance
        now: Current time in milliseconds since the epoch

    Returns:
        True if the resize must wait, False if it may proceed
    """
    scale_out = suggested_size > config.current_size
    direction = "scale out" if scale_out else "scale in"

    # Prefer the completion time of the last operation over its launch time
    reference = state.last_scaling_complete_timestamp or state.last_scaling_timestamp
    if not reference:
        logger.debug("No previous scaling operation found")
        logger.info("Autoscale allowed", extra={"direction": direction})
        return False

    cooling_ms = _cooling_minutes(config, scale_out) * MS_IN_1_MIN
    elapsed_ms = now - reference
    blocked = elapsed_ms < cooling_ms

    logger.debug(
        "Checking cooldown period",
        extra={
            "direction": direction,
            "overloaded": config.is_overloaded,
            "elapsed_minutes": round(elapsed_ms / MS_IN_1_MIN, 1),
            "cooldown_minutes": cooling_ms / MS_IN_1_MIN,
        },
    )

    # Within the repeat window only the first scale-in gets near-zero
    # downtime, so a second one always waits
    previous_was_scale_in = (
        state.scaling_previous_size is not None
        and state.scaling_requested_size is not None
        and state.scaling_previous_size > state.scaling_requested_size
    )
    if (
        not scale_out
        and previous_was_scale_in
        and elapsed_ms < SCALE_IN_REPEAT_WINDOW_MINUTES * MS_IN_1_MIN
    ):
        blocked = True
        logger.info(
            "Another scale-in not allowed within the repeat window",
            extra={
                "elapsed_minutes": round(elapsed_ms / MS_IN_1_MIN, 1),
                "window_minutes": SCALE_IN_REPEAT_WINDOW_MINUTES,
            },
        )

    if blocked:
        logger.info("Autoscale NOT allowed yet", extra={"direction": direction})
    else:
        logger.info("Autoscale allowed", extra={"direction": direction})
    return blocked
