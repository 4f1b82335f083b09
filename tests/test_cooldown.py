"""
Tests for the post-scaling cooldown policy.
"""

from sql_scalerctl.cooldown import is_blocked
from sql_scalerctl.models import ScalingState
from tests.conftest import LAST_SCALING_MS, MINUTE_MS

T = LAST_SCALING_MS


def completed_state(**overrides) -> ScalingState:
    values = {
        "last_scaling_timestamp": T - 10 * MINUTE_MS,
        "last_scaling_complete_timestamp": T,
    }
    values.update(overrides)
    return ScalingState(**values)


class TestCooldownPolicy:
    """Test cases for is_blocked()."""

    def test_not_blocked_when_never_scaled(self, instance_config, idle_state):
        assert not is_blocked(instance_config, 16, idle_state, T)

    def test_scale_out_within_cooldown_is_blocked(self, instance_config):
        assert is_blocked(instance_config, 16, completed_state(), T + 4 * MINUTE_MS)

    def test_scale_out_after_cooldown_is_allowed(self, instance_config):
        assert not is_blocked(
            instance_config, 16, completed_state(), T + 6 * MINUTE_MS
        )

    def test_scale_out_exactly_at_cooldown_end_is_allowed(self, instance_config):
        assert not is_blocked(
            instance_config, 16, completed_state(), T + 5 * MINUTE_MS
        )

    def test_scale_in_within_cooldown_is_blocked(self, instance_config):
        assert is_blocked(instance_config, 4, completed_state(), T + 29 * MINUTE_MS)

    def test_scale_in_after_cooldown_is_allowed(self, instance_config):
        assert not is_blocked(
            instance_config, 4, completed_state(), T + 31 * MINUTE_MS
        )

    def test_uses_completion_time_when_present(self, instance_config):
        state = completed_state(last_scaling_timestamp=T - 60 * MINUTE_MS)
        # 60 minutes after start, but only 4 after completion
        assert is_blocked(instance_config, 16, state, T + 4 * MINUTE_MS)

    def test_uses_start_time_when_not_completed(self, instance_config):
        state = ScalingState(
            last_scaling_timestamp=T, last_scaling_complete_timestamp=0
        )
        assert is_blocked(instance_config, 16, state, T + 4 * MINUTE_MS)
        assert not is_blocked(instance_config, 16, state, T + 6 * MINUTE_MS)

    def test_start_time_used_when_completion_is_null(self, instance_config):
        state = ScalingState(
            last_scaling_timestamp=T, last_scaling_complete_timestamp=None
        )
        assert is_blocked(instance_config, 16, state, T + 4 * MINUTE_MS)

    def test_overloaded_uses_overload_cooldown(self, instance_config):
        instance_config.is_overloaded = True
        instance_config.overload_cooling_minutes = 2
        assert not is_blocked(
            instance_config, 16, completed_state(), T + 3 * MINUTE_MS
        )
        assert is_blocked(instance_config, 16, completed_state(), T + 1 * MINUTE_MS)

    def test_overloaded_without_overload_cooldown_uses_scale_out(
        self, instance_config
    ):
        instance_config.is_overloaded = True
        instance_config.overload_cooling_minutes = None
        assert is_blocked(instance_config, 16, completed_state(), T + 4 * MINUTE_MS)
        assert not is_blocked(
            instance_config, 16, completed_state(), T + 6 * MINUTE_MS
        )
        # The config itself is left untouched
        assert instance_config.overload_cooling_minutes is None


class TestRepeatedScaleIn:
    """Test cases for the second scale-in within three hours."""

    def test_second_scale_in_within_window_is_blocked(self, instance_config):
        instance_config.scale_in_cooling_minutes = 5
        state = completed_state(scaling_previous_size=4, scaling_requested_size=2)
        assert is_blocked(instance_config, 4, state, T + 120 * MINUTE_MS)

    def test_second_scale_in_after_window_is_allowed(self, instance_config):
        instance_config.scale_in_cooling_minutes = 5
        state = completed_state(scaling_previous_size=4, scaling_requested_size=2)
        assert not is_blocked(instance_config, 4, state, T + 181 * MINUTE_MS)

    def test_scale_out_after_scale_in_is_not_affected(self, instance_config):
        state = completed_state(scaling_previous_size=4, scaling_requested_size=2)
        assert not is_blocked(instance_config, 16, state, T + 6 * MINUTE_MS)

    def test_scale_in_after_scale_out_uses_configured_window(self, instance_config):
        instance_config.scale_in_cooling_minutes = 5
        state = completed_state(scaling_previous_size=2, scaling_requested_size=4)
        assert not is_blocked(instance_config, 4, state, T + 6 * MINUTE_MS)
