"""
Tests for the scaler counters.
"""

from unittest.mock import patch

from sql_scalerctl.counters import ScalerCounters
from sql_scalerctl.models import DenialReason
from tests.fakes import counter_total


class TestScalerCounters:
    """Test cases for ScalerCounters."""

    def test_scaling_success_labels(self, instance_config):
        counters = ScalerCounters()

        counters.inc_scaling_success(instance_config, "FIXED", 8, 16)
        counters.inc_scaling_success(instance_config, "FIXED", 8, 16)

        assert (
            counter_total(
                counters,
                "sql_scaler_scaling_success_total",
                project_id="test-project",
                instance_id="test-instance",
                scaling_method="FIXED",
                previous_size="8",
                requested_size="16",
            )
            == 2
        )

    def test_missing_labels_are_empty(self, instance_config):
        counters = ScalerCounters()

        counters.inc_scaling_failed(instance_config, None, None, 16)

        assert (
            counter_total(
                counters,
                "sql_scaler_scaling_failed_total",
                scaling_method="",
                previous_size="",
                requested_size="16",
            )
            == 1
        )

    def test_scaling_denied_reason(self, instance_config):
        counters = ScalerCounters()

        counters.inc_scaling_denied(instance_config, 8, DenialReason.CURRENT_SIZE)
        counters.inc_scaling_denied(instance_config, 16, DenialReason.WITHIN_COOLDOWN)

        assert (
            counter_total(
                counters,
                "sql_scaler_scaling_denied_total",
                reason="CURRENT_SIZE",
                requested_size="8",
            )
            == 1
        )
        assert counter_total(counters, "sql_scaler_scaling_denied_total") == 2

    def test_scaling_duration(self, instance_config):
        counters = ScalerCounters()

        counters.record_scaling_duration(90_000, instance_config, "FIXED", 8, 16)

        assert counter_total(counters, "sql_scaler_scaling_duration_ms_sum") == 90_000
        assert (
            counter_total(counters, "sql_scaler_scaling_duration_ms_bucket", le="60000.0")
            == 0
        )
        assert (
            counter_total(
                counters, "sql_scaler_scaling_duration_ms_bucket", le="120000.0"
            )
            == 1
        )

    def test_request_counters(self):
        counters = ScalerCounters()

        counters.inc_requests_success()
        counters.inc_requests_failed()
        counters.inc_requests_failed()

        assert counter_total(counters, "sql_scaler_requests_success_total") == 1
        assert counter_total(counters, "sql_scaler_requests_failed_total") == 2

    def test_instances_do_not_share_registries(self):
        first = ScalerCounters()
        second = ScalerCounters()

        first.inc_requests_success()

        assert counter_total(second, "sql_scaler_requests_success_total") == 0


class TestFlush:
    """Test cases for ScalerCounters.flush()."""

    @patch("sql_scalerctl.counters.pushadd_to_gateway")
    def test_pushes_to_gateway(self, mock_push):
        counters = ScalerCounters("pushgateway:9091", job="scaler-test")

        counters.flush()

        mock_push.assert_called_once_with(
            "pushgateway:9091", job="scaler-test", registry=counters.registry
        )

    @patch("sql_scalerctl.counters.pushadd_to_gateway")
    def test_no_gateway_skips_push(self, mock_push):
        ScalerCounters().flush()
        mock_push.assert_not_called()

    @patch("sql_scalerctl.counters.pushadd_to_gateway")
    def test_push_failure_is_not_raised(self, mock_push):
        mock_push.side_effect = OSError("connection refused")

        ScalerCounters("pushgateway:9091").flush()

        mock_push.assert_called_once()
