"""
Tests for request payload parsing, state keys and runtime settings.
"""

import pytest

from sql_scalerctl.errors import InvalidPayloadError
from sql_scalerctl.models import (
    InstanceConfig,
    MetricSample,
    OperationStatus,
    ScalingState,
    StateKey,
)
from sql_scalerctl.settings import Settings


@pytest.fixture
def payload():
    return {
        "projectId": "test-project",
        "instanceId": "test-instance",
        "minSize": 2,
        "maxSize": "64",
        "currentSize": 8,
        "metrics": [
            {"name": "cpu", "threshold": 65, "value": 72.5},
            {"name": "memory", "threshold": 80, "margin": 10, "value": 40},
        ],
    }


class TestInstanceConfigFromPayload:
    """Test cases for InstanceConfig.from_payload()."""

    def test_defaults(self, payload):
        config = InstanceConfig.from_payload(payload)

        assert config.max_size == 64
        assert config.state_project_id is None
        assert config.effective_state_project_id == "test-project"
        assert config.step_size == 1
        assert config.overload_step_size == 1
        assert config.units == "VCPU"
        assert config.scale_out_cooling_minutes == 5
        assert config.scale_in_cooling_minutes == 30
        assert config.overload_cooling_minutes is None
        assert config.scaling_method == "FIXED"
        assert config.is_overloaded is False
        assert config.downstream_pubsub_topic is None

    def test_metrics(self, payload):
        config = InstanceConfig.from_payload(payload)

        assert config.metrics == [
            MetricSample(name="cpu", threshold=65, value=72.5, margin=5),
            MetricSample(name="memory", threshold=80, value=40, margin=10),
        ]

    def test_optional_fields(self, payload):
        payload.update(
            {
                "stateProjectId": "state-project",
                "overloadStepSize": 3,
                "scaleOutCoolingMinutes": "10",
                "overloadCoolingMinutes": 2,
                "scalingMethod": "DIRECT",
                "downstreamPubSubTopic": "projects/p/topics/t",
            }
        )

        config = InstanceConfig.from_payload(payload)

        assert config.effective_state_project_id == "state-project"
        assert config.overload_step_size == 3
        assert config.scale_out_cooling_minutes == 10.0
        assert config.overload_cooling_minutes == 2.0
        assert config.scaling_method == "DIRECT"
        assert config.downstream_pubsub_topic == "projects/p/topics/t"

    def test_null_optional_fields_use_defaults(self, payload):
        payload["scaleInCoolingMinutes"] = None
        payload["metrics"] = None

        config = InstanceConfig.from_payload(payload)

        assert config.scale_in_cooling_minutes == 30
        assert config.metrics == []

    @pytest.mark.parametrize(
        "key", ["projectId", "instanceId", "minSize", "maxSize", "currentSize"]
    )
    def test_missing_required_key(self, payload, key):
        del payload[key]

        with pytest.raises(InvalidPayloadError, match=key):
            InstanceConfig.from_payload(payload)

    def test_non_numeric_size(self, payload):
        payload["currentSize"] = "eight"

        with pytest.raises(InvalidPayloadError, match="currentSize"):
            InstanceConfig.from_payload(payload)

    def test_invalid_metric(self, payload):
        payload["metrics"] = [{"name": "cpu", "value": 50}]

        with pytest.raises(InvalidPayloadError, match="metric"):
            InstanceConfig.from_payload(payload)

    def test_not_an_object(self):
        with pytest.raises(InvalidPayloadError):
            InstanceConfig.from_payload(["test-instance"])

    def test_to_payload(self, payload):
        config = InstanceConfig.from_payload(payload)
        config.is_overloaded = True

        rendered = config.to_payload()

        assert rendered["maxSize"] == 64
        assert rendered["isOverloaded"] is True
        assert "stateProjectId" not in rendered
        assert rendered["metrics"][1] == {
            "name": "memory",
            "threshold": 80,
            "margin": 10,
            "value": 40,
        }


class TestStateKey:
    def test_paths(self, instance_config):
        instance_config.state_project_id = "state-project"

        key = StateKey.for_config(instance_config)

        assert key.state_project_id == "state-project"
        assert key.doc_path == "projects/test-project/instances/test-instance"
        assert key.legacy_doc_path == "test-instance"

    def test_keys_are_hashable(self, instance_config):
        keys = {StateKey.for_config(instance_config), StateKey.for_config(instance_config)}
        assert len(keys) == 1


class TestScalingState:
    def test_clear_operation_keeps_timestamps(self, in_flight_state):
        in_flight_state.clear_operation()

        assert in_flight_state.scaling_operation_id is None
        assert in_flight_state.scaling_method is None
        assert in_flight_state.scaling_previous_size is None
        assert in_flight_state.scaling_requested_size is None
        assert in_flight_state.last_scaling_timestamp != 0

    def test_defaults(self):
        state = ScalingState()
        assert state.last_scaling_timestamp == 0
        assert state.last_scaling_complete_timestamp == 0
        assert state.scaling_operation_id is None


class TestOperationStatus:
    def test_from_api(self):
        status = OperationStatus.from_api(
            {
                "operationType": "UPDATE",
                "status": "RUNNING",
                "startTime": "2024-01-01T12:00:00Z",
            }
        )

        assert status.operation_type == "UPDATE"
        assert not status.is_done
        assert status.end_time is None
        assert status.error_message is None

    def test_error_without_messages(self):
        status = OperationStatus("UPDATE", "DONE", error={"code": "INTERNAL"})
        assert "INTERNAL" in status.error_message


class TestSettings:
    def test_from_env(self, monkeypatch):
        monkeypatch.setenv(
            "STATE_DATABASE_URL", "postgresql://scaler@db/{state_project_id}"
        )
        monkeypatch.setenv("STATE_TABLE", "custom_state")
        monkeypatch.setenv("PUSHGATEWAY_URL", "pushgateway:9091")
        monkeypatch.delenv("COUNTERS_JOB", raising=False)
        monkeypatch.delenv("CLOUDSQL_API_ROOT", raising=False)
        monkeypatch.delenv("CLOUDSQL_TIER_PREFIX", raising=False)

        settings = Settings.from_env(dotenv=False)

        assert settings.state_table == "custom_state"
        assert settings.pushgateway_url == "pushgateway:9091"
        assert settings.counters_job == "sql-scalerctl"
        assert settings.cloudsql_api_root == "https://sqladmin.googleapis.com/v1"
        assert settings.tier_prefix == "db-perf-optimized-N-"
        assert (
            settings.database_url_for("state-project")
            == "postgresql://scaler@db/state-project"
        )

    def test_empty_pushgateway_disables_push(self, monkeypatch):
        monkeypatch.setenv("PUSHGATEWAY_URL", "")
        assert Settings.from_env(dotenv=False).pushgateway_url is None

    def test_url_without_placeholder_is_shared(self):
        settings = Settings(state_database_url="postgresql://db/state")
        assert settings.database_url_for("a") == settings.database_url_for("b")

    def test_missing_url(self):
        with pytest.raises(ValueError, match="STATE_DATABASE_URL"):
            Settings().database_url_for("state-project")
