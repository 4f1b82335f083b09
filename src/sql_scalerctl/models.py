"""
Data models for sql-scalerctl

Contains dataclasses for instance configuration, metric samples, persisted
scaling state and the operation status reported by the Cloud SQL Admin API.
"""

from dataclasses import dataclass, field, fields
from enum import Enum
from typing import Any

from .constants import (
    DEFAULT_SCALE_IN_COOLING_MINUTES,
    DEFAULT_SCALE_OUT_COOLING_MINUTES,
    DEFAULT_SCALING_METHOD,
    DEFAULT_THRESHOLD_MARGIN,
    LEGACY_STATE_DOC_PATH_TEMPLATE,
    OPERATION_STATUS_DONE,
    STATE_DOC_PATH_TEMPLATE,
    UNITS_VCPU,
)
from .errors import InvalidPayloadError


class DenialReason(str, Enum):
    """Why a scaling request did not result in a resize"""

    MAX_SIZE = "MAX_SIZE"
    CURRENT_SIZE = "CURRENT_SIZE"
    IN_PROGRESS = "IN_PROGRESS"
    WITHIN_COOLDOWN = "WITHIN_COOLDOWN"


@dataclass
class MetricSample:
    """A single utilization metric, on a 0-100 scale"""

    name: str
    threshold: float
    value: float
    margin: float = DEFAULT_THRESHOLD_MARGIN

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> "MetricSample":
        """Create MetricSample from a request payload entry"""
        try:
            return cls(
                name=data["name"],
                threshold=float(data["threshold"]),
                value=float(data["value"]),
                margin=float(data.get("margin", DEFAULT_THRESHOLD_MARGIN)),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise InvalidPayloadError(f"Invalid metric sample {data!r}: {e}") from e

    def to_payload(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "threshold": self.threshold,
            "margin": self.margin,
            "value": self.value,
        }


# payload key -> dataclass attribute, for the scalar InstanceConfig fields
_CONFIG_PAYLOAD_KEYS = {
    "projectId": "project_id",
    "instanceId": "instance_id",
    "stateProjectId": "state_project_id",
    "minSize": "min_size",
    "maxSize": "max_size",
    "stepSize": "step_size",
    "overloadStepSize": "overload_step_size",
    "units": "units",
    "scaleOutCoolingMinutes": "scale_out_cooling_minutes",
    "scaleInCoolingMinutes": "scale_in_cooling_minutes",
    "overloadCoolingMinutes": "overload_cooling_minutes",
    "scalingMethod": "scaling_method",
    "currentSize": "current_size",
    "downstreamPubSubTopic": "downstream_pubsub_topic",
}

_REQUIRED_PAYLOAD_KEYS = ("projectId", "instanceId", "minSize", "maxSize", "currentSize")

_INT_FIELDS = {
    "min_size",
    "max_size",
    "step_size",
    "overload_step_size",
    "current_size",
}

_FLOAT_FIELDS = {
    "scale_out_cooling_minutes",
    "scale_in_cooling_minutes",
    "overload_cooling_minutes",
}


@dataclass
class InstanceConfig:
    """
    Per-instance descriptor and live inputs for one scaling request

    Supplied fresh on every invocation by the metric-collection stage and never
    persisted. ``is_overloaded`` is derived while evaluating metrics.
    """

    project_id: str
    instance_id: str
    min_size: int
    max_size: int
    current_size: int
    state_project_id: str | None = None
    step_size: int = 1
    overload_step_size: int = 1
    units: str = UNITS_VCPU
    scale_out_cooling_minutes: float = DEFAULT_SCALE_OUT_COOLING_MINUTES
    scale_in_cooling_minutes: float = DEFAULT_SCALE_IN_COOLING_MINUTES
    overload_cooling_minutes: float | None = None
    scaling_method: str = DEFAULT_SCALING_METHOD
    is_overloaded: bool = False
    metrics: list[MetricSample] = field(default_factory=list)
    downstream_pubsub_topic: str | None = None

    @property
    def effective_state_project_id(self) -> str:
        """Project holding the scaling state, defaulting to the instance's own"""
        return self.state_project_id or self.project_id

    @classmethod
    def from_payload(cls, data: dict[str, Any]) -> "InstanceConfig":
        """Create InstanceConfig from a camelCase request payload"""
        if not isinstance(data, dict):
            raise InvalidPayloadError("Scaling request payload must be an object")

        missing = [key for key in _REQUIRED_PAYLOAD_KEYS if data.get(key) is None]
        if missing:
            raise InvalidPayloadError(
                f"Missing required payload keys: {', '.join(missing)}"
            )

        kwargs: dict[str, Any] = {}
        for key, attr in _CONFIG_PAYLOAD_KEYS.items():
            if data.get(key) is None:
                continue
            value = data[key]
            try:
                if attr in _INT_FIELDS:
                    value = int(value)
                elif attr in _FLOAT_FIELDS:
                    value = float(value)
            except (TypeError, ValueError) as e:
                raise InvalidPayloadError(f"Invalid value for {key}: {value!r}") from e
            kwargs[attr] = value

        kwargs["metrics"] = [
            MetricSample.from_payload(metric) for metric in data.get("metrics") or []
        ]
        return cls(**kwargs)

    def to_payload(self) -> dict[str, Any]:
        """Render the config back into the camelCase wire shape"""
        payload = {
            key: getattr(self, attr)
            for key, attr in _CONFIG_PAYLOAD_KEYS.items()
            if getattr(self, attr) is not None
        }
        payload["isOverloaded"] = self.is_overloaded
        payload["metrics"] = [metric.to_payload() for metric in self.metrics]
        return payload


@dataclass(frozen=True)
class StateKey:
    """Unique key of a ScalingState record"""

    state_project_id: str
    project_id: str
    instance_id: str

    @classmethod
    def for_config(cls, config: InstanceConfig) -> "StateKey":
        return cls(
            state_project_id=config.effective_state_project_id,
            project_id=config.project_id,
            instance_id=config.instance_id,
        )

    @property
    def doc_path(self) -> str:
        return STATE_DOC_PATH_TEMPLATE.format(
            project_id=self.project_id, instance_id=self.instance_id
        )

    @property
    def legacy_doc_path(self) -> str:
        return LEGACY_STATE_DOC_PATH_TEMPLATE.format(instance_id=self.instance_id)


@dataclass
class ScalingState:
    """
    Persisted per-instance scaling state

    Timestamps are milliseconds since the epoch; 0 means "never". A non-null
    ``scaling_operation_id`` means a resize operation is believed in flight.
    """

    last_scaling_timestamp: int = 0
    last_scaling_complete_timestamp: int | None = 0
    scaling_operation_id: str | None = None
    scaling_method: str | None = None
    scaling_previous_size: int | None = None
    scaling_requested_size: int | None = None
    created_on: int = 0
    updated_on: int = 0

    def clear_operation(self) -> None:
        """Forget the in-flight operation"""
        self.scaling_operation_id = None
        self.scaling_method = None
        self.scaling_previous_size = None
        self.scaling_requested_size = None

    def to_dict(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in fields(self)}


@dataclass
class OperationStatus:
    """Status of a long-running operation as reported by the Cloud SQL Admin API"""

    operation_type: str | None
    status: str | None
    error: dict[str, Any] | None = None
    start_time: str | None = None
    end_time: str | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "OperationStatus":
        """Create OperationStatus from an operations.get response body"""
        return cls(
            operation_type=data.get("operationType"),
            status=data.get("status"),
            error=data.get("error"),
            start_time=data.get("startTime"),
            end_time=data.get("endTime"),
        )

    @property
    def is_done(self) -> bool:
        return self.status == OPERATION_STATUS_DONE

    @property
    def error_message(self) -> str | None:
        """First error message of a failed operation, if any"""
        if not self.error:
            return None
        errors = self.error.get("errors") or []
        if errors and isinstance(errors[0], dict):
            return errors[0].get("message")
        return str(self.error)
