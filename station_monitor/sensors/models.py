"""Models for device sensor-status decoding."""

from enum import Enum, IntEnum
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator


class Severity(str, Enum):
    """Severity class of a single status flag."""

    WARNING = "warning"
    ERROR = "error"


class Classification(IntEnum):
    """Overall device classification.

    Ordered so that the worst matching flag wins with a plain ``max()``:
    OK < WARNING < FAILURE.
    """

    OK = 0
    WARNING = 1
    FAILURE = 2

    @property
    def label(self) -> str:
        """Lowercase label used in logs and CLI output."""
        return self.name.lower()

    @classmethod
    def for_severity(cls, severity: Severity) -> "Classification":
        """Map a flag severity onto the classification it forces."""
        return cls.FAILURE if severity == Severity.ERROR else cls.WARNING


class SensorFlagDefinition(BaseModel):
    """One bit of a device status word."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    bit: Annotated[int, Field(gt=0)]
    sensor_label: Annotated[str, Field(min_length=1)]
    severity: Severity
    reason_text: Annotated[str, Field(min_length=1)]

    @field_validator("bit")
    @classmethod
    def validate_single_bit(cls, v: int) -> int:
        """Ensure the flag is exactly one set bit."""
        if v & (v - 1):
            msg = f"Flag bit must be a power of two, got {v:#x}"
            raise ValueError(msg)
        return v


class SensorDefinition(BaseModel):
    """A named sensor and the flags that report on it."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    sensor_label: Annotated[str, Field(min_length=1)]
    flags: tuple[SensorFlagDefinition, ...]


class SensorFailure(BaseModel):
    """A sensor reported failed by an error-severity flag."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    sensor_label: str
    reason_text: str


class DeviceDiagnostic(BaseModel):
    """A device entry from the per-station diagnostics payload."""

    model_config = ConfigDict(frozen=True, extra="ignore", populate_by_name=True)

    device_id: int | str
    serial_number: str = ""
    raw_status: int = Field(default=0, ge=0, alias="sensor_status")

    @field_validator("serial_number", "raw_status", mode="before")
    @classmethod
    def null_as_default(cls, v: object, info: ValidationInfo) -> object:
        """Treat explicit nulls from the API as the field default."""
        if v is None:
            return "" if info.field_name == "serial_number" else 0
        return v


class DeviceStatusResult(BaseModel):
    """Decoded health of one device."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    device_id: int | str
    serial: str
    device_type: str
    raw_status: int
    classification: Classification
    failures: tuple[SensorFailure, ...] = ()

    @property
    def failed_sensor_labels(self) -> tuple[str, ...]:
        """Distinct failed sensor labels, in registry order."""
        return tuple(dict.fromkeys(f.sensor_label for f in self.failures))


class StationAggregate(BaseModel):
    """Per-station reduction of the decoded devices."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    station_id: int | str
    devices: tuple[DeviceStatusResult, ...] = ()

    @property
    def failing_devices(self) -> tuple[DeviceStatusResult, ...]:
        """Devices classified as failure."""
        return tuple(
            d for d in self.devices if d.classification == Classification.FAILURE
        )

    @property
    def failed_sensors(self) -> tuple[str, ...]:
        """Station-level failed sensor labels, deduplicated in first-seen order."""
        labels: dict[str, None] = {}
        for device in self.failing_devices:
            for label in device.failed_sensor_labels:
                labels.setdefault(label)
        return tuple(labels)

    @property
    def has_failures(self) -> bool:
        """Whether any monitored device reports a failed sensor."""
        return bool(self.failed_sensors)
