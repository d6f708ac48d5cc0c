"""Unit tests for the sensor flag registry."""

from station_monitor.sensors.models import Severity
from station_monitor.sensors.registry import (
    DEVICE_TYPE_TABLE,
    LIGHTNING_NOISE,
    POWER_BOOSTER_DEPLETED,
    device_type_of,
    flags_for,
    is_heartbeat_device,
    monitored_sensor_keys,
)


class TestFlagsFor:
    """Tests for per-device-type flag tables."""

    def test_air_sensors(self) -> None:
        """AIR devices report lightning, pressure, temperature and humidity."""
        labels = [s.sensor_label for s in flags_for("AR")]
        assert labels == ["lightning", "pressure", "air_temperature", "rh"]

    def test_sky_sensors(self) -> None:
        """SKY devices report wind, precipitation, light/UV and the booster."""
        labels = [s.sensor_label for s in flags_for("SK")]
        assert labels == ["wind", "precip", "light_uv", "power_booster"]

    def test_tempest_is_union(self) -> None:
        """Tempest devices carry every AIR and SKY sensor."""
        tempest = {s.sensor_label for s in flags_for("ST")}
        air = {s.sensor_label for s in flags_for("AR")}
        sky = {s.sensor_label for s in flags_for("SK")}
        assert tempest == air | sky

    def test_unknown_type_is_empty(self) -> None:
        """Unknown device types have no flags."""
        assert flags_for("ZZ") == ()
        assert flags_for("") == ()

    def test_every_flag_is_single_bit(self) -> None:
        """Every table entry is a distinct power of two within a device type."""
        for sensors in DEVICE_TYPE_TABLE.values():
            bits = [f.bit for s in sensors for f in s.flags]
            assert len(bits) == len(set(bits))
            for bit in bits:
                assert bit & (bit - 1) == 0

    def test_warning_flags(self) -> None:
        """Lightning noise and booster depletion are warnings."""
        flags = {f.bit: f for s in flags_for("ST") for f in s.flags}
        assert flags[LIGHTNING_NOISE].severity == Severity.WARNING
        assert flags[POWER_BOOSTER_DEPLETED].severity == Severity.WARNING


class TestSerialHelpers:
    """Tests for serial-number helpers."""

    def test_device_type_of(self) -> None:
        """Device type is the text before the first dash."""
        assert device_type_of("ST-00012345") == "ST"
        assert device_type_of("AR-1-2") == "AR"
        assert device_type_of("NODASH") == "NODASH"

    def test_heartbeat_detection(self) -> None:
        """Serials containing HB are heartbeat hardware."""
        assert is_heartbeat_device("HB-00001234") is True
        assert is_heartbeat_device("ST-00001234") is False

    def test_monitored_keys(self) -> None:
        """Power booster is decoded but not a monitored metric key."""
        keys = monitored_sensor_keys()
        assert "power_booster" not in keys
        assert set(keys) == {
            "air_temperature",
            "rh",
            "lightning",
            "wind",
            "precip",
            "light_uv",
            "pressure",
        }
