"""Per-sensor layout of the concentric zone model."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SensorConfig:
    """Laser channel grouping and angular properties of a LiDAR sensor.

    ``num_laser_channels_per_zone`` and ``num_sectors_for_each_zone`` are the
    parameters that shape the zone model; the rest describe the sensor.
    """

    num_laser_channels_per_zone: tuple[tuple[int, ...], ...]
    num_sectors_for_each_zone: tuple[int, ...]
    lower_fov_boundary: float
    vertical_angular_resolution: float
    horizontal_resolution: int
    num_channels: int
    num_rings_for_each_zone: tuple[int, ...] = field(default=())


_DEFAULT_SECTORS = (16, 32, 56, 32)

_OS1_HIGH = SensorConfig(
    num_laser_channels_per_zone=((12, 6), (3, 2, 1, 1), (1, 1, 1), (1, 1, 1)),
    num_sectors_for_each_zone=_DEFAULT_SECTORS,
    lower_fov_boundary=-22.5,
    vertical_angular_resolution=0.7,
    horizontal_resolution=1024,
    num_channels=64,
)

_SENSOR_CONFIGS: dict[str, SensorConfig] = {
    "VLP-16": SensorConfig(
        num_laser_channels_per_zone=((2, 1), (1, 1), (1, 1), (1,)),
        num_sectors_for_each_zone=_DEFAULT_SECTORS,
        lower_fov_boundary=-15.0,
        vertical_angular_resolution=2.0,
        horizontal_resolution=1800,
        num_channels=16,
    ),
    "HDL-32E": SensorConfig(
        num_laser_channels_per_zone=((10, 5), (3, 2, 1, 1), (1, 1, 1), (1, 1, 1)),
        num_sectors_for_each_zone=_DEFAULT_SECTORS,
        lower_fov_boundary=-30.67,
        vertical_angular_resolution=1.33,
        horizontal_resolution=1080,
        num_channels=32,
    ),
    "HDL-64E": SensorConfig(
        num_laser_channels_per_zone=((24, 12), (4, 3, 2, 2), (2, 2, 2, 1), (1, 1, 1, 1, 1)),
        num_sectors_for_each_zone=_DEFAULT_SECTORS,
        lower_fov_boundary=-24.8,
        vertical_angular_resolution=0.4,
        horizontal_resolution=1800,
        num_channels=64,
    ),
    "OS1-16": SensorConfig(
        num_laser_channels_per_zone=((2, 1), (1, 1), (1,), (1,)),
        num_sectors_for_each_zone=_DEFAULT_SECTORS,
        lower_fov_boundary=-16.6,
        vertical_angular_resolution=2.075,
        horizontal_resolution=1024,
        num_channels=16,
    ),
    "OS1-64": _OS1_HIGH,
    "OS1-128": _OS1_HIGH,
}


def get_sensor_config(sensor_name: str) -> SensorConfig:
    """Return the configuration of a supported sensor model.

    Raises ValueError for an unknown sensor name.
    """
    try:
        config = _SENSOR_CONFIGS[sensor_name]
    except KeyError:
        raise ValueError("Sensor name is wrong! Please check the parameter") from None
    logger.info("Target sensor: %s", sensor_name)
    return config