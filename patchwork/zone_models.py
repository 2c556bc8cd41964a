"""Concentric zone model that splits the ground plane into ring/sector patches."""

from __future__ import annotations

import logging
import math
from bisect import bisect_left

from .sensor_configs import SensorConfig, get_sensor_config

logger = logging.getLogger(__name__)

INVALID_RING_IDX = -1
OVERFLOWED_IDX = -2


def xy2theta(x: float, y: float) -> float:
    """Return the azimuth of (x, y) in (0, 2*pi]."""
    angle = math.atan2(y, x)
    return angle if angle > 0 else angle + 2 * math.pi


class ConcentricZoneModel:
    """Polar grid of rings and sectors derived from the sensor's laser layout."""

    def __init__(
        self,
        sensor_model: str | SensorConfig,
        sensor_height: float,
        min_range: float,
        max_range: float,
    ) -> None:
        if isinstance(sensor_model, SensorConfig):
            self.sensor_config = sensor_model
        else:
            self.sensor_config = get_sensor_config(sensor_model)
        channels = self.sensor_config.num_laser_channels_per_zone
        self.num_zones = len(channels)
        self.max_ring_index_in_first_zone = len(channels[0])

        self.sensor_height = float(sensor_height)
        self.min_range = float(min_range)
        self.max_range = float(max_range)
        self.sqr_min_range = self.min_range**2
        self.sqr_max_range = self.max_range**2

        self.is_range_boundary_set = False
        self.num_sectors_per_ring: list[int] = []
        self.num_total_rings = 0
        self.boundary_ranges: list[float] = []
        self.sqr_boundary_ranges: list[float] = []
        self.boundary_ratios: list[float] = []

        self._set_concentric_zone_model()

    def _set_concentric_zone_model(self) -> None:
        self._set_num_sectors_for_each_ring()
        smallest_incidence_angle = 90.0 + self.sensor_config.lower_fov_boundary
        nearest_ground = math.tan(math.radians(smallest_incidence_angle)) * self.sensor_height
        if nearest_ground < self.min_range:
            raise ValueError(
                f"[CZM] The parameter `min_r` is wrong ({nearest_ground} vs {self.min_range}). "
                "Check your sensor height or min. range"
            )
        self._sanity_check()
        self._set_sqr_boundary_ranges(smallest_incidence_angle)

    def _sanity_check(self) -> None:
        n_channels = len(self.sensor_config.num_laser_channels_per_zone)
        n_sectors = len(self.sensor_config.num_sectors_for_each_zone)
        if not self.num_zones == n_channels == n_sectors:
            raise ValueError(
                "Some parameters are wrong! the size of parameters should be same"
            )

    def _set_num_sectors_for_each_ring(self) -> None:
        config = self.sensor_config
        self.num_sectors_per_ring = [
            num_sectors
            for channel_set, num_sectors in zip(
                config.num_laser_channels_per_zone, config.num_sectors_for_each_zone
            )
            for _ in channel_set
        ]
        self.num_total_rings = len(self.num_sectors_per_ring)

    def _set_sqr_boundary_ranges(self, smallest_incidence_angle: float) -> None:
        self.is_range_boundary_set = True
        resolution = self.sensor_config.vertical_angular_resolution
        ranges = [self.min_range]
        incidence_angle = smallest_incidence_angle
        # Once the beams pass the horizon the remaining rings are spread evenly,
        # anchored on the values seen at the first such ring.
        even_split: tuple[float, float] | None = None

        rings = (n for zone in self.sensor_config.num_laser_channels_per_zone for n in zone)
        for count, num_channels in enumerate(rings):
            incidence_angle += num_channels * resolution
            angle_with_margin = incidence_angle + 0.5 * resolution
            if angle_with_margin >= 90:
                if even_split is None:
                    logger.warning("Incidence angle is over 90 deg; bins are evenly divided")
                    even_split = (float(self.num_total_rings - count + 1), ranges[-1])
                denominator, left_b = even_split
                k = self.num_total_rings - count
                boundary = (
                    left_b * (denominator - k) / denominator
                    + self.max_range * k / denominator
                )
            else:
                boundary = math.tan(math.radians(angle_with_margin)) * self.sensor_height
            ranges.append(boundary)

        self.boundary_ranges = ranges
        self.sqr_boundary_ranges = [r * r for r in ranges]
        total_diff = ranges[-1] - self.min_range
        self.boundary_ratios = [(r - self.min_range) / total_diff for r in ranges]

        if ranges[-1] < self.max_range:
            logger.warning("Max range is shrunk: %s -> %s", self.max_range, ranges[-1])
            self.max_range = ranges[-1]
            self.sqr_max_range = ranges[-1] * ranges[-1]

    def get_ring_idx(self, x: float, y: float) -> int:
        """Return the ring holding (x, y), or INVALID_RING_IDX / OVERFLOWED_IDX."""
        bounds = self.sqr_boundary_ranges
        sqr_r = x * x + y * y
        if sqr_r < bounds[0]:
            return INVALID_RING_IDX
        if sqr_r > self.sqr_max_range:
            return OVERFLOWED_IDX
        return bisect_left(bounds, sqr_r) - 1

    def get_sector_idx(self, x: float, y: float, ring_idx: int) -> int:
        """Return the sector of (x, y) within the given ring."""
        num_sectors = self.num_sectors_per_ring[ring_idx]
        sector_size = 2.0 * math.pi / num_sectors
        return min(int(xy2theta(x, y) / sector_size), num_sectors - 1)

    def get_ring_sector_idx(self, x: float, y: float) -> tuple[int, int]:
        """Return (ring, sector) of (x, y); both hold the error code when out of range."""
        ring_idx = self.get_ring_idx(x, y)
        if ring_idx in (INVALID_RING_IDX, OVERFLOWED_IDX):
            return ring_idx, ring_idx
        return ring_idx, self.get_sector_idx(x, y, ring_idx)