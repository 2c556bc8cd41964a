import math

import pytest

from patchwork.sensor_configs import SensorConfig, get_sensor_config
from patchwork.zone_models import (
    INVALID_RING_IDX,
    OVERFLOWED_IDX,
    ConcentricZoneModel,
    xy2theta,
)


@pytest.fixture
def hdl64():
    return ConcentricZoneModel("HDL-64E", 1.723, 2.7, 80.0)


def test_xy2theta_quadrants():
    assert xy2theta(0.0, 1.0) == pytest.approx(math.pi / 2)
    assert xy2theta(-1.0, 0.0) == pytest.approx(math.pi)
    assert xy2theta(0.0, -1.0) == pytest.approx(3 * math.pi / 2)


def test_xy2theta_positive_x_axis_maps_to_full_turn():
    assert xy2theta(1.0, 0.0) == pytest.approx(2 * math.pi)


def test_ring_count_follows_laser_layout(hdl64):
    channels = get_sensor_config("HDL-64E").num_laser_channels_per_zone
    assert hdl64.num_total_rings == sum(len(zone) for zone in channels)
    assert len(hdl64.num_sectors_per_ring) == hdl64.num_total_rings
    assert len(hdl64.boundary_ranges) == hdl64.num_total_rings + 1
    assert hdl64.max_ring_index_in_first_zone == len(channels[0])


def test_boundaries_start_at_min_range_and_increase(hdl64):
    assert hdl64.boundary_ranges[0] == pytest.approx(2.7)
    assert hdl64.boundary_ranges == sorted(hdl64.boundary_ranges)
    assert hdl64.sqr_boundary_ranges == pytest.approx([r * r for r in hdl64.boundary_ranges])
    assert hdl64.boundary_ratios[0] == pytest.approx(0.0)
    assert hdl64.boundary_ratios[-1] == pytest.approx(1.0)
    assert hdl64.is_range_boundary_set


def test_max_range_kept_when_boundaries_reach_it(hdl64):
    assert hdl64.boundary_ranges[-1] > 80.0
    assert hdl64.max_range == pytest.approx(80.0)


def test_max_range_shrinks_when_boundaries_fall_short():
    model = ConcentricZoneModel("VLP-16", 1.723, 2.7, 80.0)
    assert model.max_range < 80.0
    assert model.max_range == pytest.approx(model.boundary_ranges[-1])
    assert model.sqr_max_range == pytest.approx(model.max_range**2)


def test_min_range_beyond_nearest_ground_raises():
    with pytest.raises(ValueError, match="min_r"):
        ConcentricZoneModel("HDL-64E", 1.723, 5.0, 80.0)


def test_mismatched_zone_parameters_raise():
    config = SensorConfig(
        num_laser_channels_per_zone=((2, 1), (1,)),
        num_sectors_for_each_zone=(16,),
        lower_fov_boundary=-24.8,
        vertical_angular_resolution=0.4,
        horizontal_resolution=1800,
        num_channels=64,
    )
    with pytest.raises(ValueError, match="size of parameters"):
        ConcentricZoneModel(config, 1.723, 2.7, 80.0)


def test_point_inside_min_range_is_invalid(hdl64):
    assert hdl64.get_ring_idx(1.0, 0.0) == INVALID_RING_IDX
    assert hdl64.get_ring_sector_idx(1.0, 1.0) == (INVALID_RING_IDX, INVALID_RING_IDX)


def test_point_beyond_max_range_overflows(hdl64):
    assert hdl64.get_ring_idx(100.0, 0.0) == OVERFLOWED_IDX
    assert hdl64.get_ring_sector_idx(0.0, -90.0) == (OVERFLOWED_IDX, OVERFLOWED_IDX)


def test_point_between_boundaries_gets_that_ring(hdl64):
    bounds = hdl64.boundary_ranges
    for ring in range(hdl64.num_total_rings):
        r = (bounds[ring] + bounds[ring + 1]) / 2
        if r > hdl64.max_range:
            continue
        assert hdl64.get_ring_idx(r, 0.0) == ring


def test_sector_index_on_positive_x_axis_is_clamped(hdl64):
    ring = 0
    assert hdl64.get_sector_idx(3.0, 0.0, ring) == hdl64.num_sectors_per_ring[ring] - 1


def test_sector_index_grows_with_angle(hdl64):
    ring = 3
    num_sectors = hdl64.num_sectors_per_ring[ring]
    r = (hdl64.boundary_ranges[ring] + hdl64.boundary_ranges[ring + 1]) / 2
    sectors = []
    for step in range(1, num_sectors):
        angle = (step - 0.5) * 2 * math.pi / num_sectors
        sectors.append(hdl64.get_sector_idx(r * math.cos(angle), r * math.sin(angle), ring))
    assert sectors == list(range(num_sectors - 1))


def test_ring_sector_pair_is_consistent(hdl64):
    ring, sector = hdl64.get_ring_sector_idx(-10.0, 4.0)
    assert ring == hdl64.get_ring_idx(-10.0, 4.0)
    assert sector == hdl64.get_sector_idx(-10.0, 4.0, ring)
    assert 0 <= sector < hdl64.num_sectors_per_ring[ring]