import numpy as np
import pytest

from patchwork.estimation import PatchStatus
from patchwork.patchwork import PatchWork, PatchWorkParams
from patchwork.pointcloud import PointCloud

HEIGHT = 1.723


def _ground_grid(z=-HEIGHT, step=0.25, extent=15.0, noise=0.005, seed=0):
    coords = np.arange(-extent, extent, step)
    xx, yy = np.meshgrid(coords, coords)
    rng = np.random.default_rng(seed)
    zz = z + rng.normal(0.0, noise, xx.size)
    return np.column_stack([xx.ravel(), yy.ravel(), zz])


def _wall():
    ys = np.linspace(-0.3, 0.3, 7)
    zs = np.linspace(-1.0, 1.0, 11)
    yy, zz = np.meshgrid(ys, zs)
    return np.column_stack([np.full(yy.size, 10.0), yy.ravel(), zz.ravel()])


@pytest.fixture
def scene():
    ground = _ground_grid()
    ground = ground[np.hypot(ground[:, 0], ground[:, 1]) > 2.8]
    wall = _wall()
    return ground, wall


def test_wall_is_non_ground_and_floor_is_ground(scene):
    floor, wall = scene
    cloud = PointCloud(np.vstack([floor, wall]))
    ground, nonground = PatchWork().estimate_ground(cloud)
    assert len(ground) == len(floor)
    assert len(nonground) == len(wall)
    assert ground.z.max() < -1.5
    assert nonground.z.min() > -1.2


def test_output_partitions_points_in_range(scene):
    floor, wall = scene
    extra = np.array([[1.0, 0.0, -HEIGHT], [100.0, 0.0, -HEIGHT]])
    cloud = PointCloud(np.vstack([floor, wall, extra]))
    ground, nonground = PatchWork().estimate_ground(cloud)
    assert len(ground) + len(nonground) == len(floor) + len(wall)
    together = np.vstack([ground.xyz, nonground.xyz])
    assert sorted(map(tuple, together.tolist())) == sorted(
        map(tuple, np.vstack([floor, wall]).astype(np.float32).tolist())
    )


def test_points_far_below_ground_are_removed(scene):
    floor, _ = scene
    below = np.array([[5.0, 0.5, -HEIGHT - 2.5]])
    cloud = PointCloud(np.vstack([floor, below]))
    ground, nonground = PatchWork().estimate_ground(cloud)
    assert len(ground) + len(nonground) == len(floor)
    assert min(ground.z.min(), nonground.z.min() if len(nonground) else 0.0) > -HEIGHT - 2.0


def test_out_of_range_points_are_dropped():
    cloud = PointCloud(np.array([[1.0, 0.0, -HEIGHT], [0.0, 100.0, -HEIGHT]]))
    ground, nonground = PatchWork().estimate_ground(cloud)
    assert len(ground) == 0
    assert len(nonground) == 0


def test_empty_cloud():
    pw = PatchWork()
    ground, nonground = pw.estimate_ground(PointCloud.empty())
    assert (len(ground), len(nonground)) == (0, 0)
    assert set(pw.patch_statuses.values()) == {PatchStatus.FEW_POINTS}


def test_sparse_patch_is_kept_as_ground():
    pts = np.array([[5.0, 0.5, z] for z in (-1.7, -1.0, 0.0, 1.0, 2.0)])
    pw = PatchWork()
    ground, nonground = pw.estimate_ground(PointCloud(pts))
    assert len(ground) == 5
    assert len(nonground) == 0
    key = pw.zone_model.get_ring_sector_idx(5.0, 0.5)
    assert pw.patch_statuses[key] is PatchStatus.FEW_POINTS


def test_high_plateau_far_away_is_rejected_globally():
    coords = np.arange(16.0, 17.0, 0.1)
    ys = np.arange(0.1, 1.0, 0.1)
    xx, yy = np.meshgrid(coords, ys)
    pts = np.column_stack([xx.ravel(), yy.ravel(), np.full(xx.size, 0.5)])
    pw = PatchWork()
    ground, nonground = pw.estimate_ground(PointCloud(pts))
    ring, sector = pw.zone_model.get_ring_sector_idx(16.5, 0.5)
    assert ring >= len(pw.params.elevation_thr)
    assert pw.patch_statuses[(ring, sector)] is PatchStatus.GLOBALLY_TOO_HIGH_ELEVATION
    assert len(ground) == 0
    assert len(nonground) == len(pts)


def test_high_plateau_kept_when_global_threshold_off():
    coords = np.arange(16.0, 17.0, 0.1)
    ys = np.arange(0.1, 1.0, 0.1)
    xx, yy = np.meshgrid(coords, ys)
    pts = np.column_stack([xx.ravel(), yy.ravel(), np.full(xx.size, 0.5)])
    pw = PatchWork(PatchWorkParams(using_global_thr=False))
    ground, nonground = pw.estimate_ground(PointCloud(pts))
    assert len(ground) == len(pts)
    assert len(nonground) == 0


def test_labels_follow_points(scene):
    floor, wall = scene
    xyz = np.vstack([floor, wall])
    labels = np.r_[np.full(len(floor), 40), np.full(len(wall), 50)]
    cloud = PointCloud(xyz, label=labels)
    ground, nonground = PatchWork().estimate_ground(cloud)
    assert ground.is_labeled and nonground.is_labeled
    assert set(ground.label.tolist()) == {40}
    assert set(nonground.label.tolist()) == {50}


def test_time_taken_recorded(scene):
    floor, _ = scene
    pw = PatchWork()
    pw.estimate_ground(PointCloud(floor))
    assert 0.0 <= pw.time_taken < 60.0


def _near_ground(z):
    coords = np.arange(-5.0, 5.0, 0.1)
    xx, yy = np.meshgrid(coords, coords)
    pts = np.column_stack([xx.ravel(), yy.ravel(), np.full(xx.size, z)])
    r = np.hypot(pts[:, 0], pts[:, 1])
    return pts[(r > 2.8) & (r <= 5.0)]


def test_estimate_sensor_height_from_near_ground():
    pw = PatchWork(PatchWorkParams(atat_on=True))
    height = pw.estimate_sensor_height(PointCloud(_near_ground(-1.5)))
    assert height == pytest.approx(1.5)
    assert pw.sensor_height == pytest.approx(1.5)


def test_estimate_sensor_height_without_ground_raises():
    pw = PatchWork(PatchWorkParams(atat_on=True))
    far = np.array([[30.0, 0.0, -1.5], [0.0, 30.0, -1.5]])
    with pytest.raises(ValueError):
        pw.estimate_sensor_height(PointCloud(far))


def test_atat_runs_once_and_updates_removal_threshold():
    near = _near_ground(-1.5)
    low = np.array([[8.0, 0.5, -3.6]])
    cloud = PointCloud(np.vstack([near, low]))
    pw = PatchWork(PatchWorkParams(atat_on=True))
    ground, nonground = pw.estimate_ground(cloud)
    assert pw.sensor_height == pytest.approx(1.5)
    assert len(ground) + len(nonground) == len(near)

    pw.params = PatchWorkParams(atat_on=True, sensor_height=9.0)
    pw.estimate_ground(cloud)
    assert pw.sensor_height == 9.0


def test_invalid_parameters():
    with pytest.raises(ValueError):
        PatchWorkParams(num_iter=0)
    with pytest.raises(ValueError):
        PatchWork(PatchWorkParams(sensor_model="UNKNOWN"))