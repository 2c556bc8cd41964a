"""Ground-truth statistics for SemanticKITTI-labeled clouds."""

from __future__ import annotations

import math
from pathlib import Path

import numpy as np

from .pointcloud import PointCloud

SENSOR_HEIGHT = 1.73

UNLABELED = 0
OUTLIER = 1
NUM_ALL_CLASSES = 34
ROAD = 40
PARKING = 44
SIDEWALK = 48
OTHER_GROUND = 49
BUILDING = 50
FENCE = 51
LANE_MARKING = 60
VEGETATION = 70
TERRAIN = 72

TRUE_POSITIVE = 3
TRUE_NEGATIVE = 2
FALSE_POSITIVE = 1
FALSE_NEGATIVE = 0

NUM_ZEROS = 5

VEGETATION_THR = -SENSOR_HEIGHT * 3 / 4

OUTLIER_CLASSES = (UNLABELED, OUTLIER)
GROUND_CLASSES = (ROAD, PARKING, SIDEWALK, OTHER_GROUND, LANE_MARKING, VEGETATION, TERRAIN)
GROUND_CLASSES_EXCEPT_TERRAIN = (ROAD, PARKING, SIDEWALK, OTHER_GROUND, LANE_MARKING)

ALL_CLASSES = (
    0, 1, 10, 11, 13, 15, 16, 18, 20, 30, 31, 32, 40, 44, 48, 49, 50,
    51, 52, 60, 70, 71, 72, 80, 81, 99, 252, 253, 254, 255, 256, 257, 258, 259,
)


def _labels(cloud: PointCloud) -> np.ndarray:
    if not cloud.is_labeled:
        raise ValueError("This function only supports labeled point clouds")
    return cloud.label


def _ground_mask(cloud: PointCloud) -> np.ndarray:
    labels = _labels(cloud)
    low_enough = cloud.z.astype(np.float64) < VEGETATION_THR
    return np.isin(labels, GROUND_CLASSES) & ((labels != VEGETATION) | low_enough)


def _percent(numerator: int, denominator: int) -> float:
    if denominator == 0:
        return math.nan if numerator == 0 else math.copysign(math.inf, numerator)
    return numerator / denominator * 100


def count_num_ground(cloud: PointCloud) -> int:
    """Count points whose label is a ground class (vegetation only when low)."""
    return int(np.count_nonzero(_ground_mask(cloud)))


def count_num_each_class(cloud: PointCloud) -> dict[int, int]:
    """Count ground points per ground class."""
    ground_labels = _labels(cloud)[_ground_mask(cloud)]
    return {cls: int(np.count_nonzero(ground_labels == cls)) for cls in GROUND_CLASSES}


def count_num_outliers(cloud: PointCloud) -> int:
    """Count unlabeled and outlier points."""
    return int(np.count_nonzero(np.isin(_labels(cloud), OUTLIER_CLASSES)))


def discern_ground(cloud: PointCloud) -> tuple[PointCloud, PointCloud]:
    """Split a labeled cloud into true ground and non-ground, dropping outliers."""
    valid = ~np.isin(_labels(cloud), OUTLIER_CLASSES)
    ground = _ground_mask(cloud)
    return cloud.select(valid & ground), cloud.select(valid & ~ground)


def calculate_precision_recall(
    cloud: PointCloud,
    ground_estimated: PointCloud,
    consider_outliers: bool = True,
) -> tuple[float, float]:
    """Return (precision, recall) in percent of an estimated ground cloud."""
    _labels(cloud)
    num_ground_est = len(ground_estimated)
    num_ground_gt = count_num_ground(cloud)
    num_tp = count_num_ground(ground_estimated)
    if consider_outliers:
        num_ground_est -= count_num_outliers(ground_estimated)
    return _percent(num_tp, num_ground_est), _percent(num_tp, num_ground_gt)


def save_all_labels(cloud: PointCloud, abs_dir, seq: str, count: int) -> Path:
    """Write the per-class point counts of a cloud as one CSV line; return the path."""
    labels = _labels(cloud)
    counts = [int(np.count_nonzero(labels == cls)) for cls in ALL_CLASSES]
    path = Path(abs_dir) / seq / f"{str(count).zfill(NUM_ZEROS)}.csv"
    with path.open("w") as out:
        out.write(",".join(map(str, counts)) + "\n")
    return path


def save_all_accuracy(
    cloud: PointCloud,
    ground_estimated: PointCloud,
    acc_filename,
) -> tuple[float, dict[int, int], dict[int, int]]:
    """Append per-class counts and accuracy to a file.

    Returns (accuracy, ground-truth counts of ``cloud``, counts within the estimate).
    """
    _labels(ground_estimated)
    num_true = count_num_ground(cloud)
    num_total_est = len(ground_estimated) - count_num_outliers(ground_estimated)
    num_total_gt = len(cloud) - count_num_outliers(cloud)

    num_false = num_total_gt - num_true
    num_tp = count_num_ground(ground_estimated)
    num_fp = num_total_est - num_tp
    accuracy = _percent(num_tp + (num_false - num_fp), num_total_gt)

    gt_counts = count_num_each_class(cloud)
    est_counts = count_num_each_class(ground_estimated)

    fields = [f"{est_counts[cls]},{gt_counts[cls]}" for cls in GROUND_CLASSES]
    with Path(acc_filename).open("a") as out:
        out.write(",".join(fields) + f",{accuracy:g}\n")
    return accuracy, gt_counts, est_counts


def pc2pcdfile(
    tp: PointCloud,
    fp: PointCloud,
    fn: PointCloud,
    tn: PointCloud,
    pcd_filename,
) -> None:
    """Save TP/FP/FN/TN points as an ASCII PCD whose intensity holds the outcome code."""
    parts = ((tp, TRUE_POSITIVE), (fp, FALSE_POSITIVE), (fn, FALSE_NEGATIVE), (tn, TRUE_NEGATIVE))
    xyz = np.concatenate([cloud.xyz for cloud, _ in parts])
    codes = np.concatenate(
        [np.full(len(cloud), code, dtype=np.float32) for cloud, code in parts]
    )
    n = len(xyz)
    header = [
        "# .PCD v0.7 - Point Cloud Data file format",
        "VERSION 0.7",
        "FIELDS x y z intensity",
        "SIZE 4 4 4 4",
        "TYPE F F F F",
        "COUNT 1 1 1 1",
        f"WIDTH {n}",
        "HEIGHT 1",
        "VIEWPOINT 0 0 0 1 0 0 0",
        f"POINTS {n}",
        "DATA ascii",
    ]
    with Path(pcd_filename).open("w") as out:
        out.write("\n".join(header) + "\n")
        for (x, y, z), code in zip(xyz.tolist(), codes.tolist()):
            out.write(f"{x:.8g} {y:.8g} {z:.8g} {code:.8g}\n")