"""Loaders for numbered point cloud sequences on disk."""

from __future__ import annotations

import itertools
import logging
from pathlib import Path

import numpy as np

from .pointcloud import PointCloud

logger = logging.getLogger(__name__)

_KITTI_MAX_FLOATS = 3_000_000
_PCD_MAX_FLOATS = 1_000_000


def _frame_path(directory: Path, idx: int, extension: str) -> Path:
    return directory / f"{idx:06d}.{extension}"


def _count_frames(directory: Path, extension: str) -> int:
    return next(
        n for n in itertools.count() if not _frame_path(directory, n, extension).exists()
    )


def _read_floats(path: Path, max_floats: int, what: str) -> np.ndarray:
    try:
        with path.open("rb") as stream:
            data = stream.read(max_floats * 4)
    except FileNotFoundError:
        raise FileNotFoundError(f"Could not open the {what}: {path}") from None
    return np.frombuffer(data, dtype="<f4", count=len(data) // 4).copy()


def _split_xyzi(floats: np.ndarray) -> tuple[np.ndarray, np.ndarray]:
    num_points = len(floats) // 4
    data = floats[: num_points * 4].reshape(num_points, 4)
    return data[:, :3], data[:, 3]


class KittiLoader:
    """Reads ``velodyne/*.bin`` scans and ``labels/*.label`` files of a KITTI sequence."""

    def __init__(self, abs_path, with_labels: bool = True) -> None:
        root = Path(abs_path)
        self.pc_path = root / "velodyne"
        self.label_path = root / "labels"
        self.with_labels = with_labels
        self.num_frames = _count_frames(self.pc_path, "bin")
        num_labels = _count_frames(self.label_path, "label")
        if self.num_frames == 0:
            logger.error("No files in %s", self.pc_path)
        if self.num_frames != num_labels:
            logger.error("The # of point clouds and # of labels are not same")
        logger.info("Total %d files are loaded", self.num_frames)

    def __len__(self) -> int:
        return self.num_frames

    def get_cloud(self, idx: int) -> PointCloud:
        """Load scan ``idx``, with its semantic labels when the loader uses them."""
        floats = _read_floats(_frame_path(self.pc_path, idx, "bin"), _KITTI_MAX_FLOATS, ".bin file")
        xyz, intensity = _split_xyzi(floats)
        if not self.with_labels:
            return PointCloud(xyz, intensity)

        num_points = len(xyz)
        label_file = _frame_path(self.label_path, idx, "label")
        try:
            with label_file.open("rb") as stream:
                data = stream.read(num_points * 4)
        except FileNotFoundError:
            raise FileNotFoundError(f"Could not open the label: {label_file}") from None
        raw = np.zeros(num_points, dtype=np.uint32)
        read = np.frombuffer(data, dtype="<u4", count=len(data) // 4)
        raw[: len(read)] = read
        return PointCloud(
            xyz,
            intensity,
            (raw & 0xFFFF).astype(np.uint16),
            (raw >> 16).astype(np.uint16),
        )


class PcdLoader:
    """Reads numbered ``*.pcd`` frames holding raw x, y, z, intensity float records."""

    def __init__(self, pcd_path) -> None:
        self.pcd_path = Path(pcd_path)
        self.num_frames = _count_frames(self.pcd_path, "pcd")
        if self.num_frames == 0:
            logger.error("No files in %s", self.pcd_path)

    def __len__(self) -> int:
        return self.num_frames

    def cloud(self, i: int) -> PointCloud:
        """Load frame ``i`` as an XYZ cloud."""
        floats = _read_floats(_frame_path(self.pcd_path, i, "pcd"), _PCD_MAX_FLOATS, "file")
        xyz, _ = _split_xyzi(floats)
        return PointCloud(xyz)