"""Point clouds with optional per-point semantic labels, stored as numpy arrays."""

from __future__ import annotations

from dataclasses import dataclass, field

import numpy as np


def _empty_xyz() -> np.ndarray:
    return np.empty((0, 3), dtype=np.float32)


@dataclass(eq=False)
class PointCloud:
    """A set of 3D points with intensity and, when labeled, a class label and instance id.

    ``label`` and ``instance`` are ``None`` for clouds that carry no semantics.
    """

    xyz: np.ndarray = field(default_factory=_empty_xyz)
    intensity: np.ndarray | None = None
    label: np.ndarray | None = None
    instance: np.ndarray | None = None

    def __post_init__(self) -> None:
        self.xyz = np.asarray(self.xyz, dtype=np.float32).reshape(-1, 3)
        n = len(self.xyz)
        if self.intensity is None:
            self.intensity = np.zeros(n, dtype=np.float32)
        else:
            self.intensity = np.asarray(self.intensity, dtype=np.float32).reshape(-1)
        if self.label is None:
            if self.instance is not None:
                raise ValueError("An instance id requires a label")
        else:
            self.label = np.asarray(self.label, dtype=np.uint16).reshape(-1)
            if self.instance is None:
                self.instance = np.zeros(n, dtype=np.uint16)
            else:
                self.instance = np.asarray(self.instance, dtype=np.uint16).reshape(-1)
        for name in ("intensity", "label", "instance"):
            values = getattr(self, name)
            if values is not None and len(values) != n:
                raise ValueError(f"Field '{name}' has {len(values)} entries for {n} points")

    @classmethod
    def empty(cls, labeled: bool = False) -> PointCloud:
        """Return a cloud without points."""
        label = np.empty(0, dtype=np.uint16) if labeled else None
        return cls(_empty_xyz(), label=label)

    def __len__(self) -> int:
        return len(self.xyz)

    @property
    def is_labeled(self) -> bool:
        return self.label is not None

    @property
    def x(self) -> np.ndarray:
        return self.xyz[:, 0]

    @property
    def y(self) -> np.ndarray:
        return self.xyz[:, 1]

    @property
    def z(self) -> np.ndarray:
        return self.xyz[:, 2]

    def copy(self) -> PointCloud:
        """Return an independent copy of the cloud."""
        return PointCloud(
            self.xyz.copy(),
            self.intensity.copy(),
            None if self.label is None else self.label.copy(),
            None if self.instance is None else self.instance.copy(),
        )

    def select(self, mask) -> PointCloud:
        """Return the points picked by a boolean mask or an index array, in order."""
        index = np.asarray(mask)
        if index.dtype == bool and index.shape != (len(self),):
            raise ValueError(f"Mask of shape {index.shape} does not match {len(self)} points")
        if index.dtype != bool:
            index = index.astype(np.intp).reshape(-1)
        return PointCloud(
            self.xyz[index],
            self.intensity[index],
            None if self.label is None else self.label[index],
            None if self.instance is None else self.instance[index],
        )

    def concatenate(self, other: PointCloud) -> PointCloud:
        """Return this cloud followed by ``other``."""
        if self.is_labeled != other.is_labeled:
            if not len(self):
                return other.copy()
            if not len(other):
                return self.copy()
            raise ValueError("Cannot join a labeled cloud with an unlabeled one")
        labeled = self.is_labeled
        return PointCloud(
            np.concatenate([self.xyz, other.xyz]),
            np.concatenate([self.intensity, other.intensity]),
            np.concatenate([self.label, other.label]) if labeled else None,
            np.concatenate([self.instance, other.instance]) if labeled else None,
        )

    def with_labels(self, label: int) -> PointCloud:
        """Return a copy whose points all carry ``label``."""
        instance = (
            self.instance.copy()
            if self.instance is not None
            else np.zeros(len(self), dtype=np.uint16)
        )
        return PointCloud(
            self.xyz.copy(),
            self.intensity.copy(),
            np.full(len(self), label, dtype=np.uint16),
            instance,
        )