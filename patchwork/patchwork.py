"""Region-wise ground segmentation of LiDAR point clouds over a concentric zone model."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, replace

import numpy as np

from .estimation import (
    PCAFeature,
    PatchStatus,
    consensus_set_based_height_estimation,
    determine_ground_likelihood_status,
    estimate_plane,
    extract_initial_seeds,
)
from .pointcloud import PointCloud
from .tictoc import TicToc
from .zone_models import ConcentricZoneModel

logger = logging.getLogger(__name__)

_TWO_PI = 2.0 * math.pi
_REJECTED = (
    PatchStatus.TOO_TILTED,
    PatchStatus.GLOBALLY_TOO_HIGH_ELEVATION,
    PatchStatus.TOO_HIGH_ELEVATION,
)


@dataclass(frozen=True)
class PatchWorkParams:
    """Tuning parameters of the ground segmentation."""

    sensor_model: str = "HDL-64E"
    sensor_height: float = 1.723
    verbose: bool = False
    atat_on: bool = False
    max_r_for_atat: float = 5.0
    num_sectors_for_atat: int = 20
    noise_bound: float = 0.2
    num_iter: int = 3
    num_lpr: int = 20
    num_min_pts: int = 10
    th_seeds: float = 0.5
    th_dist: float = 0.125
    max_range: float = 80.0
    min_range: float = 2.7
    uprightness_thr: float = 0.5
    adaptive_seed_selection_margin: float = -1.1
    using_global_thr: bool = True
    global_elevation_thr: float = 0.0
    elevation_thr: tuple[float, ...] = (0.523, 0.746, 0.879, 1.125)
    flatness_thr: tuple[float, ...] = (0.0005, 0.000725, 0.001, 0.001)
    visualize: bool = True

    def __post_init__(self) -> None:
        if self.num_iter < 1:
            raise ValueError("num_iter must be at least 1")
        if self.num_sectors_for_atat < 1:
            raise ValueError("num_sectors_for_atat must be at least 1")
        object.__setattr__(self, "elevation_thr", tuple(self.elevation_thr))
        object.__setattr__(self, "flatness_thr", tuple(self.flatness_thr))


def _azimuth(x: np.ndarray, y: np.ndarray) -> np.ndarray:
    theta = np.arctan2(y, x)
    return np.where(theta > 0, theta, theta + _TWO_PI)


class PatchWork:
    """Splits a cloud into ground and non-ground points patch by patch."""

    def __init__(self, params: PatchWorkParams | None = None) -> None:
        self.params = params if params is not None else PatchWorkParams()
        p = self.params
        if p.using_global_thr:
            logger.warning("Global elevation threshold is ON: %f", p.global_elevation_thr)
        else:
            logger.info("Global elevation threshold is OFF.")
        logger.info("Sensor model: %s, height: %.3f", p.sensor_model, p.sensor_height)
        logger.info("Range: [%.2f, %.2f]", p.min_range, p.max_range)

        self.zone_model = ConcentricZoneModel(
            p.sensor_model, p.sensor_height, p.min_range, p.max_range
        )
        self.patch_indices: list[tuple[int, int]] = [
            (ring, sector)
            for ring, num_sectors in enumerate(self.zone_model.num_sectors_per_ring)
            for sector in range(num_sectors)
        ]
        self._ring_offsets = np.concatenate(
            [[0], np.cumsum(self.zone_model.num_sectors_per_ring)]
        ).astype(np.intp)

        self.time_taken = 0.0
        self.patch_statuses: dict[tuple[int, int], PatchStatus] = {}
        self.patch_features: dict[tuple[int, int], PCAFeature] = {}
        self.reverted_points_by_flatness = PointCloud.empty()
        self.rejected_points_by_elevation = PointCloud.empty()
        self._needs_height_estimate = True
        self._low_margin: float | None = None

    @property
    def sensor_height(self) -> float:
        return self.params.sensor_height

    def _close_zone_margin(self) -> float:
        if self._low_margin is None:
            h = self.params.sensor_height
            self._low_margin = -0.1 if h == 0.0 else self.params.adaptive_seed_selection_margin * h
        return self._low_margin

    def _segment_patch(
        self, points: np.ndarray, low_margin: float | None
    ) -> tuple[PCAFeature, np.ndarray]:
        """Fit the ground plane of one patch; return the feature and the ground mask."""
        p = self.params
        seeds = extract_initial_seeds(points, p.num_lpr, p.th_seeds, low_margin)
        feature = PCAFeature()
        ground = np.zeros(len(points), dtype=bool)
        for _ in range(p.num_iter):
            feature = estimate_plane(points[seeds], p.th_dist)
            with np.errstate(invalid="ignore"):
                ground = points @ feature.normal < feature.th_dist_d
            seeds = ground
        return feature, ground

    def _patch_groups(self, xyz: np.ndarray) -> dict[int, np.ndarray]:
        """Map patch number to the indices (into ``xyz``) of the points it holds."""
        zm = self.zone_model
        x, y = xyz[:, 0], xyz[:, 1]
        sqr_r = x * x + y * y
        bounds = np.asarray(zm.sqr_boundary_ranges, dtype=np.float64)
        ring = np.searchsorted(bounds, sqr_r, side="left") - 1
        valid = (sqr_r >= bounds[0]) & (sqr_r <= zm.sqr_max_range) & (ring >= 0)
        members = np.flatnonzero(valid)
        ring = ring[members]

        num_sectors = np.asarray(zm.num_sectors_per_ring, dtype=np.intp)[ring]
        theta = _azimuth(x[members], y[members])
        sector = np.minimum((theta / (_TWO_PI / num_sectors)).astype(np.intp), num_sectors - 1)
        patch_id = self._ring_offsets[ring] + sector

        order = np.argsort(patch_id, kind="stable")
        sorted_ids = patch_id[order]
        starts = np.flatnonzero(np.r_[True, sorted_ids[1:] != sorted_ids[:-1]]) if len(order) else []
        groups = np.split(members[order], starts[1:] if len(starts) else [])
        return {
            int(sorted_ids[start]): group
            for start, group in zip(starts, groups)
        }

    def estimate_ground(self, cloud: PointCloud) -> tuple[PointCloud, PointCloud]:
        """Return (ground, non-ground) points of ``cloud``.

        Points below the plausible ground and outside the zone model are dropped.
        """
        p = self.params
        if self._needs_height_estimate and p.atat_on:
            self.estimate_sensor_height(cloud)
            self._needs_height_estimate = False
            logger.info("Complete to estimate the sensor height: %f", self.sensor_height)
            p = self.params

        timer = TicToc()
        xyz = cloud.xyz.astype(np.float64)
        with np.errstate(invalid="ignore"):
            kept = np.flatnonzero(~(xyz[:, 2] < -p.sensor_height - 2.0))
        groups = self._patch_groups(xyz[kept])

        self.patch_statuses = {}
        self.patch_features = {}
        reverted: list[np.ndarray] = []
        rejected: list[np.ndarray] = []
        ground_parts: list[np.ndarray] = []
        nonground_parts: list[np.ndarray] = []
        max_close_ring = self.zone_model.max_ring_index_in_first_zone
        empty = np.empty(0, dtype=np.intp)

        for number, (ring, sector) in enumerate(self.patch_indices):
            local = groups.get(number, empty)
            indices = kept[local]
            if len(indices) > p.num_min_pts:
                indices = indices[np.argsort(xyz[indices, 2], kind="stable")]
                low_margin = self._close_zone_margin() if ring < max_close_ring else None
                feature, mask = self._segment_patch(xyz[indices], low_margin)
                with np.errstate(divide="ignore", invalid="ignore"):
                    surface_variable = feature.surface_variable
                status = determine_ground_likelihood_status(
                    ring, abs(float(feature.normal[2])), float(feature.mean[2]),
                    surface_variable, p,
                )
                ground_idx, nonground_idx = indices[mask], indices[~mask]
                self.patch_features[(ring, sector)] = feature
            else:
                status = PatchStatus.FEW_POINTS
                ground_idx, nonground_idx = indices, empty
            self.patch_statuses[(ring, sector)] = status

            if status in _REJECTED:
                if p.verbose and status is PatchStatus.TOO_HIGH_ELEVATION:
                    logger.info(
                        "[Elevation] Rejection operated at ring %d: %f < %f",
                        ring, -p.sensor_height + p.elevation_thr[ring], feature.mean[2],
                    )
                    rejected.append(ground_idx)
                elif p.verbose and status is PatchStatus.GLOBALLY_TOO_HIGH_ELEVATION:
                    logger.info(
                        "[Global elevation] %f > %f", feature.mean[2], p.global_elevation_thr
                    )
                nonground_parts.extend((ground_idx, nonground_idx))
            else:
                if p.verbose and status is PatchStatus.FLAT_ENOUGH:
                    logger.info(
                        "[Flatness] Recovery operated at ring %d: %f > %f",
                        ring, p.flatness_thr[ring], surface_variable,
                    )
                    reverted.append(ground_idx)
                ground_parts.append(ground_idx)
                nonground_parts.append(nonground_idx)

        def gather(parts: list[np.ndarray]) -> np.ndarray:
            return np.concatenate(parts) if parts else empty

        self.reverted_points_by_flatness = cloud.select(gather(reverted))
        self.rejected_points_by_elevation = cloud.select(gather(rejected))
        ground = cloud.select(gather(ground_parts))
        nonground = cloud.select(gather(nonground_parts))
        self.time_taken = timer.toc()
        return ground, nonground

    def estimate_sensor_height(self, cloud: PointCloud) -> float:
        """Estimate the sensor height from ground near the vehicle and adopt it.

        Raises ValueError when no sector near the sensor holds usable ground.
        """
        p = self.params
        xyz = cloud.xyz.astype(np.float64)
        x, y = xyz[:, 0], xyz[:, 1]
        r = np.hypot(x, y)
        inside = np.flatnonzero((r <= p.max_r_for_atat) & (r > p.min_range))

        num_sectors = p.num_sectors_for_atat
        theta = _azimuth(x[inside], y[inside])
        sector = np.minimum(
            (theta / (_TWO_PI / num_sectors)).astype(np.intp), num_sectors - 1
        )

        elevations: list[float] = []
        linearities: list[float] = []
        planarities: list[float] = []
        for s in range(num_sectors):
            members = inside[sector == s]
            if len(members) < p.num_min_pts:
                continue
            feature, _ = self._segment_patch(xyz[members], None)
            if abs(feature.normal[2]) > p.uprightness_thr and feature.linearity < 0.9:
                elevations.append(float(feature.mean[2]))
                linearities.append(feature.linearity)
                planarities.append(feature.planarity)

        logger.info("[ATAT] N: %d", len(elevations))
        if not elevations:
            raise ValueError(
                "No valid ground points for ATAT! Please check the input data "
                "and `max_r_for_ATAT`"
            )
        values = np.asarray(elevations)
        ranges = p.noise_bound * np.asarray(linearities)
        weights = np.asarray(planarities) ** 2 / (p.noise_bound * p.noise_bound)
        if len(values) == 1:
            estimated = float(values[0])
        else:
            estimated = consensus_set_based_height_estimation(values, ranges, weights)
        logger.info("[ATAT] Elevation of the ground w.r.t. the origin is %f m", estimated)

        self.params = replace(p, sensor_height=-estimated)
        self._low_margin = None
        return self.sensor_height