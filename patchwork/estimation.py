"""Plane fitting, seed selection and patch classification used by ground segmentation."""

from __future__ import annotations

import enum
import math
from dataclasses import dataclass, field
from typing import Protocol, Sequence

import numpy as np

_COLOR_MAP = {0: 0.55, 1: 0.2, 2: 0.0, 3: 1.0, 4: 0.8}


class PatchStatus(enum.IntEnum):
    """Outcome of the ground likelihood estimation of one patch."""

    NOT_ASSIGNED = -2
    FEW_POINTS = -1
    UPRIGHT_ENOUGH = 0
    FLAT_ENOUGH = 1
    TOO_HIGH_ELEVATION = 2
    TOO_TILTED = 3
    GLOBALLY_TOO_HIGH_ELEVATION = 4

    @property
    def color(self) -> float | None:
        """Visualisation colour value of the status, or None when it has none."""
        return _COLOR_MAP.get(int(self))


def _nan_vector() -> np.ndarray:
    return np.full(3, math.nan)


@dataclass
class PCAFeature:
    """Plane fitted to a set of points by principal component analysis.

    The plane satisfies ``normal . p + d = 0``; ``th_dist_d`` is the distance
    threshold shifted by ``-d`` so that ``normal . p < th_dist_d`` marks ground.
    """

    principal: np.ndarray = field(default_factory=_nan_vector)
    normal: np.ndarray = field(default_factory=_nan_vector)
    singular_values: np.ndarray = field(default_factory=_nan_vector)
    mean: np.ndarray = field(default_factory=_nan_vector)
    d: float = math.nan
    th_dist_d: float = math.nan
    linearity: float = math.nan
    planarity: float = math.nan

    @property
    def surface_variable(self) -> float:
        """Smallest singular value relative to the sum of all three."""
        sv = self.singular_values
        return float(sv.min() / (sv[0] + sv[1] + sv[2]))


class StatusThresholds(Protocol):
    """Parameters read by :func:`determine_ground_likelihood_status`."""

    sensor_height: float
    uprightness_thr: float
    elevation_thr: Sequence[float]
    flatness_thr: Sequence[float]
    using_global_thr: bool
    global_elevation_thr: float


def estimate_plane(points, th_dist: float) -> PCAFeature:
    """Fit a plane to an (N, 3) array of points.

    The normal is the least singular vector of the covariance, oriented with a
    non-negative z. For no points every field of the result is NaN.
    """
    xyz = np.asarray(points, dtype=np.float64).reshape(-1, 3)
    if len(xyz) == 0:
        return PCAFeature()

    mean = xyz.mean(axis=0)
    centered = xyz - mean
    cov = centered.T @ centered / len(xyz)

    u, singular_values, _ = np.linalg.svd(cov)
    s0, s1, s2 = singular_values
    with np.errstate(divide="ignore", invalid="ignore"):
        linearity = float((s0 - s1) / s0)
        planarity = float((s1 - s2) / s0)

    normal = u[:, 2].copy()
    if normal[2] < 0:
        normal = -normal
    d = -float(normal @ mean)
    return PCAFeature(
        principal=u[:, 0].copy(),
        normal=normal,
        singular_values=singular_values,
        mean=mean,
        d=d,
        th_dist_d=th_dist - d,
        linearity=linearity,
        planarity=planarity,
    )


def extract_initial_seeds(
    points,
    num_lpr: int,
    th_seeds: float,
    low_margin: float | None = None,
) -> np.ndarray:
    """Return a boolean mask of the seed points of an (N, 3) array sorted by z.

    The low point representative (LPR) is the mean height of the ``num_lpr``
    lowest points; seeds are all points lower than ``LPR + th_seeds``. When
    ``low_margin`` is given, the leading points below it are left out of the LPR.
    """
    z = np.asarray(points, dtype=np.float64).reshape(-1, 3)[:, 2]

    init_idx = 0
    if low_margin is not None:
        above = np.flatnonzero(z >= low_margin)
        init_idx = int(above[0]) if len(above) else len(z)

    lowest = z[init_idx : init_idx + max(num_lpr, 0)]
    lpr_height = float(lowest.sum() / len(lowest)) if len(lowest) else 0.0
    return z < lpr_height + th_seeds


def consensus_set_based_height_estimation(values, ranges, weights) -> float:
    """Estimate a scalar from noisy measurements by maximising their consensus set.

    Each measurement ``values[i]`` is trusted within ``+-ranges[i]`` and
    carries ``weights[i]``. Raises ValueError on mismatched shapes or a single
    measurement.
    """
    x = np.asarray(values, dtype=np.float64).reshape(-1)
    r = np.asarray(ranges, dtype=np.float64).reshape(-1)
    w = np.asarray(weights, dtype=np.float64).reshape(-1)
    if x.shape != r.shape or x.shape != w.shape:
        raise ValueError("values, ranges and weights must have the same size")
    if len(x) < 2:
        raise ValueError("At least two measurements are required")

    n = len(x)
    bounds = np.column_stack([x - r, x + r]).ravel()
    idx = np.repeat(np.arange(n), 2)
    eps = np.tile([1.0, -1.0], n)
    order = np.argsort(bounds, kind="stable")
    idx, eps = idx[order], eps[order]

    xi, ri, wi = x[idx], r[idx], w[idx]
    cardinal = np.cumsum(eps)
    dot_weights_consensus = np.cumsum(eps * wi)
    dot_x_weights = np.cumsum(eps * wi * xi)
    ranges_inverse_sum = r.sum() - np.cumsum(eps * ri)
    sum_xi = np.cumsum(eps * xi)
    sum_xi_square = np.cumsum(eps * xi * xi)

    with np.errstate(divide="ignore", invalid="ignore"):
        x_hat = dot_x_weights / dot_weights_consensus
        residual = cardinal * x_hat * x_hat + sum_xi_square - 2 * sum_xi * x_hat
        x_cost = residual + ranges_inverse_sum
    return float(x_hat[np.nanargmin(x_cost)])


def determine_ground_likelihood_status(
    ring_idx: int,
    z_vec: float,
    z_elevation: float,
    surface_variable: float,
    params: StatusThresholds,
) -> PatchStatus:
    """Classify a fitted patch by uprightness, elevation and flatness."""
    if z_vec < params.uprightness_thr:
        return PatchStatus.TOO_TILTED
    if ring_idx < len(params.elevation_thr):
        if z_elevation > -params.sensor_height + params.elevation_thr[ring_idx]:
            if params.flatness_thr[ring_idx] > surface_variable:
                return PatchStatus.FLAT_ENOUGH
            return PatchStatus.TOO_HIGH_ELEVATION
        return PatchStatus.UPRIGHT_ENOUGH
    if params.using_global_thr and z_elevation > params.global_elevation_thr:
        return PatchStatus.GLOBALLY_TOO_HIGH_ELEVATION
    return PatchStatus.UPRIGHT_ENOUGH