from __future__ import annotations

import logging

import numpy as np

from hexvoxel.util.math import normalize_rows
from hexvoxel.world.chunk import Chunk
from hexvoxel.world.noise import ValueNoise3D
from hexvoxel.world.params import TerrainParams

logger = logging.getLogger(__name__)


class DensityField:
    """Terrain density over lattice space: scaled value noise plus a vertical bias.

    density(p)  = amplitude * noise(p) + drop_off * p.y
    gradient(p) = amplitude * dnoise(p) + (0, drop_off, 0)

    Anything with the same density/gradient methods can stand in for it
    (tests use constant fields).
    """

    def __init__(self, params: TerrainParams) -> None:
        self.scale = float(params.noise_scale)
        self.amplitude = float(params.noise_amplitude)
        self.drop_off = float(params.drop_off)
        self.noise = ValueNoise3D(params.seed)

    def density(self, points: np.ndarray) -> np.ndarray:
        p = np.asarray(points, dtype=np.float64).reshape(-1, 3)
        values, _ = self.noise.sample_many(p, self.scale)
        return values * self.amplitude + p[:, 1] * self.drop_off

    def gradient(self, points: np.ndarray) -> np.ndarray:
        p = np.asarray(points, dtype=np.float64).reshape(-1, 3)
        _, grads = self.noise.sample_many(p, self.scale)
        grads = grads * self.amplitude
        grads[:, 1] += self.drop_off
        return grads

    def surface_normal(self, points: np.ndarray) -> np.ndarray:
        """Unit raw-noise gradient (no amplitude, no bias); zero where the gradient vanishes."""
        _, grads = self.noise.sample_many(points, self.scale)
        return normalize_rows(grads)


def _face_slices(face: int) -> tuple[tuple, tuple]:
    """Index expressions for (our corners, the neighbor's corners) on a shared face."""
    axis, side = divmod(face, 2)
    ours: list = [slice(None)] * 3
    theirs: list = [slice(None)] * 3
    ours[axis] = side
    theirs[axis] = 1 - side
    return tuple(ours), tuple(theirs)


def compute_corners(chunk: Chunk, field) -> None:
    """Fill the 8 corner densities of a chunk, then evaluate uniformity.

    Corners on a face shared with a neighbor whose own corner pass has
    finished are copied from it; the rest are sampled. A corner is written
    at most once.
    """
    copied = 0
    for face in range(6):
        nb = chunk.neighbor(face)
        if nb is None or not nb.corners_ready:
            continue
        ours, theirs = _face_slices(face)
        dst = chunk.corners[ours]
        todo = ~chunk.corner_ready[ours]
        dst[todo] = nb.corners[theirs][todo]
        chunk.corner_ready[ours] = True
        copied += int(np.count_nonzero(todo))

    missing = np.argwhere(~chunk.corner_ready)
    if missing.size:
        positions = chunk.lattice_offset[None, :] + missing * np.array(chunk.dims)[None, :]
        values = np.asarray(field.density(positions), dtype=np.float64).reshape(-1)
        chunk.corners[missing[:, 0], missing[:, 1], missing[:, 2]] = values
        chunk.corner_ready[missing[:, 0], missing[:, 1], missing[:, 2]] = True

    chunk.corners_ready = True
    chunk.uniform = is_uniform(chunk.corners, chunk.params.threshold)
    logger.debug("%r corners: copied=%d sampled=%d uniform=%s", chunk, copied, len(missing), chunk.uniform)


def is_uniform(corners: np.ndarray, threshold: float) -> bool:
    """True when every corner is at least one unit above, or one unit below, the threshold."""
    d = np.asarray(corners, dtype=np.float64) - float(threshold)
    return bool(np.all(d >= 1.0) or np.all(d <= -1.0))


def interpolate(chunk: Chunk, points: np.ndarray) -> np.ndarray:
    """Trilinear blend of the chunk's corners at (N,3) global lattice positions.

    Positions outside the chunk box extrapolate linearly.
    """
    p = np.asarray(points, dtype=np.float64).reshape(-1, 3)
    t = (p - chunk.lattice_offset[None, :]) / np.array(chunk.dims, dtype=np.float64)[None, :]
    xd, yd, zd = t[:, 0], t[:, 1], t[:, 2]
    c = chunk.corners

    c00 = c[0, 0, 0] * (1.0 - xd) + c[1, 0, 0] * xd
    c01 = c[0, 0, 1] * (1.0 - xd) + c[1, 0, 1] * xd
    c10 = c[0, 1, 0] * (1.0 - xd) + c[1, 1, 0] * xd
    c11 = c[0, 1, 1] * (1.0 - xd) + c[1, 1, 1] * xd

    c0 = c00 * (1.0 - yd) + c10 * yd
    c1 = c01 * (1.0 - yd) + c11 * yd
    return c0 * (1.0 - zd) + c1 * zd
