from __future__ import annotations

import logging

import numpy as np

from hexvoxel.util.math import normalize_rows
from hexvoxel.world.chunk import Chunk
from hexvoxel.world.density import interpolate
from hexvoxel.world.lattice import space_to_lattice

logger = logging.getLogger(__name__)

# Half the distance between stacked layers' nearest points; sample offset length.
HALF_STEP = float(np.sqrt(3.0)) / 2.0


def edge_mask(chunk: Chunk, field, points: np.ndarray) -> np.ndarray:
    """Gradient edge test for (N,3) global lattice points.

    Samples the chunk's interpolated density half a step on either side of each
    point along the field gradient (taken as a Euclidean direction). A point
    is on the surface when exactly one sample lands below the threshold.
    """
    p = np.asarray(points, dtype=np.float64).reshape(-1, 3)
    offset = normalize_rows(field.gradient(p)) * HALF_STEP
    delta = space_to_lattice(offset)

    threshold = chunk.params.threshold
    ahead_low = interpolate(chunk, p + delta) < threshold
    behind_low = interpolate(chunk, p - delta) < threshold
    return ahead_low != behind_low


def is_edge(chunk: Chunk, field, point) -> bool:
    return bool(edge_mask(chunk, field, np.asarray(point, dtype=np.float64).reshape(1, 3))[0])


def cell_points(chunk: Chunk) -> np.ndarray:
    """Global lattice coordinates of every cell in the chunk, i-major (matches grid order)."""
    local = np.indices(chunk.dims).reshape(3, -1).T
    return local + chunk.lattice_offset[None, :]


def build_occupancy(chunk: Chunk, field) -> np.ndarray:
    """Fresh occupancy grid for a chunk whose corners are ready."""
    grid = edge_mask(chunk, field, cell_points(chunk)).reshape(chunk.dims)
    logger.debug("%r occupancy: %d solid cells", chunk, int(np.count_nonzero(grid)))
    return grid
