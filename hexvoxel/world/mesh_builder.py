from __future__ import annotations

import itertools
import logging
from typing import TYPE_CHECKING, Sequence

import numpy as np

from hexvoxel.util.math import normalize_rows
from hexvoxel.world.chunk import Chunk, MeshBuffers
from hexvoxel.world.debug import CellReport, GenerationObserver, PointReport
from hexvoxel.world.lattice import LatticeCoord, lattice_to_space, space_to_lattice
from hexvoxel.world.occupancy import HALF_STEP
from hexvoxel.world.params import PointMode
from hexvoxel.world.triangulator import Triangulator

if TYPE_CHECKING:
    from hexvoxel.world.world import World

logger = logging.getLogger(__name__)

# A-B below this counts as flat for the zero-crossing solve
_FLAT_EPS = 1e-9


def padded_occupancy(chunk: Chunk, world: "World") -> np.ndarray:
    """Chunk occupancy with a one-cell border filled in from neighbouring chunks.

    Index [i+1, j+1, k+1] holds local cell (i, j, k).
    """
    sx, sy, sz = chunk.dims
    pad = np.zeros((sx + 2, sy + 2, sz + 2), dtype=bool)
    pad[1:-1, 1:-1, 1:-1] = chunk.occupancy

    border = np.ones_like(pad)
    border[1:-1, 1:-1, 1:-1] = False
    off = chunk.lattice_offset - 1
    for i, j, k in np.argwhere(border):
        coord = LatticeCoord(int(off[0] + i), int(off[1] + j), int(off[2] + k))
        pad[i, j, k] = world.occupancy_at(coord)
    return pad


def report_points(chunk: Chunk, observers: Sequence[GenerationObserver]) -> None:
    mode = chunk.params.point_mode
    if not observers or mode is PointMode.NONE:
        return
    if mode is PointMode.GRADIENT:
        cells = np.argwhere(chunk.occupancy)
    else:
        cells = np.indices(chunk.dims).reshape(3, -1).T
    if cells.size == 0:
        return
    positions = lattice_to_space(cells + chunk.lattice_offset[None, :])
    for cell, pos in zip(cells, positions):
        report = PointReport(
            chunk=chunk.coord,
            cell=LatticeCoord(int(cell[0]), int(cell[1]), int(cell[2])),
            position=pos,
            solid=bool(chunk.occupancy[cell[0], cell[1], cell[2]]),
        )
        for obs in observers:
            obs.on_point(report)


def offset_displacement(positions: np.ndarray, field) -> np.ndarray:
    """Two-scale jitter along the raw noise gradient (fine + coarse)."""
    return 0.5 * field.surface_normal(positions * 50.0) + 2.0 * field.surface_normal(positions * 3.0)


def smoothing_displacement(lattice_points: np.ndarray, field, threshold: float) -> np.ndarray:
    """Move each vertex along its density gradient onto the estimated threshold crossing.

    Density is sampled half a step either side (A ahead, B behind) and the
    crossing is found by linear interpolation between them. Vertices with a
    vanishing gradient or A == B stay where they are.
    """
    p = np.asarray(lattice_points, dtype=np.float64).reshape(-1, 3)
    unit = normalize_rows(field.gradient(p))
    delta = space_to_lattice(unit * HALF_STEP)

    a = np.asarray(field.density(p + delta), dtype=np.float64)
    b = np.asarray(field.density(p - delta), dtype=np.float64)
    half_diff = (a - b) / 2.0

    ok = (np.abs(half_diff) > _FLAT_EPS) & np.any(unit != 0.0, axis=1)
    t = np.zeros_like(a)
    t[ok] = ((a[ok] + b[ok]) / 2.0 - float(threshold)) / half_diff[ok] * -HALF_STEP
    return unit * t[:, None]


def build_chunk_mesh(
    chunk: Chunk,
    world: "World",
    field,
    observers: Sequence[GenerationObserver] = (),
) -> MeshBuffers:
    """Triangulate every cell of a chunk whose occupancy grid is current.

    Cells are visited in i, j, k order and their geometry is appended as-is:
    no vertex welding across cells.
    """
    if chunk.uniform:
        return MeshBuffers.empty()

    params = chunk.params
    tri = Triangulator(third_diagonal=params.third_diagonal)
    pad = padded_occupancy(chunk, world)

    def solid(c: tuple[int, int, int]) -> bool:
        return bool(pad[c[0] + 1, c[1] + 1, c[2] + 1])

    verts: list[np.ndarray] = []
    tris: list[np.ndarray] = []
    norms: list[np.ndarray] = []
    count = 0
    sx, sy, sz = chunk.dims
    for i, j, k in itertools.product(range(sx), range(sy), range(sz)):
        geo = tri.build((i, j, k), solid, base=count)
        if observers:
            report = CellReport(
                chunk=chunk.coord,
                cell=LatticeCoord(i, j, k),
                mask=geo.mask,
                shape=geo.shape,
                third_diagonal=geo.third_diagonal,
                n_triangles=geo.n_triangles,
            )
            for obs in observers:
                obs.on_cell(report)
        if geo.n_vertices == 0:
            continue
        verts.append(geo.vertices)
        tris.append(geo.triangles)
        norms.append(geo.normals)
        count += geo.n_vertices

    if count == 0:
        return MeshBuffers.empty()

    lattice = np.concatenate(verts, axis=0) + chunk.lattice_offset[None, :]
    positions = lattice_to_space(lattice)

    # Both passes are measured from the undisplaced vertex and summed.
    shift = np.zeros_like(positions)
    if params.offset_land:
        shift += offset_displacement(positions, field)
    if params.smooth_land:
        shift += smoothing_displacement(lattice, field, params.threshold)
    positions = positions + shift

    mesh = MeshBuffers(
        vertices=positions.astype(np.float32),
        triangles=np.concatenate(tris, axis=0).astype(np.uint32),
        normals=np.concatenate(norms, axis=0).astype(np.float32),
    )
    logger.debug("%r mesh: %d vertices, %d triangles", chunk, mesh.n_vertices, mesh.n_triangles)
    return mesh
