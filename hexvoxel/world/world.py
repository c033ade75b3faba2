from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Sequence, Set

import numpy as np

from hexvoxel.world.chunk import FACE_DIRECTIONS, Chunk, MeshBuffers
from hexvoxel.world.debug import GenerationObserver
from hexvoxel.world.density import DensityField, compute_corners
from hexvoxel.world.lattice import ChunkCoord, LatticeCoord, lattice_to_space, to_lattice, to_space
from hexvoxel.world.mesh_builder import build_chunk_mesh, report_points
from hexvoxel.world.occupancy import build_occupancy
from hexvoxel.world.params import TerrainParams

logger = logging.getLogger(__name__)

_SURFACE_SEARCH_LAYERS = 64


@dataclass(frozen=True)
class ChunkWindow:
    radius: int  # chunks on each side along x and z
    height: int  # chunk layers on each side along y


class World:
    """Owns the chunks and runs their generation, one chunk at a time.

    Occupancy lookups for cells that have no loaded chunk answer False.
    """

    def __init__(
        self,
        params: Optional[TerrainParams] = None,
        field=None,
        observers: Sequence[GenerationObserver] = (),
    ) -> None:
        self.params = params or TerrainParams()
        self.field = field if field is not None else DensityField(self.params)
        self.observers: list[GenerationObserver] = list(observers)
        self.chunks: Dict[ChunkCoord, Chunk] = {}

    # --- Chunk lifecycle ---
    def create_chunk(self, coord: ChunkCoord) -> Chunk:
        chunk = self.chunks.get(coord)
        if chunk is None:
            chunk = Chunk(coord, self.params)
            self.chunks[coord] = chunk
        return chunk

    def chunk_at(self, coord: ChunkCoord) -> Optional[Chunk]:
        return self.chunks.get(coord)

    def get_chunk(self, point) -> Optional[Chunk]:
        """Chunk containing a Euclidean position, if loaded."""
        return self.chunks.get(self.pos_to_chunk(point))

    def destroy_chunk(self, coord: ChunkCoord) -> None:
        del self.chunks[coord]

    # --- Conversions ---
    def to_euclidean(self, coord: LatticeCoord) -> np.ndarray:
        return to_space(coord)

    def to_lattice(self, point) -> LatticeCoord:
        return to_lattice(point)

    def chunk_of(self, coord: LatticeCoord) -> ChunkCoord:
        sx, sy, sz = self.params.chunk_dims
        return ChunkCoord(coord.x // sx, coord.y // sy, coord.z // sz)

    def pos_to_chunk(self, point) -> ChunkCoord:
        return self.chunk_of(self.to_lattice(point))

    def chunk_to_pos(self, coord: ChunkCoord) -> np.ndarray:
        """Euclidean position of a chunk's local cell (0,0,0)."""
        return lattice_to_space(coord.to_vector() * np.array(self.params.chunk_dims))

    # --- Occupancy ---
    def occupancy_at(self, coord: LatticeCoord) -> bool:
        chunk = self.chunks.get(self.chunk_of(coord))
        if chunk is None:
            return False
        off = chunk.lattice_offset
        return bool(chunk.occupancy[coord.x - off[0], coord.y - off[1], coord.z - off[2]])

    def query_occupancy(self, point) -> bool:
        return self.occupancy_at(self.to_lattice(point))

    # --- Generation ---
    def _link_neighbors(self, chunk: Chunk) -> None:
        c = chunk.coord
        found = [self.chunks.get(ChunkCoord(c.x + dx, c.y + dy, c.z + dz)) for dx, dy, dz in FACE_DIRECTIONS]
        chunk.set_neighbors(found)
        for face, nb in enumerate(found):
            if nb is not None:
                # face ^ 1 is the opposite face
                nb.set_neighbor(face ^ 1, chunk)

    def _prepare(self, coord: ChunkCoord) -> Chunk:
        """Density and occupancy passes for one chunk."""
        chunk = self.create_chunk(coord)
        for obs in self.observers:
            obs.on_chunk_start(coord)
        chunk.reset()
        self._link_neighbors(chunk)
        compute_corners(chunk, self.field)
        if not chunk.uniform:
            chunk.occupancy = build_occupancy(chunk, self.field)
            report_points(chunk, self.observers)
        return chunk

    def _publish(self, chunk: Chunk) -> MeshBuffers:
        mesh = build_chunk_mesh(chunk, self, self.field, self.observers)
        chunk.mesh = mesh
        for obs in self.observers:
            obs.on_chunk(chunk.coord, mesh.n_vertices, mesh.n_triangles)
        return mesh

    def generate_chunk(self, coord: ChunkCoord) -> MeshBuffers:
        """(Re)generate a chunk and return its new mesh; empty if the chunk is uniform."""
        chunk = self._prepare(coord)
        mesh = self._publish(chunk)
        logger.debug("generated %r: uniform=%s vertices=%d", chunk, chunk.uniform, mesh.n_vertices)
        return mesh

    def generate_region(self, coords: Iterable[ChunkCoord]) -> Dict[ChunkCoord, MeshBuffers]:
        """Generate several chunks with every occupancy grid in place before any meshing."""
        ordered = sorted(set(coords), key=lambda c: (c.y, c.z, c.x))
        prepared = [self._prepare(c) for c in ordered]
        out: Dict[ChunkCoord, MeshBuffers] = {}
        for chunk in prepared:
            out[chunk.coord] = self._publish(chunk)
        logger.info(
            "generated %d chunks (%d uniform), %d triangles",
            len(out),
            sum(1 for ch in prepared if ch.uniform),
            sum(m.n_triangles for m in out.values()),
        )
        return out

    def surface_layer(self, x: int = 0, z: int = 0) -> int:
        """Chunk layer whose corner samples on column (x, z) straddle the threshold.

        The crossing nearest y=0 wins; 0 when the searched span has none.
        """
        p = self.params
        if p.drop_off > 0.0:
            # Above/below this the bias alone keeps the density on one side.
            reach = (abs(p.noise_amplitude) + abs(p.threshold)) / (p.drop_off * p.chunk_height)
            span = int(math.ceil(reach)) + 1
        else:
            span = _SURFACE_SEARCH_LAYERS
        layers = np.arange(-span, span + 2)
        pts = np.zeros((len(layers), 3), dtype=np.float64)
        pts[:, 0] = x
        pts[:, 1] = layers * p.chunk_height
        pts[:, 2] = z
        below = np.asarray(self.field.density(pts)) < p.threshold
        hits = np.flatnonzero(below[:-1] != below[1:])
        if hits.size == 0:
            return 0
        return int(layers[hits[np.argmin(np.abs(layers[hits]))]])

    def surface_chunks(self, window: ChunkWindow) -> Set[ChunkCoord]:
        """Window of chunks around the surface above the origin."""
        return self.needed_chunks(self.chunk_to_pos(ChunkCoord(0, self.surface_layer(), 0)), window)

    def needed_chunks(self, center, window: ChunkWindow) -> Set[ChunkCoord]:
        c = self.pos_to_chunk(center)
        needed: Set[ChunkCoord] = set()
        for dy in range(-window.height, window.height + 1):
            for dz in range(-window.radius, window.radius + 1):
                for dx in range(-window.radius, window.radius + 1):
                    needed.add(ChunkCoord(c.x + dx, c.y + dy, c.z + dz))
        return needed
