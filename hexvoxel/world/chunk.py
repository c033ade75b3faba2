from __future__ import annotations

import weakref
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional, Sequence

import numpy as np

from hexvoxel.world.lattice import ChunkCoord, LatticeCoord, lattice_to_space, to_lattice
from hexvoxel.world.params import TerrainParams

if TYPE_CHECKING:
    from hexvoxel.world.world import World

# Face order used by neighbor links and corner sharing: -x, +x, -y, +y, -z, +z
FACE_DIRECTIONS: tuple[tuple[int, int, int], ...] = (
    (-1, 0, 0),
    (1, 0, 0),
    (0, -1, 0),
    (0, 1, 0),
    (0, 0, -1),
    (0, 0, 1),
)


@dataclass(frozen=True)
class MeshBuffers:
    vertices: np.ndarray  # (N,3) float32, Euclidean
    triangles: np.ndarray  # (3M,) uint32, flat triangle list
    normals: np.ndarray  # (N,3) float32

    @classmethod
    def empty(cls) -> "MeshBuffers":
        return cls(
            vertices=np.zeros((0, 3), dtype=np.float32),
            triangles=np.zeros((0,), dtype=np.uint32),
            normals=np.zeros((0, 3), dtype=np.float32),
        )

    @property
    def n_vertices(self) -> int:
        return int(self.vertices.shape[0])

    @property
    def n_triangles(self) -> int:
        return int(self.triangles.size // 3)

    @property
    def is_empty(self) -> bool:
        return self.n_vertices == 0


class Chunk:
    """One block of size x height x size lattice cells.

    Holds the corner density cache, the occupancy grid and the last generated
    mesh. Generation itself lives in density/occupancy/mesh_builder and is
    driven by the World.
    """

    def __init__(self, coord: ChunkCoord, params: TerrainParams) -> None:
        self._coord = coord
        self.params = params
        self.mesh = MeshBuffers.empty()
        self._neighbors: list[Optional[weakref.ref]] = [None] * 6
        self.reset()

    @property
    def coord(self) -> ChunkCoord:
        return self._coord

    @property
    def dims(self) -> tuple[int, int, int]:
        return self.params.chunk_dims

    @property
    def lattice_offset(self) -> np.ndarray:
        """Global lattice coordinate of local cell (0,0,0)."""
        return np.array(self._coord.to_vector() * np.array(self.dims), dtype=np.int64)

    @property
    def space_origin(self) -> np.ndarray:
        return lattice_to_space(self.lattice_offset)

    def reset(self) -> None:
        """Drop all generated state ahead of a fresh generation pass.

        The published mesh is left alone; it is replaced once the new one is built.
        """
        self.corners = np.zeros((2, 2, 2), dtype=np.float64)
        self.corner_ready = np.zeros((2, 2, 2), dtype=bool)
        self.corners_ready = False
        self.uniform = False
        self.occupancy = np.zeros(self.dims, dtype=bool)

    # --- Neighbors ---
    def set_neighbors(self, chunks: Sequence[Optional["Chunk"]]) -> None:
        self._neighbors = [weakref.ref(c) if c is not None else None for c in chunks]

    def set_neighbor(self, face: int, chunk: Optional["Chunk"]) -> None:
        self._neighbors[face] = weakref.ref(chunk) if chunk is not None else None

    def neighbor(self, face: int) -> Optional["Chunk"]:
        ref = self._neighbors[face]
        return ref() if ref is not None else None

    # --- Local cell access ---
    def contains_local(self, local) -> bool:
        sx, sy, sz = self.dims
        x, y, z = (int(v) for v in local)
        return 0 <= x < sx and 0 <= y < sy and 0 <= z < sz

    def to_global(self, local) -> LatticeCoord:
        off = self.lattice_offset
        x, y, z = (int(v) for v in local)
        return LatticeCoord(x + int(off[0]), y + int(off[1]), z + int(off[2]))

    def is_solid(self, local, world: "World") -> bool:
        """Occupancy of a chunk-local cell; cells outside this chunk are asked of the world."""
        if self.contains_local(local):
            x, y, z = (int(v) for v in local)
            return bool(self.occupancy[x, y, z])
        return world.occupancy_at(self.to_global(local))

    # --- Conversions ---
    def to_space(self, local) -> np.ndarray:
        return lattice_to_space(np.asarray(local, dtype=np.float64) + self.lattice_offset)

    def to_lattice(self, point) -> LatticeCoord:
        """Chunk-local cell nearest to a Euclidean point."""
        return to_lattice(point, origin=self.space_origin)

    def __repr__(self) -> str:
        c = self._coord
        return f"Chunk({c.x}, {c.y}, {c.z})"
