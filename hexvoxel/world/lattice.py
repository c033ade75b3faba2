from __future__ import annotations

from dataclasses import dataclass
from typing import Iterator

import numpy as np

# Hexagonal close-packed basis. In-plane neighbors sit 2 units apart; every
# second layer is shifted over the centroid of the triangle below.
_H = float(np.sqrt(3.0))
_G = (2.0 / 3.0) * _H
_F = 2.0 * float(np.sqrt(1.0 - 1.0 / _H))

LATTICE_TO_SPACE = np.array(
    [
        [_H, _G, 0.0],
        [0.0, _F, 0.0],
        [-1.0, 0.0, 2.0],
    ],
    dtype=np.float64,
)

SPACE_TO_LATTICE = np.array(
    [
        [1.0 / _H, -_G / (_F * _H), 0.0],
        [0.0, 1.0 / _F, 0.0],
        [1.0 / (2.0 * _H), -_G / (2.0 * _F * _H), 0.5],
    ],
    dtype=np.float64,
)

LATTICE_TO_SPACE.setflags(write=False)
SPACE_TO_LATTICE.setflags(write=False)


@dataclass(frozen=True)
class LatticeCoord:
    """Integer address of a cell center in the hex lattice."""

    x: int
    y: int
    z: int

    def __iter__(self) -> Iterator[int]:
        yield self.x
        yield self.y
        yield self.z

    def __add__(self, other: "LatticeCoord") -> "LatticeCoord":
        return LatticeCoord(self.x + other.x, self.y + other.y, self.z + other.z)

    def __sub__(self, other: "LatticeCoord") -> "LatticeCoord":
        return LatticeCoord(self.x - other.x, self.y - other.y, self.z - other.z)

    def to_vector(self) -> np.ndarray:
        return np.array([self.x, self.y, self.z], dtype=np.float64)

    @classmethod
    def from_vector(cls, v) -> "LatticeCoord":
        r = np.rint(np.asarray(v, dtype=np.float64)).astype(np.int64)
        return cls(int(r[0]), int(r[1]), int(r[2]))


# Same triple, read at chunk granularity.
ChunkCoord = LatticeCoord


def lattice_to_space(points: np.ndarray) -> np.ndarray:
    """Map (..., 3) lattice vectors (int or float) to Euclidean space."""
    return np.asarray(points, dtype=np.float64) @ LATTICE_TO_SPACE.T


def space_to_lattice(points: np.ndarray) -> np.ndarray:
    """Map (..., 3) Euclidean vectors to fractional lattice vectors (no rounding)."""
    return np.asarray(points, dtype=np.float64) @ SPACE_TO_LATTICE.T


def to_space(coord: LatticeCoord) -> np.ndarray:
    return LATTICE_TO_SPACE @ coord.to_vector()


def to_lattice(point, origin=None) -> LatticeCoord:
    """Nearest lattice cell to a Euclidean point, optionally relative to a space origin."""
    p = np.asarray(point, dtype=np.float64)
    if origin is not None:
        p = p - np.asarray(origin, dtype=np.float64)
    return LatticeCoord.from_vector(SPACE_TO_LATTICE @ p)


def round_lattice(points: np.ndarray) -> np.ndarray:
    """Vectorized to_lattice for (N, 3) Euclidean points -> (N, 3) int64."""
    return np.rint(space_to_lattice(points)).astype(np.int64)
