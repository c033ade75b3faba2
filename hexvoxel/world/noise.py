from __future__ import annotations

from dataclasses import dataclass

import numpy as np


@dataclass(frozen=True)
class NoiseSample:
    value: float
    gradient: np.ndarray  # (3,) analytic d(value)/d(pos)


class ValueNoise3D:
    """Seeded 3D value noise with a closed-form gradient, vectorized over numpy.

    Lattice values come from an integer hash on the floor of the scaled
    position and are blended with the quintic fade. The derivative is
    differentiated through the fade rather than estimated, so callers can
    compare gradients exactly.

    Output range is [-1, 1). Deterministic for a given seed.
    """

    def __init__(self, seed: int = 0) -> None:
        self.seed = int(seed)

    @staticmethod
    def _fade(t: np.ndarray) -> np.ndarray:
        # smootherstep
        return t * t * t * (t * (t * 6.0 - 15.0) + 10.0)

    @staticmethod
    def _fade_derivative(t: np.ndarray) -> np.ndarray:
        return 30.0 * t * t * (t * (t - 2.0) + 1.0)

    def _hash(self, xi: np.ndarray, yi: np.ndarray, zi: np.ndarray) -> np.ndarray:
        # Vectorized integer hash -> uint32 -> [0,1)
        x = (
            (xi.astype(np.uint32) * np.uint32(374761393))
            ^ (yi.astype(np.uint32) * np.uint32(668265263))
            ^ (zi.astype(np.uint32) * np.uint32(1440662683))
            ^ np.uint32(self.seed & 0xFFFFFFFF)
        )
        x ^= (x >> np.uint32(13))
        x *= np.uint32(1274126177)
        x ^= (x >> np.uint32(16))
        return x.astype(np.float64) / float(2**32)

    def sample_many(self, points: np.ndarray, scale: float) -> tuple[np.ndarray, np.ndarray]:
        """Return (values (N,), gradients (N,3)) for (N,3) points at the given frequency."""
        p = np.asarray(points, dtype=np.float64).reshape(-1, 3) * float(scale)
        base = np.floor(p)
        t = p - base
        i0 = base.astype(np.int64)
        i1 = i0 + 1

        x0, y0, z0 = i0[:, 0], i0[:, 1], i0[:, 2]
        x1, y1, z1 = i1[:, 0], i1[:, 1], i1[:, 2]

        h000 = self._hash(x0, y0, z0)
        h100 = self._hash(x1, y0, z0)
        h010 = self._hash(x0, y1, z0)
        h110 = self._hash(x1, y1, z0)
        h001 = self._hash(x0, y0, z1)
        h101 = self._hash(x1, y0, z1)
        h011 = self._hash(x0, y1, z1)
        h111 = self._hash(x1, y1, z1)

        u = self._fade(t)
        du = self._fade_derivative(t)
        tx, ty, tz = u[:, 0], u[:, 1], u[:, 2]

        # Trilinear blend written as a polynomial so the partials fall out directly.
        a = h000
        b = h100 - h000
        c = h010 - h000
        d = h001 - h000
        e = h110 - h010 - h100 + h000
        f = h101 - h001 - h100 + h000
        g = h011 - h001 - h010 + h000
        h = h111 - h011 - h101 + h001 - h110 + h010 + h100 - h000

        value = a + b * tx + (c + e * tx) * ty + (d + f * tx + g * ty + h * tx * ty) * tz

        grad = np.empty_like(p)
        grad[:, 0] = (b + e * ty + (f + h * ty) * tz) * du[:, 0]
        grad[:, 1] = (c + e * tx + (g + h * tx) * tz) * du[:, 1]
        grad[:, 2] = (d + f * tx + g * ty + h * tx * ty) * du[:, 2]
        grad *= float(scale)

        # [0,1) -> [-1,1)
        return value * 2.0 - 1.0, grad * 2.0

    def sample(self, pos, scale: float) -> NoiseSample:
        values, grads = self.sample_many(np.asarray(pos, dtype=np.float64).reshape(1, 3), scale)
        return NoiseSample(value=float(values[0]), gradient=grads[0])
