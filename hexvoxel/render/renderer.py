from __future__ import annotations

from dataclasses import dataclass
from typing import Optional

import moderngl
import numpy as np

from hexvoxel.config import FAR, FOV_DEG, NEAR
from hexvoxel.render.shaders import point_shader_sources, shader_sources
from hexvoxel.util.math import normalize_rows, perspective
from hexvoxel.world.chunk import MeshBuffers
from hexvoxel.world.lattice import ChunkCoord


def recalculate_normals(vertices: np.ndarray, triangles: np.ndarray) -> np.ndarray:
    """Area-weighted vertex normals from face geometry.

    Generated meshes are not welded, so in practice each vertex ends up with
    the normal of the one face it belongs to.
    """
    v = np.asarray(vertices, dtype=np.float64).reshape(-1, 3)
    tri = np.asarray(triangles, dtype=np.int64).reshape(-1, 3)
    acc = np.zeros_like(v)
    if tri.size:
        face = np.cross(v[tri[:, 1]] - v[tri[:, 0]], v[tri[:, 2]] - v[tri[:, 0]])
        for corner in range(3):
            np.add.at(acc, tri[:, corner], face)
    return normalize_rows(acc).astype(np.float32)


def pack_vertices(mesh: MeshBuffers, *, recalc_normals: bool = False) -> np.ndarray:
    """Interleave pos (3) + norm (3) as float32, flattened for a VBO."""
    normals = recalculate_normals(mesh.vertices, mesh.triangles) if recalc_normals else mesh.normals
    return np.concatenate([mesh.vertices, normals], axis=1).astype(np.float32).reshape(-1)


@dataclass
class ChunkGPU:
    coord: ChunkCoord
    vao: moderngl.VertexArray
    vbo: moderngl.Buffer
    ibo: moderngl.Buffer

    def release(self) -> None:
        self.vao.release()
        self.vbo.release()
        self.ibo.release()


class Renderer:
    def __init__(self, ctx: moderngl.Context, width: int, height: int) -> None:
        self.ctx = ctx
        self.width = width
        self.height = height

        vert, frag = shader_sources(ctx.version_code)
        self.prog = self.ctx.program(vertex_shader=vert, fragment_shader=frag)
        pvert, pfrag = point_shader_sources(ctx.version_code)
        self.point_prog = self.ctx.program(vertex_shader=pvert, fragment_shader=pfrag)

        self._points_vbo: Optional[moderngl.Buffer] = None
        self._points_vao: Optional[moderngl.VertexArray] = None

        self.ctx.enable(moderngl.DEPTH_TEST)
        self.ctx.enable(moderngl.PROGRAM_POINT_SIZE)
        self.ctx.disable(moderngl.CULL_FACE)
        self.resize(width, height)

    @property
    def proj(self) -> np.ndarray:
        return self._proj

    def release(self) -> None:
        self.clear_points()
        self.prog.release()
        self.point_prog.release()

    def resize(self, width: int, height: int) -> None:
        self.width = width
        self.height = height
        self.ctx.viewport = (0, 0, width, height)
        self._proj = perspective(FOV_DEG, width / max(1, height), NEAR, FAR).astype(np.float32)
        self.prog["u_proj"].write(self._proj.tobytes())
        self.point_prog["u_proj"].write(self._proj.tobytes())

    def begin_frame(self) -> None:
        self.ctx.clear(0.70, 0.80, 0.92, 1.0)

    def set_common_uniforms(self, view: np.ndarray, cam_pos: np.ndarray, light_dir: np.ndarray, fog_start: float, fog_end: float) -> None:
        self.prog["u_view"].write(view.astype(np.float32).tobytes())
        self.prog["u_cam_pos"].value = (float(cam_pos[0]), float(cam_pos[1]), float(cam_pos[2]))
        self.prog["u_light_dir"].value = (float(light_dir[0]), float(light_dir[1]), float(light_dir[2]))
        self.prog["u_fog_start"].value = float(fog_start)
        self.prog["u_fog_end"].value = float(fog_end)
        self.point_prog["u_view"].write(view.astype(np.float32).tobytes())

    # --- Chunks ---
    def upload_chunk(self, coord: ChunkCoord, mesh: MeshBuffers, *, recalc_normals: bool = False) -> Optional[ChunkGPU]:
        if mesh.is_empty:
            return None
        vbo = self.ctx.buffer(pack_vertices(mesh, recalc_normals=recalc_normals).tobytes())
        ibo = self.ctx.buffer(mesh.triangles.astype(np.uint32).tobytes())
        vao = self.ctx.vertex_array(self.prog, [(vbo, "3f 3f", "in_pos", "in_norm")], ibo)
        return ChunkGPU(coord=coord, vao=vao, vbo=vbo, ibo=ibo)

    def draw_chunk(self, gpu: ChunkGPU) -> None:
        gpu.vao.render(mode=moderngl.TRIANGLES)

    # --- Debug points ---
    def set_points(self, points: np.ndarray) -> None:
        self.clear_points()
        if points.size == 0:
            return
        self._points_vbo = self.ctx.buffer(points.astype(np.float32).tobytes())
        self._points_vao = self.ctx.vertex_array(self.point_prog, [(self._points_vbo, "3f", "in_pos")])

    def clear_points(self) -> None:
        if self._points_vao is not None:
            self._points_vao.release()
            self._points_vao = None
        if self._points_vbo is not None:
            self._points_vbo.release()
            self._points_vbo = None

    def draw_points(self) -> None:
        if self._points_vao is not None:
            self._points_vao.render(mode=moderngl.POINTS)
