import gc

import numpy as np
import pytest
from numpy.testing import assert_allclose, assert_array_equal

from fields import ConstantField, PlaneField
from hexvoxel.world.chunk import Chunk
from hexvoxel.world.lattice import ChunkCoord, LatticeCoord
from hexvoxel.world.params import TerrainParams
from hexvoxel.world.world import ChunkWindow, World


@pytest.fixture
def params():
    return TerrainParams(chunk_size=4, chunk_height=8)


class TestChunkLifecycle:
    def test_create_is_idempotent(self, params):
        world = World(params)
        a = world.create_chunk(ChunkCoord(1, 0, 0))
        assert world.create_chunk(ChunkCoord(1, 0, 0)) is a
        assert world.chunk_at(ChunkCoord(1, 0, 0)) is a
        assert isinstance(a, Chunk)
        assert repr(a) == "Chunk(1, 0, 0)"

    def test_destroy(self, params):
        world = World(params)
        world.create_chunk(ChunkCoord(0, 0, 0))
        world.destroy_chunk(ChunkCoord(0, 0, 0))
        assert world.chunk_at(ChunkCoord(0, 0, 0)) is None
        with pytest.raises(KeyError):
            world.destroy_chunk(ChunkCoord(0, 0, 0))

    def test_get_chunk_by_position(self, params):
        world = World(params)
        chunk = world.create_chunk(ChunkCoord(2, -1, 0))
        assert world.get_chunk(world.chunk_to_pos(ChunkCoord(2, -1, 0))) is chunk
        assert world.get_chunk(world.chunk_to_pos(ChunkCoord(5, 5, 5))) is None

    def test_neighbors_are_weak(self, params):
        world = World(params, field=ConstantField(5.0))
        world.generate_region([ChunkCoord(0, 0, 0), ChunkCoord(1, 0, 0)])
        a = world.chunks[ChunkCoord(0, 0, 0)]
        assert a.neighbor(1) is world.chunks[ChunkCoord(1, 0, 0)]
        world.destroy_chunk(ChunkCoord(1, 0, 0))
        gc.collect()
        assert a.neighbor(1) is None


class TestConversions:
    def test_round_trip(self, params):
        world = World(params)
        for c in [LatticeCoord(0, 0, 0), LatticeCoord(-3, 7, 2), LatticeCoord(100, -50, 25)]:
            assert world.to_lattice(world.to_euclidean(c)) == c

    @pytest.mark.parametrize(
        "coord, chunk",
        [((0, 0, 0), (0, 0, 0)), ((3, 7, 3), (0, 0, 0)), ((4, 8, 4), (1, 1, 1)), ((-1, -1, -1), (-1, -1, -1)), ((-4, -9, 5), (-1, -2, 1))],
    )
    def test_chunk_of_floors(self, params, coord, chunk):
        assert World(params).chunk_of(LatticeCoord(*coord)) == ChunkCoord(*chunk)

    def test_chunk_to_pos_round_trip(self, params):
        world = World(params)
        for c in [ChunkCoord(0, 0, 0), ChunkCoord(-2, 1, 3)]:
            assert world.pos_to_chunk(world.chunk_to_pos(c)) == c


class TestOccupancyQueries:
    def test_no_chunk_is_not_solid(self, params):
        world = World(params)
        assert world.query_occupancy((0.0, 0.0, 0.0)) is False
        assert world.occupancy_at(LatticeCoord(-100, 3, 2)) is False

    def test_reads_owning_chunk(self, params):
        world = World(params, field=PlaneField(3.5))
        world.generate_region([ChunkCoord(0, 0, 0), ChunkCoord(1, 0, 0)])
        assert world.occupancy_at(LatticeCoord(5, 3, 1)) is True
        assert world.occupancy_at(LatticeCoord(5, 6, 1)) is False
        assert world.occupancy_at(LatticeCoord(-1, 3, 0)) is False
        assert world.query_occupancy(world.to_euclidean(LatticeCoord(2, 4, 2))) is True

    def test_chunk_is_solid_delegates(self, params):
        world = World(params, field=PlaneField(3.5))
        world.generate_region([ChunkCoord(0, 0, 0), ChunkCoord(1, 0, 0)])
        a = world.chunks[ChunkCoord(0, 0, 0)]
        assert a.is_solid((4, 3, 0), world)
        assert not a.is_solid((-1, 3, 0), world)
        assert a.is_solid((1, 4, 1), world)


class TestGeneration:
    def test_uniform_scenario(self):
        params = TerrainParams(chunk_size=8, chunk_height=8, noise_scale=0.01, threshold=0.0)
        world = World(params, field=ConstantField(5.0))
        mesh = world.generate_chunk(ChunkCoord(0, 0, 0))
        chunk = world.chunks[ChunkCoord(0, 0, 0)]
        assert chunk.corners_ready
        assert chunk.uniform
        assert_array_equal(chunk.corners, 5.0)
        assert mesh.n_vertices == 0
        assert mesh.n_triangles == 0
        assert not chunk.occupancy.any()

    def test_region_matches_single_chunks(self):
        params = TerrainParams(seed=8, chunk_size=4, chunk_height=4, noise_scale=0.15, noise_amplitude=3.0, drop_off=0.5)
        coords = [ChunkCoord(0, 0, 0), ChunkCoord(0, -1, 0)]
        first = World(params).generate_region(coords)
        again = World(params).generate_region(reversed(coords))
        assert set(first) == set(coords)
        for c in coords:
            assert_array_equal(first[c].vertices, again[c].vertices)
            assert_array_equal(first[c].triangles, again[c].triangles)

    def test_regeneration_is_deterministic(self):
        params = TerrainParams(seed=8, chunk_size=4, chunk_height=4, noise_scale=0.15, noise_amplitude=3.0, drop_off=0.5)
        world = World(params)
        a = world.generate_chunk(ChunkCoord(0, -1, 0))
        b = world.generate_chunk(ChunkCoord(0, -1, 0))
        assert_array_equal(a.vertices, b.vertices)
        assert_allclose(a.normals, b.normals)

    def test_regeneration_starts_from_empty_grid(self, params):
        world = World(params, field=PlaneField(3.5))
        world.generate_chunk(ChunkCoord(0, 0, 0))
        chunk = world.chunks[ChunkCoord(0, 0, 0)]
        world.field = ConstantField(5.0)
        world.generate_chunk(ChunkCoord(0, 0, 0))
        assert chunk.uniform
        assert not chunk.occupancy.any()
        assert chunk.mesh.is_empty


class TestNeededChunks:
    def test_flat_window(self, params):
        world = World(params)
        needed = world.needed_chunks((0.0, 0.0, 0.0), ChunkWindow(radius=1, height=0))
        assert len(needed) == 9
        assert {c.y for c in needed} == {0}

    def test_cube_window_around_point(self, params):
        world = World(params)
        center = world.chunk_to_pos(ChunkCoord(3, 1, -2))
        needed = world.needed_chunks(center, ChunkWindow(radius=1, height=1))
        assert len(needed) == 27
        assert ChunkCoord(3, 1, -2) in needed
        assert ChunkCoord(4, 2, -1) in needed
        assert ChunkCoord(5, 1, -2) not in needed


class TestNeighborLinks:
    def test_links_both_ways_in_a_region(self, params):
        world = World(params, field=ConstantField(5.0))
        coords = [ChunkCoord(0, 0, 0), ChunkCoord(1, 0, 0), ChunkCoord(0, 1, 0), ChunkCoord(0, 0, 1)]
        world.generate_region(coords)
        origin = world.chunks[ChunkCoord(0, 0, 0)]
        assert origin.neighbor(1) is world.chunks[ChunkCoord(1, 0, 0)]
        assert origin.neighbor(3) is world.chunks[ChunkCoord(0, 1, 0)]
        assert origin.neighbor(5) is world.chunks[ChunkCoord(0, 0, 1)]
        assert world.chunks[ChunkCoord(1, 0, 0)].neighbor(0) is origin
        assert world.chunks[ChunkCoord(0, 1, 0)].neighbor(2) is origin
        assert world.chunks[ChunkCoord(0, 0, 1)].neighbor(4) is origin
        assert origin.neighbor(0) is None

    def test_later_chunk_links_back(self, params):
        world = World(params, field=ConstantField(5.0))
        world.generate_chunk(ChunkCoord(0, 0, 0))
        world.generate_chunk(ChunkCoord(0, -1, 0))
        assert world.chunks[ChunkCoord(0, 0, 0)].neighbor(2) is world.chunks[ChunkCoord(0, -1, 0)]


class TestSurfaceWindow:
    def test_layer_of_a_plane(self, params):
        # Corners at y=16 and y=24 straddle 20.5.
        world = World(params, field=PlaneField(20.5))
        assert world.surface_layer() == 2

    def test_layer_below_origin(self, params):
        world = World(params, field=PlaneField(-3.0))
        assert world.surface_layer() == -1

    def test_no_crossing_falls_back_to_zero(self, params):
        assert World(params, field=ConstantField(5.0)).surface_layer() == 0

    def test_window_is_centred_on_surface(self, params):
        world = World(params, field=PlaneField(20.5))
        needed = world.surface_chunks(ChunkWindow(radius=1, height=1))
        assert {c.y for c in needed} == {1, 2, 3}
        meshes = world.generate_region(needed)
        assert sum(m.n_triangles for m in meshes.values()) > 0

    def test_default_field_window_is_not_all_uniform(self):
        world = World(TerrainParams())
        layer = world.surface_layer()
        world.generate_region(world.surface_chunks(ChunkWindow(radius=0, height=0)))
        assert not world.chunks[ChunkCoord(0, layer, 0)].uniform


class TestSeams:
    @staticmethod
    def _triangles(meshes):
        tris = []
        for mesh in meshes:
            corners = mesh.vertices[mesh.triangles.astype(np.int64)].reshape(-1, 3, 3)
            tris.extend(tuple(map(tuple, np.round(t, 3))) for t in corners)
        return sorted(tris)

    @pytest.mark.parametrize("smooth", [False, True])
    def test_split_region_matches_one_wide_chunk(self, smooth):
        field = PlaneField(3.5)
        wide = World(TerrainParams(chunk_size=8, chunk_height=8, smooth_land=smooth), field=field)
        whole = wide.generate_chunk(ChunkCoord(0, 0, 0))

        split = World(TerrainParams(chunk_size=4, chunk_height=8, smooth_land=smooth), field=field)
        parts = split.generate_region(
            [ChunkCoord(0, 0, 0), ChunkCoord(1, 0, 0), ChunkCoord(0, 0, 1), ChunkCoord(1, 0, 1)]
        )
        assert not whole.is_empty
        assert self._triangles(parts.values()) == self._triangles([whole])

    def test_boundary_cells_see_the_neighbor(self):
        field = PlaneField(3.5)
        params = TerrainParams(chunk_size=4, chunk_height=8, third_diagonal=False)
        region = World(params, field=field).generate_region([ChunkCoord(0, 0, 0), ChunkCoord(1, 0, 0)])
        alone = World(params, field=field).generate_chunk(ChunkCoord(0, 0, 0))
        # Cells at x=3 pick up points at x=4 only when the neighbor is loaded.
        assert region[ChunkCoord(0, 0, 0)].n_triangles > alone.n_triangles
