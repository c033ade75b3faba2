import numpy as np
import pytest
from numpy.testing import assert_allclose, assert_array_equal

from hexvoxel.world.lattice import lattice_to_space
from hexvoxel.world.tables import (
    CELL_OFFSETS,
    DIAGONAL_ENTRY,
    N_MASKS,
    TRIANGULATION_TABLE,
    Shape,
    TableEntry,
    build_table,
    classify,
    mask_bits,
    mask_from_hits,
)

CELL_CENTER = lattice_to_space(CELL_OFFSETS).mean(axis=0)


def _entries():
    return [e for e in TRIANGULATION_TABLE if e is not None] + [DIAGONAL_ENTRY]


class TestTable:
    def test_has_every_mask(self):
        assert N_MASKS == 64
        assert len(TRIANGULATION_TABLE) == 64
        for mask, entry in enumerate(TRIANGULATION_TABLE):
            if len(mask_bits(mask)) < 3:
                assert entry is None
            else:
                assert isinstance(entry, TableEntry)
                assert entry.mask == mask
                assert entry.triangles.size % 3 == 0
                assert entry.triangles.max() < entry.n_vertices
                assert entry.normals.shape == entry.vertices.shape

    def test_octahedron(self):
        entry = TRIANGULATION_TABLE[63]
        assert entry.shape is Shape.OCTAHEDRON
        assert entry.n_vertices == 24
        assert entry.n_triangles == 8

    def test_rebuild_is_identical(self):
        again = build_table()
        for a, b in zip(TRIANGULATION_TABLE, again):
            if a is None:
                assert b is None
                continue
            assert_array_equal(a.vertices, b.vertices)
            assert_array_equal(a.triangles, b.triangles)
            assert_array_equal(a.normals, b.normals)

    def test_entries_are_read_only(self):
        entry = TRIANGULATION_TABLE[63]
        with pytest.raises(ValueError):
            entry.vertices[0, 0] = 5
        with pytest.raises(ValueError):
            entry.triangles[0] = 5

    @pytest.mark.parametrize(
        "n_bits, n_vertices, n_triangles",
        [(3, 6, 2), (5, 16, 6), (6, 24, 8)],
    )
    def test_sizes_by_point_count(self, n_bits, n_vertices, n_triangles):
        for mask, entry in enumerate(TRIANGULATION_TABLE):
            if len(mask_bits(mask)) == n_bits:
                assert (entry.n_vertices, entry.n_triangles) == (n_vertices, n_triangles)

    def test_four_points_are_square_or_tetrahedron(self):
        for mask, entry in enumerate(TRIANGULATION_TABLE):
            if len(mask_bits(mask)) != 4:
                continue
            if entry.shape in (Shape.HORIZONTAL_SQUARE, Shape.VERTICAL_SQUARE, Shape.VERTICAL_SQUARE_2):
                assert (entry.n_vertices, entry.n_triangles) == (8, 4)
            else:
                assert (entry.n_vertices, entry.n_triangles) == (12, 4)

    def test_winding_agrees_with_normals(self):
        for entry in _entries():
            pts = lattice_to_space(entry.vertices)
            tri = entry.triangles.reshape(-1, 3)
            face = np.cross(pts[tri[:, 1]] - pts[tri[:, 0]], pts[tri[:, 2]] - pts[tri[:, 0]])
            assert np.all(np.einsum("ij,ij->i", face, entry.normals[tri[:, 0]]) > 0.0)

    def test_hull_faces_point_outward(self):
        entry = TRIANGULATION_TABLE[63]
        pts = lattice_to_space(entry.vertices)
        tri = entry.triangles.reshape(-1, 3)
        centroids = pts[tri].mean(axis=1)
        outward = np.einsum("ij,ij->i", centroids - CELL_CENTER, entry.normals[tri[:, 0]])
        assert np.all(outward > 0.0)

    @pytest.mark.parametrize("n_bits, n_faces", [(4, 4), (5, 5), (6, 8)])
    def test_coplanar_hull_facets_are_merged(self, n_bits, n_faces):
        for mask, entry in enumerate(TRIANGULATION_TABLE):
            if len(mask_bits(mask)) != n_bits or entry.shape in (
                Shape.HORIZONTAL_SQUARE,
                Shape.VERTICAL_SQUARE,
                Shape.VERTICAL_SQUARE_2,
            ):
                continue
            faces = np.unique(np.round(entry.normals, 5), axis=0)
            assert len(faces) == n_faces

    def test_prism_has_one_square_face(self):
        for mask, entry in enumerate(TRIANGULATION_TABLE):
            if len(mask_bits(mask)) != 5:
                continue
            _, counts = np.unique(np.round(entry.normals, 5), axis=0, return_counts=True)
            assert sorted(counts) == [3, 3, 3, 3, 4]

    def test_flat_patches_are_double_sided_and_face_up(self):
        entry = TRIANGULATION_TABLE[0b001111]
        assert entry.shape is Shape.HORIZONTAL_SQUARE
        assert_allclose(entry.normals[:4], np.tile([0.0, 1.0, 0.0], (4, 1)), atol=1e-6)
        assert_allclose(entry.normals[4:], -entry.normals[:4])
        assert_array_equal(entry.vertices[4:], entry.vertices[:4][::-1])


class TestClassify:
    @pytest.mark.parametrize(
        "mask, shape",
        [
            (0, Shape.EMPTY),
            (0b000011, Shape.EMPTY),
            (0b000111, Shape.TRIANGLE),
            (0b001111, Shape.HORIZONTAL_SQUARE),
            (0b110011, Shape.VERTICAL_SQUARE),
            (0b111100, Shape.VERTICAL_SQUARE_2),
            (0b110101, Shape.CORNER_TETRAHEDRON),
            (0b011110, Shape.NEW_TETRAHEDRON),
            (0b010111, Shape.TETRAHEDRON),
            (0b011111, Shape.RECTANGULAR_PRISM),
            (0b111111, Shape.OCTAHEDRON),
        ],
    )
    def test_names(self, mask, shape):
        assert classify(mask) is shape

    def test_mask_from_hits(self):
        assert mask_from_hits([True, False, True, False, False, True]) == 0b100101
        assert mask_bits(0b100101) == [0, 2, 5]


class TestDiagonalEntry:
    def test_is_its_own_shape(self):
        assert DIAGONAL_ENTRY.shape is Shape.THIRD_DIAGONAL
        assert DIAGONAL_ENTRY.mask is None

    def test_two_windings_of_the_slab(self):
        assert DIAGONAL_ENTRY.n_vertices == 12
        assert DIAGONAL_ENTRY.n_triangles == 4
        assert_array_equal(DIAGONAL_ENTRY.vertices[6:], DIAGONAL_ENTRY.vertices[:6][::-1])
        assert_allclose(DIAGONAL_ENTRY.normals[6:], -DIAGONAL_ENTRY.normals[:6])

    def test_slab_is_planar(self):
        pts = lattice_to_space(DIAGONAL_ENTRY.vertices[:6])
        n = DIAGONAL_ENTRY.normals[0].astype(np.float64)
        assert_allclose((pts - pts[0]) @ n, 0.0, atol=1e-6)
