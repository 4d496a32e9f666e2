import math

import numpy as np
import pytest

from fields.cartesian_field import CartesianField
from geometry.tangent_bundle import IntrinsicFaceTangentBundle
from runtime.matching import principal_matching
from runtime.singularities import compute_singularities, cycle_indices, effort_to_indices
from tests.sample_meshes import (
    ambient_raw_field,
    annulus_mesh,
    generic_raw_field,
    grid_mesh,
    octahedron_mesh,
    sphere_mesh,
    symmetric_raw_field,
    tetrahedron_mesh,
    torus_mesh,
)


def _raw_field(mesh, values):
    tb = IntrinsicFaceTangentBundle(mesh)
    field = CartesianField(tb, "raw", values.shape[1])
    field.set_intrinsic_field(values)
    return field


@pytest.mark.parametrize(
    "builder, N, values",
    [
        (tetrahedron_mesh, 2, "symmetric"),
        (octahedron_mesh, 4, "ambient"),
        (lambda: sphere_mesh(1), 1, "generic"),
        (lambda: sphere_mesh(2), 4, "symmetric"),
        (torus_mesh, 4, "symmetric"),
        (torus_mesh, 3, "generic"),
    ],
)
def test_vertex_indices_sum_to_degree_times_euler_characteristic(builder, N, values):
    mesh = builder()
    if values == "ambient":
        raw = ambient_raw_field(mesh, N)
    elif values == "generic":
        raw = generic_raw_field(mesh.n_faces, N, seed=11)
    else:
        raw = symmetric_raw_field(mesh.n_faces, N, seed=11)
    field = _raw_field(mesh, raw)
    principal_matching(field)

    sing_vertices, sing_indices, _ = effort_to_indices(field)
    assert int(sing_indices.sum()) == N * mesh.euler_characteristic()
    assert np.all(sing_indices != 0)
    assert np.all(np.diff(sing_vertices) > 0)


def test_tetrahedron_field_has_singularities():
    mesh = tetrahedron_mesh()
    field = _raw_field(mesh, symmetric_raw_field(mesh.n_faces, 2, seed=3))
    principal_matching(field)
    sing_vertices, sing_indices, generators = effort_to_indices(field)
    assert sing_vertices.size > 0
    assert int(sing_indices.sum()) == 4
    assert generators.size == 0


def test_cycle_indices_are_integer_valued_without_warnings(caplog):
    mesh = torus_mesh()
    field = _raw_field(mesh, generic_raw_field(mesh.n_faces, 2, seed=5))
    principal_matching(field)
    with caplog.at_level("WARNING", logger="directional_fields"):
        indices = cycle_indices(field)
    assert indices.dtype.kind == "i"
    assert indices.shape == (mesh.n_vertices + 2,)
    assert "deviate" not in caplog.text

    tb = field.tb
    raw = (tb.cycles @ field.effort + 2 * tb.cycle_curvatures) / (2.0 * math.pi)
    assert np.allclose(raw, np.rint(raw), atol=1e-9)


def test_torus_reports_generator_indices():
    mesh = torus_mesh()
    field = _raw_field(mesh, symmetric_raw_field(mesh.n_faces, 4, seed=2))
    principal_matching(field)
    _, _, generators = effort_to_indices(field)
    assert generators.shape == (2,)
    assert generators.dtype.kind == "i"


def test_annulus_reports_one_integer_generator_index():
    mesh = annulus_mesh()
    field = _raw_field(mesh, generic_raw_field(mesh.n_faces, 4, seed=3))
    principal_matching(field)
    _, _, generators = effort_to_indices(field)
    assert generators.shape == (1,)
    assert generators.dtype.kind == "i"

    tb = field.tb
    raw = (tb.cycles @ field.effort + 4 * tb.cycle_curvatures) / (2.0 * math.pi)
    assert np.isclose(raw[0], generators[0], atol=1e-9)


def test_constant_field_on_annulus_has_full_turn_around_boundary():
    mesh = annulus_mesh(16, 2)
    field = _raw_field(mesh, ambient_raw_field(mesh, 4, direction=(1.0, 0.0, 0.0)))
    sing_vertices, _, generators = effort_to_indices(field)
    assert sing_vertices.size == 0
    assert abs(int(generators[0])) == 4


def test_flat_constant_field_has_no_singularities():
    mesh = grid_mesh(4)
    field = _raw_field(mesh, ambient_raw_field(mesh, 4))
    sing_vertices, sing_indices, generators = effort_to_indices(field)
    assert sing_vertices.size == 0
    assert sing_indices.size == 0
    assert generators.size == 0
    # effort computed on the fly is not stored
    assert field.effort is None


def test_explicit_effort_overrides_stored_one():
    mesh = octahedron_mesh()
    field = _raw_field(mesh, ambient_raw_field(mesh, 1))
    _, effort = principal_matching(field)
    indices = cycle_indices(field, effort)
    assert np.array_equal(indices, cycle_indices(field))


def test_compute_singularities_stores_result_on_field(caplog):
    mesh = octahedron_mesh()
    field = _raw_field(mesh, ambient_raw_field(mesh, 4))
    principal_matching(field)
    with caplog.at_level("INFO", logger="directional_fields"):
        sing_vertices, sing_indices = compute_singularities(field)
    assert np.array_equal(field.sing_elements, sing_vertices)
    assert np.array_equal(field.sing_indices, sing_indices)
    assert int(sing_indices.sum()) == 8
    assert "singular vertices" in caplog.text
