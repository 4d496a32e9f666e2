import numpy as np
import pytest

from core.exceptions import DisconnectedRegionError, FieldTypeError, ShapeMismatchError
from core.parameters.global_parameters import GlobalParameters
from fields.cartesian_field import CartesianField
from geometry.tangent_bundle import IntrinsicFaceTangentBundle
from runtime.combing import comb_field, combing, seam_mask_from_edges
from runtime.matching import principal_matching
from tests.sample_meshes import (
    ambient_raw_field,
    generic_raw_field,
    quad_mesh,
    sphere_mesh,
    symmetric_raw_field,
    tetrahedron_mesh,
    torus_mesh,
    two_triangles_mesh,
)


def _raw_field(mesh, values, params=None):
    tb = IntrinsicFaceTangentBundle(mesh, params)
    field = CartesianField(tb, "raw", values.shape[1])
    field.set_intrinsic_field(values)
    return field


def test_tetrahedron_comb_visits_every_face():
    mesh = tetrahedron_mesh()
    field = _raw_field(mesh, symmetric_raw_field(mesh.n_faces, 2, seed=1))
    result = comb_field(field)
    assert result.seeds == [0]
    assert result.space_turns.shape == (4,)
    assert result.tree_edges.size == 3
    assert np.all(result.field.matching[result.tree_edges] == 0)


@pytest.mark.parametrize("builder, N", [(sphere_mesh, 4), (torus_mesh, 3)])
def test_tree_edges_carry_identity_matching(builder, N):
    mesh = builder()
    field = _raw_field(mesh, generic_raw_field(mesh.n_faces, N, seed=9))
    principal_matching(field)
    result = comb_field(field)

    assert result.tree_edges.size == mesh.n_faces - 1
    assert np.all(result.field.matching[result.tree_edges] == 0)
    assert np.all(result.field.matching[mesh.inner_edges] >= 0)
    assert set(result.seam_edges.tolist()).isdisjoint(result.tree_edges.tolist())


def test_combed_vectors_are_cyclic_relabelling():
    mesh = sphere_mesh(1)
    raw = generic_raw_field(mesh.n_faces, 3, seed=4)
    field = _raw_field(mesh, raw)
    result = comb_field(field)
    combed = result.field.complex_field()
    for f in range(mesh.n_faces):
        assert np.allclose(combed[f], np.roll(raw[f], -result.space_turns[f]))


def test_combed_matching_agrees_with_principal_matching():
    mesh = sphere_mesh(1)
    field = _raw_field(mesh, generic_raw_field(mesh.n_faces, 4, seed=21))
    _, effort = principal_matching(field)
    result = comb_field(field)

    matching, recomputed_effort = principal_matching(result.field, assign=False)
    inner = mesh.inner_edges
    assert np.array_equal(matching[inner], result.field.matching[inner])
    assert np.allclose(recomputed_effort, effort)
    assert np.allclose(result.field.effort, effort)


def test_relabelled_quad_is_restored():
    mesh = quad_mesh()
    values = ambient_raw_field(mesh, 4)
    original = values.copy()
    values[1] = np.roll(values[1], -1)
    result = comb_field(_raw_field(mesh, values))
    assert result.space_turns.tolist() == [0, 3]
    assert np.allclose(result.field.complex_field(), original)
    assert result.field.matching[mesh.inner_edges[0]] == 0
    assert result.seam_edges.size == 0


def test_combing_is_idempotent():
    mesh = torus_mesh()
    field = _raw_field(mesh, generic_raw_field(mesh.n_faces, 4, seed=2))
    once = comb_field(field)
    twice = comb_field(once.field)
    assert not twice.space_turns.any()
    assert np.array_equal(twice.field.matching, once.field.matching)
    assert np.allclose(twice.field.int_field, once.field.int_field)


def test_input_field_is_not_modified():
    mesh = sphere_mesh(1)
    field = _raw_field(mesh, generic_raw_field(mesh.n_faces, 2, seed=8))
    before = field.int_field.copy()
    result = combing(field)
    assert field.matching is None
    assert np.array_equal(field.int_field, before)
    assert result.matching is not None


def test_singularities_travel_with_combed_field():
    mesh = tetrahedron_mesh()
    field = _raw_field(mesh, symmetric_raw_field(mesh.n_faces, 2))
    field.set_singularities([1, 3], [1, 1])
    combed = combing(field)
    assert combed.sing_elements.tolist() == [1, 3]
    assert combed.sing_indices.tolist() == [1, 1]


def test_seam_reseeds_unreached_region_by_default():
    mesh = quad_mesh()
    diag = int(mesh.inner_edges[0])
    values = ambient_raw_field(mesh, 4)
    values[1] = np.roll(values[1], -1)
    result = comb_field(_raw_field(mesh, values), [diag])
    assert result.seeds == [0, 1]
    assert result.tree_edges.size == 0
    assert result.space_turns.tolist() == [0, 0]
    assert result.seam_edges.tolist() == [diag]


def test_one_sided_cut_mask_blocks_traversal():
    mesh = quad_mesh()
    mask = np.zeros((2, 3), dtype=bool)
    mask[0, 2] = True  # FE[0, 2] is the diagonal
    field = _raw_field(mesh, ambient_raw_field(mesh, 2))
    result = comb_field(field, mask)
    assert result.seeds == [0, 1]


def test_seam_mask_from_edges_marks_both_sides():
    mesh = quad_mesh()
    mask = seam_mask_from_edges(mesh, [1])
    assert mask.tolist() == [[False, False, True], [True, False, False]]


def test_bad_cut_mask_shape_raises():
    mesh = quad_mesh()
    field = _raw_field(mesh, ambient_raw_field(mesh, 2))
    with pytest.raises(ShapeMismatchError):
        comb_field(field, np.zeros((3, 3), dtype=bool))


def test_unreached_policy_raise():
    mesh = quad_mesh()
    params = GlobalParameters({"comb_unreached_policy": "raise"})
    field = _raw_field(mesh, ambient_raw_field(mesh, 2), params)
    with pytest.raises(DisconnectedRegionError) as excinfo:
        comb_field(field, [int(mesh.inner_edges[0])])
    assert excinfo.value.unreached_faces == [1]


def test_unreached_policy_ignore_leaves_zero_vectors(caplog):
    mesh = quad_mesh()
    params = GlobalParameters({"comb_unreached_policy": "ignore"})
    field = _raw_field(mesh, ambient_raw_field(mesh, 2), params)
    with caplog.at_level("WARNING", logger="directional_fields"):
        result = comb_field(field, [int(mesh.inner_edges[0])])
    assert result.seeds == [0]
    assert not result.field.int_field[1].any()
    assert np.allclose(result.field.int_field[0], field.int_field[0])
    assert "unreached" in caplog.text


def test_disconnected_mesh_is_combed_per_component():
    mesh = two_triangles_mesh()
    field = _raw_field(mesh, symmetric_raw_field(mesh.n_faces, 2))
    result = comb_field(field)
    assert result.seeds == [0, 1]
    assert np.allclose(result.field.int_field, field.int_field)


def test_seed_face_is_configurable():
    mesh = sphere_mesh(1)
    field = _raw_field(mesh, generic_raw_field(mesh.n_faces, 3, seed=3))
    result = comb_field(field, global_params=GlobalParameters({"comb_seed_face": 5}))
    assert result.seeds == [5]
    assert result.space_turns[5] == 0

    with pytest.raises(ShapeMismatchError):
        comb_field(field, global_params=GlobalParameters({"comb_seed_face": 99}))


def test_unknown_policy_raises():
    mesh = quad_mesh()
    field = _raw_field(mesh, ambient_raw_field(mesh, 2))
    with pytest.raises(ValueError):
        comb_field(field, global_params=GlobalParameters({"comb_unreached_policy": "skip"}))


def test_combing_requires_raw_field():
    mesh = quad_mesh()
    power = CartesianField(IntrinsicFaceTangentBundle(mesh), "power", 4)
    with pytest.raises(FieldTypeError):
        comb_field(power)
