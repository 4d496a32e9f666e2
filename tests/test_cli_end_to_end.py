import json
import sys

import numpy as np
import pytest

import main
from core.exceptions import InputFormatError
from fields.cartesian_field import CartesianField
from geometry.tangent_bundle import IntrinsicFaceTangentBundle
from tests.sample_meshes import (
    OCTAHEDRON_FACES,
    OCTAHEDRON_VERTICES,
    SAMPLE_INPUT,
    ambient_raw_field,
    octahedron_mesh,
)


def _octahedron_input(N=4):
    mesh = octahedron_mesh()
    field = CartesianField(IntrinsicFaceTangentBundle(mesh), "raw", N)
    field.set_intrinsic_field(ambient_raw_field(mesh, N))
    return {
        "vertices": OCTAHEDRON_VERTICES,
        "faces": OCTAHEDRON_FACES,
        "field": field.ext_field.tolist(),
        "global_parameters": {"degree": N},
    }


def _run_main(monkeypatch, *args):
    monkeypatch.setattr(sys, "argv", ["main.py", *args])
    main.main()


def test_run_pipeline_on_octahedron():
    results = main.run_pipeline(_octahedron_input())
    assert results["degree"] == 4
    assert results["euler_characteristic"] == 2
    assert int(np.sum(results["singular_indices"])) == 8
    assert results["comb_seeds"] == [0]
    assert np.asarray(results["combed_field"]).shape == (8, 12)
    assert all(results["combed_matching"][e] >= 0 for e in range(12))


def test_run_pipeline_accepts_power_field():
    mesh = octahedron_mesh()
    raw = ambient_raw_field(mesh, 4)
    power = raw[:, :1] ** 4
    data = {
        "vertices": OCTAHEDRON_VERTICES,
        "faces": OCTAHEDRON_FACES,
        "intrinsic_field": np.column_stack([power.real, power.imag]).tolist(),
        "global_parameters": {"degree": 4, "field_type": "power"},
    }
    results = main.run_pipeline(data)
    assert int(np.sum(results["singular_indices"])) == 8


def test_run_pipeline_needs_a_field():
    data = {"vertices": OCTAHEDRON_VERTICES, "faces": OCTAHEDRON_FACES}
    with pytest.raises(InputFormatError):
        main.run_pipeline(data)


def test_cli_writes_summary_and_results(tmp_path, monkeypatch, capsys):
    inp = tmp_path / "quad.json"
    inp.write_text(json.dumps(SAMPLE_INPUT))
    out = tmp_path / "results.json"

    _run_main(monkeypatch, "-i", str(tmp_path / "quad"), "-o", str(out), "-q")

    printed = capsys.readouterr().out
    assert "=== Directional Field Summary ===" in printed
    assert "Singular vertices:     0" in printed

    results = json.loads(out.read_text())
    assert results["degree"] == 4
    assert results["matching"] == [-1, 0, -1, -1, -1]
    assert results["seam_edges"] == []


def test_cli_seams_and_overrides(tmp_path, monkeypatch):
    inp = tmp_path / "quad.json"
    inp.write_text(json.dumps(SAMPLE_INPUT))
    out = tmp_path / "results.json"

    _run_main(monkeypatch, "-i", str(inp), "-o", str(out), "-q", "--seams", "1")
    assert json.loads(out.read_text())["comb_seeds"] == [0, 1]

    with pytest.raises(SystemExit) as excinfo:
        _run_main(monkeypatch, "-i", str(inp), "-q", "--seams", "1", "--unreached", "raise")
    assert excinfo.value.code == 2


def test_cli_missing_input_exits(tmp_path, monkeypatch):
    with pytest.raises(SystemExit) as excinfo:
        _run_main(monkeypatch, "-i", str(tmp_path / "missing"), "-q")
    assert excinfo.value.code == 1


@pytest.mark.parametrize("drop", ["field", "vertices"])
def test_cli_incomplete_input_exits_with_domain_error_code(tmp_path, monkeypatch, drop):
    data = {k: v for k, v in SAMPLE_INPUT.items() if k != drop}
    inp = tmp_path / "incomplete.json"
    inp.write_text(json.dumps(data))

    with pytest.raises(SystemExit) as excinfo:
        _run_main(monkeypatch, "-i", str(inp), "-q")
    assert excinfo.value.code == 2


def test_cli_unsupported_extension_exits_with_domain_error_code(tmp_path, monkeypatch):
    inp = tmp_path / "quad.txt"
    inp.write_text(json.dumps(SAMPLE_INPUT))
    with pytest.raises(SystemExit) as excinfo:
        _run_main(monkeypatch, "-i", str(inp), "-q")
    assert excinfo.value.code == 2
