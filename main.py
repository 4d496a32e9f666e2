import argparse
import logging
import os
import sys

import numpy as np

from core.exceptions import DirectionalFieldError, InputFormatError
from fields.cartesian_field import CartesianField, FieldType
from geometry.geom_io import load_data, parse_mesh, save_results
from geometry.tangent_bundle import IntrinsicFaceTangentBundle
from runtime.combing import comb_field
from runtime.logging_config import setup_logging
from runtime.matching import principal_matching
from runtime.singularities import effort_to_indices
from runtime.topology import require_connected, validate_topology

logger = logging.getLogger("directional_fields")


def resolve_input_path(path: str) -> str:
    """Return a valid input file path, allowing path without extension."""
    if os.path.isfile(path):
        return path
    for ext in (".json", ".yaml", ".yml"):
        alt = path + ext
        if os.path.isfile(alt):
            return alt
    raise FileNotFoundError(f"Cannot find file '{path}' (.json/.yaml/.yml)")


def build_field(data: dict, tb: IntrinsicFaceTangentBundle, field_type: str, N: int):
    """Create the input field from the ``field`` or ``intrinsic_field`` entry."""
    field = CartesianField(tb, field_type, N)
    if "field" in data:
        field.set_extrinsic_field(np.asarray(data["field"], dtype=float))
    elif "intrinsic_field" in data:
        field.set_intrinsic_field(np.asarray(data["intrinsic_field"], dtype=float))
    else:
        raise InputFormatError("Input needs a 'field' or 'intrinsic_field' entry.")
    return field


def run_pipeline(data: dict, *, seams=None, overrides=None) -> dict:
    """Match, detect singularities and comb the field described by ``data``."""
    mesh, params = parse_mesh(data)
    if overrides:
        params.update(overrides)

    if params.validate_topology:
        validate_topology(mesh)
        require_connected(mesh)

    tb = IntrinsicFaceTangentBundle(mesh, params)
    field = build_field(data, tb, params.field_type, int(params.degree))
    raw = field.to_raw() if field.field_type is not FieldType.RAW else field

    matching, effort = principal_matching(raw)
    sing_vertices, sing_indices, generator_indices = effort_to_indices(raw)
    raw.set_singularities(sing_vertices, sing_indices)

    if seams is None:
        seams = data.get("seams")
    result = comb_field(raw, seams)

    return {
        "degree": raw.N,
        "euler_characteristic": mesh.euler_characteristic(),
        "matching": matching,
        "effort": effort,
        "singular_vertices": raw.sing_elements,
        "singular_indices": raw.sing_indices,
        "generator_indices": generator_indices,
        "combed_field": result.field.ext_field,
        "combed_matching": result.field.matching,
        "space_turns": result.space_turns,
        "seam_edges": result.seam_edges,
        "comb_seeds": result.seeds,
    }


def print_summary(results: dict) -> None:
    N = results["degree"]
    print("=== Directional Field Summary ===")
    print(f"Degree N:              {N}")
    print(f"Euler characteristic:  {results['euler_characteristic']}")
    inner = np.asarray(results["matching"]) >= 0
    print(f"Inner dual edges:      {int(inner.sum())}")
    print(f"Singular vertices:     {len(results['singular_vertices'])}")
    for v, idx in zip(results["singular_vertices"], results["singular_indices"]):
        print(f"  vertex {int(v)}: index {int(idx)}/{N}")
    print(f"Total vertex index:    {int(np.sum(results['singular_indices']))}/{N}")
    print(f"Seam edges after comb: {len(results['seam_edges'])}")
    print(f"Comb seeds:            {list(results['comb_seeds'])}")


def main():
    parser = argparse.ArgumentParser(
        description="Match, comb and locate singularities of a directional field"
    )
    parser.add_argument("-i", "--input", help="Input mesh/field JSON or YAML file")
    parser.add_argument("-o", "--output", default=None, help="Output results JSON file")
    parser.add_argument(
        "-N", "--degree", type=int, default=None, help="Override the field degree."
    )
    parser.add_argument(
        "--field-type",
        choices=[t.value for t in FieldType],
        default=None,
        help="Override the representation of the input field.",
    )
    parser.add_argument(
        "--unreached",
        choices=["reseed", "raise", "ignore"],
        default=None,
        help="What combing does with faces cut off from the seed face.",
    )
    parser.add_argument(
        "--seams",
        type=str,
        default=None,
        help="Comma-separated edge indices to cut before combing.",
    )
    parser.add_argument(
        "--compact-output-json",
        action="store_true",
        help="Write output JSON in compact (single-line) form.",
    )
    parser.add_argument("--log", default=None, help="Optional log file")
    parser.add_argument("-q", "--quiet", action="store_true", help="Suppress console logging")
    parser.add_argument("--debug", action="store_true", help="Enable debug logging")
    args = parser.parse_args()

    global logger
    logger = setup_logging(args.log, quiet=args.quiet, debug=args.debug)

    if not args.input:
        print("No input file provided.", file=sys.stderr)
        sys.exit(1)
    try:
        args.input = resolve_input_path(args.input)
    except FileNotFoundError as exc:
        print(exc, file=sys.stderr)
        sys.exit(1)

    overrides = {}
    if args.degree is not None:
        overrides["degree"] = args.degree
    if args.field_type is not None:
        overrides["field_type"] = args.field_type
    if args.unreached is not None:
        overrides["comb_unreached_policy"] = args.unreached

    seams = None
    if args.seams:
        seams = [int(tok) for tok in args.seams.split(",") if tok.strip()]

    try:
        data = load_data(args.input)
        results = run_pipeline(data, seams=seams, overrides=overrides)
    except DirectionalFieldError as exc:
        logger.error("%s: %s", type(exc).__name__, exc)
        sys.exit(2)

    print_summary(results)
    if args.output:
        save_results(results, args.output, compact=args.compact_output_json)


if __name__ == "__main__":
    main()
