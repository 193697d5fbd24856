"""Command-line interface for petragrid."""

from __future__ import annotations

import argparse
import json
import logging
import math
import sys
from dataclasses import asdict

import yaml

from petragrid.config import GridLayout, load_layout
from petragrid.decoders import GridType
from petragrid.errors import GridError
from petragrid.grid import Grid, read_grid_file


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="petragrid",
        description="Read Petra rectangular and triangulated grid files.",
    )
    parser.add_argument("-v", "--verbose", action="count", default=0,
                        help="Log warnings (-v) or decoding detail (-vv)")
    sub = parser.add_subparsers(dest="command")

    # --- read ---
    read_p = sub.add_parser("read", help="Decode one or more grid files")
    read_p.add_argument("files", nargs="+", help="Grid files to read")
    read_p.add_argument("-c", "--config", default=None,
                        help="Path to a YAML layout file")
    read_p.add_argument("--json", dest="output_json", action="store_true",
                        help="Output results as JSON")

    # --- layout ---
    lay_p = sub.add_parser("layout", help="Show the effective format layout")
    lay_p.add_argument("-c", "--config", default=None)

    return parser


def _json_float(value):
    if isinstance(value, float) and not math.isfinite(value):
        return None
    return value


def _grid_to_dict(path: str, grid: Grid) -> dict:
    """Convert a Grid summary to a JSON-serialisable dict."""
    m = grid.metadata
    d: dict = {
        "path": path,
        "grid_type": grid.grid_type.name.lower(),
        "name": m.name,
        "version": m.version,
        "bounds": [grid.xmin, grid.xmax, grid.ymin, grid.ymax],
        "zrange": [_json_float(grid.zmin), _json_float(grid.zmax)],
        "declared_zrange": [_json_float(m.declared_zmin), _json_float(m.declared_zmax)],
        "xy_units": m.xy_units.name.lower() if m.xy_units else None,
        "z_units": m.z_units.name.lower() if m.z_units else None,
        "created": m.created.isoformat() if m.created else None,
        "source": m.source,
        "projection": m.projection,
        "datum": m.datum,
        "skipped_records": [asdict(r) for r in m.skipped_records],
        "warnings": list(grid.warnings),
    }
    if grid.grid_type is GridType.RECTANGULAR:
        d["shape"] = [grid.data.rows, grid.data.cols]
    else:
        d["triangles"] = grid.data.count
    return d


def _print_grid(path: str, grid: Grid) -> None:
    """Pretty-print a Grid summary to stdout."""
    m = grid.metadata
    print(f"\n{'='*60}")
    print(f"File: {path}")
    print(f"Name: {m.name or '(unnamed)'}")
    print(f"Type: {grid.grid_type.name.lower()} (format version {m.version})")
    if grid.grid_type is GridType.RECTANGULAR:
        print(f"Shape: {grid.data.rows} rows x {grid.data.cols} columns")
    else:
        print(f"Triangles: {grid.data.count}")
    print(f"X: {grid.xmin} .. {grid.xmax}")
    print(f"Y: {grid.ymin} .. {grid.ymax}")
    print(f"Z: {grid.zmin} .. {grid.zmax}")
    if m.xy_units or m.z_units:
        xy = m.xy_units.name.lower() if m.xy_units else "?"
        z = m.z_units.name.lower() if m.z_units else "?"
        print(f"Units: xy={xy} z={z}")
    for label, value in (("Created", m.created), ("Source", m.source),
                         ("Projection", m.projection), ("Datum", m.datum)):
        if value:
            print(f"{label}: {value}")
    for w in grid.warnings:
        print(f"  WARNING: {w}")


def _load_layout(path: str | None) -> GridLayout | None:
    """Load the layout for a subcommand, reporting a bad file on stderr."""
    try:
        return load_layout(path)
    except (OSError, yaml.YAMLError, ValueError) as exc:
        print(f"Error: layout {path}: {exc}", file=sys.stderr)
        return None


def cmd_read(args) -> int:
    """Execute the ``read`` subcommand."""
    layout = _load_layout(args.config)
    if layout is None:
        return 1
    results = []
    any_error = False
    for path in args.files:
        try:
            grid = read_grid_file(path, layout)
        except GridError as exc:
            print(f"Error: {path}: {exc}", file=sys.stderr)
            any_error = True
            continue
        if args.output_json:
            results.append(_grid_to_dict(path, grid))
        else:
            _print_grid(path, grid)

    if args.output_json:
        print(json.dumps(results, indent=2))
    return 1 if any_error else 0


def cmd_layout(args) -> int:
    """Execute the ``layout`` subcommand."""
    layout = _load_layout(args.config)
    if layout is None:
        return 1
    print(f"Layout: {layout.name}")
    print(f"  signature:       {layout.signature!r}")
    print(f"  known versions:  {', '.join(str(v) for v in layout.known_versions)}")
    print(f"  sections:        metadata={layout.metadata_section} "
          f"grid_data={layout.grid_data_section}")
    print(f"  no-data:         {layout.nodata!r} (0x{layout.nodata_bits:016x})")
    print(f"  row origin:      {layout.row_origin}")
    print(f"  max dimension:   {layout.max_dimension}")
    print(f"  max cells:       {layout.max_cells}")
    print(f"  max triangles:   {layout.max_triangles}")
    return 0


def main(argv: list[str] | None = None) -> int:
    """Entry point for the CLI."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    level = {0: logging.ERROR, 1: logging.WARNING}.get(args.verbose, logging.DEBUG)
    logging.basicConfig(level=level, format="%(levelname)s %(name)s: %(message)s")

    if args.command is None:
        parser.print_help()
        return 0

    dispatch = {
        "read": cmd_read,
        "layout": cmd_layout,
    }
    handler = dispatch.get(args.command)
    if handler is None:
        parser.print_help()
        return 1
    return handler(args)


if __name__ == "__main__":
    sys.exit(main())
