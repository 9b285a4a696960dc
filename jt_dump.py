#!/usr/bin/env python3
"""
Load a JT file and print what the importer found: file version, load
warnings, unsupported element types, geometry totals per layer and, on
request, the logical scene graph with attributes and properties.
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path
from typing import Sequence

from jtdecode import JTError, JTImporter, LoadOptions, setup_logging, write_load_report
from jtdecode.model import JTModel
from jtdecode.scene import SceneGraph


class PrintingProgress:
    def progress_changed(self, percent: int) -> None:
        print(f"[i] {percent:3d}% read", file=sys.stderr)


def parse_args(argv: Sequence[str]) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Inspect the scene graph and geometry of a JT file.")
    parser.add_argument("input", help="Path or file:/http(s): URL of the .jt file")
    parser.add_argument("--skip-geometry", action="store_true", help="Only read the assembly structure")
    parser.add_argument(
        "--skip-sub-partitions",
        action="store_true",
        help="Do not follow partition nodes that reference other JT files",
    )
    parser.add_argument(
        "--link-all-children",
        action="store_true",
        help="Keep linking sibling children after a multi-instance clone",
    )
    parser.add_argument("--geometry", action="store_true", help="Print triangle/polyline/point totals per layer")
    parser.add_argument("--tree", action="store_true", help="Print the scene graph")
    parser.add_argument(
        "--attributes",
        action="store_true",
        help="With --tree, list attributes and properties of every node",
    )
    parser.add_argument("--report", type=Path, help="Write a text load report to this path")
    parser.add_argument("--progress", action="store_true", help="Print read progress to stderr")
    parser.add_argument("--profile", action="store_true", help="Log phase timings")
    parser.add_argument("--timeout", type=float, default=30.0, help="Network timeout in seconds")
    parser.add_argument("--log-file", type=Path, help="Mirror log output to this file")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")
    return parser.parse_args(argv)


def print_geometry(model: JTModel) -> None:
    layers = sorted(set(model.faces) | set(model.polylines) | set(model.points))
    for layer in layers:
        triangles = sum(batch.triangle_count for batch in model.faces.get(layer, []))
        polylines = len(model.polylines.get(layer, []))
        points = sum(len(batch.vertices) for batch in model.points.get(layer, []))
        print(f"    {layer:<40} triangles={triangles:<8} polylines={polylines:<6} points={points}")


def print_tree(graph: SceneGraph, with_attributes: bool) -> None:
    if not with_attributes:
        print(graph.lsg_as_string(), end="")
        return

    def visit(handle: int, depth: int) -> None:
        node = graph.node(handle)
        indent = "    " * depth
        name = node.raw_name
        print(f"{indent}{node.type_name}[{node.object_id}] " + (f'"{name}"' if name is not None else "<>"))
        for attribute in node.attributes:
            print(f"{indent}  @ {attribute.type_name}[{attribute.object_id}]")
        for key, value in node.properties.items():
            print(f"{indent}  - {getattr(key, 'value', key)} = {getattr(value, 'value', value.type_name)}")
        for key, value in node.late_loaded.items():
            print(f"{indent}  + {key} = {value}")
        for child in node.children:
            visit(child, depth + 1)

    if graph.root is not None:
        visit(graph.root, 0)


def main(argv: Sequence[str] | None = None) -> int:
    args = parse_args(sys.argv[1:] if argv is None else argv)
    setup_logging(logging.DEBUG if args.verbose else logging.WARNING, args.log_file)
    if args.profile:
        logging.getLogger("jtdecode.importer").setLevel(logging.INFO)

    options = LoadOptions(
        skip_geometry=args.skip_geometry,
        skip_sub_partitions=args.skip_sub_partitions,
        break_after_clone=not args.link_all_children,
        progress_listeners=[PrintingProgress()] if args.progress else (),
        timeout=args.timeout,
        profiling_enabled=args.profile,
    )
    importer = JTImporter(options)
    source = Path(args.input)
    try:
        if source.exists():
            model = importer.load_file(source)
        else:
            model = importer.load_url(args.input)
    except (JTError, OSError) as exc:
        print(f"[!] Failed to load {args.input}: {exc}", file=sys.stderr)
        return 1

    print(f"[+] Loaded {args.input}")
    for key, value in model.model_information():
        print(f"[i] {key}: {value}")
    for severity, message in model.load_information:
        print(f"[{severity}] {message}")
    if model.unsupported_entities:
        print(f"[i] {len(model.unsupported_entities)} unsupported element type(s):")
        for entity in model.unsupported_entities:
            print(f"    {entity}")
    for ref in model.external_references:
        print(f"[{'+' if ref.resolved else '!'}] External reference {ref.file_name}")
    if args.geometry:
        print("[+] Geometry per layer:")
        print_geometry(model)
    if args.tree and model.scene is not None:
        print("[+] Scene graph:")
        print_tree(model.scene, args.attributes)
    if args.report:
        write_load_report(model, args.report)
        print(f"[+] Report written to {args.report}")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
