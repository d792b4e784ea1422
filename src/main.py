"""
Family tree command line.

1) Fetch every person from the configured store (SQLite, Supabase or memory).
2) Index them by id and synthesize a Mermaid flowchart description.
3) Render it: a pan/zoom HTML page, raw .mmd, mermaid-cli output, or a
   Graphviz export of the union-node layout graph.
4) Add/edit persons, import GEDCOM files, and adjust the saved viewport.
"""

import argparse
import logging
from pathlib import Path

from app import FamilyTreeApp
from config import Settings, load_settings
from database import StoreError, open_store
from editor import open_add, open_edit, update_field
from graph import build_union_layout_graph, focus_people
from plotting import (
    MermaidCliRenderer,
    MermaidHtmlRenderer,
    MermaidSourceRenderer,
    RenderError,
    plot_graph,
)
from validation import validate_people
from viewport import STORAGE_KEY, Box, ViewportController, ViewportStorage

FORM_OPTIONS = {
    "name": "name",
    "birth": "birth",
    "death": "death",
    "image_url": "image_url",
    "spouse": "spouse",
    "parents": "parent_ids",
}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="View and edit a family tree.")
    parser.add_argument("--env-file", type=Path, help="Path to a .env file with settings.")
    sub = parser.add_subparsers(dest="command", required=True)

    render = sub.add_parser("render", help="Render the family tree.")
    render.add_argument(
        "-o",
        "--output",
        type=Path,
        default=Path("family_tree.html"),
        help="Output file: .html, .mmd, or .svg/.png/.pdf (default: family_tree.html).",
    )
    render.add_argument(
        "--graphviz", action="store_true", help="Export the layout graph with Graphviz."
    )
    render.add_argument("--focus", help="Only render relatives around this person id.")
    render.add_argument("--radius", type=int, default=2, help="Hops around --focus.")

    sub.add_parser("list", help="List all persons.")
    sub.add_parser("validate", help="Report data-quality warnings.")

    for name, help_text in (("add", "Add a person."), ("edit", "Edit a person.")):
        cmd = sub.add_parser(name, help=help_text)
        if name == "edit":
            cmd.add_argument("id", help="Id of the person to edit.")
        cmd.add_argument("--name", required=name == "add")
        cmd.add_argument("--birth")
        cmd.add_argument("--death")
        cmd.add_argument("--image-url", dest="image_url")
        cmd.add_argument("--spouse", help="Id of the spouse.")
        cmd.add_argument("--parents", help='Comma separated parent ids, e.g. "1, 2".')

    gedcom = sub.add_parser("import-gedcom", help="Import persons from a GEDCOM file.")
    gedcom.add_argument("path", type=Path)

    view = sub.add_parser("view", help="Adjust the saved pan/zoom viewport.")
    view.add_argument("--pan", nargs=2, type=float, metavar=("DX", "DY"))
    view.add_argument("--zoom", type=float, metavar="WHEEL_DELTA")
    view.add_argument(
        "--center",
        nargs=8,
        type=float,
        metavar=("NL", "NT", "NW", "NH", "VL", "VT", "VW", "VH"),
        help="Center a node box (left top width height) in a viewport box.",
    )
    view.add_argument("--reset", action="store_true", help="Reset to the identity transform.")
    return parser


def make_renderer(output: Path, viewport: ViewportController):
    ext = output.suffix.lower()
    if ext == ".mmd":
        return MermaidSourceRenderer(output)
    if ext in (".svg", ".png", ".pdf"):
        return MermaidCliRenderer(output)
    return MermaidHtmlRenderer(output, viewport=viewport)


def run_render(args, settings: Settings, store) -> int:
    viewport = ViewportController(ViewportStorage(settings.viewport_file))
    app = FamilyTreeApp(store, make_renderer(args.output, viewport))

    print("Fetching family members...")
    if not app.refresh():
        print("  Could not load family members, see log for details")
        return 1
    print(f"  Found {len(app.people)} persons")

    if args.focus is not None and args.focus not in app.people:
        print(f"  Unknown person id: {args.focus}")
        return 1

    if args.graphviz:
        people = app.people
        if args.focus is not None:
            people = focus_people(people, args.focus, radius=args.radius)
        try:
            plot_graph(build_union_layout_graph(people), args.output)
        except RenderError as exc:
            print(f"  {exc}")
            return 1
        print(f"Graph saved to {args.output}")
        return 0

    surface = app.render(focus=args.focus, radius=args.radius)
    if surface is None:
        print("Nothing rendered")
        return 1
    print(f"Family tree saved to {surface}")
    return 0


def run_edit(args, store) -> int:
    app = FamilyTreeApp(store)
    if not app.refresh():
        print("Could not load family members, see log for details")
        return 1

    if args.command == "edit":
        person = app.people.get(args.id)
        if person is None:
            print(f"Unknown person id: {args.id}")
            return 1
        form = open_edit(person)
    else:
        form = open_add()

    for option, field_name in FORM_OPTIONS.items():
        value = getattr(args, option)
        if value is not None:
            form = update_field(form, field_name, value)

    result = app.save(form)
    if result.error:
        print(result.error)
        return 1
    print("Saved")
    return 0


def run_view(args, settings: Settings) -> int:
    storage = ViewportStorage(settings.viewport_file)
    if args.reset:
        storage.set(STORAGE_KEY, "{}")

    viewport = ViewportController(storage)
    if args.pan:
        dx, dy = args.pan
        viewport.pan_start(0, 0)
        viewport.pan_move(dx, dy)
        viewport.pan_end()
    if args.zoom is not None:
        viewport.zoom(args.zoom)
    if args.center:
        node_box, viewport_box = Box(*args.center[:4]), Box(*args.center[4:])
        viewport.center_on(node_box, viewport_box)

    print(viewport.apply_transform())
    return 0


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)
    settings = load_settings(args.env_file)
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.WARNING),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.command == "view":
        return run_view(args, settings)

    try:
        store = open_store(settings)
    except StoreError as exc:
        print(f"Cannot open store: {exc}")
        return 1

    if args.command == "render":
        return run_render(args, settings, store)

    if args.command in ("add", "edit"):
        return run_edit(args, store)

    app = FamilyTreeApp(store)
    if args.command == "import-gedcom":
        print(f"Importing GEDCOM file: {args.path}")
        try:
            count = app.import_gedcom(args.path)
        except StoreError as exc:
            print(f"  Import failed: {exc}")
            return 1
        print(f"  Imported {count} persons")
        return 0

    if not app.refresh():
        print("Could not load family members, see log for details")
        return 1

    if args.command == "list":
        for person in app.people.values():
            years = person.birth or "?"
            if person.death:
                years += f" - {person.death}"
            print(f"{person.id}\t{person.name}\t{years}")
        return 0

    warnings = validate_people(app.people)
    if warnings:
        print(f"Found {len(warnings)} validation warnings:")
        for w in warnings:
            print(f"  - {w}")
    else:
        print("No validation issues found")
    return 0


if __name__ == "__main__":
    raise SystemExit(main())
