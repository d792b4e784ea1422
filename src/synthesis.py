"""Mermaid flowchart synthesis for family trees."""

from collections.abc import Iterable, Mapping
import re

import networkx as nx

from graph import build_union_layout_graph
from parsing import index_people

DIRECTION = "TD"

CLASS_DEFS = {
    "person": "fill:#fff,stroke:#b91c1c,stroke-width:2px",
    "marriage": "fill:none,stroke:none,width:1px,height:1px",
}

THUMBNAIL_SIZE = 48

UNSAFE_TEXT = re.compile(r'[<>"]')
UNSAFE_URL = re.compile(r"[<>\"'\s]")
LINE_BREAK = re.compile(r"[\r\n]+")


def safe_text(value) -> str:
    """Strip characters that would break a Mermaid node label."""
    if value is None:
        return ""
    return UNSAFE_TEXT.sub("", LINE_BREAK.sub(" ", str(value)))


def safe_url(value) -> str:
    if value is None:
        return ""
    return UNSAFE_URL.sub("", str(value))


def node_label(data: dict) -> str:
    """Label HTML for a person node: optional thumbnail, name, and life years."""
    years = safe_text(data.get("birth"))
    if data.get("death"):
        years += f" - {safe_text(data['death'])}"

    label = f"{safe_text(data.get('person_name'))}<br/><small>{years}</small>"

    image_url = safe_url(data.get("image_url"))
    if image_url:
        img = f"<img src='{image_url}' width='{THUMBNAIL_SIZE}' height='{THUMBNAIL_SIZE}'/>"
        label = f"{img}<br/>{label}"
    return label


def to_mermaid(H: nx.DiGraph, direction: str = DIRECTION) -> str:
    """Serialize a union layout graph as Mermaid flowchart text."""
    lines = [f"flowchart {direction}"]
    lines += [f"classDef {name} {style};" for name, style in CLASS_DEFS.items()]

    families = []
    for node, data in H.nodes(data=True):
        if data.get("node_type") == "family":
            families.append((node, data))
        else:
            lines.append(f'{node}("{node_label(data)}"):::person')

    for fam_id, data in families:
        a, b = data["spouses"]
        lines += [
            f"subgraph {data['group']} [ ]",
            "direction LR",
            f"{a} --- {fam_id} --- {b}",
            "end",
            f"{fam_id}{{ }}:::marriage",
        ]

    for u, v, data in H.edges(data=True):
        if data.get("edge_type") in ("family_to_child", "parent_to_child"):
            lines.append(f"{u} --> {v}")

    return "\n".join(lines) + "\n"


def synthesize(people: Mapping | Iterable) -> str:
    """
    Turn a collection of person records into a Mermaid flowchart description.

    `people` is an id-keyed mapping or any iterable of Person objects / row
    dicts. Malformed records are skipped and dangling spouse or parent ids
    are ignored, so this never raises for bad data.
    """
    records = people.values() if isinstance(people, Mapping) else people
    return to_mermaid(build_union_layout_graph(index_people(records)))
