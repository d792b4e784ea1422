"""Data-quality checks for family tree data."""

from collections.abc import Mapping

import networkx as nx

from graph import build_family_graph
from models import Person
from parsing import extract_year


def validate_people(people: Mapping[str, Person]) -> list[str]:
    """
    Validate the family tree for:
    - Cycles in parent-child relationships
    - Impossible ages (child born before parent, parent younger than 12)
    - Death recorded before birth

    Years are taken from the free-text birth/death fields. Returns a list of
    warning messages; nothing here is fatal.
    """
    warnings: list[str] = []
    G = build_family_graph(people)

    # Create a subgraph with only PARENT_OF edges for cycle detection
    parent_edges = [
        (u, v) for u, v, d in G.edges(data=True) if d.get("relationship_type") == "PARENT_OF"
    ]
    parent_graph = nx.DiGraph(parent_edges)

    try:
        cycle = nx.find_cycle(parent_graph, orientation="original")
        cycle_nodes = [edge[0] for edge in cycle]
        warnings.append(f"Cycle detected in parent-child relationships: {cycle_nodes}")
    except nx.NetworkXNoCycle:
        pass

    for parent, child in parent_edges:
        parent_data = G.nodes[parent]
        child_data = G.nodes[child]

        parent_year = extract_year(parent_data.get("birth"))
        child_year = extract_year(child_data.get("birth"))
        if not parent_year or not child_year:
            continue

        if int(child_year) < int(parent_year):
            warnings.append(
                f"Impossible: {child_data.get('person_name')} born before parent "
                f"{parent_data.get('person_name')}"
            )
        elif int(child_year) - int(parent_year) < 12:
            warnings.append(
                f"Suspicious: {parent_data.get('person_name')} was less than 12 years "
                f"old when {child_data.get('person_name')} was born"
            )

    for _, data in G.nodes(data=True):
        birth = extract_year(data.get("birth"))
        death = extract_year(data.get("death"))

        if birth and death and int(death) < int(birth):
            warnings.append(f"Impossible: {data.get('person_name')} died before being born")

    return warnings
