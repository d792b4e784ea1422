"""NetworkX graph building and operations."""

from collections.abc import Mapping
import hashlib
import itertools
import re

import networkx as nx

from models import Person

NON_WORD = re.compile(r"\W", re.ASCII)


def _digest(text: str, length: int) -> str:
    return hashlib.sha1(text.encode("utf-8")).hexdigest()[:length]


def node_token(person_id) -> str:
    """
    Return the diagram-safe node token for a person id.

    Ids made only of ASCII word characters map to ``N_<id>``. Anything else is
    rewritten with ``_`` fillers and gets a hash suffix under the ``NX_``
    prefix, so two distinct ids never share a token.
    """
    raw = str(person_id)
    if raw and not NON_WORD.search(raw):
        return f"N_{raw}"
    return f"NX_{NON_WORD.sub('_', raw)}_{_digest(raw, 10)}"


def pair_key(token_a: str, token_b: str) -> str:
    """Canonical, order-independent key for a pair of node tokens."""
    # "|" never occurs in a token, so the join is unambiguous
    return "|".join(sorted((token_a, token_b)))


def marriage_token(key: str) -> str:
    return f"M_{_digest(key, 12)}"


def build_family_graph(people: Mapping[str, Person]) -> nx.DiGraph:
    """
    Build a directed person graph keyed by person id.

    PARENT_OF edges go parent -> child, SPOUSE_OF edges go from the person
    carrying the spouse reference. References to unknown ids are dropped.
    """
    G = nx.DiGraph()

    # Note: use 'person_name' instead of 'name' to avoid conflict with pydot
    for person_id, p in people.items():
        G.add_node(person_id, person_name=p.name, birth=p.birth, death=p.death)

    for person_id, p in people.items():
        for parent in p.parents:
            if parent in people:
                G.add_edge(parent, person_id, relationship_type="PARENT_OF")
        if p.spouse in people and p.spouse != person_id:
            if not G.has_edge(p.spouse, person_id):
                G.add_edge(person_id, p.spouse, relationship_type="SPOUSE_OF")

    return G


def focus_people(
    people: Mapping[str, Person], center_id: str, radius: int = 2
) -> dict[str, Person]:
    """
    Keep only the persons within `radius` relationship hops of `center_id`.

    Args:
        people: The full id-keyed person map
        center_id: The person ID to center on
        radius: Maximum distance from center (default 2)

    Returns:
        The id-keyed map of persons in the ego graph, in original order
    """
    if center_id not in people:
        raise ValueError(f"Person ID {center_id} not found in family tree")

    # Use undirected view so parents, children and spouses all count as one hop
    undirected = build_family_graph(people).to_undirected()
    ego = nx.ego_graph(undirected, center_id, radius=radius)

    return {pid: p for pid, p in people.items() if pid in ego}


def build_union_layout_graph(people: Mapping[str, Person]) -> nx.DiGraph:
    """
    Build a layout graph using the union-node model for family tree diagrams.

    Creates one "family node" (merge-node) per married couple that joins the
    two spouses and fans out to their shared children:
    - Spouses sit on the same rank around their family node
    - Children of the couple hang from the family node only
    - Children of any other parent set hang directly from each parent

    Args:
        people: id-keyed person map; dangling spouse/parent ids are ignored

    Returns:
        A graph whose nodes are node tokens with node_type "person" or
        "family", and whose edges carry edge_type "spouse_to_family",
        "family_to_child" or "parent_to_child"
    """
    H = nx.DiGraph()

    for person_id, p in people.items():
        H.add_node(
            node_token(person_id),
            node_type="person",
            person_id=person_id,
            person_name=p.name,
            birth=p.birth,
            death=p.death,
            image_url=p.image_url,
        )

    # Map spouse pair -> family node id; first sighting of a pair wins
    fam_for_pair: dict[str, str] = {}
    for person_id, p in people.items():
        if p.spouse is None or p.spouse not in people or p.spouse == person_id:
            continue

        a, b = sorted((node_token(person_id), node_token(p.spouse)))
        key = pair_key(a, b)
        if key in fam_for_pair:
            continue

        fam_id = marriage_token(key)
        fam_for_pair[key] = fam_id
        H.add_node(fam_id, node_type="family", spouses=(a, b), group=f"SG_{fam_id[2:]}")
        H.add_edge(a, fam_id, edge_type="spouse_to_family")
        H.add_edge(b, fam_id, edge_type="spouse_to_family")

    for person_id, p in people.items():
        child = node_token(person_id)
        parents = [node_token(par) for par in p.parents if par in people]
        if not parents:
            continue

        fam_id = None
        married: tuple[str, ...] = ()
        # Try to find a married couple among the parents
        for p1, p2 in itertools.combinations(parents, 2):
            key = pair_key(p1, p2)
            if key in fam_for_pair:
                fam_id = fam_for_pair[key]
                married = (p1, p2)
                break

        if fam_id is not None:
            H.add_edge(fam_id, child, edge_type="family_to_child")

        for parent in parents:
            if parent not in married:
                H.add_edge(parent, child, edge_type="parent_to_child")

    return H
