"""Tests for Mermaid flowchart synthesis."""

from graph import marriage_token, node_token, pair_key
from models import Person
from synthesis import safe_text, safe_url, synthesize


def person_lines(text):
    return [line for line in text.splitlines() if line.endswith(":::person")]


def marriage_lines(text):
    return [line for line in text.splitlines() if line.endswith(":::marriage")]


def edge_lines(text):
    return [line for line in text.splitlines() if " --> " in line]


def married_couple():
    return {
        1: {"id": 1, "name": "A", "parents": [], "spouse": 2},
        2: {"id": 2, "name": "B", "parents": [], "spouse": 1},
        3: {"id": 3, "name": "C", "parents": [1, 2]},
    }


def test_married_parents_share_one_merge_node():
    text = synthesize(married_couple())
    merge = marriage_token(pair_key("N_1", "N_2"))

    assert len(marriage_lines(text)) == 1
    assert f"N_1 --- {merge} --- N_2" in text.splitlines()
    assert edge_lines(text) == [f"{merge} --> N_3"]
    assert "N_1 --> N_3" not in text
    assert "N_2 --> N_3" not in text


def test_one_sided_spouse_reference_still_forms_marriage():
    people = married_couple()
    people[2]["spouse"] = None

    text = synthesize(people)

    assert len(marriage_lines(text)) == 1
    assert len(edge_lines(text)) == 1


def test_unmarried_parent_gets_direct_edge():
    people = {1: {"id": 1, "name": "A"}, 2: {"id": 2, "name": "B", "parents": [1]}}

    text = synthesize(people)

    assert edge_lines(text) == ["N_1 --> N_2"]
    assert marriage_lines(text) == []
    assert "subgraph" not in text


def test_dangling_parent_is_ignored():
    text = synthesize({1: {"id": 1, "name": "A", "parents": [99]}})

    assert len(person_lines(text)) == 1
    assert edge_lines(text) == []


def test_two_unmarried_parents_get_one_edge_each():
    people = {
        "a": Person(id="a", name="A"),
        "b": Person(id="b", name="B"),
        "c": Person(id="c", name="C", parents=["a", "b"]),
    }

    assert sorted(edge_lines(synthesize(people))) == ["N_a --> N_c", "N_b --> N_c"]


def test_three_parents_use_merge_node_for_the_married_pair():
    people = {
        "1": Person(id="1", name="A", spouse="2"),
        "2": Person(id="2", name="B"),
        "3": Person(id="3", name="Step"),
        "4": Person(id="4", name="C", parents=["1", "2", "3"]),
    }
    merge = marriage_token(pair_key("N_1", "N_2"))

    assert sorted(edge_lines(synthesize(people))) == sorted(
        [f"{merge} --> N_4", "N_3 --> N_4"]
    )


def test_malformed_records_are_skipped():
    people = {
        1: {"id": 1, "name": "A"},
        2: {"name": "no id"},
        3: "not a record",
        4: None,
    }

    assert len(person_lines(synthesize(people))) == 1


def test_one_node_statement_per_person():
    people = {i: {"id": i, "name": f"P{i}"} for i in range(20)}

    assert len(person_lines(synthesize(people))) == 20


def test_output_is_independent_of_iteration_order():
    people = married_couple()
    people[4] = {"id": 4, "name": "D", "parents": [3]}
    reversed_people = dict(reversed(list(people.items())))

    first = synthesize(people)
    assert set(first.splitlines()) == set(synthesize(reversed_people).splitlines())
    assert synthesize(people) == first


def test_header_and_class_definitions():
    lines = synthesize(married_couple()).splitlines()

    assert lines[0] == "flowchart TD"
    assert lines[1].startswith("classDef person ")
    assert lines[2].startswith("classDef marriage ")


def test_label_contains_years_and_image():
    people = {
        1: {
            "id": 1,
            "name": "Ada",
            "birth": "1815",
            "death": "1852",
            "image_url": "https://example.org/ada.png",
        },
        2: {"id": 2, "name": "Bo", "birth": "1990"},
    }

    lines = person_lines(synthesize(people))

    assert lines[0].startswith('N_1("<img src=\'https://example.org/ada.png\'')
    assert "Ada<br/><small>1815 - 1852</small>" in lines[0]
    assert lines[1] == 'N_2("Bo<br/><small>1990</small>"):::person'


def test_label_injection_is_stripped():
    people = {1: {"id": 1, "name": 'Eve <b>"Evil"</b>\nend', "birth": '19"90'}}

    text = synthesize(people)
    line = person_lines(text)[0]
    label = line[len('N_1("') : -len('"):::person')]

    assert '"' not in label
    assert "<b>" not in text
    assert "Eve bEvil/b end" in label
    assert len(text.splitlines()) == 4


def test_safe_text_and_url():
    assert safe_text('<a href="x">') == "a href=x"
    assert safe_text(None) == ""
    assert safe_text(1950) == "1950"
    assert safe_url("http://x.org/a b'.png") == "http://x.org/ab.png"


def test_distinct_ids_never_share_a_token():
    ids = ["a-b", "a_b", "a b", "a.b", "N_a", "", "é", "e"]
    tokens = {node_token(i) for i in ids}

    assert len(tokens) == len(ids)
    assert node_token(12) == "N_12"
    assert node_token("a b").startswith("NX_a_b_")


def test_irregular_ids_produce_valid_statements():
    people = {
        "x-1": {"id": "x-1", "name": "A", "spouse": "y 2"},
        "y 2": {"id": "y 2", "name": "B"},
        "z/3": {"id": "z/3", "name": "C", "parents": ["x-1", "y 2"]},
    }

    text = synthesize(people)

    assert len(marriage_lines(text)) == 1
    assert edge_lines(text)[0].endswith(f"--> {node_token('z/3')}")
