import pytest

from database import InMemoryPersonStore, StoreError
from editor import (
    EditorForm,
    close,
    form_to_record,
    open_add,
    open_edit,
    submit,
    update_field,
    validate_form,
)
from models import Person


class BrokenStore(InMemoryPersonStore):
    def insert(self, record):
        raise StoreError("quota exceeded")

    def update(self, person_id, record):
        raise StoreError("quota exceeded")


@pytest.fixture
def people():
    return {
        "1": Person(id="1", name="A"),
        "2": Person(id="2", name="B", spouse="1", parents=["1"]),
    }


def test_open_edit_fills_form(people):
    form = open_edit(people["2"])

    assert form.is_open
    assert form.editing_id == "2"
    assert (form.name, form.spouse, form.parent_ids) == ("B", "1", "1")


def test_update_field_and_close():
    form = update_field(open_add(), "name", "New")

    assert form.name == "New"
    assert not close(form).is_open
    with pytest.raises(ValueError):
        update_field(form, "is_open", False)


def test_validate_form(people):
    assert validate_form(EditorForm(name="  "), people) == ["Name is required"]
    assert validate_form(EditorForm(name="C", parent_ids="1, 2"), people) == []

    errors = validate_form(EditorForm(name="C", spouse="9", parent_ids="1, 8"), people)
    assert errors == ["Unknown spouse id: 9", "Unknown parent id: 8"]

    self_ref = EditorForm(editing_id="1", name="A", spouse="1", parent_ids="1")
    assert validate_form(self_ref, people) == [
        "A person cannot be their own spouse",
        "A person cannot be their own parent",
    ]


def test_form_to_record():
    form = EditorForm(name=" C ", birth="1990", death=" ", parent_ids="1,2", spouse="")

    assert form_to_record(form) == {
        "name": "C",
        "birth": "1990",
        "death": None,
        "image_url": None,
        "spouse": None,
        "parents": ["1", "2"],
    }


def test_submit_inserts_new_person(people):
    store = InMemoryPersonStore([{"id": "1", "name": "A"}, {"id": "2", "name": "B"}])
    form = EditorForm(name="C", parent_ids="1, 2", is_open=True)

    result = submit(form, store, people)

    assert result.error is None
    assert not result.is_open
    assert store.fetch_all()[-1]["parents"] == ["1", "2"]


def test_submit_updates_existing_person(people):
    store = InMemoryPersonStore([{"id": "1", "name": "A"}, {"id": "2", "name": "B"}])
    form = update_field(open_edit(people["2"]), "death", "2020")

    submit(form, store, people)

    rows = {row["id"]: row for row in store.fetch_all()}
    assert rows["2"]["death"] == "2020"
    assert rows["2"]["spouse"] == "1"


def test_submit_keeps_form_when_validation_fails(people):
    form = EditorForm(name="", birth="1999", is_open=True)

    result = submit(form, InMemoryPersonStore(), people)

    assert result.is_open
    assert result.error == "Name is required"
    assert result.birth == "1999"


def test_submit_keeps_form_when_store_fails(people):
    form = EditorForm(name="C", birth="1990", parent_ids="1", is_open=True)

    result = submit(form, BrokenStore(), people)

    assert result.is_open
    assert "quota exceeded" in result.error
    assert (result.name, result.birth, result.parent_ids) == ("C", "1990", "1")

    # Retrying with a working store succeeds without re-entering data
    assert submit(result, InMemoryPersonStore(), people).error is None
