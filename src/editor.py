"""Add/edit person form: state transitions, validation and save."""

from collections.abc import Mapping
from dataclasses import dataclass, replace
import logging

from database import StoreError
from models import Person
from parsing import normalize_id, parse_parent_ids

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = ("name", "birth", "death", "image_url", "spouse", "parent_ids")


@dataclass(frozen=True)
class EditorForm:
    editing_id: str | None = None  # None means adding a new person
    name: str = ""
    birth: str = ""
    death: str = ""
    image_url: str = ""
    spouse: str = ""
    parent_ids: str = ""  # comma separated, e.g. "1, 2"
    is_open: bool = False
    error: str | None = None


def open_add() -> EditorForm:
    return EditorForm(is_open=True)


def open_edit(person: Person) -> EditorForm:
    return EditorForm(
        editing_id=person.id,
        name=person.name or "",
        birth=person.birth or "",
        death=person.death or "",
        image_url=person.image_url or "",
        spouse=person.spouse or "",
        parent_ids=", ".join(person.parents),
        is_open=True,
    )


def update_field(form: EditorForm, name: str, value: str) -> EditorForm:
    if name not in EDITABLE_FIELDS:
        raise ValueError(f"Unknown form field: {name}")
    return replace(form, **{name: value})


def close(form: EditorForm) -> EditorForm:
    return replace(form, is_open=False, error=None)


def validate_form(form: EditorForm, people: Mapping[str, Person]) -> list[str]:
    """Return the list of problems preventing a save; empty when the form is valid."""
    errors = []
    if not form.name.strip():
        errors.append("Name is required")

    spouse = normalize_id(form.spouse)
    if spouse is not None:
        if spouse == form.editing_id:
            errors.append("A person cannot be their own spouse")
        elif spouse not in people:
            errors.append(f"Unknown spouse id: {spouse}")

    for parent in parse_parent_ids(form.parent_ids):
        if parent == form.editing_id:
            errors.append("A person cannot be their own parent")
        elif parent not in people:
            errors.append(f"Unknown parent id: {parent}")

    if form.editing_id is not None and form.editing_id not in people:
        errors.append(f"Unknown person id: {form.editing_id}")

    return errors


def form_to_record(form: EditorForm) -> dict:
    """Full store record for the form, without the id."""
    return {
        "name": form.name.strip(),
        "birth": form.birth.strip() or None,
        "death": form.death.strip() or None,
        "image_url": form.image_url.strip() or None,
        "spouse": normalize_id(form.spouse),
        "parents": parse_parent_ids(form.parent_ids),
    }


def submit(form: EditorForm, store, people: Mapping[str, Person]) -> EditorForm:
    """
    Validate the form and write it to the store.

    On success the form comes back closed. On a validation or store failure
    the same form comes back open with `error` set, so the user can retry
    without re-entering anything.
    """
    errors = validate_form(form, people)
    if errors:
        return replace(form, error="; ".join(errors))

    record = form_to_record(form)
    try:
        if form.editing_id is None:
            new_id = store.insert(record)
            logger.info("Inserted person %s", new_id)
        else:
            store.update(form.editing_id, record)
            logger.info("Updated person %s", form.editing_id)
    except StoreError as exc:
        logger.error("Saving person failed: %s", exc)
        return replace(form, error=f"Save failed: {exc}")

    return close(form)

