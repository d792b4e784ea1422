"""Person row parsing and GEDCOM import utilities."""

from collections.abc import Iterable, Mapping
import logging
from pathlib import Path
import re

from ged4py import GedcomReader

from models import Person

logger = logging.getLogger(__name__)

YEAR_PATTERN = re.compile(r"\b(\d{4})\b")


def normalize_id(value) -> str | None:
    """Return a person id as a string, or None for missing/blank ids."""
    if value is None or isinstance(value, bool):
        return None
    text = str(value).strip()
    return text or None


def _optional_text(value) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def parse_parent_ids(value) -> list[str]:
    """
    Parse a parents field into an ordered, de-duplicated list of ids.

    Accepts a list/tuple of ids, None, or a comma separated string such as
    the "1, 2" typed into the editor form.
    """
    if value is None:
        return []
    if isinstance(value, str):
        items = value.split(",")
    elif isinstance(value, Iterable):
        items = list(value)
    else:
        items = [value]

    ids = [normalize_id(item) for item in items]
    return list(dict.fromkeys(i for i in ids if i is not None))


def parse_person_row(row) -> Person | None:
    """
    Coerce a store row (or an existing Person) into a Person.

    Returns None when the row is malformed, i.e. not a mapping or without an id.
    """
    if isinstance(row, Person):
        person_id = normalize_id(row.id)
        if person_id is None:
            return None
        return Person(
            id=person_id,
            name=row.name or "",
            birth=_optional_text(row.birth),
            death=_optional_text(row.death),
            image_url=_optional_text(row.image_url),
            spouse=normalize_id(row.spouse),
            parents=parse_parent_ids(row.parents),
        )

    if not isinstance(row, Mapping):
        return None

    person_id = normalize_id(row.get("id"))
    if person_id is None:
        return None

    name = row.get("name")
    return Person(
        id=person_id,
        name="" if name is None else str(name),
        birth=_optional_text(row.get("birth")),
        death=_optional_text(row.get("death")),
        # Older rows stored the thumbnail under "img"
        image_url=_optional_text(row.get("image_url") or row.get("img")),
        spouse=normalize_id(row.get("spouse")),
        parents=parse_parent_ids(row.get("parents")),
    )


def index_people(rows: Iterable) -> dict[str, Person]:
    """Build the id-keyed person map, skipping malformed rows."""
    people: dict[str, Person] = {}
    skipped = 0
    for row in rows:
        person = parse_person_row(row)
        if person is None:
            skipped += 1
            continue
        people[person.id] = person

    if skipped:
        logger.debug("Skipped %d malformed person rows", skipped)
    return people


def person_to_record(person: Person) -> dict:
    """Return the store record for a person, without its id."""
    return {
        "name": person.name,
        "birth": person.birth,
        "death": person.death,
        "image_url": person.image_url,
        "spouse": person.spouse,
        "parents": list(person.parents),
    }


def extract_year(date_str: str | None) -> str | None:
    """Extract the first four digit year from a free-text date like 'ABT 25 NOV 1954'."""
    if not date_str:
        return None
    match = YEAR_PATTERN.search(str(date_str))
    return match.group(1) if match else None


# ============================================================================
# GEDCOM import
# ============================================================================


def extract_numeric_id(xref_id: str) -> str:
    """Extract numeric part from GEDCOM xref_id like '@I_347421849@' or 'I674624289'."""
    digits = re.sub(r"[^0-9]", "", xref_id)
    if not digits:
        raise ValueError(f"No numeric ID found in: {xref_id}")
    return digits


def read_gedcom(filepath: Path) -> GedcomReader:
    """Open a GEDCOM file and return the reader object."""
    return GedcomReader(str(filepath))


def extract_name(indi) -> str:
    """Extract the display name from an individual record."""
    name_rec = indi.sub_tag("NAME")
    if name_rec is None or name_rec.value is None:
        return "Unknown"

    name_value = name_rec.value
    # ged4py returns NAME as tuple: (given, surname, suffix)
    if isinstance(name_value, tuple):
        parts = [p for p in name_value if p]
        return " ".join(parts) if parts else "Unknown"

    # Fallback: string format "Given /Surname/"
    return str(name_value).replace("/", "").strip() or "Unknown"


def extract_event_year(indi, tag: str) -> str | None:
    """Extract the year of an event tag (BIRT, DEAT, etc.)."""
    event = indi.sub_tag(tag)
    if event is None:
        return None

    date_rec = event.sub_tag("DATE")
    if date_rec is None or not date_rec.value:
        return None
    # ged4py may return DateValue objects
    return extract_year(str(date_rec.value))


def normalize_gedcom(reader: GedcomReader) -> list[Person]:
    """
    Extract persons from parsed GEDCOM data.

    INDI records become persons keyed by their numeric xref id. FAM records
    provide the spouse link (first family of a person wins) and the
    [husband, wife] parents of each child.
    """
    persons: dict[str, Person] = {}

    for rec in reader.records0("INDI"):
        if rec.xref_id is None:
            continue

        indi_id = extract_numeric_id(rec.xref_id)
        persons[indi_id] = Person(
            id=indi_id,
            name=extract_name(rec),
            birth=extract_event_year(rec, "BIRT"),
            death=extract_event_year(rec, "DEAT"),
        )

    for rec in reader.records0("FAM"):
        if rec.xref_id is None:
            continue

        husb = rec.sub_tag("HUSB")
        wife = rec.sub_tag("WIFE")
        husb_id = extract_numeric_id(husb.xref_id) if husb and husb.xref_id else None
        wife_id = extract_numeric_id(wife.xref_id) if wife and wife.xref_id else None

        if husb_id in persons and wife_id in persons:
            if persons[husb_id].spouse is None:
                persons[husb_id].spouse = wife_id
            if persons[wife_id].spouse is None:
                persons[wife_id].spouse = husb_id

        parents = [p for p in (husb_id, wife_id) if p is not None]
        for child in rec.sub_tags("CHIL"):
            if not child.xref_id:
                continue
            child_id = extract_numeric_id(child.xref_id)
            if child_id in persons:
                persons[child_id].parents = list(
                    dict.fromkeys(persons[child_id].parents + parents)
                )

    return list(persons.values())


def import_people(store, persons: Iterable[Person]) -> dict[str, str]:
    """
    Write persons into a store that allocates its own ids.

    Every person is inserted without relationships first, then updated with
    spouse and parents translated to the newly allocated ids. Returns the
    mapping of source id -> store id.
    """
    persons = list(persons)
    id_map: dict[str, str] = {}

    for person in persons:
        record = person_to_record(person)
        record["spouse"] = None
        record["parents"] = []
        id_map[person.id] = store.insert(record)

    for person in persons:
        spouse = id_map.get(person.spouse) if person.spouse else None
        parents = [id_map[p] for p in person.parents if p in id_map]
        if spouse is None and not parents:
            continue
        record = person_to_record(person)
        record["spouse"] = spouse
        record["parents"] = parents
        store.update(id_map[person.id], record)

    logger.info("Imported %d persons", len(id_map))
    return id_map
