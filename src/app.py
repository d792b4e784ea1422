"""Family tree session: store -> person map -> description -> renderer."""

import logging
from pathlib import Path

from database import PersonStore, StoreError
from editor import EditorForm, submit
from graph import focus_people
from models import Person
from parsing import import_people, index_people, normalize_gedcom, read_gedcom
from plotting import RenderError, Renderer
from synthesis import synthesize
from validation import validate_people

logger = logging.getLogger(__name__)


class FamilyTreeApp:
    """
    Holds the current person map and the last rendered diagram.

    Every failure is terminal for the operation but never for the session:
    a failed fetch keeps the previous map, a failed render keeps the previous
    surface, and a failed save hands the form back with an error.
    """

    def __init__(self, store: PersonStore, renderer: Renderer | None = None):
        self.store = store
        self.renderer = renderer
        self.people: dict[str, Person] = {}
        self.loading = False
        self.description: str | None = None
        self.surface = None

    def refresh(self) -> bool:
        """Refetch every person. Returns False (keeping the old map) on failure."""
        self.loading = True
        try:
            rows = self.store.fetch_all()
        except StoreError as exc:
            logger.error("Fetching family members failed: %s", exc)
            return False
        finally:
            self.loading = False

        # Replace the map in a single assignment
        self.people = index_people(rows)
        logger.info("Loaded %d persons", len(self.people))
        return True

    def render(self, focus: str | None = None, radius: int = 2):
        """Synthesize and render the tree (or the part around `focus`)."""
        people = self.people
        if focus is not None:
            people = focus_people(people, focus, radius=radius)
        if not people or self.renderer is None:
            logger.info("Nothing to render")
            return self.surface

        for warning in validate_people(people):
            logger.warning(warning)

        description = synthesize(people)
        try:
            surface = self.renderer.render(description)
        except RenderError as exc:
            logger.error("Rendering the family tree failed: %s", exc)
            return self.surface

        self.description = description
        self.surface = surface
        return surface

    def save(self, form: EditorForm) -> EditorForm:
        """Write the form to the store; on success refetch and re-render."""
        result = submit(form, self.store, self.people)
        if result.error is None:
            self.refresh()
            self.render()
        return result

    def import_gedcom(self, path: Path) -> int:
        """Import every individual of a GEDCOM file, then refetch."""
        persons = normalize_gedcom(read_gedcom(path))
        id_map = import_people(self.store, persons)
        self.refresh()
        return len(id_map)
