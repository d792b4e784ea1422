"""Settings read from the environment (and an optional .env file)."""

from dataclasses import dataclass
import os
from pathlib import Path

from dotenv import load_dotenv


@dataclass
class Settings:
    backend: str = "sqlite"  # sqlite, supabase or memory
    db_path: Path = Path("family_tree.db")
    supabase_url: str | None = None
    supabase_key: str | None = None
    table: str = "family_members"
    viewport_file: Path = Path(".family_tree_viewport.json")
    log_level: str = "WARNING"


def load_settings(env_file: Path | None = None) -> Settings:
    """Load settings, reading .env first when present. Existing env vars win."""
    load_dotenv(env_file)

    return Settings(
        backend=os.environ.get("FAMILY_TREE_BACKEND", "sqlite").lower(),
        db_path=Path(os.environ.get("FAMILY_TREE_DB", "family_tree.db")),
        supabase_url=os.environ.get("SUPABASE_URL") or None,
        supabase_key=os.environ.get("SUPABASE_KEY") or None,
        table=os.environ.get("FAMILY_TREE_TABLE", "family_members"),
        viewport_file=Path(
            os.environ.get("FAMILY_TREE_VIEWPORT_FILE", ".family_tree_viewport.json")
        ),
        log_level=os.environ.get("LOG_LEVEL", "WARNING").upper(),
    )
