"""Data classes for family tree entities."""

from dataclasses import dataclass, field


@dataclass
class Person:
    id: str
    name: str = ""
    birth: str | None = None  # free-text year, e.g. "1950"
    death: str | None = None  # None means living
    image_url: str | None = None
    spouse: str | None = None
    parents: list[str] = field(default_factory=list)
