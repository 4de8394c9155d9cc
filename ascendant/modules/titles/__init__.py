"""Titles: catalog, unlocks and equipping."""

from ascendant.modules.titles.catalog import (
    HunterRecord,
    TitleDefinition,
    TitleRequirement,
    is_eligible,
    load_catalog,
)
from ascendant.modules.titles.service import TitleService

__all__ = [
    "HunterRecord",
    "TitleDefinition",
    "TitleRequirement",
    "TitleService",
    "is_eligible",
    "load_catalog",
]
