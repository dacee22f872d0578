"""Reference-data seeding for the record store.

Loads complaint categories and subcategories from the bundled
``reference/categories.json`` file and writes them, together with the
fixed status code table, into the record store.  Designed to run once
at application startup against an empty store.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import TYPE_CHECKING

import structlog

from src.models.complaint import ComplaintCategory, ComplaintStatusInfo, ComplaintSubcategory
from src.models.enums import ComplaintStatus

if TYPE_CHECKING:
    from src.services.store import RecordStore

logger = structlog.get_logger(__name__)

# ---------------------------------------------------------------------------
# Paths
# ---------------------------------------------------------------------------

_DATA_DIR: Path = Path(__file__).resolve().parent / "reference"
_CATEGORIES_PATH: Path = _DATA_DIR / "categories.json"


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


def load_categories(
    path: Path | None = None,
) -> tuple[list[ComplaintCategory], list[ComplaintSubcategory]]:
    """Load complaint categories and subcategories from a JSON file.

    Entries that fail validation are logged and skipped so one bad row
    does not block startup.
    """
    source = path or _CATEGORIES_PATH
    try:
        raw = json.loads(source.read_text(encoding="utf-8"))
    except (OSError, json.JSONDecodeError):
        logger.error("seed.categories_load_failed", path=str(source), exc_info=True)
        return [], []

    categories: list[ComplaintCategory] = []
    for entry in raw.get("categories", []):
        try:
            categories.append(ComplaintCategory.model_validate(entry))
        except ValueError:
            logger.warning("seed.category_invalid", entry=entry)

    subcategories: list[ComplaintSubcategory] = []
    for entry in raw.get("subcategories", []):
        try:
            subcategories.append(ComplaintSubcategory.model_validate(entry))
        except ValueError:
            logger.warning("seed.subcategory_invalid", entry=entry)

    return categories, subcategories


def status_table() -> list[ComplaintStatusInfo]:
    """The fixed status code table (``1=Pending`` ... ``6=Rejected``)."""
    return [
        ComplaintStatusInfo(id=int(status), name=status.label, color=status.color)
        for status in ComplaintStatus
    ]


# ---------------------------------------------------------------------------
# Seeding
# ---------------------------------------------------------------------------


async def seed_reference_data(store: RecordStore, *, path: Path | None = None) -> int:
    """Write statuses, categories and subcategories into *store*.

    Returns the number of rows inserted.
    """
    inserted = 0
    for status in status_table():
        await store.insert("complaint_statuses", status.model_dump())
        inserted += 1

    categories, subcategories = load_categories(path)
    for category in categories:
        await store.insert("complaint_categories", category.model_dump())
        inserted += 1
    for subcategory in subcategories:
        await store.insert("complaint_subcategories", subcategory.model_dump())
        inserted += 1

    logger.info(
        "seed.complete",
        statuses=len(ComplaintStatus),
        categories=len(categories),
        subcategories=len(subcategories),
    )
    return inserted
