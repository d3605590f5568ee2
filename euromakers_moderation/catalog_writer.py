from __future__ import annotations

import logging
from pathlib import Path
from typing import Any

from .errors import PathSafetyError
from .handoff import dump_model, read_model, write_json
from .models import ModerationResult
from .text import CATALOG_PREFIX, is_slug

logger = logging.getLogger(__name__)

# Public record fields, in the order the catalog files use. Moderation
# metadata (score, reasons, breakdown) is never written here.
RECORD_FIELDS = (
    "id",
    "name",
    "description",
    "category",
    "country",
    "logo",
    "website",
    "longDescription",
    "features",
)


def catalog_record(result: ModerationResult) -> dict[str, Any]:
    entry = dump_model(result.normalized_entry)
    return {key: entry.get(key) for key in RECORD_FIELDS}


def target_path_for(result: ModerationResult, software_root: str | Path = CATALOG_PREFIX) -> Path:
    category = result.normalized_category or result.normalized_entry.category
    entry_id = result.normalized_entry.id
    if not is_slug(category) or not is_slug(entry_id):
        raise PathSafetyError(
            "Invalid moderation score input: unsafe category or id",
            context={"category": category, "id": entry_id},
        )

    root = Path(software_root).resolve()
    output_path = (root / category / f"{entry_id}.json").resolve()
    if root not in output_path.parents or output_path.suffix != ".json":
        raise PathSafetyError(f"Refusing to write outside {software_root}", context={"path": str(output_path)})
    return output_path


def write_entry(result: ModerationResult, software_root: str | Path = CATALOG_PREFIX) -> Path:
    output_path = target_path_for(result, software_root)
    # Re-running overwrites the record; nothing is merged.
    write_json(output_path, catalog_record(result))
    logger.info("Catalog record %s written", output_path)
    return output_path


def write_entry_file(input_file: str | Path, software_root: str | Path = CATALOG_PREFIX) -> Path:
    result = read_model(input_file, ModerationResult)
    return write_entry(result, software_root)
