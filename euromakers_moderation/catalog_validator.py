"""Check every published catalog file against the record schema the website reads."""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from pathlib import Path

from pydantic import ValidationError

from .errors import CatalogValidationError
from .models import SoftwareRecord
from .text import CATALOG_PREFIX

logger = logging.getLogger(__name__)


@dataclass
class CatalogReport:
    total: int = 0
    errors: dict[str, list[str]] = field(default_factory=dict)

    @property
    def invalid(self) -> int:
        return len(self.errors)

    @property
    def valid(self) -> int:
        return self.total - self.invalid


def validate_record_file(path: str | Path) -> list[str]:
    """Returns the problems found in one catalog file; empty when it is valid."""
    try:
        data = json.loads(Path(path).read_text(encoding="utf-8"))
    except (ValueError, OSError):
        return [f"Invalid JSON in file: {path}"]

    try:
        SoftwareRecord.model_validate(data)
    except ValidationError as exc:
        return [
            f"{'.'.join(str(p) for p in err.get('loc', ())) or '<root>'}: {err.get('msg')}"
            for err in exc.errors()
        ]
    return []


def validate_catalog(software_root: str | Path = CATALOG_PREFIX) -> CatalogReport:
    root = Path(software_root)
    if not root.is_dir():
        raise CatalogValidationError(f"Software directory {root} not found", context={"path": str(root)})

    report = CatalogReport()
    # Records live one level down, in a directory per category.
    for category in sorted(p for p in root.iterdir() if p.is_dir()):
        for path in sorted(category.glob("*.json")):
            report.total += 1
            problems = validate_record_file(path)
            if problems:
                report.errors[path.relative_to(root).as_posix()] = problems
                logger.info("%s invalid", path)
            else:
                logger.info("%s valid", path)
    return report


def format_report(report: CatalogReport) -> str:
    lines = [f"Total files: {report.total}", f"Valid files: {report.valid}"]
    if report.invalid:
        lines.append(f"Invalid files: {report.invalid}")
        for name, problems in report.errors.items():
            lines.append(f"  {name}:")
            lines.extend(f"    {problem}" for problem in problems)
    return "\n".join(lines)


def check_catalog(software_root: str | Path = CATALOG_PREFIX) -> str:
    """Validate the catalog; raises CatalogValidationError listing every invalid file."""
    report = validate_catalog(software_root)
    summary = format_report(report)
    if report.invalid:
        raise CatalogValidationError(summary, context={"invalid": report.invalid, "total": report.total})
    return summary
