from __future__ import annotations

import json
from pathlib import Path
from typing import Any, TypeVar

from pydantic import BaseModel, ValidationError

from .errors import PayloadValidationError

M = TypeVar("M", bound=BaseModel)


def dumps(value: Any) -> str:
    return json.dumps(value, indent=2, ensure_ascii=False) + "\n"


def read_json(path: str | Path) -> Any:
    try:
        return json.loads(Path(path).read_text(encoding="utf-8"))
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise PayloadValidationError(f"{path} is not valid JSON: {exc}", context={"path": str(path)}) from exc


def read_model(path: str | Path, model: type[M]) -> M:
    raw = read_json(path)
    try:
        return model.model_validate(raw)
    except ValidationError as exc:
        first = exc.errors()[0]
        where = ".".join(str(p) for p in first.get("loc", ())) or "<root>"
        raise PayloadValidationError(
            f"Invalid {model.__name__} input: {where}: {first.get('msg')}",
            context={"path": str(path), "errors": exc.error_count()},
        ) from exc


def write_json(path: str | Path, value: Any) -> None:
    target = Path(path)
    if target.parent != Path("."):
        target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(dumps(value), encoding="utf-8")


def dump_model(model: BaseModel) -> dict[str, Any]:
    return model.model_dump(mode="json", by_alias=True, exclude_none=True)


def write_model(path: str | Path, model: BaseModel) -> None:
    write_json(path, dump_model(model))
