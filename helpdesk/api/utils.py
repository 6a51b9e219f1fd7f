from __future__ import annotations

from typing import Any

from fastapi import HTTPException
from pydantic import BaseModel, ValidationError


def parse_filter(filter_param: str | None, schema: type[BaseModel]) -> dict[str, Any]:
    """Decode the JSON ``filter`` query parameter and validate it against ``schema``.

    Only keys the client actually sent are returned, so an explicit ``null`` stays
    distinguishable from an absent key.
    """
    if not filter_param:
        return {}
    try:
        parsed = schema.model_validate_json(filter_param)
    except ValidationError as exc:
        raise HTTPException(
            status_code=400,
            detail=[
                {"loc": list(error["loc"]), "msg": error["msg"]} for error in exc.errors()
            ],
        ) from exc
    return parsed.model_dump(exclude_unset=True)


def list_response(items: list[Any], total: int) -> dict[str, Any]:
    return {"data": items, "total": total}
