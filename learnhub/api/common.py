from typing import Any
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Request body accepting camelCase keys (snake_case also works)."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def ok(data: Any = None, message: str | None = None) -> dict:
    body = {"success": True, "data": data}
    if message:
        body["message"] = message
    return body
