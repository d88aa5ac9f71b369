"""Default response class for the API."""

from typing import Any

import orjson
from fastapi.responses import JSONResponse
from pydantic import BaseModel


class ORJSONResponse(JSONResponse):
    """Renders content with orjson, keys sorted.

    A pydantic model given as content is dumped by alias, so camelCase
    schemas stay camelCase on the wire.
    """

    media_type = "application/json"

    def render(self, content: Any) -> bytes:  # noqa: ANN401 - any JSON content
        if isinstance(content, BaseModel):
            content = content.model_dump(mode="json", by_alias=True)
        return orjson.dumps(content, option=orjson.OPT_SORT_KEYS)
