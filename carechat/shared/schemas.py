from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel
from typing import Optional, Any


class CamelModel(BaseModel):
    """Base schema for the wire format: camelCase on the wire, snake_case in code."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class StatusResponse(CamelModel):
    """Generic status response."""

    success: bool = True
    message: Optional[str] = None


class ErrorResponse(BaseModel):
    """Error response body."""

    detail: Any
    status_code: int
