"""Shared models and helpers for the serverless function endpoints."""

from typing import Any, TypeVar

from fastapi import Request
from pydantic import BaseModel, ValidationError

ModelT = TypeVar("ModelT", bound=BaseModel)


class FunctionError(Exception):
    """Raised by a function handler to answer 400 ``{"error": message}``.

    Attributes:
        message: Human-readable description returned to the caller.
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(self.message)


class ErrorResponse(BaseModel):
    """Error body returned by the function endpoints.

    Attributes:
        error: Human-readable error message.
    """

    error: str


async def parse_body(request: Request, model: type[ModelT]) -> ModelT:
    """Read the JSON body of ``request`` into ``model``.

    Raises:
        FunctionError: If the body is not JSON or does not match the model.
    """
    try:
        payload: Any = await request.json()
    except ValueError as exc:
        raise FunctionError("Request body must be valid JSON") from exc

    try:
        return model.model_validate(payload)
    except ValidationError as exc:
        first = exc.errors()[0]
        field = ".".join(str(part) for part in first["loc"]) or "body"
        raise FunctionError(f"Invalid request field '{field}': {first['msg']}") from exc
