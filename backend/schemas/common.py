"""
Common schema helpers.
Validates raw request payloads into pydantic models inside the service layer.
"""
from typing import Any, Mapping, Type, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from backend.core.exceptions import ValidationError


M = TypeVar("M", bound=BaseModel)


def format_validation_errors(error: PydanticValidationError) -> str:
    """Flatten pydantic errors into one readable message."""
    parts = []
    for item in error.errors():
        location = ".".join(str(part) for part in item.get("loc", ())) or "body"
        parts.append(f"{location}: {item.get('msg', 'invalid value')}")
    return "Invalid request data - " + "; ".join(parts)


def parse_payload(model: Type[M], payload: Any) -> M:
    """
    Validate a raw payload against a schema.

    Services receive payloads as plain mappings so that eligibility checks run
    before shape validation. Already-parsed models pass straight through.

    Raises:
        ValidationError: If the payload does not match the schema.
    """
    if isinstance(payload, model):
        return payload
    if isinstance(payload, BaseModel):
        payload = payload.model_dump(exclude_unset=True)
    if not isinstance(payload, Mapping):
        raise ValidationError("Invalid request data - body must be a JSON object")
    try:
        return model.model_validate(payload)
    except PydanticValidationError as e:
        raise ValidationError(format_validation_errors(e)) from e


__all__ = [
    "format_validation_errors",
    "parse_payload",
]
