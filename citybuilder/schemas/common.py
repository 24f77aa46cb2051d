"""
citybuilder/schemas/common.py

Purpose: Shared schema plumbing

- camelCase wire format over snake_case storage
- ObjectId to string conversion for responses
"""

from typing import Any, Dict, Type

from bson import ObjectId
from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """
    Base model for API payloads.
    Fields are snake_case in Python and camelCase on the wire.
    """
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


def stringify_ids(value: Any) -> Any:
    """
    Recursively converts ObjectId values to strings.
    """
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, dict):
        return {k: stringify_ids(v) for k, v in value.items()}
    if isinstance(value, list):
        return [stringify_ids(v) for v in value]
    return value


def to_api(model: Type[BaseModel], document: Dict[str, Any]) -> Dict[str, Any]:
    """
    Validates a stored document against a response model and dumps it in
    wire format (camelCase keys, JSON-safe values).
    """
    return model.model_validate(stringify_ids(document)).model_dump(mode="json", by_alias=True)
