"""Shared pydantic base for camelCase request/response bodies."""

from pydantic import BaseModel
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Fields are snake_case in Python and camelCase on the wire."""

    class Config:
        alias_generator = to_camel
        populate_by_name = True


class MessageResponse(CamelModel):
    message: str
