from decimal import Decimal

from pydantic import BaseModel, field_validator
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """camelCase on the wire, snake_case in Python; either spelling accepted on input."""

    @field_validator("*", mode="before")
    @classmethod
    def decimal_to_float(cls, v):
        if isinstance(v, Decimal):
            return float(v)
        return v

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        from_attributes = True


def empty_to_none(v):
    if isinstance(v, str) and not v.strip():
        return None
    return v
