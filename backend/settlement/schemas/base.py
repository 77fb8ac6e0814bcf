"""
Base schemas with standardized settings for consistent API responses.
"""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class StandardizedModel(BaseModel):
    """Base model with standardized JSON encoding"""

    model_config = ConfigDict(use_enum_values=True, populate_by_name=True)


class CamelModel(StandardizedModel):
    """Snake_case in Python, camelCase on the wire."""

    model_config = ConfigDict(
        use_enum_values=True,
        populate_by_name=True,
        alias_generator=to_camel,
    )
