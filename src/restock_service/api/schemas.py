"""Request/response model base shared by the v1 endpoints."""

from pydantic import BaseModel, ConfigDict
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """Snake-case fields, camelCase on the wire (the widget's convention)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)
