"""Base schema classes.

All API schemas inherit from these instead of BaseModel directly.
JSON field names match the database columns (snake_case).
"""
from pydantic import BaseModel


class APIModel(BaseModel):
    """Base for request schemas."""
    model_config = {
        "str_strip_whitespace": True,
        "protected_namespaces": (),
    }


class ORMModel(BaseModel):
    """Base for response schemas. Reads from SQLAlchemy objects."""
    model_config = {
        "from_attributes": True,
        "protected_namespaces": (),
    }
