"""
Pydantic base model shared by request/response models.

DESIGN PRINCIPLE:
- Firestore documents keep snake_case field names
- The HTTP surface speaks camelCase (dashboard and mobile clients)
- Models should reflect data structure, not business logic
"""

from pydantic import BaseModel
from pydantic.alias_generators import to_camel


class CamelModel(BaseModel):
    """
    Base for every model crossing the HTTP boundary.
    Accepts both camelCase and snake_case input; dump with by_alias=True
    for API output and without it for Firestore storage.
    """

    class Config:
        alias_generator = to_camel
        populate_by_name = True
        use_enum_values = True
        extra = "ignore"
