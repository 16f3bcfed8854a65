"""
All of our sqlalchemy models are imported here, so they are registered with
the declarative base before the schema is created.
"""

from palace.ill.sqlalchemy.model.base import Base
from palace.ill.sqlalchemy.model.illrequest import (
    IllComment,
    IllRequest,
    IllRequestAttribute,
)
from palace.ill.sqlalchemy.model.item import Item
from palace.ill.sqlalchemy.model.patron import Hold, Patron

__all__ = [
    "Base",
    "Hold",
    "IllComment",
    "IllRequest",
    "IllRequestAttribute",
    "Item",
    "Patron",
]
