from __future__ import annotations

from typing import Literal, TypeVar

from sqlalchemy.exc import MultipleResultsFound, NoResultFound
from sqlalchemy.orm import Session

T = TypeVar("T")


def create(db: Session, model: type[T], **kwargs) -> tuple[T, Literal[True]]:
    created = model(**kwargs)
    db.add(created)
    db.flush()
    return created, True


def get_one(db: Session, model: type[T], on_multiple="error", **kwargs) -> T | None:
    """Gets an object from the database based on its attributes.

    :param on_multiple: "error" raises MultipleResultsFound when more
        than one row matches, "interchangeable" returns the first one.
    :return: object or None
    """
    q = db.query(model).filter_by(**kwargs)
    try:
        return q.one()
    except MultipleResultsFound:
        if on_multiple == "error":
            raise
        elif on_multiple == "interchangeable":
            # These records are interchangeable so we can use
            # whichever one we want.
            return q.first()
    except NoResultFound:
        return None
    return None

