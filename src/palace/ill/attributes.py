from __future__ import annotations

from collections.abc import Mapping

from sqlalchemy.orm import Session

from palace.ill.libris.constants import MediaType
from palace.ill.sqlalchemy.model import IllRequest, IllRequestAttribute
from palace.ill.util.log import LoggerMixin

UNKNOWN_XSTATUS = "Okänd status"

# Display label and attribute type of the fields shown for every request.
METADATA_FIELDS: tuple[tuple[str, str], ...] = (
    ("Title", "title"),
    ("Author", "author"),
    ("Xstatus", "xstatus"),
    ("Libris best.nr", "lf_number"),
    ("Request ID", "request_id"),
    ("Typ", "media_type"),
    ("År", "year"),
    ("ISBN/ISSN", "isbn_issn"),
    ("Melding", "message"),
    ("Aktivt bibliotek", "active_library"),
    ("Lånetid, garanterad", "due_date_guar"),
    ("Lånetid, max", "due_date_max"),
)

# Extra fields shown when the request is for an article copy.
ARTICLE_METADATA_FIELDS: tuple[tuple[str, str], ...] = (
    ("Detaljer", "journal_article"),
    ("Sidor", "pages"),
    ("Author of article", "author_of_article"),
    ("Title of article", "title_of_article"),
    ("Volum", "volume_designation"),
)


class AttributeStore(LoggerMixin):
    """Key/value facts attached to an ILL request.

    Most attribute types are scalar: a request has one title, one
    last_modified. Lookups return the first attribute of a type, and
    `upsert` updates that attribute in place. With `legacy_append_only` set,
    `upsert` inserts a new row every time instead, the way the store always
    behaved before. Use `append` for types that really have several values.

    The store only flushes, it never commits.
    """

    def __init__(self, db: Session, legacy_append_only: bool = False):
        self._db = db
        self.legacy_append_only = legacy_append_only

    def all_for(self, request: IllRequest) -> list[IllRequestAttribute]:
        return list(request.attributes)

    def find(self, request: IllRequest, type: str) -> IllRequestAttribute | None:
        for attribute in request.attributes:
            if attribute.type == type:
                return attribute
        return None

    def value(self, request: IllRequest, type: str, default: str = "") -> str:
        attribute = self.find(request, type)
        if attribute is None or attribute.value is None:
            return default
        return attribute.value

    def append(
        self, request: IllRequest, type: str, value: str | None
    ) -> IllRequestAttribute:
        attribute = IllRequestAttribute(
            type=type, value=None if value is None else str(value)
        )
        request.attributes.append(attribute)
        self._db.add(attribute)
        self._db.flush()
        return attribute

    def upsert(
        self, request: IllRequest, type: str, value: str | None
    ) -> IllRequestAttribute:
        if not self.legacy_append_only:
            attribute = self.find(request, type)
            if attribute is not None:
                attribute.value = None if value is None else str(value)
                self._db.flush()
                return attribute
        return self.append(request, type, value)

    def upsert_many(self, request: IllRequest, values: Mapping[str, str | None]) -> None:
        for type, value in values.items():
            self.upsert(request, type, value)

    def as_dict(self, request: IllRequest) -> dict[str, str]:
        """All attributes as a flat dict. If a type occurs more than once
        the last one wins."""
        return {
            attribute.type: attribute.value or "" for attribute in request.attributes
        }

    def metadata(self, request: IllRequest) -> dict[str, str]:
        """The request's attributes under their display labels."""
        result = {label: self.value(request, type) for label, type in METADATA_FIELDS}
        if self.find(request, "xstatus") is None:
            result["Xstatus"] = UNKNOWN_XSTATUS
        if result["Typ"] == MediaType.copy:
            result.update(
                {
                    label: self.value(request, type)
                    for label, type in ARTICLE_METADATA_FIELDS
                }
            )
        return result
