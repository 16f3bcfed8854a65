from __future__ import annotations

from typing import NamedTuple

from pydantic import BaseModel, ConfigDict, Field


class BaseLibrisModel(BaseModel):
    """Base class for Libris API models."""

    model_config = ConfigDict(
        populate_by_name=True,
        frozen=True,
        # Libris sends a lot of fields we have no use for.
        extra="allow",
    )


class LibrisIllRequest(BaseLibrisModel):
    """One ILL request, as Libris describes it."""

    status: str | None = None
    # Opaque timestamp, we send it back unchanged when we push an action.
    last_modified: str | None = None

    request_id: str | None = None
    lf_number: str | None = None
    bib_id: str | None = None
    title: str | None = None
    author: str | None = None
    media_type: str | None = None
    user_id: str | None = None


class IllRequestsResponse(BaseLibrisModel):
    count: int
    ill_requests: list[LibrisIllRequest] = Field(default_factory=list)


class UpdateResponse(BaseLibrisModel):
    """The answer to an action POSTed to an ILL request."""

    update_action: str | None = None
    update_success: bool | str | None = None
    update_message: str | None = None
    ill_requests: list[LibrisIllRequest] = Field(default_factory=list)

    @property
    def succeeded(self) -> bool:
        """False only when Libris says the action was not carried out.

        Older answers leave `update_success` out, or send it as a string.
        """
        if self.update_success is None:
            return True
        if isinstance(self.update_success, str):
            return self.update_success.strip().lower() not in ("", "0", "false")
        return self.update_success


class Library(BaseLibrisModel):
    name: str | None = None
    address1: str | None = None
    address2: str | None = None
    address3: str | None = None
    city: str | None = None
    zip_code: str | None = None


class LibrariesResponse(BaseLibrisModel):
    count: int | None = None
    libraries: list[Library] = Field(default_factory=list)


class RequestSnapshot(NamedTuple):
    status: str
    last_modified: str


class BibliographicSource(NamedTuple):
    """Descriptive metadata for the title an ILL request is about."""

    bib_id: str
    author: str | None
    title: str | None
    # MARCXML of the Libris record, None for placeholder records.
    record_xml: str | None = None

    @property
    def is_placeholder(self) -> bool:
        return self.record_xml is None
