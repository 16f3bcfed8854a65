# IllRequest, IllRequestAttribute, IllComment
from __future__ import annotations

import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Unicode
from sqlalchemy.orm import Mapped, relationship

from palace.ill.sqlalchemy.model.base import Base
from palace.ill.sqlalchemy.model.patron import Patron
from palace.ill.status.graph import Direction, direction_of
from palace.ill.util.datetime_helpers import utc_now


class IllRequest(Base):
    """An interlibrary loan request, mirrored against the loan broker."""

    __tablename__ = "illrequests"
    illrequest_id: Mapped[int] = Column(Integer, primary_key=True)

    # The order number the broker knows this request by.
    orderid = Column(Unicode, index=True)

    borrowernumber: Mapped[int | None] = Column(
        Integer, ForeignKey("borrowers.borrowernumber"), index=True
    )
    patron: Mapped[Patron | None] = relationship("Patron")

    biblio_id = Column(Integer, index=True)
    branchcode = Column(Unicode)

    # A status id from the status graph, e.g. IN_ANK.
    status = Column(Unicode, index=True)

    placed = Column(DateTime(timezone=True))
    replied = Column(DateTime(timezone=True))
    completed = Column(DateTime(timezone=True))

    medium = Column(Unicode)
    accessurl = Column(Unicode)
    cost = Column(Unicode)
    notesopac = Column(Unicode)
    notesstaff = Column(Unicode)
    backend = Column(Unicode)

    attributes: Mapped[list[IllRequestAttribute]] = relationship(
        "IllRequestAttribute",
        back_populates="request",
        order_by="IllRequestAttribute.id",
        cascade="all, delete-orphan",
    )
    comments: Mapped[list[IllComment]] = relationship(
        "IllComment",
        back_populates="request",
        order_by="IllComment.id",
        cascade="all, delete-orphan",
    )

    @property
    def direction(self) -> Direction | None:
        return direction_of(self.status)

    def __repr__(self) -> str:
        return (
            f"<IllRequest #{self.illrequest_id} orderid={self.orderid!r} "
            f"status={self.status!r}>"
        )


class IllRequestAttribute(Base):
    """A typed fact about an ILL request: title, author, due dates...

    Values are always strings. Nothing stops a request from having more
    than one attribute of the same type.
    """

    __tablename__ = "illrequestattributes"
    id: Mapped[int] = Column(Integer, primary_key=True)

    illrequest_id: Mapped[int] = Column(
        Integer, ForeignKey("illrequests.illrequest_id"), index=True, nullable=False
    )
    request: Mapped[IllRequest] = relationship(
        "IllRequest", back_populates="attributes"
    )

    type: Mapped[str] = Column(Unicode, index=True, nullable=False)
    value = Column(Unicode)

    def __repr__(self) -> str:
        return f"<IllRequestAttribute {self.type}={self.value!r}>"


class IllComment(Base):
    """An audit note on an ILL request."""

    __tablename__ = "illcomments"
    id: Mapped[int] = Column(Integer, primary_key=True)

    illrequest_id: Mapped[int] = Column(
        Integer, ForeignKey("illrequests.illrequest_id"), index=True, nullable=False
    )
    request: Mapped[IllRequest] = relationship("IllRequest", back_populates="comments")

    borrowernumber = Column(Integer, ForeignKey("borrowers.borrowernumber"))
    comment = Column(Unicode)
    timestamp: Mapped[datetime.datetime] = Column(
        DateTime(timezone=True), default=utc_now, nullable=False
    )
