# Patron, Hold
from __future__ import annotations

import datetime

from sqlalchemy import Column, DateTime, ForeignKey, Integer, Unicode
from sqlalchemy.orm import Mapped, relationship

from palace.ill.sqlalchemy.model.base import Base
from palace.ill.util.datetime_helpers import utc_now


class Patron(Base):
    """A borrower in the local library system.

    Partner libraries that we lend to or borrow from are stored as patrons
    too: their cardnumber is the library's Libris sigil and their category
    is the configured partner category.
    """

    __tablename__ = "borrowers"
    borrowernumber: Mapped[int] = Column(Integer, primary_key=True)

    # The number on the patron's library card. For partner libraries
    # this is the sigil.
    cardnumber = Column(Unicode, unique=True, index=True)

    surname = Column(Unicode)
    categorycode = Column(Unicode)
    branchcode = Column(Unicode)
    userid = Column(Unicode)
    password = Column(Unicode)

    address = Column(Unicode)
    address2 = Column(Unicode)
    city = Column(Unicode)
    zipcode = Column(Unicode)

    email = Column(Unicode)
    smsalertnumber = Column(Unicode)
    lang = Column(Unicode)

    holds: Mapped[list[Hold]] = relationship("Hold", back_populates="patron")

    def __repr__(self) -> str:
        return f"<Patron #{self.borrowernumber} cardnumber={self.cardnumber!r}>"


class Hold(Base):
    """A reservation placed by a patron on a bibliographic record."""

    __tablename__ = "reserves"
    reserve_id: Mapped[int] = Column(Integer, primary_key=True)

    borrowernumber: Mapped[int | None] = Column(
        Integer, ForeignKey("borrowers.borrowernumber"), index=True
    )
    patron: Mapped[Patron | None] = relationship("Patron", back_populates="holds")

    biblio_id: Mapped[int] = Column(Integer, index=True, nullable=False)

    reservedate: Mapped[datetime.datetime] = Column(
        DateTime(timezone=True), default=utc_now
    )

    def __repr__(self) -> str:
        return f"<Hold #{self.reserve_id} biblio={self.biblio_id} patron={self.borrowernumber}>"
