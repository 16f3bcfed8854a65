from sqlalchemy import Boolean, Column, Integer, Unicode
from sqlalchemy.orm import Mapped

from palace.ill.sqlalchemy.model.base import Base


class Item(Base):
    """A physical copy attached to a bibliographic record.

    Incoming ILL loans get a temporary item, which is released again when
    the request is closed.
    """

    __tablename__ = "items"
    itemnumber: Mapped[int] = Column(Integer, primary_key=True)
    biblio_id: Mapped[int] = Column(Integer, index=True, nullable=False)

    # NULL barcodes do not collide, so a closed ILL item can give its
    # barcode back to be used by a later request.
    barcode = Column(Unicode, unique=True)

    itype = Column(Unicode)
    notforloan: Mapped[bool] = Column(Boolean, default=False, nullable=False)
    homebranch = Column(Unicode)
    holdingbranch = Column(Unicode)

    def __repr__(self) -> str:
        return f"<Item #{self.itemnumber} biblio={self.biblio_id} barcode={self.barcode!r}>"
