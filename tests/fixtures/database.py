from __future__ import annotations

from collections.abc import Generator, Mapping
from contextlib import contextmanager
from typing import Self

import pytest
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from palace.ill.sqlalchemy.model import (
    Hold,
    IllRequest,
    IllRequestAttribute,
    Item,
    Patron,
)
from palace.ill.sqlalchemy.session import SessionManager


class DatabaseFixture:
    """
    The DatabaseFixture creates an in-memory SQLite engine with the ILL
    schema, shared by every connection of the test.
    """

    def __init__(self) -> None:
        self.engine = self.engine_factory()

    @staticmethod
    def engine_factory() -> Engine:
        return SessionManager.engine("sqlite://", poolclass=StaticPool)

    def _initialize_database(self) -> None:
        SessionManager.initialize_schema(self.engine)

    def _close(self) -> None:
        self.engine.dispose()

    @classmethod
    @contextmanager
    def fixture(cls) -> Generator[Self]:
        db_fixture = cls()
        db_fixture._initialize_database()
        try:
            yield db_fixture
        finally:
            db_fixture._close()


@pytest.fixture(scope="function")
def database() -> Generator[DatabaseFixture]:
    with DatabaseFixture.fixture() as db:
        yield db


class DatabaseTransactionFixture:
    """A session on a fresh database, with helpers to create ILL data."""

    def __init__(self, database: DatabaseFixture):
        self._database = database
        self._counter = 2000
        self._session = SessionManager.sessionmaker(database.engine)()

    @classmethod
    @contextmanager
    def fixture(cls, database: DatabaseFixture) -> Generator[Self]:
        db = cls(database)
        try:
            yield db
        finally:
            db._close()

    def _close(self) -> None:
        self._session.rollback()
        self._session.close()

    @property
    def database(self) -> DatabaseFixture:
        return self._database

    @property
    def session(self) -> Session:
        return self._session

    def fresh_id(self) -> int:
        self._counter += 1
        return self._counter

    def fresh_str(self) -> str:
        return str(self.fresh_id())

    def patron(
        self, cardnumber: str | None = None, surname: str = "Svensson", **kwargs
    ) -> Patron:
        patron = Patron(
            cardnumber=cardnumber or self.fresh_str(), surname=surname, **kwargs
        )
        self.session.add(patron)
        self.session.flush()
        return patron

    def ill_request(
        self,
        status: str | None = "IN_REM",
        attributes: Mapping[str, str] | None = None,
        patron: Patron | None = None,
        **kwargs,
    ) -> IllRequest:
        kwargs.setdefault("orderid", self.fresh_str())
        kwargs.setdefault("biblio_id", self.fresh_id())
        kwargs.setdefault("backend", "Libris")
        request = IllRequest(status=status, patron=patron, **kwargs)
        for type, value in (attributes or {}).items():
            request.attributes.append(IllRequestAttribute(type=type, value=value))
        self.session.add(request)
        self.session.flush()
        return request

    def item(self, biblio_id: int, barcode: str | None = None, **kwargs) -> Item:
        kwargs.setdefault("itype", "ILL")
        item = Item(biblio_id=biblio_id, barcode=barcode, **kwargs)
        self.session.add(item)
        self.session.flush()
        return item

    def hold(self, biblio_id: int, patron: Patron | None = None) -> Hold:
        hold = Hold(biblio_id=biblio_id, patron=patron)
        self.session.add(hold)
        self.session.flush()
        return hold


@pytest.fixture(scope="function")
def db(database: DatabaseFixture) -> Generator[DatabaseTransactionFixture]:
    with DatabaseTransactionFixture.fixture(database) as db:
        yield db
