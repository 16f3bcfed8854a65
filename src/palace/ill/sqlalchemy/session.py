from __future__ import annotations

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import Pool

from palace.ill.sqlalchemy.model import Base
from palace.ill.util.log import LoggerMixin

DEBUG = False


class SessionManager(LoggerMixin):
    """Creates engines and sessions for the ILL tables.

    The ILL core never commits, it only flushes. Committing (and locking the
    request row for the duration of an action) is up to the caller.
    """

    @classmethod
    def engine(cls, url: str, poolclass: type[Pool] | None = None) -> Engine:
        return create_engine(
            url,
            echo=DEBUG,
            pool_pre_ping=True,
            poolclass=poolclass,
        )

    @classmethod
    def initialize_schema(cls, engine: Engine) -> None:
        """Create any of our tables that do not exist yet."""
        cls.logger().info("Initializing ILL database schema.")
        Base.metadata.create_all(engine)

    @classmethod
    def sessionmaker(cls, engine: Engine) -> sessionmaker[Session]:
        return sessionmaker(bind=engine, expire_on_commit=False)

    @classmethod
    def session(cls, url: str, initialize: bool = True) -> Session:
        engine = cls.engine(url)
        if initialize:
            cls.initialize_schema(engine)
        return cls.sessionmaker(engine)()
