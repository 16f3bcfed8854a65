from dependency_injector import providers
from dependency_injector.containers import DeclarativeContainer
from dependency_injector.providers import Container, Provider
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from palace.ill.libris.client import LibrisClient
from palace.ill.libris.constants import LIBRIS_STATUS_MAP, LIBRIS_STATUS_NODES
from palace.ill.libris.settings import LibrisSettings
from palace.ill.lifecycle.backend import LibrisBackend, create_backend
from palace.ill.lifecycle.settings import LifecycleSettings
from palace.ill.notifications import (
    LoggingNotificationDispatcher,
    TemplateLetterPreparer,
)
from palace.ill.service.configuration.service_configuration import (
    DatabaseConfiguration,
)
from palace.ill.service.logging.configuration import LoggingConfiguration
from palace.ill.service.logging.container import Logging
from palace.ill.sqlalchemy.session import SessionManager
from palace.ill.status.graph import StatusGraph
from palace.ill.status.translator import StatusTranslator


class Services(DeclarativeContainer):
    config = providers.Configuration()

    logging = Container(
        Logging,
        config=config.logging,
    )

    engine: Provider[Engine] = providers.Singleton(
        SessionManager.engine, url=config.database.url
    )

    schema = providers.Resource(SessionManager.initialize_schema, engine=engine)

    session_maker: Provider[sessionmaker[Session]] = providers.Singleton(
        SessionManager.sessionmaker, engine=engine
    )

    libris_settings: Provider[LibrisSettings] = providers.Singleton(
        LibrisSettings.model_validate, config.libris
    )

    lifecycle_settings: Provider[LifecycleSettings] = providers.Singleton(
        LifecycleSettings.model_validate, config.lifecycle
    )

    status_graph: Provider[StatusGraph] = providers.Singleton(
        StatusGraph, nodes=LIBRIS_STATUS_NODES
    )

    status_translator: Provider[StatusTranslator] = providers.Singleton(
        StatusTranslator, status_map=LIBRIS_STATUS_MAP
    )

    libris_client: Provider[LibrisClient] = providers.Singleton(
        LibrisClient, settings=libris_settings
    )

    notification_dispatcher = providers.Singleton(LoggingNotificationDispatcher)

    letter_preparer = providers.Singleton(TemplateLetterPreparer)

    # Call with the session the backend should work in:
    #   services.backend(db=session)
    backend: Provider[LibrisBackend] = providers.Factory(
        create_backend,
        graph=status_graph,
        translator=status_translator,
        client=libris_client,
        dispatcher=notification_dispatcher,
        letters=letter_preparer,
        settings=lifecycle_settings,
    )


def create_container() -> Services:
    container = Services()
    container.config.from_dict(
        {
            "logging": LoggingConfiguration().model_dump(),
            "database": DatabaseConfiguration().model_dump(),
            "libris": LibrisSettings().model_dump(),
            "lifecycle": LifecycleSettings().model_dump(),
        }
    )
    return container


_container_instance: Services | None = None


def container_instance() -> Services:
    # Scripts that don't get a container passed in use this one. Everything
    # else should be given its container.
    global _container_instance
    if _container_instance is None:
        _container_instance = create_container()
    return _container_instance
