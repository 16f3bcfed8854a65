from logging import Handler

from dependency_injector import providers
from dependency_injector.containers import DeclarativeContainer
from dependency_injector.providers import Provider

from palace.ill.service.logging.configuration import LogLevel
from palace.ill.service.logging.log import create_stream_handler, setup_logging


class Logging(DeclarativeContainer):
    config = providers.Configuration()

    stream_handler: Provider[Handler] = providers.Singleton(
        create_stream_handler, json_format=config.json_format
    )

    init = providers.Resource(
        setup_logging,
        level=config.level.as_(LogLevel),
        verbose_level=config.verbose_level.as_(LogLevel),
        stream=stream_handler,
    )
