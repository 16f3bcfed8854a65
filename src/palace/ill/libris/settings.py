from pydantic import Field, PositiveInt, field_validator
from pydantic_settings import SettingsConfigDict

from palace.ill.libris.constants import DEFAULT_BASE_URL, DEFAULT_SRU_URL
from palace.ill.service.configuration.service_configuration import (
    ServiceConfiguration,
)
from palace.ill.util.pydantic import HttpUrl


class LibrisSettings(ServiceConfiguration):
    """How to reach the Libris loan broker."""

    model_config = SettingsConfigDict(env_prefix="PALACE_ILL_LIBRIS_")

    base_url: HttpUrl = DEFAULT_BASE_URL
    # Our own library code in Libris.
    sigil: str
    # Kept out of the repr, so it never ends up in a log.
    api_key: str = Field(repr=False)
    timeout: PositiveInt = 20
    sru_url: HttpUrl = DEFAULT_SRU_URL
    # Sent instead of the default user agent when set.
    user_agent: str | None = None

    @field_validator("sigil", "api_key")
    @classmethod
    def validate_not_blank(cls, v: str) -> str:
        if not v:
            raise ValueError("must not be blank")
        return v
