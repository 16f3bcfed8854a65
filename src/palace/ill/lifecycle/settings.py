from pydantic_settings import SettingsConfigDict

from palace.ill.service.configuration.service_configuration import (
    ServiceConfiguration,
)


class LifecycleSettings(ServiceConfiguration):
    """How ILL requests are handled in the local library system."""

    model_config = SettingsConfigDict(env_prefix="PALACE_ILL_")

    # Item type the item gets once the request is closed.
    ill_closed_itemtype: str = "ILLCLOSED"
    # Patron category of partner libraries.
    partner_code: str = "ILLLIBS"
    # Home branch of partner libraries.
    ill_branch: str | None = None
    # The patron that audit comments are written as.
    libris_borrowernumber: int | None = None
    # Used when a request refers to a patron we don't know.
    unknown_patron: int | None = None

    # Refuse actions that the status graph does not offer from the
    # request's current status.
    strict_transitions: bool = False
    # Always insert attributes instead of updating an existing one.
    legacy_append_only_attributes: bool = False
