from __future__ import annotations

from collections.abc import Mapping

from frozendict import frozendict

from palace.ill.core.exceptions import IllValueError
from palace.ill.status.graph import Direction


class UnmappedStatus(IllValueError):
    """The broker sent a status we don't have a code for."""

    def __init__(self, raw_status: str | None):
        super().__init__(f"Unmapped broker status: {raw_status!r}.")
        self.raw_status = raw_status


class StatusTranslator:
    """Turn the broker's free text status into a status code.

    The broker speaks Swedish ("Läst", "Levererad"...). Each raw status maps
    to a short code, which is prefixed with the direction of the request to
    get a status in the status graph.
    """

    def __init__(self, status_map: Mapping[str, str]):
        self.status_map: frozendict[str, str] = frozendict(status_map)

    def code_for(self, raw_status: str | None) -> str:
        if raw_status is None or raw_status not in self.status_map:
            raise UnmappedStatus(raw_status)
        return self.status_map[raw_status]

    def translate(self, raw_status: str | None, direction: Direction | str) -> str:
        """
        :raises UnmappedStatus: if `raw_status` is not in the map.
        """
        return f"{Direction(direction)}_{self.code_for(raw_status)}"
