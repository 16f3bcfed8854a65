from __future__ import annotations

from enum import StrEnum

from frozendict import frozendict

from palace.ill.status.graph import StatusNode

BACKEND_NAME = "Libris"

DEFAULT_BASE_URL = "http://iller.libris.kb.se/librisfjarrlan/api"
DEFAULT_SRU_URL = "http://api.libris.kb.se/sru/libris"

# Requests for titles that are not in the Libris catalogue get a locally
# minted bibliographic id with this prefix.
PLACEHOLDER_BIB_PREFIX = "BIB"

# Status of a request that was cancelled locally. It has no direction.
CANCELLED_STATUS = "Makulerad"


class MediaType(StrEnum):
    loan = "Lån"
    copy = "Kopia"


class BrokerAction(StrEnum):
    """The actions we can push to the broker."""

    read = "read"
    response = "response"


class LetterCode(StrEnum):
    """Notices sent to the patron when an ILL arrives."""

    arrived_loan = "ILL_ANK_LAN"
    arrived_copy = "ILL_ANK_KOPIA"


class Transport(StrEnum):
    email = "email"
    sms = "sms"


# Raw broker statuses and their codes. The code is prefixed with the
# direction of the request to get the status id.
LIBRIS_STATUS_MAP: frozendict[str, str] = frozendict(
    {
        "Kan reserveras": "KANRES",
        "Reservation": "RES",
        "Negativt svar": "NEG",
        "Levererad": "LEV",
        "Läst": "LAST",
        "Reserverad": "RESAD",
        "Uteliggande": "UTEL",
        "Remitterad": "REM",
    }
)


LIBRIS_STATUS_NODES: tuple[StatusNode, ...] = (
    # Outgoing, a partner library is borrowing from us.
    StatusNode("OUT_LEV", "Utlån Levererad", "Levererad", "requestitem"),
    StatusNode("OUT_KANRES", "Utlån Kan reserveras", "Kan reserveras", "requestitem"),
    StatusNode("OUT_NEG", "Utlån Negativt svar", "Negativt svar", "requestitem"),
    StatusNode("OUT_RESAD", "Utlån Reserverad", "Reserverad", "requestitem"),
    StatusNode(
        "OUT_UTEL",
        "Utlån Uteliggande",
        "Uteliggande",
        "requestitem",
        next_actions=("OUT_LAST",),
    ),
    StatusNode("OUT_LAST", "Utlån Läst", "Läst", "set_status_read"),
    # Incoming, we are borrowing from a partner library.
    StatusNode(
        "IN_REM",
        "Inlån Remitterad",
        "Remitterad",
        "create",
        next_actions=("IN_ANK",),
        ui_method_icon="fa-plus",
    ),
    StatusNode(
        "IN_UTEL",
        "Inlån Uteliggande",
        "Uteliggande",
        "requestitem",
        next_actions=("IN_LAST", "IN_ANK"),
    ),
    StatusNode(
        "IN_LEV",
        "Inlån Levererad",
        "Levererad",
        "requestitem",
        next_actions=("IN_ANK",),
    ),
    StatusNode(
        "IN_ANK",
        "Inlån Ankommen",
        "Ankomstregistrera",
        "receive",
        next_actions=("IN_AVSL",),
        ui_method_icon="fa-inbox",
    ),
    StatusNode(
        "IN_LAST",
        "Inlån Läst",
        "Läst",
        "set_status_read",
        next_actions=("IN_ANK",),
        prev_actions=("IN_REM", "IN_UTEL"),
        ui_method_icon="fa-check-square-o",
    ),
    StatusNode(
        "IN_KANRES",
        "Inlån Kan reserveras",
        "Kan reserveras",
        "requestitem",
        next_actions=("IN_ANK",),
    ),
    StatusNode("IN_NEG", "Inlån Negativt svar", "Negativt svar", "requestitem"),
    StatusNode(
        "IN_RES",
        "Inlån Reservation",
        "Reservation",
        "requestitem",
        next_actions=("IN_ANK",),
    ),
    StatusNode(
        "IN_RESAD",
        "Inlån Reserverad",
        "Reserverad",
        "requestitem",
        next_actions=("IN_ANK",),
    ),
    StatusNode(
        "IN_RESPONSE",
        "Respondera",
        "Respondera",
        "respond",
        prev_actions=("IN_LAST",),
    ),
    StatusNode("IN_UTL", "Inlån Utlånad", "Utlånad", "respond"),
    StatusNode("IN_RET", "Inlån Återlämnad", "Innleverad", "respond"),
    StatusNode(
        "IN_AVSL",
        "Inlån Avslutad",
        "Avsluta",
        "close",
        prev_actions=("IN_RET", "IN_ANK"),
        ui_method_icon="fa-stop",
    ),
    # Cancelled requests stay cancelled.
    StatusNode(CANCELLED_STATUS, "Makulerad", "Makulerad", "cancel"),
)
