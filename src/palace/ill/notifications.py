from __future__ import annotations

from collections.abc import Mapping
from typing import NamedTuple, Protocol

from frozendict import frozendict

from palace.ill.libris.constants import LetterCode, Transport
from palace.ill.sqlalchemy.model import Patron
from palace.ill.util.log import LoggerMixin


class MessageDescriptor(NamedTuple):
    """A message to send to a patron."""

    transport_type: Transport
    template_code: str
    title: str
    content: str


class PreparedLetter(NamedTuple):
    title: str
    content: str


class NotificationDispatcher(Protocol):
    """Queues messages for delivery. We never look at the result."""

    def enqueue(
        self, message: MessageDescriptor, patron: Patron, transport: Transport
    ) -> None: ...


class LetterPreparer(Protocol):
    def prepare(
        self,
        letter_code: str,
        transport: Transport,
        patron: Patron,
        fields: Mapping[str, str],
    ) -> PreparedLetter | None: ...


class LoggingNotificationDispatcher(LoggerMixin):
    """Dispatcher that only logs the messages it is given.

    Used when the library system delivers messages by itself.
    """

    def enqueue(
        self, message: MessageDescriptor, patron: Patron, transport: Transport
    ) -> None:
        self.log.info(
            f"Queued {transport} message {message.template_code} "
            f"for patron {patron.borrowernumber}: {message.title!r}"
        )


DEFAULT_LETTERS: frozendict[tuple[str, Transport], PreparedLetter] = frozendict(
    {
        (LetterCode.arrived_loan, Transport.email): PreparedLetter(
            "Ditt fjärrlån har kommit",
            "Hej {surname}!\n\n"
            "Ditt fjärrlån {title} av {author} har kommit och kan hämtas.\n",
        ),
        (LetterCode.arrived_loan, Transport.sms): PreparedLetter(
            "Fjärrlån",
            "Ditt fjärrlån {title} kan hämtas.",
        ),
        (LetterCode.arrived_copy, Transport.email): PreparedLetter(
            "Din kopia har kommit",
            "Hej {surname}!\n\n"
            "Kopian du beställt ({title}) har kommit och kan hämtas.\n",
        ),
        (LetterCode.arrived_copy, Transport.sms): PreparedLetter(
            "Fjärrlån",
            "Din kopia av {title} kan hämtas.",
        ),
    }
)


class _Fields(dict[str, str]):
    # Unknown placeholders render as empty strings.
    def __missing__(self, key: str) -> str:
        return ""


class TemplateLetterPreparer(LoggerMixin):
    """Prepares letters from `str.format` templates.

    Templates can use any request attribute type ({title}, {author},
    {lf_number}...) plus the patron's surname, cardnumber and email.
    """

    def __init__(
        self,
        templates: Mapping[tuple[str, Transport], PreparedLetter] = DEFAULT_LETTERS,
    ):
        self.templates = frozendict(templates)

    def prepare(
        self,
        letter_code: str,
        transport: Transport,
        patron: Patron,
        fields: Mapping[str, str],
    ) -> PreparedLetter | None:
        template = self.templates.get((letter_code, transport))
        if template is None:
            self.log.warning(f"No {transport} template for letter {letter_code}.")
            return None

        values = _Fields(fields)
        values.update(
            surname=patron.surname or "",
            cardnumber=patron.cardnumber or "",
            email=patron.email or "",
        )
        return PreparedLetter(
            title=template.title.format_map(values),
            content=template.content.format_map(values),
        )
