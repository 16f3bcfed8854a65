from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from palace.ill.attributes import AttributeStore
from palace.ill.core.exceptions import IllValueError, IntegrationException
from palace.ill.libris.client import LibrisClient
from palace.ill.libris.constants import (
    CANCELLED_STATUS,
    BrokerAction,
    LetterCode,
    MediaType,
    Transport,
)
from palace.ill.lifecycle.outcome import NextView, Outcome, Stage
from palace.ill.lifecycle.params import (
    ConfirmCommit,
    ConfirmParams,
    CreateCommit,
    CreateParams,
    ReceiveCommit,
    ReceiveParams,
    RespondCommit,
    RespondParams,
    StatusDone,
    StatusParams,
)
from palace.ill.lifecycle.settings import LifecycleSettings
from palace.ill.notifications import (
    LetterPreparer,
    MessageDescriptor,
    NotificationDispatcher,
)
from palace.ill.sqlalchemy.model import Hold, IllComment, IllRequest, Item, Patron
from palace.ill.sqlalchemy.util import get_one
from palace.ill.status.graph import StatusGraph
from palace.ill.status.translator import StatusTranslator, UnmappedStatus
from palace.ill.util.datetime_helpers import utc_now
from palace.ill.util.http import RemoteIntegrationException
from palace.ill.util.log import LoggerMixin, RequestLoggerAdapter

ARRIVED = "IN_ANK"
CLOSED = "IN_AVSL"

# Renewal is refused while the status attribute says this.
NOT_DELIVERED = "On order"


class RequestLifecycle(LoggerMixin):
    """Moves ILL requests through the status graph.

    Every action returns an `Outcome`, errors included. The lifecycle only
    flushes; committing the session and locking the request while an
    action runs is up to the caller.
    """

    def __init__(
        self,
        db: Session,
        graph: StatusGraph,
        translator: StatusTranslator,
        client: LibrisClient,
        attributes: AttributeStore,
        dispatcher: NotificationDispatcher,
        letters: LetterPreparer,
        settings: LifecycleSettings,
    ):
        self._db = db
        self.graph = graph
        self.translator = translator
        self.client = client
        self.attributes = attributes
        self.dispatcher = dispatcher
        self.letters = letters
        self.settings = settings

    def _request_log(self, request: IllRequest) -> RequestLoggerAdapter:
        return RequestLoggerAdapter(self.logger(), request.illrequest_id)

    def _refuse_transition(self, request: IllRequest, method: str) -> Outcome | None:
        if not self.settings.strict_transitions:
            return None
        if self.graph.is_valid_transition(request.status, method):
            return None
        self._request_log(request).warning(
            f"Refusing '{method}' from status {request.status!r}."
        )
        return Outcome.failure(
            method,
            "invalid_transition",
            f"'{method}' is not possible from status "
            f"{self.graph.status_name(request.status)}.",
        )

    def metadata(self, request: IllRequest) -> dict[str, str]:
        return self.attributes.metadata(request)

    def resolve_patron(self, cardnumber: str | None) -> Patron | None:
        """The patron with this card number, or the configured unknown patron."""
        cardnumber = (cardnumber or "").strip()
        if cardnumber:
            patron = get_one(self._db, Patron, cardnumber=cardnumber)
            if patron is not None:
                return patron
        if self.settings.unknown_patron is None:
            return None
        return self._db.get(Patron, self.settings.unknown_patron)

    def lookup_library(self, sigil: str) -> Patron:
        """The partner library with this sigil, as a patron of the configured
        partner category and branch.

        :raises IntegrationException: if Libris has no such library.
        """
        return self.client.lookup_library(
            self._db,
            sigil,
            categorycode=self.settings.partner_code,
            branchcode=self.settings.ill_branch,
        )

    def _patron_for(self, request: IllRequest) -> Patron | None:
        return request.patron or self.resolve_patron(None)

    def _broker_update(
        self,
        request: IllRequest,
        method: str,
        action: BrokerAction,
        extra_fields: Mapping[str, str | int] | None = None,
        *,
        error_stage: str = Stage.commit,
    ) -> Outcome | None:
        """Push an action to Libris. Returns an Outcome only on failure."""
        log = self._request_log(request)
        try:
            self.client.update_request(
                request, action, self.translator, self.attributes, extra_fields
            )
        except UnmappedStatus as e:
            log.error(f"'{method}' failed: {e.message}")
            return Outcome.failure(
                method, "unmapped_status", e.message or "", stage=error_stage
            )
        except RemoteIntegrationException as e:
            log.error(f"'{method}' failed: {e}")
            return Outcome.failure(
                method, "broker_error", e.status_line, stage=error_stage
            )
        except IntegrationException as e:
            log.error(f"'{method}' failed: {e}")
            return Outcome.failure(
                method, "broker_error", e.message or "", stage=error_stage
            )
        except IllValueError as e:
            log.error(f"'{method}' failed: {e.message}")
            return Outcome.failure(
                method, "invalid_request", e.message or "", stage=error_stage
            )
        return None

    def create(self, request: IllRequest, params: CreateParams) -> Outcome:
        """Store a request that was placed in Libris."""
        if not isinstance(params, CreateCommit):
            return Outcome(method="create", stage=Stage.msg)

        try:
            status = self.translator.translate(params.status, params.direction)
        except UnmappedStatus as e:
            self.log.error(f"Not storing order {params.orderid}: {e.message}")
            return Outcome.failure("create", "unmapped_status", e.message or "")

        request.orderid = params.orderid
        request.borrowernumber = params.borrowernumber
        request.biblio_id = params.biblio_id
        request.branchcode = params.branchcode
        request.status = status
        request.placed = utc_now()
        request.replied = None
        request.completed = None
        request.medium = params.medium
        request.accessurl = None
        request.cost = None
        request.notesopac = None
        request.notesstaff = None
        request.backend = params.backend
        self._db.add(request)
        self._db.flush()

        self.attributes.upsert_many(request, params.attr)
        self._request_log(request).info(
            f"Created from Libris order {params.orderid} with status {status}."
        )
        return Outcome(method="create", stage=Stage.commit)

    def confirm(self, request: IllRequest, params: ConfirmParams) -> Outcome:
        # Nothing is sent to Libris yet.
        if isinstance(params, ConfirmCommit):
            return Outcome(method="confirm", stage=Stage.response)
        return Outcome(method="confirm", stage=Stage.form)

    def _letter_code(self, request: IllRequest) -> LetterCode:
        if self.attributes.value(request, "media_type") == MediaType.copy:
            return LetterCode.arrived_copy
        return LetterCode.arrived_loan

    def _first_item(self, request: IllRequest) -> Item | None:
        if request.biblio_id is None:
            return None
        return self._db.scalars(
            select(Item)
            .where(Item.biblio_id == request.biblio_id)
            .order_by(Item.itemnumber)
        ).first()

    def receive(self, request: IllRequest, params: ReceiveParams) -> Outcome:
        """Register that an incoming ILL has arrived."""
        if not isinstance(params, ReceiveCommit):
            return self._receive_form(request)

        if refusal := self._refuse_transition(request, "receive"):
            return refusal

        log = self._request_log(request)
        item = None
        if params.ill_barcode:
            item = self._first_item(request)
            if item is None:
                return Outcome.failure(
                    "receive", "unknown_item", "There is no item to add a barcode to."
                )
            if item.barcode:
                log.warning(f"Item already has barcode: {item.barcode}")
                return Outcome.failure(
                    "receive",
                    "item_has_barcode",
                    f"Item already has barcode {item.barcode}.",
                )
            if get_one(self._db, Item, barcode=params.ill_barcode) is not None:
                log.warning(f"Barcode {params.ill_barcode} is already in use.")
                return Outcome.failure(
                    "receive",
                    "barcode_in_use",
                    f"Barcode {params.ill_barcode} is already in use.",
                )

        # Copies are the patron's to keep, so they are done once they arrive.
        if self.attributes.value(request, "media_type") == MediaType.loan:
            request.status = ARRIVED
        else:
            request.status = CLOSED

        letter_code = params.letter_code or self._letter_code(request)
        patron = self._patron_for(request)
        messages = []
        if params.send_email:
            messages.append(
                MessageDescriptor(
                    Transport.email, letter_code, params.email_title, params.email_content
                )
            )
        if params.send_sms:
            messages.append(
                MessageDescriptor(
                    Transport.sms, letter_code, params.sms_title, params.sms_content
                )
            )
        for message in messages:
            if patron is None:
                log.warning(f"No patron to send {message.transport_type} to.")
                continue
            self.dispatcher.enqueue(message, patron, message.transport_type)

        if params.due_date_guar:
            self.attributes.upsert(request, "due_date_guar", params.due_date_guar)
        if params.due_date_max:
            self.attributes.upsert(request, "due_date_max", params.due_date_max)

        if item is not None:
            item.barcode = params.ill_barcode

        self._db.flush()
        log.info(f"Received, status is now {request.status}.")
        return Outcome(method="receive", stage=Stage.commit)

    def _receive_form(self, request: IllRequest) -> Outcome:
        letter_code = self._letter_code(request)
        patron = self._patron_for(request)
        fields = self.attributes.as_dict(request)

        previews: dict[str, Any] = {}
        for transport in (Transport.email, Transport.sms):
            letter = None
            if patron is not None:
                letter = self.letters.prepare(letter_code, transport, patron, fields)
            previews[transport] = letter._asdict() if letter else None

        return Outcome(
            method="receive",
            stage=Stage.form,
            extra={
                "illrequest_id": request.illrequest_id,
                "title": self.attributes.value(request, "title"),
                "author": self.attributes.value(request, "author"),
                "lf_number": self.attributes.value(request, "lf_number"),
                "type": self.attributes.value(request, "media_type"),
                "letter_code": str(letter_code),
                **previews,
            },
        )

    def respond(self, request: IllRequest, params: RespondParams) -> Outcome:
        """Send our answer to a request to Libris."""
        if not isinstance(params, RespondCommit):
            return Outcome(
                method="respond",
                stage=Stage.form,
                extra={
                    "illrequest_id": request.illrequest_id,
                    "title": self.attributes.value(request, "title"),
                    "author": self.attributes.value(request, "author"),
                    "lf_number": self.attributes.value(request, "lf_number"),
                },
            )

        if refusal := self._refuse_transition(request, "respond"):
            return refusal

        extra_fields = {
            "response_id": params.response_id,
            "added_response": params.added_response,
            "may_reserve": int(params.may_reserve),
        }
        if failure := self._broker_update(
            request, "respond", BrokerAction.response, extra_fields
        ):
            return failure
        return Outcome(method="respond", stage=Stage.commit)

    def set_status_read(self, request: IllRequest) -> Outcome:
        """Tell Libris we have read the request."""
        if refusal := self._refuse_transition(request, "set_status_read"):
            return refusal

        if failure := self._broker_update(
            request, "set_status_read", BrokerAction.read, error_stage=Stage.error
        ):
            return failure
        return Outcome(
            method="set_status_read", stage=Stage.commit, message="Status updated"
        )

    def close(self, request: IllRequest) -> Outcome:
        """Finish an incoming ILL: release its item and holds."""
        if refusal := self._refuse_transition(request, "close"):
            return refusal

        log = self._request_log(request)
        if request.biblio_id is not None:
            # There should only be one item, but release all of them.
            items = self._db.scalars(
                select(Item).where(Item.biblio_id == request.biblio_id)
            ).all()
            for item in items:
                item.itype = self.settings.ill_closed_itemtype
                item.notforloan = True
                # The same barcode may come back with a later ILL.
                item.barcode = None

            holds = self._db.scalars(
                select(Hold).where(Hold.biblio_id == request.biblio_id)
            ).all()
            for hold in holds:
                self._db.delete(hold)
            log.info(f"Released {len(items)} item(s) and {len(holds)} hold(s).")

        old_name = self.graph.status_name(request.status)
        new_name = self.graph.status_name(CLOSED)
        request.status = CLOSED
        request.comments.append(
            IllComment(
                borrowernumber=self.settings.libris_borrowernumber,
                comment=f"Status ändrad från {old_name} till {new_name}.",
            )
        )
        self._db.flush()
        return Outcome(method="close", stage=Stage.commit)

    def renew(self, request: IllRequest) -> Outcome:
        """Check whether the loan can be renewed. Nothing is stored."""
        value = self.attributes.as_dict(request)
        status = value.get("status")
        if not status or status == NOT_DELIVERED:
            return Outcome.failure(
                "renew", "not_renewed", "Order not yet delivered.", value=value
            )
        value["status"] = "Renewed"
        return Outcome(method="renew", stage=Stage.commit, value=value)

    def cancel(self, request: IllRequest) -> Outcome:
        value = self.attributes.as_dict(request)
        status_attribute = self.attributes.find(request, "status")
        if status_attribute is None or not status_attribute.value:
            return Outcome.failure(
                "cancel",
                "unknown_request",
                "Cannot cancel an unknown request.",
                value=value,
            )

        status_attribute.value = "Reverted"
        request.status = CANCELLED_STATUS
        request.cost = None
        request.orderid = None
        self._db.flush()
        self._request_log(request).info("Cancelled.")
        return Outcome(method="cancel", stage=Stage.commit, value=value)

    def status(self, request: IllRequest, params: StatusParams) -> Outcome:
        if isinstance(params, StatusDone):
            return Outcome(method="status", stage=Stage.commit, next=NextView.illlist)

        value = self.attributes.as_dict(request)
        if not value.get("status"):
            return Outcome.failure(
                "status",
                "unknown_request",
                "Cannot query status of an unknown request.",
                stage=Stage.status,
                next=None,
                value=value,
            )
        return Outcome(method="status", stage=Stage.status, next=None, value=value)
