from __future__ import annotations

from collections.abc import Mapping
from typing import TypeVar
from urllib.parse import urlencode

from lxml import etree
from pydantic import BaseModel, ValidationError
from requests import Response
from sqlalchemy.orm import Session

from palace.ill.attributes import AttributeStore
from palace.ill.core.exceptions import IllValueError
from palace.ill.libris.constants import PLACEHOLDER_BIB_PREFIX
from palace.ill.libris.exception import (
    LibrisValidationError,
    NoBrokerData,
    UpdateRejected,
)
from palace.ill.libris.models import (
    BibliographicSource,
    IllRequestsResponse,
    LibrariesResponse,
    Library,
    RequestSnapshot,
    UpdateResponse,
)
from palace.ill.libris.settings import LibrisSettings
from palace.ill.sqlalchemy.model import IllRequest, Patron
from palace.ill.sqlalchemy.util import create, get_one
from palace.ill.status.translator import StatusTranslator
from palace.ill.util.http import HTTP
from palace.ill.util.log import LoggerMixin, elapsed_time_logging

TLibrisModel = TypeVar("TLibrisModel", bound=BaseModel)


class LibrisClient(LoggerMixin):
    """Talks to the Libris ILL API ("Libris fjärrlån").

    Requests are never retried. Actions we POST are not idempotent, and if
    a POST times out we can't know whether Libris applied it.
    """

    SERVICE_NAME = "Libris"

    # MARC fields Libris adds for its own use, dropped from fetched records.
    LOCAL_MARC_FIELDS = ("841", "852", "887", "950", "955")

    def __init__(self, settings: LibrisSettings):
        self.settings = settings

    @property
    def sigil(self) -> str:
        return self.settings.sigil

    def endpoint(self, *path: str) -> str:
        return "/".join([self.settings.base_url, *path])

    def _headers(self) -> dict[str, str]:
        headers = {"api-key": self.settings.api_key}
        if self.settings.user_agent:
            headers["User-Agent"] = self.settings.user_agent
        return headers

    def _get(self, url: str) -> Response:
        return HTTP.get_with_timeout(
            url,
            headers=self._headers(),
            timeout=self.settings.timeout,
            allowed_response_codes=["2xx"],
            max_retry_count=0,
        )

    def _parse(
        self, model: type[TLibrisModel], url: str, response: Response
    ) -> TLibrisModel:
        try:
            return model.model_validate_json(response.content)
        except ValidationError as e:
            raise LibrisValidationError(
                url,
                f"Invalid response from {self.SERVICE_NAME}.",
                response,
                debug_message=f"{e}\n\nResponse content: {response.text}",
            ) from e

    def _get_ill_requests(self, fragment: str) -> IllRequestsResponse:
        url = self.endpoint("illrequests", self.sigil, fragment)
        response = self._get(url)
        data = self._parse(IllRequestsResponse, url, response)
        if data.count == 0:
            raise NoBrokerData(url, f"{self.SERVICE_NAME} has no data for {fragment}.")
        return data

    def fetch_requests(
        self, mode: str, query: str | Mapping[str, str] | None = None
    ) -> IllRequestsResponse:
        """Fetch a list of ILL requests, e.g. all incoming ones.

        :param mode: "incoming", "outgoing" or any other listing Libris
            supports.
        :param query: Query string, or a mapping turned into one.
        """
        fragment = mode
        if query:
            if not isinstance(query, str):
                query = urlencode(query)
            fragment = f"{mode}?{query}"
        return self._get_ill_requests(fragment)

    def fetch_request_snapshot(self, orderid: str) -> RequestSnapshot:
        """The current status of an ILL request in Libris, and the timestamp
        we need to act on it."""
        data = self._get_ill_requests(orderid)
        if not data.ill_requests:
            raise NoBrokerData(
                self.endpoint("illrequests", self.sigil, orderid),
                f"{self.SERVICE_NAME} returned no request for order {orderid}.",
            )
        first = data.ill_requests[0]
        if first.status is None or first.last_modified is None:
            raise NoBrokerData(
                self.endpoint("illrequests", self.sigil, orderid),
                f"{self.SERVICE_NAME} returned an incomplete request for order {orderid}.",
            )
        return RequestSnapshot(status=first.status, last_modified=first.last_modified)

    def push_action(
        self,
        orderid: str,
        action: str,
        timestamp: str,
        extra_fields: Mapping[str, str | int] | None = None,
    ) -> UpdateResponse:
        """POST an action to an ILL request.

        `timestamp` must be the last_modified value of a snapshot fetched
        just before, Libris uses it to detect concurrent changes.
        """
        url = self.endpoint("illrequests", self.sigil, orderid)
        data: dict[str, str | int] = {"action": action, "timestamp": timestamp}
        data.update(extra_fields or {})
        self.log.info(f"Pushing action '{action}' for order {orderid}.")
        response = HTTP.post_with_timeout(
            url,
            data=data,
            headers=self._headers(),
            timeout=self.settings.timeout,
            allowed_response_codes=["2xx"],
            max_retry_count=0,
        )
        update = self._parse(UpdateResponse, url, response)
        self.log.info(
            f"Libris answered action '{update.update_action}' for order {orderid}: "
            f"success={update.update_success} message={update.update_message!r}"
        )
        return update

    def update_request(
        self,
        request: IllRequest,
        action: str,
        translator: StatusTranslator,
        attributes: AttributeStore,
        extra_fields: Mapping[str, str | int] | None = None,
    ) -> UpdateResponse:
        """Fetch the current state of a request, push an action to it and
        store the status Libris answers with.

        Nothing is written to the request when Libris could not be asked
        or gave no usable answer. When Libris refuses the action, the status
        it answers with is still stored, since that is what Libris has.

        :raises IntegrationException: if Libris could not be reached, or
            answered with an error or with something we can't use.
        :raises UpdateRejected: if Libris did not carry out the action.
        :raises UnmappedStatus: if Libris answered with an unknown status.
        """
        direction = request.direction
        if direction is None:
            raise IllValueError(
                f"ILL request {request.illrequest_id} has status {request.status!r}, "
                "which has no direction."
            )
        if not request.orderid:
            raise IllValueError(
                f"ILL request {request.illrequest_id} has no Libris order id."
            )

        with elapsed_time_logging(
            log_method=self.log.info,
            message_prefix=f"Libris '{action}' for order {request.orderid}",
        ):
            snapshot = self.fetch_request_snapshot(request.orderid)
            update = self.push_action(
                request.orderid, action, snapshot.last_modified, extra_fields
            )

        url = self.endpoint("illrequests", self.sigil, request.orderid)
        if not update.ill_requests or update.ill_requests[0].status is None:
            if not update.succeeded:
                raise self._rejected(url, action, update)
            raise NoBrokerData(
                url,
                f"{self.SERVICE_NAME} did not return the updated request.",
            )
        updated = update.ill_requests[0]
        new_status = translator.translate(updated.status, direction)
        last_modified = updated.last_modified or snapshot.last_modified

        self.log.info(
            f"ILL request {request.illrequest_id}: {request.status} -> {new_status}"
        )
        request.status = new_status
        attributes.upsert(request, "last_modified", last_modified)
        if not update.succeeded:
            self.log.warning(
                f"Libris refused '{action}' for order {request.orderid}: "
                f"{update.update_message!r}"
            )
            raise self._rejected(url, action, update)
        return update

    def _rejected(
        self, url: str, action: str, update: UpdateResponse
    ) -> UpdateRejected:
        return UpdateRejected(
            url,
            update.update_message
            or f"{self.SERVICE_NAME} did not carry out '{action}'.",
        )

    def lookup_library(
        self,
        db: Session,
        sigil: str,
        categorycode: str | None = None,
        branchcode: str | None = None,
    ) -> Patron:
        """Find or create the partner library with this sigil, updated with
        the name and address Libris has for it."""
        url = self.endpoint("libraries", self.sigil, sigil)
        response = self._get(url)
        data = self._parse(LibrariesResponse, url, response)
        if data.count == 0 or not data.libraries:
            raise NoBrokerData(url, f"{self.SERVICE_NAME} has no library {sigil}.")

        fields = self._partner_fields(sigil, data.libraries[0])
        fields.update(categorycode=categorycode, branchcode=branchcode)

        patron = get_one(db, Patron, cardnumber=sigil)
        if patron is None:
            self.log.info(f"Adding partner library {sigil}.")
            patron, _ = create(db, Patron, **fields)
        else:
            self.log.info(f"Updating partner library {sigil}.")
            for key, value in fields.items():
                setattr(patron, key, value)
            db.flush()
        return patron

    @staticmethod
    def _partner_fields(sigil: str, library: Library) -> dict[str, str | None]:
        address2 = library.address2
        if library.address3:
            address2 = f"{address2 or ''}, {library.address3}"
        return dict(
            cardnumber=sigil,
            userid=sigil,
            # Partners never log in.
            password="!",
            surname=library.name,
            address=library.address1,
            address2=address2,
            city=library.city,
            zipcode=library.zip_code,
        )

    def fetch_bibliographic_source(
        self, bib_id: str, request_fields: Mapping[str, str | None] | None = None
    ) -> BibliographicSource | None:
        """Get author and title for the title of an ILL request.

        Titles that are not in the Libris catalogue have a placeholder bib
        id starting with "BIB". For those we can only use what the request
        itself says.
        """
        request_fields = request_fields or {}
        if bib_id.upper().startswith(PLACEHOLDER_BIB_PREFIX):
            return BibliographicSource(
                bib_id=bib_id,
                author=request_fields.get("author") or None,
                title=request_fields.get("title"),
            )
        return self._fetch_catalogue_record(bib_id)

    def _fetch_catalogue_record(self, bib_id: str) -> BibliographicSource | None:
        response = HTTP.get_with_timeout(
            self.settings.sru_url,
            params={
                "version": "1.1",
                "operation": "searchRetrieve",
                "query": f"rec.recordIdentifier={bib_id}",
            },
            timeout=self.settings.timeout,
            allowed_response_codes=["2xx"],
        )
        if not response.content:
            return None

        parser = etree.XMLParser(recover=True)
        root = etree.fromstring(response.content, parser=parser)
        if root is None:
            return None
        records = root.xpath(
            "//*[local-name()='recordData']/*[local-name()='record']"
        )
        if not records:
            self.log.info(f"No Libris record found for {bib_id}.")
            return None
        record = records[0]

        for tag in self.LOCAL_MARC_FIELDS:
            for field in record.xpath(f"*[local-name()='datafield'][@tag='{tag}']"):
                record.remove(field)

        return BibliographicSource(
            bib_id=bib_id,
            author=self._subfield(record, "100", "a"),
            title=self._subfield(record, "245", "a"),
            record_xml=etree.tostring(record, encoding="unicode"),
        )

    @staticmethod
    def _subfield(record: etree._Element, tag: str, code: str) -> str | None:
        values = record.xpath(
            f"*[local-name()='datafield'][@tag='{tag}']"
            f"/*[local-name()='subfield'][@code='{code}']/text()"
        )
        return str(values[0]).strip() if values else None
