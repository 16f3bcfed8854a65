import pytest
from pytest import LogCaptureFixture
from requests.exceptions import ConnectTimeout

from palace.ill.core.exceptions import IllValueError
from palace.ill.libris.exception import (
    LibrisValidationError,
    NoBrokerData,
    UpdateRejected,
)
from palace.ill.libris.models import RequestSnapshot, UpdateResponse
from palace.ill.status.translator import UnmappedStatus
from palace.ill.util.http import BadResponseException, RequestTimedOut
from tests.fixtures.database import DatabaseTransactionFixture
from tests.fixtures.libris import LibrisFixture, libris_request

SRU_RECORD = """<?xml version="1.0" encoding="UTF-8"?>
<searchRetrieveResponse xmlns="http://www.loc.gov/zing/srw/">
  <numberOfRecords>1</numberOfRecords>
  <records>
    <record>
      <recordData>
        <record xmlns="http://www.loc.gov/MARC21/slim">
          <leader>00000cam a2200000 a 4500</leader>
          <datafield tag="100" ind1="1" ind2=" ">
            <subfield code="a">Lagerlöf, Selma</subfield>
          </datafield>
          <datafield tag="245" ind1="1" ind2="0">
            <subfield code="a">Gösta Berlings saga </subfield>
          </datafield>
          <datafield tag="852" ind1=" " ind2=" ">
            <subfield code="b">Xyz</subfield>
          </datafield>
          <datafield tag="887" ind1=" " ind2=" ">
            <subfield code="a">local</subfield>
          </datafield>
        </record>
      </recordData>
    </record>
  </records>
</searchRetrieveResponse>
"""


class TestLibrisClient:
    def test_endpoint(self, libris: LibrisFixture):
        assert (
            libris.client.endpoint("illrequests", "Xyz", "incoming")
            == "http://iller.libris.kb.se/librisfjarrlan/api/illrequests/Xyz/incoming"
        )

    def test_fetch_request_snapshot(self, libris: LibrisFixture):
        libris.queue_requests(
            libris_request("Levererad", "2024-03-01 08:00:00"),
            libris_request("Läst", "2023-01-01 00:00:00"),
        )

        snapshot = libris.client.fetch_request_snapshot("ORD-1")

        assert snapshot == RequestSnapshot("Levererad", "2024-03-01 08:00:00")
        assert libris.http_client.requests == [
            libris.endpoint("illrequests", "Xyz", "ORD-1")
        ]
        assert libris.http_client.requests_methods == ["GET"]
        [args] = libris.http_client.requests_args
        assert args["headers"] == {"api-key": "secret-key"}
        assert args["max_retry_count"] == 0
        assert args["timeout"] == 20

    def test_fetch_request_snapshot_no_data(self, libris: LibrisFixture):
        libris.queue_requests(count=0)
        with pytest.raises(NoBrokerData) as excinfo:
            libris.client.fetch_request_snapshot("ORD-1")
        assert "has no data for ORD-1" in excinfo.value.status_line

    def test_fetch_request_snapshot_incomplete(self, libris: LibrisFixture):
        libris.queue_requests(libris_request(status="Läst", last_modified=None))
        with pytest.raises(NoBrokerData, match="incomplete request"):
            libris.client.fetch_request_snapshot("ORD-1")

    def test_fetch_request_snapshot_invalid_json(self, libris: LibrisFixture):
        libris.http_client.queue_response(200, content="not json")
        with pytest.raises(LibrisValidationError) as excinfo:
            libris.client.fetch_request_snapshot("ORD-1")
        assert "Response content: not json" in str(excinfo.value)
        assert excinfo.value.status_line == "Invalid response from Libris."

    def test_fetch_request_snapshot_http_error(self, libris: LibrisFixture):
        libris.http_client.queue_response(503, content="Down for maintenance")
        with pytest.raises(BadResponseException) as excinfo:
            libris.client.fetch_request_snapshot("ORD-1")
        assert excinfo.value.response.status_code == 503

    def test_fetch_requests(self, libris: LibrisFixture):
        libris.queue_requests(libris_request(), libris_request())
        libris.queue_requests(libris_request())

        result = libris.client.fetch_requests("incoming")
        assert result.count == 2
        assert result.ill_requests[0].title == "Röda rummet"

        libris.client.fetch_requests("outgoing", {"start_date": "2024-01-01"})
        assert libris.http_client.requests == [
            libris.endpoint("illrequests", "Xyz", "incoming"),
            libris.endpoint("illrequests", "Xyz", "outgoing?start_date=2024-01-01"),
        ]

    def test_push_action(self, libris: LibrisFixture):
        libris.queue_update(status="Läst", last_modified="ts-2")

        update = libris.client.push_action(
            "ORD-1", "response", "ts-1", {"response_id": "Ja", "may_reserve": 1}
        )

        assert update.update_success is True
        assert update.ill_requests[0].status == "Läst"
        assert libris.http_client.requests_methods == ["POST"]
        [args] = libris.http_client.requests_args
        assert args["data"] == {
            "action": "response",
            "timestamp": "ts-1",
            "response_id": "Ja",
            "may_reserve": 1,
        }
        assert args["headers"]["api-key"] == "secret-key"
        assert args["max_retry_count"] == 0

    def test_user_agent(self, libris: LibrisFixture):
        libris.client.settings = libris.settings.model_copy(
            update={"user_agent": "Bibliotek/1.0"}
        )
        libris.queue_snapshot()
        libris.client.fetch_request_snapshot("ORD-1")
        [args] = libris.http_client.requests_args
        assert args["headers"]["User-Agent"] == "Bibliotek/1.0"


class TestUpdateRequest:
    def test_success(self, libris: LibrisFixture, db: DatabaseTransactionFixture):
        request = db.ill_request(status="IN_UTEL", orderid="ORD-1")
        libris.queue_snapshot("Uteliggande", "ts-1")
        libris.queue_update("Läst", "ts-2")

        libris.client.update_request(
            request, "read", libris.translator, libris.lifecycle.attributes
        )

        assert request.status == "IN_LAST"
        assert libris.lifecycle.attributes.value(request, "last_modified") == "ts-2"
        assert libris.http_client.requests_methods == ["GET", "POST"]
        assert libris.http_client.requests_args[1]["data"] == {
            "action": "read",
            "timestamp": "ts-1",
        }

    def test_last_modified_falls_back_to_snapshot(
        self, libris: LibrisFixture, db: DatabaseTransactionFixture
    ):
        request = db.ill_request(status="OUT_UTEL", orderid="ORD-1")
        libris.queue_snapshot("Uteliggande", "ts-1")
        libris.queue_update("Läst", None)

        libris.client.update_request(
            request, "read", libris.translator, libris.lifecycle.attributes
        )

        assert request.status == "OUT_LAST"
        assert libris.lifecycle.attributes.value(request, "last_modified") == "ts-1"

    def test_no_writes_when_post_fails(
        self, libris: LibrisFixture, db: DatabaseTransactionFixture
    ):
        request = db.ill_request(
            status="IN_UTEL", orderid="ORD-1", attributes={"last_modified": "old"}
        )
        libris.queue_snapshot("Uteliggande", "ts-1")
        libris.http_client.queue_exception(ConnectTimeout("too slow"))

        with pytest.raises(RequestTimedOut):
            libris.client.update_request(
                request, "read", libris.translator, libris.lifecycle.attributes
            )

        assert request.status == "IN_UTEL"
        assert libris.lifecycle.attributes.value(request, "last_modified") == "old"

    def test_no_writes_on_unmapped_status(
        self, libris: LibrisFixture, db: DatabaseTransactionFixture
    ):
        request = db.ill_request(status="IN_UTEL", orderid="ORD-1")
        libris.queue_snapshot("Uteliggande", "ts-1")
        libris.queue_update("Förkommen", "ts-2")

        with pytest.raises(UnmappedStatus):
            libris.client.update_request(
                request, "read", libris.translator, libris.lifecycle.attributes
            )
        assert request.status == "IN_UTEL"
        assert libris.lifecycle.attributes.find(request, "last_modified") is None

    def test_missing_updated_request(
        self, libris: LibrisFixture, db: DatabaseTransactionFixture
    ):
        request = db.ill_request(status="IN_UTEL", orderid="ORD-1")
        libris.queue_snapshot()
        libris.queue_update(status=None)

        with pytest.raises(NoBrokerData, match="did not return the updated request"):
            libris.client.update_request(
                request, "read", libris.translator, libris.lifecycle.attributes
            )
        assert request.status == "IN_UTEL"

    def test_rejected_keeps_libris_status(
        self, libris: LibrisFixture, db: DatabaseTransactionFixture
    ):
        request = db.ill_request(status="IN_UTEL", orderid="ORD-1")
        libris.queue_snapshot("Uteliggande", "ts-1")
        libris.queue_update("Läst", "ts-2", success=False, message="Old timestamp")

        with pytest.raises(UpdateRejected) as excinfo:
            libris.client.update_request(
                request, "read", libris.translator, libris.lifecycle.attributes
            )

        assert excinfo.value.status_line == "Old timestamp"
        assert request.status == "IN_LAST"
        assert libris.lifecycle.attributes.value(request, "last_modified") == "ts-2"

    def test_rejected_without_request(
        self, libris: LibrisFixture, db: DatabaseTransactionFixture
    ):
        request = db.ill_request(status="IN_UTEL", orderid="ORD-1")
        libris.queue_snapshot()
        libris.queue_update(status=None, success=False)

        with pytest.raises(UpdateRejected, match="did not carry out 'read'"):
            libris.client.update_request(
                request, "read", libris.translator, libris.lifecycle.attributes
            )
        assert request.status == "IN_UTEL"

    @pytest.mark.parametrize(
        "update_success, succeeded",
        [
            (True, True),
            (False, False),
            (None, True),
            ("true", True),
            ("1", True),
            ("false", False),
            ("0", False),
        ],
    )
    def test_succeeded(self, update_success: bool | str | None, succeeded: bool):
        update = UpdateResponse(update_success=update_success)
        assert update.succeeded is succeeded

    @pytest.mark.parametrize(
        "status, orderid, message",
        [
            ("Makulerad", "ORD-1", "has no direction"),
            (None, "ORD-1", "has no direction"),
            ("IN_UTEL", None, "has no Libris order id"),
        ],
    )
    def test_invalid_request(
        self,
        libris: LibrisFixture,
        db: DatabaseTransactionFixture,
        status: str | None,
        orderid: str | None,
        message: str,
    ):
        request = db.ill_request(status=status, orderid=orderid)
        with pytest.raises(IllValueError, match=message):
            libris.client.update_request(
                request, "read", libris.translator, libris.lifecycle.attributes
            )
        assert libris.http_client.requests == []

    def test_logs_elapsed_time(
        self,
        libris: LibrisFixture,
        db: DatabaseTransactionFixture,
        caplog: LogCaptureFixture,
    ):
        caplog.set_level("INFO")
        request = db.ill_request(status="IN_UTEL", orderid="ORD-9")
        libris.queue_snapshot()
        libris.queue_update()

        libris.client.update_request(
            request, "read", libris.translator, libris.lifecycle.attributes
        )

        assert "Libris 'read' for order ORD-9: Starting..." in caplog.messages
        assert any(
            "Libris 'read' for order ORD-9: Completed." in m for m in caplog.messages
        )


class TestLookupLibrary:
    @staticmethod
    def queue_library(libris: LibrisFixture, **fields: str) -> None:
        library = {
            "name": "Stadsbiblioteket",
            "address1": "Box 1",
            "address2": "Plan 2",
            "address3": "Hus B",
            "city": "Göteborg",
            "zip_code": "411 01",
        }
        library.update(fields)
        libris.http_client.queue_response(
            200, content={"count": 1, "libraries": [library]}
        )

    def test_creates_partner(
        self, libris: LibrisFixture, db: DatabaseTransactionFixture
    ):
        self.queue_library(libris)

        patron = libris.client.lookup_library(
            db.session, "G", categorycode="ILLLIBS", branchcode="MAIN"
        )

        assert libris.http_client.requests == [libris.endpoint("libraries", "Xyz", "G")]
        assert patron.borrowernumber is not None
        assert patron.cardnumber == "G"
        assert patron.userid == "G"
        assert patron.surname == "Stadsbiblioteket"
        assert patron.address == "Box 1"
        assert patron.address2 == "Plan 2, Hus B"
        assert patron.city == "Göteborg"
        assert patron.zipcode == "411 01"
        assert patron.categorycode == "ILLLIBS"
        assert patron.branchcode == "MAIN"

    def test_updates_existing_partner(
        self, libris: LibrisFixture, db: DatabaseTransactionFixture
    ):
        existing = db.patron(cardnumber="G", surname="Old name")
        self.queue_library(libris, name="New name", address3="")

        patron = libris.client.lookup_library(db.session, "G")

        assert patron is existing
        assert patron.surname == "New name"
        assert patron.address2 == "Plan 2"

    def test_unknown_library(self, libris: LibrisFixture, db: DatabaseTransactionFixture):
        libris.http_client.queue_response(200, content={"count": 0, "libraries": []})
        with pytest.raises(NoBrokerData):
            libris.client.lookup_library(db.session, "Nope")


class TestBibliographicSource:
    @pytest.mark.parametrize("bib_id", ["BIB123", "bib123"])
    def test_placeholder(self, libris: LibrisFixture, bib_id: str):
        source = libris.client.fetch_bibliographic_source(
            bib_id, {"author": "", "title": "Okänd bok"}
        )
        assert source is not None
        assert source.bib_id == bib_id
        assert source.author is None
        assert source.title == "Okänd bok"
        assert source.is_placeholder
        assert libris.http_client.requests == []

    def test_catalogue_record(self, libris: LibrisFixture):
        libris.http_client.queue_response(200, content=SRU_RECORD)

        source = libris.client.fetch_bibliographic_source("8412345")

        assert source is not None
        assert source.author == "Lagerlöf, Selma"
        assert source.title == "Gösta Berlings saga"
        assert not source.is_placeholder
        assert 'tag="245"' in source.record_xml
        assert 'tag="852"' not in source.record_xml
        assert 'tag="887"' not in source.record_xml

        [url] = libris.http_client.requests
        assert url == "http://api.libris.kb.se/sru/libris"
        [args] = libris.http_client.requests_args
        assert args["params"] == {
            "version": "1.1",
            "operation": "searchRetrieve",
            "query": "rec.recordIdentifier=8412345",
        }

    def test_catalogue_record_not_found(self, libris: LibrisFixture):
        libris.http_client.queue_response(
            200,
            content='<searchRetrieveResponse xmlns="http://www.loc.gov/zing/srw/">'
            "<numberOfRecords>0</numberOfRecords></searchRetrieveResponse>",
        )
        assert libris.client.fetch_bibliographic_source("8412345") is None
