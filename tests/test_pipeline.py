"""Tests for the Pipeline driver and record merging.

Key behaviors tested:
- One record per unique listed station, in listing order
- End-to-end merge of listing, licence, pair, and site data
- Not-found and failed stations still produce records
- A failed site lookup keeps the licence data of a found station
- Redirect loops on the register are per-station failures
- A failed status page is fatal and produces nothing
- Lifecycle hooks, progress callback and stop_event
- The pipeline closes a request manager it created, but not a borrowed one
"""

import threading

import httpx
import pytest

from repeatermap.common.data_models import (
    DetailSource,
    FrequencyPair,
    LicenceLookup,
    LicenceRecord,
    LookupStatus,
    SiteCoordinate,
    SiteLookup,
    StationListing,
)
from repeatermap.common.exceptions import (
    HTMLResponseAssumptionException,
    HTMLStructuralAssumptionException,
    RequestTransportException,
)
from repeatermap.common.request_manager import SyncRequestManager
from repeatermap.driver.pipeline import Pipeline, build_station_record
from repeatermap.exporters.csv_export import render_csv
from repeatermap.settings import Settings
from tests.mock_server import MockStation, create_app, generate_status_html
from tests.utils import collect_records

LISTING = StationListing(callsign="VK2RAG", info="Somersby (28)", dmr_id="28")
LICENCE = LicenceRecord(
    licence_no="1234567",
    licensee="Test Club Inc",
    site_id="9999",
    site_name="Somersby Hilltop",
)
PAIR = FrequencyPair(tx_mhz=439.825, rx_mhz=434.825, tier=1)
SITE = SiteCoordinate(
    latitude=-33.360078, longitude=151.291215, location="Somersby"
)


class TestBuildStationRecord:
    def test_merges_everything(self) -> None:
        record = build_station_record(
            LISTING,
            LicenceLookup.found(LICENCE, DetailSource.DIRECT_DETAIL),
            PAIR,
            SiteLookup.found(SITE),
        )

        assert record.callsign == "VK2RAG"
        assert record.info == "Somersby (28)"
        assert record.licence_no == "1234567"
        assert record.licensee == "Test Club Inc"
        assert record.site_name == "Somersby Hilltop"
        assert record.tx_mhz == 439.825
        assert record.rx_mhz == 434.825
        assert record.latitude == -33.360078
        assert record.location == "Somersby"
        assert record.lookup_status is LookupStatus.FOUND
        assert record.error is None

    def test_not_found_keeps_listing_only(self) -> None:
        record = build_station_record(LISTING, LicenceLookup.not_found())

        assert record.callsign == "VK2RAG"
        assert record.dmr_id == "28"
        assert record.licence_no is None
        assert record.tx_mhz is None
        assert not record.has_coordinates
        assert record.lookup_status is LookupStatus.NOT_FOUND

    def test_failed_lookup_carries_error(self) -> None:
        record = build_station_record(
            LISTING, LicenceLookup.failed("HTTP 500")
        )

        assert record.lookup_status is LookupStatus.ERROR
        assert record.error == "HTTP 500"
        assert record.licence_no is None

    def test_failed_site_lookup_keeps_licence_data(self) -> None:
        record = build_station_record(
            LISTING,
            LicenceLookup.found(LICENCE, DetailSource.SEARCH_RESULTS),
            PAIR,
            SiteLookup.failed("timed out"),
        )

        assert record.lookup_status is LookupStatus.FOUND
        assert record.licence_no == "1234567"
        assert record.tx_mhz == 439.825
        assert not record.has_coordinates
        assert record.error == "timed out"


class TestPipelineRun:
    def test_end_to_end(self, settings: Settings) -> None:
        records = Pipeline(settings).run()

        assert [r.callsign for r in records] == [
            "VK2RAG",
            "VK3RXX",
            "VK4RZZ",
            "VK6RER",
        ]

        vk2rag = records[0]
        assert vk2rag.info == "Somersby (28)"
        assert vk2rag.dmr_id == "28"
        assert vk2rag.licence_no == "1234567"
        assert vk2rag.licensee == "Test Club Inc"
        assert vk2rag.site_id == "9999"
        assert vk2rag.tx_mhz == 439.825
        assert vk2rag.rx_mhz == 434.825
        assert vk2rag.offset_mhz == pytest.approx(5.0)
        assert vk2rag.latitude == -33.360078
        assert vk2rag.longitude == 151.291215
        assert vk2rag.location == "Somersby"

    def test_result_list_station(self, settings: Settings) -> None:
        records = Pipeline(settings).run()

        vk3rxx = records[1]
        assert vk3rxx.info == "Mt Dandenong & Ferny Creek"
        assert vk3rxx.licence_no == "7654321"
        # The 23cm link frequency is skipped in favour of the UHF pair
        assert (vk3rxx.tx_mhz, vk3rxx.rx_mhz) == (438.15, 433.15)
        assert vk3rxx.location == "Mt Dandenong, Observatory Rd"

    def test_not_found_station(self, settings: Settings) -> None:
        records = Pipeline(settings).run()

        vk4rzz = records[2]
        assert vk4rzz.lookup_status is LookupStatus.NOT_FOUND
        assert vk4rzz.info == "Not on the register"
        assert vk4rzz.licence_no is None
        assert vk4rzz.licensee is None
        assert vk4rzz.tx_mhz is None
        assert vk4rzz.rx_mhz is None
        assert vk4rzz.latitude is None
        assert vk4rzz.longitude is None

    def test_failed_station_does_not_stop_the_run(
        self, settings: Settings
    ) -> None:
        records = Pipeline(settings).run()

        vk6rer = records[3]
        assert vk6rer.lookup_status is LookupStatus.ERROR
        assert vk6rer.error is not None
        assert vk6rer.dmr_id == "6003"

    def test_failed_site_lookup_keeps_station(self, start_server) -> None:
        server = start_server(
            create_app(
                status_html=generate_status_html(
                    [
                        MockStation("VK5RSX", "Mt Lofty", "5004"),
                        MockStation("VK2RAG", "Somersby (28)", "28"),
                    ]
                )
            )
        )
        settings = Settings.for_base_url(server.url, rate_limit_ms=0)

        records = Pipeline(settings).run()

        vk5rsx = records[0]
        assert vk5rsx.lookup_status is LookupStatus.FOUND
        assert vk5rsx.licence_no == "5550001"
        assert vk5rsx.licensee == "Adelaide Hills Repeater Group"
        assert vk5rsx.site_id == "7777"
        assert (vk5rsx.tx_mhz, vk5rsx.rx_mhz) == (438.525, 433.525)
        assert not vk5rsx.has_coordinates
        assert vk5rsx.location is None
        assert "HTTP 404" in vk5rsx.error
        # The next station is unaffected
        assert records[1].has_coordinates
        assert records[1].error is None

        rows = render_csv(records).splitlines()
        assert rows[1] == (
            "VK5RSX,Mt Lofty,5004,Adelaide Hills Repeater Group,,"
            "438.5250,433.5250,5.000,,,5550001,7777"
        )

    def test_redirect_loop_is_a_station_failure(self) -> None:
        status_html = generate_status_html()

        def handler(request: httpx.Request) -> httpx.Response:
            if request.url.path == "/ipsc/_status.html":
                return httpx.Response(200, text=status_html)
            return httpx.Response(302, headers={"Location": str(request.url)})

        settings = Settings.for_base_url(
            "http://register.test", rate_limit_ms=0
        )
        statuses = []

        with SyncRequestManager(
            transport=httpx.MockTransport(handler)
        ) as request_manager:
            records = Pipeline(
                settings,
                request_manager=request_manager,
                on_run_complete=lambda status, error: statuses.append(status),
            ).run()

        assert [r.callsign for r in records] == [
            "VK2RAG",
            "VK3RXX",
            "VK4RZZ",
            "VK6RER",
        ]
        for record in records:
            assert record.lookup_status is LookupStatus.ERROR
            assert "TooManyRedirects" in record.error
        assert statuses == ["completed"]

    def test_missing_status_page_is_fatal(self, unused_url: str) -> None:
        settings = Settings.for_base_url(unused_url, rate_limit_ms=0)
        callback, records = collect_records()

        with pytest.raises(RequestTransportException):
            Pipeline(settings, on_record=callback).run()

        assert records == []

    def test_status_page_error_is_fatal(
        self, server_url: str, request_manager: SyncRequestManager
    ) -> None:
        settings = Settings.for_base_url(
            server_url,
            status_url=f"{server_url}/gone.html",
            rate_limit_ms=0,
        )

        with pytest.raises(HTMLResponseAssumptionException):
            Pipeline(settings, request_manager=request_manager).run()

    def test_status_page_without_rows_is_fatal(self, start_server) -> None:
        server = start_server(
            create_app(status_html="<html><body>Maintenance</body></html>")
        )
        settings = Settings.for_base_url(server.url, rate_limit_ms=0)

        with pytest.raises(HTMLStructuralAssumptionException):
            Pipeline(settings).run()

        # Nothing beyond the status page was requested
        assert [p for _m, p, _ua in server.request_log] == [
            "/ipsc/_status.html"
        ]


class TestPipelineCallbacks:
    def test_on_record_reports_progress(self, settings: Settings) -> None:
        calls = []

        Pipeline(
            settings,
            on_record=lambda i, total, record: calls.append(
                (i, total, record.callsign)
            ),
        ).run()

        assert calls == [
            (1, 4, "VK2RAG"),
            (2, 4, "VK3RXX"),
            (3, 4, "VK4RZZ"),
            (4, 4, "VK6RER"),
        ]

    def test_lifecycle_hooks(self, settings: Settings) -> None:
        events: list[tuple] = []

        Pipeline(
            settings,
            on_run_start=lambda total: events.append(("start", total)),
            on_run_complete=lambda status, error: events.append(
                ("complete", status, error)
            ),
        ).run()

        assert events == [("start", 4), ("complete", "completed", None)]

    def test_run_complete_fires_on_fatal_error(
        self, unused_url: str
    ) -> None:
        events: list[tuple] = []
        settings = Settings.for_base_url(unused_url, rate_limit_ms=0)

        with pytest.raises(RequestTransportException):
            Pipeline(
                settings,
                on_run_start=lambda total: events.append(("start", total)),
                on_run_complete=lambda status, error: events.append(
                    (status, type(error).__name__)
                ),
            ).run()

        assert events == [("error", "RequestTransportException")]

    def test_stop_event_returns_partial_records(
        self, settings: Settings
    ) -> None:
        stop_event = threading.Event()
        statuses = []

        def on_record(index: int, total: int, record) -> None:
            if index == 2:
                stop_event.set()

        records = Pipeline(
            settings,
            on_record=on_record,
            on_run_complete=lambda status, error: statuses.append(status),
            stop_event=stop_event,
        ).run()

        assert [r.callsign for r in records] == ["VK2RAG", "VK3RXX"]
        assert statuses == ["stopped"]


class TestRequestManagerOwnership:
    def test_borrowed_manager_stays_open(
        self, settings: Settings, request_manager: SyncRequestManager
    ) -> None:
        Pipeline(settings, request_manager=request_manager).run()

        # Still usable after the run
        records = Pipeline(settings, request_manager=request_manager).run()
        assert len(records) == 4

    def test_owned_manager_is_closed(self, settings: Settings) -> None:
        pipeline = Pipeline(settings)
        pipeline.run()

        assert pipeline.request_manager._client.is_closed

