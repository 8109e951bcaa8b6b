"""Tests for the network status page parser.

Key behaviors tested:
- Rows become StationListings in page order
- Duplicate callsigns collapse to the first row
- Entities in the info column are decoded
- A page with no recognisable rows is a fatal structural error
- fetch_directory fetches over HTTP and propagates failures
"""

import pytest

from repeatermap.common.exceptions import (
    HTMLResponseAssumptionException,
    HTMLStructuralAssumptionException,
    RequestTransportException,
)
from repeatermap.common.request_manager import SyncRequestManager
from repeatermap.settings import Settings
from repeatermap.sources.directory import fetch_directory, parse_directory
from tests.mock_server import MockStation, generate_status_html


class TestParseDirectory:
    def test_parses_unique_stations_in_order(self, status_html: str) -> None:
        listings = parse_directory(status_html)

        assert [s.callsign for s in listings] == [
            "VK2RAG",
            "VK3RXX",
            "VK4RZZ",
            "VK6RER",
        ]

    def test_first_row_wins_for_duplicates(self, status_html: str) -> None:
        listings = parse_directory(status_html)

        vk2rag = next(s for s in listings if s.callsign == "VK2RAG")
        assert vk2rag.info == "Somersby (28)"
        assert vk2rag.dmr_id == "28"

    def test_info_entities_are_decoded(self, status_html: str) -> None:
        listings = parse_directory(status_html)

        vk3rxx = next(s for s in listings if s.callsign == "VK3RXX")
        assert vk3rxx.info == "Mt Dandenong & Ferny Creek"

    def test_empty_info_is_allowed(self) -> None:
        html = generate_status_html([MockStation("VK5RAD", "", "505")])
        listings = parse_directory(html)

        assert len(listings) == 1
        assert listings[0].info == ""
        assert listings[0].dmr_id == "505"

    def test_rows_without_trow_class_are_ignored(self) -> None:
        html = generate_status_html(
            [MockStation("VK7RAA", "Hobart", "701")]
        ).replace('class="trow"', 'class="other"')

        with pytest.raises(HTMLStructuralAssumptionException):
            parse_directory(html)

    def test_tolerates_extra_row_attributes(self) -> None:
        html = generate_status_html(
            [MockStation("VK7RAA", "Hobart", "701")]
        ).replace('<tr class="trow">', '<tr id="r1" class="trow odd">')

        listings = parse_directory(html)
        assert [s.callsign for s in listings] == ["VK7RAA"]

    def test_no_rows_raises_structural_error(self) -> None:
        html = "<html><body><p>Status temporarily unavailable</p></body></html>"

        with pytest.raises(HTMLStructuralAssumptionException) as exc_info:
            parse_directory(html, url="http://example.test/ipsc/_status.html")

        assert exc_info.value.actual_count == 0
        assert (
            exc_info.value.request_url
            == "http://example.test/ipsc/_status.html"
        )


class TestFetchDirectory:
    def test_fetches_status_page(
        self, settings: Settings, request_manager: SyncRequestManager
    ) -> None:
        listings = fetch_directory(request_manager, settings)

        assert len(listings) == 4
        assert listings[0].callsign == "VK2RAG"

    def test_http_error_propagates(
        self, server_url: str, request_manager: SyncRequestManager
    ) -> None:
        settings = Settings(status_url=f"{server_url}/missing.html")

        with pytest.raises(HTMLResponseAssumptionException) as exc_info:
            fetch_directory(request_manager, settings)

        assert exc_info.value.status_code == 404

    def test_unreachable_host_propagates(
        self, unused_url: str, request_manager: SyncRequestManager
    ) -> None:
        settings = Settings(status_url=f"{unused_url}/ipsc/_status.html")

        with pytest.raises(RequestTransportException):
            fetch_directory(request_manager, settings)
