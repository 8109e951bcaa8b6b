"""Licence and site lookups against the ACMA Register of Radiocommunications
Licences (RRL).

A callsign search on the register can come back in two shapes:

- the licence detail page itself, when exactly one licence matches
- a result list, whose first licence link must be followed

``classify_search_response`` decides which, and ``LicenceResolver`` acts on
that decision. Every field on the detail pages is extracted on its own, so a
changed cell costs that one field and nothing else.

Resolvers never raise for a single station's failure. They return a
LicenceLookup or SiteLookup carrying the status and error text instead.
"""

from __future__ import annotations

import logging
import re

from pydantic import ValidationError

from repeatermap.common.data_models import (
    DetailSource,
    Direction,
    FrequencyAssignment,
    LicenceLookup,
    LicenceRecord,
    SiteCoordinate,
    SiteLookup,
)
from repeatermap.common.exceptions import (
    ScraperAssumptionException,
    TransientException,
)
from repeatermap.common.request_manager import SyncRequestManager
from repeatermap.common.text_extractor import (
    Field,
    extract_all,
    extract_first,
)
from repeatermap.data_types import HTTPRequestParams, Response
from repeatermap.settings import Settings

logger = logging.getLogger(__name__)

# Present on every licence detail page, absent from search result lists.
DETAIL_MARKER = "Licence Details"

LICENCE_LINK = re.compile(
    r"licence_search\.licence_lookup\?pLICENCE_NO=([^\"'&\s>]+)"
)

_CELL = r"</td>\s*<td\b[^>]*>"

LICENCE_NO = Field("licence_no", rf"Licence Number\s*{_CELL}([^<]+)</td>")
LICENSEE = Field("licensee", rf"Client\s*{_CELL}\s*<a\b[^>]*>([^<]+)</a>")
SITE_ID = Field(
    "site_id", r"site_search\.site_lookup\?pSITE_ID=(\d+)", clean=None
)

ASSIGNMENT_ROW = re.compile(
    r"title=\"Center Frequency:\s*([\d.]+)\s*(kHz|MHz|GHz)[^\"]*\""
    # stay inside the same assignment row
    r"(?:(?!Center Frequency:|</tr>).)*?"
    r"title=\"(Transmitter|Receiver)\"",
    re.DOTALL,
)

LAT_LONG = re.compile(
    r"Lat,\s*Long(?:\s*\([^)]*\))?\s*"
    rf"{_CELL}\s*"
    r"([-+]?[\d.]+)\s*(?:&deg;|°)?\s*,\s*([-+]?[\d.]+)",
    re.DOTALL,
)
LOCATION = Field("location", rf"Location\s*{_CELL}([^<]+)</td>")

_DIRECTIONS = {
    "Transmitter": Direction.TRANSMIT,
    "Receiver": Direction.RECEIVE,
}


def to_mhz(value: float, unit: str) -> float:
    """Normalise a frequency in kHz, MHz or GHz to MHz."""
    if unit == "kHz":
        return value / 1000
    if unit == "GHz":
        return value * 1000
    if unit == "MHz":
        return value
    raise ValueError(f"Unknown frequency unit: {unit}")


def _site_name_pattern(site_id: str) -> re.Pattern[str]:
    # Anchor text of the link to this particular site.
    return re.compile(
        rf"site_search\.site_lookup\?pSITE_ID={re.escape(site_id)}"
        r"(?![\d])[^>]*>([^<]+)</a>",
        re.DOTALL,
    )


# =============================================================================
# Page parsers
# =============================================================================


def classify_search_response(
    document: str,
) -> tuple[DetailSource, str | None] | None:
    """Work out what a callsign search returned.

    Returns:
        ``(DIRECT_DETAIL, None)`` when the response is the detail page,
        ``(SEARCH_RESULTS, licence_no)`` when it links to one, or None when
        the register has nothing for the callsign.
    """
    if DETAIL_MARKER in document:
        return DetailSource.DIRECT_DETAIL, None
    link = extract_first(document, LICENCE_LINK)
    if link is not None:
        return DetailSource.SEARCH_RESULTS, link[0]
    return None


def parse_assignments(document: str) -> tuple[FrequencyAssignment, ...]:
    """Extract every frequency assignment row, in page order.

    Rows whose frequency does not parse as a number are skipped.
    """
    assignments = []
    for value, unit, marker in extract_all(document, ASSIGNMENT_ROW):
        try:
            frequency = to_mhz(float(value), unit)
        except ValueError:
            logger.debug(f"Skipping unparseable frequency {value!r} {unit}")
            continue
        assignments.append(
            FrequencyAssignment(
                frequency_mhz=frequency, direction=_DIRECTIONS[marker]
            )
        )
    return tuple(assignments)


def parse_licence_page(document: str) -> LicenceRecord:
    """Extract a LicenceRecord from a licence detail page.

    Every field is optional and extracted independently.
    """
    site_id = SITE_ID.first(document)
    site_name = None
    if site_id is not None:
        site_name = Field("site_name", _site_name_pattern(site_id)).first(
            document
        )

    return LicenceRecord(
        licence_no=LICENCE_NO.first(document),
        licensee=LICENSEE.first(document),
        site_id=site_id,
        site_name=site_name,
        assignments=parse_assignments(document),
    )


def parse_site_page(document: str) -> SiteCoordinate:
    """Extract coordinates and location text from a site detail page.

    The coordinate pair is all or nothing: if either number fails to parse
    both are treated as absent.
    """
    latitude: float | None = None
    longitude: float | None = None

    coords = extract_first(document, LAT_LONG)
    if coords is not None:
        try:
            latitude, longitude = float(coords[0]), float(coords[1])
        except ValueError:
            logger.debug(f"Unparseable Lat,Long cell: {coords!r}")
            latitude = longitude = None

    return SiteCoordinate(
        latitude=latitude,
        longitude=longitude,
        location=LOCATION.first(document),
    )


# =============================================================================
# Resolvers
# =============================================================================


class LicenceResolver:
    """Resolve a callsign to its licence record.

    Example::

        resolver = LicenceResolver(request_manager, Settings())
        lookup = resolver.lookup("VK2RAG")
        if lookup.status is LookupStatus.FOUND:
            print(lookup.record.licence_no)
    """

    def __init__(
        self, request_manager: SyncRequestManager, settings: Settings
    ) -> None:
        self.request_manager = request_manager
        self.settings = settings

    def search(self, callsign: str) -> Response:
        """Submit an exact-match callsign search."""
        return self.request_manager.resolve_request(
            HTTPRequestParams.post_form(
                self.settings.search_url,
                {
                    "pSEARCH_TYPE": "Licences",
                    "pSUB_TYPE": "Callsign",
                    "pEXACT_IND": "matches",
                    "pQRY": callsign,
                },
            )
        )

    def fetch_licence(self, licence_no: str) -> Response:
        """Fetch a licence detail page by licence number."""
        return self.request_manager.resolve_request(
            HTTPRequestParams.get(
                self.settings.licence_url, pLICENCE_NO=licence_no
            )
        )

    def fetch_detail_page(
        self, callsign: str
    ) -> tuple[DetailSource, Response] | None:
        """Search for a callsign and return its detail page, if any.

        Raises:
            TransientException: If a request fails.
        """
        search_response = self.search(callsign)

        match classify_search_response(search_response.text):
            case (DetailSource.DIRECT_DETAIL, _):
                return DetailSource.DIRECT_DETAIL, search_response
            case (DetailSource.SEARCH_RESULTS, str() as licence_no):
                logger.debug(
                    f"{callsign}: following search result to licence "
                    f"{licence_no}"
                )
                return DetailSource.SEARCH_RESULTS, self.fetch_licence(
                    licence_no
                )
            case _:
                return None

    def lookup(self, callsign: str) -> LicenceLookup:
        """Resolve a callsign. Never raises for network or page faults."""
        try:
            detail = self.fetch_detail_page(callsign)
            if detail is None:
                logger.info(f"{callsign}: not found on the register")
                return LicenceLookup.not_found()
            source, response = detail
            record = parse_licence_page(response.text)
        except (
            TransientException,
            ScraperAssumptionException,
            ValidationError,
        ) as e:
            logger.warning(
                f"{callsign}: licence lookup failed: {e}",
                extra={"callsign": callsign, "error_type": type(e).__name__},
            )
            return LicenceLookup.failed(str(e))

        logger.debug(
            f"{callsign}: licence {record.licence_no} via {source.value}, "
            f"{len(record.assignments)} assignments, site {record.site_id}"
        )
        return LicenceLookup.found(record, source)


class SiteResolver:
    """Resolve a register site id to coordinates and a location string."""

    def __init__(
        self, request_manager: SyncRequestManager, settings: Settings
    ) -> None:
        self.request_manager = request_manager
        self.settings = settings

    def fetch_site(self, site_id: str) -> Response:
        return self.request_manager.resolve_request(
            HTTPRequestParams.get(self.settings.site_url, pSITE_ID=site_id)
        )

    def lookup(self, site_id: str) -> SiteLookup:
        """Resolve a site id. Never raises for network or page faults."""
        try:
            response = self.fetch_site(site_id)
            site = parse_site_page(response.text)
        except (
            TransientException,
            ScraperAssumptionException,
            ValidationError,
        ) as e:
            logger.warning(
                f"Site {site_id}: lookup failed: {e}",
                extra={"site_id": site_id, "error_type": type(e).__name__},
            )
            return SiteLookup.failed(str(e))
        return SiteLookup.found(site)
