"""Repeater list from the VK DMR network status page.

The LINK-STATUS table on the status page has one ``<tr class="trow">`` per
repeater link with the columns::

    NR | REPEATER | INFO | ID | TS1 | CQ | TS1-INFO | TS2 | TS2-INFO | REF | ...

Only the first four are used. A repeater connected through more than one
link appears more than once; the first row wins.
"""

from __future__ import annotations

import logging
import re

from repeatermap.common.data_models import StationListing
from repeatermap.common.request_manager import SyncRequestManager
from repeatermap.common.text_extractor import (
    checked_extract_all,
    clean_text,
)
from repeatermap.data_types import HTTPRequestParams
from repeatermap.settings import Settings

logger = logging.getLogger(__name__)

# Two or three character prefix, a digit, then a two to four letter suffix.
CALLSIGN = r"[A-Z][A-Z0-9]{1,2}\d[A-Z]{2,4}"

_CELL = r"<td\b[^>]*>"

STATUS_ROW = re.compile(
    r"<tr\b[^>]*\bclass=[\"'][^\"']*\btrow\b[^\"']*[\"'][^>]*>\s*"
    rf"{_CELL}\s*\d+\s*</td>\s*"
    rf"{_CELL}\s*({CALLSIGN})\s*</td>\s*"
    rf"{_CELL}([^<]*)</td>\s*"
    rf"{_CELL}\s*(\d+)\s*</td>",
    re.DOTALL,
)


def parse_directory(document: str, url: str = "") -> list[StationListing]:
    """Parse the status page into unique station listings.

    Args:
        document: The status page HTML.
        url: URL the page came from, for error context.

    Returns:
        One StationListing per distinct callsign, in first-seen order.

    Raises:
        HTMLStructuralAssumptionException: If no repeater rows match. The
            page layout has changed and nothing useful can be produced.
    """
    rows = checked_extract_all(
        document,
        STATUS_ROW,
        "repeater status rows",
        min_count=1,
        request_url=url,
    )

    listings: dict[str, StationListing] = {}
    for callsign, info, dmr_id in rows:
        callsign = callsign.strip()
        if callsign in listings:
            continue
        listings[callsign] = StationListing(
            callsign=callsign,
            info=clean_text(info),
            dmr_id=dmr_id.strip(),
        )

    logger.info(
        f"Parsed {len(rows)} status rows into {len(listings)} unique repeaters"
    )
    return list(listings.values())


def fetch_directory(
    request_manager: SyncRequestManager, settings: Settings
) -> list[StationListing]:
    """Fetch and parse the status page.

    Any failure here is fatal for the run, so exceptions propagate.
    """
    logger.info(f"Fetching repeater list from {settings.status_url}")
    response = request_manager.resolve_request(
        HTTPRequestParams.get(settings.status_url)
    )
    return parse_directory(response.text, response.url)
