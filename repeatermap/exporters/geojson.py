"""GeoJSON export for the web map."""

from __future__ import annotations

import json
from collections.abc import Iterable
from datetime import datetime
from typing import Any

from repeatermap.common.data_models import StationRecord

SOURCE_LABEL = "DMR Repeater Tool – rpt.vkdmr.com + ACMA RRL"


def _rounded(value: float | None) -> float | None:
    return round(value, 4) if value is not None else None


def feature(record: StationRecord) -> dict[str, Any]:
    """A GeoJSON Point feature for a located station.

    Frequencies and the offset are numbers rounded to 4 decimal places.
    """
    return {
        "type": "Feature",
        "geometry": {
            "type": "Point",
            # GeoJSON order is [longitude, latitude]
            "coordinates": [record.longitude, record.latitude],
        },
        "properties": {
            "callsign": record.callsign,
            "info": record.info,
            "dmr_id": record.dmr_id,
            "client": record.licensee or "",
            "location": record.location or "",
            "tx_mhz": _rounded(record.tx_mhz),
            "rx_mhz": _rounded(record.rx_mhz),
            "offset_mhz": _rounded(record.offset_mhz),
            "licence_no": record.licence_no or "",
            "site_id": record.site_id or "",
        },
    }


def render_geojson(
    records: Iterable[StationRecord], generated: datetime
) -> str:
    """Render located stations as a pretty-printed FeatureCollection."""
    collection = {
        "type": "FeatureCollection",
        "generated": generated.isoformat(timespec="seconds"),
        "source": SOURCE_LABEL,
        "features": [feature(r) for r in records if r.has_coordinates],
    }
    return json.dumps(collection, indent=4, ensure_ascii=False)
