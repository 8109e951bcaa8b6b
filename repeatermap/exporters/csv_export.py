"""Tabular export. One row per station, located or not."""

from __future__ import annotations

import csv
import io
from collections.abc import Iterable

from repeatermap.common.data_models import StationRecord
from repeatermap.exporters.formatting import (
    format_coordinate,
    format_mhz,
    format_offset,
)

HEADER = (
    "Callsign",
    "Info",
    "DMR ID",
    "Licensee",
    "Location",
    "TX MHz",
    "RX MHz",
    "Offset MHz",
    "Latitude",
    "Longitude",
    "Licence No",
    "Site ID",
)


def csv_row(record: StationRecord) -> list[str]:
    return [
        record.callsign,
        record.info,
        record.dmr_id,
        record.licensee or "",
        record.location or "",
        format_mhz(record.tx_mhz),
        format_mhz(record.rx_mhz),
        format_offset(record.offset_mhz),
        format_coordinate(record.latitude),
        format_coordinate(record.longitude),
        record.licence_no or "",
        record.site_id or "",
    ]


def render_csv(records: Iterable[StationRecord]) -> str:
    """Render the station table as CSV text with a header row."""
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(HEADER)
    for record in records:
        writer.writerow(csv_row(record))
    return buffer.getvalue()
