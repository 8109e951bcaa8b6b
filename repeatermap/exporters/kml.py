"""KML export for Google Earth and Google Maps.

Builds the document with lxml. Placemark descriptions are HTML wrapped in
CDATA, so field values are HTML-escaped before they go in.
"""

from __future__ import annotations

import html
from collections.abc import Iterable
from datetime import datetime

from lxml import etree
from lxml.builder import ElementMaker

from repeatermap.common.data_models import StationRecord
from repeatermap.exporters.formatting import (
    format_coordinate,
    format_mhz,
    format_offset,
)

KML_NAMESPACE = "http://www.opengis.net/kml/2.2"

DOCUMENT_NAME = "VK DMR Repeaters"
DOCUMENT_DESCRIPTION = (
    "DMR repeaters from rpt.vkdmr.com with ACMA licence data. Generated {}"
)

STYLE_ID = "repeaterPin"
ICON_COLOR = "ff0000ff"
ICON_SCALE = "1.2"
ICON_HREF = "http://maps.google.com/mapfiles/kml/paddle/red-circle.png"

K = ElementMaker(namespace=KML_NAMESPACE, nsmap={None: KML_NAMESPACE})


def _line(label: str, value: str) -> str:
    return f"<b>{label}:</b> {value}"


def description_lines(record: StationRecord) -> list[str]:
    """Lines of a placemark description, in display order.

    Empty text fields and unknown frequencies are left out.
    """
    lines = [_line("Callsign", html.escape(record.callsign))]
    if record.info:
        lines.append(_line("Info", html.escape(record.info)))
    if record.dmr_id:
        lines.append(_line("DMR ID", html.escape(record.dmr_id)))
    if record.licensee:
        lines.append(_line("Licensee", html.escape(record.licensee)))
    if record.location:
        lines.append(_line("Location", html.escape(record.location)))
    if record.tx_mhz is not None:
        lines.append(_line("TX Frequency", f"{format_mhz(record.tx_mhz)} MHz"))
    if record.rx_mhz is not None:
        lines.append(_line("RX Frequency", f"{format_mhz(record.rx_mhz)} MHz"))
    if record.offset_mhz is not None:
        offset = format_offset(record.offset_mhz, signed=True)
        lines.append(_line("Offset", f"{offset} MHz"))
    if record.licence_no:
        lines.append(_line("Licence", html.escape(record.licence_no)))
    lines.append(
        _line(
            "Coordinates",
            f"{format_coordinate(record.latitude)}, "
            f"{format_coordinate(record.longitude)}",
        )
    )
    return lines


def placemark(record: StationRecord) -> etree._Element:
    description = K.description()
    description.text = etree.CDATA("<br/>".join(description_lines(record)))
    return K.Placemark(
        K.name(record.callsign),
        K.styleUrl(f"#{STYLE_ID}"),
        description,
        K.Point(
            K.coordinates(
                f"{format_coordinate(record.longitude)},"
                f"{format_coordinate(record.latitude)},0"
            )
        ),
    )


def render_kml(records: Iterable[StationRecord], generated: datetime) -> str:
    """Render located stations as a KML document string."""
    style = K.Style(
        K.IconStyle(
            K.color(ICON_COLOR),
            K.scale(ICON_SCALE),
            K.Icon(K.href(ICON_HREF)),
        ),
        id=STYLE_ID,
    )
    document = K.Document(
        K.name(DOCUMENT_NAME),
        K.description(
            DOCUMENT_DESCRIPTION.format(
                generated.strftime("%Y-%m-%d %H:%M:%S")
            )
        ),
        style,
    )
    for record in records:
        if record.has_coordinates:
            document.append(placemark(record))

    root = K.kml(document)
    return etree.tostring(
        root, xml_declaration=True, encoding="UTF-8", pretty_print=True
    ).decode("utf-8")
