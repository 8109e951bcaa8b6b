"""Output writers for the merged station collection.

Each ``render_*`` function is pure: the same records and ``generated``
timestamp always give the same text. ``write_outputs`` puts all three on
disk.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime
from pathlib import Path

from repeatermap.common.data_models import StationRecord
from repeatermap.exporters.csv_export import render_csv
from repeatermap.exporters.geojson import render_geojson
from repeatermap.exporters.kml import render_kml

logger = logging.getLogger(__name__)

__all__ = ["render_csv", "render_geojson", "render_kml", "write_outputs"]


def _write(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(text, encoding="utf-8", newline="")


def write_outputs(
    records: Sequence[StationRecord],
    kml_path: Path | str,
    csv_path: Path | str,
    geojson_path: Path | str,
    generated: datetime | None = None,
) -> datetime:
    """Write the KML, CSV and GeoJSON files, creating parent directories.

    Returns:
        The generation timestamp stamped into the KML and GeoJSON.
    """
    generated = generated or datetime.now().astimezone()

    for path, render in (
        (Path(kml_path), lambda: render_kml(records, generated)),
        (Path(csv_path), lambda: render_csv(records)),
        (Path(geojson_path), lambda: render_geojson(records, generated)),
    ):
        logger.info(f"Writing {path}")
        _write(path, render())

    return generated
