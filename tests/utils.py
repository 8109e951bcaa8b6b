"""Test utilities for the pipeline tests."""

from collections.abc import Callable
from typing import Any

from repeatermap.common.data_models import (
    LookupStatus,
    StationRecord,
)


def collect_records() -> tuple[
    Callable[[int, int, StationRecord], None], list[StationRecord]
]:
    """Create an on_record callback that collects records in a list.

    Returns:
        A tuple of (callback_function, records_list).

    Example:
        callback, records = collect_records()
        Pipeline(settings, on_record=callback).run()
        assert len(records) > 0
    """
    records: list[StationRecord] = []

    def callback(index: int, total: int, record: StationRecord) -> None:
        records.append(record)

    return callback, records


def make_record(**overrides: Any) -> StationRecord:
    """A fully populated VK2RAG record, with fields overridden as given."""
    fields: dict[str, Any] = {
        "callsign": "VK2RAG",
        "info": "Somersby (28)",
        "dmr_id": "28",
        "licence_no": "1234567",
        "licensee": "Test Club Inc",
        "site_id": "9999",
        "site_name": "Somersby Hilltop",
        "tx_mhz": 439.825,
        "rx_mhz": 434.825,
        "latitude": -33.360078,
        "longitude": 151.291215,
        "location": "Somersby",
        "lookup_status": LookupStatus.FOUND,
    }
    fields.update(overrides)
    return StationRecord(**fields)
