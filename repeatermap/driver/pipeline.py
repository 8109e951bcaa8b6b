"""Pipeline driver.

Runs the whole aggregation: fetch the repeater list, then for each station
look up its licence, pick the TX/RX pair, look up the site, and merge it all
into one StationRecord.

Stations are processed strictly in listing order, one at a time, so register
requests never overlap and the throttle spacing holds. Failures split into
two kinds:

- fatal: the repeater list could not be fetched or parsed. The exception
  propagates out of ``run()`` and no records are produced.
- per-station: the resolvers turn them into LookupStatus.ERROR values. The
  station still yields a record and the loop moves on.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable

from repeatermap.common.data_models import (
    FrequencyPair,
    LicenceLookup,
    LookupStatus,
    SiteLookup,
    StationListing,
    StationRecord,
)
from repeatermap.common.request_manager import (
    RateLimitedRequestManager,
    SyncRequestManager,
)
from repeatermap.frequency import select_pair
from repeatermap.settings import Settings
from repeatermap.sources.directory import fetch_directory
from repeatermap.sources.register import LicenceResolver, SiteResolver

logger = logging.getLogger(__name__)

RUN_COMPLETED = "completed"
RUN_ERROR = "error"
RUN_STOPPED = "stopped"


def build_station_record(
    listing: StationListing,
    lookup: LicenceLookup,
    pair: FrequencyPair | None = None,
    site_lookup: SiteLookup | None = None,
) -> StationRecord:
    """Merge a listing and its lookup results into a StationRecord.

    Listing columns are always carried over. Licence fields come from a
    found lookup, site fields from a found site lookup. The first error
    message among the lookups is kept on the record.
    """
    fields: dict = {
        "callsign": listing.callsign,
        "info": listing.info,
        "dmr_id": listing.dmr_id,
        "lookup_status": lookup.status,
        "error": lookup.error,
    }

    if lookup.status is LookupStatus.FOUND and lookup.record is not None:
        record = lookup.record
        fields.update(
            licence_no=record.licence_no,
            licensee=record.licensee,
            site_id=record.site_id,
            site_name=record.site_name,
        )
        if pair is not None:
            fields.update(tx_mhz=pair.tx_mhz, rx_mhz=pair.rx_mhz)

    if site_lookup is not None:
        if site_lookup.status is LookupStatus.FOUND and site_lookup.site:
            site = site_lookup.site
            fields.update(
                latitude=site.latitude,
                longitude=site.longitude,
                location=site.location,
            )
        elif site_lookup.error and fields["error"] is None:
            fields["error"] = site_lookup.error

    return StationRecord(**fields)


class Pipeline:
    """Sequential driver for a full aggregation run.

    Example usage::

        records = []
        pipeline = Pipeline(
            Settings(),
            on_record=lambda i, total, record: records.append(record),
        )
        pipeline.run()
    """

    def __init__(
        self,
        settings: Settings | None = None,
        request_manager: SyncRequestManager | None = None,
        on_record: Callable[[int, int, StationRecord], None] | None = None,
        on_run_start: Callable[[int], None] | None = None,
        on_run_complete: Callable[[str, Exception | None], None]
        | None = None,
        stop_event: threading.Event | None = None,
    ) -> None:
        """Initialize the pipeline.

        Args:
            settings: Endpoints, timeout and throttle. Defaults to Settings().
            request_manager: Request manager to use. If None, a
                RateLimitedRequestManager is built from settings and closed
                when the run ends.
            on_record: Called after each station with the 1-based index, the
                station count, and the merged record.
            on_run_start: Called once the repeater list is known, with the
                station count.
            on_run_complete: Called when the run ends with the status
                ("completed" | "stopped" | "error") and the error, if any.
            stop_event: When set, the run stops before the next station and
                returns the records built so far.
        """
        self.settings = settings or Settings()

        if request_manager is not None:
            self.request_manager = request_manager
            self._owns_request_manager = False
        else:
            self.request_manager = RateLimitedRequestManager(
                interval_ms=self.settings.rate_limit_ms,
                user_agent=self.settings.user_agent,
                timeout=self.settings.timeout,
            )
            self._owns_request_manager = True

        self.licence_resolver = LicenceResolver(
            self.request_manager, self.settings
        )
        self.site_resolver = SiteResolver(self.request_manager, self.settings)

        self.on_record = on_record
        self.on_run_start = on_run_start
        self.on_run_complete = on_run_complete
        self.stop_event = stop_event

    def process_station(self, listing: StationListing) -> StationRecord:
        """Resolve a single station. Never raises for lookup failures."""
        lookup = self.licence_resolver.lookup(listing.callsign)
        if lookup.status is not LookupStatus.FOUND or lookup.record is None:
            return build_station_record(listing, lookup)

        pair = select_pair(lookup.record.assignments)

        site_lookup = None
        if lookup.record.site_id:
            site_lookup = self.site_resolver.lookup(lookup.record.site_id)

        return build_station_record(listing, lookup, pair, site_lookup)

    def run(self) -> list[StationRecord]:
        """Run the pipeline and return one record per listed station.

        Raises:
            TransientException: If the repeater list could not be fetched.
            HTMLStructuralAssumptionException: If the repeater list page has
                no recognisable rows.
        """
        status = RUN_COMPLETED
        error: Exception | None = None
        records: list[StationRecord] = []

        try:
            listings = fetch_directory(self.request_manager, self.settings)
            total = len(listings)
            if self.on_run_start:
                self.on_run_start(total)

            for index, listing in enumerate(listings, start=1):
                # Check for graceful shutdown before the next station
                if self.stop_event and self.stop_event.is_set():
                    status = RUN_STOPPED
                    logger.info(
                        f"Stop requested after {len(records)} of {total} "
                        "stations"
                    )
                    break

                record = self.process_station(listing)
                records.append(record)
                if self.on_record:
                    self.on_record(index, total, record)

        except KeyboardInterrupt:
            status = RUN_STOPPED
            raise
        except Exception as e:
            status = RUN_ERROR
            error = e
            raise
        finally:
            if self._owns_request_manager:
                self.request_manager.close()

            if self.on_run_complete:
                self.on_run_complete(status, error)

        located = sum(1 for r in records if r.has_coordinates)
        logger.info(
            f"Run {status}: {len(records)} stations, {located} with "
            "coordinates"
        )
        return records
