"""Pydantic data models for scraped and merged records.

Every model is frozen: records are built once from what the sources returned
and never mutated afterwards. Optional fields model values that a page did
not contain or that a pattern failed to match; None is a valid final state,
not an error.
"""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field, model_validator


class Direction(str, Enum):
    """Direction of a frequency assignment, as marked on the licence page."""

    TRANSMIT = "T"
    RECEIVE = "R"


class LookupStatus(str, Enum):
    """Outcome of a register lookup for one station.

    Values:
        FOUND: A detail page was fetched and parsed.
        NOT_FOUND: The register has no matching licence. Not an error.
        ERROR: The lookup failed (network or page-structure problem).
    """

    FOUND = "found"
    NOT_FOUND = "not_found"
    ERROR = "error"


class DetailSource(str, Enum):
    """How the licence detail page was reached.

    Values:
        DIRECT_DETAIL: The search response was itself the detail page.
        SEARCH_RESULTS: The search returned a result list and the first
            licence link was followed.
    """

    DIRECT_DETAIL = "direct_detail"
    SEARCH_RESULTS = "search_results"


class RecordModel(BaseModel):
    """Base class for all records: immutable once validated."""

    model_config = ConfigDict(frozen=True)


def _check_coordinate_pair(
    latitude: float | None, longitude: float | None
) -> None:
    if (latitude is None) != (longitude is None):
        raise ValueError(
            "latitude and longitude must be both present or both absent"
        )


class StationListing(RecordModel):
    """A repeater as listed on the network status page."""

    callsign: str = Field(..., description="Repeater callsign, e.g. VK2RAG")
    info: str = Field("", description="Free-text info column")
    dmr_id: str = Field("", description="Numeric DMR network ID")


class FrequencyAssignment(RecordModel):
    """One frequency on a licence, normalised to MHz."""

    frequency_mhz: float = Field(..., description="Centre frequency in MHz")
    direction: Direction


class LicenceRecord(RecordModel):
    """Fields extracted from a register licence detail page."""

    licence_no: str | None = None
    licensee: str | None = Field(None, description="Licence client name")
    site_id: str | None = None
    site_name: str | None = None
    assignments: tuple[FrequencyAssignment, ...] = ()


class SiteCoordinate(RecordModel):
    """Fields extracted from a register site detail page."""

    latitude: float | None = None
    longitude: float | None = None
    location: str | None = None

    @model_validator(mode="after")
    def _pair_complete(self) -> SiteCoordinate:
        _check_coordinate_pair(self.latitude, self.longitude)
        return self

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None


class FrequencyPair(RecordModel):
    """The TX/RX pair chosen for a repeater.

    Attributes:
        tx_mhz: Repeater transmit (output) frequency.
        rx_mhz: Repeater receive (input) frequency.
        tier: Which selection tier produced the pair, 1-4, or None.
    """

    tx_mhz: float | None = None
    rx_mhz: float | None = None
    tier: int | None = None


class LicenceLookup(RecordModel):
    """Result of resolving a callsign against the register.

    Resolvers return this instead of raising, so a failed lookup is an
    ordinary value the pipeline merges like any other.
    """

    status: LookupStatus
    record: LicenceRecord | None = None
    source: DetailSource | None = None
    error: str | None = None

    @classmethod
    def found(
        cls, record: LicenceRecord, source: DetailSource
    ) -> LicenceLookup:
        return cls(status=LookupStatus.FOUND, record=record, source=source)

    @classmethod
    def not_found(cls) -> LicenceLookup:
        return cls(status=LookupStatus.NOT_FOUND)

    @classmethod
    def failed(cls, error: str) -> LicenceLookup:
        return cls(status=LookupStatus.ERROR, error=error)


class SiteLookup(RecordModel):
    """Result of resolving a site id against the register."""

    status: LookupStatus
    site: SiteCoordinate | None = None
    error: str | None = None

    @classmethod
    def found(cls, site: SiteCoordinate) -> SiteLookup:
        return cls(status=LookupStatus.FOUND, site=site)

    @classmethod
    def failed(cls, error: str) -> SiteLookup:
        return cls(status=LookupStatus.ERROR, error=error)


class StationRecord(RecordModel):
    """The merged record for one repeater. One per StationListing.

    Everything beyond the listing columns may be None. ``lookup_status``
    records whether the licence lookup found, missed, or failed, and
    ``error`` carries the failure message of whichever lookup failed.
    """

    callsign: str
    info: str = ""
    dmr_id: str = ""
    licence_no: str | None = None
    licensee: str | None = None
    site_id: str | None = None
    site_name: str | None = None
    tx_mhz: float | None = None
    rx_mhz: float | None = None
    latitude: float | None = None
    longitude: float | None = None
    location: str | None = None
    lookup_status: LookupStatus = LookupStatus.NOT_FOUND
    error: str | None = None

    @model_validator(mode="after")
    def _pair_complete(self) -> StationRecord:
        _check_coordinate_pair(self.latitude, self.longitude)
        return self

    @property
    def offset_mhz(self) -> float | None:
        """TX minus RX, when both are known."""
        if self.tx_mhz is None or self.rx_mhz is None:
            return None
        return self.tx_mhz - self.rx_mhz

    @property
    def has_coordinates(self) -> bool:
        return self.latitude is not None and self.longitude is not None
