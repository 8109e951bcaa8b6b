"""Choose the repeater's operating TX/RX pair from a licence's assignments.

A licence can list many frequencies (links, secondary channels, other
bands). The pair that matters is picked by trying each tier in order and
taking the first transmit/receive combination that satisfies it, scanning
transmit frequencies in page order and, for each, receive frequencies in page
order.

The final tier takes the first transmit and first receive frequency with no
band or offset check at all, so it can pair unrelated frequencies.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable
from typing import NamedTuple

from repeatermap.common.data_models import (
    Direction,
    FrequencyAssignment,
    FrequencyPair,
)

logger = logging.getLogger(__name__)

UHF_BAND = (430.0, 450.0)
VHF_BAND = (144.0, 148.0)

UHF_OFFSET = 5.0
VHF_OFFSET = 0.6


class SelectionTier(NamedTuple):
    """One rule for accepting a TX/RX combination.

    Attributes:
        number: Tier number reported on the chosen FrequencyPair.
        band: Inclusive (low, high) MHz range both frequencies must fall in,
            or None for no band restriction.
        offset: Required ``|tx - rx|`` in MHz, or None for any separation.
        tolerance: Allowed deviation from ``offset``.
        first_only: Only consider the first transmit and first receive.
    """

    number: int
    band: tuple[float, float] | None = None
    offset: float | None = None
    tolerance: float = 0.0
    first_only: bool = False

    def accepts(self, tx: float, rx: float) -> bool:
        if self.band is not None:
            low, high = self.band
            if not (low <= tx <= high and low <= rx <= high):
                return False
        if self.offset is not None:
            if abs(abs(tx - rx) - self.offset) >= self.tolerance:
                return False
        return True


TIERS: tuple[SelectionTier, ...] = (
    SelectionTier(1, band=UHF_BAND, offset=UHF_OFFSET, tolerance=0.1),
    SelectionTier(2, band=UHF_BAND),
    SelectionTier(3, band=VHF_BAND, offset=VHF_OFFSET, tolerance=0.05),
    SelectionTier(4, first_only=True),
)


def split_directions(
    assignments: Iterable[FrequencyAssignment],
) -> tuple[list[float], list[float]]:
    """Split assignments into (transmit, receive) frequency lists."""
    transmit: list[float] = []
    receive: list[float] = []
    for assignment in assignments:
        match assignment.direction:
            case Direction.TRANSMIT:
                transmit.append(assignment.frequency_mhz)
            case Direction.RECEIVE:
                receive.append(assignment.frequency_mhz)
    return transmit, receive


def select_pair(
    assignments: Iterable[FrequencyAssignment],
    tiers: tuple[SelectionTier, ...] = TIERS,
) -> FrequencyPair:
    """Pick one TX/RX pair from a licence's assignments.

    Returns:
        The first combination accepted by the earliest tier, or an empty
        FrequencyPair when there is no transmit or no receive frequency.
    """
    transmit, receive = split_directions(assignments)
    if not transmit or not receive:
        return FrequencyPair()

    for tier in tiers:
        candidates_tx = transmit[:1] if tier.first_only else transmit
        candidates_rx = receive[:1] if tier.first_only else receive
        for tx in candidates_tx:
            for rx in candidates_rx:
                if tier.accepts(tx, rx):
                    if tier.first_only:
                        logger.debug(
                            f"No band match; fell back to first TX {tx} and "
                            f"first RX {rx}"
                        )
                    return FrequencyPair(tx_mhz=tx, rx_mhz=rx, tier=tier.number)

    return FrequencyPair()
