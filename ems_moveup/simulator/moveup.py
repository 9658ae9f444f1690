"""
Move-up eligibility and validation of strategy decisions.
"""

import logging
from typing import List

from ems_moveup.simulator.ambulance import Ambulance, AmbulanceStatus
from ems_moveup.simulator.station import Station

LOGGER = logging.getLogger(__name__)

MOVABLE_STATUSES = (
    AmbulanceStatus.IDLE_AT_STATION,
    AmbulanceStatus.RETURNING_TO_STATION,
    AmbulanceStatus.MOVING_UP_TO_STATION,
    AmbulanceStatus.FREE_AFTER_CALL,
)


def is_movable(ambulance: Ambulance) -> bool:
    """Whether an ambulance may be relocated right now."""
    return (ambulance.status in MOVABLE_STATUSES and not ambulance.is_dispatch_pending
            and not ambulance.sleep_pending)


def validate_moveup_decision(ambulances: List[Ambulance], stations: List[Station]) -> bool:
    """
    Check that a move-up decision is well formed.

    Rejects (with a warning) lists of different lengths, an ambulance listed
    twice, an ambulance sent to the station it already belongs to, and
    ambulances whose status does not allow a move-up.
    """
    if len(ambulances) != len(stations):
        LOGGER.warning("Move-up rejected: %d ambulances but %d target stations",
                       len(ambulances), len(stations))
        return False

    seen = set()
    for amb in ambulances:
        if amb.index in seen:
            LOGGER.warning("Move-up rejected: ambulance %d appears more than once", amb.index)
            return False
        seen.add(amb.index)

    for amb, station in zip(ambulances, stations):
        if amb.station_index == station.index:
            LOGGER.warning("Move-up rejected: redundant move, ambulance %d already at station %d",
                           amb.index, station.index)
            return False

    for amb in ambulances:
        if not is_movable(amb):
            LOGGER.warning("Move-up rejected: ambulance %d is not eligible (status: %s)",
                           amb.index, amb.status.name)
            return False

    return True
