from enum import Enum, IntEnum
from typing import List, Optional

import pandas as pd


class Priority(IntEnum):
    HIGH = 1
    MEDIUM = 2
    LOW = 3


class CallStatus(Enum):
    SCREENING = 1
    QUEUED = 2
    WAITING_FOR_AMB = 3
    ON_SCENE = 4
    GOING_TO_HOSPITAL = 5
    AT_HOSPITAL = 6
    PROCESSED = 7


class Call:
    """
    An emergency call. Only the status and timestamp fields change during a run.

    Durations are in minutes. ``hospital_index`` fixes the destination hospital
    when ``transport`` is set; otherwise the nearest hospital is used.
    """
    def __init__(self,
                 index: int,
                 arrival_time: float,
                 node: int,
                 *,
                 priority: Priority = Priority.HIGH,
                 dispatch_delay: float = 0.0,
                 on_scene_duration: float = 10.0,
                 transport: bool = True,
                 handover_duration: float = 15.0,
                 hospital_index: Optional[int] = None) -> None:
        self.index = index
        self.arrival_time = float(arrival_time)
        self.node = node
        self.priority = Priority(priority)
        self.dispatch_delay = float(dispatch_delay)
        self.on_scene_duration = float(on_scene_duration)
        self.transport = bool(transport)
        self.handover_duration = float(handover_duration)
        self.hospital_index = hospital_index

        self.status: Optional[CallStatus] = None
        self.ambulance_index: Optional[int] = None
        self.dispatch_time: Optional[float] = None
        self.ambulance_arrival_time: Optional[float] = None
        self.departure_time: Optional[float] = None
        self.hospital_arrival_time: Optional[float] = None
        self.processed_time: Optional[float] = None
        self.was_queued = False

    def __repr__(self) -> str:
        status = self.status.name if self.status else None
        return f"Call({self.index}, t={self.arrival_time:.2f}, node={self.node}, {self.priority.name}, {status})"

    @property
    def response_duration(self) -> Optional[float]:
        """Time from call arrival until an ambulance reaches the scene."""
        if self.ambulance_arrival_time is None:
            return None
        return self.ambulance_arrival_time - self.arrival_time


CALL_COLUMNS = ["arrival_time", "node", "priority", "dispatch_delay",
                "on_scene_duration", "transport", "handover_duration"]


def calls_from_dataframe(call_data: pd.DataFrame) -> List[Call]:
    """
    Build calls from a DataFrame, sorted by arrival time.

    Required columns are listed in ``CALL_COLUMNS``; ``hospital_index`` is optional.
    """
    missing = [c for c in CALL_COLUMNS if c not in call_data.columns]
    if missing:
        raise ValueError(f"Call data is missing columns: {missing}")

    call_data = call_data.sort_values("arrival_time", kind="stable").reset_index(drop=True)
    calls = []
    for idx, row in call_data.iterrows():
        hospital_index = row.get("hospital_index")
        if hospital_index is not None and pd.isna(hospital_index):
            hospital_index = None
        calls.append(Call(
            idx,
            row["arrival_time"],
            int(row["node"]),
            priority=Priority(int(row["priority"])),
            dispatch_delay=row["dispatch_delay"],
            on_scene_duration=row["on_scene_duration"],
            transport=bool(row["transport"]),
            handover_duration=row["handover_duration"],
            hospital_index=None if hospital_index is None else int(hospital_index),
        ))
    return calls


def calls_to_dataframe(calls: List[Call]) -> pd.DataFrame:
    """Per-call outcome table, one row per call."""
    return pd.DataFrame([{
        "call": c.index,
        "arrival_time": c.arrival_time,
        "priority": int(c.priority),
        "node": c.node,
        "status": c.status.name if c.status else None,
        "ambulance": c.ambulance_index,
        "dispatch_time": c.dispatch_time,
        "ambulance_arrival_time": c.ambulance_arrival_time,
        "response_duration": c.response_duration,
        "was_queued": c.was_queued,
    } for c in calls])
