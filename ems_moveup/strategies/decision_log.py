"""
Recording of move-up decisions for offline analysis.

The simulator adds one entry per handled ``CONSIDER_MOVE_UP`` event. When the
logger has an encoder every entry carries the state encoded the same way
regardless of strategy, so runs of different strategies can be compared row
by row.
"""

import logging
import os
from dataclasses import dataclass, field
from typing import Any, List, Optional

import numpy as np
import pandas as pd

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class MoveUpDecision:
    ambulance_index: int
    from_station: int
    to_station: int
    timestamp: float


@dataclass
class MoveUpLogEntry:
    timestamp: float
    triggering_ambulance: int
    encoded_state: np.ndarray
    strategy_output: Any
    decisions: List[MoveUpDecision] = field(default_factory=list)
    strategy_type: str = ""


class MoveUpLogger:
    def __init__(self, encoder=None) -> None:
        self.encoder = encoder
        self._entries: List[MoveUpLogEntry] = []

    def encode_state(self, state, ambulance) -> np.ndarray:
        if self.encoder is None:
            return np.zeros(0)
        return np.asarray(self.encoder.encode_state(state, ambulance.index), dtype=float)

    @staticmethod
    def create_entry(strategy, state, ambulance, encoded_state, strategy_output,
                     ambulances, stations) -> MoveUpLogEntry:
        decisions = [
            MoveUpDecision(amb.index, amb.station_index, station.index, state.time)
            for amb, station in zip(ambulances, stations)
        ]
        return MoveUpLogEntry(
            timestamp=state.time,
            triggering_ambulance=ambulance.index,
            encoded_state=np.asarray(encoded_state, dtype=float),
            strategy_output=strategy_output,
            decisions=decisions,
            strategy_type=type(strategy).__name__,
        )

    def add_entry(self, entry: MoveUpLogEntry) -> None:
        self._entries.append(entry)

    @property
    def entries(self) -> List[MoveUpLogEntry]:
        """Entries in the order they were added."""
        return self._entries

    @property
    def num_entries(self) -> int:
        return len(self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def clear(self) -> None:
        self._entries.clear()

    def to_dataframe(self) -> pd.DataFrame:
        """
        One row per entry.

        Columns: ``timestamp``, ``triggering_ambulance``, ``strategy_type``,
        ``num_decisions``, ``state_1..n`` and either ``output_1..m`` (vector
        output) or a single ``output`` column.
        """
        if not self._entries:
            LOGGER.warning("No move-up log entries to convert to a DataFrame")
            return pd.DataFrame()

        state_dim = len(self._entries[0].encoded_state)
        first_output = self._entries[0].strategy_output
        output_is_vector = isinstance(first_output, (list, tuple, np.ndarray))

        rows = []
        for entry in self._entries:
            row = {
                "timestamp": entry.timestamp,
                "triggering_ambulance": entry.triggering_ambulance,
                "strategy_type": entry.strategy_type,
                "num_decisions": len(entry.decisions),
            }
            for j in range(state_dim):
                row[f"state_{j + 1}"] = float(entry.encoded_state[j])
            if output_is_vector:
                for j, v in enumerate(np.asarray(entry.strategy_output, dtype=float).ravel()):
                    row[f"output_{j + 1}"] = v
            else:
                row["output"] = entry.strategy_output
            rows.append(row)
        return pd.DataFrame(rows)

    def save_csv(self, path: str) -> Optional[str]:
        """Write ``to_dataframe()`` to ``path`` (``.csv`` appended if missing). Returns the path written."""
        if not path.endswith(".csv"):
            path = path + ".csv"
        df = self.to_dataframe()
        if df.empty:
            LOGGER.warning("No move-up log data to save")
            return None
        directory = os.path.dirname(path)
        if directory:
            os.makedirs(directory, exist_ok=True)
        df.to_csv(path, index=False)
        return path
