"""
Event-driven ambulance operations simulator with a pluggable move-up decision point.
"""

import logging
from typing import Callable, Dict, List, Optional

import numpy as np

from ems_moveup.simulator.ambulance import Ambulance, AmbulanceStatus
from ems_moveup.simulator.call import CallStatus
from ems_moveup.simulator.events import Event, EventType
from ems_moveup.simulator.metrics import extract_all_metrics
from ems_moveup.simulator.moveup import validate_moveup_decision
from ems_moveup.simulator.policies import NearestDispatchPolicy
from ems_moveup.simulator.state import SimulationState

LOGGER = logging.getLogger(__name__)

MINUTES_IN_DAY = 24 * 60


class MoveUpSimulator:
    """
    Fully event-driven ambulance simulator.

    After every ``AMB_DISPATCHED`` and ``AMB_BECOMES_FREE`` event the move-up
    strategy (if any) is asked whether to consider a move-up; if so a
    ``CONSIDER_MOVE_UP`` event is queued at the current time, behind any event
    already queued for that instant. Handling it asks the strategy for a
    decision, records it in the logger (if any) and schedules the relocations.
    """

    def __init__(
        self,
        state: SimulationState,
        strategy=None,
        logger=None,
        *,
        dispatch_policy=None,
        verbose: bool = False,
    ) -> None:
        self.state = state
        self.strategy = strategy
        self.logger = logger
        self.dispatch_policy = dispatch_policy or NearestDispatchPolicy()
        self.verbose = verbose
        self.strategy_initialized = False

        self.handlers: Dict[EventType, Callable[[Event], None]] = {
            EventType.AMB_WAKES_UP: self._ev_wakes_up,
            EventType.AMB_GOES_TO_SLEEP: self._ev_goes_to_sleep,
            EventType.CALL_ARRIVES: self._ev_call_arrives,
            EventType.CONSIDER_DISPATCH: self._ev_consider_dispatch,
            EventType.AMB_DISPATCHED: self._ev_dispatched,
            EventType.AMB_MOBILISED: self._ev_mobilised,
            EventType.AMB_REACHES_CALL: self._ev_reaches_call,
            EventType.AMB_GOES_TO_HOSPITAL: self._ev_goes_to_hospital,
            EventType.AMB_REACHES_HOSPITAL: self._ev_reaches_hospital,
            EventType.AMB_BECOMES_FREE: self._ev_becomes_free,
            EventType.AMB_RETURNS_TO_STATION: self._ev_returns_to_station,
            EventType.AMB_REACHES_STATION: self._ev_reaches_station,
            EventType.CONSIDER_MOVE_UP: self._ev_consider_move_up,
            EventType.AMB_MOVES_UP_TO_STATION: self._ev_moves_up_to_station,
        }

    # ------------------------------------------------------------------
    # Main loop
    # ------------------------------------------------------------------

    def run(self, until_time: Optional[float] = None, duration: Optional[float] = None,
            num_events: Optional[int] = None) -> bool:
        """
        Process events until the queue is empty or the stop condition is met.

        At most one of ``until_time`` (absolute), ``duration`` (relative to the
        current time) and ``num_events`` may be given.

        Returns:
            True if the simulation has completed.
        """
        given = [name for name, value in (("until_time", until_time), ("duration", duration),
                                          ("num_events", num_events)) if value is not None]
        if len(given) > 1:
            raise ValueError(f"Specify at most one stop condition, got {given}")
        if num_events is not None and num_events < 0:
            raise ValueError("num_events must be non-negative")

        end_time = np.inf
        if until_time is not None:
            end_time = until_time
        elif duration is not None:
            end_time = self.state.time + duration

        processed = 0
        while self.state.event_queue:
            if num_events is not None and processed >= num_events:
                break
            if self.state.event_queue.peek().time > end_time:
                break
            self.step()
            processed += 1

        if not self.state.event_queue and not self.state.complete:
            self._finish()

        if self.verbose:
            self._print_statistics()
        return self.state.complete

    def step(self) -> Optional[Event]:
        """Process the next event. Returns it, or None if there was nothing to process."""
        state = self.state
        if not self.strategy_initialized:
            self._initialize_strategy()

        if not state.event_queue:
            if not state.complete:
                self._finish()
            return None

        event = state.event_queue.pop()
        assert event.time >= state.time, \
            f"Event {event!r} is earlier than the simulation time {state.time}"

        # snapshots must see the state as it was before this event
        if state.stats.is_due(event.time):
            state.stats.capture_due(state, event.time)

        state.time = event.time
        if event.ambulance is not None and event.ambulance.event is event:
            event.ambulance.event = None

        handler = self.handlers.get(event.event_type)
        if handler is None:
            raise ValueError(f"Unknown event type: {event.event_type!r}")
        handler(event)
        state.num_events_processed += 1
        return event

    def peek_event(self) -> Optional[Event]:
        return self.state.event_queue.peek()

    def _initialize_strategy(self) -> None:
        if self.strategy is not None:
            self.strategy.initialize(self.state)
        self.strategy_initialized = True

    def _finish(self) -> None:
        state = self.state
        state.complete = True
        state.end_time = state.time
        for amb in state.ambulances:
            amb.close_status_accounting(state.time)
        for station in state.stations:
            station.close_accounting(state.time)
        if state.queued_calls:
            LOGGER.warning("Simulation ended with %d calls still queued (no ambulance on shift)",
                           len(state.queued_calls))
        if state.stats.config.period_duration is not None:
            state.stats.capture(state, state.time)
        if self.verbose:
            print(f"Simulation complete at {self._fmt(state.time)}")

    # ------------------------------------------------------------------
    # Scheduling helpers
    # ------------------------------------------------------------------

    def _push(self, event_type: EventType, time: float, parent: Event, *,
              ambulance: Optional[Ambulance] = None, call=None, station=None) -> Event:
        event = Event(event_type, time, ambulance=ambulance, call=call, station=station, parent=parent)
        return self.state.event_queue.push(event)

    def _push_ambulance_event(self, event_type: EventType, time: float, parent: Event,
                              ambulance: Ambulance, **kwargs) -> Event:
        """Schedule the (single) pending event of an ambulance."""
        assert ambulance.event is None, \
            f"Ambulance {ambulance.index} already has pending event {ambulance.event!r}"
        event = self._push(event_type, time, parent, ambulance=ambulance, **kwargs)
        ambulance.event = event
        return event

    def _cancel_ambulance_event(self, ambulance: Ambulance) -> None:
        if ambulance.event is not None:
            self.state.event_queue.cancel(ambulance.event)
            ambulance.event = None

    def _maybe_consider_move_up(self, event: Event, ambulance: Ambulance, trigger: str) -> None:
        if self.strategy is None:
            return
        if trigger == "dispatch":
            triggered = self.strategy.should_trigger_on_dispatch(self.state)
        else:
            triggered = self.strategy.should_trigger_on_free(self.state)
        if triggered:
            self._push(EventType.CONSIDER_MOVE_UP, self.state.time, event, ambulance=ambulance)

    def _dispatch_queued_call(self, ambulance: Ambulance, event: Event) -> bool:
        """Send the ambulance to the head of the call queue, if any."""
        if not self.state.queued_calls:
            return False
        call = self.state.queued_calls.pop(0)
        self._push_ambulance_event(EventType.AMB_DISPATCHED, self.state.time, event, ambulance, call=call)
        return True

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------

    def _ev_wakes_up(self, event: Event) -> None:
        amb = event.ambulance
        station = self.state.stations[amb.station_index]
        amb.wake_up(station.node, self.state.time)
        station.add_idle(self.state.time)
        self._dispatch_queued_call(amb, event)

        shift = amb.current_shift()
        if shift is not None and np.isfinite(shift[1]):
            self._push(EventType.AMB_GOES_TO_SLEEP, max(shift[1], self.state.time), event, ambulance=amb)
        if self.verbose:
            print(f"Ambulance {amb.index} on shift at station {station.index} ({self._fmt(self.state.time)})")

    def _ev_goes_to_sleep(self, event: Event) -> None:
        amb = event.ambulance
        if amb.status == AmbulanceStatus.IDLE_AT_STATION and not amb.is_dispatch_pending:
            self._cancel_ambulance_event(amb)
            self.state.stations[amb.station_index].remove_idle(self.state.time)
            self._sleep(amb, event)
        else:
            # finish the current job first, sleep on reaching the station
            amb.sleep_pending = True

    def _sleep(self, amb: Ambulance, event: Event) -> None:
        amb.go_to_sleep(self.state.time)
        amb.shift_index += 1
        shift = amb.current_shift()
        if shift is not None:
            self._push(EventType.AMB_WAKES_UP, max(shift[0], self.state.time), event,
                       ambulance=amb, station=self.state.stations[amb.station_index])

    def _ev_call_arrives(self, event: Event) -> None:
        state = self.state
        call = event.call
        call.status = CallStatus.SCREENING
        self._push(EventType.CONSIDER_DISPATCH, state.time + call.dispatch_delay, event, call=call)

        if state.next_call_position < len(state.calls):
            next_call = state.calls[state.next_call_position]
            state.next_call_position += 1
            self._push(EventType.CALL_ARRIVES, next_call.arrival_time, event, call=next_call)

        if self.verbose:
            print(f"Call {call.index} at {self._fmt(state.time)} (node {call.node}, {call.priority.name})")

    def _ev_consider_dispatch(self, event: Event) -> None:
        call = event.call
        amb = self.dispatch_policy.select_ambulance(self.state, call)
        if amb is None:
            self.state.queue_call(call)
            if self.verbose:
                print(f"Call {call.index} queued, no ambulance available")
            return
        self._cancel_ambulance_event(amb)
        self._push_ambulance_event(EventType.AMB_DISPATCHED, self.state.time, event, amb, call=call)

    def _ev_dispatched(self, event: Event) -> None:
        state = self.state
        amb, call = event.ambulance, event.call
        self._cancel_ambulance_event(amb)

        was_idle = amb.status == AmbulanceStatus.IDLE_AT_STATION
        if was_idle:
            state.stations[amb.station_index].remove_idle(state.time)

        call.status = CallStatus.WAITING_FOR_AMB
        call.dispatch_time = state.time
        call.ambulance_index = amb.index

        delay = state.infrastructure.mobilisation_delay
        if was_idle and delay > 0:
            amb.mobilise(call, state.time)
            self._push_ambulance_event(EventType.AMB_MOBILISED, state.time + delay, event, amb, call=call)
        else:
            arrival = amb.dispatch_to_call(call, state.network, state.time)
            self._push_ambulance_event(EventType.AMB_REACHES_CALL, arrival, event, amb, call=call)

        if self.verbose:
            print(f"Dispatched Ambulance {amb.index} to Call {call.index} ({self._fmt(state.time)})")

        self._maybe_consider_move_up(event, amb, "dispatch")

    def _ev_mobilised(self, event: Event) -> None:
        amb, call = event.ambulance, event.call
        arrival = amb.dispatch_to_call(call, self.state.network, self.state.time, count=False)
        self._push_ambulance_event(EventType.AMB_REACHES_CALL, arrival, event, amb, call=call)

    def _ev_reaches_call(self, event: Event) -> None:
        state = self.state
        amb, call = event.ambulance, event.call
        amb.arrive_at_call(state.time)
        call.status = CallStatus.ON_SCENE
        call.ambulance_arrival_time = state.time
        state.responded_calls.append(call)

        next_time = state.time + call.on_scene_duration
        if call.transport:
            self._push_ambulance_event(EventType.AMB_GOES_TO_HOSPITAL, next_time, event, amb, call=call)
        else:
            self._push_ambulance_event(EventType.AMB_BECOMES_FREE, next_time, event, amb, call=call)

        if self.verbose:
            print(f"Ambulance {amb.index} on-scene for call {call.index} "
                  f"(RT {call.response_duration:.1f} min)")

    def _ev_goes_to_hospital(self, event: Event) -> None:
        state = self.state
        amb, call = event.ambulance, event.call
        if call.hospital_index is not None:
            hospital = state.hospitals[call.hospital_index]
        else:
            hospital = state.network.nearest(call.node, state.hospitals)
        call.status = CallStatus.GOING_TO_HOSPITAL
        call.departure_time = state.time
        arrival = amb.go_to_hospital(hospital, state.network, state.time)
        self._push_ambulance_event(EventType.AMB_REACHES_HOSPITAL, arrival, event, amb, call=call)

    def _ev_reaches_hospital(self, event: Event) -> None:
        state = self.state
        amb, call = event.ambulance, event.call
        amb.arrive_at_hospital(state.time)
        call.status = CallStatus.AT_HOSPITAL
        call.hospital_arrival_time = state.time
        self._push_ambulance_event(EventType.AMB_BECOMES_FREE, state.time + call.handover_duration,
                                   event, amb, call=call)

    def _ev_becomes_free(self, event: Event) -> None:
        state = self.state
        amb, call = event.ambulance, event.call
        call.status = CallStatus.PROCESSED
        call.processed_time = state.time
        state.num_calls_processed += 1
        amb.become_free(state.time)

        if not amb.sleep_pending and self._dispatch_queued_call(amb, event):
            return

        self._push_ambulance_event(EventType.AMB_RETURNS_TO_STATION, state.time, event, amb,
                                   station=state.stations[amb.station_index])
        self._maybe_consider_move_up(event, amb, "free")

    def _ev_returns_to_station(self, event: Event) -> None:
        state = self.state
        amb = event.ambulance
        station = state.stations[amb.station_index]
        arrival = amb.return_to_station(station, state.network, state.time)
        self._push_ambulance_event(EventType.AMB_REACHES_STATION, arrival, event, amb, station=station)

    def _ev_reaches_station(self, event: Event) -> None:
        state = self.state
        amb = event.ambulance
        amb.arrive_at_station(state.time)
        if amb.sleep_pending:
            self._sleep(amb, event)
        else:
            state.stations[amb.station_index].add_idle(state.time)
            self._dispatch_queued_call(amb, event)
        if self.verbose:
            print(f"Ambulance {amb.index} ready at station {amb.station_index} ({self._fmt(state.time)})")

    def _ev_consider_move_up(self, event: Event) -> None:
        if self.strategy is None:
            return
        state = self.state
        amb = event.ambulance
        ambulances, stations, raw_output = self.strategy.decide_moveup(state, amb)
        ambulances, stations = list(ambulances), list(stations)

        if self.logger is not None:
            encoded_state = self.logger.encode_state(state, amb)
            entry = self.logger.create_entry(self.strategy, state, amb, encoded_state,
                                             raw_output, ambulances, stations)
            self.logger.add_entry(entry)

        self.apply_moveup(ambulances, stations, event)

    def apply_moveup(self, ambulances: List[Ambulance], stations: List, parent: Event) -> int:
        """
        Schedule the relocations of a decision. Returns the number scheduled.

        Pairs that keep an ambulance at its current station are dropped. The
        remaining pairs are scheduled only if the whole decision validates.
        """
        if len(ambulances) != len(stations):
            LOGGER.warning("Move-up rejected: %d ambulances but %d target stations",
                           len(ambulances), len(stations))
            return 0

        moves = [(a, s) for a, s in zip(ambulances, stations) if a.station_index != s.index]
        if not moves:
            return 0
        moving = [a for a, _ in moves]
        targets = [s for _, s in moves]
        if not validate_moveup_decision(moving, targets):
            return 0

        for amb, station in moves:
            self._cancel_ambulance_event(amb)
            self._push_ambulance_event(EventType.AMB_MOVES_UP_TO_STATION, self.state.time, parent,
                                       amb, station=station)
        return len(moves)

    def _ev_moves_up_to_station(self, event: Event) -> None:
        state = self.state
        amb, station = event.ambulance, event.station
        if amb.status == AmbulanceStatus.IDLE_AT_STATION:
            state.stations[amb.station_index].remove_idle(state.time)
        from_station = amb.station_index
        arrival = amb.move_up(station, state.network, state.time)
        self._push_ambulance_event(EventType.AMB_REACHES_STATION, arrival, event, amb, station=station)
        if self.verbose:
            print(f"Ambulance {amb.index} moving up from station {from_station} to {station.index}")

    # ------------------------------------------------------------------
    # Output
    # ------------------------------------------------------------------

    def _fmt(self, minutes: float) -> str:
        days = int(minutes // MINUTES_IN_DAY)
        h = int((minutes % MINUTES_IN_DAY) // 60)
        m = int(minutes % 60)
        s = int((minutes * 60) % 60)
        prefix = f"Day {days+1}, " if days else ""
        return f"{prefix}{h:02}:{m:02}:{s:02}"

    def _print_statistics(self) -> None:
        state = self.state
        print("\n===== Simulation Statistics =====")
        print(f"Simulated time: {self._fmt(state.time - state.start_time)}")
        print(f"Events processed: {state.num_events_processed}")
        print(f"Calls processed: {state.num_calls_processed} / {len(state.calls)}")
        print(f"Calls still queued: {len(state.queued_calls)}")
        if state.complete:
            print(extract_all_metrics(state))


def simulate(state: SimulationState, strategy=None, logger=None,
             **kwargs) -> bool:
    """
    Run ``state`` with an optional move-up strategy and decision logger.

    Keyword arguments are the stop condition (``until_time``, ``duration`` or
    ``num_events``, at most one) plus ``dispatch_policy`` and ``verbose``.
    """
    stop = {k: kwargs.pop(k) for k in ("until_time", "duration", "num_events") if k in kwargs}
    simulator = MoveUpSimulator(state, strategy, logger, **kwargs)
    return simulator.run(**stop)
