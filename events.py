import heapq
import math
from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Union

from errors import InvalidScheduleError, MalformedPayloadError


class EventTag(Enum):
    TASK_ARRIVAL = 1000
    SENSE = 1001
    RESULT_UPLOAD = 1002


def _check_number(owner, name, value):
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise MalformedPayloadError(f"{owner}.{name} must be a number, got {value!r}")
    if not math.isfinite(value):
        raise MalformedPayloadError(f"{owner}.{name} must be finite, got {value!r}")
    if value < 0:
        raise MalformedPayloadError(f"{owner}.{name} must be non-negative, got {value!r}")


def _check_id(owner, name, value):
    if isinstance(value, bool) or not isinstance(value, int) or value < 0:
        raise MalformedPayloadError(f"{owner}.{name} must be an entity id, got {value!r}")


# ========== Payloads ==========
@dataclass(frozen=True)
class TaskArrival:
    """A task sent by a source to the dispatcher."""
    sensor_id: int
    size_mb: float
    sent_at: float
    critical: bool = False

    def __post_init__(self):
        _check_id("TaskArrival", "sensor_id", self.sensor_id)
        _check_number("TaskArrival", "size_mb", self.size_mb)
        _check_number("TaskArrival", "sent_at", self.sent_at)
        if not isinstance(self.critical, bool):
            raise MalformedPayloadError(f"TaskArrival.critical must be a bool, got {self.critical!r}")


@dataclass(frozen=True)
class SenseTick:
    """Wakes a source up to generate its next task."""
    remaining: int

    def __post_init__(self):
        if isinstance(self.remaining, bool) or not isinstance(self.remaining, int) or self.remaining < 1:
            raise MalformedPayloadError(f"SenseTick.remaining must be a positive int, got {self.remaining!r}")


@dataclass(frozen=True)
class ResultUpload:
    """A processed result travelling from a fog node to storage."""
    node_id: int
    size_mb: float

    def __post_init__(self):
        _check_id("ResultUpload", "node_id", self.node_id)
        _check_number("ResultUpload", "size_mb", self.size_mb)


Payload = Union[TaskArrival, SenseTick, ResultUpload]

PAYLOAD_TYPES = {
    EventTag.TASK_ARRIVAL: TaskArrival,
    EventTag.SENSE: SenseTick,
    EventTag.RESULT_UPLOAD: ResultUpload,
}


# ========== Event ==========
@dataclass(frozen=True, order=True)
class Event:
    """A timestamped message, ordered by (time, seq) only."""
    time: float
    seq: int
    source: int = field(compare=False)
    target: int = field(compare=False)
    tag: EventTag = field(compare=False)
    payload: Payload = field(compare=False)

    def __post_init__(self):
        if not isinstance(self.tag, EventTag):
            raise MalformedPayloadError(f"Unknown event tag {self.tag!r}")
        expected = PAYLOAD_TYPES[self.tag]
        if not isinstance(self.payload, expected):
            raise MalformedPayloadError(
                f"{self.tag.name} expects {expected.__name__}, got {type(self.payload).__name__}"
            )


# ========== Clock & Event Queue ==========
class EventQueue:
    """
    Time-ordered pending events plus the virtual clock.

    Events at the same time come out in the order they were scheduled,
    including events scheduled while that time is being processed.
    """

    def __init__(self, start_time=0.0):
        self._heap: List[Event] = []
        self._next_seq = 0
        self.now = float(start_time)

    def __len__(self):
        return len(self._heap)

    def __bool__(self):
        return bool(self._heap)

    def next_seq(self):
        seq = self._next_seq
        self._next_seq += 1
        return seq

    def schedule(self, time, source, target, tag, payload) -> Event:
        event = Event(time=float(time), seq=self.next_seq(), source=source,
                      target=target, tag=tag, payload=payload)
        if not math.isfinite(event.time):
            raise InvalidScheduleError(f"Cannot schedule {tag.name} at non-finite time t={time}")
        if event.time < self.now:
            raise InvalidScheduleError(
                f"Cannot schedule {tag.name} at t={time} before current time t={self.now}"
            )
        heapq.heappush(self._heap, event)
        return event

    def peek(self) -> Optional[Event]:
        return self._heap[0] if self._heap else None

    def pop_next(self) -> Optional[Event]:
        if not self._heap:
            return None
        event = heapq.heappop(self._heap)
        self.now = event.time
        return event
