import math
from typing import List, Optional

from errors import InvalidScheduleError, SimulationError, UnregisteredEntityError
from events import Event, EventQueue


class SimulationEngine:
    """
    Single-threaded discrete-event engine.

    Owns the clock and the event queue, keeps the entity table and
    delivers each event to its target entity in (time, seq) order.
    Handlers run to completion; anything they raise stops the run and
    propagates to the caller with entity state left as it was.
    """

    def __init__(self, start_time=0.0, verbose=False):
        self.queue = EventQueue(start_time)
        self.verbose = verbose  # Control per-event console output
        self.events_processed = 0
        self._entities: List = []
        self._names = set()
        self._started = False
        self._finished = False

    @property
    def now(self):
        return self.queue.now

    @property
    def entities(self):
        return tuple(self._entities)

    @property
    def finished(self):
        return self._finished

    def register_entity(self, entity) -> int:
        """Add an entity to the table and return its id."""
        if self._started:
            raise SimulationError(f"Cannot register {entity.name} after the simulation started")
        if any(existing is entity for existing in self._entities):
            raise SimulationError(f"{entity.name} is already registered")
        if entity.name in self._names:
            raise SimulationError(f"Duplicate entity name {entity.name!r}")

        entity_id = len(self._entities)
        self._entities.append(entity)
        self._names.add(entity.name)
        entity.attach(self, entity_id)
        return entity_id

    def entity(self, entity_id):
        if not self.is_registered(entity_id):
            raise UnregisteredEntityError(f"No entity registered with id {entity_id!r}")
        return self._entities[entity_id]

    def is_registered(self, entity_id):
        if isinstance(entity_id, bool) or not isinstance(entity_id, int):
            return False
        return 0 <= entity_id < len(self._entities)

    def schedule(self, time, source, target, tag, payload) -> Event:
        """Insert an event at an absolute virtual time."""
        return self.queue.schedule(time, source, target, tag, payload)

    def send(self, source, target, delay, tag, payload) -> Event:
        """Schedule an event `delay` time units from now."""
        if not math.isfinite(delay) or delay < 0:
            raise InvalidScheduleError(f"Delay must be finite and non-negative, got {delay} for {tag.name}")
        if not self.is_registered(target):
            raise UnregisteredEntityError(f"Cannot send {tag.name} to unregistered entity {target!r}")
        return self.schedule(self.now + delay, source, target, tag, payload)

    def trace(self, message):
        if self.verbose:
            print(f"[{self.now:8.2f}] {message}")

    def run(self, until: Optional[float] = None) -> int:
        """
        Deliver events until the queue is empty.

        With `until`, events later than that time stay queued and the
        shutdown hooks are not called, so a later run() can continue.
        Returns the number of events delivered by this call.
        """
        if not self._started:
            self._started = True
            for entity in self._entities:
                entity.on_start()

        delivered = 0
        while True:
            upcoming = self.queue.peek()
            if upcoming is None:
                break
            if until is not None and upcoming.time > until:
                break

            event = self.queue.pop_next()
            target = self.entity(event.target)
            target.on_event(event)
            delivered += 1
            self.events_processed += 1

        if not self.queue and not self._finished:
            self._finished = True
            for entity in self._entities:
                entity.on_shutdown()

        return delivered
