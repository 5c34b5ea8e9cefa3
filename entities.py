from typing import List, Optional, Protocol

from errors import MalformedPayloadError, NoAvailableNodeError, SimulationError
from events import EventTag, ResultUpload, SenseTick, TaskArrival
from metrics import EntityMetrics


class Entity(Protocol):
    """What the engine needs from every participant in a run."""
    id: Optional[int]
    name: str
    kind: str
    metrics: EntityMetrics

    def attach(self, engine, entity_id): ...

    def on_start(self): ...

    def on_event(self, event): ...

    def on_shutdown(self): ...


def _unexpected(entity, event):
    return MalformedPayloadError(
        f"{entity.name} cannot handle {event.tag.name} carrying {type(event.payload).__name__}"
    )


def _require_attached(entity):
    if entity.sim is None:
        raise SimulationError(f"{entity.name} is not registered with an engine")


# ========== Tier 1: Sources ==========
class Sensor:
    """
    Edge device (camera or patient sensor) that produces tasks.

    Each generate() call accounts the payload and its transmission energy
    and sends a task to the dispatcher after `transmission_delay`. With
    `tasks` > 1 the sensor wakes itself up every `interval` until it has
    generated that many tasks.
    """
    kind = 'Sensor'

    def __init__(self, name, dispatcher, payload_mb, energy_per_mb,
                 transmission_delay=0.0, tasks=1, interval=0.0, critical=False):
        if tasks < 1:
            raise ValueError(f"{name}: tasks must be at least 1, got {tasks}")
        if transmission_delay < 0 or interval < 0:
            raise ValueError(f"{name}: delays must be non-negative")
        self.name = name
        self.id = None
        self.sim = None
        self.metrics = EntityMetrics()
        self.dispatcher = dispatcher
        self.payload_mb = payload_mb
        self.energy_per_mb = energy_per_mb
        self.transmission_delay = transmission_delay
        self.tasks = tasks
        self.interval = interval
        self.critical = critical
        self.generated = 0

    def attach(self, engine, entity_id):
        self.sim = engine
        self.id = entity_id

    @property
    def energy_used(self):
        return self.metrics.energy_consumed

    @property
    def data_generated(self):
        return self.metrics.data_generated

    @property
    def last_latency(self):
        return self.metrics.last_latency

    def generate(self):
        _require_attached(self)
        self.metrics.data_generated += self.payload_mb
        self.metrics.add_energy(self.payload_mb * self.energy_per_mb)
        self.metrics.tasks += 1
        self.generated += 1

        task = TaskArrival(sensor_id=self.id, size_mb=self.payload_mb,
                           sent_at=self.sim.now, critical=self.critical)
        self.sim.send(self.id, self.dispatcher.id, self.transmission_delay,
                      EventTag.TASK_ARRIVAL, task)
        self.sim.trace(f"{self.name} sending to {self.dispatcher.name}...")

        remaining = self.tasks - self.generated
        if remaining > 0:
            self.sim.send(self.id, self.id, self.interval, EventTag.SENSE, SenseTick(remaining))

    def record_latency(self, value):
        self.metrics.add_latency(value)

    def on_start(self):
        self.sim.trace(f"{self.name} is starting...")

    def on_event(self, event):
        if event.tag is EventTag.SENSE and isinstance(event.payload, SenseTick):
            self.generate()
        else:
            raise _unexpected(self, event)

    def on_shutdown(self):
        self.sim.trace(f"{self.name} is shutting down...")


# ========== Tier 3: Cloud Storage ==========
class CloudStorage:
    """Unbounded store for processed results."""
    kind = 'CloudStorage'

    def __init__(self, name):
        self.name = name
        self.id = None
        self.sim = None
        self.metrics = EntityMetrics()

    def attach(self, engine, entity_id):
        self.sim = engine
        self.id = entity_id

    @property
    def storage_used(self):
        return self.metrics.storage_used

    @property
    def store_count(self):
        return self.metrics.stores

    def store(self, size_mb):
        if size_mb < 0:
            raise ValueError(f"{self.name}: cannot store a negative size ({size_mb} MB)")
        self.metrics.storage_used += size_mb
        self.metrics.stores += 1

    def on_start(self):
        self.sim.trace(f"{self.name} is starting...")

    def on_event(self, event):
        if event.tag is EventTag.RESULT_UPLOAD and isinstance(event.payload, ResultUpload):
            self.store(event.payload.size_mb)
            self.sim.trace(f"{self.name} stored {event.payload.size_mb} MB")
        else:
            raise _unexpected(self, event)

    def on_shutdown(self):
        self.sim.trace(f"{self.name} is shutting down...")


# ========== Tier 2: Fog Nodes ==========
class ProcessingNode:
    """
    Fog node: processes a task and forwards its result to storage.

    Processing is instantaneous in virtual time unless `processing_delay`
    is positive, in which case the result reaches storage as a separate
    event that much later. Energy and load are accounted when the task
    is processed either way.
    """
    kind = 'ProcessingNode'

    def __init__(self, name, storage, energy_per_mb, result_mb, processing_delay=0.0):
        if processing_delay < 0:
            raise ValueError(f"{name}: processing_delay must be non-negative")
        self.name = name
        self.id = None
        self.sim = None
        self.metrics = EntityMetrics()
        self.storage = storage
        self.energy_per_mb = energy_per_mb
        self.result_mb = result_mb
        self.processing_delay = processing_delay

    def attach(self, engine, entity_id):
        self.sim = engine
        self.id = entity_id

    @property
    def energy_consumed(self):
        return self.metrics.energy_consumed

    @property
    def current_load(self):
        return self.metrics.current_load

    def process(self, task: TaskArrival):
        self.metrics.add_energy(task.size_mb * self.energy_per_mb)
        self.metrics.current_load += 1
        self.metrics.tasks += 1
        self.sim.trace(f"{self.name} processed data from entity {task.sensor_id}")

        if self.processing_delay > 0:
            self.sim.send(self.id, self.storage.id, self.processing_delay,
                          EventTag.RESULT_UPLOAD, ResultUpload(self.id, self.result_mb))
        else:
            self.storage.store(self.result_mb)
            self.sim.trace(f"{self.name} uploaded result to {self.storage.name} ({self.result_mb} MB)")

    def on_start(self):
        self.sim.trace(f"{self.name} is starting...")

    def on_event(self, event):
        raise _unexpected(self, event)

    def on_shutdown(self):
        self.sim.trace(f"{self.name} is shutting down...")


# ========== Proxy / Load Balancer ==========
class Dispatcher:
    """
    Receives tasks from sources and offloads each to one fog node.

    The node is chosen by the configured OffloadingPolicy. Latency is
    the time between the source sending the task and its arrival here.
    """
    kind = 'Dispatcher'

    def __init__(self, name, nodes, policy, energy_per_task):
        self.name = name
        self.id = None
        self.sim = None
        self.metrics = EntityMetrics()
        self.nodes: List[ProcessingNode] = list(nodes)
        self.policy = policy
        self.energy_per_task = energy_per_task
        self.critical_tasks = 0

    def attach(self, engine, entity_id):
        self.sim = engine
        self.id = entity_id

    @property
    def energy_consumed(self):
        return self.metrics.energy_consumed

    @property
    def last_latency(self):
        return self.metrics.last_latency

    def dispatch(self, event):
        task = event.payload
        if not self.nodes:
            raise NoAvailableNodeError(f"{self.name} has no fog nodes to offload to")

        node = self.policy.select(task, self.nodes, self.sim.now)
        sensor = self.sim.entity(task.sensor_id)
        self.metrics.add_energy(self.energy_per_task)

        latency = self.sim.now - task.sent_at
        self.metrics.add_latency(latency)
        self.metrics.tasks += 1
        if task.critical:
            self.critical_tasks += 1

        if hasattr(sensor, 'record_latency'):
            sensor.record_latency(latency)

        self.sim.trace(f"{self.name} forwarded {sensor.name} to {node.name} (Latency: {latency})")
        node.process(task)
        return node

    def on_start(self):
        self.sim.trace(f"{self.name} is starting...")

    def on_event(self, event):
        if event.tag is EventTag.TASK_ARRIVAL and isinstance(event.payload, TaskArrival):
            self.dispatch(event)
        else:
            raise _unexpected(self, event)

    def on_shutdown(self):
        self.sim.trace(f"{self.name} is shutting down...")
