import pytest

from engine import SimulationEngine
from entities import CloudStorage, Dispatcher, ProcessingNode, Sensor
from errors import MalformedPayloadError, NoAvailableNodeError, SimulationError, UnregisteredEntityError
from events import EventTag, SenseTick, TaskArrival
from policies import LeastLoadPolicy, RandomPolicy


def build(num_nodes=1, policy=None, node_energy=0.02, result_mb=0.5, dispatcher_energy=0.01,
          sensors=(), processing_delay=0.0, verbose=False):
    """Create storage, fog nodes and a dispatcher registered with a fresh engine."""
    engine = SimulationEngine(verbose=verbose)
    storage = CloudStorage("CloudDataCenter")
    nodes = [ProcessingNode(f"FogNode{i + 1}", storage, node_energy, result_mb,
                            processing_delay=processing_delay)
             for i in range(num_nodes)]
    dispatcher = Dispatcher("Proxy", nodes, policy or LeastLoadPolicy(), dispatcher_energy)
    engine.register_entity(storage)
    for node in nodes:
        engine.register_entity(node)
    engine.register_entity(dispatcher)

    created = []
    for i, kwargs in enumerate(sensors):
        sensor = Sensor(f"Sensor{i + 1}", dispatcher, **kwargs)
        engine.register_entity(sensor)
        created.append(sensor)
    return engine, storage, nodes, dispatcher, created


def test_single_task_round_trip():
    engine, storage, nodes, dispatcher, sensors = build(
        sensors=[dict(payload_mb=5.0, energy_per_mb=0.0, transmission_delay=0.0)]
    )

    sensors[0].generate()
    engine.run()

    node = nodes[0]
    assert node.energy_consumed == pytest.approx(0.1)
    assert dispatcher.energy_consumed == pytest.approx(0.01)
    assert storage.storage_used == pytest.approx(0.5)
    assert node.current_load == 1
    assert sensors[0].last_latency == 0.0


def test_least_load_tie_goes_to_first_node():
    engine, storage, nodes, dispatcher, sensors = build(
        num_nodes=3, sensors=[dict(payload_mb=5.0, energy_per_mb=0.0)]
    )

    sensors[0].generate()
    engine.run()

    assert [node.current_load for node in nodes] == [1, 0, 0]


def test_dispatch_without_nodes_fails_without_side_effects():
    engine, storage, nodes, dispatcher, sensors = build(
        num_nodes=0, sensors=[dict(payload_mb=5.0, energy_per_mb=0.02)]
    )

    sensors[0].generate()
    with pytest.raises(NoAvailableNodeError):
        engine.run()

    assert storage.storage_used == 0.0
    assert storage.store_count == 0
    assert dispatcher.energy_consumed == 0.0
    assert dispatcher.metrics.tasks == 0
    # Source accounting done before the failure stays inspectable
    assert sensors[0].data_generated == 5.0


def test_least_load_always_picks_a_minimum_loaded_node():
    engine, storage, nodes, dispatcher, sensors = build(
        num_nodes=4,
        sensors=[dict(payload_mb=1.0, energy_per_mb=0.0, tasks=9, interval=1.0)],
    )
    chosen = []
    real_dispatch = dispatcher.dispatch

    def recording_dispatch(event):
        loads = [node.current_load for node in nodes]
        node = real_dispatch(event)
        index = nodes.index(node)
        assert loads[index] == min(loads)
        assert index == loads.index(min(loads))
        chosen.append(index)
        return node

    dispatcher.dispatch = recording_dispatch
    sensors[0].generate()
    engine.run()

    assert chosen == [0, 1, 2, 3, 0, 1, 2, 3, 0]
    assert [node.current_load for node in nodes] == [3, 2, 2, 2]


def test_source_energy_is_additive():
    payload, cost, k = 2.0, 0.02, 7
    engine, storage, nodes, dispatcher, sensors = build(
        num_nodes=2,
        sensors=[dict(payload_mb=payload, energy_per_mb=cost, tasks=k, interval=0.5)],
    )

    sensors[0].generate()
    engine.run()

    expected = 0.0
    for _ in range(k):
        expected += payload * cost
    assert sensors[0].energy_used == expected
    assert sensors[0].energy_used == pytest.approx(k * payload * cost)
    assert sensors[0].data_generated == k * payload
    assert sensors[0].generated == k


def test_every_dispatched_task_is_stored_once():
    engine, storage, nodes, dispatcher, sensors = build(
        num_nodes=3,
        policy=RandomPolicy(seed=3),
        sensors=[dict(payload_mb=5.0, energy_per_mb=0.0, tasks=4, interval=0.2),
                 dict(payload_mb=2.0, energy_per_mb=0.02, transmission_delay=0.1, tasks=6, interval=0.3)],
    )

    for sensor in sensors:
        sensor.generate()
    engine.run()

    assert dispatcher.metrics.tasks == 10
    assert storage.store_count == 10
    assert sum(node.current_load for node in nodes) == 10
    assert storage.storage_used == pytest.approx(10 * 0.5)


def test_latency_measures_transmission_delay():
    engine, storage, nodes, dispatcher, sensors = build(
        num_nodes=2,
        sensors=[dict(payload_mb=2.0, energy_per_mb=0.02, transmission_delay=0.1, critical=True),
                 dict(payload_mb=2.0, energy_per_mb=0.02, transmission_delay=0.0)],
    )

    for sensor in sensors:
        sensor.generate()
    engine.run()

    assert sensors[0].last_latency == pytest.approx(0.1)
    assert sensors[1].last_latency == 0.0
    assert dispatcher.last_latency == pytest.approx(0.1)
    assert dispatcher.critical_tasks == 1
    # The undelayed task arrives first and takes the first node
    assert [node.current_load for node in nodes] == [1, 1]
    assert engine.now == pytest.approx(0.1)


def test_processing_delay_uploads_result_later():
    engine, storage, nodes, dispatcher, sensors = build(
        num_nodes=1, processing_delay=2.0,
        sensors=[dict(payload_mb=5.0, energy_per_mb=0.0)],
    )

    sensors[0].generate()
    engine.run(until=1.0)
    assert nodes[0].current_load == 1
    assert nodes[0].energy_consumed == pytest.approx(0.1)
    assert storage.store_count == 0

    engine.run()
    assert storage.store_count == 1
    assert storage.storage_used == pytest.approx(0.5)
    assert engine.now == pytest.approx(2.0)
    assert nodes[0].current_load == 1


def test_dispatcher_rejects_unexpected_events():
    engine, storage, nodes, dispatcher, sensors = build()
    engine.schedule(0.0, dispatcher.id, dispatcher.id, EventTag.SENSE, SenseTick(1))

    with pytest.raises(MalformedPayloadError):
        engine.run()
    assert nodes[0].current_load == 0


def test_node_rejects_events():
    engine, storage, nodes, dispatcher, sensors = build()
    engine.schedule(0.0, dispatcher.id, nodes[0].id, EventTag.TASK_ARRIVAL,
                    TaskArrival(sensor_id=dispatcher.id, size_mb=1.0, sent_at=0.0))

    with pytest.raises(MalformedPayloadError):
        engine.run()


def test_task_from_unknown_source_fails():
    engine, storage, nodes, dispatcher, sensors = build()
    engine.schedule(0.0, 0, dispatcher.id, EventTag.TASK_ARRIVAL,
                    TaskArrival(sensor_id=99, size_mb=1.0, sent_at=0.0))

    with pytest.raises(UnregisteredEntityError):
        engine.run()
    assert dispatcher.energy_consumed == 0.0
    assert nodes[0].current_load == 0


def test_generate_requires_registration():
    storage = CloudStorage("cloud")
    dispatcher = Dispatcher("proxy", [], LeastLoadPolicy(), 0.01)
    sensor = Sensor("lonely", dispatcher, payload_mb=1.0, energy_per_mb=0.0)

    with pytest.raises(SimulationError):
        sensor.generate()


def test_entity_arguments_are_validated():
    storage = CloudStorage("cloud")
    with pytest.raises(ValueError):
        ProcessingNode("fog", storage, 0.02, 0.5, processing_delay=-1.0)
    with pytest.raises(ValueError):
        Sensor("s", None, payload_mb=1.0, energy_per_mb=0.0, tasks=0)
    with pytest.raises(ValueError):
        storage.store(-1.0)


def test_verbose_run_prints_lifecycle(capsys):
    engine, storage, nodes, dispatcher, sensors = build(
        verbose=True, sensors=[dict(payload_mb=5.0, energy_per_mb=0.0)]
    )

    sensors[0].generate()
    engine.run()

    out = capsys.readouterr().out
    assert "FogNode1 is starting..." in out
    assert "Proxy forwarded Sensor1 to FogNode1" in out
    assert "CloudDataCenter is shutting down..." in out
