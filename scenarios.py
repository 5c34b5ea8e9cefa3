from dataclasses import dataclass, field
from typing import Dict, List

from tqdm import tqdm

from config import scenario_from_dict
from engine import SimulationEngine
from entities import CloudStorage, Dispatcher, ProcessingNode, Sensor
from metrics import aggregate_replicas, snapshot, summarize
from policies import make_policy


@dataclass
class Simulation:
    """One isolated run: an engine plus the entity graph registered with it."""
    engine: SimulationEngine
    storage: CloudStorage
    nodes: List[ProcessingNode]
    dispatcher: Dispatcher
    sensors: List[Sensor]
    scenario: Dict = field(default_factory=dict)

    def run(self, until=None):
        return self.engine.run(until)

    def snapshot(self):
        return snapshot(self.engine)

    def summary(self):
        return summarize(self.snapshot())


def build_scenario(scenario, seed=None, verbose=False, policy=None) -> Simulation:
    """
    Build and register the entity graph, then let every sensor generate.

    Registration order is storage, nodes, dispatcher, sensors, which is
    also the order of the start and shutdown hooks.
    """
    scenario = scenario_from_dict(scenario)
    engine = SimulationEngine(verbose=verbose)

    storage = CloudStorage(scenario['storage'])
    nodes = [
        ProcessingNode(cfg['name'], storage, cfg['energy_per_mb'], cfg['result_mb'],
                       processing_delay=cfg['processing_delay'])
        for cfg in scenario['nodes']
    ]

    dispatcher_cfg = scenario['dispatcher']
    if policy is None:
        policy = make_policy(dispatcher_cfg['policy'], seed=seed)
    dispatcher = Dispatcher(dispatcher_cfg['name'], nodes, policy, dispatcher_cfg['energy_per_task'])

    sensors = [
        Sensor(cfg['name'], dispatcher, cfg['payload_mb'], cfg['energy_per_mb'],
               transmission_delay=cfg['transmission_delay'], tasks=cfg['tasks'],
               interval=cfg['interval'], critical=cfg['critical'])
        for cfg in scenario['sensors']
    ]

    for entity in [storage, *nodes, dispatcher, *sensors]:
        engine.register_entity(entity)

    for sensor in sensors:
        sensor.generate()

    return Simulation(engine=engine, storage=storage, nodes=nodes, dispatcher=dispatcher,
                      sensors=sensors, scenario=scenario)


def run_scenario(scenario, seed=None, verbose=False, until=None, policy=None) -> Simulation:
    simulation = build_scenario(scenario, seed=seed, verbose=verbose, policy=policy)
    simulation.run(until)
    return simulation


def run_replicas(scenario, seeds, until=None, progress=True):
    """Run one isolated engine per seed and return their snapshots."""
    scenario = scenario_from_dict(scenario)
    snapshots = []
    for seed in tqdm(list(seeds), desc=f"Replicas {scenario['name']}", unit="run", disable=not progress):
        snapshots.append(run_scenario(scenario, seed=seed, until=until).snapshot())
    return snapshots


def compare_policies(scenario, policies, seeds, until=None, progress=True):
    """Aggregate replica summaries of the same scenario under each policy."""
    scenario = scenario_from_dict(scenario)
    seeds = list(seeds)
    results = {}
    for policy_name in policies:
        variant = dict(scenario, dispatcher=dict(scenario['dispatcher'], policy=policy_name))
        snapshots = run_replicas(variant, seeds, until=until, progress=progress)
        results[policy_name] = aggregate_replicas([summarize(s) for s in snapshots])
    return results
