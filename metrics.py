import numpy as np
from dataclasses import dataclass, field
from typing import Dict, List, Any

SUMMARY_FIELDS = [
    'total_energy',
    'node_energy',
    'sensor_energy',
    'dispatcher_energy',
    'storage_used',
    'tasks_dispatched',
    'tasks_stored',
    'mean_latency',
    'max_latency',
    'load_imbalance',
]


@dataclass
class EntityMetrics:
    """Accounting state owned by a single entity."""
    energy_consumed: float = 0.0
    data_generated: float = 0.0
    storage_used: float = 0.0
    current_load: int = 0
    last_latency: float = 0.0
    tasks: int = 0
    stores: int = 0
    latencies: List[float] = field(default_factory=list)

    def add_energy(self, joules):
        self.energy_consumed += joules

    def add_latency(self, value):
        self.last_latency = value
        self.latencies.append(value)


def snapshot(engine) -> Dict[str, Dict[str, Any]]:
    """Read every registered entity's public accessors into plain dicts."""
    result = {}
    for entity in engine.entities:
        m = entity.metrics
        result[entity.name] = {
            'id': entity.id,
            'kind': entity.kind,
            'energy_consumed': m.energy_consumed,
            'data_generated': m.data_generated,
            'storage_used': m.storage_used,
            'current_load': m.current_load,
            'last_latency': m.last_latency,
            'tasks': m.tasks,
            'stores': m.stores,
            'latencies': list(m.latencies),
        }
    return result


def _of_kind(snap, kind):
    return [row for row in snap.values() if row['kind'] == kind]


def summarize(snap) -> Dict[str, Any]:
    """Totals and latency/load statistics for one run."""
    nodes = _of_kind(snap, 'ProcessingNode')
    sensors = _of_kind(snap, 'Sensor')
    dispatchers = _of_kind(snap, 'Dispatcher')
    storages = _of_kind(snap, 'CloudStorage')

    latencies = [value for row in dispatchers for value in row['latencies']]
    loads = [row['current_load'] for row in nodes]

    return {
        'total_energy': sum(row['energy_consumed'] for row in snap.values()),
        'node_energy': sum(row['energy_consumed'] for row in nodes),
        'sensor_energy': sum(row['energy_consumed'] for row in sensors),
        'dispatcher_energy': sum(row['energy_consumed'] for row in dispatchers),
        'storage_used': sum(row['storage_used'] for row in storages),
        'tasks_dispatched': sum(row['tasks'] for row in dispatchers),
        'tasks_stored': sum(row['stores'] for row in storages),
        'mean_latency': float(np.mean(latencies)) if latencies else 0.0,
        'max_latency': float(np.max(latencies)) if latencies else 0.0,
        'load_imbalance': (max(loads) - min(loads)) if loads else 0,
        'node_loads': {name: row['current_load'] for name, row in snap.items()
                       if row['kind'] == 'ProcessingNode'},
    }


def aggregate_replicas(summaries):
    """Mean and standard deviation of each summary figure across replicas."""
    if not summaries:
        return {}
    aggregated = {}
    for key in SUMMARY_FIELDS:
        values = np.array([s[key] for s in summaries], dtype=float)
        aggregated[key] = {
            'mean': float(np.mean(values)),
            'std': float(np.std(values)),
        }
    return aggregated
