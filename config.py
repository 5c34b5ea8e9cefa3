import json
import math
from copy import deepcopy

from errors import ConfigError
from policies import POLICIES

# ========== Configuration Section ==========
DEFAULT_SEED = 42
DEFAULT_REPLICAS = 10

# Shared by both deployments
RESULT_SIZE_MB = 0.5  # Result forwarded from fog to cloud
DISPATCHER_ENERGY_PER_TASK = 0.01  # J per forwarded task

# Smart parking: cameras -> proxy server -> fog -> cloud
CAMERA_IMAGE_MB = 5.0
CAMERA_ENERGY_PER_MB = 0.0  # Cameras are mains powered
CAMERA_SEND_DELAY = 0.0
PARKING_FOG_ENERGY_PER_MB = 0.02  # J/MB for image processing

# Smart healthcare: patient sensors -> EQLS balancer -> fog -> cloud
PATIENT_DATA_MB = 2.0
PATIENT_SENSOR_ENERGY_PER_MB = 0.02  # J/MB for transmission
PATIENT_SEND_DELAY = 0.1
HEALTHCARE_FOG_ENERGY_PER_MB = 0.03  # J/MB for fog processing

NODE_FIELDS = ['energy_per_mb', 'result_mb', 'processing_delay']
SENSOR_FIELDS = ['payload_mb', 'energy_per_mb', 'transmission_delay', 'tasks', 'interval', 'critical']

SMART_PARKING = {
    "name": "SmartParking",
    "storage": "CloudDataCenter",
    "dispatcher": {
        "name": "ProxyServer",
        "policy": "random",
        "energy_per_task": DISPATCHER_ENERGY_PER_TASK
    },
    "node_defaults": {
        "energy_per_mb": PARKING_FOG_ENERGY_PER_MB,
        "result_mb": RESULT_SIZE_MB,
        "processing_delay": 0.0
    },
    "nodes": [
        {"name": "FogNode1"},
        {"name": "FogNode2"}
    ],
    "sensor_defaults": {
        "payload_mb": CAMERA_IMAGE_MB,
        "energy_per_mb": CAMERA_ENERGY_PER_MB,
        "transmission_delay": CAMERA_SEND_DELAY,
        "tasks": 1,
        "interval": 0.0,
        "critical": False
    },
    "sensors": [
        {"name": "Camera1"},
        {"name": "Camera2"},
        {"name": "Camera3"},
        {"name": "Camera4"}
    ]
}

SMART_HEALTHCARE = {
    "name": "SmartHealthcare",
    "storage": "CloudDataCenter",
    "dispatcher": {
        "name": "EQLSBalancer",
        "policy": "least_load",
        "energy_per_task": DISPATCHER_ENERGY_PER_TASK
    },
    "node_defaults": {
        "energy_per_mb": HEALTHCARE_FOG_ENERGY_PER_MB,
        "result_mb": RESULT_SIZE_MB,
        "processing_delay": 0.0
    },
    "nodes": [
        {"name": "FogNode1"},
        {"name": "FogNode2"},
        {"name": "FogNode3"}
    ],
    "sensor_defaults": {
        "payload_mb": PATIENT_DATA_MB,
        "energy_per_mb": PATIENT_SENSOR_ENERGY_PER_MB,
        "transmission_delay": PATIENT_SEND_DELAY,
        "tasks": 1,
        "interval": 0.0,
        "critical": False
    },
    "sensors": [
        {"name": "Sensor1", "critical": True},
        {"name": "Sensor2", "critical": False},
        {"name": "Sensor3", "critical": True},
        {"name": "Sensor4", "critical": False}
    ]
}

PRESETS = {
    "parking": SMART_PARKING,
    "healthcare": SMART_HEALTHCARE,
}


# ========== Validation ==========
def _number(where, key, value):
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ConfigError(f"{where}: '{key}' must be a number, got {value!r}")
    if not math.isfinite(value):
        raise ConfigError(f"{where}: '{key}' must be finite, got {value!r}")
    if value < 0:
        raise ConfigError(f"{where}: '{key}' must be non-negative, got {value!r}")
    return value


def _name(where, value):
    if not isinstance(value, str) or not value:
        raise ConfigError(f"{where}: 'name' must be a non-empty string, got {value!r}")
    return value


def _expand_node(index, item, defaults):
    where = f"nodes[{index}]"
    if not isinstance(item, dict):
        raise ConfigError(f"{where}: expected an object, got {item!r}")
    merged = {**defaults, **item}
    missing = [key for key in ['name'] + NODE_FIELDS if key not in merged]
    if missing:
        raise ConfigError(f"{where}: missing keys {missing}")
    node = {'name': _name(where, merged['name'])}
    for key in NODE_FIELDS:
        node[key] = _number(where, key, merged[key])
    return node


def _expand_sensor(index, item, defaults):
    where = f"sensors[{index}]"
    if not isinstance(item, dict):
        raise ConfigError(f"{where}: expected an object, got {item!r}")
    merged = {**defaults, **item}
    missing = [key for key in ['name'] + SENSOR_FIELDS if key not in merged]
    if missing:
        raise ConfigError(f"{where}: missing keys {missing}")

    sensor = {'name': _name(where, merged['name'])}
    for key in ['payload_mb', 'energy_per_mb', 'transmission_delay', 'interval']:
        sensor[key] = _number(where, key, merged[key])
    tasks = merged['tasks']
    if isinstance(tasks, bool) or not isinstance(tasks, int) or tasks < 1:
        raise ConfigError(f"{where}: 'tasks' must be a positive integer, got {tasks!r}")
    sensor['tasks'] = tasks
    if not isinstance(merged['critical'], bool):
        raise ConfigError(f"{where}: 'critical' must be true or false, got {merged['critical']!r}")
    sensor['critical'] = merged['critical']
    return sensor


def scenario_from_dict(data):
    """
    Merge a scenario definition over its preset and validate it.

    `data` may name a preset under "preset" (default "parking"). Top-level
    "dispatcher", "node_defaults" and "sensor_defaults" are merged key by
    key; "nodes" and "sensors" replace the preset lists. The result has
    every node and sensor fully expanded, so it can be passed back in.
    """
    if not isinstance(data, dict):
        raise ConfigError(f"Scenario must be an object, got {type(data).__name__}")

    preset_name = data.get('preset', 'parking')
    if preset_name not in PRESETS:
        raise ConfigError(f"Unknown preset {preset_name!r}; choose from {sorted(PRESETS)}")
    base = deepcopy(PRESETS[preset_name])

    for key in ['dispatcher', 'node_defaults', 'sensor_defaults']:
        if key in data:
            if not isinstance(data[key], dict):
                raise ConfigError(f"'{key}' must be an object")
            base[key].update(data[key])
    for key in ['name', 'storage', 'nodes', 'sensors']:
        if key in data:
            base[key] = deepcopy(data[key])

    if not isinstance(base['nodes'], list) or not isinstance(base['sensors'], list):
        raise ConfigError("'nodes' and 'sensors' must be arrays")

    dispatcher = base['dispatcher']
    if dispatcher.get('policy') not in POLICIES:
        raise ConfigError(f"Unknown policy {dispatcher.get('policy')!r}; choose from {sorted(POLICIES)}")

    scenario = {
        'preset': preset_name,
        'name': _name('scenario', base['name']),
        'storage': _name('storage', base['storage']),
        'dispatcher': {
            'name': _name('dispatcher', dispatcher.get('name')),
            'policy': dispatcher['policy'],
            'energy_per_task': _number('dispatcher', 'energy_per_task', dispatcher.get('energy_per_task')),
        },
        'nodes': [_expand_node(i, item, base['node_defaults']) for i, item in enumerate(base['nodes'])],
        'sensors': [_expand_sensor(i, item, base['sensor_defaults']) for i, item in enumerate(base['sensors'])],
    }

    names = [scenario['storage'], scenario['dispatcher']['name']]
    names += [node['name'] for node in scenario['nodes']]
    names += [sensor['name'] for sensor in scenario['sensors']]
    duplicates = sorted({name for name in names if names.count(name) > 1})
    if duplicates:
        raise ConfigError(f"Entity names must be unique, duplicated: {duplicates}")

    return scenario


def load_scenario(filepath):
    """Load a scenario from a JSON file. File and JSON errors propagate."""
    with open(filepath, 'r', encoding='utf-8-sig') as f:
        data = json.load(f)
    return scenario_from_dict(data)
