class SimulationError(Exception):
    """Base class for every error raised by the simulation core."""


class InvalidScheduleError(SimulationError):
    """An event was scheduled before the current virtual time."""


class NoAvailableNodeError(SimulationError):
    """The dispatcher has no processing node to offload to."""


class MalformedPayloadError(SimulationError):
    """An event payload does not match the shape its tag expects."""


class UnregisteredEntityError(SimulationError):
    """An event targets an entity id the engine does not know."""


class ConfigError(SimulationError):
    """A scenario definition is missing keys or holds bad values."""
