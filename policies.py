import numpy as np
from abc import ABC, abstractmethod

from errors import NoAvailableNodeError


class OffloadingPolicy(ABC):
    """Chooses the processing node that receives an incoming task."""
    name = ""

    @abstractmethod
    def select(self, task, candidates, now):
        pass

    def _require_candidates(self, candidates):
        if not candidates:
            raise NoAvailableNodeError(f"{self.name} policy has no candidate nodes")


class RandomPolicy(OffloadingPolicy):
    """Uniform choice among all candidates, driven by an injected generator."""
    name = "random"

    def __init__(self, rng=None, seed=None):
        self.rng = rng if rng is not None else np.random.default_rng(seed)

    def select(self, task, candidates, now):
        self._require_candidates(candidates)
        return candidates[int(self.rng.integers(len(candidates)))]


class LeastLoadPolicy(OffloadingPolicy):
    """
    Picks the candidate with the fewest processed tasks.

    min() keeps the first of several equal keys, so ties go to the
    earliest node in the candidate list.
    """
    name = "least_load"

    def select(self, task, candidates, now):
        self._require_candidates(candidates)
        return min(candidates, key=lambda node: node.current_load)


POLICIES = {
    'random': RandomPolicy,
    'least_load': LeastLoadPolicy,
    'eqls': LeastLoadPolicy,
}


def make_policy(name, seed=None):
    if name not in POLICIES:
        raise ValueError(f"Unknown offloading policy {name!r}; choose from {sorted(POLICIES)}")
    policy_class = POLICIES[name]
    if policy_class is RandomPolicy:
        return RandomPolicy(seed=seed)
    return policy_class()
