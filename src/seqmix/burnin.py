"""
burnin
======

Burn-in tests decide how many leading samples of every Gibbs chain are
discarded. A trainer feeds one score per chain and step (after selecting the
chain with ``set_current_sampling_index``) and asks for one burn-in length
shared by all chains. The length is cached until a new value arrives.
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from typing import List

import numpy as np

from seqmix.registry import burn_in_registry


class BurnInTest(ABC):
    """Base class holding the per-chain score traces."""

    type_key: str = ""

    def __init__(self):
        self.values: List[List[float]] = []
        self.reset_all_values()

    def reset_all_values(self) -> None:
        """Forget every recorded value."""
        self.current_index = -1
        for trace in self.values:
            trace.clear()
        self._computed = False
        self._burn_in_length = 0

    def set_current_sampling_index(self, index: int) -> None:
        """Select the chain that receives subsequent values."""
        while len(self.values) <= index:
            self.values.append([])
        self.current_index = index

    def set_value(self, value: float) -> None:
        """Record the score of the current step of the selected chain."""
        if self.current_index < 0:
            raise RuntimeError("No sampling index has been selected")
        self.values[self.current_index].append(float(value))
        self._computed = False

    def get_length_of_burn_in(self) -> int:
        if not self._computed:
            self._burn_in_length = int(self.compute_length_of_burn_in())
            self._computed = True
        return self._burn_in_length

    @abstractmethod
    def compute_length_of_burn_in(self) -> int:
        raise NotImplementedError

    def _parameters(self) -> dict:
        return {}

    def to_record(self) -> dict:
        return {
            "type_key": self.type_key,
            "parameters": self._parameters(),
            "values": [list(trace) for trace in self.values],
            "current_index": self.current_index,
            "computed": self._computed,
            "burn_in_length": self._burn_in_length,
        }

    @classmethod
    def from_record(cls, record: dict) -> "BurnInTest":
        test = cls(**record["parameters"])
        test.values = [list(trace) for trace in record["values"]]
        test.current_index = record["current_index"]
        test._computed = record["computed"]
        test._burn_in_length = record["burn_in_length"]
        return test


@burn_in_registry.register("fixed")
class FixedBurnIn(BurnInTest):
    """Discard a fixed number of samples per chain."""

    def __init__(self, length: int):
        if length < 0:
            raise ValueError(f"The burn-in length has to be non-negative, got {length}")
        self.length = int(length)
        super().__init__()

    def compute_length_of_burn_in(self) -> int:
        return self.length

    def _parameters(self) -> dict:
        return {"length": self.length}


@burn_in_registry.register("variance_ratio")
class VarianceRatioBurnIn(BurnInTest):
    """
    Burn-in detection via the potential scale reduction of Gelman and Rubin.

    For a candidate burn-in ``b`` the traces ``values[c][b:n]`` of all chains are
    compared (``n`` is the length of the shortest trace). The burn-in is the
    smallest candidate whose scale reduction drops below ``threshold``. If no
    candidate qualifies, the first half of the traces is discarded.

    Parameters
    ----------
    threshold : float
        Upper bound for the potential scale reduction, must exceed 1.
    step : int
        Distance between two tested candidates.
    """

    def __init__(self, threshold: float = 1.2, step: int = 1):
        if threshold <= 1:
            raise ValueError(f"threshold has to be greater than 1, got {threshold}")
        if step < 1:
            raise ValueError(f"step has to be at least 1, got {step}")
        self.threshold = float(threshold)
        self.step = int(step)
        super().__init__()

    def compute_length_of_burn_in(self) -> int:
        traces = [trace for trace in self.values if trace]
        if len(traces) < 2:
            raise RuntimeError("The variance ratio burn-in test needs at least two chains")
        n = min(len(trace) for trace in traces)
        if n < 4:
            return n

        matrix = np.array([trace[:n] for trace in traces], dtype=np.float64)
        for b in range(0, n // 2 + 1, self.step):
            if scale_reduction(matrix[:, b:]) < self.threshold:
                return b

        logger = logging.getLogger(__name__)
        logger.debug(f"Chains have not converged after {n} values, discarding the first half")
        return n // 2

    def _parameters(self) -> dict:
        return {"threshold": self.threshold, "step": self.step}


def scale_reduction(matrix: np.ndarray) -> float:
    """Potential scale reduction factor of ``matrix`` (chains x samples)."""
    k = matrix.shape[1]
    within = matrix.var(axis=1, ddof=1).mean()
    between = k * matrix.mean(axis=1).var(ddof=1)
    if within == 0:
        return 1.0 if between == 0 else np.inf
    pooled = (k - 1) / k * within + between / k
    return float(np.sqrt(pooled / within))
