"""
termination
===========

Stopping rules for iterative optimization. A condition is asked after every
iteration whether another one should be done. Conditions that only look at
the arguments they are given are called *simple*; the EM loop of a mixture
trainer accepts simple conditions only, so that one instance can be
re-invoked across restarts without carrying hidden state.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional

import numpy as np

from seqmix.registry import termination_registry


class TerminationCondition(ABC):
    """Interface of all termination conditions."""

    type_key: str = ""

    @abstractmethod
    def do_next_iteration(
        self,
        iteration: int,
        f_last: float,
        f_current: float,
        gradient: Optional[np.ndarray] = None,
        direction: Optional[np.ndarray] = None,
        step: float = float("nan"),
        elapsed_seconds: float = 0.0,
    ) -> bool:
        """Return True if another iteration should be done."""
        raise NotImplementedError

    def is_simple(self) -> bool:
        """Return True if the decision depends on the call arguments only."""
        return True

    @abstractmethod
    def to_record(self) -> dict:
        raise NotImplementedError

    @classmethod
    def from_record(cls, record: dict) -> "TerminationCondition":
        return cls(**{k: v for k, v in record.items() if k != "type_key"})


@termination_registry.register("small_difference")
class SmallDifferenceCondition(TerminationCondition):
    """Continue while two consecutive function values differ by more than ``epsilon``."""

    def __init__(self, epsilon: float = 1e-6):
        if epsilon < 0:
            raise ValueError(f"epsilon has to be non-negative, got {epsilon}")
        self.epsilon = float(epsilon)

    def do_next_iteration(
        self, iteration, f_last, f_current, gradient=None, direction=None, step=float("nan"), elapsed_seconds=0.0
    ):
        return abs(f_last - f_current) > self.epsilon

    def to_record(self) -> dict:
        return {"type_key": self.type_key, "epsilon": self.epsilon}


@termination_registry.register("iterations")
class IterationCondition(TerminationCondition):
    """Continue while fewer than ``max_iterations`` iterations have been done."""

    def __init__(self, max_iterations: int):
        if max_iterations < 0:
            raise ValueError(f"max_iterations has to be non-negative, got {max_iterations}")
        self.max_iterations = int(max_iterations)

    def do_next_iteration(
        self, iteration, f_last, f_current, gradient=None, direction=None, step=float("nan"), elapsed_seconds=0.0
    ):
        return iteration < self.max_iterations

    def to_record(self) -> dict:
        return {"type_key": self.type_key, "max_iterations": self.max_iterations}


@termination_registry.register("time")
class TimeCondition(TerminationCondition):
    """Continue while the elapsed wall-clock time is below ``seconds``."""

    def __init__(self, seconds: float):
        if seconds <= 0:
            raise ValueError(f"seconds has to be positive, got {seconds}")
        self.seconds = float(seconds)

    def do_next_iteration(
        self, iteration, f_last, f_current, gradient=None, direction=None, step=float("nan"), elapsed_seconds=0.0
    ):
        return elapsed_seconds < self.seconds

    def is_simple(self) -> bool:
        return False

    def to_record(self) -> dict:
        return {"type_key": self.type_key, "seconds": self.seconds}


@termination_registry.register("combined")
class CombinedCondition(TerminationCondition):
    """Continue while at least ``threshold`` of the sub-conditions vote for another iteration."""

    def __init__(self, threshold: int, *conditions: TerminationCondition):
        if not conditions:
            raise ValueError("At least one termination condition has to be combined")
        if not 1 <= threshold <= len(conditions):
            raise ValueError(f"threshold has to be in [1, {len(conditions)}], got {threshold}")
        self.threshold = int(threshold)
        self.conditions = tuple(conditions)

    def do_next_iteration(
        self, iteration, f_last, f_current, gradient=None, direction=None, step=float("nan"), elapsed_seconds=0.0
    ):
        positive = 0
        for condition in self.conditions:
            if condition.do_next_iteration(iteration, f_last, f_current, gradient, direction, step, elapsed_seconds):
                positive += 1
        return positive >= self.threshold

    def is_simple(self) -> bool:
        return all(condition.is_simple() for condition in self.conditions)

    def to_record(self) -> dict:
        return {
            "type_key": self.type_key,
            "threshold": self.threshold,
            "conditions": [condition.to_record() for condition in self.conditions],
        }

    @classmethod
    def from_record(cls, record: dict) -> "CombinedCondition":
        conditions = [termination_registry.from_record(r) for r in record["conditions"]]
        return cls(record["threshold"], *conditions)
