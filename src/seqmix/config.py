"""Training configuration for mixture trainers."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Union

from seqmix.burnin import BurnInTest
from seqmix.errors import ConstructionError
from seqmix.estimator import Parameterization
from seqmix.registry import burn_in_registry, termination_registry
from seqmix.termination import SmallDifferenceCondition, TerminationCondition


class Algorithm(Enum):
    EM = "em"
    GIBBS = "gibbs"


@dataclass
class EMConfig:
    """Configuration of expectation maximization with random restarts."""

    starts: int = 1
    alpha: float = 1.0
    termination: TerminationCondition = field(default_factory=lambda: SmallDifferenceCondition(1e-6))
    parameterization: Parameterization = Parameterization.LAMBDA
    strict_monotonicity: bool = False
    seed: Optional[int] = None

    algorithm = Algorithm.EM

    def validate(self) -> None:
        if self.starts < 1:
            raise ConstructionError(f"The number of starts has to be at least 1, got {self.starts}")
        if self.alpha <= 0:
            raise ConstructionError(f"alpha has to be strictly positive, got {self.alpha}")
        if self.termination is None:
            raise ConstructionError("A termination condition is required for EM")
        if not self.termination.is_simple():
            raise ConstructionError("The termination condition has to be simple")

    def to_record(self) -> dict:
        return {
            "algorithm": self.algorithm.value,
            "starts": self.starts,
            "alpha": self.alpha,
            "termination": self.termination.to_record(),
            "parameterization": self.parameterization.name,
            "strict_monotonicity": self.strict_monotonicity,
            "seed": self.seed,
        }


@dataclass
class GibbsConfig:
    """Configuration of Gibbs sampling with several chains."""

    starts: int
    initial_iteration: int
    stationary_iteration: int
    burn_in_test: BurnInTest
    chain_dir: Optional[str] = None
    seed: Optional[int] = None

    algorithm = Algorithm.GIBBS

    def validate(self) -> None:
        if self.starts < 1:
            raise ConstructionError(f"The number of starts has to be at least 1, got {self.starts}")
        if self.initial_iteration < 1:
            raise ConstructionError(
                f"The number of initial iterations has to be at least 1, got {self.initial_iteration}"
            )
        if self.stationary_iteration < 1:
            raise ConstructionError(
                f"The number of stationary iterations has to be at least 1, got {self.stationary_iteration}"
            )
        if self.initial_iteration * self.starts > self.stationary_iteration:
            raise ConstructionError(
                "The number of initial iterations has to be at most stationary_iteration / starts, "
                f"got {self.initial_iteration} * {self.starts} > {self.stationary_iteration}"
            )
        if self.burn_in_test is None:
            raise ConstructionError("A burn-in test is required for Gibbs sampling")

    def to_record(self) -> dict:
        return {
            "algorithm": self.algorithm.value,
            "starts": self.starts,
            "initial_iteration": self.initial_iteration,
            "stationary_iteration": self.stationary_iteration,
            "burn_in_test": self.burn_in_test.to_record(),
            "chain_dir": self.chain_dir,
            "seed": self.seed,
        }


TrainingConfig = Union[EMConfig, GibbsConfig]


def create_em_config(
    starts: int = 1,
    alpha: float = 1.0,
    termination: Optional[TerminationCondition] = None,
    epsilon: float = 1e-6,
    parameterization: Union[Parameterization, str] = Parameterization.LAMBDA,
    strict_monotonicity: bool = False,
    seed: Optional[int] = None,
) -> EMConfig:
    """Build a validated EM config; ``epsilon`` is used when no termination condition is given."""
    if isinstance(parameterization, str):
        parameterization = Parameterization[parameterization.upper()]
    config = EMConfig(
        starts=starts,
        alpha=alpha,
        termination=termination if termination is not None else SmallDifferenceCondition(epsilon),
        parameterization=parameterization,
        strict_monotonicity=strict_monotonicity,
        seed=seed,
    )
    config.validate()
    return config


def create_gibbs_config(
    starts: int,
    initial_iteration: int,
    stationary_iteration: int,
    burn_in_test: BurnInTest,
    chain_dir: Optional[str] = None,
    seed: Optional[int] = None,
) -> GibbsConfig:
    """Build a validated Gibbs sampling config."""
    config = GibbsConfig(
        starts=starts,
        initial_iteration=initial_iteration,
        stationary_iteration=stationary_iteration,
        burn_in_test=burn_in_test,
        chain_dir=chain_dir,
        seed=seed,
    )
    config.validate()
    return config


def config_from_record(record: dict) -> TrainingConfig:
    """Rebuild a config from ``to_record`` output."""
    if record["algorithm"] == Algorithm.EM.value:
        return EMConfig(
            starts=record["starts"],
            alpha=record["alpha"],
            termination=termination_registry.from_record(record["termination"]),
            parameterization=Parameterization[record["parameterization"]],
            strict_monotonicity=record["strict_monotonicity"],
            seed=record["seed"],
        )
    return GibbsConfig(
        starts=record["starts"],
        initial_iteration=record["initial_iteration"],
        stationary_iteration=record["stationary_iteration"],
        burn_in_test=burn_in_registry.from_record(record["burn_in_test"]),
        chain_dir=record.get("chain_dir"),
        seed=record["seed"],
    )
