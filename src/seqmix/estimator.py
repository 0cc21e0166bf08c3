"""Estimation of mixture component probabilities under a Dirichlet prior."""

from __future__ import annotations

from enum import Enum
from typing import Optional, Sequence

import numpy as np
from scipy.special import gammaln

from seqmix.errors import ConstructionError


class Parameterization(Enum):
    """Parameterization of a component probability.

    THETA parameterizes ``p(c)`` directly, LAMBDA parameterizes ``log p(c)``.
    The value is the pseudo-count added to the Dirichlet hyperparameters in
    the MAP estimate.
    """

    THETA = -1.0
    LAMBDA = 0.0

    @property
    def count(self) -> float:
        return self.value


class ComponentProbabilityEstimator:
    """
    Turns accumulated per-component statistics into component probabilities.

    Parameters
    ----------
    dimension : int
        Number of mixture components.
    hyper_params : sequence of float, optional
        Dirichlet hyperparameters. None or all zero means maximum likelihood,
        all positive means maximum a-posteriori. Mixing zero and positive
        entries is rejected.
    estimate : bool
        Whether component probabilities are estimated at all.
    parameterization : Parameterization
        Determines the pseudo-count of the MAP estimate and of the prior.
    """

    def __init__(
        self,
        dimension: int,
        hyper_params: Optional[Sequence[float]] = None,
        estimate: bool = True,
        parameterization: Parameterization = Parameterization.LAMBDA,
    ):
        if dimension < 1:
            raise ConstructionError(f"The dimension has to be at least 1, got {dimension}")
        self.dimension = dimension
        self.estimate = estimate
        self.parameterization = parameterization

        if not estimate or hyper_params is None:
            self.hyper_params = np.zeros(dimension, dtype=np.float64)
        else:
            hyper = np.asarray(hyper_params, dtype=np.float64)
            if hyper.shape != (dimension,):
                raise ConstructionError(
                    f"The component hyperparameters have length {hyper.size}, expected {dimension}"
                )
            if np.any(hyper < 0) or (np.any(hyper == 0) and np.any(hyper > 0)):
                raise ConstructionError(
                    "The component hyperparameters have to be either all zero or all positive, "
                    f"got {hyper.tolist()}"
                )
            self.hyper_params = hyper.copy()

    @property
    def ess(self) -> float:
        """Equivalent sample size of the prior."""
        return float(self.hyper_params.sum())

    @property
    def is_map(self) -> bool:
        return self.estimate and bool(self.hyper_params[0] > 0)

    def initial_statistic(self) -> np.ndarray:
        """Return the statistic before any responsibility has been added."""
        return self.hyper_params.copy()

    def estimate_weights(self, statistic: np.ndarray) -> np.ndarray:
        """Return the EM estimate of the component probabilities."""
        w = np.array(statistic, dtype=np.float64)
        if self.is_map:
            w += self.parameterization.count
        negative = np.flatnonzero(w < 0)
        if negative.size:
            raise ValueError(f"Every weight has to be at least 0. Violated at position {negative[0]}.")
        return w / w.sum()

    def draw(self, statistic: np.ndarray, rng: np.random.Generator) -> np.ndarray:
        """Draw component probabilities from the Dirichlet posterior with concentration ``statistic``."""
        return rng.dirichlet(np.asarray(statistic, dtype=np.float64))

    def log_prior(self, log_weights: np.ndarray) -> float:
        """Log Dirichlet prior of the current component probabilities (0 for ML)."""
        if not self.is_map:
            return 0.0
        coefficients = self.hyper_params + self.parameterization.count
        with np.errstate(invalid="ignore"):
            terms = np.where(coefficients != 0, coefficients * log_weights, 0.0)
        return float(terms.sum() - gammaln(self.hyper_params).sum() + gammaln(self.ess))

    def to_record(self) -> dict:
        return {
            "dimension": self.dimension,
            "hyper_params": self.hyper_params.tolist(),
            "estimate": self.estimate,
            "parameterization": self.parameterization.name,
        }

    @classmethod
    def from_record(cls, record: dict) -> "ComponentProbabilityEstimator":
        hyper = record["hyper_params"] if record["estimate"] else None
        return cls(record["dimension"], hyper, record["estimate"], Parameterization[record["parameterization"]])
