"""Mixture with one component model per mixture component."""

from __future__ import annotations

import logging
from typing import Optional, Sequence

import numpy as np

from seqmix.components import ComponentModel
from seqmix.config import Algorithm, TrainingConfig
from seqmix.errors import UnsupportedOperationError
from seqmix.generators import SimplexGenerator
from seqmix.ragged import RaggedData, concat_ragged
from seqmix.registry import model_registry
from seqmix.trainer import MixtureTrainer


@model_registry.register("mixture")
class MixtureModel(MixtureTrainer):
    """
    Finite mixture ``p(x) = sum_c p(c) p(x | c)`` of independent component models.

    Parameters
    ----------
    length : int
        Length of the modelled sequences, 0 for homogeneous mixtures.
    components : sequence of ComponentModel
        One model per mixture component.
    config : EMConfig or GibbsConfig
        Algorithm and its settings.
    estimate_component_probs : bool
        If False the component probabilities stay at ``weights``.
    component_hyper_params : sequence of float, optional
        Dirichlet hyperparameters of the component probabilities.
    weights : sequence of float, optional
        Initial (or fixed) component probabilities.
    optimize : sequence of bool, optional
        Per-component switch whether the component is trained.
    """

    def __init__(
        self,
        length: int,
        components: Sequence[ComponentModel],
        config: TrainingConfig,
        estimate_component_probs: bool = True,
        component_hyper_params: Optional[Sequence[float]] = None,
        weights: Optional[Sequence[float]] = None,
        optimize: Optional[Sequence[bool]] = None,
    ):
        super().__init__(
            length,
            components,
            len(components),
            config,
            estimate_component_probs=estimate_component_probs,
            component_hyper_params=component_hyper_params,
            weights=weights,
            optimize=optimize,
        )

    def set_train_data(self, data: RaggedData) -> None:
        self._data = [data]

    def do_first_iteration(self, data_weights, generator: SimplexGenerator, params, rng) -> np.ndarray:
        seq_weights = self.create_seq_weights_array()
        w = self.estimator.initial_statistic()
        for j in range(seq_weights.shape[1]):
            split = generator.draw(rng, self.dimension, params)
            if data_weights is not None:
                split = split * data_weights[j]
            seq_weights[:, j] = split
        w += seq_weights.sum(axis=1)
        self.get_new_parameters(0, seq_weights, w, rng)
        return seq_weights

    def do_first_iteration_with_partitioning(
        self,
        data: RaggedData,
        data_weights: Optional[Sequence[float]],
        partitioning: np.ndarray,
        rng: Optional[np.random.Generator] = None,
    ) -> np.ndarray:
        """Bootstrap the first M-step from a given membership matrix of shape ``(n, dimension)``."""
        if self.dimension < 2:
            raise UnsupportedOperationError("A partitioning requires at least two components")
        self._data = None
        self.set_train_data(data)
        partitioning = np.asarray(partitioning, dtype=np.float64)
        if partitioning.shape != (data.num_sequences, self.dimension):
            raise ValueError(
                f"The partitioning has shape {partitioning.shape}, expected {(data.num_sequences, self.dimension)}"
            )
        if np.any(partitioning < 0) or np.any(partitioning > 1):
            row = int(np.flatnonzero(((partitioning < 0) | (partitioning > 1)).any(axis=1))[0])
            raise ValueError(f"The partitioning for sequence {row} was wrong (part outside [0, 1])")
        sums = partitioning.sum(axis=1)
        if not np.allclose(sums, 1.0, rtol=0.0, atol=1e-9):
            row = int(np.flatnonzero(~np.isclose(sums, 1.0, rtol=0.0, atol=1e-9))[0])
            raise ValueError(f"The partitioning for sequence {row} was wrong (sum of parts not 1)")

        factors = np.ones(data.num_sequences) if data_weights is None else np.asarray(data_weights, dtype=np.float64)
        seq_weights = (partitioning * factors[:, None]).T.copy()
        w = self.estimator.initial_statistic() + seq_weights.sum(axis=1)
        self.get_new_parameters(0, seq_weights, w, self._rng(rng))
        return seq_weights

    def get_new_weights(self, data_weights, w: np.ndarray, seq_weights: np.ndarray, rng) -> float:
        w[:] = self.estimator.initial_statistic()
        data = self._data[0]
        scores = np.empty((self.dimension, data.num_sequences), dtype=np.float64)
        for c in range(self.dimension):
            scores[c] = self.components[c].log_probs(data) + self._log_weights[c]

        total = 0.0
        for j in range(data.num_sequences):
            current = 1.0 if data_weights is None else data_weights[j]
            column = scores[:, j].copy()
            log_sum = self.modify_weights(column, rng)
            if current != 0:
                total += log_sum * current
            seq_weights[:, j] = column * current
        w += seq_weights.sum(axis=1)
        return total

    def log_prob_with_current_parameters(self, component: int, seq: np.ndarray, start: int, end: int) -> float:
        return self._log_weights[component] + self.components[component].log_prob(seq, start, end)

    def log_probs_with_current_parameters(self, data: RaggedData) -> np.ndarray:
        return np.stack([self.components[c].log_probs(data) + self._log_weights[c] for c in range(self.dimension)])

    def emit_sample_with_current_parameters(
        self, n: int, lengths: Optional[Sequence[int]], rng: np.random.Generator
    ) -> RaggedData:
        numbers = np.bincount(rng.choice(self.dimension, size=n, p=self._weights), minlength=self.dimension)
        parts = []
        offset = 0
        for c in range(self.dimension):
            k = int(numbers[c])
            if k == 0:
                continue
            part_lengths = lengths if lengths is None or len(lengths) <= 1 else lengths[offset : offset + k]
            parts.append(self.components[c].emit_sample(k, part_lengths, rng))
            offset += k
        return concat_ragged(parts)

    @classmethod
    def from_record(cls, record: dict) -> "MixtureModel":
        estimator = record["estimator"]
        model = cls(
            record["length"],
            cls._components_from_record(record),
            cls._config_from_record(record),
            estimate_component_probs=estimator["estimate"],
            component_hyper_params=estimator["hyper_params"] if estimator["estimate"] else None,
            weights=record["weights"],
            optimize=record["optimize"],
        )
        model._restore_state(record)
        logger = logging.getLogger(__name__)
        logger.debug(f"Restored mixture with {model.dimension} component(s)")
        return model

    def __repr__(self) -> str:
        algorithm = "EM" if self.algorithm is Algorithm.EM else "Gibbs sampling"
        lines = [f"Mixture model with parameter estimation by {algorithm}", f"number of starts:\t{self.config.starts}"]
        for c in range(self.dimension):
            lines.append(f"{self._weights[c]:.6f}\t{self.components[c]!r}")
        return "\n".join(lines)
