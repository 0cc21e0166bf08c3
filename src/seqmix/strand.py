"""Two-component mixture over the forward and the reverse strand."""

from __future__ import annotations

from typing import Optional, Sequence

import numpy as np

from seqmix.components import ComponentModel
from seqmix.config import Algorithm, TrainingConfig
from seqmix.errors import ConstructionError
from seqmix.generators import SimplexGenerator
from seqmix.ragged import RaggedData, interleave_strands, ragged_from_list, reverse_complement, reverse_complement_all
from seqmix.registry import model_registry
from seqmix.trainer import MixtureTrainer

DNA_ALPHABET_SIZE = 4


@model_registry.register("strand")
class StrandMixture(MixtureTrainer):
    """
    Mixture of one sequence model used on both strands.

    Component 0 scores a sequence as given, component 1 scores its reverse
    complement with the same inner model. Training doubles every sequence
    into the pair ``(seq, rc(seq))`` so that the inner model is trained on
    both orientations weighted by their responsibilities.

    Parameters
    ----------
    component : ComponentModel
        Inner model over the DNA alphabet.
    config : EMConfig or GibbsConfig
        Algorithm and its settings.
    forward_strand_prob : float
        Initial (or fixed) probability of the forward strand.
    estimate_component_probs : bool
        If False the strand probabilities stay fixed.
    component_hyper_params : sequence of float, optional
        Dirichlet hyperparameters of the two strand probabilities.
    """

    def __init__(
        self,
        component: ComponentModel,
        config: TrainingConfig,
        forward_strand_prob: float = 0.5,
        estimate_component_probs: bool = True,
        component_hyper_params: Optional[Sequence[float]] = None,
    ):
        if component.alphabet_size != DNA_ALPHABET_SIZE:
            raise ConstructionError(
                "The strand mixture needs a model over a complementable alphabet of size 4, "
                f"got {component.alphabet_size}"
            )
        super().__init__(
            component.length,
            [component],
            2,
            config,
            estimate_component_probs=estimate_component_probs,
            component_hyper_params=component_hyper_params,
            weights=[forward_strand_prob, 1.0 - forward_strand_prob],
        )

    def set_train_data(self, data: RaggedData) -> None:
        self._data = [interleave_strands(data)]

    def do_first_iteration(self, data_weights, generator: SimplexGenerator, params, rng) -> np.ndarray:
        seq_weights = self.create_seq_weights_array()
        w = self.estimator.initial_statistic()
        for j in range(seq_weights.shape[1] // 2):
            split = generator.draw(rng, 2, params)
            if data_weights is not None:
                split = split * data_weights[j]
            seq_weights[0, 2 * j : 2 * j + 2] = split
            w += split
        self.get_new_parameters(0, seq_weights, w, rng)
        return seq_weights

    def get_new_weights(self, data_weights, w: np.ndarray, seq_weights: np.ndarray, rng) -> float:
        w[:] = self.estimator.initial_statistic()
        scores = self.components[0].log_probs(self._data[0]).reshape(-1, 2) + self._log_weights

        total = 0.0
        for j in range(scores.shape[0]):
            current = 1.0 if data_weights is None else data_weights[j]
            pair = scores[j].copy()
            log_sum = self.modify_weights(pair, rng)
            if current != 0:
                total += log_sum * current
            seq_weights[0, 2 * j : 2 * j + 2] = pair * current
            w += pair * current
        return total

    def log_prob_with_current_parameters(self, component: int, seq: np.ndarray, start: int, end: int) -> float:
        if component == 0:
            return self._log_weights[0] + self.components[0].log_prob(seq, start, end)
        if component == 1:
            n = len(seq)
            return self._log_weights[1] + self.components[0].log_prob(reverse_complement(seq), n - end, n - start)
        raise IndexError("component has to be in [0, 1]; 0 = forward strand, 1 = reverse strand")

    def log_probs_with_current_parameters(self, data: RaggedData) -> np.ndarray:
        forward = self.components[0].log_probs(data) + self._log_weights[0]
        reverse = self.components[0].log_probs(reverse_complement_all(data)) + self._log_weights[1]
        return np.stack([forward, reverse])

    def emit_sample_with_current_parameters(
        self, n: int, lengths: Optional[Sequence[int]], rng: np.random.Generator
    ) -> RaggedData:
        sample = self.components[0].emit_sample(n, lengths, rng)
        flips = rng.random(n) >= self._weights[0]
        sequences = [reverse_complement(seq) if flip else seq.copy() for seq, flip in zip(sample, flips)]
        return ragged_from_list(sequences, dtype=np.int8)

    @classmethod
    def from_record(cls, record: dict) -> "StrandMixture":
        estimator = record["estimator"]
        model = cls(
            cls._components_from_record(record)[0],
            cls._config_from_record(record),
            forward_strand_prob=record["weights"][0],
            estimate_component_probs=estimator["estimate"],
            component_hyper_params=estimator["hyper_params"] if estimator["estimate"] else None,
        )
        model._restore_state(record)
        return model

    def __repr__(self) -> str:
        if self.algorithm is Algorithm.EM:
            return (
                f"Strand model with parameter estimation by EM (starts: {self.config.starts})\n"
                f"{self._weights[0]:.6f}\tforward strand\n"
                f"{self._weights[1]:.6f}\treverse strand\n"
                f"{self.components[0]!r}"
            )
        return (
            f"Strand model with parameter estimation by Gibbs sampling (starts: {self.config.starts})\n"
            f"burn-in test: {type(self.config.burn_in_test).__name__}\n"
            f"length of stationary phase: {self.config.stationary_iteration}\n"
            f"strand model component: {self.components[0]!r}"
        )
