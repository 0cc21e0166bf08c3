"""
trainer
=======

Training engine for finite mixtures of sequence models.

A ``MixtureTrainer`` fits component probabilities and component models either
by expectation maximization (EM) with several random restarts or by Gibbs
sampling with several chains. Concrete mixtures only supply five hooks:

- ``set_train_data`` prepares the internal datasets,
- ``do_first_iteration`` bootstraps the first E-step from random memberships,
- ``get_new_weights`` computes responsibilities and the log-likelihood,
- ``log_prob_with_current_parameters`` scores one sequence under one component,
- ``emit_sample_with_current_parameters`` draws sequences.

EM keeps two arrays of components. Every restart trains the *current* array;
when it beats the best score so far, the arrays are swapped so the winner is
parked as *alternative* while the next restart overwrites the other one. A
final swap installs the best restart.

Gibbs sampling records the component probabilities of every step in one
disk-backed trajectory per chain (see ``seqmix.chains``); scoring and emission
average over all samples after the burn-in.
"""

from __future__ import annotations

import copy
import logging
import math
import time
from abc import abstractmethod
from enum import Enum
from typing import Iterator, List, Optional, Sequence

import numpy as np
from scipy.special import logsumexp

from seqmix.chains import ChainStore
from seqmix.components import ComponentKind, ComponentModel
from seqmix.config import Algorithm, TrainingConfig, config_from_record
from seqmix.errors import (
    ConstructionError,
    NotTrainedError,
    NumericalAnomalyError,
    TrainingPreconditionError,
    UnsupportedOperationError,
)
from seqmix.estimator import ComponentProbabilityEstimator, Parameterization
from seqmix.functions import draw_index, log_sum_normalize
from seqmix.generators import DirichletGenerator, OneOfNGenerator, SimplexGenerator
from seqmix.ragged import RaggedData, concat_ragged
from seqmix.registry import model_registry

# Relative size of a score decrease that is attributed to rounding.
MONOTONICITY_TOLERANCE = 1e-12


class TrainingState(Enum):
    INITIALIZING = "initializing"
    ITERATING = "iterating"
    ACCEPTED = "accepted"
    FINALIZED = "finalized"


class MixtureTrainer(ComponentModel):
    """
    Abstract mixture of sequence models trained by EM or Gibbs sampling.

    Parameters
    ----------
    length : int
        Length of the modelled sequences, 0 for homogeneous mixtures.
    components : sequence of ComponentModel
        Component models; the trainer takes ownership of them.
    dimension : int
        Number of mixture components (may differ from ``len(components)``
        when components are shared).
    config : EMConfig or GibbsConfig
        Algorithm and its settings.
    estimate_component_probs : bool
        Whether the component probabilities are estimated or kept fixed.
    component_hyper_params : sequence of float, optional
        Dirichlet hyperparameters of the component probabilities.
    weights : sequence of float, optional
        Initial component probabilities, uniform if None.
    optimize : sequence of bool, optional
        Per-component switch whether the component is trained or frozen.

    Attributes
    ----------
    best : float
        Score of the best EM restart.
    state : TrainingState
        Position in the training life cycle.
    """

    kind = ComponentKind.NESTED_MIXTURE

    def __init__(
        self,
        length: int,
        components: Sequence[ComponentModel],
        dimension: int,
        config: TrainingConfig,
        estimate_component_probs: bool = True,
        component_hyper_params: Optional[Sequence[float]] = None,
        weights: Optional[Sequence[float]] = None,
        optimize: Optional[Sequence[bool]] = None,
    ):
        if not components:
            raise ConstructionError("A mixture needs at least one component model")
        super().__init__(length, components[0].alphabet_size)
        config.validate()
        self.config = config
        self.algorithm = config.algorithm

        parameterization = config.parameterization if self.algorithm is Algorithm.EM else Parameterization.LAMBDA
        self.estimator = ComponentProbabilityEstimator(
            dimension, component_hyper_params, estimate_component_probs, parameterization
        )
        self.dimension = dimension
        if self.algorithm is Algorithm.GIBBS and estimate_component_probs and not self.estimator.is_map:
            raise ConstructionError("The component hyperparameters have to be positive for Gibbs sampling")

        self._set_components(components, optimize)
        self._weights = np.full(dimension, 1.0 / dimension)
        self._log_weights = np.log(self._weights)
        self.set_weights(self._weights if weights is None else weights)

        self.best = -np.inf
        self.state = TrainingState.INITIALIZING
        self._has_run = False
        self._data: Optional[List[RaggedData]] = None
        self._alternative: Optional[List[ComponentModel]] = None
        self._used_weights: List[Optional[np.ndarray]] = [None] * len(self.components)
        self._seq_weights: Optional[np.ndarray] = None
        self._random: Optional[np.random.Generator] = None
        self._chains = ChainStore(config.chain_dir) if self.algorithm is Algorithm.GIBBS else None

    def _set_components(self, components: Sequence[ComponentModel], optimize: Optional[Sequence[bool]]) -> None:
        for i, component in enumerate(components):
            if component.alphabet_size != self.alphabet_size:
                raise ConstructionError(
                    f"The components have to share the alphabet size {self.alphabet_size}. Violated at position {i}."
                )
            if component.length != 0 and component.length != self.length:
                raise ConstructionError(
                    f"The components have to use the length {self.length} of the mixture. Violated at position {i}."
                )
        if optimize is None:
            optimize = [True] * len(components)
        elif len(optimize) != len(components):
            raise ConstructionError(f"Got {len(optimize)} optimize flags for {len(components)} components")

        self.components: List[ComponentModel] = list(components)
        self.optimize = [bool(flag) for flag in optimize]
        self._kinds = [component.kind for component in self.components]

        for i, (kind, flag) in enumerate(zip(self._kinds, self.optimize)):
            if not flag:
                continue
            if self.algorithm is Algorithm.GIBBS and kind is not ComponentKind.SAMPLING:
                raise ConstructionError(f"The model for component {i} does not support Gibbs sampling")
            if kind is ComponentKind.NESTED_MIXTURE and self.components[i].algorithm is not Algorithm.EM:
                raise ConstructionError(f"The nested mixture at position {i} has to be trained by EM")

    # Parameters

    @property
    def weights(self) -> np.ndarray:
        return self._weights.copy()

    @property
    def log_weights(self) -> np.ndarray:
        return self._log_weights.copy()

    @property
    def ess(self) -> float:
        return self.estimator.ess

    @property
    def number_of_components(self) -> int:
        return self.dimension

    @property
    def algorithm_has_been_run(self) -> bool:
        return self._has_run

    def get_component(self, index: int) -> ComponentModel:
        """Return a deep copy of component model ``index``."""
        return self.components[index].clone()

    def set_weights(self, *weights) -> None:
        """Set the component probabilities, given as one sequence or as separate values."""
        if len(weights) == 1 and np.ndim(weights[0]) == 1:
            w = np.array(weights[0], dtype=np.float64)
        else:
            w = np.array(weights, dtype=np.float64)
        if w.shape != (self.dimension,):
            raise ConstructionError(f"Got {w.size} weights for {self.dimension} components")
        negative = np.flatnonzero(w < 0)
        if negative.size:
            raise ConstructionError(f"Every weight has to be at least 0. Violated at position {negative[0]}.")
        if abs(1.0 - w.sum()) > 1e-9:
            raise ConstructionError(f"The weights do not sum to 1, got {w.sum()}")
        self._install_weights(w)

    def _install_weights(self, w: np.ndarray) -> None:
        self._weights = np.array(w, dtype=np.float64)
        with np.errstate(divide="ignore"):
            self._log_weights = np.log(self._weights)

    def _rng(self, rng: Optional[np.random.Generator]) -> np.random.Generator:
        if rng is not None:
            return rng
        if self._random is None:
            self._random = np.random.default_rng(self.config.seed)
        return self._random

    def _generator(self) -> SimplexGenerator:
        if self.algorithm is Algorithm.EM:
            return DirichletGenerator(self.config.alpha)
        return OneOfNGenerator()

    # Hooks

    @abstractmethod
    def set_train_data(self, data: RaggedData) -> None:
        """Store the internal datasets in ``self._data``."""
        raise NotImplementedError

    @abstractmethod
    def do_first_iteration(
        self,
        data_weights: Optional[np.ndarray],
        generator: SimplexGenerator,
        params,
        rng: np.random.Generator,
    ) -> np.ndarray:
        """Bootstrap the first M-step from random memberships and return the sequence weights."""
        raise NotImplementedError

    @abstractmethod
    def get_new_weights(
        self,
        data_weights: Optional[np.ndarray],
        w: np.ndarray,
        seq_weights: np.ndarray,
        rng: np.random.Generator,
    ) -> float:
        """E-step: fill ``seq_weights`` and the statistic ``w``, return the log-likelihood."""
        raise NotImplementedError

    @abstractmethod
    def log_prob_with_current_parameters(self, component: int, seq: np.ndarray, start: int, end: int) -> float:
        """Return ``log p(c) + log p(seq[start:end] | c)`` under the current parameters."""
        raise NotImplementedError

    @abstractmethod
    def emit_sample_with_current_parameters(
        self, n: int, lengths: Optional[Sequence[int]], rng: np.random.Generator
    ) -> RaggedData:
        raise NotImplementedError

    def log_probs_with_current_parameters(self, data: RaggedData) -> np.ndarray:
        """Return the ``(dimension, n)`` matrix of joint log probabilities of every sequence."""
        out = np.empty((self.dimension, data.num_sequences), dtype=np.float64)
        for j, seq in enumerate(data):
            for c in range(self.dimension):
                out[c, j] = self.log_prob_with_current_parameters(c, seq, 0, len(seq))
        return out

    def create_seq_weights_array(self) -> np.ndarray:
        return np.zeros((len(self.components), self._data[0].num_sequences), dtype=np.float64)

    # Training

    def train(
        self,
        data: RaggedData,
        data_weights: Optional[Sequence[float]] = None,
        rng: Optional[np.random.Generator] = None,
    ) -> None:
        """Train the mixture on ``data`` with optional per-sequence weights."""
        logger = logging.getLogger(__name__)
        rng = self._rng(rng)
        if data_weights is not None:
            data_weights = np.asarray(data_weights, dtype=np.float64)
        self._data = None
        self.set_train_data(data)
        generator = self._generator()

        if self.algorithm is Algorithm.EM:
            if self._alternative is None:
                self._alternative = [component.clone() for component in self.components]
            best = -np.inf
            best_weights = self._weights.copy()
            for start in range(self.config.starts):
                current = self.iterate(start, data_weights, generator, None, rng)
                if start == 0 or best < current:
                    self.swap()
                    best_weights = self._weights.copy()
                    best = current
                    self.state = TrainingState.ACCEPTED
                    logger.info(f"Start {start}: new best score {current:.6f}")
                else:
                    logger.info(f"Start {start}: score {current:.6f} (best {best:.6f})")
            self.swap()
            self.set_weights(best_weights)
            self.best = best
            logger.info(f"best = {best}")
        else:
            test = self.config.burn_in_test
            starts = self.config.starts
            stationary = self.config.stationary_iteration
            test.reset_all_values()
            self.init_model_for_sampling(starts)
            for start in range(starts):
                self.iterate(start, data_weights, generator, None, rng)
            while True:
                burn_in = test.get_length_of_burn_in()
                counter = self._chains.counter
                retained = int(np.maximum(counter - burn_in, 0).sum())
                if np.all(counter > burn_in) and retained >= stationary:
                    break
                extra = max(math.ceil((stationary - retained) / starts), 1)
                logger.info(f"Burn-in {burn_in}, {retained} retained sample(s): extending every chain by {extra}")
                for start in range(starts):
                    logger.debug(f"=== extend start: {start} ==========")
                    self.continue_fixed_iterations(data_weights, self._seq_weights, extra, start, rng)
            logger.info(f"Sampling finished: burn-in {burn_in}, {retained} retained sample(s)")
        self.state = TrainingState.FINALIZED

    def swap(self) -> None:
        """Exchange the current and the alternative component arrays."""
        self.components, self._alternative = self._alternative, self.components

    def iterate(
        self,
        start: int,
        data_weights: Optional[np.ndarray],
        generator: SimplexGenerator,
        params,
        rng: np.random.Generator,
    ) -> float:
        """Run one restart (EM) or the initial iterations of one chain (Gibbs)."""
        logger = logging.getLogger(__name__)
        logger.debug(f"========== start: {start} ==========")
        self.state = TrainingState.ITERATING
        if self.algorithm is Algorithm.EM:
            seq_weights = self.do_first_iteration(data_weights, generator, params, rng)
            self.best = self.continue_iterations(data_weights, seq_weights, rng)
        else:
            self.extend_sampling(start)
            self.config.burn_in_test.set_current_sampling_index(start)
            self._seq_weights = self.do_first_iteration(data_weights, generator, params, rng)
            self.sampling_stopped()
            self.continue_fixed_iterations(
                data_weights, self._seq_weights, self.config.initial_iteration, start, rng
            )
        self._has_run = True
        return self.best

    def iterate_on(
        self, data: RaggedData, data_weights: Optional[np.ndarray] = None, rng: Optional[np.random.Generator] = None
    ) -> float:
        """Set ``data`` as training data and run a single restart."""
        self._data = None
        self.set_train_data(data)
        return self.iterate(0, data_weights, self._generator(), None, self._rng(rng))

    def do_first_iteration_on(
        self, data: RaggedData, data_weights: Optional[np.ndarray] = None, rng: Optional[np.random.Generator] = None
    ) -> np.ndarray:
        """Set ``data`` as training data and bootstrap the first M-step; used for nested mixtures."""
        self._data = None
        self.set_train_data(data)
        return self.do_first_iteration(data_weights, DirichletGenerator(self.config.alpha), None, self._rng(rng))

    def continue_iterations(
        self,
        data_weights: Optional[np.ndarray],
        seq_weights: Optional[np.ndarray],
        rng: Optional[np.random.Generator] = None,
    ) -> float:
        """Iterate EM until the termination condition stops; return the final score."""
        if self.algorithm is not Algorithm.EM:
            raise UnsupportedOperationError("Iterating until convergence is only defined for EM")
        if self._data is None:
            raise TrainingPreconditionError(
                "There is no reference to the training data, so the training can not be continued"
            )
        logger = logging.getLogger(__name__)
        rng = self._rng(rng)
        w = np.zeros(self.dimension, dtype=np.float64)
        if seq_weights is None:
            seq_weights = self.create_seq_weights_array()
        termination = self.config.termination
        started = time.perf_counter()

        iteration = 0
        prior = self.get_log_prior_term()
        f_last = -np.inf
        f_current = self.get_new_weights(data_weights, w, seq_weights, rng) + prior
        logger.debug(f"{iteration}\t{f_current}\t{prior}")
        while termination.do_next_iteration(
            iteration, f_last, f_current, elapsed_seconds=time.perf_counter() - started
        ):
            iteration += 1
            self.get_new_parameters(iteration, seq_weights, w, rng)
            f_last = f_current
            prior = self.get_log_prior_term()
            f_current = self.get_new_weights(data_weights, w, seq_weights, rng) + prior
            logger.debug(f"{iteration}\t{f_current}\t{prior}\t{f_current - f_last}")
            self._check_monotonicity(iteration, f_last, f_current)
        return f_current

    def _check_monotonicity(self, iteration: int, f_last: float, f_current: float) -> None:
        if not f_current < f_last:
            return
        if f_last - f_current <= MONOTONICITY_TOLERANCE * max(abs(f_last), 1.0):
            logger = logging.getLogger(__name__)
            logger.debug(f"Negative step after {iteration} iterations caused by the limited precision of floats")
            return
        message = f"The score decreases after {iteration} iterations: {f_last} -> {f_current}"
        if self.config.strict_monotonicity:
            raise NumericalAnomalyError(message)
        logger = logging.getLogger(__name__)
        logger.warning(message)

    def continue_fixed_iterations(
        self,
        data_weights: Optional[np.ndarray],
        seq_weights: Optional[np.ndarray],
        iterations: int,
        start: int = 0,
        rng: Optional[np.random.Generator] = None,
    ) -> float:
        """Run exactly ``iterations`` steps; under Gibbs sampling they extend chain ``start``."""
        if self._data is None:
            raise TrainingPreconditionError(
                "There is no reference to the training data, so the training can not be continued"
            )
        logger = logging.getLogger(__name__)
        rng = self._rng(rng)
        gibbs = self.algorithm is Algorithm.GIBBS
        if gibbs:
            self.extend_sampling(start)
            self.config.burn_in_test.set_current_sampling_index(start)
        w = np.zeros(self.dimension, dtype=np.float64)
        if seq_weights is None:
            seq_weights = self.create_seq_weights_array()

        prior = self.get_log_prior_term()
        score = self.get_new_weights(data_weights, w, seq_weights, rng)
        step = int(self._chains.counter[start]) if gibbs else 0
        for i in range(iterations):
            total = score + prior
            logger.debug(f"{step + i}\t{total}\t{prior}")
            if gibbs:
                self.config.burn_in_test.set_value(total)
            self.get_new_parameters(i, seq_weights, w, rng)
            prior = self.get_log_prior_term()
            score = self.get_new_weights(data_weights, w, seq_weights, rng)
        if gibbs:
            self.sampling_stopped()
        return score + prior

    def get_new_parameters(
        self, iteration: int, seq_weights: np.ndarray, w: np.ndarray, rng: Optional[np.random.Generator] = None
    ) -> None:
        """M-step: update every optimized component, then the component probabilities."""
        rng = self._rng(rng)
        for i in range(seq_weights.shape[0]):
            self._get_new_parameters_for_model(i, iteration, 0, seq_weights[i], rng)
        self.get_new_component_probs(w, rng)

    def _get_new_parameters_for_model(
        self, index: int, iteration: int, sample_index: int, weights: np.ndarray, rng: np.random.Generator
    ) -> None:
        if not self.optimize[index]:
            return
        component = self.components[index]
        data = self._data[sample_index]
        if self.algorithm is Algorithm.GIBBS:
            component.draw_parameters(data, weights, rng)
            component.accept_parameters()
        elif self._kinds[index] is ComponentKind.NESTED_MIXTURE:
            if iteration == 0:
                self._used_weights[index] = component.do_first_iteration_on(data, weights, rng)
            else:
                component.continue_fixed_iterations(weights, self._used_weights[index], 1, 0, rng)
        else:
            component.train(data, weights)

    def get_new_component_probs(self, w: np.ndarray, rng: Optional[np.random.Generator] = None) -> None:
        """Update the component probabilities from the statistic ``w``."""
        if self.estimator.estimate:
            if self.algorithm is Algorithm.EM:
                self._install_weights(self.estimator.estimate_weights(w))
            else:
                self._install_weights(self.estimator.draw(w, self._rng(rng)))
        if self.algorithm is Algorithm.GIBBS:
            self._chains.append(self._weights)

    def modify_weights(self, w: np.ndarray, rng: Optional[np.random.Generator] = None) -> float:
        """Turn joint log probabilities into responsibilities in place; return their log-sum.

        Under Gibbs sampling the responsibilities are replaced by a hard
        assignment drawn from them.
        """
        log_sum = log_sum_normalize(w)
        if self.algorithm is Algorithm.GIBBS:
            index = draw_index(w, self._rng(rng).random())
            w[:] = 0.0
            w[index] = 1.0
        return log_sum

    # Scoring

    def _check_initialized(self) -> None:
        if not self.is_initialized():
            raise NotTrainedError("The mixture has not been trained")

    def _iter_retained_samples(self) -> Iterator[int]:
        """Replay every sample after the burn-in of every chain, yielding the chain index."""
        burn_in = self.config.burn_in_test.get_length_of_burn_in()
        for chain in range(self.config.starts):
            parsed = self.parse_parameter_set(chain, burn_in)
            while parsed:
                yield chain
                parsed = self.parse_next_parameter_set()

    def log_prob(self, seq: np.ndarray, start: int = 0, end: Optional[int] = None) -> float:
        self._check_initialized()
        end = len(seq) if end is None else end
        if self.algorithm is Algorithm.EM:
            return float(logsumexp(self._component_log_probs(seq, start, end)))

        result = -np.inf
        count = 0
        for _ in self._iter_retained_samples():
            result = np.logaddexp(result, logsumexp(self._component_log_probs(seq, start, end)))
            count += 1
        if count == 0:
            raise NotTrainedError("There is no sample after the burn-in")
        return float(result - np.log(count))

    def _component_log_probs(self, seq: np.ndarray, start: int, end: int) -> np.ndarray:
        return np.array(
            [self.log_prob_with_current_parameters(c, seq, start, end) for c in range(self.dimension)],
            dtype=np.float64,
        )

    def log_probs(self, data: RaggedData) -> np.ndarray:
        self._check_initialized()
        if self.algorithm is Algorithm.EM:
            return logsumexp(self.log_probs_with_current_parameters(data), axis=0)

        result = np.full(data.num_sequences, -np.inf)
        count = 0
        for _ in self._iter_retained_samples():
            result = np.logaddexp(result, logsumexp(self.log_probs_with_current_parameters(data), axis=0))
            count += 1
        if count == 0:
            raise NotTrainedError("There is no sample after the burn-in")
        return result - np.log(count)

    def get_log_prob_for_component(self, component: int, seq: np.ndarray) -> float:
        """Return ``log p(c) + log p(seq | c)``; unsupported under Gibbs because of label switching."""
        if self.algorithm is Algorithm.GIBBS:
            raise UnsupportedOperationError("Per-component scores are not defined for Gibbs sampling")
        return self.log_prob_with_current_parameters(component, seq, 0, len(seq))

    def index_of_maximal_component(self, seq: np.ndarray) -> int:
        """Return the component with the highest joint probability for ``seq``."""
        if self.algorithm is Algorithm.GIBBS:
            raise UnsupportedOperationError("Per-component scores are not defined for Gibbs sampling")
        self._check_initialized()
        return int(np.argmax(self._component_log_probs(seq, 0, len(seq))))

    def get_log_prior_term(self) -> float:
        if self.algorithm is Algorithm.GIBBS:
            return 0.0
        prior = sum(
            component.get_log_prior_term()
            for component, flag in zip(self.components, self.optimize)
            if flag
        )
        return prior + self.estimator.log_prior(self._log_weights)

    def get_score_for_best_run(self) -> float:
        if not self._has_run:
            raise NotTrainedError("The mixture has not been trained")
        if self.algorithm is not Algorithm.EM:
            raise UnsupportedOperationError("The score of the best run is only defined for EM")
        return self.best

    def is_initialized(self) -> bool:
        if self.algorithm is Algorithm.EM:
            return all(component.is_initialized() for component in self.components)
        return self._has_run

    def emit_sample(
        self, n: int, lengths: Optional[Sequence[int]] = None, rng: Optional[np.random.Generator] = None
    ) -> RaggedData:
        self._check_initialized()
        rng = self._rng(rng)
        if self.algorithm is Algorithm.EM:
            return self.emit_sample_with_current_parameters(n, lengths, rng)

        burn_in = self.config.burn_in_test.get_length_of_burn_in()
        total = int(np.maximum(self._chains.counter - burn_in, 0).sum())
        per_sample = np.bincount(rng.integers(total, size=n), minlength=total)
        parts = []
        offset = 0
        for position, _ in enumerate(self._iter_retained_samples()):
            if position >= total:
                break
            k = int(per_sample[position])
            if k == 0:
                continue
            part_lengths = lengths if lengths is None or len(lengths) <= 1 else lengths[offset : offset + k]
            parts.append(self.emit_sample_with_current_parameters(k, part_lengths, rng))
            offset += k
        return concat_ragged(parts)

    # Gibbs sampling

    def _sampling_components(self) -> List[ComponentModel]:
        return [component for component, flag in zip(self.components, self.optimize) if flag]

    def init_model_for_sampling(self, starts: int) -> None:
        self._chains.init_for_sampling(starts)
        for component in self._sampling_components():
            component.init_for_sampling(starts)

    def extend_sampling(self, chain: int) -> None:
        """Open ``chain`` for writing, restoring the state of its last sample."""
        last = self._chains.extend(chain)
        if last is not None:
            self._install_weights(last)
        for component in self._sampling_components():
            component.extend_sampling(chain, True)

    def sampling_stopped(self) -> None:
        for component in self._sampling_components():
            component.sampling_stopped()
        self._chains.stop()

    def parse_parameter_set(self, chain: int, step: int) -> bool:
        """Load the parameters of ``step`` of ``chain``; False if the chain has no such step."""
        parsed = True
        for component in self._sampling_components():
            parsed = component.parse_parameter_set(chain, step) and parsed
        values = self._chains.replay(chain, step)
        if values is None:
            return False
        self._install_weights(values)
        return parsed

    def parse_next_parameter_set(self) -> bool:
        values = self._chains.next_values()
        if values is None:
            return False
        self._install_weights(values)
        for component in self._sampling_components():
            if not component.parse_next_parameter_set():
                return False
        return True

    def is_in_sampling_mode(self) -> bool:
        if self._chains is None or not self._chains.is_writing:
            return False
        return all(component.is_in_sampling_mode() for component in self._sampling_components())

    def chain_frame(self, chain: int):
        """Return the trajectory of the component probabilities of ``chain`` as a DataFrame."""
        if self._chains is None:
            raise UnsupportedOperationError("Only Gibbs sampling keeps chains")
        return self._chains.to_frame(chain, columns=[f"w{i}" for i in range(self.dimension)])

    # Resources and persistence

    def close(self) -> None:
        """Delete every chain file owned by the mixture and its components."""
        if self._chains is not None:
            self._chains.close()
        for component in self.components + (self._alternative or []):
            component.close()

    def __enter__(self) -> "MixtureTrainer":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.close()

    def __getstate__(self) -> dict:
        state = self.__dict__.copy()
        state["_data"] = None
        state["_seq_weights"] = None
        state["_used_weights"] = [None] * len(self.components)
        return state

    def clone(self) -> "MixtureTrainer":
        return copy.deepcopy(self)

    def _further_information(self) -> dict:
        return {}

    def _extract_further_information(self, record: dict) -> None:
        pass

    def to_record(self) -> dict:
        record = {
            "type_key": self.type_key,
            "length": self.length,
            "dimension": self.dimension,
            "estimator": self.estimator.to_record(),
            "components": [component.to_record() for component in self.components],
            "optimize": list(self.optimize),
            "algorithm_has_been_run": self._has_run,
            "weights": self._weights.tolist(),
            "config": self.config.to_record(),
            "best": float(self.best),
        }
        if self._chains is not None and self._chains.starts:
            record["chains"] = {
                "counter": self._chains.counter.tolist(),
                "contents": {str(i): content for i, content in enumerate(self._chains.contents())},
            }
        record.update(self._further_information())
        return record

    @staticmethod
    def _components_from_record(record: dict) -> List[ComponentModel]:
        return [model_registry.from_record(r) for r in record["components"]]

    @staticmethod
    def _config_from_record(record: dict) -> TrainingConfig:
        return config_from_record(record["config"])

    def _restore_state(self, record: dict) -> None:
        self._install_weights(np.array(record["weights"], dtype=np.float64))
        self._has_run = record["algorithm_has_been_run"]
        self.best = record["best"]
        if self._has_run:
            self.state = TrainingState.FINALIZED
        if "chains" in record:
            contents = record["chains"]["contents"]
            self._chains.restore(record["chains"]["counter"], [contents[str(i)] for i in range(len(contents))])
        self._extract_further_information(record)
