"""
Component Models Module
=======================

Concrete sequence models that can be plugged into a mixture trainer.

``PwmModel`` is an inhomogeneous model of order zero (a position weight
matrix) with a symmetric Dirichlet prior of equivalent sample size ``ess``.
With ``alphabet_size=2`` and ``length=1`` it is a Bernoulli model.
"""

from __future__ import annotations

import logging
from typing import Optional, Sequence

import numpy as np
from scipy.special import gammaln

from seqmix.chains import ChainStore
from seqmix.components import SamplingComponent
from seqmix.errors import ConstructionError, NotTrainedError
from seqmix.functions import batch_log_probs, weighted_position_counts
from seqmix.ragged import RaggedData, ragged_from_list
from seqmix.registry import model_registry


@model_registry.register("pwm")
class PwmModel(SamplingComponent):
    """
    Position weight matrix with a Dirichlet prior.

    Parameters
    ----------
    length : int
        Number of positions.
    alphabet_size : int
        Number of non-ambiguous symbols; larger codes are ambiguous and ignored.
    ess : float
        Equivalent sample size of the prior, spread uniformly over all symbols
        of a position. 0 gives maximum likelihood estimates.
    chain_dir : str, optional
        Directory for the Gibbs chain files.

    Attributes
    ----------
    probs : numpy.ndarray or None
        Symbol probabilities with shape ``(length, alphabet_size)``.
    """

    def __init__(self, length: int, alphabet_size: int = 4, ess: float = 0.0, chain_dir: Optional[str] = None):
        if length < 1:
            raise ConstructionError(f"The length of a PWM has to be at least 1, got {length}")
        if alphabet_size < 2:
            raise ConstructionError(f"The alphabet has to contain at least 2 symbols, got {alphabet_size}")
        if ess < 0:
            raise ConstructionError(f"The equivalent sample size has to be non-negative, got {ess}")
        super().__init__(length, alphabet_size)
        self.ess = float(ess)
        self.chain_dir = chain_dir
        self.probs: Optional[np.ndarray] = None
        self._proposal: Optional[np.ndarray] = None
        self._chains: Optional[ChainStore] = None

    @property
    def pseudo_count(self) -> float:
        return self.ess / self.alphabet_size

    def _counts(self, data: RaggedData, weights: Optional[np.ndarray]) -> np.ndarray:
        if weights is None:
            weights = np.ones(data.num_sequences, dtype=np.float64)
        weights = np.asarray(weights, dtype=np.float64)
        if weights.shape[0] != data.num_sequences:
            raise ValueError(f"Got {weights.shape[0]} weights for {data.num_sequences} sequences")
        return weighted_position_counts(data.data, data.offsets, weights, self.length, self.alphabet_size)

    def train(self, data: RaggedData, weights: Optional[np.ndarray] = None) -> None:
        counts = self._counts(data, weights)
        a = self.pseudo_count
        denominator = counts.sum(axis=1, keepdims=True) + self.ess
        uniform = np.full_like(counts, 1.0 / self.alphabet_size)
        self.probs = np.divide(counts + a, denominator, out=uniform, where=denominator > 0)

    def _log_table(self) -> np.ndarray:
        if self.probs is None:
            raise NotTrainedError("The PWM has not been trained")
        table = np.zeros((self.length, self.alphabet_size + 1), dtype=np.float64)
        with np.errstate(divide="ignore"):
            table[:, : self.alphabet_size] = np.log(self.probs)
        return table

    def log_prob(self, seq: np.ndarray, start: int = 0, end: Optional[int] = None) -> float:
        end = len(seq) if end is None else end
        if end - start != self.length:
            raise ValueError(f"The PWM scores windows of length {self.length}, got [{start}, {end})")
        window = np.asarray(seq[start:end])
        table = self._log_table()
        symbols = np.minimum(window, self.alphabet_size)
        return float(table[np.arange(self.length), symbols].sum())

    def log_probs(self, data: RaggedData) -> np.ndarray:
        if np.any(data.lengths != self.length):
            raise ValueError(f"All sequences have to be of length {self.length}")
        return batch_log_probs(data.data, data.offsets, self._log_table())

    def get_log_prior_term(self) -> float:
        if self.ess == 0 or self.probs is None:
            return 0.0
        a = self.pseudo_count
        with np.errstate(divide="ignore"):
            log_probs = np.log(self.probs)
        norm = gammaln(self.ess) - self.alphabet_size * gammaln(a)
        return float(a * log_probs.sum() + self.length * norm)

    def is_initialized(self) -> bool:
        return self.probs is not None

    def emit_sample(
        self, n: int, lengths: Optional[Sequence[int]] = None, rng: Optional[np.random.Generator] = None
    ) -> RaggedData:
        if self.probs is None:
            raise NotTrainedError("The PWM has not been trained")
        if lengths is not None and any(int(length) != self.length for length in lengths):
            raise ValueError(f"A PWM of length {self.length} can only emit sequences of that length")
        rng = rng if rng is not None else np.random.default_rng()
        columns = [rng.choice(self.alphabet_size, size=n, p=self.probs[i]) for i in range(self.length)]
        matrix = np.stack(columns, axis=1).astype(np.int8) if n > 0 else np.empty((0, self.length), dtype=np.int8)
        return ragged_from_list(list(matrix), dtype=np.int8)

    # Gibbs sampling

    def draw_parameters(self, data: RaggedData, weights: Optional[np.ndarray], rng: np.random.Generator) -> None:
        if self.ess <= 0:
            raise ValueError("Drawing parameters requires a positive equivalent sample size")
        concentration = self._counts(data, weights) + self.pseudo_count
        self._proposal = np.stack([rng.dirichlet(concentration[i]) for i in range(self.length)])

    def accept_parameters(self) -> None:
        if self._proposal is None:
            raise RuntimeError("No parameters have been drawn")
        self.probs = self._proposal
        self._proposal = None
        if self._chains is not None and self._chains.is_writing:
            self._chains.append(self.probs.ravel())

    def init_for_sampling(self, starts: int) -> None:
        if self._chains is None:
            self._chains = ChainStore(self.chain_dir)
        self._chains.init_for_sampling(starts)

    def extend_sampling(self, chain: int, append: bool) -> None:
        if self._chains is None:
            raise RuntimeError("init_for_sampling has to be called first")
        last = self._chains.extend(chain, append)
        if last is not None:
            self._set_flat(last)

    def sampling_stopped(self) -> None:
        if self._chains is not None:
            self._chains.stop()

    def _set_flat(self, values: np.ndarray) -> None:
        self.probs = np.asarray(values, dtype=np.float64).reshape(self.length, self.alphabet_size)

    def parse_parameter_set(self, chain: int, step: int) -> bool:
        if self._chains is None:
            return False
        values = self._chains.replay(chain, step)
        if values is None:
            return False
        self._set_flat(values)
        return True

    def parse_next_parameter_set(self) -> bool:
        values = self._chains.next_values() if self._chains is not None else None
        if values is None:
            return False
        self._set_flat(values)
        return True

    def is_in_sampling_mode(self) -> bool:
        return self._chains is not None and self._chains.is_writing

    def close(self) -> None:
        if self._chains is not None:
            self._chains.close()
            self._chains = None

    def to_record(self) -> dict:
        record = {
            "type_key": self.type_key,
            "length": self.length,
            "alphabet_size": self.alphabet_size,
            "ess": self.ess,
            "chain_dir": self.chain_dir,
            "probs": None if self.probs is None else self.probs.tolist(),
        }
        if self._chains is not None and self._chains.starts:
            record["chains"] = {"counter": self._chains.counter.tolist(), "contents": self._chains.contents()}
        return record

    @classmethod
    def from_record(cls, record: dict) -> "PwmModel":
        model = cls(record["length"], record["alphabet_size"], record["ess"], record.get("chain_dir"))
        if record["probs"] is not None:
            model.probs = np.array(record["probs"], dtype=np.float64)
        if "chains" in record:
            model._chains = ChainStore(model.chain_dir)
            model._chains.restore(record["chains"]["counter"], record["chains"]["contents"])
            logger = logging.getLogger(__name__)
            logger.debug(f"Restored {model._chains.starts} PWM chain(s)")
        return model

    def __repr__(self) -> str:
        return f"PwmModel(length={self.length}, alphabet_size={self.alphabet_size}, ess={self.ess})"
