"""
components
==========

Contract of the probabilistic sequence models that a mixture trainer
combines. Every component declares its kind once, as a class attribute, and
the trainer dispatches on that tag:

- ``PLAIN`` components are trained with weighted data,
- ``NESTED_MIXTURE`` components are mixture trainers themselves and are
  driven through their own first-iteration and continue machinery,
- ``SAMPLING`` components can additionally draw parameters from their
  posterior and keep a disk-backed trajectory per Gibbs chain.
"""

from __future__ import annotations

import copy
from abc import ABC, abstractmethod
from enum import Enum
from typing import Optional, Sequence

import numpy as np

from seqmix.ragged import RaggedData


class ComponentKind(Enum):
    PLAIN = "plain"
    NESTED_MIXTURE = "nested_mixture"
    SAMPLING = "sampling"


class ComponentModel(ABC):
    """
    Abstract base class for trainable sequence models.

    Attributes
    ----------
    kind : ComponentKind
        Dispatch tag used by mixture trainers.
    type_key : str
        Registry key used to rebuild the model from its record.
    length : int
        Length of the modelled sequences, 0 for homogeneous models.
    alphabet_size : int
        Number of non-ambiguous symbols.
    """

    kind: ComponentKind = ComponentKind.PLAIN
    type_key: str = ""

    def __init__(self, length: int, alphabet_size: int):
        self.length = length
        self.alphabet_size = alphabet_size

    @abstractmethod
    def train(self, data: RaggedData, weights: Optional[np.ndarray] = None) -> None:
        """Estimate the parameters from (weighted) data."""
        raise NotImplementedError

    @abstractmethod
    def log_prob(self, seq: np.ndarray, start: int = 0, end: Optional[int] = None) -> float:
        """Log probability of ``seq[start:end]``."""
        raise NotImplementedError

    def log_probs(self, data: RaggedData) -> np.ndarray:
        """Log probability of every sequence of ``data``."""
        return np.array([self.log_prob(seq) for seq in data], dtype=np.float64)

    @abstractmethod
    def get_log_prior_term(self) -> float:
        raise NotImplementedError

    @abstractmethod
    def is_initialized(self) -> bool:
        raise NotImplementedError

    @abstractmethod
    def emit_sample(
        self, n: int, lengths: Optional[Sequence[int]] = None, rng: Optional[np.random.Generator] = None
    ) -> RaggedData:
        """Draw ``n`` sequences from the model."""
        raise NotImplementedError

    def clone(self) -> "ComponentModel":
        return copy.deepcopy(self)

    def close(self) -> None:
        """Release external resources held by the model."""

    @abstractmethod
    def to_record(self) -> dict:
        raise NotImplementedError

    @classmethod
    @abstractmethod
    def from_record(cls, record: dict) -> "ComponentModel":
        raise NotImplementedError


class SamplingComponent(ComponentModel):
    """Component that can be used in Gibbs sampling."""

    kind = ComponentKind.SAMPLING

    @abstractmethod
    def draw_parameters(self, data: RaggedData, weights: Optional[np.ndarray], rng: np.random.Generator) -> None:
        """Draw a parameter set from the posterior given (weighted) data."""
        raise NotImplementedError

    @abstractmethod
    def accept_parameters(self) -> None:
        """Install the last drawn parameter set and record it in the current chain."""
        raise NotImplementedError

    @abstractmethod
    def init_for_sampling(self, starts: int) -> None:
        raise NotImplementedError

    @abstractmethod
    def extend_sampling(self, chain: int, append: bool) -> None:
        raise NotImplementedError

    @abstractmethod
    def sampling_stopped(self) -> None:
        raise NotImplementedError

    @abstractmethod
    def parse_parameter_set(self, chain: int, step: int) -> bool:
        """Load the parameters of ``step`` of ``chain``; False if there is no such step."""
        raise NotImplementedError

    @abstractmethod
    def parse_next_parameter_set(self) -> bool:
        raise NotImplementedError

    @abstractmethod
    def is_in_sampling_mode(self) -> bool:
        raise NotImplementedError
