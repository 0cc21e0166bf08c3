"""Simplex-valued random generators used to bootstrap the first E-step."""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Optional, Union

import numpy as np


class SimplexGenerator(ABC):
    """Draws points of the probability simplex."""

    @abstractmethod
    def draw(self, rng: np.random.Generator, count: int, params=None) -> np.ndarray:
        """Return a fresh probability vector of size ``count``."""
        raise NotImplementedError

    def generate(self, rng: np.random.Generator, target: np.ndarray, offset: int, count: int, params=None) -> None:
        """Write a draw of size ``count`` into ``target[offset:offset + count]``."""
        target[offset : offset + count] = self.draw(rng, count, params)


class DirichletGenerator(SimplexGenerator):
    """Symmetric or general Dirichlet draws.

    ``params`` is either a scalar concentration shared by every entry or a
    full concentration vector. When ``params`` is None the generator default is used.
    """

    def __init__(self, alpha: Union[float, np.ndarray] = 1.0):
        self.alpha = alpha

    def draw(self, rng: np.random.Generator, count: int, params=None) -> np.ndarray:
        alpha = self.alpha if params is None else params
        if np.ndim(alpha) == 0:
            alpha = np.full(count, float(alpha))
        return rng.dirichlet(alpha)


class OneOfNGenerator(SimplexGenerator):
    """Hard assignments: a one-hot vector whose index is drawn from ``params`` (uniform by default)."""

    def draw(self, rng: np.random.Generator, count: int, params: Optional[np.ndarray] = None) -> np.ndarray:
        index = rng.choice(count, p=params)
        out = np.zeros(count, dtype=np.float64)
        out[index] = 1.0
        return out
