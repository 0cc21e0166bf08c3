"""Train independent clones of an EM mixture concurrently and keep the best one."""

from __future__ import annotations

import logging
from typing import Optional, Sequence

import numpy as np
from joblib import Parallel, delayed

from seqmix.config import Algorithm
from seqmix.errors import UnsupportedOperationError
from seqmix.ragged import RaggedData
from seqmix.trainer import MixtureTrainer


def _train_clone(clone: MixtureTrainer, data: RaggedData, data_weights, seed: int) -> MixtureTrainer:
    clone.train(data, data_weights, np.random.default_rng(seed))
    return clone


def train_in_parallel(
    trainer: MixtureTrainer,
    data: RaggedData,
    n_clones: int,
    data_weights: Optional[Sequence[float]] = None,
    n_jobs: int = 1,
    seed: Optional[int] = None,
) -> MixtureTrainer:
    """
    Train ``n_clones`` deep copies of ``trainer`` with independent random streams.

    Every clone runs all restarts of its own config; the clone with the highest
    score is returned and the others are closed. ``trainer`` itself is not trained.
    """
    if trainer.algorithm is not Algorithm.EM:
        raise UnsupportedOperationError("Parallel training is only defined for EM")
    if n_clones < 1:
        raise ValueError(f"n_clones has to be at least 1, got {n_clones}")

    logger = logging.getLogger(__name__)
    base_rng = np.random.default_rng(seed)
    seeds = base_rng.integers(0, 2**31, size=n_clones)
    clones = [trainer.clone() for _ in range(n_clones)]

    trained = Parallel(n_jobs=n_jobs, backend="loky")(
        delayed(_train_clone)(clones[i], data, data_weights, int(seeds[i])) for i in range(n_clones)
    )

    scores = [clone.get_score_for_best_run() for clone in trained]
    best_index = int(np.argmax(scores))
    for i, clone in enumerate(trained):
        if i != best_index:
            clone.close()
    logger.info(f"Best of {n_clones} clone(s): clone {best_index} with score {scores[best_index]:.6f}")
    return trained[best_index]
