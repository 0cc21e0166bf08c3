"""
seqmix
======

Training engine for finite mixtures of probabilistic sequence models. A
mixture is fitted either by expectation maximization with several random
restarts or by Gibbs sampling with several chains whose trajectories are
kept on disk and trimmed by a burn-in test.

The top level modules expose the following key components:

``trainer``
    The abstract :class:`MixtureTrainer` that drives EM and Gibbs sampling.

``mixture`` and ``strand``
    Concrete mixtures: :class:`MixtureModel` with one component model per
    mixture component and :class:`StrandMixture` that uses one inner model on
    both DNA strands.

``models``
    :class:`PwmModel`, a position weight matrix with a Dirichlet prior that
    can be trained with weighted data and sampled in Gibbs chains.

``config``, ``termination``, ``burnin``
    Algorithm settings, stopping rules for EM and burn-in tests for Gibbs
    sampling.

``io`` and ``parallel``
    FASTA and model persistence, and concurrent training of independent clones.
"""

from seqmix.burnin import FixedBurnIn, VarianceRatioBurnIn
from seqmix.config import Algorithm, EMConfig, GibbsConfig, create_em_config, create_gibbs_config
from seqmix.errors import (
    ConstructionError,
    MixtureError,
    NotTrainedError,
    NumericalAnomalyError,
    TrainingPreconditionError,
    UnsupportedOperationError,
)
from seqmix.estimator import ComponentProbabilityEstimator, Parameterization
from seqmix.io import load_model, read_fasta, save_model, write_fasta
from seqmix.mixture import MixtureModel
from seqmix.models import PwmModel
from seqmix.parallel import train_in_parallel
from seqmix.ragged import RaggedData, ragged_from_list
from seqmix.strand import StrandMixture
from seqmix.termination import CombinedCondition, IterationCondition, SmallDifferenceCondition, TimeCondition
from seqmix.trainer import MixtureTrainer, TrainingState

__all__ = [
    "Algorithm",
    "CombinedCondition",
    "ComponentProbabilityEstimator",
    "ConstructionError",
    "EMConfig",
    "FixedBurnIn",
    "GibbsConfig",
    "IterationCondition",
    "MixtureError",
    "MixtureModel",
    "MixtureTrainer",
    "NotTrainedError",
    "NumericalAnomalyError",
    "Parameterization",
    "PwmModel",
    "RaggedData",
    "SmallDifferenceCondition",
    "StrandMixture",
    "TimeCondition",
    "TrainingPreconditionError",
    "TrainingState",
    "UnsupportedOperationError",
    "VarianceRatioBurnIn",
    "create_em_config",
    "create_gibbs_config",
    "load_model",
    "ragged_from_list",
    "read_fasta",
    "save_model",
    "train_in_parallel",
    "write_fasta",
]
