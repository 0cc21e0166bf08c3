"""Exception types raised by the mixture training engine."""


class MixtureError(Exception):
    """Base class for all errors raised by seqmix."""


class ConstructionError(MixtureError, ValueError):
    """Invalid static configuration of a model or trainer."""


class TrainingPreconditionError(MixtureError, RuntimeError):
    """Training was continued without a live reference to the training data."""


class NumericalAnomalyError(MixtureError, ArithmeticError):
    """The EM score decreased by more than floating-point tolerance."""


class UnsupportedOperationError(MixtureError, NotImplementedError):
    """The request does not make sense for the configured algorithm."""


class NotTrainedError(MixtureError, RuntimeError):
    """The model has to be trained before it can be used."""
