"""Errors raised by the factorization model, its data structures and its evaluator."""


class HogwildMFError(Exception):
    """Base class for every error raised by this package."""


class NotFitted(HogwildMFError):
    """The model has no parameter tables yet; call `fit` first."""


class InvalidIndex(HogwildMFError, IndexError):
    """A user or item id lies outside the bounds the tables were built with."""


class EmptyInput(HogwildMFError, ValueError):
    """An operation needing at least one interaction received none."""


class InvalidConfiguration(HogwildMFError, ValueError):
    """A hyperparameter or call argument is out of its valid range."""
