"""Exceptions raised by the fraudwatch engine."""
from __future__ import annotations


class InvalidProfileError(ValueError):
    """The scorer was handed a profile without any history."""


class DuplicateCaseError(ValueError):
    """A fraud case with the same id already exists in the knowledge base."""


class AdvisoryUnavailable(RuntimeError):
    """The external advisory model could not produce a usable answer."""
