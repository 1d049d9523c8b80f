"""Exceptions raised by the scoring and experiment engines."""


class FeedbackEngineError(Exception):
    """Base class for feedback-engine errors."""


class InvalidInputError(FeedbackEngineError, ValueError):
    """Input is missing fields the engines cannot work without."""
