"""Custom exceptions for grid evaluation."""


class GridEvaluatorError(Exception):
    """Base exception for all grid evaluator errors"""

    pass


class InvalidInputError(GridEvaluatorError, ValueError):
    """Raised when caller-supplied prices, days, amounts or series are invalid"""

    pass


class LevelStateError(GridEvaluatorError):
    """Raised when a grid level is asked to make an illegal position transition"""

    pass


class SimulationCancelledError(GridEvaluatorError):
    """Raised when a Monte Carlo batch is cancelled or exceeds its deadline"""

    pass
