"""
Simulation example generation for pairs of Solidity contracts.
"""

# State model
from .core.states import (
    Invocation,
    Method,
    Observation,
    Operation,
    Result,
    SimulationExample,
    State,
    Trace,
    Transition,
)

# Exploration
from .core.explorer import Explorer
from .core.executor import Executor, ExecutorFactory
from .core.limiter import StateCountLimiter, StateCountLimiterFactory
from .core.values import ValueGenerator

# Example generation
from .simulation.examples import Examples, GenerationParameters, GenerationResult, generate

# Evaluation
from .evaluation.evaluator import Evaluator

from .errors import SimulationCounterExample, SimulationError


__all__ = [
    # State model
    "Invocation",
    "Method",
    "Observation",
    "Operation",
    "Result",
    "SimulationExample",
    "State",
    "Trace",
    "Transition",
    # Exploration
    "Explorer",
    "Executor",
    "ExecutorFactory",
    "StateCountLimiter",
    "StateCountLimiterFactory",
    "ValueGenerator",
    # Example generation
    "Examples",
    "GenerationParameters",
    "GenerationResult",
    "generate",
    # Evaluation
    "Evaluator",
    # Errors
    "SimulationError",
    "SimulationCounterExample",
]
