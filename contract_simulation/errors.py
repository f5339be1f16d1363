# errors.py
from dataclasses import dataclass
from typing import Any, List, Optional


class SimulationError(Exception):
    """Base class for every failure raised by contract_simulation."""


class CompileError(SimulationError):
    """Raised when solc rejects a program; carries solc's diagnostic text."""

    def __init__(self, path: str, diagnostics: str):
        self.path = path
        self.diagnostics = diagnostics
        super().__init__(f"Compilation of {path} failed:\n{diagnostics}")


class TypeUnsupported(SimulationError):
    """The value generator has no finite domain for a declared parameter type."""

    def __init__(self, type_name: str):
        self.type_name = type_name
        super().__init__(f"Unsupported parameter type: {type_name}")


@dataclass(frozen=True)
class RevertDetail:
    error: str
    reason: Optional[str] = None


class BackendRevert(SimulationError):
    """
    A call or transaction was reverted by the program.

    The backend may report one result per affected transaction; the executor
    expects exactly one and folds it into an error Result.
    """

    def __init__(self, results: List[RevertDetail]):
        self.results = list(results)
        summary = ", ".join(f"{r.error}: {r.reason}" for r in self.results)
        super().__init__(f"Transaction reverted ({summary})")


class UnexpectedResultShape(SimulationError):
    """A revert decoded to something other than a single `revert` result."""


class TypeMismatch(SimulationError):
    """An evaluated expression did not produce a boolean."""

    def __init__(self, expression: Any, value: Any = None):
        self.expression = expression
        self.value = value
        super().__init__(
            f"Expected Boolean-valued expression: {expression} (got {value})"
        )


class MalformedRequest(SimulationError):
    """An evaluator request line could not be split or parsed."""


class UsageError(SimulationError):
    """Wrong command line usage."""


class SimulationCounterExample(SimulationError):
    """
    Raised by example generation when a pair of states is required to be both
    congruent (same trace) and distinguishable (different observations); no
    separating predicate can exist for such a pair.
    """

    def __init__(self, example: Any):
        self.example = example
        super().__init__(
            f"Unresolvable simulation example: {example.source} vs {example.target}"
        )
