# core/states.py
"""
Immutable state model for exploration.

Every record exposes a `key`: a nested tuple of type-tagged scalars that is
used for equality and hashing. Tuples are length-delimited, so two different
traces cannot produce the same key the way concatenated strings could; the
human-readable canonical string (`str()`) is kept for logs and output only.
"""

import json
from dataclasses import dataclass
from enum import Enum
from functools import cached_property
from typing import Any, Dict, List, Optional, Tuple

from .values import Value, value_key, value_to_string, values_to_string

READ_ONLY_MUTABILITIES = ("pure", "view")


class _Keyed:
    """Equality and hashing through the structural `key`."""

    @property
    def key(self) -> Tuple:
        raise NotImplementedError

    def __eq__(self, other: object) -> bool:
        return type(other) is type(self) and self.key == other.key  # type: ignore[attr-defined]

    def __hash__(self) -> int:
        return hash(self.key)


@dataclass(frozen=True)
class Parameter:
    name: str
    type: str

    def to_abi(self) -> Dict[str, str]:
        return {"name": self.name, "type": self.type}

    @classmethod
    def from_abi(cls, entry: Dict[str, Any]) -> "Parameter":
        return cls(name=entry.get("name", ""), type=entry["type"])


@dataclass(frozen=True)
class Method:
    """A declared method of a program, as read from its ABI."""

    name: str
    inputs: Tuple[Parameter, ...] = ()
    outputs: Tuple[Parameter, ...] = ()
    state_mutability: str = "nonpayable"
    kind: str = "function"

    @property
    def input_types(self) -> List[str]:
        return [p.type for p in self.inputs]

    @property
    def signature(self) -> str:
        return f"{self.name}({','.join(self.input_types)})"

    def is_constructor(self) -> bool:
        return self.kind == "constructor"

    def is_mutator(self) -> bool:
        return self.kind == "function" and self.state_mutability not in READ_ONLY_MUTABILITIES

    def is_read_only(self) -> bool:
        return self.kind == "function" and self.state_mutability in READ_ONLY_MUTABILITIES

    def is_payable(self) -> bool:
        return self.state_mutability == "payable"

    def to_abi(self) -> Dict[str, Any]:
        entry: Dict[str, Any] = {
            "type": self.kind,
            "inputs": [p.to_abi() for p in self.inputs],
            "stateMutability": self.state_mutability,
        }
        if self.kind == "function":
            entry["name"] = self.name
            entry["outputs"] = [p.to_abi() for p in self.outputs]
        return entry

    @classmethod
    def from_abi(cls, entry: Dict[str, Any]) -> "Method":
        kind = entry.get("type", "function")
        mutability = entry.get("stateMutability")
        if mutability is None:
            # pre-0.5 ABIs only carry `constant` / `payable`
            if entry.get("constant"):
                mutability = "view"
            elif entry.get("payable"):
                mutability = "payable"
            else:
                mutability = "nonpayable"
        return cls(
            name=entry.get("name", "constructor" if kind == "constructor" else ""),
            inputs=tuple(Parameter.from_abi(p) for p in entry.get("inputs", [])),
            outputs=tuple(Parameter.from_abi(p) for p in entry.get("outputs", [])),
            state_mutability=mutability,
            kind=kind,
        )


@dataclass(frozen=True, eq=False)
class Invocation(_Keyed):
    method: Method
    inputs: Tuple[Value, ...] = ()
    value: Optional[int] = None

    @cached_property
    def key(self) -> Tuple:
        return (
            self.method.kind,
            self.method.signature,
            tuple(value_key(v) for v in self.inputs),
            None if self.value is None else value_key(self.value),
        )

    def is_mutator(self) -> bool:
        return self.method.is_mutator()

    def __str__(self) -> str:
        text = f"{self.method.name}({values_to_string(self.inputs)})"
        if self.value is not None:
            text = f"{text} {{value: {self.value}}}"
        return text

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"method": self.method.to_abi(), "inputs": list(self.inputs)}
        if self.value is not None:
            data["value"] = self.value
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Invocation":
        return cls(
            method=Method.from_abi(data["method"]),
            inputs=tuple(data.get("inputs", [])),
            value=data.get("value"),
        )


class ResultKind(str, Enum):
    NORMAL = "normal"
    ERROR = "error"


@dataclass(frozen=True, eq=False)
class Result(_Keyed):
    """
    Tagged outcome of an invocation: NORMAL carries output values (empty for
    void), ERROR carries the error kind and the decoded reason.
    """

    kind: ResultKind = ResultKind.NORMAL
    values: Tuple[Value, ...] = ()
    error: Optional[str] = None
    reason: Optional[str] = None

    @classmethod
    def normal(cls, *values: Value) -> "Result":
        return cls(ResultKind.NORMAL, tuple(values))

    @classmethod
    def failure(cls, error: str, reason: Optional[str] = None) -> "Result":
        return cls(ResultKind.ERROR, (), error, reason)

    @cached_property
    def key(self) -> Tuple:
        if self.kind is ResultKind.ERROR:
            return (self.kind.value, self.error, self.reason)
        return (self.kind.value, tuple(value_key(v) for v in self.values))

    def is_error(self) -> bool:
        return self.kind is ResultKind.ERROR

    def is_void(self) -> bool:
        return self.kind is ResultKind.NORMAL and not self.values

    def __str__(self) -> str:
        if self.is_error():
            return f"!{self.error}({json.dumps(self.reason or '')})"
        if not self.values:
            return "void"
        if len(self.values) == 1:
            return value_to_string(self.values[0])
        return f"({values_to_string(self.values)})"

    def to_dict(self) -> Dict[str, Any]:
        if self.is_error():
            return {"kind": self.kind.value, "error": self.error, "reason": self.reason}
        return {"kind": self.kind.value, "values": list(self.values)}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Result":
        kind = ResultKind(data.get("kind", ResultKind.NORMAL.value))
        if kind is ResultKind.ERROR:
            return cls.failure(data["error"], data.get("reason"))
        return cls.normal(*data.get("values", []))


@dataclass(frozen=True, eq=False)
class Operation(_Keyed):
    invocation: Invocation
    result: Result

    @cached_property
    def key(self) -> Tuple:
        return (self.invocation.key, self.result.key)

    def __str__(self) -> str:
        if self.result.is_void():
            return str(self.invocation)
        return f"{self.invocation} => {self.result}"

    def to_dict(self) -> Dict[str, Any]:
        return {"invocation": self.invocation.to_dict(), "result": self.result.to_dict()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Operation":
        return cls(Invocation.from_dict(data["invocation"]), Result.from_dict(data["result"]))


@dataclass(frozen=True, eq=False)
class Trace(_Keyed):
    """Mutating operations leading from an initial state."""

    operations: Tuple[Operation, ...] = ()

    @classmethod
    def empty(cls) -> "Trace":
        return cls(())

    @cached_property
    def key(self) -> Tuple:
        return tuple(op.key for op in self.operations)

    def extend(self, operation: Operation) -> "Trace":
        return Trace(self.operations + (operation,))

    def __len__(self) -> int:
        return len(self.operations)

    def __str__(self) -> str:
        if not self.operations:
            return "@empty"
        return "; ".join(str(op) for op in self.operations)

    def to_dict(self) -> Dict[str, Any]:
        return {"operations": [op.to_dict() for op in self.operations]}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Trace":
        return cls(tuple(Operation.from_dict(op) for op in data["operations"]))


@dataclass(frozen=True, eq=False)
class Observation(_Keyed):
    """Results of the read-only probes on a state, in probe order."""

    operations: Tuple[Operation, ...] = ()

    @cached_property
    def key(self) -> Tuple:
        return tuple(op.key for op in self.operations)

    def __str__(self) -> str:
        return ", ".join(str(op) for op in self.operations)

    def to_dict(self) -> Dict[str, Any]:
        return {"operations": [op.to_dict() for op in self.operations]}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Observation":
        return cls(tuple(Operation.from_dict(op) for op in data["operations"]))


@dataclass(frozen=True, eq=False)
class State(_Keyed):
    contract_id: str
    trace: Trace
    observation: Observation

    @classmethod
    def initial(cls, contract_id: str, observation: Observation) -> "State":
        return cls(contract_id, Trace.empty(), observation)

    @cached_property
    def key(self) -> Tuple:
        return (self.contract_id, self.trace.key, self.observation.key)

    def trace_equivalent(self, other: "State") -> bool:
        return self.trace.key == other.trace.key

    def observation_equivalent(self, other: "State") -> bool:
        return self.observation.key == other.observation.key

    def __str__(self) -> str:
        return f"[[ {self.trace} : {self.observation} ]]"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "contractId": self.contract_id,
            "trace": self.trace.to_dict(),
            "observation": self.observation.to_dict(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "State":
        return cls(
            contract_id=data["contractId"],
            trace=Trace.from_dict(data["trace"]),
            observation=Observation.from_dict(data["observation"]),
        )

    def to_json(self) -> str:
        return json.dumps(self.to_dict(), separators=(",", ":"))

    @classmethod
    def from_json(cls, text: str) -> "State":
        return cls.from_dict(json.loads(text))


@dataclass(frozen=True)
class Transition:
    """Edge of an exploration; `pre` and `operation` are None only for initial states."""

    pre: Optional[State]
    operation: Optional[Operation]
    post: State

    @classmethod
    def initial(cls, post: State) -> "Transition":
        return cls(None, None, post)


class ExampleKind(str, Enum):
    POSITIVE = "positive"
    NEGATIVE = "negative"


@dataclass(frozen=True)
class SimulationExample:
    source: State
    target: State
    kind: ExampleKind

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source": self.source.to_dict(),
            "target": self.target.to_dict(),
            "kind": self.kind.value,
        }
