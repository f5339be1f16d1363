# ethereum/metadata.py
from dataclasses import dataclass, field
from typing import Any, Dict, Iterator, List, Optional, Tuple

from ..core.states import Method
from ..core.values import INT_TYPE, normalize_type

ELEMENTARY_TYPES = ("bool", "address")


@dataclass(frozen=True)
class SourceInfo:
    path: str
    content: str


@dataclass
class Metadata:
    """Compiled program: declared interface plus the artifacts needed to deploy it."""

    name: str
    source: SourceInfo
    abi: Tuple[Method, ...]
    bytecode: str
    userdoc: Dict[str, Any] = field(default_factory=dict)
    devdoc: Dict[str, Any] = field(default_factory=dict)
    ast: Dict[str, Any] = field(default_factory=dict)
    members: List[Dict[str, Any]] = field(default_factory=list)

    @property
    def contract_id(self) -> str:
        return self.source.path

    @property
    def constructor(self) -> Optional[Method]:
        for method in self.abi:
            if method.is_constructor():
                return method
        return None

    def mutators(self) -> List[Method]:
        return [m for m in self.abi if m.is_mutator()]

    def read_only_methods(self) -> List[Method]:
        return [m for m in self.abi if m.is_read_only()]

    def find_method(self, name: str, arity: Optional[int] = None) -> Optional[Method]:
        for method in self.abi:
            if method.kind != "function" or method.name != name:
                continue
            if arity is None or len(method.inputs) == arity:
                return method
        return None

    def raw_abi(self) -> List[Dict[str, Any]]:
        return [m.to_abi() for m in self.abi]

    def state_variables(self) -> Iterator[Dict[str, Any]]:
        for member in self.members:
            if member.get("nodeType") == "VariableDeclaration" and member.get("stateVariable", True):
                yield member

    def state_variable(self, name: str) -> Optional[Dict[str, Any]]:
        for variable in self.state_variables():
            if variable.get("name") == name:
                return variable
        return None

    def fields(self) -> List[str]:
        """Names of mutable state variables of elementary type."""
        names = []
        for variable in self.state_variables():
            if variable.get("constant") or variable.get("mutability") in ("constant", "immutable"):
                continue
            if is_elementary(variable_type(variable)):
                names.append(variable["name"])
        return names

    def field_types(self) -> Dict[str, str]:
        names = set(self.fields())
        return {
            v["name"]: normalize_type(variable_type(v))
            for v in self.state_variables()
            if v.get("name") in names
        }


def variable_type(variable: Dict[str, Any]) -> str:
    return variable.get("typeDescriptions", {}).get("typeString", "")


def is_elementary(type_name: str) -> bool:
    normalized = normalize_type(type_name)
    return bool(INT_TYPE.match(normalized)) or normalized in ELEMENTARY_TYPES
