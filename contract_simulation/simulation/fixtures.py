# simulation/fixtures.py
import json
import os
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from ..config import DEFAULT_STATES
from .examples import GenerationParameters


@dataclass(frozen=True)
class ExampleTest:
    """A source/target pair with the outcome expected from example generation."""

    name: str
    description: str
    source: str
    target: str
    states: Optional[int] = None
    failure: bool = False
    fields: Optional[List[str]] = None
    seed_features: Optional[List[str]] = None

    def parameters(self, default_states: int = DEFAULT_STATES) -> GenerationParameters:
        states = default_states if self.states is None else self.states
        return GenerationParameters(source=self.source, target=self.target, states=states)

    @classmethod
    def from_dict(cls, data: Dict[str, Any], name: str, contracts_dir: str) -> "ExampleTest":
        return cls(
            name=name,
            description=data.get("description", name),
            source=os.path.join(contracts_dir, data["source"]),
            target=os.path.join(contracts_dir, data["target"]),
            states=None if data.get("states") is None else int(data["states"]),
            failure=bool(data.get("failure", False)),
            fields=data.get("fields"),
            seed_features=data.get("seedFeatures"),
        )


def load_example_test(path: str, contracts_dir: Optional[str] = None) -> ExampleTest:
    """Load one fixture; contract paths resolve against `contracts_dir` or the fixture's directory."""
    with open(path, "r") as f:
        data = json.load(f)
    name = os.path.splitext(os.path.basename(path))[0]
    base = contracts_dir if contracts_dir is not None else os.path.dirname(os.path.abspath(path))
    return ExampleTest.from_dict(data, name, base)


def load_example_tests(directory: str, contracts_dir: Optional[str] = None) -> List[ExampleTest]:
    return [
        load_example_test(os.path.join(directory, filename), contracts_dir)
        for filename in sorted(os.listdir(directory))
        if filename.endswith(".json")
    ]
