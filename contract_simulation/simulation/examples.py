# simulation/examples.py
"""
Positive and negative simulation examples for a pair of programs.

Source states are indexed first; each target state is then paired with the
source states sharing its trace (positive) and with those observed
differently (negative). Negatives are expanded backward through operations
both programs share, breadth first.
"""

from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List, Sequence, Tuple

import structlog

from ..config import DEFAULT_STATES
from ..core.executor import ExecutorFactory
from ..core.explorer import Explorer
from ..core.limiter import LimiterFactory, StateCountLimiterFactory
from ..core.states import ExampleKind, SimulationExample
from ..errors import SimulationCounterExample
from .context import Context


@dataclass(frozen=True)
class GenerationParameters:
    source: str
    target: str
    states: int = DEFAULT_STATES


@dataclass
class GenerationResult:
    positive: List[SimulationExample] = field(default_factory=list)
    negative: List[SimulationExample] = field(default_factory=list)
    fields: List[str] = field(default_factory=list)
    seed_features: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "examples": {
                "positive": [e.to_dict() for e in self.positive],
                "negative": [e.to_dict() for e in self.negative],
            },
            "fields": list(self.fields),
            "seedFeatures": list(self.seed_features),
        }


def product_fields(source, target) -> List[str]:
    return [f"{source.name}.{f}" for f in source.fields()] + [
        f"{target.name}.{f}" for f in target.fields()
    ]


def product_seed_features(source, target) -> List[Tuple[str, Tuple[str, str]]]:
    """Equalities between same-typed fields of the two programs."""
    features = []
    target_types = target.field_types()
    for s_field, s_type in source.field_types().items():
        for t_field, t_type in target_types.items():
            if s_type != t_type:
                continue
            pair = (f"{source.name}.{s_field}", f"{target.name}.{t_field}")
            features.append((f"(= {pair[0]} {pair[1]})", pair))
    return features


class Examples:
    def __init__(self, backend, accounts: Sequence[str], logger=None):
        self.logger = logger or structlog.get_logger(__name__)
        factory = ExecutorFactory(backend, self.logger)
        self.explorer = Explorer(factory, accounts, self.logger)

    @classmethod
    async def connect(cls, backend, logger=None) -> "Examples":
        accounts = await backend.list_accounts()
        return cls(backend, accounts, logger)

    async def simulation_examples(
        self, source, target, limiters: LimiterFactory
    ) -> AsyncIterator[SimulationExample]:
        context = Context(self.logger)

        self.logger.debug("Exploring source states", contract=source.name)
        async for transition in self.explorer.transitions(source, limiters):
            context.add_source(transition)

        self.logger.debug("Exploring target states", contract=target.name)
        async for transition in self.explorer.transitions(target, limiters):
            t = transition.post
            context.add_target(transition)

            for s in context.source_trace_equivalent(t):
                yield SimulationExample(s, t, ExampleKind.POSITIVE)

            for s in context.source_observation_distinct(t):
                context.worklist.push(SimulationExample(s, t, ExampleKind.NEGATIVE))

        self.logger.debug("Generated positive examples", pending=len(context.worklist))

        while context.worklist:
            example = context.worklist.pop()
            yield example

            for predecessor in context.new_joint_predecessors(example):
                context.worklist.push(predecessor)

        self.logger.debug("Generated negative examples")


async def generate(parameters: GenerationParameters, backend, compiler, logger=None) -> GenerationResult:
    """
    Compile both programs, collect their simulation examples and the feature
    vocabulary for the learner.

    Raises SimulationCounterExample when a negative example pairs two
    trace-equivalent states.
    """
    logger = logger or structlog.get_logger(__name__)
    source = await compiler.compile_from_file(parameters.source)
    target = await compiler.compile_from_file(parameters.target)

    examples = await Examples.connect(backend, logger)
    limiters = StateCountLimiterFactory(parameters.states)
    result = GenerationResult(
        fields=product_fields(source, target),
        seed_features=[f for f, _ in product_seed_features(source, target)],
    )

    async for example in examples.simulation_examples(source, target, limiters):
        if example.kind is ExampleKind.POSITIVE:
            result.positive.append(example)
        else:
            result.negative.append(example)

    logger.info(
        "Generated simulation examples",
        source=source.name,
        target=target.name,
        positive=len(result.positive),
        negative=len(result.negative),
    )

    for example in result.negative:
        if example.source.trace_equivalent(example.target):
            logger.warning(
                "Unresolvable simulation example",
                trace=str(example.source.trace),
                source=str(example.source.observation),
                target=str(example.target.observation),
            )
            raise SimulationCounterExample(example)

    return result
