# core/explorer.py
from collections import deque
from typing import AsyncIterator, Deque, Iterator, List, Optional, Sequence, Tuple

import structlog

from .executor import ExecutorFactory
from .limiter import LimiterFactory
from .states import Invocation, Method, Operation, State, Transition
from .values import ValueGenerator


def method_invocations(method: Method, generator: ValueGenerator) -> Iterator[Invocation]:
    """Every argument tuple of `method`; payable methods also vary the transferred value."""
    amounts: Sequence[Optional[int]] = [None]
    if method.is_payable():
        amounts = list(generator.int_values())  # type: ignore[arg-type]

    for inputs in generator.values_of_types(method.input_types):
        for amount in amounts:
            yield Invocation(method, tuple(inputs), amount)


def observer_invocations(metadata, generator: ValueGenerator) -> List[Invocation]:
    """Read-only probes; getters of public mappings enumerate the mapping's key tuples."""
    observers: List[Invocation] = []
    for method in metadata.read_only_methods():
        variable = metadata.state_variable(method.name)
        type_string = (variable or {}).get("typeDescriptions", {}).get("typeString", "")
        if type_string.startswith("mapping(") and len(method.inputs) > 0:
            indices = generator.map_indices(type_string)
        else:
            indices = generator.values_of_types(method.input_types)
        observers.extend(Invocation(method, tuple(args)) for args in indices)
    return observers


class Explorer:
    """
    Bounded breadth-first traversal of a program's invocation space.

    States are not deduplicated: every path yields its own state even when it
    is behaviorally identical to another one.
    """

    def __init__(self, factory: ExecutorFactory, accounts: Sequence[str], logger=None):
        self.factory = factory
        self.accounts = list(accounts)
        self.logger = logger or structlog.get_logger(__name__)
        self.reverts: List[Tuple[Optional[State], Operation]] = []

    async def transitions(self, metadata, limiters: LimiterFactory) -> AsyncIterator[Transition]:
        limiter = limiters.create()
        generator = ValueGenerator(self.accounts, self.logger)
        observers = observer_invocations(metadata, generator)
        mutators = [i for m in metadata.mutators() for i in method_invocations(m, generator)]
        executor = self.factory.get_executor(metadata, self.accounts[0], observers)
        self.reverts = []

        self.logger.info(
            "Exploring contract",
            contract=metadata.name,
            mutators=len(mutators),
            observers=len(observers),
            limiter=repr(limiter),
        )

        frontier: Deque[State] = deque()
        count = 0

        for constructor in self._constructors(metadata, generator):
            if not limiter.should_continue(count):
                break
            execution = await executor.construct(constructor)
            if execution.post is None:
                self.reverts.append((None, execution.operation))
                continue
            count += 1
            frontier.append(execution.post)
            yield Transition.initial(execution.post)

        while frontier and limiter.should_continue(count):
            state = frontier.popleft()
            self.logger.debug("Expanding state", contract=metadata.name, state=str(state))

            for invocation in mutators:
                execution = await executor.execute(state, invocation)

                if execution.post is None:
                    self.logger.debug("Operation reverted", operation=str(execution.operation))
                    self.reverts.append((state, execution.operation))
                    continue

                count += 1
                frontier.append(execution.post)
                yield Transition(state, execution.operation, execution.post)

        self.logger.info(
            "Exploration finished",
            contract=metadata.name,
            states=count,
            reverts=len(self.reverts),
            unexpanded=len(frontier),
        )

    @staticmethod
    def _constructors(metadata, generator: ValueGenerator) -> Iterator[Optional[Invocation]]:
        constructor = metadata.constructor
        if constructor is None or (not constructor.inputs and not constructor.is_payable()):
            yield None
            return
        yield from method_invocations(constructor, generator)
