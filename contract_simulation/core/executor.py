# core/executor.py
import asyncio
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence

import structlog

from ..errors import BackendRevert, UnexpectedResultShape
from .states import Invocation, Observation, Operation, Result, State, Trace


def revert_result(error: BackendRevert) -> Result:
    """Fold a decoded revert into an error Result; any other shape is a protocol mismatch."""
    if len(error.results) != 1:
        raise UnexpectedResultShape(f"Unexpected result count: {len(error.results)}")

    (detail,) = error.results
    if detail.error != "revert":
        raise UnexpectedResultShape(f"Unexpected error: {detail.error}")

    return Result.failure(detail.error, detail.reason)


class ContractInstance:
    """One deployed program instance and the account that drives it."""

    def __init__(self, backend, deployed, account: str, logger=None):
        self.backend = backend
        self.deployed = deployed
        self.account = account
        self.logger = logger or structlog.get_logger(__name__)

    async def invoke(self, invocation: Invocation) -> Result:
        try:
            if invocation.is_mutator():
                return await self.invoke_mutator(invocation)
            return await self.invoke_read_only(invocation)
        except BackendRevert as e:
            self.logger.debug("Invocation reverted", invocation=str(invocation), error=str(e))
            return revert_result(e)

    async def invoke_mutator(self, invocation: Invocation) -> Result:
        self.logger.debug("Invoking mutator method", invocation=str(invocation))
        await self.backend.submit(
            self.deployed, self.account, invocation.method, invocation.inputs, invocation.value
        )
        # return values of transactions are not observable on the ledger
        return Result.normal()

    async def invoke_read_only(self, invocation: Invocation) -> Result:
        self.logger.debug("Invoking read-only method", invocation=str(invocation))
        values = await self.backend.call(self.deployed, invocation.method, invocation.inputs)
        return Result.normal(*values)

    async def invoke_sequence(self, invocations: Iterable[Invocation]) -> None:
        # transactions are ordered; reverts here mean the recorded trace no longer replays
        for invocation in invocations:
            await self.backend.submit(
                self.deployed, self.account, invocation.method, invocation.inputs, invocation.value
            )

    async def observe(self, observers: Sequence[Invocation]) -> Observation:
        """Run every probe concurrently; the observation exists only once all have answered."""
        results = await asyncio.gather(*(self.invoke(o) for o in observers))
        return Observation(tuple(Operation(o, r) for o, r in zip(observers, results)))


@dataclass(frozen=True)
class Execution:
    operation: Optional[Operation]
    post: Optional[State]


class Executor:
    """
    Executes invocations from recorded states of one program.

    Every execution deploys a fresh instance and replays the state's trace,
    so states never share ledger history.
    """

    def __init__(self, backend, metadata, account: str, observers: Sequence[Invocation] = (), logger=None):
        self.backend = backend
        self.metadata = metadata
        self.account = account
        self.observers = list(observers)
        self.logger = logger or structlog.get_logger(__name__)

    async def instantiate(self, trace: Trace) -> ContractInstance:
        operations = list(trace.operations)
        args, value = (), None
        if operations and operations[0].invocation.method.is_constructor():
            constructor = operations.pop(0).invocation
            args, value = constructor.inputs, constructor.value

        deployed = await self.backend.deploy(self.metadata, self.account, args, value)
        instance = ContractInstance(self.backend, deployed, self.account, self.logger)
        await instance.invoke_sequence(op.invocation for op in operations)
        return instance

    async def construct(self, constructor: Optional[Invocation] = None) -> Execution:
        """Deploy with `constructor` arguments; None deploys a parameterless program."""
        if constructor is None:
            trace = Trace.empty()
        else:
            trace = Trace((Operation(constructor, Result.normal()),))

        try:
            instance = await self.instantiate(trace)
        except BackendRevert as e:
            if constructor is None:
                raise
            self.logger.info("Constructor reverted", contract=self.metadata.name, error=str(e))
            return Execution(Operation(constructor, revert_result(e)), None)

        observation = await instance.observe(self.observers)
        state = State(self.metadata.contract_id, trace, observation)
        operation = trace.operations[0] if trace.operations else None
        return Execution(operation, state)

    async def execute(self, state: State, invocation: Invocation) -> Execution:
        instance = await self.instantiate(state.trace)
        result = await instance.invoke(invocation)
        operation = Operation(invocation, result)

        if result.is_error():
            return Execution(operation, None)

        observation = await instance.observe(self.observers)
        post = State(state.contract_id, state.trace.extend(operation), observation)
        return Execution(operation, post)


class ExecutorFactory:
    def __init__(self, backend, logger=None):
        self.backend = backend
        self.logger = logger or structlog.get_logger(__name__)

    def get_executor(self, metadata, account: str, observers: Sequence[Invocation] = ()) -> Executor:
        return Executor(self.backend, metadata, account, observers, self.logger)

    async def accounts(self) -> List[str]:
        return await self.backend.list_accounts()
