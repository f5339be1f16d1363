import asyncio

import pytest

from contract_simulation.core.executor import ExecutorFactory, revert_result
from contract_simulation.core.states import Invocation, Observation, Operation, Result, State, Trace
from contract_simulation.errors import BackendRevert, RevertDetail, UnexpectedResultShape

from conftest import ACCOUNTS, vault_metadata


def _balance_observer(metadata):
    return [Invocation(metadata.find_method("balance"))]


def test_revert_result_folds_single_revert():
    result = revert_result(BackendRevert([RevertDetail("revert", "insufficient balance")]))
    assert result == Result.failure("revert", "insufficient balance")
    assert result.is_error()


@pytest.mark.parametrize(
    "details",
    [
        [],
        [RevertDetail("revert", "a"), RevertDetail("revert", "b")],
        [RevertDetail("out of gas")],
    ],
)
def test_revert_result_rejects_other_shapes(details):
    with pytest.raises(UnexpectedResultShape):
        revert_result(BackendRevert(details))


def test_construct_observes_initial_state(backend, account):
    executor = ExecutorFactory(backend).get_executor(account, ACCOUNTS[0], _balance_observer(account))
    execution = asyncio.run(executor.construct())

    assert execution.operation is None
    assert execution.post.trace == Trace.empty()
    assert str(execution.post.observation) == "balance() => 0"
    assert execution.post.contract_id == account.contract_id


def test_execute_replays_trace_on_fresh_instance(backend, account):
    executor = ExecutorFactory(backend).get_executor(account, ACCOUNTS[0], _balance_observer(account))
    deposit = Invocation(account.find_method("deposit"), (2,))

    async def scenario():
        initial = (await executor.construct()).post
        first = await executor.execute(initial, deposit)
        second = await executor.execute(first.post, deposit)
        return first, second

    first, second = asyncio.run(scenario())

    assert str(first.post) == "[[ deposit(2) : balance() => 2 ]]"
    assert str(second.post) == "[[ deposit(2); deposit(2) : balance() => 4 ]]"
    # one deployment per execution: initial, first, second
    assert len(backend.instances) == 3


def test_execute_folds_revert_into_error_result(backend, account):
    executor = ExecutorFactory(backend).get_executor(account, ACCOUNTS[0], _balance_observer(account))
    withdraw = Invocation(account.find_method("withdraw"), (1,))

    async def scenario():
        initial = (await executor.construct()).post
        return await executor.execute(initial, withdraw)

    execution = asyncio.run(scenario())

    assert execution.post is None
    assert execution.operation.result == Result.failure("revert", "insufficient balance")
    assert str(execution.operation) == 'withdraw(1) => !revert("insufficient balance")'


def test_constructor_revert_is_recorded(backend):
    vault = vault_metadata()
    executor = ExecutorFactory(backend).get_executor(vault, ACCOUNTS[0])
    constructor = Invocation(vault.constructor, (0,))

    execution = asyncio.run(executor.construct(constructor))

    assert execution.post is None
    assert execution.operation.result.reason == "zero limit"


def test_constructor_operation_leads_the_trace(backend):
    vault = vault_metadata()
    observers = [Invocation(vault.find_method("limit"))]
    executor = ExecutorFactory(backend).get_executor(vault, ACCOUNTS[0], observers)

    execution = asyncio.run(executor.construct(Invocation(vault.constructor, (2,))))

    assert len(execution.post.trace) == 1
    assert execution.post.trace.operations[0] == execution.operation
    assert str(execution.post.observation) == "limit() => 2"


def test_unexpected_error_propagates(account):
    class BrokenBackend:
        async def list_accounts(self):
            return ACCOUNTS

        async def deploy(self, metadata, account, args=(), value=None):
            return object()

        async def submit(self, *args, **kwargs):
            raise BackendRevert([RevertDetail("revert"), RevertDetail("revert")])

    executor = ExecutorFactory(BrokenBackend()).get_executor(account, ACCOUNTS[0])
    state = State.initial(account.contract_id, Observation())
    with pytest.raises(UnexpectedResultShape):
        asyncio.run(executor.execute(state, Invocation(account.find_method("deposit"), (1,))))


def test_replay_failure_propagates(backend, account):
    executor = ExecutorFactory(backend).get_executor(account, ACCOUNTS[0])
    withdraw = Operation(Invocation(account.find_method("withdraw"), (1,)), Result.normal())
    state = State(account.contract_id, Trace((withdraw,)), Observation())

    with pytest.raises(BackendRevert):
        asyncio.run(executor.execute(state, Invocation(account.find_method("deposit"), (1,))))
