import asyncio
import io

import pytest

from contract_simulation.core.executor import ExecutorFactory
from contract_simulation.core.states import Invocation, Observation, Operation, Result, State, Trace
from contract_simulation.errors import MalformedRequest, TypeMismatch
from contract_simulation.evaluation.evaluator import Evaluator

from conftest import ACCOUNTS, FakeCompiler, registry_metadata


def recorded_state(metadata, *deposits):
    deposit = metadata.find_method("deposit")
    trace = Trace(tuple(Operation(Invocation(deposit, (amount,)), Result.normal()) for amount in deposits))
    # the recorded observation is not consulted: evaluation replays the trace
    return State(metadata.contract_id, trace, Observation())


def make_evaluator(backend, *metadata):
    compiler = FakeCompiler(*metadata)
    return Evaluator(ExecutorFactory(backend), ACCOUNTS[0], compiler), compiler


def serve(evaluator, lines):
    out = io.StringIO()
    answered = asyncio.run(evaluator.listen(io.StringIO("".join(line + "\n" for line in lines)), out))
    return answered, out.getvalue().splitlines()


def test_positive_balance(backend, account):
    evaluator, _ = make_evaluator(backend, account)
    state = recorded_state(account, 2, 2, 1)

    answered, output = serve(evaluator, [f"{state.to_json()}@balance > 0"])

    assert answered == 1
    assert output == ["true"]


def test_zero_balance(backend, account):
    evaluator, _ = make_evaluator(backend, account)
    state = recorded_state(account)

    _, output = serve(evaluator, [f"{state.to_json()}@balance > 0", f"{state.to_json()}@(= balance 0)"])

    assert output == ["false", "true"]


def test_metadata_is_compiled_once_per_program(backend, account):
    evaluator, compiler = make_evaluator(backend, account)
    state = recorded_state(account, 1)

    serve(evaluator, [f"{state.to_json()}@balance > 0"] * 3)

    assert compiler.compiled == [account.contract_id]


def test_contract_prefix_is_stripped(backend, account):
    evaluator, _ = make_evaluator(backend, account)
    state = recorded_state(account, 1)

    answered, output = serve(evaluator, [f"{state.to_json()}@Account.balance == 1"])

    assert answered == 1
    assert output == ["true"]


@pytest.mark.parametrize("blank", ["", "   "])
def test_blank_line_ends_session(backend, account, blank):
    evaluator, _ = make_evaluator(backend, account)
    state = recorded_state(account, 1)
    out = io.StringIO()
    stream = io.StringIO(f"{blank}\n{state.to_json()}@balance > 0\n")

    with pytest.raises(MalformedRequest):
        asyncio.run(evaluator.listen(stream, out))

    assert out.getvalue() == ""


def test_method_arguments(backend):
    registry = registry_metadata()
    evaluator, _ = make_evaluator(backend, registry)
    join = Operation(Invocation(registry.find_method("join")), Result.normal())
    state = State(registry.contract_id, Trace((join,)), Observation())

    _, output = serve(
        evaluator,
        [
            f"{state.to_json()}@members({ACCOUNTS[0]}) && !members({ACCOUNTS[1]})",
            f"{state.to_json()}@(members {ACCOUNTS[1]})",
        ],
    )

    assert output == ["true", "false"]


def test_non_boolean_expression_aborts_session(backend, account):
    evaluator, _ = make_evaluator(backend, account)
    state = recorded_state(account, 1)

    with pytest.raises(TypeMismatch):
        serve(evaluator, [f"{state.to_json()}@balance + 1", f"{state.to_json()}@balance > 0"])


@pytest.mark.parametrize(
    "line",
    [
        "no delimiter here",
        "{not json}@balance > 0",
        '{"contractId": "/contracts/Account.sol"}@balance > 0',
    ],
)
def test_malformed_requests(backend, account, line):
    evaluator, _ = make_evaluator(backend, account)
    with pytest.raises(MalformedRequest):
        evaluator.parse_request(line)


def test_unparsable_expression(backend, account):
    evaluator, _ = make_evaluator(backend, account)
    state = recorded_state(account)
    with pytest.raises(MalformedRequest):
        evaluator.parse_request(f"{state.to_json()}@(> balance")


def test_unknown_method_is_rejected(backend, account):
    evaluator, _ = make_evaluator(backend, account)
    state = recorded_state(account)
    with pytest.raises(MalformedRequest):
        serve(evaluator, [f"{state.to_json()}@owner > 0"])


@pytest.mark.parametrize(
    "expression",
    [
        "balance(owner) > 0",
        "(members owner)",
        "(not paused true)",
        "(= balance)",
        "(ite (> balance 0) 1)",
    ],
)
def test_malformed_expressions_are_rejected_before_evaluation(backend, account, expression):
    evaluator, _ = make_evaluator(backend, account)
    state = recorded_state(account, 1)

    with pytest.raises(MalformedRequest):
        asyncio.run(evaluator.evaluate_line(f"{state.to_json()}@{expression}"))

    # nothing was deployed for a request that never parsed
    assert backend.instances == {}
