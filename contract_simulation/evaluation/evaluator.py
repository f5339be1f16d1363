# evaluation/evaluator.py
import json
import sys
from typing import Dict, TextIO, Tuple

import structlog

from ..core.executor import ContractInstance, ExecutorFactory
from ..core.states import Invocation, State
from ..core.values import Value
from ..errors import MalformedRequest, TypeMismatch
from . import expressions
from .expressions import Expr, ExpressionSyntaxError, Reference


class Evaluator:
    """
    Line-oriented predicate evaluation against recorded states.

    Each request is `<state-json>@<expression>`; the answer is `true` or
    `false` on its own line. Any failure ends the session.
    """

    DELIMITER = "@"

    def __init__(self, factory: ExecutorFactory, account: str, compiler, logger=None):
        self.factory = factory
        self.account = account
        self.compiler = compiler
        self.logger = logger or structlog.get_logger(__name__)
        self._metadata: Dict[str, object] = {}

    async def metadata(self, contract_id: str):
        if contract_id not in self._metadata:
            self._metadata[contract_id] = await self.compiler.compile_from_file(contract_id)
        return self._metadata[contract_id]

    def parse_request(self, line: str) -> Tuple[State, Expr]:
        # the expression half never contains the delimiter; the state half may, inside revert reasons
        encoded_state, delimiter, text = line.rpartition(self.DELIMITER)
        if not delimiter:
            raise MalformedRequest(f"Missing delimiter {self.DELIMITER!r} in request: {line}")

        try:
            state = State.from_json(encoded_state)
        except (ValueError, KeyError, TypeError) as e:
            raise MalformedRequest(f"Cannot decode state: {e}") from e

        try:
            expression = expressions.parse(text)
        except ExpressionSyntaxError as e:
            raise MalformedRequest(f"Cannot parse expression: {e}") from e

        return state, expression

    async def process_request(self, state: State, expression: Expr) -> bool:
        metadata = await self.metadata(state.contract_id)
        executor = self.factory.get_executor(metadata, self.account)
        instance = await executor.instantiate(state.trace)

        async def resolve(reference: Reference) -> Value:
            return await self._probe(metadata, instance, reference)

        value = await expressions.evaluate(expression, resolve)
        self.logger.debug("Evaluated expression", state=str(state), expression=str(expression), value=value)
        return value

    async def _probe(self, metadata, instance: ContractInstance, reference: Reference) -> Value:
        method = metadata.find_method(reference.name, len(reference.args))
        if method is None or not method.is_read_only():
            raise MalformedRequest(f"Unknown read-only method: {reference}")

        result = await instance.invoke_read_only(Invocation(method, reference.args))
        if len(result.values) != 1:
            raise TypeMismatch(reference, result)
        return result.values[0]

    async def evaluate_line(self, line: str) -> bool:
        state, expression = self.parse_request(line)
        return await self.process_request(state, expression)

    async def listen(self, stream: TextIO = sys.stdin, out: TextIO = sys.stdout) -> int:
        """Serve requests until end of input; returns the number answered."""
        answered = 0
        self.logger.info("Evaluator listening", delimiter=self.DELIMITER)

        for line in stream:
            line = line.rstrip("\r\n")
            value = await self.evaluate_line(line)
            out.write(json.dumps(value) + "\n")
            out.flush()
            answered += 1

        self.logger.info("Evaluator finished", requests=answered)
        return answered
