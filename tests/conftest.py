# tests/conftest.py
"""
In-memory backend running Python models of small contracts, so exploration,
example generation and evaluation can be tested without solc or a node.
"""

import pytest

from contract_simulation.core.states import Method, Parameter
from contract_simulation.errors import BackendRevert, RevertDetail
from contract_simulation.ethereum.chain import Backend, DeployedContract
from contract_simulation.ethereum.metadata import Metadata, SourceInfo

ACCOUNTS = [
    "0x1000000000000000000000000000000000000001",
    "0x2000000000000000000000000000000000000002",
    "0x3000000000000000000000000000000000000003",
]


class Revert(Exception):
    def __init__(self, reason=None):
        self.reason = reason
        super().__init__(reason)


# --- Models ---


class CounterModel:
    def __init__(self):
        self._count = 0

    def inc(self):
        self._count += 1

    def count(self):
        return self._count


class ClickerModel:
    """No read-only methods: every state looks the same."""

    def __init__(self):
        self._clicks = 0

    def click(self):
        self._clicks += 1


class AccountModel:
    def __init__(self):
        self._balance = 0

    def deposit(self, amount):
        self._balance += amount

    def withdraw(self, amount):
        if amount > self._balance:
            raise Revert("insufficient balance")
        self._balance -= amount

    def balance(self):
        return self._balance


class BrokenAccountModel(AccountModel):
    def deposit(self, amount):
        self._balance += min(amount, 1)


class RegistryModel:
    def __init__(self):
        self._members = {}

    def join(self):
        self._members[self.sender] = True

    def members(self, who):
        return self._members.get(who, False)


class PiggyBankModel:
    def __init__(self):
        self._saved = 0

    def save(self):
        self._saved += self.msg_value

    def saved(self):
        return self._saved


class VaultModel:
    def __init__(self, limit):
        if limit == 0:
            raise Revert("zero limit")
        self._limit = limit

    def limit(self):
        return self._limit


class PairModel:
    def __init__(self, left, right):
        self._total = left + right

    def total(self):
        return self._total


MODELS = {
    "Counter": CounterModel,
    "Clicker": ClickerModel,
    "Account": AccountModel,
    "BrokenAccount": BrokenAccountModel,
    "Registry": RegistryModel,
    "PiggyBank": PiggyBankModel,
    "Vault": VaultModel,
    "Pair": PairModel,
}


class FakeBackend(Backend):
    def __init__(self, models=None, accounts=None):
        self.models = dict(MODELS if models is None else models)
        self.accounts = list(ACCOUNTS if accounts is None else accounts)
        self.instances = {}
        self.calls = []
        self.transactions = []

    async def list_accounts(self):
        return list(self.accounts)

    async def deploy(self, metadata, account, args=(), value=None):
        address = "0x%040x" % (len(self.instances) + 1)
        try:
            model = self.models[metadata.name](*args)
        except Revert as e:
            raise BackendRevert([RevertDetail("revert", e.reason)]) from e
        self.instances[address] = model
        return DeployedContract(address, metadata)

    def _run(self, instance, account, method, args, value=None):
        model = self.instances[instance.address]
        model.sender = account
        model.msg_value = value or 0
        try:
            return getattr(model, method.name)(*args)
        except Revert as e:
            raise BackendRevert([RevertDetail("revert", e.reason)]) from e

    async def call(self, instance, method, args):
        self.calls.append((instance.address, method.name, tuple(args)))
        output = self._run(instance, None, method, args)
        if not method.outputs:
            return ()
        return output if isinstance(output, tuple) else (output,)

    async def submit(self, instance, account, method, args, value=None):
        self.transactions.append((instance.address, method.name, tuple(args), value))
        self._run(instance, account, method, args, value)
        return {"status": 1}


# --- Metadata builders ---


def method(name, inputs=(), outputs=(), mutability="nonpayable", kind="function"):
    return Method(
        name=name,
        inputs=tuple(Parameter(f"arg{i}", t) for i, t in enumerate(inputs)),
        outputs=tuple(Parameter("", t) for t in outputs),
        state_mutability=mutability,
        kind=kind,
    )


def variable(name, type_string, constant=False):
    return {
        "nodeType": "VariableDeclaration",
        "name": name,
        "stateVariable": True,
        "constant": constant,
        "mutability": "constant" if constant else "mutable",
        "typeDescriptions": {"typeString": type_string},
    }


def make_metadata(name, methods, variables=()):
    return Metadata(
        name=name,
        source=SourceInfo(path=f"/contracts/{name}.sol", content=""),
        abi=tuple(methods),
        bytecode="0x00",
        members=list(variables),
    )


def counter_metadata():
    return make_metadata(
        "Counter",
        [method("inc"), method("count", outputs=["uint256"], mutability="view")],
        [variable("count", "uint256")],
    )


def clicker_metadata():
    return make_metadata("Clicker", [method("click")], [variable("clicks", "uint256")])


def account_metadata(name="Account"):
    return make_metadata(
        name,
        [
            method("deposit", ["uint256"]),
            method("withdraw", ["uint256"]),
            method("balance", outputs=["uint256"], mutability="view"),
        ],
        [variable("balance", "uint256"), variable("LIMIT", "uint256", constant=True)],
    )


def registry_metadata():
    return make_metadata(
        "Registry",
        [method("join"), method("members", ["address"], ["bool"], mutability="view")],
        [variable("members", "mapping(address => bool)")],
    )


def piggy_bank_metadata():
    return make_metadata(
        "PiggyBank",
        [method("save", mutability="payable"), method("saved", outputs=["uint256"], mutability="view")],
        [variable("saved", "uint256")],
    )


def vault_metadata():
    return make_metadata(
        "Vault",
        [
            method("constructor", ["uint256"], kind="constructor"),
            method("limit", outputs=["uint256"], mutability="view"),
        ],
        [variable("limit", "uint256")],
    )


def pair_metadata():
    return make_metadata(
        "Pair",
        [
            method("constructor", ["uint256", "uint256"], kind="constructor"),
            method("total", outputs=["uint256"], mutability="view"),
        ],
        [variable("total", "uint256")],
    )


class FakeCompiler:
    """Serves prebuilt metadata by source path."""

    def __init__(self, *metadata):
        self.metadata = {m.contract_id: m for m in metadata}
        self.compiled = []

    async def compile_from_file(self, path):
        self.compiled.append(path)
        return self.metadata[path]


@pytest.fixture
def backend():
    return FakeBackend()


@pytest.fixture
def counter():
    return counter_metadata()


@pytest.fixture
def clicker():
    return clicker_metadata()


@pytest.fixture
def account():
    return account_metadata()


@pytest.fixture
def broken_account():
    return account_metadata("BrokenAccount")
