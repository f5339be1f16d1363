# ethereum/chain.py
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence, Tuple

import structlog
from eth_abi import decode
from eth_utils import to_bytes, to_hex
from web3 import AsyncHTTPProvider, AsyncWeb3
from web3.exceptions import ContractLogicError

from ..config import DEFAULT_GAS_LIMIT
from ..core.states import Method
from ..core.values import Value
from ..errors import BackendRevert, RevertDetail
from .metadata import Metadata

# Solidity `Error(string)` and `Panic(uint256)` selectors
ERROR_SELECTOR = "0x08c379a0"
PANIC_SELECTOR = "0x4e487b71"
REVERT_PREFIX = "execution reverted"


@dataclass(frozen=True)
class DeployedContract:
    address: str
    metadata: Metadata


class Backend(ABC):
    """Ledger the explorer runs programs against."""

    @abstractmethod
    async def list_accounts(self) -> List[str]:
        ...

    @abstractmethod
    async def deploy(
        self,
        metadata: Metadata,
        account: str,
        args: Sequence[Value] = (),
        value: Optional[int] = None,
    ) -> DeployedContract:
        ...

    @abstractmethod
    async def call(
        self, instance: DeployedContract, method: Method, args: Sequence[Value]
    ) -> Tuple[Value, ...]:
        """Read-only call; never mutates the ledger."""

    @abstractmethod
    async def submit(
        self,
        instance: DeployedContract,
        account: str,
        method: Method,
        args: Sequence[Value],
        value: Optional[int] = None,
    ) -> Dict[str, Any]:
        """Mutating transaction; returns once the receipt is mined."""


def decode_revert(error: ContractLogicError) -> RevertDetail:
    """Decode a web3 revert into a `revert` detail with a readable reason."""
    data = getattr(error, "data", None)
    if isinstance(data, str) and data.startswith(ERROR_SELECTOR):
        (reason,) = decode(["string"], to_bytes(hexstr=data[len(ERROR_SELECTOR):]))
        return RevertDetail("revert", reason)
    if isinstance(data, str) and data.startswith(PANIC_SELECTOR):
        (code,) = decode(["uint256"], to_bytes(hexstr=data[len(PANIC_SELECTOR):]))
        return RevertDetail("revert", f"Panic(0x{code:02x})")

    message = getattr(error, "message", None) or str(error)
    if message.startswith(REVERT_PREFIX):
        message = message[len(REVERT_PREFIX):].lstrip(": ").strip()
    return RevertDetail("revert", message or None)


def normalize_outputs(method: Method, output: Any) -> Tuple[Value, ...]:
    if not method.outputs:
        return ()
    values = (output,) if len(method.outputs) == 1 else tuple(output)
    return tuple(to_hex(v) if isinstance(v, (bytes, bytearray)) else v for v in values)


class Chain(Backend):
    """Backend over a development node with unlocked accounts (anvil, ganache)."""

    def __init__(self, web3: AsyncWeb3, gas_limit: int = DEFAULT_GAS_LIMIT, logger=None):
        self.web3 = web3
        self.gas_limit = gas_limit
        self.logger = logger or structlog.get_logger(__name__)
        self._contracts: Dict[str, Any] = {}

    @classmethod
    async def connect(cls, rpc_url: str, gas_limit: int = DEFAULT_GAS_LIMIT, logger=None) -> "Chain":
        logger = logger or structlog.get_logger(__name__)
        web3 = AsyncWeb3(AsyncHTTPProvider(rpc_url))
        if not await web3.is_connected():
            logger.error("Failed to connect to Web3 provider", url=rpc_url)
            raise ConnectionError(f"Could not connect to Web3 provider at {rpc_url}")
        logger.info("Connected to Web3 provider", url=rpc_url)
        return cls(web3, gas_limit=gas_limit, logger=logger)

    async def list_accounts(self) -> List[str]:
        return list(await self.web3.eth.accounts)

    def _contract(self, instance: DeployedContract):
        if instance.address not in self._contracts:
            self._contracts[instance.address] = self.web3.eth.contract(
                address=instance.address, abi=instance.metadata.raw_abi()
            )
        return self._contracts[instance.address]

    async def deploy(
        self,
        metadata: Metadata,
        account: str,
        args: Sequence[Value] = (),
        value: Optional[int] = None,
    ) -> DeployedContract:
        factory = self.web3.eth.contract(abi=metadata.raw_abi(), bytecode=metadata.bytecode)
        tx: Dict[str, Any] = {"from": account, "gas": self.gas_limit}
        if value:
            tx["value"] = value

        try:
            tx_hash = await factory.constructor(*args).transact(tx)
        except ContractLogicError as e:
            raise BackendRevert([decode_revert(e)]) from e

        receipt = await self.web3.eth.wait_for_transaction_receipt(tx_hash)
        if receipt["status"] == 0:
            raise BackendRevert([RevertDetail("revert")])

        address = receipt["contractAddress"]
        self.logger.debug("Contract deployed", contract=metadata.name, address=address)
        return DeployedContract(address, metadata)

    async def call(
        self, instance: DeployedContract, method: Method, args: Sequence[Value]
    ) -> Tuple[Value, ...]:
        function = self._contract(instance).get_function_by_signature(method.signature)
        try:
            output = await function(*args).call()
        except ContractLogicError as e:
            raise BackendRevert([decode_revert(e)]) from e
        return normalize_outputs(method, output)

    async def submit(
        self,
        instance: DeployedContract,
        account: str,
        method: Method,
        args: Sequence[Value],
        value: Optional[int] = None,
    ) -> Dict[str, Any]:
        function = self._contract(instance).get_function_by_signature(method.signature)
        tx: Dict[str, Any] = {"from": account}
        if value:
            tx["value"] = value

        # gas is estimated, so a reverting transaction fails here with its reason
        try:
            tx_hash = await function(*args).transact(tx)
        except ContractLogicError as e:
            raise BackendRevert([decode_revert(e)]) from e

        receipt = await self.web3.eth.wait_for_transaction_receipt(tx_hash)
        if receipt["status"] == 0:
            raise BackendRevert([RevertDetail("revert")])
        return dict(receipt)
