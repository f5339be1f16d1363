# config.py
import os
from dataclasses import dataclass

DEFAULT_RPC_URL = "http://localhost:8545"
DEFAULT_GAS_LIMIT = 2_000_000
DEFAULT_STATES = 5


@dataclass(frozen=True)
class Settings:
    """Process settings; the CLI takes no flags, everything comes from the environment."""

    web3_provider_url: str = DEFAULT_RPC_URL
    solc_binary: str = "solc"
    log_level: str = "INFO"
    log_format: str = "console"
    gas_limit: int = DEFAULT_GAS_LIMIT
    states: int = DEFAULT_STATES

    @classmethod
    def from_env(cls, environ=None) -> "Settings":
        env = os.environ if environ is None else environ
        return cls(
            web3_provider_url=env.get("WEB3_PROVIDER_URL", DEFAULT_RPC_URL),
            solc_binary=env.get("SOLC_BINARY", "solc"),
            log_level=env.get("LOG_LEVEL", "INFO").upper(),
            log_format=env.get("LOG_FORMAT", "console").lower(),
            gas_limit=int(env.get("GAS_LIMIT", DEFAULT_GAS_LIMIT)),
            states=int(env.get("SIMULATION_STATES", DEFAULT_STATES)),
        )
