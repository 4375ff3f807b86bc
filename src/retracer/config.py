"""
Runtime configuration for retracer.

Values come from the environment first and can be overridden by CLI flags.
"""

import os
from dataclasses import dataclass, replace
from typing import Optional

OPCODES_JSON_URL = (
    'https://raw.githubusercontent.com/ton-community/ton-docs/'
    'refs/heads/main/src/data/opcodes/opcodes.json'
)


@dataclass(frozen=True)
class RetracerConfig:
    """Endpoints, credentials and pacing used by the network-facing parts."""
    toncenter_url: str = "https://toncenter.com/api/v3"
    toncenter_testnet_url: str = "https://testnet.toncenter.com/api/v3"
    dton_url: str = "https://dton.io/graphql"
    dton_testnet_url: str = "https://testnet.dton.io/graphql"
    api_key: Optional[str] = None
    rate_limit_interval: float = 1.1  # seconds between index calls
    request_timeout: float = 30.0
    opcodes_url: str = OPCODES_JSON_URL
    replay_base_url: str = "https://retracer.ton.org/"

    def index_url(self, testnet: bool) -> str:
        return self.toncenter_testnet_url if testnet else self.toncenter_url

    def graphql_url(self, testnet: bool) -> str:
        return self.dton_testnet_url if testnet else self.dton_url

    @classmethod
    def from_env(cls) -> "RetracerConfig":
        """Build a configuration from RETRACER_* / TONCENTER_* variables."""
        config = cls()
        overrides = {}
        api_key = os.environ.get("TONCENTER_API_KEY")
        if api_key:
            overrides["api_key"] = api_key
        rate_limit = os.environ.get("RETRACER_RATE_LIMIT")
        if rate_limit:
            overrides["rate_limit_interval"] = float(rate_limit)
        timeout = os.environ.get("RETRACER_TIMEOUT")
        if timeout:
            overrides["request_timeout"] = float(timeout)
        opcodes = os.environ.get("RETRACER_OPCODES")
        if opcodes:
            overrides["opcodes_url"] = opcodes
        return replace(config, **overrides)

    def with_overrides(self, **kwargs) -> "RetracerConfig":
        """Return a copy with every non-None keyword applied."""
        return replace(self, **{k: v for k, v in kwargs.items() if v is not None})
