"""
Indexed lookup client.

Thin wrapper over the toncenter v3 HTTP API (transactions and blocks) and
dton's GraphQL endpoint (libraries). Every call goes through one shared
rate gate, since the public endpoints throttle anonymous clients.
"""

import base64
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, List, Optional

import requests
from pytoniq_core import Cell

from retracer.config import RetracerConfig
from retracer.utils.exceptions import IndexerError
from retracer.utils.logging import get_logger

logger = get_logger('indexer')


class RateLimitGate:
    """
    Enforces a minimum interval between consecutive outbound calls.

    The gate only remembers when it last let a call through; it never needs
    to be reset.
    """

    def __init__(
        self,
        min_interval: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.min_interval = min_interval
        self._clock = clock
        self._sleep = sleep
        self._last: Optional[float] = None
        self._lock = threading.Lock()

    def wait(self) -> float:
        """Block until the next call is allowed. Returns the time slept."""
        with self._lock:
            slept = 0.0
            if self._last is not None:
                delay = self._last + self.min_interval - self._clock()
                if delay > 0:
                    logger.debug(f"Rate limit: waiting {delay:.2f}s")
                    self._sleep(delay)
                    slept = delay
            self._last = self._clock()
            return slept


# Shared by every client in the process
DEFAULT_RATE_GATE = RateLimitGate(RetracerConfig().rate_limit_interval)


def shared_rate_gate(min_interval: float) -> RateLimitGate:
    """The process-wide gate, paced at ``min_interval`` from now on."""
    DEFAULT_RATE_GATE.min_interval = min_interval
    return DEFAULT_RATE_GATE


@dataclass(frozen=True)
class BlockRef:
    workchain: int
    shard: str
    seqno: int


@dataclass(frozen=True)
class TransactionSummary:
    """The part of an indexed transaction the resolver cares about."""
    account: str
    lt: int
    hash: bytes
    block_ref: Optional[BlockRef] = None
    mc_block_seqno: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "TransactionSummary":
        block = data.get('block_ref')
        return cls(
            account=data['account'],
            lt=int(data['lt']),
            hash=base64.b64decode(data['hash']),
            block_ref=BlockRef(
                workchain=int(block['workchain']),
                shard=str(block['shard']),
                seqno=int(block['seqno']),
            ) if block else None,
            mc_block_seqno=data.get('mc_block_seqno'),
        )


@dataclass(frozen=True)
class BlockSummary:
    root_hash: str
    mc_seqno: int
    rand_seed: bytes

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "BlockSummary":
        return cls(
            root_hash=data['root_hash'],
            mc_seqno=int(data['masterchain_block_ref']['seqno']),
            rand_seed=base64.b64decode(data['rand_seed']),
        )


def shard_to_hex(shard) -> str:
    """
    Shard ids are signed 64-bit in some APIs and unsigned hex in others.

    Strings are read as hex unless they carry a minus sign; ints as signed.
    """
    if isinstance(shard, str):
        text = shard.strip()
        if text.startswith('-'):
            value = int(text)
        else:
            value = int(text, 16)
    else:
        value = int(shard)
    if value < 0:
        value += 1 << 64
    return '0x' + format(value, 'x')


class IndexClient:
    """
    Client for the indexed lookup services.

    Zero-length results mean "not found" and are returned as empty lists;
    transport and HTTP failures raise IndexerError.
    """

    def __init__(
        self,
        config: Optional[RetracerConfig] = None,
        session: Optional[requests.Session] = None,
        rate_gate: Optional[RateLimitGate] = None,
    ):
        self.config = config or RetracerConfig()
        self.session = session or requests.Session()
        self.rate_gate = rate_gate or shared_rate_gate(self.config.rate_limit_interval)

    def _headers(self) -> Dict[str, str]:
        headers = {'Accept': 'application/json'}
        if self.config.api_key:
            headers['X-API-Key'] = self.config.api_key
        return headers

    def _get(self, url: str, params: Dict[str, Any]) -> Dict[str, Any]:
        self.rate_gate.wait()
        logger.debug(f"GET {url} {params}")
        try:
            response = self.session.get(
                url, params=params, headers=self._headers(), timeout=self.config.request_timeout
            )
            response.raise_for_status()
            return response.json()
        except requests.RequestException as e:
            raise IndexerError(f"Request to {url} failed: {e}", url=url) from e
        except ValueError as e:
            raise IndexerError(f"Invalid JSON from {url}: {e}", url=url) from e

    def fetch_transactions(self, tx_hash: str, testnet: bool, limit: int = 1) -> List[TransactionSummary]:
        """Look transactions up by hash (hex or base64)."""
        url = f"{self.config.index_url(testnet)}/transactions"
        data = self._get(url, {'hash': tx_hash, 'limit': limit})
        try:
            return [TransactionSummary.from_dict(tx) for tx in data.get('transactions', [])]
        except (KeyError, TypeError, ValueError) as e:
            raise IndexerError(f"Malformed transaction list from {url}: {e}", url=url) from e

    def fetch_blocks(self, workchain: int, shard, seqno: int, testnet: bool) -> List[BlockSummary]:
        """Look a shard block up by (workchain, shard, seqno)."""
        url = f"{self.config.index_url(testnet)}/blocks"
        params = {'workchain': workchain, 'shard': shard_to_hex(shard), 'seqno': seqno}
        data = self._get(url, params)
        try:
            return [BlockSummary.from_dict(block) for block in data.get('blocks', [])]
        except (KeyError, TypeError, ValueError) as e:
            raise IndexerError(f"Malformed block list from {url}: {e}", url=url) from e

    def fetch_library(self, lib_hash: str, testnet: bool) -> Cell:
        """Fetch a library cell by its hash from dton's GraphQL."""
        url = self.config.graphql_url(testnet)
        query = {
            'query': f'query fetchLib {{ get_lib(lib_hash: "{lib_hash}") }}',
            'variables': {},
        }
        self.rate_gate.wait()
        try:
            response = self.session.post(
                url, json=query, headers={'Content-Type': 'application/json'},
                timeout=self.config.request_timeout,
            )
            response.raise_for_status()
            lib_b64 = response.json()['data']['get_lib']
        except requests.RequestException as e:
            raise IndexerError(f"Get libs on dton's graphql: {e}", url=url) from e
        except (KeyError, TypeError, ValueError) as e:
            raise IndexerError(f"Unexpected library answer from {url}: {e}", url=url) from e
        if not lib_b64:
            raise IndexerError(f"Library {lib_hash} not found", url=url)
        return Cell.one_from_boc(base64.b64decode(lib_b64))
