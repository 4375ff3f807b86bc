"""
Transaction locator resolution.

Turns whatever the user pasted (an explorer link, ``lt:hash``, a bare hash)
into the canonical (lt, hash, account) triple of one transaction, asking the
index when the input does not carry all three parts.

Supported explorer shapes::

    https://ton.cx/tx/47670702000009:Pl9JeY3iOdpdj4C03DACBNN2E+QgOj97h3wEqIyBhWs=:EQDa4VOn...
    https://tonviewer.com/transaction/3e5f49798de239da5d8f80b4dc300204d37613e4203a3f7b877c04a88c81856b
    https://tonscan.org/tx/Pl9JeY3iOdpdj4C03DACBNN2E+QgOj97h3wEqIyBhWs=
    https://explorer.toncoin.org/transaction?account=EQDa4VOn...&lt=47670702000009&hash=3e5f4979...
    https://dton.io/tx/F64C6A3CDF3FAD1D786AACF9A6130F18F3F76EEB71294F53BBD812AD3703E70A

each also served from a ``testnet.`` (or ``test-``) host.
"""

import base64
import binascii
import re
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple
from urllib.parse import parse_qs, quote, unquote, urlencode, urlparse

from pytoniq_core import Address

from retracer.core.indexer import IndexClient, TransactionSummary
from retracer.utils.exceptions import (
    ConsistencyError,
    IndexerError,
    ResolutionError,
    RetracerError,
)
from retracer.utils.logging import get_logger

logger = get_logger('locator')

HASH_BYTES = 32
HEX_HASH_LENGTH = 64
MAX_LT = (1 << 64) - 1

_HEX = re.compile(r'^[0-9a-fA-F]*$')


def normalize_address(value: str) -> str:
    """Raw ``wc:hex`` form of a raw or user-friendly address."""
    try:
        return Address(value.strip()).to_str(is_user_friendly=False).lower()
    except Exception as e:
        raise ValueError(f"Invalid address {value!r}: {e}") from e


def decode_hex_hash(text: str) -> bytes:
    if len(text) != HEX_HASH_LENGTH or not _HEX.match(text):
        raise ValueError(f"Not a {HEX_HASH_LENGTH}-character hex hash: {text!r}")
    return bytes.fromhex(text)


def decode_base64_hash(text: str) -> bytes:
    """Standard or url-safe base64, possibly percent-encoded."""
    text = unquote(text.strip()).replace('-', '+').replace('_', '/')
    try:
        raw = base64.b64decode(text, validate=True)
    except (binascii.Error, ValueError) as e:
        raise ValueError(f"Not a base64 hash: {text!r}") from e
    if len(raw) != HASH_BYTES:
        raise ValueError(f"Hash must be {HASH_BYTES} bytes, got {len(raw)}")
    return raw


def parse_lt(text: str) -> int:
    lt = int(text.strip())
    if not 0 <= lt <= MAX_LT:
        raise ValueError(f"Logical time out of range: {lt}")
    return lt


@dataclass(frozen=True)
class TransactionLocator:
    """Canonical identifier of one transaction."""
    lt: int
    hash: bytes
    address: str
    testnet: bool = False

    @property
    def hash_hex(self) -> str:
        return self.hash.hex()

    @property
    def hash_base64(self) -> str:
        return base64.b64encode(self.hash).decode('ascii')

    @property
    def account(self) -> Address:
        return Address(self.address)

    @property
    def friendly_address(self) -> str:
        return self.account.to_str(is_user_friendly=True, is_url_safe=True, is_bounceable=True)

    def links(self) -> Dict[str, str]:
        """The transaction on each supported explorer."""
        dot = 'testnet.' if self.testnet else ''
        dash = 'test-' if self.testnet else ''
        params = urlencode({'account': self.friendly_address, 'lt': self.lt, 'hash': self.hash_hex})
        return {
            'toncx': f"https://{dot}ton.cx/tx/{self.lt}:{self.hash_base64}:{self.friendly_address}",
            'tonviewer': f"https://{dot}tonviewer.com/transaction/{self.hash_hex}",
            'tonscan': f"https://{dot}tonscan.org/tx/{self.hash_base64}",
            'toncoin': f"https://{dash}explorer.toncoin.org/transaction?{params}",
            'dton': f"https://{dot}dton.io/tx/{self.hash_hex.upper()}",
        }

    def replay_url(self, base_url: str) -> str:
        """Link that re-opens this transaction in the web viewer."""
        url = f"{base_url}?tx={quote(self.hash_hex)}"
        if self.testnet:
            url += "&testnet=true"
        return url


@dataclass(frozen=True)
class ShardBlockRef:
    """A shard block known locally, with the root hash to check lookups against."""
    workchain: int
    shard: str
    seqno: int
    root_hash: str


@dataclass(frozen=True)
class BlockContext:
    mc_seqno: int
    rand_seed: bytes


# ============================================================================
# Explorer formats
# ============================================================================

PAYLOAD_INLINE = 'inline'      # lt:base64hash:address
PAYLOAD_HEX = 'hex'
PAYLOAD_BASE64 = 'base64'
PAYLOAD_QUERY = 'query'        # account / lt / hash parameters


@dataclass(frozen=True)
class ExplorerFormat:
    name: str
    mainnet_prefix: str
    testnet_prefix: str
    payload: str
    testnet_marker: str = 'testnet.'

    def match(self, reference: str) -> Optional[Tuple[str, bool]]:
        """Payload and testnet flag when the reference is a link of this explorer."""
        for prefix in (self.testnet_prefix, self.mainnet_prefix):
            if reference.startswith(prefix):
                payload = reference[len(prefix):]
                if self.payload != PAYLOAD_QUERY:
                    payload = payload.split('?', 1)[0].split('#', 1)[0].strip('/')
                return payload, self.testnet_marker in prefix
        return None


EXPLORER_FORMATS: Tuple[ExplorerFormat, ...] = (
    ExplorerFormat('ton.cx', 'https://ton.cx/tx/', 'https://testnet.ton.cx/tx/', PAYLOAD_INLINE),
    ExplorerFormat('tonviewer', 'https://tonviewer.com/transaction/',
                   'https://testnet.tonviewer.com/transaction/', PAYLOAD_HEX),
    ExplorerFormat('tonscan', 'https://tonscan.org/tx/', 'https://testnet.tonscan.org/tx/', PAYLOAD_BASE64),
    ExplorerFormat('toncoin.org', 'https://explorer.toncoin.org/transaction',
                   'https://test-explorer.toncoin.org/transaction', PAYLOAD_QUERY, testnet_marker='test-'),
    ExplorerFormat('dton', 'https://dton.io/tx/', 'https://testnet.dton.io/tx/', PAYLOAD_HEX),
)


def parse_inline(payload: str) -> Tuple[int, bytes, str]:
    """``lt:base64hash:address``; the address itself may be raw ``wc:hex``."""
    parts = payload.split(':', 2)
    if len(parts) != 3:
        raise ValueError(f"Expected lt:hash:address, got {payload!r}")
    lt_str, hash_str, addr_str = parts
    return parse_lt(lt_str), decode_base64_hash(hash_str), normalize_address(unquote(addr_str))


def parse_query(payload: str) -> Tuple[int, bytes, str]:
    params = parse_qs(urlparse(payload).query)

    def first(key: str) -> str:
        values = params.get(key)
        if not values:
            raise ValueError(f"Missing '{key}' parameter")
        return values[0]

    return parse_lt(first('lt')), decode_hex_hash(first('hash')), normalize_address(first('account'))


def looks_inline(reference: str) -> bool:
    parts = reference.split(':', 2)
    return len(parts) == 3 and parts[0].isdigit()


# ============================================================================
# Resolver
# ============================================================================

class LocatorResolver:
    """
    Resolves transaction references against the index.

    When the caller does not force a network, mainnet is asked first and
    testnet only if mainnet knows nothing about the hash. The two lookups are
    issued one after the other so that mainnet always wins a tie.
    """

    def __init__(self, index: IndexClient):
        self.index = index
        self._resolved: Dict[Tuple[str, Optional[bool]], TransactionLocator] = {}

    def resolve(self, reference: str, testnet: Optional[bool] = None) -> TransactionLocator:
        """
        Resolve a reference to a TransactionLocator.

        Args:
            reference: explorer link, ``lt:hash``, ``lt:hash:address`` or bare hash
            testnet: force testnet (True) or mainnet (False); None tries both

        Raises:
            ResolutionError: nothing matched, or the index knows no such transaction
        """
        reference = reference.strip()
        key = (reference, testnet)
        if key in self._resolved:
            return self._resolved[key]

        logger.debug(f"Resolving {reference!r} (testnet={testnet})")
        attempted: List[str] = []
        try:
            locator = self._resolve(reference, testnet, attempted)
        except ResolutionError:
            raise
        except IndexerError as e:
            raise ResolutionError(
                f"Couldn't recognize such link. Got strange error: {e.message}",
                attempted=attempted, reference=reference,
            ) from e
        logger.info(f"Resolved to lt={locator.lt} hash={locator.hash_hex} "
                    f"account={locator.address} testnet={locator.testnet}")
        self._resolved[key] = locator
        return locator

    def _resolve(self, reference: str, testnet: Optional[bool], attempted: List[str]) -> TransactionLocator:
        for fmt in EXPLORER_FORMATS:
            matched = fmt.match(reference)
            if matched is None:
                continue
            payload, marked_testnet = matched
            forced = True if (testnet or marked_testnet) else testnet
            return self._resolve_explorer(fmt, payload, forced, reference, attempted)

        if looks_inline(reference):
            try:
                lt, tx_hash, address = parse_inline(reference)
            except ValueError as e:
                raise ResolutionError(f"Malformed lt:hash:address reference: {e}",
                                      attempted=['lt:hash:address'], reference=reference) from e
            return TransactionLocator(lt, tx_hash, address, bool(testnet))

        attempted.extend(fmt.name for fmt in EXPLORER_FORMATS)

        if ':' in reference:
            return self._resolve_lt_hash(reference, testnet, attempted)
        return self._resolve_bare_hash(reference, testnet, attempted)

    def _resolve_explorer(
        self,
        fmt: ExplorerFormat,
        payload: str,
        testnet: Optional[bool],
        reference: str,
        attempted: List[str],
    ) -> TransactionLocator:
        attempted.append(fmt.name)
        try:
            if fmt.payload == PAYLOAD_INLINE:
                lt, tx_hash, address = parse_inline(payload)
                return TransactionLocator(lt, tx_hash, address, bool(testnet))
            if fmt.payload == PAYLOAD_QUERY:
                lt, tx_hash, address = parse_query(payload)
                return TransactionLocator(lt, tx_hash, address, bool(testnet))
            if fmt.payload == PAYLOAD_HEX:
                tx_hash = decode_hex_hash(payload)
            else:
                tx_hash = decode_base64_hash(payload)
        except ValueError as e:
            raise ResolutionError(f"Malformed {fmt.name} link: {e}",
                                  attempted=attempted, reference=reference) from e

        summary, is_testnet = self._lookup(tx_hash, fmt.name, testnet, attempted, reference)
        return TransactionLocator(summary.lt, tx_hash, normalize_address(summary.account), is_testnet)

    def _resolve_lt_hash(self, reference: str, testnet: Optional[bool], attempted: List[str]) -> TransactionLocator:
        # e.g. 47670702000009:3e5f4979...856b, copied from ton.cx's lt and hash fields
        lt_str, _, hash_str = reference.partition(':')
        try:
            lt = parse_lt(lt_str)
            tx_hash = decode_hex_hash(hash_str.strip())
        except ValueError as e:
            attempted.append('lt:hash')
            raise ResolutionError(f"Couldn't recognize such link: {e}",
                                  attempted=attempted, reference=reference) from e

        summary, is_testnet = self._lookup(tx_hash, 'lt:hash', testnet, attempted, reference)
        if summary.lt != lt:
            logger.warning(f"Index reports lt {summary.lt} for {hash_str}, keeping the given {lt}")
        return TransactionLocator(lt, tx_hash, normalize_address(summary.account), is_testnet)

    def _resolve_bare_hash(self, reference: str, testnet: Optional[bool], attempted: List[str]) -> TransactionLocator:
        # e.g. fyGURCMaAmBYVk39QcE/ToX7zQUVA2cyRsO6/U52HW8= or 3e5f4979...856b
        try:
            if reference.endswith('='):
                tx_hash = decode_base64_hash(reference)
            elif len(reference) == HEX_HASH_LENGTH:
                tx_hash = decode_hex_hash(reference)
            else:
                raise ValueError(
                    f"Seems like hash, but not of length {HEX_HASH_LENGTH}. Probably missing letters"
                )
        except ValueError as e:
            attempted.append('bare hash')
            raise ResolutionError(f"Couldn't recognize such link: {e}",
                                  attempted=attempted, reference=reference) from e

        summary, is_testnet = self._lookup(tx_hash, 'bare hash', testnet, attempted, reference)
        return TransactionLocator(summary.lt, summary.hash, normalize_address(summary.account), is_testnet)

    def _lookup(
        self,
        tx_hash: bytes,
        label: str,
        testnet: Optional[bool],
        attempted: List[str],
        reference: str,
    ) -> Tuple[TransactionSummary, bool]:
        """Ask the index for a hash, mainnet first unless a network is forced."""
        networks = [testnet] if testnet is not None else [False, True]
        for is_testnet in networks:
            network = 'testnet' if is_testnet else 'mainnet'
            logger.info(f"Trying {label} {network} for {tx_hash.hex()}...")
            found = self.index.fetch_transactions(tx_hash.hex(), is_testnet, limit=1)
            attempted.append(f"{label} {network}")
            if found:
                if len(found) > 1:
                    logger.warning(f"{len(found)} transactions share hash {tx_hash.hex()}, "
                                   f"using the first ({found[0].account})")
                return found[0], is_testnet
        raise ResolutionError("Couldn't find such transaction, tried all formats",
                              attempted=attempted, reference=reference)

    def verify_block(self, ref: ShardBlockRef, testnet: bool) -> BlockContext:
        """
        Fetch masterchain seqno and random seed of a shard block.

        Raises:
            ResolutionError: the index does not know the block
            ConsistencyError: the indexed block has a different root hash
        """
        try:
            blocks = self.index.fetch_blocks(ref.workchain, ref.shard, ref.seqno, testnet)
        except RetracerError as e:
            raise ResolutionError(f"Get blocks on index: {e.message}",
                                  attempted=[f"block {ref.workchain}:{ref.shard}:{ref.seqno}"]) from e
        if not blocks:
            raise ResolutionError(f"Block {ref.workchain}:{ref.shard}:{ref.seqno} not found",
                                  attempted=[f"block {ref.workchain}:{ref.shard}:{ref.seqno}"])
        block = blocks[0]
        if block.root_hash != ref.root_hash:
            raise ConsistencyError(
                f"rootHash mismatch in mc_seqno getter: {ref.root_hash} != {block.root_hash}",
                expected=ref.root_hash, actual=block.root_hash,
            )
        return BlockContext(mc_seqno=block.mc_seqno, rand_seed=block.rand_seed)
