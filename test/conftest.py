import base64
import json
import os

import pytest
import requests

from retracer.core.indexer import BlockSummary, TransactionSummary
from retracer.parsers.opcodes import OpcodeCatalog

INPUTS = os.path.join(os.path.dirname(__file__), 'Inputs')

TX_HASH_HEX = '3e5f49798de239da5d8f80b4dc300204d37613e4203a3f7b877c04a88c81856b'
TX_HASH_B64 = 'Pl9JeY3iOdpdj4C03DACBNN2E+QgOj97h3wEqIyBhWs='
TX_LT = 47670702000009
ACCOUNT = '0:' + 'ab' * 32


class FakeIndex:
    """Stands in for IndexClient, recording every lookup."""

    def __init__(self, transactions=None, blocks=None, error=None):
        # {(hash_hex, testnet): [TransactionSummary, ...]}
        self.transactions = transactions or {}
        self.blocks = blocks or {}
        self.error = error
        self.calls = []

    def fetch_transactions(self, tx_hash, testnet, limit=1):
        self.calls.append((tx_hash, testnet))
        if self.error:
            raise self.error
        return list(self.transactions.get((tx_hash, testnet), []))

    def fetch_blocks(self, workchain, shard, seqno, testnet):
        self.calls.append(('blocks', workchain, shard, seqno, testnet))
        return list(self.blocks.get((workchain, shard, seqno, testnet), []))


class FakeResponse:
    def __init__(self, data=None, status_code=200, text=None):
        self._data = data
        self.status_code = status_code
        self.text = text

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Error")

    def json(self):
        if self.text is not None:
            return json.loads(self.text)
        return self._data


class FakeSession:
    """Minimal requests.Session replacement returning canned responses."""

    def __init__(self, responses=None, error=None):
        self.responses = list(responses or [])
        self.error = error
        self.requests = []

    def _next(self, method, url, **kwargs):
        self.requests.append((method, url, kwargs))
        if self.error:
            raise self.error
        return self.responses.pop(0)

    def get(self, url, **kwargs):
        return self._next('GET', url, **kwargs)

    def post(self, url, **kwargs):
        return self._next('POST', url, **kwargs)


def make_summary(lt=TX_LT, tx_hash=TX_HASH_HEX, account=ACCOUNT):
    return TransactionSummary(account=account, lt=lt, hash=bytes.fromhex(tx_hash))


def make_block(root_hash='cm9vdA==', mc_seqno=38000000, rand_seed=b'\x01' * 32):
    return BlockSummary(root_hash=root_hash, mc_seqno=mc_seqno, rand_seed=rand_seed)


def b64(raw: bytes) -> str:
    return base64.b64encode(raw).decode('ascii')


@pytest.fixture
def catalog():
    with open(os.path.join(INPUTS, 'opcodes.json'), encoding='utf-8') as f:
        return OpcodeCatalog.from_list(json.load(f))


@pytest.fixture
def emulation_path():
    return os.path.join(INPUTS, 'emulation.json')
