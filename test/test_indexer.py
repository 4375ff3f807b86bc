import pytest
import requests
from pytoniq_core import begin_cell

from retracer.config import RetracerConfig
from retracer.cli.common import create_index_client, load_config
from retracer.core.indexer import DEFAULT_RATE_GATE, IndexClient, RateLimitGate, shard_to_hex
from retracer.utils.exceptions import IndexerError

from conftest import ACCOUNT, TX_HASH_B64, TX_HASH_HEX, FakeResponse, FakeSession, b64


class FakeClock:
    def __init__(self):
        self.now = 100.0
        self.sleeps = []

    def __call__(self):
        return self.now

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.now += seconds


def test_rate_gate_spaces_calls():
    clock = FakeClock()
    gate = RateLimitGate(1.1, clock=clock, sleep=clock.sleep)
    assert gate.wait() == 0.0
    clock.now += 0.5
    assert gate.wait() == pytest.approx(0.6)
    clock.now += 5
    assert gate.wait() == 0.0
    assert clock.sleeps == [pytest.approx(0.6)]


def test_zero_interval_never_sleeps():
    clock = FakeClock()
    gate = RateLimitGate(0, clock=clock, sleep=clock.sleep)
    for _ in range(3):
        gate.wait()
    assert clock.sleeps == []


def test_clients_share_one_gate_paced_by_config(monkeypatch):
    monkeypatch.setattr(DEFAULT_RATE_GATE, "min_interval", DEFAULT_RATE_GATE.min_interval)
    first = IndexClient(RetracerConfig(rate_limit_interval=2.5))
    second = IndexClient(RetracerConfig(rate_limit_interval=0.25))
    assert first.rate_gate is second.rate_gate is DEFAULT_RATE_GATE
    assert DEFAULT_RATE_GATE.min_interval == 0.25


def test_rate_limit_from_environment_reaches_the_gate(monkeypatch):
    monkeypatch.setattr(DEFAULT_RATE_GATE, "min_interval", DEFAULT_RATE_GATE.min_interval)
    monkeypatch.setenv("RETRACER_RATE_LIMIT", "0.3")
    client = create_index_client(load_config(None))
    assert client.rate_gate is DEFAULT_RATE_GATE
    assert DEFAULT_RATE_GATE.min_interval == 0.3


def make_client(responses=None, error=None, **config):
    session = FakeSession(responses, error)
    client = IndexClient(RetracerConfig(**config), session=session, rate_gate=RateLimitGate(0))
    return client, session


def test_fetch_transactions():
    tx = {
        "account": ACCOUNT.upper(),
        "lt": "47670702000009",
        "hash": TX_HASH_B64,
        "block_ref": {"workchain": 0, "shard": "8000000000000000", "seqno": 45000000},
        "mc_block_seqno": 38000000,
    }
    client, session = make_client([FakeResponse({"transactions": [tx]})], api_key="secret")
    found = client.fetch_transactions(TX_HASH_HEX, testnet=False)

    assert len(found) == 1
    assert found[0].lt == 47670702000009
    assert found[0].hash.hex() == TX_HASH_HEX
    assert found[0].block_ref.seqno == 45000000

    method, url, kwargs = session.requests[0]
    assert url == "https://toncenter.com/api/v3/transactions"
    assert kwargs['params'] == {'hash': TX_HASH_HEX, 'limit': 1}
    assert kwargs['headers']['X-API-Key'] == 'secret'


def test_empty_result_is_not_an_error():
    client, session = make_client([FakeResponse({"transactions": []})])
    assert client.fetch_transactions(TX_HASH_HEX, testnet=True) == []
    assert session.requests[0][1].startswith("https://testnet.toncenter.com/")
    assert 'X-API-Key' not in session.requests[0][2]['headers']


def test_http_errors_raise():
    client, _ = make_client([FakeResponse(status_code=429)])
    with pytest.raises(IndexerError):
        client.fetch_transactions(TX_HASH_HEX, testnet=False)


def test_transport_errors_raise():
    client, _ = make_client(error=requests.ConnectionError("refused"))
    with pytest.raises(IndexerError):
        client.fetch_transactions(TX_HASH_HEX, testnet=False)


def test_invalid_json_raises():
    client, _ = make_client([FakeResponse(text="<html>")])
    with pytest.raises(IndexerError):
        client.fetch_transactions(TX_HASH_HEX, testnet=False)


def test_fetch_blocks():
    block = {
        "root_hash": "cm9vdA==",
        "masterchain_block_ref": {"workchain": -1, "shard": "8000000000000000", "seqno": 38000000},
        "rand_seed": b64(b'\x02' * 32),
    }
    client, session = make_client([FakeResponse({"blocks": [block]})])
    blocks = client.fetch_blocks(0, -9223372036854775808, 45000000, testnet=False)
    assert blocks[0].mc_seqno == 38000000
    assert blocks[0].rand_seed == b'\x02' * 32
    assert session.requests[0][2]['params']['shard'] == '0x8000000000000000'


@pytest.mark.parametrize("shard, expected", [
    ('8000000000000000', '0x8000000000000000'),
    ('0x8000000000000000', '0x8000000000000000'),
    (-9223372036854775808, '0x8000000000000000'),
    ('-9223372036854775808', '0x8000000000000000'),
])
def test_shard_to_hex(shard, expected):
    assert shard_to_hex(shard) == expected


def test_fetch_library():
    lib = begin_cell().store_uint(0xCAFE, 16).end_cell()
    client, session = make_client([FakeResponse({"data": {"get_lib": b64(lib.to_boc())}})])
    cell = client.fetch_library('AB' * 32, testnet=False)
    assert cell.hash == lib.hash
    method, url, kwargs = session.requests[0]
    assert method == 'POST'
    assert url == "https://dton.io/graphql"
    assert 'get_lib' in kwargs['json']['query']


def test_missing_library():
    client, _ = make_client([FakeResponse({"data": {"get_lib": None}})])
    with pytest.raises(IndexerError):
        client.fetch_library('AB' * 32, testnet=True)
