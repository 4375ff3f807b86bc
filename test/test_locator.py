import pytest

from retracer.core.locator import (
    BlockContext,
    LocatorResolver,
    ShardBlockRef,
    TransactionLocator,
    decode_base64_hash,
    decode_hex_hash,
    normalize_address,
)
from retracer.utils.exceptions import ConsistencyError, IndexerError, ResolutionError

from conftest import (
    ACCOUNT,
    TX_HASH_B64,
    TX_HASH_HEX,
    TX_LT,
    FakeIndex,
    make_block,
    make_summary,
)


def found_on(testnet):
    return FakeIndex({(TX_HASH_HEX, testnet): [make_summary()]})


def test_tonscan_link_resolves_with_one_lookup():
    index = found_on(False)
    locator = LocatorResolver(index).resolve(f"https://tonscan.org/tx/{TX_HASH_B64}")
    assert locator == TransactionLocator(TX_LT, bytes.fromhex(TX_HASH_HEX), ACCOUNT, False)
    assert index.calls == [(TX_HASH_HEX, False)]


def test_non_hex_hash_fails_without_lookup():
    index = FakeIndex()
    with pytest.raises(ResolutionError) as exc:
        LocatorResolver(index).resolve('z' * 64)
    assert index.calls == []
    assert 'bare hash' in exc.value.attempted


def test_short_hash_fails_without_lookup():
    index = FakeIndex()
    with pytest.raises(ResolutionError):
        LocatorResolver(index).resolve(TX_HASH_HEX[:-2])
    assert index.calls == []


def test_mainnet_is_tried_before_testnet():
    index = found_on(True)
    locator = LocatorResolver(index).resolve(TX_HASH_HEX)
    assert index.calls == [(TX_HASH_HEX, False), (TX_HASH_HEX, True)]
    assert locator.testnet is True


def test_mainnet_wins_when_both_know_the_hash():
    index = FakeIndex({
        (TX_HASH_HEX, False): [make_summary(lt=1)],
        (TX_HASH_HEX, True): [make_summary(lt=2)],
    })
    locator = LocatorResolver(index).resolve(TX_HASH_HEX)
    assert locator.lt == 1
    assert locator.testnet is False
    assert len(index.calls) == 1


def test_not_found_anywhere_lists_attempts():
    index = FakeIndex()
    with pytest.raises(ResolutionError) as exc:
        LocatorResolver(index).resolve(TX_HASH_B64)
    assert exc.value.attempted[-2:] == ['bare hash mainnet', 'bare hash testnet']
    assert 'tonviewer' in exc.value.attempted


def test_forced_network_is_the_only_one_asked():
    index = found_on(False)
    with pytest.raises(ResolutionError):
        LocatorResolver(index).resolve(TX_HASH_HEX, testnet=True)
    assert index.calls == [(TX_HASH_HEX, True)]


def test_testnet_link_forces_testnet():
    index = found_on(True)
    locator = LocatorResolver(index).resolve(f"https://testnet.tonviewer.com/transaction/{TX_HASH_HEX}")
    assert locator.testnet is True
    assert index.calls == [(TX_HASH_HEX, True)]


def test_resolution_is_memoised():
    index = found_on(False)
    resolver = LocatorResolver(index)
    first = resolver.resolve(TX_HASH_HEX)
    second = resolver.resolve(TX_HASH_HEX)
    assert first == second
    assert len(index.calls) == 1


def test_inline_reference_needs_no_index():
    index = FakeIndex()
    locator = LocatorResolver(index).resolve(f"{TX_LT}:{TX_HASH_B64}:{ACCOUNT}")
    assert locator.lt == TX_LT
    assert locator.hash_hex == TX_HASH_HEX
    assert locator.address == ACCOUNT
    assert index.calls == []


def test_toncx_link_with_friendly_address():
    locator = TransactionLocator(TX_LT, bytes.fromhex(TX_HASH_HEX), ACCOUNT)
    index = FakeIndex()
    resolved = LocatorResolver(index).resolve(locator.links()['toncx'])
    assert resolved == locator
    assert index.calls == []


def test_toncoin_query_link():
    locator = TransactionLocator(TX_LT, bytes.fromhex(TX_HASH_HEX), ACCOUNT, testnet=True)
    resolved = LocatorResolver(FakeIndex()).resolve(locator.links()['toncoin'])
    assert resolved == locator


@pytest.mark.parametrize("explorer", ['tonviewer', 'tonscan', 'dton'])
def test_hash_only_links_round_trip(explorer):
    locator = TransactionLocator(TX_LT, bytes.fromhex(TX_HASH_HEX), ACCOUNT)
    index = found_on(False)
    assert LocatorResolver(index).resolve(locator.links()[explorer]) == locator


def test_lt_hash_keeps_given_lt():
    index = FakeIndex({(TX_HASH_HEX, False): [make_summary(lt=TX_LT + 1)]})
    locator = LocatorResolver(index).resolve(f"{TX_LT}:{TX_HASH_HEX}")
    assert locator.lt == TX_LT
    assert locator.address == ACCOUNT


def test_index_failure_becomes_resolution_error():
    index = FakeIndex(error=IndexerError("boom"))
    with pytest.raises(ResolutionError) as exc:
        LocatorResolver(index).resolve(TX_HASH_HEX)
    assert 'boom' in exc.value.message


def test_malformed_link_is_reported_per_format():
    with pytest.raises(ResolutionError) as exc:
        LocatorResolver(FakeIndex()).resolve("https://tonscan.org/tx/not-a-hash")
    assert exc.value.attempted == ['tonscan']


def test_links_use_testnet_hosts():
    links = TransactionLocator(TX_LT, bytes.fromhex(TX_HASH_HEX), ACCOUNT, testnet=True).links()
    assert links['tonviewer'] == f"https://testnet.tonviewer.com/transaction/{TX_HASH_HEX}"
    assert links['toncoin'].startswith("https://test-explorer.toncoin.org/transaction?")
    assert links['dton'] == f"https://testnet.dton.io/tx/{TX_HASH_HEX.upper()}"


def test_hash_decoders():
    assert decode_hex_hash(TX_HASH_HEX).hex() == TX_HASH_HEX
    assert decode_base64_hash(TX_HASH_B64).hex() == TX_HASH_HEX
    url_safe = TX_HASH_B64.replace('+', '-').replace('/', '_')
    assert decode_base64_hash(url_safe).hex() == TX_HASH_HEX
    with pytest.raises(ValueError):
        decode_base64_hash('AAAA')


def test_normalize_address_rejects_garbage():
    assert normalize_address(ACCOUNT.upper()) == ACCOUNT
    with pytest.raises(ValueError):
        normalize_address('not an address')


class TestVerifyBlock:
    ref = ShardBlockRef(0, '8000000000000000', 45000000, 'cm9vdA==')

    def test_matching_root_hash(self):
        index = FakeIndex(blocks={(0, '8000000000000000', 45000000, False): [make_block()]})
        block = LocatorResolver(index).verify_block(self.ref, False)
        assert block == BlockContext(38000000, b'\x01' * 32)

    def test_root_hash_mismatch(self):
        index = FakeIndex(blocks={(0, '8000000000000000', 45000000, False): [make_block(root_hash='b3RoZXI=')]})
        with pytest.raises(ConsistencyError):
            LocatorResolver(index).verify_block(self.ref, False)

    def test_unknown_block(self):
        with pytest.raises(ResolutionError):
            LocatorResolver(FakeIndex()).verify_block(self.ref, True)
