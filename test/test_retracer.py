import pytest

from retracer.core.emulation import EmulationResult, Emulator, RecordedEmulator
from retracer.core.locator import LocatorResolver, ShardBlockRef
from retracer.core.retracer import Retracer
from retracer.parsers.stack import IntegerValue
from retracer.parsers.stack_effect import StackEffect
from retracer.utils.exceptions import ConsistencyError

from conftest import ACCOUNT, TX_HASH_B64, TX_HASH_HEX, TX_LT, FakeIndex, make_block

INLINE = f"{TX_LT}:{TX_HASH_B64}:{ACCOUNT}"


class StaticEmulator(Emulator):
    def __init__(self, result):
        self.result = result
        self.calls = []

    def emulate(self, locator, block=None):
        self.calls.append((locator, block))
        return self.result


@pytest.fixture
def report(catalog, emulation_path):
    retracer = Retracer(LocatorResolver(FakeIndex()), RecordedEmulator(emulation_path), catalog)
    return retracer.retrace(INLINE)


def test_report_summary(report):
    assert report.locator.hash_hex == TX_HASH_HEX
    assert report.links['tonviewer'].endswith(TX_HASH_HEX)
    assert not report.compute_skipped
    assert len(report.steps) == 5
    assert report.actions == []
    assert report.actions_error is None


def test_explain_binary_instruction(report):
    insight = report.explain(3)
    assert insight.opcode.name == 'ADD'
    assert insight.stack_effect == StackEffect(2, 1)
    assert insight.stack_before == [IntegerValue(3), IntegerValue(2)]
    assert insight.stack_after == [IntegerValue(5)]
    assert insight.highlight_before == [0, 1]
    assert insight.highlight_after == [0]


def test_explain_first_step_uses_initial_stack(report):
    insight = report.explain(0)
    assert insight.opcode.name == 'SETCP'
    assert insight.stack_before == []
    assert insight.stack_effect is None
    assert insight.highlight_after == []


def test_explain_push(report):
    insight = report.explain(1)
    assert insight.opcode.name == 'PUSHINT_4'
    assert insight.highlight_before == []
    assert insight.highlight_after == [0]
    assert insight.stack_after == [IntegerValue(2)]


def test_bad_c5_is_reported_not_raised(catalog):
    emulator = StaticEmulator(EmulationResult(vm_log="", c5="C{00}", compute="skipped"))
    report = Retracer(LocatorResolver(FakeIndex()), emulator, catalog).retrace(INLINE)
    assert report.compute_skipped
    assert report.actions == []
    assert report.actions_error


def test_shard_block_is_verified_before_emulation():
    index = FakeIndex(blocks={(0, '8000000000000000', 1, False): [make_block()]})
    emulator = StaticEmulator(EmulationResult(vm_log="", c5=None, compute="skipped"))
    retracer = Retracer(LocatorResolver(index), emulator)
    retracer.retrace(INLINE, shard_block=ShardBlockRef(0, '8000000000000000', 1, 'cm9vdA=='))
    assert emulator.calls[0][1].mc_seqno == 38000000

    with pytest.raises(ConsistencyError):
        retracer.retrace(INLINE, shard_block=ShardBlockRef(0, '8000000000000000', 1, 'd3Jvbmc='))
    assert len(emulator.calls) == 1
