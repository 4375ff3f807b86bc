import json

from pytoniq_core import begin_cell

from retracer.core.emulation import RecordedEmulator
from retracer.core.locator import LocatorResolver
from retracer.core.retracer import Retracer
from retracer.core.serializer import TraceSerializer
from retracer.parsers.stack import decode_stack

from conftest import ACCOUNT, TX_HASH_B64, TX_HASH_HEX, TX_LT, FakeIndex


def test_values():
    cell = begin_cell().store_uint(0xAB, 8).end_cell()
    stack = decode_stack(f"{2 ** 100} () [ 1 ] C{{{cell.to_boc().hex()}}} junk")
    data = TraceSerializer().serialize_stack(stack)
    assert data[0] == {"type": "int", "value": str(2 ** 100)}
    assert data[1] == {"type": "null"}
    assert data[2] == {"type": "tuple", "items": [{"type": "int", "value": "1"}]}
    assert data[3]["type"] == "cell"
    assert data[3]["text"] == "Cell {AB}"
    assert data[3]["boc"] == cell.to_boc().hex()
    assert data[4] == {"type": "unrecognized", "value": "junk"}


def test_cells_can_be_left_out():
    cell = begin_cell().end_cell()
    data = TraceSerializer(include_cells=False).serialize_stack(decode_stack(f"C{{{cell.to_boc().hex()}}}"))
    assert "boc" not in data[0]


def test_report_is_json_ready(catalog, emulation_path):
    retracer = Retracer(LocatorResolver(FakeIndex()), RecordedEmulator(emulation_path), catalog)
    report = retracer.retrace(f"{TX_LT}:{TX_HASH_B64}:{ACCOUNT}")
    serializer = TraceSerializer()

    data = serializer.serialize_report(report, max_steps=2)
    json.dumps(data)
    assert data["status"] == "success"
    assert data["transaction"]["hash"] == TX_HASH_HEX
    assert data["transaction"]["lt"] == str(TX_LT)
    assert data["totalSteps"] == 5
    assert len(data["steps"]) == 2
    assert data["steps"][1]["price"] == 18
    assert data["money"]["balance_after"] == "3498765433"

    insight = serializer.serialize_insight(report.explain(3))
    json.dumps(insight)
    assert insight["opcode"]["name"] == "ADD"
    assert insight["stackEffect"] == {"consumed": 2, "produced": 1}
    assert insight["highlightBefore"] == [0, 1]
