"""
JSON serialization for retracer output.

Turns decoded stack values, steps and whole trace reports into plain
dictionaries that ``json.dumps`` accepts, for the ``--json`` CLI mode and
for external viewers.
"""

from dataclasses import fields, is_dataclass
from typing import Any, Dict, List, Optional

from pytoniq_core import Address, Cell

from retracer.core.emulation import ComputeSummary, TraceStep
from retracer.core.locator import TransactionLocator
from retracer.core.retracer import StepInsight, TraceReport
from retracer.parsers.actions import (
    ChangeLibraryAction,
    OutAction,
    ReserveAction,
    SendMsgAction,
    SetCodeAction,
)
from retracer.parsers.opcodes import OpcodeRecord
from retracer.parsers.stack import (
    AddressValue,
    IntegerValue,
    NullValue,
    StackValue,
    TupleValue,
    Unrecognized,
)
from retracer.utils.helpers import format_address, format_stack_item


class TraceSerializer:
    """Serializes retracer data to JSON-ready dictionaries."""

    def __init__(self, include_cells: bool = True):
        # When False, cell-like values carry only their summary text
        self.include_cells = include_cells

    def _convert_to_serializable(self, obj: Any) -> Any:
        """Convert non-serializable objects to JSON-serializable format."""
        if isinstance(obj, StackValue):
            return self.serialize_value(obj)
        elif isinstance(obj, Cell):
            return obj.to_boc().hex()
        elif isinstance(obj, Address):
            return obj.to_str(is_user_friendly=False)
        elif isinstance(obj, bytes):
            return obj.hex()
        elif isinstance(obj, dict):
            return {k: self._convert_to_serializable(v) for k, v in obj.items()}
        elif isinstance(obj, (list, tuple)):
            return [self._convert_to_serializable(item) for item in obj]
        elif is_dataclass(obj):
            return {f.name: self._convert_to_serializable(getattr(obj, f.name)) for f in fields(obj)}
        else:
            return obj

    def serialize_value(self, value: StackValue) -> Dict[str, Any]:
        data: Dict[str, Any] = {"type": value.kind}
        if isinstance(value, IntegerValue):
            # Python ints exceed JSON number precision in most consumers
            data["value"] = str(value.value)
        elif isinstance(value, NullValue):
            pass
        elif isinstance(value, TupleValue):
            data["items"] = [self.serialize_value(item) for item in value.items]
        elif isinstance(value, AddressValue):
            data["value"] = format_address(value)
            if value.address is not None:
                data["raw"] = value.address.to_str(is_user_friendly=False)
        elif isinstance(value, Unrecognized):
            data["value"] = value.text
        else:
            data["text"] = format_stack_item(value)
            if self.include_cells:
                data["boc"] = value.boc
        return data

    def serialize_stack(self, stack: List[StackValue]) -> List[Dict[str, Any]]:
        return [self.serialize_value(v) for v in stack]

    def serialize_opcode(self, record: Optional[OpcodeRecord]) -> Optional[Dict[str, Any]]:
        return record.to_dict() if record else None

    def serialize_step(self, step: TraceStep) -> Dict[str, Any]:
        data = {
            "index": step.index,
            "instruction": step.instruction,
            "gasRemaining": step.gas_remaining,
            "price": step.price,
            "stack": self.serialize_stack(step.stack_after),
        }
        if step.error:
            data["error"] = {"code": step.error.code, "text": step.error.text}
        if step.stack_error:
            data["stackError"] = step.stack_error
        return data

    def serialize_insight(self, insight: StepInsight) -> Dict[str, Any]:
        effect = insight.stack_effect
        return {
            "step": self.serialize_step(insight.step),
            "opcode": self.serialize_opcode(insight.opcode),
            "related": [op.name for op in insight.related],
            "stackEffect": {"consumed": effect.consumed, "produced": effect.produced} if effect else None,
            "stackBefore": self.serialize_stack(insight.stack_before),
            "stackAfter": self.serialize_stack(insight.stack_after),
            "highlightBefore": insight.highlight_before,
            "highlightAfter": insight.highlight_after,
        }

    def serialize_locator(self, locator: TransactionLocator) -> Dict[str, Any]:
        return {
            "lt": str(locator.lt),
            "hash": locator.hash_hex,
            "hashBase64": locator.hash_base64,
            "address": locator.address,
            "friendlyAddress": locator.friendly_address,
            "isTestnet": locator.testnet,
            "links": locator.links(),
        }

    def serialize_action(self, action: OutAction) -> Dict[str, Any]:
        data: Dict[str, Any] = {"type": action.type}
        if isinstance(action, SendMsgAction):
            data["mode"] = action.mode
            data["message"] = action.message.to_boc().hex()
        elif isinstance(action, SetCodeAction):
            data["newCode"] = action.new_code.to_boc().hex()
        elif isinstance(action, ReserveAction):
            data["mode"] = action.mode
            data["coins"] = str(action.coins)
            if action.extra_currencies is not None:
                data["extraCurrencies"] = action.extra_currencies.to_boc().hex()
        elif isinstance(action, ChangeLibraryAction):
            data["mode"] = action.mode
            if action.library is not None:
                data["library"] = action.library.to_boc().hex()
            else:
                data["libHash"] = action.lib_hash.hex() if action.lib_hash else None
        return data

    def serialize_report(self, report: TraceReport, max_steps: Optional[int] = None) -> Dict[str, Any]:
        steps = report.steps
        if max_steps is not None and max_steps > 0:
            steps = steps[:max_steps]

        if isinstance(report.compute, ComputeSummary):
            compute = self._convert_to_serializable(report.compute)
            status = "success" if report.compute.success else "failed"
        else:
            compute = report.compute
            status = "skipped"

        response = {
            "status": status,
            "transaction": self.serialize_locator(report.locator),
            "compute": compute,
            "money": {k: str(v) for k, v in self._convert_to_serializable(report.money).items()},
            "utime": report.utime,
            "amount": str(report.amount) if report.amount is not None else None,
            "initialStack": self.serialize_stack(report.initial_stack),
            "totalSteps": len(report.steps),
            "steps": [self.serialize_step(s) for s in steps],
            "actions": [self.serialize_action(a) for a in report.actions],
        }
        if report.actions_error:
            response["actionsError"] = report.actions_error
        return response
