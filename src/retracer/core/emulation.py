"""
Emulator boundary and VM log reader.

The emulator itself is external: given a locator it replays the transaction
and hands back the verbose VM log, the final c5 register and the compute and
fee figures. This module defines that boundary and turns the raw VM log into
per-step records.
"""

import json
import re
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from retracer.parsers.stack import StackValue, decode_vm_stack
from retracer.utils.exceptions import EmulationError, StackStructureError
from retracer.utils.logging import get_logger, log_trace

logger = get_logger('emulation')

_EXECUTE = re.compile(r'^execute\s+(.*)$')
_GAS = re.compile(r'^gas remaining:\s*(-?\d+)')
_EXCEPTION = re.compile(r'^handling exception code\s+(-?\d+):\s*(.*)$')
_TERMINATE = re.compile(r'terminating vm with exit code\s+(-?\d+)')


@dataclass
class ExitError:
    code: int
    text: str


@dataclass
class TraceStep:
    """One executed instruction."""
    index: int
    instruction: str
    stack_after: List[StackValue] = field(default_factory=list)
    gas_remaining: Optional[int] = None
    price: Optional[int] = None
    error: Optional[ExitError] = None
    stack_error: Optional[str] = None

    def stack_top_first(self) -> List[StackValue]:
        return list(reversed(self.stack_after))


@dataclass
class ComputeSummary:
    success: bool
    exit_code: int
    vm_steps: int
    gas_used: int
    gas_fees: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ComputeSummary":
        return cls(
            success=bool(data.get('success')),
            exit_code=int(data.get('exit_code', 0)),
            vm_steps=int(data.get('vm_steps', 0)),
            gas_used=int(data.get('gas_used', 0)),
            gas_fees=int(data['gas_fees']) if data.get('gas_fees') is not None else None,
        )


COMPUTE_SKIPPED = 'skipped'


@dataclass
class MoneyFlow:
    balance_before: int = 0
    total_fees: int = 0
    sent_total: int = 0
    balance_after: int = 0

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MoneyFlow":
        return cls(**{k: int(data.get(k, 0)) for k in ('balance_before', 'total_fees',
                                                       'sent_total', 'balance_after')})


@dataclass
class EmulationResult:
    """Raw output of one emulator run."""
    vm_log: str
    c5: Optional[str]
    compute: Union[ComputeSummary, str]
    money: MoneyFlow = field(default_factory=MoneyFlow)
    utime: Optional[int] = None
    amount: Optional[int] = None

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "EmulationResult":
        compute = data.get('compute', COMPUTE_SKIPPED)
        try:
            return cls(
                vm_log=data.get('vm_log', ''),
                c5=data.get('c5'),
                compute=COMPUTE_SKIPPED if compute == COMPUTE_SKIPPED else ComputeSummary.from_dict(compute),
                money=MoneyFlow.from_dict(data.get('money', {})),
                utime=data.get('utime'),
                amount=int(data['amount']) if data.get('amount') is not None else None,
            )
        except (TypeError, ValueError, KeyError) as e:
            raise EmulationError(f"Malformed emulation result: {e}") from e


class Emulator(ABC):
    """Replays a resolved transaction. Implementations live outside retracer."""

    @abstractmethod
    def emulate(self, locator, block=None) -> EmulationResult:
        """
        Args:
            locator: the TransactionLocator to replay
            block: optional BlockContext (masterchain seqno, random seed)
        """


class RecordedEmulator(Emulator):
    """Serves the output of an emulator run saved as JSON."""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def emulate(self, locator, block=None) -> EmulationResult:
        try:
            with open(self.path, encoding='utf-8') as f:
                data = json.load(f)
        except (OSError, ValueError) as e:
            raise EmulationError(f"Cannot read emulation output: {e}", source=str(self.path)) from e
        if not isinstance(data, dict):
            raise EmulationError("Emulation output must be a JSON object", source=str(self.path))
        # a file may hold several runs keyed by transaction hash
        if 'vm_log' not in data and locator is not None:
            data = data.get(locator.hash_hex) or data.get(locator.hash_hex.upper())
            if data is None:
                raise EmulationError(f"No emulation recorded for {locator.hash_hex}",
                                     source=str(self.path))
        return EmulationResult.from_dict(data)


def _decode_stack_line(line: str, step: Optional[TraceStep]) -> Tuple[List[StackValue], Optional[str]]:
    try:
        return decode_vm_stack(line), None
    except StackStructureError as e:
        where = f"step {step.index}" if step else "initial stack"
        logger.warning(f"Bad stack dump at {where}: {e.message}")
        return [], e.message


def parse_vm_log(text: str) -> Tuple[List[StackValue], List[TraceStep]]:
    """
    Group a verbose VM log into steps.

    Returns the stack before the first instruction and the executed steps.
    """
    initial_stack: List[StackValue] = []
    steps: List[TraceStep] = []
    current: Optional[TraceStep] = None
    stack_pending = False
    last_gas: Optional[int] = None

    for raw in text.splitlines():
        line = raw.strip()
        if not line:
            continue

        m = _EXECUTE.match(line)
        if m:
            if current is not None and stack_pending:
                current.stack_after = list(steps[-2].stack_after) if len(steps) > 1 else list(initial_stack)
            current = TraceStep(index=len(steps), instruction=m.group(1).strip())
            log_trace(f"Step {current.index}: {current.instruction}")
            steps.append(current)
            stack_pending = True
            continue

        if line.startswith('stack:'):
            values, problem = _decode_stack_line(line, current)
            if current is None:
                initial_stack = values
            elif stack_pending:
                current.stack_after = values
                current.stack_error = problem
                stack_pending = False
            continue

        m = _GAS.match(line)
        if m and current is not None:
            gas = int(m.group(1))
            current.gas_remaining = gas
            if last_gas is not None:
                current.price = last_gas - gas
            last_gas = gas
            continue

        m = _EXCEPTION.match(line)
        if m and current is not None:
            current.error = ExitError(int(m.group(1)), m.group(2).strip())
            continue

        m = _TERMINATE.search(line)
        if m and current is not None and current.error is None:
            current.error = ExitError(int(m.group(1)), 'terminating vm')
            continue

        log_trace(f"Skipping VM log line: {line}")

    if current is not None and stack_pending:
        current.stack_after = list(steps[-2].stack_after) if len(steps) > 1 else list(initial_stack)
    return initial_stack, steps
