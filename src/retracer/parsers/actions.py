"""
Out action list decoder.

After the compute phase the VM leaves the list of outbound actions in
register c5, a linked list of cells::

    out_list_empty$_ = OutList 0;
    out_list$_ {n:#} prev:^(OutList n) action:OutAction = OutList (n + 1);

    action_send_msg#0ec3c86d mode:(## 8) out_msg:^(MessageRelaxed Any) = OutAction;
    action_set_code#ad4de08e new_code:^Cell = OutAction;
    action_reserve_currency#36e6b809 mode:(## 8) currency:CurrencyCollection = OutAction;
    action_change_library#26fa1dd4 mode:(## 7) libref:LibRef = OutAction;
"""

import re
from dataclasses import dataclass
from typing import List, Optional, Union

from pytoniq_core import Cell, Slice

from retracer.utils.exceptions import EmulationError

ACTION_SEND_MSG = 0x0ec3c86d
ACTION_SET_CODE = 0xad4de08e
ACTION_RESERVE_CURRENCY = 0x36e6b809
ACTION_CHANGE_LIBRARY = 0x26fa1dd4

MAX_ACTIONS = 255

_C5_LINE = re.compile(r'^(?:final c5:\s*)?(?:C\{)?([0-9a-fA-F]+)\}?$')


@dataclass
class SendMsgAction:
    mode: int
    message: Cell
    type = 'sendMsg'


@dataclass
class SetCodeAction:
    new_code: Cell
    type = 'setCode'


@dataclass
class ReserveAction:
    mode: int
    coins: int
    extra_currencies: Optional[Cell] = None
    type = 'reserve'


@dataclass
class ChangeLibraryAction:
    mode: int
    lib_hash: Optional[bytes] = None
    library: Optional[Cell] = None
    type = 'changeLibrary'


OutAction = Union[SendMsgAction, SetCodeAction, ReserveAction, ChangeLibraryAction]


def _load_action(cs: Slice) -> OutAction:
    tag = cs.load_uint(32)
    if tag == ACTION_SEND_MSG:
        mode = cs.load_uint(8)
        return SendMsgAction(mode=mode, message=cs.load_ref())
    if tag == ACTION_SET_CODE:
        return SetCodeAction(new_code=cs.load_ref())
    if tag == ACTION_RESERVE_CURRENCY:
        mode = cs.load_uint(8)
        coins = cs.load_coins()
        extra = cs.load_ref() if cs.load_uint(1) else None
        return ReserveAction(mode=mode, coins=coins, extra_currencies=extra)
    if tag == ACTION_CHANGE_LIBRARY:
        mode = cs.load_uint(7)
        if cs.load_uint(1):
            return ChangeLibraryAction(mode=mode, library=cs.load_ref())
        return ChangeLibraryAction(mode=mode, lib_hash=cs.load_bytes(32))
    raise EmulationError(f"Unknown out action prefix 0x{tag:08x}")


def load_out_list(cell: Cell) -> List[OutAction]:
    """Walk the OutList chain, returning actions in the order they were created."""
    actions: List[OutAction] = []
    cs = cell.begin_parse()
    while cs.remaining_bits > 0 or cs.remaining_refs > 0:
        if len(actions) >= MAX_ACTIONS:
            raise EmulationError(f"Action list longer than {MAX_ACTIONS}")
        prev = cs.load_ref()
        actions.append(_load_action(cs))
        cs = prev.begin_parse()
    actions.reverse()
    return actions


def parse_c5(text: str) -> List[OutAction]:
    """
    Decode the final c5 register.

    Accepts ``final c5: C{HEX}`` as printed by the emulator, ``C{HEX}`` or the
    bare hex bag of cells.
    """
    match = _C5_LINE.match(text.strip())
    if not match:
        raise EmulationError(f"Unrecognized c5 dump: {text[:40]}")
    try:
        c5 = Cell.one_from_boc(bytes.fromhex(match.group(1)))
        return load_out_list(c5)
    except EmulationError:
        raise
    except Exception as e:
        raise EmulationError(f"Cannot decode action list: {e}") from e
