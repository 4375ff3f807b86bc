"""
Display helpers for retracer output.
"""

from decimal import Decimal
from typing import Optional

from retracer.parsers.stack import (
    AddressValue,
    BuilderValue,
    CellValue,
    ContinuationValue,
    IntegerValue,
    NullValue,
    SliceValue,
    StackValue,
    TupleValue,
    Unrecognized,
)

NANO = Decimal(10) ** 9


def shorten(text: str, limit: int, head: int, tail: int) -> str:
    """Cut the middle out of ``text`` when it is longer than ``limit``."""
    if len(text) > limit:
        return text[:head] + '...' + text[-tail:]
    return text


def bits_to_hex(bits) -> str:
    """
    Fift-style hex of a bit string.

    Lengths that are not a multiple of 4 get a completion tag: a 1 bit, zero
    padding and a trailing ``_``.
    """
    binary = bits.to01() if hasattr(bits, 'to01') else str(bits)
    if not binary:
        return ''
    suffix = ''
    if len(binary) % 4:
        binary += '1'
        binary += '0' * (-len(binary) % 4)
        suffix = '_'
    width = len(binary) // 4
    return format(int(binary, 2), f'0{width}X') + suffix


def _cell_like(label: str, bits, refs: int) -> str:
    text = f"{label} {{{shorten(bits_to_hex(bits), 14, 7, 7)}}}"
    if refs > 0:
        text += f" + {refs} refs"
    return text


def format_stack_item(value: StackValue) -> str:
    """One-line rendering of a stack value."""
    if isinstance(value, IntegerValue):
        return shorten(str(value.value), 30, 15, 15)
    if isinstance(value, NullValue):
        return 'null'
    if isinstance(value, TupleValue):
        return f"Tuple [{len(value)} items]"
    if isinstance(value, CellValue):
        return _cell_like('Cell', value.cell.bits, len(value.cell.refs))
    if isinstance(value, ContinuationValue):
        return _cell_like('Cont', value.cell.bits, len(value.cell.refs))
    if isinstance(value, SliceValue):
        return _cell_like('Slice', value.slice.bits, value.slice.remaining_refs)
    if isinstance(value, BuilderValue):
        cell = value.builder.end_cell()
        return _cell_like('Builder', cell.bits, len(cell.refs))
    if isinstance(value, AddressValue):
        return shorten(format_address(value), 30, 26, 4)
    if isinstance(value, Unrecognized):
        return shorten(value.text, 30, 26, 4)
    return repr(value)


def format_address(value: AddressValue) -> str:
    if value.address is None:
        return 'addr_none'
    return value.address.to_str(is_user_friendly=True, is_url_safe=True, is_bounceable=True)


def copy_content(value: StackValue) -> str:
    """Full, unshortened text of a value: the bag of cells for cell-like values."""
    if isinstance(value, IntegerValue):
        return str(value.value)
    if isinstance(value, NullValue):
        return 'null'
    if isinstance(value, AddressValue):
        return format_address(value)
    if isinstance(value, Unrecognized):
        return value.text
    if isinstance(value, TupleValue):
        return '[' + ' '.join(copy_content(item) for item in value.items) + ']'
    return value.boc


def format_ton(nano: Optional[int]) -> str:
    """Nano-TON amount as a TON string without trailing zeros."""
    if nano is None:
        return '-'
    amount = Decimal(nano) / NANO
    text = format(amount, 'f')
    if '.' in text:
        text = text.rstrip('0').rstrip('.')
    return text


def short_step(instruction: str) -> str:
    return shorten(instruction, 24, 19, 5)
