"""
Stack Notation Decoder

Parses the stack dumps printed by the TVM debug log into typed values.

A dump is a whitespace separated list of tokens where ``[`` / ``]`` delimit
tuples and every other token is a scalar:

- ``()``           null
- ``(<token>)``    tuple of one element
- ``C{hex}``       cell (serialized bag of cells)
- ``Cont{hex}``    continuation (a cell used as code)
- ``CS{hex}``      slice, or an address when its 267 bits read as one
- ``BC{hex}``      builder
- anything else    integer, or an unrecognized token

See https://docs.ton.org/learn/tvm-instructions/tvm-overview#tvm-is-a-stack-machine
"""

import re
from dataclasses import dataclass, field
from typing import List, Optional

from pytoniq_core import Address, Builder, Cell, Slice, begin_cell

from retracer.utils.exceptions import StackDecodeError, StackStructureError
from retracer.utils.logging import get_logger

logger = get_logger('stack')

# Bound on tuple nesting, both for brackets and parenthesised tokens
MAX_NESTING_DEPTH = 64
MAX_TUPLE_SIZE = 255

# A MsgAddressInt without anycast: 2 + 1 + 8 + 256 bits
ADDRESS_BITS = 267

SKIPPED_TOKENS = ('stack:', '')

_DECIMAL = re.compile(r"^-?[0-9]+\Z")
_HEXADECIMAL = re.compile(r"^-?0x[0-9a-fA-F]+\Z")


class StackValue:
    """Base class of every decoded stack element."""
    kind = 'unknown'


@dataclass(frozen=True)
class IntegerValue(StackValue):
    value: int
    kind = 'int'


@dataclass(frozen=True)
class NullValue(StackValue):
    kind = 'null'


@dataclass
class TupleValue(StackValue):
    items: List[StackValue] = field(default_factory=list)
    kind = 'tuple'

    def __len__(self) -> int:
        return len(self.items)


@dataclass
class CellValue(StackValue):
    cell: Cell
    boc: str
    kind = 'cell'


@dataclass
class ContinuationValue(StackValue):
    cell: Cell
    boc: str
    kind = 'continuation'


@dataclass
class SliceValue(StackValue):
    slice: Slice
    boc: str
    kind = 'slice'


@dataclass
class BuilderValue(StackValue):
    builder: Builder
    boc: str
    kind = 'builder'


@dataclass
class AddressValue(StackValue):
    address: Optional[Address]
    boc: str
    kind = 'address'


@dataclass(frozen=True)
class Unrecognized(StackValue):
    """Token that matched no known form. Kept verbatim, never dropped."""
    text: str
    kind = 'unrecognized'


def _load_cell(token: str, prefix: str) -> Cell:
    """Decode the hex bag of cells wrapped as ``<prefix>{...}``."""
    if not token.endswith('}'):
        raise StackDecodeError(f"Missing closing brace in {token}", token=token)
    payload = token[len(prefix) + 1:-1]
    try:
        return Cell.one_from_boc(bytes.fromhex(payload))
    except Exception as e:
        raise StackDecodeError(f"Bad bag of cells in {token}: {e}", token=token) from e


def _typed_value(token: str) -> Optional[StackValue]:
    """Decode one of the brace-wrapped forms, None when the token has no known prefix."""
    if token.startswith('C{'):
        cell = _load_cell(token, 'C')
        return CellValue(cell=cell, boc=token[2:-1])
    if token.startswith('Cont{'):
        cell = _load_cell(token, 'Cont')
        return ContinuationValue(cell=cell, boc=token[5:-1])
    if token.startswith('CS{'):
        cell = _load_cell(token, 'CS')
        cs = cell.begin_parse()
        if cs.remaining_bits == ADDRESS_BITS and cs.remaining_refs == 0:
            reader = cell.begin_parse()
            try:
                address = reader.load_address()
            except Exception as e:
                # addr_var, bad anycast or plain 267-bit data
                logger.debug(f"267-bit slice is not an address: {e}")
            else:
                if reader.remaining_bits == 0:
                    return AddressValue(address=address, boc=token[3:-1])
        return SliceValue(slice=cs, boc=token[3:-1])
    if token.startswith('BC{'):
        cell = _load_cell(token, 'BC')
        return BuilderValue(builder=begin_cell().store_cell(cell), boc=token[3:-1])
    return None


def _parse_integer(token: str) -> int:
    if _DECIMAL.match(token):
        return int(token)
    if _HEXADECIMAL.match(token):
        return int(token, 16)
    raise ValueError(f"Not an integer: {token}")


def parse_stack_token(token: str, depth: int = 0) -> StackValue:
    """
    Parse a single scalar token.

    Never raises: anything that cannot be decoded comes back as
    ``Unrecognized(token)``.
    """
    if token == '()':
        return NullValue()

    if token.startswith('(') and token.endswith(')'):
        if depth >= MAX_NESTING_DEPTH:
            logger.warning(f"Tuple nested deeper than {MAX_NESTING_DEPTH}: {token}")
            return Unrecognized(token)
        return TupleValue([parse_stack_token(token[1:-1], depth + 1)])

    try:
        value = _typed_value(token)
    except StackDecodeError as e:
        logger.error(f"Error parsing stack element: {e.message}")
        return Unrecognized(token)
    except Exception as e:
        logger.error(f"Error parsing stack element {token}: {e}")
        return Unrecognized(token)
    if value is not None:
        return value

    try:
        return IntegerValue(_parse_integer(token))
    except ValueError:
        logger.warning(f"Unknown stack element: {token}")
        return Unrecognized(token)


def decode_stack(line: str) -> List[StackValue]:
    """
    Decode a stack dump line into a list of values.

    Raises:
        StackStructureError: brackets are unbalanced or nested too deeply
    """
    line = line.replace('[', ' [ ').replace(']', ' ] ')

    frames: List[List[StackValue]] = [[]]
    for word in line.split():
        if word in SKIPPED_TOKENS:
            continue

        if word == '[':
            if len(frames) > MAX_NESTING_DEPTH:
                raise StackStructureError(
                    f"Tuples nested deeper than {MAX_NESTING_DEPTH}", line=line.strip()
                )
            frames.append([])
            continue

        if word == ']':
            if not frames:
                raise StackStructureError("Tuple ended without start", line=line.strip())
            items = frames.pop()
            if not frames:
                # the outermost sequence is closed, whatever follows is not stack
                return items
            if len(items) > MAX_TUPLE_SIZE:
                raise StackStructureError(
                    f"Tuple of {len(items)} elements exceeds {MAX_TUPLE_SIZE}", line=line.strip()
                )
            frames[-1].append(TupleValue(items))
            continue

        frames[-1].append(parse_stack_token(word))

    if len(frames) != 1:
        raise StackStructureError(
            f"{len(frames) - 1} tuple(s) left unclosed", line=line.strip()
        )
    return frames[0]


def decode_vm_stack(line: str) -> List[StackValue]:
    """
    Decode a ``stack: [ ... ]`` line printed by the VM.

    The VM wraps the whole stack in one pair of brackets; the items inside are
    returned bottom first, as printed.
    """
    body = line.strip()
    if body.startswith('stack:'):
        body = body[len('stack:'):].strip()
    values = decode_stack(body)
    if body.startswith('[') and len(values) == 1 and isinstance(values[0], TupleValue):
        return list(values[0].items)
    return values
