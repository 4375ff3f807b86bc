"""
Stack-effect notation parser.

The opcode catalog documents each instruction with a compact stack picture
such as ``x y - x+y``: the items left of `` - `` are consumed from the top of
the stack, the items right of it are produced. Counting them tells us which
stack slots an executed step touched.

Examples::

    "x - x x"      -> (1, 2)
    "x -"          -> (1, 0)
    "c c' - c''"   -> (2, 1)
    "x y - x mod y" -> (2, 1)
"""

import re
from typing import List, NamedTuple, Optional

_COMPOUND_OPERATORS = (
    re.compile(r'\S+\s+mod\s+\S+'),
    re.compile(r'\S+\s+xor\s+\S+'),
)
_PLACEHOLDER = 'X'
_ALTERNATIVE = re.compile(r'(?<!\S)or(?!\S)')


class StackEffect(NamedTuple):
    """Number of stack items an instruction consumes and produces."""
    consumed: int
    produced: int


def count_stack_items(stack_part: str) -> int:
    """Count logical stack items in one side of a stack-effect notation."""
    if not stack_part.strip():
        return 0

    normalized = stack_part
    for pattern in _COMPOUND_OPERATORS:
        normalized = pattern.sub(_PLACEHOLDER, normalized)
    return len(normalized.split())


def parse_stack_effect(signature: str) -> Optional[StackEffect]:
    """
    Parse a stack-effect notation.

    Returns None when the arity is not statically fixed (empty notation,
    a bare ``-``, alternatives joined with ``or`` or variadic ``...``).
    """
    if signature is None:
        return None
    text = signature.strip()
    if not text or text == '-':
        return None
    if _ALTERNATIVE.search(text) or '...' in text:
        return None

    if text.startswith('- '):
        return StackEffect(0, count_stack_items(text[2:]))
    if text.endswith(' -'):
        return StackEffect(count_stack_items(text[:-2]), 0)

    parts = text.split(' - ')
    if len(parts) != 2:
        return None
    return StackEffect(count_stack_items(parts[0]), count_stack_items(parts[1]))


def highlight_slots(effect: Optional[StackEffect], before: bool = False) -> List[int]:
    """
    Stack slots (0 = top of stack) touched by an instruction.

    With ``before`` the slots are the consumed ones on the stack preceding the
    step, otherwise the produced ones on the stack following it.
    """
    if effect is None:
        return []
    count = effect.consumed if before else effect.produced
    return list(range(count))
