"""
Parsers module for retracer.

This module contains the decoders for what the TVM and its documentation print:
- Stack-effect notation from the opcode docs
- Stack dumps from the VM log
- The opcode catalog and instruction classifier
- The c5 out-action list
"""

from .stack_effect import (
    StackEffect,
    count_stack_items,
    parse_stack_effect,
    highlight_slots,
)
from .stack import (
    StackValue,
    IntegerValue,
    NullValue,
    TupleValue,
    CellValue,
    ContinuationValue,
    SliceValue,
    BuilderValue,
    AddressValue,
    Unrecognized,
    parse_stack_token,
    decode_stack,
    decode_vm_stack,
)
from .opcodes import (
    OpcodeRecord,
    OpcodeCatalog,
    Classification,
    load_catalog,
    find_opcode,
    find_related,
    classify,
)
from .actions import (
    SendMsgAction,
    SetCodeAction,
    ReserveAction,
    ChangeLibraryAction,
    load_out_list,
    parse_c5,
)

__all__ = [
    # Stack effect
    'StackEffect',
    'count_stack_items',
    'parse_stack_effect',
    'highlight_slots',
    # Stack
    'StackValue',
    'IntegerValue',
    'NullValue',
    'TupleValue',
    'CellValue',
    'ContinuationValue',
    'SliceValue',
    'BuilderValue',
    'AddressValue',
    'Unrecognized',
    'parse_stack_token',
    'decode_stack',
    'decode_vm_stack',
    # Opcodes
    'OpcodeRecord',
    'OpcodeCatalog',
    'Classification',
    'load_catalog',
    'find_opcode',
    'find_related',
    'classify',
    # Actions
    'SendMsgAction',
    'SetCodeAction',
    'ReserveAction',
    'ChangeLibraryAction',
    'load_out_list',
    'parse_c5',
]
