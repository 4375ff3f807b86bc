"""
Offline decoding commands: decode-stack, stack-effect and classify.

None of these touch the network except classify, which may download the
opcode catalog when no local file is given.
"""

import sys

from retracer.cli.common import (
    handle_command_error,
    load_config,
    load_opcodes,
    print_json,
    print_stack,
)
from retracer.core.serializer import TraceSerializer
from retracer.parsers.opcodes import classify
from retracer.parsers.stack import decode_vm_stack
from retracer.parsers.stack_effect import parse_stack_effect
from retracer.utils.colors import bold, dim, error, opcode, warning
from retracer.utils.exceptions import RetracerError, format_error_json


def decode_stack_command(args) -> int:
    """Decode one stack dump and print it top first."""
    json_mode = getattr(args, 'json', False)
    try:
        values = decode_vm_stack(args.line)
    except RetracerError as e:
        return handle_command_error(e, json_mode)

    top_first = list(reversed(values))
    if json_mode:
        print_json(TraceSerializer().serialize_stack(top_first))
    else:
        print_stack(top_first)
    return 0


def stack_effect_command(args) -> int:
    effect = parse_stack_effect(args.notation)
    if getattr(args, 'json', False):
        print_json(None if effect is None else {"consumed": effect.consumed, "produced": effect.produced})
    elif effect is None:
        print("variable")
    else:
        print(f"consumed: {effect.consumed}")
        print(f"produced: {effect.produced}")
    return 0


def classify_command(args) -> int:
    """Look an instruction up in the opcode catalog."""
    json_mode = getattr(args, 'json', False)
    catalog = load_opcodes(args, load_config(args))
    if not catalog:
        msg = "Opcode catalog is empty or unavailable"
        if json_mode:
            print_json(format_error_json(msg, "CatalogUnavailable", source=getattr(args, 'opcodes', None)))
        else:
            print(error(msg), file=sys.stderr)
        return 1

    result = classify(args.instruction, catalog)
    if json_mode:
        print_json({
            "instruction": args.instruction,
            "opcode": result.best.to_dict() if result.best else None,
            "related": [op.name for op in result.related],
        })
        return 0

    if result.best is None:
        print(warning(f"No opcode found for {args.instruction}"))
    else:
        op = result.best
        print(f"{bold(opcode(op.name))} {dim(op.doc_opcode)}")
        print(f"  Category: {op.doc_category}")
        print(f"  Fift:     {op.doc_fift}")
        print(f"  Stack:    {op.doc_stack or '-'}")
        effect = op.stack_effect
        if effect is not None:
            print(f"  Effect:   {effect.consumed} -> {effect.produced}")
        print(f"  Gas:      {op.doc_gas or '-'}")
        if op.doc_description:
            print(f"  {op.doc_description}")
    if result.related:
        print(f"Related: {', '.join(op.name for op in result.related)}")
    return 0
