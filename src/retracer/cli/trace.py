"""
Trace command implementation.

This module handles retracing an existing transaction: resolving the
reference, replaying it through the emulator and printing the executed
TVM steps with decoded stacks.
"""

import sys
from typing import Optional

from retracer.cli.common import (
    create_resolver,
    handle_command_error,
    load_config,
    load_opcodes,
    network_hint,
    print_json,
    print_stack,
)
from retracer.core.emulation import ComputeSummary, RecordedEmulator
from retracer.core.locator import ShardBlockRef
from retracer.core.retracer import Retracer, TraceReport
from retracer.core.serializer import TraceSerializer
from retracer.utils.colors import (
    bold, bullet_point, dim, error, gas_value, info, opcode, success, warning,
)
from retracer.utils.exceptions import RetracerError, format_error_json
from retracer.utils.helpers import format_ton, short_step
from retracer.utils.logging import logger


def trace_command(args) -> int:
    """
    Execute the trace command.

    Args:
        args: Parsed command arguments

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    json_mode = getattr(args, 'json', False)
    config = load_config(args)

    try:
        shard_block = parse_shard_block(args.shard_block) if getattr(args, 'shard_block', None) else None
    except ValueError as e:
        return handle_command_error(e, json_mode)

    retracer = Retracer(
        resolver=create_resolver(config),
        emulator=RecordedEmulator(args.emulation),
        catalog=load_opcodes(args, config),
    )

    if not json_mode:
        print(f"Loading transaction {info(args.reference)}...")
        sys.stdout.flush()

    try:
        report = retracer.retrace(args.reference, network_hint(args), shard_block)
    except RetracerError as e:
        return handle_command_error(e, json_mode)

    step = getattr(args, 'step', None)
    if step is not None and not 0 <= step < len(report.steps):
        msg = f"Step {step} out of range (trace has {len(report.steps)} steps)"
        if json_mode:
            print_json(format_error_json(msg, "StepOutOfRange", step=step, totalSteps=len(report.steps)))
        else:
            print(error(msg), file=sys.stderr)
        return 1

    if json_mode:
        serializer = TraceSerializer()
        output = serializer.serialize_report(report, args.max_steps)
        output["replayUrl"] = report.locator.replay_url(config.replay_base_url)
        if step is not None:
            output["insight"] = serializer.serialize_insight(report.explain(step))
        print_json(output)
        return 0

    _print_summary(report)
    if step is not None:
        _print_insight(report, step)
    else:
        _print_steps(report, args.max_steps)
    _print_actions(report)
    return 0


def parse_shard_block(text: str) -> ShardBlockRef:
    """``WC:SHARD:SEQNO:ROOT_HASH`` as printed by the block explorers."""
    parts = text.split(':')
    if len(parts) != 4:
        raise ValueError(f"Expected WC:SHARD:SEQNO:ROOT_HASH, got {text!r}")
    workchain, shard, seqno, root_hash = parts
    return ShardBlockRef(int(workchain), shard, int(seqno), root_hash)


def _print_summary(report: TraceReport) -> None:
    locator = report.locator
    network = 'testnet' if locator.testnet else 'mainnet'
    print(f"\n{bold('Transaction')} {info(locator.hash_hex)} {dim(f'({network}, lt {locator.lt})')}")

    if isinstance(report.compute, ComputeSummary):
        compute = report.compute
        status = success('SUCCESS') if compute.success else error('FAILED')
        print(f"Status: {status}  exit code {compute.exit_code}, "
              f"{compute.vm_steps} VM steps, gas used {compute.gas_used}")
        if compute.gas_fees is not None:
            print(f"Gas fees: {format_ton(compute.gas_fees)} TON")
    else:
        print(f"Status: {warning('compute phase skipped')}")

    money = report.money
    print(f"Balance before: {format_ton(money.balance_before)} TON")
    if report.amount is not None:
        print(f"Received:       {format_ton(report.amount)} TON")
    print(f"Sent total:     {format_ton(money.sent_total)} TON")
    print(f"Total fees:     {format_ton(money.total_fees)} TON")
    print(f"Balance after:  {format_ton(money.balance_after)} TON")


def _print_steps(report: TraceReport, max_steps: Optional[int]) -> None:
    steps = report.steps
    if max_steps is not None and max_steps > 0:
        steps = steps[:max_steps]

    print(f"\n{bold('Execution')} {dim(f'({len(report.steps)} steps)')}")
    print(dim("-" * 60))
    for step in steps:
        line = f"{step.index:>5}  {opcode(short_step(step.instruction)):<24}"
        if step.gas_remaining is not None:
            line += f"  {gas_value(step.gas_remaining)}"
        if step.price is not None:
            line += dim(f" (-{step.price})")
        print(line)
        if step.error:
            print(f"       {error(f'exit code {step.error.code}: {step.error.text}')}")
        if step.stack_error:
            print(f"       {warning(f'stack not decoded: {step.stack_error}')}")
    if len(steps) < len(report.steps):
        print(dim(f"... {len(report.steps) - len(steps)} more steps (use --max-steps 0 for all)"))


def _print_insight(report: TraceReport, index: int) -> None:
    insight = report.explain(index)
    step = insight.step
    print(f"\n{bold(f'Step {index}:')} {opcode(step.instruction)}")

    if insight.opcode:
        op = insight.opcode
        print(f"  Opcode:      {op.name} {dim(op.doc_opcode)}")
        print(f"  Fift:        {op.doc_fift}")
        print(f"  Stack:       {op.doc_stack or '-'}")
        print(f"  Gas:         {op.doc_gas or '-'}")
        if op.doc_description:
            print(f"  Description: {op.doc_description}")
    else:
        logger.info(f"No catalog entry for {step.instruction}")
        print(f"  {warning('No opcode documentation found')}")
    if insight.related:
        print(f"  Related:     {', '.join(op.name for op in insight.related)}")

    print(f"\n{bold('Stack before')}")
    print_stack(insight.stack_before, insight.highlight_before, before=True)
    print(f"\n{bold('Stack after')}")
    print_stack(insight.stack_after, insight.highlight_after)


def _print_actions(report: TraceReport) -> None:
    if report.actions_error:
        print(f"\n{error(f'Actions not decoded: {report.actions_error}')}")
        return
    if not report.actions:
        return
    print(f"\n{bold('Out actions')}")
    for action in report.actions:
        mode = getattr(action, 'mode', None)
        print(bullet_point(action.type + (f" mode {mode}" if mode is not None else "")))
