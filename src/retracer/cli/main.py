#!/usr/bin/env python3
"""
Main entry point for retracer

This module serves as the CLI entry point, handling argument parsing
and routing to the appropriate command implementations in the cli/ module.
"""

import sys
import argparse
import logging

from retracer.utils.logging import setup_logging


def _add_network_flags(parser, both: bool = True):
    group = parser.add_mutually_exclusive_group()
    group.add_argument('--testnet', action='store_true', help='Look the transaction up on testnet only')
    if both:
        group.add_argument('--mainnet', action='store_true', help='Look the transaction up on mainnet only')


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description='retracer - TON transaction retracer')
    parser.add_argument('--version', '-V', action='version', version='%(prog)s 0.1.0')

    # Global options
    parser.add_argument('--debug', action='store_true', help='Enable debug logging')
    parser.add_argument('--verbose', '-v', action='store_true', help='Enable trace-level logging')
    parser.add_argument('--quiet', '-q', action='store_true', help='Suppress log output')
    parser.add_argument('--log-file', help='Also write logs to this file')
    parser.add_argument('--api-key', help='toncenter API key (default: $TONCENTER_API_KEY)')
    parser.add_argument('--rate-limit', type=float, default=None,
                        help='Minimum seconds between index requests (default: 1.1)')

    # Create subparsers for different commands
    subparsers = parser.add_subparsers(dest='command', help='Commands')
    subparsers.required = True

    # resolve command
    resolve_parser = subparsers.add_parser('resolve', help='Resolve an explorer link or hash to a transaction')
    resolve_parser.add_argument('reference', help='Explorer link, lt:hash, lt:hash:address or transaction hash')
    _add_network_flags(resolve_parser)
    resolve_parser.add_argument('--json', action='store_true', help='Output as JSON')

    # trace command
    trace_parser = subparsers.add_parser('trace', help='Retrace a transaction step by step')
    trace_parser.add_argument('reference', help='Explorer link, lt:hash, lt:hash:address or transaction hash')
    trace_parser.add_argument('--emulation', '-e', required=True,
                              help='JSON file holding the emulator output for the transaction')
    trace_parser.add_argument('--opcodes', help='Opcode catalog URL or file (default: TON docs opcodes.json)')
    trace_parser.add_argument('--shard-block', help='WC:SHARD:SEQNO:ROOT_HASH of the block to verify')
    trace_parser.add_argument('--max-steps', '-m', type=int, default=50,
                              help='Maximum steps to show (use 0 or -1 for all steps)')
    trace_parser.add_argument('--step', '-s', type=int, default=None,
                              help='Explain one step: opcode docs and stacks before and after')
    _add_network_flags(trace_parser)
    trace_parser.add_argument('--json', action='store_true', help='Output trace data as JSON')

    # decode-stack command
    stack_parser = subparsers.add_parser('decode-stack', help='Decode a TVM stack dump')
    stack_parser.add_argument('line', help='Stack dump, e.g. "[ 1 C{...} () ]"')
    stack_parser.add_argument('--json', action='store_true', help='Output as JSON')

    # stack-effect command
    effect_parser = subparsers.add_parser('stack-effect', help='Count items consumed and produced by a notation')
    effect_parser.add_argument('notation', help='Stack-effect notation, e.g. "x y - x+y"')
    effect_parser.add_argument('--json', action='store_true', help='Output as JSON')

    # classify command
    classify_parser = subparsers.add_parser('classify', help='Find the catalog entry for an instruction')
    classify_parser.add_argument('instruction', help='Instruction text, e.g. "XCHG s1,s3"')
    classify_parser.add_argument('--opcodes', help='Opcode catalog URL or file (default: TON docs opcodes.json)')
    classify_parser.add_argument('--json', action='store_true', help='Output as JSON')

    # block command
    block_parser = subparsers.add_parser('block', help='Verify a shard block and print its masterchain seqno')
    block_parser.add_argument('workchain', type=int, help='Workchain id')
    block_parser.add_argument('shard', help='Shard id (hex or signed decimal)')
    block_parser.add_argument('seqno', type=int, help='Block sequence number')
    block_parser.add_argument('root_hash', help='Expected root hash (base64)')
    _add_network_flags(block_parser, both=False)
    block_parser.add_argument('--json', action='store_true', help='Output as JSON')

    return parser


def main(argv=None):
    """Main entry point for retracer CLI."""
    parser = build_parser()
    args = parser.parse_args(argv)

    setup_logging(
        level=logging.WARNING,
        quiet=args.quiet,
        debug=args.debug,
        verbose=args.verbose,
        log_file=args.log_file,
    )

    # Lazy imports keep offline commands free of network setup
    from retracer.cli import (
        resolve_command,
        trace_command,
        block_command,
        decode_stack_command,
        stack_effect_command,
        classify_command,
    )

    # Route commands to CLI modules
    if args.command == 'resolve':
        return resolve_command(args)
    elif args.command == 'trace':
        return trace_command(args)
    elif args.command == 'decode-stack':
        return decode_stack_command(args)
    elif args.command == 'stack-effect':
        return stack_effect_command(args)
    elif args.command == 'classify':
        return classify_command(args)
    elif args.command == 'block':
        return block_command(args)

    return 0


if __name__ == '__main__':
    sys.exit(main())
