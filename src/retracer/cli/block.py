"""
Block command implementation.

Looks a shard block up on the index and checks its root hash against the
one given on the command line.
"""

from retracer.cli.common import create_resolver, handle_command_error, load_config, print_json
from retracer.core.locator import ShardBlockRef
from retracer.utils.colors import bold, number, success
from retracer.utils.exceptions import RetracerError


def block_command(args) -> int:
    json_mode = getattr(args, 'json', False)
    resolver = create_resolver(load_config(args))
    ref = ShardBlockRef(args.workchain, args.shard, args.seqno, args.root_hash)

    try:
        block = resolver.verify_block(ref, bool(getattr(args, 'testnet', False)))
    except RetracerError as e:
        return handle_command_error(e, json_mode)

    if json_mode:
        print_json({
            "workchain": ref.workchain,
            "shard": ref.shard,
            "seqno": ref.seqno,
            "rootHash": ref.root_hash,
            "mcSeqno": block.mc_seqno,
            "randSeed": block.rand_seed.hex(),
        })
        return 0

    print(f"{bold('Block')} {ref.workchain}:{ref.shard}:{ref.seqno} {success('root hash verified')}")
    print(f"  Masterchain seqno: {number(block.mc_seqno)}")
    print(f"  Random seed:       {block.rand_seed.hex()}")
    return 0
