"""
Resolve command implementation.

Turns an explorer link or hash into the canonical transaction locator and
prints it with links to every supported explorer.
"""

from retracer.cli.common import (
    create_resolver,
    handle_command_error,
    load_config,
    network_hint,
    print_json,
)
from retracer.core.serializer import TraceSerializer
from retracer.utils.colors import address, bold, bullet_point, dim, info, number
from retracer.utils.exceptions import RetracerError


def resolve_command(args) -> int:
    """
    Execute the resolve command.

    Args:
        args: Parsed command arguments

    Returns:
        Exit code (0 for success, non-zero for error)
    """
    json_mode = getattr(args, 'json', False)
    config = load_config(args)
    resolver = create_resolver(config)

    try:
        locator = resolver.resolve(args.reference, network_hint(args))
    except RetracerError as e:
        return handle_command_error(e, json_mode)

    if json_mode:
        data = TraceSerializer().serialize_locator(locator)
        data["replayUrl"] = locator.replay_url(config.replay_base_url)
        print_json(data)
        return 0

    print(f"{bold('Transaction')} {dim('(testnet)' if locator.testnet else '(mainnet)')}")
    print(f"  LT:      {number(locator.lt)}")
    print(f"  Hash:    {info(locator.hash_hex)}")
    print(f"  Account: {address(locator.friendly_address)}")
    print(f"           {dim(locator.address)}")
    print(f"\n{bold('Links:')}")
    for name, link in locator.links().items():
        print(bullet_point(f"{name}: {link}"))
    print(bullet_point(f"replay: {locator.replay_url(config.replay_base_url)}"))
    return 0
