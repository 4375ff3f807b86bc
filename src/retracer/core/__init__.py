"""
Core module for retracer.

This module contains the transaction-level logic:
- IndexClient: toncenter / dton lookups behind a rate gate
- LocatorResolver: turns explorer links and hashes into locators
- Retracer: resolves, emulates and decodes one transaction
- TraceSerializer: serializes reports to JSON
"""

from .indexer import (
    IndexClient,
    RateLimitGate,
    TransactionSummary,
    BlockSummary,
)
from .locator import (
    LocatorResolver,
    TransactionLocator,
    ShardBlockRef,
    BlockContext,
)
from .emulation import (
    Emulator,
    RecordedEmulator,
    EmulationResult,
    TraceStep,
    parse_vm_log,
)
from .retracer import Retracer, TraceReport, StepInsight
from .serializer import TraceSerializer

__all__ = [
    'IndexClient',
    'RateLimitGate',
    'TransactionSummary',
    'BlockSummary',
    'LocatorResolver',
    'TransactionLocator',
    'ShardBlockRef',
    'BlockContext',
    'Emulator',
    'RecordedEmulator',
    'EmulationResult',
    'TraceStep',
    'parse_vm_log',
    'Retracer',
    'TraceReport',
    'StepInsight',
    'TraceSerializer',
]
