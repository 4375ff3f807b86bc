"""
Retracer session.

Ties the pieces together: resolve the reference, run the emulator, decode
each VM step and explain it against the opcode catalog.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Union

from retracer.core.emulation import (
    COMPUTE_SKIPPED,
    ComputeSummary,
    Emulator,
    MoneyFlow,
    TraceStep,
    parse_vm_log,
)
from retracer.core.locator import BlockContext, LocatorResolver, ShardBlockRef, TransactionLocator
from retracer.parsers.actions import OutAction, parse_c5
from retracer.parsers.opcodes import OpcodeCatalog, OpcodeRecord, classify
from retracer.parsers.stack import StackValue
from retracer.parsers.stack_effect import StackEffect, highlight_slots
from retracer.utils.exceptions import EmulationError
from retracer.utils.logging import get_logger, transaction_context

logger = get_logger('retracer')


@dataclass
class StepInsight:
    """Everything shown next to one selected step."""
    step: TraceStep
    opcode: Optional[OpcodeRecord]
    related: List[OpcodeRecord]
    stack_effect: Optional[StackEffect]
    stack_before: List[StackValue]
    stack_after: List[StackValue]
    highlight_before: List[int]
    highlight_after: List[int]


@dataclass
class TraceReport:
    locator: TransactionLocator
    links: Dict[str, str]
    compute: Union[ComputeSummary, str]
    money: MoneyFlow
    initial_stack: List[StackValue]
    steps: List[TraceStep]
    actions: List[OutAction] = field(default_factory=list)
    actions_error: Optional[str] = None
    utime: Optional[int] = None
    amount: Optional[int] = None
    catalog: Optional[OpcodeCatalog] = None

    @property
    def compute_skipped(self) -> bool:
        return self.compute == COMPUTE_SKIPPED

    def stack_before(self, index: int) -> List[StackValue]:
        if index == 0:
            return list(self.initial_stack)
        return list(self.steps[index - 1].stack_after)

    def explain(self, index: int) -> StepInsight:
        """
        Classify step ``index`` and work out which stack slots it touched.

        Stacks in the insight are top first; highlight indices refer to them.
        """
        step = self.steps[index]
        classification = classify(step.instruction, self.catalog)
        effect = classification.stack_effect
        return StepInsight(
            step=step,
            opcode=classification.best,
            related=classification.related,
            stack_effect=effect,
            stack_before=list(reversed(self.stack_before(index))),
            stack_after=step.stack_top_first(),
            highlight_before=highlight_slots(effect, before=True),
            highlight_after=highlight_slots(effect),
        )


class Retracer:
    """Resolve, emulate and decode one transaction."""

    def __init__(
        self,
        resolver: LocatorResolver,
        emulator: Emulator,
        catalog: Optional[OpcodeCatalog] = None,
    ):
        self.resolver = resolver
        self.emulator = emulator
        self.catalog = catalog or OpcodeCatalog()

    def retrace(
        self,
        reference: str,
        testnet: Optional[bool] = None,
        shard_block: Optional[ShardBlockRef] = None,
    ) -> TraceReport:
        locator = self.resolver.resolve(reference, testnet)
        with transaction_context(locator.hash_hex):
            return self._replay(locator, shard_block)

    def _replay(self, locator: TransactionLocator, shard_block: Optional[ShardBlockRef]) -> TraceReport:
        block: Optional[BlockContext] = None
        if shard_block is not None:
            block = self.resolver.verify_block(shard_block, locator.testnet)

        logger.info(f"Emulating transaction {locator.hash_hex}...")
        result = self.emulator.emulate(locator, block)
        initial_stack, steps = parse_vm_log(result.vm_log)
        logger.debug(f"Decoded {len(steps)} VM steps")

        actions: List[OutAction] = []
        actions_error = None
        if result.c5:
            try:
                actions = parse_c5(result.c5)
            except EmulationError as e:
                logger.error(f"Error parsing c5: {e.message}")
                actions_error = e.message

        return TraceReport(
            locator=locator,
            links=locator.links(),
            compute=result.compute,
            money=result.money,
            initial_stack=initial_stack,
            steps=steps,
            actions=actions,
            actions_error=actions_error,
            utime=result.utime,
            amount=result.amount,
            catalog=self.catalog,
        )
