"""
Opcode catalog and instruction classifier.

The catalog is the ``opcodes.json`` document published with the TON docs.
Each executed step of a trace carries a free-form instruction text such as
``XCHG s1,s3`` or ``implicit RET``; ``classify`` finds the catalog record
documenting it through a short sequence of matching tiers.
"""

import json
import re
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, NamedTuple, Optional, Tuple, Union

import requests

from retracer.parsers.stack_effect import StackEffect, parse_stack_effect
from retracer.utils.logging import get_logger

logger = get_logger('opcodes')

MAX_RELATED = 5

_SPLIT = re.compile(r'[\s,]+')
_SLOT = re.compile(r'^s(\d+)$')
_BRACKETED = re.compile(r'\[.*?\]')


@dataclass(frozen=True)
class OpcodeRecord:
    """One documented TVM instruction."""
    name: str
    alias_of: str = ''
    tlb: str = ''
    doc_category: str = ''
    doc_opcode: str = ''
    doc_fift: str = ''
    doc_stack: str = ''
    doc_gas: Union[int, str] = ''
    doc_description: str = ''

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "OpcodeRecord":
        return cls(
            name=data.get('name') or '',
            alias_of=data.get('alias_of') or '',
            tlb=data.get('tlb') or '',
            doc_category=data.get('doc_category') or '',
            doc_opcode=data.get('doc_opcode') or '',
            doc_fift=data.get('doc_fift') or '',
            doc_stack=data.get('doc_stack') or '',
            doc_gas=data.get('doc_gas', ''),
            doc_description=data.get('doc_description') or '',
        )

    @property
    def stack_effect(self) -> Optional[StackEffect]:
        return parse_stack_effect(self.doc_stack)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'name': self.name,
            'alias_of': self.alias_of,
            'tlb': self.tlb,
            'doc_category': self.doc_category,
            'doc_opcode': self.doc_opcode,
            'doc_fift': self.doc_fift,
            'doc_stack': self.doc_stack,
            'doc_gas': self.doc_gas,
            'doc_description': self.doc_description,
        }


class OpcodeCatalog:
    """Read-only, ordered collection of opcode records."""

    def __init__(self, records: Iterable[OpcodeRecord] = ()):
        self._records: Tuple[OpcodeRecord, ...] = tuple(records)
        self._by_name = {r.name: r for r in self._records}

    @classmethod
    def from_list(cls, data: List[Dict[str, Any]]) -> "OpcodeCatalog":
        return cls(OpcodeRecord.from_dict(item) for item in data if isinstance(item, dict))

    @property
    def records(self) -> Tuple[OpcodeRecord, ...]:
        return self._records

    def get(self, name: str) -> Optional[OpcodeRecord]:
        return self._by_name.get(name)

    def __iter__(self):
        return iter(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def __bool__(self) -> bool:
        return bool(self._records)


_catalog_cache: Dict[str, OpcodeCatalog] = {}


def load_catalog(source: str, timeout: float = 30.0, session=None) -> OpcodeCatalog:
    """
    Load the opcode catalog from a URL or a local JSON file.

    The catalog is fetched once per source and process. Any failure is
    logged and yields an empty catalog, so classification simply finds
    nothing.
    """
    if source in _catalog_cache:
        return _catalog_cache[source]

    try:
        if source.startswith(('http://', 'https://')):
            logger.info(f"Loading opcodes json from {source}...")
            http = session or requests
            response = http.get(source, timeout=timeout)
            response.raise_for_status()
            data = response.json()
        else:
            with open(Path(source), encoding='utf-8') as f:
                data = json.load(f)
        if not isinstance(data, list):
            raise ValueError("expected a JSON array of opcode records")
    except (requests.RequestException, OSError, ValueError) as e:
        logger.error(f"Error loading opcodes from {source}: {e}")
        return OpcodeCatalog()

    catalog = OpcodeCatalog.from_list(data)
    logger.debug(f"Loaded {len(catalog)} opcodes from {source}")
    _catalog_cache[source] = catalog
    return catalog


# ============================================================================
# Classification
# ============================================================================

class Instruction(NamedTuple):
    """Normalized instruction text."""
    command: str
    operands: List[str]


class Classification(NamedTuple):
    best: Optional[OpcodeRecord]
    related: List[OpcodeRecord]

    @property
    def stack_effect(self) -> Optional[StackEffect]:
        return self.best.stack_effect if self.best else None


def normalize_instruction(text: str) -> Optional[Instruction]:
    """Split instruction text into an upper-cased command key and operands."""
    if not text:
        return None
    normalized = text.strip()
    if normalized.startswith('implicit '):
        normalized = normalized[len('implicit '):].strip()
    parts = [p for p in _SPLIT.split(normalized) if p]
    if not parts:
        return None
    return Instruction(parts[0].upper(), parts[1:])


def match_exact(instr: Instruction, catalog: OpcodeCatalog) -> Optional[OpcodeRecord]:
    for op in catalog:
        if op.name.upper() == instr.command:
            return op
    return None


def match_exchange(instr: Instruction, catalog: OpcodeCatalog) -> Optional[OpcodeRecord]:
    """XCHG si,sj is documented under three records depending on the indices."""
    if instr.command != 'XCHG' or len(instr.operands) != 2:
        return None
    slots = [_SLOT.match(p.lower()) for p in instr.operands]
    if not all(slots):
        return None
    i, j = (int(m.group(1)) for m in slots)

    if i == 0:
        return catalog.get('XCHG_0I')
    if i == 1:
        return catalog.get('XCHG_1I') if j >= 2 else None
    if 1 <= i < j <= 15:
        return catalog.get('XCHG_IJ')
    return None


def match_template(instr: Instruction, catalog: OpcodeCatalog) -> Optional[OpcodeRecord]:
    """Parameterized families, e.g. ``PUSHINT [x]``."""
    for op in catalog:
        if '[' not in op.doc_fift or ']' not in op.doc_fift:
            continue
        fift_parts = op.doc_fift.split()
        if fift_parts[0].upper() != instr.command:
            continue
        pattern = ' '.join(fift_parts[1:])
        if '*' in _BRACKETED.sub('*', pattern):
            return op
    return None


def match_description(instr: Instruction, catalog: OpcodeCatalog) -> Optional[OpcodeRecord]:
    for op in catalog:
        if instr.command in op.doc_description.upper():
            return op
    return None


def match_partial_name(instr: Instruction, catalog: OpcodeCatalog) -> Optional[OpcodeRecord]:
    for op in catalog:
        if instr.command in op.name.upper() or (op.alias_of and instr.command in op.alias_of.upper()):
            return op
    return None


MATCHING_TIERS: Tuple[Callable[[Instruction, OpcodeCatalog], Optional[OpcodeRecord]], ...] = (
    match_exact,
    match_exchange,
    match_template,
    match_description,
    match_partial_name,
)


def find_opcode(text: str, catalog: OpcodeCatalog) -> Optional[OpcodeRecord]:
    """Best catalog record for an instruction, or None."""
    instr = normalize_instruction(text)
    if instr is None or not catalog:
        return None
    for tier in MATCHING_TIERS:
        found = tier(instr, catalog)
        if found is not None:
            return found
    return None


def find_related(text: str, catalog: OpcodeCatalog, limit: int = MAX_RELATED) -> List[OpcodeRecord]:
    """Records mentioning the command key in their name, alias or fift syntax."""
    instr = normalize_instruction(text)
    if instr is None:
        return []
    key = instr.command
    related = []
    for op in catalog:
        if (key in op.name.upper()
                or (op.alias_of and key in op.alias_of.upper())
                or key in op.doc_fift.upper()):
            related.append(op)
            if len(related) >= limit:
                break
    return related


def classify(text: str, catalog: Optional[OpcodeCatalog]) -> Classification:
    """Find the documenting record of an instruction plus similar instructions."""
    if not catalog:
        return Classification(None, [])
    return Classification(find_opcode(text, catalog), find_related(text, catalog))
