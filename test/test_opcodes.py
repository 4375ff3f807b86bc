import json

from retracer.parsers.opcodes import (
    OpcodeCatalog,
    classify,
    find_opcode,
    find_related,
    load_catalog,
    match_exchange,
    normalize_instruction,
)
from retracer.parsers.stack_effect import StackEffect

from conftest import FakeResponse, FakeSession


def test_normalize_instruction():
    instr = normalize_instruction("implicit ret")
    assert instr.command == 'RET'
    assert instr.operands == []
    assert normalize_instruction("XCHG s1,s3").operands == ['s1', 's3']
    assert normalize_instruction("   ") is None


def test_exact_match(catalog):
    op = find_opcode("ADD", catalog)
    assert op.name == 'ADD'
    assert op.stack_effect == StackEffect(2, 1)


def test_implicit_prefix_is_ignored(catalog):
    assert find_opcode("implicit RET", catalog).name == 'RET'


def test_exchange_forms(catalog):
    assert find_opcode("XCHG s0,s5", catalog).name == 'XCHG_0I'
    assert find_opcode("XCHG s1,s2", catalog).name == 'XCHG_1I'
    assert find_opcode("XCHG s2,s5", catalog).name == 'XCHG_IJ'


def test_descending_exchange_is_not_an_exchange_form(catalog):
    assert match_exchange(normalize_instruction("XCHG s5,s2"), catalog) is None
    assert match_exchange(normalize_instruction("XCHG s0,s3"), catalog).name == 'XCHG_0I'
    assert match_exchange(normalize_instruction("XCHG s1,s5"), catalog).name == 'XCHG_1I'
    assert match_exchange(normalize_instruction("XCHG s2,s3"), catalog).name == 'XCHG_IJ'


def test_partial_name_match(catalog):
    assert find_opcode("PUSHINT 7", catalog).name == 'PUSHINT_4'


def test_no_match(catalog):
    result = classify("SWAP2", catalog)
    assert result.best is None
    assert result.stack_effect is None


def test_related_limit(catalog):
    related = find_related("XCHG s1,s3", catalog, limit=2)
    assert [op.name for op in related] == ['XCHG_0I', 'XCHG_1I']


def test_empty_catalog_classifies_nothing():
    result = classify("ADD", OpcodeCatalog())
    assert result.best is None
    assert result.related == []
    assert classify("ADD", None).best is None


def test_load_catalog_from_file(tmp_path):
    path = tmp_path / 'opcodes.json'
    path.write_text(json.dumps([{"name": "NOP", "doc_stack": "-"}]))
    catalog = load_catalog(str(path))
    assert len(catalog) == 1
    assert catalog.get('NOP').doc_stack == '-'


def test_load_catalog_failure_gives_empty_catalog(tmp_path):
    catalog = load_catalog(str(tmp_path / 'missing.json'))
    assert not catalog


def test_load_catalog_from_url_is_cached():
    url = 'https://example.invalid/opcodes-cache-test.json'
    session = FakeSession([FakeResponse([{"name": "ADD", "doc_stack": "x y - x+y"}])])
    first = load_catalog(url, session=session)
    second = load_catalog(url, session=session)
    assert first is second
    assert len(session.requests) == 1
