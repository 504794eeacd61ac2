"""Prompt context assembly."""

from catalog_assistant.context import (
    build_context,
    build_conversation_context,
    build_kb_overview,
    datasheet_url,
    format_product,
    needs_overview,
    to_datasheet_reference,
)
from catalog_assistant.models import ConversationTurn, MatchType
from catalog_assistant.prompts import NO_RESULTS_CONTEXT
from catalog_assistant.search import tag

from conftest import make_record


def _result(**kwargs):
    record = make_record("JB02HR", name="Junction box", category="Electrical", **kwargs)
    return tag(record, 2.0, MatchType.KEYWORD)


def test_empty_results_use_placeholder():
    assert build_context([]) == NO_RESULTS_CONTEXT


def test_format_product_flattens_specifications():
    result = _result(
        specifications={"Weight": "33 kg", "Dimensions": {"height": "800 mm"}, "Notes": ""},
        applications="Offshore",
    )
    block = format_product(result)

    assert "Product Code: JB02HR" in block
    assert "Weight: 33 kg" in block
    assert 'Dimensions: {"height": "800 mm"}' in block
    assert "Notes" not in block
    assert "Applications: Offshore" in block


def test_datasheet_urls_are_quoted():
    assert datasheet_url("JB02 HR.pdf", "https://files.example.com/sheets/") == (
        "https://files.example.com/sheets/JB02%20HR.pdf"
    )


def test_datasheet_reference_falls_back_to_code_filename():
    reference = to_datasheet_reference(_result())

    assert reference.filename == "JB02HR.pdf"
    assert reference.productCode == "JB02HR"
    assert reference.displayName.startswith("JB02HR")


def test_overview_is_needed_for_few_results_or_meta_queries():
    three = [_result() for _ in range(3)]

    assert needs_overview([], meta_query=False)
    assert needs_overview(three, meta_query=True)
    assert not needs_overview(three, meta_query=False)


def test_kb_overview_lists_catalog_shape():
    overview = build_kb_overview({"totalProducts": 42, "categories": ["Fire Hose", "Life Jacket"], "sampleProducts": ["FH100"]})

    assert "42" in overview
    assert "Fire Hose, Life Jacket" in overview
    assert "FH100" in overview


def test_conversation_context_keeps_last_ten_truncated_turns():
    history = [ConversationTurn(role="user", content=f"message {index}") for index in range(12)]
    history.append(ConversationTurn(role="assistant", content="x" * 600))
    context = build_conversation_context(history)

    assert "message 2" not in context
    assert "message 11" in context
    assert "x" * 500 + "..." in context
    assert "x" * 501 not in context


def test_datasheet_display_name_joins_code_and_name():
    assert to_datasheet_reference(_result()).displayName == "JB02HR — Junction box"
