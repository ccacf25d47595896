from __future__ import annotations

from astrbot_plugin_quote_sync.model import Quote
from astrbot_plugin_quote_sync.renderer import (
    NO_QUOTES_MESSAGE,
    QuoteRenderer,
    format_quote,
)


def test_format_quote() -> None:
    assert format_quote(Quote("Believe in yourself.", "Motivation")) == '"Believe in yourself." - (Motivation)'


def test_render_text_without_quote_shows_no_quotes_message() -> None:
    assert QuoteRenderer.render_text(None) == NO_QUOTES_MESSAGE
    assert QuoteRenderer.render_quote_list([]) == NO_QUOTES_MESSAGE


def test_render_quote_list_one_line_per_quote() -> None:
    text = QuoteRenderer.render_quote_list([Quote("a", "A"), Quote("b", "B")])

    assert text.splitlines() == ['"a" - (A)', '"b" - (B)']


def test_render_category_options_marks_selected() -> None:
    text = QuoteRenderer.render_category_options(["all", "A", "B"], "A")

    assert text.splitlines() == ["・ 全部分类", "▶ A", "・ B"]


def test_cards_escape_html() -> None:
    q = Quote("<script>alert(1)</script>", "A&B")

    single, options = QuoteRenderer.render_single_card(q, 1, 3)
    merged, _ = QuoteRenderer.render_list_card([q], "<b>title</b>")

    assert "<script>" not in single
    assert "&lt;script&gt;" in single
    assert "A&amp;B" in single
    assert "#1 / 3" in single
    assert options["full_page"] is True
    assert "&lt;b&gt;title&lt;/b&gt;" in merged
    assert "共 1 条语录" in merged
