"""Tests for anchoring.py"""

import pytest
from bs4 import BeautifulSoup

from readmark.core.anchoring import AnchorBuilder, EmptySelectionError, make_patch
from readmark.core.document import Document, text_content


@pytest.fixture
def doc(article_html):
    return Document.from_html(article_html)


@pytest.fixture
def builder(doc):
    return AnchorBuilder(doc)


class TestQuote:
    def test_quote_is_full_block_text(self, doc, builder):
        paragraph = doc.find_block("The quick brown fox")
        anchor = builder.build(paragraph)
        assert anchor.quote == "The quick brown fox"

    def test_inline_target_resolves_to_paragraph(self, doc, builder):
        em = doc.soup.find("em")
        anchor = builder.build(em)
        assert anchor.quote == "jumps over the lazy dog"

    def test_text_node_target(self, doc, builder):
        text_node = doc.soup.find("em").string
        assert builder.build(text_node).quote == "jumps over the lazy dog"

    def test_whitespace_block_is_empty_selection(self, doc, builder):
        blank = doc.soup.find_all("p")[2]
        with pytest.raises(EmptySelectionError):
            builder.build(blank)

    def test_non_block_target_is_empty_selection(self, doc, builder):
        with pytest.raises(EmptySelectionError):
            builder.build(doc.soup.find("div"))

    def test_none_target_is_empty_selection(self, builder):
        with pytest.raises(EmptySelectionError):
            builder.build(None)

    def test_inline_code_resolves_to_paragraph(self):
        doc = Document.from_html("<p>call <code>run()</code> first</p>")
        anchor = AnchorBuilder(doc).build(doc.soup.find("code"))
        assert anchor.quote == "call run() first"


class TestContext:
    def test_prefix_quote_suffix_are_adjacent_spans(self, doc, builder):
        anchor = builder.build(doc.find_block("jumps over"))
        assert anchor.prefix + anchor.quote + anchor.suffix in doc.text
        blank = text_content(doc.soup.find_all("p")[2])
        assert anchor.prefix.endswith("The quick brown fox")
        assert anchor.suffix.startswith(blank + "loose text")

    def test_context_never_contains_quote(self, doc, builder):
        for unit in doc.block_units():
            try:
                anchor = builder.build(unit)
            except EmptySelectionError:
                continue
            assert anchor.quote not in anchor.prefix
            assert anchor.quote not in anchor.suffix

    def test_context_bounded(self, doc):
        builder = AnchorBuilder(doc, context_chars=5)
        anchor = builder.build(doc.find_block("jumps over"))
        blank = text_content(doc.soup.find_all("p")[2])
        assert anchor.prefix == "n fox"
        assert anchor.suffix == (blank + "loose text")[:5]

    def test_repeated_quote_cut_from_context(self):
        doc = Document.from_html("<p>fox</p><p>fox</p>")
        second = doc.soup.find_all("p")[1]
        anchor = AnchorBuilder(doc).build(second)
        assert anchor.quote == "fox"
        assert anchor.prefix == ""
        assert anchor.suffix == ""

    def test_context_trimmed_around_nearby_repeats(self):
        doc = Document.from_html("<p>one fox two</p><p>fox</p><p>fox tail</p>")
        middle = doc.soup.find_all("p")[1]
        anchor = AnchorBuilder(doc).build(middle)
        assert anchor.prefix == " two"
        assert anchor.suffix == ""
        assert "fox" not in anchor.prefix + anchor.suffix

    def test_zero_context(self, doc):
        anchor = AnchorBuilder(doc, context_chars=0).build(doc.find_block("jumps over"))
        assert anchor.prefix == ""
        assert anchor.suffix == ""

    def test_empty_prefix_at_document_start(self, doc, builder):
        anchor = builder.build(doc.soup.find("h1"))
        assert anchor.prefix == ""
        assert anchor.suffix.startswith("The quick")

    def test_empty_suffix_at_document_end(self):
        doc = Document.from_html("<p>only</p><p>last words</p>")
        anchor = AnchorBuilder(doc).build(doc.find_block("last words"))
        assert anchor.prefix == "only"
        assert anchor.suffix == ""

    def test_negative_context_rejected(self, doc):
        with pytest.raises(ValueError):
            AnchorBuilder(doc, context_chars=-1)


class TestPosition:
    def test_anchor_index_is_block_ordinal(self, doc, builder):
        # h1, p, p, p(blank), ul, p(nested)
        assert builder.build(doc.find_block("The quick")).position_anchor_index == 1
        nested = doc.soup.find_all("p")[3]
        assert builder.build(nested).position_anchor_index == 5

    def test_server_anchor_index_preferred(self):
        doc = Document.from_html(
            '<div data-omnivore-anchor-idx="41"><span>tagged block</span></div><p>plain</p>'
        )
        builder = AnchorBuilder(doc)
        assert builder.build(doc.soup.find("span")).position_anchor_index == 41
        assert builder.build(doc.find_block("plain")).position_anchor_index == 1

    def test_position_percent_is_text_offset(self, doc, builder):
        anchor = builder.build(doc.find_block("jumps over"))
        start = doc.text.index("jumps over")
        assert anchor.position_percent == pytest.approx(start / len(doc.text))
        assert 0 <= anchor.position_percent < 1

    def test_anchor_index_stable_across_reflow_markup(self):
        original = Document.from_html("<h2>Intro</h2><p>Alpha</p><p>Beta text</p>")
        reflowed = Document.from_html(
            '<h2 style="font-size: 2em">Intro</h2>\n<p class="wide">Alpha</p>\n<p class="wide">Beta <b>text</b></p>'
        )
        a = AnchorBuilder(original).build(original.find_block("Beta"))
        b = AnchorBuilder(reflowed).build(reflowed.find_block("Beta"))
        assert a.position_anchor_index == b.position_anchor_index == 2
        assert a.patch == b.patch

    def test_detached_block_uses_page_fraction(self, doc, builder):
        foreign = BeautifulSoup("<p>Not from this article</p>", "html.parser").p
        anchor = builder.build(foreign, page_percent=0.75)
        assert anchor.quote == "Not from this article"
        assert anchor.position_percent == 0.75
        assert anchor.prefix == "" and anchor.suffix == ""


class TestPatch:
    def test_patch_ignores_whitespace_changes(self):
        assert make_patch("The  quick\nbrown fox ", 3) == make_patch("The quick brown fox", 3)

    def test_patch_changes_with_words(self):
        assert make_patch("The quick brown fox", 3) != make_patch("The quick red fox", 3)

    def test_patch_disabled(self, doc):
        anchor = AnchorBuilder(doc, include_patch=False).build(doc.find_block("The quick"))
        assert anchor.patch is None

    def test_patch_format(self, doc, builder):
        anchor = builder.build(doc.find_block("The quick"))
        index, digest, length = anchor.patch.split(":")
        assert index == "1"
        assert len(digest) == 12
        assert length == str(len("The quick brown fox"))
