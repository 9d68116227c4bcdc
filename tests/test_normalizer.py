"""
Tests for text normalization and chunking.
"""

import pytest

from src.ingestion.normalizer import extract_text, split_into_chunks


class TestPassthrough:
    """Tests for types that are not transformed."""

    def test_should_return_plaintext_unchanged(self) -> None:
        """Should pass plain text through untouched."""
        text = "  Alice met Bob.\n\nThey talked.  "

        assert extract_text(text, "plaintext") == text

    @pytest.mark.parametrize("file_type", ["pdf", "docx", "chat_export", "something_else"])
    def test_should_pass_through_other_types(self, file_type: str) -> None:
        """Should leave decoder-owned and unknown types alone."""
        assert extract_text("decoded text", file_type) == "decoded text"

    def test_should_decode_bytes(self) -> None:
        """Should accept UTF-8 bytes."""
        assert extract_text("café".encode("utf-8"), "plaintext") == "café"


class TestJsonNormalization:
    """Tests for JSON pretty-printing."""

    def test_should_pretty_print_with_two_spaces(self) -> None:
        """Should indent nested structures by two spaces."""
        result = extract_text('{"b": 1, "a": {"c": "x"}}', "json")

        assert result == '{\n  "b": 1,\n  "a": {\n    "c": "x"\n  }\n}'

    def test_should_preserve_key_order(self) -> None:
        """Should not sort keys."""
        result = extract_text('{"zeta": 1, "alpha": 2}', "structured_profile")

        assert result.index("zeta") < result.index("alpha")

    def test_should_return_malformed_json_unchanged(self) -> None:
        """Should fall back to the raw input when JSON does not parse."""
        raw = '{"name": "Alice", '

        assert extract_text(raw, "json") == raw


class TestMarkdownNormalization:
    """Tests for Markdown stripping."""

    def test_should_strip_bold_and_links(self) -> None:
        """Should keep text while dropping bold and link syntax."""
        result = extract_text(
            "# Title\n\nSome **bold** text and a [link](http://example.com).", "markdown"
        )

        assert "bold" in result
        assert "link" in result
        assert "**" not in result
        assert "](http" not in result

    def test_should_remove_heading_markers(self) -> None:
        """Should drop leading # markers."""
        result = extract_text("## Section\n###### Deep", "markdown")

        assert result == "Section\nDeep"

    def test_should_remove_images_entirely(self) -> None:
        """Should remove image syntax including alt text."""
        result = extract_text("Before ![diagram](img.png) after", "markdown")

        assert "diagram" not in result
        assert "img.png" not in result

    def test_should_strip_italic_and_code(self) -> None:
        """Should keep italic and inline code contents."""
        result = extract_text("An *italic* and _other_ word with `code`", "markdown")

        assert result == "An italic and other word with code"

    def test_should_keep_snake_case_words(self) -> None:
        """Should not treat underscores inside words as emphasis."""
        result = extract_text("Set the max_chunk_size option", "markdown")

        assert "max_chunk_size" in result

    def test_should_remove_horizontal_rules(self) -> None:
        """Should drop --- separator lines."""
        result = extract_text("Above\n\n---\n\nBelow", "markdown")

        assert "---" not in result
        assert "Above" in result and "Below" in result


class TestDelimitedNormalization:
    """Tests for CSV/TSV row descriptions."""

    def test_should_describe_csv_rows(self) -> None:
        """Should emit Row N: key=value lines using headers."""
        result = extract_text("Name,Role\nAlice,Engineer\n", "csv")

        assert "Row 1: Name=Alice, Role=Engineer" in result

    def test_should_describe_tsv_rows(self) -> None:
        """Should split TSV on tabs."""
        result = extract_text("Name\tCity\nAlice\tAtlanta\nBob\tBoston\n", "tsv")

        assert result.splitlines() == [
            "Row 1: Name=Alice, City=Atlanta",
            "Row 2: Name=Bob, City=Boston",
        ]

    def test_should_skip_empty_cells(self) -> None:
        """Should omit empty values from the row description."""
        result = extract_text("Name,Role,City\nAlice,,Atlanta\n", "csv")

        assert result == "Row 1: Name=Alice, City=Atlanta"

    def test_should_handle_quoted_cells(self) -> None:
        """Should keep commas inside quoted cells."""
        result = extract_text('Name,Location\nAlice,"Atlanta, GA"\n', "csv")

        assert result == "Row 1: Name=Alice, Location=Atlanta, GA"


class TestHtmlNormalization:
    """Tests for HTML stripping."""

    def test_should_remove_script_and_style_blocks(self) -> None:
        """Should drop script/style contents entirely."""
        raw = (
            "<html><head><style>body { color: red; }</style>"
            "<script>var secret = 1;</script></head>"
            "<body><p>Hello</p></body></html>"
        )

        result = extract_text(raw, "html")

        assert result == "Hello"

    def test_should_decode_entities(self) -> None:
        """Should decode standard HTML entities."""
        raw = "<p>Fish &amp; Chips &lt;3 &quot;yum&quot; it&#39;s&nbsp;good &gt;</p>"

        assert extract_text(raw, "html") == 'Fish & Chips <3 "yum" it\'s good >'

    def test_should_collapse_whitespace(self) -> None:
        """Should collapse runs of whitespace to single spaces."""
        raw = "<div>\n  Alice   <b>works</b>\n\n at <i>Acme</i></div>"

        assert extract_text(raw, "html") == "Alice works at Acme"


class TestChunking:
    """Tests for splitting long text into chunks."""

    def test_should_keep_short_text_whole(self) -> None:
        """Should return one chunk when under the limit."""
        assert split_into_chunks("short text", 100) == ["short text"]

    def test_should_return_no_chunks_for_blank_text(self) -> None:
        """Should not produce chunks for empty text."""
        assert split_into_chunks("   \n ", 100) == []

    def test_should_split_on_paragraphs(self) -> None:
        """Should group paragraphs without exceeding the limit."""
        text = "\n\n".join(["a" * 40, "b" * 40, "c" * 40])

        chunks = split_into_chunks(text, 90)

        assert chunks == ["a" * 40 + "\n\n" + "b" * 40, "c" * 40]

    def test_should_hard_split_oversized_paragraphs(self) -> None:
        """Should slice a paragraph longer than the limit."""
        chunks = split_into_chunks("x" * 250, 100)

        assert [len(chunk) for chunk in chunks] == [100, 100, 50]
