"""
Tests for file type detection.
"""

import json

import pytest

from src.ingestion.detector import FileType, classify_json, detect_file_type


class TestExtensionDetection:
    """Tests for extension-based detection."""

    @pytest.mark.parametrize(
        "filename, expected",
        [
            ("report.pdf", "pdf"),
            ("data.json", "json"),
            ("README.md", "markdown"),
            ("notes.txt", "plaintext"),
            ("doc.docx", "docx"),
            ("doc.doc", "docx"),
            ("data.csv", "csv"),
            ("data.tsv", "tsv"),
            ("page.html", "html"),
            ("page.htm", "html"),
        ],
    )
    def test_should_map_extension_to_type(self, filename: str, expected: str) -> None:
        """Should resolve empty content by extension alone."""
        assert detect_file_type("", filename) == expected

    def test_should_ignore_extension_case(self) -> None:
        """Should treat upper-case extensions the same."""
        assert detect_file_type("", "REPORT.PDF") == "pdf"

    def test_should_prefer_extension_over_content(self) -> None:
        """Should keep the extension type even when content looks like HTML."""
        assert detect_file_type("<html><body>Hi</body></html>", "notes.txt") == "plaintext"


class TestJsonClassification:
    """Tests for JSON content introspection."""

    def test_should_detect_entity_type_profile(self) -> None:
        """Should classify JSON with entity_type as a structured profile."""
        content = '{"entity_type":"person","name":"Steve Hughes"}'

        assert detect_file_type(content, "steve.json") == "structured_profile"

    def test_should_detect_nested_entity_type_profile(self) -> None:
        """Should look inside the entity sub-object for entity_type."""
        content = json.dumps({"entity": {"entity_type": "person", "name": {"full": "CJ Mitchell"}}})

        assert detect_file_type(content, "cj.json") == "structured_profile"

    def test_should_detect_name_and_attributes_profile(self) -> None:
        """Should classify name + attributes as a structured profile."""
        content = json.dumps({"name": "Test", "attributes": {"role": "dev"}})

        assert detect_file_type(content, "test.json") == "structured_profile"

    def test_should_detect_name_and_type_profile(self) -> None:
        """Should classify name + type as a structured profile."""
        content = json.dumps({"name": "Test", "type": "PERSON"})

        assert detect_file_type(content, "test.json") == "structured_profile"

    def test_should_not_treat_empty_attributes_as_profile(self) -> None:
        """Should require a non-empty attributes object."""
        assert classify_json({"name": "Test", "attributes": {}}) == FileType.JSON

    def test_should_detect_chat_export(self) -> None:
        """Should classify mapping nodes with messages as a chat export."""
        content = json.dumps({
            "title": "Chat",
            "mapping": {
                "abc-123": {
                    "id": "abc-123",
                    "message": {"author": {"role": "user"}, "content": {"parts": ["Hello"]}},
                }
            },
        })

        assert detect_file_type(content, "chat.json") == "chat_export"

    def test_should_fall_back_to_generic_json(self) -> None:
        """Should classify unremarkable JSON as json."""
        content = json.dumps({"foo": "bar", "baz": [1, 2, 3]})

        assert detect_file_type(content, "misc.json") == "json"

    def test_should_keep_json_tag_for_malformed_json_file(self) -> None:
        """Should not fail on malformed content under a .json extension."""
        assert detect_file_type('{"broken": ', "broken.json") == "json"

    def test_should_classify_top_level_array_as_json(self) -> None:
        """Should treat arrays as generic JSON."""
        assert classify_json([{"name": "A", "type": "PERSON"}]) == FileType.JSON


class TestContentSniffing:
    """Tests for detection without a usable extension."""

    def test_should_detect_pdf_header(self) -> None:
        """Should detect the %PDF signature."""
        assert detect_file_type("%PDF-1.4 ...", "unknown") == "pdf"

    def test_should_detect_pdf_header_in_bytes(self) -> None:
        """Should sniff binary content too."""
        assert detect_file_type(b"%PDF-1.7\x00\x01", "") == "pdf"

    def test_should_detect_zip_header_as_docx(self) -> None:
        """Should detect the PK zip signature."""
        assert detect_file_type("PK\x03\x04...", "mystery") == "docx"

    def test_should_detect_json_object_content(self) -> None:
        """Should parse brace-prefixed content as JSON."""
        assert detect_file_type('{ "hello": "world" }', "noext") == "json"

    def test_should_detect_json_array_content(self) -> None:
        """Should parse bracket-prefixed content as JSON."""
        assert detect_file_type('[ {"a":1} ]', "noext") == "json"

    def test_should_detect_profile_without_extension(self) -> None:
        """Should re-enter JSON introspection during sniffing."""
        content = '{"entity_type": "person", "name": "Steve Hughes"}'

        assert detect_file_type(content, "") == "structured_profile"

    def test_should_fall_through_on_malformed_json(self) -> None:
        """Should keep sniffing when brace-prefixed content is not JSON."""
        assert detect_file_type("{not json at all", "noext") == "plaintext"

    def test_should_detect_html_root(self) -> None:
        """Should detect an <html> root tag."""
        assert detect_file_type("<html><body>Hi</body></html>", "page") == "html"

    def test_should_detect_html_doctype(self) -> None:
        """Should detect an HTML doctype."""
        assert detect_file_type("<!DOCTYPE html><head></head>", "page") == "html"

    def test_should_detect_markdown_with_two_signals(self) -> None:
        """Should need at least two Markdown signals."""
        content = "# Title\n\nSome **bold** text and a [link](http://example.com).\n"

        assert detect_file_type(content, "noext") == "markdown"

    def test_should_not_detect_markdown_with_one_signal(self) -> None:
        """Should treat a lone heading as plain text."""
        assert detect_file_type("# Just a heading line", "noext") == "plaintext"

    def test_should_detect_csv(self) -> None:
        """Should detect consistent comma-separated columns."""
        content = "Name,Age,City\nAlice,30,NYC\nBob,25,LA\n"

        assert detect_file_type(content, "noext") == "csv"

    def test_should_detect_tsv(self) -> None:
        """Should detect consistent tab-separated columns."""
        content = "Name\tAge\tCity\nAlice\t30\tNYC\nBob\t25\tLA\n"

        assert detect_file_type(content, "noext") == "tsv"

    def test_should_not_detect_csv_from_single_line(self) -> None:
        """Should need multiple lines before calling content CSV."""
        assert detect_file_type("apples, pears, plums", "noext") == "plaintext"

    def test_should_fall_back_to_plaintext(self) -> None:
        """Should resolve undecidable content to plaintext."""
        content = "Just some regular text without any markers."

        assert detect_file_type(content, "noext") == "plaintext"

    def test_should_handle_missing_content(self) -> None:
        """Should never fail, even without content or filename."""
        assert detect_file_type(None, "") == "plaintext"
