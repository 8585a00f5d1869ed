"""
Tests for filename derivation and sanitization.
"""

import pytest

from pdf_relay.relay.filename import (
    MAX_FILENAME_LENGTH,
    content_disposition_header,
    guess_name_from_url,
    parse_content_disposition,
    resolve_filename,
    sanitize_filename,
)


class TestSanitizeFilename:
    def test_reserved_characters_become_underscores(self):
        assert sanitize_filename('a/b\\c?d%e*f:g|h"i<j>k') == "a_b_c_d_e_f_g_h_i_j_k"

    def test_whitespace_is_collapsed_and_trimmed(self):
        assert sanitize_filename("  annual \t\n report   2024.pdf  ") == "annual report 2024.pdf"

    def test_control_characters_are_dropped(self):
        assert sanitize_filename("bad\x00name\x07.pdf") == "badname.pdf"

    def test_header_injection_is_neutralized(self):
        assert sanitize_filename("x.pdf\r\nSet-Cookie: a=b") == "x.pdf Set-Cookie_ a=b"

    def test_truncates_to_max_length(self):
        result = sanitize_filename("a" * 500)
        assert result == "a" * MAX_FILENAME_LENGTH

    def test_truncation_never_leaves_trailing_space(self):
        name = "a" * (MAX_FILENAME_LENGTH - 1) + " tail"
        assert sanitize_filename(name) == "a" * (MAX_FILENAME_LENGTH - 1)

    @pytest.mark.parametrize("value", [None, "", "   "])
    def test_empty_values(self, value):
        assert sanitize_filename(value) == ""

    @pytest.mark.parametrize(
        "raw",
        [
            "report.pdf",
            'a/b\\c?d%e*f:g|h"i<j>k',
            "  spaced    out \t name  ",
            "a" * (MAX_FILENAME_LENGTH - 1) + " tail",
            "b" * 400,
            "€rates \x00 2024.pdf",
            "../../etc/passwd",
            "   nbsp names ",
        ],
    )
    def test_sanitizing_is_idempotent(self, raw):
        once = sanitize_filename(raw)
        assert sanitize_filename(once) == once


class TestParseContentDisposition:
    def test_rfc5987_value_is_percent_decoded(self):
        header = "attachment; filename*=UTF-8''%E2%82%ACrates.pdf"
        assert parse_content_disposition(header) == "€rates.pdf"

    def test_extended_form_wins_over_plain_form(self):
        header = "attachment; filename=\"fallback.pdf\"; filename*=UTF-8''r%C3%A9sum%C3%A9.pdf"
        assert parse_content_disposition(header) == "résumé.pdf"

    def test_declared_charset_is_used_for_decoding(self):
        header = "attachment; filename*=iso-8859-1''caf%E9.pdf"
        assert parse_content_disposition(header) == "café.pdf"

    def test_invalid_utf8_falls_back_to_raw_value(self):
        header = "attachment; filename*=UTF-8''%E2%82rates.pdf"
        assert parse_content_disposition(header) == "%E2%82rates.pdf"

    def test_bad_escape_falls_back_to_raw_value(self):
        header = "attachment; filename*=UTF-8''%E2%82%ACrates%ZZ.pdf"
        assert parse_content_disposition(header) == "%E2%82%ACrates%ZZ.pdf"

    def test_unknown_charset_falls_back_to_raw_value(self):
        header = "attachment; filename*=x-no-such-charset''my%20file.pdf"
        assert parse_content_disposition(header) == "my%20file.pdf"

    def test_quoted_filename(self):
        assert parse_content_disposition('attachment; filename="Q3 report.pdf"') == "Q3 report.pdf"

    def test_unquoted_filename(self):
        assert parse_content_disposition("inline; filename=plain.pdf ; size=10") == "plain.pdf"

    def test_parameter_name_is_case_insensitive(self):
        assert parse_content_disposition('attachment; FileName="upper.pdf"') == "upper.pdf"

    @pytest.mark.parametrize("header", [None, "", "inline", "attachment"])
    def test_no_filename(self, header):
        assert parse_content_disposition(header) is None


class TestGuessNameFromUrl:
    @pytest.mark.parametrize(
        "url,expected",
        [
            ("https://example.com/reports/q3", "q3.pdf"),
            ("https://example.com/reports/q3/", "q3.pdf"),
            ("https://example.com/files/data.csv", "data.csv"),
            ("https://example.com/files/Paper.PDF?dl=1", "Paper.PDF"),
            ("https://example.com/docs/my%20report", "my report.pdf"),
            ("https://example.com/", "download.pdf"),
            ("https://example.com", "download.pdf"),
        ],
    )
    def test_guess(self, url, expected):
        assert guess_name_from_url(url) == expected


class TestResolveFilename:
    def test_url_fallback_on_both_paths(self):
        url = "https://example.com/reports/q3"
        assert resolve_filename(None, url, binary=False) == "q3.pdf"
        assert resolve_filename(None, url, binary=True) == "q3.pdf"

    def test_override_wins(self):
        result = resolve_filename(
            'attachment; filename="upstream.pdf"',
            "https://example.com/a.pdf",
            "My Copy.pdf",
            binary=True,
        )
        assert result == "My Copy.pdf"

    def test_blank_override_is_ignored(self):
        result = resolve_filename(
            'attachment; filename="upstream.pdf"', "https://example.com/a.pdf", "   "
        )
        assert result == "upstream.pdf"

    def test_header_wins_over_url(self):
        result = resolve_filename(
            "attachment; filename*=UTF-8''%E2%82%ACrates.pdf",
            "https://example.com/download?id=7",
        )
        assert result == "€rates.pdf"

    def test_header_without_usable_name_falls_back_to_url(self):
        result = resolve_filename('attachment; filename="   "', "https://example.com/x/guide")
        assert result == "guide.pdf"

    def test_pdf_extension_only_enforced_on_binary_path(self):
        header = 'attachment; filename="export.csv"'
        assert resolve_filename(header, "https://example.com/", binary=False) == "export.csv"
        assert resolve_filename(header, "https://example.com/", binary=True) == "export.csv.pdf"

    def test_existing_pdf_extension_is_case_insensitive(self):
        assert resolve_filename(None, "https://example.com/Paper.PDF", binary=True) == "Paper.PDF"

    def test_override_is_sanitized(self):
        result = resolve_filename(None, "https://example.com/a.pdf", "../../etc/passwd", binary=True)
        assert result == ".._.._etc_passwd.pdf"

    def test_last_resort_default(self):
        assert resolve_filename(None, "https://example.com/", binary=True) == "download.pdf"


class TestContentDispositionHeader:
    def test_ascii_name(self):
        assert content_disposition_header("q3.pdf") == 'attachment; filename="q3.pdf"'

    def test_non_ascii_name_gets_extended_parameter(self):
        assert content_disposition_header("€rates.pdf") == (
            "attachment; filename=\"_rates.pdf\"; filename*=UTF-8''%E2%82%ACrates.pdf"
        )

    def test_header_value_is_latin1_encodable(self):
        header = content_disposition_header("отчёт 2024.pdf")
        header.encode("latin-1")
