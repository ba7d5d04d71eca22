"""Tests for log sanitization utilities."""

from utils.log_sanitizer import sanitize_for_log, sanitize_mapping


class TestLogSanitizer:
    """Test the log sanitizer utility."""

    def test_sanitize_normal_string(self):
        """Test that normal strings pass through unchanged."""
        normal = "normal/path/to/file.txt"
        result = sanitize_for_log(normal)
        assert result == normal

    def test_sanitize_newlines(self):
        """Test that newlines are escaped."""
        malicious = "path/to/file.txt\nFAKE LOG ENTRY"
        result = sanitize_for_log(malicious)
        assert result == "path/to/file.txt\\nFAKE LOG ENTRY"

    def test_sanitize_carriage_returns(self):
        """Test that carriage returns are escaped."""
        malicious = "path/to/file.txt\rFAKE LOG ENTRY"
        result = sanitize_for_log(malicious)
        assert result == "path/to/file.txt\\rFAKE LOG ENTRY"

    def test_sanitize_tabs(self):
        """Test that tabs are escaped."""
        malicious = "path/to/file.txt\tFAKE LOG ENTRY"
        result = sanitize_for_log(malicious)
        assert result == "path/to/file.txt\\tFAKE LOG ENTRY"

    def test_sanitize_control_characters(self):
        """Test that control characters are removed."""
        malicious = "path/to/file.txt\x00\x07\x1FFAKE"
        result = sanitize_for_log(malicious)
        assert result == "path/to/file.txtFAKE"

    def test_sanitize_length_limit(self):
        """Test that overly long strings are truncated."""
        long_string = "A" * 250
        result = sanitize_for_log(long_string, max_length=50)
        assert len(result) == 50
        assert result.endswith("...")

    def test_sanitize_none_value(self):
        """Test that None is handled gracefully."""
        result = sanitize_for_log(None)
        assert result == "None"

    def test_sanitize_non_string_value(self):
        """Test that non-string values are converted to string."""
        result = sanitize_for_log(123)
        assert result == "123"

    def test_sanitize_complex_log_injection(self):
        """Test a complex log injection attack."""
        attack = "/api/test\n2023-01-01 FAKE INFO: Admin login successful\r\nAttacker controlled content"
        result = sanitize_for_log(attack)
        expected = "/api/test\\n2023-01-01 FAKE INFO: Admin login successful\\r\\nAttacker controlled content"
        assert result == expected

    def test_sanitize_unicode_preserved(self):
        """Test that safe Unicode characters are preserved."""
        unicode_path = "/home/user/文档/file.txt"
        result = sanitize_for_log(unicode_path)
        assert result == unicode_path

class TestSanitizeMapping:
    """Test sanitization of error-context mappings."""

    def test_empty_or_none_mapping(self):
        """Test that missing context yields an empty dict."""
        assert sanitize_mapping(None) == {}
        assert sanitize_mapping({}) == {}

    def test_scalars_keep_their_types(self):
        """Test that numbers, booleans and None pass through untouched."""
        context = {"count": 3, "ratio": 0.5, "enabled": True, "missing": None}
        assert sanitize_mapping(context) == context

    def test_strings_are_sanitized(self):
        """Test that string values are escaped like single log values."""
        result = sanitize_mapping({"user_id": "alice\nFAKE ENTRY"})
        assert result == {"user_id": "alice\\nFAKE ENTRY"}

    def test_other_values_are_stringified(self):
        """Test that containers are rendered and truncated as strings."""
        result = sanitize_mapping({"items": ["a" * 50]}, max_length=20)
        assert isinstance(result["items"], str)
        assert len(result["items"]) == 20
