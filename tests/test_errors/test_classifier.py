"""Tests for error classification."""

import pytest

from penumbra.core.errors import (
    DeviceNotConnectedError,
    InvalidPartitionError,
    ToolError,
    ToolNotFoundError,
)
from penumbra.errors.classifier import (
    GENERIC_MESSAGE,
    UNAVAILABLE_MESSAGE,
    UNKNOWN_MESSAGE,
    ErrorCategory,
    StructuredError,
    categorize_message,
    classify_error,
    get_error_suggestion,
    parse_category,
)


class TestCategorizeMessage:
    @pytest.mark.parametrize(
        "message, expected",
        [
            ("Network timeout while connecting", ErrorCategory.NETWORK),
            ("Failed to fetch release from GitHub", ErrorCategory.NETWORK),
            ("Access denied (os error 5)", ErrorCategory.PERMISSION),
            ("The process failed with error code 32", ErrorCategory.PERMISSION),
            ("Output directory not found", ErrorCategory.FILESYSTEM),
            ("No space left on device", ErrorCategory.FILESYSTEM),
            ("Command execution failed", ErrorCategory.COMMAND),
            ("Checksum mismatch", ErrorCategory.UPDATE),
            ("Something odd happened", ErrorCategory.UNKNOWN),
        ],
    )
    def test_keywords(self, message, expected):
        assert categorize_message(message) == expected

    def test_first_match_wins(self):
        # "connection" (network) outranks "permission"
        assert (
            categorize_message("Permission lost on connection")
            == ErrorCategory.NETWORK
        )

    def test_case_insensitive(self):
        assert categorize_message("DISK FULL") == ErrorCategory.FILESYSTEM


class TestParseCategory:
    @pytest.mark.parametrize(
        "value, expected",
        [
            ("network", ErrorCategory.NETWORK),
            ("FileSystem", ErrorCategory.FILESYSTEM),
            ("Validation", ErrorCategory.VALIDATION),
            ("bogus", ErrorCategory.UNKNOWN),
            (None, ErrorCategory.UNKNOWN),
            ("", ErrorCategory.UNKNOWN),
            (42, ErrorCategory.UNKNOWN),
        ],
    )
    def test_values(self, value, expected):
        assert parse_category(value) == expected


class TestClassifyError:
    def test_none(self):
        parsed = classify_error(None)

        assert parsed.kind == "unknown"
        assert parsed.message == UNKNOWN_MESSAGE
        assert parsed.category == ErrorCategory.UNKNOWN

    def test_plain_exception_is_not_categorized(self):
        parsed = classify_error(RuntimeError("Network timeout"))

        assert parsed.kind == "other"
        assert parsed.message == "Network timeout"
        assert parsed.category == ErrorCategory.UNKNOWN

    def test_exception_without_message(self):
        assert classify_error(RuntimeError()).message == GENERIC_MESSAGE

    def test_string_is_categorized(self):
        parsed = classify_error("Network timeout while connecting")

        assert parsed.kind == "other"
        assert parsed.category == ErrorCategory.NETWORK
        assert "connection" in get_error_suggestion(parsed)

    def test_structured_type_passed_through(self):
        parsed = classify_error({"type": "device_not_connected", "message": "no device"})

        assert parsed.kind == "device_not_connected"
        assert parsed.message == "no device"
        assert parsed.category == ErrorCategory.UNKNOWN

    def test_structured_fields(self):
        parsed = classify_error(
            {
                "type": "command",
                "message": "antumbra exited",
                "category": "Command",
                "suggestion": "Reconnect the device",
                "code": 2,
                "output": "usb error",
            }
        )

        assert parsed.category == ErrorCategory.COMMAND
        assert parsed.suggestion == "Reconnect the device"
        assert parsed.code == 2
        assert parsed.output == "usb error"

    def test_structured_without_message(self):
        parsed = classify_error({"type": "io"})

        assert parsed.message == GENERIC_MESSAGE

    def test_message_only_mapping_is_categorized(self):
        parsed = classify_error({"message": "Permission denied"})

        assert parsed.kind == "other"
        assert parsed.category == ErrorCategory.PERMISSION

    def test_other_object_is_serialized(self):
        parsed = classify_error({"reason": 7})

        assert parsed.kind == "other"
        assert parsed.message == '{"reason": 7}'
        assert parsed.category == ErrorCategory.UNKNOWN

    def test_unserializable_object(self):
        parsed = classify_error(object())

        assert parsed.message == UNAVAILABLE_MESSAGE

    def test_primitive_fallback(self):
        parsed = classify_error(42)

        assert parsed.kind == "unknown"
        assert parsed.message == "42"
        assert parsed.category == ErrorCategory.UNKNOWN

    def test_bytes_fallback(self):
        parsed = classify_error(b"usb")

        assert parsed.kind == "unknown"
        assert parsed.message == "b'usb'"

    def test_domain_error_keeps_category(self):
        parsed = classify_error(
            ToolError("Antumbra process failed: timeout", code=1, output="timeout")
        )

        assert parsed.kind == "command"
        assert parsed.category == ErrorCategory.COMMAND
        assert parsed.code == 1
        assert parsed.output == "timeout"

    def test_domain_error_subclass_category(self):
        parsed = classify_error(ToolNotFoundError("antumbra not found on PATH"))

        assert parsed.category == ErrorCategory.FILESYSTEM

    def test_device_not_connected_error(self):
        parsed = classify_error(DeviceNotConnectedError("no device"))

        assert parsed.kind == "device_not_connected"
        assert parsed.category == ErrorCategory.UNKNOWN

    def test_structured_error_round_trip(self):
        original = classify_error(InvalidPartitionError("no such partition: foo"))

        assert classify_error(original) == original


class TestSuggestions:
    def test_explicit_suggestion_wins(self):
        error = StructuredError(
            kind="io",
            message="cannot write",
            category=ErrorCategory.FILESYSTEM,
            suggestion="Pick another folder",
        )

        assert get_error_suggestion(error) == "Pick another folder"

    def test_category_suggestion(self):
        assert (
            get_error_suggestion("Access denied")
            == "Run as Administrator or check folder permissions"
        )

    @pytest.mark.parametrize(
        "error", ["Something odd happened", {"type": "io", "category": "validation"}]
    )
    def test_no_suggestion(self, error):
        assert get_error_suggestion(error) is None
