"""Tests for one-time code generation."""

import string
from unittest.mock import patch

import pytest

from remaster_auth.core.codes import generate_code
from remaster_auth.core.config import settings


class TestGenerateCode:
    """Tests for generate_code()."""

    def test_default_is_six_digits(self):
        """Default settings produce a 6-character numeric code."""
        code = generate_code()
        assert len(code) == settings.one_time_code_length == 6
        assert code.isdigit()

    def test_respects_length(self):
        """Explicit length is honored."""
        assert len(generate_code(length=10)) == 10

    def test_alphanumeric_uses_uppercase_and_digits(self):
        """Alphanumeric codes draw only from A-Z and 0-9."""
        allowed = set(string.ascii_uppercase + string.digits)
        for _ in range(20):
            assert set(generate_code(length=32, charset="alphanumeric")) <= allowed

    def test_codes_are_not_repeated(self):
        """Consecutive codes differ (collision odds are negligible at length 32)."""
        codes = {generate_code(length=32) for _ in range(50)}
        assert len(codes) == 50

    @pytest.mark.parametrize("length", [0, 3, 33])
    def test_rejects_out_of_range_length(self, length):
        """Length outside 4..32 raises ValueError."""
        with pytest.raises(ValueError, match="between"):
            generate_code(length=length)

    def test_rejects_unknown_charset(self):
        """Unknown charset name raises ValueError."""
        with pytest.raises(ValueError, match="charset"):
            generate_code(charset="hex")  # type: ignore[arg-type]

    def test_uses_secrets_module(self):
        """Characters come from the OS CSPRNG via secrets.choice."""
        with patch("remaster_auth.core.codes.secrets.choice", return_value="7") as choice:
            assert generate_code(length=4) == "7777"
        assert choice.call_count == 4

    def test_entropy_failure_propagates(self):
        """An OS randomness failure is not swallowed."""
        with (
            patch(
                "remaster_auth.core.codes.secrets.choice",
                side_effect=NotImplementedError("no entropy source"),
            ),
            pytest.raises(NotImplementedError),
        ):
            generate_code()
