"""Tests for code generation and subject validation."""

import pytest

from otp_gateway.core.codes import SixDigitCodeGenerator
from otp_gateway.core.errors import InvalidSubject
from otp_gateway.core.models import Channel
from otp_gateway.core.validation import normalize_subject


# ── Code generator ───────────────────────────────────────

def test_codes_are_six_ascii_digits():
    generator = SixDigitCodeGenerator()
    for _ in range(2000):
        code = generator.generate()
        assert len(code) == 6
        assert code.isascii() and code.isdigit()
        assert 0 <= int(code) <= 999_999


def test_codes_vary():
    generator = SixDigitCodeGenerator()
    codes = {generator.generate() for _ in range(200)}
    assert len(codes) > 150


def test_custom_length_keeps_leading_zeros():
    generator = SixDigitCodeGenerator(length=8)
    codes = [generator.generate() for _ in range(500)]
    assert all(len(code) == 8 and code.isdigit() for code in codes)


def test_zero_length_rejected():
    with pytest.raises(ValueError):
        SixDigitCodeGenerator(length=0)


# ── Subject validation ───────────────────────────────────

@pytest.mark.parametrize(
    "raw, expected",
    [
        ("a@b.com", "a@b.com"),
        ("  Alice@Example.COM ", "alice@example.com"),
        ("first.last+tag@mail.example.org", "first.last+tag@mail.example.org"),
    ],
)
def test_email_subjects(raw, expected):
    assert normalize_subject(raw) == (expected, Channel.EMAIL)


@pytest.mark.parametrize(
    "raw, expected",
    [
        ("+15551234567", "+15551234567"),
        ("+1 (555) 123-4567", "+15551234567"),
        ("+44 20.7123.4567", "+442071234567"),
    ],
)
def test_phone_subjects(raw, expected):
    assert normalize_subject(raw) == (expected, Channel.SMS)


@pytest.mark.parametrize(
    "raw",
    ["", "   ", None, "not-an-email", "a@b", "a b@c.com", "@example.com", "5551234567", "+0123456789", "+1555"],
)
def test_invalid_subjects(raw):
    with pytest.raises(InvalidSubject):
        normalize_subject(raw)
