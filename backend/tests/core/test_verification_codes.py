"""Verification Codes — tests for code generation and expiry rules."""

import random
from datetime import datetime, timedelta, timezone

from engcoach.core.verification_codes import (
    DEFAULT_TTL, generate_code, is_valid_target, new_code,
)

NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def test_code_is_six_digits():
    rng = random.Random(7)
    for _ in range(200):
        code = generate_code(rng)
        assert len(code) == 6
        assert code.isdigit()


def test_small_values_are_zero_padded():
    class _Zero(random.Random):
        def randrange(self, *args, **kwargs):
            return 42

    assert generate_code(_Zero()) == "000042"


def test_default_ttl_is_ten_minutes():
    code = new_code(random.Random(1), NOW)
    assert code.expires_at - code.issued_at == timedelta(minutes=10)
    assert DEFAULT_TTL == timedelta(minutes=10)


def test_expired_exactly_at_expiry():
    code = new_code(random.Random(1), NOW)
    assert not code.is_expired(code.expires_at - timedelta(microseconds=1))
    assert code.is_expired(code.expires_at)


def test_remaining_ms_never_negative():
    code = new_code(random.Random(1), NOW)
    assert code.remaining_ms(NOW) == 600_000
    assert code.remaining_ms(NOW + timedelta(hours=1)) == 0


def test_matches_is_exact():
    code = new_code(random.Random(1), NOW)
    assert code.matches(code.code)
    assert not code.matches(f" {code.code} ")
    assert not code.matches(f"{code.code}\n")
    other = "000000" if code.code != "000000" else "111111"
    assert not code.matches(other)


def test_target_must_look_like_an_email():
    assert is_valid_target("researcher@example.org")
    assert not is_valid_target("researcher.example.org")
    assert not is_valid_target("")
    assert not is_valid_target(None)
