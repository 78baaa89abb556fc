"""Tests for the CSRF token engine in formguard/forms/csrf.py."""

import hashlib
import re

import pytest

from formguard.forms.csrf import (
    MAX_SEED,
    CsrfToken,
    CsrfTokenEngine,
    default_seed_source,
    sign,
    window_base,
)

TOKEN_FORMAT = re.compile(r"\d+\|[0-9a-f]{64}")


def make_engine(clock, session_id="sess42", timeout=300, seed=12345):
    return CsrfTokenEngine(
        lambda: session_id,
        timeout,
        clock=clock,
        seed_source=lambda: seed,
    )


class TestWindowBase:
    def test_floors_to_multiple_of_timeout(self):
        assert window_base(1000, 300) == 900

    def test_exact_boundary_starts_new_window(self):
        assert window_base(1200, 300) == 1200

    def test_fractional_time(self):
        assert window_base(1199.999, 300) == 900


class TestGenerate:
    def test_signature_is_sha256_of_session_and_raw_seed(self, clock):
        engine = make_engine(clock)
        token = engine.generate()
        expected = hashlib.sha256(b"sess4212345").hexdigest()
        assert token.signature == expected

    def test_stored_seed_carries_window_base(self, clock):
        clock.now = 1000
        token = make_engine(clock).generate()
        assert token.seed == 12345 + 900

    def test_string_form(self, clock):
        value = make_engine(clock).generate_string()
        assert TOKEN_FORMAT.fullmatch(value)
        assert value.startswith("13245|")

    def test_csrf_token_str(self):
        assert str(CsrfToken(7, "ab")) == "7|ab"

    def test_default_seed_source_range(self):
        for _ in range(50):
            assert 0 <= default_seed_source() <= MAX_SEED

    def test_rejects_non_positive_timeout(self):
        with pytest.raises(ValueError):
            CsrfTokenEngine(lambda: "s", 0)


class TestVerify:
    def test_round_trip_in_same_window(self, clock):
        engine = make_engine(clock)
        value = engine.generate_string()
        assert engine.verify(value) is True

    def test_scenario_accepts_later_in_same_window(self, clock):
        engine = make_engine(clock)
        clock.now = 1000
        value = engine.generate_string()

        clock.now = 1150
        assert engine.verify(value) is True

    def test_scenario_rejects_after_window_advances(self, clock):
        engine = make_engine(clock)
        clock.now = 1000
        value = engine.generate_string()

        clock.now = 1250
        assert engine.verify(value) is False

    def test_boundary_rejects_two_seconds_later(self, clock):
        """Windows are epoch-aligned, not measured from issue time."""
        engine = make_engine(clock)
        clock.now = 1199
        value = engine.generate_string()

        clock.now = 1201
        assert engine.verify(value) is False

    def test_session_binding(self, clock):
        value = make_engine(clock, session_id="s1").generate_string()
        assert make_engine(clock, session_id="s2").verify(value) is False

    def test_custom_timeout(self, clock):
        engine = make_engine(clock, timeout=60)
        clock.now = 1000
        value = engine.generate_string()
        clock.now = 1019
        assert engine.verify(value) is True
        clock.now = 1020
        assert engine.verify(value) is False

    @pytest.mark.parametrize(
        "value",
        ["", "abc", "123", "abc|xyz", "|", "1.5|abc", " 12|abc", "9" * 5000 + "|" + "0" * 64],
    )
    def test_malformed_values_fail_closed(self, clock, value):
        assert make_engine(clock).verify(value) is False

    def test_non_string_fails_closed(self, clock):
        assert make_engine(clock).verify(None) is False

    def test_tampered_signature(self, clock):
        engine = make_engine(clock)
        seed, signature = engine.generate()
        forged = f"{seed}|{signature[:-1]}{'0' if signature[-1] != '0' else '1'}"
        assert engine.verify(forged) is False

    def test_tampered_seed(self, clock):
        engine = make_engine(clock)
        seed, signature = engine.generate()
        assert engine.verify(f"{seed + 1}|{signature}") is False

    def test_extra_separator_fails(self, clock):
        engine = make_engine(clock)
        assert engine.verify(engine.generate_string() + "|extra") is False

    def test_negative_windowed_seed_is_signed_like_any_other(self, clock):
        """A seed below the window base recomputes over a negative number."""
        engine = make_engine(clock)
        clock.now = 1000
        signature = sign("sess42", -5)
        assert engine.verify(f"895|{signature}") is True

    def test_twenty_digit_seed_is_still_checked(self, clock):
        engine = make_engine(clock)
        clock.now = 1000
        seed = 10**19
        assert engine.verify(f"{seed}|{sign('sess42', seed - 900)}") is True

    def test_seed_longer_than_twenty_digits_fails(self, clock):
        engine = make_engine(clock)
        clock.now = 1000
        seed = 10**20
        assert engine.verify(f"{seed}|{sign('sess42', seed - 900)}") is False

    def test_session_resolved_on_each_call(self, clock):
        current = {"id": "first"}
        engine = CsrfTokenEngine(lambda: current["id"], 300, clock=clock, seed_source=lambda: 1)
        value = engine.generate_string()
        current["id"] = "second"
        assert engine.verify(value) is False
