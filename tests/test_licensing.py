"""Tests for license terms, time helpers, metadata, locks and verdicts."""

from __future__ import annotations

import asyncio
from datetime import UTC, datetime, timedelta, timezone

import pytest

from corebridge_licensing.config import LicenseTermsConfig
from corebridge_licensing.licensing import (
    LicenseMetadata,
    LicenseType,
    Verdict,
    VerdictReason,
    compute_expiry,
)
from corebridge_licensing.licensing.clock import days_until, end_of_day, start_of_day, to_naive_utc
from corebridge_licensing.licensing.locks import KeyedLock

ISSUED = datetime(2026, 3, 1, 12, 30)


class TestTerms:
    def test_compute_expiry(self):
        terms = LicenseTermsConfig()
        assert compute_expiry(LicenseType.ONE_YEAR, ISSUED, terms) == ISSUED + timedelta(days=365)
        assert compute_expiry("3-year", ISSUED, terms) == ISSUED + timedelta(days=1095)
        assert compute_expiry("5-year", ISSUED, terms) == ISSUED + timedelta(days=1825)
        assert compute_expiry("perpetual", ISSUED, terms) == datetime(2099, 12, 31)

    def test_configured_validity(self):
        terms = LicenseTermsConfig(validity_days={"1-year": 366})
        assert compute_expiry("1-year", ISSUED, terms) == ISSUED + timedelta(days=366)
        with pytest.raises(ValueError):
            compute_expiry("3-year", ISSUED, terms)

    def test_unknown_type(self):
        with pytest.raises(ValueError):
            compute_expiry("2-year", ISSUED, LicenseTermsConfig())


class TestClock:
    def test_days_until_floors(self):
        now = datetime(2026, 1, 1, 9, 0)
        assert days_until(now + timedelta(days=7, hours=23), now) == 7
        assert days_until(now + timedelta(hours=23), now) == 0
        assert days_until(now - timedelta(hours=1), now) == -1

    def test_day_bounds(self):
        value = datetime(2026, 1, 22, 12, 0)
        assert start_of_day(value) == datetime(2026, 1, 22)
        assert end_of_day(value) == datetime(2026, 1, 22, 23, 59, 59, 999999)

    def test_to_naive_utc(self):
        plus_two = timezone(timedelta(hours=2))
        assert to_naive_utc(datetime(2026, 1, 1, 11, 0, tzinfo=plus_two)) == datetime(2026, 1, 1, 9, 0)
        assert to_naive_utc(datetime(2026, 1, 1, 9, 0, tzinfo=UTC)) == datetime(2026, 1, 1, 9, 0)
        assert to_naive_utc(datetime(2026, 1, 1, 9, 0)) == datetime(2026, 1, 1, 9, 0)


class TestMetadata:
    def test_round_trip_keeps_unknown_keys(self):
        meta = LicenseMetadata.from_json({"order_id": "ORD-1", "revocation_reason": "refund"})
        assert meta.revocation_reason == "refund"
        assert meta.extras == {"order_id": "ORD-1"}

        meta.revoked_at = datetime(2026, 1, 1, 9, 0)
        data = meta.to_json()
        assert data == {
            "order_id": "ORD-1",
            "revocation_reason": "refund",
            "revoked_at": "2026-01-01T09:00:00",
        }

    def test_empty(self):
        assert LicenseMetadata.from_json(None).to_json() == {}


class TestKeyedLock:
    @pytest.mark.asyncio
    async def test_same_key_serializes(self):
        locks = KeyedLock()
        order = []

        async def worker(name):
            async with locks.hold("lic-1"):
                order.append(f"{name}-in")
                await asyncio.sleep(0.01)
                order.append(f"{name}-out")

        await asyncio.gather(worker("a"), worker("b"))
        assert order == ["a-in", "a-out", "b-in", "b-out"]
        assert len(locks) == 0

    @pytest.mark.asyncio
    async def test_different_keys_do_not_block(self):
        locks = KeyedLock()

        async with locks.hold("lic-1"):
            await asyncio.wait_for(_enter(locks, "lic-2"), timeout=1)
            assert len(locks) == 1
        assert len(locks) == 0


async def _enter(locks, key):
    async with locks.hold(key):
        pass


class TestVerdict:
    def test_invalid_payload(self):
        verdict = Verdict.invalid(VerdictReason.EXPIRED, "License has expired", "lic-1")
        assert verdict.to_dict() == {
            "valid": False,
            "reason": "expired",
            "message": "License has expired",
        }

    def test_valid_payload(self):
        verdict = Verdict(
            valid=True,
            license_id="lic-1",
            status="active",
            license_type="1-year",
            expires_at=datetime(2027, 1, 1),
            days_remaining=40,
            activation_count=1,
            max_activations=2,
            warnings={90: True, 60: True, 45: True, 30: False},
        )
        data = verdict.to_dict()
        assert data["valid"] is True
        assert data["expires_at"] == "2027-01-01T00:00:00"
        assert list(data["warning_thresholds"]) == [
            "show_90_day_warning",
            "show_60_day_warning",
            "show_45_day_warning",
            "show_30_day_warning",
        ]
        assert data["warning_thresholds"]["show_30_day_warning"] is False
