from datetime import datetime, timedelta, timezone

import pytest

from src.domain.pricing import BASE_RATE, calculate_fee

ENTRY = datetime(2026, 3, 1, 9, 0, tzinfo=timezone.utc)


def _fee_after(minutes: int):
    return calculate_fee(ENTRY, ENTRY + timedelta(minutes=minutes))


def test_short_stay_pays_base_rate():
    fee = _fee_after(30)
    assert fee.total_amount == BASE_RATE
    assert fee.fine_amount == 0
    assert fee.overage_minutes == 0


def test_grace_period_is_free():
    fee = _fee_after(4 * 60 + 10)
    assert fee.total_amount == BASE_RATE


@pytest.mark.parametrize(
    "overage, expected_fine",
    [
        (1, 5),
        (10, 5),
        (11, 10),
        (30, 15),
        (31, 25),
        (40, 25),
        (41, 35),
    ],
)
def test_overage_is_billed_per_started_block(overage, expected_fine):
    fee = _fee_after(4 * 60 + 10 + overage)
    assert fee.overage_minutes == overage
    assert fee.fine_amount == expected_fine
    assert fee.total_amount == BASE_RATE + expected_fine


def test_partial_minutes_round_up():
    fee = calculate_fee(ENTRY, ENTRY + timedelta(minutes=250, seconds=1))
    assert fee.duration_minutes == 251
    assert fee.fine_amount == 5


def test_exit_before_entry_is_rejected():
    with pytest.raises(ValueError):
        calculate_fee(ENTRY, ENTRY - timedelta(minutes=1))
