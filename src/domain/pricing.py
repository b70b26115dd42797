# src/domain/pricing.py

import math
from dataclasses import dataclass
from datetime import datetime

BASE_RATE = 40
BASE_HOURS = 4
GRACE_PERIOD_MINUTES = 10

# Overage is billed per started 10 minute block.
FINE_BLOCK_MINUTES = 10
FINE_RATE_1 = 5
FINE_RATE_1_WINDOW_MINUTES = 30
FINE_RATE_2 = 10


@dataclass(frozen=True)
class FeeBreakdown:
    base_amount: int
    fine_amount: int
    total_amount: int
    duration_minutes: int
    overage_minutes: int


def calculate_fee(entry_time: datetime, exit_time: datetime) -> FeeBreakdown:
    """
    Parking fee for a stay between entry_time and exit_time.

    The base rate covers BASE_HOURS plus a grace period. Past that, the first
    thirty minutes are billed at FINE_RATE_1 per started block and the rest
    at FINE_RATE_2.
    """
    if exit_time < entry_time:
        raise ValueError("exit_time must not be earlier than entry_time")

    total_minutes = math.ceil((exit_time - entry_time).total_seconds() / 60)
    base_minutes = BASE_HOURS * 60

    if total_minutes <= base_minutes + GRACE_PERIOD_MINUTES:
        return FeeBreakdown(
            base_amount=BASE_RATE,
            fine_amount=0,
            total_amount=BASE_RATE,
            duration_minutes=total_minutes,
            overage_minutes=0,
        )

    overage_minutes = total_minutes - base_minutes - GRACE_PERIOD_MINUTES

    if overage_minutes <= FINE_RATE_1_WINDOW_MINUTES:
        fine_amount = math.ceil(overage_minutes / FINE_BLOCK_MINUTES) * FINE_RATE_1
    else:
        first_window_blocks = FINE_RATE_1_WINDOW_MINUTES // FINE_BLOCK_MINUTES
        remaining_minutes = overage_minutes - FINE_RATE_1_WINDOW_MINUTES
        fine_amount = first_window_blocks * FINE_RATE_1
        fine_amount += math.ceil(remaining_minutes / FINE_BLOCK_MINUTES) * FINE_RATE_2

    return FeeBreakdown(
        base_amount=BASE_RATE,
        fine_amount=fine_amount,
        total_amount=BASE_RATE + fine_amount,
        duration_minutes=total_minutes,
        overage_minutes=overage_minutes,
    )
