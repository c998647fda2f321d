from decimal import Decimal, ROUND_HALF_UP
from dataclasses import dataclass
from typing import Optional


# Stripe rejects charges under $0.50, for the class total and for each student's share
MIN_CLASS_PRICE_CENTS = 50

DEFAULT_SESSION_MINUTES = 60
MIN_SESSION_MINUTES = 15
MAX_SESSION_MINUTES = 240


@dataclass
class ClassPriceSplit:
    """Per-student share of a tutor-created class session"""
    total_cents: int
    student_count: int
    per_student_cents: int


def _round_cents(value: Decimal) -> int:
    return int(value.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def calculate_session_price(hourly_rate_cents: Optional[int], duration_minutes: int) -> Optional[int]:
    """Price of a one-to-one session: hourly rate prorated over its duration"""
    if hourly_rate_cents is None:
        return None
    return _round_cents(Decimal(hourly_rate_cents) * Decimal(duration_minutes) / Decimal(60))


def split_class_price(total_cents: int, student_count: int) -> ClassPriceSplit:
    """Divide a class total evenly across the selected students"""
    if student_count < 1:
        raise ValueError("Please select at least one student")
    if total_cents < MIN_CLASS_PRICE_CENTS:
        raise ValueError(f"Price must be at least {format_price(MIN_CLASS_PRICE_CENTS)}")

    per_student = _round_cents(Decimal(total_cents) / Decimal(student_count))
    if per_student < MIN_CLASS_PRICE_CENTS:
        raise ValueError(
            f"Each student's share must be at least {format_price(MIN_CLASS_PRICE_CENTS)} "
            f"({format_price(per_student)} for {student_count} students)"
        )
    return ClassPriceSplit(
        total_cents=total_cents,
        student_count=student_count,
        per_student_cents=per_student
    )


def format_price(price_cents: Optional[int]) -> str:
    if price_cents is None:
        return "N/A"
    return f"${price_cents / 100:.2f}"
