"""Payout calculator: impact scoring and largest-remainder allocation."""

from settlement.payout.calculator import (
    IMPACT_WEIGHTS,
    allocate_to_submissions,
    calculate_payouts,
    check_insurance,
    creator_scores,
    eligible_submissions,
    impact_score,
    insurance_bracket_for,
    is_qualifying,
    plan_distribution,
    submission_score,
)

__all__ = [
    "IMPACT_WEIGHTS",
    "allocate_to_submissions",
    "calculate_payouts",
    "check_insurance",
    "creator_scores",
    "eligible_submissions",
    "impact_score",
    "insurance_bracket_for",
    "is_qualifying",
    "plan_distribution",
    "submission_score",
]
