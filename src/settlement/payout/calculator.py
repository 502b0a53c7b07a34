"""Payout calculator: impact scores and proportional budget allocation.

All functions are pure and deterministic.  Allocation happens in whole cents
with the largest-remainder method: every creator first receives the floor of
their exact proportional share, then the leftover cents go one at a time to
the largest fractional parts, ties broken by creator id ascending.  Exact
rational arithmetic (``fractions.Fraction``) is used throughout so no
rounding error can create or destroy a cent.
"""

from __future__ import annotations

import math
from collections import defaultdict
from collections.abc import Collection, Iterable, Sequence
from decimal import Decimal
from fractions import Fraction

from settlement.domain.models import (
    CreatorScore,
    EligibilityRules,
    InsuranceBracket,
    Payout,
    PayoutPlan,
    Submission,
)
from settlement.domain.money import ZERO, from_cents, to_cents
from settlement.domain.types import SubmissionStatus

IMPACT_WEIGHTS: dict[str, Decimal] = {
    "views": Decimal("0.01"),
    "likes": Decimal("0.5"),
    "shares": Decimal("1"),
}


def impact_score(views: int, likes: int, shares: int) -> Decimal:
    """Weighted engagement score of a single submission."""
    return (
        views * IMPACT_WEIGHTS["views"]
        + likes * IMPACT_WEIGHTS["likes"]
        + shares * IMPACT_WEIGHTS["shares"]
    )


def submission_score(submission: Submission) -> Decimal:
    return impact_score(submission.views, submission.likes, submission.shares)


def is_qualifying(submission: Submission, disqualified: Collection[str]) -> bool:
    """APPROVED submissions from creators without a policy-violation flag."""
    return (
        submission.status is SubmissionStatus.APPROVED
        and submission.creator_id not in disqualified
    )


def creator_scores(
    submissions: Iterable[Submission],
    disqualified: Collection[str] = frozenset(),
) -> list[CreatorScore]:
    """Sum impact scores per creator over qualifying submissions.

    Returns:
        One score per creator with at least one qualifying submission,
        sorted by creator id.
    """
    totals: dict[str, Decimal] = defaultdict(Decimal)
    for submission in submissions:
        if is_qualifying(submission, disqualified):
            totals[submission.creator_id] += submission_score(submission)
    return [CreatorScore(creator_id=cid, score=totals[cid]) for cid in sorted(totals)]


def eligible_submissions(
    submissions: Iterable[Submission],
    disqualified: Collection[str] = frozenset(),
    rules: EligibilityRules | None = None,
) -> list[Submission]:
    """Qualifying submissions that also meet the eligibility minimums.

    Contribution is measured against the total score of all qualifying
    submissions.  With a zero total nothing is eligible.
    """
    rules = rules or EligibilityRules()
    qualifying = [s for s in submissions if is_qualifying(s, disqualified)]
    total = sum((submission_score(s) for s in qualifying), ZERO)
    if total == 0:
        return []
    return [
        s
        for s in qualifying
        if submission_score(s) >= rules.min_points
        and submission_score(s) / total >= rules.min_contribution
    ]


def insurance_bracket_for(
    total_budget: Decimal, brackets: Iterable[InsuranceBracket]
) -> InsuranceBracket | None:
    """The bracket with the highest *min_budget* not above *total_budget*."""
    applicable = [b for b in brackets if b.min_budget <= total_budget]
    return max(applicable, key=lambda b: b.min_budget, default=None)


def check_insurance(
    submissions: Iterable[Submission],
    total_budget: Decimal,
    brackets: Sequence[InsuranceBracket],
    disqualified: Collection[str] = frozenset(),
) -> list[str]:
    """Return the campaign minimums missed by the qualifying submissions.

    An empty list means the campaign passes (or no bracket applies).
    """
    bracket = insurance_bracket_for(total_budget, brackets)
    if bracket is None:
        return []
    qualifying = [s for s in submissions if is_qualifying(s, disqualified)]
    points = sum((submission_score(s) for s in qualifying), ZERO)
    views = sum(s.views for s in qualifying)

    failed: list[str] = []
    if len(qualifying) < bracket.min_submissions:
        failed.append(f"submissions: {len(qualifying)}/{bracket.min_submissions}")
    if points < bracket.min_points:
        failed.append(f"points: {points}/{bracket.min_points}")
    if views < bracket.min_views:
        failed.append(f"views: {views}/{bracket.min_views}")
    return failed


def _largest_remainder(pool: int, weights: dict[str, Fraction]) -> dict[str, int]:
    """Split *pool* cents across *weights* so the parts sum exactly to *pool*."""
    total = sum(weights.values(), Fraction(0))
    ideals = {cid: pool * w / total for cid, w in weights.items()}
    floors = {cid: math.floor(v) for cid, v in ideals.items()}
    leftover = pool - sum(floors.values())

    order = sorted(ideals, key=lambda cid: (-(ideals[cid] - floors[cid]), cid))
    for cid in order[:leftover]:
        floors[cid] += 1
    return floors


def calculate_payouts(
    scores: Iterable[CreatorScore],
    total_budget: Decimal,
    max_share: Decimal | None = None,
) -> PayoutPlan:
    """Allocate *total_budget* across creators in proportion to their scores.

    Args:
        scores: Aggregated creator scores (see :func:`creator_scores`).
        total_budget: Campaign budget, in whole cents.
        max_share: Optional cap on any single creator's share of the budget,
            in ``(0, 1]``.  Capped creators receive
            ``floor(total_budget * max_share)``; the excess is redistributed
            proportionally among the uncapped ones, and whatever cannot be
            placed is left in the remainder.

    Returns:
        Non-zero payouts sorted by creator id, and the unallocated remainder.
        With no positive score the payouts are empty and the remainder is the
        whole budget.

    Raises:
        ValueError: If *max_share* is outside ``(0, 1]`` or the budget has
            sub-cent precision.
    """
    if max_share is not None and not (0 < max_share <= 1):
        raise ValueError(f"max_share must be in (0, 1], got {max_share}")

    budget_cents = to_cents(total_budget)
    active = {s.creator_id: Fraction(s.score) for s in scores if s.score > 0}
    allocation: dict[str, int] = {}

    if max_share is not None and active:
        cap = math.floor(budget_cents * Fraction(max_share))
        while active:
            pool = budget_cents - sum(allocation.values())
            total = sum(active.values(), Fraction(0))
            capped = sorted(cid for cid, w in active.items() if pool * w / total > cap)
            if not capped:
                break
            for cid in capped:
                allocation[cid] = cap
                del active[cid]

    if active:
        pool = budget_cents - sum(allocation.values())
        allocation.update(_largest_remainder(pool, active))

    payouts = [
        Payout(creator_id=cid, amount=from_cents(cents))
        for cid, cents in sorted(allocation.items())
        if cents > 0
    ]
    remainder_cents = budget_cents - sum(allocation.values())
    return PayoutPlan(
        total_budget=from_cents(budget_cents),
        payouts=payouts,
        remainder=from_cents(remainder_cents),
    )


def allocate_to_submissions(
    plan: PayoutPlan,
    submissions: Iterable[Submission],
    disqualified: Collection[str] = frozenset(),
    *,
    eligible_ids: Collection[str] | None = None,
) -> dict[str, Decimal]:
    """Split each creator's payout across their qualifying submissions.

    Each creator's amount is apportioned by submission score with the same
    largest-remainder rule, so per-submission amounts sum exactly to the
    creator's payout.  Non-qualifying submissions map to zero, as do those
    outside *eligible_ids* when it is given.

    Returns:
        Payout amount per submission id, for every submission given.
    """
    submissions = list(submissions)
    weights: dict[str, dict[str, Fraction]] = defaultdict(dict)
    for submission in submissions:
        score = submission_score(submission)
        if eligible_ids is not None and submission.id not in eligible_ids:
            continue
        if is_qualifying(submission, disqualified) and score > 0:
            weights[submission.creator_id][submission.id] = Fraction(score)

    amounts = {submission.id: ZERO for submission in submissions}
    for payout in plan.payouts:
        creator_weights = weights.get(payout.creator_id)
        if not creator_weights:
            continue
        for submission_id, cents in _largest_remainder(
            to_cents(payout.amount), creator_weights
        ).items():
            amounts[submission_id] = from_cents(cents)
    return amounts


def plan_distribution(
    submissions: Iterable[Submission],
    total_budget: Decimal,
    disqualified: Collection[str] = frozenset(),
    *,
    max_share: Decimal | None = None,
    eligibility: EligibilityRules | None = None,
    insurance_brackets: Sequence[InsuranceBracket] = (),
) -> tuple[PayoutPlan, dict[str, Decimal]]:
    """Run the full settlement calculation for one campaign.

    The insurance check comes first: a campaign that misses its bracket's
    minimums pays nobody and its whole budget becomes the remainder.
    Otherwise the eligibility filter is applied and the budget is allocated
    across the eligible submissions' creators.

    Returns:
        The payout plan and the payout amount per submission id.
    """
    submissions = list(submissions)
    failures = check_insurance(submissions, total_budget, insurance_brackets, disqualified)
    if failures:
        plan = calculate_payouts([], total_budget).model_copy(
            update={"insurance_failures": failures}
        )
        return plan, {s.id: ZERO for s in submissions}

    eligible = eligible_submissions(submissions, disqualified, eligibility)
    plan = calculate_payouts(creator_scores(eligible), total_budget, max_share=max_share)
    amounts = allocate_to_submissions(
        plan, submissions, disqualified, eligible_ids={s.id for s in eligible}
    )
    return plan, amounts
