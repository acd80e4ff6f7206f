"""
Opportunity ranking.

Priority is computed at read time and never stored:

    score = total_fee_cents * 0.6 + days_since_plan * 100 + (10000 if phone else 0)

A reachable patient outranks weeks of staleness or hundreds of dollars of
fee. Days since plan is derived from ``last_plan_date`` against today's
date on every read; a missing plan date counts as 0 days.

The listing scores, orders and limits in SQL; ``priority_score`` is the
same formula for a single row.
"""

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Any, List, Optional
from uuid import UUID

from django.db.models import (
    Case,
    DateField,
    ExpressionWrapper,
    F,
    FloatField,
    Func,
    IntegerField,
    Q,
    QuerySet,
    Value,
    When,
)
from django.db.models.functions import Coalesce
from django.utils import timezone

FEE_WEIGHT = 0.6
STALENESS_WEIGHT = 100
PHONE_BONUS = 10000

DEFAULT_LIMIT = 100
MAX_LIMIT = 500


def days_since_plan(last_plan_date: Optional[date], today: Optional[date] = None) -> int:
    if last_plan_date is None:
        return 0
    today = today or timezone.localdate()
    return (today - last_plan_date).days


def priority_score(total_fee_cents: int, days: int, has_phone: bool) -> float:
    return (
        total_fee_cents * FEE_WEIGHT
        + days * STALENESS_WEIGHT
        + (PHONE_BONUS if has_phone else 0)
    )


def coerce_int(value: Any, default: int = 0) -> int:
    """Parse a query-string integer, falling back to ``default`` when malformed."""
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        try:
            return int(float(value))
        except (TypeError, ValueError, OverflowError):
            return default


def parse_limit(value: Any) -> int:
    """Listing limit: malformed -> DEFAULT_LIMIT, then clamped to [0, MAX_LIMIT]."""
    limit = coerce_int(value, default=DEFAULT_LIMIT)
    return max(0, min(limit, MAX_LIMIT))


def filter_min_days(queryset: QuerySet, min_days: int, today: Optional[date] = None) -> QuerySet:
    """
    Keep opportunities whose days-since-plan is at least ``min_days``.

    Expressed as a cutoff on ``last_plan_date`` so the database does the
    work; rows without a plan date count as 0 days.
    """
    today = today or timezone.localdate()
    condition = Q(last_plan_date__lte=today - timedelta(days=min_days))
    if min_days <= 0:
        condition |= Q(last_plan_date__isnull=True)
    return queryset.filter(condition)


class DaysSince(Func):
    """Whole days from a date column to ``today``; NULL when the column is NULL."""

    template = "(%(expressions)s)"
    arg_joiner = " - "
    output_field = IntegerField()

    def __init__(self, expression, today: date, **extra):
        super().__init__(Value(today, output_field=DateField()), expression, **extra)

    def as_sqlite(self, compiler, connection, **extra_context):
        return super().as_sql(
            compiler,
            connection,
            template="CAST(julianday(%(expressions)s) AS INTEGER)",
            arg_joiner=") - julianday(",
            **extra_context,
        )

    def as_mysql(self, compiler, connection, **extra_context):
        return super().as_sql(
            compiler, connection, template="DATEDIFF(%(expressions)s)", arg_joiner=", ", **extra_context
        )


def priority_expression(today: date) -> ExpressionWrapper:
    """``priority_score`` as a query expression over opportunities joined to patients."""
    days = Coalesce(DaysSince("last_plan_date", today), Value(0))
    phone_bonus = Case(
        When(
            Q(patient__phone__isnull=False) & ~Q(patient__phone=""),
            then=Value(PHONE_BONUS),
        ),
        default=Value(0),
        output_field=IntegerField(),
    )
    return ExpressionWrapper(
        F("total_fee_cents") * FEE_WEIGHT + days * STALENESS_WEIGHT + phone_bonus,
        output_field=FloatField(),
    )


@dataclass
class RankedOpportunity:
    """A listing row: opportunity summary, patient contact fields and its score."""

    id: UUID
    patnum: int
    first_name: Optional[str]
    last_name: Optional[str]
    phone: Optional[str]
    email: Optional[str]
    total_fee_cents: int
    plan_count: int
    last_plan_date: Optional[date]
    days_since_plan: int
    status: str
    top_codes: list
    score: float

    @classmethod
    def from_opportunity(cls, opportunity, today: Optional[date] = None) -> "RankedOpportunity":
        patient = opportunity.patient
        days = days_since_plan(opportunity.last_plan_date, today)
        score = getattr(opportunity, "score", None)
        if score is None:
            score = priority_score(opportunity.total_fee_cents, days, patient.has_phone)
        return cls(
            id=opportunity.id,
            patnum=patient.patnum,
            first_name=patient.first_name,
            last_name=patient.last_name,
            phone=patient.phone,
            email=patient.email,
            total_fee_cents=opportunity.total_fee_cents,
            plan_count=opportunity.plan_count,
            last_plan_date=opportunity.last_plan_date,
            days_since_plan=days,
            status=opportunity.status,
            top_codes=opportunity.top_codes or [],
            score=score,
        )


def rank_opportunities(
    opportunities: QuerySet, limit: int = DEFAULT_LIMIT, today: Optional[date] = None
) -> List[RankedOpportunity]:
    """
    Score, order and limit opportunities in the database, highest priority first.

    Equal scores fall back to opportunity id so the order is stable
    between requests. ``opportunities`` should have ``patient`` selected.
    """
    today = today or timezone.localdate()
    ranked = opportunities.annotate(score=priority_expression(today)).order_by("-score", "id")
    return [RankedOpportunity.from_opportunity(opp, today) for opp in ranked[:limit]]
