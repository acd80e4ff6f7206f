"""
Snapshot reconciliation.

Merges practice-management treatment-plan snapshots into the canonical
per-patient opportunity. A batch is applied as one transaction: either
every snapshot lands or none do.

For each snapshot the service:
- upserts the patient (last write wins on every field)
- picks the most recently updated opportunity for the patient as target
- creates it, or updates it in place and replaces its procedure lines
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Dict, Iterable, List, Optional

from django.db import DatabaseError, transaction
from django.utils.dateparse import parse_date, parse_datetime

from treatment_finder.logging_utils import add_log_context, get_logger
from treatment_finder.models import Opportunity, OpportunityProcedure, Patient

logger = get_logger(__name__)

MAX_TOP_CODES = 6

# Column bounds for IntegerField and BigIntegerField
MAX_INTEGER = 2**31 - 1
MAX_BIG_INTEGER = 2**63 - 1

PATIENT_TEXT_FIELDS = ("first_name", "last_name", "phone", "email")


class ReconciliationError(Exception):
    """A batch could not be applied and was rolled back."""

    def __init__(self, message: str, index: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.index = index


class SnapshotError(ReconciliationError):
    """A snapshot in the batch is malformed beyond what coercion can repair."""

    pass


# ---------------------------------------------------------------------------
# Coercion
# ---------------------------------------------------------------------------


def coerce_cents(value: Any) -> int:
    """
    Coerce a fee-like value to a non-negative integer.

    Non-numeric and missing values become 0, fractions truncate toward
    zero and negatives clamp to 0.

    >>> coerce_cents("1250.9")
    1250
    >>> coerce_cents("n/a")
    0
    """
    if value is None or isinstance(value, bool):
        return 0
    try:
        cents = int(Decimal(str(value).strip()))
    except (InvalidOperation, ValueError, OverflowError):
        return 0
    return max(cents, 0)


def coerce_patnum(value: Any) -> int:
    if value is None or isinstance(value, bool):
        raise SnapshotError("patnum is required")
    try:
        number = Decimal(str(value).strip())
    except InvalidOperation:
        raise SnapshotError(f"patnum must be an integer, got {value!r}")
    if not number.is_finite() or number != number.to_integral_value():
        raise SnapshotError(f"patnum must be an integer, got {value!r}")
    return check_range(int(number), "patnum", MAX_BIG_INTEGER, minimum=-MAX_BIG_INTEGER - 1)


def check_range(number: int, field_name: str, maximum: int, minimum: int = 0) -> int:
    """Reject integers the storage column cannot hold."""
    if not minimum <= number <= maximum:
        raise SnapshotError(f"{field_name} is out of range: {number}")
    return number


def coerce_optional_int(value: Any) -> Optional[int]:
    if value is None or value == "" or isinstance(value, bool):
        return None
    try:
        number = int(Decimal(str(value).strip()))
    except (InvalidOperation, ValueError, OverflowError):
        return None
    if abs(number) > MAX_BIG_INTEGER:
        return None
    return number


def coerce_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value)
    return text if text.strip() else None


def coerce_date(value: Any, field_name: str) -> Optional[date]:
    """Parse an ISO date (or datetime) string; blank means NULL."""
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise SnapshotError(f"{field_name} must be an ISO date, got {value!r}")

    try:
        parsed = parse_date(value.strip())
        if parsed is None:
            parsed_dt = parse_datetime(value.strip())
            parsed = parsed_dt.date() if parsed_dt else None
    except ValueError:
        parsed = None

    if parsed is None:
        raise SnapshotError(f"{field_name} must be an ISO date, got {value!r}")
    return parsed


# ---------------------------------------------------------------------------
# Snapshot parsing
# ---------------------------------------------------------------------------


@dataclass
class ProcedureLine:
    code: Optional[str]
    description: Optional[str]
    fee_cents: int
    tooth: Optional[str]
    surface: Optional[str]


@dataclass
class Snapshot:
    """One patient's treatment-plan state, coerced and ready to persist."""

    patnum: int
    patient_fields: Dict[str, Any]
    last_plan_date: Optional[date]
    procedures: List[ProcedureLine] = field(default_factory=list)
    total_fee_cents: int = 0
    plan_count: int = 0

    @property
    def top_codes(self) -> List[Optional[str]]:
        return [line.code for line in self.procedures[:MAX_TOP_CODES]]


def parse_procedure(raw: Any) -> ProcedureLine:
    if not isinstance(raw, dict):
        raise SnapshotError(f"procedure must be an object, got {type(raw).__name__}")
    return ProcedureLine(
        code=coerce_text(raw.get("code")),
        description=coerce_text(raw.get("description")),
        fee_cents=check_range(coerce_cents(raw.get("fee_cents")), "fee_cents", MAX_INTEGER),
        tooth=coerce_text(raw.get("tooth")),
        surface=coerce_text(raw.get("surface")),
    )


def parse_snapshot(raw: Any) -> Snapshot:
    """
    Turn one raw snapshot object into a ``Snapshot``.

    Explicit ``total_fee_cents``/``plan_count`` win over the values derived
    from the procedure list. ``last_txp_date`` is the export's name for the
    plan date; ``last_plan_date`` is accepted as well.

    Raises:
        SnapshotError: If the object, its patnum, a date or a procedure is malformed
    """
    if not isinstance(raw, dict):
        raise SnapshotError(f"snapshot must be an object, got {type(raw).__name__}")

    patnum = coerce_patnum(raw.get("patnum"))

    raw_procedures = raw.get("procedures")
    if raw_procedures is None:
        raw_procedures = []
    if not isinstance(raw_procedures, list):
        raise SnapshotError("procedures must be a list")
    procedures = [parse_procedure(item) for item in raw_procedures]

    patient_fields = {name: coerce_text(raw.get(name)) for name in PATIENT_TEXT_FIELDS}
    patient_fields["birthdate"] = coerce_date(raw.get("birthdate"), "birthdate")
    patient_fields["guarantor"] = coerce_optional_int(raw.get("guarantor"))

    plan_date_value = raw.get("last_txp_date")
    if plan_date_value is None:
        plan_date_value = raw.get("last_plan_date")

    if raw.get("total_fee_cents") is not None:
        total_fee_cents = coerce_cents(raw["total_fee_cents"])
    else:
        total_fee_cents = sum(line.fee_cents for line in procedures)

    if raw.get("plan_count") is not None:
        plan_count = coerce_cents(raw["plan_count"])
    else:
        plan_count = len(procedures)

    check_range(total_fee_cents, "total_fee_cents", MAX_INTEGER)
    check_range(plan_count, "plan_count", MAX_INTEGER)

    return Snapshot(
        patnum=patnum,
        patient_fields=patient_fields,
        last_plan_date=coerce_date(plan_date_value, "last_txp_date"),
        procedures=procedures,
        total_fee_cents=total_fee_cents,
        plan_count=plan_count,
    )


# ---------------------------------------------------------------------------
# Service
# ---------------------------------------------------------------------------


@dataclass
class IngestResult:
    count: int = 0
    created: int = 0
    updated: int = 0


def select_target_opportunity(patnum: int) -> Optional[Opportunity]:
    """
    Most recently updated opportunity for the patient, or None.

    Duplicate rows are tolerated; ties on ``updated_at`` resolve by
    ``created_at`` then primary key so repeated reads agree.
    """
    return (
        Opportunity.objects.filter(patient_id=patnum)
        .order_by("-updated_at", "-created_at", "-pk")
        .first()
    )


class ReconciliationService:
    """
    Applies snapshot batches to the opportunity store.

    Usage:
        result = ReconciliationService().ingest_batch(snapshots)
        result.count  # snapshots applied
    """

    def ingest_batch(self, items: Iterable[Any]) -> IngestResult:
        """
        Apply every snapshot in ``items`` inside one transaction.

        Raises:
            SnapshotError: A snapshot was malformed; nothing was written
            ReconciliationError: A write failed; nothing was written
        """
        items = list(items)
        result = IngestResult()

        with add_log_context(operation="ingest", batch_size=len(items)):
            try:
                with transaction.atomic():
                    for index, raw in enumerate(items):
                        try:
                            snapshot = parse_snapshot(raw)
                        except SnapshotError as e:
                            e.index = index
                            raise
                        created = self.apply_snapshot(snapshot)
                        result.count += 1
                        if created:
                            result.created += 1
                        else:
                            result.updated += 1
            except SnapshotError as e:
                logger.warning(f"Snapshot batch rejected at item {e.index}: {e.message}")
                raise
            except DatabaseError as e:
                logger.error(f"Snapshot batch rolled back: {e.__class__.__name__}")
                raise ReconciliationError(str(e)) from e
            except Exception as e:
                logger.exception(f"Snapshot batch rolled back: {e.__class__.__name__}")
                raise ReconciliationError(str(e)) from e

            logger.info(
                f"Snapshot batch committed: {result.count} applied, "
                f"{result.created} created, {result.updated} updated"
            )
        return result

    def apply_snapshot(self, snapshot: Snapshot) -> bool:
        """Persist one snapshot. Returns True when a new opportunity was created."""
        Patient.objects.update_or_create(
            patnum=snapshot.patnum, defaults=snapshot.patient_fields
        )

        opportunity = select_target_opportunity(snapshot.patnum)
        created = opportunity is None

        if created:
            opportunity = Opportunity.objects.create(
                patient_id=snapshot.patnum,
                total_fee_cents=snapshot.total_fee_cents,
                plan_count=snapshot.plan_count,
                last_plan_date=snapshot.last_plan_date,
                top_codes=snapshot.top_codes,
            )
        else:
            opportunity.total_fee_cents = snapshot.total_fee_cents
            opportunity.plan_count = snapshot.plan_count
            opportunity.last_plan_date = snapshot.last_plan_date
            opportunity.top_codes = snapshot.top_codes
            opportunity.save(
                update_fields=[
                    "total_fee_cents",
                    "plan_count",
                    "last_plan_date",
                    "top_codes",
                    "updated_at",
                ]
            )
            opportunity.procedures.all().delete()

        OpportunityProcedure.objects.bulk_create(
            [
                OpportunityProcedure(
                    opportunity=opportunity,
                    code=line.code,
                    description=line.description,
                    fee_cents=line.fee_cents,
                    tooth=line.tooth,
                    surface=line.surface,
                )
                for line in snapshot.procedures
            ]
        )

        logger.debug(
            f"Opportunity {opportunity.id} {'created' if created else 'updated'} "
            f"with {len(snapshot.procedures)} procedures"
        )
        return created
