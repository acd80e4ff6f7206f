"""
Tests for snapshot reconciliation.

Covers the upsert/replace semantics, target selection among duplicate
opportunity rows, batch atomicity and the coercion rules applied to raw
export values.
"""

from datetime import date, timedelta
from unittest.mock import patch

import pytest
from django.db import DatabaseError
from django.test import TestCase
from django.utils import timezone
from hypothesis import example, given, settings as hypothesis_settings, strategies as st

from treatment_finder.models import Opportunity, OpportunityProcedure, OpportunityStatus, Patient
from treatment_finder.services.reconciliation import (
    ReconciliationError,
    ReconciliationService,
    SnapshotError,
    coerce_cents,
    coerce_patnum,
    parse_snapshot,
)
from treatment_finder.tests.factories import OpportunityFactory, PatientFactory


def make_snapshot(patnum=101, procedures=None, **overrides):
    snapshot = {
        "patnum": patnum,
        "first_name": "Ada",
        "last_name": "Lovelace",
        "birthdate": "1980-04-02",
        "phone": "555-201-3344",
        "email": "ada@example.com",
        "guarantor": patnum,
        "last_txp_date": "2024-01-15",
        "procedures": (
            procedures
            if procedures is not None
            else [
                {"code": "D2740", "description": "Crown", "fee_cents": 120000, "tooth": "3"},
                {"code": "D2950", "description": "Core buildup", "fee_cents": 30000, "tooth": "3"},
            ]
        ),
    }
    snapshot.update(overrides)
    return snapshot


class IngestBatchTests(TestCase):
    def setUp(self):
        self.service = ReconciliationService()

    def test_first_ingestion_creates_patient_and_opportunity(self):
        result = self.service.ingest_batch([make_snapshot()])

        self.assertEqual(result.count, 1)
        self.assertEqual(result.created, 1)
        patient = Patient.objects.get(patnum=101)
        self.assertEqual(patient.first_name, "Ada")
        self.assertEqual(patient.birthdate, date(1980, 4, 2))

        opportunity = Opportunity.objects.get(patient=patient)
        self.assertEqual(opportunity.total_fee_cents, 150000)
        self.assertEqual(opportunity.plan_count, 2)
        self.assertEqual(opportunity.last_plan_date, date(2024, 1, 15))
        self.assertEqual(opportunity.top_codes, ["D2740", "D2950"])
        self.assertEqual(opportunity.status, OpportunityStatus.NEW)
        self.assertEqual(opportunity.procedures.count(), 2)

    def test_same_snapshot_twice_is_idempotent(self):
        self.service.ingest_batch([make_snapshot()])
        result = self.service.ingest_batch([make_snapshot()])

        self.assertEqual(result.updated, 1)
        self.assertEqual(Patient.objects.count(), 1)
        self.assertEqual(Opportunity.objects.count(), 1)
        self.assertEqual(OpportunityProcedure.objects.count(), 2)

    def test_reingestion_replaces_procedure_set(self):
        self.service.ingest_batch([make_snapshot()])
        self.service.ingest_batch(
            [make_snapshot(procedures=[{"code": "D3330", "fee_cents": 95000}])]
        )

        opportunity = Opportunity.objects.get()
        self.assertEqual(
            list(opportunity.procedures.values_list("code", "fee_cents")),
            [("D3330", 95000)],
        )
        self.assertEqual(opportunity.total_fee_cents, 95000)
        self.assertEqual(opportunity.plan_count, 1)
        self.assertEqual(opportunity.top_codes, ["D3330"])

    def test_patient_fields_are_overwritten_not_merged(self):
        self.service.ingest_batch([make_snapshot()])
        self.service.ingest_batch([make_snapshot(phone=None, email="")])

        patient = Patient.objects.get(patnum=101)
        self.assertIsNone(patient.phone)
        self.assertIsNone(patient.email)

    def test_reingestion_keeps_status(self):
        self.service.ingest_batch([make_snapshot()])
        Opportunity.objects.update(status=OpportunityStatus.CONTACTED)

        self.service.ingest_batch([make_snapshot()])

        self.assertEqual(Opportunity.objects.get().status, OpportunityStatus.CONTACTED)

    def test_update_bumps_updated_at(self):
        self.service.ingest_batch([make_snapshot()])
        stale = timezone.now() - timedelta(days=3)
        Opportunity.objects.update(updated_at=stale)

        self.service.ingest_batch([make_snapshot()])

        self.assertGreater(Opportunity.objects.get().updated_at, stale)

    def test_converges_on_most_recently_updated_duplicate(self):
        patient = PatientFactory(patnum=101)
        older = OpportunityFactory(patient=patient, total_fee_cents=1)
        newer = OpportunityFactory(patient=patient, total_fee_cents=2)
        now = timezone.now()
        Opportunity.objects.filter(pk=older.pk).update(updated_at=now - timedelta(days=2))
        Opportunity.objects.filter(pk=newer.pk).update(updated_at=now - timedelta(days=1))

        self.service.ingest_batch([make_snapshot(total_fee_cents=777)])
        self.service.ingest_batch([make_snapshot(total_fee_cents=888)])

        self.assertEqual(Opportunity.objects.filter(patient=patient).count(), 2)
        older.refresh_from_db()
        newer.refresh_from_db()
        self.assertEqual(older.total_fee_cents, 1)
        self.assertEqual(newer.total_fee_cents, 888)

    def test_top_codes_truncate_to_first_six_in_order(self):
        codes = [f"D{1000 + i}" for i in range(9)]
        procedures = [{"code": code, "fee_cents": 100} for code in codes]

        self.service.ingest_batch([make_snapshot(procedures=procedures)])

        opportunity = Opportunity.objects.get()
        self.assertEqual(opportunity.top_codes, codes[:6])
        self.assertEqual(opportunity.procedures.count(), 9)
        self.assertEqual(opportunity.plan_count, 9)

    def test_explicit_totals_win_over_derived_values(self):
        self.service.ingest_batch([make_snapshot(total_fee_cents=5, plan_count=7)])

        opportunity = Opportunity.objects.get()
        self.assertEqual(opportunity.total_fee_cents, 5)
        self.assertEqual(opportunity.plan_count, 7)

    def test_malformed_fees_coerce_to_zero(self):
        procedures = [
            {"code": "A", "fee_cents": "abc"},
            {"code": "B"},
            {"code": "C", "fee_cents": -500},
            {"code": "D", "fee_cents": "1250.9"},
        ]
        self.service.ingest_batch([make_snapshot(procedures=procedures)])

        opportunity = Opportunity.objects.get()
        fees = dict(opportunity.procedures.values_list("code", "fee_cents"))
        self.assertEqual(fees, {"A": 0, "B": 0, "C": 0, "D": 1250})
        self.assertEqual(opportunity.total_fee_cents, 1250)

    def test_last_plan_date_alias_is_accepted(self):
        snapshot = make_snapshot(last_plan_date="2023-11-30")
        del snapshot["last_txp_date"]

        self.service.ingest_batch([snapshot])

        self.assertEqual(Opportunity.objects.get().last_plan_date, date(2023, 11, 30))

    def test_batch_with_malformed_snapshot_writes_nothing(self):
        batch = [make_snapshot(patnum=1), make_snapshot(patnum="not-a-number"), make_snapshot(patnum=3)]

        with self.assertRaises(SnapshotError) as ctx:
            self.service.ingest_batch(batch)

        self.assertEqual(ctx.exception.index, 1)
        self.assertEqual(Patient.objects.count(), 0)
        self.assertEqual(Opportunity.objects.count(), 0)
        self.assertEqual(OpportunityProcedure.objects.count(), 0)

    def test_batch_with_malformed_date_writes_nothing(self):
        batch = [make_snapshot(patnum=1), make_snapshot(patnum=2, last_txp_date="15/01/2024")]

        with self.assertRaises(SnapshotError):
            self.service.ingest_batch(batch)

        self.assertEqual(Patient.objects.count(), 0)

    def test_store_failure_rolls_back_and_carries_message(self):
        original = ReconciliationService.apply_snapshot
        calls = []

        def fail_on_second(service, snapshot):
            calls.append(snapshot.patnum)
            if len(calls) == 2:
                raise DatabaseError("disk full")
            return original(service, snapshot)

        batch = [make_snapshot(patnum=1), make_snapshot(patnum=2), make_snapshot(patnum=3)]
        with patch.object(
            ReconciliationService, "apply_snapshot", autospec=True, side_effect=fail_on_second
        ):
            with self.assertRaises(ReconciliationError) as ctx:
                self.service.ingest_batch(batch)

        self.assertIn("disk full", ctx.exception.message)
        self.assertEqual(Patient.objects.count(), 0)
        self.assertEqual(Opportunity.objects.count(), 0)

    def test_out_of_range_fee_fails_whole_batch(self):
        batch = [
            make_snapshot(patnum=1),
            make_snapshot(patnum=2, procedures=[{"code": "D2740", "fee_cents": "1e30"}]),
        ]

        with self.assertRaises(SnapshotError) as ctx:
            self.service.ingest_batch(batch)

        self.assertEqual(ctx.exception.index, 1)
        self.assertIn("fee_cents is out of range", ctx.exception.message)
        self.assertEqual(Patient.objects.count(), 0)

    def test_unexpected_write_failure_rolls_back_and_carries_message(self):
        batch = [make_snapshot(patnum=1), make_snapshot(patnum=2)]

        with patch.object(
            OpportunityProcedure.objects,
            "bulk_create",
            side_effect=OverflowError("Python int too large to convert to SQLite INTEGER"),
        ):
            with self.assertRaises(ReconciliationError) as ctx:
                self.service.ingest_batch(batch)

        self.assertNotIsInstance(ctx.exception, SnapshotError)
        self.assertIn("too large", ctx.exception.message)
        self.assertEqual(Patient.objects.count(), 0)
        self.assertEqual(Opportunity.objects.count(), 0)

    def test_empty_batch(self):
        result = self.service.ingest_batch([])
        self.assertEqual(result.count, 0)


class ParseSnapshotTests(TestCase):
    def test_blank_text_fields_become_null(self):
        snapshot = parse_snapshot(make_snapshot(first_name="", phone="   ", birthdate=""))

        self.assertIsNone(snapshot.patient_fields["first_name"])
        self.assertIsNone(snapshot.patient_fields["phone"])
        self.assertIsNone(snapshot.patient_fields["birthdate"])

    def test_guarantor_coerced_or_null(self):
        self.assertEqual(parse_snapshot(make_snapshot(guarantor="77")).patient_fields["guarantor"], 77)
        self.assertIsNone(parse_snapshot(make_snapshot(guarantor="n/a")).patient_fields["guarantor"])

    def test_missing_procedures_means_empty_plan(self):
        snapshot = parse_snapshot({"patnum": 5})

        self.assertEqual(snapshot.procedures, [])
        self.assertEqual(snapshot.total_fee_cents, 0)
        self.assertEqual(snapshot.plan_count, 0)
        self.assertIsNone(snapshot.last_plan_date)

    def test_procedure_without_code_keeps_its_position(self):
        snapshot = parse_snapshot(
            make_snapshot(procedures=[{"code": "D1"}, {"fee_cents": 10}, {"code": "D3"}])
        )
        self.assertEqual(snapshot.top_codes, ["D1", None, "D3"])

    def test_non_object_snapshot_rejected(self):
        with self.assertRaises(SnapshotError):
            parse_snapshot(["patnum", 1])

    def test_non_list_procedures_rejected(self):
        with self.assertRaises(SnapshotError):
            parse_snapshot(make_snapshot(procedures="D2740"))

    def test_datetime_string_accepted_as_plan_date(self):
        snapshot = parse_snapshot(make_snapshot(last_txp_date="2024-01-15T09:30:00"))
        self.assertEqual(snapshot.last_plan_date, date(2024, 1, 15))

    def test_values_beyond_column_range_rejected(self):
        with self.assertRaisesMessage(SnapshotError, "total_fee_cents is out of range"):
            parse_snapshot(make_snapshot(total_fee_cents=2**31))
        with self.assertRaisesMessage(SnapshotError, "plan_count is out of range"):
            parse_snapshot(make_snapshot(plan_count="1e12"))
        with self.assertRaisesMessage(SnapshotError, "patnum is out of range"):
            parse_snapshot(make_snapshot(patnum=2**63))

    def test_summed_fees_beyond_column_range_rejected(self):
        procedures = [{"fee_cents": 2**31 - 1}, {"fee_cents": 2**31 - 1}]

        with self.assertRaisesMessage(SnapshotError, "total_fee_cents is out of range"):
            parse_snapshot(make_snapshot(procedures=procedures))

    def test_oversized_guarantor_becomes_null(self):
        snapshot = parse_snapshot(make_snapshot(guarantor="1e30"))
        self.assertIsNone(snapshot.patient_fields["guarantor"])


class TestCoercionProperties:
    """Property tests for the numeric coercion rules."""

    @given(st.one_of(st.text(), st.integers(), st.floats(allow_nan=True), st.none()))
    @example("1e400")
    @example("Infinity")
    @example("NaN")
    @hypothesis_settings(deadline=None)
    def test_coerce_cents_is_never_negative(self, value):
        cents = coerce_cents(value)
        assert isinstance(cents, int)
        assert cents >= 0

    @given(st.integers(min_value=0, max_value=10**9))
    def test_coerce_cents_keeps_non_negative_integers(self, value):
        assert coerce_cents(value) == value
        assert coerce_cents(str(value)) == value

    @given(st.integers(min_value=1, max_value=10**12))
    def test_coerce_patnum_accepts_integer_strings(self, value):
        assert coerce_patnum(str(value)) == value

    @pytest.mark.parametrize("value", [None, "", "abc", "12.5", True, "NaN"])
    def test_coerce_patnum_rejects_non_integers(self, value):
        with pytest.raises(SnapshotError):
            coerce_patnum(value)
