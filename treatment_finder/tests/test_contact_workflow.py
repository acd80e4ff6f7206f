"""
Tests for the contact workflow: status override, contact dispatch and
messaging outcome callbacks.
"""

import uuid
from unittest.mock import MagicMock
from urllib.parse import parse_qs, urlsplit

from django.db import IntegrityError
from django.test import TestCase, TransactionTestCase

from treatment_finder.integrations.messaging import DeliveryResult, MessagingClient
from treatment_finder.integrations.scheduling import SchedulingLinkError, SchedulingLinkSigner
from treatment_finder.models import ContactLog, Opportunity, OpportunityStatus
from treatment_finder.services.contact_workflow import (
    dispatch_contact,
    override_status,
    record_outcome,
)
from treatment_finder.tests.factories import OpportunityFactory, PatientFactory


def messaging_client_returning(result):
    client = MagicMock(spec=MessagingClient)
    client.send.return_value = result
    return client


class OverrideStatusTests(TestCase):
    def setUp(self):
        self.opportunity = OpportunityFactory(contacted=True)

    def test_any_status_is_accepted(self):
        override_status(self.opportunity.id, "waitlisted")

        self.opportunity.refresh_from_db()
        self.assertEqual(self.opportunity.status, "waitlisted")

    def test_unknown_status_is_logged(self):
        with self.assertLogs("treatment_finder.services.contact_workflow", level="WARNING") as logs:
            override_status(self.opportunity.id, "waitlisted")
        self.assertIn("waitlisted", logs.output[0])

    def test_missing_status_resets_to_new(self):
        override_status(self.opportunity.id, None)
        self.opportunity.refresh_from_db()
        self.assertEqual(self.opportunity.status, OpportunityStatus.NEW)

        override_status(self.opportunity.id, "")
        self.opportunity.refresh_from_db()
        self.assertEqual(self.opportunity.status, OpportunityStatus.NEW)

    def test_unknown_opportunity_raises(self):
        with self.assertRaises(Opportunity.DoesNotExist):
            override_status(uuid.uuid4(), "lost")


class DispatchContactTests(TestCase):
    def setUp(self):
        self.patient = PatientFactory(patnum=4242, first_name="Grace", phone="555-777-1212")
        self.opportunity = OpportunityFactory(
            patient=self.patient, total_fee_cents=88000, top_codes=["D2740"]
        )
        self.signer = SchedulingLinkSigner(
            base_url="https://book.example.com/schedule",
            secret="unit-test-scheduling-secret-32-bytes!",
        )

    def test_failed_delivery_still_marks_contacted(self):
        client = messaging_client_returning(DeliveryResult(ok=False, body="Error: connection refused"))

        result = dispatch_contact(
            self.opportunity.id, "sms", "txp_1", messaging_client=client, link_signer=self.signer
        )

        self.assertFalse(result.ok)
        self.assertEqual(result.vendor_response, "Error: connection refused")
        self.opportunity.refresh_from_db()
        self.assertEqual(self.opportunity.status, OpportunityStatus.CONTACTED)
        self.assertIsNotNone(self.opportunity.last_contacted_at)

        log = ContactLog.objects.get(opportunity=self.opportunity)
        self.assertEqual(log.result, "failed")
        self.assertEqual(log.channel, "sms")
        self.assertEqual(log.template_key, "txp_1")
        self.assertIsNone(log.vendor_msg_id)

    def test_successful_delivery_logs_sent_with_payload(self):
        client = messaging_client_returning(DeliveryResult(ok=True, body='{"id":"m-1"}', status_code=200))

        result = dispatch_contact(
            self.opportunity.id, "email", "txp_2", messaging_client=client, link_signer=self.signer
        )

        self.assertTrue(result.ok)
        self.assertEqual(result.contact_log.result, "sent")

        payload = client.send.call_args[0][0]
        self.assertEqual(payload["id"], str(self.opportunity.id))
        self.assertEqual(payload["channel"], "email")
        self.assertEqual(payload["templateKey"], "txp_2")
        self.assertEqual(payload["patient"]["patnum"], 4242)
        self.assertEqual(payload["patient"]["first_name"], "Grace")
        self.assertEqual(payload["opportunity"]["total_fee_cents"], 88000)
        self.assertEqual(payload["opportunity"]["codes"], ["D2740"])
        self.assertEqual(
            payload["opportunity"]["last_plan_date"],
            self.opportunity.last_plan_date.isoformat(),
        )
        self.assertTrue(payload["scheduling_link"].startswith("https://book.example.com/schedule?"))
        token = parse_qs(urlsplit(payload["scheduling_link"]).query)["t"][0]
        self.assertEqual(self.signer.verify_token(token), 4242)

        self.assertEqual(result.contact_log.payload, payload)

    def test_signing_failure_skips_delivery_but_still_transitions(self):
        signer = MagicMock(spec=SchedulingLinkSigner)
        signer.link_for.side_effect = SchedulingLinkError("SCHEDULING_TOKEN_SECRET is not configured")
        client = messaging_client_returning(DeliveryResult(ok=True, body="ok"))

        result = dispatch_contact(
            self.opportunity.id, "sms", "txp_1", messaging_client=client, link_signer=signer
        )

        client.send.assert_not_called()
        self.assertFalse(result.ok)
        self.assertIn("not configured", result.vendor_response)
        self.opportunity.refresh_from_db()
        self.assertEqual(self.opportunity.status, OpportunityStatus.CONTACTED)
        self.assertEqual(ContactLog.objects.get().result, "failed")

    def test_every_attempt_appends_a_log(self):
        client = messaging_client_returning(DeliveryResult(ok=True, body="ok"))

        for _ in range(3):
            dispatch_contact(self.opportunity.id, "sms", "txp_1", messaging_client=client, link_signer=self.signer)

        self.assertEqual(ContactLog.objects.filter(opportunity=self.opportunity).count(), 3)

    def test_unknown_opportunity_raises(self):
        with self.assertRaises(Opportunity.DoesNotExist):
            dispatch_contact(uuid.uuid4(), "sms", "txp_1", messaging_client=MagicMock(), link_signer=self.signer)


class RecordOutcomeTests(TestCase):
    def setUp(self):
        self.opportunity = OpportunityFactory(contacted=True)

    def test_outcome_without_status_leaves_status_unchanged(self):
        before = Opportunity.objects.get(pk=self.opportunity.pk)

        log = record_outcome(
            {"opportunity_id": str(self.opportunity.id), "result": "delivered", "vendor_msg_id": "m-9"}
        )

        after = Opportunity.objects.get(pk=self.opportunity.pk)
        self.assertEqual(after.status, before.status)
        self.assertEqual(after.updated_at, before.updated_at)
        self.assertEqual(log.result, "delivered")
        self.assertEqual(log.vendor_msg_id, "m-9")

    def test_outcome_with_status_updates_opportunity(self):
        record_outcome(
            {"opportunity_id": str(self.opportunity.id), "result": "replied", "status": "scheduled"}
        )

        self.opportunity.refresh_from_db()
        self.assertEqual(self.opportunity.status, OpportunityStatus.SCHEDULED)

    def test_whole_body_is_kept_as_payload(self):
        body = {
            "opportunity_id": str(self.opportunity.id),
            "result": "replied",
            "channel": "sms",
            "templateKey": "txp_1",
            "reply_text": "Yes please",
        }

        log = record_outcome(body)

        self.assertEqual(log.payload, body)
        self.assertEqual(log.channel, "sms")
        self.assertEqual(log.template_key, "txp_1")

    def test_missing_opportunity_id_is_ignored(self):
        self.assertIsNone(record_outcome({"result": "delivered"}))
        self.assertEqual(ContactLog.objects.count(), 0)


class RecordOutcomeForeignKeyTests(TransactionTestCase):
    def test_unknown_opportunity_is_rejected_on_commit(self):
        with self.assertRaises(IntegrityError):
            record_outcome({"opportunity_id": str(uuid.uuid4()), "result": "delivered"})

        self.assertEqual(ContactLog.objects.count(), 0)
