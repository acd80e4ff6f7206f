"""
Contact workflow for opportunities.

Status moves ``new`` -> ``contacted`` on dispatch and from there to
whatever the messaging outcome callback or an operator reports. The status
set is open: unknown values are accepted and logged.

Dispatch always marks the opportunity contacted and appends a contact log,
whether or not the vendor accepted the message.
"""

from dataclasses import dataclass
from typing import Any, Dict, Optional

from django.db import transaction
from django.utils import timezone

from treatment_finder.integrations.messaging import DeliveryResult, MessagingClient
from treatment_finder.integrations.scheduling import SchedulingLinkError, SchedulingLinkSigner
from treatment_finder.logging_utils import add_log_context, get_logger
from treatment_finder.models import ContactLog, Opportunity, OpportunityStatus

logger = get_logger(__name__)

RESULT_SENT = "sent"
RESULT_FAILED = "failed"


@dataclass
class DispatchResult:
    ok: bool
    vendor_response: str
    contact_log: ContactLog


def _note_unknown_status(status: str, source: str) -> None:
    if not OpportunityStatus.is_known(status):
        logger.warning(f"Unrecognised status {status!r} accepted from {source}")


def override_status(opportunity_id, status: Optional[str] = None) -> Opportunity:
    """
    Operator escape hatch: set any status, no transition guard.

    A missing or blank status resets to ``new``.

    Raises:
        Opportunity.DoesNotExist: If no opportunity has that id
    """
    status = status or OpportunityStatus.NEW
    with add_log_context(operation="status_override", opportunity_id=str(opportunity_id)):
        with transaction.atomic():
            opportunity = Opportunity.objects.select_for_update().get(pk=opportunity_id)
            opportunity.status = status
            opportunity.save(update_fields=["status", "updated_at"])
        _note_unknown_status(status, "operator")
        logger.info(f"Status overridden to {status}")
    return opportunity


def build_contact_payload(
    opportunity: Opportunity,
    channel: Optional[str],
    template_key: Optional[str],
    scheduling_link: Optional[str],
) -> Dict[str, Any]:
    patient = opportunity.patient
    return {
        "id": str(opportunity.id),
        "channel": channel,
        "templateKey": template_key,
        "patient": {
            "patnum": patient.patnum,
            "first_name": patient.first_name,
            "last_name": patient.last_name,
            "phone": patient.phone,
            "email": patient.email,
        },
        "opportunity": {
            "total_fee_cents": opportunity.total_fee_cents,
            "last_plan_date": (
                opportunity.last_plan_date.isoformat() if opportunity.last_plan_date else None
            ),
            "codes": list(opportunity.top_codes or []),
        },
        "scheduling_link": scheduling_link,
    }


def dispatch_contact(
    opportunity_id,
    channel: Optional[str] = None,
    template_key: Optional[str] = None,
    messaging_client: Optional[MessagingClient] = None,
    link_signer: Optional[SchedulingLinkSigner] = None,
) -> DispatchResult:
    """
    Send one outreach message for an opportunity and record the attempt.

    The scheduling link is minted fresh, the payload goes to the messaging
    vendor, then the opportunity is marked contacted and a contact log
    (``sent`` or ``failed``) is appended in one transaction. A signing
    failure skips delivery and is recorded as ``failed``.

    Raises:
        Opportunity.DoesNotExist: If no opportunity has that id
    """
    messaging_client = messaging_client or MessagingClient()
    link_signer = link_signer or SchedulingLinkSigner()

    opportunity = Opportunity.objects.select_related("patient").get(pk=opportunity_id)

    with add_log_context(operation="contact_dispatch", opportunity_id=str(opportunity.id)):
        try:
            scheduling_link = link_signer.link_for(opportunity.patient_id)
        except SchedulingLinkError as e:
            logger.error(f"Scheduling link unavailable, delivery skipped: {e}")
            payload = build_contact_payload(opportunity, channel, template_key, None)
            delivery = DeliveryResult(ok=False, body=str(e))
        else:
            payload = build_contact_payload(opportunity, channel, template_key, scheduling_link)
            delivery = messaging_client.send(payload)

        result = RESULT_SENT if delivery.ok else RESULT_FAILED

        with transaction.atomic():
            now = timezone.now()
            Opportunity.objects.filter(pk=opportunity.pk).update(
                status=OpportunityStatus.CONTACTED,
                last_contacted_at=now,
                updated_at=now,
            )
            contact_log = ContactLog.objects.create(
                opportunity=opportunity,
                channel=channel,
                template_key=template_key,
                result=result,
                vendor_msg_id=None,
                payload=payload,
            )

        logger.info(f"Contact dispatched via {channel or 'default'} channel: {result}")

    return DispatchResult(ok=delivery.ok, vendor_response=delivery.body, contact_log=contact_log)


def record_outcome(data: Dict[str, Any]) -> Optional[ContactLog]:
    """
    Record a delivery/reply outcome reported by the messaging vendor.

    Always appends a contact log; the opportunity's status changes only
    when the callback carries one. A callback without ``opportunity_id`` is
    ignored and returns None. An id that matches no opportunity is left to
    the foreign-key constraint.

    Raises:
        django.db.IntegrityError: If the referenced opportunity does not exist
    """
    opportunity_id = data.get("opportunity_id")
    if not opportunity_id:
        logger.info("Outcome callback without opportunity_id ignored")
        return None

    status = data.get("status")

    with add_log_context(operation="outcome_callback", opportunity_id=str(opportunity_id)):
        with transaction.atomic():
            contact_log = ContactLog.objects.create(
                opportunity_id=opportunity_id,
                channel=data.get("channel"),
                template_key=data.get("templateKey"),
                result=data.get("result"),
                vendor_msg_id=data.get("vendor_msg_id"),
                payload=data,
            )
            if status:
                Opportunity.objects.filter(pk=opportunity_id).update(
                    status=status, updated_at=timezone.now()
                )

        if status:
            _note_unknown_status(status, "messaging outcome")
        logger.info(f"Outcome recorded: result={data.get('result')} status={status or '-'}")

    return contact_log
