import uuid

from django.core.serializers.json import DjangoJSONEncoder
from django.db import models


class OpportunityStatus(models.TextChoices):
    """
    Statuses the application itself assigns or expects.

    Not enforced on the column: operators and the messaging outcome
    callback may set any value, so this list is documentation and admin
    filtering only.
    """

    NEW = "new", "New"
    CONTACTED = "contacted", "Contacted"
    SCHEDULED = "scheduled", "Scheduled"
    LOST = "lost", "Lost"

    @classmethod
    def is_known(cls, value):
        return value in cls.values


class Patient(models.Model):
    # Practice-management patient number; supplied by the export, never generated
    patnum = models.BigIntegerField(primary_key=True)
    first_name = models.TextField(blank=True, null=True)
    last_name = models.TextField(blank=True, null=True)
    birthdate = models.DateField(blank=True, null=True)
    phone = models.TextField(blank=True, null=True)
    email = models.TextField(blank=True, null=True)
    # Back-reference to the guarantor's patnum; may point at an unseen patient
    guarantor = models.BigIntegerField(blank=True, null=True)

    class Meta:
        db_table = "patients"

    def __str__(self):
        return f"Patient {self.patnum}"

    @property
    def has_phone(self):
        return bool(self.phone)


class Opportunity(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    patient = models.ForeignKey(
        Patient,
        on_delete=models.CASCADE,
        related_name="opportunities",
        db_column="patnum",
    )
    total_fee_cents = models.IntegerField()
    plan_count = models.IntegerField()
    last_plan_date = models.DateField(blank=True, null=True, db_index=True)
    top_codes = models.JSONField(default=list, blank=True)
    status = models.CharField(
        max_length=50, default=OpportunityStatus.NEW, db_index=True
    )
    last_contacted_at = models.DateTimeField(blank=True, null=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        db_table = "opportunities"
        verbose_name_plural = "opportunities"
        indexes = [
            models.Index(
                fields=["patient", "-updated_at"], name="opp_patient_recent_idx"
            ),
        ]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(total_fee_cents__gte=0),
                name="opp_total_fee_nonnegative",
            ),
            models.CheckConstraint(
                condition=models.Q(plan_count__gte=0),
                name="opp_plan_count_nonnegative",
            ),
        ]

    def __str__(self):
        return f"Opportunity {self.id} (patnum {self.patient_id})"


class OpportunityProcedure(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    opportunity = models.ForeignKey(
        Opportunity, on_delete=models.CASCADE, related_name="procedures"
    )
    code = models.TextField(blank=True, null=True)
    description = models.TextField(blank=True, null=True)
    fee_cents = models.IntegerField(default=0)
    tooth = models.TextField(blank=True, null=True)
    surface = models.TextField(blank=True, null=True)

    class Meta:
        db_table = "opportunity_procedures"
        constraints = [
            models.CheckConstraint(
                condition=models.Q(fee_cents__gte=0),
                name="procedure_fee_nonnegative",
            ),
        ]

    def __str__(self):
        return f"{self.code or '?'} ({self.fee_cents}c)"


class ContactLog(models.Model):
    """Append-only record of an outreach attempt or a reported outcome."""

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)
    opportunity = models.ForeignKey(
        Opportunity, on_delete=models.CASCADE, related_name="contact_logs"
    )
    channel = models.TextField(blank=True, null=True)
    template_key = models.TextField(blank=True, null=True)
    result = models.TextField(blank=True, null=True)
    vendor_msg_id = models.TextField(blank=True, null=True)
    payload = models.JSONField(blank=True, null=True, encoder=DjangoJSONEncoder)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        db_table = "contact_logs"
        ordering = ["created_at"]

    def __str__(self):
        return f"{self.channel or 'contact'} {self.result or ''} for {self.opportunity_id}"
