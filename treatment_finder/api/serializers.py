"""
Treatment Finder API Serializers

Listing rows are ``RankedOpportunity`` dataclasses rather than model
instances, so the list serializer is a plain ``Serializer``.
"""

from django.utils import timezone
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import extend_schema_field
from rest_framework import serializers

from treatment_finder.models import ContactLog, Opportunity, OpportunityProcedure
from treatment_finder.services.ranking import days_since_plan


class RankedOpportunitySerializer(serializers.Serializer):
    id = serializers.UUIDField()
    patnum = serializers.IntegerField()
    first_name = serializers.CharField(allow_null=True)
    last_name = serializers.CharField(allow_null=True)
    phone = serializers.CharField(allow_null=True)
    email = serializers.CharField(allow_null=True)
    total_fee_cents = serializers.IntegerField()
    plan_count = serializers.IntegerField()
    last_plan_date = serializers.DateField(allow_null=True)
    days_since_plan = serializers.IntegerField()
    status = serializers.CharField()
    top_codes = serializers.ListField(child=serializers.CharField(allow_null=True))
    score = serializers.FloatField()


class ProcedureSerializer(serializers.ModelSerializer):
    class Meta:
        model = OpportunityProcedure
        fields = ["id", "code", "description", "fee_cents", "tooth", "surface"]
        read_only_fields = fields


class ContactLogSerializer(serializers.ModelSerializer):
    class Meta:
        model = ContactLog
        fields = ["id", "channel", "template_key", "result", "vendor_msg_id", "created_at"]
        read_only_fields = fields


class OpportunityDetailSerializer(serializers.ModelSerializer):
    """
    One opportunity with its patient, procedures (highest fee first) and a
    freshly signed scheduling link.

    The link comes from serializer context (``scheduling_link``) because it
    is minted per request and never stored.
    """

    patnum = serializers.IntegerField(source="patient.patnum", read_only=True)
    first_name = serializers.CharField(source="patient.first_name", read_only=True)
    last_name = serializers.CharField(source="patient.last_name", read_only=True)
    birthdate = serializers.DateField(source="patient.birthdate", read_only=True)
    phone = serializers.CharField(source="patient.phone", read_only=True)
    email = serializers.CharField(source="patient.email", read_only=True)
    guarantor = serializers.IntegerField(source="patient.guarantor", read_only=True)
    days_since_plan = serializers.SerializerMethodField()
    procedures = serializers.SerializerMethodField()
    contact_logs = ContactLogSerializer(many=True, read_only=True)
    scheduling_link = serializers.SerializerMethodField()

    class Meta:
        model = Opportunity
        fields = [
            "id",
            "patnum",
            "first_name",
            "last_name",
            "birthdate",
            "phone",
            "email",
            "guarantor",
            "total_fee_cents",
            "plan_count",
            "last_plan_date",
            "days_since_plan",
            "top_codes",
            "status",
            "last_contacted_at",
            "created_at",
            "updated_at",
            "procedures",
            "contact_logs",
            "scheduling_link",
        ]
        read_only_fields = fields

    @extend_schema_field(OpenApiTypes.INT)
    def get_days_since_plan(self, obj):
        return days_since_plan(obj.last_plan_date, timezone.localdate())

    @extend_schema_field(ProcedureSerializer(many=True))
    def get_procedures(self, obj):
        procedures = obj.procedures.order_by("-fee_cents", "code")
        return ProcedureSerializer(procedures, many=True).data

    @extend_schema_field(OpenApiTypes.URI)
    def get_scheduling_link(self, obj):
        return self.context.get("scheduling_link")


class StatusOverrideSerializer(serializers.Serializer):
    status = serializers.CharField(
        max_length=50, required=False, allow_blank=True, allow_null=True
    )


class StatusOverrideResponseSerializer(serializers.Serializer):
    ok = serializers.BooleanField()
    id = serializers.UUIDField()
    status = serializers.CharField()


class ContactDispatchSerializer(serializers.Serializer):
    channel = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    templateKey = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class ContactDispatchResponseSerializer(serializers.Serializer):
    ok = serializers.BooleanField()
    vendor_response = serializers.CharField(allow_blank=True)


class MessagingOutcomeSerializer(serializers.Serializer):
    """
    Outcome callback from the messaging vendor.

    Only the fields the workflow reads are declared; anything else the
    vendor sends is kept verbatim in the contact log payload.
    """

    opportunity_id = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    result = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    vendor_msg_id = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    status = serializers.CharField(
        max_length=50, required=False, allow_blank=True, allow_null=True
    )
    channel = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    templateKey = serializers.CharField(required=False, allow_blank=True, allow_null=True)


class IngestResponseSerializer(serializers.Serializer):
    ok = serializers.BooleanField()
    count = serializers.IntegerField()


class HealthCheckSerializer(serializers.Serializer):
    status = serializers.CharField()
    version = serializers.CharField()
    timestamp = serializers.DateTimeField()


class SnapshotProcedureSerializer(serializers.Serializer):
    code = serializers.CharField(required=False, allow_null=True)
    description = serializers.CharField(required=False, allow_null=True)
    fee_cents = serializers.IntegerField(required=False, allow_null=True)
    tooth = serializers.CharField(required=False, allow_null=True)
    surface = serializers.CharField(required=False, allow_null=True)


class SnapshotSerializer(serializers.Serializer):
    """
    Documents the ingestion wire format for the OpenAPI schema.

    Ingestion does its own coercion in the reconciliation service; this
    serializer is not used to validate request bodies.
    """

    patnum = serializers.IntegerField()
    first_name = serializers.CharField(required=False, allow_null=True)
    last_name = serializers.CharField(required=False, allow_null=True)
    birthdate = serializers.DateField(required=False, allow_null=True)
    phone = serializers.CharField(required=False, allow_null=True)
    email = serializers.CharField(required=False, allow_null=True)
    guarantor = serializers.IntegerField(required=False, allow_null=True)
    last_txp_date = serializers.DateField(required=False, allow_null=True)
    procedures = SnapshotProcedureSerializer(many=True, required=False)
    total_fee_cents = serializers.IntegerField(required=False, allow_null=True)
    plan_count = serializers.IntegerField(required=False, allow_null=True)
