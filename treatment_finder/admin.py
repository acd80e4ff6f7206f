from django.contrib import admin
from django.utils.html import format_html

from .models import ContactLog, Opportunity, OpportunityProcedure, OpportunityStatus, Patient
from .services.ranking import days_since_plan


class OpportunityInline(admin.TabularInline):
    model = Opportunity
    extra = 0
    fields = ("id", "total_fee_cents", "plan_count", "last_plan_date", "status", "updated_at")
    readonly_fields = fields
    show_change_link = True
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(Patient)
class PatientAdmin(admin.ModelAdmin):
    list_display = ("patnum", "last_name", "first_name", "phone", "email", "guarantor")
    search_fields = ("=patnum", "first_name", "last_name")
    inlines = [OpportunityInline]


class OpportunityProcedureInline(admin.TabularInline):
    """Procedure lines; replaced wholesale on every ingestion."""

    model = OpportunityProcedure
    extra = 0
    fields = ("code", "description", "fee_cents", "tooth", "surface")
    ordering = ["-fee_cents"]


class ContactLogInline(admin.TabularInline):
    """Append-only contact history."""

    model = ContactLog
    extra = 0
    fields = ("created_at", "channel", "template_key", "result", "vendor_msg_id")
    readonly_fields = fields
    ordering = ["-created_at"]
    can_delete = False

    def has_add_permission(self, request, obj=None):
        return False

    def has_change_permission(self, request, obj=None):
        return False


@admin.register(Opportunity)
class OpportunityAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "patient",
        "total_fee_cents",
        "plan_count",
        "last_plan_date",
        "days_since_plan_display",
        "status_display",
        "last_contacted_at",
        "updated_at",
    )
    list_filter = ("status", "last_plan_date")
    search_fields = ("=patient__patnum", "patient__first_name", "patient__last_name")
    list_select_related = ("patient",)
    date_hierarchy = "updated_at"
    readonly_fields = ("id", "top_codes", "last_contacted_at", "created_at", "updated_at")
    inlines = [OpportunityProcedureInline, ContactLogInline]

    fieldsets = (
        ("Patient", {"fields": ("id", "patient")}),
        (
            "Plan",
            {"fields": ("total_fee_cents", "plan_count", "last_plan_date", "top_codes")},
        ),
        ("Outreach", {"fields": ("status", "last_contacted_at")}),
        ("Timestamps", {"fields": ("created_at", "updated_at"), "classes": ("collapse",)}),
    )

    @admin.display(description="Days since plan")
    def days_since_plan_display(self, obj):
        return days_since_plan(obj.last_plan_date)

    @admin.display(description="Status", ordering="status")
    def status_display(self, obj):
        if OpportunityStatus.is_known(obj.status):
            return obj.status
        return format_html('<span title="Unrecognised status">{} *</span>', obj.status)
