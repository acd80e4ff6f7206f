"""
Factory classes for generating test data for the opportunity models.

Uses factory_boy to create valid instances with sensible defaults.
Traits cover the common scenarios (unreachable patient, stale plan,
already contacted).
"""

from datetime import timedelta

import factory
from django.utils import timezone
from factory.django import DjangoModelFactory

from treatment_finder.models import (
    ContactLog,
    Opportunity,
    OpportunityProcedure,
    OpportunityStatus,
    Patient,
)


class PatientFactory(DjangoModelFactory):
    """Factory for Patient model."""

    class Meta:
        model = Patient
        django_get_or_create = ("patnum",)

    patnum = factory.Sequence(lambda n: 1000 + n)
    first_name = factory.Sequence(lambda n: f"Pat{n}")
    last_name = factory.Sequence(lambda n: f"Lastname{n}")
    birthdate = factory.LazyFunction(lambda: timezone.localdate() - timedelta(days=365 * 40))
    phone = factory.Sequence(lambda n: f"555-01{n % 100:02d}")
    email = factory.LazyAttribute(lambda o: f"{o.first_name.lower()}@example.com")
    guarantor = None

    class Params:
        unreachable = factory.Trait(phone=None)


class OpportunityFactory(DjangoModelFactory):
    """Factory for Opportunity model."""

    class Meta:
        model = Opportunity

    patient = factory.SubFactory(PatientFactory)
    total_fee_cents = 50000
    plan_count = 2
    last_plan_date = factory.LazyFunction(lambda: timezone.localdate() - timedelta(days=30))
    top_codes = factory.LazyFunction(lambda: ["D2740", "D2950"])
    status = OpportunityStatus.NEW

    class Params:
        undated = factory.Trait(last_plan_date=None)
        contacted = factory.Trait(
            status=OpportunityStatus.CONTACTED,
            last_contacted_at=factory.LazyFunction(timezone.now),
        )


class OpportunityProcedureFactory(DjangoModelFactory):
    """Factory for OpportunityProcedure model."""

    class Meta:
        model = OpportunityProcedure

    opportunity = factory.SubFactory(OpportunityFactory)
    code = factory.Iterator(["D2740", "D2950", "D3330", "D6010"])
    description = "Crown - porcelain/ceramic"
    fee_cents = 25000
    tooth = "14"
    surface = None


class ContactLogFactory(DjangoModelFactory):
    """Factory for ContactLog model."""

    class Meta:
        model = ContactLog

    opportunity = factory.SubFactory(OpportunityFactory)
    channel = "sms"
    template_key = "txp_followup_1"
    result = "sent"
    vendor_msg_id = None
    payload = factory.LazyFunction(dict)
