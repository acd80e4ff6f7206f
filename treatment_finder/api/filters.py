"""
API Filter classes for the opportunity listing.

Uses django-filter for declarative filtering with OpenAPI documentation
via drf-spectacular. Numeric parameters are declared as char filters with
custom methods so that malformed values fall back to 0 instead of
failing validation.
"""

from django.db.models import Q
from django_filters import rest_framework as filters

from treatment_finder.models import Opportunity
from treatment_finder.services import ranking


class OpportunityFilter(filters.FilterSet):
    """
    FilterSet for the ranked opportunity list.

    - min_value: minimum total fee in cents
    - min_days: minimum days since last plan activity (no plan date = 0 days)
    - q: case-insensitive substring of the patient's first or last name
    """

    min_value = filters.CharFilter(method="filter_min_value", label="Minimum total fee (cents)")
    min_days = filters.CharFilter(method="filter_min_days", label="Minimum days since plan")
    q = filters.CharFilter(method="filter_name", label="Patient name contains")

    class Meta:
        model = Opportunity
        fields = ["min_value", "min_days", "q"]

    def filter_min_value(self, queryset, name, value):
        return queryset.filter(total_fee_cents__gte=ranking.coerce_int(value))

    def filter_min_days(self, queryset, name, value):
        return ranking.filter_min_days(queryset, ranking.coerce_int(value))

    def filter_name(self, queryset, name, value):
        return queryset.filter(
            Q(patient__first_name__icontains=value) | Q(patient__last_name__icontains=value)
        )
