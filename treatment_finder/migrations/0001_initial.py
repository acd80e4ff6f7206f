# Generated manually for the initial opportunity schema

import uuid

import django.core.serializers.json
import django.db.models.deletion
from django.db import migrations, models


class Migration(migrations.Migration):
    initial = True

    dependencies = []

    operations = [
        migrations.CreateModel(
            name="Patient",
            fields=[
                ("patnum", models.BigIntegerField(primary_key=True, serialize=False)),
                ("first_name", models.TextField(blank=True, null=True)),
                ("last_name", models.TextField(blank=True, null=True)),
                ("birthdate", models.DateField(blank=True, null=True)),
                ("phone", models.TextField(blank=True, null=True)),
                ("email", models.TextField(blank=True, null=True)),
                ("guarantor", models.BigIntegerField(blank=True, null=True)),
            ],
            options={
                "db_table": "patients",
            },
        ),
        migrations.CreateModel(
            name="Opportunity",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("total_fee_cents", models.IntegerField()),
                ("plan_count", models.IntegerField()),
                (
                    "last_plan_date",
                    models.DateField(blank=True, db_index=True, null=True),
                ),
                ("top_codes", models.JSONField(blank=True, default=list)),
                (
                    "status",
                    models.CharField(db_index=True, default="new", max_length=50),
                ),
                ("last_contacted_at", models.DateTimeField(blank=True, null=True)),
                ("created_at", models.DateTimeField(auto_now_add=True)),
                ("updated_at", models.DateTimeField(auto_now=True)),
                (
                    "patient",
                    models.ForeignKey(
                        db_column="patnum",
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="opportunities",
                        to="treatment_finder.patient",
                    ),
                ),
            ],
            options={
                "db_table": "opportunities",
                "verbose_name_plural": "opportunities",
                "indexes": [
                    models.Index(
                        fields=["patient", "-updated_at"],
                        name="opp_patient_recent_idx",
                    )
                ],
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("total_fee_cents__gte", 0)),
                        name="opp_total_fee_nonnegative",
                    ),
                    models.CheckConstraint(
                        condition=models.Q(("plan_count__gte", 0)),
                        name="opp_plan_count_nonnegative",
                    ),
                ],
            },
        ),
        migrations.CreateModel(
            name="OpportunityProcedure",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("code", models.TextField(blank=True, null=True)),
                ("description", models.TextField(blank=True, null=True)),
                ("fee_cents", models.IntegerField(default=0)),
                ("tooth", models.TextField(blank=True, null=True)),
                ("surface", models.TextField(blank=True, null=True)),
                (
                    "opportunity",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="procedures",
                        to="treatment_finder.opportunity",
                    ),
                ),
            ],
            options={
                "db_table": "opportunity_procedures",
                "constraints": [
                    models.CheckConstraint(
                        condition=models.Q(("fee_cents__gte", 0)),
                        name="procedure_fee_nonnegative",
                    )
                ],
            },
        ),
        migrations.CreateModel(
            name="ContactLog",
            fields=[
                (
                    "id",
                    models.UUIDField(
                        default=uuid.uuid4,
                        editable=False,
                        primary_key=True,
                        serialize=False,
                    ),
                ),
                ("channel", models.TextField(blank=True, null=True)),
                ("template_key", models.TextField(blank=True, null=True)),
                ("result", models.TextField(blank=True, null=True)),
                ("vendor_msg_id", models.TextField(blank=True, null=True)),
                (
                    "payload",
                    models.JSONField(
                        blank=True,
                        encoder=django.core.serializers.json.DjangoJSONEncoder,
                        null=True,
                    ),
                ),
                (
                    "created_at",
                    models.DateTimeField(auto_now_add=True, db_index=True),
                ),
                (
                    "opportunity",
                    models.ForeignKey(
                        on_delete=django.db.models.deletion.CASCADE,
                        related_name="contact_logs",
                        to="treatment_finder.opportunity",
                    ),
                ),
            ],
            options={
                "db_table": "contact_logs",
                "ordering": ["created_at"],
            },
        ),
    ]
