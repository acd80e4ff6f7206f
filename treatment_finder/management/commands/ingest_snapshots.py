"""
Management command to ingest a treatment-plan snapshot export.

Runs the same reconciliation as POST /api/v1/ingest/, as one atomic batch.

Usage:
    python manage.py ingest_snapshots export.json
    python manage.py ingest_snapshots - < export.json
"""

import json
import logging
import sys

from django.core.management.base import BaseCommand, CommandError

from treatment_finder.services.reconciliation import (
    ReconciliationError,
    ReconciliationService,
    SnapshotError,
)

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = "Ingest a JSON array of treatment-plan snapshots"

    def add_arguments(self, parser):
        parser.add_argument(
            "path",
            help='Path to a JSON export file, or "-" to read from stdin',
        )

    def handle(self, *args, **options):
        path = options["path"]

        try:
            if path == "-":
                data = json.load(sys.stdin)
            else:
                with open(path, encoding="utf-8") as fh:
                    data = json.load(fh)
        except OSError as e:
            raise CommandError(f"Cannot read {path}: {e}")
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise CommandError(f"{path} is not valid UTF-8 JSON: {e}")

        if not isinstance(data, list):
            raise CommandError("Export must be a JSON array of snapshots")

        try:
            result = ReconciliationService().ingest_batch(data)
        except SnapshotError as e:
            raise CommandError(f"Snapshot {e.index} is malformed, nothing ingested: {e.message}")
        except ReconciliationError as e:
            raise CommandError(f"Batch rolled back, nothing ingested: {e.message}")

        logger.info(f"Ingested {result.count} snapshots from {path}")
        self.stdout.write(
            self.style.SUCCESS(
                f"Ingested {result.count} snapshots "
                f"({result.created} created, {result.updated} updated)"
            )
        )
