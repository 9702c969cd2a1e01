"""
Management command to write a full clinic backup as JSON.

Usage:
    python manage.py export_clinic_data --output backup.json
    python manage.py export_clinic_data > backup.json
"""
import json

from django.core.management.base import BaseCommand
from django.core.serializers.json import DjangoJSONEncoder

from apps.core.backup import export_clinic_data


class Command(BaseCommand):
    help = 'Export patients, visits, prescriptions, lab requests, payments and staff to a JSON backup'

    def add_arguments(self, parser):
        parser.add_argument(
            '--output',
            help='File to write; defaults to stdout',
        )

    def handle(self, *args, **options):
        document = export_clinic_data()
        text = json.dumps(document, cls=DjangoJSONEncoder, ensure_ascii=False, indent=2)

        if not options['output']:
            self.stdout.write(text)
            return

        with open(options['output'], 'w', encoding='utf-8') as fh:
            fh.write(text)
        total = sum(document['counts'].values())
        self.stderr.write(self.style.SUCCESS(f"Wrote {total} records to {options['output']}"))
