"""
Management command to load a backup written by export_clinic_data.

Usage:
    python manage.py import_clinic_data backup.json
"""
import json

from django.core.exceptions import ValidationError
from django.core.management.base import BaseCommand, CommandError

from apps.core.backup import import_clinic_data


class Command(BaseCommand):
    help = 'Load a clinic JSON backup; existing rows are updated, payments are never overwritten'

    def add_arguments(self, parser):
        parser.add_argument('path', help='Backup file')

    def handle(self, *args, **options):
        try:
            with open(options['path'], encoding='utf-8') as fh:
                document = json.load(fh)
        except (OSError, json.JSONDecodeError) as e:
            raise CommandError(f"Cannot read backup {options['path']}: {e}") from e

        try:
            summary = import_clinic_data(document)
        except ValidationError as e:
            raise CommandError(' '.join(e.messages)) from e

        for outcome in ('created', 'updated', 'skipped'):
            for label, count in sorted(summary[outcome].items()):
                self.stdout.write(f'  {outcome} {label}: {count}')
        self.stdout.write(self.style.SUCCESS('Done'))
