"""
Management command to seed clinic roles and one demo account per role.

Usage:
    python manage.py seed_clinic_staff
    python manage.py seed_clinic_staff --roles-only

Idempotent: safe to run on every container start.
"""
import os

from django.core.management.base import BaseCommand
from django.db import transaction

from apps.authz.models import Doctor, Role, RoleChoices, User, UserRole


DEMO_STAFF = [
    {'email': 'admin@medimind.local', 'role': RoleChoices.ADMIN, 'first_name': 'Clinic', 'last_name': 'Admin', 'is_staff': True},
    {'email': 'doctor@medimind.local', 'role': RoleChoices.DOCTOR, 'first_name': 'Ahmad', 'last_name': 'Karimi', 'doctor': True},
    {'email': 'reception@medimind.local', 'role': RoleChoices.RECEPTION, 'first_name': 'Front', 'last_name': 'Desk'},
    {'email': 'lab@medimind.local', 'role': RoleChoices.LAB, 'first_name': 'Lab', 'last_name': 'Technician'},
    {'email': 'reviewer@medimind.local', 'role': RoleChoices.REVIEWER, 'first_name': 'Central', 'last_name': 'Room'},
]


class Command(BaseCommand):
    help = 'Ensure clinic roles exist and seed one demo user per role'

    def add_arguments(self, parser):
        parser.add_argument(
            '--roles-only',
            action='store_true',
            help='Create the role rows without any demo users',
        )

    @transaction.atomic
    def handle(self, *args, **options):
        self.stdout.write("Ensuring roles exist...")
        for value, _label in RoleChoices.choices:
            role, created = Role.objects.get_or_create(name=value)
            if created:
                self.stdout.write(self.style.SUCCESS(f'  Created role: {role.name}'))
            else:
                self.stdout.write(f'  - Role exists: {role.name}')

        if options['roles_only']:
            return

        password = os.environ.get('DEMO_STAFF_PASSWORD', 'medimind123dev')

        self.stdout.write("\nEnsuring demo staff exist...")
        for entry in DEMO_STAFF:
            user, created = User.objects.get_or_create(
                email=entry['email'],
                defaults={
                    'first_name': entry['first_name'],
                    'last_name': entry['last_name'],
                    'is_staff': entry.get('is_staff', False),
                }
            )
            if created:
                user.set_password(password)
                user.save()
                self.stdout.write(self.style.SUCCESS(f'  Created user: {user.email}'))
            else:
                self.stdout.write(f'  - User exists: {user.email}')

            UserRole.objects.get_or_create(user=user, role=Role.objects.get(name=entry['role']))

            if entry.get('doctor'):
                Doctor.objects.get_or_create(
                    user=user,
                    defaults={'display_name': f"Dr. {user.first_name} {user.last_name}"}
                )

        self.stdout.write(self.style.SUCCESS('\nDone'))
