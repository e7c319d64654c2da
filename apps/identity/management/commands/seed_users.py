from django.core.management.base import BaseCommand
from apps.identity.models import User, UserRole


class Command(BaseCommand):
    help = 'Seeds the database with demo accounts (one admin, one regular user)'

    def add_arguments(self, parser):
        parser.add_argument(
            '--reset-passwords',
            action='store_true',
            help='Reset passwords of existing demo accounts',
        )

    def handle(self, *args, **options):
        users = [
            {'username': 'admin', 'email': 'admin@example.com', 'password': 'Admin123!',
             'first_name': 'Admin', 'last_name': 'User', 'role': UserRole.ADMIN},
            {'username': 'user', 'email': 'user@example.com', 'password': 'User123!',
             'first_name': 'Demo', 'last_name': 'User', 'role': UserRole.USER},
        ]

        for u in users:
            user, created = User.objects.get_or_create(
                username=u['username'],
                defaults={'email': u['email']},
            )

            user.role = u['role']
            user.first_name = u['first_name']
            user.last_name = u['last_name']
            user.is_active = True
            if u['role'] == UserRole.ADMIN:
                user.is_staff = True
                user.is_superuser = True

            if created or options['reset_passwords']:
                user.set_password(u['password'])

            user.save()
            if created:
                self.stdout.write(self.style.SUCCESS(f'Created user: {u["username"]} (Role: {u["role"]})'))
            else:
                self.stdout.write(self.style.WARNING(f'Updated user: {u["username"]}'))
