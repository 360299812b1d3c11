from django.core.management.base import BaseCommand, CommandError
from django.contrib.auth import get_user_model
from django.db import transaction
from backend.tenants.models import Tenant

User = get_user_model()


class Command(BaseCommand):
    help = 'Create a tenant together with its first admin user (no invitation email)'

    def add_arguments(self, parser):
        parser.add_argument('name', type=str, help='Organization name')
        parser.add_argument('--admin-email', required=True)
        parser.add_argument('--admin-password', required=True)
        parser.add_argument('--admin-name', default='')
        parser.add_argument('--max-users', type=int, default=10)

    def handle(self, *args, **options):
        email = options['admin_email'].lower()
        if User.objects.filter(email__iexact=email).exists():
            raise CommandError(f'User {email} already exists')
        if options['max_users'] < 1:
            raise CommandError('--max-users must be at least 1')

        with transaction.atomic():
            tenant = Tenant.objects.create(name=options['name'], max_users=options['max_users'])
            User.objects.create_user(
                email=email,
                password=options['admin_password'],
                name=options['admin_name'] or email,
                role='admin',
                tenant=tenant,
            )

        self.stdout.write(self.style.SUCCESS(f'Created tenant "{tenant.name}" (id={tenant.id})'))
        self.stdout.write(f'  Admin: {email}')
