from django.core.management.base import BaseCommand
from django.contrib.auth.models import Group, Permission

from backend.core.choices import ROLE_ADMINISTRATOR, ROLE_PLANNER, ROLE_SUPPLIER, ROLE_CUSTOMER

PLANNING_APPS = ['orders', 'procurement', 'suppliers', 'notifications', 'reports']


class Command(BaseCommand):
    help = 'Create Django user groups for RBAC: Administrator, LMRPlanner, Supplier, Customer'

    def handle(self, *args, **options):
        groups_config = [
            {
                'name': ROLE_ADMINISTRATOR,
                'description': 'System administrators - full access including users and audit logs',
            },
            {
                'name': ROLE_PLANNER,
                'description': 'Procurement planners - orders, distribution, purchase orders, suppliers and reports',
            },
            {
                'name': ROLE_SUPPLIER,
                'description': 'Supplier users - supplier portal for their own purchase orders only',
            },
            {
                'name': ROLE_CUSTOMER,
                'description': 'Customers - place orders and track their own orders',
            },
        ]

        created_count = 0
        existing_count = 0

        for group_config in groups_config:
            group, created = Group.objects.get_or_create(name=group_config['name'])

            if created:
                self.stdout.write(self.style.SUCCESS(f'✓ Created group: {group_config["name"]}'))
                created_count += 1
            else:
                self.stdout.write(f'  Group already exists: {group_config["name"]}')
                existing_count += 1

            # Model permissions only matter for the Django admin; API access is role based
            if group_config['name'] == ROLE_ADMINISTRATOR:
                group.permissions.set(Permission.objects.all())
                self.stdout.write('  Added all permissions to Administrator group')
            elif group_config['name'] == ROLE_PLANNER:
                group.permissions.set(Permission.objects.filter(content_type__app_label__in=PLANNING_APPS))
                self.stdout.write(f'  Added planning module permissions to {group_config["name"]} group')
            else:
                self.stdout.write(f'  No model permissions for {group_config["name"]} group')

        self.stdout.write(self.style.SUCCESS(
            f'\nCompleted: {created_count} groups created, {existing_count} groups already existed'
        ))
