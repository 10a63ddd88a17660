"""
Bring the database schema up to date and seed the rows BondPOS needs to start.

Safe to re-run: every seed step runs in its own savepoint and a step that
fails because its rows already exist is reported and skipped.

Usage:
    python manage.py run_all_migrations
    python manage.py run_all_migrations --branch "Riverside:riverside:secret"
"""

import logging

from django.conf import settings
from django.core.management import call_command
from django.core.management.base import BaseCommand, CommandError
from django.db import transaction, IntegrityError

from authentication.models import Branch, BusinessSettings, CustomUser, Permission, Role, RolePermission
from authentication.permissions import PERMISSION_CATALOG, DEFAULT_PERMISSIONS
from orders.models import OrderCounter

logger = logging.getLogger(__name__)


def seed_permissions():
    created = 0
    for name, (category, description) in PERMISSION_CATALOG.items():
        _, was_created = Permission.objects.get_or_create(
            name=name, defaults={'category': category, 'description': description}
        )
        created += was_created
    return f"{created} new permissions"


def seed_roles():
    created = 0
    for role_name, permission_names in DEFAULT_PERMISSIONS.items():
        role, _ = Role.objects.get_or_create(name=role_name, defaults={'description': f"Default {role_name.lower()} role"})
        for permission in Permission.objects.filter(name__in=permission_names):
            _, was_created = RolePermission.objects.get_or_create(role=role, permission=permission)
            created += was_created
    return f"{created} new role permissions"


def seed_settings():
    BusinessSettings.load()
    OrderCounter.objects.get_or_create(pk=1)
    return "settings and order counter ready"


def seed_admin():
    username = settings.BONDPOS_ADMIN_USERNAME
    # raises IntegrityError when the account exists
    CustomUser.objects.create_superuser(username, settings.BONDPOS_ADMIN_PASSWORD, full_name='Administrator')
    return f"admin user '{username}' created"


def seed_branch(name, username, password):
    def step():
        branch = Branch(name=name, username=username)
        branch.set_password(password)
        branch.save(force_insert=True)
        branch.get_login_user()
        return f"branch '{name}' created"
    return step


def parse_branch(value):
    parts = value.split(':', 2)
    if len(parts) != 3 or not all(parts):
        raise CommandError(f"Invalid --branch '{value}', expected NAME:USERNAME:PASSWORD")
    return parts


class Command(BaseCommand):
    help = "Apply the schema and seed permissions, roles, settings and the admin account"

    def add_arguments(self, parser):
        parser.add_argument(
            '--branch',
            action='append',
            default=[],
            metavar='NAME:USERNAME:PASSWORD',
            help="Create a branch login (repeatable)",
        )
        parser.add_argument('--skip-migrate', action='store_true', help="Only run the seed steps")

    def handle(self, *args, **options):
        branches = [parse_branch(value) for value in options['branch']]

        if not options['skip_migrate']:
            self.stdout.write("Applying schema...")
            call_command('migrate', run_syncdb=True, interactive=False, verbosity=max(options['verbosity'] - 1, 0))
            logger.info("Migration step 'schema' applied")

        steps = [
            ('permissions', seed_permissions),
            ('roles', seed_roles),
            ('settings', seed_settings),
            ('admin user', seed_admin),
        ]
        steps += [(f"branch {name}", seed_branch(name, username, password)) for name, username, password in branches]

        applied, skipped = [], []
        for label, step in steps:
            try:
                with transaction.atomic():
                    result = step()
            except IntegrityError as e:
                logger.warning(f"Migration step '{label}' skipped: already exists ({e})")
                self.stdout.write(self.style.WARNING(f"- {label}: already exists, skipping"))
                skipped.append(label)
                continue
            except Exception as e:
                logger.error(f"Migration step '{label}' failed: {e}")
                raise CommandError(f"Step '{label}' failed: {e}") from e

            logger.info(f"Migration step '{label}' applied: {result}")
            self.stdout.write(self.style.SUCCESS(f"✓ {label}: {result}"))
            applied.append(label)

        summary = f"{len(applied)} steps applied, {len(skipped)} skipped"
        logger.info(f"Migrations finished: {summary}")
        self.stdout.write(self.style.SUCCESS(summary))
