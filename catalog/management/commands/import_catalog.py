"""
Catalog — Management Command: import_catalog

Imports items, thresholds and stock levels from a CSV or XLSX file in the
catalog exchange format.

Usage::

    python manage.py import_catalog inventory.csv [--user admin]

Rows are applied independently: a failing row is reported and skipped.

@file catalog/management/commands/import_catalog.py
"""

import logging
from pathlib import Path

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand, CommandError

from catalog.exchange import CatalogExchangeService

logger = logging.getLogger('stockledger')


class Command(BaseCommand):
    help = 'Import the item catalog from a CSV or XLSX file.'

    def add_arguments(self, parser):
        parser.add_argument('path', type=str, help='Path to a .csv or .xlsx file.')
        parser.add_argument(
            '--user',
            type=str,
            help='Username recorded as the actor of the import.',
        )

    def handle(self, *args, **options):
        path = Path(options['path'])
        if not path.is_file():
            raise CommandError(f'File not found: {path}')

        actor = None
        if options.get('user'):
            User = get_user_model()
            try:
                actor = User.objects.get(username=options['user'])
            except User.DoesNotExist:
                raise CommandError(f'Unknown user: {options["user"]}')

        rows = CatalogExchangeService.read_upload(path.name, path.read_bytes())
        self.stdout.write(f'Importing {len(rows)} rows from {path}…')
        result = CatalogExchangeService.import_catalog(rows, actor=actor)

        for warning in result.warnings:
            self.stdout.write(self.style.WARNING(warning))
        for error in result.errors:
            self.stdout.write(self.style.ERROR(error))
        self.stdout.write(self.style.SUCCESS(
            f'Done. Imported: {result.success_count}, '
            f'warnings: {len(result.warnings)}, errors: {len(result.errors)}'
        ))
