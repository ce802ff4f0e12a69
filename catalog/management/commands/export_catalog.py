"""
Catalog — Management Command: export_catalog

Usage::

    python manage.py export_catalog [--output inventory.csv]

Writes to stdout when no output path is given.

@file catalog/management/commands/export_catalog.py
"""

from pathlib import Path

from django.core.management.base import BaseCommand

from catalog.exchange import CatalogExchangeService


class Command(BaseCommand):
    help = 'Export the active item catalog with stock levels as CSV.'

    def add_arguments(self, parser):
        parser.add_argument('--output', type=str, help='Destination file path.')

    def handle(self, *args, **options):
        content = CatalogExchangeService.export_catalog_csv()
        if options.get('output'):
            Path(options['output']).write_text(content, encoding='utf-8')
            self.stdout.write(self.style.SUCCESS(f'Catalog exported to {options["output"]}'))
        else:
            self.stdout.write(content, ending='')
