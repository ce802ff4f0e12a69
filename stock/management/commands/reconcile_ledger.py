"""
Stock — Management Command: reconcile_ledger

Replays the movement ledger and compares it with every materialized
balance. Drift is reported, never corrected.

Usage::

    python manage.py reconcile_ledger [--fail-on-drift]

@file stock/management/commands/reconcile_ledger.py
"""

from django.core.management.base import BaseCommand, CommandError

from stock.services import BalanceService


class Command(BaseCommand):
    help = 'Verify that every stock balance equals the sum of its movements.'

    def add_arguments(self, parser):
        parser.add_argument(
            '--fail-on-drift',
            action='store_true',
            help='Exit with an error when any pair has drifted.',
        )

    def handle(self, *args, **options):
        results = BalanceService.reconcile_all()
        drifted = [r for r in results if not r.matches]

        for result in drifted:
            self.stdout.write(self.style.ERROR(
                f'DRIFT item={result.item_id} location={result.location_id} '
                f'balance={result.projected} ledger={result.replayed}'
            ))

        summary = f'Checked {len(results)} balances, {len(drifted)} drifted.'
        if drifted and options['fail_on_drift']:
            raise CommandError(summary)
        style = self.style.WARNING if drifted else self.style.SUCCESS
        self.stdout.write(style(summary))
