"""
Run call reconciliation against the voice platform from the command line.

Usage:
    python manage.py reconcile_calls
    python manage.py reconcile_calls --hours-back 72
"""
import json

from django.core.management.base import BaseCommand, CommandError

from calls.services.reconciliation import reconcile


class Command(BaseCommand):
    help = "List recent conversations from the voice platform and repair missing local call data."

    def add_arguments(self, parser):
        parser.add_argument(
            '--hours-back',
            type=int,
            default=None,
            help='Lookback window in hours (defaults to RECONCILE_HOURS_BACK)',
        )
        parser.add_argument(
            '--agent-id',
            default=None,
            help='Only reconcile conversations of this agent (defaults to VOICE_AGENT_ID)',
        )

    def handle(self, *args, **options):
        hours_back = options['hours_back']
        if hours_back is not None and hours_back <= 0:
            raise CommandError('--hours-back must be a positive number of hours')

        report = reconcile(hours_back=hours_back, agent_id=options['agent_id'])
        self.stdout.write(json.dumps(report.as_dict(), indent=2))
        if report.errors:
            self.stderr.write(self.style.WARNING(f"{report.errors} conversation(s) could not be reconciled"))
        else:
            self.stdout.write(self.style.SUCCESS('Reconciliation complete'))
