from __future__ import annotations

from django.core.management.base import BaseCommand

from tournaments import services


class Command(BaseCommand):
    help = "Seed demo organizer, coach and event data for EntryDesk"

    def add_arguments(self, parser):
        parser.add_argument("--no-output", action="store_true", help="Suppress success output")

    def handle(self, *args, **options):
        event = services.seed_demo_data()
        if not options["no_output"]:
            self.stdout.write(self.style.SUCCESS(f"Seeded event: {event.title} ({event.start_date:%Y-%m-%d})"))
            self.stdout.write(f"Log in as 'organizer' or 'coach' with password '{services.DEMO_PASSWORD}'.")
