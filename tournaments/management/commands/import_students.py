from __future__ import annotations

import pathlib

from django.core.management.base import BaseCommand, CommandError

from tournaments import models, spreadsheets


class Command(BaseCommand):
    help = "Import students into a dojo from an .xlsx or .csv roster"

    def add_arguments(self, parser):
        parser.add_argument("--dojo", required=True, type=int, help="ID of the dojo")
        parser.add_argument("--file", required=True, help="Path to the spreadsheet")

    def handle(self, *args, **options):
        dojo = models.Dojo.objects.filter(pk=options["dojo"]).first()
        if not dojo:
            raise CommandError(f"Dojo with id {options['dojo']} not found")
        path = pathlib.Path(options["file"])
        if not path.exists():
            raise CommandError(f"File '{path}' does not exist")

        with path.open("rb") as handle:
            try:
                rows = spreadsheets.parse_student_rows(handle)
            except ValueError as exc:
                raise CommandError(str(exc)) from exc

        for index, row in enumerate(rows, start=1):
            for field, warning in row["warnings"].items():
                self.stdout.write(self.style.WARNING(f"Row {index} {field}: {warning} (field skipped)"))

        result = spreadsheets.import_students(dojo, rows)
        for error in result["errors"]:
            self.stderr.write(error)
        self.stdout.write(self.style.SUCCESS(f"Imported {result['created']} students into {dojo.name}."))
