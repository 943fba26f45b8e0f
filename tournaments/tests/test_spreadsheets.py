"""Roster import parsing and entry export files."""

from __future__ import annotations

import io
from datetime import date, datetime
from decimal import Decimal

from django.core.files.uploadedfile import SimpleUploadedFile
from django.test import SimpleTestCase, TestCase
from openpyxl import Workbook, load_workbook

from tournaments import models, spreadsheets

from .utils import make_user


def _csv(text: str, name: str = "roster.csv") -> SimpleUploadedFile:
    return SimpleUploadedFile(name, text.encode("utf-8"), content_type="text/csv")


def _xlsx(rows: list[list], name: str = "roster.xlsx") -> SimpleUploadedFile:
    workbook = Workbook()
    sheet = workbook.active
    for row in rows:
        sheet.append(row)
    buffer = io.BytesIO()
    workbook.save(buffer)
    return SimpleUploadedFile(name, buffer.getvalue())


class NormalizeDobTests(SimpleTestCase):
    def test_accepted_formats(self) -> None:
        cases = {
            "2010-04-12": "2010-04-12",
            "2010-04-12 00:00:00": "2010-04-12",
            "12/04/2010": "2010-04-12",
            "12-04-2010": "2010-04-12",
            "40280": "2010-04-12",
            40280: "2010-04-12",
            40280.75: "2010-04-12",
        }
        for value, expected in cases.items():
            with self.subTest(value=value):
                self.assertEqual(spreadsheets.normalize_dob(value), expected)

    def test_date_objects(self) -> None:
        self.assertEqual(spreadsheets.normalize_dob(date(2011, 9, 3)), "2011-09-03")
        self.assertEqual(spreadsheets.normalize_dob(datetime(2011, 9, 3, 8, 30)), "2011-09-03")

    def test_rejected_values(self) -> None:
        for value in (None, "", "yesterday", "31/02/2010", "01/01/1850", "2010-13-01", 0, 70000, True):
            with self.subTest(value=value):
                self.assertIsNone(spreadsheets.normalize_dob(value))


class ColumnMatchingTests(SimpleTestCase):
    def test_keywords_pick_first_matching_header(self) -> None:
        columns = spreadsheets.match_columns(["Student Name", "Sex", "Belt", "Weight (kg)", "Date of Birth"])

        self.assertEqual(columns, {"name": 0, "gender": 1, "rank": 2, "weight": 3, "dob": 4})

    def test_missing_columns_are_none(self) -> None:
        columns = spreadsheets.match_columns(["Athlete", "Club"])

        self.assertEqual(columns["name"], 0)
        self.assertIsNone(columns["gender"])
        self.assertIsNone(columns["dob"])


class RowValidationTests(SimpleTestCase):
    def test_clean_row_has_no_warnings(self) -> None:
        row = spreadsheets.build_row(name="Aiko", gender="F", rank="Brown belt", weight="52.5 kg", dob="12/04/2010")

        self.assertEqual(row["gender"], "female")
        self.assertEqual(row["dob"], "2010-04-12")
        self.assertEqual(row["warnings"], {})

    def test_each_field_reports_its_own_warning(self) -> None:
        row = spreadsheets.build_row(name="Ben", gender="x", rank="ninja", weight="heavy", dob="someday")

        self.assertEqual(
            row["warnings"],
            {
                "gender": "Unknown gender (use male or female)",
                "rank": "Unknown rank format. valid: white, yellow, orange...",
                "weight": "Invalid weight format (must be a number)",
                "dob": "Invalid date format (use YYYY-MM-DD)",
            },
        )

    def test_weight_above_column_limit(self) -> None:
        row = spreadsheets.build_row(name="Ben", weight="1200")

        self.assertEqual(row["warnings"], {"weight": "Weight is out of range"})

    def test_gender_aliases(self) -> None:
        cases = {
            "m": "male",
            "M": "male",
            "male": "male",
            "Man": "male",
            "boy": "male",
            " BOY ": "male",
            "f": "female",
            "Female": "female",
            "woman": "female",
            " Girl ": "female",
            "GIRL": "female",
            "X": "x",
            "": "",
            None: "",
        }
        for value, expected in cases.items():
            with self.subTest(value=value):
                self.assertEqual(spreadsheets.normalize_gender(value), expected)

    def test_parse_weight_takes_leading_number(self) -> None:
        self.assertEqual(spreadsheets.parse_weight("45 kg"), Decimal("45.00"))
        self.assertEqual(spreadsheets.parse_weight(61.25), Decimal("61.25"))
        self.assertIsNone(spreadsheets.parse_weight("kg 45"))

    def test_student_fields_skip_warned_values(self) -> None:
        row = spreadsheets.build_row(name="Ben", gender="male", rank="ninja", weight="61", dob="2011-09-03")

        fields = spreadsheets.student_fields(row)

        self.assertEqual(
            fields,
            {
                "name": "Ben",
                "gender": "male",
                "weight": Decimal("61.00"),
                "date_of_birth": date(2011, 9, 3),
            },
        )


class ParseStudentRowsTests(SimpleTestCase):
    def test_csv_roster(self) -> None:
        upload = _csv(
            "Name,Gender,Rank,Weight,Date of Birth\n"
            "Aiko Tanaka,F,brown,52.5,2010-04-12\n"
            ",,,,\n"
            ",M,green,61,2011-09-03\n"
            "Ben Okafor,m,,,\n"
        )

        rows = spreadsheets.parse_student_rows(upload)

        self.assertEqual([row["name"] for row in rows], ["Aiko Tanaka", "Ben Okafor"])
        self.assertEqual(rows[0]["weight"], "52.5")
        self.assertEqual(rows[1]["gender"], "male")
        self.assertEqual(rows[1]["dob"], "")

    def test_csv_rows_wider_than_header_keep_their_cells(self) -> None:
        upload = _csv("Name,Gender\nAiko Tanaka,f,\nBen Okafor,m,extra\nChris Dale\n")

        rows = spreadsheets.parse_student_rows(upload)

        self.assertEqual([row["name"] for row in rows], ["Aiko Tanaka", "Ben Okafor", "Chris Dale"])
        self.assertEqual([row["gender"] for row in rows], ["female", "male", ""])
        self.assertEqual([row["warnings"] for row in rows], [{}, {}, {}])

    def test_xlsx_roster_with_date_cells(self) -> None:
        upload = _xlsx(
            [
                ["Athlete", "Belt", "Weight", "DOB"],
                ["Aiko Tanaka", "brown", 52.5, datetime(2010, 4, 12)],
                ["Ben Okafor", "green", 61, None],
            ]
        )

        rows = spreadsheets.parse_student_rows(upload)

        self.assertEqual(len(rows), 2)
        self.assertEqual(rows[0]["dob"], "2010-04-12")
        self.assertEqual(rows[0]["weight"], "52.5")
        self.assertEqual(rows[1]["weight"], "61")
        self.assertEqual(rows[1]["warnings"], {})

    def test_header_only_file_is_empty(self) -> None:
        with self.assertRaisesMessage(ValueError, spreadsheets.EMPTY_FILE_MESSAGE):
            spreadsheets.parse_student_rows(_csv("Name,Gender\n"))

    def test_blank_file_is_empty(self) -> None:
        with self.assertRaisesMessage(ValueError, spreadsheets.EMPTY_FILE_MESSAGE):
            spreadsheets.parse_student_rows(_csv(""))

    def test_missing_name_column(self) -> None:
        with self.assertRaisesMessage(ValueError, "Could not find a name column in the header row."):
            spreadsheets.parse_student_rows(_csv("Gender,Rank\nF,brown\n"))

    def test_unsupported_extension(self) -> None:
        with self.assertRaisesMessage(ValueError, "Upload an .xlsx or .csv file."):
            spreadsheets.read_rows(_csv("Name\nAiko\n", name="roster.txt"))

    def test_corrupt_workbook(self) -> None:
        upload = SimpleUploadedFile("roster.xlsx", b"not a zip archive")

        with self.assertRaisesMessage(ValueError, "Unable to read the uploaded file."):
            spreadsheets.read_rows(upload)


class ImportStudentsTests(TestCase):
    def setUp(self) -> None:
        self.dojo = models.Dojo.objects.create(coach=make_user("kenji"), name="Shinbukan")

    def test_rows_import_independently(self) -> None:
        rows = [
            spreadsheets.build_row(name="Aiko Tanaka", gender="female", rank="brown", weight="52.5", dob="2010-04-12"),
            spreadsheets.build_row(name="", gender="male"),
            spreadsheets.build_row(name="Ben Okafor", gender="robot", weight="61"),
        ]

        result = spreadsheets.import_students(self.dojo, rows)

        self.assertEqual(result["created"], 2)
        self.assertEqual(result["errors"], ["Row 2: could not import unnamed."])
        self.assertEqual([detail["status"] for detail in result["details"]], ["success", "error", "success"])
        ben = models.Student.objects.get(name="Ben Okafor")
        self.assertEqual(ben.gender, "")
        self.assertEqual(ben.weight, Decimal("61.00"))
        aiko = models.Student.objects.get(name="Aiko Tanaka")
        self.assertEqual(aiko.date_of_birth, date(2010, 4, 12))


class ExportTests(SimpleTestCase):
    rows = [
        {
            "Student": "Aiko Tanaka",
            "Dojo": "Shinbukan",
            "Category": "Open Kata",
            "Day": "Day 1",
            "Type": "Kata",
            "Status": "submitted",
            "Coach": "Kenji",
            "Email": "kenji@example.com",
        }
    ]

    def test_entries_workbook(self) -> None:
        workbook = load_workbook(io.BytesIO(spreadsheets.entries_workbook(self.rows)))
        sheet = workbook["Entries"]

        values = list(sheet.iter_rows(values_only=True))

        self.assertEqual(values[0], tuple(spreadsheets.EXPORT_COLUMNS))
        self.assertEqual(values[1][0], "Aiko Tanaka")
        self.assertEqual(values[1][-1], "kenji@example.com")

    def test_entries_csv(self) -> None:
        lines = spreadsheets.entries_csv(self.rows).splitlines()

        self.assertEqual(lines[0], "Student,Dojo,Category,Day,Type,Status,Coach,Email")
        self.assertEqual(lines[1], "Aiko Tanaka,Shinbukan,Open Kata,Day 1,Kata,submitted,Kenji,kenji@example.com")

    def test_empty_export_keeps_headers(self) -> None:
        lines = spreadsheets.entries_csv([]).splitlines()

        self.assertEqual(lines, ["Student,Dojo,Category,Day,Type,Status,Coach,Email"])

    def test_template_workbook_headers(self) -> None:
        workbook = load_workbook(io.BytesIO(spreadsheets.template_workbook()))

        header = next(workbook["Template"].iter_rows(values_only=True))

        self.assertEqual(header, spreadsheets.TEMPLATE_HEADERS)
