import datetime
import sys
import unittest
from pathlib import Path


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


from regatta_extract import text_to_document  # noqa: E402
from regatta_fields import (  # noqa: E402
    CompoundNameStrategy,
    EventYearStrategy,
    FieldStrategy,
    TitleLineStrategy,
    extract_boat_class,
    extract_date,
    extract_race_count,
    extract_regatta_name,
    first_match,
    placeholder_name,
)
from regatta_models import FormatProfile  # noqa: E402


def _date(text: str):
    return extract_date(text_to_document(text))


class TestDate(unittest.TestCase):
    def test_textual_and_numeric_converge(self):
        self.assertEqual(_date("Kiel, 13 Jul 2025"), datetime.date(2025, 7, 13))
        self.assertEqual(_date("Kiel, 13.07.2025"), datetime.date(2025, 7, 13))

    def test_german_month_names(self):
        self.assertEqual(_date("13. März 2025"), datetime.date(2025, 3, 13))
        self.assertEqual(_date("3. Oktober 2024"), datetime.date(2024, 10, 3))
        self.assertEqual(_date("1 September 2024"), datetime.date(2024, 9, 1))

    def test_textual_month_preferred_over_numeric(self):
        self.assertEqual(
            _date("Meldeschluss 01.06.2025\nRegatta 13 Jul 2025"), datetime.date(2025, 7, 13)
        )

    def test_two_digit_year_and_slashes(self):
        self.assertEqual(_date("13/07/25"), datetime.date(2025, 7, 13))

    def test_iso_date(self):
        self.assertEqual(_date("Created 2025-07-13"), datetime.date(2025, 7, 13))

    def test_impossible_date_is_skipped(self):
        self.assertIsNone(_date("31.02.2025"))
        self.assertIsNone(_date("no date here"))


class TestBoatClass(unittest.TestCase):
    def test_canonical_names(self):
        cases = {
            "Optimist B Gruppe": "Optimist B",
            "Opti Training": "Optimist",
            "ILCA6 Results": "ILCA 6",
            "420er Jugend": "420",
            "OK Jolle": "OK-Jolle",
            "O'pen Skiff": "O'pen Skiff",
        }
        for text, expected in cases.items():
            self.assertEqual(extract_boat_class(text_to_document(text)), expected, text)

    def test_no_class(self):
        self.assertIsNone(extract_boat_class(text_to_document("Kieler Woche")))


class TestRaceCount(unittest.TestCase):
    def test_highest_race_label(self):
        doc = text_to_document("Rk Nat Sail R1 R2 R3 R10 Total")
        self.assertEqual(extract_race_count(doc), 10)

    def test_german_labels(self):
        self.assertEqual(extract_race_count(text_to_document("WF 1  WF 2  Wettfahrt 3")), 3)

    def test_out_of_range_ignored(self):
        self.assertEqual(extract_race_count(text_to_document("R25 GER1234")), 0)


class TestRegattaName(unittest.TestCase):
    def test_event_with_year(self):
        doc = text_to_document("Ergebnisliste\nKieler Woche Cup 2025\n1 GER 1111 A")
        self.assertEqual(EventYearStrategy().try_extract(doc), "Kieler Woche Cup 2025")
        self.assertEqual(extract_regatta_name(doc, FormatProfile()), "Kieler Woche Cup 2025")

    def test_compound_word(self):
        doc = text_to_document("Ergebnisse Herbstpokal\n1 GER 1111 A")
        self.assertIsNone(EventYearStrategy().try_extract(doc))
        self.assertEqual(CompoundNameStrategy().try_extract(doc), "Herbstpokal")

    def test_title_line_skips_labels(self):
        doc = text_to_document("Nr. Name Club\nSommerfest am See\n1 GER 1111 A")
        self.assertEqual(extract_regatta_name(doc, FormatProfile()), "Sommerfest am See")

    def test_vendor_title(self):
        doc = text_to_document("manage2sail\nHerbst Regatta Wannsee\nFinal Overall Results\n1 GER 1111 A")
        self.assertEqual(extract_regatta_name(doc, FormatProfile()), "manage2sail")
        self.assertEqual(
            extract_regatta_name(doc, FormatProfile(vendor="manage2sail")), "Herbst Regatta Wannsee"
        )

    def test_title_scan_window(self):
        doc = text_to_document("1\n2\n3\nLong enough title")
        self.assertIsNone(TitleLineStrategy(scan_lines=3).try_extract(doc))
        self.assertEqual(TitleLineStrategy(scan_lines=4).try_extract(doc), "Long enough title")

    def test_placeholder(self):
        self.assertEqual(placeholder_name("Laser"), "Regatta (Laser)")
        self.assertEqual(placeholder_name(None, datetime.date(2025, 7, 13)), "Regatta 13.07.2025")


class _Fixed(FieldStrategy):
    def __init__(self, name, value):
        self.name = name
        self.value = value

    def try_extract(self, document):
        return self.value


class TestFirstMatch(unittest.TestCase):
    def test_priority_order(self):
        doc = text_to_document("x")
        strategies = [_Fixed("a", None), _Fixed("b", "second"), _Fixed("c", "third")]
        self.assertEqual(first_match(strategies, doc), "second")
        self.assertIsNone(first_match([_Fixed("a", None)], doc))


if __name__ == "__main__":
    unittest.main()
