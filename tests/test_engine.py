import datetime
import sys
import unittest
from pathlib import Path


ROOT = Path(__file__).resolve().parents[1]
if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))


from regatta_engine import build_document, parse_regatta  # noqa: E402
from regatta_extract import document_fingerprint, text_to_document  # noqa: E402
from regatta_models import (  # noqa: E402
    Confidence,
    Correction,
    FormatKind,
    Fragment,
    RosterEntry,
    TargetEntry,
)

START_SHEET = "Rk.  Bug Nr.  Nat  Sail  Name\n12  87  GER 4455  Schmidt"


class TestScenarios(unittest.TestCase):
    def test_single_number_before_sail(self):
        result = parse_regatta("5   GER 1234   Mueller", "1234")
        self.assertTrue(result.success)
        self.assertEqual(result.participant, TargetEntry(5, "GER1234"))
        self.assertIs(result.confidence, Confidence.HIGH)
        self.assertIsNone(result.feedback)

    def test_start_number_sheet_takes_rank_not_bow_number(self):
        result = parse_regatta(START_SHEET, "4455")
        self.assertEqual(result.participant.rank, 12)
        self.assertIs(result.format_kind, FormatKind.START_NUMBER_PREFIXED)
        self.assertIs(result.confidence, Confidence.MEDIUM)

    def test_sail_not_found_keeps_roster(self):
        result = parse_regatta("1 GER 1111 A\n2 GER 2222 B", "9999")
        self.assertFalse(result.success)
        self.assertIsNone(result.participant)
        self.assertEqual(
            result.all_results, (RosterEntry(1, "GER1111"), RosterEntry(2, "GER2222"))
        )
        self.assertEqual(result.total_participants, 2)
        self.assertIs(result.confidence, Confidence.LOW)
        self.assertIn("9999", result.feedback)

    def test_duplicated_rank_does_not_shrink_total(self):
        text = "1 GER 1111 A\n2 GER 2222 B\n3 GER 3333 C\n3 GER 3334 D\n5 GER 5555 E"
        result = parse_regatta(text, "5555")
        self.assertEqual(result.total_participants, 5)
        self.assertEqual(result.participant.rank, 5)
        self.assertIs(result.confidence, Confidence.HIGH)

    def test_implausible_rank_reports_no_placement(self):
        with self.assertLogs("regatta_context", level="WARNING"):
            result = parse_regatta("620 GER 1234 Mueller", "1234")
        self.assertFalse(result.success)
        self.assertIsNone(result.participant)
        self.assertIn("manually", result.feedback)

    def test_explicit_entry_count(self):
        result = parse_regatta("Laser Open\n45 Entries", "1234")
        self.assertEqual(result.total_participants, 45)
        self.assertEqual(result.all_results, ())


class TestCrossCheck(unittest.TestCase):
    def test_rank_above_estimate_lowers_confidence(self):
        text = "1 GER 1111 A\n2 GER 2222 B\n2 GER 4455 C"
        with self.assertLogs("regatta_engine", level="WARNING"):
            result = parse_regatta(text, "4455")
        self.assertEqual(result.participant.rank, 2)
        self.assertEqual(result.total_participants, 1)
        self.assertIs(result.confidence, Confidence.LOW)
        self.assertEqual(result.feedback, "Please double check: rank 2 of 1 participants?")

    def test_target_always_in_all_results(self):
        result = parse_regatta("Bib   Place   Nat  Sail\n17    3       GER  4455", "4455")
        sails = [entry.sail_number for entry in result.all_results]
        self.assertEqual(sails.count("GER4455"), 1)


class TestRosterAgreesWithTarget(unittest.TestCase):
    def test_rank_header_column_used_for_every_row(self):
        text = "Bib   Place   Nat  Sail\n17    3       GER  4455\n18    1       GER  5555"
        result = parse_regatta(text, "4455")
        ranks = {entry.sail_number: entry.rank for entry in result.all_results}
        self.assertEqual(result.participant.rank, 3)
        self.assertEqual(ranks, {"GER4455": 3, "GER5555": 1})
        self.assertEqual(result.total_participants, 3)

    def test_query_country_does_not_duplicate_row(self):
        result = parse_regatta("5 1234 Mueller", "NED 1234")
        self.assertEqual(result.participant, TargetEntry(5, "NED1234"))
        self.assertEqual(result.all_results, (RosterEntry(5, "NED1234"),))
        self.assertEqual(result.total_participants, 5)


class TestSelectionFeedback(unittest.TestCase):
    def test_several_candidates_are_reported(self):
        result = parse_regatta("3  14  GER 1234 Mueller", "1234")
        self.assertEqual(result.participant.rank, 3)
        self.assertIs(result.confidence, Confidence.MEDIUM)
        self.assertIn("Multiple numbers before the sail number (3, 14), took 3", result.feedback)

    def test_leading_token_guess_is_reported(self):
        result = parse_regatta("12 GER 12 Mueller", "GER 12")
        self.assertEqual(result.participant.rank, 12)
        self.assertIs(result.confidence, Confidence.LOW)
        self.assertIn("guessed from the leading token", result.feedback)

    def test_start_number_sheet_names_both_numbers(self):
        result = parse_regatta(START_SHEET, "4455")
        self.assertIn("(12, 87), took 12", result.feedback)


class TestInputHandling(unittest.TestCase):
    def test_missing_input(self):
        for source, sail in (("", "1234"), ("5 GER 1234", ""), ("5 GER 1234", "   "), ([], "1234")):
            result = parse_regatta(source, sail)
            self.assertFalse(result.success)
            self.assertIs(result.confidence, Confidence.LOW)
            self.assertEqual(result.feedback, "No text or no sail number supplied")

    def test_whitespace_only_text(self):
        result = parse_regatta("   \n  ", "1234")
        self.assertEqual(result.feedback, "No text or no sail number supplied")

    def test_internal_errors_are_folded_into_result(self):
        with self.assertLogs("regatta_engine", level="ERROR"):
            result = parse_regatta([("A", "not-a-number", 1)], "1234")
        self.assertFalse(result.success)
        self.assertTrue(result.feedback.startswith("Parsing failed:"))

    def test_repeated_calls_agree(self):
        text = "Kieler Woche Cup 2025\n1 GER 1111 A\n2 GER 4455 B"
        self.assertEqual(parse_regatta(text, "4455"), parse_regatta(text, "4455"))


class TestSources(unittest.TestCase):
    def test_single_page_of_fragments(self):
        frags = [
            Fragment("Bib", 10, 700, 25),
            Fragment("Place", 60, 700, 85),
            Fragment("Sail", 150, 700, 170),
            Fragment("17", 10, 680, 20),
            Fragment("3", 65, 680, 70),
            Fragment("GER 4455", 150, 680, 190),
        ]
        result = parse_regatta(frags, "GER 4455")
        self.assertEqual(result.participant, TargetEntry(3, "GER4455"))
        self.assertIs(result.confidence, Confidence.MEDIUM)
        self.assertIs(result.format_kind, FormatKind.RANK_PREFIXED)

    def test_list_of_pages(self):
        pages = [
            [("Kieler Woche 2025", 10, 760), ("1 GER 1111 A", 10, 700)],
            [("2 GER 4455 B", 10, 700)],
        ]
        document = build_document(pages)
        self.assertEqual(document.lines[-1].page, 2)
        result = parse_regatta(pages, "4455")
        self.assertEqual(result.participant.rank, 2)
        self.assertEqual(result.regatta_name, "Kieler Woche 2025")
        self.assertEqual(result.total_participants, 2)

    def test_fields_and_serialization(self):
        text = "Kieler Woche Cup 2025\nOptimist A\n13.07.2025\nR1 R2 R3\n5 GER 1234 Mueller"
        result = parse_regatta(text, "1234")
        self.assertEqual(result.regatta_name, "Kieler Woche Cup 2025")
        self.assertEqual(result.boat_class, "Optimist A")
        self.assertEqual(result.date, datetime.date(2025, 7, 13))
        self.assertEqual(result.race_count, 3)

        data = result.to_dict()
        self.assertEqual(data["participant"], {"rank": 5, "sailNumber": "GER1234"})
        self.assertEqual(data["date"], "2025-07-13")
        self.assertEqual(data["confidence"], "high")
        self.assertEqual(data["allResults"], [{"rank": 5, "sailNumber": "GER1234"}])


class TestCorrections(unittest.TestCase):
    def _fingerprint(self, text):
        return document_fingerprint(text_to_document(text))

    def test_learned_rank_wins(self):
        corrections = {self._fingerprint(START_SHEET): Correction("GER 4455", 9)}
        result = parse_regatta(START_SHEET, "4455", corrections=corrections)
        self.assertEqual(result.participant, TargetEntry(9, "GER4455"))
        self.assertIs(result.confidence, Confidence.HIGH)

    def test_correction_for_other_sail_is_ignored(self):
        corrections = {self._fingerprint(START_SHEET): Correction("GER 1111", 9)}
        result = parse_regatta(START_SHEET, "4455", corrections=corrections)
        self.assertEqual(result.participant.rank, 12)


if __name__ == "__main__":
    unittest.main()
