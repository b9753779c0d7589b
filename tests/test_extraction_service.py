import unittest

from geotag_ocr.models.records import NOT_FOUND
from geotag_ocr.services import extraction_service as ex


SAMPLE = "...9AB8+2X Lahore, Punjab 31.5204,74.3587 some noise 14:30 08/11/2023..."


class NormalizeTextTests(unittest.TestCase):
    def test_collapses_newlines_and_runs(self):
        self.assertEqual(ex.normalize_text("9AB8+2X\nLahore \t\n Punjab"), "9AB8+2X Lahore Punjab")


class PlusCodeTests(unittest.TestCase):
    def test_sample_plus_code_with_address(self):
        code = ex.extract_plus_code(ex.normalize_text(SAMPLE))
        self.assertTrue(code.startswith("9AB8+2X"))
        self.assertIn("Lahore, Punjab", code)

    def test_suffix_stops_at_first_token_that_does_not_fit(self):
        text = "Location 7JVW+QF, Gulberg, Lahore. Lat 31.5"
        self.assertEqual(ex.extract_plus_code(text), "7JVW+QF, Gulberg, Lahore")

    def test_trailing_separators_are_not_kept(self):
        self.assertEqual(ex.extract_plus_code("8FV9+XX , ."), "8FV9+XX")

    def test_single_character_token_ends_suffix(self):
        self.assertEqual(ex.extract_plus_code("8FV9+XX Model Town A block"), "8FV9+XX Model Town")

    def test_case_insensitive(self):
        self.assertEqual(ex.extract_plus_code("code 9ab8+2x"), "9ab8+2x")

    def test_no_plus_code(self):
        self.assertIsNone(ex.extract_plus_code("nothing here 12+3 AB+CD"))

    def test_first_occurrence_wins(self):
        self.assertEqual(ex.extract_plus_code("9AB8+2X. 7JVW+QF"), "9AB8+2X")


class CoordinateTests(unittest.TestCase):
    def test_sample_coordinates(self):
        lat, lon = ex.extract_coordinates(ex.normalize_text(SAMPLE))
        self.assertEqual(lat, "31.5204")
        self.assertEqual(lon, "74.3587")

    def test_comma_decimal_separator(self):
        self.assertEqual(ex.extract_coordinates("Lat 31,5204 Long 74,3587"), ("31.5204", "74.3587"))

    def test_values_outside_ranges_are_never_selected(self):
        lat, lon = ex.extract_coordinates("12.3456 45.6789 100.1234 -31.5204 22.9999 78.0001")
        self.assertIsNone(lat)
        self.assertIsNone(lon)

    def test_first_in_range_wins_independently(self):
        text = "74.1111 12.0000 31.2222 33.3333 61.4444"
        self.assertEqual(ex.extract_coordinates(text), ("31.2222", "74.1111"))

    def test_short_fraction_is_not_a_coordinate(self):
        self.assertEqual(ex.find_coordinates("31.52 and 74.35"), [])

    def test_whole_number_formatting(self):
        self.assertEqual(ex.extract_coordinates("74.000 30.500"), ("30.5", "74"))

    def test_custom_ranges(self):
        lat, lon = ex.extract_coordinates("51.5072 -0.1276", (49.0, 59.0), (-8.0, 2.0))
        self.assertEqual((lat, lon), ("51.5072", "-0.1276"))


class TimestampTests(unittest.TestCase):
    def test_sample_timestamp(self):
        self.assertEqual(ex.extract_timestamp(ex.normalize_text(SAMPLE)), "14:30 08/11/2023")

    def test_twelve_hour_time_then_date(self):
        self.assertEqual(ex.extract_timestamp("at 02:15:09 PM 1/2/24 ok"), "02:15:09 PM 1/2/24")

    def test_date_then_twelve_hour_time(self):
        self.assertEqual(ex.extract_timestamp("08/11/2023 2:30 pm"), "08/11/2023 2:30 pm")

    def test_date_then_time_without_marker(self):
        self.assertEqual(ex.extract_timestamp("08/11/2023 14:30:05"), "08/11/2023 14:30:05")

    def test_twelve_hour_pattern_has_priority(self):
        text = "08/11/2023 9:00 then 10:45 AM 09/11/2023"
        self.assertEqual(ex.extract_timestamp(text), "10:45 AM 09/11/2023")

    def test_no_timestamp(self):
        self.assertIsNone(ex.extract_timestamp("14:30 only and 08/11 partial"))


class ExtractTests(unittest.TestCase):
    def test_full_sample(self):
        result = ex.extract(SAMPLE)
        self.assertTrue(result.plus_code.startswith("9AB8+2X"))
        self.assertEqual(result.latitude, "31.5204")
        self.assertEqual(result.longitude, "74.3587")
        self.assertEqual(result.timestamp, "14:30 08/11/2023")

    def test_multiline_recognition_output(self):
        raw = "9AB8+2X\nLahore,\nPunjab, Pakistan\n(31.5204, 74.3587)\n08/11/2023\n2:30 PM"
        result = ex.extract(raw)
        self.assertEqual(result.plus_code, "9AB8+2X Lahore, Punjab, Pakistan")
        self.assertEqual((result.latitude, result.longitude), ("31.5204", "74.3587"))
        self.assertEqual(result.timestamp, "08/11/2023 2:30 PM")

    def test_empty_text(self):
        self.assertEqual(ex.extract(""), ex.ExtractionResult(None, None, None, None))

    def test_deterministic(self):
        self.assertEqual(ex.extract(SAMPLE), ex.extract(SAMPLE))

    def test_to_record_uses_sentinel_for_misses(self):
        record = ex.to_record("img_001.jpg", "noise", ex.extract("noise"))
        self.assertEqual(record.image_name, "img_001.jpg")
        self.assertEqual(record.plus_code, NOT_FOUND)
        self.assertEqual(record.latitude, NOT_FOUND)
        self.assertEqual(record.longitude, NOT_FOUND)
        self.assertEqual(record.timestamp, NOT_FOUND)
        self.assertEqual(record.original_text, "noise")

    def test_to_record_keeps_matches(self):
        record = ex.to_record("a.png", SAMPLE, ex.extract(SAMPLE))
        self.assertEqual(record.latitude, "31.5204")
        self.assertEqual(record.original_text, SAMPLE)


if __name__ == "__main__":
    unittest.main()
