"""
Tests for element-set parsing and satellite alias matching.

Run with:
    python -m pytest tests/test_elements.py -v
"""

import unittest
from datetime import datetime, timezone

from pydantic import ValidationError

from frame_service.catalog import default_catalog
from frame_service.config import STUB_ELEMENT_SETS
from frame_service.elements import (
    ElementSetMode,
    name_to_satellite_id,
    parse_element_sets,
    split_groups,
)
from frame_service.models import ElementSet
from tests.fakes import element_text


class TestElementSets(unittest.TestCase):
    """Test suite for three-line element parsing."""

    def setUp(self):
        self.aliases = {sat_id: sat.aliases for sat_id, sat in default_catalog().items()}

    def test_parses_both_satellites(self):
        found = parse_element_sets(element_text("G19", "G18"), self.aliases)

        self.assertEqual(set(found), {"G18", "G19"})
        self.assertEqual(found["G19"].line1, STUB_ELEMENT_SETS["G19"]["line1"])
        self.assertEqual(found["G18"].norad_id, 51850)

    def test_alias_variants(self):
        for name, expected in [
            ("GOES 19", "G19"),
            ("goes-19", "G19"),
            ("GOES19", "G19"),
            ("GOES U", "G19"),
            ("GOES 18", "G18"),
            ("GOES T", "G18"),
            ("GOES 16", None),
            ("GOES 190", None),
        ]:
            with self.subTest(name=name):
                self.assertEqual(name_to_satellite_id(name, self.aliases), expected)

    def test_unknown_names_and_junk_skipped(self):
        text = (
            "garbage header\n\n"
            + "GOES 16\n1 41866U 16071A   25225.50000000  .00000000  00000+0  00000+0 0  9990\n"
            + "2 41866   0.0500  95.0000 0001000 100.0000 260.0000  1.00270000 32000\n"
            + element_text("G18")
        )
        found = parse_element_sets(text, self.aliases)
        self.assertEqual(list(found), ["G18"])

    def test_first_match_wins(self):
        second = dict(STUB_ELEMENT_SETS["G18"], name="GOES 18 (SPARE)")
        text = element_text("G18") + "\n".join([second["name"], second["line1"], second["line2"]])
        self.assertEqual(parse_element_sets(text, self.aliases)["G18"].name, "GOES 18")

    def test_split_groups_requires_line_prefixes(self):
        self.assertEqual(split_groups("NAME\n2 wrong\n1 order\n"), [])

    def test_empty_text(self):
        self.assertEqual(parse_element_sets("", self.aliases), {})


class TestElementSetModel(unittest.TestCase):

    def test_epoch(self):
        es = ElementSet(**STUB_ELEMENT_SETS["G19"])
        self.assertEqual(es.epoch_field, "25225.52405752")
        self.assertEqual(es.epoch.date(), datetime(2025, 8, 13, tzinfo=timezone.utc).date())

    def test_lines_are_stripped_and_checked(self):
        stub = STUB_ELEMENT_SETS["G18"]
        es = ElementSet(line1="  " + stub["line1"] + "\n", line2=stub["line2"])
        self.assertEqual(es.line1, stub["line1"])
        with self.assertRaises(ValidationError):
            ElementSet(line1=stub["line2"], line2=stub["line1"])

    def test_mode_flag(self):
        self.assertIs(ElementSetMode.from_flag(True), ElementSetMode.LIVE)
        self.assertIs(ElementSetMode.from_flag(False), ElementSetMode.STUB)


if __name__ == "__main__":
    unittest.main()
