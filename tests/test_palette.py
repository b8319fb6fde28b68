from __future__ import annotations

import importlib
import sys
import unittest
from pathlib import Path


def load_palette():
    sys.path.insert(0, str(Path(__file__).resolve().parents[1] / "src"))
    return importlib.import_module("notekeeper.palette")


class PaletteTest(unittest.TestCase):
    def setUp(self) -> None:
        self.palette = load_palette()

    def test_palette_round_trips_through_hex(self) -> None:
        for entry in self.palette.PaletteColor:
            color = self.palette.color_from_hex(entry.hex_value)
            self.assertIs(color.palette, entry)
            self.assertEqual(self.palette.hex_from_color(color), entry.hex_value)
            self.assertEqual(self.palette.color_name(entry.hex_value), entry.label)

    def test_palette_order_and_default(self) -> None:
        labels = [entry.label for entry in self.palette.PaletteColor]
        self.assertEqual(labels, ["Blue", "Red", "Green", "Orange", "Purple", "Pink", "Yellow", "Gray"])
        self.assertEqual(self.palette.DEFAULT_HEX, "007AFF")
        self.assertIs(self.palette.DEFAULT_COLOR.palette, self.palette.PaletteColor.BLUE)
        self.assertEqual(self.palette.DEFAULT_COLOR.name, "Blue")

    def test_hex_input_is_normalised(self) -> None:
        self.assertEqual(self.palette.color_from_hex("#ff0000").palette, self.palette.PaletteColor.RED)
        self.assertEqual(self.palette.color_from_hex("  ffa500 ").name, "Orange")
        self.assertEqual(self.palette.coerce_hex("#ffc0cb"), "FFC0CB")

    def test_malformed_hex_falls_back_to_default_blue(self) -> None:
        for value in ("", "zzzzzz", "12345", "#GG0000"):
            with self.subTest(value=value):
                self.assertEqual(self.palette.color_from_hex(value), self.palette.DEFAULT_COLOR)
        self.assertEqual(self.palette.coerce_hex("nope"), "007AFF")
        self.assertEqual(self.palette.coerce_hex(None, fallback="808080"), "808080")

    def test_custom_colour_keeps_its_value(self) -> None:
        color = self.palette.color_from_hex("123456")
        self.assertTrue(color.is_custom)
        self.assertEqual(color.name, "Custom")
        self.assertEqual(self.palette.hex_from_color(color), "123456")
        self.assertEqual(self.palette.color_name("123456"), "Custom")

    def test_short_and_argb_forms(self) -> None:
        self.assertEqual(self.palette.coerce_hex("F00"), "FF0000")
        self.assertEqual(self.palette.coerce_hex("80123456"), "123456")
        self.assertTrue(self.palette.is_valid_hex("#abc"))
        self.assertFalse(self.palette.is_valid_hex("abcd"))

    def test_custom_rgb_matching_palette_maps_to_name(self) -> None:
        color = self.palette.Color.custom(1.0, 0.0, 0.0)
        self.assertEqual(self.palette.hex_from_color(color), "FF0000")

    def test_channels_are_clamped(self) -> None:
        color = self.palette.Color.custom(1.5, -0.2, 0.5)
        self.assertEqual(self.palette.hex_from_color(color), "FF007F")


if __name__ == "__main__":
    unittest.main()
