from __future__ import annotations

import unittest

from core.actions import (
    ApplyPreset,
    ResizeHeight,
    ResizeWidth,
    SetCrop,
    SetFit,
    SetFormat,
    SetMask,
    SetOffset,
    SetQuality,
    apply_action,
    label_for,
)
from core.presets import CATEGORIES, PRESETS, find_preset, presets_by_category
from core.state import CropRect, FitMode, MaskShape, Offset, OutputFormat, ProcessOptions


class ApplyActionTests(unittest.TestCase):
    def setUp(self) -> None:
        self.base = ProcessOptions(target_width=800, target_height=600)

    def test_resize_zero_means_auto(self) -> None:
        self.assertIsNone(apply_action(self.base, ResizeWidth(0)).target_width)
        self.assertEqual(apply_action(self.base, ResizeHeight(300)).target_height, 300)

    def test_quality_is_clamped(self) -> None:
        self.assertEqual(apply_action(self.base, SetQuality(1.7)).quality, 1.0)
        self.assertEqual(apply_action(self.base, SetQuality(-1)).quality, 0.0)

    def test_simple_setters(self) -> None:
        o = self.base
        o = apply_action(o, SetFit(FitMode.FILL))
        o = apply_action(o, SetMask(MaskShape.SQUARE))
        o = apply_action(o, SetFormat(OutputFormat.AVIF))
        o = apply_action(o, SetCrop(CropRect(1, 2, 3, 4)))
        o = apply_action(o, SetOffset(Offset(5, 6)))
        self.assertEqual(o.fit, FitMode.FILL)
        self.assertEqual(o.mask, MaskShape.SQUARE)
        self.assertEqual(o.format, OutputFormat.AVIF)
        self.assertEqual(o.crop, CropRect(1, 2, 3, 4))
        self.assertEqual(o.offset, Offset(5, 6))
        # Inputs are never mutated
        self.assertEqual(self.base, ProcessOptions(target_width=800, target_height=600))

    def test_unknown_action_raises(self) -> None:
        with self.assertRaises(TypeError):
            apply_action(self.base, object())

    def test_labels(self) -> None:
        self.assertEqual(label_for(ResizeWidth(10)), "Resize")
        self.assertEqual(label_for(SetOffset(Offset())), "Move Image")
        preset = find_preset("og-image")
        self.assertEqual(label_for(ApplyPreset(preset)), preset.label)


class PresetTests(unittest.TestCase):
    def test_ids_are_unique(self) -> None:
        ids = [p.preset_id for p in PRESETS]
        self.assertEqual(len(ids), len(set(ids)))

    def test_every_preset_is_categorised(self) -> None:
        for p in PRESETS:
            self.assertIn(p.category, CATEGORIES)
        self.assertEqual(sum(len(presets_by_category(c)) for c in CATEGORIES), len(PRESETS))

    def test_every_preset_yields_valid_options(self) -> None:
        base = ProcessOptions(target_width=1000, target_height=500)
        for p in PRESETS:
            opts = p.apply(base)
            self.assertIsInstance(opts, ProcessOptions, p.preset_id)

    def test_format_preset_keeps_size(self) -> None:
        base = ProcessOptions(target_width=1000, target_height=500)
        opts = find_preset("fmt-webp").apply(base)
        self.assertEqual((opts.target_width, opts.target_height), (1000, 500))
        self.assertEqual(opts.format, OutputFormat.WEBP)
        self.assertEqual(opts.quality, 0.8)

    def test_og_image(self) -> None:
        opts = apply_action(ProcessOptions(), ApplyPreset(find_preset("og-image")))
        self.assertEqual((opts.target_width, opts.target_height), (1200, 630))
        self.assertEqual(opts.format, OutputFormat.JPEG)
        self.assertEqual(opts.fit, FitMode.COVER)

    def test_unknown_preset(self) -> None:
        self.assertIsNone(find_preset("nope"))


if __name__ == "__main__":
    unittest.main()
