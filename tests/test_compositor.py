from __future__ import annotations

import unittest

try:
    import numpy as np
except ImportError as exc:  # pragma: no cover - environment dependency
    raise unittest.SkipTest(f"missing runtime dependency: {exc}")

from core.compositor import apply_mask, composite, mask_keep_region
from core.state import CropRect, FitMode, MaskShape, Offset, ProcessOptions
from fakes import solid_source, split_source


def _rgba(img) -> np.ndarray:
    return np.array(img.convert("RGBA"), dtype=np.uint8)


class FitCompositeTests(unittest.TestCase):
    def setUp(self) -> None:
        # Left half red, right half blue
        self.source = split_source((100, 50))

    def test_fill_stretches_whole_source(self) -> None:
        out = composite(self.source, ProcessOptions(target_width=10, target_height=10, fit=FitMode.FILL))
        arr = _rgba(out)
        self.assertEqual(out.size, (10, 10))
        self.assertTrue((arr[..., 3] == 255).all())
        self.assertGreater(int(arr[5, 1, 0]), 200)
        self.assertGreater(int(arr[5, 8, 2]), 200)

    def test_contain_leaves_transparent_bands(self) -> None:
        out = composite(self.source, ProcessOptions(target_width=10, target_height=10, fit=FitMode.CONTAIN))
        arr = _rgba(out)
        self.assertEqual(int(arr[0, 5, 3]), 0)
        self.assertEqual(int(arr[9, 5, 3]), 0)
        self.assertEqual(int(arr[5, 5, 3]), 255)

    def test_cover_crops_overflow(self) -> None:
        out = composite(self.source, ProcessOptions(target_width=10, target_height=10, fit=FitMode.COVER))
        arr = _rgba(out)
        self.assertTrue((arr[..., 3] == 255).all())
        # Only the middle half of the source is visible: red then blue
        self.assertGreater(int(arr[5, 1, 0]), 200)
        self.assertLess(int(arr[5, 1, 2]), 60)
        self.assertGreater(int(arr[5, 8, 2]), 200)
        self.assertLess(int(arr[5, 8, 0]), 60)

    def test_offset_off_canvas_gives_empty_canvas(self) -> None:
        opts = ProcessOptions(target_width=10, target_height=10, fit=FitMode.FILL, offset=Offset(50, 0))
        arr = _rgba(composite(self.source, opts))
        self.assertTrue((arr[..., 3] == 0).all())

    def test_offset_shifts_content(self) -> None:
        opts = ProcessOptions(target_width=10, target_height=10, fit=FitMode.FILL, offset=Offset(4, 0))
        arr = _rgba(composite(self.source, opts))
        self.assertTrue((arr[:, :4, 3] == 0).all())
        self.assertTrue((arr[:, 4:, 3] == 255).all())


class CropCompositeTests(unittest.TestCase):
    def test_square_crop_of_wide_source_fills_canvas(self) -> None:
        source = split_source((1000, 500))
        opts = ProcessOptions(target_width=200, crop=CropRect(0, 0, 500, 500), fit=FitMode.COVER)
        out = composite(source, opts)
        arr = _rgba(out)
        self.assertEqual(out.size, (200, 200))
        self.assertTrue((arr[..., 3] == 255).all())
        # Crop covers only the red half
        self.assertTrue((arr[..., 0] > 200).all())

    def test_crop_beyond_source_is_clamped(self) -> None:
        source = solid_source((40, 30))
        out = composite(source, ProcessOptions(crop=CropRect(30, 20, 50, 50)))
        self.assertEqual(out.size, (10, 10))


class MaskTests(unittest.TestCase):
    def test_circle_mask_clears_corners(self) -> None:
        source = solid_source((100, 100))
        opts = ProcessOptions(target_width=100, target_height=100, mask=MaskShape.CIRCLE)
        arr = _rgba(composite(source, opts))
        self.assertEqual(int(arr[0, 0, 3]), 0)
        self.assertEqual(int(arr[50, 50, 3]), 255)

    def test_square_mask_keeps_centred_square(self) -> None:
        keep = mask_keep_region((20, 10), MaskShape.SQUARE)
        self.assertEqual(keep.shape, (10, 20))
        self.assertFalse(keep[5, 2])
        self.assertTrue(keep[5, 10])
        self.assertEqual(int(keep.sum()), 100)

    def test_mask_preserves_existing_alpha(self) -> None:
        rgba = np.zeros((4, 4, 4), dtype=np.uint8)
        rgba[..., 3] = 128
        out = apply_mask(rgba, MaskShape.CIRCLE)
        self.assertEqual(int(out[2, 2, 3]), 128)
        self.assertEqual(int(out[0, 0, 3]), 0)

    def test_no_mask_is_identity(self) -> None:
        rgba = np.full((3, 3, 4), 7, dtype=np.uint8)
        self.assertIs(apply_mask(rgba, MaskShape.NONE), rgba)


if __name__ == "__main__":
    unittest.main()
