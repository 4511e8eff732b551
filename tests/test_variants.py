"""
Tests for tiling, rotation variants and coordinate mapping.
"""

import pytest
import numpy as np
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


class TestTiling:
    """Test overlapping tile generation."""

    def test_tile_count_1600x800(self):
        """ceil(1600/700) x ceil(800/700) = 6 windows."""
        from cadastral_ocr.utils.variants import tile_image

        img = np.zeros((800, 1600), dtype=np.uint8)

        tiles = tile_image(img, tile_size=800, overlap=100, min_size=100)

        assert len(tiles) == 6
        assert [(t.x, t.y) for t in tiles] == [
            (0, 0), (700, 0), (1400, 0),
            (0, 700), (700, 700), (1400, 700),
        ]
        assert (tiles[0].width, tiles[0].height) == (800, 800)
        assert (tiles[2].width, tiles[2].height) == (200, 800)
        assert (tiles[5].width, tiles[5].height) == (200, 100)

    def test_undersized_tiles_dropped(self):
        from cadastral_ocr.utils.variants import tile_image

        img = np.zeros((800, 1450), dtype=np.uint8)

        tiles = tile_image(img, tile_size=800, overlap=100, min_size=100)

        # The 50px wide column at x=1400 is dropped
        assert len(tiles) == 4
        assert all(t.width >= 100 and t.height >= 100 for t in tiles)

    def test_small_image_single_tile(self):
        from cadastral_ocr.utils.variants import tile_image

        img = np.zeros((300, 400), dtype=np.uint8)

        tiles = tile_image(img, tile_size=800, overlap=100)

        assert len(tiles) == 1
        assert tiles[0].image.shape == (300, 400)

    def test_tiles_own_their_pixels(self):
        from cadastral_ocr.utils.variants import tile_image

        img = np.zeros((800, 1600), dtype=np.uint8)
        tiles = tile_image(img, tile_size=800, overlap=100)

        tiles[0].image[:] = 255

        assert img.max() == 0


class TestCoordinateMapping:
    """Test mapping of variant boxes back to original coordinates."""

    @pytest.mark.parametrize("angle", [0, 90, 180, 270])
    def test_rotation_round_trip(self, angle):
        """A box found in a rotated tile maps back to where it was drawn."""
        from cadastral_ocr.utils.fragments import BoundingBox
        from cadastral_ocr.utils.images import rotate
        from cadastral_ocr.utils.variants import map_bbox_to_original

        img = np.zeros((100, 200), dtype=np.uint8)
        img[20:40, 10:30] = 255

        rotated = rotate(img, angle)
        ys, xs = np.nonzero(rotated)
        found = BoundingBox(xs.min(), ys.min(), xs.max() + 1, ys.max() + 1)

        mapped = map_bbox_to_original(found, angle=angle, tile_size=(200, 100))

        assert mapped.to_tuple() == (10.0, 20.0, 30.0, 40.0)

    def test_origin_and_scale(self):
        from cadastral_ocr.utils.fragments import BoundingBox
        from cadastral_ocr.utils.variants import map_bbox_to_original

        mapped = map_bbox_to_original(
            BoundingBox(0, 0, 10, 10),
            tile_size=(800, 800),
            origin=(700, 0),
            scale=(2.0, 2.0)
        )

        assert mapped.to_tuple() == (350.0, 0.0, 355.0, 5.0)


class TestVariantGeneration:
    """Test profile x tile x angle fan-out."""

    def test_rotation_variants_swap_dimensions(self):
        from cadastral_ocr.config import PreprocessingConfig
        from cadastral_ocr.utils.variants import generate_variants

        img = np.zeros((100, 200, 3), dtype=np.uint8)
        config = PreprocessingConfig.identity().with_options(rotation_angles=(0, 90, 180, 270))

        variants = generate_variants(img, {"plain": config})

        assert [v.angle for v in variants] == [0, 90, 180, 270]
        assert variants[0].buffer.shape == (100, 200)
        assert variants[1].buffer.shape == (200, 100)
        assert variants[2].buffer.shape == (100, 200)
        assert variants[3].buffer.shape == (200, 100)

    def test_profiles_tiles_and_angles_multiply(self):
        from cadastral_ocr.config import PreprocessingConfig
        from cadastral_ocr.utils.variants import generate_variants

        img = np.zeros((800, 1600), dtype=np.uint8)
        tiled = PreprocessingConfig.identity().with_options(
            tile_size=800, tile_overlap=100, rotation_angles=(0, 90)
        )
        whole = PreprocessingConfig.identity()

        variants = generate_variants(img, {"tiled": tiled, "whole": whole})

        assert len(variants) == 6 * 2 + 1
        assert sum(1 for v in variants if v.profile == "tiled") == 12
        assert variants[-1].profile == "whole"

    def test_variant_records_scale(self):
        from cadastral_ocr.config import PreprocessingConfig
        from cadastral_ocr.utils.fragments import BoundingBox
        from cadastral_ocr.utils.variants import generate_variants

        img = np.zeros((50, 80), dtype=np.uint8)
        config = PreprocessingConfig.identity().with_options(upscale_factor=2.0)

        variant = generate_variants(img, {"big": config})[0]

        assert variant.buffer.shape == (100, 160)
        assert variant.scale_x == pytest.approx(2.0)
        assert variant.map_bbox(BoundingBox(20, 20, 40, 60)).to_tuple() == (10.0, 10.0, 20.0, 30.0)

    def test_small_image_recognized_whole(self):
        """A label strip smaller than the tile minimum still yields variants."""
        from cadastral_ocr.config import PipelineConfig
        from cadastral_ocr.utils.variants import generate_variants

        img = np.full((30, 300, 3), 255, dtype=np.uint8)

        variants = generate_variants(img, PipelineConfig().profiles)

        assert [v.profile for v in variants] == ["text", "number"]
        assert all((v.origin_x, v.origin_y) == (0, 0) for v in variants)
        assert variants[0].buffer.shape == (84, 840)
        assert variants[1].buffer.shape == (90, 900)

    def test_zero_area_rejected(self):
        from cadastral_ocr.config import PreprocessingConfig
        from cadastral_ocr.exceptions import InvalidImageError
        from cadastral_ocr.utils.variants import generate_variants

        with pytest.raises(InvalidImageError):
            generate_variants(np.zeros((10, 0), dtype=np.uint8), {"p": PreprocessingConfig()})
