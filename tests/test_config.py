"""
Tests for configuration objects and environment overrides.
"""

import pytest
import sys
from pathlib import Path

# Add src to path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))


class TestPreprocessingConfig:
    """Test preprocessing configuration validation."""

    def test_defaults_valid(self):
        from cadastral_ocr.config import PreprocessingConfig

        config = PreprocessingConfig()

        assert config.threshold_mode == "none"
        assert config.rotation_angles == (0,)

    def test_tile_smaller_than_overlap_rejected(self):
        from cadastral_ocr.config import PreprocessingConfig
        from cadastral_ocr.exceptions import ConfigurationError

        with pytest.raises(ConfigurationError):
            PreprocessingConfig(tile_size=50, tile_overlap=100)

    def test_tile_below_min_size_rejected(self):
        from cadastral_ocr.config import PreprocessingConfig
        from cadastral_ocr.exceptions import ConfigurationError

        with pytest.raises(ConfigurationError):
            PreprocessingConfig(tile_size=90, tile_overlap=10, min_tile_size=100)

    @pytest.mark.parametrize("changes", [
        {"threshold_mode": "bogus"},
        {"morphology": "erode"},
        {"rotation_angles": (0, 45)},
        {"rotation_angles": (90, 90)},
        {"rotation_angles": ()},
        {"adaptive_block_size": 10},
        {"blur_radius": -1},
        {"upscale_factor": 0},
        {"clahe": True, "clahe_tile_size": 4},
    ])
    def test_invalid_options_rejected(self, changes):
        from cadastral_ocr.config import PreprocessingConfig
        from cadastral_ocr.exceptions import ConfigurationError

        with pytest.raises(ConfigurationError):
            PreprocessingConfig(**changes)

    def test_config_is_immutable(self):
        import dataclasses
        from cadastral_ocr.config import PreprocessingConfig

        config = PreprocessingConfig()

        with pytest.raises(dataclasses.FrozenInstanceError):
            config.blur_radius = 3

    def test_with_options_revalidates(self):
        from cadastral_ocr.config import TEXT_PROFILE
        from cadastral_ocr.exceptions import ConfigurationError

        changed = TEXT_PROFILE.with_options(rotation_angles=[0, 90])

        assert changed.rotation_angles == (0, 90)
        assert TEXT_PROFILE.rotation_angles == (0,)
        with pytest.raises(ConfigurationError):
            TEXT_PROFILE.with_options(tile_overlap=900)

    def test_identity(self):
        from cadastral_ocr.config import PreprocessingConfig

        assert PreprocessingConfig.identity().is_identity
        assert not PreprocessingConfig().is_identity


class TestOtherConfigs:
    """Test recognition, reconciliation and pipeline configuration."""

    def test_recognition_config_validation(self):
        from cadastral_ocr.config import RecognitionConfig
        from cadastral_ocr.exceptions import ConfigurationError

        with pytest.raises(ConfigurationError):
            RecognitionConfig(timeout_seconds=0)
        with pytest.raises(ConfigurationError):
            RecognitionConfig(max_timeout_retries=3)

    def test_reconcile_thresholds(self):
        from cadastral_ocr.config import ReconcileConfig, FragmentKind

        config = ReconcileConfig()

        assert config.threshold_for(FragmentKind.NUMBER) > config.threshold_for(FragmentKind.PLACE_NAME)
        assert config.boost_for(FragmentKind.PLACE_NAME) == 25.0

    def test_reconcile_config_validation(self):
        from cadastral_ocr.config import ReconcileConfig
        from cadastral_ocr.exceptions import ConfigurationError

        with pytest.raises(ConfigurationError):
            ReconcileConfig(min_confidence=150)
        with pytest.raises(ConfigurationError):
            ReconcileConfig(number_threshold=1.5)

    def test_pipeline_requires_profiles(self):
        from cadastral_ocr.config import PipelineConfig
        from cadastral_ocr.exceptions import ConfigurationError

        with pytest.raises(ConfigurationError):
            PipelineConfig(profiles={})

    def test_environment_overrides(self, monkeypatch):
        from cadastral_ocr.config import get_config

        monkeypatch.setenv("CADASTRAL_OCR_ENGINES", "tesseract, easyocr")
        monkeypatch.setenv("CADASTRAL_OCR_TIMEOUT", "12.5")
        monkeypatch.setenv("CADASTRAL_OCR_MIN_CONFIDENCE", "70")
        monkeypatch.setenv("CADASTRAL_OCR_DEBUG", "true")

        config = get_config()

        assert config.recognition.engines == ["tesseract", "easyocr"]
        assert config.recognition.timeout_seconds == 12.5
        assert config.reconcile.min_confidence == 70.0
        assert config.debug_mode is True

    def test_environment_overrides_logged(self, monkeypatch, caplog):
        import logging
        from cadastral_ocr.config import get_config

        monkeypatch.setenv("CADASTRAL_OCR_TIMEOUT", "30")
        caplog.set_level(logging.INFO, logger="cadastral_ocr")

        get_config()

        assert "timeout_seconds=30" in caplog.text

    def test_environment_defaults(self, monkeypatch):
        from cadastral_ocr.config import get_config

        for name in ("CADASTRAL_OCR_ENGINES", "CADASTRAL_OCR_TIMEOUT",
                     "CADASTRAL_OCR_MIN_CONFIDENCE", "CADASTRAL_OCR_DEBUG"):
            monkeypatch.delenv(name, raising=False)

        config = get_config()

        assert config.recognition.engines == ["tesseract"]
        assert config.reconcile.min_confidence == 85.0
        assert set(config.profiles) == {"text", "number"}


class TestCliConfig:
    """Test that command-line options reach the configuration."""

    def test_build_config_from_args(self, monkeypatch):
        from cadastral_ocr.cli import setup_argparser, build_config

        monkeypatch.delenv("CADASTRAL_OCR_ENGINES", raising=False)
        args = setup_argparser().parse_args([
            "--input", "map.png", "--output", "out",
            "--engine", "easyocr",
            "--timeout", "5",
            "--angles", "0", "90",
            "--no-tiling",
            "--keep-all",
        ])

        config = build_config(args)

        assert config.recognition.engines == ["easyocr"]
        assert config.recognition.timeout_seconds == 5.0
        assert config.reconcile.min_confidence is None
        for profile in config.profiles.values():
            assert profile.tile_size is None
            assert profile.rotation_angles == (0, 90)

    def test_confidence_help_names_correction_order(self):
        from cadastral_ocr.cli import setup_argparser

        text = " ".join(setup_argparser().format_help().split())

        assert "before dictionary correction" in text
        assert "offered to dictionary correction" in text

    def test_build_config_rejects_bad_angle(self):
        from cadastral_ocr.cli import setup_argparser, build_config
        from cadastral_ocr.exceptions import ConfigurationError

        args = setup_argparser().parse_args(["-i", "map.png", "-o", "out", "--angles", "45"])

        with pytest.raises(ConfigurationError):
            build_config(args)
