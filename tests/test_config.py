from pathlib import Path

import pytest
from pydantic import ValidationError

from imagestage.config import ConfigError, ConfigValidationError, YamlConfigLoader, normalise_config_payload
from imagestage.models.config import HelperConfig, TransformStep


def test_missing_file_uses_defaults(tmp_path: Path) -> None:
    config = YamlConfigLoader(tmp_path / "imagestage.yaml", HelperConfig).load()

    assert config.on_error == "report"
    assert config.file_mode == 0o755
    assert config.jpeg_quality == 100
    assert config.png_compression == 0


def test_legacy_toggles_are_normalised(tmp_path: Path) -> None:
    path = tmp_path / "imagestage.yaml"
    path.write_text("throwExceptions: false\nchmod: 0775\njpegQuality: 80\n", encoding="utf-8")

    config = YamlConfigLoader(path, HelperConfig).load()

    assert config.on_error == "silent"
    assert not config.report_errors
    assert config.file_mode == 0o775
    assert config.jpeg_quality == 80


def test_new_keys_win_over_legacy_ones() -> None:
    data = normalise_config_payload({"throwExceptions": False, "on_error": "report", "chmod": 0o700})

    assert data == {"on_error": "report", "file_mode": 0o700}


def test_octal_strings_are_accepted(tmp_path: Path) -> None:
    path = tmp_path / "imagestage.yaml"
    path.write_text("file_mode: '0640'\nbackground: '#FFFFFF'\n", encoding="utf-8")

    config = YamlConfigLoader(path, HelperConfig).load()

    assert config.file_mode == 0o640
    assert config.default_background().rgb == (255, 255, 255)


def test_invalid_values_raise_validation_error(tmp_path: Path) -> None:
    path = tmp_path / "imagestage.yaml"
    path.write_text("jpeg_quality: 200\n", encoding="utf-8")

    with pytest.raises(ConfigValidationError) as excinfo:
        YamlConfigLoader(path, HelperConfig).load()
    assert excinfo.value.errors


def test_non_mapping_file_is_rejected(tmp_path: Path) -> None:
    path = tmp_path / "imagestage.yaml"
    path.write_text("- one\n- two\n", encoding="utf-8")

    with pytest.raises(ConfigError):
        YamlConfigLoader(path, HelperConfig).load()


def test_save_then_load(tmp_path: Path) -> None:
    loader = YamlConfigLoader(tmp_path / "nested" / "imagestage.yaml", HelperConfig)

    loader.save(HelperConfig(on_error="silent", file_mode=0o600, png_compression=6))

    assert loader.load() == HelperConfig(on_error="silent", file_mode=0o600, png_compression=6)


def test_unprefixed_decimal_file_mode_is_rejected(tmp_path: Path) -> None:
    path = tmp_path / "imagestage.yaml"
    path.write_text("file_mode: 755\n", encoding="utf-8")

    with pytest.raises(ConfigValidationError):
        YamlConfigLoader(path, HelperConfig).load()


def test_step_rejects_non_finite_numbers() -> None:
    for field in ("width", "height", "length", "percent", "rotate"):
        with pytest.raises(ValidationError):
            TransformStep(**{field: float("inf")})
    with pytest.raises(ValidationError):
        TransformStep(opacity=float("nan"))
