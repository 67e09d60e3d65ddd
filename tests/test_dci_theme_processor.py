"""
Unit tests for the shared helpers: build profiles and name handling.
"""

import json

import pytest

from dci_theme_processor import (
    DEFAULT_SCALE_QUALITY, BuildProfile, ProfileError, complete_base_name,
    fatal_error, load_build_profile,
)


def _write(tmp_path, data):
    path = tmp_path / "profile.json"
    path.write_text(json.dumps(data) if not isinstance(data, str) else data)
    return str(path)


def test_default_profile() -> None:
    profile = BuildProfile()
    assert profile.extension == "webp"
    assert profile.scale_qualities() == sorted(DEFAULT_SCALE_QUALITY.items())
    assert profile.base_size == 256


def test_load_profile(tmp_path) -> None:
    profile = load_build_profile(_write(tmp_path, {"format": "jpg",
                                                   "scales": {"3": 80, "1": 95}}))
    assert profile.extension == "jpg"
    assert profile.scale_qualities() == [(1, 95), (3, 80)]


def test_partial_profile_keeps_defaults(tmp_path) -> None:
    profile = load_build_profile(_write(tmp_path, {"format": "png"}))
    assert profile.scales == DEFAULT_SCALE_QUALITY


@pytest.mark.parametrize("data", [
    "{not json",
    [1, 2],
    {"format": "gif"},
    {"scales": {}},
    {"scales": {"two": 100}},
    {"scales": {"0": 100}},
    {"scales": {"2": 101}},
    {"scales": {"2": True}},
])
def test_invalid_profiles(tmp_path, data) -> None:
    with pytest.raises(ProfileError):
        load_build_profile(_write(tmp_path, data))


def test_missing_profile(tmp_path) -> None:
    with pytest.raises(ProfileError):
        load_build_profile(str(tmp_path / "absent.json"))


def test_complete_base_name() -> None:
    assert complete_base_name("/icons/apps/org.gnome.Maps.png") == "org.gnome.Maps"
    assert complete_base_name("deb.dci") == "deb"


def test_fatal_error_exits_with_code(capsys) -> None:
    with pytest.raises(SystemExit) as exc:
        fatal_error("Failed on writing dci file", 6)
    assert exc.value.code == 6
    assert "FATAL ERROR! Failed on writing dci file" in capsys.readouterr().err


def test_bad_scale_keeps_the_parse_error(tmp_path) -> None:
    with pytest.raises(ProfileError) as exc:
        load_build_profile(_write(tmp_path, {"scales": {"two": 100}}))
    assert isinstance(exc.value.__cause__, ValueError)
