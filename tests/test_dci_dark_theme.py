"""
Unit tests for dark state synthesis (light -> dark symlink mirrors).
"""

import pytest

from dci_dark_theme import dark_path_for, ensure_dark_variant, scan_and_fix
from dci_file import DciFile, FileType
from dci_theme_processor import ContainerError, MirrorError

LIGHT = "/256/normal.light"
DARK = "/256/normal.dark"


def _light_container():
    dci = DciFile()
    dci.mkdir("/256")
    dci.mkdir(LIGHT)
    dci.write_file(LIGHT + "/a", b"aaa")
    dci.mkdir(LIGHT + "/b")
    dci.write_file(LIGHT + "/b/c", b"ccc")
    return dci


def test_dark_path_for() -> None:
    assert dark_path_for("/256/hover.light") == "/256/hover.dark"
    assert dark_path_for("/256/hover.light/") == "/256/hover.dark"
    with pytest.raises(ContainerError):
        dark_path_for("/256/hover")


def test_mirror_is_made_of_symlinks() -> None:
    dci = _light_container()

    assert ensure_dark_variant(dci, LIGHT) is True

    assert dci.list(DARK, recursive=True) == ["a", "b", "b/c"]
    assert dci.type(DARK + "/b", follow_symlinks=False) == FileType.Directory
    for rel in ("a", "b/c"):
        assert dci.type(f"{DARK}/{rel}", follow_symlinks=False) == FileType.Symlink
        assert dci.symlink_target(f"{DARK}/{rel}") == f"{LIGHT}/{rel}"
        assert dci.data(f"{DARK}/{rel}") == dci.data(f"{LIGHT}/{rel}")


def test_existing_dark_state_is_left_alone() -> None:
    dci = _light_container()
    dci.mkdir(DARK)
    before = dci.to_bytes()

    assert ensure_dark_variant(dci, LIGHT) is False
    assert dci.to_bytes() == before


def test_mirror_failure_is_reported(monkeypatch) -> None:
    dci = _light_container()

    def failing_link(path, target):
        raise ContainerError("no space left in container")

    monkeypatch.setattr(dci, "link", failing_link)
    with pytest.raises(MirrorError):
        ensure_dark_variant(dci, LIGHT)


def test_scan_and_fix_handles_every_state() -> None:
    dci = DciFile()
    dci.write_file("/meta", b"")
    for category in ("/16", "/256"):
        dci.mkdir(category)
    for state in ("/256/normal.light", "/256/hover.light", "/256/pressed.light",
                  "/16/normal.light"):
        dci.mkdir(state)
        dci.write_file(state + "/1.webp", state.encode())
    dci.mkdir("/256/pressed.dark")
    dci.write_file("/256/pressed.dark/1.webp", b"own dark pixels")

    assert scan_and_fix(dci) == 3

    assert dci.data("/256/hover.dark/1.webp") == b"/256/hover.light"
    assert dci.data("/16/normal.dark/1.webp") == b"/16/normal.light"
    assert dci.type("/256/pressed.dark/1.webp", follow_symlinks=False) == FileType.File
    assert dci.data("/256/pressed.dark/1.webp") == b"own dark pixels"
    assert scan_and_fix(dci) == 0
