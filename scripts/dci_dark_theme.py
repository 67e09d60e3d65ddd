#!/usr/bin/env python3
"""Derive missing dark theme states inside a DCI container.

A state directory such as /256/normal.light gets a sibling /256/normal.dark
that mirrors its structure: directories are recreated, and every file becomes
an internal symlink to the light file. No image bytes are duplicated.
"""

from dci_file import FileType
from dci_theme_processor import (
    DARK_SUFFIX, LIGHT_SUFFIX, ContainerError, MirrorError,
)


def dark_path_for(light_path):
    """Return the dark sibling of a .light state path."""
    light_path = light_path.rstrip("/")
    if not light_path.endswith(LIGHT_SUFFIX):
        raise ContainerError(f"Not a light state directory: {light_path}")
    return light_path[:-len(LIGHT_SUFFIX)] + DARK_SUFFIX


def ensure_dark_variant(dci, light_path):
    """Create the dark sibling of light_path as a mirror of symlinks.

    Returns False (and changes nothing) if the dark state already exists,
    True once the mirror is complete. A failure part way raises MirrorError:
    readers assume a .dark directory is complete once it exists.
    """
    dark_path = dark_path_for(light_path)
    light_path = light_path.rstrip("/")
    if dci.exists(dark_path):
        return False

    try:
        dci.mkdir(dark_path)
        for rel in dci.list(light_path, recursive=True):
            source = f"{light_path}/{rel}"
            mirrored = f"{dark_path}/{rel}"
            if dci.type(source, follow_symlinks=False) == FileType.Directory:
                dci.mkdir(mirrored)
            else:
                dci.link(mirrored, source)
    except ContainerError as e:
        raise MirrorError(f"Failed on mirroring {light_path} to "
                          f"{dark_path}: {e}") from e
    return True


def scan_and_fix(dci):
    """Give every <category>/<state>.light directory a dark sibling.

    Returns the number of dark states created.
    """
    created = 0
    for category in dci.list("/"):
        category_path = "/" + category
        if dci.type(category_path, follow_symlinks=False) != FileType.Directory:
            continue
        for state in dci.list(category_path):
            state_path = f"{category_path}/{state}"
            if not state.endswith(LIGHT_SUFFIX):
                continue
            if dci.type(state_path) != FileType.Directory:
                continue
            if ensure_dark_variant(dci, state_path):
                print(f"  Created {dark_path_for(state_path)}")
                created += 1
    return created
