#!/usr/bin/env python3
"""Icon name aliases and the output-side symlinks created from them.

Aliases come from two places:
  - a symlink map file (two-field CSV, the second field may be a quoted
    block of newline-separated alias names), and
  - symlinks found in the source tree: "edit-copy.png -> copy.png" records
    alias "edit-copy" for canonical name "copy".

Symlink map example:

    sublime-text, com.sublimetext.2
    deb, "
    application-vnd.debian.binary-package
    application-x-deb
    gnome-mime-application-x-deb
    "

After packaging "deb.png" to deb.dci, one symlink per alias is created next
to it, e.g. application-x-deb.dci -> deb.dci.
"""

import os

from dci_theme_processor import AliasTableIOError, warning


def _read_field(text, pos):
    """Read one field starting at pos.

    Returns (field, new_pos, line_ended). Quote characters toggle quoting
    and are dropped; inside quotes commas and newlines are kept verbatim.
    """
    chars = []
    quoted = False
    while pos < len(text):
        ch = text[pos]
        pos += 1
        if ch == '"':
            quoted = not quoted
            continue
        if quoted:
            chars.append(ch)
            continue
        if ch == ",":
            return "".join(chars).strip(), pos, False
        if ch == "\n":
            return "".join(chars).strip(), pos, True
        chars.append(ch)
    return "".join(chars).strip(), pos, True


def parse_symlink_map(text):
    """Parse symlink map text into a list of (name, alias) pairs."""
    pairs = []
    pos = 0
    while pos < len(text):
        key, pos, line_ended = _read_field(text, pos)
        value = ""
        if not line_ended:
            value, pos, line_ended = _read_field(text, pos)
        if not line_ended:
            # Ignore anything after the second field
            newline = text.find("\n", pos)
            pos = len(text) if newline < 0 else newline + 1
        if not key:
            continue
        for alias in value.split("\n"):
            alias = alias.strip()
            if alias:
                pairs.append((key, alias))
    return pairs


class SymlinkMap:
    """Canonical icon name -> alias names, without duplicate pairs.

    Filled completely before packaging starts, read only afterwards.
    """

    def __init__(self):
        self._aliases = {}

    @classmethod
    def from_csv(cls, csv_file):
        """Load a symlink map file. Raises AliasTableIOError if unreadable."""
        try:
            with open(csv_file, encoding="utf-8") as f:
                text = f.read()
        except OSError as e:
            raise AliasTableIOError(
                f"Failed on open symlink map file: {csv_file}") from e

        symlink_map = cls()
        for key, alias in parse_symlink_map(text):
            symlink_map.add(key, alias)
        return symlink_map

    def add(self, name, alias):
        """Add alias for name. Returns False if the pair was already known."""
        aliases = self._aliases.setdefault(name, [])
        if alias in aliases:
            return False
        aliases.append(alias)
        return True

    def record_symlink_alias(self, source_base_name, link_target_base_name):
        """Record a source-tree symlink: its target's name gains an alias."""
        return self.add(link_target_base_name, source_base_name)

    def aliases(self, base_name):
        """Return the aliases of base_name in insertion order."""
        return list(self._aliases.get(base_name, ()))

    def __contains__(self, base_name):
        return bool(self._aliases.get(base_name))

    def __len__(self):
        return sum(len(a) for a in self._aliases.values())

    def emit_output_symlinks(self, container_path, base_name, output_dir,
                             extension):
        """Create <output_dir>/<alias><extension> -> basename(container_path).

        The link target is the bare file name, so links stay valid when the
        output directory is moved. A failing alias is reported and skipped.
        Returns the number of symlinks created.
        """
        symlink_key = os.path.basename(container_path)
        created = 0
        for alias in self.aliases(base_name):
            new_symlink = os.path.join(output_dir, alias + extension)
            print(f"  Create symlink from {symlink_key} to {new_symlink}")
            try:
                os.symlink(symlink_key, new_symlink)
            except OSError as e:
                warning(f"Failed on create symlink from {symlink_key} "
                        f"to {new_symlink}: {e}")
                continue
            created += 1
        return created
