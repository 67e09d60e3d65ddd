#!/usr/bin/env python3
"""In-memory DCI container: a small virtual filesystem plus its binary codec.

A container is a tree of directories, files (encoded image payloads) and
internal symlinks, addressed by absolute slash-separated paths rooted at "/".
Symlinks store a path string and are resolved at lookup time, so the tree
itself never holds references between nodes.

Binary layout written by to_bytes() / write_to_file():

    Header (8 bytes):
        [0..4]   magic "DCI\\0"
        [4]      version u8 = 1
        [5..8]   root entry count, u24 LE

    Entry (72 bytes + content):
        [0]      type u8 (File=1, Directory=2, Symlink=3)
        [1..64]  name, UTF-8, NUL padded
        [64..72] content size u64 LE
        content: Directory -> child entries (sorted by name)
                 File      -> payload bytes
                 Symlink   -> target path, UTF-8

Usage:
    dci = DciFile()
    dci.mkdir("/256")
    dci.mkdir("/256/normal.light")
    dci.write_file("/256/normal.light/1.webp", data)
    dci.link("/256/normal.dark", "/256/normal.light")
    dci.write_to_file("icon.dci")
"""

import enum
import struct

from dci_theme_processor import ContainerError, SerializeError


MAGIC = b"DCI\0"
VERSION = 1

_HEADER = struct.Struct("<4sB3s")
_ENTRY = struct.Struct("<B63sQ")

# Longest entry name: 63 byte field including the terminating NUL
MAX_NAME_BYTES = 62

# Guard against symlink cycles in loaded containers
_MAX_LINK_DEPTH = 32


class FileType(enum.IntEnum):
    File = 1
    Directory = 2
    Symlink = 3


class _Directory:
    def __init__(self):
        self.children = {}


class _File:
    def __init__(self, data):
        self.data = bytes(data)


class _Symlink:
    def __init__(self, target):
        self.target = target


_NODE_TYPES = {_File: FileType.File, _Directory: FileType.Directory,
               _Symlink: FileType.Symlink}


class _FormatError(ValueError):
    pass


def _components(path):
    """Split an absolute container path into names, folding "." and ".."."""
    if not isinstance(path, str) or not path.startswith("/"):
        raise ContainerError(f"Not an absolute container path: {path!r}")
    parts = []
    for name in path.split("/"):
        if name in ("", "."):
            continue
        if name == "..":
            if parts:
                parts.pop()
            continue
        parts.append(name)
    return parts


def _join(parts):
    return "/" + "/".join(parts)


def _check_name(name):
    if len(name.encode("utf-8")) > MAX_NAME_BYTES:
        raise ContainerError(f"Entry name longer than {MAX_NAME_BYTES} "
                             f"bytes: {name}")


class DciFile:
    """A DCI container under construction or loaded from disk.

    Mutating operations raise ContainerError when they would break an
    invariant: one entry per path, no skipped directory levels, no dangling
    internal symlinks.
    """

    def __init__(self):
        self._root = _Directory()
        self._valid = True

    # --- Loading ---

    @classmethod
    def from_bytes(cls, data):
        """Decode a container. Check is_valid() on the result."""
        dci = cls()
        try:
            magic, version, raw_count = _HEADER.unpack_from(data, 0)
            if magic != MAGIC:
                raise _FormatError("bad magic")
            if version != VERSION:
                raise _FormatError(f"unsupported version {version}")
            count = int.from_bytes(raw_count, "little")
            end, children = _decode_entries(data, _HEADER.size, len(data),
                                            count)
            if end != len(data):
                raise _FormatError("trailing data")
            dci._root.children = children
            dci._check_links()
        except (struct.error, UnicodeDecodeError, _FormatError):
            dci._root = _Directory()
            dci._valid = False
        return dci

    @classmethod
    def from_file(cls, path):
        """Load a container from disk. Unreadable files are invalid."""
        try:
            with open(path, "rb") as f:
                data = f.read()
        except OSError:
            dci = cls()
            dci._valid = False
            return dci
        return cls.from_bytes(data)

    def is_valid(self):
        return self._valid

    def _check_links(self):
        """Every symlink must resolve, without cycles."""
        for rel in self.list("/", recursive=True):
            path = "/" + rel
            if self.type(path, follow_symlinks=False) != FileType.Symlink:
                continue
            try:
                resolved = self._lookup(path)
            except ContainerError as e:
                raise _FormatError(str(e)) from e
            if resolved is None:
                raise _FormatError(f"dangling symlink {path}")

    # --- Lookup ---

    def _lookup(self, path, follow_symlinks=True, depth=0):
        """Return the node at path or None. Intermediate links are followed."""
        parts = _components(path)
        node = self._root
        for i, name in enumerate(parts):
            if not isinstance(node, _Directory):
                return None
            child = node.children.get(name)
            if child is None:
                return None
            last = i == len(parts) - 1
            if isinstance(child, _Symlink) and (follow_symlinks or not last):
                if depth >= _MAX_LINK_DEPTH:
                    raise ContainerError(f"Too many levels of symlinks: {path}")
                target = self._absolute(child.target, _join(parts[:i]))
                rest = parts[i + 1:]
                return self._lookup(_join(_components(target) + rest),
                                    follow_symlinks, depth + 1)
            node = child
        return node

    @staticmethod
    def _absolute(target, parent_dir):
        if target.startswith("/"):
            return target
        return parent_dir.rstrip("/") + "/" + target

    def _parent_of(self, path):
        """Return (parent directory node, entry name) for a new entry."""
        parts = _components(path)
        if not parts:
            raise ContainerError("The root directory cannot be recreated")
        name = parts[-1]
        _check_name(name)
        parent = self._lookup(_join(parts[:-1]))
        if not isinstance(parent, _Directory):
            raise ContainerError(f"Parent directory does not exist: {path}")
        return parent, name

    # --- Primitives ---

    def mkdir(self, path):
        """Create a directory. Re-creating an existing directory is a no-op."""
        if not _components(path):
            return
        parent, name = self._parent_of(path)
        existing = parent.children.get(name)
        if isinstance(existing, _Directory):
            return
        if existing is not None:
            raise ContainerError(f"Path exists and is not a directory: {path}")
        parent.children[name] = _Directory()

    def write_file(self, path, data):
        parent, name = self._parent_of(path)
        if name in parent.children:
            raise ContainerError(f"Path already exists: {path}")
        parent.children[name] = _File(data)

    def link(self, path, target):
        """Create an internal symlink at path pointing at target.

        Relative targets are taken relative to the link's directory.
        """
        parent, name = self._parent_of(path)
        if name in parent.children:
            raise ContainerError(f"Path already exists: {path}")
        parent_dir = _join(_components(path)[:-1])
        if self._lookup(self._absolute(target, parent_dir)) is None:
            raise ContainerError(f"Symlink target does not exist: "
                                 f"{path} -> {target}")
        parent.children[name] = _Symlink(target)

    def list(self, path="/", recursive=False):
        """List a directory in lexical order.

        With recursive=True, returns every descendant as a path relative to
        `path`, depth first. Symlinked directories are not descended into.
        """
        node = self._lookup(path)
        if not isinstance(node, _Directory):
            raise ContainerError(f"Not a directory: {path}")
        if not recursive:
            return sorted(node.children)
        result = []
        _walk(node, "", result)
        return result

    def type(self, path, follow_symlinks=True):
        """Return the FileType at path, or None if nothing is there."""
        node = self._lookup(path, follow_symlinks)
        if node is None:
            return None
        return _NODE_TYPES[type(node)]

    def exists(self, path):
        return self._lookup(path) is not None

    def data(self, path):
        """Return the payload of the file at path, following symlinks."""
        node = self._lookup(path)
        if not isinstance(node, _File):
            raise ContainerError(f"Not a file: {path}")
        return node.data

    def symlink_target(self, path):
        node = self._lookup(path, follow_symlinks=False)
        if not isinstance(node, _Symlink):
            raise ContainerError(f"Not a symlink: {path}")
        return node.target

    # --- Serialization ---

    def to_bytes(self):
        count = len(self._root.children)
        if count > 0xFFFFFF:
            raise SerializeError(f"Too many root entries: {count}")
        header = _HEADER.pack(MAGIC, VERSION, count.to_bytes(3, "little"))
        return header + _encode_entries(self._root)

    def write_to_file(self, path):
        """Serialize the container to path. Raises SerializeError."""
        data = self.to_bytes()
        try:
            with open(path, "wb") as f:
                f.write(data)
        except OSError as e:
            raise SerializeError(f"Failed on writing dci file {path}: {e}") from e


def _walk(directory, prefix, result):
    for name in sorted(directory.children):
        child = directory.children[name]
        result.append(prefix + name)
        if isinstance(child, _Directory):
            _walk(child, prefix + name + "/", result)


def _encode_entries(directory):
    chunks = []
    for name in sorted(directory.children):
        node = directory.children[name]
        if isinstance(node, _Directory):
            content = _encode_entries(node)
        elif isinstance(node, _File):
            content = node.data
        else:
            content = node.target.encode("utf-8")
        chunks.append(_ENTRY.pack(_NODE_TYPES[type(node)],
                                  name.encode("utf-8"), len(content)))
        chunks.append(content)
    return b"".join(chunks)


def _decode_entries(data, offset, end, count=None):
    """Decode entries in data[offset:end]. Returns (offset, children)."""
    children = {}
    while offset < end and (count is None or len(children) < count):
        file_type, raw_name, size = _ENTRY.unpack_from(data, offset)
        offset += _ENTRY.size
        name = raw_name.rstrip(b"\0").decode("utf-8")
        if not name or "/" in name or name in (".", ".."):
            raise _FormatError(f"bad entry name {raw_name!r}")
        if name in children:
            raise _FormatError(f"duplicate entry {name}")
        content_end = offset + size
        if content_end > end:
            raise _FormatError(f"entry {name} overruns its parent")
        if file_type == FileType.Directory:
            directory = _Directory()
            _, directory.children = _decode_entries(data, offset, content_end)
            children[name] = directory
        elif file_type == FileType.File:
            children[name] = _File(data[offset:content_end])
        elif file_type == FileType.Symlink:
            children[name] = _Symlink(data[offset:content_end].decode("utf-8"))
        else:
            raise _FormatError(f"unknown entry type {file_type}")
        offset = content_end
    if count is not None and len(children) != count:
        raise _FormatError("entry count mismatch")
    return offset, children
