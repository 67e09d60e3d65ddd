#!/usr/bin/env python3
"""Package icon image files into DCI icon files, one .dci per icon.

Each icon matching --match is encoded at every scale of the build profile
(default: 2x at quality 100, 3x at quality 90 on a 256px base) into
/256/normal.light. A dark variant is read from "dark/<same file name>" next
to the icon when present. Otherwise /256/normal.dark mirrors the light state
with internal symlinks.

Pass 1 collects aliases from symlinks in the source tree (and from --symlink).
Pass 2 packages the real files and creates <alias>.dci -> <icon>.dci symlinks
in the output directory.

With --fix-dark-theme, existing .dci files are read from the source
directories instead. Every <state>.light without a <state>.dark sibling gets
one, and the fixed files are written to the (new) output directory.

Usage:
    python scripts/dci_icon_theme.py -m <wildcard> -o <directory> [options] <source>...

Arguments:
    source              Directories searched recursively for icon files
    -m, --match         Wildcard for icon file names, repeatable (e.g. "*.png")
    -o, --output        Directory receiving the *.dci files
    -s, --symlink       CSV file of "name, alias" rows used to create symlinks
    -c, --config        JSON build profile: {"format": "webp", "scales": {"2": 100}}
    --fix-dark-theme    Repair existing .dci files instead of packaging images

Examples:
    python scripts/dci_icon_theme.py -m "*.png" -o out/ ~/dci-png-icons
    python scripts/dci_icon_theme.py -m "*.png" -s symlinks.csv -o out/ icons/
    python scripts/dci_icon_theme.py --fix-dark-theme -o fixed/ out/
"""

import argparse
import fnmatch
import os
import sys
from collections import Counter

from dci_dark_theme import ensure_dark_variant, scan_and_fix
from dci_file import DciFile
from dci_image import encode_variant
from dci_symlinks import SymlinkMap
from dci_theme_processor import (
    DARK_DIR_NAME, DARK_SUFFIX, DCI_EXTENSION, LIGHT_SUFFIX,
    EXIT_BAD_PROFILE, EXIT_ENCODE_FAILED, EXIT_MIRROR_FAILED,
    EXIT_NO_ARGUMENTS, EXIT_NO_MATCH, EXIT_NO_OUTPUT, EXIT_NO_SOURCE,
    EXIT_OUTPUT_DIR, EXIT_OUTPUT_EXISTS, EXIT_SYMLINK_MAP, EXIT_WRITE_FAILED,
    AliasTableIOError, BuildProfile, ContainerError, EncodeError,
    ImageDecodeError, MirrorError, ProfileError, SerializeError,
    complete_base_name, fatal_error, load_build_profile, usage_error, warning,
)


def matches(name, name_filters):
    return any(fnmatch.fnmatchcase(name, p) for p in name_filters)


def walk_source(source_dir):
    """Yield (dirpath, filename) in sorted order.

    Symlinked directories are not descended into; symlinked files are
    yielded like any other file.
    """
    for dirpath, dirnames, filenames in os.walk(source_dir):
        dirnames[:] = sorted(d for d in dirnames
                             if not os.path.islink(os.path.join(dirpath, d)))
        for fn in sorted(filenames):
            yield dirpath, fn


def existing_source_dirs(source_dirs):
    """Absolute paths of the source directories that exist."""
    result = []
    for sd in source_dirs:
        if not os.path.isdir(sd):
            print(f"Ignore the non-exists directory: {sd}")
            continue
        result.append(os.path.abspath(sd))
    return result


# --- Fresh build ---

def collect_symlink_aliases(source_dir, name_filters, symlink_map):
    """Pass 1: record "target name -> link name" for every icon symlink.

    Returns the number of new alias pairs.
    """
    added = 0
    for dirpath, fn in walk_source(source_dir):
        full = os.path.join(dirpath, fn)
        if not matches(fn, name_filters) or not os.path.islink(full):
            continue
        if os.path.basename(dirpath) == DARK_DIR_NAME:
            continue
        alias = complete_base_name(fn)
        canonical = complete_base_name(os.path.realpath(full))
        # Same name in another directory: the link would point at itself
        if alias == canonical:
            continue
        if symlink_map.record_symlink_alias(alias, canonical):
            added += 1
    return added


def iter_icon_files(source_dir, name_filters):
    """Pass 2: yield the real (non-symlink) icon files to package."""
    for dirpath, fn in walk_source(source_dir):
        full = os.path.join(dirpath, fn)
        if not matches(fn, name_filters) or os.path.islink(full):
            continue
        if os.path.basename(dirpath) == DARK_DIR_NAME:
            print(f"  Ignore the dark icon file: {full}")
            continue
        yield full


def encode_variants(image_file, profile):
    """Encode image_file at every scale. Raises ImageDecodeError."""
    return [
        (scale, encode_variant(image_file, scale, quality,
                               profile.image_format, profile.base_size))
        for scale, quality in profile.scale_qualities()
    ]


def write_variants(dci, state_dir, variants, extension):
    for scale, data in variants:
        dci.mkdir(f"{state_dir}/{scale}")
        dci.write_file(f"{state_dir}/{scale}/1.{extension}", data)


def build_icon(image_file, profile):
    """Build the container for one icon, or None if the image is unusable."""
    try:
        light_variants = encode_variants(image_file, profile)
    except ImageDecodeError as e:
        warning(str(e))
        return None

    dci = DciFile()
    category = f"/{profile.base_size}"
    light_dir = f"{category}/normal{LIGHT_SUFFIX}"
    dark_dir = f"{category}/normal{DARK_SUFFIX}"
    dci.mkdir(category)
    dci.mkdir(light_dir)
    write_variants(dci, light_dir, light_variants, profile.extension)

    dark_icon = os.path.join(os.path.dirname(image_file), DARK_DIR_NAME,
                             os.path.basename(image_file))
    if os.path.isfile(dark_icon):
        try:
            dark_variants = encode_variants(dark_icon, profile)
        except ImageDecodeError as e:
            warning(f"{e}, mirroring the light icon instead")
        else:
            dci.mkdir(dark_dir)
            write_variants(dci, dark_dir, dark_variants, profile.extension)
            return dci

    ensure_dark_variant(dci, light_dir)
    return dci


def package_icon(image_file, output_dir, symlink_map, profile, counts):
    """Package one icon file and create its alias symlinks."""
    base_name = complete_base_name(image_file)
    dci_path = os.path.join(output_dir, base_name + DCI_EXTENSION)
    if os.path.lexists(dci_path):
        warning(f"Skip exists dci file: {dci_path}")
        counts["skipped"] += 1
        return

    dci = build_icon(image_file, profile)
    if dci is None:
        counts["failed"] += 1
        return

    print(f"Writing to dci file: {dci_path}")
    dci.write_to_file(dci_path)
    counts["packaged"] += 1

    if symlink_map is not None:
        counts["links"] += symlink_map.emit_output_symlinks(
            dci_path, base_name, output_dir, DCI_EXTENSION)


def package_icons(source_dirs, output_dir, name_filters, symlink_map=None,
                  profile=None):
    """Package every matching icon under source_dirs into output_dir.

    All source symlinks are collected into symlink_map before the first
    icon is packaged. Returns a Counter of packaged/skipped/failed/links.
    """
    if symlink_map is None:
        symlink_map = SymlinkMap()
    if profile is None:
        profile = BuildProfile()
    counts = Counter()
    sources = existing_source_dirs(source_dirs)

    # Pass 1: aliases from source symlinks
    for source_dir in sources:
        added = collect_symlink_aliases(source_dir, name_filters, symlink_map)
        print(f"Source: {source_dir}")
        print(f"  Found {added} symlinked icons")
    print(f"Got symlinks: {len(symlink_map)}")

    # Pass 2: package real files
    for source_dir in sources:
        for image_file in iter_icon_files(source_dir, name_filters):
            package_icon(image_file, output_dir, symlink_map, profile, counts)

    return counts


# --- Repair ---

def fix_dark_theme(source_dirs, output_dir, name_filters=None):
    """Copy .dci files to output_dir, adding missing dark states.

    Symlinked .dci files are recreated with the same link target. Returns a
    Counter of packaged/skipped/failed/links.
    """
    name_filters = name_filters or ["*" + DCI_EXTENSION]
    counts = Counter()

    for source_dir in existing_source_dirs(source_dirs):
        print(f"Source: {source_dir}")
        for dirpath, fn in walk_source(source_dir):
            if not matches(fn, name_filters):
                continue
            full = os.path.join(dirpath, fn)
            output_path = os.path.join(output_dir, fn)
            if os.path.lexists(output_path):
                warning(f"Skip exists dci file: {output_path}")
                counts["skipped"] += 1
                continue

            if os.path.islink(full):
                target = os.readlink(full)
                try:
                    os.symlink(target, output_path)
                except OSError as e:
                    warning(f"Failed on create symlink {output_path} "
                            f"-> {target}: {e}")
                    counts["failed"] += 1
                    continue
                counts["links"] += 1
                continue

            dci = DciFile.from_file(full)
            if not dci.is_valid():
                warning(f"Skip invalid dci file: {full}")
                counts["failed"] += 1
                continue

            print(f"Fixing dci file: {full}")
            scan_and_fix(dci)
            dci.write_to_file(output_path)
            counts["packaged"] += 1

    return counts


# --- Command line ---

def build_parser():
    parser = argparse.ArgumentParser(
        prog="dci-icon-theme", description=__doc__,
        formatter_class=argparse.RawDescriptionHelpFormatter)
    parser.add_argument("sources", nargs="*", metavar="source")
    parser.add_argument("-m", "--match", action="append", default=[],
                        metavar="wildcard")
    parser.add_argument("-o", "--output", metavar="directory")
    parser.add_argument("-s", "--symlink", metavar="csv")
    parser.add_argument("-c", "--config", metavar="profile")
    parser.add_argument("--fix-dark-theme", action="store_true")
    return parser


def prepare_output_dir(output, fix_mode):
    """Create the output directory, exiting on the fatal preconditions."""
    output_dir = os.path.abspath(output)
    if fix_mode and os.path.lexists(output_dir):
        fatal_error(f"The output directory already exists: {output_dir}",
                    EXIT_OUTPUT_EXISTS)
    if not os.path.isdir(output_dir):
        try:
            os.makedirs(output_dir)
        except OSError as e:
            usage_error(__doc__, f"Can't create the {output_dir} directory: {e}",
                        EXIT_OUTPUT_DIR)
    return output_dir


def main(argv=None):
    if argv is None:
        argv = sys.argv[1:]
    if not argv:
        usage_error(__doc__, code=EXIT_NO_ARGUMENTS)

    args = build_parser().parse_args(argv)

    if not args.sources:
        usage_error(__doc__, "Not give a source directory.", EXIT_NO_SOURCE)
    if not args.match and not args.fix_dark_theme:
        usage_error(__doc__, "Not give -m argument", EXIT_NO_MATCH)
    if not args.output:
        usage_error(__doc__, "Not give -o argument", EXIT_NO_OUTPUT)

    profile = BuildProfile()
    if args.config:
        try:
            profile = load_build_profile(args.config)
        except ProfileError as e:
            fatal_error(str(e), EXIT_BAD_PROFILE)

    output_dir = prepare_output_dir(args.output, args.fix_dark_theme)

    try:
        if args.fix_dark_theme:
            counts = fix_dark_theme(args.sources, output_dir, args.match)
        else:
            symlink_map = SymlinkMap()
            if args.symlink:
                symlink_map = SymlinkMap.from_csv(args.symlink)
                print(f"Got symlinks from {args.symlink}: {len(symlink_map)}")
            counts = package_icons(args.sources, output_dir, args.match,
                                   symlink_map, profile)
    except AliasTableIOError as e:
        fatal_error(str(e), EXIT_SYMLINK_MAP)
    except EncodeError as e:
        fatal_error(str(e), EXIT_ENCODE_FAILED)
    except MirrorError as e:
        fatal_error(str(e), EXIT_MIRROR_FAILED)
    except (SerializeError, ContainerError) as e:
        fatal_error(str(e), EXIT_WRITE_FAILED)

    print()
    print(f"Total: packaged={counts['packaged']} skipped={counts['skipped']} "
          f"failed={counts['failed']} links={counts['links']}")


if __name__ == "__main__":
    main()
