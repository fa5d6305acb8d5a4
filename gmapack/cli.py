from __future__ import annotations

import argparse
import os
import sys
from typing import List, Optional

from gmapack import whitelist
from gmapack.constants import ADDON_TAGS, ADDON_TYPES, DEFAULT_AUTHOR, DEFAULT_BLOCK_SIZE
from gmapack.errors import AddonError, ErrorKind
from gmapack.model import Field
from gmapack.reader import AddonReader
from gmapack.session import AddonSession, Result


class CommandError(Exception):
    """A command failed in a way that should end the process with exit code 2."""


def _human_size(n: int) -> str:
    """Format a byte count the way the listing commands show it."""
    if n < 1024:
        return f"{n} B"
    size = n / 1024.0
    for unit in ("KiB", "MiB"):
        if size < 1024.0:
            return f"{size:.2f} {unit}"
        size /= 1024.0
    return f"{size:.2f} GiB"


def _warn(res: Result) -> None:
    for w in res.warnings:
        print(f"Warning: {w}", file=sys.stderr)


def _check(res: Result) -> Result:
    """Raise CommandError for a failed session result, printing its warnings first."""
    _warn(res)
    if not res:
        raise CommandError(res.message or res.kind.value)
    return res


def _open(archive: str, *, block_size: int = DEFAULT_BLOCK_SIZE) -> AddonSession:
    session = AddonSession(block_size=block_size)
    _check(session.load(archive))
    return session


def _persist(session: AddonSession) -> int:
    changed = _check(session.persist()).value
    print(f"Successfully saved. {changed} bytes modified ({_human_size(changed)}).")
    return changed


_REJECT_LABELS = {
    ErrorKind.IGNORED: "[Ignored]",
    ErrorKind.NOT_WHITELISTED: "[Not allowed by whitelist]",
    ErrorKind.DUPLICATE_PATH: "[A file like this has already been added. Remove it first.]",
}


def cmd_new(
    output: str,
    *,
    title: str,
    description: str = "",
    addon_type: str,
    tags: Optional[List[str]] = None,
    author: Optional[str] = None,
    block_size: int = DEFAULT_BLOCK_SIZE,
) -> bool:
    """Create a new, empty addon file.

    Args:
        output: Destination path; the extension is forced to ``.gma``.
        title: Addon title.
        description: Short description.
        addon_type: One of the recognized addon types.
        tags: Zero, one or two tags; extra tags are dropped with a warning.
        author: Author string (defaults to the fixed placeholder).
        block_size: Diff granularity used when writing.
    """
    session = AddonSession(block_size=block_size)
    res = _check(
        session.create(
            output,
            title=title,
            description=description,
            addon_type=addon_type,
            tags=tags or [],
            author=author,
        )
    )
    print(f"Created {session.path} ({_human_size(res.value)}).")
    session.close()
    return True


def cmd_add(archive: str, inputs: List[str], *, block_size: int = DEFAULT_BLOCK_SIZE, quiet: bool = False) -> bool:
    """Add files and folders to an existing addon, then save.

    Returns False when at least one input was rejected.
    """
    session = _open(archive, block_size=block_size)
    outcomes = []
    for p in inputs:
        if os.path.isdir(p):
            outcomes.extend(_check(session.add_folder(p)).value)
        else:
            outcomes.append((p, session.add_file(p)))
    rejected = 0
    for fs_path, res in outcomes:
        if res:
            if not quiet:
                print(f"{fs_path} as\n\t{res.value.path}")
            continue
        if res.kind not in _REJECT_LABELS:
            raise CommandError(res.message)
        rejected += 1
        print(f"{fs_path}\n\t\t{_REJECT_LABELS[res.kind]}", file=sys.stderr)
    _persist(session)
    session.close()
    return rejected == 0


def cmd_remove(archive: str, paths: List[str], *, block_size: int = DEFAULT_BLOCK_SIZE) -> bool:
    """Remove entries by archive path, then save."""
    session = _open(archive, block_size=block_size)
    missing = 0
    for p in paths:
        res = session.remove_entry(p)
        if not res:
            missing += 1
            print(f"{p}: the file was not found in the archive.", file=sys.stderr)
    _persist(session)
    session.close()
    return missing == 0


def cmd_list(archive: str) -> bool:
    """List archive entries, one ``size<TAB>path`` line each."""
    with AddonReader(archive) as r:
        entries = r.list()
    print(f"{len(entries)} files in archive:")
    for e in entries:
        print(f"{e.size}\t{e.path}")
    return True


def cmd_get(archive: str, field_name: str) -> bool:
    fld = Field.parse(field_name)
    session = _open(archive)
    value = _check(session.get(fld)).value
    print(" ".join(value) if fld is Field.TAGS else value)
    session.close()
    return True


def cmd_set(archive: str, field_name: str, values: List[str], *, block_size: int = DEFAULT_BLOCK_SIZE) -> bool:
    """Set one manifest field and save.

    Tags take each value as one tag; other fields join the values with spaces.
    """
    fld = Field.parse(field_name)
    session = _open(archive, block_size=block_size)
    value = values if fld is Field.TAGS else " ".join(values)
    _check(session.set(fld, value))
    _persist(session)
    session.close()
    return True


def cmd_info(archive: str) -> bool:
    with AddonReader(archive) as r:
        a = r.archive
        print(f"Archive: {archive}")
        print(f"  Format version: {a.format_version}")
        print(f"  Title: {a.title}")
        print(f"  Description: {a.description}")
        print(f"  Author: {a.author}")
        print(f"  Type: {a.type}")
        print(f"  Tags: {' '.join(a.tags)}")
        print(f"  Origin id: {a.origin_id}")
        print(f"  Timestamp: {a.timestamp}")
        if a.required:
            print(f"  Requires: {', '.join(a.required)}")
        print(f"  Entries: {len(a.entries)}")
        print(f"  Size: {_human_size(r.file_size)}")
    return True


def cmd_extract(archive: str, *, outdir: str = ".", paths: Optional[List[str]] = None, quiet: bool = False) -> bool:
    """Extract entries below ``outdir``."""
    with AddonReader(archive) as r:
        written = r.extract_all(outdir, paths=paths)
    if not quiet:
        for p in written:
            print(f" extracted: {p}")
    print(f"Extracted {len(written)} file(s) to {outdir}")
    if paths and len(written) < len(set(paths)):
        print("Warning: some requested paths are not in the archive", file=sys.stderr)
        return False
    return True


def cmd_whitelist(paths: Optional[List[str]] = None) -> bool:
    """Show the whitelist by category, or classify the given paths."""
    if not paths:
        for name, patterns in whitelist.categories().items():
            print(f"{name}: {' '.join(patterns)}")
        return True
    ok = True
    for p in paths:
        if whitelist.is_ignored(os.path.basename(p)):
            print(f"IGNORED  {p}")
            ok = False
            continue
        located = whitelist.locate(p)
        if located is None:
            print(f"DENIED   {p}")
            ok = False
        else:
            print(f"ALLOWED  {p} -> {located} ({whitelist.match_pattern(located)})")
    return ok


def main(argv: List[str] | None = None):
    ap = argparse.ArgumentParser(
        prog="gmapack",
        description="Addon (.gma) archive tool",
        epilog="Saving rewrites only the blocks of the file that changed.",
    )
    sub = ap.add_subparsers(dest="cmd", required=True)

    ap_new = sub.add_parser("new", help="Create a new, empty addon")
    ap_new.add_argument("output", help="Output .gma path")
    ap_new.add_argument("--title", required=True, help="Addon title")
    ap_new.add_argument("--description", default="", help="Short description")
    ap_new.add_argument("--type", dest="addon_type", required=True, help=f"One of: {' '.join(ADDON_TYPES)}")
    ap_new.add_argument("--tags", nargs="*", default=[], help=f"Up to two of: {' '.join(ADDON_TAGS)}")
    ap_new.add_argument("--author", default=None, help=f"Author (default: {DEFAULT_AUTHOR!r})")

    ap_add = sub.add_parser("add", help="Add files/folders to an addon")
    ap_add.add_argument("archive", help="Addon path")
    ap_add.add_argument("inputs", nargs="+", help="Input files/directories")
    ap_add.add_argument("--quiet", help="limit outputs to summaries only", action="store_true")

    ap_remove = sub.add_parser("remove", help="Remove entries from an addon")
    ap_remove.add_argument("archive", help="Addon path")
    ap_remove.add_argument("paths", nargs="+", help="Archive paths to remove")

    ap_list = sub.add_parser("list", help="List addon contents")
    ap_list.add_argument("archive", help="Addon path")

    ap_get = sub.add_parser("get", help="Print a metadata field")
    ap_get.add_argument("archive", help="Addon path")
    ap_get.add_argument("field", help=f"One of: {' '.join(f.value for f in Field)}")

    ap_set = sub.add_parser("set", help="Set a metadata field")
    ap_set.add_argument("archive", help="Addon path")
    ap_set.add_argument("field", help=f"One of: {' '.join(f.value for f in Field)}")
    ap_set.add_argument("values", nargs="*", help="New value (tags: one value per tag)")

    ap_info = sub.add_parser("info", help="Show addon information")
    ap_info.add_argument("archive", help="Addon path")

    ap_extract = sub.add_parser("extract", help="Extract files")
    ap_extract.add_argument("archive", help="Addon path")
    ap_extract.add_argument("--outdir", default=".", help="Output directory")
    ap_extract.add_argument("paths", nargs="*", help="Specific archive paths to extract")
    ap_extract.add_argument("--quiet", help="limit outputs to summaries only", action="store_true")

    ap_wl = sub.add_parser("whitelist", help="Show allowed file types or check paths")
    ap_wl.add_argument("paths", nargs="*", help="Paths to check")

    for p in (ap_new, ap_add, ap_remove, ap_set):
        p.add_argument(
            "--block-size",
            type=int,
            default=DEFAULT_BLOCK_SIZE,
            help=f"Diff block size in bytes (default {DEFAULT_BLOCK_SIZE})",
        )

    args = ap.parse_args(argv)
    try:
        if args.cmd == "new":
            success = cmd_new(
                args.output,
                title=args.title,
                description=args.description,
                addon_type=args.addon_type,
                tags=args.tags,
                author=args.author,
                block_size=args.block_size,
            )
        elif args.cmd == "add":
            success = cmd_add(args.archive, args.inputs, block_size=args.block_size, quiet=args.quiet)
        elif args.cmd == "remove":
            success = cmd_remove(args.archive, args.paths, block_size=args.block_size)
        elif args.cmd == "list":
            success = cmd_list(args.archive)
        elif args.cmd == "get":
            success = cmd_get(args.archive, args.field)
        elif args.cmd == "set":
            success = cmd_set(args.archive, args.field, args.values, block_size=args.block_size)
        elif args.cmd == "info":
            success = cmd_info(args.archive)
        elif args.cmd == "extract":
            success = cmd_extract(args.archive, outdir=args.outdir, paths=args.paths, quiet=args.quiet)
        elif args.cmd == "whitelist":
            success = cmd_whitelist(args.paths)
        else:
            raise RuntimeError("Unknown command")
    except CommandError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)
    except ValueError as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)
    except (AddonError, OSError) as e:
        print(f"Error: {e}", file=sys.stderr)
        sys.exit(2)
    sys.exit(0 if success else 1)


if __name__ == "__main__":
    main()
