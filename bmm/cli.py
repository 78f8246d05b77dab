#!/usr/bin/env python3
"""
bmm - a bookmark manager for the command line.

Save, import, list, search and tag URIs; browse them interactively with
``bmm tui``.
"""
import sys
import argparse
import json
import logging
from dataclasses import asdict
from pathlib import Path
from typing import List, Optional

from rich.console import Console
from rich.markup import escape

from bmm import __version__
from bmm.config import BmmConfig, init_config
from bmm.db import BookmarkNotFoundError, SameTagError, get_db
from bmm.exporters import (
    FORMATS, render_bookmarks, render_tags, render_tag_stats, render_bookmark_details
)
from bmm.importers import import_file
from bmm.query import FieldFilter, SearchTerms
from bmm.tui import TuiContext, run_tui
from bmm.utils import DraftBookmark, parse_tag, split_tags

logger = logging.getLogger(__name__)


console = Console()

LOG_FORMAT = "%(levelname)s: %(message)s"


def configure_logging(config: BmmConfig):
    """Send bmm's log records to the configured file, or stderr."""
    root = logging.getLogger("bmm")
    if root.handlers:
        return

    if config.log_file:
        handler = logging.FileHandler(config.log_file)
    else:
        handler = logging.StreamHandler(sys.stderr)
    handler.setFormatter(logging.Formatter(LOG_FORMAT))
    root.addHandler(handler)
    root.setLevel(config.log_level.upper())


def confirm(prompt: str) -> bool:
    answer = input(f"{prompt} (y/N): ").strip().lower()
    return answer == "y"


def cmd_import(args):
    """Import bookmarks from an HTML, JSON or text file."""
    db = get_db(args.db)

    result = import_file(
        db,
        Path(args.file),
        dry_run=args.dry_run,
        reset_missing=args.reset_missing_details,
        ignore_attribute_errors=args.ignore_attribute_errors,
    )

    if result.dry_run:
        print(json.dumps([d.to_dict() for d in result.drafts], indent=2))
        return

    console.print(f"[green]imported {result.saved} bookmarks[/green]")


def cmd_list(args):
    """List bookmarks matching a fielded filter."""
    db = get_db(args.db)

    field_filter = FieldFilter.create(uri=args.uri, title=args.title, tags=split_tags(args.tags))
    bookmarks = db.fielded_search(field_filter, args.limit)

    if args.tui:
        run_tui(db, args.config_obj, TuiContext.listing(bookmarks))
        return

    render_bookmarks(bookmarks, args.format)


def cmd_save(args):
    """Save a bookmark, or update the one saved under the same URI."""
    db = get_db(args.db)

    draft = DraftBookmark.create(
        args.uri,
        title=args.title,
        tags=split_tags(args.tags),
        ignore_attribute_errors=args.ignore_attribute_errors,
    )
    db.save(
        draft,
        fail_if_exists=args.fail_if_uri_already_saved,
        reset_missing=args.reset_missing_details,
    )
    console.print(f"[green]saved {escape(draft.uri)}[/green]")


def read_uris(args) -> List[str]:
    uris = list(args.uris)
    if args.stdin:
        uris.extend(line.strip() for line in sys.stdin if line.strip())
    return uris


def cmd_save_all(args):
    """Save many URIs at once, all with the same tags."""
    db = get_db(args.db)

    uris = read_uris(args)
    if not uris:
        console.print("[yellow]nothing to save[/yellow]")
        return

    tags = split_tags(args.tags)
    drafts = [DraftBookmark.create(uri, tags=tags) for uri in uris]
    saved = db.save_all(drafts, reset_missing=args.reset_missing_details)
    console.print(f"[green]saved {saved} bookmarks[/green]")


def cmd_search(args):
    """Search bookmarks by free-text terms."""
    db = get_db(args.db)

    terms = SearchTerms.parse(args.terms)

    if args.tui:
        run_tui(db, args.config_obj, TuiContext.search(terms))
        return

    render_bookmarks(db.search_by_terms(terms, args.limit), args.format)


def cmd_show(args):
    """Show the details of one bookmark."""
    db = get_db(args.db)

    bookmark = db.get_by_uri(args.uri)
    if bookmark is None:
        raise BookmarkNotFoundError(args.uri)

    print(render_bookmark_details(bookmark))


def cmd_delete(args):
    """Delete bookmarks by URI."""
    db = get_db(args.db)

    if not args.yes:
        console.print(f"[yellow]This will delete {len(args.uris)} bookmark(s)[/yellow]")
        if not confirm("Continue?"):
            console.print("[dim]Cancelled[/dim]")
            return

    deleted = db.delete(args.uris)
    if deleted < len(args.uris):
        console.print(f"[yellow]{len(args.uris) - deleted} bookmark(s) not found[/yellow]")
    console.print(f"[green]deleted {deleted} bookmark(s)[/green]")


def cmd_tags_list(args):
    """List tags, optionally with how many bookmarks carry each."""
    db = get_db(args.db)

    if args.tui:
        run_tui(db, args.config_obj, TuiContext.tags())
    elif args.show_stats:
        render_tag_stats(db.all_tags_with_counts(), args.format)
    else:
        render_tags(db.tag_names(), args.format)


def cmd_tags_rename(args):
    """Rename a tag across all bookmarks."""
    db = get_db(args.db)

    new_tag = parse_tag(args.new_tag)
    try:
        renamed = db.rename_tag(args.old_tag, new_tag)
    except SameTagError:
        console.print("[yellow]Tags are the same, nothing to do[/yellow]")
        return
    console.print(f"[green]✓ Renamed tag '{args.old_tag}' to '{new_tag}' on {renamed} bookmark(s)[/green]")


def cmd_tags_delete(args):
    """Remove tags from every bookmark."""
    db = get_db(args.db)

    if not args.yes:
        console.print(f"[yellow]This will delete tag(s): {', '.join(args.tags)}[/yellow]")
        if not confirm("Continue?"):
            console.print("[dim]Cancelled[/dim]")
            return

    deleted = db.delete_tags(args.tags)
    console.print(f"[green]deleted {deleted} tag(s)[/green]")


def cmd_tui(args):
    """Start the interactive UI."""
    run_tui(get_db(args.db), args.config_obj, TuiContext.blank())


def print_debug_info(args, config: BmmConfig):
    arguments = {k: v for k, v in vars(args).items() if k not in ("func", "config_obj")}
    console.print("[bold]DEBUG INFO[/bold]\n")
    console.print("<your arguments>")
    console.print(escape(json.dumps(arguments, indent=2, default=str)))
    console.print("\n<computed config>")
    console.print(escape(json.dumps(asdict(config), indent=2, default=str)))
    console.print(f"db path: {escape(str(config.get_database_path()))}")


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="bmm",
        description="bmm - a bookmark manager for the command line",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  bmm save https://github.com/dhth/bmm --title "bmm" --tags tools,cli
  bmm import bookmarks.html --dry-run
  bmm list -t tools -f json
  bmm search rust cli --tui
  bmm tags list --show-stats
  bmm tags rename tools tooling
  bmm tui

Configuration:
  Default database: ~/.local/share/bmm/bmm.db
  Config file: ~/.config/bmm/config.toml
  Environment: BMM_DATABASE, BMM_OUTPUT_FORMAT, BMM_LOG_LEVEL
        """
    )

    # Global options
    parser.add_argument("--db", help="Database file")
    parser.add_argument("--config", help="Config file path")
    parser.add_argument("--debug", action="store_true", help="Print arguments and configuration, then exit")
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")

    subparsers = parser.add_subparsers(dest="command", required=True, help="Commands")

    # import
    import_parser = subparsers.add_parser("import", help="Import bookmarks from a file (html, json, txt)")
    import_parser.add_argument("file", help="File to import")
    import_parser.add_argument("--dry-run", action="store_true", help="Validate and print bookmarks without saving")
    import_parser.add_argument("-r", "--reset-missing-details", action="store_true",
                               help="Clear details of existing bookmarks that the file doesn't provide")
    import_parser.add_argument("--ignore-attribute-errors", action="store_true",
                               help="Fix or drop invalid titles and tags instead of failing")
    import_parser.set_defaults(func=cmd_import)

    # list
    list_parser = subparsers.add_parser("list", help="List bookmarks")
    list_parser.add_argument("-u", "--uri", help="Pattern to match URIs against")
    list_parser.add_argument("-d", "--title", help="Pattern to match titles against")
    list_parser.add_argument("-t", "--tags", help="Comma-separated tags a bookmark must carry")
    list_parser.add_argument("-f", "--format", choices=FORMATS, help="Output format")
    list_parser.add_argument("-l", "--limit", type=int, help="Maximum number of bookmarks")
    list_parser.add_argument("--tui", action="store_true", help="Show results in the TUI")
    list_parser.set_defaults(func=cmd_list)

    # save
    save_parser = subparsers.add_parser("save", help="Save a bookmark")
    save_parser.add_argument("uri", help="URI to save")
    save_parser.add_argument("--title", help="Title")
    save_parser.add_argument("-t", "--tags", help="Comma-separated tags")
    save_parser.add_argument("-f", "--fail-if-uri-already-saved", action="store_true",
                             help="Fail instead of updating an existing bookmark")
    save_parser.add_argument("-r", "--reset-missing-details", action="store_true",
                             help="Clear title and tags that aren't provided")
    save_parser.add_argument("--ignore-attribute-errors", action="store_true",
                             help="Fix or drop invalid title and tags instead of failing")
    save_parser.set_defaults(func=cmd_save)

    # save-all
    save_all_parser = subparsers.add_parser("save-all", help="Save several bookmarks at once")
    save_all_parser.add_argument("uris", nargs="*", help="URIs to save")
    save_all_parser.add_argument("-t", "--tags", help="Comma-separated tags for every URI")
    save_all_parser.add_argument("-s", "--stdin", action="store_true", help="Also read URIs from stdin")
    save_all_parser.add_argument("-r", "--reset-missing-details", action="store_true",
                                 help="Replace tags of existing bookmarks")
    save_all_parser.set_defaults(func=cmd_save_all)

    # search
    search_parser = subparsers.add_parser("search", help="Search bookmarks by terms")
    search_parser.add_argument("terms", nargs="+", help="Terms to match against URI, title and tags")
    search_parser.add_argument("-f", "--format", choices=FORMATS, help="Output format")
    search_parser.add_argument("-l", "--limit", type=int, help="Maximum number of bookmarks")
    search_parser.add_argument("--tui", action="store_true", help="Show results in the TUI")
    search_parser.set_defaults(func=cmd_search)

    # show
    show_parser = subparsers.add_parser("show", help="Show bookmark details")
    show_parser.add_argument("uri", help="URI of the bookmark")
    show_parser.set_defaults(func=cmd_show)

    # delete
    delete_parser = subparsers.add_parser("delete", help="Delete bookmarks")
    delete_parser.add_argument("uris", nargs="+", help="URIs to delete")
    delete_parser.add_argument("-y", "--yes", action="store_true", help="Skip confirmation")
    delete_parser.set_defaults(func=cmd_delete)

    # tags
    tags_parser = subparsers.add_parser("tags", help="Tag operations")
    tags_subparsers = tags_parser.add_subparsers(dest="tags_command", required=True)

    tags_list = tags_subparsers.add_parser("list", help="List tags")
    tags_list.add_argument("-f", "--format", choices=FORMATS, help="Output format")
    tags_list.add_argument("-s", "--show-stats", action="store_true", help="Show bookmark counts")
    tags_list.add_argument("--tui", action="store_true", help="Browse tags in the TUI")
    tags_list.set_defaults(func=cmd_tags_list)

    tags_rename = tags_subparsers.add_parser("rename", help="Rename a tag")
    tags_rename.add_argument("old_tag", help="Tag to rename")
    tags_rename.add_argument("new_tag", help="New name")
    tags_rename.set_defaults(func=cmd_tags_rename)

    tags_delete = tags_subparsers.add_parser("delete", help="Delete tags")
    tags_delete.add_argument("tags", nargs="+", help="Tags to delete")
    tags_delete.add_argument("-y", "--yes", action="store_true", help="Skip confirmation")
    tags_delete.set_defaults(func=cmd_tags_delete)

    # tui
    tui_parser = subparsers.add_parser("tui", help="Browse bookmarks interactively")
    tui_parser.set_defaults(func=cmd_tui)

    return parser


def main(argv: Optional[List[str]] = None):
    """Main entry point."""
    parser = build_parser()
    args = parser.parse_args(argv)

    config_args = {}
    if args.config:
        config_args["config_file"] = Path(args.config)

    config = init_config(database=args.db, **config_args)
    configure_logging(config)

    args.config_obj = config
    if hasattr(args, "format") and not args.format:
        args.format = config.output_format
    if hasattr(args, "limit") and args.limit is None:
        args.limit = config.default_limit

    if args.debug:
        print_debug_info(args, config)
        return

    # Execute command
    try:
        args.func(args)
    except KeyboardInterrupt:
        console.print("\n[yellow]Interrupted[/yellow]")
        sys.exit(130)
    except Exception as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        sys.exit(1)


if __name__ == "__main__":
    main()
