"""
Kavita Annotations command line

Usage:
    kavita-annotations                     # sync using ~/.kavita-annotations/config.toml
    kavita-annotations sync --stdout       # print the document instead of writing it
    kavita-annotations init-config         # write a default config file
"""

import argparse
import logging
import sys
from dataclasses import replace
from pathlib import Path
from typing import List, Optional

from kavita_annotations.config import CONFIG_FILE, SyncConfig, create_default_config
from kavita_annotations.errors import KavitaAnnotationsError
from kavita_annotations.syncer import AnnotationSyncer, client_from_config, sync_from_config
from kavita_annotations.storage import VaultStorage


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="kavita-annotations",
        description="Sync Kavita highlights and notes into a markdown note",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s
      Sync all annotations to the configured output note

  %(prog)s sync --stdout --no-tags
      Print the document without tags

  %(prog)s sync --vault ~/Notes --output Reading/kavita.md
      Write into a specific vault folder

Environment variables (override the config file):
  KAVITA_URL, KAVITA_API_KEY, VAULT_PATH, OUTPUT_PATH,
  INCLUDE_COMMENTS, INCLUDE_SPOILERS, INCLUDE_TAGS, TAG_PREFIX, INCLUDE_WIKILINKS
        """
    )

    parser.add_argument(
        "command",
        nargs="?",
        default="sync",
        choices=["sync", "init-config"],
        help="What to do (default: sync)"
    )
    parser.add_argument(
        "--config", "-c",
        type=Path,
        default=None,
        help=f"Config file (default: {CONFIG_FILE})"
    )
    parser.add_argument(
        "--vault",
        help="Vault directory the output path is relative to"
    )
    parser.add_argument(
        "--output", "-o",
        help="Output note path inside the vault"
    )
    parser.add_argument(
        "--stdout",
        action="store_true",
        help="Print the document to stdout instead of writing it"
    )

    # Formatting options (None keeps the configured value)
    parser.add_argument(
        "--comments",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Include your notes on highlights"
    )
    parser.add_argument(
        "--spoilers",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Include annotations marked as spoilers"
    )
    parser.add_argument(
        "--tags",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Generate #tags"
    )
    parser.add_argument(
        "--tag-prefix",
        help="Prefix for genre tags, e.g. 'genre/' produces #genre/fiction"
    )
    parser.add_argument(
        "--wikilinks",
        action=argparse.BooleanOptionalAction,
        default=None,
        help="Generate [[wikilinks]] for series, books and authors"
    )
    parser.add_argument(
        "--verbose", "-v",
        action="store_true",
        help="Show debug logging"
    )
    return parser


def apply_args(config: SyncConfig, args: argparse.Namespace) -> SyncConfig:
    """Layer command-line flags over the loaded configuration."""
    if args.vault:
        config.vault_path = args.vault
    if args.output:
        config.output_path = args.output

    overrides = {}
    for flag, attr in (
        ("comments", "include_comments"),
        ("spoilers", "include_spoilers"),
        ("tags", "include_tags"),
        ("wikilinks", "include_wikilinks"),
    ):
        value = getattr(args, flag)
        if value is not None:
            overrides[attr] = value
    if args.tag_prefix is not None:
        overrides["tag_prefix"] = args.tag_prefix
    if overrides:
        config.format = replace(config.format, **overrides)
    return config


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
        stream=sys.stderr,
    )

    # When --stdout, send status messages to stderr so stdout is clean
    def status(msg: str) -> None:
        print(msg, file=sys.stderr if args.stdout else sys.stdout)

    if args.command == "init-config":
        path = args.config or CONFIG_FILE
        if path.exists():
            print(f"Config already exists: {path}", file=sys.stderr)
            return 1
        create_default_config(path)
        print(f"Created config: {path}")
        return 0

    try:
        config = apply_args(SyncConfig.load(args.config), args)
        config.validate()
        status(f"Syncing annotations from {config.kavita_url}...")

        if args.stdout:
            with client_from_config(config) as client:
                syncer = AnnotationSyncer(client, VaultStorage(config.vault_path), config)
                print(syncer.render())
            return 0

        result = sync_from_config(config)
    except KavitaAnnotationsError as e:
        print(f"Sync failed: {e}", file=sys.stderr)
        return 1

    status(f"Synced {result.count} annotations to {result.output_path}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
