from __future__ import annotations

import argparse
import asyncio
import sys
from collections.abc import Callable, Coroutine
from typing import Any

from vimkit import Vim
from vimkit.cli import output as out
from vimkit.cli.config import Config, config_path_display, load_config
from vimkit.etl.core.types import ProgressSnapshot
from vimkit.store.base import Store
from vimkit.store.memory import InMemoryStore

DESCRIPTION = """\
vimkit: decode VIM building-model files

Inspect the buffers of a VIM container, read its entity tables, import
the entity graph into a SQL database and print the model tree."""

SEARCH_RESULTS = 10


# ── Infrastructure helpers ──────────────────────────────────────────


def _build_vim(cfg: Config) -> Vim:
    return Vim.from_config(cfg.to_dict())


def _sql_store(url: str) -> Store:
    from vimkit.store.sql import SQLStore

    return SQLStore(url)


async def _load(vim: Vim, location: str) -> None:
    try:
        await vim.load(location)
    except Exception as exc:
        message = getattr(exc, "message", None) or str(exc)
        out.error(f"Could not load {location}: {message}")
        out.kv("Error kind", getattr(vim.state, "kind", "unknown"))
        sys.exit(1)


def _print_progress(snapshot: ProgressSnapshot) -> None:
    print(
        f"\r  {out.progress_bar(snapshot.fraction_completed)}  "
        f"{snapshot.completed_units:,}/{snapshot.total_units:,}",
        end="",
        flush=True,
    )


# ── inspect ─────────────────────────────────────────────────────────


async def cmd_inspect(args: argparse.Namespace) -> None:
    vim = _build_vim(load_config())
    await _load(vim, args.path)

    container = vim.container
    out.header(f"{args.path}")
    out.kv("SHA-256", vim.sha256_hash)
    out.kv("Version", container.header.version)
    out.kv("Size", out.human_bytes(container.total_byte_size))

    if vim.header:
        out.header("Header")
        for key, value in vim.header.items():
            out.kv(key, value)

    out.header("Buffers")
    for buffer in container:
        out.kv(buffer.name, out.human_bytes(buffer.byte_length))

    if vim.tables is not None:
        out.header("Tables")
        out.kv("Count", len(vim.tables.names))
    if vim.strings is not None:
        out.kv("Strings", f"{len(vim.strings):,}")

    geometry = vim.geometry
    if geometry is not None:
        out.header("Geometry")
        out.kv("Attributes", len(geometry.attributes))
        out.kv("Vertices", f"{geometry.vertex_count:,}")
        out.kv("Indices", f"{geometry.index_count:,}")
        out.kv("Instances", f"{geometry.instance_count:,}")
        box = geometry.bounding_box()
        if box is not None:
            out.kv("Bounds min", "({:.3f}, {:.3f}, {:.3f})".format(*box.min))
            out.kv("Bounds max", "({:.3f}, {:.3f}, {:.3f})".format(*box.max))

    if vim.assets:
        out.header("Assets")
        for name, buffer in vim.assets.items():
            out.kv(name, out.human_bytes(buffer.byte_length))
    print()


# ── tables ──────────────────────────────────────────────────────────


async def cmd_tables(args: argparse.Namespace) -> None:
    vim = _build_vim(load_config())
    await _load(vim, args.path)

    tables = vim.tables
    if tables is None or not tables.names:
        out.warn("No entity tables in this file")
        return

    for name in tables.names:
        table = await asyncio.to_thread(tables.read, name)
        out.header(f"{name}  {out.dim(f'{table.row_count:,} rows')}")
        if args.columns:
            for column in table.columns.values():
                target = f" -> {column.target}" if column.target else ""
                out.kv(column.name, f"{column.type.value}{target}", indent=4)
    print()


# ── import ──────────────────────────────────────────────────────────


async def cmd_import(args: argparse.Namespace) -> None:
    cfg = load_config()
    if args.chunk_size:
        cfg.chunk_size = args.chunk_size
    vim = _build_vim(cfg)
    if args.db:
        store = _sql_store(args.db)
    else:
        store = vim.store or InMemoryStore()
        if not cfg.uses_sql:
            out.warn("No database configured; entities are imported in memory only")
            out.info(f"Pass --db URL or set [store] in {config_path_display()}")

    await _load(vim, args.path)
    await store.init()

    out.header(f"Importing {args.path}")
    try:
        summary = await vim.import_entities(
            store, limit=args.limit, on_progress=_print_progress
        )
    except Exception as exc:
        print()
        out.error(getattr(exc, "message", None) or str(exc))
        sys.exit(1)
    finally:
        await store.close()

    print()
    out.success("Import finished")
    out.kv("Import ID", summary.import_id)
    out.kv("Rows", f"{summary.completed_units:,}")
    for entity, count in summary.entity_counts.items():
        out.kv(entity, f"{count:,}", indent=4)
    if summary.skipped_tables:
        out.kv("Skipped", ", ".join(summary.skipped_tables))
    print()


# ── tree ────────────────────────────────────────────────────────────


async def cmd_tree(args: argparse.Namespace) -> None:
    vim = _build_vim(load_config())
    await _load(vim, args.path)

    store = InMemoryStore()
    await vim.import_entities(store)
    tree = await vim.model_tree(store)

    if args.search:
        matches = tree.search(args.search)
        if not matches:
            out.warn(f"No names match {args.search!r}")
        for node, match_score in matches[:SEARCH_RESULTS]:
            out.kv(node.name, f"{match_score:.2f}")
        return

    root = tree.root.to_dict()
    print(out.bold(f"{args.path}  {out.dim(f'{len(tree.root.ids):,} instances')}"))
    for line in out.tree_lines(root):
        print(line)


# ── cache / config ──────────────────────────────────────────────────


async def cmd_cache_path(args: argparse.Namespace) -> None:
    vim = _build_vim(load_config())
    print(vim.cache.directory)


async def cmd_cache_clear(args: argparse.Namespace) -> None:
    vim = _build_vim(load_config())
    removed = vim.cache.remove(args.prefix or "")
    out.success(f"Removed {removed} cached file(s) from {vim.cache.directory}")


async def cmd_config_show(args: argparse.Namespace) -> None:
    cfg = load_config()
    out.header("Configuration")
    out.kv("Config file", config_path_display())
    for section, values in cfg.to_dict().items():
        out.kv(section, values)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="vimkit",
        description=DESCRIPTION,
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "Examples:\n"
            "  vimkit inspect model.vim                     "
            "Buffers, header and geometry summary\n"
            "  vimkit tables model.vim --columns            "
            "Entity tables with their columns\n"
            "  vimkit import model.vim --db sqlite+aiosqlite:///model.db\n"
            "  vimkit tree https://example.com/model.vim\n"
            "  vimkit cache clear                           "
            "Remove every cached range\n"
        ),
    )
    parser.add_argument(
        "-v",
        "--verbose",
        action="store_true",
        help="Show detailed progress logs (state transitions, cache hits)",
    )
    sub = parser.add_subparsers(dest="command", title="commands")

    p_inspect = sub.add_parser("inspect", help="Summarise a VIM file")
    p_inspect.add_argument("path", help="Path, file:// or https:// URL")

    p_tables = sub.add_parser("tables", help="List entity tables")
    p_tables.add_argument("path", help="Path, file:// or https:// URL")
    p_tables.add_argument("--columns", action="store_true", help="Show columns")

    p_import = sub.add_parser("import", help="Import entities into a database")
    p_import.add_argument("path", help="Path, file:// or https:// URL")
    p_import.add_argument("--db", help="SQLAlchemy async URL (overrides config)")
    p_import.add_argument("--chunk-size", type=int, help="Rows per transaction")
    p_import.add_argument("--limit", type=int, help="Max rows per table")

    p_tree = sub.add_parser("tree", help="Print the Category/Family/Type tree")
    p_tree.add_argument("path", help="Path, file:// or https:// URL")
    p_tree.add_argument("--search", metavar="QUERY", help="Fuzzy-match node names instead")

    p_cache = sub.add_parser("cache", help="Manage the byte-range cache")
    cache_sub = p_cache.add_subparsers(dest="cache_command")
    cache_sub.add_parser("path", help="Print the cache directory")
    p_clear = cache_sub.add_parser("clear", help="Delete cached files")
    p_clear.add_argument("prefix", nargs="?", help="Only keys starting with this")

    sub.add_parser("config", help="Show the effective configuration")

    return parser


# ── Dispatch ────────────────────────────────────────────────────────

_CommandHandler = Callable[[argparse.Namespace], Coroutine[Any, Any, None]]

_COMMAND_MAP: dict[str, _CommandHandler] = {
    "inspect": cmd_inspect,
    "tables": cmd_tables,
    "import": cmd_import,
    "tree": cmd_tree,
    "config": cmd_config_show,
}

_CACHE_MAP: dict[str, _CommandHandler] = {
    "path": cmd_cache_path,
    "clear": cmd_cache_clear,
}


def main() -> None:
    import logging

    parser = _build_parser()
    args = parser.parse_args()

    if args.verbose:
        logging.basicConfig(
            level=logging.INFO,
            format="  %(name)s: %(message)s",
        )
    logging.getLogger("urllib3").setLevel(logging.WARNING)

    if not args.command:
        parser.print_help()
        return

    if args.command == "cache":
        if not args.cache_command:
            parser.parse_args(["cache", "--help"])
            return
        handler = _CACHE_MAP.get(args.cache_command)
    else:
        handler = _COMMAND_MAP.get(args.command)

    if handler is None:
        parser.print_help()
        return

    try:
        asyncio.run(handler(args))
    except KeyboardInterrupt:
        print()
