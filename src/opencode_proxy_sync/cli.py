"""CLI entry point for opencode-proxy-sync."""

from __future__ import annotations

import argparse
import json
import logging
import sys

from .catalog import MODEL_CATALOG
from .config import load_sync_config
from .errors import SyncError


def _add_common(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--config", help="Path to a settings file (JSON or YAML)")
    parser.add_argument("--config-dir", metavar="DIR", help="OpenCode config directory (default: ~/.config/opencode)")
    parser.add_argument("--verbose", "-v", action="store_true", default=None, help="Enable debug logging")


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="opencode-proxy-sync",
        description="Keep OpenCode's provider config in sync with a local Antigravity proxy",
    )
    sub = parser.add_subparsers(dest="command")

    p_sync = sub.add_parser("sync", help="Write the managed provider (and optionally accounts) into OpenCode")
    _add_common(p_sync)
    p_sync.add_argument("--url", dest="proxy_url", help="Proxy base URL (default: http://127.0.0.1:8045)")
    p_sync.add_argument("--api-key", help="API key the proxy expects")
    p_sync.add_argument(
        "--accounts",
        dest="sync_accounts",
        action="store_true",
        default=None,
        help="Also rewrite antigravity-accounts.json from the app accounts",
    )
    p_sync.add_argument("--no-accounts", dest="sync_accounts", action="store_false", help="Leave the accounts file alone")
    p_sync.set_defaults(sync_accounts=None)
    p_sync.add_argument("--data-dir", metavar="DIR", help="App data directory holding the accounts")
    p_sync.add_argument(
        "--model",
        dest="models",
        metavar="ID",
        action="append",
        help="Only sync this catalog model (repeatable; default: all)",
    )
    p_sync.add_argument("--dry-run", action="store_true", help="Print the resulting config without writing files")

    p_clear = sub.add_parser("clear", help="Remove the managed provider from OpenCode")
    _add_common(p_clear)
    p_clear.add_argument("--url", dest="proxy_url", help="Proxy base URL used to recognise legacy entries")
    p_clear.add_argument(
        "--legacy",
        dest="clear_legacy",
        action="store_true",
        default=None,
        help="Also strip proxy models and credentials from the anthropic/google providers",
    )
    p_clear.add_argument("--dry-run", action="store_true", help="Print the resulting config without writing files")

    p_restore = sub.add_parser("restore", help="Restore OpenCode files from their backups")
    _add_common(p_restore)

    p_status = sub.add_parser("status", help="Show OpenCode installation and sync status")
    _add_common(p_status)
    p_status.add_argument("--url", dest="proxy_url", help="Proxy base URL to compare against")

    p_show = sub.add_parser("show", help="Print one of the managed OpenCode files")
    _add_common(p_show)
    p_show.add_argument("file_name", nargs="?", help="opencode.json (default), antigravity.json or antigravity-accounts.json")

    sub.add_parser("models", help="List the model catalog")
    return parser


def _configure_logging(verbose: bool) -> None:
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(asctime)s [%(name)s] %(levelname)s: %(message)s",
        stream=sys.stderr,
    )


def main(argv: list[str] | None = None):
    parser = _build_parser()
    args = parser.parse_args(argv)

    if args.command == "models":
        _run_models()
        return
    if args.command is None:
        parser.print_help()
        sys.exit(1)

    cli_overrides = {
        "config_dir": args.config_dir,
        "verbose": args.verbose,
        "proxy_url": getattr(args, "proxy_url", None),
        "api_key": getattr(args, "api_key", None),
        "sync_accounts": getattr(args, "sync_accounts", None),
        "data_dir": getattr(args, "data_dir", None),
        "models": getattr(args, "models", None),
        "clear_legacy": getattr(args, "clear_legacy", None),
    }

    try:
        config = load_sync_config(config_path=args.config, cli_overrides=cli_overrides)
    except (OSError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)

    _configure_logging(config.verbose)

    handlers = {
        "sync": _run_sync,
        "clear": _run_clear,
        "restore": _run_restore,
        "status": _run_status,
        "show": _run_show,
    }
    try:
        handlers[args.command](args, config)
    except (SyncError, ValueError, FileNotFoundError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        sys.exit(1)


# ---------------------------------------------------------------------------
# Command handlers
# ---------------------------------------------------------------------------


def _run_sync(args: argparse.Namespace, config) -> None:
    from .sync import sync

    if not config.api_key:
        raise ValueError("an API key is required (--api-key or OPENCODE_PROXY_SYNC_API_KEY)")

    result = sync(
        config.proxy_url,
        config.api_key,
        sync_accounts=config.sync_accounts,
        model_ids=config.models,
        config_dir=config.config_dir,
        data_dir=config.data_dir,
        dry_run=args.dry_run,
    )

    if args.dry_run:
        print("(dry-run) No files were modified.\n")
        print(json.dumps(result["document"], indent=2, ensure_ascii=False))
        return

    print(f"opencode: {result['config_path']}")
    if result["backup"]:
        print(f"  Backup: {result['backup']}")
    print(f"  [+] {len(result['models'])} models synced")
    if result["accounts"] is not None:
        print(f"  [+] {result['accounts']} accounts written")


def _run_clear(args: argparse.Namespace, config) -> None:
    from .sync import clear

    result = clear(
        proxy_url=config.proxy_url if config.clear_legacy else None,
        clear_legacy=config.clear_legacy,
        config_dir=config.config_dir,
        dry_run=args.dry_run,
    )

    if args.dry_run:
        print("(dry-run) No files were modified.\n")
        if result["document"] is not None:
            print(json.dumps(result["document"], indent=2, ensure_ascii=False))
        return

    if result["config_cleared"]:
        print(f"opencode: {result['config_path']}")
        if result["backup"]:
            print(f"  Backup: {result['backup']}")
        print("  [-] managed provider removed")
    else:
        print(f"opencode: not found ({result['config_path']})")
    if result["accounts"]:
        print(f"  [-] accounts file {result['accounts']}")


def _run_restore(args: argparse.Namespace, config) -> None:
    from .sync import restore

    result = restore(config_dir=config.config_dir)
    for name, backup in result["restored"].items():
        if backup:
            print(f"  [*] {name}: restored from {backup}")
        else:
            print(f"  [~] {name}: no backup")


def _run_status(args: argparse.Namespace, config) -> None:
    from .sync import status

    result = status(config.proxy_url, config_dir=config.config_dir)
    if not result["installed"]:
        print("opencode: not installed")
        return

    print(f"opencode: {result['version']}")
    print(f"  Synced: {'yes' if result['is_synced'] else 'no'}")
    print(f"  Backup: {'yes' if result['has_backup'] else 'no'}")
    if result["current_base_url"]:
        print(f"  Base URL: {result['current_base_url']}")


def _run_show(args: argparse.Namespace, config) -> None:
    from .sync import read_raw_file

    sys.stdout.write(read_raw_file(args.file_name, config_dir=config.config_dir))


def _run_models() -> None:
    for model in MODEL_CATALOG:
        family = model.variant_family.value if model.variant_family else "-"
        print(f"{model.id:<28} {model.name:<28} ctx={model.context_limit} out={model.output_limit} variants={family}")


if __name__ == "__main__":
    main()
