#!/usr/bin/env python3
"""
cli.py
Command-line interface for road-test-archive.
Reads the environment contract (flags override it), loads the optional config,
and invokes the orchestrator. Normally started by the udev-triggered systemd unit.
"""
from __future__ import annotations
import argparse, os, sys
import tomllib
from dataclasses import replace
from .bundle import DEFAULT_CONFIG_PATH, SYSTEM_CONFIG_PATH
from .config import find_config, load_config, load_context
from .errors import ConfigError
from .logsetup import log, setup_logging
from .orchestrator import install_signal_handlers, run_archive
from .types import EMPTY_POLICIES


def warn_if_not_root() -> None:
    """Mounting usually needs root; an fstab 'user' entry is the exception, so only warn."""
    if os.geteuid() != 0:
        log.warning("Not running as root; mount/umount may be refused unless fstab allows it")


def build_parser() -> argparse.ArgumentParser:
    ap = argparse.ArgumentParser(
        description="road-test-archive: mount removable media and archive workspace data onto it",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog=(
            "\nEnvironment: WORKSPACE, DEVICE_UUID, WEBHOOK_URL, ARCHIVE_BASE_DIR"
            "\n(the matching flags take precedence)."
        ),
    )
    ap.add_argument(
        "--config",
        default=None,
        help=f"path to roadarchive.toml (default: {DEFAULT_CONFIG_PATH} then {SYSTEM_CONFIG_PATH})",
    )
    ap.add_argument("--dry-run", action="store_true", help="log commands and payload without executing")
    ap.add_argument("--workspace", help="workspace root containing data/{log,bag,core}")
    ap.add_argument("--device-uuid", help="filesystem UUID of the archive volume")
    ap.add_argument("--webhook-url", help="webhook endpoint for the status report")
    ap.add_argument("--archive-base", help="directory holding the mount point (default: <workspace>/archive)")
    ap.add_argument("--parallel", action="store_true", help="sync categories concurrently")
    ap.add_argument(
        "--empty-archive",
        choices=EMPTY_POLICIES,
        default=None,
        help="status to report when every category source is missing",
    )
    return ap


def main(argv=None) -> int:
    try:
        args = build_parser().parse_args(argv)

        try:
            cfg_path = find_config(args.config)
            cfg = load_config(cfg_path)
        except FileNotFoundError as e:
            print(f"❌ Error: {e}")
            print(f"💡 Hint: Check the path, or omit --config to use built-in defaults")
            return ConfigError.exit_code
        except (tomllib.TOMLDecodeError, ConfigError, ValueError) as e:
            print(f"❌ Error: Invalid configuration file {cfg_path}: {e}")
            print(f"💡 Hint: Check TOML syntax and value types in {cfg_path}")
            return ConfigError.exit_code

        if args.parallel:
            cfg = replace(cfg, parallel=True)
        if args.empty_archive:
            cfg = replace(cfg, empty_archive=args.empty_archive)

        setup_logging(cfg.log_level, syslog=cfg.syslog)

        try:
            ctx = load_context(
                workspace=args.workspace,
                device_uuid=args.device_uuid,
                webhook_url=args.webhook_url,
                archive_base=args.archive_base,
            )
        except ConfigError as e:
            log.error("Error: %s", e)
            print(f"💡 Hint: Set WORKSPACE, DEVICE_UUID and WEBHOOK_URL in the service unit, or pass the matching flags")
            return e.exit_code

        if not args.dry_run:
            warn_if_not_root()
        install_signal_handlers()
        return run_archive(ctx, cfg, dry=args.dry_run)

    except KeyboardInterrupt:
        print(f"\n\n⚡ Interrupted by user.")
        return 130
    except Exception as e:
        print(f"❌ Unexpected error: {e}")
        print(f"💡 Hint: Run with --dry-run first to check configuration and environment")
        return 1


if __name__ == "__main__":
    sys.exit(main())
