"""Utility for initializing the Aqua Manager data file.

The module doubles as a script (``python setup_store.py``) and as a library
used by tests or other tooling. It writes the seed aggregate (three sample
customers with their opening balances and the default business settings) to
the data file named in ``config.ini``.
"""

from __future__ import annotations

import argparse
from pathlib import Path
from typing import Sequence
import sys

from aqua_manager import data_manager

CONFIG_FILE = "config.ini"


def load_settings(config_path: Path) -> data_manager.ConfigSettings:
    """Read ``config.ini`` and produce :class:`~aqua_manager.data_manager.ConfigSettings`.

    Relative paths inside the config file are resolved against the config
    file's directory.
    """

    parser = data_manager.read_config(config_path)
    return data_manager.parse_settings(parser, base_path=config_path.expanduser().resolve().parent)


def create_data_file(destination: Path, *, overwrite: bool = False) -> Path:
    """Write the seed aggregate to ``destination``.

    When ``overwrite`` is ``False`` (the default) this function raises
    ``FileExistsError`` if the target already exists, so existing ledgers are
    never replaced by accident.
    """

    destination = destination.expanduser().resolve()
    if destination.exists() and not overwrite:
        raise FileExistsError(f"Refusing to overwrite existing data file: {destination}")

    data_manager.save_state(data_manager.default_state(), destination)
    return destination


def run_from_config(config_path: Path, *, overwrite: bool = False) -> Path:
    settings = load_settings(config_path)
    return create_data_file(settings.data_file, overwrite=overwrite)


def parse_args(argv: Sequence[str] | None = None) -> argparse.Namespace:
    """Parse CLI arguments for the setup script."""

    parser = argparse.ArgumentParser(description="Initialize the Aqua Manager data file")
    parser.add_argument(
        "--config",
        default=CONFIG_FILE,
        help="Path to configuration file (default: config.ini)",
    )
    parser.add_argument(
        "--force",
        action="store_true",
        help="Overwrite the data file if it already exists.",
    )
    return parser.parse_args(argv)


def main(argv: Sequence[str] | None = None) -> int:
    """Entry point for the CLI script."""

    args = parse_args(argv)
    config_path = Path(args.config).expanduser().resolve()

    print("--- Aqua Manager Setup Script ---")
    print(f"Using configuration: {config_path}")

    try:
        output_path = run_from_config(config_path, overwrite=args.force)
    except (FileNotFoundError, KeyError) as exc:
        print(f"\n[ERROR] {exc}")
        return 1
    except FileExistsError as exc:
        print(f"\n[ERROR] {exc}")
        print("Run with --force to overwrite the existing file if appropriate.")
        return 1
    except OSError as exc:
        print(f"\n[ERROR] Unable to write data file: {exc}")
        return 1

    print(f"\n[SUCCESS] Created data file at '{output_path}'.")
    return 0


if __name__ == "__main__":  # pragma: no cover - exercised via manual runs
    sys.exit(main())
