"""
HLMM Market Maker - Main entry point.

Usage:
    python -m hlmm config.json              # Live trading
    python -m hlmm config.json --dry-run    # Print orders instead of placing them
    python -m hlmm --dry-run                # Configuration from environment variables
"""
import argparse
import asyncio
import importlib
import os
import signal
import sys
from typing import Optional

from .adapters import DryRunGateway, HyperliquidGateway, Signer
from .config import ConfigError, load_config, load_config_from_env
from .trading import MarketMakerBot


def load_signer(ref: Optional[str]) -> Optional[Signer]:
    """Import a signer given as ``"package.module:function"``.

    Signing keys never pass through HLMM; the signer is an external
    collaborator selected with the HLMM_SIGNER environment variable.
    """
    if not ref:
        return None
    module_name, _, attr = ref.partition(":")
    if not attr:
        raise ConfigError(f"HLMM_SIGNER must look like 'module:function', got {ref!r}")
    return getattr(importlib.import_module(module_name), attr)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Run the HLMM market maker with optional dry-run mode"
    )
    parser.add_argument(
        "config",
        nargs="?",
        help="Path to configuration JSON file (default: read environment variables)"
    )
    parser.add_argument(
        "--dry-run",
        action="store_true",
        help="Dry-run mode: compute quotes against the live book but do not place orders"
    )
    return parser


async def main(argv=None) -> int:
    """Main async entry point."""
    args = build_parser().parse_args(argv)

    try:
        cfg = load_config(args.config) if args.config else load_config_from_env()
    except (OSError, ValueError) as e:
        print(f"❌ Error: invalid configuration: {e}")
        return 1

    if args.dry_run:
        print("⚠️  DRY RUN MODE ACTIVE ⚠️")
        print("No orders will be placed. Watching market and printing theoretical quotes...")
        ex = DryRunGateway(cfg.gateway)
    else:
        try:
            signer = load_signer(os.getenv("HLMM_SIGNER"))
        except (ImportError, AttributeError, ConfigError) as e:
            print(f"❌ Error: cannot load signer: {e}")
            return 1
        if signer is None:
            print("Warning: HLMM_SIGNER not set. Order placement will be rejected.")
        print("🚀 Starting live market maker...")
        ex = HyperliquidGateway(cfg.gateway, signer=signer)
    print("=" * 60)

    bot = MarketMakerBot(cfg, ex)
    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, lambda: asyncio.create_task(bot.shutdown()))
        except NotImplementedError:
            pass

    try:
        await bot.run()
    except Exception as e:
        print(f"\n\n❌ Fatal error: {e}")
        return 1
    finally:
        print("\nBot stopped.")
    return 0


def cli() -> None:
    sys.exit(asyncio.run(main()))


if __name__ == "__main__":
    cli()
