"""CLI entrypoint for OpenNext bundle tooling.

Usage:
    python -m bundles fix-symlinks [DIR]    # repair pnpm .bin symlinks
    python -m bundles verify [DIR]          # check bundles before deploying

DIR defaults to OPEN_NEXT_DIR, then `.open-next`, then `apps/web/.open-next`.
"""

import argparse
import logging
import sys
from pathlib import Path

from bundles.symlinks import PnpmSymlinkFixer
from bundles.verify import detect_open_next_dir, verify_lambda_packages
from common.config import get_settings

logger = logging.getLogger(__name__)


def resolve_dir(directory: str | None) -> Path:
    if directory:
        return Path(directory)
    settings = get_settings()
    if settings.open_next_dir:
        return Path(settings.open_next_dir)
    return detect_open_next_dir()


def fix_symlinks(directory: Path) -> int:
    """Repair symlinks. Returns exit code."""
    fixer = PnpmSymlinkFixer(directory)
    return 0 if fixer.fix_all() else 1


def verify(directory: Path) -> int:
    """Verify bundles. Returns exit code."""
    logger.info("Verifying Lambda packages...")
    report = verify_lambda_packages(directory, get_settings().required_functions_list)

    if report.ok:
        logger.info("All Lambda packages verified successfully!")
        return 0

    logger.error("Lambda package verification failed")
    if report.broken_symlinks:
        logger.info(f"Run: python -m bundles fix-symlinks {directory}")
    return 1


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(description="OpenNext bundle tooling")
    parser.add_argument(
        "command",
        choices=["fix-symlinks", "verify"],
        help="Command to execute",
    )
    parser.add_argument(
        "directory",
        nargs="?",
        default=None,
        help="OpenNext output directory",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=get_settings().log_level.upper(), format="%(levelname)s: %(message)s"
    )

    directory = resolve_dir(args.directory)
    try:
        if args.command == "fix-symlinks":
            return fix_symlinks(directory)
        return verify(directory)
    except OSError as e:
        logger.error(f"{args.command} failed: {e}")
        return 1


if __name__ == "__main__":
    sys.exit(main())
