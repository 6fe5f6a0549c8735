"""Verify OpenNext Lambda bundles before deploying them."""

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path

logger = logging.getLogger(__name__)

MANIFEST_FILENAME = "open-next.output.json"
ENTRYPOINT = "index.mjs"
DEFAULT_REQUIRED_FUNCTIONS = ("server-functions/default", "image-optimization-function")
OPEN_NEXT_CANDIDATES = (".open-next", "apps/web/.open-next")


@dataclass
class VerificationReport:
    open_next_dir: Path
    manifest_found: bool = False
    verified_functions: list[str] = field(default_factory=list)
    missing_functions: list[str] = field(default_factory=list)
    missing_entrypoints: list[str] = field(default_factory=list)
    broken_symlinks: list[Path] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return (
            self.manifest_found
            and not self.missing_functions
            and not self.missing_entrypoints
            and not self.broken_symlinks
        )


def detect_open_next_dir(cwd: str | Path = ".") -> Path:
    """Return `.open-next` when present, otherwise the monorepo app location."""
    base = Path(cwd)
    if (base / OPEN_NEXT_CANDIDATES[0]).exists():
        return base / OPEN_NEXT_CANDIDATES[0]
    return base / OPEN_NEXT_CANDIDATES[1]


def find_broken_symlinks(root: Path) -> list[Path]:
    """Collect dangling symlinks, skipping hidden directories."""
    broken = []
    for dirpath, dirnames, filenames in os.walk(root):
        dirnames[:] = sorted(d for d in dirnames if not d.startswith("."))
        for name in [*dirnames, *sorted(filenames)]:
            path = Path(dirpath, name)
            if path.is_symlink() and not path.exists():
                broken.append(path)
    return broken


def verify_lambda_packages(
    open_next_dir: str | Path,
    required_functions: list[str] | tuple[str, ...] = DEFAULT_REQUIRED_FUNCTIONS,
) -> VerificationReport:
    """Check that the OpenNext output is complete and self-contained.

    Args:
        open_next_dir: The `.open-next` directory.
        required_functions: Bundle directories that must contain index.mjs.

    Returns:
        VerificationReport; `ok` is True only when nothing is missing or broken.
    """
    root = Path(open_next_dir)
    report = VerificationReport(open_next_dir=root)

    if not root.is_dir():
        logger.error(f"OpenNext directory {root} not found")
        return report

    report.manifest_found = (root / MANIFEST_FILENAME).is_file()
    if not report.manifest_found:
        logger.error(f"{MANIFEST_FILENAME} not found")
        return report

    for function in required_functions:
        function_dir = root / function
        if not function_dir.is_dir():
            logger.error(f"Missing function: {function}")
            report.missing_functions.append(function)
        elif not (function_dir / ENTRYPOINT).is_file():
            logger.error(f"Missing {ENTRYPOINT} in {function}")
            report.missing_entrypoints.append(function)
        else:
            logger.info(f"Verified {function}")
            report.verified_functions.append(function)

    report.broken_symlinks = find_broken_symlinks(root)
    for link in report.broken_symlinks:
        logger.error(f"Broken symlink: {link.relative_to(root)}")

    return report
