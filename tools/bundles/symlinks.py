"""Repair pnpm symlinks in OpenNext Lambda bundles.

OpenNext copies `node_modules` from a pnpm workspace into each bundle, but
the `.bin` entries are relative symlinks into the pnpm store that do not
survive the copy. Lambda packages them as dangling links. Each broken link
is replaced with a copy of the executable it should point to, or removed
when no candidate can be found.
"""

import logging
import os
import shutil
from pathlib import Path

logger = logging.getLogger(__name__)


def find_bin_directories(root: Path) -> list[Path]:
    """Find every `.bin` directory below root.

    `node_modules/.bin` is picked up directly; other `node_modules` contents
    are not searched.
    """
    bin_dirs: list[Path] = []

    def search(directory: Path) -> None:
        for entry in sorted(directory.iterdir()):
            if not entry.is_dir() or entry.is_symlink():
                continue
            if entry.name == ".bin":
                bin_dirs.append(entry)
            elif entry.name == "node_modules":
                if (entry / ".bin").is_dir():
                    bin_dirs.append(entry / ".bin")
            else:
                search(entry)

    if root.is_dir():
        search(root)
    return bin_dirs


def candidate_paths(link: Path, bin_dir: Path) -> list[Path]:
    """Locations that may hold the real executable, most likely first."""
    name = link.name
    node_modules = bin_dir.parent
    package = node_modules / name

    candidates = [
        bin_dir / os.readlink(link),
        package / "bin.js",
        package / "cli.js",
        package / "index.js",
        package / "bin" / name,
        package / "bin" / f"{name}.js",
    ]

    store = node_modules / ".pnpm"
    if store.is_dir():
        for filename in ("bin.js", "cli.js"):
            candidates.extend(sorted(store.glob(f"{name}@*/node_modules/{name}/{filename}")))

    return candidates


def resolve_link(link: Path, bin_dir: Path) -> Path | None:
    for candidate in candidate_paths(link, bin_dir):
        if candidate.is_file():
            return candidate.resolve()
    return None


class PnpmSymlinkFixer:
    """Replaces broken `.bin` symlinks with copies of their targets."""

    def __init__(self, open_next_dir: str | Path = ".open-next"):
        self.open_next_dir = Path(open_next_dir)
        self.fixed = 0
        self.errors = 0

    def fix_symlink(self, link: Path, bin_dir: Path) -> bool:
        """Fix a single symlink. Returns True if it is usable afterwards."""
        if link.exists():
            logger.debug(f"Symlink {link.name} is valid")
            return True

        logger.warning(f"Fixing broken symlink: {link.name}")
        actual = resolve_link(link, bin_dir)
        link.unlink()

        if actual is None:
            logger.error(f"Could not find actual file for {link.name}")
            self.errors += 1
            return False

        shutil.copyfile(actual, link)
        link.chmod(0o755)
        logger.info(f"Fixed {link.name} -> {actual}")
        self.fixed += 1
        return True

    def process_bin_directory(self, bin_dir: Path) -> None:
        logger.info(f"Processing {bin_dir}")

        for entry in sorted(bin_dir.iterdir()):
            if not entry.is_symlink():
                continue
            try:
                self.fix_symlink(entry, bin_dir)
            except OSError as e:
                logger.error(f"Error processing {entry.name}: {e}")
                self.errors += 1

    def fix_all(self) -> bool:
        """Fix every `.bin` symlink in the bundle directory.

        Returns:
            True when no link was left unresolved; False when the directory
            is missing or any link could not be fixed.
        """
        logger.info("Starting pnpm symlink fix for OpenNext...")

        if not self.open_next_dir.is_dir():
            logger.error(f"OpenNext directory {self.open_next_dir} not found")
            return False

        bin_dirs = find_bin_directories(self.open_next_dir)
        if not bin_dirs:
            logger.warning("No .bin directories found")
            return True

        logger.info(f"Found {len(bin_dirs)} .bin directories")
        for bin_dir in bin_dirs:
            self.process_bin_directory(bin_dir)

        logger.info(f"Symlink fix complete! Fixed: {self.fixed}, Errors: {self.errors}")
        return self.errors == 0
