"""Spec file discovery and parsing into source units."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING

from specshard.parsing.treesitter import detect_language, has_parse_errors, parse_code

if TYPE_CHECKING:
    import tree_sitter

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SourceUnit:
    """One parsed spec file."""

    path: Path
    """Path to the spec file."""

    root: Path
    """Project root that reported paths are relative to."""

    tree: tree_sitter.Tree
    """Parsed syntax tree."""

    @property
    def relative_path(self) -> str:
        """POSIX path relative to the project root (or the path as given if outside it)."""
        try:
            return self.path.relative_to(self.root).as_posix()
        except ValueError:
            return self.path.as_posix()


def discover_test_files(project_path: Path, patterns: list[str]) -> list[Path]:
    """Discover spec files matching the given glob patterns.

    Args:
        project_path: Root of the project.
        patterns: Glob patterns relative to *project_path*.

    Returns:
        Sorted list of unique file paths.
    """
    files: set[Path] = set()
    for pattern in patterns:
        files.update(p for p in project_path.glob(pattern) if p.is_file())
    return sorted(files)


def source_unit_from_code(path: str | Path, source: bytes, root: str | Path) -> SourceUnit:
    """Parse in-memory *source* as if it lived at *path*.

    Raises:
        ValueError: If the language cannot be detected from *path*.
    """
    file_path = Path(path)
    language = detect_language(file_path)
    if language is None:
        msg = f"Cannot detect language for: {file_path}"
        raise ValueError(msg)
    return SourceUnit(path=file_path, root=Path(root), tree=parse_code(source, language))


def load_source_units(project_path: Path, patterns: list[str]) -> list[SourceUnit]:
    """Glob *patterns* under *project_path* and parse every supported file.

    Files with an unsupported extension are skipped.  Files with syntax
    errors are still returned; tree-sitter recovers a partial tree.
    """
    units: list[SourceUnit] = []
    for file_path in discover_test_files(project_path, patterns):
        language = detect_language(file_path)
        if language is None:
            logger.debug("Skipping %s: unsupported file type", file_path)
            continue

        tree = parse_code(file_path.read_bytes(), language)
        if has_parse_errors(tree.root_node):
            logger.warning("Parse errors in %s; analysing the recovered tree", file_path)
        units.append(SourceUnit(path=file_path, root=project_path, tree=tree))

    logger.debug("Loaded %d source units from %s", len(units), project_path)
    return units
