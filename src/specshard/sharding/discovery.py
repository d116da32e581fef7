"""Static discovery of runnable specs and their capability tags.

Walks the tree-sitter AST of each spec file to find Playwright-style
``test(...)`` / ``test.describe(...)`` calls without executing anything.
A file is reported only if at least one test in it is active, i.e. not
disabled via ``test.skip`` / ``test.fixme``, not tagged with a configured
skip tag, and not lexically inside a skipped scope.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from typing import TYPE_CHECKING

from specshard.config import DiscoveryConfig
from specshard.parsing.treesitter import iter_nodes, node_text

if TYPE_CHECKING:
    from collections.abc import Iterable

    import tree_sitter

    from specshard.sharding.loader import SourceUnit

logger = logging.getLogger(__name__)

TAG_PATTERN = re.compile(r"@[\w:-]+")

_TEST_CALLEES = frozenset({"test", "test.only"})
_DESCRIBE_CALLEE = "test.describe"
_DISABLE_CALLEES = frozenset({"test.fixme", "test.skip"})

_BLOCK = "statement_block"
_FUNCTION_TYPES = frozenset({"arrow_function", "function_expression", "function"})


@dataclass
class TestCallInfo:
    """One recognised test or describe call within a file."""

    __test__ = False

    skipped: bool
    """Disabled by marker, by skip tag, or by an enclosing skipped scope."""

    is_describe: bool
    """Grouping call rather than an actual test."""

    tags: list[str] = field(default_factory=list)
    """Tags parsed from the title, in order of appearance."""


@dataclass(frozen=True)
class DiscoveredSpec:
    """A spec file with at least one active test."""

    path: str
    """Spec file path relative to the project root."""

    capabilities: list[str] = field(default_factory=list)
    """Capability names (prefix stripped), sorted and de-duplicated."""

    def to_dict(self) -> dict[str, object]:
        """Serialize to JSON-compatible dict."""
        return {"path": self.path, "capabilities": list(self.capabilities)}


@dataclass
class DiscoveryReport:
    """Result of one discovery run."""

    specs: list[DiscoveredSpec] = field(default_factory=list)
    """Active specs sorted by path."""

    skip_tags: list[str] = field(default_factory=list)
    """Skip tags that were applied."""

    def to_dict(self) -> dict[str, object]:
        """Serialize to JSON-compatible dict."""
        return {
            "specs": [s.to_dict() for s in self.specs],
            "skipTags": list(self.skip_tags),
        }


# ── AST helpers ──────────────────────────────────────────────────


def _callee(call: tree_sitter.Node) -> str:
    return node_text(call.child_by_field_name("function"))


def _arguments(call: tree_sitter.Node) -> list[tree_sitter.Node] | None:
    """Return the call's arguments, or None for tagged templates."""
    args = call.child_by_field_name("arguments")
    if args is None or args.type != "arguments":
        return None
    return [child for child in args.named_children if child.type != "comment"]


def _enclosing_block(node: tree_sitter.Node) -> tree_sitter.Node | None:
    parent = node.parent
    while parent is not None:
        if parent.type == _BLOCK:
            return parent
        parent = parent.parent
    return None


def _literal_title(node: tree_sitter.Node) -> str | None:
    """Text of a plain string or substitution-free template literal."""
    if node.type == "string":
        return node_text(node)[1:-1]
    if node.type == "template_string":
        if any(child.type == "template_substitution" for child in node.children):
            return None
        return node_text(node)[1:-1]
    return None


def parse_tags(title: str) -> list[str]:
    """Extract ``@tag`` tokens from a title, in order of appearance."""
    return TAG_PATTERN.findall(title)


def extract_title(call: tree_sitter.Node) -> str | None:
    """Return the literal title (first argument) of a call, or None."""
    args = _arguments(call)
    if not args:
        return None
    return _literal_title(args[0])


# ── Analyzer ─────────────────────────────────────────────────────


class TestDiscoveryAnalyzer:
    """Determines which spec files hold active tests and what they require."""

    __test__ = False

    def __init__(self, config: DiscoveryConfig | None = None) -> None:
        self._config = config or DiscoveryConfig()

    @property
    def config(self) -> DiscoveryConfig:
        return self._config

    def discover(self, units: Iterable[SourceUnit]) -> DiscoveryReport:
        """Analyze every unit and return the active specs sorted by path."""
        specs: list[DiscoveredSpec] = []
        total = 0
        for unit in units:
            total += 1
            spec = self.analyze_test_file(unit)
            if spec is not None:
                specs.append(spec)

        logger.info("Discovered %d active specs out of %d files", len(specs), total)
        return DiscoveryReport(
            specs=sorted(specs, key=lambda s: s.path),
            skip_tags=list(self._config.skip_tags),
        )

    def analyze_test_file(self, unit: SourceUnit) -> DiscoveredSpec | None:
        """Analyze a single spec file. Returns None if it has no active test."""
        calls = self.extract_test_calls(unit.tree.root_node)

        if not calls:
            logger.debug("No test calls in %s", unit.relative_path)
            return None

        if not any(not call.skipped and not call.is_describe for call in calls):
            logger.debug("All tests skipped in %s", unit.relative_path)
            return None

        prefix = self._config.capability_prefix
        capabilities = {
            tag[len(prefix) :] for call in calls for tag in call.tags if tag.startswith(prefix)
        }

        return DiscoveredSpec(path=unit.relative_path, capabilities=sorted(capabilities))

    def extract_test_calls(self, root: tree_sitter.Node) -> list[TestCallInfo]:
        """Collect every test/describe call, applying skipped-scope propagation."""
        skipped_scopes = self.find_skipped_scopes(root)
        calls: list[TestCallInfo] = []

        for call in iter_nodes(root, "call_expression"):
            info = self.parse_test_call(call)
            if info is None:
                continue
            if not info.skipped and self._is_inside_skipped_scope(call, skipped_scopes):
                info.skipped = True
            calls.append(info)

        return calls

    def find_skipped_scopes(self, root: tree_sitter.Node) -> set[int]:
        """Return start offsets of blocks in which every test is skipped.

        Two shapes mark a scope:

        1. ``test.fixme()`` / ``test.skip()`` with no arguments skips the
           enclosing block (typically a describe callback).
        2. ``test.fixme('title', ..., () => { ... })`` skips the body of the
           trailing function argument.
        """
        scopes: set[int] = set()
        for call in iter_nodes(root, "call_expression"):
            block = self._skipped_block(call)
            if block is not None:
                scopes.add(block.start_byte)
        return scopes

    def parse_test_call(self, call: tree_sitter.Node) -> TestCallInfo | None:
        """Classify a call. Returns None unless it is a titled test/describe call."""
        callee = _callee(call)
        is_describe = callee == _DESCRIBE_CALLEE
        is_disabled = callee in _DISABLE_CALLEES

        if callee not in _TEST_CALLEES and not is_describe and not is_disabled:
            return None

        # test.describe.configure() and bare test.fixme() carry no title
        title = extract_title(call)
        if title is None:
            return None

        tags = parse_tags(title)
        skipped_by_tag = any(tag in self._config.skip_tags for tag in tags)

        return TestCallInfo(
            skipped=is_disabled or skipped_by_tag,
            is_describe=is_describe,
            tags=tags,
        )

    def _skipped_block(self, call: tree_sitter.Node) -> tree_sitter.Node | None:
        if _callee(call) not in _DISABLE_CALLEES:
            return None

        args = _arguments(call)
        if args is None:
            return None
        if not args:
            return _enclosing_block(call)

        last = args[-1]
        if last.type not in _FUNCTION_TYPES:
            return None
        body = last.child_by_field_name("body")
        if body is None or body.type != _BLOCK:
            return None
        return body

    @staticmethod
    def _is_inside_skipped_scope(call: tree_sitter.Node, skipped_scopes: set[int]) -> bool:
        block = _enclosing_block(call)
        while block is not None:
            if block.start_byte in skipped_scopes:
                return True
            block = _enclosing_block(block)
        return False


def discover(
    units: Iterable[SourceUnit], config: DiscoveryConfig | None = None
) -> DiscoveryReport:
    """Discover active specs and their capabilities across *units*."""
    return TestDiscoveryAnalyzer(config).discover(units)
