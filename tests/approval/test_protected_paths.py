"""Tests for protected-file patterns and the workspace boundary."""

from __future__ import annotations

import os
from pathlib import Path

import pytest

from mcp_bridge.approval.protected_paths import (
    ProtectedFileMatcher,
    WorkspaceBoundary,
    translate_pattern,
)


class TestTranslatePattern:
    """Glob translation rules."""

    @pytest.mark.parametrize(
        ("pattern", "candidate", "expected"),
        [
            ("**/.env", ".env", True),
            ("**/.env", "config/.env", True),
            ("**/.env", "config/.envrc", False),
            ("**/.env.*", "deploy/.env.production", True),
            (".git/**", ".git/config", True),
            (".git/**", "sub/.git/HEAD", True),
            (".git/**", ".github/workflows/ci.yml", False),
            ("**/*.pem", "certs/server.pem", True),
            ("**/*.pem", "certs/server.pem.txt", False),
            ("*.key", "a/b.key", True),
            ("?.txt", "a.txt", True),
            ("?.txt", "ab.txt", False),
        ],
    )
    def test_matching(self, pattern: str, candidate: str, expected: bool) -> None:
        assert bool(translate_pattern(pattern).search(candidate)) is expected

    def test_single_star_does_not_cross_separators(self) -> None:
        assert not translate_pattern("src/*.py").search("src/pkg/mod.py")
        assert translate_pattern("src/*.py").search("src/mod.py")

    @pytest.mark.parametrize(
        ("double", "single"),
        [("a**b", "a*b"), ("secret**.txt", "secret*.txt"), ("src/x**", "src/x*")],
    )
    @pytest.mark.parametrize(
        "candidate",
        ["ab", "aXb", "a/b", "a/x/b", "dir/aXXb", "secret.txt", "secret/x/y.txt", "src/xy", "src/x/y"],
    )
    def test_double_star_inside_segment_matches_like_single_star(
        self, double: str, single: str, candidate: str
    ) -> None:
        """'**' inside a segment is not distinguished from '*'."""
        assert bool(translate_pattern(double).search(candidate)) == bool(
            translate_pattern(single).search(candidate)
        )

    def test_double_star_inside_segment_stays_in_segment(self) -> None:
        assert translate_pattern("a**b").search("aXXb")
        assert not translate_pattern("a**b").search("a/x/b")
        assert not translate_pattern("secret**.txt").search("secret/x/y.txt")

    def test_whole_segment_double_star_spans_directories(self) -> None:
        assert translate_pattern(".git/**").search(".git/objects/ab/cd")
        assert translate_pattern("**/.env").search(".env")
        assert translate_pattern("**/.env").search("a/b/c/.env")
        assert translate_pattern("src/**/*.py").search("src/mod.py")
        assert translate_pattern("src/**/*.py").search("src/a/b/mod.py")

    def test_regex_metacharacters_are_literal(self) -> None:
        regex = translate_pattern("**/a+b(1).lock")

        assert regex.search("x/a+b(1).lock")
        assert not regex.search("x/aab1.lock")

    def test_pattern_must_start_at_segment_boundary(self) -> None:
        """'node_modules/**' does not match 'my_node_modules/x'."""
        assert not translate_pattern("node_modules/**").search("my_node_modules/x")
        assert translate_pattern("node_modules/**").search("node_modules/x")


class TestProtectedFileMatcher:
    """Default patterns."""

    @pytest.mark.parametrize(
        "candidate",
        [
            ".env",
            "packages/api/.env.local",
            "package-lock.json",
            "web/yarn.lock",
            "pnpm-lock.yaml",
            ".git/HEAD",
            ".vscode/settings.json",
            "node_modules/left-pad/index.js",
            "keys/id.key",
            "tls/cert.p12",
        ],
    )
    def test_protected(self, candidate: str) -> None:
        assert ProtectedFileMatcher().matches(candidate)

    @pytest.mark.parametrize("candidate", ["src/index.ts", "README.md", "docs/env.md", "package.json"])
    def test_not_protected(self, candidate: str) -> None:
        assert not ProtectedFileMatcher().matches(candidate)

    def test_matching_pattern_reports_first_match(self) -> None:
        assert ProtectedFileMatcher().matching_pattern("a/package-lock.json") == "**/package-lock.json"
        assert ProtectedFileMatcher().matching_pattern("src/app.py") is None

    def test_custom_patterns(self) -> None:
        matcher = ProtectedFileMatcher(["**/secrets.*"])

        assert matcher.patterns == ("**/secrets.*",)
        assert matcher.matches("conf/secrets.yaml")
        assert not matcher.matches(".env")


class TestWorkspaceBoundary:
    """Realpath-based containment."""

    def test_no_roots_contains_nothing(self, tmp_path: Path) -> None:
        assert not WorkspaceBoundary().contains(str(tmp_path / "file.txt"))

    def test_root_itself_and_children_are_inside(self, tmp_path: Path) -> None:
        boundary = WorkspaceBoundary([str(tmp_path)])

        assert boundary.contains(str(tmp_path))
        assert boundary.contains(str(tmp_path / "src" / "app.py"))

    def test_sibling_with_common_prefix_is_outside(self, tmp_path: Path) -> None:
        """/work/app does not contain /work/app-other."""
        root = tmp_path / "app"
        root.mkdir()
        boundary = WorkspaceBoundary([str(root)])

        assert not boundary.contains(str(tmp_path / "app-other" / "file.txt"))

    def test_dotdot_is_resolved(self, tmp_path: Path) -> None:
        root = tmp_path / "ws"
        root.mkdir()
        boundary = WorkspaceBoundary([str(root)])

        assert not boundary.contains(str(root / ".." / "outside.txt"))

    @pytest.mark.skipif(not hasattr(os, "symlink"), reason="symlinks unavailable")
    def test_symlink_escaping_workspace_is_outside(self, tmp_path: Path) -> None:
        root = tmp_path / "ws"
        root.mkdir()
        outside = tmp_path / "outside"
        outside.mkdir()
        (root / "link").symlink_to(outside, target_is_directory=True)
        boundary = WorkspaceBoundary([str(root)])

        assert not boundary.contains(str(root / "link" / "file.txt"))

    def test_candidate_path_is_relative_inside_root(self, tmp_path: Path) -> None:
        boundary = WorkspaceBoundary([str(tmp_path)])

        assert boundary.candidate_path(str(tmp_path / "pkg" / ".env")) == "pkg/.env"

    def test_candidate_path_is_absolute_outside_roots(self, tmp_path: Path) -> None:
        root = tmp_path / "ws"
        root.mkdir()
        boundary = WorkspaceBoundary([str(root)])

        candidate = boundary.candidate_path(str(tmp_path / "other" / "x.txt"))

        assert candidate == Path(os.path.realpath(tmp_path / "other" / "x.txt")).as_posix()
