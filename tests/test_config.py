"""Tests for factscan.config module."""

from pathlib import Path

import pytest

from factscan.config import (
    DEFAULT_CONCURRENCY,
    DEFAULT_LIMIT,
    SERVICE_PATTERNS,
    SOURCE_PATTERNS,
    ScanConfig,
    parse_limit,
)


class TestParseLimit:
    """Size limit parsing."""

    @pytest.mark.parametrize("raw", ["abc", 0, -5, "0", True, "1.5"])
    def test_invalid_falls_back(self, raw: object) -> None:
        assert parse_limit(raw) == DEFAULT_LIMIT

    @pytest.mark.parametrize(("raw", "expected"), [("7", 7), (3, 3)])
    def test_valid(self, raw: object, expected: int) -> None:
        assert parse_limit(raw) == expected

    def test_missing_uses_default(self) -> None:
        assert parse_limit(None) == DEFAULT_LIMIT
        assert parse_limit("", default=5) == 5


class TestScanConfig:
    """Environment loading and overrides."""

    def test_defaults(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        for name in (
            "FACTSCAN_LIMIT",
            "FACTSCAN_CONCURRENCY",
            "FACTSCAN_DEFAULT_SERVICE_CATEGORY",
            "FACTSCAN_CONFLICT_POLICY",
            "FACTSCAN_EXCLUDE",
        ):
            monkeypatch.delenv(name, raising=False)
        config = ScanConfig.from_env(tmp_path)
        assert config.root == tmp_path.resolve()
        assert config.limit == DEFAULT_LIMIT
        assert config.concurrency == DEFAULT_CONCURRENCY
        assert config.default_service_category == "business"
        assert config.conflict_policy == "first"
        assert config.exclude == ()

    def test_from_env(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("FACTSCAN_LIMIT", "5")
        monkeypatch.setenv("FACTSCAN_CONCURRENCY", "3")
        monkeypatch.setenv("FACTSCAN_DEFAULT_SERVICE_CATEGORY", "Utility")
        monkeypatch.setenv("FACTSCAN_CONFLICT_POLICY", "error")
        monkeypatch.setenv("FACTSCAN_EXCLUDE", "legacy/**, ,vendor/**")
        config = ScanConfig.from_env(tmp_path)
        assert config.limit == 5
        assert config.concurrency == 3
        assert config.default_service_category == "utility"
        assert config.conflict_policy == "error"
        assert config.exclude == ("legacy/**", "vendor/**")

    def test_invalid_env_values(
        self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch
    ) -> None:
        monkeypatch.setenv("FACTSCAN_LIMIT", "-1")
        monkeypatch.setenv("FACTSCAN_CONCURRENCY", "many")
        monkeypatch.setenv("FACTSCAN_CONFLICT_POLICY", "newest")
        config = ScanConfig.from_env(tmp_path)
        assert config.limit == DEFAULT_LIMIT
        assert config.concurrency == DEFAULT_CONCURRENCY
        assert config.conflict_policy == "first"

    def test_with_overrides(self, tmp_path: Path) -> None:
        config = ScanConfig(root=tmp_path, limit=10)
        assert config.with_overrides(limit=None).limit == 10
        assert config.with_overrides(limit=3).limit == 3
        assert config.with_overrides(limit=0).limit == DEFAULT_LIMIT
        assert config.with_overrides(concurrency=4).concurrency == 4


class TestPatternTables:
    """Static discovery globs."""

    def test_service_globs_include_util_files(self) -> None:
        assert "**/*util*.{js,ts}" in SERVICE_PATTERNS

    def test_source_sample_globs(self) -> None:
        assert SOURCE_PATTERNS == ("src/**/*.{js,ts}",)
