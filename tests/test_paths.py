"""Tests for factscan.paths module."""

import pytest

from factscan.paths import (
    is_internal,
    is_valid_path,
    join_paths,
    normalize_path,
    path_has_prefix,
)


class TestNormalizePath:
    """Parameter syntaxes collapse to one placeholder."""

    @pytest.mark.parametrize(
        "raw",
        [
            "/orders/:orderId/cancel",
            "/orders/[orderId]/cancel",
            "/orders/{orderId}/cancel",
            "/orders/<int:order_id>/cancel",
            "/orders/:id(\\d+)/cancel",
        ],
    )
    def test_parameter_syntaxes(self, raw: str) -> None:
        assert normalize_path(raw) == "/orders/:id/cancel"

    def test_catch_all(self) -> None:
        assert normalize_path("/docs/[...slug]") == "/docs/:id"
        assert normalize_path("/docs/[[...slug]]") == "/docs/:id"

    def test_query_and_trailing_slash_stripped(self) -> None:
        assert normalize_path("/orders/?page=2") == "/orders"
        assert normalize_path("orders//items/") == "/orders/items"

    def test_root(self) -> None:
        assert normalize_path("") == "/"
        assert normalize_path("/") == "/"

    def test_idempotent(self) -> None:
        once = normalize_path("/a/[b]/{c}/<d>/:e")
        assert normalize_path(once) == once


class TestPathPredicates:
    """Validity, visibility and prefix checks."""

    @pytest.mark.parametrize(
        "path", ["/", "/:id", "/:id/:id", "/health", "/test/x", "/middleware"]
    )
    def test_invalid(self, path: str) -> None:
        assert not is_valid_path(path)

    @pytest.mark.parametrize("path", ["/orders", "/orders/:id", "/users/me"])
    def test_valid(self, path: str) -> None:
        assert is_valid_path(path)

    @pytest.mark.parametrize(
        "path",
        [
            "/admin/orders",
            "/api/internal/sync",
            "/orders/analytics",
            "/webhooks/stripe",
            "/Admin",
        ],
    )
    def test_internal(self, path: str) -> None:
        assert is_internal(path)

    @pytest.mark.parametrize("path", ["/orders", "/orders/:id", "/users"])
    def test_public(self, path: str) -> None:
        assert not is_internal(path)

    def test_prefix_is_segment_aware(self) -> None:
        assert path_has_prefix("/admin", "/admin")
        assert path_has_prefix("/admin/orders", "/admin/")
        assert not path_has_prefix("/administrators", "/admin")
        assert path_has_prefix("/anything", "/")

    def test_join_paths(self) -> None:
        assert join_paths("/api/", "/orders") == "/api/orders"
        assert join_paths("", "orders") == "/orders"
        assert join_paths("/api", "") == "/api"
