"""Tests for factscan.pipeline module."""

import threading
import time
from pathlib import Path

import pytest

from factscan.config import ScanConfig
from factscan.pipeline import (
    collect_targets,
    read_text,
    run_scan,
    scan_targets,
    scan_text,
)


class TestCollectTargets:
    """Discovery of files per role."""

    def test_roles_and_exclusions(self, project: Path) -> None:
        targets = collect_targets(ScanConfig(root=project))
        assert [t.rel for t in targets] == [
            "src/models/Order.js",
            "src/routes/orderRoutes.js",
            "src/services/OrderService.js",
            "src/services/PaymentService.js",
            "src/utils/dateUtils.js",
        ]
        roles = {t.rel: t.roles for t in targets}
        assert "route" in roles["src/routes/orderRoutes.js"]
        assert "model" in roles["src/models/Order.js"]
        assert "service" in roles["src/services/OrderService.js"]
        assert "utility" in roles["src/utils/dateUtils.js"]

    def test_exclude_globs(self, project: Path) -> None:
        config = ScanConfig(root=project, exclude=("src/services/**",))
        rels = [t.rel for t in collect_targets(config)]
        assert not any(rel.startswith("src/services/") for rel in rels)

    def test_util_named_file_is_a_service(self, tmp_path: Path) -> None:
        path = tmp_path / "src" / "common" / "stringutil.js"
        path.parent.mkdir(parents=True)
        path.write_text("exports.slug = (s) => s;\n")
        targets = collect_targets(ScanConfig(root=tmp_path))
        assert [t.rel for t in targets] == ["src/common/stringutil.js"]
        assert targets[0].roles == frozenset({"service", "utility"})


class TestScanText:
    """Synchronous single-file scan."""

    def test_roles_select_detectors(self) -> None:
        text = "router.get('/users', h);\nclass UserService {}"
        routes_only = scan_text("a.js", text, {"route"})
        assert [e.kind for e in routes_only.entities] == ["route"]
        both = scan_text("a.js", text, {"route", "service"})
        assert {e.kind for e in both.entities} == {"route", "service"}


class TestRunScan:
    """The async fan-out and merge."""

    @pytest.mark.asyncio
    async def test_project_graph(self, project: Path) -> None:
        graph = await run_scan(ScanConfig(root=project))
        assert graph.files_scanned == 5
        assert graph.failures == ()
        assert graph.models == ("Order",)
        assert graph.business_services == ("OrderService", "PaymentService")
        assert graph.internal_routes == (
            "/admin/orders",
            "/admin/orders/analytics",
        )
        assert graph.routes["GET /admin/orders"] == "internal"
        assert graph.auth["PATCH /orders/:id/status"] == "Role: admin"
        assert graph.dependencies["OrderService"] == (
            "AuditService",
            "NotificationService",
            "PaymentService",
        )

    @pytest.mark.asyncio
    async def test_deterministic(self, project: Path) -> None:
        config = ScanConfig(root=project, concurrency=2)
        first = await run_scan(config)
        second = await run_scan(config)
        assert first == second

    @pytest.mark.asyncio
    async def test_read_failure_is_isolated(self, project: Path) -> None:
        def reader(path: Path) -> str:
            if path.name == "PaymentService.js":
                raise PermissionError("denied")
            return read_text(path)

        graph = await run_scan(ScanConfig(root=project), reader=reader)
        assert graph.failures == (
            ("src/services/PaymentService.js", "denied"),
        )
        assert graph.business_services == ("OrderService",)
        assert graph.models == ("Order",)
        assert "PaymentService" not in graph.flows

    @pytest.mark.asyncio
    async def test_unexpected_error_becomes_failure(
        self, project: Path
    ) -> None:
        def reader(path: Path) -> str:
            if path.name == "Order.js":
                raise RuntimeError("boom")
            return read_text(path)

        graph = await run_scan(ScanConfig(root=project), reader=reader)
        assert [path for path, _ in graph.failures] == ["src/models/Order.js"]
        assert graph.models == ()

    @pytest.mark.asyncio
    async def test_concurrency_bound(self, project: Path) -> None:
        lock = threading.Lock()
        in_flight = 0
        peak = 0

        def reader(path: Path) -> str:
            nonlocal in_flight, peak
            with lock:
                in_flight += 1
                peak = max(peak, in_flight)
            time.sleep(0.02)
            with lock:
                in_flight -= 1
            return read_text(path)

        config = ScanConfig(root=project, concurrency=2)
        results = await scan_targets(
            collect_targets(config), config, reader=reader
        )
        assert len(results) == 5
        assert peak <= 2
