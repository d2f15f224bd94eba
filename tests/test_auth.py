"""Tests for factscan.extract.auth module."""

from textwrap import dedent

import pytest
from conftest import ORDER_ROUTES

from factscan.extract import FileScanner
from factscan.extract.auth import decorator_policy, middleware_policy
from factscan.textscan import Decorator, Piece


def _auth(text: str, path: str = "src/routes/x.js") -> dict[str, str | None]:
    result = FileScanner().scan(path, text, {"route"})
    return {record.route_key: record.auth for record in result.associations}


class TestMiddlewarePolicy:
    """Policies read from middleware arguments."""

    @pytest.mark.parametrize(
        ("texts", "expected"),
        [
            (["jwtAuth()"], "JWT Required"),
            (["jwtAuth()", "requireRole('admin')"], "Role: admin"),
            (
                ["requireRole('admin')", "requirePermission('orders:read')"],
                "Permission: orders:read",
            ),
            (["isAdmin", "authenticate"], "AdminOnly"),
            (
                ["passport.authenticate('google', { session: false })"],
                "Google OAuth (Stateless)",
            ),
            (
                ["expressJwt({ secret, credentialsRequired: false })"],
                "JWT Required (Optional)",
            ),
            (["myAuthMiddleware"], "Custom Auth"),
            (["orderRoutes"], None),
            (["celebrate({ headers: authHeaders })"], None),
            (["cors()"], None),
        ],
    )
    def test_policies(self, texts: list[str], expected: str | None) -> None:
        pieces = [Piece(text, 0) for text in texts]
        assert middleware_policy(pieces) == expected


class TestDecoratorPolicy:
    """NestJS guards and role decorators."""

    @pytest.mark.parametrize(
        ("decorators", "expected"),
        [
            ([Decorator("UseGuards", "JwtAuthGuard", 0)], "JWT Required"),
            ([Decorator("UseGuards", "AuthGuard('jwt')", 0)], "JWT Required"),
            (
                [Decorator("UseGuards", "AuthGuard('local')", 0)],
                "Auth Strategy: local",
            ),
            (
                [
                    Decorator("UseGuards", "JwtAuthGuard", 0),
                    Decorator("Roles", "'admin'", 0),
                ],
                "Role: admin",
            ),
            ([Decorator("Get", "':id'", 0)], None),
        ],
    )
    def test_policies(
        self, decorators: list[Decorator], expected: str | None
    ) -> None:
        assert decorator_policy(tuple(decorators)) == expected


class TestAuthAssociation:
    """Auth fragments applied to the routes of one file."""

    def test_route_local_middleware(self) -> None:
        auth = _auth(ORDER_ROUTES)
        assert auth == {
            "POST /orders": "JWT Required",
            "GET /orders/my": "JWT Required",
            "GET /orders/:id": "JWT Required",
            "PATCH /orders/:id/status": "Role: admin",
            "GET /admin/orders": "Role: admin",
            "GET /admin/orders/analytics": "Permission: view_analytics",
        }

    def test_use_scopes(self) -> None:
        text = dedent(
            """\
            const router = express.Router();
            router.use(authenticate);
            router.use('/admin', isAdmin);
            router.use(`/${base}`, requireRole('x'));
            router.get('/orders', listOrders);
            router.get('/admin/stats', stats);
            router.get('/administrators', listAdmins);
            router.get('/reports', requirePermission('reports:read'), rep);
            """
        )
        assert _auth(text) == {
            "GET /orders": "Authenticated",
            "GET /admin/stats": "AdminOnly",
            "GET /administrators": "Authenticated",
            "GET /reports": "Permission: reports:read",
        }

    def test_route_local_beats_file_global(self) -> None:
        text = dedent(
            """\
            router.get('/settings', isAdmin, getSettings);
            router.use(authenticate);
            """
        )
        assert _auth(text) == {"GET /settings": "AdminOnly"}

    def test_mounted_sub_router_is_not_auth(self) -> None:
        text = dedent(
            """\
            router.use('/orders', orderRoutes);
            router.get('/orders/summary', summary);
            """
        )
        assert _auth(text) == {}

    def test_nest_guards(self) -> None:
        text = dedent(
            """\
            @Controller('orders')
            @UseGuards(JwtAuthGuard)
            export class OrdersController {
              @Get()
              findAll() {
                return [];
              }

              @Post()
              @Roles('admin')
              create() {
                return {};
              }
            }
            """
        )
        assert _auth(text, "orders.controller.ts") == {
            "GET /orders": "JWT Required",
            "POST /orders": "Role: admin",
        }
