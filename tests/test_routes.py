"""Tests for factscan.extract.routes module."""

from textwrap import dedent

import pytest
from conftest import ORDER_ROUTES

from factscan.extract.routes import RouteExtractor, infer_file_route


def _keys(text: str, path: str = "src/routes/x.js") -> list[str]:
    return [d.key for d in RouteExtractor().extract(text, path)]


class TestExpressRoutes:
    """router.verb('/path', ...) declarations."""

    def test_order_routes(self) -> None:
        routes = RouteExtractor().extract(ORDER_ROUTES, "orderRoutes.js")
        assert [r.key for r in routes] == [
            "POST /orders",
            "GET /orders/my",
            "GET /orders/:id",
            "PATCH /orders/:id/status",
            "GET /admin/orders",
            "GET /admin/orders/analytics",
        ]
        visibility = {r.key: r.visibility for r in routes}
        assert visibility["GET /orders/my"] == "public"
        assert visibility["GET /admin/orders"] == "internal"
        assert visibility["GET /admin/orders/analytics"] == "internal"

    def test_settings_lookup_is_not_a_route(self) -> None:
        text = "const env = app.get('env');\napp.get('/users', listUsers);"
        assert _keys(text) == ["GET /users"]

    def test_skipped_paths(self) -> None:
        text = dedent(
            """\
            app.get('/health', ok);
            app.get('/', home);
            app.get('/:id', any);
            app.post('/users', create);
            """
        )
        assert _keys(text) == ["POST /users"]

    def test_commented_routes_ignored(self) -> None:
        text = "// router.get('/old', h);\nrouter.get('/new', h);"
        assert _keys(text) == ["GET /new"]

    def test_same_key_deduplicated(self) -> None:
        text = dedent(
            """\
            router.get('/orders/:id', a);
            router.get('/orders/:orderId', b);
            """
        )
        assert _keys(text) == ["GET /orders/:id"]

    def test_named_receivers(self) -> None:
        text = dedent(
            """\
            userRouter.delete('/users/:id', remove);
            adminRoutes.put('/admin/flags', update);
            """
        )
        assert _keys(text) == ["DELETE /users/:id", "PUT /admin/flags"]

    def test_named_handler_resolved(self) -> None:
        text = dedent(
            """\
            async function createUser(req, res) {
              res.json({ id: 1 });
            }
            router.post('/users', createUser);
            """
        )
        sites = RouteExtractor().sites(text, "users.js")
        assert len(sites) == 1
        handler = sites[0].handler
        assert handler is not None
        assert "res.json" in text[handler.start : handler.end]

    def test_regex_in_handler(self) -> None:
        text = dedent(
            r"""
            router.get('/links', (req, res) => {
              const host = req.query.url.replace(/^https?:\/\//, '');
              res.json({ host });
            });
            router.post('/orders', createOrder);
            """
        )
        assert _keys(text) == ["GET /links", "POST /orders"]

    def test_handler_lookups_scoped_to_one_file(self) -> None:
        extractor = RouteExtractor()
        first = dedent(
            """\
            function list(req, res) {
              res.json({ items: [] });
            }
            router.get('/items', list);
            """
        )
        second = "router.get('/things', list);\n"
        first_sites = extractor.sites(first, "items.js")
        second_sites = extractor.sites(second, "things.js")
        assert "res.json" in first_sites[0].handler.slice(first)
        assert second_sites[0].handler.slice(second) == "list"
        assert vars(extractor) == {}


class TestChainedRoutes:
    """router.route('/p').get(...).put(...) chains."""

    def test_chain(self) -> None:
        text = dedent(
            """\
            router.route('/users/:userId')
              .get(getUser)
              .put(auth, updateUser);
            """
        )
        assert _keys(text) == ["GET /users/:id", "PUT /users/:id"]


class TestNestRoutes:
    """@Controller classes with verb decorators."""

    def test_controller(self) -> None:
        text = dedent(
            """\
            @Controller('orders')
            export class OrdersController {
              @Get()
              findAll() {
                return [];
              }

              @Get(':id')
              findOne(@Param('id') id: string) {
                return {};
              }

              @Post()
              create(@Body() dto: CreateOrderDto) {
                return dto;
              }

              helper() {
                return 1;
              }
            }
            """
        )
        assert _keys(text, "orders.controller.ts") == [
            "GET /orders",
            "GET /orders/:id",
            "POST /orders",
        ]

    def test_controller_without_prefix(self) -> None:
        text = dedent(
            """\
            @Controller()
            export class HealthController {
              @Get('status')
              status() {
                return 'ok';
              }
            }
            """
        )
        assert _keys(text, "health.controller.ts") == ["GET /status"]


class TestFileRoutes:
    """Next.js app and pages routes."""

    def test_app_router_exports(self) -> None:
        text = dedent(
            """\
            export async function GET(request) {
              return Response.json([]);
            }

            export const DELETE = async (request) => {
              return new Response(null);
            };
            """
        )
        assert _keys(text, "app/api/orders/[id]/route.ts") == [
            "GET /api/orders/:id",
            "DELETE /api/orders/:id",
        ]

    def test_pages_api_methods(self) -> None:
        text = dedent(
            """\
            export default function handler(req, res) {
              if (req.method === 'POST') {
                return res.status(201).json({});
              }
            }
            """
        )
        assert _keys(text, "pages/api/users/index.ts") == ["POST /api/users"]

    def test_pages_api_defaults_to_get(self) -> None:
        text = "export default function handler(req, res) {}"
        assert _keys(text, "pages/api/ping.ts") == ["GET /api/ping"]

    @pytest.mark.parametrize(
        ("path", "expected"),
        [
            ("app/api/orders/[id]/route.ts", "/api/orders/[id]"),
            ("src/app/(shop)/api/cart/route.ts", "/api/cart"),
            ("pages/api/orders/index.ts", "/api/orders"),
            ("pages/api/orders/[id].ts", "/api/orders/[id]"),
            ("pages/about.tsx", None),
            ("src/routes/orders.js", None),
        ],
    )
    def test_infer_file_route(self, path: str, expected: str | None) -> None:
        assert infer_file_route(path) == expected
