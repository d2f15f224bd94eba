"""Tests for factscan.extract.payloads module."""

from textwrap import dedent

from conftest import ORDER_ROUTES

from factscan.dialects import render_fields
from factscan.extract import FileScanner
from factscan.extract.payloads import parse_swagger_block, schema_constants


def _payloads(text: str, path: str = "src/routes/x.js") -> dict:
    result = FileScanner().scan(path, text, {"route"})
    return {
        record.route_key: (
            render_fields(record.payload.request),
            render_fields(record.payload.response),
        )
        for record in result.associations
        if not record.payload.is_empty()
    }


class TestExpressPayloads:
    """Validation, docs and handler inference on Express routes."""

    def test_create_order(self) -> None:
        request, response = _payloads(ORDER_ROUTES)["POST /orders"]
        assert request == {
            "userId": "String (required)",
            "items": "Object[] (required)",
            "currency": "Enum(USD, EUR) (default: 'USD')",
            "notes": "String",
        }
        assert response == {
            "orderId": "String",
            "status": "String",
            "totalAmount": "Number",
            "createdAt": "Unknown",
        }

    def test_error_responses_ignored(self) -> None:
        _, response = _payloads(ORDER_ROUTES)["POST /orders"]
        assert "error" not in response

    def test_handler_inference(self) -> None:
        payloads = _payloads(ORDER_ROUTES)
        assert payloads["PATCH /orders/:id/status"] == (
            {"status": "Unknown", "reason": "Unknown"},
            {"order": "Unknown"},
        )
        assert payloads["GET /admin/orders"] == (
            {},
            {"orders": "Array", "total": "Number"},
        )

    def test_schema_constant_by_name(self) -> None:
        text = dedent(
            """\
            const createUserSchema = Joi.object({
              email: Joi.string().email().required(),
              age: Joi.number(),
            });
            router.post('/users', validate(createUserSchema), createUser);
            """
        )
        assert _payloads(text) == {
            "POST /users": (
                {"email": "String (required)", "age": "Number"},
                {},
            )
        }

    def test_schema_constants(self) -> None:
        text = "const s = z.object({ name: z.string() });\nconst n = 1;"
        constants = schema_constants(text)
        assert list(constants) == ["s"]
        assert render_fields(constants["s"]) == {"name": "String"}


class TestTypeScriptPayloads:
    """Request and response types linked by naming convention."""

    def test_naming_convention(self) -> None:
        text = dedent(
            """\
            interface CreateProductRequest {
              name: string;
              price?: number;
            }

            interface ProductResponse {
              id: string;
              name: string;
            }

            router.post('/products', createProduct);
            router.get('/products/:id', getProduct);
            """
        )
        payloads = _payloads(text, "src/routes/products.ts")
        assert payloads["POST /products"] == (
            {"name": "String", "price": "Number (optional)"},
            {"id": "String", "name": "String"},
        )
        assert payloads["GET /products/:id"] == (
            {},
            {"id": "String", "name": "String"},
        )

    def test_next_route_handler(self) -> None:
        text = dedent(
            """\
            export async function POST(request) {
              const { name, qty = 1 } = await request.json();
              if (!name) {
                return NextResponse.json({ error: 'name' }, { status: 400 });
              }
              return NextResponse.json({ id: 'x', name });
            }
            """
        )
        payloads = _payloads(text, "app/api/items/route.ts")
        assert payloads == {
            "POST /api/items": (
                {"name": "Unknown", "qty": "Number"},
                {"id": "String", "name": "Unknown"},
            )
        }


class TestSwaggerBlocks:
    """JSDoc OpenAPI comments."""

    def test_parse(self) -> None:
        comment = "\n * @swagger\n * /x:\n *   get:\n *     summary: y\n "
        assert parse_swagger_block(comment) == {
            "/x": {"get": {"summary": "y"}}
        }

    def test_untagged_block(self) -> None:
        assert parse_swagger_block("\n * just a note\n ") is None

    def test_malformed_yaml(self) -> None:
        comment = "\n * @swagger\n * key: [unclosed\n "
        assert parse_swagger_block(comment) is None

    def test_documented_route_matched_by_position(self) -> None:
        text = dedent(
            """\
            /**
             * @openapi
             * /api/v1/users:
             *   post:
             *     requestBody:
             *       content:
             *         application/json:
             *           schema:
             *             required: [email]
             *             properties:
             *               email: { type: string }
             */
            router.post('/users', createUser);
            """
        )
        assert _payloads(text) == {
            "POST /users": ({"email": "String (required)"}, {})
        }
