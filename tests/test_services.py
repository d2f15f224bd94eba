"""Tests for service, flow and utility extraction."""

from textwrap import dedent

from conftest import DATE_UTILS, ORDER_SERVICE, PAYMENT_SERVICE

from factscan.extract import extract
from factscan.extract.flows import flow_steps, is_business_method
from factscan.extract.services import ServiceExtractor, service_name_of
from factscan.extract.utilities import UtilityExtractor

REPORT_SERVICE = dedent(
    """\
    class ReportService {
      constructor(cacheService) {
        this.cacheService = cacheService;
      }

      async build() {
        const mailer = new EmailService();
        const users = await UserService.findAll();
        return this.cacheService.get('k');
      }
    }
    """
)


class TestServices:
    """Service entities and their categories."""

    def test_business_service(self) -> None:
        entities = ServiceExtractor().extract(
            ORDER_SERVICE, "src/services/OrderService.js"
        )
        assert [e.canonical_name for e in entities] == ["OrderService"]
        assert entities[0].attributes["category"] == "business"

    def test_utility_name_hint(self) -> None:
        text = "export class StringHelperService {}"
        entities = ServiceExtractor().extract(text, "StringHelperService.js")
        assert entities[0].attributes["category"] == "utility"

    def test_configurable_default_category(self) -> None:
        text = "export class InventoryService {}"
        business = ServiceExtractor().extract(text, "InventoryService.js")
        utility = ServiceExtractor("utility").extract(
            text, "InventoryService.js"
        )
        assert business[0].attributes["category"] == "business"
        assert utility[0].attributes["category"] == "utility"

    def test_name_variants_canonicalized(self) -> None:
        text = "class paymentSvc {}"
        entities = extract(text, "service", "paymentSvc.js")
        assert [e.canonical_name for e in entities] == ["PaymentService"]

    def test_error_classes_ignored(self) -> None:
        text = dedent(
            """\
            class ShippingError extends Error {}
            class ShippingService {}
            """
        )
        entities = ServiceExtractor().extract(text, "ShippingService.js")
        assert [e.canonical_name for e in entities] == ["ShippingService"]

    def test_service_name_from_filename(self) -> None:
        text = "module.exports = { charge };"
        assert (
            service_name_of(text, "src/services/payment.service.js")
            == "PaymentService"
        )
        assert service_name_of(text, "src/lib/money.js") is None


class TestDependencyEdges:
    """Edges between services."""

    def test_imports_and_injection(self) -> None:
        edges = ServiceExtractor().edges(ORDER_SERVICE, "OrderService.js")
        assert [(e.from_service, e.to_service) for e in edges] == [
            ("OrderService", "PaymentService"),
            ("OrderService", "NotificationService"),
            ("OrderService", "AuditService"),
        ]
        assert {e.signal for e in edges} == {"import"}

    def test_signals(self) -> None:
        edges = ServiceExtractor().edges(REPORT_SERVICE, "ReportService.js")
        assert [(e.to_service, e.signal) for e in edges] == [
            ("CacheService", "injection"),
            ("EmailService", "instantiation"),
            ("UserService", "method-call"),
        ]

    def test_no_dependencies(self) -> None:
        assert ServiceExtractor().edges(PAYMENT_SERVICE, "Pay.js") == []


class TestFlows:
    """Ordered business steps per method."""

    def test_order_service_flows(self) -> None:
        entities = extract(ORDER_SERVICE, "flow-step", "OrderService.js")
        assert [e.canonical_name for e in entities] == ["OrderService"]
        flows = entities[0].attributes["flows"]
        assert set(flows) == {"createOrder", "updateOrderStatus"}

        create = flows["createOrder"]
        assert create[0] == "Validate input data"
        assert create[-1] == "Handle errors"
        for step in (
            "Call PaymentService.processPayment()",
            "Call NotificationService.sendOrderConfirmation()",
            "Call AuditService.logOrderError()",
            "Calculate",
            "Process payment",
            "Send notification",
        ):
            assert step in create
        assert len(create) == len(set(create))

        assert flows["updateOrderStatus"] == (
            "Call NotificationService.sendStatusUpdate()",
            "Send notification",
        )

    def test_external_api_step(self) -> None:
        entities = extract(PAYMENT_SERVICE, "flow-step", "PaymentService.js")
        assert entities[0].attributes["flows"] == {
            "processPayment": ("Call external API",)
        }

    def test_step_category_order(self) -> None:
        body = dedent(
            """\
            try {
              sendReceipt(order);
              await order.save();
              validateOrder(order);
            } catch (err) {}
            """
        )
        assert flow_steps(body) == [
            "Validate input data",
            "Save to database",
            "Send notification",
            "Handle errors",
        ]

    def test_excluded_methods(self) -> None:
        for name in ("constructor", "getUser", "setName", "_private", "go"):
            assert not is_business_method(name)
        assert is_business_method("createOrder")


class TestUtilities:
    """Utility files with domain and functions."""

    def test_date_utils(self) -> None:
        entities = UtilityExtractor().extract(
            DATE_UTILS, "src/utils/dateUtils.js"
        )
        assert len(entities) == 1
        util = entities[0]
        assert util.canonical_name == "DateUtils"
        assert util.attributes["file"] == "dateUtils.js"
        assert util.attributes["domain"] == "Date/Time"
        assert util.attributes["functions"] == (
            "formatDate",
            "parseDate",
            "toEpoch",
        )

    def test_domain_from_content(self) -> None:
        text = "function go(p) { return bcrypt.hash(p); }"
        entities = UtilityExtractor().extract(text, "src/lib/misc.js")
        assert entities[0].attributes["domain"] == "Crypto/Security"

    def test_general_domain(self) -> None:
        entities = UtilityExtractor().extract("", "src/lib/misc.js")
        assert entities[0].attributes["domain"] == "General"
        assert entities[0].attributes["functions"] == ()
