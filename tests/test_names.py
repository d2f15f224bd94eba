"""Tests for factscan.names module."""

import random
import string

import pytest

from factscan.names import (
    canonicalize,
    fold,
    name_from_filename,
    name_from_import_path,
    role_of,
)

ROLES = ("service", "controller", "model", "utility")


def _printable_samples(count: int = 300) -> list[str]:
    rng = random.Random(1234)
    samples = [
        "",
        "Service",
        "Svc",
        "svc",
        "payment-service",
        "order_svc",
        "__init__",
        "$scope",
        "123abc",
        "UserSchemaModel",
        "userentity",
        "Xservice",
        "AbcDservice",
        "a b c",
        "ORDERCTRL",
    ]
    for _ in range(count):
        size = rng.randint(1, 24)
        chars = [rng.choice(string.printable) for _ in range(size)]
        samples.append("".join(chars))
    return samples


class TestCanonicalize:
    """Tests for canonicalize."""

    @pytest.mark.parametrize(
        "raw",
        ["paymentService", "PaymentService", "PaymentSvc", "payment-service"],
    )
    def test_service_variants_unify(self, raw: str) -> None:
        """Case and suffix variants land on one service name."""
        assert canonicalize(raw, "service") == "PaymentService"

    def test_service_suffix_added(self) -> None:
        assert canonicalize("payment", "service") == "PaymentService"

    def test_bare_service_word(self) -> None:
        assert canonicalize("service", "service") == "Service"

    @pytest.mark.parametrize(
        "raw", ["OrderCtrl", "orderCtl", "OrderController"]
    )
    def test_controller_variants(self, raw: str) -> None:
        assert canonicalize(raw, "controller") == "OrderController"

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [
            ("OrderModel", "Order"),
            ("OrderSchema", "Order"),
            ("UserEntity", "User"),
            ("OrderSchemaModel", "Order"),
            ("Order", "Order"),
            ("UserIdentity", "UserIdentity"),
        ],
    )
    def test_model_suffixes_stripped(self, raw: str, expected: str) -> None:
        assert canonicalize(raw, "model") == expected

    def test_utility_role_keeps_name(self) -> None:
        assert canonicalize("dateUtils", "utility") == "DateUtils"

    @pytest.mark.parametrize("raw", [None, "", "ab", "__", "$1", "-"])
    def test_short_names_rejected(self, raw) -> None:
        for role in ROLES:
            assert canonicalize(raw, role) is None

    @pytest.mark.parametrize("role", ROLES)
    def test_idempotent_for_printable_ascii(self, role: str) -> None:
        """canonicalize(canonicalize(x)) == canonicalize(x)."""
        for raw in _printable_samples():
            once = canonicalize(raw, role)
            if once is None:
                continue
            assert canonicalize(once, role) == once, raw


class TestNameHelpers:
    """Tests for file-name and import-path helpers."""

    def test_dotted_file_name(self) -> None:
        assert (
            name_from_filename("src/order.service.ts", "service")
            == "OrderService"
        )

    def test_index_takes_directory_name(self) -> None:
        assert (
            name_from_filename("src/payments/index.js", "service")
            == "PaymentsService"
        )

    def test_import_path(self) -> None:
        assert (
            name_from_import_path("../services/PaymentService.js", "service")
            == "PaymentService"
        )

    def test_relative_dot_import_rejected(self) -> None:
        assert name_from_import_path("..", "service") is None

    def test_role_of(self) -> None:
        assert role_of("OrderCtrl") == "controller"
        assert role_of("orderService") == "service"
        assert role_of("helpers", default="utility") == "utility"

    def test_fold_is_case_insensitive(self) -> None:
        assert fold("PaymentService") == fold("paymentservice")
