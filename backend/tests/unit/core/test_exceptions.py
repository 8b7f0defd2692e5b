"""
Tests for the custom exception hierarchy.

WHY: Exception testing ensures:
1. Exceptions serialize to {error, message, status_code, details}
2. HTTP status codes map correctly per error family
3. Invoice context (id, current vs expected state) reaches the caller
4. Sensitive context keys never leave the process
"""

import re
from pathlib import Path

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from app.core.exceptions import (
    AppException,
    AuthenticationError,
    BusinessRuleViolation,
    ClientNotFoundError,
    CompanyRequiredError,
    CrossTenantAccessError,
    DocumentRenderError,
    ImmutableInvoiceFieldError,
    InvalidStateTransitionError,
    InvoiceNotFoundError,
    InvoiceNumberConflictError,
    TokenExpiredError,
    TokenInvalidError,
    ValidationError,
)
from app.core.exception_handlers import app_exception_handler, generic_exception_handler
import app.core.exceptions as exceptions_module


class TestAppException:
    """Test base AppException class."""

    def test_default_message(self):
        exc = AppException()
        assert exc.message == "An unexpected error occurred"
        assert exc.status_code == 500

    def test_custom_message_and_status(self):
        exc = AppException(message="Custom error message", status_code=418)
        assert exc.message == "Custom error message"
        assert exc.status_code == 418
        assert str(exc) == "Custom error message"

    def test_to_dict(self):
        exc = InvalidStateTransitionError(
            message="Only draft invoices can be confirmed",
            invoice_id=7,
            current_state="PENDING",
            expected_state="DRAFT",
        )

        assert exc.to_dict() == {
            "error": "InvalidStateTransitionError",
            "message": "Only draft invoices can be confirmed",
            "status_code": 400,
            "details": {"invoice_id": 7, "current_state": "PENDING", "expected_state": "DRAFT"},
        }

    def test_to_dict_without_context(self):
        assert InvoiceNotFoundError().to_dict()["details"] is None

    def test_sensitive_context_filtered(self):
        exc = TokenInvalidError(token="eyJhbGci", secret="s3cr3t", user_id=1)

        assert exc.to_dict()["details"] == {"user_id": 1}


class TestExceptionFamilies:
    """Status codes and inheritance of domain errors."""

    @pytest.mark.parametrize(
        "exc_class, status_code, parent",
        [
            (CompanyRequiredError, 400, ValidationError),
            (InvoiceNotFoundError, 404, AppException),
            (ClientNotFoundError, 404, AppException),
            (CrossTenantAccessError, 403, AppException),
            (InvalidStateTransitionError, 400, BusinessRuleViolation),
            (ImmutableInvoiceFieldError, 422, BusinessRuleViolation),
            (InvoiceNumberConflictError, 409, AppException),
            (DocumentRenderError, 500, AppException),
            (TokenExpiredError, 401, AuthenticationError),
            (TokenInvalidError, 401, AuthenticationError),
        ],
    )
    def test_status_codes(self, exc_class, status_code, parent):
        exc = exc_class()
        assert exc.status_code == status_code
        assert isinstance(exc, parent)

    def test_cross_tenant_message(self):
        assert CrossTenantAccessError().message == "Invoice does not belong to your company"


class TestExceptionUsage:
    """Concrete errors must be raised somewhere in the application."""

    def test_leaf_exceptions_are_referenced(self):
        app_dir = Path(exceptions_module.__file__).resolve().parents[1]
        sources = "\n".join(
            path.read_text(encoding="utf-8")
            for path in app_dir.rglob("*.py")
            if path.name != "exceptions.py"
        )
        leaves = [
            cls
            for cls in vars(exceptions_module).values()
            if isinstance(cls, type)
            and issubclass(cls, AppException)
            and cls.__module__ == exceptions_module.__name__
            and not cls.__subclasses__()
        ]

        unused = [cls.__name__ for cls in leaves if not re.search(rf"\b{cls.__name__}\b", sources)]

        assert leaves
        assert unused == []


class TestExceptionHandlers:
    """Exception handlers render the JSON error body."""

    def _app(self) -> FastAPI:
        app = FastAPI()
        app.add_exception_handler(AppException, app_exception_handler)
        app.add_exception_handler(Exception, generic_exception_handler)

        @app.get("/conflict")
        async def conflict():
            raise InvoiceNumberConflictError(invoice_id=3, attempts=3)

        @app.get("/boom")
        async def boom():
            raise RuntimeError("database password is hunter2")

        return app

    def test_app_exception_response(self):
        client = TestClient(self._app())

        response = client.get("/conflict")

        assert response.status_code == 409
        body = response.json()
        assert body["error"] == "InvoiceNumberConflictError"
        assert body["details"] == {"invoice_id": 3, "attempts": 3}

    def test_unexpected_error_is_generic(self):
        client = TestClient(self._app(), raise_server_exceptions=False)

        response = client.get("/boom")

        assert response.status_code == 500
        assert response.json()["message"] == "An unexpected error occurred"
        assert "hunter2" not in response.text
