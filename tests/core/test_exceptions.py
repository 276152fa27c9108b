"""Tests for onionnet.core.exceptions module."""

from __future__ import annotations

import pytest

from onionnet.core.exceptions import (
    CryptoError,
    DeliveryError,
    InsufficientRelaysError,
    OnionError,
    ProtocolError,
    ValidationError,
    error_body,
    http_status_for,
)

# ============================================================================
# OnionError Tests
# ============================================================================


class TestOnionError:
    """Tests for the base exception."""

    def test_create_with_message(self):
        exc = OnionError("Something went wrong")
        assert str(exc) == "Something went wrong"
        assert exc.message == "Something went wrong"
        assert exc.details == {}

    def test_to_dict(self):
        exc = OnionError("Test error", details={"info": "extra"})
        d = exc.to_dict()
        assert d["error"] == "OnionError"
        assert d["message"] == "Test error"
        assert d["details"] == {"info": "extra"}

    def test_to_dict_class_name(self):
        assert CryptoError("bad tag").to_dict()["error"] == "CryptoError"

    @pytest.mark.parametrize(
        "exc_type",
        [ValidationError, CryptoError, ProtocolError, DeliveryError],
    )
    def test_subclasses_caught_as_base(self, exc_type):
        with pytest.raises(OnionError):
            raise exc_type("boom")


# ============================================================================
# Subclass Details
# ============================================================================


class TestValidationError:
    def test_field_and_value(self):
        exc = ValidationError("bad id", field="id", value="abc")
        assert exc.field == "id"
        assert exc.details == {"field": "id", "value": "abc"}

    def test_value_truncated_in_details(self):
        exc = ValidationError("too long", value="x" * 500)
        assert len(exc.details["value"]) == 64
        assert exc.value == "x" * 500

    def test_no_field(self):
        assert ValidationError("plain").details == {}


class TestInsufficientRelaysError:
    def test_counts(self):
        exc = InsufficientRelaysError(available=2, required=3)
        assert exc.available == 2
        assert exc.required == 3
        assert exc.details == {"available": 2, "required": 3}
        assert "3" in exc.message


class TestDeliveryError:
    def test_address_and_status(self):
        exc = DeliveryError("refused", address="http://localhost:4001/receive", status=502)
        assert exc.address == "http://localhost:4001/receive"
        assert exc.status == 502
        assert exc.details == {"address": "http://localhost:4001/receive", "status": 502}

    def test_optional_fields(self):
        exc = DeliveryError("unreachable")
        assert exc.address is None
        assert exc.status is None
        assert exc.details == {}


# ============================================================================
# HTTP Mapping
# ============================================================================


class TestHttpMapping:
    @pytest.mark.parametrize(
        "exc, status",
        [
            (ValidationError("x"), 400),
            (ProtocolError("x"), 400),
            (CryptoError("x"), 400),
            (InsufficientRelaysError(1, 3), 503),
            (DeliveryError("x"), 502),
            (OnionError("x"), 500),
            (RuntimeError("x"), 500),
        ],
    )
    def test_http_status_for(self, exc, status):
        assert http_status_for(exc) == status

    def test_error_body_for_taxonomy(self):
        body = error_body(ProtocolError("no wrapped key"))
        assert body == {
            "success": False,
            "error": {"code": "ProtocolError", "message": "no wrapped key"},
        }

    def test_error_body_hides_unexpected_errors(self):
        body = error_body(KeyError("secret internals"))
        assert body["success"] is False
        assert body["error"]["code"] == "InternalError"
        assert "secret" not in body["error"]["message"]
