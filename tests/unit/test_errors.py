"""Tests for ps_common.errors and ps_common.response."""

from src.ps_common.errors import (
    AppError,
    ExternalServiceUnavailableError,
    InsufficientCreditsError,
    InvalidTransitionError,
    MalformedPendingUpdateError,
    StalePendingUpdateError,
)
from src.ps_common.response import error_response, success_response


class TestAppError:
    def test_base_error(self) -> None:
        err = AppError(code=9002, message="Internal error")
        assert err.code == 9002
        assert err.http_status == 500

    def test_is_exception(self) -> None:
        assert isinstance(AppError(code=1001, message="test"), Exception)


class TestSpecificErrors:
    def test_insufficient_credits(self) -> None:
        err = InsufficientCreditsError(required=6500, available=3000)
        assert err.http_status == 422
        assert "6500" in err.message
        assert "3000" in err.message

    def test_invalid_transition_names_both_ends(self) -> None:
        err = InvalidTransitionError("status", "delivered", "printing")
        assert err.code == 4001
        assert "delivered" in err.message
        assert "printing" in err.message

    def test_stale_is_conflict(self) -> None:
        err = StalePendingUpdateError("o-1", "superseded")
        assert err.code == 5001
        assert err.http_status == 409

    def test_malformed_is_validation_error(self) -> None:
        assert MalformedPendingUpdateError("bad").http_status == 422

    def test_external_service(self) -> None:
        err = ExternalServiceUnavailableError("payment_gateway", "timeout")
        assert err.code == 9003
        assert err.http_status == 503
        assert err.message.endswith("(timeout)")


class TestApiResponse:
    def test_success_carries_warnings(self) -> None:
        resp = success_response({"id": "abc"}, ["External service unavailable: payment_gateway"])
        assert resp.code == 0
        assert resp.warnings == ["External service unavailable: payment_gateway"]

    def test_error(self) -> None:
        resp = error_response(5001, "stale")
        assert resp.data is None
        assert resp.warnings == []

    def test_serialization(self) -> None:
        d = success_response({"price": 65}).model_dump()
        assert {"code", "message", "data", "warnings", "timestamp", "request_id"} <= d.keys()
