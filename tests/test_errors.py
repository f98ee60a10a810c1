"""
Tests for structured errors and metrics collection.
"""

from grantstore.errors import (
    ClientNotFoundError,
    ConflictError,
    ErrorCode,
    ErrorContext,
    StorageError,
)
from grantstore.metrics import MetricConfig, StoreMetrics
from grantstore.types import TokenKind


class TestErrors:
    def test_context_masks_token_value(self):
        context = ErrorContext.for_token("grant-1", TokenKind.ACCESS_TOKEN, "eyJhbGciOiJSUzI1NiJ9.payload")

        assert context.token_kind == "access_token"
        assert context.token_prefix == "eyJhbG..."

    def test_short_values_fully_masked(self):
        context = ErrorContext.for_token(token_value="AT1")
        assert "AT1" not in context.token_prefix

    def test_conflict_to_dict(self):
        error = ConflictError(
            "access_token value is already held by another grant",
            existing_grant_id="grant-a",
            context=ErrorContext.for_token("grant-b", TokenKind.ACCESS_TOKEN, "access-value-0001"),
        )
        data = error.to_dict()

        assert data["error"] == "token_conflict"
        assert data["grant_id"] == "grant-b"
        assert data["metadata"]["existing_grant_id"] == "grant-a"
        assert "access-value-0001" not in str(error)

    def test_client_not_found(self):
        error = ClientNotFoundError("client-9", grant_id="grant-1")
        assert error.code == ErrorCode.CLIENT_NOT_FOUND
        assert error.context.grant_id == "grant-1"
        assert str(error).startswith("client_not_found: Registered client not found with id: client-9")

    def test_storage_error_keeps_cause(self):
        cause = ConnectionError("refused")
        error = StorageError("save", "ConnectionError", cause=cause)

        assert error.message == "save failed: ConnectionError"
        assert error.to_dict()["caused_by"] == "refused"


class TestMetrics:
    def test_track_counts_success_and_error(self):
        metrics = StoreMetrics()
        with metrics.track("save"):
            pass
        try:
            with metrics.track("save"):
                raise RuntimeError("boom")
        except RuntimeError:
            pass

        assert metrics.get_value("grantstore_operations_total", operation="save", status="success") == 1
        assert metrics.get_value("grantstore_operations_total", operation="save", status="error") == 1

    def test_disabled_metrics_record_nothing(self):
        metrics = StoreMetrics(MetricConfig(enabled=False))
        metrics.record_lookup("access_token", hit=True)
        metrics.record_sweep(3)
        with metrics.track("save"):
            pass

        assert metrics.get_value("grantstore_operations_total", operation="save", status="success") == 0.0

    def test_separate_collectors_do_not_clash(self):
        first = StoreMetrics()
        second = StoreMetrics()
        first.record_sweep(2)

        assert first.get_value("grantstore_grants_swept_total") == 2
        assert second.get_value("grantstore_grants_swept_total") == 0.0

    def test_export(self):
        metrics = StoreMetrics(MetricConfig(namespace="auth"))
        metrics.record_lookup("refresh_token", hit=False)
        assert b"auth_token_lookups_total" in metrics.export()
