"""Unit tests for API error mapping."""

import pytest

from society_dues.api.errors import classify, error_response
from society_dues.errors import (
    AuthRejectedError,
    DocumentReadError,
    DocumentStoreError,
    DocumentWriteError,
    InvalidPeriodError,
    PermissionDeniedError,
    SocietyError,
)


@pytest.mark.parametrize(
    "error,expected",
    [
        (AuthRejectedError("x"), ("auth_rejected", 401)),
        (PermissionDeniedError("x"), ("permission_denied", 403)),
        (InvalidPeriodError("x"), ("invalid_period", 422)),
        (DocumentWriteError("x"), ("document_write_failed", 502)),
        (DocumentReadError("x"), ("document_read_failed", 503)),
        (DocumentStoreError("x"), ("society_error", 400)),
        (SocietyError("x"), ("society_error", 400)),
    ],
)
def test_classify(error, expected):
    assert classify(error) == expected


def test_error_response_shape():
    assert error_response("unit_not_found", "Unit not found: flat-9") == {
        "error": {"code": "unit_not_found", "message": "Unit not found: flat-9"}
    }
