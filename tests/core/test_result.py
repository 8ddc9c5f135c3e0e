"""Tests for the Ok/Err result envelope."""

import pytest

from rebound.core.errors import OperationInvocationFailure
from rebound.core.result import Err, Ok


class TestOk:
    def test_inspection(self):
        ok = Ok(42)
        assert ok.is_ok() is True
        assert ok.is_err() is False
        assert ok.unwrap() == 42
        assert ok.unwrap_or(0) == 42

    def test_to_dict(self):
        assert Ok("v").to_dict() == {"ok": True, "value": "v"}

    def test_frozen(self):
        ok = Ok(1)
        with pytest.raises(AttributeError):
            ok.value = 2  # type: ignore[misc]


class TestErr:
    def test_inspection(self):
        err = Err(ValueError("bad"))
        assert err.is_ok() is False
        assert err.is_err() is True
        assert err.unwrap_or(0) == 0

    def test_unwrap_raises_contained_error(self):
        error = ValueError("bad")
        with pytest.raises(ValueError) as exc_info:
            Err(error).unwrap()
        assert exc_info.value is error

    def test_to_dict_plain_exception(self):
        assert Err(ValueError("bad")).to_dict() == {
            "ok": False,
            "error": {"error_type": "ValueError", "message": "bad"},
        }

    def test_to_dict_uses_error_serializer(self):
        data = Err(OperationInvocationFailure("failed")).to_dict()
        assert data["error"]["error_type"] == "OperationInvocationFailure"
        assert data["error"]["retryable"] is True


class TestPatternMatching:
    def test_match_on_ok(self):
        match Ok("value"):
            case Ok(value):
                assert value == "value"
            case Err():
                pytest.fail("expected Ok")

    def test_match_on_err(self):
        error = ValueError("bad")
        match Err(error):
            case Ok():
                pytest.fail("expected Err")
            case Err(caught):
                assert caught is error
