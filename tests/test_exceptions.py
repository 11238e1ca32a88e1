"""Tests for the greenarea exception hierarchy."""

from __future__ import annotations

import pytest

from greenarea.exceptions import (
    ConfigurationError,
    DataSourceError,
    DimensionMismatchError,
    EmptyInputError,
    GreenAreaError,
    GridMismatchError,
    PipelineCancelledError,
)

SUBCLASS_EXCEPTION_CLASSES = [
    ConfigurationError,
    DataSourceError,
    EmptyInputError,
    GridMismatchError,
    DimensionMismatchError,
    PipelineCancelledError,
]

ALL_EXCEPTION_CLASSES = [GreenAreaError, *SUBCLASS_EXCEPTION_CLASSES]


@pytest.mark.unit
class TestExceptionInheritance:
    """Verify the exception inheritance chain."""

    def test_base_inherits_from_exception(self) -> None:
        assert issubclass(GreenAreaError, Exception)

    @pytest.mark.parametrize(
        "exc_cls",
        SUBCLASS_EXCEPTION_CLASSES,
        ids=lambda c: c.__name__,
    )
    def test_subclass_inherits_from_base(self, exc_cls: type[GreenAreaError]) -> None:
        assert issubclass(exc_cls, GreenAreaError)

    def test_errors_are_not_value_errors(self) -> None:
        # ValueError is reserved for programming errors on pure functions.
        assert not issubclass(GreenAreaError, ValueError)


@pytest.mark.unit
class TestThreePartMessage:
    """Verify the three-part message pattern (what, cause, fix)."""

    @pytest.mark.parametrize(
        "exc_cls",
        ALL_EXCEPTION_CLASSES,
        ids=lambda c: c.__name__,
    )
    def test_full_message(self, exc_cls: type[GreenAreaError]) -> None:
        exc = exc_cls(what="Operation failed", cause="Bad input", fix="Check your data")
        lines = str(exc).split("\n")
        assert lines == ["Operation failed", "Cause: Bad input", "Fix: Check your data"]

    @pytest.mark.parametrize(
        "exc_cls",
        ALL_EXCEPTION_CLASSES,
        ids=lambda c: c.__name__,
    )
    def test_what_only_message(self, exc_cls: type[GreenAreaError]) -> None:
        assert str(exc_cls(what="Something broke")) == "Something broke"

    def test_message_omits_empty_cause(self) -> None:
        msg = str(GreenAreaError(what="Failed", fix="Retry"))
        assert "Cause:" not in msg
        assert "Fix: Retry" in msg

    def test_attributes_stored(self) -> None:
        exc = EmptyInputError(what="W", cause="C", fix="F")
        assert (exc.what, exc.cause, exc.fix) == ("W", "C", "F")


@pytest.mark.unit
class TestExceptionCatchability:
    @pytest.mark.parametrize(
        "exc_cls",
        SUBCLASS_EXCEPTION_CLASSES,
        ids=lambda c: c.__name__,
    )
    def test_catch_by_base_class(self, exc_cls: type[GreenAreaError]) -> None:
        with pytest.raises(GreenAreaError):
            raise exc_cls(what="test")
