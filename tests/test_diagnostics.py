import warnings

import pytest

from pg2zod.diagnostics import WarningSink
from pg2zod.exceptions import (
    CatalogParsingError,
    CatalogError,
    Pg2ZodError,
    UnmappedTypeError,
    ValidationWarning,
)


class TestWarningSink:
    def test_add_emits_validation_warning(self):
        sink = WarningSink()
        with pytest.warns(ValidationWarning, match="first"):
            sink.add("first")
        assert sink.messages == ("first",)

    def test_silent_sink(self):
        sink = WarningSink(emit=False)
        with warnings.catch_warnings():
            warnings.simplefilter("error")
            sink.add("one")
            sink.add("two")
        assert list(sink) == ["one", "two"]
        assert len(sink) == 2


class TestExceptions:
    def test_suggestions_are_appended(self):
        error = Pg2ZodError("Broken", suggestions=["Fix it", "Or not"])
        assert str(error) == "Broken | Fix it; Or not"

    def test_hierarchy(self):
        assert issubclass(CatalogParsingError, CatalogError)
        assert issubclass(UnmappedTypeError, Pg2ZodError)

    def test_unmapped_type_error_attributes(self):
        error = UnmappedTypeError("Unknown type", column_name="attrs", type_name="hstore")
        assert (error.column_name, error.type_name) == ("attrs", "hstore")
