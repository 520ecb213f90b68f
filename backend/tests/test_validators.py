"""
Tests for per-cell and stage-total validators.
"""

import pytest

from production.errors import (
    EmptyConferente,
    GridExceedsSource,
    InspectorRequired,
    QuantityExceeded,
    TotalExceeded,
)
from production.grid import Grid
from production.validators import cell_violations, require, validate_cell, validate_grid, validate_stage_total

SOURCE = Grid.from_matrix({"Blue": {"M": 10, "L": 5}})


class TestValidateCell:
    def test_equal_to_source_accepted(self):
        validate_cell(10, 10)

    def test_below_source_accepted(self):
        validate_cell(0, 10)

    def test_above_source_rejected_with_cell(self):
        with pytest.raises(QuantityExceeded) as exc_info:
            validate_cell(11, 10, color="Blue", size="M")
        violation = exc_info.value.violation
        assert (violation.color, violation.size, violation.reported, violation.allowed) == ("Blue", "M", 11, 10)
        assert exc_info.value.to_dict()["violations"][0]["allowed"] == 10

    @pytest.mark.parametrize("qty", [0, 3, 5, 6, 9])
    def test_set_cell_then_validate_agrees_with_grid_check(self, qty):
        edited = Grid.zeros(SOURCE.axes()).set_cell("Blue", "L", qty)
        cell_ok = qty <= SOURCE.cell("Blue", "L")
        assert (not cell_violations(edited, SOURCE)) == cell_ok
        if cell_ok:
            validate_cell(edited.cell("Blue", "L"), SOURCE.cell("Blue", "L"))
        else:
            with pytest.raises(QuantityExceeded):
                validate_cell(edited.cell("Blue", "L"), SOURCE.cell("Blue", "L"))


class TestValidateGrid:
    def test_grid_within_source(self):
        validate_grid(Grid.from_matrix({"Blue": {"M": 10, "L": 0}}), SOURCE)

    def test_reports_every_offending_cell(self):
        with pytest.raises(GridExceedsSource) as exc_info:
            validate_grid(Grid.from_matrix({"Blue": {"M": 11, "L": 6}}), SOURCE)
        cells = {(v.color, v.size) for v in exc_info.value.violations}
        assert cells == {("Blue", "M"), ("Blue", "L")}

    def test_cell_absent_from_source_allows_only_zero(self):
        with pytest.raises(GridExceedsSource):
            validate_grid(Grid.from_matrix({"Red": {"M": 1}}), SOURCE)
        validate_grid(Grid.from_matrix({"Red": {"M": 0}}), SOURCE)


class TestValidateStageTotal:
    def test_at_cap_accepted(self):
        validate_stage_total(Grid.from_matrix({"Blue": {"M": 8, "L": 4}}), (2, 1), 15)

    def test_over_cap_rejected(self):
        with pytest.raises(TotalExceeded) as exc_info:
            validate_stage_total(Grid.from_matrix({"Blue": {"M": 8, "L": 4}}), (2, 2), 15)
        assert exc_info.value.total == 16
        assert exc_info.value.cap == 15


class TestRequire:
    def test_returns_stripped_value(self):
        assert require("  Ana ", InspectorRequired) == "Ana"

    @pytest.mark.parametrize("value", ["", "   ", None])
    def test_blank_raises_field_error(self, value):
        with pytest.raises(EmptyConferente) as exc_info:
            require(value, EmptyConferente)
        assert exc_info.value.field == "conferente"
