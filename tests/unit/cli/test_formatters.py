"""Unit tests for CLI UI formatters."""

import pytest
from rich.table import Table

from basketlever.cli.ui.formatters import create_positions_table, create_steps_table, format_unit
from basketlever.services.ledger.models import Position, PositionKind
from basketlever.services.scenario.runner import StepOutcome


class TestFormatUnit:
    @pytest.mark.parametrize(
        "unit,decimals,expected",
        [
            (-1000 * 10**6, 6, "-1000"),
            (333333333333333333, 18, "0.333333333333333333"),
            (1500000, 6, "1.5"),
            (0, 18, "0"),
            (42, 0, "42"),
            (-5, 6, "-0.000005"),
        ],
    )
    def test_format(self, unit, decimals, expected):
        assert format_unit(unit, decimals) == expected


class TestStepsTable:
    def test_one_row_per_outcome(self):
        outcomes = [
            StepOutcome(index=1, action="lever", ok=True, detail="borrowed 1"),
            StepOutcome(index=2, action="delever", ok=False, detail="boom", error="SlippageError"),
        ]

        table = create_steps_table(outcomes)

        assert isinstance(table, Table)
        assert table.row_count == 2


class TestPositionsTable:
    def test_rows_and_columns(self):
        positions = [
            Position(component="0xwsteth", kind=PositionKind.EXTERNAL, module="0xlev", unit=10**18),
            Position(component="0xusdc", kind=PositionKind.EXTERNAL, module="0xlev", unit=-(10**9)),
        ]

        table = create_positions_table(
            positions,
            symbols={"0xwsteth": "wstETH", "0xusdc": "USDC"},
            decimals={"0xwsteth": 18, "0xusdc": 6},
            module_names={"0xlev": "LeverageModule"},
        )

        assert table.row_count == 2
        assert [c.header for c in table.columns] == ["Component", "Kind", "Module", "Unit", "Raw"]
