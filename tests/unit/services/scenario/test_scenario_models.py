"""Unit tests for scenario models and amount conversion."""

from fractions import Fraction

import pytest
from pydantic import ValidationError

from basketlever.services.scenario.models import ScenarioConfig, ScenarioStep, WorldSpec, to_fraction, to_wei


class TestToWei:
    @pytest.mark.parametrize(
        "value,decimals,expected",
        [
            ("1000", 6, 1000 * 10**6),
            ("0.1", 18, 10**17),
            (2, 18, 2 * 10**18),
            ("0.0000001", 6, 0),
            ("1.9999999", 6, 1999999),
        ],
    )
    def test_conversion_truncates(self, value, decimals, expected):
        assert to_wei(value, decimals) == expected

    def test_negative_rejected(self):
        with pytest.raises(ValueError, match="cannot be negative"):
            to_wei("-1", 6)

    def test_garbage_rejected(self):
        with pytest.raises(ValueError, match="Invalid amount"):
            to_wei("lots", 6)


class TestToFraction:
    def test_exact_decimal(self):
        assert to_fraction("0.86") == Fraction(43, 50)

    @pytest.mark.parametrize("value", ["0", "-3", "abc"])
    def test_invalid_rejected(self, value):
        with pytest.raises(ValueError):
            to_fraction(value)


class TestWorldSpec:
    def test_defaults(self):
        spec = WorldSpec()

        assert spec.collateral.decimals == 18
        assert spec.loan.decimals == 6
        assert spec.adapter_name == "UNISWAP"

    def test_unknown_key_rejected(self):
        with pytest.raises(ValidationError):
            WorldSpec(leverage_ratio="2")

    def test_non_positive_price_rejected(self):
        with pytest.raises(ValidationError):
            WorldSpec(price="0")


class TestScenarioConfig:
    def test_steps_parse(self):
        config = ScenarioConfig.model_validate(
            {"name": "s", "steps": [{"action": "lever", "params": {"borrow": "1000"}}]}
        )

        assert config.steps[0] == ScenarioStep(action="lever", params={"borrow": "1000"})

    def test_unknown_action_rejected(self):
        with pytest.raises(ValidationError):
            ScenarioConfig.model_validate({"name": "s", "steps": [{"action": "yolo"}]})
