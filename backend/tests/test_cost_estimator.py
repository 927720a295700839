from decimal import Decimal

import pytest

from memo_digitizer.common.utils.cost_estimator import estimate_cost_usd


RATE_IN = Decimal("0.003") / 1000
RATE_OUT = Decimal("0.015") / 1000


def test_reference_example():
    meta = estimate_cost_usd("m", 1000, 500, RATE_IN, RATE_OUT)
    assert meta.formatted_total() == "0.0105"
    assert meta.total_tokens == 1500


def test_default_rates_from_settings():
    meta = estimate_cost_usd("m", 1000, 500)
    assert meta.total_cost_usd == Decimal("0.0105")


def test_rounds_to_four_places():
    meta = estimate_cost_usd("m", 1, 1, RATE_IN, RATE_OUT)
    # 0.000003 + 0.000015 = 0.000018
    assert meta.formatted_total() == "0.0000"
    meta = estimate_cost_usd("m", 12345, 6789, RATE_IN, RATE_OUT)
    expected = (12345 * RATE_IN + 6789 * RATE_OUT).quantize(Decimal("0.0001"))
    assert meta.total_cost_usd == expected


@pytest.mark.parametrize("fixed", [0, 250, 4000])
def test_monotonic_in_each_usage_counter(fixed):
    prev_in = prev_out = Decimal("-1")
    for n in range(0, 20000, 777):
        by_input = estimate_cost_usd("m", n, fixed, RATE_IN, RATE_OUT).total_cost_usd
        by_output = estimate_cost_usd("m", fixed, n, RATE_IN, RATE_OUT).total_cost_usd
        assert by_input >= prev_in
        assert by_output >= prev_out
        prev_in, prev_out = by_input, by_output


def test_negative_or_missing_usage_is_treated_as_zero():
    meta = estimate_cost_usd("m", None, -5, RATE_IN, RATE_OUT)
    assert meta.input_tokens == 0
    assert meta.output_tokens == 0
    assert meta.formatted_total() == "0.0000"
