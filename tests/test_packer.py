"""Tests for the content budget packer."""

import pytest

from newsdigest.errors import EmptyAggregationError
from newsdigest.pipeline.packer import (
    ARTICLE_PREAMBLE,
    OMITTED_BODY,
    PackUnit,
    pack,
    render_entry,
)


def make_units(*bodies):
    return [
        PackUnit(f"https://example.com/story-{i}", f"Story {i}", body)
        for i, body in enumerate(bodies, 1)
    ]


def entry_size(unit):
    return len(render_entry(unit, unit.body))


def test_everything_fits():
    units = make_units("alpha " * 20, "beta " * 20, "gamma " * 20)

    result = pack(units, 100_000)

    assert result.included_count == 3
    assert not result.truncated
    assert result.payload.startswith(ARTICLE_PREAMBLE)
    for unit in units:
        assert unit.identifier in result.payload
        assert unit.body in result.payload
    assert result.payload.count("--- ARTICLE START ---") == 3


def test_prefix_greedy_degrades_to_headline():
    units = make_units("a" * 100, "b" * 100, "c" * 5000)
    headline_only = render_entry(units[2], OMITTED_BODY)
    budget = len(ARTICLE_PREAMBLE) + entry_size(units[0]) + entry_size(units[1]) + len(headline_only)

    result = pack(units, budget)

    assert result.included_count == 2
    assert result.truncated
    assert result.degraded == [units[2].identifier]
    assert result.dropped == []
    assert "c" * 5000 not in result.payload
    assert OMITTED_BODY in result.payload
    assert len(result.payload) <= budget


def test_unit_dropped_when_even_headline_does_not_fit():
    units = make_units("a" * 100, "b" * 5000)
    budget = len(ARTICLE_PREAMBLE) + entry_size(units[0]) + 10

    result = pack(units, budget)

    assert result.included_count == 1
    assert result.dropped == [units[1].identifier]
    assert units[1].identifier not in result.payload


def test_later_small_unit_still_packed_after_a_large_one():
    units = make_units("a" * 100, "b" * 5000, "c")
    budget = len(ARTICLE_PREAMBLE) + entry_size(units[0]) + entry_size(units[2])

    result = pack(units, budget)

    assert result.included_count == 2
    assert units[2].identifier in result.payload
    assert result.dropped == [units[1].identifier]


@pytest.mark.parametrize("budget", [1, 7, 50, 120, 333, 600, 1500, 4000])
def test_payload_never_exceeds_budget(budget):
    units = make_units("x" * 700, "y" * 300, "z" * 90)

    result = pack(units, budget)

    assert 0 < len(result.payload) <= budget


def test_all_units_over_budget_forces_truncated_first_unit():
    units = make_units("first " * 2000, "second " * 2000)
    budget = len(ARTICLE_PREAMBLE) + 400

    result = pack(units, budget)

    assert result.forced
    assert result.truncated
    assert result.included_count == 0
    assert result.payload
    assert len(result.payload) <= budget
    assert units[0].identifier in result.payload
    assert result.payload.endswith("--- ARTICLE END ---\n\n")
    assert result.dropped == [units[1].identifier]


def test_budget_smaller_than_preamble_still_returns_content():
    units = make_units("body text")

    result = pack(units, 20)

    assert len(result.payload) == 20
    assert result.truncated


def test_pack_is_deterministic():
    units = make_units("a" * 300, "b" * 900, "c" * 50)

    first = pack(units, 1500)
    second = pack(units, 1500)

    assert first == second


def test_custom_label_and_preamble():
    units = make_units("digest text")

    result = pack(units, 10_000, preamble="Docs:\n", label="DOCUMENT")

    assert result.payload.startswith("Docs:\n")
    assert "--- DOCUMENT START ---" in result.payload
    assert "--- ARTICLE START ---" not in result.payload


def test_empty_input_raises():
    with pytest.raises(EmptyAggregationError):
        pack([], 1000)


def test_non_positive_budget_rejected():
    with pytest.raises(ValueError):
        pack(make_units("a"), 0)
