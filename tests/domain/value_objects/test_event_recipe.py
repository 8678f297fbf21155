"""Tests for EventRecipe value object."""

import pytest

from remote_events.domain.value_objects import (
    EventRecipe,
    FilterKind,
    FilterSpec,
    RegisterAddress,
)

ROOT = EventRecipe.root(RegisterAddress(0x01, 0x01), "switch")
ACCUMULATE = FilterSpec(FilterKind.ACCUMULATE)
SAMPLE = FilterSpec(FilterKind.PERIODIC_SAMPLE, period_ms=500)


class TestRecipeShape:
    """Root and derived recipes are mutually exclusive."""

    def test_root_recipe(self):
        assert ROOT.is_root
        assert ROOT.depth == 0
        assert ROOT.chain() == []

    def test_root_with_filter_rejected(self):
        with pytest.raises(ValueError):
            EventRecipe(kind="switch", address=RegisterAddress(1, 1), filter=ACCUMULATE)

    def test_derived_without_source_rejected(self):
        with pytest.raises(ValueError):
            EventRecipe(kind="switch", filter=ACCUMULATE)

    def test_chain_order_is_root_outward(self):
        recipe = EventRecipe.derived(SAMPLE, EventRecipe.derived(ACCUMULATE, ROOT))
        assert recipe.depth == 2
        assert recipe.chain() == [ACCUMULATE, SAMPLE]
        assert recipe.root_address == RegisterAddress(0x01, 0x01)

    def test_derived_inherits_kind(self):
        assert EventRecipe.derived(ACCUMULATE, ROOT).kind == "switch"

    def test_read_coupled_takes_data_kind(self):
        spec = FilterSpec(
            FilterKind.READ_COUPLED,
            data_address=RegisterAddress(0x04, 0x01),
            data_kind="temperature",
        )
        assert EventRecipe.derived(spec, ROOT).kind == "temperature"


class TestRecipeSerialisation:
    """Dictionary form used by the registry export."""

    def test_nested_dict_restores_equal_recipe(self):
        recipe = EventRecipe.derived(
            SAMPLE,
            EventRecipe.derived(ACCUMULATE, ROOT, identifier="total"),
            identifier="slow-total",
        )
        data = recipe.to_dict()
        assert data["identifier"] == "slow-total"
        assert data["source"]["identifier"] == "total"
        assert data["source"]["source"]["address"]["module"] == 1
        assert EventRecipe.from_dict(data) == recipe

    def test_str_lists_chain(self):
        recipe = EventRecipe.derived(SAMPLE, EventRecipe.derived(ACCUMULATE, ROOT))
        assert str(recipe) == "0x01:0x01 -> accumulate -> periodic_sample(500ms)"
