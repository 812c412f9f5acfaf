"""
Tests for variant matching, option helpers and the availability decision table.
"""

from storefront.catalog.models import AttributeDefinition, Variant
from storefront.variants.availability import AvailabilityReason, evaluate, missing_required
from storefront.variants.matcher import (
    attribute_options,
    find_duplicate_variants,
    is_option_available,
    match_variant,
    pick_display_variant,
)

from conftest import build_product


# ============================================================================
# Variant Matcher
# ============================================================================

class TestMatchVariant:
    def test_empty_selection_is_none(self, shirt):
        assert match_variant(shirt, {}) is None
        assert match_variant(shirt, None) is None
        assert match_variant(shirt, {"size": "null"}) is None

    def test_full_selection_matches(self, shirt):
        assert match_variant(shirt, {"size": "M", "color": "blue"}).id == "v-blue"
        assert match_variant(shirt, {"size": "M", "color": "red"}).id == "v-red"

    def test_raw_selection_is_normalized(self, shirt):
        assert match_variant(shirt, {" Size": "M ", "COLOUR": "blue"}).id == "v-blue"

    def test_partial_selection_never_resolves(self, shirt):
        """Only one variant has color=blue, but size is still unchosen."""
        assert match_variant(shirt, {"color": "blue"}) is None

    def test_extra_attribute_rejected(self, shirt):
        assert match_variant(shirt, {"size": "M", "color": "blue", "fit": "slim"}) is None

    def test_value_mismatch(self, shirt):
        assert match_variant(shirt, {"size": "L", "color": "blue"}) is None

    def test_value_comparison_is_exact(self, shirt):
        assert match_variant(shirt, {"size": "m", "color": "blue"}) is None

    def test_none_product(self):
        assert match_variant(None, {"size": "M"}) is None

    def test_duplicate_maps_first_wins(self):
        product = build_product(variants=[
            {"id": "first", "attributes": {"size": "M", "color": "red"}, "stock": 1},
            {"id": "second", "attributes": {"size": "M", "color": "red"}, "stock": 9},
        ])
        assert match_variant(product, {"size": "M", "color": "red"}).id == "first"
        assert find_duplicate_variants(product) == [("first", "second")]

    def test_no_duplicates_reported_for_clean_catalog(self, shirt):
        assert find_duplicate_variants(shirt) == []


class TestDisplayVariant:
    def test_first_in_list_order(self, shirt):
        assert pick_display_variant(shirt).id == "v-red"

    def test_simple_product_has_none(self, mug):
        assert pick_display_variant(mug) is None
        assert pick_display_variant(None) is None


class TestAttributeOptions:
    def test_declared_options_then_observed_values(self):
        product = build_product(variants=[
            {"id": "a", "attributes": {"size": "L", "color": "red"}, "stock": 2},
            {"id": "b", "attributes": {"size": "M", "color": "green"}, "stock": 0},
        ])
        product.attribute_defs[0].options.extend(["S", "M"])
        options = attribute_options(product)
        assert options["size"] == ["S", "M", "L"]
        # green only exists on an out-of-stock variant
        assert options["color"] == ["red"]

    def test_option_available_respects_other_selections(self, shirt):
        assert is_option_available(shirt, "color", "blue", {"size": "M"})
        assert not is_option_available(shirt, "color", "red", {"size": "M"})
        assert not is_option_available(shirt, "color", "blue", {"size": "L"})

    def test_option_available_ignores_own_current_value(self, shirt):
        assert is_option_available(shirt, "Color", "blue", {"size": "M", "color": "red"})

    def test_simple_product_always_available(self, mug):
        assert is_option_available(mug, "size", "XL")


# ============================================================================
# Availability Evaluator
# ============================================================================

class TestEvaluate:
    def test_in_stock_variant_is_ok(self, shirt):
        verdict = evaluate(shirt, {"size": "M", "color": "blue"})
        assert verdict.purchasable is True
        assert verdict.reason == AvailabilityReason.OK
        assert verdict.variant.id == "v-blue"

    def test_zero_stock_variant_is_out_of_stock(self, shirt):
        verdict = evaluate(shirt, {"size": "M", "color": "red"})
        assert verdict.purchasable is False
        assert verdict.reason == AvailabilityReason.OUT_OF_STOCK
        assert verdict.variant.id == "v-red"

    def test_missing_required_lists_display_names(self, shirt):
        verdict = evaluate(shirt, {})
        assert verdict.reason == AvailabilityReason.MISSING_REQUIRED
        assert verdict.missing == ["Size", "Color"]

    def test_missing_required_color_only(self):
        product = build_product(
            required=("color",),
            variants=[{"id": "v1", "attributes": {"color": "red"}, "stock": 1}],
        )
        verdict = evaluate(product, {})
        assert verdict.reason == AvailabilityReason.MISSING_REQUIRED
        assert verdict.missing == ["Color"]

    def test_no_matching_variant(self, shirt):
        verdict = evaluate(shirt, {"size": "XL", "color": "blue"})
        assert verdict.reason == AvailabilityReason.NO_MATCHING_VARIANT
        assert verdict.variant is None

    def test_inactive_variant_is_out_of_stock(self):
        product = build_product(variants=[
            Variant(id="v1", attributes={"size": "M", "color": "red"}, stock=4, is_active=False),
        ])
        assert evaluate(product, {"size": "M", "color": "red"}).reason == AvailabilityReason.OUT_OF_STOCK

    def test_missing_product(self):
        assert evaluate(None, {"size": "M"}).reason == AvailabilityReason.INACTIVE_PRODUCT

    def test_inactive_product_checked_first(self, shirt):
        inactive = shirt.model_copy(update={"is_active": False})
        assert evaluate(inactive, {"size": "M", "color": "blue"}).reason == AvailabilityReason.INACTIVE_PRODUCT

    def test_soft_deleted_product_is_inactive(self, mug):
        deleted = mug.model_copy(update={"deleted_at": "2024-05-01T00:00:00Z"})
        assert evaluate(deleted).reason == AvailabilityReason.INACTIVE_PRODUCT

    def test_simple_product_uses_own_stock(self, mug):
        assert evaluate(mug).reason == AvailabilityReason.OK
        empty = mug.model_copy(update={"stock": 0})
        assert evaluate(empty).reason == AvailabilityReason.OUT_OF_STOCK

    def test_recomputed_after_stock_refresh(self, shirt):
        restocked = shirt.model_copy(update={"variants": [
            shirt.variants[0].model_copy(update={"stock": 3}),
            shirt.variants[1],
        ]})
        assert evaluate(shirt, {"size": "M", "color": "red"}).purchasable is False
        assert evaluate(restocked, {"size": "M", "color": "red"}).purchasable is True

    def test_missing_required_helper_normalizes_selection(self):
        product = build_product(variants=[{"id": "v", "attributes": {"size": "M", "color": "red"}, "stock": 1}])
        product.attribute_defs.append(AttributeDefinition(name="fit", required=False))
        assert missing_required(product, {"SIZE": "M"}) == ["Color"]
