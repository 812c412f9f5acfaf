"""Variant resolution and purchasability."""

from storefront.variants.availability import Availability, AvailabilityReason, evaluate, missing_required
from storefront.variants.matcher import (
    attribute_options,
    find_duplicate_variants,
    is_option_available,
    match_variant,
    pick_display_variant,
)

__all__ = [
    'Availability',
    'AvailabilityReason',
    'evaluate',
    'missing_required',
    'attribute_options',
    'find_duplicate_variants',
    'is_option_available',
    'match_variant',
    'pick_display_variant',
]
