"""
Catalog and cart data model.

Attribute maps on every model are canonical Dict[str, str] (see
catalog.attributes). Wire payloads are converted by catalog.normalize and
api.cart before they reach these models.
"""

from typing import Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field


class AttributeDefinition(BaseModel):
    """One configurable product option (size, color, ...)."""
    model_config = ConfigDict(extra="forbid")

    name: str = Field(..., description="Canonical (case-folded) attribute name")
    label: Optional[str] = Field(None, description="Human-readable name for UI feedback")
    required: bool = Field(False, description="Selection must include this attribute")
    options: List[str] = Field(default_factory=list, description="Declared allowed values")

    @property
    def display_name(self) -> str:
        return self.label or self.name


class Variant(BaseModel):
    """One concrete, purchasable combination of attribute values."""
    model_config = ConfigDict(extra="forbid")

    id: str = Field("", description="Variant identifier")
    sku: str = Field("", description="Stock keeping unit")
    attributes: Dict[str, str] = Field(default_factory=dict, description="Complete attribute assignment")
    stock: int = Field(0, description="Units in stock")
    is_active: bool = Field(True, description="Variant may be sold")
    price: Optional[float] = Field(None, description="Base (merchant) price")
    discount_price: Optional[float] = Field(None, description="Manual discount override")
    final_price: Optional[float] = Field(None, description="Backend-computed selling price")
    markup_percent: Optional[float] = Field(None, description="Fixed platform markup (%)")
    dynamic_markup_percent: Optional[float] = Field(None, description="Demand-based markup (%)")
    images: List[str] = Field(default_factory=list)

    @property
    def selectable(self) -> bool:
        """Active and in stock."""
        return self.is_active and self.stock > 0


class Product(BaseModel):
    """
    Catalog product.

    When `variants` is non-empty the product-level `stock` is not
    authoritative; use `total_stock`.
    """
    model_config = ConfigDict(extra="forbid")

    id: str = Field(..., description="Product identifier")
    name: str = Field("", description="Display name")
    description: str = Field("")
    price: Optional[float] = Field(None, description="Base (merchant) price")
    discount_price: Optional[float] = Field(None)
    final_price: Optional[float] = Field(None)
    markup_percent: Optional[float] = Field(None)
    dynamic_markup_percent: Optional[float] = Field(None)
    stock: Optional[int] = Field(None, description="Only meaningful without variants")
    is_active: bool = Field(True)
    deleted_at: Optional[str] = Field(None)
    images: List[str] = Field(default_factory=list)
    category_id: str = Field("")
    category_name: Optional[str] = Field(None)
    merchant_id: Optional[str] = Field(None)
    attribute_defs: List[AttributeDefinition] = Field(default_factory=list)
    variants: List[Variant] = Field(default_factory=list)

    @property
    def has_variants(self) -> bool:
        return len(self.variants) > 0

    @property
    def available(self) -> bool:
        """Active and not soft-deleted."""
        return self.is_active and not self.deleted_at

    @property
    def total_stock(self) -> int:
        if self.has_variants:
            return sum(max(v.stock, 0) for v in self.variants)
        return self.stock or 0


class CartLine(BaseModel):
    """A cart line; `line_key` is its identity."""

    product_id: str = Field(..., description="Product reference")
    variant_id: Optional[str] = Field(None, description="Resolved variant, None for simple products")
    attributes: Dict[str, str] = Field(default_factory=dict, description="Selection snapshot at add time")
    quantity: int = Field(1, ge=1)
    line_key: str = Field(..., description="Canonical identity built from product + attributes")
    line_id: Optional[str] = Field(None, description="Backend line id, when known")


class Cart(BaseModel):
    """Authoritative cart state as returned by the cart backend."""

    id: Optional[str] = None
    lines: List[CartLine] = Field(default_factory=list)
    total_quantity: int = 0
    total_price: float = 0.0

    @property
    def is_empty(self) -> bool:
        return not self.lines
