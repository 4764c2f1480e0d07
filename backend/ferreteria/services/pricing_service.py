# Overview: Service-layer operations for pricing; server-trusted line and sale totals.

from __future__ import annotations

from dataclasses import dataclass

from ..errors import InvalidLine, ProductInactive, ProductNotFound


@dataclass(frozen=True)
class PricedLine:
    position: int
    product_id: int
    quantity: int
    unit_price: int
    discount: int
    line_subtotal: int  # unit_price * quantity
    line_total: int     # line_subtotal - discount


@dataclass(frozen=True)
class SaleTotals:
    subtotal: int
    discount: int
    tax: int
    total: int

    def to_dict(self) -> dict:
        return {
            "subtotal": self.subtotal,
            "discount": self.discount,
            "tax": self.tax,
            "total": self.total,
        }


@dataclass(frozen=True)
class PricingResult:
    lines: tuple[PricedLine, ...]
    totals: SaleTotals


def compute_tax(taxable: int, tax_rate_bps: int) -> int:
    """Half-up rounding of taxable * rate / 10000, in integer arithmetic."""
    if tax_rate_bps <= 0 or taxable <= 0:
        return 0
    return (taxable * tax_rate_bps + 5000) // 10000


def _resolve_unit_price(item, product, *, allow_price_override: bool) -> int:
    if item.unit_price is None:
        return product.selling_price
    if item.unit_price < 0:
        raise InvalidLine(
            "unit_price cannot be negative",
            details={"product_id": item.product_id, "unit_price": item.unit_price},
        )
    if item.unit_price != product.selling_price and not allow_price_override:
        raise InvalidLine(
            f"Price override not allowed for {product.name}",
            details={
                "product_id": item.product_id,
                "unit_price": item.unit_price,
                "catalog_price": product.selling_price,
            },
        )
    return item.unit_price


def calculate_totals(
    items,
    catalog: dict,
    *,
    tax_rate_bps: int = 0,
    allow_price_override: bool = False,
) -> PricingResult:
    """
    Recompute every line and the sale totals from the catalog snapshot.

    items: ordered objects with product_id, quantity, unit_price (optional)
    and discount. catalog: {product_id: Product}. Pure; touches nothing.
    """
    if not items:
        raise InvalidLine("A sale needs at least one line")

    lines = []
    for position, item in enumerate(items, start=1):
        if item.quantity is None or item.quantity <= 0:
            raise InvalidLine(
                "quantity must be at least 1",
                details={"product_id": item.product_id, "quantity": item.quantity},
            )

        product = catalog.get(item.product_id)
        if product is None:
            raise ProductNotFound(
                f"Product {item.product_id} not found",
                details={"product_id": item.product_id},
            )
        if not product.is_active:
            raise ProductInactive(
                f"Product {product.name} is inactive",
                details={"product_id": item.product_id, "sku": product.sku},
            )

        unit_price = _resolve_unit_price(item, product, allow_price_override=allow_price_override)
        discount = item.discount or 0
        line_subtotal = unit_price * item.quantity

        if discount < 0:
            raise InvalidLine(
                "discount cannot be negative",
                details={"product_id": item.product_id, "discount": discount},
            )
        if discount > line_subtotal:
            raise InvalidLine(
                "discount exceeds line subtotal",
                details={"product_id": item.product_id, "discount": discount, "line_subtotal": line_subtotal},
            )

        lines.append(
            PricedLine(
                position=position,
                product_id=item.product_id,
                quantity=item.quantity,
                unit_price=unit_price,
                discount=discount,
                line_subtotal=line_subtotal,
                line_total=line_subtotal - discount,
            )
        )

    subtotal = sum(line.line_subtotal for line in lines)
    discount = sum(line.discount for line in lines)
    tax = compute_tax(subtotal - discount, tax_rate_bps)

    return PricingResult(
        lines=tuple(lines),
        totals=SaleTotals(
            subtotal=subtotal,
            discount=discount,
            tax=tax,
            total=subtotal - discount + tax,
        ),
    )
