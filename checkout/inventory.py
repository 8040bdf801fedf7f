"""
Inventory Validator — drop what can no longer be bought.

    lines ──traverse_par──→ (line, snapshot | None) × N
                                  │
                    ┌─────────────┼──────────────┐
                    ▼             ▼              ▼
                 missing     sold/reserved     kept
                 (deleted)   (someone else)   (cart order)

Dropping is not an error, it is the churn between browsing and paying.
The cart itself is left alone; the buyer removes dropped lines.
"""

from collections.abc import Sequence
from dataclasses import dataclass

import combinators as C
from kungfu import Error, LazyCoroResult, Ok

from checkout.catalog import Catalog
from checkout.domain import (
    BuyerId,
    CartLine,
    CheckoutError,
    CheckoutErrors,
    ProductId,
    ProductSnapshot,
    ValidatedLine,
)
from checkout.observability import get_logger

logger = get_logger(__name__)


@dataclass(frozen=True, slots=True)
class ValidatedCart:
    lines: tuple[ValidatedLine, ...]
    missing: tuple[ProductId, ...]
    unavailable: tuple[ProductId, ...]

    @property
    def dropped(self) -> tuple[ProductId, ...]:
        return self.missing + self.unavailable

    @property
    def is_empty(self) -> bool:
        return not self.lines

    @property
    def snapshots(self) -> tuple[ProductSnapshot, ...]:
        return tuple(v.product for v in self.lines)


async def fetch_snapshots(
    product_ids: Sequence[ProductId],
    catalog: Catalog,
    *,
    concurrency: int = 10,
) -> list[ProductSnapshot | None]:
    """Fresh catalog reads in parallel, results in input order."""

    def fetch(pid: ProductId) -> LazyCoroResult[ProductSnapshot | None, CheckoutError]:
        return C.catching_async(
            lambda: catalog.get(pid),
            on_error=lambda e: CheckoutErrors.catalog_error(f"Catalog read failed for {pid}: {e}"),
        )

    match await C.traverse_par(list(product_ids), fetch, concurrency=concurrency):
        case Ok(snapshots):
            return snapshots
        case Error(e):
            raise e


async def validate_cart(
    lines: Sequence[CartLine],
    catalog: Catalog,
    *,
    buyer_id: BuyerId | None = None,
    concurrency: int = 10,
) -> ValidatedCart:
    snapshots = await fetch_snapshots([line.product_id for line in lines], catalog, concurrency=concurrency)

    kept: list[ValidatedLine] = []
    missing: list[ProductId] = []
    unavailable: list[ProductId] = []

    for line, snapshot in zip(lines, snapshots, strict=True):
        if snapshot is None:
            missing.append(line.product_id)
            logger.info("cart_item_dropped", product_id=line.product_id, reason="missing")
        elif not snapshot.purchasable_by(buyer_id):
            unavailable.append(line.product_id)
            logger.info(
                "cart_item_dropped",
                product_id=line.product_id,
                reason=snapshot.status.value,
            )
        else:
            kept.append(ValidatedLine(line, snapshot))

    return ValidatedCart(lines=tuple(kept), missing=tuple(missing), unavailable=tuple(unavailable))


__all__ = ("ValidatedCart", "fetch_snapshots", "validate_cart")
