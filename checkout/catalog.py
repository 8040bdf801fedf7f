"""
Catalog — read contract and status compare-and-set.

The catalog is owned by another service; checkout only needs:

    get(product_id)                         → ProductSnapshot | None
    compare_and_set_status(id, expected, new) → bool

The status flip available → sold is the one shared mutable resource of
checkout. compare_and_set_status is single-writer-wins: the first writer
flips the status, everybody else gets False.
"""

import asyncio
from dataclasses import dataclass, replace
from datetime import datetime
from typing import Protocol

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from checkout.db import ProductTable
from checkout.domain import (
    BuyerId,
    Category,
    Condition,
    ProductId,
    ProductSnapshot,
    ProductStatus,
    ShippingPayer,
)


@dataclass(frozen=True, slots=True)
class StatusChange:
    """What a successful compare-and-set did, enough to undo it."""

    product_id: ProductId
    previous: ProductStatus
    current: ProductStatus
    previous_reserved_for: BuyerId | None = None


class Catalog(Protocol):
    async def get(self, product_id: ProductId) -> ProductSnapshot | None: ...

    async def compare_and_set_status(
        self,
        product_id: ProductId,
        expected: ProductStatus,
        new: ProductStatus,
        *,
        expected_reserved_for: BuyerId | None = None,
        reserved_for: BuyerId | None = None,
    ) -> bool: ...


async def transition(
    catalog: Catalog,
    product: ProductSnapshot,
    new: ProductStatus,
    *,
    reserved_for: BuyerId | None = None,
) -> StatusChange | None:
    """Flip a product from the status it had in the snapshot. None if somebody got there first."""
    changed = await catalog.compare_and_set_status(
        product.id,
        product.status,
        new,
        expected_reserved_for=product.reserved_for,
        reserved_for=reserved_for,
    )
    if not changed:
        return None
    return StatusChange(product.id, product.status, new, product.reserved_for)


async def revert(catalog: Catalog, change: StatusChange) -> None:
    """Undo a StatusChange; raises if the product moved on in the meantime."""
    restored = await catalog.compare_and_set_status(
        change.product_id,
        change.current,
        change.previous,
        reserved_for=change.previous_reserved_for,
    )
    if not restored:
        raise RuntimeError(f"Could not restore {change.product_id} to {change.previous.value}")


# ═══════════════════════════════════════════════════════════════════════════════
# Memory Catalog
# ═══════════════════════════════════════════════════════════════════════════════


class MemoryCatalog:
    """In-process catalog for tests and local runs."""

    def __init__(self, products: list[ProductSnapshot] | None = None) -> None:
        self._products: dict[ProductId, ProductSnapshot] = {p.id: p for p in products or []}
        self._lock = asyncio.Lock()

    def put(self, product: ProductSnapshot) -> None:
        self._products[product.id] = product

    def delete(self, product_id: ProductId) -> None:
        self._products.pop(product_id, None)

    async def get(self, product_id: ProductId) -> ProductSnapshot | None:
        async with self._lock:
            return self._products.get(product_id)

    async def compare_and_set_status(
        self,
        product_id: ProductId,
        expected: ProductStatus,
        new: ProductStatus,
        *,
        expected_reserved_for: BuyerId | None = None,
        reserved_for: BuyerId | None = None,
    ) -> bool:
        async with self._lock:
            product = self._products.get(product_id)
            if product is None or product.status is not expected:
                return False
            if expected is ProductStatus.RESERVED and product.reserved_for != expected_reserved_for:
                return False

            self._products[product_id] = replace(
                product,
                status=new,
                reserved_for=reserved_for if new is ProductStatus.RESERVED else None,
            )
            return True


# ═══════════════════════════════════════════════════════════════════════════════
# SQLAlchemy Catalog
# ═══════════════════════════════════════════════════════════════════════════════


class SQLAlchemyCatalog:
    """
    Catalog over the products table.

    Note: CAS is a single UPDATE ... WHERE status = :expected, rowcount
    decides the winner.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]) -> None:
        self._session = session_factory

    async def add(self, product: ProductSnapshot) -> None:
        async with self._session() as session:
            session.add(
                ProductTable(
                    id=product.id,
                    title=product.title,
                    price=product.price,
                    status=product.status.value,
                    shipping_payer=product.shipping_payer.value,
                    seller_id=product.seller_id,
                    seller_name=product.seller_name,
                    image=product.image,
                    category=product.category.value,
                    condition=product.condition.value,
                    reserved_for=product.reserved_for,
                    updated_at=datetime.now(),
                )
            )
            await session.commit()

    async def get(self, product_id: ProductId) -> ProductSnapshot | None:
        async with self._session() as session:
            row = (
                await session.execute(select(ProductTable).where(ProductTable.id == product_id))
            ).scalar_one_or_none()
            if row is None:
                return None
            return ProductSnapshot(
                id=row.id,
                title=row.title,
                price=row.price,
                status=ProductStatus(row.status),
                shipping_payer=ShippingPayer(row.shipping_payer),
                seller_id=row.seller_id,
                seller_name=row.seller_name,
                image=row.image,
                category=Category(row.category),
                condition=Condition(row.condition),
                reserved_for=row.reserved_for,
            )

    async def compare_and_set_status(
        self,
        product_id: ProductId,
        expected: ProductStatus,
        new: ProductStatus,
        *,
        expected_reserved_for: BuyerId | None = None,
        reserved_for: BuyerId | None = None,
    ) -> bool:
        stmt = update(ProductTable).where(
            ProductTable.id == product_id,
            ProductTable.status == expected.value,
        )
        if expected is ProductStatus.RESERVED:
            stmt = stmt.where(ProductTable.reserved_for == expected_reserved_for)

        stmt = stmt.values(
            status=new.value,
            reserved_for=reserved_for if new is ProductStatus.RESERVED else None,
            updated_at=datetime.now(),
        )

        async with self._session() as session:
            result = await session.execute(stmt)
            await session.commit()
            return result.rowcount > 0


__all__ = (
    "StatusChange",
    "Catalog",
    "transition",
    "revert",
    "MemoryCatalog",
    "SQLAlchemyCatalog",
)
