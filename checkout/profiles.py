"""
Buyer profiles — display name and saved shipping address.
"""

import asyncio
from typing import Protocol

from checkout.domain import Address, BuyerId, BuyerProfile


class ProfileStore(Protocol):
    async def get(self, buyer_id: BuyerId) -> BuyerProfile | None: ...

    async def save_address(self, buyer_id: BuyerId, address: Address) -> BuyerProfile: ...


class MemoryProfileStore:
    def __init__(self, profiles: list[BuyerProfile] | None = None) -> None:
        self._profiles: dict[BuyerId, BuyerProfile] = {p.buyer_id: p for p in profiles or []}
        self._lock = asyncio.Lock()

    async def get(self, buyer_id: BuyerId) -> BuyerProfile | None:
        async with self._lock:
            return self._profiles.get(buyer_id)

    async def save_address(self, buyer_id: BuyerId, address: Address) -> BuyerProfile:
        async with self._lock:
            current = self._profiles.get(buyer_id)
            # Unknown buyers get a profile named after their id
            name = current.display_name if current else buyer_id
            profile = BuyerProfile(buyer_id=buyer_id, display_name=name, address=address)
            self._profiles[buyer_id] = profile
            return profile


async def display_name(profiles: ProfileStore, buyer_id: BuyerId) -> str:
    profile = await profiles.get(buyer_id)
    return profile.display_name if profile else buyer_id


__all__ = ("ProfileStore", "MemoryProfileStore", "display_name")
