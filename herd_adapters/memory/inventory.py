"""In-memory stock ledger for medications and vaccines."""

import asyncio

import structlog

logger = structlog.get_logger(__name__)


class InsufficientStockError(Exception):
    pass


class InMemoryInventory:
    """
    Tracks on-hand stock and outstanding reservations per item.

    Available quantity is stock minus reservations. Consuming draws down
    stock; reserving only holds it.
    """

    def __init__(self, stock: dict[str, float] | None = None) -> None:
        self.stock: dict[str, float] = dict(stock or {})
        self.reserved: dict[str, float] = {}
        self.logger = logger.bind(component="memory_inventory")

    def available(self, item_id: str) -> float:
        return self.stock.get(item_id, 0.0) - self.reserved.get(item_id, 0.0)

    async def check_availability(self, medication_id: str, quantity: float) -> bool:
        await asyncio.sleep(0)
        return self.available(medication_id) >= quantity

    async def reserve(self, medication_id: str, quantity: float) -> None:
        await asyncio.sleep(0)
        if self.available(medication_id) < quantity:
            raise InsufficientStockError(
                f"Cannot reserve {quantity:g} of {medication_id}; "
                f"{self.available(medication_id):g} available"
            )
        self.reserved[medication_id] = self.reserved.get(medication_id, 0.0) + quantity
        self.logger.info("stock_reserved", item_id=medication_id, quantity=quantity)

    async def release(self, medication_id: str, quantity: float) -> None:
        await asyncio.sleep(0)
        remaining = self.reserved.get(medication_id, 0.0) - quantity
        if remaining > 0:
            self.reserved[medication_id] = remaining
        else:
            self.reserved.pop(medication_id, None)
        self.logger.info("stock_released", item_id=medication_id, quantity=quantity)

    async def consume(self, vaccine_id: str, quantity: float) -> None:
        await asyncio.sleep(0)
        if self.stock.get(vaccine_id, 0.0) < quantity:
            raise InsufficientStockError(f"Not enough {vaccine_id} in stock to consume {quantity:g}")
        self.stock[vaccine_id] -= quantity
        self.logger.info("stock_consumed", item_id=vaccine_id, quantity=quantity)
