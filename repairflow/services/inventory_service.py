"""
Inventory Service - parts, stock movements, suppliers and adjustments

Every quantity change on a part goes through this service so the
transaction ledger always explains the current stock level.
"""

from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func, or_, delete
from typing import Optional, List
from datetime import datetime

from repairflow.core.exceptions import (
    ConflictError,
    InsufficientStockError,
    PartNotFoundError,
    ResourceInUseError,
    ResourceNotFoundError,
)
from repairflow.core.logging_config import logger
from repairflow.models.finance import JournalEntry, JournalEntryType
from repairflow.models.inventory import (
    InventoryAdjustment,
    InventoryTransaction,
    InventoryTransactionType,
    Part,
    Supplier,
)
from repairflow.models.notification import NotificationType
from repairflow.models.returns import Return, ReturnItem
from repairflow.models.ticket import TicketPart
from repairflow.schemas.inventory import (
    InventoryAdjustmentCreate,
    PartCreate,
    PartUpdate,
    SupplierCreate,
    SupplierUpdate,
)
from repairflow.services import settings_service
from repairflow.services.notification_service import notification_service
from repairflow.utils.dates import DateRange
from repairflow.utils.numbering import SKU_MAX_ATTEMPTS, generate_sku


class InventoryService:
    """Parts, suppliers and stock movements"""

    # ==================== PARTS ====================

    async def get_part(self, db: AsyncSession, part_id: str) -> Part:
        result = await db.execute(select(Part).where(Part.id == part_id))
        part = result.scalar_one_or_none()
        if not part:
            raise PartNotFoundError(part_id)
        return part

    def list_parts_query(self, search: Optional[str] = None, low_stock: bool = False):
        query = select(Part)
        if search:
            term = f"%{search.strip()}%"
            query = query.where(or_(
                Part.name.ilike(term),
                Part.sku.ilike(term),
                Part.description.ilike(term),
            ))
        if low_stock:
            query = query.where(Part.quantity <= Part.reorder_level)
        return query.order_by(Part.name)

    async def _sku_taken(self, db: AsyncSession, sku: str, exclude_id: Optional[str] = None) -> bool:
        query = select(Part.id).where(Part.sku == sku)
        if exclude_id:
            query = query.where(Part.id != exclude_id)
        return (await db.execute(query)).first() is not None

    async def generate_unique_sku(self, db: AsyncSession, name: str) -> str:
        for _ in range(SKU_MAX_ATTEMPTS):
            sku = generate_sku(name)
            if not await self._sku_taken(db, sku):
                return sku
        raise ConflictError(
            f"Could not generate a unique SKU after {SKU_MAX_ATTEMPTS} attempts", code="SKU_GENERATION_FAILED"
        )

    async def _check_supplier(self, db: AsyncSession, supplier_id: Optional[str]) -> Optional[Supplier]:
        if not supplier_id:
            return None
        supplier = await db.get(Supplier, supplier_id)
        if not supplier:
            raise ResourceNotFoundError("Supplier", supplier_id)
        return supplier

    def record_transaction(
        self,
        db: AsyncSession,
        part: Part,
        transaction_type: InventoryTransactionType,
        quantity: int,
        reason: str,
        ticket_id: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> InventoryTransaction:
        transaction = InventoryTransaction(
            part_id=part.id,
            type=transaction_type,
            quantity=abs(quantity),
            reason=reason,
            ticket_id=ticket_id,
            user_id=user_id,
        )
        db.add(transaction)
        return transaction

    async def create_part(self, db: AsyncSession, data: PartCreate, user_id: Optional[str] = None) -> Part:
        supplier = await self._check_supplier(db, data.supplier_id)

        if data.sku:
            sku = data.sku.strip().upper()
            if await self._sku_taken(db, sku):
                raise ConflictError(f"SKU '{sku}' already exists", code="SKU_EXISTS")
        else:
            sku = await self.generate_unique_sku(db, data.name)

        part = Part(
            name=data.name,
            sku=sku,
            description=data.description,
            quantity=data.quantity,
            reorder_level=data.reorder_level,
            unit_price=data.unit_price,
            supplier=data.supplier or (supplier.name if supplier else None),
            supplier_id=data.supplier_id,
        )
        db.add(part)
        await db.flush()

        if data.quantity > 0:
            self.record_transaction(
                db, part, InventoryTransactionType.IN, data.quantity, "Initial stock", user_id=user_id
            )
            await db.flush()

        logger.log_business_event("part", "created", part.id, sku=sku)
        return part

    async def update_part(
        self, db: AsyncSession, part_id: str, data: PartUpdate, user_id: Optional[str] = None
    ) -> Part:
        part = await self.get_part(db, part_id)
        updates = data.model_dump(exclude_unset=True)

        if "sku" in updates and updates["sku"]:
            sku = updates["sku"].strip().upper()
            if await self._sku_taken(db, sku, exclude_id=part.id):
                raise ConflictError(f"SKU '{sku}' already exists", code="SKU_EXISTS")
            updates["sku"] = sku
        if "supplier_id" in updates:
            await self._check_supplier(db, updates["supplier_id"])

        new_quantity = updates.pop("quantity", None)
        for field, value in updates.items():
            setattr(part, field, value)

        if new_quantity is not None and new_quantity != part.quantity:
            delta = new_quantity - part.quantity
            self.record_transaction(
                db, part,
                InventoryTransactionType.IN if delta > 0 else InventoryTransactionType.OUT,
                delta, "Manual stock update", user_id=user_id,
            )
            part.quantity = new_quantity

        await db.flush()
        return part

    async def delete_part(self, db: AsyncSession, part_id: str) -> None:
        part = await self.get_part(db, part_id)

        on_tickets = await db.scalar(select(func.count(TicketPart.id)).where(TicketPart.part_id == part.id))
        if on_tickets:
            raise ResourceInUseError("Part", f"it is used on {on_tickets} ticket(s)")
        on_returns = await db.scalar(select(func.count(ReturnItem.id)).where(ReturnItem.part_id == part.id))
        if on_returns:
            raise ResourceInUseError("Part", f"it is referenced by {on_returns} return item(s)")
        adjusted = await db.scalar(
            select(func.count(InventoryAdjustment.id)).where(InventoryAdjustment.part_id == part.id)
        )
        if adjusted:
            raise ResourceInUseError("Part", f"it has {adjusted} inventory adjustment(s)")

        await db.execute(delete(InventoryTransaction).where(InventoryTransaction.part_id == part.id))
        await db.delete(part)
        await db.flush()
        logger.log_business_event("part", "deleted", part_id)

    def transactions_query(self, part_id: str):
        return (
            select(InventoryTransaction)
            .where(InventoryTransaction.part_id == part_id)
            .order_by(InventoryTransaction.created_at.desc())
        )

    # ==================== STOCK MOVEMENTS ====================

    async def deduct_stock(
        self,
        db: AsyncSession,
        part: Part,
        quantity: int,
        reason: str,
        ticket_id: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> Part:
        """Take units out of stock; refuses to go negative unless allow_negative_stock is on"""
        if part.quantity < quantity:
            allow_negative = await settings_service.get_boolean_setting(db, "allow_negative_stock")
            if not allow_negative:
                raise InsufficientStockError(part.name, quantity, part.quantity)

        part.quantity -= quantity
        self.record_transaction(
            db, part, InventoryTransactionType.OUT, quantity, reason, ticket_id=ticket_id, user_id=user_id
        )
        await db.flush()

        if part.is_low_stock and await settings_service.get_boolean_setting(db, "enable_low_stock_alerts", True):
            await notification_service.create_notification(
                db,
                NotificationType.LOW_STOCK,
                title="Low stock",
                message=f"{part.name} ({part.sku}) is down to {part.quantity} (reorder level {part.reorder_level})",
                actor_id=user_id,
            )
        return part

    async def restock(
        self,
        db: AsyncSession,
        part: Part,
        quantity: int,
        reason: str,
        ticket_id: Optional[str] = None,
        user_id: Optional[str] = None,
    ) -> Part:
        part.quantity += quantity
        self.record_transaction(
            db, part, InventoryTransactionType.IN, quantity, reason, ticket_id=ticket_id, user_id=user_id
        )
        await db.flush()
        return part

    # ==================== ADJUSTMENTS ====================

    async def create_adjustment(
        self,
        db: AsyncSession,
        data: InventoryAdjustmentCreate,
        user_id: Optional[str] = None,
    ) -> InventoryAdjustment:
        """Adjustment row, part quantity and journal entry, flushed together"""
        part = await self.get_part(db, data.part_id)
        if data.related_return_id and not await db.get(Return, data.related_return_id):
            raise ResourceNotFoundError("Return", data.related_return_id)
        if part.quantity + data.qty_change < 0:
            allow_negative = await settings_service.get_boolean_setting(db, "allow_negative_stock")
            if not allow_negative:
                raise InsufficientStockError(part.name, abs(data.qty_change), part.quantity)

        adjustment = InventoryAdjustment(
            part_id=part.id,
            qty_change=data.qty_change,
            cost=data.cost,
            cost_per_unit=data.cost_per_unit,
            reason=data.reason,
            related_return_id=data.related_return_id,
            created_by_id=user_id,
        )
        db.add(adjustment)
        part.quantity += data.qty_change
        await db.flush()

        db.add(JournalEntry(
            type=JournalEntryType.INVENTORY_ADJUSTMENT,
            amount=-abs(data.cost) if data.qty_change < 0 else abs(data.cost),
            description=f"Inventory adjustment: {part.name} ({data.qty_change:+d}) - {data.reason}",
            reference_type="inventory_adjustment",
            reference_id=adjustment.id,
            user_id=user_id,
        ))
        await db.flush()

        logger.log_business_event(
            "inventory_adjustment", "created", adjustment.id, part_id=part.id, qty_change=data.qty_change
        )
        return adjustment

    def adjustments_query(
        self,
        part_id: Optional[str] = None,
        has_related_return: Optional[bool] = None,
        date_range: Optional[DateRange] = None,
    ):
        query = select(InventoryAdjustment)
        if part_id:
            query = query.where(InventoryAdjustment.part_id == part_id)
        if has_related_return is True:
            query = query.where(InventoryAdjustment.related_return_id.is_not(None))
        elif has_related_return is False:
            query = query.where(InventoryAdjustment.related_return_id.is_(None))
        if date_range:
            query = query.where(InventoryAdjustment.created_at.between(date_range.start, date_range.end))
        return query.order_by(InventoryAdjustment.created_at.desc())

    # ==================== SUPPLIERS ====================

    async def get_supplier(self, db: AsyncSession, supplier_id: str) -> Supplier:
        supplier = await db.get(Supplier, supplier_id)
        if not supplier:
            raise ResourceNotFoundError("Supplier", supplier_id)
        return supplier

    async def list_suppliers(self, db: AsyncSession, search: Optional[str] = None) -> List[dict]:
        """Suppliers with the number of parts that reference each one"""
        parts_count = (
            select(Part.supplier_id, func.count(Part.id).label("parts_count"))
            .group_by(Part.supplier_id)
            .subquery()
        )
        query = select(Supplier, func.coalesce(parts_count.c.parts_count, 0)).outerjoin(
            parts_count, parts_count.c.supplier_id == Supplier.id
        )
        if search:
            term = f"%{search.strip()}%"
            query = query.where(or_(
                Supplier.name.ilike(term),
                Supplier.contact_person.ilike(term),
                Supplier.email.ilike(term),
                Supplier.phone.ilike(term),
            ))
        result = await db.execute(query.order_by(Supplier.name))
        return [self.supplier_dict(supplier, count) for supplier, count in result.all()]

    async def count_supplier_parts(self, db: AsyncSession, supplier_id: str) -> int:
        return await db.scalar(select(func.count(Part.id)).where(Part.supplier_id == supplier_id)) or 0

    @staticmethod
    def supplier_dict(supplier: Supplier, parts_count: int) -> dict:
        return {
            "id": supplier.id,
            "name": supplier.name,
            "contact_person": supplier.contact_person,
            "email": supplier.email,
            "phone": supplier.phone,
            "address": supplier.address,
            "notes": supplier.notes,
            "parts_count": parts_count,
            "created_at": supplier.created_at,
        }

    async def create_supplier(self, db: AsyncSession, data: SupplierCreate) -> Supplier:
        supplier = Supplier(**data.model_dump())
        db.add(supplier)
        await db.flush()
        return supplier

    async def update_supplier(self, db: AsyncSession, supplier_id: str, data: SupplierUpdate) -> Supplier:
        supplier = await self.get_supplier(db, supplier_id)
        for field, value in data.model_dump(exclude_unset=True).items():
            setattr(supplier, field, value)
        supplier.updated_at = datetime.utcnow()
        await db.flush()
        return supplier

    async def delete_supplier(self, db: AsyncSession, supplier_id: str) -> None:
        supplier = await self.get_supplier(db, supplier_id)
        count = await self.count_supplier_parts(db, supplier.id)
        if count:
            raise ResourceInUseError("Supplier", f"{count} part(s) still reference it")
        await db.delete(supplier)
        await db.flush()


inventory_service = InventoryService()
