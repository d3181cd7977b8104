"""
Database Seed Data Module

Sample suppliers, parts and customers for a fresh shop. Loading is
idempotent: rows that already exist (by supplier name, part SKU or customer
phone) are skipped.

Run with: python -m repairflow.db.seed_data
"""
import asyncio
from typing import Dict, List

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from repairflow.core.database import AsyncSessionLocal, init_db
from repairflow.core.logging_config import logger
from repairflow.models.customer import Customer
from repairflow.models.inventory import InventoryTransactionType, Part, Supplier
from repairflow.services.inventory_service import inventory_service


# ==================== Sample Data Constants ====================

SAMPLE_SUPPLIERS = [
    {"name": "TechParts Inc.", "phone": "+1 (555) 100-0001", "email": "sales@techparts.example",
     "notes": "Primary screen supplier."},
    {"name": "MobileSource", "phone": "+1 (555) 100-0002", "email": "orders@mobilesource.example"},
    {"name": "UnifiedParts", "phone": "+1 (555) 100-0003"},
]

SAMPLE_PARTS = [
    {"name": "iPhone 14 Screen Replacement", "sku": "IPH14-SCR-001", "quantity": 15, "reorder_level": 5,
     "unit_price": 89.99, "supplier": "TechParts Inc.",
     "description": "Original quality screen replacement for iPhone 14"},
    {"name": "Samsung A52 Screen", "sku": "SMG-SCR-A52", "quantity": 8, "reorder_level": 5,
     "unit_price": 49.50, "supplier": "MobileSource"},
    {"name": "Generic Battery 18650", "sku": "GEN-BAT-18650", "quantity": 40, "reorder_level": 10,
     "unit_price": 7.20, "supplier": "UnifiedParts"},
    {"name": "iPhone 13 Back Glass", "sku": "IPH13-BGL-001", "quantity": 20, "reorder_level": 5,
     "unit_price": 35.00, "supplier": "TechParts Inc.",
     "description": "Replacement back glass for iPhone 13"},
    {"name": "Camera Module iPhone 12", "sku": "IPH12-CAM-001", "quantity": 12, "reorder_level": 5,
     "unit_price": 75.00, "supplier": "TechParts Inc.",
     "description": "Rear camera module for iPhone 12"},
]

SAMPLE_CUSTOMERS = [
    {"name": "John Smith", "phone": "+1 (555) 123-4567", "email": "john.smith@example.com",
     "address": "123 Oak Street, City, State 12345", "notes": "Regular customer, prefers phone contact"},
    {"name": "Sarah Johnson", "phone": "+1 (555) 234-5678", "email": "sarah.j@example.com",
     "address": "456 Pine Avenue, City, State 12345"},
    {"name": "Mike Davis", "phone": "+1 (555) 345-6789", "email": "mike.davis@example.com",
     "address": "789 Elm Road, City, State 12345", "notes": "Bulk repairs, corporate account"},
]


async def seed_suppliers(db: AsyncSession) -> Dict[str, Supplier]:
    """Create sample suppliers; returns every sample supplier by name"""
    result = await db.execute(select(Supplier).where(Supplier.name.in_([s["name"] for s in SAMPLE_SUPPLIERS])))
    suppliers = {s.name: s for s in result.scalars().all()}

    for supplier_data in SAMPLE_SUPPLIERS:
        if supplier_data["name"] in suppliers:
            continue
        supplier = Supplier(**supplier_data)
        db.add(supplier)
        suppliers[supplier.name] = supplier

    await db.flush()
    return suppliers


async def seed_parts(db: AsyncSession, suppliers: Dict[str, Supplier]) -> List[Part]:
    """Create sample parts with their opening stock transaction"""
    result = await db.execute(select(Part.sku).where(Part.sku.in_([p["sku"] for p in SAMPLE_PARTS])))
    existing = set(result.scalars().all())

    parts = []
    for part_data in SAMPLE_PARTS:
        if part_data["sku"] in existing:
            continue
        supplier = suppliers.get(part_data["supplier"])
        part = Part(
            name=part_data["name"],
            sku=part_data["sku"],
            description=part_data.get("description"),
            quantity=part_data["quantity"],
            reorder_level=part_data["reorder_level"],
            unit_price=part_data["unit_price"],
            supplier=part_data["supplier"],
            supplier_id=supplier.id if supplier else None,
        )
        db.add(part)
        await db.flush()
        inventory_service.record_transaction(
            db, part, InventoryTransactionType.IN, part.quantity, "Initial stock (sample data)"
        )
        parts.append(part)

    await db.flush()
    return parts


async def seed_customers(db: AsyncSession) -> List[Customer]:
    result = await db.execute(select(Customer.phone).where(Customer.phone.in_([c["phone"] for c in SAMPLE_CUSTOMERS])))
    existing = set(result.scalars().all())

    customers = []
    for customer_data in SAMPLE_CUSTOMERS:
        if customer_data["phone"] in existing:
            continue
        customer = Customer(**customer_data)
        db.add(customer)
        customers.append(customer)

    await db.flush()
    return customers


async def load_sample_data(db: AsyncSession) -> Dict[str, int]:
    """Seed everything in dependency order; the caller commits"""
    before = await db.execute(select(Supplier.name))
    known = set(before.scalars().all())

    suppliers = await seed_suppliers(db)
    parts = await seed_parts(db, suppliers)
    customers = await seed_customers(db)

    counts = {
        "suppliers_created": len([name for name in suppliers if name not in known]),
        "parts_created": len(parts),
        "customers_created": len(customers),
    }
    logger.info(f"Sample data loaded: {counts}")
    return counts


async def seed_all():
    """Seed all sample data"""
    print("=" * 50)
    print("Starting database seeding...")
    print("=" * 50)

    await init_db()

    async with AsyncSessionLocal() as db:
        try:
            counts = await load_sample_data(db)
            await db.commit()
            print(f"Database seeding completed: {counts}")
        except Exception as e:
            await db.rollback()
            print(f"Error seeding database: {e}")
            raise


if __name__ == "__main__":
    asyncio.run(seed_all())
