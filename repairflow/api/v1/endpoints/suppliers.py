from fastapi import APIRouter, Depends, status, Query
from sqlalchemy.ext.asyncio import AsyncSession
from typing import List, Optional

from repairflow.core.database import get_db
from repairflow.models.user import User
from repairflow.modules.auth.dependencies import get_current_user, require_staff, require_admin
from repairflow.schemas.inventory import SupplierCreate, SupplierUpdate, SupplierResponse
from repairflow.services.inventory_service import inventory_service

router = APIRouter()


@router.get("", response_model=List[SupplierResponse])
async def list_suppliers(
    search: Optional[str] = Query(None, description="Search by name, contact, email or phone"),
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    return await inventory_service.list_suppliers(db, search)


@router.post("", response_model=SupplierResponse, status_code=status.HTTP_201_CREATED)
async def create_supplier(
    data: SupplierCreate,
    current_user: User = Depends(require_staff),
    db: AsyncSession = Depends(get_db)
):
    supplier = await inventory_service.create_supplier(db, data)
    await db.commit()
    return inventory_service.supplier_dict(supplier, 0)


@router.get("/{supplier_id}", response_model=SupplierResponse)
async def get_supplier(
    supplier_id: str,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
):
    supplier = await inventory_service.get_supplier(db, supplier_id)
    count = await inventory_service.count_supplier_parts(db, supplier.id)
    return inventory_service.supplier_dict(supplier, count)


@router.put("/{supplier_id}", response_model=SupplierResponse)
async def update_supplier(
    supplier_id: str,
    data: SupplierUpdate,
    current_user: User = Depends(require_staff),
    db: AsyncSession = Depends(get_db)
):
    supplier = await inventory_service.update_supplier(db, supplier_id, data)
    await db.commit()
    count = await inventory_service.count_supplier_parts(db, supplier.id)
    return inventory_service.supplier_dict(supplier, count)


@router.delete("/{supplier_id}")
async def delete_supplier(
    supplier_id: str,
    current_user: User = Depends(require_admin),
    db: AsyncSession = Depends(get_db)
):
    await inventory_service.delete_supplier(db, supplier_id)
    await db.commit()
    return {"success": True, "message": "Supplier deleted"}
