# backoffice/routes/stock.py
from datetime import datetime
from typing import Optional
from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from backoffice.database import get_db
from backoffice.models.stock import StockMovement, MovementKind, ReferenceType
from backoffice.permissions import Capability
from backoffice.services import ledger
from backoffice.utils.tokenJWT import Caller, require
from backoffice.utils.audit import write_log
import backoffice.schemas.stock as stock_schemas

router = APIRouter(prefix="/stock", tags=["Stock"])


def _movement_to_out(m: StockMovement) -> dict:
    return {
        "id": m.id,
        "product_id": m.product.sku if m.product else "-",
        "product_name": m.product.name if m.product else "Unknown",
        "sequence": m.sequence,
        "kind": m.kind,
        "quantity": m.quantity,
        "previous_stock": m.previous_stock,
        "new_stock": m.new_stock,
        "clamped": m.clamped,
        "unit_price": m.unit_price,
        "total_value": m.total_value,
        "supplier_name": m.supplier_name,
        "supplier_invoice_no": m.supplier_invoice_no,
        "reference_type": m.reference_type,
        "reference_id": m.reference_id,
        "notes": m.notes,
        "created_by": m.created_by,
        "created_at": m.created_at,
    }


def _record(db: Session, request: Request, caller: Caller, action: str, product_id: str, kind, quantity: int,
            metadata: ledger.MovementMetadata) -> dict:
    movement = ledger.apply_movement(db, product_id, kind, quantity, caller.id, metadata)
    write_log(db, actor=caller.id, action=action, resource="stock", status="SUCCESS",
        ip=request.client.host if request.client else None,
        meta={"movement_id": movement.id, "product_id": product_id, "new_stock": movement.new_stock})
    return _movement_to_out(movement)


@router.get("/movements", response_model=stock_schemas.StockMovementPage)
def list_movements(
    kind: Optional[str] = Query(None, alias="type"),
    product: Optional[str] = Query(None),
    start_date: Optional[datetime] = Query(None, alias="startDate"),
    end_date: Optional[datetime] = Query(None, alias="endDate"),
    reference_type: Optional[str] = Query(None, alias="referenceType"),
    reference_id: Optional[int] = Query(None, alias="referenceId"),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    caller: Caller = Depends(require(Capability.VIEW_STOCK)),
):
    filters = ledger.MovementFilter(
        kind=kind, product_id=product, start_date=start_date, end_date=end_date,
        reference_type=reference_type, reference_id=reference_id,
    )
    rows, total = ledger.list_movements(db, filters, page=page, page_size=page_size)
    return {"items": [_movement_to_out(m) for m in rows], "total": total, "page": page, "page_size": page_size}


@router.get("/summary", response_model=stock_schemas.StockSummaryResponse)
def stock_summary(
    db: Session = Depends(get_db),
    caller: Caller = Depends(require(Capability.VIEW_STOCK)),
):
    summary = ledger.stock_summary(db)
    return {
        "total_products": summary.total_products,
        "in_stock": summary.in_stock,
        "out_of_stock": summary.out_of_stock,
        "low_stock": summary.low_stock,
        "movements": summary.movements,
    }


@router.post("/in", response_model=stock_schemas.StockMovementResponse, status_code=status.HTTP_201_CREATED)
def stock_in(
    payload: stock_schemas.StockInCreate,
    request: Request,
    db: Session = Depends(get_db),
    caller: Caller = Depends(require(Capability.MANAGE_STOCK)),
):
    metadata = ledger.MovementMetadata(
        unit_price=payload.unit_price,
        supplier_name=payload.supplier_name,
        supplier_invoice_no=payload.invoice_no,
        reference_type=ReferenceType.PURCHASE.value,
        notes=payload.notes,
    )
    return _record(db, request, caller, "STOCK_IN", payload.product_id, MovementKind.STOCK_IN, payload.quantity, metadata)


@router.post("/out", response_model=stock_schemas.StockMovementResponse, status_code=status.HTTP_201_CREATED)
def stock_out(
    payload: stock_schemas.StockOutCreate,
    request: Request,
    db: Session = Depends(get_db),
    caller: Caller = Depends(require(Capability.MANAGE_STOCK)),
):
    metadata = ledger.MovementMetadata(
        reference_type=ReferenceType.MANUAL.value,
        notes=payload.notes or payload.reason,
    )
    return _record(db, request, caller, "STOCK_OUT", payload.product_id, MovementKind.STOCK_OUT, payload.quantity, metadata)


@router.post("/adjustment", response_model=stock_schemas.StockMovementResponse, status_code=status.HTTP_201_CREATED)
def stock_adjustment(
    payload: stock_schemas.StockAdjustmentCreate,
    request: Request,
    db: Session = Depends(get_db),
    caller: Caller = Depends(require(Capability.MANAGE_STOCK)),
):
    metadata = ledger.MovementMetadata(reference_type=ReferenceType.MANUAL.value, notes=payload.notes)
    return _record(db, request, caller, "STOCK_ADJUSTMENT", payload.product_id, payload.type, payload.quantity, metadata)


@router.post("/movements", response_model=stock_schemas.StockMovementResponse, status_code=status.HTTP_201_CREATED)
def record_movement(
    payload: stock_schemas.StockMovementCreate,
    request: Request,
    db: Session = Depends(get_db),
    caller: Caller = Depends(require(Capability.MANAGE_STOCK)),
):
    metadata = ledger.MovementMetadata(
        unit_price=payload.unit_price,
        supplier_name=payload.supplier_name,
        supplier_invoice_no=payload.supplier_invoice_no,
        reference_type=ReferenceType.MANUAL.value,
        notes=payload.notes,
    )
    return _record(db, request, caller, "STOCK_MOVEMENT", payload.product_id, payload.kind, payload.quantity, metadata)
