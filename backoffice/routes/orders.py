# backoffice/routes/orders.py
from typing import Optional
from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from backoffice.database import get_db
from backoffice.permissions import Capability
from backoffice.services import orders as order_service
from backoffice.services.pricing import RequestedItem
from backoffice.utils.tokenJWT import Caller, require
from backoffice.utils.audit import write_log
from backoffice.schemas.order import (
    OrderResponse, OrdersPage, OrderCreatePayload, OrderUpdatePayload,
)

router = APIRouter(prefix="/orders", tags=["Orders"])


def _client_ip(request: Request) -> Optional[str]:
    return request.client.host if request.client else None


# List orders with optional status filter and search by number or customer
@router.get("", response_model=OrdersPage)
def list_orders(
    status_filter: Optional[str] = Query(None, alias="status"),
    search: Optional[str] = Query(None),
    page: int = Query(1, ge=1),
    page_size: int = Query(20, ge=1, le=100),
    db: Session = Depends(get_db),
    caller: Caller = Depends(require(Capability.VIEW_ORDERS)),
):
    rows, total = order_service.list_orders(db, status=status_filter, search=search, page=page, page_size=page_size)
    return {"items": rows, "total": total, "page": page, "page_size": page_size}


# Get details of a specific order
@router.get("/{order_id}", response_model=OrderResponse)
def get_order_detail(
    order_id: int,
    db: Session = Depends(get_db),
    caller: Caller = Depends(require(Capability.VIEW_ORDERS)),
):
    return order_service.get_order(db, order_id)


# Create a priced order from catalog SKUs
@router.post("", response_model=OrderResponse, status_code=status.HTTP_201_CREATED)
def create_order(
    payload: OrderCreatePayload,
    request: Request,
    db: Session = Depends(get_db),
    caller: Caller = Depends(require(Capability.CREATE_ORDERS)),
):
    customer = order_service.CustomerInfo(**payload.customer.model_dump())
    items = [RequestedItem(product_id=it.product_id, quantity=it.quantity) for it in payload.items]
    order = order_service.create_order(
        db,
        customer,
        items,
        actor=caller.id,
        payment_method=payload.payment_method,
        amount_paid=payload.amount_paid,
        notes=payload.notes,
        status=payload.status,
    )
    write_log(db, actor=caller.id, action="ORDER_CREATE", resource="orders", status="SUCCESS",
        ip=_client_ip(request), meta={"order_id": order.id, "order_number": order.order_number})
    return order_service.get_order(db, order.id)


# Record payment, status change or notes
@router.put("/{order_id}", response_model=OrderResponse)
def update_order(
    order_id: int,
    payload: OrderUpdatePayload,
    request: Request,
    db: Session = Depends(get_db),
    caller: Caller = Depends(require(Capability.CREATE_ORDERS)),
):
    order = order_service.update_order_payment(
        db, order_id, actor=caller.id,
        amount_paid=payload.amount_paid, status=payload.status, notes=payload.notes,
    )
    write_log(db, actor=caller.id, action="ORDER_UPDATE", resource="orders", status="SUCCESS",
        ip=_client_ip(request),
        meta={"order_id": order.id, "status": order.status, "payment_status": order.payment_status})
    return order_service.get_order(db, order.id)


# Issue the invoice and complete the order
@router.post("/{order_id}/invoice", response_model=OrderResponse)
def issue_invoice(
    order_id: int,
    request: Request,
    db: Session = Depends(get_db),
    caller: Caller = Depends(require(Capability.CREATE_ORDERS)),
):
    order = order_service.issue_invoice(db, order_id, actor=caller.id)
    write_log(db, actor=caller.id, action="INVOICE_ISSUE", resource="orders", status="SUCCESS",
        ip=_client_ip(request), meta={"order_id": order.id, "invoice_number": order.invoice_number})
    return order_service.get_order(db, order.id)
