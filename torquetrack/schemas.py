from __future__ import annotations

from datetime import date, datetime
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field

from torquetrack.models import (
    GoodsReceiptStatus,
    JobOrderStatus,
    OrderType,
    PaymentMethod,
    PaymentStatus,
    PurchaseOrderStatus,
    PurchaseRequisitionStatus,
    SalesOrderStatus,
    StockAdjustmentType,
)


class OrmModel(BaseModel):
    model_config = ConfigDict(from_attributes=True)


# Directory


class CustomerCreate(BaseModel):
    first_name: str
    last_name: str
    phone: str
    email: str | None = None
    address: str | None = None
    notes: str | None = None


class CustomerOut(OrmModel):
    id: str
    first_name: str
    last_name: str
    phone: str
    email: str | None
    address: str | None
    notes: str | None


class MotorcycleCreate(BaseModel):
    customer_id: str
    make: str
    model: str
    plate_number: str
    year: int | None = None
    color: str | None = None
    vin: str | None = None
    odometer: int = 0
    notes: str | None = None


class MotorcycleOut(OrmModel):
    id: str
    customer_id: str
    make: str
    model: str
    plate_number: str
    year: int | None
    color: str | None
    vin: str | None
    odometer: int
    notes: str | None


class MechanicCreate(BaseModel):
    name: str
    specializations: str | None = None
    is_active: bool = True


class MechanicOut(OrmModel):
    id: str
    name: str
    specializations: str | None
    is_active: bool


class SupplierCreate(BaseModel):
    name: str
    contact_person: str | None = None
    email: str | None = None
    phone: str | None = None
    address: str | None = None
    is_active: bool = True


class ActiveChange(BaseModel):
    is_active: bool


class SupplierOut(OrmModel):
    id: str
    name: str
    contact_person: str | None
    email: str | None
    phone: str | None
    address: str | None
    is_active: bool


class ShopServiceCreate(BaseModel):
    name: str
    default_labor_cost: Decimal
    category: str | None = None
    is_active: bool = True


class ShopServiceOut(OrmModel):
    id: str
    name: str
    category: str | None
    default_labor_cost: Decimal
    is_active: bool


# Inventory


class PartCreate(BaseModel):
    name: str
    price: Decimal
    cost: Decimal | None = None
    stock_quantity: int = 0
    min_stock_alert: int | None = None
    brand: str | None = None
    category: str | None = None
    sku: str | None = None
    supplier_name: str | None = None
    notes: str | None = None
    is_active: bool = True


class PartUpdate(BaseModel):
    name: str | None = None
    price: Decimal | None = None
    cost: Decimal | None = None
    min_stock_alert: int | None = None
    brand: str | None = None
    category: str | None = None
    sku: str | None = None
    supplier_name: str | None = None
    notes: str | None = None
    is_active: bool | None = None


class StockAdjustmentRequest(BaseModel):
    adjustment_type: StockAdjustmentType
    quantity: int
    reason: str


class PartOut(OrmModel):
    id: str
    name: str
    brand: str | None
    category: str | None
    sku: str | None
    price: Decimal
    cost: Decimal | None
    supplier_name: str | None
    stock_quantity: int
    min_stock_alert: int | None
    notes: str | None
    is_active: bool


# Requisitions


class RequisitionItemIn(BaseModel):
    description: str = ''
    quantity: int
    part_id: str | None = None
    estimated_price_per_unit: Decimal | None = None
    notes: str | None = None


class RequisitionCreate(BaseModel):
    items: list[RequisitionItemIn]
    department: str | None = None
    notes: str | None = None
    status: PurchaseRequisitionStatus = PurchaseRequisitionStatus.DRAFT


class RequisitionUpdate(BaseModel):
    items: list[RequisitionItemIn] | None = None
    department: str | None = None
    notes: str | None = None


class RequisitionStatusChange(BaseModel):
    status: PurchaseRequisitionStatus


class RequisitionItemOut(OrmModel):
    id: str
    part_id: str | None
    description: str
    quantity: int
    estimated_price_per_unit: Decimal | None
    notes: str | None


class RequisitionOut(OrmModel):
    id: str
    requested_by_user_id: str
    department: str | None
    status: PurchaseRequisitionStatus
    total_estimated_value: Decimal
    notes: str | None
    approved_by_user_id: str | None
    approved_date: datetime | None


class RequisitionDetailOut(BaseModel):
    requisition: RequisitionOut
    items: list[RequisitionItemOut]


# Purchase orders


class PurchaseOrderItemIn(BaseModel):
    quantity: int
    unit_price: Decimal
    description: str = ''
    part_id: str | None = None
    total_price: Decimal | None = None


class PurchaseOrderCreate(BaseModel):
    supplier_id: str
    items: list[PurchaseOrderItemIn]
    tax_amount: Decimal | None = None
    shipping_cost: Decimal | None = None
    status: PurchaseOrderStatus = PurchaseOrderStatus.DRAFT
    purchase_requisition_id: str | None = None
    order_date: date | None = None
    expected_delivery_date: date | None = None
    payment_terms: str | None = None
    shipping_address: str | None = None
    billing_address: str | None = None
    notes: str | None = None


class PurchaseOrderFromRequisition(BaseModel):
    requisition_id: str
    supplier_id: str
    tax_amount: Decimal | None = None
    shipping_cost: Decimal | None = None
    status: PurchaseOrderStatus = PurchaseOrderStatus.DRAFT
    expected_delivery_date: date | None = None
    notes: str | None = None


class PurchaseOrderUpdate(BaseModel):
    items: list[PurchaseOrderItemIn] | None = None
    # Omitted keeps the current tax; an explicit null switches back to the fallback rate.
    tax_amount: Decimal | None = None
    shipping_cost: Decimal | None = None
    status: PurchaseOrderStatus | None = None
    expected_delivery_date: date | None = None
    payment_terms: str | None = None
    notes: str | None = None


class PurchaseOrderItemOut(OrmModel):
    id: str
    part_id: str | None
    part_name: str | None
    description: str
    quantity: int
    unit_price: Decimal
    total_price: Decimal


class PurchaseOrderOut(OrmModel):
    id: str
    purchase_requisition_id: str | None
    supplier_id: str
    status: PurchaseOrderStatus
    order_date: date | None
    expected_delivery_date: date | None
    sub_total: Decimal
    tax_amount: Decimal
    shipping_cost: Decimal
    grand_total: Decimal
    payment_terms: str | None
    notes: str | None
    created_by_user_id: str


class PurchaseOrderDetailOut(BaseModel):
    purchase_order: PurchaseOrderOut
    items: list[PurchaseOrderItemOut]


# Goods receipts


class ReceiptItemIn(BaseModel):
    purchase_order_item_id: str
    quantity_received: int
    condition: str | None = 'Good'
    notes: str | None = None


class GoodsReceiptCreate(BaseModel):
    purchase_order_id: str
    items: list[ReceiptItemIn] | None = None
    status: GoodsReceiptStatus = GoodsReceiptStatus.PENDING
    received_date: date | None = None
    notes: str | None = None
    discrepancies: str | None = None


class GoodsReceiptUpdate(BaseModel):
    status: GoodsReceiptStatus | None = None
    items: list[ReceiptItemIn] | None = None
    received_date: date | None = None
    notes: str | None = None
    discrepancies: str | None = None


class GoodsReceiptItemOut(OrmModel):
    id: str
    purchase_order_item_id: str
    part_id: str | None
    part_name: str | None
    quantity_ordered: int
    quantity_received: int
    condition: str | None
    notes: str | None


class GoodsReceiptOut(OrmModel):
    id: str
    purchase_order_id: str
    supplier_id: str
    status: GoodsReceiptStatus
    received_date: date | None
    received_by_user_id: str
    notes: str | None
    discrepancies: str | None
    stock_credited_at: datetime | None


class GoodsReceiptDetailOut(BaseModel):
    goods_receipt: GoodsReceiptOut
    items: list[GoodsReceiptItemOut]


# Job and sales orders


class ServiceLineIn(BaseModel):
    service_id: str | None = None
    service_name: str | None = None
    labor_cost: Decimal | None = None
    assigned_mechanic_id: str | None = None
    notes: str | None = None


class PartLineIn(BaseModel):
    part_id: str
    quantity: int
    price_per_unit: Decimal | None = None
    total_price: Decimal | None = None


class JobOrderCreate(BaseModel):
    customer_id: str
    motorcycle_id: str | None = None
    services: list[ServiceLineIn] = Field(default_factory=list)
    parts: list[PartLineIn] = Field(default_factory=list)
    status: JobOrderStatus = JobOrderStatus.PENDING
    diagnostics: str | None = None
    estimated_completion_date: date | None = None
    discount_amount: Decimal | None = None
    tax_amount: Decimal | None = None
    payment_status: PaymentStatus = PaymentStatus.UNPAID
    initial_payment_method: PaymentMethod = PaymentMethod.CASH
    initial_payment_notes: str | None = None


class JobOrderUpdate(BaseModel):
    status: JobOrderStatus | None = None
    diagnostics: str | None = None
    estimated_completion_date: date | None = None
    actual_completion_date: date | None = None
    discount_amount: Decimal | None = None
    tax_amount: Decimal | None = None


class SalesOrderCreate(BaseModel):
    items: list[PartLineIn]
    customer_id: str | None = None
    status: SalesOrderStatus = SalesOrderStatus.COMPLETED
    discount_amount: Decimal | None = None
    tax_amount: Decimal | None = None
    payment_status: PaymentStatus = PaymentStatus.PAID
    initial_payment_method: PaymentMethod = PaymentMethod.CASH
    initial_payment_notes: str | None = None
    notes: str | None = None


class SalesOrderStatusChange(BaseModel):
    status: SalesOrderStatus


class ServiceLineOut(OrmModel):
    id: str
    service_id: str | None
    service_name: str
    labor_cost: Decimal
    assigned_mechanic_id: str | None
    notes: str | None


class PartLineOut(OrmModel):
    id: str
    part_id: str
    part_name: str
    quantity: int
    price_per_unit: Decimal
    total_price: Decimal


class PaymentOut(OrmModel):
    id: str
    order_id: str
    order_type: OrderType
    amount: Decimal
    payment_date: date
    method: PaymentMethod
    notes: str | None
    processed_by_user_id: str


class JobOrderOut(OrmModel):
    id: str
    customer_id: str
    customer_name: str
    motorcycle_id: str | None
    status: JobOrderStatus
    diagnostics: str | None
    estimated_completion_date: date | None
    actual_completion_date: date | None
    labor_total: Decimal
    parts_total: Decimal
    discount_amount: Decimal
    tax_amount: Decimal
    grand_total: Decimal
    amount_paid: Decimal
    payment_status: PaymentStatus


class SalesOrderOut(OrmModel):
    id: str
    customer_id: str | None
    customer_name: str
    status: SalesOrderStatus
    items_total: Decimal
    discount_amount: Decimal
    tax_amount: Decimal
    grand_total: Decimal
    amount_paid: Decimal
    payment_status: PaymentStatus
    notes: str | None


class JobOrderDetailOut(BaseModel):
    order: JobOrderOut
    services: list[ServiceLineOut]
    parts: list[PartLineOut]
    payment_history: list[PaymentOut]
    balance_due: Decimal


class SalesOrderDetailOut(BaseModel):
    order: SalesOrderOut
    items: list[PartLineOut]
    payment_history: list[PaymentOut]
    balance_due: Decimal


# Payments


class PaymentCreate(BaseModel):
    order_type: OrderType
    order_id: str
    amount: Decimal
    method: PaymentMethod
    payment_date: date | None = None
    notes: str | None = None
    payment_id: str | None = None


class ErrorOut(BaseModel):
    error: str
    detail: str
