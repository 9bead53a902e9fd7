"""Appointment schemas - Pydantic models for admin appointment endpoints"""

from typing import Literal, Optional

from pydantic import BaseModel, Field

AppointmentStatus = Literal["pending", "confirmed", "completed", "cancelled"]


class AppointmentRow(BaseModel):
    id: str
    userId: Optional[str] = None
    serviceId: Optional[str] = None
    date: Optional[str] = None
    time: Optional[str] = None
    notes: Optional[str] = None
    status: str
    statusLabel: Optional[str] = None
    customerName: str = "Unknown"
    customerEmail: str = "N/A"
    customerPhone: str = ""
    serviceName: str = "Unknown Service"
    servicePrice: float = 0
    serviceDuration: int = 0
    hasFcmToken: bool = False
    queuePosition: Optional[int] = None


class AppointmentPage(BaseModel):
    items: list[AppointmentRow]
    page: int
    pageSize: int
    total: int
    totalPages: int


class StatusUpdate(BaseModel):
    status: AppointmentStatus


class NotificationDraft(BaseModel):
    appointmentId: str
    title: str
    body: str
    queuePosition: Optional[int] = None
    hasFcmToken: bool


class OverrideNotification(BaseModel):
    """Operator-edited notification; omitted fields fall back to the draft"""

    title: Optional[str] = Field(None, min_length=1, max_length=200)
    body: Optional[str] = Field(None, min_length=1, max_length=1000)


class DeliveryResponse(BaseModel):
    success: bool
    deliveryId: Optional[str] = None
    channel: Optional[str] = None
