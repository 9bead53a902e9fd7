"""Recipient schemas - device token registration"""

from pydantic import BaseModel, Field


class DeviceTokenRegister(BaseModel):
    token: str = Field(..., min_length=1, max_length=4096)


class DeviceTokenStatus(BaseModel):
    success: bool
    hasFcmToken: bool
