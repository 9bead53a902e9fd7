"""Recipient router - customers opting in and out of push notifications"""

import asyncio
import logging

from fastapi import APIRouter, Depends

from ...auth import CurrentUser, get_current_user
from ...firebase import get_db
from .repository import RecipientRepository
from .schemas import DeviceTokenRegister, DeviceTokenStatus

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/notifications/token", tags=["Notifications"])


@router.get("", response_model=DeviceTokenStatus)
async def get_device_token_status(
    current_user: CurrentUser = Depends(get_current_user),
    db=Depends(get_db),
):
    has_token = await asyncio.to_thread(RecipientRepository.has_device_token, db, current_user.uid)
    return DeviceTokenStatus(success=True, hasFcmToken=has_token)


@router.post("", response_model=DeviceTokenStatus)
async def register_device_token(
    data: DeviceTokenRegister,
    current_user: CurrentUser = Depends(get_current_user),
    db=Depends(get_db),
):
    """Store the browser's push token; replaces any previous one"""
    await asyncio.to_thread(RecipientRepository.save_device_token, db, current_user.uid, data.token)
    logger.info(f"🔔 Device token registered for {current_user.uid}")
    return DeviceTokenStatus(success=True, hasFcmToken=True)


@router.delete("", response_model=DeviceTokenStatus)
async def remove_device_token(
    current_user: CurrentUser = Depends(get_current_user),
    db=Depends(get_db),
):
    if await asyncio.to_thread(RecipientRepository.get_user, db, current_user.uid) is not None:
        await asyncio.to_thread(RecipientRepository.clear_device_token, db, current_user.uid)
        logger.info(f"🔕 Device token removed for {current_user.uid}")
    return DeviceTokenStatus(success=True, hasFcmToken=False)
