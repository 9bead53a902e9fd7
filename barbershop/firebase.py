import json
import logging
import os
from dataclasses import dataclass
from typing import Optional

import firebase_admin
import httpx
from fastapi import Request
from firebase_admin import credentials, firestore

from .config import FIREBASE_PROJECT_ID, FIREBASE_SERVICE_ACCOUNT

logger = logging.getLogger(__name__)

APP_NAME = "barbershop"


@dataclass
class ServiceClients:
    """Handles owned by the application lifespan and handed to request handlers"""

    firebase_app: Optional[firebase_admin.App]
    db: object
    http: httpx.AsyncClient


def _load_credentials():
    if not FIREBASE_SERVICE_ACCOUNT:
        logger.info("Using Application Default Credentials for Firebase")
        return credentials.ApplicationDefault()

    if os.path.isfile(FIREBASE_SERVICE_ACCOUNT):
        return credentials.Certificate(FIREBASE_SERVICE_ACCOUNT)

    try:
        return credentials.Certificate(json.loads(FIREBASE_SERVICE_ACCOUNT))
    except ValueError as e:
        logger.error(f"❌ FIREBASE_SERVICE_ACCOUNT is neither a file nor valid JSON: {e}")
        raise


def init_firebase_app() -> firebase_admin.App:
    """Initialize a named Firebase app for this process"""
    try:
        return firebase_admin.get_app(APP_NAME)
    except ValueError:
        pass

    cred = _load_credentials()
    options = {"projectId": FIREBASE_PROJECT_ID} if FIREBASE_PROJECT_ID else None
    app = firebase_admin.initialize_app(cred, options, name=APP_NAME)
    logger.info(f"✅ Firebase Admin initialized for project {app.project_id}")
    return app


def create_clients(http_timeout: float = 30.0) -> ServiceClients:
    firebase_app = init_firebase_app()
    db = firestore.client(app=firebase_app)
    http = httpx.AsyncClient(timeout=http_timeout)
    return ServiceClients(firebase_app=firebase_app, db=db, http=http)


async def close_clients(clients: ServiceClients) -> None:
    await clients.http.aclose()
    if clients.firebase_app is not None:
        firebase_admin.delete_app(clients.firebase_app)
        logger.info("Firebase Admin app deleted")


def get_clients(request: Request) -> ServiceClients:
    return request.app.state.clients


def get_db(request: Request):
    return request.app.state.clients.db


def get_http(request: Request) -> httpx.AsyncClient:
    return request.app.state.clients.http


def get_firebase_app(request: Request) -> Optional[firebase_admin.App]:
    return request.app.state.clients.firebase_app
