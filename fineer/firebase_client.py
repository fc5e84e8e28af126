import json

import firebase_admin
from firebase_admin import credentials, initialize_app
from google.cloud import firestore
from google.oauth2 import service_account

from .config import Settings, get_settings


def _load_service_account_info(settings: Settings) -> dict | None:
    # JSON direct via env (dev/local); sinon Application Default Credentials
    if settings.firebase_admin_json:
        return json.loads(settings.firebase_admin_json)
    return None


def get_firebase_app(settings: Settings | None = None) -> firebase_admin.App:
    settings = settings or get_settings()
    try:
        return firebase_admin.get_app()
    except ValueError:
        pass

    sa_info = _load_service_account_info(settings)
    if sa_info is not None:
        cred = credentials.Certificate(sa_info)
    else:
        cred = credentials.ApplicationDefault()
    options = {"projectId": settings.google_project_id} if settings.google_project_id else None
    return initialize_app(cred, options)


def create_firestore(settings: Settings | None = None) -> firestore.Client:
    settings = settings or get_settings()
    sa_info = _load_service_account_info(settings)
    if sa_info is None:
        return firestore.Client(project=settings.google_project_id)

    creds = service_account.Credentials.from_service_account_info(sa_info)
    project = settings.google_project_id or sa_info.get("project_id")
    return firestore.Client(project=project, credentials=creds)
