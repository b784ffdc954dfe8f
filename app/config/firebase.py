"""
Firebase initialization.
Single-source-of-truth Firestore client for Tourist Safety Hub.

The Firebase Admin app initialized here is also used by app.utils.security
to verify bearer ID tokens.
"""

from typing import Optional
import json
import os

import firebase_admin
from firebase_admin import credentials, firestore, initialize_app

from app.core.settings import settings

db: Optional[firestore.Client] = None


def _validate_credentials_file(cred_path: str) -> None:
    """Fail early with an actionable message on a broken service account file."""
    if not os.path.exists(cred_path):
        raise FileNotFoundError(
            f"Firebase credentials file not found: {cred_path}\n"
            f"Please check your .env file and ensure FIREBASE_CREDENTIALS_PATH is correct.\n"
            f"Current working directory: {os.getcwd()}"
        )

    try:
        with open(cred_path, 'r') as f:
            cred_data = json.load(f)
    except json.JSONDecodeError as e:
        raise ValueError(
            f"Firebase credentials file is not valid JSON: {e}\n"
            f"Please check the file at: {cred_path}"
        )

    required_fields = ['type', 'project_id', 'private_key', 'client_email']
    missing_fields = [field for field in required_fields if field not in cred_data]
    if missing_fields:
        raise ValueError(
            f"Firebase credentials file is missing required fields: {missing_fields}\n"
            f"Please download a fresh service account key from Firebase Console."
        )

    print(f"[FIRESTORE] Credentials file validated: {cred_path}")
    print(f"[FIRESTORE] Project ID: {cred_data.get('project_id', 'N/A')}")


def initialize_firebase_app() -> None:
    """Initialize the default Firebase Admin app once."""
    if firebase_admin._apps:
        return

    if settings.FIREBASE_CREDENTIALS_PATH:
        _validate_credentials_file(settings.FIREBASE_CREDENTIALS_PATH)
        cred = credentials.Certificate(settings.FIREBASE_CREDENTIALS_PATH)
        initialize_app(cred)
        print("[FIRESTORE] Firebase Admin SDK initialized with service account")
    else:
        print("[FIRESTORE] No credentials path set, using Application Default Credentials")
        options = {"projectId": settings.FIREBASE_PROJECT_ID} if settings.FIREBASE_PROJECT_ID else None
        initialize_app(options=options)


def initialize_firestore():
    global db

    if db is not None:
        return db

    if settings.USE_MOCK_DB:
        from app.config.mock_firestore import get_mock_db
        db = get_mock_db()
        print("[FIRESTORE] USING MOCK DATABASE")
        return db

    try:
        initialize_firebase_app()
        db = firestore.client()
        print("[FIRESTORE] USING REAL FIRESTORE DATABASE")
        print(f"[FIRESTORE] Project: {settings.FIREBASE_PROJECT_ID or 'default'}")
        return db

    except FileNotFoundError as e:
        raise RuntimeError(
            f"Firestore initialization FAILED - Credentials file not found.\n"
            f"{str(e)}\n"
            f"SOLUTION: Check your .env file and ensure FIREBASE_CREDENTIALS_PATH points to a valid service account JSON file."
        )
    except ValueError as e:
        raise RuntimeError(
            f"Firestore initialization FAILED - Invalid credentials file.\n"
            f"{str(e)}\n"
            f"SOLUTION: Download a fresh service account key from Firebase Console "
            f"(Project Settings > Service Accounts > Generate New Private Key)."
        )
    except Exception as e:
        raise RuntimeError(
            f"Firestore initialization FAILED. Error: {str(e)}\n"
            f"Please check your Firebase credentials and configuration."
        )


def get_db():
    """
    Get the initialized Firestore client.

    Raises RuntimeError if Firestore has not been initialized and cannot be.
    """
    if db is None:
        try:
            initialize_firestore()
        except Exception as e:
            raise RuntimeError(
                f"Firestore not initialized and initialization failed: {e}. "
                "Please check your Firebase credentials and configuration."
            )
    return db
