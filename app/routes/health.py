"""
Liveness and Firestore readiness checks.
"""

from fastapi import APIRouter, HTTPException, status

from app.config.firebase import get_db
from app.core.settings import settings
from app.services import complaint_store, notification_service
from app.utils.firestore_helpers import utc_now

router = APIRouter(prefix="/health", tags=["Health"])

REQUIRED_COLLECTIONS = (complaint_store.COLLECTION, notification_service.COLLECTION)


@router.get("")
async def health_check():
    return {
        "status": "healthy",
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "timestamp": utc_now().isoformat()
    }


@router.get("/db")
async def database_health():
    """
    Reads one document from each collection the SOS lifecycle writes to.
    503 if Firestore cannot be reached.
    """
    try:
        db = get_db()
        for name in REQUIRED_COLLECTIONS:
            list(db.collection(name).limit(1).stream())
    except Exception as e:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail=f"Database connection failed: {str(e)}"
        )

    return {
        "status": "healthy",
        "database": "mock" if settings.USE_MOCK_DB else "firestore",
        "connected": True,
        "checked": list(REQUIRED_COLLECTIONS),
    }
