import os

os.environ["USE_MOCK_DB"] = "true"

import pytest
from fastapi.testclient import TestClient

import app.config.firebase as firebase_module
import app.services.complaint_service as complaint_service_module
import app.services.complaint_store as complaint_store_module
import app.services.notification_service as notification_service_module
import app.services.user_service as user_service_module
from app.config.mock_firestore import MockFirestore
from app.main import app
from app.models.complaint import ComplaintCreate
from app.models.user import CurrentUser
from app.services.complaint_service import ComplaintService
from app.utils.security import get_current_user

TOURIST = CurrentUser(id="tourist-1", username="Asha", email="asha@example.com", phone="+1-555-0100", role="tourist")
OTHER_TOURIST = CurrentUser(id="tourist-2", username="Ben", email="ben@example.com", role="tourist")
OFFICER = CurrentUser(id="officer-1", username="Inspector Rao", email="rao@police.example", role="authority")


def make_payload(**overrides) -> ComplaintCreate:
    data = {
        "category": "theft_robbery",
        "title": "Wallet stolen",
        "description": "My wallet was taken near the ghat steps.",
        "urgency": "medium",
        "contactInfo": "+1-555-0100",
        "location": {"address": "Dashashwamedh Ghat, Varanasi", "coordinates": [83.0104, 25.3066]},
    }
    data.update(overrides)
    return ComplaintCreate(**data)


#scope : function < class < module < package < session
@pytest.fixture(scope="function")
def db(monkeypatch):
    """Fresh in-memory store per test, with every service singleton reset."""
    mock_db = MockFirestore()
    monkeypatch.setattr(firebase_module, "db", mock_db)
    monkeypatch.setattr(complaint_service_module, "_complaint_service", None)
    monkeypatch.setattr(complaint_store_module, "_complaint_store", None)
    monkeypatch.setattr(notification_service_module, "_notification_service", None)
    monkeypatch.setattr(user_service_module, "_user_service", None)
    return mock_db


@pytest.fixture(scope="function")
def service(db):
    return ComplaintService(db)


@pytest.fixture(scope="function")
def current_user():
    return {"user": TOURIST}


@pytest.fixture(scope="function")
def login(current_user):
    def _login(user: CurrentUser):
        current_user["user"] = user
    return _login


@pytest.fixture(scope="function")
def client(db, current_user):
    app.dependency_overrides[get_current_user] = lambda: current_user["user"]
    yield TestClient(app)
    app.dependency_overrides.clear()
