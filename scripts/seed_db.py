"""
Seed script for the Tourist Safety Hub mock DB or Firestore.

Usage:
  - Dry run (default): python scripts/seed_db.py
  - Apply to configured DB: python scripts/seed_db.py --apply
  - Force mock DB even if FIREBASE configured: python scripts/seed_db.py --apply --force-mock

Behavior:
  - Creates demo tourist and authority profiles in "users".
  - Submits demo complaints through ComplaintService, so priority,
    department, communications and notifications are derived exactly as
    for real submissions, then walks some of them through the workflow.

NOTE: When applying to real Firestore, ensure `FIREBASE_CREDENTIALS_PATH` and `USE_MOCK_DB=false` are set in `.env`.
"""

import argparse
from typing import Any, Dict, List

from app.config import firebase
from app.core.settings import settings
from app.models.complaint import ComplaintCreate, EmergencyCreate
from app.models.user import CurrentUser
from app.services.complaint_service import ComplaintService
from app.utils.firestore_helpers import utc_now

DEMO_USERS: Dict[str, Dict] = {
    "demo-tourist-1": {"username": "Asha Verma", "email": "asha@example.com", "phone": "+91-98765-43210", "role": "tourist"},
    "demo-tourist-2": {"username": "Liam Chen", "email": "liam@example.com", "phone": None, "role": "tourist"},
    "demo-officer-1": {"username": "Inspector Rao", "email": "rao@police.example", "phone": None, "role": "authority"},
}

DEMO_COMPLAINTS: List[Dict] = [
    {
        "user": "demo-tourist-1",
        "payload": {
            "category": "theft_robbery",
            "title": "Phone snatched at the ghat",
            "description": "Two men on a scooter grabbed my phone near the main steps.",
            "urgency": "high",
            "contactInfo": "+91-98765-43210",
            "location": {"address": "Dashashwamedh Ghat, Varanasi", "coordinates": [83.0104, 25.3066]},
        },
        "walk": ["acknowledge", "assign", "in_progress", "resolve"],
    },
    {
        "user": "demo-tourist-2",
        "payload": {
            "category": "medical_help",
            "title": "Heat exhaustion",
            "description": "Travel companion collapsed, conscious but very weak.",
            "urgency": "critical",
            "contactInfo": "liam@example.com",
            "location": {"address": "Sarnath Museum, Varanasi", "coordinates": [83.0236, 25.3811]},
        },
        "walk": ["acknowledge"],
    },
    {
        "user": "demo-tourist-2",
        "payload": {
            "category": "fraud",
            "title": "Overcharged by tour operator",
            "description": "Charged five times the agreed price for a boat ride.",
            "urgency": "low",
            "contactInfo": "liam@example.com",
            "location": {"address": "Assi Ghat, Varanasi"},
        },
        "walk": [],
    },
]


def seed(db: Any, apply: bool = False) -> List[str]:
    """Write demo users and complaints. Returns the created complaint ids."""
    for user_id, profile in DEMO_USERS.items():
        print(f"Preparing: users/{user_id}")
        if apply:
            db.collection("users").document(user_id).set(dict(profile, created_at=utc_now()))

    if not apply:
        for item in DEMO_COMPLAINTS:
            print(f"Preparing: sos_complaints ({item['payload']['title']})")
        print("Preparing: sos_complaints (emergency SOS)")
        return []

    service = ComplaintService(db)
    officer = DEMO_USERS["demo-officer-1"]
    created = []

    for item in DEMO_COMPLAINTS:
        profile = DEMO_USERS[item["user"]]
        user = CurrentUser(id=item["user"], username=profile["username"], email=profile["email"], phone=profile["phone"])
        complaint = service.submit(user, ComplaintCreate(**item["payload"]))

        for step in item["walk"]:
            if step == "acknowledge":
                service.acknowledge(complaint.id, officer_id="demo-officer-1", officer_name=officer["username"])
            elif step == "assign":
                service.assign_officer(complaint.id, "demo-officer-1", assigned_by="demo-officer-1")
            elif step == "in_progress":
                service.change_status(complaint.id, "in_progress", officer_id="demo-officer-1")
            elif step == "resolve":
                service.resolve(complaint.id, "Phone recovered from a local shop", officer_id="demo-officer-1")

        print(f"Wrote: sos_complaints/{complaint.id} ({complaint.complaint_id})")
        created.append(complaint.id)

    tourist = DEMO_USERS["demo-tourist-1"]
    emergency, _ = service.submit_emergency(
        CurrentUser(id="demo-tourist-1", username=tourist["username"], phone=tourist["phone"]),
        EmergencyCreate(location={"coordinates": [83.0067, 25.2892]}),
    )
    print(f"Wrote: sos_complaints/{emergency.id} ({emergency.complaint_id}, emergency SOS)")
    created.append(emergency.id)

    return created


def main():
    parser = argparse.ArgumentParser()
    parser.add_argument("--apply", action="store_true", help="Write seed to the DB instead of dry-run")
    parser.add_argument("--force-mock", action="store_true", help="Force use of mock DB even if FIREBASE configured")
    args = parser.parse_args()

    if args.force_mock:
        print("Forcing mock DB usage for this run.")
        # Settings is read once at import, so flipping the flag here is enough
        settings.USE_MOCK_DB = True

    db = firebase.get_db()

    seed(db, apply=args.apply)

    if args.apply:
        print("Seeding completed.")
    else:
        print("Dry run complete. Re-run with --apply to write to DB.")


if __name__ == "__main__":
    main()
