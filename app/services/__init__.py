"""
Services layer - business logic for SOS complaints.

DESIGN PRINCIPLE:
- Services contain business logic, NOT routes
- complaint_policy and status_workflow are pure rules with no database access
- complaint_store owns every Firestore read/write of complaints
- complaint_service orchestrates the lifecycle; authority_view only projects
"""
