"""
Placement Portal
Connects colleges, students, companies and placement agencies.

Architecture:
- FastAPI REST API under /api, role-scoped per actor
- MongoDB: every entity in its own collection
- SMTP: templated HTML notification emails
- Excel/CSV: student bulk import and report export
"""

__version__ = "1.0.0"
