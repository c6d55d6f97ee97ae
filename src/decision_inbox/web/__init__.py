"""HTTP surface for the decision inbox.

Provides a FastAPI app for:
- The interactive classification endpoint (pre-check gate + model)
- Rule-engine classification of stored emails
- Decision inbox listing, stats, status updates, and "Not a Decision" feedback
"""

from decision_inbox.web.app import create_app

__all__ = ["create_app"]
