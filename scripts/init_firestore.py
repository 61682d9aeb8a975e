#!/usr/bin/env python3
"""
Prepare a Firestore project for the event waitlist.

- checks read access to the waitlist collections
- lists the indexes the store queries rely on
- prints the security rules for the mobile client
- backfills `eventId` on decision documents written before it was stored
"""

import logging
import sys
from typing import Any, Dict, List, Tuple

import typer
from google.cloud import firestore

from event_waitlist.config import FirestoreConfig
from event_waitlist.models.decision import event_id_from_path
from event_waitlist.models.repository import (
    DECISIONS_SUBCOLLECTION,
    EVENTS_COLLECTION,
    NOTIFICATIONS_SUBCOLLECTION,
    USERS_COLLECTION,
)

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

SECURITY_RULES = """
rules_version = '2';
service cloud.firestore {
  match /databases/{database}/documents {
    match /events/{eventId}/waitingList/{entryId} {
      allow read: if request.auth != null;
      allow create, delete: if request.auth != null
        && request.resource.data.entrantId == request.auth.uid;
    }

    match /{path=**}/decisions/{decisionId} {
      allow read: if request.auth != null;
    }

    match /users/{userId} {
      allow read, write: if request.auth != null && request.auth.uid == userId;

      match /notifications/{notificationId} {
        allow read: if request.auth != null && request.auth.uid == userId;
        // owners may only flip the read flag
        allow update: if request.auth != null && request.auth.uid == userId
          && request.resource.data.diff(resource.data).affectedKeys().hasOnly(['read']);
      }
    }
  }
}
"""


class WaitlistSchemaSetup:
    """One-off setup and maintenance tasks against a Firestore project."""

    def __init__(self, config: FirestoreConfig, client: Any = None):
        if not config.project_id and not config.emulator_host:
            raise ValueError("GCP_PROJECT_ID environment variable must be set")
        self.config = config
        self.db = client or firestore.Client(project=config.project_id, database=config.database_id)

    @staticmethod
    def required_indexes() -> List[Dict[str, Any]]:
        """Indexes beyond Firestore's automatic single-field ones."""
        return [
            # DecisionStore.query_across_events
            {
                "collection_group": DECISIONS_SUBCOLLECTION,
                "scope": "COLLECTION_GROUP",
                "fields": [("entrantId", "ASCENDING")],
            },
            # NotificationStore.query_for_user
            {
                "collection_group": NOTIFICATIONS_SUBCOLLECTION,
                "scope": "COLLECTION",
                "fields": [("timestamp", "DESCENDING")],
            },
        ]

    def check_access(self) -> bool:
        """Read one document from each top-level collection."""
        for name in (EVENTS_COLLECTION, USERS_COLLECTION):
            try:
                list(self.db.collection(name).limit(1).stream())
            except Exception as e:
                logger.error(f"Cannot read collection '{name}': {e}")
                return False
        logger.info("Read access to events/ and users/ confirmed")
        return True

    def find_legacy_decisions(self) -> List[Tuple[Any, str]]:
        """Decision documents without an eventId field, with the id recovered from their path."""
        legacy = []
        for doc in self.db.collection_group(DECISIONS_SUBCOLLECTION).stream():
            data = doc.to_dict() or {}
            if data.get("eventId"):
                continue
            event_id = event_id_from_path(doc.reference.path)
            if event_id is None:
                logger.warning(f"Unrecognised decision path, skipped: {doc.reference.path}")
                continue
            legacy.append((doc.reference, event_id))
        return legacy

    def backfill_event_ids(self, apply: bool = False) -> int:
        """Write eventId onto legacy decisions. Dry run unless apply is set."""
        legacy = self.find_legacy_decisions()
        for reference, event_id in legacy:
            if apply:
                reference.update({"eventId": event_id})
            logger.info(f"{'Updated' if apply else 'Would update'} {reference.path} -> eventId={event_id}")
        return len(legacy)

    def log_indexes(self) -> None:
        logger.info("Required indexes (create via gcloud or the Firebase Console):")
        for index in self.required_indexes():
            fields = ", ".join(f"{field} {order}" for field, order in index["fields"])
            logger.info(f"  {index['collection_group']} [{index['scope']}]: {fields}")


app = typer.Typer(help="Firestore setup for the event waitlist")


@app.command()
def main(
    backfill: bool = typer.Option(False, help="Write eventId onto legacy decision documents"),
    show_rules: bool = typer.Option(True, help="Print the security rules")
):
    """Check access, list indexes and optionally backfill legacy decisions."""
    try:
        setup = WaitlistSchemaSetup(FirestoreConfig.from_env())
    except ValueError as e:
        logger.error(str(e))
        sys.exit(1)

    logger.info(f"Preparing Firestore project: {setup.config.project_id}")
    if not setup.check_access():
        sys.exit(1)

    setup.log_indexes()
    if show_rules:
        logger.info("Security rules (deploy via the Firebase Console):")
        logger.info(SECURITY_RULES)

    count = setup.backfill_event_ids(apply=backfill)
    if count and not backfill:
        logger.info(f"{count} legacy decision(s) found; rerun with --backfill to update them")


if __name__ == "__main__":
    app()
