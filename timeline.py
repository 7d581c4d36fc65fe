# ------------------------------------------------
# TIMELINE
# Firestore persistence of the per-minute log + CSV export
# ------------------------------------------------
import logging
import threading
import uuid

import config
from errors import EmptyHistoryError
from session import SessionInfo

_log = logging.getLogger(__name__)


class TimelineStore:
    """
    Writes sessions and their per-minute timeline to Firestore.

    Without credentials the store runs disabled: sessions get a local id and
    timeline writes are skipped.
    """

    def __init__(self, credentials_path=config.FIREBASE_CREDENTIALS, client=None):
        self._client = client
        if client is None and credentials_path:
            try:
                self._client = self._connect(credentials_path)
            except (OSError, ValueError):
                _log.exception("Could not connect to Firestore with %s", credentials_path)
        if self._client is None:
            _log.warning("Firestore credentials not configured, timeline will not be persisted")

    @staticmethod
    def _connect(credentials_path):
        import firebase_admin
        from firebase_admin import credentials, firestore

        try:
            app = firebase_admin.get_app()
        except ValueError:
            app = firebase_admin.initialize_app(credentials.Certificate(credentials_path))
        return firestore.client(app=app)

    @property
    def enabled(self):
        return self._client is not None

    def create_session(self, name, subject, date):
        if not self.enabled:
            return SessionInfo(id=uuid.uuid4().hex, name=name, subject=subject, date=date)

        from firebase_admin import firestore

        _, ref = self._client.collection(config.SESSIONS_COLLECTION).add({
            "name": name,
            "subject": subject,
            "date": date,
            "createdAt": firestore.SERVER_TIMESTAMP,
        })
        _log.info("Created session %s (%s, %s)", ref.id, subject, date)
        return SessionInfo(id=ref.id, name=name, subject=subject, date=date)

    def save(self, session_id, record):
        """Adds one timeline document. Returns True when it was written."""
        if not self.enabled:
            return False

        from firebase_admin import firestore

        try:
            timeline_ref = (
                self._client.collection(config.SESSIONS_COLLECTION)
                .document(session_id)
                .collection(config.TIMELINE_COLLECTION)
            )
            timeline_ref.add({
                "timestamp": firestore.SERVER_TIMESTAMP,
                "personCount": record.person_count,
                "interestedCount": record.interested_count,
                "uninterestedCount": record.uninterested_count,
            })
        except Exception:
            _log.exception("Failed to save timeline data for session %s", session_id)
            return False
        return True

    def save_async(self, session_id, record):
        thread = threading.Thread(target=self.save, args=(session_id, record), daemon=True)
        thread.start()
        return thread


def export_filename(session, prefix="session-report"):
    return f"{prefix}-{session.subject}-{session.date}.csv"


def export_csv(history):
    if not len(history):
        raise EmptyHistoryError("No historical data to export yet")
    return history.to_frame().to_csv(index=False, lineterminator="\n")
