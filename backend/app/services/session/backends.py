from typing import Optional

from app import db
from app.models import SharedEntry


class DatabaseBackend:
    """Origin storage persisted in the ``shared_entry`` table.

    Entries are namespaced by ``scope`` (one scope per user), so the
    leader slot outlives both the tabs and the server process.
    Must be used inside an application context.
    """

    def __init__(self, scope: str):
        self.scope = scope

    def get(self, key: str) -> Optional[str]:
        entry = SharedEntry.query.filter_by(scope=self.scope, key=key).first()
        return entry.value if entry else None

    def set(self, key: str, value: str) -> None:
        entry = SharedEntry.query.filter_by(scope=self.scope, key=key).first()
        if entry is None:
            entry = SharedEntry(scope=self.scope, key=key, value=value)
        else:
            entry.value = value
        db.session.add(entry)
        self._commit()

    def delete(self, key: str) -> None:
        SharedEntry.query.filter_by(scope=self.scope, key=key).delete()
        self._commit()

    def clear(self) -> None:
        SharedEntry.query.filter_by(scope=self.scope).delete()
        self._commit()

    def _commit(self) -> None:
        try:
            db.session.commit()
        except Exception:
            db.session.rollback()
            raise
