"""Per-request handle threaded through every progression call.

Holds the store session, the catalog, the reward notifier, engine settings
and the clock. ``transaction()`` is the single unit-of-work boundary: public
manager entry points open it, inner helpers assume it is already open.
"""
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone

from sqlalchemy.exc import SQLAlchemyError

from classes.catalog import SqlCatalog
from classes.errors import PersistenceError
from utils.notifications import RewardNotifier

logger = logging.getLogger(__name__)


def utc_now():
    """Naive UTC timestamp, matching what the DateTime columns store."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


@dataclass(frozen=True)
class EngineSettings:
    enrolment_concurrency: int = 5
    weekly_unlock_interval: timedelta = timedelta(days=7)
    allow_multiple_roadmaps: bool = False

    @classmethod
    def from_config(cls, config):
        return cls(
            enrolment_concurrency=int(config.get("ENROLMENT_CONCURRENCY", 5)),
            weekly_unlock_interval=timedelta(days=int(config.get("WEEKLY_UNLOCK_INTERVAL_DAYS", 7))),
            allow_multiple_roadmaps=bool(config.get("ALLOW_MULTIPLE_ROADMAP_ENROLMENTS", False)),
        )


class ProgressContext:
    def __init__(self, session, catalog=None, notifier=None, settings=None, clock=utc_now):
        self.session = session
        self.catalog = catalog or SqlCatalog(session)
        self.notifier = notifier or RewardNotifier()
        self.settings = settings or EngineSettings()
        self.clock = clock
        self.pending_events = []
        self._depth = 0

    @classmethod
    def from_app(cls, app, session):
        return cls(
            session,
            notifier=RewardNotifier.from_config(app.config),
            settings=EngineSettings.from_config(app.config),
        )

    def now(self):
        return self.clock()

    def emit(self, event):
        self.pending_events.append(event)

    @contextmanager
    def transaction(self):
        """Commit on success, roll back on any failure.

        Nested use joins the outer unit of work. Reward events queued inside
        are dispatched only after the outermost commit succeeds.
        """
        if self._depth:
            self._depth += 1
            try:
                yield self
            finally:
                self._depth -= 1
            return

        self._depth = 1
        try:
            yield self
            self.session.commit()
        except SQLAlchemyError as e:
            self._abort()
            logger.error(f"Unit of work rolled back after store failure: {e}")
            raise PersistenceError("The progress store rejected the operation.", reason=str(e)) from e
        except BaseException:
            self._abort()
            raise
        finally:
            self._depth = 0

        self._flush_events()

    def _abort(self):
        self.pending_events.clear()
        try:
            self.session.rollback()
        except SQLAlchemyError:
            logger.exception("Rollback failed")

    def _flush_events(self):
        events, self.pending_events = self.pending_events, []
        if not events:
            return
        try:
            self.notifier.dispatch(events)
        except Exception:
            # reward delivery is outside the consistency boundary
            logger.exception(f"Dispatching {len(events)} reward events failed")
