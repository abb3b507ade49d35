"""
tests/progress_fixtures.py

Shared scaffolding for the progression engine test suites: an app bound to an
in-memory SQLite database, catalog seeding helpers, a controllable clock and
a notifier that records reward events instead of posting them.
"""

import sys
import unittest
from datetime import datetime, timedelta
from pathlib import Path

from sqlalchemy.exc import OperationalError

# ---------------------------------------------------------------------------
# PYTHONPATH bootstrap: repo root must be importable from any test runner.
# ---------------------------------------------------------------------------
REPO_ROOT = Path(__file__).resolve().parents[1]
if str(REPO_ROOT) not in sys.path:
    sys.path.insert(0, str(REPO_ROOT))

from app import create_app                                          # noqa: E402
from classes.catalog import SqlCatalog                              # noqa: E402
from classes.completion_manager import CompletionManager            # noqa: E402
from classes.context import EngineSettings, ProgressContext         # noqa: E402
from classes.unlock_manager import UnlockManager                    # noqa: E402
from models import (                                                # noqa: E402
    db, Course, CourseSection, Roadmap, RoadmapCourse, SectionChapter,
    UserChapterProgress, UserCourseProgress, UserSectionProgress,
)

START = datetime(2025, 3, 3, 9, 0, 0)
USER_ID = 1
OTHER_USER_ID = 2


class FixedClock:
    """Clock the tests move by hand."""

    def __init__(self, now=START):
        self.current = now

    def __call__(self):
        return self.current

    def advance(self, **kwargs):
        self.current += timedelta(**kwargs)


class UnreachableCatalog(SqlCatalog):
    """Catalog whose database connection has dropped."""

    def _lost(self):
        return OperationalError("SELECT", {}, Exception("server has gone away"))

    def get_roadmap(self, roadmap_id):
        raise self._lost()

    def get_course_mapping(self, roadmap_course_id):
        raise self._lost()


class RecordingNotifier:
    def __init__(self):
        self.events = []

    def dispatch(self, events):
        self.events.extend(events)
        return len(events)

    def types(self):
        return [event.type for event in self.events]


def seed_course(title, layout, video_duration=300):
    """Create a course from ``[(module_week, [content_type, ...]), ...]``, one entry per section."""
    course = Course(title=title)
    db.session.add(course)
    db.session.flush()

    for index, (week, content_types) in enumerate(layout, start=1):
        section = CourseSection(
            course_id=course.id,
            title=f"{title} section {index}",
            order=CourseSection.get_next_order(course.id),
            module_week=week,
        )
        db.session.add(section)
        db.session.flush()
        for chapter_index, content_type in enumerate(content_types, start=1):
            db.session.add(SectionChapter(
                section_id=section.id,
                title=f"{title} {index}.{chapter_index}",
                order=SectionChapter.get_next_order(section.id),
                content_type=content_type,
                content_ref_id=1000 * index + chapter_index,
                duration=video_duration if content_type == "video" else 0,
            ))
            db.session.flush()

    db.session.commit()
    return course


def seed_roadmap(title="Backend Roadmap"):
    roadmap = Roadmap(title=title)
    db.session.add(roadmap)
    db.session.commit()
    return roadmap


def add_mapping(roadmap, course, order, prerequisite=None, weekly_unlock=False):
    mapping = RoadmapCourse(
        roadmap_id=roadmap.id,
        course_id=course.id,
        order=order,
        weekly_unlock=weekly_unlock,
        prerequisite_course_mapping_id=prerequisite.id if prerequisite else None,
    )
    db.session.add(mapping)
    db.session.commit()
    return mapping


def ordered_chapter_rows(user_id, roadmap_course_id):
    return (
        db.session.query(UserChapterProgress)
        .join(CourseSection, UserChapterProgress.section_id == CourseSection.id)
        .join(SectionChapter, UserChapterProgress.chapter_id == SectionChapter.id)
        .filter(
            UserChapterProgress.user_id == user_id,
            UserChapterProgress.roadmap_course_id == roadmap_course_id,
        )
        .order_by(CourseSection.order, SectionChapter.order)
        .all()
    )


def ordered_section_rows(user_id, roadmap_course_id):
    return (
        db.session.query(UserSectionProgress)
        .join(CourseSection, UserSectionProgress.section_id == CourseSection.id)
        .filter(
            UserSectionProgress.user_id == user_id,
            UserSectionProgress.roadmap_course_id == roadmap_course_id,
        )
        .order_by(CourseSection.order)
        .all()
    )


def course_progress_row(user_id, roadmap_course_id):
    return (
        db.session.query(UserCourseProgress)
        .filter_by(user_id=user_id, roadmap_course_id=roadmap_course_id)
        .first()
    )


class ProgressTestCase(unittest.TestCase):
    """App, schema and context per test; every test starts from an empty database."""

    def setUp(self):
        self.app = create_app("testing")
        self.app_context = self.app.app_context()
        self.app_context.push()
        db.create_all()

        self.clock = FixedClock()
        self.notifier = RecordingNotifier()
        self.ctx = self.make_context()

    def tearDown(self):
        db.session.remove()
        db.drop_all()
        self.app_context.pop()

    def make_context(self, catalog=None, **settings):
        return ProgressContext(
            db.session,
            catalog=catalog,
            notifier=self.notifier,
            settings=EngineSettings(**settings),
            clock=self.clock,
        )

    def finish_section(self, mapping, section, user_id=USER_ID):
        """Unlock and complete every chapter of a section, in order."""
        UnlockManager.unlock_section(self.ctx, user_id, mapping.id, section.id)
        for chapter in section.chapters:
            UnlockManager.unlock_chapter(self.ctx, user_id, mapping.id, section.id, chapter.id)
            CompletionManager.complete_chapter(self.ctx, user_id, mapping.id, chapter.id)
