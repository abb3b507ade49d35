"""Read-only view of the roadmap/course/section/chapter hierarchy.

The engine never writes catalog rows. Everything handed out of here is a
frozen struct so it can be shared with enrolment worker threads, which must
not touch the SQLAlchemy session.
"""
import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import selectinload

from models import Roadmap, RoadmapCourse, CourseSection, SectionChapter

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RoadmapRef:
    id: int
    title: str


@dataclass(frozen=True)
class CourseMappingRef:
    id: int
    roadmap_id: int
    course_id: int
    order: int
    is_mandatory: bool
    weekly_unlock: bool
    prerequisite_course_mapping_id: Optional[int]
    course_title: str = ""


@dataclass(frozen=True)
class SectionRef:
    id: int
    course_id: int
    order: int
    module_week: int
    title: str = ""


@dataclass(frozen=True)
class ChapterRef:
    id: int
    section_id: int
    order: int
    content_type: str
    duration: int
    title: str = ""
    content_ref_id: Optional[int] = None


def to_course_mapping_ref(mapping):
    return CourseMappingRef(
        id=mapping.id,
        roadmap_id=mapping.roadmap_id,
        course_id=mapping.course_id,
        order=mapping.order,
        is_mandatory=bool(mapping.is_mandatory),
        weekly_unlock=bool(mapping.weekly_unlock),
        prerequisite_course_mapping_id=mapping.prerequisite_course_mapping_id,
        course_title=mapping.course.title if mapping.course else "",
    )


def to_section_ref(section):
    return SectionRef(
        id=section.id,
        course_id=section.course_id,
        order=section.order,
        module_week=section.module_week,
        title=section.title,
    )


def to_chapter_ref(chapter):
    return ChapterRef(
        id=chapter.id,
        section_id=chapter.section_id,
        order=chapter.order,
        content_type=chapter.content_type,
        duration=chapter.duration or 0,
        title=chapter.title,
        content_ref_id=chapter.content_ref_id,
    )


class HierarchyCatalog:
    """Content catalog collaborator contract."""

    def get_roadmap(self, roadmap_id):
        raise NotImplementedError

    def list_course_mappings(self, roadmap_id):
        raise NotImplementedError

    def get_course_mapping(self, roadmap_course_id):
        raise NotImplementedError

    def list_sections(self, course_id):
        raise NotImplementedError

    def list_chapters(self, section_id):
        raise NotImplementedError


class SqlCatalog(HierarchyCatalog):
    """Catalog backed by the catalog tables, scoped to one request.

    ``list_sections`` loads the chapters of every returned section in the same
    round trip; later ``list_chapters`` calls for those sections are served
    from memory and are safe to make from any thread.
    """

    def __init__(self, session):
        self.session = session
        self._chapters = {}

    def get_roadmap(self, roadmap_id):
        roadmap = self.session.get(Roadmap, roadmap_id)
        if roadmap is None:
            return None
        return RoadmapRef(id=roadmap.id, title=roadmap.title)

    def list_course_mappings(self, roadmap_id):
        mappings = (
            self.session.query(RoadmapCourse)
            .options(selectinload(RoadmapCourse.course))
            .filter(RoadmapCourse.roadmap_id == roadmap_id)
            .order_by(RoadmapCourse.order, RoadmapCourse.id)
            .all()
        )
        return [to_course_mapping_ref(m) for m in mappings]

    def get_course_mapping(self, roadmap_course_id):
        mapping = self.session.get(RoadmapCourse, roadmap_course_id)
        if mapping is None:
            return None
        return to_course_mapping_ref(mapping)

    def list_sections(self, course_id):
        sections = (
            self.session.query(CourseSection)
            .options(selectinload(CourseSection.chapters))
            .filter(CourseSection.course_id == course_id)
            .order_by(CourseSection.order, CourseSection.id)
            .all()
        )
        for section in sections:
            chapters = sorted(section.chapters, key=lambda c: (c.order, c.id))
            self._chapters[section.id] = [to_chapter_ref(c) for c in chapters]
        logger.debug(f"Loaded {len(sections)} sections for course {course_id}")
        return [to_section_ref(s) for s in sections]

    def list_chapters(self, section_id):
        if section_id in self._chapters:
            return list(self._chapters[section_id])

        chapters = (
            self.session.query(SectionChapter)
            .filter(SectionChapter.section_id == section_id)
            .order_by(SectionChapter.order, SectionChapter.id)
            .all()
        )
        refs = [to_chapter_ref(c) for c in chapters]
        self._chapters[section_id] = refs
        return list(refs)
