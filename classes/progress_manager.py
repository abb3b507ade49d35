import math
from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import List, Optional

from models import UserCourseProgress
from classes.errors import NotFoundError
from classes.unlock_manager import load_section_rows, load_chapter_rows, group_modules, require_course_mapping
from utils.helpers import format_datetime


def completion_percent(completed, total):
    """Whole-number percentage, halves rounded up, 0 for an empty total."""
    if not total:
        return 0
    return int(math.floor(100 * completed / total + 0.5))


def chapter_completion_fraction(row):
    if row.content_type != "video":
        return 1.0 if row.is_completed else 0.0
    if not row.total_duration:
        return 1.0 if row.is_completed else 0.0
    return min(max(row.watched_duration / row.total_duration, 0.0), 1.0)


def _position_key(row):
    return (
        row.unlocked_at or datetime.min,
        row.section.order, row.section.id,
        row.chapter.order, row.chapter.id,
    )


@dataclass
class ChapterView:
    chapter_id: int
    section_id: int
    title: str
    order: int
    content_type: str
    content_ref_id: Optional[int]
    is_unlocked: bool
    is_completed: bool
    unlocked_at: Optional[str]
    watched_duration: int
    total_duration: int
    completion: float


@dataclass
class SectionView:
    section_id: int
    title: str
    order: int
    module_week: int
    is_unlocked: bool
    is_completed: bool
    total_chapters: int
    completed_chapters: int
    completion_percent: int
    chapters: List[ChapterView] = field(default_factory=list)


@dataclass
class ModuleView:
    module_week: int
    is_unlocked: bool
    is_completed: bool
    total_sections: int
    completed_sections: int
    completion_percent: int
    sections: List[SectionView] = field(default_factory=list)


@dataclass
class CourseOverview:
    roadmap_course_id: int
    course_id: int
    title: str
    total_sections: int
    completed_sections: int
    progress_percent: int
    is_completed: bool
    completed_at: Optional[str]
    current_module_week: Optional[int]
    current_position: Optional[ChapterView]
    modules: List[ModuleView] = field(default_factory=list)

    def to_dict(self):
        return asdict(self)


def to_chapter_view(row):
    return ChapterView(
        chapter_id=row.chapter_id,
        section_id=row.section_id,
        title=row.chapter.title,
        order=row.chapter.order,
        content_type=row.content_type,
        content_ref_id=row.chapter.content_ref_id,
        is_unlocked=row.is_unlocked,
        is_completed=row.is_completed,
        unlocked_at=format_datetime(row.unlocked_at),
        watched_duration=row.watched_duration,
        total_duration=row.total_duration,
        completion=chapter_completion_fraction(row),
    )


class ProgressManager:
    @staticmethod
    def section_completion_percent(completed_chapters, total_chapters):
        return completion_percent(completed_chapters, total_chapters)

    @staticmethod
    def module_completion_percent(section_rows):
        """Share of a module's sections the user has completed."""
        completed = sum(1 for row in section_rows if row.is_completed)
        return completion_percent(completed, len(section_rows))

    @staticmethod
    def current_position(chapter_rows):
        """Most recently unlocked chapter the user has not finished yet."""
        candidates = [row for row in chapter_rows if row.is_unlocked and not row.is_completed]
        if not candidates:
            return None
        return max(candidates, key=_position_key)

    @staticmethod
    def course_overview(ctx, user_id, roadmap_course_id):
        with ctx.transaction():
            return ProgressManager._build_overview(ctx, user_id, roadmap_course_id)

    @staticmethod
    def _build_overview(ctx, user_id, roadmap_course_id):
        mapping = require_course_mapping(ctx, roadmap_course_id)
        course_row = (
            ctx.session.query(UserCourseProgress)
            .filter_by(user_id=user_id, roadmap_course_id=mapping.id)
            .first()
        )
        if course_row is None:
            raise NotFoundError(f"User {user_id} is not enrolled in course mapping {mapping.id}.")

        section_rows = load_section_rows(ctx, user_id, mapping.id)
        chapter_rows = load_chapter_rows(ctx, user_id, mapping.id)

        chapters_by_section = {}
        for row in chapter_rows:
            chapters_by_section.setdefault(row.section_id, []).append(row)

        modules = []
        for week, rows in group_modules(section_rows).items():
            sections = []
            for row in rows:
                chapters = chapters_by_section.get(row.section_id, [])
                completed = sum(1 for c in chapters if c.is_completed)
                sections.append(SectionView(
                    section_id=row.section_id,
                    title=row.section.title,
                    order=row.section.order,
                    module_week=row.module_week,
                    is_unlocked=row.is_unlocked,
                    is_completed=row.is_completed,
                    total_chapters=len(chapters),
                    completed_chapters=completed,
                    completion_percent=ProgressManager.section_completion_percent(completed, len(chapters)),
                    chapters=[to_chapter_view(c) for c in chapters],
                ))
            modules.append(ModuleView(
                module_week=week,
                is_unlocked=any(row.is_unlocked for row in rows),
                is_completed=all(row.is_completed for row in rows),
                total_sections=len(rows),
                completed_sections=sum(1 for row in rows if row.is_completed),
                completion_percent=ProgressManager.module_completion_percent(rows),
                sections=sections,
            ))

        position = ProgressManager.current_position(chapter_rows)
        return CourseOverview(
            roadmap_course_id=mapping.id,
            course_id=mapping.course_id,
            title=mapping.course_title,
            total_sections=course_row.total_sections,
            completed_sections=course_row.completed_sections,
            progress_percent=course_row.progress_percent,
            is_completed=course_row.is_completed,
            completed_at=format_datetime(course_row.completed_at),
            current_module_week=position.section.module_week if position else None,
            current_position=to_chapter_view(position) if position else None,
            modules=modules,
        )
