import logging

from models import UserChapterProgress
from classes.errors import NotFoundError, SequenceViolationError
from classes.progress_manager import completion_percent, chapter_completion_fraction
from classes.results import CommandResult
from classes.unlock_manager import require_course_mapping
from utils.notifications import RewardEvent, COURSE_COMPLETED, course_action_url

logger = logging.getLogger(__name__)


class CompletionManager:
    @staticmethod
    def record_watch_progress(ctx, user_id, roadmap_course_id, chapter_id, watched_duration):
        """Store how far the user got into a chapter; completes a fully watched video."""
        if isinstance(watched_duration, bool) or not isinstance(watched_duration, (int, float)):
            raise ValueError("Watched duration must be a number of seconds.")
        if watched_duration < 0:
            raise ValueError("Watched duration must be a non-negative number of seconds.")

        with ctx.transaction():
            mapping = require_course_mapping(ctx, roadmap_course_id)
            row = CompletionManager._load_unlocked_chapter(ctx, user_id, mapping.id, chapter_id)

            row.watched_duration = max(row.watched_duration or 0, int(watched_duration))
            rollup = {}
            if row.content_type == "video" and not row.is_completed and row.watched_duration >= row.total_duration:
                rollup = CompletionManager._mark_completed(ctx, user_id, mapping, row)

            return CommandResult(
                True,
                "Chapter completed." if rollup else "Watch progress saved.",
                CompletionManager._result_data(row, rollup),
            )

    @staticmethod
    def complete_chapter(ctx, user_id, roadmap_course_id, chapter_id):
        """Explicit completion signal for document, quiz and project chapters."""
        with ctx.transaction():
            mapping = require_course_mapping(ctx, roadmap_course_id)
            row = CompletionManager._load_unlocked_chapter(ctx, user_id, mapping.id, chapter_id)

            if row.is_completed:
                return CommandResult(True, "Chapter is already completed.", CompletionManager._result_data(row, {}))

            if row.content_type == "video" and row.watched_duration < row.total_duration:
                raise SequenceViolationError(
                    "Videos complete once they have been watched to the end.",
                    watched_duration=row.watched_duration,
                    total_duration=row.total_duration,
                )

            rollup = CompletionManager._mark_completed(ctx, user_id, mapping, row)
            return CommandResult(True, "Chapter completed.", CompletionManager._result_data(row, rollup))

    @staticmethod
    def _load_unlocked_chapter(ctx, user_id, roadmap_course_id, chapter_id):
        row = (
            ctx.session.query(UserChapterProgress)
            .filter_by(user_id=user_id, roadmap_course_id=roadmap_course_id, chapter_id=chapter_id)
            .with_for_update()
            .first()
        )
        if row is None:
            raise NotFoundError(f"Chapter {chapter_id} is not part of the user's progress for this course.")
        if not row.is_unlocked:
            raise SequenceViolationError(f"Chapter {chapter_id} is still locked.")
        if not row.section_progress.is_unlocked:
            raise SequenceViolationError(f"Section {row.section_id} is still locked.")
        return row

    @staticmethod
    def _mark_completed(ctx, user_id, mapping, row):
        now = ctx.now()
        row.is_completed = True
        row.completed_at = now

        section_row = row.section_progress
        done = sum(1 for chapter in section_row.chapters if chapter.is_completed)
        section_row.completed_chapters = done
        section_completed = False
        if not section_row.is_completed and done >= section_row.total_chapters:
            section_row.is_completed = True
            section_row.completed_at = now
            section_completed = True

        course_row = section_row.course_progress
        course_row.completed_sections = sum(1 for section in course_row.sections if section.is_completed)
        course_row.progress_percent = completion_percent(course_row.completed_sections, course_row.total_sections)
        course_completed = False
        if not course_row.is_completed and course_row.completed_sections >= course_row.total_sections:
            course_row.is_completed = True
            course_row.completed_at = now
            course_completed = True
            title = mapping.course_title or "your course"
            ctx.emit(RewardEvent(
                user_id=user_id,
                roadmap_course_id=mapping.id,
                type=COURSE_COMPLETED,
                title="Course completed",
                body=f"You finished {title}.",
                action_url=course_action_url(mapping.id),
            ))
            logger.info(f"User {user_id} completed course mapping {mapping.id}")

        ctx.session.flush()
        logger.debug(
            f"Chapter {row.chapter_id} completed for user {user_id} "
            f"(section done: {section_completed}, course done: {course_completed})"
        )
        return {
            "section_completed": section_completed,
            "course_completed": course_completed,
            "course_progress_percent": course_row.progress_percent,
        }

    @staticmethod
    def _result_data(row, rollup):
        data = {
            "chapter_id": row.chapter_id,
            "section_id": row.section_id,
            "watched_duration": row.watched_duration,
            "total_duration": row.total_duration,
            "completion": chapter_completion_fraction(row),
            "is_completed": row.is_completed,
        }
        data.update(rollup)
        return data
