import logging
from collections import OrderedDict

from sqlalchemy.orm import joinedload

from models import UserSectionProgress, UserChapterProgress
from classes.errors import (
    AlreadyUnlockedError, CadenceNotElapsedError, EmptyCourseError, NotFoundError, SequenceViolationError
)
from classes.results import CommandResult
from utils.notifications import (
    RewardEvent, CHAPTER_UNLOCKED, SECTION_UNLOCKED, MODULE_UNLOCKED, course_action_url
)

logger = logging.getLogger(__name__)


def section_sort_key(row):
    return (row.section.order, row.section.id)


def chapter_sort_key(row):
    return (row.section.order, row.section.id, row.chapter.order, row.chapter.id)


def load_section_rows(ctx, user_id, roadmap_course_id, for_update=False):
    query = ctx.session.query(UserSectionProgress).filter(
        UserSectionProgress.user_id == user_id,
        UserSectionProgress.roadmap_course_id == roadmap_course_id,
    )
    # row locks cannot be taken through the outer join of an eager load
    if for_update:
        query = query.with_for_update()
    else:
        query = query.options(joinedload(UserSectionProgress.section))
    return sorted(query.all(), key=section_sort_key)


def load_chapter_rows(ctx, user_id, roadmap_course_id, section_id=None):
    query = (
        ctx.session.query(UserChapterProgress)
        .options(joinedload(UserChapterProgress.section), joinedload(UserChapterProgress.chapter))
        .filter(
            UserChapterProgress.user_id == user_id,
            UserChapterProgress.roadmap_course_id == roadmap_course_id,
        )
    )
    if section_id is not None:
        query = query.filter(UserChapterProgress.section_id == section_id)
    return sorted(query.all(), key=chapter_sort_key)


def group_modules(section_rows):
    modules = OrderedDict()
    for row in section_rows:
        modules.setdefault(row.module_week, []).append(row)
    return modules


def require_course_mapping(ctx, roadmap_course_id):
    mapping = ctx.catalog.get_course_mapping(roadmap_course_id)
    if mapping is None:
        raise NotFoundError(f"Course mapping {roadmap_course_id} not found.")
    return mapping


class UnlockManager:
    @staticmethod
    def unlock_chapter(ctx, user_id, roadmap_course_id, section_id, chapter_id):
        with ctx.transaction():
            mapping = require_course_mapping(ctx, roadmap_course_id)
            return UnlockManager._unlock_chapter(ctx, user_id, mapping, section_id, chapter_id)

    @staticmethod
    def unlock_section(ctx, user_id, roadmap_course_id, section_id):
        with ctx.transaction():
            mapping = require_course_mapping(ctx, roadmap_course_id)
            return UnlockManager._unlock_section(ctx, user_id, mapping, section_id)

    @staticmethod
    def unlock_module(ctx, user_id, roadmap_course_id, module_week):
        """Unlock the first section of a module week.

        The week before must be fully completed; on weekly-unlock courses the
        newest completion in that week must also be older than the configured
        interval.
        """
        with ctx.transaction():
            mapping = require_course_mapping(ctx, roadmap_course_id)

            section_rows = load_section_rows(ctx, user_id, mapping.id, for_update=True)
            if not section_rows:
                raise NotFoundError(f"User {user_id} is not enrolled in course mapping {mapping.id}.")

            modules = group_modules(section_rows)
            if module_week not in modules:
                raise NotFoundError(f"Module {module_week} does not exist in course mapping {mapping.id}.")

            first_section = modules[module_week][0]
            earlier_weeks = [week for week in modules if week < module_week]

            if earlier_weeks:
                previous_week = max(earlier_weeks)
                previous_module = modules[previous_week]
                if not all(row.is_completed for row in previous_module):
                    raise SequenceViolationError(
                        f"Cannot unlock module {module_week} until module {previous_week} is completed.",
                        module_week=module_week,
                    )
                if mapping.weekly_unlock:
                    UnlockManager._check_cadence(ctx, module_week, previous_module)

            if first_section.is_unlocked:
                raise AlreadyUnlockedError(f"Module {module_week} is already unlocked.", module_week=module_week)

            result = UnlockManager._unlock_section(ctx, user_id, mapping, first_section.section_id)

            ctx.emit(RewardEvent(
                user_id=user_id,
                roadmap_course_id=mapping.id,
                type=MODULE_UNLOCKED,
                title=f"Week {module_week} unlocked",
                body=f"Module {module_week} of {mapping.course_title or 'your course'} is now available.",
                module_week=module_week,
                section_id=first_section.section_id,
                action_url=course_action_url(mapping.id, module_week),
            ))
            logger.info(f"Module {module_week} unlocked for user {user_id} in course mapping {mapping.id}")

            result.message = f"Module {module_week} unlocked successfully."
            result.data["module_week"] = module_week
            return result

    @staticmethod
    def _check_cadence(ctx, module_week, previous_module):
        completions = [row.completed_at for row in previous_module if row.completed_at is not None]
        if not completions:
            return
        available_at = max(completions) + ctx.settings.weekly_unlock_interval
        if ctx.now() < available_at:
            raise CadenceNotElapsedError(
                f"Module {module_week} unlocks on {available_at:%Y-%m-%d %H:%M} UTC.",
                module_week=module_week,
                available_at=available_at.isoformat(),
            )

    @staticmethod
    def _unlock_section(ctx, user_id, mapping, section_id):
        target = (
            ctx.session.query(UserSectionProgress)
            .filter_by(user_id=user_id, roadmap_course_id=mapping.id, section_id=section_id)
            .with_for_update()
            .first()
        )
        if target is None:
            raise NotFoundError(f"Section {section_id} is not part of the user's progress for this course.")

        section_rows = load_section_rows(ctx, user_id, mapping.id)
        target_key = section_sort_key(target)
        blocking = [
            row.section_id for row in section_rows
            if section_sort_key(row) < target_key and not (row.is_unlocked and row.is_completed)
        ]
        if blocking:
            raise SequenceViolationError(
                "Cannot unlock this section until all previous sections are completed.",
                blocking_section_ids=blocking,
            )

        newly_unlocked = not target.is_unlocked
        if newly_unlocked:
            target.is_unlocked = True
            target.unlocked_at = ctx.now()
            ctx.emit(RewardEvent(
                user_id=user_id,
                roadmap_course_id=mapping.id,
                type=SECTION_UNLOCKED,
                title="New section unlocked",
                body=f"{target.section.title} is now available.",
                module_week=target.module_week,
                section_id=section_id,
                action_url=course_action_url(mapping.id, target.module_week, section_id),
            ))

        chapter_rows = load_chapter_rows(ctx, user_id, mapping.id, section_id=section_id)
        if not chapter_rows:
            raise EmptyCourseError(f"No chapters found under section {section_id}.")
        first_chapter = chapter_rows[0]
        UnlockManager._unlock_chapter(ctx, user_id, mapping, section_id, first_chapter.chapter_id)

        logger.debug(f"Section {section_id} unlocked for user {user_id} (newly unlocked: {newly_unlocked})")
        return CommandResult(
            True,
            f"Section {section_id} and its first chapter are unlocked." if newly_unlocked
            else f"Section {section_id} is already unlocked.",
            {
                "roadmap_course_id": mapping.id,
                "section_id": section_id,
                "module_week": target.module_week,
                "first_chapter_id": first_chapter.chapter_id,
                "already_unlocked": not newly_unlocked,
            },
        )

    @staticmethod
    def _unlock_chapter(ctx, user_id, mapping, section_id, chapter_id):
        target = (
            ctx.session.query(UserChapterProgress)
            .filter_by(user_id=user_id, roadmap_course_id=mapping.id, section_id=section_id, chapter_id=chapter_id)
            .with_for_update()
            .first()
        )
        if target is None:
            raise NotFoundError(f"Chapter {chapter_id} is not part of section {section_id} for this user.")

        data = {
            "roadmap_course_id": mapping.id,
            "section_id": section_id,
            "chapter_id": chapter_id,
        }
        if target.is_unlocked:
            data["already_unlocked"] = True
            return CommandResult(True, f"Chapter {chapter_id} is already unlocked.", data)

        if not target.section_progress.is_unlocked:
            raise SequenceViolationError(
                f"Cannot unlock chapter {chapter_id} while section {section_id} is locked.",
                section_id=section_id,
            )

        target_key = chapter_sort_key(target)
        blocking = [
            row.chapter_id for row in load_chapter_rows(ctx, user_id, mapping.id)
            if chapter_sort_key(row) < target_key and not (row.is_unlocked and row.is_completed)
        ]
        if blocking:
            raise SequenceViolationError(
                "Cannot unlock this chapter until all previous chapters are completed.",
                blocking_chapter_ids=blocking,
            )

        target.is_unlocked = True
        target.unlocked_at = ctx.now()
        ctx.session.flush()

        ctx.emit(RewardEvent(
            user_id=user_id,
            roadmap_course_id=mapping.id,
            type=CHAPTER_UNLOCKED,
            title="New chapter unlocked",
            body=f"{target.chapter.title} is now available.",
            module_week=target.section.module_week,
            section_id=section_id,
            content_ref_id=target.chapter.content_ref_id,
            action_url=course_action_url(mapping.id, target.section.module_week, section_id),
        ))
        logger.info(f"Chapter {chapter_id} unlocked for user {user_id} in course mapping {mapping.id}")

        data["already_unlocked"] = False
        return CommandResult(True, f"Chapter {chapter_id} unlocked successfully.", data)
