import logging

from models import UserCourseProgress, UserSectionProgress, UserChapterProgress, UserEnrolledRoadmap
from classes.errors import EmptyCourseError, NotFoundError, EnrolmentPolicyError, SequenceViolationError
from classes.results import CommandResult
from utils.fan_out import bounded_map
from utils.notifications import (
    RewardEvent, COURSE_UNLOCKED, SECTION_UNLOCKED, CHAPTER_UNLOCKED, course_action_url
)

logger = logging.getLogger(__name__)


def _first_by_order(refs):
    return min(refs, key=lambda r: (r.order, r.id))


class EnrolmentManager:
    @staticmethod
    def enrol_user_to_course(ctx, user_id, roadmap_course_id, user_enrolled_roadmap_id=None):
        """Create the user's progress tree for one course mapping.

        Re-entrant: a user already enrolled gets a success result and nothing
        is written.
        """
        with ctx.transaction():
            mapping = ctx.catalog.get_course_mapping(roadmap_course_id)
            if mapping is None:
                raise NotFoundError(f"Course mapping {roadmap_course_id} not found.")
            return EnrolmentManager._enrol_course(ctx, user_id, mapping, user_enrolled_roadmap_id)

    @staticmethod
    def enrol_user_to_roadmap(ctx, user_id, roadmap_id):
        """Enrol the user in a roadmap and cascade into its first course only."""
        with ctx.transaction():
            roadmap = ctx.catalog.get_roadmap(roadmap_id)
            if roadmap is None:
                raise NotFoundError(f"Roadmap {roadmap_id} not found.")

            mappings = ctx.catalog.list_course_mappings(roadmap_id)
            if not mappings:
                raise EmptyCourseError(f"No courses available in roadmap {roadmap_id} to enrol.")

            enrolment = EnrolmentManager._get_or_create_roadmap_enrolment(ctx, user_id, roadmap_id)

            first_course = EnrolmentManager._first_enrollable_course(ctx, user_id, mappings)
            if first_course is None:
                raise SequenceViolationError(
                    f"Every course in roadmap {roadmap_id} waits on an unmet prerequisite."
                )

            result = EnrolmentManager._enrol_course(ctx, user_id, first_course, enrolment.id)
            result.data.update({"roadmap_id": roadmap_id, "user_enrolled_roadmap_id": enrolment.id})
            return result

    @staticmethod
    def _get_or_create_roadmap_enrolment(ctx, user_id, roadmap_id):
        existing = (
            ctx.session.query(UserEnrolledRoadmap)
            .filter_by(user_id=user_id)
            .all()
        )
        for enrolment in existing:
            if enrolment.roadmap_id == roadmap_id:
                logger.info(f"User {user_id} already enrolled in roadmap {roadmap_id}")
                return enrolment

        if existing and not ctx.settings.allow_multiple_roadmaps:
            raise EnrolmentPolicyError(
                "Your organisation allows only one roadmap enrolment at a time.",
                enrolled_roadmap_ids=[e.roadmap_id for e in existing],
            )

        enrolment = UserEnrolledRoadmap(user_id=user_id, roadmap_id=roadmap_id, enrolled_at=ctx.now())
        ctx.session.add(enrolment)
        ctx.session.flush()
        return enrolment

    @staticmethod
    def _first_enrollable_course(ctx, user_id, mappings):
        completed = {
            row.roadmap_course_id
            for row in ctx.session.query(UserCourseProgress).filter_by(user_id=user_id, is_completed=True)
        }
        for mapping in mappings:
            prerequisite = mapping.prerequisite_course_mapping_id
            if prerequisite is None or prerequisite in completed:
                return mapping
        return None

    @staticmethod
    def _enrol_course(ctx, user_id, mapping, user_enrolled_roadmap_id=None):
        logger.debug(f"Starting enrolment of user {user_id} into course mapping {mapping.id}")

        existing = (
            ctx.session.query(UserCourseProgress)
            .filter_by(user_id=user_id, roadmap_course_id=mapping.id)
            .first()
        )
        if existing:
            logger.info(f"User {user_id} is already enrolled in course mapping {mapping.id}")
            return CommandResult(
                True,
                "User is already enrolled in this course.",
                {"roadmap_course_id": mapping.id, "course_progress_id": existing.id, "already_enrolled": True},
            )

        sections = ctx.catalog.list_sections(mapping.course_id)
        if not sections:
            raise EmptyCourseError(f"No sections found under course {mapping.course_id}.")

        now = ctx.now()
        course_progress = UserCourseProgress(
            user_id=user_id,
            roadmap_course_id=mapping.id,
            user_enrolled_roadmap_id=user_enrolled_roadmap_id,
            total_sections=len(sections),
            completed_sections=0,
            progress_percent=0,
            is_completed=False,
            enrolled_at=now,
        )
        ctx.session.add(course_progress)
        ctx.session.flush()

        first_section = _first_by_order(sections)
        section_rows = {}
        for section in sections:
            unlocked = section.id == first_section.id
            row = UserSectionProgress(
                user_id=user_id,
                roadmap_course_id=mapping.id,
                section_id=section.id,
                module_week=section.module_week,
                total_chapters=0,
                completed_chapters=0,
                is_unlocked=unlocked,
                unlocked_at=now if unlocked else None,
                is_completed=False,
            )
            course_progress.sections.append(row)
            section_rows[section.id] = row
        ctx.session.flush()

        def expand(section):
            chapters = ctx.catalog.list_chapters(section.id)
            if not chapters:
                raise EmptyCourseError(
                    f"No chapters found under section {section.id} of course {mapping.course_id}."
                )
            first_chapter = _first_by_order(chapters)
            rows = []
            for chapter in chapters:
                unlocked = section.id == first_section.id and chapter.id == first_chapter.id
                rows.append(UserChapterProgress(
                    user_id=user_id,
                    roadmap_course_id=mapping.id,
                    section_id=section.id,
                    chapter_id=chapter.id,
                    content_type=chapter.content_type,
                    is_unlocked=unlocked,
                    unlocked_at=now if unlocked else None,
                    is_completed=False,
                    watched_duration=0,
                    total_duration=chapter.duration,
                ))
            return section, rows, first_chapter

        expansions = bounded_map(expand, sections, concurrency=ctx.settings.enrolment_concurrency)

        first_chapter = None
        for section, rows, section_first_chapter in expansions:
            section_row = section_rows[section.id]
            section_row.total_chapters = len(rows)
            section_row.chapters.extend(rows)
            if section.id == first_section.id:
                first_chapter = section_first_chapter
        ctx.session.flush()

        EnrolmentManager._emit_enrolment_events(ctx, user_id, mapping, first_section, first_chapter)
        logger.info(f"User {user_id} enrolled in course mapping {mapping.id} ({len(sections)} sections)")

        return CommandResult(
            True,
            "User successfully enrolled in the course.",
            {
                "roadmap_course_id": mapping.id,
                "course_progress_id": course_progress.id,
                "total_sections": len(sections),
                "unlocked_section_id": first_section.id,
                "unlocked_chapter_id": first_chapter.id,
                "already_enrolled": False,
            },
        )

    @staticmethod
    def _emit_enrolment_events(ctx, user_id, mapping, first_section, first_chapter):
        title = mapping.course_title or f"Course {mapping.course_id}"
        ctx.emit(RewardEvent(
            user_id=user_id,
            roadmap_course_id=mapping.id,
            type=COURSE_UNLOCKED,
            title=f"{title} unlocked",
            body=f"You are now enrolled in {title}.",
            action_url=course_action_url(mapping.id),
        ))
        ctx.emit(RewardEvent(
            user_id=user_id,
            roadmap_course_id=mapping.id,
            type=SECTION_UNLOCKED,
            title="New section unlocked",
            body=f"{first_section.title or 'Your first section'} is ready.",
            module_week=first_section.module_week,
            section_id=first_section.id,
            action_url=course_action_url(mapping.id, first_section.module_week, first_section.id),
        ))
        ctx.emit(RewardEvent(
            user_id=user_id,
            roadmap_course_id=mapping.id,
            type=CHAPTER_UNLOCKED,
            title="New chapter unlocked",
            body=f"{first_chapter.title or 'Your first chapter'} is ready.",
            module_week=first_section.module_week,
            section_id=first_section.id,
            content_ref_id=first_chapter.content_ref_id,
            action_url=course_action_url(mapping.id, first_section.module_week, first_section.id),
        ))
