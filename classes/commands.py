"""Caller-facing commands.

Each command runs one manager operation and folds engine errors into a
``CommandResult`` with ``success=False``; nothing is retried here.
"""
import logging
from functools import wraps

from models import UserEnrolledRoadmap
from classes.completion_manager import CompletionManager
from classes.enrolment_manager import EnrolmentManager
from classes.errors import EnrolmentPolicyError, NotFoundError, ProgressError, SequenceViolationError
from classes.prerequisite_resolver import PrerequisiteResolver, LOCKED, NOT_ENROLLED
from classes.results import CommandResult
from classes.unlock_manager import UnlockManager

logger = logging.getLogger(__name__)


def command(func):
    @wraps(func)
    def wrapper(*args, **kwargs):
        try:
            return func(*args, **kwargs)
        except ProgressError as e:
            logger.info(f"{func.__name__} refused: {e.code}: {e.message}")
            data = {"error": e.code, "status_code": e.status_code}
            if e.details:
                data["details"] = e.details
            return CommandResult(False, e.message, data)
        except ValueError as e:
            logger.info(f"{func.__name__} rejected input: {e}")
            return CommandResult(False, str(e), {"error": "invalid_request", "status_code": 400})
    return wrapper


@command
def enroll_roadmap(ctx, user_id, roadmap_id):
    return EnrolmentManager.enrol_user_to_roadmap(ctx, user_id, roadmap_id)


@command
def enroll_course(ctx, user_id, roadmap_course_id):
    with ctx.transaction():
        mapping = ctx.catalog.get_course_mapping(roadmap_course_id)
        if mapping is None:
            raise NotFoundError(f"Course mapping {roadmap_course_id} not found.")

        status = PrerequisiteResolver.resolve_course_status(ctx, user_id, mapping.roadmap_id, mapping.id)
        if status == NOT_ENROLLED:
            raise EnrolmentPolicyError(
                f"Enrol in roadmap {mapping.roadmap_id} before enrolling in its courses.",
                roadmap_id=mapping.roadmap_id,
            )
        if status == LOCKED:
            raise SequenceViolationError(
                "Complete the prerequisite course first.",
                prerequisite_course_mapping_id=mapping.prerequisite_course_mapping_id,
            )

        enrolment = (
            ctx.session.query(UserEnrolledRoadmap)
            .filter_by(user_id=user_id, roadmap_id=mapping.roadmap_id)
            .first()
        )
        return EnrolmentManager.enrol_user_to_course(ctx, user_id, mapping.id, enrolment.id if enrolment else None)


@command
def unlock_module(ctx, user_id, roadmap_course_id, module_week):
    return UnlockManager.unlock_module(ctx, user_id, roadmap_course_id, module_week)


@command
def unlock_section(ctx, user_id, roadmap_course_id, section_id):
    return UnlockManager.unlock_section(ctx, user_id, roadmap_course_id, section_id)


@command
def unlock_chapter(ctx, user_id, roadmap_course_id, section_id, chapter_id):
    return UnlockManager.unlock_chapter(ctx, user_id, roadmap_course_id, section_id, chapter_id)


@command
def complete_chapter(ctx, user_id, roadmap_course_id, chapter_id):
    return CompletionManager.complete_chapter(ctx, user_id, roadmap_course_id, chapter_id)


@command
def record_watch_progress(ctx, user_id, roadmap_course_id, chapter_id, watched_duration):
    return CompletionManager.record_watch_progress(ctx, user_id, roadmap_course_id, chapter_id, watched_duration)
