import logging

from models import UserCourseProgress, UserEnrolledRoadmap
from classes.errors import NotFoundError

logger = logging.getLogger(__name__)

NOT_ENROLLED = "not-enrolled"
LOCKED = "locked"
READY_TO_ENROLL = "ready-to-enroll"
IN_PROGRESS = "in-progress"
COMPLETED = "completed"


class PrerequisiteResolver:
    """Read-side course status for a user inside a roadmap.

    Nothing here writes; the unlock calls act on stored unlock state and do
    not consult this class.
    """

    @staticmethod
    def resolve_course_status(ctx, user_id, roadmap_id, roadmap_course_id):
        with ctx.transaction():
            return PrerequisiteResolver._resolve_course_status(ctx, user_id, roadmap_id, roadmap_course_id)

    @staticmethod
    def resolve_roadmap(ctx, user_id, roadmap_id):
        """Status of every course mapping in the roadmap, in roadmap order."""
        with ctx.transaction():
            return PrerequisiteResolver._resolve_roadmap(ctx, user_id, roadmap_id)

    @staticmethod
    def _resolve_course_status(ctx, user_id, roadmap_id, roadmap_course_id):
        mapping = ctx.catalog.get_course_mapping(roadmap_course_id)
        if mapping is None or mapping.roadmap_id != roadmap_id:
            raise NotFoundError(f"Course mapping {roadmap_course_id} is not part of roadmap {roadmap_id}.")

        progress = PrerequisiteResolver._course_progress(ctx, user_id, [mapping.id, mapping.prerequisite_course_mapping_id])
        return PrerequisiteResolver._status(ctx, user_id, roadmap_id, mapping, progress)

    @staticmethod
    def _resolve_roadmap(ctx, user_id, roadmap_id):
        if ctx.catalog.get_roadmap(roadmap_id) is None:
            raise NotFoundError(f"Roadmap {roadmap_id} not found.")

        mappings = ctx.catalog.list_course_mappings(roadmap_id)
        ids = [m.id for m in mappings] + [m.prerequisite_course_mapping_id for m in mappings]
        progress = PrerequisiteResolver._course_progress(ctx, user_id, ids)

        statuses = []
        for mapping in mappings:
            row = progress.get(mapping.id)
            statuses.append({
                "roadmap_course_id": mapping.id,
                "course_id": mapping.course_id,
                "title": mapping.course_title,
                "order": mapping.order,
                "is_mandatory": mapping.is_mandatory,
                "prerequisite_course_mapping_id": mapping.prerequisite_course_mapping_id,
                "status": PrerequisiteResolver._status(ctx, user_id, roadmap_id, mapping, progress),
                "progress_percent": row.progress_percent if row else 0,
            })
        return statuses

    @staticmethod
    def _course_progress(ctx, user_id, roadmap_course_ids):
        ids = {i for i in roadmap_course_ids if i is not None}
        if not ids:
            return {}
        rows = (
            ctx.session.query(UserCourseProgress)
            .filter(UserCourseProgress.user_id == user_id, UserCourseProgress.roadmap_course_id.in_(ids))
            .all()
        )
        return {row.roadmap_course_id: row for row in rows}

    @staticmethod
    def _status(ctx, user_id, roadmap_id, mapping, progress):
        own = progress.get(mapping.id)
        if own is not None:
            return COMPLETED if own.is_completed else IN_PROGRESS

        enrolled = (
            ctx.session.query(UserEnrolledRoadmap.id)
            .filter_by(user_id=user_id, roadmap_id=roadmap_id)
            .first()
        )
        if enrolled is None:
            return NOT_ENROLLED

        prerequisite_id = mapping.prerequisite_course_mapping_id
        if prerequisite_id is None:
            return READY_TO_ENROLL

        prerequisite = progress.get(prerequisite_id)
        if prerequisite is not None and prerequisite.is_completed:
            return READY_TO_ENROLL

        logger.debug(f"Course mapping {mapping.id} locked for user {user_id} behind {prerequisite_id}")
        return LOCKED
