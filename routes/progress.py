import logging

from flask import Blueprint, jsonify, g, request, current_app

from models import db
from classes import commands
from classes.context import ProgressContext
from classes.errors import ProgressError
from classes.prerequisite_resolver import PrerequisiteResolver
from classes.progress_manager import ProgressManager
from utils.helpers import require_non_negative_int
from utils.utils import login_required

logger = logging.getLogger(__name__)

progress_bp = Blueprint("progress", __name__)


def get_context():
    if "progress_ctx" not in g:
        g.progress_ctx = ProgressContext.from_app(current_app, db.session)
    return g.progress_ctx


def current_user_id():
    return g.user.get("user_id")


def command_response(result):
    status_code = result.data.pop("status_code", 200 if result.success else 400)
    return jsonify(result.to_dict()), status_code


@progress_bp.errorhandler(ProgressError)
def handle_progress_error(error):
    logger.info(f"{request.method} {request.path} failed: {error.code}")
    return jsonify(error.to_dict()), error.status_code


# Enrol in a roadmap and its first course
@progress_bp.route("/roadmaps/<int:roadmap_id>/enrol", methods=["POST"])
@login_required
def enrol_roadmap(roadmap_id):
    result = commands.enroll_roadmap(get_context(), current_user_id(), roadmap_id)
    return command_response(result)


# Enrol in a single course of a roadmap the user is on
@progress_bp.route("/courses/<int:roadmap_course_id>/enrol", methods=["POST"])
@login_required
def enrol_course(roadmap_course_id):
    result = commands.enroll_course(get_context(), current_user_id(), roadmap_course_id)
    return command_response(result)


@progress_bp.route("/courses/<int:roadmap_course_id>/modules/<int:module_week>/unlock", methods=["POST"])
@login_required
def unlock_module(roadmap_course_id, module_week):
    result = commands.unlock_module(get_context(), current_user_id(), roadmap_course_id, module_week)
    return command_response(result)


@progress_bp.route("/courses/<int:roadmap_course_id>/sections/<int:section_id>/unlock", methods=["POST"])
@login_required
def unlock_section(roadmap_course_id, section_id):
    result = commands.unlock_section(get_context(), current_user_id(), roadmap_course_id, section_id)
    return command_response(result)


@progress_bp.route(
    "/courses/<int:roadmap_course_id>/sections/<int:section_id>/chapters/<int:chapter_id>/unlock",
    methods=["POST"],
)
@login_required
def unlock_chapter(roadmap_course_id, section_id, chapter_id):
    result = commands.unlock_chapter(get_context(), current_user_id(), roadmap_course_id, section_id, chapter_id)
    return command_response(result)


@progress_bp.route("/courses/<int:roadmap_course_id>/chapters/<int:chapter_id>/complete", methods=["POST"])
@login_required
def complete_chapter(roadmap_course_id, chapter_id):
    result = commands.complete_chapter(get_context(), current_user_id(), roadmap_course_id, chapter_id)
    return command_response(result)


# Video players report how far the user has watched
@progress_bp.route("/courses/<int:roadmap_course_id>/chapters/<int:chapter_id>/watch", methods=["POST"])
@login_required
def record_watch(roadmap_course_id, chapter_id):
    data = request.get_json(silent=True)
    try:
        watched = require_non_negative_int(data, "watched_duration")
    except ValueError as e:
        return jsonify({"error": "invalid_request", "message": str(e)}), 400

    result = commands.record_watch_progress(get_context(), current_user_id(), roadmap_course_id, chapter_id, watched)
    return command_response(result)


@progress_bp.route("/courses/<int:roadmap_course_id>/summary", methods=["GET"])
@login_required
def course_summary(roadmap_course_id):
    overview = ProgressManager.course_overview(get_context(), current_user_id(), roadmap_course_id)
    return jsonify(overview.to_dict()), 200


@progress_bp.route("/roadmaps/<int:roadmap_id>/courses/<int:roadmap_course_id>/status", methods=["GET"])
@login_required
def course_status(roadmap_id, roadmap_course_id):
    status = PrerequisiteResolver.resolve_course_status(get_context(), current_user_id(), roadmap_id, roadmap_course_id)
    return jsonify({"roadmap_id": roadmap_id, "roadmap_course_id": roadmap_course_id, "status": status}), 200


@progress_bp.route("/roadmaps/<int:roadmap_id>/courses", methods=["GET"])
@login_required
def roadmap_courses(roadmap_id):
    courses = PrerequisiteResolver.resolve_roadmap(get_context(), current_user_id(), roadmap_id)
    return jsonify({"roadmap_id": roadmap_id, "courses": courses}), 200
