"""
tests/test_commands.py

Unit tests for classes/commands.py: engine errors come back as
``success=False`` results and course enrolment is gated on the resolver.
"""

import unittest

from progress_fixtures import (
    USER_ID, ProgressTestCase, UnreachableCatalog,
    add_mapping, course_progress_row, seed_course, seed_roadmap,
)

from classes import commands
from models import db


class TestCommands(ProgressTestCase):

    def setUp(self):
        super().setUp()
        self.roadmap = seed_roadmap()
        self.basics = seed_course("Basics", [(1, ["document"]), (2, ["video"])], video_duration=60)
        self.deep_dive = seed_course("Deep dive", [(1, ["document"])])
        self.first = add_mapping(self.roadmap, self.basics, order=1)
        self.second = add_mapping(self.roadmap, self.deep_dive, order=2, prerequisite=self.first)

    def test_enroll_roadmap_succeeds(self):
        result = commands.enroll_roadmap(self.ctx, USER_ID, self.roadmap.id)

        self.assertTrue(result.success)
        self.assertEqual(result.to_dict()["data"]["roadmap_course_id"], self.first.id)

    def test_enroll_course_requires_roadmap_enrolment(self):
        result = commands.enroll_course(self.ctx, USER_ID, self.first.id)

        self.assertFalse(result.success)
        self.assertEqual(result.data["error"], "enrolment_policy")
        self.assertEqual(result.data["status_code"], 403)
        self.assertIsNone(course_progress_row(USER_ID, self.first.id))

    def test_enroll_course_refuses_locked_course(self):
        commands.enroll_roadmap(self.ctx, USER_ID, self.roadmap.id)

        result = commands.enroll_course(self.ctx, USER_ID, self.second.id)

        self.assertFalse(result.success)
        self.assertEqual(result.data["error"], "sequence_violation")
        self.assertEqual(result.data["details"]["prerequisite_course_mapping_id"], self.first.id)

    def test_enroll_course_after_prerequisite(self):
        enrolled = commands.enroll_roadmap(self.ctx, USER_ID, self.roadmap.id)
        progress = course_progress_row(USER_ID, self.first.id)
        progress.is_completed = True
        db.session.commit()

        result = commands.enroll_course(self.ctx, USER_ID, self.second.id)

        self.assertTrue(result.success)
        self.assertEqual(
            course_progress_row(USER_ID, self.second.id).user_enrolled_roadmap_id,
            enrolled.data["user_enrolled_roadmap_id"],
        )

    def test_enroll_unknown_course(self):
        result = commands.enroll_course(self.ctx, USER_ID, 404)
        self.assertFalse(result.success)
        self.assertEqual(result.data["status_code"], 404)

    def test_unlock_and_complete_flow(self):
        commands.enroll_roadmap(self.ctx, USER_ID, self.roadmap.id)
        first_section, second_section = self.basics.sections

        refused = commands.unlock_module(self.ctx, USER_ID, self.first.id, 2)
        self.assertFalse(refused.success)
        self.assertEqual(refused.data["error"], "sequence_violation")

        done = commands.complete_chapter(self.ctx, USER_ID, self.first.id, first_section.chapters[0].id)
        self.assertTrue(done.success)

        unlocked = commands.unlock_module(self.ctx, USER_ID, self.first.id, 2)
        self.assertTrue(unlocked.success)
        self.assertEqual(unlocked.message, "Module 2 unlocked successfully.")

        again = commands.unlock_section(self.ctx, USER_ID, self.first.id, second_section.id)
        self.assertTrue(again.data["already_unlocked"])

        watched = commands.record_watch_progress(self.ctx, USER_ID, self.first.id, second_section.chapters[0].id, 60)
        self.assertTrue(watched.data["course_completed"])

    def test_unlock_chapter_out_of_order(self):
        commands.enroll_roadmap(self.ctx, USER_ID, self.roadmap.id)
        second_section = self.basics.sections[1]

        result = commands.unlock_chapter(self.ctx, USER_ID, self.first.id, second_section.id, second_section.chapters[0].id)

        self.assertFalse(result.success)
        self.assertEqual(result.data["status_code"], 409)

    def test_invalid_watch_duration(self):
        commands.enroll_roadmap(self.ctx, USER_ID, self.roadmap.id)

        result = commands.record_watch_progress(self.ctx, USER_ID, self.first.id, self.basics.sections[0].chapters[0].id, -1)

        self.assertFalse(result.success)
        self.assertEqual(result.data["error"], "invalid_request")

    def test_non_numeric_watch_duration(self):
        commands.enroll_roadmap(self.ctx, USER_ID, self.roadmap.id)

        result = commands.record_watch_progress(self.ctx, USER_ID, self.first.id, self.basics.sections[0].chapters[0].id, "10")

        self.assertFalse(result.success)
        self.assertEqual(result.data["error"], "invalid_request")
        self.assertEqual(result.data["status_code"], 400)

    def test_store_failure_during_enrolment_gate(self):
        commands.enroll_roadmap(self.ctx, USER_ID, self.roadmap.id)
        ctx = self.make_context(catalog=UnreachableCatalog(db.session))

        result = commands.enroll_course(ctx, USER_ID, self.second.id)

        self.assertFalse(result.success)
        self.assertEqual(result.data["error"], "persistence_error")
        self.assertEqual(result.data["status_code"], 500)


if __name__ == "__main__":
    unittest.main()
