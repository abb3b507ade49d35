"""
tests/test_prerequisite_resolver.py

Unit tests for classes/prerequisite_resolver.py.

Covers:
    - a course behind a prerequisite is locked until the prerequisite is completed
    - not-enrolled, in-progress and completed statuses, roadmap listing
"""

import unittest

from progress_fixtures import (
    OTHER_USER_ID, USER_ID, ProgressTestCase, UnreachableCatalog,
    add_mapping, course_progress_row, seed_course, seed_roadmap,
)

from classes.enrolment_manager import EnrolmentManager
from classes.errors import NotFoundError, PersistenceError
from classes.prerequisite_resolver import (
    COMPLETED, IN_PROGRESS, LOCKED, NOT_ENROLLED, READY_TO_ENROLL, PrerequisiteResolver,
)
from models import db


class TestPrerequisiteResolver(ProgressTestCase):

    def setUp(self):
        super().setUp()
        self.roadmap = seed_roadmap()
        self.course_a = add_mapping(self.roadmap, seed_course("A", [(1, ["document"])]), order=1)
        self.course_b = add_mapping(
            self.roadmap, seed_course("B", [(1, ["document"])]), order=2, prerequisite=self.course_a
        )
        self.course_c = add_mapping(self.roadmap, seed_course("C", [(1, ["document"])]), order=3)

    def status(self, mapping, user_id=USER_ID):
        return PrerequisiteResolver.resolve_course_status(self.ctx, user_id, self.roadmap.id, mapping.id)

    def test_not_enrolled_without_roadmap_enrolment(self):
        self.assertEqual(self.status(self.course_a), NOT_ENROLLED)
        self.assertEqual(self.status(self.course_b), NOT_ENROLLED)

    def test_prerequisite_gates_later_course(self):
        EnrolmentManager.enrol_user_to_roadmap(self.ctx, USER_ID, self.roadmap.id)

        self.assertEqual(self.status(self.course_a), IN_PROGRESS)
        self.assertEqual(self.status(self.course_b), LOCKED)
        self.assertEqual(self.status(self.course_c), READY_TO_ENROLL)

        progress = course_progress_row(USER_ID, self.course_a.id)
        progress.is_completed = True
        db.session.commit()

        self.assertEqual(self.status(self.course_a), COMPLETED)
        self.assertEqual(self.status(self.course_b), READY_TO_ENROLL)

    def test_status_is_per_user(self):
        EnrolmentManager.enrol_user_to_roadmap(self.ctx, USER_ID, self.roadmap.id)
        self.assertEqual(self.status(self.course_a, OTHER_USER_ID), NOT_ENROLLED)

    def test_mapping_from_another_roadmap(self):
        other = seed_roadmap("Other")
        foreign = add_mapping(other, seed_course("D", [(1, ["document"])]), order=1)

        with self.assertRaises(NotFoundError):
            self.status(foreign)

    def test_resolve_roadmap_lists_courses_in_order(self):
        EnrolmentManager.enrol_user_to_roadmap(self.ctx, USER_ID, self.roadmap.id)

        courses = PrerequisiteResolver.resolve_roadmap(self.ctx, USER_ID, self.roadmap.id)

        self.assertEqual([c["roadmap_course_id"] for c in courses], [self.course_a.id, self.course_b.id, self.course_c.id])
        self.assertEqual([c["status"] for c in courses], [IN_PROGRESS, LOCKED, READY_TO_ENROLL])
        self.assertEqual(courses[0]["title"], "A")
        self.assertEqual(courses[1]["prerequisite_course_mapping_id"], self.course_a.id)

    def test_store_failure_is_reported_as_persistence_error(self):
        ctx = self.make_context(catalog=UnreachableCatalog(db.session))

        with self.assertRaises(PersistenceError):
            PrerequisiteResolver.resolve_course_status(ctx, USER_ID, self.roadmap.id, self.course_a.id)
        with self.assertRaises(PersistenceError):
            PrerequisiteResolver.resolve_roadmap(ctx, USER_ID, self.roadmap.id)

    def test_resolve_unknown_roadmap(self):
        with self.assertRaises(NotFoundError):
            PrerequisiteResolver.resolve_roadmap(self.ctx, USER_ID, 999)


if __name__ == "__main__":
    unittest.main()
