import unittest

from lumina.learning.access import (
    can_access_course,
    course_state,
    is_course_unlocked,
    is_effectively_verified,
    is_module_completed,
    is_module_locked,
    is_module_locked_by_id,
    lock_map,
    requires_license_check,
    role_satisfies,
)
from lumina.learning.models import JobTitle, Role

from tests.mocks.learning import make_course, make_user, progress_at


class CourseUnlockTests(unittest.TestCase):
    def test_courses_without_code_are_always_unlocked(self) -> None:
        course = make_course()
        for progress in (None, progress_at("c1-m1"), progress_at("c1-m2", ["c1-m1"], unlocked=False)):
            self.assertTrue(is_course_unlocked(course, progress))

    def test_blank_code_counts_as_no_code(self) -> None:
        course = make_course(access_code="")
        self.assertIsNone(course.access_code)
        self.assertTrue(is_course_unlocked(course, None))

    def test_code_gated_course_needs_unlock_flag(self) -> None:
        course = make_course("c2", access_code="zaitaku2024")
        self.assertFalse(is_course_unlocked(course, None))
        self.assertFalse(is_course_unlocked(course, progress_at("c2-m1")))
        self.assertFalse(is_course_unlocked(course, progress_at("c2-m1", unlocked=False)))
        self.assertTrue(is_course_unlocked(course, progress_at("c2-m1", unlocked=True)))

    def test_admin_bypasses_code(self) -> None:
        course = make_course("c2", access_code="zaitaku2024")
        self.assertTrue(is_course_unlocked(course, None, make_user("admin", role=Role.ADMIN)))
        self.assertFalse(is_course_unlocked(course, None, make_user("u1")))


class CourseAccessTests(unittest.TestCase):
    def test_no_user_has_no_access(self) -> None:
        self.assertFalse(can_access_course(None, make_course()))

    def test_admin_sees_every_course(self) -> None:
        admin = make_user("admin", role=Role.ADMIN, job_title=JobTitle.PHARMACIST, is_verified=False)
        for required in Role:
            course = make_course(required_role=required, access_code="secret")
            self.assertTrue(can_access_course(admin, course))

    def test_unverified_pharmacist_is_blocked_everywhere(self) -> None:
        pharmacist = make_user("u5", job_title=JobTitle.PHARMACIST, is_verified=False)
        for required in Role:
            self.assertFalse(can_access_course(pharmacist, make_course(required_role=required)))

    def test_verified_pharmacist_follows_role_rules(self) -> None:
        pharmacist = make_user("u5", job_title=JobTitle.PHARMACIST, is_verified=True)
        self.assertTrue(can_access_course(pharmacist, make_course(required_role=Role.STUDENT)))
        self.assertFalse(can_access_course(pharmacist, make_course(required_role=Role.ADVANCED)))

    def test_verification_flag_ignored_outside_regulated_jobs(self) -> None:
        for job in (JobTitle.DOCTOR, JobTitle.MEDICAL_CLERK, JobTitle.DISPENSING_CLERK, JobTitle.OTHER):
            user = make_user("u1", job_title=job, is_verified=False)
            self.assertFalse(requires_license_check(job))
            self.assertTrue(is_effectively_verified(user))
            self.assertTrue(can_access_course(user, make_course()))

    def test_role_gate_is_flat_exact_match(self) -> None:
        self.assertTrue(role_satisfies(Role.STUDENT, Role.STUDENT))
        self.assertTrue(role_satisfies(Role.ADVANCED, Role.STUDENT))
        self.assertTrue(role_satisfies(Role.ADVANCED, Role.ADVANCED))
        self.assertFalse(role_satisfies(Role.STUDENT, Role.ADVANCED))
        self.assertFalse(role_satisfies(Role.ADVANCED, Role.ADMIN))
        self.assertTrue(role_satisfies(Role.ADMIN, Role.ADVANCED))


class ModuleLockTests(unittest.TestCase):
    def setUp(self) -> None:
        self.course = make_course(modules=3)
        self.m1, self.m2, self.m3 = self.course.ordered_modules()

    def test_without_progress_only_first_module_is_open(self) -> None:
        self.assertFalse(is_module_locked(None, self.m1))
        self.assertTrue(is_module_locked(None, self.m2))
        self.assertTrue(is_module_locked(None, self.m3))

    def test_completed_and_current_modules_are_open(self) -> None:
        progress = progress_at(self.m2.id, [self.m1.id])
        self.assertFalse(is_module_locked(progress, self.m1))
        self.assertFalse(is_module_locked(progress, self.m2))
        self.assertTrue(is_module_locked(progress, self.m3))

    def test_completed_module_stays_open_after_reorder(self) -> None:
        progress = progress_at(self.m1.id, [self.m3.id])
        moved = self.m3.model_copy(update={"order": 7})
        self.assertFalse(is_module_locked(progress, moved))

    def test_earlier_uncompleted_module_is_locked(self) -> None:
        progress = progress_at(self.m3.id, [self.m2.id])
        self.assertTrue(is_module_locked(progress, self.m1))

    def test_unknown_module_id_reports_locked(self) -> None:
        progress = progress_at("c1-gone", ["c1-gone"])
        self.assertTrue(is_module_locked_by_id(self.course, progress, "c1-gone"))
        self.assertTrue(is_module_locked_by_id(self.course, None, "missing"))

    def test_empty_course_has_no_open_modules(self) -> None:
        empty = make_course("c9", modules=0)
        self.assertEqual(lock_map(empty, None), {})
        self.assertEqual(course_state(make_user(), empty, None).modules, [])

    def test_completion_predicate_is_pure(self) -> None:
        progress = progress_at(self.m2.id, [self.m1.id])
        first = is_module_completed(progress, self.m1)
        second = is_module_completed(progress, self.m1)
        self.assertEqual(first, second)
        self.assertTrue(first)
        self.assertEqual(progress.completed_module_ids, [self.m1.id])
        self.assertFalse(is_module_completed(None, self.m1))


class CourseStateTests(unittest.TestCase):
    def test_state_reports_code_and_license_flags(self) -> None:
        course = make_course("c2", access_code="zaitaku2024")
        pharmacist = make_user("u5", job_title=JobTitle.PHARMACIST, is_verified=False)
        state = course_state(pharmacist, course, None)
        self.assertFalse(state.accessible)
        self.assertTrue(state.needs_code)
        self.assertTrue(state.license_pending)
        self.assertEqual([module.locked for module in state.modules], [False, True])

    def test_completed_count_follows_progress(self) -> None:
        course = make_course()
        state = course_state(make_user(), course, progress_at("c1-m2", ["c1-m1"]))
        self.assertEqual(state.completed_count, 1)
        self.assertTrue(state.modules[1].current)


if __name__ == "__main__":
    unittest.main()
