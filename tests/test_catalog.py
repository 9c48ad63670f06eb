import unittest

from lumina.core.validation import validate_module_order
from lumina.learning.catalog import CourseCatalog
from lumina.learning.errors import CatalogIntegrityError, CourseNotFoundError, UnknownModuleError
from lumina.learning.models import Role

from tests.mocks.learning import make_course, make_module


class CourseCatalogTests(unittest.TestCase):
    def setUp(self) -> None:
        self.catalog = CourseCatalog([make_course("c1", modules=3), make_course("c2", modules=1)])

    def test_new_course_gets_fresh_id_and_no_modules(self) -> None:
        draft = self.catalog.new_draft(title="Home care", modules=["ignored"], id="c1")
        course = self.catalog.commit(draft)
        self.assertTrue(course.id.startswith("c-"))
        self.assertNotIn(course.id, {"c1", "c2"})
        self.assertEqual(course.modules, [])
        self.assertEqual(course.required_role, Role.STUDENT)
        self.assertEqual(len(self.catalog), 3)

    def test_draft_edits_do_not_leak_before_commit(self) -> None:
        draft = self.catalog.edit("c1")
        draft.update(title="Renamed")
        draft.add_module(title="Extra")
        self.assertEqual(self.catalog.get("c1").title, "Course c1")
        self.assertEqual(len(self.catalog.get("c1").modules), 3)
        self.catalog.commit(draft)
        self.assertEqual(self.catalog.get("c1").title, "Renamed")

    def test_add_module_appends_with_next_order(self) -> None:
        draft = self.catalog.edit("c1")
        module = draft.add_module(title="Fourth", order=99)
        self.assertEqual(module.order, 4)
        self.assertTrue(module.id.startswith("c1-m"))

    def test_delete_module_renumbers_survivors(self) -> None:
        draft = self.catalog.edit("c1")
        draft.delete_module("c1-m2")
        course = self.catalog.commit(draft)
        self.assertEqual([(m.id, m.order) for m in course.ordered_modules()], [("c1-m1", 1), ("c1-m3", 2)])
        added = self.catalog.edit("c1")
        module = added.add_module(title="Again")
        self.assertEqual(module.order, 3)

    def test_delete_unknown_module_raises(self) -> None:
        with self.assertRaises(UnknownModuleError):
            self.catalog.edit("c1").delete_module("nope")

    def test_update_module_cannot_touch_order(self) -> None:
        draft = self.catalog.edit("c1")
        with self.assertRaises(ValueError):
            draft.update_module("c1-m1", order=5)
        updated = draft.update_module("c1-m1", title="Intro")
        self.assertEqual(updated.title, "Intro")
        self.assertEqual(updated.order, 1)

    def test_replace_rejects_order_gaps(self) -> None:
        broken = make_course("c1", modules=0).model_copy(
            update={"modules": [make_module("c1", 1), make_module("c1", 3)]}
        )
        with self.assertRaises(CatalogIntegrityError) as ctx:
            self.catalog.replace(broken)
        self.assertIn("gaps", ctx.exception.errors[0])
        self.assertEqual(len(self.catalog.get("c1").modules), 3)

    def test_replace_requires_existing_course(self) -> None:
        with self.assertRaises(CourseNotFoundError):
            self.catalog.replace(make_course("c404"))

    def test_delete_course(self) -> None:
        removed = self.catalog.delete("c2")
        self.assertEqual(removed.id, "c2")
        self.assertIsNone(self.catalog.find("c2"))
        with self.assertRaises(CourseNotFoundError):
            self.catalog.delete("c2")

    def test_integrity_report_covers_each_course(self) -> None:
        report = self.catalog.integrity_report()
        self.assertEqual(set(report), {"c1", "c2"})
        self.assertTrue(all(result.valid for result in report.values()))


class ModuleOrderValidationTests(unittest.TestCase):
    def test_duplicates_are_reported(self) -> None:
        course = make_course("c1", modules=0).model_copy(
            update={"modules": [make_module("c1", 1), make_module("c1", 1, id="c1-other"), make_module("c1", 2, id="c1-m1")]}
        )
        result = validate_module_order(course)
        self.assertFalse(result.valid)
        self.assertTrue(any("Duplicate module ids" in error for error in result.errors))
        self.assertTrue(any("Duplicate module orders" in error for error in result.errors))

    def test_empty_course_is_valid_with_warning(self) -> None:
        result = validate_module_order(make_course("c9", modules=0))
        self.assertTrue(result.valid)
        self.assertTrue(result.has_warnings)


if __name__ == "__main__":
    unittest.main()
