import unittest
from datetime import datetime, timezone

from monitoreo.instances.models import empty_form_state, merge_form_state
from monitoreo.instances.services import InstanceService, validate_answers
from monitoreo.shared.exceptions import AppException, ValidationException, PermissionException

from support import InMemoryDB, patch_db, ADMIN, SPECIALIST, OTHER_SPECIALIST

NOW = datetime(2024, 3, 10, 12, 0, tzinfo=timezone.utc)
LEVELS = {"type": "standard", "levels": [{"key": "L1"}, {"key": "L2"}, {"key": "L3"}]}


class TestFormState(unittest.TestCase):

    def test_merge_keeps_unsent_sections(self):
        current = merge_form_state(None, {"header": {"docente": "Rosa Quispe", "grado": "3ro"}})
        merged = merge_form_state(current, {"header": {"grado": "4to"}, "general": {"observacion": "Bien"}})

        self.assertEqual(merged["header"]["docente"], "Rosa Quispe")
        self.assertEqual(merged["header"]["grado"], "4to")
        self.assertEqual(merged["general"]["observacion"], "Bien")
        self.assertEqual(merged["cierre"], empty_form_state()["cierre"])

    def test_validate_answers(self):
        template = {"levels_config": LEVELS}
        validate_answers({"questions": {"q1": {"answer": "SI", "level": "L2"}, "q2": {"answer": None}}}, template)

        with self.assertRaises(ValidationException) as ctx:
            validate_answers({"questions": {"q1": {"answer": "TAL VEZ"}, "q2": {"level": "L9"}}}, template)
        self.assertIn("questions.q1.answer", ctx.exception.details)
        self.assertIn("questions.q2.level", ctx.exception.details)


class TestInstanceService(unittest.TestCase):

    def setUp(self):
        self.db = InMemoryDB()
        self.patcher = patch_db(self.db)
        self.patcher.__enter__()
        self.service = InstanceService()
        self.templates = self.db["monitoring_templates"]
        self.templates.insert_one({
            "_id": "tpl-abierta",
            "title": "Monitoreo de aula",
            "status": "published",
            "levels_config": LEVELS,
            "availability": {"status": "active", "startAt": "2024-03-01", "endAt": "2024-03-31"},
        })
        self.templates.insert_one({
            "_id": "tpl-cerrada",
            "title": "Monitoreo anterior",
            "status": "published",
            "levels_config": LEVELS,
            "availability": {"status": "active", "startAt": "2024-01-01", "endAt": "2024-01-31"},
        })
        self.templates.insert_one({"_id": "tpl-borrador", "title": "Borrador", "status": "draft"})

    def tearDown(self):
        self.patcher.close()

    def test_start_creates_then_resumes(self):
        first = self.service.get_or_create_in_progress("tpl-abierta", SPECIALIST, now=NOW)
        again = self.service.get_or_create_in_progress("tpl-abierta", SPECIALIST, now=NOW)

        self.assertEqual(first["id"], again["id"])
        self.assertEqual(first["status"], "in_progress")
        self.assertEqual(first["data"], empty_form_state())
        self.assertEqual(self.service.count(), 1)

    def test_each_specialist_gets_own_instance(self):
        mine = self.service.get_or_create_in_progress("tpl-abierta", SPECIALIST, now=NOW)
        theirs = self.service.get_or_create_in_progress("tpl-abierta", OTHER_SPECIALIST, now=NOW)
        self.assertNotEqual(mine["id"], theirs["id"])

    def test_completed_instance_is_not_resumed(self):
        first = self.service.get_or_create_in_progress("tpl-abierta", SPECIALIST, now=NOW)
        self.service.save_instance(first["id"], {"header": {"docente": "Rosa Quispe"}}, SPECIALIST)
        self.service.complete_instance(first["id"], SPECIALIST)

        second = self.service.get_or_create_in_progress("tpl-abierta", SPECIALIST, now=NOW)
        self.assertNotEqual(first["id"], second["id"])

    def test_start_rejects_unavailable_templates(self):
        for template_id, code in (("tpl-cerrada", 409), ("tpl-borrador", 409), ("tpl-inexistente", 404)):
            with self.subTest(template=template_id):
                with self.assertRaises(AppException) as ctx:
                    self.service.get_or_create_in_progress(template_id, SPECIALIST, now=NOW)
                self.assertEqual(ctx.exception.code, code)

    def test_only_owner_or_admin_can_modify(self):
        instance = self.service.get_or_create_in_progress("tpl-abierta", SPECIALIST, now=NOW)

        with self.assertRaises(PermissionException):
            self.service.save_instance(instance["id"], {"general": {"observacion": "x"}}, OTHER_SPECIALIST)

        saved = self.service.save_instance(instance["id"], {"general": {"observacion": "Revisado"}}, ADMIN)
        self.assertEqual(saved["data"]["general"]["observacion"], "Revisado")

    def test_complete_requires_docente(self):
        instance = self.service.get_or_create_in_progress("tpl-abierta", SPECIALIST, now=NOW)
        with self.assertRaises(ValidationException) as ctx:
            self.service.complete_instance(instance["id"], SPECIALIST)
        self.assertIn("header.docente", ctx.exception.details)

    def test_owner_cannot_delete_expired_instance(self):
        self.db["monitoring_instances"].insert_one({
            "_id": "ficha-vieja", "template_id": "tpl-cerrada", "created_by": SPECIALIST["id"],
            "status": "in_progress", "data": empty_form_state(),
        })
        with self.assertRaises(PermissionException):
            self.service.delete_instance("ficha-vieja", SPECIALIST, now=NOW)
        self.assertTrue(self.service.delete_instance("ficha-vieja", ADMIN, now=NOW))

    def test_owner_deletes_active_instance(self):
        instance = self.service.get_or_create_in_progress("tpl-abierta", SPECIALIST, now=NOW)
        self.assertTrue(self.service.delete_instance(instance["id"], SPECIALIST, now=NOW))
        self.assertEqual(self.service.count(), 0)

    def test_list_scope(self):
        self.service.get_or_create_in_progress("tpl-abierta", SPECIALIST, now=NOW)
        self.service.get_or_create_in_progress("tpl-abierta", OTHER_SPECIALIST, now=NOW)

        self.assertEqual(len(self.service.list_instances(SPECIALIST)), 1)
        self.assertEqual(len(self.service.list_instances(ADMIN)), 2)
        self.assertEqual(len(self.service.list_instances(ADMIN, template_id="tpl-cerrada")), 0)


if __name__ == '__main__':
    unittest.main()
