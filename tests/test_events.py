import unittest
from datetime import date, datetime, timezone

from monitoreo.events.models import EventResponsible, build_objectives
from monitoreo.events.services import (
    EventService,
    agenda,
    calendar_view,
    category_counts,
    filter_events,
    objective_progress,
    select_day,
    validate_event_payload,
)
from monitoreo.shared.exceptions import AppException, ValidationException, PermissionException
from monitoreo.timeline.calendar_window import build_month_grid, bucket_by_day

from support import InMemoryDB, patch_db, ADMIN, SPECIALIST, OTHER_SPECIALIST

NOW = datetime(2024, 3, 10, 12, 0, tzinfo=timezone.utc)


def event_payload(**overrides):
    data = {
        "title": "Monitoreo de aula",
        "event_type": "monitoring",
        "start_at": "2024-03-11T08:00:00",
        "end_at": "2024-03-13T17:00:00",
        "responsibles": [
            {"user_id": SPECIALIST["id"], "level": "primaria", "modality": "ebr", "course": "Matemática"},
        ],
        "objectives": [{"text": "Revisar planificación"}, {"text": "  "}, {"text": "Observar sesión"}],
    }
    data.update(overrides)
    return data


def stored_event(_id, start_at, end_at, event_type="monitoring", status="active", **extra):
    event = {
        "_id": _id, "title": _id, "event_type": event_type, "status": status,
        "start_at": start_at, "end_at": end_at, "responsibles": [], "objectives": [],
    }
    event.update(extra)
    return event


class TestEventModels(unittest.TestCase):

    def test_initial_level_has_no_course(self):
        responsible = EventResponsible("e1", "u1", "inicial", "EBE", "Arte")
        self.assertEqual(responsible.to_dict()["level"], "initial")
        self.assertEqual(responsible.to_dict()["modality"], "ebe")
        self.assertIsNone(responsible.course)

    def test_objectives_skip_blank_text(self):
        objectives = build_objectives("e1", [{"text": "Uno"}, {"objective_text": ""}, {"description": "Dos"}])
        self.assertEqual([(item.text, item.order) for item in objectives], [("Uno", 0), ("Dos", 1)])


class TestValidateEventPayload(unittest.TestCase):

    def test_valid_payload(self):
        validate_event_payload(event_payload())

    def test_dates_required_and_ordered(self):
        with self.assertRaises(ValidationException) as ctx:
            validate_event_payload(event_payload(end_at=""))
        self.assertIn("dates", ctx.exception.details)
        with self.assertRaises(ValidationException):
            validate_event_payload(event_payload(start_at="2024-03-13", end_at="2024-03-11"))

    def test_course_required_except_initial(self):
        missing_course = [{"user_id": "u1", "level": "secundaria", "modality": "ebr"}]
        with self.assertRaises(ValidationException) as ctx:
            validate_event_payload(event_payload(responsibles=missing_course))
        self.assertEqual(ctx.exception.details["responsibles"], "Completa todos los datos de responsables.")
        validate_event_payload(event_payload(responsibles=[{"user_id": "u1", "level": "inicial", "modality": "ebr"}]))

    def test_repeated_specialist(self):
        repeated = [
            {"user_id": "u1", "level": "inicial", "modality": "ebr"},
            {"user_id": "u1", "level": "primaria", "modality": "ebr", "course": "Arte"},
        ]
        with self.assertRaises(ValidationException) as ctx:
            validate_event_payload(event_payload(responsibles=repeated))
        self.assertIn("repetir", ctx.exception.details["responsibles"])

    def test_responsibles_required(self):
        with self.assertRaises(ValidationException) as ctx:
            validate_event_payload(event_payload(title="", responsibles=[]))
        self.assertEqual(set(ctx.exception.details), {"title", "responsibles"})


class TestEventHelpers(unittest.TestCase):

    def setUp(self):
        self.events = [
            stored_event("propio", "2024-03-01", "2024-03-05", created_by="user-1"),
            stored_event("asignado", "2024-03-02", "2024-03-20",
                         responsibles=[{"user_id": "user-1", "level": "secondary", "modality": "ebe"}]),
            stored_event("oculto", "2024-03-03", "2024-03-20", status="hidden"),
            stored_event("ajeno", "2024-03-04", "2024-03-20", event_type="actividad",
                         responsibles=[{"user_id": "user-2", "level": "initial", "modality": "ebr"}]),
        ]

    def ids(self, events):
        return [event["_id"] for event in events]

    def test_hidden_events_only_for_admin(self):
        self.assertNotIn("oculto", self.ids(filter_events(self.events, SPECIALIST, now=NOW)))
        self.assertIn("oculto", self.ids(filter_events(self.events, ADMIN, now=NOW)))

    def test_scope_mine(self):
        mine = filter_events(self.events, SPECIALIST, {"scope": "mine"}, NOW)
        self.assertEqual(self.ids(mine), ["propio", "asignado"])

    def test_level_and_modality_filters(self):
        self.assertEqual(self.ids(filter_events(self.events, ADMIN, {"level": "secundaria"}, NOW)), ["asignado"])
        self.assertEqual(self.ids(filter_events(self.events, ADMIN, {"modality": "ebr"}, NOW)), ["ajeno"])
        self.assertEqual(len(filter_events(self.events, ADMIN, {"level": "all", "modality": ""}, NOW)), 4)

    def test_status_filter_uses_resolved_status(self):
        expired = filter_events(self.events, ADMIN, {"status": "expired"}, NOW)
        self.assertEqual(self.ids(expired), ["propio"])

    def test_objective_progress(self):
        self.assertEqual(objective_progress({"objectives": []}), 0)
        objectives = [{"completed": True}, {"completed": False}, {"completed": True}]
        self.assertEqual(objective_progress({"objectives": objectives}), 67)

    def test_category_counts(self):
        counts = category_counts(self.events + [{"event_type": "fecha_ugel"}])
        self.assertEqual(counts, {"monitoring": 3, "activity": 1, "ugel": 1})

    def test_agenda_is_sorted_and_windowed(self):
        events = [
            stored_event("tarde", "2024-03-15", "2024-03-15"),
            stored_event("pasado", "2024-02-01", "2024-02-02"),
            stored_event("temprano", "2024-03-09", "2024-03-11"),
            stored_event("lejos", "2024-03-17", "2024-03-20"),
        ]
        self.assertEqual(self.ids(agenda(events, date(2024, 3, 10))), ["temprano", "tarde"])

    def test_select_day_rules(self):
        anchor = date(2024, 3, 1)
        days = build_month_grid(anchor)
        with_today = bucket_by_day([stored_event("hoy", "2024-03-10", "2024-03-10")], days)
        self.assertEqual(select_day(days, with_today, anchor, date(2024, 3, 10)), date(2024, 3, 10))

        in_month = bucket_by_day([
            stored_event("febrero", "2024-02-27", "2024-02-27"),
            stored_event("marzo", "2024-03-20", "2024-03-20"),
        ], days)
        self.assertEqual(select_day(days, in_month, anchor, date(2024, 3, 10)), date(2024, 3, 20))

        padding_only = bucket_by_day([stored_event("febrero", "2024-02-27", "2024-02-27")], days)
        self.assertEqual(select_day(days, padding_only, anchor, date(2024, 3, 10)), date(2024, 2, 27))

        empty = bucket_by_day([], days)
        self.assertEqual(select_day(days, empty, anchor, date(2024, 3, 10)), date(2024, 3, 10))
        self.assertIsNone(select_day(days, empty, anchor, date(2025, 1, 1)))

    def test_calendar_view(self):
        view = calendar_view(self.events, date(2024, 3, 15), today=date(2024, 3, 4))

        self.assertEqual(view["anchor"], "2024-03-01")
        self.assertEqual(view["previous_month"], "2024-02-01")
        self.assertEqual(view["next_month"], "2024-04-01")
        self.assertEqual(len(view["days"]), 42)
        self.assertEqual(view["days"][0]["date"], "2024-02-26")
        self.assertFalse(view["days"][0]["in_month"])
        self.assertEqual(view["selected_day"], "2024-03-04")
        self.assertEqual(self.ids(view["selected_events"]), ["propio", "asignado", "oculto", "ajeno"])
        self.assertEqual(view["category_counts"], {"monitoring": 3, "activity": 1, "ugel": 0})

        march_4 = next(day for day in view["days"] if day["date"] == "2024-03-04")
        self.assertTrue(march_4["is_today"])
        self.assertEqual(march_4["categories"], ["activity", "monitoring"])


class TestEventService(unittest.TestCase):

    def setUp(self):
        self.db = InMemoryDB()
        self.patcher = patch_db(self.db)
        self.patcher.__enter__()
        self.service = EventService()

    def tearDown(self):
        self.patcher.close()

    def test_save_event_with_relations(self):
        saved = self.service.save_event(event_payload(), ADMIN)

        self.assertEqual(saved["created_by"], ADMIN["id"])
        self.assertEqual(len(saved["responsibles"]), 1)
        self.assertEqual(saved["responsibles"][0]["level"], "primary")
        self.assertEqual([item["text"] for item in saved["objectives"]], ["Revisar planificación", "Observar sesión"])
        self.assertEqual(saved["objective_progress"], 0)
        self.assertEqual(saved["category"], "monitoring")

    def test_monitoring_event_creates_draft_template(self):
        saved = self.service.save_event(event_payload(), ADMIN)

        template = self.db["monitoring_templates"].find_one({"_id": saved["id"]})
        self.assertEqual(template["status"], "draft")
        self.assertEqual(template["title"], "Monitoreo de aula")
        self.assertEqual(template["availability"]["status"], "active")
        self.assertEqual(len(template["levels_config"]["levels"]), 3)

    def test_saving_again_replaces_relations_and_keeps_template(self):
        saved = self.service.save_event(event_payload(), ADMIN)
        self.db["monitoring_templates"].update_one(
            {"_id": saved["id"]}, {"$set": {"status": "published", "sections": [{"title": "S", "questions": [{}]}]}}
        )

        updated = self.service.save_event(event_payload(
            id=saved["id"], status="closed", objectives=[],
            responsibles=[{"user_id": OTHER_SPECIALIST["id"], "level": "inicial", "modality": "ebr"}],
        ), ADMIN)

        self.assertEqual([item["user_id"] for item in updated["responsibles"]], [OTHER_SPECIALIST["id"]])
        self.assertEqual(updated["objectives"], [])
        template = self.db["monitoring_templates"].find_one({"_id": saved["id"]})
        self.assertEqual(template["status"], "published")
        self.assertEqual(template["availability"]["status"], "closed")
        self.assertEqual(len(template["sections"]), 1)

    def test_activity_does_not_create_template(self):
        saved = self.service.save_event(event_payload(event_type="actividad"), ADMIN)
        self.assertEqual(saved["event_type"], "activity")
        self.assertIsNone(self.db["monitoring_templates"].find_one({"_id": saved["id"]}))

    def test_delete_event_removes_template_and_relations(self):
        saved = self.service.save_event(event_payload(), ADMIN)

        self.assertTrue(self.service.delete_event(saved["id"]))

        self.assertEqual(self.db["monitoring_event_responsibles"].count_documents({}), 0)
        self.assertEqual(self.db["monitoring_event_objectives"].count_documents({}), 0)
        self.assertIsNone(self.db["monitoring_templates"].find_one({"_id": saved["id"]}))
        self.assertFalse(self.service.delete_event(saved["id"]))

    def test_toggle_visibility(self):
        saved = self.service.save_event(event_payload(event_type="actividad"), ADMIN)
        self.assertEqual(self.service.toggle_visibility(saved["id"])["status"], "hidden")
        self.assertEqual(self.service.toggle_visibility(saved["id"])["status"], "active")
        with self.assertRaises(AppException):
            self.service.toggle_visibility("no-existe")

    def test_hidden_event_is_not_found_for_specialist(self):
        saved = self.service.save_event(event_payload(event_type="actividad", status="hidden"), ADMIN)
        with self.assertRaises(AppException) as ctx:
            self.service.get_event(saved["id"], SPECIALIST)
        self.assertEqual(ctx.exception.code, 404)

    def test_toggle_objective_admin_only(self):
        saved = self.service.save_event(event_payload(), ADMIN)
        objective_id = saved["objectives"][0]["id"]

        with self.assertRaises(PermissionException):
            self.service.toggle_objective(objective_id, SPECIALIST)
        self.assertTrue(self.service.toggle_objective(objective_id, ADMIN)["completed"])
        self.assertEqual(self.service.get_event(saved["id"])["objective_progress"], 50)

    def test_load_events_draft_rules(self):
        templates = self.db["monitoring_templates"]
        templates.insert_one({
            "_id": "tpl-publicada", "title": "Publicada", "status": "published",
            "availability": {"status": "active", "startAt": "2024-03-05", "endAt": "2024-03-06"},
        })
        templates.insert_one({
            "_id": "tpl-borrador", "title": "Borrador", "status": "draft",
            "availability": {"status": "active", "startAt": "2024-03-07", "endAt": "2024-03-08"},
        })
        templates.insert_one({"_id": "tpl-sin-fechas", "title": "Sin fechas", "status": "published"})
        events = self.db["monitoring_events"]
        events.insert_one(stored_event("ev-legado", "2024-03-01", "2024-03-02", title="borrador "))
        events.insert_one(stored_event("ev-libre", "2024-03-03", "2024-03-04", title="Sin plantilla"))

        specialist_ids = [event["_id"] for event in self.service.load_events(SPECIALIST, show_drafts=True)]
        self.assertEqual(specialist_ids, ["ev-libre", "tpl-publicada"])

        admin_ids = [event["_id"] for event in self.service.load_events(ADMIN, show_drafts=True)]
        self.assertEqual(admin_ids, ["ev-legado", "ev-libre", "tpl-publicada", "tpl-borrador"])

        synthetic = next(event for event in self.service.load_events(ADMIN) if event["_id"] == "tpl-publicada")
        self.assertTrue(synthetic["synthetic"])

    def test_calendar_and_agenda(self):
        # El monitoreo queda con plantilla en borrador: solo lo ve un administrador con borradores
        self.service.save_event(event_payload(), ADMIN)
        self.service.save_event(event_payload(
            title="Taller", event_type="actividad", start_at="2024-03-11T09:00:00", end_at="2024-03-11T12:00:00"
        ), ADMIN)
        self.service.save_event(event_payload(
            title="Feria", event_type="actividad", start_at="2024-04-02T09:00:00", end_at="2024-04-02T12:00:00"
        ), ADMIN)

        calendar = self.service.get_calendar(SPECIALIST, anchor=date(2024, 3, 1), today=date(2024, 3, 10), now=NOW)
        self.assertEqual(calendar["selected_day"], "2024-03-11")
        self.assertEqual([event["title"] for event in calendar["selected_events"]], ["Taller"])

        admin_calendar = self.service.get_calendar(
            ADMIN, anchor=date(2024, 3, 1), show_drafts=True, today=date(2024, 3, 10), now=NOW
        )
        self.assertEqual([event["title"] for event in admin_calendar["selected_events"]],
                         ["Monitoreo de aula", "Taller"])

        upcoming = self.service.get_agenda(SPECIALIST, today=date(2024, 3, 10), now=NOW)
        self.assertEqual([event["title"] for event in upcoming], ["Taller"])

    def test_list_events_serializes(self):
        self.service.save_event(event_payload(event_type="fecha_ugel", title="Día del maestro"), ADMIN)
        listed = self.service.list_events(SPECIALIST, now=NOW)
        self.assertEqual(len(listed), 1)
        self.assertEqual(listed[0]["category"], "ugel")
        self.assertEqual(listed[0]["resolved_status"], "active")
        self.assertIsInstance(listed[0]["start_at"], str)


if __name__ == '__main__':
    unittest.main()
