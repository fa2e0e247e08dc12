"""
End-to-end walk through one school year.

Settings are seeded, a tenant is configured, the 2025/2026 session is created
and driven through its lifecycle, and identifiers are issued along the way.
"""

import unittest
from datetime import date

from registrar import create_app
from registrar.errors import DateConflictError, StateTransitionError
from registrar.extensions import db
from registrar.models import School
from registrar.services import (
    audit_service,
    calendar_service,
    identifier_service,
    settings_service,
    settings_store,
)


FIRST_TERM_REASON = "End of first term, all grades submitted"


class SchoolYearTests(unittest.TestCase):
    @classmethod
    def setUpClass(cls):
        cls.app = create_app({
            'TESTING': True,
            'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
            'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        })
        cls.ctx = cls.app.app_context()
        cls.ctx.push()
        db.create_all()

    @classmethod
    def tearDownClass(cls):
        db.session.remove()
        db.drop_all()
        cls.ctx.pop()

    def setUp(self):
        for table in reversed(db.metadata.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()
        settings_store.clear_cache()

        settings_service.seed_defaults()
        self.school = School(name="Greenfield High School", code="GHS", is_active=True)
        db.session.add(self.school)
        db.session.commit()

    def test_full_school_year(self):
        school = self.school
        settings_service.save(
            "website.id_formats",
            {"student_id": {"pattern": "{SCHOOL}/{PREFIX}/{YEAR}/{SEQUENCE}", "sequence_length": 4}},
            school,
            reason="Adopt school-coded student numbers",
        )

        # Session with three generated terms
        session = calendar_service.create_session(
            school, name="2025/2026", start_date=date(2025, 9, 1), end_date=date(2026, 7, 31), actor_id=1
        )
        terms = session.live_terms()
        self.assertEqual(len(terms), 3)
        self.assertTrue(all(t.status == "pending" for t in terms))
        self.assertEqual(terms[0].start_date, date(2025, 9, 1))
        self.assertEqual(terms[-1].end_date, date(2026, 7, 31))

        session = calendar_service.activate_session(session.id, school, actor_id=1)
        self.assertTrue(session.is_current)
        self.assertEqual(session.status, "active")

        # The current session is protected
        with self.assertRaises(StateTransitionError):
            calendar_service.delete_session(session.id, school, actor_id=1)

        first = calendar_service.activate_term(terms[0].id, school, actor_id=1)
        self.assertTrue(calendar_service.is_date_in_current_term(school, date(2025, 10, 15)))

        first = calendar_service.close_term(first.id, school, FIRST_TERM_REASON, actor_id=1)
        self.assertEqual(first.status, "closed")

        with self.assertRaises(DateConflictError):
            calendar_service.reopen_term(first.id, school, FIRST_TERM_REASON, date(2025, 8, 31), actor_id=1)

        self.assertEqual(identifier_service.generate("student_id", school, 2025), "GHS/STD/2025/0001")
        self.assertEqual(identifier_service.generate("student_id", school, 2025), "GHS/STD/2025/0002")
        self.assertEqual(identifier_service.generate("staff_id", school, 2025), "STF-2025-000001")

        actions = [e.action for e in audit_service.list_events(tenant_id=school.id)]
        self.assertEqual(actions, ["session.created", "session.activated", "term.activated", "term.closed"])


if __name__ == '__main__':
    unittest.main()
