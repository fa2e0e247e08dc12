"""Identifier generation tests: patterns, prefixes, counters and corrupt configuration."""

import pytest

from registrar.errors import ConfigurationError, InvalidArgumentError
from registrar.extensions import db
from registrar.models import IdentifierSequence, SettingsRecord, School
from registrar.services import identifier_service, settings_service
from registrar.services.identifier_service import render


class TestRender:
    def test_substitutes_every_known_placeholder(self):
        value = render(
            "{SCHOOL}/{PREFIX}/{YEAR}/{SEQUENCE}",
            prefix="INV",
            school="GHS",
            year=2027,
            sequence=789,
            length=6,
        )
        assert value == "GHS/INV/2027/000789"

    def test_unknown_placeholders_are_left_untouched(self):
        value = render("{PREFIX}-{CAMPUS}-{SEQUENCE}", prefix="STD", school="GHS", year=2025, sequence=1, length=4)
        assert value == "STD-{CAMPUS}-0001"

    def test_repeated_separators_collapse_and_edges_trim(self):
        value = render("{PREFIX}--{SCHOOL}-{SEQUENCE}-", prefix="", school="GHS", year=2025, sequence=3, length=4)
        assert value == "GHS-0003"

    def test_sequence_longer_than_length_is_not_truncated(self):
        assert render("{SEQUENCE}", prefix="", school="", year=2025, sequence=123456, length=4) == "123456"

    def test_placeholder_text_inside_a_value_is_not_expanded(self):
        value = render("{PREFIX}-{YEAR}-{SEQUENCE}", prefix="S{YEAR}", school="GHS", year=2025, sequence=1, length=6)
        assert value == "S{YEAR}-2025-000001"


class TestValidatePattern:
    @pytest.mark.parametrize("pattern", ["{PREFIX}-{YEAR}-{SEQUENCE}", "{SCHOOL}/{SEQUENCE}", "ID.{SEQUENCE}"])
    def test_accepts_valid_patterns(self, pattern):
        identifier_service.validate_pattern(pattern)

    @pytest.mark.parametrize("pattern", ["{PREFIX}-{YEAR}", "{PREFIX} {SEQUENCE}", "", "{sequence}", "X" * 95 + "{SEQUENCE}"])
    def test_rejects_invalid_patterns(self, pattern):
        with pytest.raises(InvalidArgumentError):
            identifier_service.validate_pattern(pattern)


class TestGenerate:
    def test_default_format_uses_prefix_year_and_sequence(self, defaults, school_a):
        assert identifier_service.generate("student_id", school_a, 2025) == "STD-2025-000001"
        assert identifier_service.generate("student_id", school_a, 2025) == "STD-2025-000002"

    def test_missing_format_entry_falls_back_to_default_pattern(self, defaults, school_a):
        assert identifier_service.generate("library_book", school_a, 2025) == "LIB-2025-000001"

    def test_prefix_falls_back_to_type_initials(self, db_session, school_a):
        assert identifier_service.generate("transfer", school_a, 2025) == "TRA-2025-000001"

    def test_prefix_lookup_strips_id_suffix(self, db_session, school_a):
        settings_service.save("website.prefixes", {"guardian": "GRD"})
        assert identifier_service.generate("guardian_id", school_a, 2025) == "GRD-2025-000001"

    def test_tenant_pattern_overrides_global(self, defaults, school_a):
        settings_service.save(
            "website.id_formats",
            {"invoice": {"pattern": "{SCHOOL}/{PREFIX}/{YEAR}/{SEQUENCE}", "sequence_length": 6}},
            school_a,
        )
        assert identifier_service.generate("invoice", school_a, 2027) == "GHS/INV/2027/000001"

    def test_tenant_prefix_override(self, defaults, school_a, school_b):
        settings_service.save("website.prefixes", {"student_id": "GRN"}, school_a)

        assert identifier_service.generate("student_id", school_a, 2025) == "GRN-2025-000001"
        assert identifier_service.generate("student_id", school_b, 2025) == "STD-2025-000001"

    def test_school_placeholder_falls_back_to_name(self, defaults, db_session):
        school = School(name="Hillcrest", code=None, is_active=True)
        db_session.add(school)
        db_session.commit()
        settings_service.save(
            "website.id_formats",
            {"staff_id": {"pattern": "{SCHOOL}-{SEQUENCE}", "sequence_length": 4}},
            school,
        )
        assert identifier_service.generate("staff_id", school, 2025) == "HIL-0001"

    def test_counters_are_scoped_by_tenant_type_and_year(self, defaults, school_a, school_b):
        identifier_service.generate("student_id", school_a, 2025)
        identifier_service.generate("student_id", school_a, 2025)

        assert identifier_service.generate("student_id", school_a, 2026) == "STD-2026-000001"
        assert identifier_service.generate("staff_id", school_a, 2025) == "STF-2025-000001"
        assert identifier_service.generate("student_id", school_b, 2025) == "STD-2025-000001"
        assert identifier_service.peek_next_sequence("student_id", school_a, 2025) == 3

    def test_sequence_numbers_strictly_increase(self, defaults, school_a):
        ids = [identifier_service.generate("receipt", school_a, 2025) for _ in range(5)]
        numbers = [int(i.rsplit("-", 1)[1]) for i in ids]
        assert numbers == [1, 2, 3, 4, 5]

    def test_year_defaults_to_current_year(self, defaults, school_a):
        from registrar.time_utils import utcnow

        identifier = identifier_service.generate("student_id", school_a)
        assert identifier == f"STD-{utcnow().year}-000001"

    @pytest.mark.parametrize("id_type", ["", "Student", "student id", None, "x" * 40])
    def test_invalid_id_types_are_rejected(self, db_session, school_a, id_type):
        with pytest.raises(InvalidArgumentError):
            identifier_service.generate(id_type, school_a, 2025)

    def test_tenant_is_required(self, db_session):
        with pytest.raises(InvalidArgumentError):
            identifier_service.generate("student_id", None, 2025)


class TestCorruptConfiguration:
    def _store_raw(self, db_session, school, document):
        """Write a document bypassing validation, as a bad import or manual edit would."""
        db_session.add(SettingsRecord(
            key="website.id_formats",
            scope_type="TENANT",
            scope_id=school.id,
            tenant_id=school.id,
            value_json=document,
        ))
        db_session.commit()

    def test_corrupt_pattern_raises_configuration_error(self, defaults, school_a):
        self._store_raw(db.session, school_a, {"student_id": {"pattern": "{PREFIX} {SEQUENCE}", "sequence_length": 6}})

        with pytest.raises(ConfigurationError):
            identifier_service.generate("student_id", school_a, 2025)
        assert db.session.query(IdentifierSequence).count() == 0

    def test_out_of_range_sequence_length_raises(self, defaults, school_a):
        self._store_raw(db.session, school_a, {"student_id": {"pattern": "{PREFIX}-{SEQUENCE}", "sequence_length": 20}})

        with pytest.raises(ConfigurationError):
            identifier_service.generate("student_id", school_a, 2025)

    def test_non_object_entry_raises(self, defaults, school_a):
        self._store_raw(db.session, school_a, {"student_id": "{PREFIX}-{SEQUENCE}"})

        with pytest.raises(ConfigurationError):
            identifier_service.generate("student_id", school_a, 2025)

    def test_overlong_identifier_raises(self, defaults, school_a):
        settings_service.save("website.prefixes", {"student_id": "ABCDEFGHIJ"}, school_a)
        settings_service.save(
            "website.id_formats",
            {"student_id": {"pattern": "{PREFIX}-{PREFIX}-{PREFIX}-{PREFIX}-{PREFIX}-{SEQUENCE}", "sequence_length": 8}},
            school_a,
        )
        with pytest.raises(ConfigurationError):
            identifier_service.generate("student_id", school_a, 2025)
        # The rolled-back allocation leaves the counter untouched
        assert identifier_service.peek_next_sequence("student_id", school_a, 2025) == 1


class TestResetCounter:
    def test_reset_restarts_sequence(self, defaults, school_a):
        identifier_service.generate("invoice", school_a, 2025)
        identifier_service.generate("invoice", school_a, 2025)

        identifier_service.reset_counter("invoice", school_a, 2025)
        assert identifier_service.generate("invoice", school_a, 2025) == "INV-2025-000001"

    def test_reset_can_start_at_an_offset(self, defaults, school_a):
        identifier_service.reset_counter("invoice", school_a, 2025, start_at=500)
        assert identifier_service.generate("invoice", school_a, 2025) == "INV-2025-000500"

    def test_reset_rejects_non_positive_start(self, defaults, school_a):
        with pytest.raises(InvalidArgumentError):
            identifier_service.reset_counter("invoice", school_a, 2025, start_at=0)
