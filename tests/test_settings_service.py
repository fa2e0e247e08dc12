"""
Settings resolution and persistence tests.

Covers GLOBAL -> TENANT -> BRANCH precedence, null filtering, full-replace
writes, the opt-in patch path, validation and cache invalidation.
"""

import pytest

from registrar.errors import InvalidArgumentError
from registrar.models import SettingAudit
from registrar.services import settings_service, settings_store
from registrar.services.settings_service import merge_documents
from registrar.services.settings_store import branch_scope, global_scope, tenant_scope


class TestMergeDocuments:
    def test_override_replaces_scalars_and_keeps_other_leaves(self):
        base = {"a": 1, "b": 2}
        assert merge_documents(base, {"b": 3}) == {"a": 1, "b": 3}

    def test_null_leaves_are_ignored_at_any_depth(self):
        base = {"smtp": {"host": "mail.example.com", "port": 25}, "name": "School"}
        override = {"smtp": {"host": None, "port": 587}, "name": None}
        assert merge_documents(base, override) == {
            "smtp": {"host": "mail.example.com", "port": 587},
            "name": "School",
        }

    def test_nested_maps_merge_key_by_key(self):
        base = {"notify": {"fee_payment": {"admin": True, "parent": True}}}
        override = {"notify": {"fee_payment": {"parent": False}}}
        assert merge_documents(base, override) == {
            "notify": {"fee_payment": {"admin": True, "parent": False}}
        }

    def test_lists_replace_wholesale(self):
        base = {"types": ["pdf", "doc", "png"]}
        assert merge_documents(base, {"types": ["pdf"]}) == {"types": ["pdf"]}

    def test_all_null_branch_does_not_create_keys(self):
        assert merge_documents({"a": 1}, {"b": {"c": None}}) == {"a": 1}

    def test_all_null_branch_keeps_scalar_base(self):
        assert merge_documents({"a": 1}, {"a": {"x": None}}) == {"a": 1}

    def test_inputs_are_not_mutated(self):
        base = {"a": {"b": 1}}
        override = {"a": {"c": 2}}
        merged = merge_documents(base, override)
        merged["a"]["b"] = 99
        assert base == {"a": {"b": 1}}
        assert override == {"a": {"c": 2}}


class TestResolve:
    def test_without_tenant_returns_global_document(self, db_session):
        settings_service.save("general.mail", {"host": "smtp.global", "from": None})
        assert settings_service.resolve("general.mail") == {"host": "smtp.global", "from": None}

    def test_missing_document_resolves_to_empty(self, db_session, school_a):
        assert settings_service.resolve("general.unknown", school_a) == {}

    def test_tenant_overrides_global(self, db_session, school_a):
        settings_service.save("authentication", {"login_throttle_max": 5, "otp_length": 6})
        settings_service.save("authentication", {"login_throttle_max": 3}, school_a)

        effective = settings_service.resolve("authentication", school_a)
        assert effective == {"login_throttle_max": 3, "otp_length": 6}

    def test_null_tenant_value_never_masks_global(self, db_session, school_a):
        settings_service.save("website.company", {"legal_name": "Default", "tax_id": "T-1"})
        settings_service.save("website.company", {"legal_name": "Greenfield", "tax_id": None}, school_a)

        effective = settings_service.resolve("website.company", school_a)
        assert effective == {"legal_name": "Greenfield", "tax_id": "T-1"}

    def test_branch_overrides_tenant(self, db_session, school_a, branch_a):
        settings_service.save("website.themes", {"primary_color": "indigo", "compact_mode": False})
        settings_service.save("website.themes", {"primary_color": "green"}, school_a)
        settings_service.save("website.themes", {"compact_mode": True}, school_a, branch_id=branch_a.id)

        assert settings_service.resolve("website.themes", school_a, branch_id=branch_a.id) == {
            "primary_color": "green",
            "compact_mode": True,
        }
        assert settings_service.resolve("website.themes", school_a) == {
            "primary_color": "green",
            "compact_mode": False,
        }

    def test_tenants_are_isolated(self, db_session, school_a, school_b):
        settings_service.save("website.prefixes", {"student_id": "STD"})
        settings_service.save("website.prefixes", {"student_id": "GHS"}, school_a)

        assert settings_service.resolve("website.prefixes", school_b) == {"student_id": "STD"}

    def test_foreign_branch_is_rejected(self, db_session, school_b, branch_a):
        with pytest.raises(InvalidArgumentError):
            settings_service.resolve("website.themes", school_b, branch_id=branch_a.id)

    def test_returned_document_is_a_copy(self, db_session, school_a):
        settings_service.save("general.integrations", {"slack": {"enabled": False}})
        first = settings_service.resolve("general.integrations", school_a)
        first["slack"]["enabled"] = True

        assert settings_service.resolve("general.integrations", school_a) == {"slack": {"enabled": False}}

    def test_layers_show_each_scope(self, db_session, school_a):
        settings_service.save("user_management", {"allow_student_signin": True})
        settings_service.save("user_management", {"allow_student_signin": False}, school_a)

        result = settings_service.resolve_layers("user_management", school_a)
        assert result["layers"]["GLOBAL"] == {"allow_student_signin": True}
        assert result["layers"]["TENANT"] == {"allow_student_signin": False}
        assert result["layers"]["BRANCH"] is None
        assert result["effective"] == {"allow_student_signin": False}

    def test_empty_key_is_invalid(self, db_session):
        with pytest.raises(InvalidArgumentError):
            settings_service.resolve("")


class TestSave:
    def test_save_is_full_replace(self, db_session, school_a):
        settings_service.save("website.themes", {"primary_color": "red", "compact_mode": True}, school_a)
        settings_service.save("website.themes", {"primary_color": "blue"}, school_a)

        assert settings_store.get_document(tenant_scope(school_a.id), "website.themes") == {
            "primary_color": "blue"
        }

    def test_patch_merges_into_stored_document(self, db_session, school_a):
        settings_service.save("website.themes", {"primary_color": "red", "compact_mode": True}, school_a)
        settings_service.patch("website.themes", {"primary_color": "blue"}, school_a)

        assert settings_store.get_document(tenant_scope(school_a.id), "website.themes") == {
            "primary_color": "blue",
            "compact_mode": True,
        }

    def test_save_targets_branch_when_given(self, db_session, school_a, branch_a):
        settings_service.save("website.themes", {"compact_mode": True}, school_a, branch_id=branch_a.id)

        assert settings_store.get_document(branch_scope(school_a.id, branch_a.id), "website.themes") == {
            "compact_mode": True
        }
        assert settings_store.get_document(tenant_scope(school_a.id), "website.themes") is None

    @pytest.mark.parametrize("key", ["", "   ", "Website", "website..themes", "website.themes!"])
    def test_invalid_keys_are_rejected(self, db_session, key):
        with pytest.raises(InvalidArgumentError):
            settings_service.save(key, {"a": 1})

    @pytest.mark.parametrize("document", [{}, None, [], "text"])
    def test_empty_or_non_mapping_documents_are_rejected(self, db_session, document):
        with pytest.raises(InvalidArgumentError):
            settings_service.save("website.themes", document)

    def test_id_format_pattern_is_validated(self, db_session, school_a):
        with pytest.raises(InvalidArgumentError):
            settings_service.save(
                "website.id_formats",
                {"student_id": {"pattern": "{PREFIX} {SEQUENCE}", "sequence_length": 6}},
                school_a,
            )
        with pytest.raises(InvalidArgumentError):
            settings_service.save(
                "website.id_formats",
                {"student_id": {"pattern": "{PREFIX}-{YEAR}", "sequence_length": 6}},
                school_a,
            )

    @pytest.mark.parametrize("length", [3, 9, "6", 6.0, True])
    def test_id_format_sequence_length_is_validated(self, db_session, school_a, length):
        with pytest.raises(InvalidArgumentError):
            settings_service.save(
                "website.id_formats",
                {"student_id": {"pattern": "{PREFIX}-{SEQUENCE}", "sequence_length": length}},
                school_a,
            )

    def test_prefixes_must_be_short_strings(self, db_session, school_a):
        with pytest.raises(InvalidArgumentError):
            settings_service.save("website.prefixes", {"student_id": 12}, school_a)
        with pytest.raises(InvalidArgumentError):
            settings_service.save("website.prefixes", {"student_id": "X" * 11}, school_a)

    @pytest.mark.parametrize("prefix", ["S{YEAR}", "S}", "S TD", "STD\t"])
    def test_prefixes_cannot_hold_braces_or_whitespace(self, db_session, school_a, prefix):
        with pytest.raises(InvalidArgumentError):
            settings_service.save("website.prefixes", {"student_id": prefix}, school_a)

    def test_writes_are_audited(self, db_session, school_a):
        settings_service.save("website.themes", {"primary_color": "red"}, school_a, actor_id=7, reason="rebrand")
        settings_service.save("website.themes", {"primary_color": "blue"}, school_a, actor_id=8)

        audits = db_session.query(SettingAudit).order_by(SettingAudit.id.asc()).all()
        assert [a.new_value_json for a in audits] == [{"primary_color": "red"}, {"primary_color": "blue"}]
        assert audits[0].old_value_json is None
        assert audits[1].old_value_json == {"primary_color": "red"}
        assert audits[0].changed_by_user_id == 7
        assert audits[0].change_reason == "rebrand"


class TestCache:
    def test_save_invalidates_cached_document(self, db_session, school_a):
        settings_service.save("website.themes", {"primary_color": "red"}, school_a)
        assert settings_service.resolve("website.themes", school_a) == {"primary_color": "red"}

        settings_service.save("website.themes", {"primary_color": "blue"}, school_a)
        assert settings_service.resolve("website.themes", school_a) == {"primary_color": "blue"}

    def test_absent_document_is_cached_until_written(self, db_session, school_a):
        assert settings_store.get_document(global_scope(), "website.themes") is None
        settings_service.save("website.themes", {"primary_color": "red"})
        assert settings_store.get_document(global_scope(), "website.themes") == {"primary_color": "red"}

    def test_cache_can_be_disabled(self, app, db_session, school_a):
        app.config["SETTINGS_CACHE_ENABLED"] = False
        try:
            settings_service.save("website.themes", {"primary_color": "red"}, school_a)
            assert settings_service.resolve("website.themes", school_a) == {"primary_color": "red"}
        finally:
            app.config["SETTINGS_CACHE_ENABLED"] = True

    def test_read_started_before_invalidation_is_not_cached(self, db_session):
        cache = settings_store._cache()
        cache_key = settings_store._cache_key(global_scope(), "website.themes")
        generation = cache.generation(cache_key)

        cache.invalidate(cache_key)

        assert cache.put(cache_key, {"primary_color": "stale"}, generation) is False
        assert cache.get(cache_key) is settings_store._MISSING

    def test_read_started_before_clear_is_not_cached(self, db_session):
        cache = settings_store._cache()
        cache_key = settings_store._cache_key(global_scope(), "website.themes")
        generation = cache.generation(cache_key)

        cache.clear()

        assert cache.put(cache_key, {"primary_color": "stale"}, generation) is False
        assert cache.get(cache_key) is settings_store._MISSING
        assert cache.put(cache_key, None, cache.generation(cache_key)) is True


class TestSeedDefaults:
    def test_seed_writes_catalog_once(self, db_session):
        first = settings_service.seed_defaults()
        second = settings_service.seed_defaults()

        assert first > 0
        assert second == 0
        assert settings_service.resolve("website.prefixes")["student_id"] == "STD"

    def test_seed_overwrite_restores_defaults(self, db_session):
        settings_service.seed_defaults()
        settings_service.save("website.prefixes", {"student_id": "XYZ"})

        settings_service.seed_defaults(overwrite=True)
        assert settings_service.resolve("website.prefixes")["student_id"] == "STD"
