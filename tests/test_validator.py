"""
evidencegate Step Validation Test Suite

Critical invariants tested:
    UNKNOWN METHODS AND STEPS FAIL CLOSED
    FORBIDDEN FIELDS NEVER INFLUENCE VALIDATION
    SIMULATION NEVER SEALS
"""

import unittest

from evidencegate import (
    DEFAULT_REGISTRY,
    IngestionStep,
    Mode,
    can_proceed_to_next_step,
    can_seal,
    check_compatibility,
    get_method_config,
    should_show_field,
    validate_step,
    visible_fields,
)

DIGEST = "a" * 64
ATTACHMENT = {"id": "1", "file_name": "certificate.pdf", "sha256": "b" * 64}


def declaration(**overrides):
    draft = {
        "evidence_type": "CERTIFICATE",
        "declared_scope": "SUPPLIER",
        "scope_target": "supplier-42",
        "why_this_evidence": "ISO 14001 certificate for the annual audit",
        "purpose_tags": ["COMPLIANCE"],
        "retention_policy": "STANDARD_7_YEARS",
        "contains_personal_data": False,
    }
    draft.update(overrides)
    return draft


class TestConcreteScenarios(unittest.TestCase):
    """Reference scenarios for the public validation contract."""

    def test_file_upload_step2_without_attachments(self):
        result = validate_step("FILE_UPLOAD", 2, {}, [])
        self.assertFalse(result.valid)
        self.assertEqual(result.errors, ["At least one file attachment is required"])

    def test_api_push_digest_step2_valid(self):
        draft = {"payload_digest_sha256": DIGEST, "received_at_utc": "2025-01-01T00:00:00Z"}
        result = validate_step("API_PUSH_DIGEST", 2, draft, [])
        self.assertTrue(result.valid)
        self.assertEqual(result.errors, [])

    def test_manual_entry_hides_digest_field(self):
        self.assertFalse(should_show_field("MANUAL_ENTRY", "payload_digest_sha256"))

    def test_unknown_method(self):
        self.assertIsNone(get_method_config("NOT_A_METHOD"))
        result = validate_step("NOT_A_METHOD", 1, {})
        self.assertFalse(result.valid)
        self.assertEqual(result.errors, ["Invalid method"])


class TestValidateStep(unittest.TestCase):
    """Test per-step required field checks."""

    def test_complete_declaration_passes_step1(self):
        for method_id in ("MANUAL_ENTRY", "FILE_UPLOAD", "ERP_EXPORT_FILE", "ERP_API_PULL"):
            with self.subTest(method=method_id):
                self.assertTrue(validate_step(method_id, 1, declaration(evidence_type="BOM")).valid)

    def test_errors_are_collected_not_short_circuited(self):
        result = validate_step("API_PUSH_DIGEST", 1, {})
        self.assertEqual(result.errors, [
            "evidence_type is required",
            "declared_scope is required",
            "Scope target is required for known scopes",
            "Purpose explanation must be at least 20 characters",
            "purpose_tags is required",
            "retention_policy is required",
            "contains_personal_data is required",
            "external_reference_id is required",
        ])

    def test_api_push_requires_external_reference_in_step1(self):
        result = validate_step("API_PUSH_DIGEST", 1, declaration())
        self.assertEqual(result.errors, ["external_reference_id is required"])
        self.assertTrue(validate_step("API_PUSH_DIGEST", 1, declaration(external_reference_id="ext-1")).valid)

    def test_explicit_false_counts_as_declared(self):
        self.assertTrue(validate_step("FILE_UPLOAD", 1, declaration(contains_personal_data=False)).valid)
        result = validate_step("FILE_UPLOAD", 1, declaration(contains_personal_data=None))
        self.assertEqual(result.errors, ["contains_personal_data is required"])

    def test_empty_strings_and_empty_lists_are_missing(self):
        result = validate_step("FILE_UPLOAD", 1, declaration(retention_policy="", purpose_tags=[]))
        self.assertEqual(result.errors, ["purpose_tags is required", "retention_policy is required"])

    def test_whitespace_string_counts_as_declared(self):
        self.assertTrue(validate_step("FILE_UPLOAD", 1, declaration(retention_policy=" ")).valid)

    def test_scope_target_optional_for_unknown_scope(self):
        draft = declaration(declared_scope="UNKNOWN")
        del draft["scope_target"]
        self.assertTrue(validate_step("FILE_UPLOAD", 1, draft).valid)

    def test_scope_target_required_for_known_scope(self):
        draft = declaration()
        del draft["scope_target"]
        result = validate_step("FILE_UPLOAD", 1, draft)
        self.assertEqual(result.errors, ["Scope target is required for known scopes"])

    def test_purpose_explanation_minimum_length(self):
        short = validate_step("FILE_UPLOAD", 1, declaration(why_this_evidence="too short"))
        self.assertEqual(short.errors, ["Purpose explanation must be at least 20 characters"])
        exact = validate_step("FILE_UPLOAD", 1, declaration(why_this_evidence="x" * 20))
        self.assertTrue(exact.valid)
        padded = validate_step("FILE_UPLOAD", 1, declaration(why_this_evidence=" " * 10 + "short text"))
        self.assertTrue(padded.valid)
        self.assertFalse(validate_step("FILE_UPLOAD", 1, declaration(why_this_evidence=" " * 19)).valid)

    def test_attestation_notes_minimum_length(self):
        draft = {"attestation_notes": "checked", "payload_data_json": {"supplier_name": "Acme"}}
        result = validate_step("MANUAL_ENTRY", 2, draft)
        self.assertEqual(result.errors, ["Attestation notes must be at least 20 characters"])

    def test_digest_must_be_64_hex(self):
        for digest in ("a" * 63, "a" * 65, "g" * 64, "", None, 12345):
            with self.subTest(digest=digest):
                draft = {"payload_digest_sha256": digest, "received_at_utc": "2025-01-01T00:00:00Z"}
                result = validate_step("API_PUSH_DIGEST", 2, draft)
                self.assertEqual(result.errors, ["Valid 64-character hex digest required"])

    def test_uppercase_digest_accepted(self):
        draft = {"payload_digest_sha256": "ABCDEF" + "0" * 58, "received_at_utc": "2025-01-01T00:00:00Z"}
        self.assertTrue(validate_step("API_PUSH_DIGEST", 2, draft).valid)

    def test_erp_export_step2(self):
        result = validate_step("ERP_EXPORT_FILE", 2, {}, [])
        self.assertEqual(result.errors, [
            "At least one file attachment is required",
            "snapshot_datetime_utc is required",
            "erp_instance_name is required",
        ])
        draft = {"snapshot_datetime_utc": "2025-01-01T00:00:00Z", "erp_instance_name": "SAP-PROD"}
        self.assertTrue(validate_step("ERP_EXPORT_FILE", 2, draft, [ATTACHMENT]).valid)

    def test_erp_api_pull_step2(self):
        result = validate_step("ERP_API_PULL", 2, {"connector_id": "c-1"})
        self.assertEqual(result.errors, ["snapshot_datetime_utc is required", "sync_run_id is required"])

    def test_invalid_step(self):
        for step in (0, 3, -1, "1", None):
            with self.subTest(step=step):
                result = validate_step("FILE_UPLOAD", step, declaration())
                self.assertEqual(result.errors, ["Invalid step"])

    def test_non_string_method_id(self):
        self.assertEqual(validate_step(None, 1, {}).errors, ["Invalid method"])
        self.assertEqual(validate_step(42, 1, {}).errors, ["Invalid method"])

    def test_none_draft_is_treated_as_empty(self):
        self.assertEqual(validate_step("FILE_UPLOAD", 2, None, None).errors,
                         ["At least one file attachment is required"])


class TestForbiddenFields(unittest.TestCase):
    """Forbidden fields are ignored, never rejected."""

    def test_forbidden_fields_do_not_change_outcome(self):
        for config in DEFAULT_REGISTRY:
            poisoned = {name: "poison" for name in config.forbidden_fields}
            for step in (1, 2):
                with self.subTest(method=config.id, step=step):
                    clean = validate_step(config.id, step, {}, [])
                    dirty = validate_step(config.id, step, poisoned, [])
                    self.assertEqual(clean, dirty)

    def test_forbidden_digest_cannot_satisfy_manual_entry(self):
        draft = {"payload_digest_sha256": DIGEST}
        self.assertFalse(validate_step("MANUAL_ENTRY", 2, draft).valid)

    def test_forbidden_attestation_does_not_break_api_push(self):
        draft = {
            "payload_digest_sha256": DIGEST,
            "received_at_utc": "2025-01-01T00:00:00Z",
            "attestation_notes": "x",
        }
        self.assertTrue(validate_step("API_PUSH_DIGEST", 2, draft).valid)


class TestStepGating(unittest.TestCase):
    """Test transition predicates."""

    def test_step1_gate_agrees_with_validation(self):
        drafts = [{}, declaration(), declaration(external_reference_id="ext-1"),
                  declaration(declared_scope="UNKNOWN", scope_target=None)]
        for config in DEFAULT_REGISTRY:
            for draft in drafts:
                with self.subTest(method=config.id, draft=draft):
                    self.assertEqual(
                        can_proceed_to_next_step(config.id, 1, draft),
                        validate_step(config.id, 1, draft).valid,
                    )

    def test_file_upload_step2_depends_only_on_attachments(self):
        self.assertFalse(can_proceed_to_next_step("FILE_UPLOAD", 2, {}, []))
        self.assertTrue(can_proceed_to_next_step("FILE_UPLOAD", 2, {}, [ATTACHMENT]))

    def test_steps_accept_enum_members(self):
        self.assertTrue(can_proceed_to_next_step("FILE_UPLOAD", IngestionStep.PAYLOAD, {}, [ATTACHMENT]))
        self.assertFalse(can_proceed_to_next_step("FILE_UPLOAD", IngestionStep.SEAL_READY, declaration(), [ATTACHMENT]))
        self.assertEqual(validate_step("FILE_UPLOAD", IngestionStep.SEAL_READY, declaration()).errors, ["Invalid step"])

    def test_no_successor_after_step2(self):
        for step in (0, 3, 4):
            with self.subTest(step=step):
                self.assertFalse(can_proceed_to_next_step("FILE_UPLOAD", step, declaration(), [ATTACHMENT]))

    def test_unknown_method_cannot_proceed(self):
        self.assertFalse(can_proceed_to_next_step("NOT_A_METHOD", 1, declaration()))


class TestCanSeal(unittest.TestCase):
    """Test seal gating."""

    def test_simulation_never_seals(self):
        draft = declaration(attestation_notes="Values copied from signed questionnaire")
        self.assertFalse(can_seal("MANUAL_ENTRY", draft, "simulation"))
        self.assertFalse(can_seal("MANUAL_ENTRY", draft, Mode.SIMULATION))

    def test_production_seals_complete_draft(self):
        draft = declaration(attestation_notes="Values copied from signed questionnaire")
        self.assertTrue(can_seal("MANUAL_ENTRY", draft, "production"))
        self.assertTrue(can_seal("MANUAL_ENTRY", draft, Mode.PRODUCTION))

    def test_sealed_draft_cannot_be_resealed(self):
        self.assertTrue(can_seal("FILE_UPLOAD", declaration(), "production", [ATTACHMENT]))
        self.assertFalse(can_seal("FILE_UPLOAD", declaration(status="SEALED"), "production", [ATTACHMENT]))

    def test_method_specific_requirements(self):
        self.assertFalse(can_seal("FILE_UPLOAD", declaration(), "production", []))
        self.assertFalse(can_seal("API_PUSH_DIGEST", {"payload_digest_sha256": "a" * 63}, "production"))
        self.assertTrue(can_seal("API_PUSH_DIGEST", {"payload_digest_sha256": DIGEST}, "production"))
        self.assertFalse(can_seal("ERP_EXPORT_FILE", {}, "production", [ATTACHMENT]))
        self.assertTrue(can_seal("ERP_EXPORT_FILE", {"snapshot_datetime_utc": "2025-01-01T00:00:00Z"},
                                 "production", [ATTACHMENT]))
        self.assertFalse(can_seal("ERP_API_PULL", {"connector_id": "c-1"}, "production"))

    def test_unknown_mode_refused(self):
        self.assertFalse(can_seal("FILE_UPLOAD", declaration(), "staging", [ATTACHMENT]))

    def test_unknown_method_refused(self):
        self.assertFalse(can_seal("NOT_A_METHOD", declaration(), "production", [ATTACHMENT]))


class TestVisibilityAndCompatibility(unittest.TestCase):

    def test_should_show_field(self):
        self.assertTrue(should_show_field("MANUAL_ENTRY", "attestation_notes"))
        self.assertFalse(should_show_field("API_PUSH_DIGEST", "attestation_notes"))
        self.assertFalse(should_show_field("NOT_A_METHOD", "attestation_notes"))

    def test_visible_fields(self):
        fields = ["payload_digest_sha256", "attestation_notes", "connector_id", "received_at_utc"]
        self.assertEqual(visible_fields("MANUAL_ENTRY", fields), ["attestation_notes", "received_at_utc"])
        self.assertEqual(visible_fields("NOT_A_METHOD", fields), [])

    def test_compatibility(self):
        self.assertTrue(check_compatibility("ERP_API_PULL", {"evidence_type": "BOM", "declared_scope": "SKU"}).valid)
        result = check_compatibility("ERP_API_PULL", {"evidence_type": "CERTIFICATE", "declared_scope": "UNKNOWN"})
        self.assertEqual(result.errors, [
            "Evidence type CERTIFICATE not allowed for ERP API Pull",
            "Scope UNKNOWN not allowed for ERP API Pull",
        ])

    def test_compatibility_ignores_missing_values(self):
        self.assertTrue(check_compatibility("FILE_UPLOAD", {}).valid)
        self.assertEqual(check_compatibility("NOT_A_METHOD", {}).errors, ["Invalid method"])


if __name__ == "__main__":
    unittest.main()
