"""
evidencegate Registry Audit Test Suite

Runs the audit harness over the full scenario space. Any failing scenario
points at a registry or validator regression.
"""

import unittest

from evidencegate import (
    DEFAULT_REGISTRY,
    EvidenceType,
    Mode,
    ScopeType,
    SubmissionChannel,
    run_audit,
)
from evidencegate.audit import (
    POISON_VALUE,
    build_attachments,
    build_minimal_draft,
    iter_scenarios,
    poison,
)
from evidencegate.registry import (
    HashBehavior,
    HashComputedBy,
    HashSource,
    MethodDefaults,
    MethodRegistry,
    ReviewStatus,
    StepGating,
    TrustLevel,
    _method,
    requirements_gate,
    seal_gate,
)


class TestFullAudit(unittest.TestCase):
    """Test the full cartesian audit."""

    @classmethod
    def setUpClass(cls):
        cls.report = run_audit()

    def test_all_scenarios_pass(self):
        failures = [
            (s.method, s.evidence_type, s.scope, s.channel, s.mode, [c.test for c in s.failed_checks()])
            for s in self.report.failures()
        ]
        self.assertEqual(failures, [])
        self.assertTrue(self.report.passed())

    def test_scenario_count(self):
        channels = len(SubmissionChannel)
        modes = len(Mode)
        open_methods = 3 * len(EvidenceType) * len(ScopeType)
        erp_methods = 2 * 4 * 6
        self.assertEqual(self.report.total, (open_methods + erp_methods) * channels * modes)

    def test_disallowed_combinations_skipped(self):
        for scenario in self.report.scenarios:
            config = DEFAULT_REGISTRY.get(scenario.method)
            self.assertTrue(config.allows_evidence_type(scenario.evidence_type))
            self.assertTrue(config.allows_scope(scenario.scope))

    def test_every_scenario_runs_every_check(self):
        names = [c.test for c in self.report.scenarios[0].checks]
        self.assertEqual(names, [
            "Step 1 Required Fields",
            "Step 2 Required Fields",
            "Forbidden Fields Ignored",
            "Step 1 to Step 2 Gating",
            "Step 2 to Step 3 Gating",
            "Seal Gating",
            "Hash Behavior Defined",
            'No "Supplier Portal" Method',
        ])

    def test_report_dict(self):
        d = self.report.to_dict()
        self.assertEqual(d["summary"]["failed"], 0)
        self.assertEqual(d["summary"]["total"], self.report.total)
        self.assertEqual(d["registry_hash"], DEFAULT_REGISTRY.get_hash())


class TestNarrowedAudit(unittest.TestCase):

    def test_narrowed_dimensions(self):
        report = run_audit(
            evidence_types=[EvidenceType.CERTIFICATE],
            scopes=[ScopeType.UNKNOWN],
            channels=[SubmissionChannel.SUPPLIER],
            modes=[Mode.SIMULATION],
        )
        # ERP methods allow neither CERTIFICATE nor UNKNOWN
        self.assertEqual({s.method for s in report.scenarios},
                         {"MANUAL_ENTRY", "FILE_UPLOAD", "API_PUSH_DIGEST"})
        self.assertTrue(report.passed())

    def test_empty_registry_does_not_pass(self):
        report = run_audit(MethodRegistry())
        self.assertEqual(report.total, 0)
        self.assertFalse(report.passed())


class TestDraftBuilders(unittest.TestCase):

    def test_minimal_draft_omits_target_for_unknown_scope(self):
        config = DEFAULT_REGISTRY.get("FILE_UPLOAD")
        draft = build_minimal_draft(config, EvidenceType.OTHER, ScopeType.UNKNOWN, SubmissionChannel.SYSTEM)
        self.assertNotIn("scope_target", draft)
        self.assertEqual(draft["submission_channel"], "SYSTEM")

    def test_minimal_draft_has_only_required_fields(self):
        config = DEFAULT_REGISTRY.get("API_PUSH_DIGEST")
        draft = build_minimal_draft(config, EvidenceType.BOM, ScopeType.SKU, SubmissionChannel.SUPPLIER)
        required = set(config.step1_required) | set(config.step2_required) | {"submission_channel"}
        self.assertEqual(set(draft), required)

    def test_attachments_only_for_file_methods(self):
        self.assertEqual(len(build_attachments(DEFAULT_REGISTRY.get("FILE_UPLOAD"))), 1)
        self.assertEqual(len(build_attachments(DEFAULT_REGISTRY.get("ERP_EXPORT_FILE"))), 1)
        self.assertEqual(build_attachments(DEFAULT_REGISTRY.get("ERP_API_PULL")), [])

    def test_poison_sets_every_forbidden_field(self):
        config = DEFAULT_REGISTRY.get("MANUAL_ENTRY")
        poisoned = poison(config, {})
        self.assertEqual(set(poisoned), set(config.forbidden_fields))
        self.assertTrue(all(v == POISON_VALUE for v in poisoned.values()))

    def test_iter_scenarios_filters(self):
        scenarios = list(iter_scenarios(
            DEFAULT_REGISTRY, [EvidenceType.CERTIFICATE], [ScopeType.SKU],
            [SubmissionChannel.INTERNAL_USER], [Mode.PRODUCTION],
        ))
        self.assertEqual([config.id for config, *_ in scenarios],
                         ["MANUAL_ENTRY", "FILE_UPLOAD", "API_PUSH_DIGEST"])


class TestAuditDetectsDrift(unittest.TestCase):
    """The harness must catch broken method definitions."""

    def _registry_with(self, config):
        registry = MethodRegistry()
        registry.register(config)
        return registry

    def _config(self, **overrides):
        kwargs = dict(
            id="DRIFTING_METHOD",
            label="Drifting Method",
            description="Test only",
            evidence_types=frozenset({EvidenceType.OTHER}),
            scope_types=frozenset({ScopeType.OTHER}),
            step1_required=("evidence_type", "declared_scope"),
            step2_required=("attachments_min_1",),
            forbidden_fields=("connector_id",),
            defaults=MethodDefaults(TrustLevel.LOW, ReviewStatus.NOT_REVIEWED, "Test"),
            can_seal=seal_gate("attachments_min_1"),
            hash_behavior=HashBehavior(HashComputedBy.SERVER, True, True, HashSource.FILE_BYTES, True),
        )
        kwargs.update(overrides)
        return _method(**kwargs)

    def test_consistent_method_passes(self):
        report = run_audit(self._registry_with(self._config()))
        self.assertTrue(report.passed())

    def test_seal_gate_ignoring_mode_is_caught(self):
        config = self._config(can_seal=lambda draft, mode, attachments: True)
        report = run_audit(self._registry_with(config))
        failed = {c.test for s in report.failures() for c in s.failed_checks()}
        self.assertEqual(failed, {"Seal Gating"})

    def test_step1_gate_drift_is_caught(self):
        config = self._config()
        drifting = StepGating(
            step1_to_step2=lambda draft: True,
            step2_to_step3=requirements_gate(config.step2_required),
            can_seal=config.step_gating.can_seal,
        )
        object.__setattr__(config, "step_gating", drifting)
        report = run_audit(self._registry_with(config))
        failed = {c.test for s in report.failures() for c in s.failed_checks()}
        self.assertIn("Step 1 to Step 2 Gating", failed)

    def test_supplier_portal_label_is_caught(self):
        config = self._config(label="Supplier Portal Upload")
        report = run_audit(self._registry_with(config))
        failed = {c.test for s in report.failures() for c in s.failed_checks()}
        self.assertEqual(failed, {'No "Supplier Portal" Method'})


if __name__ == "__main__":
    unittest.main()
