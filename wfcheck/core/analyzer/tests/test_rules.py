"""
Rule Catalog — Per-Rule Test Suite
====================================
Each rule is evaluated in isolation against a small pipeline that should
trigger it and one that should not.

Run: pytest wfcheck/ -v
"""

from wfcheck.core.analyzer import AnalysisContext, LineageTracker, build_catalog
from pipeline_builders import K, op, pipe, split

CATALOG = build_catalog()


def run(rule_id, pipeline):
    ctx = AnalysisContext(pipeline=pipeline, lineage=LineageTracker().build(pipeline))
    return CATALOG.get(rule_id).evaluate(ctx)


# ═══════════════════════════════════════════════════════════════
# 1. DATA LEAKAGE
# ═══════════════════════════════════════════════════════════════

class TestLeakageRules:

    def test_dl001_define_on_full_data(self):
        findings = run("DL-001", pipe(op(0, K.DEFINE_PREPROCESSOR, ["raw"], ["rec"])))
        assert len(findings) == 1
        assert findings[0].evidence == ("op#0", "artifact:raw", "provenance:Full")
        assert findings[0].location.line == 1

    def test_dl001_define_on_test(self):
        findings = run("DL-001", pipe(split(0), op(1, K.DEFINE_PREPROCESSOR, ["test"], ["rec"])))
        assert findings[0].evidence[-1] == "provenance:Test"

    def test_dl001_define_on_train_is_clean(self):
        assert run("DL-001", pipe(split(0), op(1, K.DEFINE_PREPROCESSOR, ["train"], ["rec"]))) == []

    def test_dl002_prep_on_full_data(self):
        p = pipe(op(0, K.DEFINE_PREPROCESSOR, ["raw"], ["rec"]),
                 op(1, K.PREP_PREPROCESSOR, ["rec", "raw"], ["prepped"]))
        findings = run("DL-002", p)
        assert [f.operation_id for f in findings] == [1]

    def test_dl002_prep_on_train_is_clean(self):
        p = pipe(split(0), op(1, K.PREP_PREPROCESSOR, ["train"], ["prepped"]))
        assert run("DL-002", p) == []

    def test_dl003_target_encoding_outside_resampling(self):
        p = pipe(split(0), op(1, K.DEFINE_PREPROCESSOR, ["train"], ["rec"], targetEncoding=True))
        assert len(run("DL-003", p)) == 1

    def test_dl003_target_encoding_tuned_inside_resamples(self):
        p = pipe(
            split(0),
            op(1, K.DEFINE_PREPROCESSOR, ["train"], ["rec"], targetEncoding=True),
            op(2, K.DEFINE_RESAMPLE, ["train"], ["folds"], seed=1),
            op(3, K.TUNE, ["rec", "folds"], ["tuned"]),
        )
        assert run("DL-003", p) == []

    def test_dl004_feature_selection_on_test(self):
        p = pipe(split(0), op(1, K.OTHER, ["test"], ["selected"], featureSelection=True))
        findings = run("DL-004", p)
        assert findings[0].evidence == ("op#1", "artifact:test")

    def test_dl004_feature_selection_on_train_is_clean(self):
        p = pipe(split(0), op(1, K.OTHER, ["train"], ["selected"], featureSelection=True))
        assert run("DL-004", p) == []

    def test_dl005_merged_rows_reach_preprocessing(self):
        p = pipe(
            split(0),
            op(1, K.OTHER, ["train", "test"], ["pooled"]),
            op(2, K.PREP_PREPROCESSOR, ["pooled"], ["prepped"]),
        )
        findings = run("DL-005", p)
        assert findings[0].evidence == ("op#2", "artifact:pooled", "provenance:Test")
        # Primary branch is Train, so the direct-estimation rule stays quiet
        assert run("DL-002", p) == []


# ═══════════════════════════════════════════════════════════════
# 2. RESAMPLING
# ═══════════════════════════════════════════════════════════════

class TestResamplingRules:

    def test_rs001_unstratified_on_imbalanced(self):
        assert len(run("RS-001", pipe(split(0, outcomeImbalanced=True)))) == 1

    def test_rs001_pipeline_level_imbalance(self):
        assert len(run("RS-001", pipe(split(0), outcomeImbalanced=True))) == 1

    def test_rs001_operation_flag_overrides_pipeline(self):
        assert run("RS-001", pipe(split(0, outcomeImbalanced=False), outcomeImbalanced=True)) == []

    def test_rs001_stratified_is_clean(self):
        assert run("RS-001", pipe(split(0, outcomeImbalanced=True, stratified=True))) == []

    def test_rs002_predict_on_training_data(self):
        p = pipe(
            split(0),
            op(1, K.FIT, ["train"], ["model"]),
            op(2, K.PREDICT, ["model", "train"], ["preds"]),
        )
        findings = run("RS-002", p)
        assert findings[0].evidence == ("op#2", "op#1", "artifact:train")

    def test_rs002_predict_on_test_is_clean(self):
        p = pipe(
            split(0),
            op(1, K.FIT, ["train"], ["model"]),
            op(2, K.PREDICT, ["model", "test"], ["preds"]),
        )
        assert run("RS-002", p) == []

    def test_rs003_tuning_folds_reused_for_evaluation(self):
        p = pipe(
            split(0),
            op(1, K.DEFINE_RESAMPLE, ["train"], ["folds"]),
            op(2, K.TUNE, ["folds"], ["tuned"]),
            op(3, K.EVALUATE, ["tuned", "folds"], ["metrics"]),
        )
        findings = run("RS-003", p)
        assert findings[0].operation_id == 3
        assert "artifact:folds" in findings[0].evidence

    def test_rs003_fresh_split_between_is_clean(self):
        p = pipe(
            split(0),
            op(1, K.DEFINE_RESAMPLE, ["train"], ["folds"]),
            op(2, K.TUNE, ["folds"], ["tuned"]),
            split(3, train="train2", test="test2"),
            op(4, K.EVALUATE, ["tuned", "folds"], ["metrics"]),
        )
        assert run("RS-003", p) == []

    def test_rs004_unseeded_resample(self):
        p = pipe(split(0), op(1, K.DEFINE_RESAMPLE, ["train"], ["folds"]))
        assert [f.operation_id for f in run("RS-004", p)] == [1]

    def test_rs004_bootstrap_method(self):
        p = pipe(op(0, K.OTHER, ["raw"], ["boots"], method="bootstrap"))
        assert len(run("RS-004", p)) == 1

    def test_rs004_seeded_is_clean(self):
        p = pipe(op(0, K.SET_SEED), split(1), op(2, K.DEFINE_RESAMPLE, ["train"], ["folds"]))
        assert run("RS-004", p) == []
        p = pipe(split(0), op(1, K.DEFINE_RESAMPLE, ["train"], ["folds"], seed=42))
        assert run("RS-004", p) == []

    def test_rs004_ignores_plain_split(self):
        assert run("RS-004", pipe(split(0))) == []

    def test_rs005_independent_tunes_share_folds(self):
        p = pipe(
            split(0),
            op(1, K.DEFINE_RESAMPLE, ["train"], ["folds"]),
            op(2, K.DEFINE_PREPROCESSOR, ["train"], ["rec_a"]),
            op(3, K.DEFINE_PREPROCESSOR, ["train"], ["rec_b"]),
            op(4, K.TUNE, ["rec_a", "folds"], ["tune_a"]),
            op(5, K.TUNE, ["rec_b", "folds"], ["tune_b"]),
        )
        findings = run("RS-005", p)
        assert len(findings) == 1
        assert findings[0].operation_id == 5
        assert findings[0].evidence == ("op#4", "op#5", "artifact:folds")

    def test_rs005_chained_selection_is_clean(self):
        p = pipe(
            split(0),
            op(1, K.DEFINE_RESAMPLE, ["train"], ["folds"]),
            op(2, K.TUNE, ["folds"], ["coarse"]),
            op(3, K.TUNE, ["coarse", "folds"], ["fine"]),
        )
        assert run("RS-005", p) == []


# ═══════════════════════════════════════════════════════════════
# 3. WORKFLOW
# ═══════════════════════════════════════════════════════════════

class TestWorkflowRules:

    def test_wf001_separate_preprocessor_and_fit(self):
        p = pipe(
            split(0),
            op(1, K.DEFINE_PREPROCESSOR, ["train"], ["rec"]),
            op(2, K.FIT, ["rec", "train"], ["model"]),
        )
        findings = run("WF-001", p)
        assert findings[0].evidence == ("op#2", "op#1")

    def test_wf001_finalized_workflow_is_clean(self):
        p = pipe(
            split(0),
            op(1, K.DEFINE_PREPROCESSOR, ["train"], ["rec"]),
            op(2, K.FINALIZE_WORKFLOW, ["rec"], ["wf"]),
            op(3, K.FIT, ["wf", "train"], ["model"]),
        )
        assert run("WF-001", p) == []

    def test_wf001_fit_without_preprocessor_is_clean(self):
        assert run("WF-001", pipe(split(0), op(1, K.FIT, ["train"], ["model"]))) == []

    def test_wf002_held_out_transformed_differently(self):
        p = pipe(
            split(0),
            op(1, K.PREP_PREPROCESSOR, ["train"], ["rec"]),
            op(2, K.APPLY_PREPROCESSOR, ["rec", "train"], ["baked_train"], params={"center": True}),
            op(3, K.APPLY_PREPROCESSOR, ["rec", "test"], ["baked_test"], params={"center": False}),
        )
        findings = run("WF-002", p)
        assert [f.operation_id for f in findings] == [3]
        assert findings[0].evidence == ("op#3", "op#2")

    def test_wf002_same_transform_is_clean(self):
        p = pipe(
            split(0),
            op(1, K.PREP_PREPROCESSOR, ["train"], ["rec"]),
            op(2, K.APPLY_PREPROCESSOR, ["rec", "train"], ["baked_train"], params={"center": True}),
            op(3, K.APPLY_PREPROCESSOR, ["rec", "test"], ["baked_test"], params={"center": True}),
        )
        assert run("WF-002", p) == []

    def test_wf003_tuned_without_finalize(self):
        p = pipe(
            split(0),
            op(1, K.DEFINE_RESAMPLE, ["train"], ["folds"]),
            op(2, K.TUNE, ["folds"], ["tuned"]),
            op(3, K.SELECT_BEST, ["tuned"], ["best"]),
            op(4, K.FIT, ["train"], ["model"]),
        )
        findings = run("WF-003", p)
        assert findings[0].evidence == ("op#4", "op#2", "op#3")

    def test_wf003_finalized_is_clean(self):
        p = pipe(
            split(0),
            op(1, K.DEFINE_RESAMPLE, ["train"], ["folds"]),
            op(2, K.TUNE, ["folds"], ["tuned"]),
            op(3, K.SELECT_BEST, ["tuned"], ["best"]),
            op(4, K.FINALIZE_WORKFLOW, ["best"], ["wf"]),
            op(5, K.FIT, ["wf", "train"], ["model"]),
        )
        assert run("WF-003", p) == []


# ═══════════════════════════════════════════════════════════════
# 4. EVALUATION METRICS
# ═══════════════════════════════════════════════════════════════

def _evaluated(**attributes):
    return pipe(
        split(0),
        op(1, K.FIT, ["train"], ["model"]),
        op(2, K.EVALUATE, ["model", "test"], ["metrics"], **attributes),
    )


class TestEvaluationRules:

    def test_me001_accuracy_alone_on_imbalanced(self):
        p = pipe(*_evaluated(metrics=["Accuracy"], interval=True).operations, outcomeImbalanced=True)
        findings = run("ME-001", p)
        assert findings[0].evidence == ("op#2", "metric:accuracy")

    def test_me001_additional_metric_is_clean(self):
        p = pipe(*_evaluated(metrics=["accuracy", "roc_auc"]).operations, outcomeImbalanced=True)
        assert run("ME-001", p) == []

    def test_me001_balanced_outcome_is_clean(self):
        assert run("ME-001", _evaluated(metrics=["accuracy"])) == []

    def test_me002_classification_metric_on_regression(self):
        findings = run("ME-002", _evaluated(mode="regression", metrics=["roc_auc", "rmse"]))
        assert findings[0].evidence == ("op#2", "mode:regression", "metric:roc_auc")

    def test_me002_matching_family_is_clean(self):
        assert run("ME-002", _evaluated(mode="regression", metrics=["rmse", "rsq"])) == []

    def test_me003_probabilistic_without_calibration(self):
        p = _evaluated(mode="classification", probabilistic=True, metrics=["roc_auc"])
        assert len(run("ME-003", p)) == 1

    def test_me003_calibration_metric_present(self):
        p = _evaluated(mode="classification", probabilistic=True, metrics=["roc_auc", "brier_class"])
        assert run("ME-003", p) == []

    def test_me003_hard_classifier_is_clean(self):
        assert run("ME-003", _evaluated(mode="classification", metrics=["roc_auc"])) == []

    def test_me004_metrics_without_uncertainty(self):
        assert len(run("ME-004", _evaluated(metrics=["rmse"]))) == 1

    def test_me004_std_err_reported(self):
        assert run("ME-004", _evaluated(metrics=["rmse"], stdErr=0.02)) == []

    def test_me004_no_metrics_declared(self):
        assert run("ME-004", _evaluated()) == []

    def test_me005_models_compared_on_different_folds(self):
        p = pipe(
            split(0),
            op(1, K.DEFINE_RESAMPLE, ["train"], ["folds_a"]),
            op(2, K.DEFINE_RESAMPLE, ["train"], ["folds_b"]),
            op(3, K.TUNE, ["folds_a"], ["tune_a"]),
            op(4, K.TUNE, ["folds_b"], ["tune_b"]),
            op(5, K.SELECT_BEST, ["tune_a", "tune_b"], ["best"]),
        )
        findings = run("ME-005", p)
        assert findings[0].evidence == ("op#5", "artifact:folds_a", "artifact:folds_b")

    def test_me005_shared_folds_are_clean(self):
        p = pipe(
            split(0),
            op(1, K.DEFINE_RESAMPLE, ["train"], ["folds"]),
            op(2, K.TUNE, ["folds"], ["tune_a"]),
            op(3, K.TUNE, ["folds"], ["tune_b"]),
            op(4, K.OTHER, ["tune_a", "tune_b"], ["ranked"], comparison=True),
        )
        assert run("ME-005", p) == []


# ═══════════════════════════════════════════════════════════════
# 5. REPRODUCIBILITY
# ═══════════════════════════════════════════════════════════════

def _strict(*ops, **metadata):
    return pipe(*ops, strictReproducibility=True, **metadata)


class TestReproducibilityRules:

    def test_rp001_unseeded_split(self):
        assert [f.operation_id for f in run("RP-001", pipe(split(0)))] == [0]

    def test_rp001_randomized_flag(self):
        p = pipe(op(0, K.OTHER, ["raw"], ["jittered"], randomized=True))
        assert len(run("RP-001", p)) == 1

    def test_rp001_seeded_is_clean(self):
        assert run("RP-001", pipe(op(0, K.SET_SEED), split(1))) == []
        assert run("RP-001", pipe(split(0, seed=2024))) == []

    def test_rp001_leaves_resampling_to_rs004(self):
        p = pipe(op(0, K.DEFINE_RESAMPLE, ["raw"], ["folds"]))
        assert run("RP-001", p) == []

    def test_rp002_rp004_rp005_when_strict(self):
        p = _strict(op(0, K.SET_SEED))
        for rule_id in ("RP-002", "RP-004", "RP-005"):
            findings = run(rule_id, p)
            assert len(findings) == 1, rule_id
            assert findings[0].operation_id is None
            assert findings[0].location.to_dict() == {}
            assert findings[0].evidence[0] == "pipeline:test-pipeline"

    def test_strict_markers_present(self):
        p = _strict(
            op(0, K.OTHER, marker="namespacePreference"),
            op(1, K.SET_SEED),
            op(2, K.OTHER, marker="sessionInfo"),
            dependencyLock="renv.lock",
        )
        for rule_id in ("RP-002", "RP-004", "RP-005"):
            assert run(rule_id, p) == [], rule_id

    def test_presence_checks_skip_non_strict_pipelines(self):
        p = pipe(op(0, K.SET_SEED))
        for rule_id in ("RP-002", "RP-004", "RP-005"):
            assert run(rule_id, p) == [], rule_id

    def test_presence_checks_skip_empty_pipeline(self):
        p = _strict()
        for rule_id in ("RP-002", "RP-004", "RP-005"):
            assert run(rule_id, p) == [], rule_id

    def test_rp003_absolute_windows_path(self):
        p = pipe(op(0, K.OTHER, ["raw"], [], io="write", path="C:\\data\\out.csv"))
        findings = run("RP-003", p)
        assert findings[0].evidence == ("op#0", "path:C:\\data\\out.csv")

    def test_rp003_literal_flag_without_path(self):
        p = pipe(op(0, K.OTHER, [], ["loaded"], io="read", literalPath=True), sources=())
        assert run("RP-003", p)[0].evidence == ("op#0",)

    def test_rp003_relative_path_is_clean(self):
        p = pipe(op(0, K.OTHER, [], ["loaded"], io="read", path="data/churn.csv"), sources=())
        assert run("RP-003", p) == []

    def test_rp003_requires_io(self):
        p = pipe(op(0, K.OTHER, ["raw"], ["x"], path="/abs/path"))
        assert run("RP-003", p) == []
