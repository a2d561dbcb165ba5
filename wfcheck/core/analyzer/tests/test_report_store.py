"""
Report Store — Test Suite
===========================
Round trip of compliance reports through the compliance_runs table.

Run: pytest wfcheck/ -v
"""

from sqlalchemy import inspect

from wfcheck.core.analyzer import ComplianceAnalyzer, ReportStore, RuleEngine, build_catalog
from wfcheck.core.database import init_db
from pipeline_builders import clean_pipeline, leaky_prep_pipeline


def analyze(pipeline):
    return ComplianceAnalyzer(engine=RuleEngine(catalog=build_catalog())).analyze(pipeline)


class TestReportStore:

    def test_save_and_get(self, db_session):
        store = ReportStore(db_session)
        report = analyze(leaky_prep_pipeline())
        run_id = store.save(report)

        stored = store.get(run_id)
        assert stored["runId"] == run_id
        assert stored["pipeline"] == "test-pipeline"
        assert stored["score"] == 75
        assert stored["band"] == "Acceptable"
        assert stored["findingCount"] == 1
        assert stored["createdAt"] is not None
        assert stored["report"] == report.to_dict()

    def test_get_unknown(self, db_session):
        assert ReportStore(db_session).get("no-such-run") is None

    def test_list_recent_filters_by_pipeline(self, db_session):
        store = ReportStore(db_session)
        store.save(analyze(clean_pipeline()))
        store.save(analyze(leaky_prep_pipeline()))
        other = analyze(clean_pipeline())
        other.pipeline_name = "other"
        store.save(other)

        runs = store.list_recent(pipeline_name="test-pipeline")
        assert len(runs) == 2
        assert {r["score"] for r in runs} == {100, 75}
        assert "report" not in runs[0]
        assert len(store.list_recent()) == 3
        assert len(store.list_recent(limit=1)) == 1


class TestInitDb:

    def test_creates_compliance_runs(self, db_engine):
        assert "compliance_runs" in inspect(db_engine).get_table_names()

    def test_idempotent(self, db_engine):
        init_db(db_engine)
        assert inspect(db_engine).get_table_names().count("compliance_runs") == 1
