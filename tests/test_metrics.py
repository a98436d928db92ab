"""Tests for utils/metrics: log_metric and the read-back helpers."""

from __future__ import annotations

import sqlite3

import utils.metrics as metrics_mod


class TestLogMetric:
    def test_logged_metric_appears_in_summary(self, tmp_db):
        metrics_mod.log_metric("extract", 2.0, material_id="m1")
        summary = metrics_mod.get_metrics_summary()
        assert summary["extract"]["total"] == 1
        assert summary["extract"]["avg_s"] == 2.0

    def test_multiple_logs_aggregated(self, tmp_db):
        metrics_mod.log_metric("generate", 1.0)
        metrics_mod.log_metric("generate", 3.0)
        summary = metrics_mod.get_metrics_summary()
        assert summary["generate"]["total"] == 2
        assert summary["generate"]["avg_s"] == 2.0
        assert summary["generate"]["min_s"] == 1.0
        assert summary["generate"]["max_s"] == 3.0

    def test_recent_metrics_newest_first(self, tmp_db):
        metrics_mod.log_metric("extract", 0.5)
        metrics_mod.log_metric("generate", 0.7, material_id="m2")
        recent = metrics_mod.get_recent_metrics(limit=10)
        assert [r["operation"] for r in recent] == ["generate", "extract"]
        assert recent[0]["material_id"] == "m2"

    def test_limit_respected(self, tmp_db):
        for i in range(10):
            metrics_mod.log_metric("generate_question", float(i))
        assert len(metrics_mod.get_recent_metrics(limit=5)) == 5

    def test_meta_round_trip(self, tmp_db):
        metrics_mod.log_metric("generate", 1.0, questions=22)
        assert metrics_mod.get_recent_metrics(limit=1)[0]["meta"] == {"questions": 22}

    def test_silent_on_db_error(self, monkeypatch):
        def _boom():
            raise sqlite3.OperationalError("no db")

        monkeypatch.setattr(metrics_mod, "_connect", _boom)
        metrics_mod.log_metric("extract", 1.0)
        assert metrics_mod.get_recent_metrics() == []
        assert metrics_mod.get_metrics_summary() == {}

    def test_empty_summary(self, tmp_db):
        assert metrics_mod.get_metrics_summary() == {}
