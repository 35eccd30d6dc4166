"""
Tests for the calibration framework.

Tests cover:
  - Corpus parser (format parsing, edge cases)
  - Benchmark runner (metric calculation, report generation)
  - The CLI entry point
"""

import json
import textwrap
from dataclasses import replace
from pathlib import Path

import pytest

from calibration.corpus_parser import (
    DISQUALIFIED,
    NONE,
    CalibrationSample,
    CorpusFormatError,
    parse_corpus,
    parse_all_corpora,
    _parse_block,
)
from calibration.benchmark import (
    LabelMetrics,
    evaluate_sample,
    format_report,
    result_to_json,
    run_benchmark,
    save_report,
)
from shadowmapper.config import Thresholds

# Absolute path to the seed corpus (works regardless of CWD)
REPO_ROOT = Path(__file__).resolve().parent.parent
SEED_CORPUS = REPO_ROOT / "calibration" / "corpus"


def _write(tmp_path, body, name="test.txt"):
    corpus = tmp_path / name
    corpus.write_text(textwrap.dedent(body), encoding="utf-8")
    return corpus


# ============================================================
# Corpus Parser Tests
# ============================================================

class TestCorpusParser:

    def test_parse_single_sample(self, tmp_path):
        corpus = _write(tmp_path, """\
            ---
            expect: disqualified
            rule: meta_let_me
            source: test transcript
            notes: test note

            Let me explain why you should always validate input first.

            ---
        """)
        samples = parse_corpus(corpus)
        assert len(samples) == 1
        s = samples[0]
        assert s.expect == DISQUALIFIED
        assert s.rule == "meta_let_me"
        assert s.source == "test transcript"
        assert s.notes == "test note"
        assert s.text == "Let me explain why you should always validate input first."

    def test_defaults(self):
        sample = _parse_block("The service uses a connection pool for every tenant.")
        assert sample.expect == NONE
        assert sample.rule is None
        assert sample.source == "unknown"

    def test_multiple_samples(self, tmp_path):
        corpus = _write(tmp_path, """\
            ---
            expect: conflict

            However, the deadline must be met.

            ---
            expect: assertive

            Redis is faster than Postgres for this workload.

            ---
        """)
        assert [s.expect for s in parse_corpus(corpus)] == ["conflict", "assertive"]

    def test_comment_blocks_skipped(self, tmp_path):
        corpus = _write(tmp_path, """\
            # header comment
            ---
            expect: conflict
            # inline comment

            However, the deadline must be met.
            ---
        """)
        samples = parse_corpus(corpus)
        assert len(samples) == 1
        assert samples[0].text == "However, the deadline must be met."

    def test_block_without_text_dropped(self):
        assert _parse_block("expect: conflict\nsource: nowhere") is None

    def test_unknown_label_raises(self):
        with pytest.raises(CorpusFormatError, match="biased"):
            _parse_block("expect: biased\n\nSome sentence that is long enough.")

    def test_label_case_insensitive(self):
        sample = _parse_block("EXPECT: Prerequisite\n\nYou must build the index before querying.")
        assert sample.expect == "prerequisite"

    def test_missing_file(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            parse_corpus(tmp_path / "nope.txt")

    def test_parse_all_sorted(self, tmp_path):
        _write(tmp_path, "---\nexpect: conflict\n\nHowever, the deadline must be met.\n---\n", "b.txt")
        _write(tmp_path, "---\nexpect: none\n\nThe service uses a pool for tenants.\n---\n", "a.txt")
        (tmp_path / "ignored.md").write_text("not a corpus")
        assert [s.expect for s in parse_all_corpora(tmp_path)] == ["none", "conflict"]


# ============================================================
# Benchmark Tests
# ============================================================

class TestLabelMetrics:

    def test_perfect(self):
        m = LabelMetrics(label="conflict", true_positives=4)
        assert (m.precision, m.recall, m.f1, m.support) == (1.0, 1.0, 1.0, 4)

    def test_empty(self):
        m = LabelMetrics(label="conflict")
        assert (m.precision, m.recall, m.f1) == (0.0, 0.0, 0.0)

    def test_mixed(self):
        m = LabelMetrics(label="conflict", true_positives=1, false_positives=1, false_negatives=3)
        assert m.precision == pytest.approx(0.5)
        assert m.recall == pytest.approx(0.25)
        assert m.f1 == pytest.approx(1 / 3)


class TestEvaluateSample:

    def _sample(self, text, expect):
        return CalibrationSample(text=text, expect=expect, rule=None, source="t", notes="")

    def test_validated_category(self):
        s = self._sample("However, the deadline must be met.", "conflict")
        assert evaluate_sample(s) == "conflict"
        assert s.fired_rule is None

    def test_disqualified_records_rule(self):
        s = self._sample("Nothing but a full rewrite will fix this module.", DISQUALIFIED)
        assert evaluate_sample(s) == DISQUALIFIED
        assert s.fired_rule == "conflict_nothing_but"

    def test_none(self):
        s = self._sample("The service uses a connection pool for every tenant.", NONE)
        assert evaluate_sample(s) == NONE


class TestBenchmark:

    def test_empty_corpus_raises(self, tmp_path):
        with pytest.raises(ValueError):
            run_benchmark(tmp_path)

    def test_misclassification_tracked(self, tmp_path):
        _write(tmp_path, """\
            ---
            expect: assertive
            notes: actually a conflict

            However, the deadline must be met.
            ---
        """)
        result = run_benchmark(tmp_path)
        assert result.correct == 0
        assert result.accuracy == 0.0
        assert result.misclassified[0]["predicted"] == "conflict"
        assert result.label_metrics["conflict"].false_positives == 1
        assert result.label_metrics["assertive"].false_negatives == 1

    def test_rule_mismatch_tracked(self, tmp_path):
        _write(tmp_path, """\
            ---
            expect: disqualified
            rule: meta_note

            Is this approach really going to scale?
            ---
        """)
        result = run_benchmark(tmp_path)
        assert result.correct == 1
        assert result.rule_mismatches[0]["fired_rule"] == "question_mark"

    def test_thresholds_change_outcome(self, tmp_path):
        _write(tmp_path, """\
            ---
            expect: disqualified

            Perhaps the sky is green, according to the data, for example.
            ---
        """)
        assert run_benchmark(tmp_path).correct == 1
        lenient = replace(Thresholds(), confidence_floor=0.1)
        result = run_benchmark(tmp_path, thresholds=lenient)
        assert result.correct == 0
        assert result.thresholds.confidence_floor == 0.1

    def test_seed_corpus_passes(self):
        result = run_benchmark(SEED_CORPUS)
        assert result.total_samples >= 10
        assert result.accuracy == 1.0, result.misclassified
        assert result.rule_mismatches == []

    def test_report_and_json(self, tmp_path):
        result = run_benchmark(SEED_CORPUS)
        report = format_report(result)
        assert "SHADOW MAPPER CALIBRATION REPORT" in report
        assert "PER-LABEL BREAKDOWN" in report

        data = result_to_json(result)
        assert data["total_samples"] == result.total_samples
        assert "conflict" in data["per_label"]

        report_path, json_path = save_report(result, tmp_path / "reports")
        assert report_path.exists()
        assert json.loads(json_path.read_text())["overall"]["f1"] == result.macro_f1


# ============================================================
# CLI Tests
# ============================================================

class TestCli:

    def test_missing_corpus_dir(self, tmp_path, capsys):
        from run_calibration import main
        assert main(["--corpus-dir", str(tmp_path / "missing")]) == 1
        assert "not found" in capsys.readouterr().out

    def test_json_output(self, capsys):
        from run_calibration import main
        assert main(["--corpus-dir", str(SEED_CORPUS), "--json"]) == 0
        data = json.loads(capsys.readouterr().out)
        assert data["overall"]["accuracy"] == 1.0

    def test_threshold_flags(self, capsys):
        from run_calibration import main
        main(["--corpus-dir", str(SEED_CORPUS), "--json", "--floor", "0.2", "--decay", "0.9"])
        data = json.loads(capsys.readouterr().out)
        assert data["thresholds"]["confidence_floor"] == 0.2
        assert data["thresholds"]["soft_decay"] == 0.9
