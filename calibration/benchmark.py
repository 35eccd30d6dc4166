"""
Benchmark Runner — Precision/Recall/F1 per Label

Runs the calibration corpus through the two-pass extractor and
compares its verdict against human labels. Produces:

  1. Per-label precision, recall, F1 (one label per category,
     plus "disqualified" and "none")
  2. Overall accuracy and macro-averaged metrics
  3. Misclassifications and rule mismatches for manual review

Thresholds can be overridden so floor/decay sweeps can be compared
against the same corpus.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from shadowmapper.config import Thresholds
from shadowmapper.extractor import extract_shadow_statements
from calibration.corpus_parser import (
    DISQUALIFIED,
    NONE,
    VALID_LABELS,
    CalibrationSample,
    parse_all_corpora,
)


@dataclass
class LabelMetrics:
    """Precision/recall metrics for a single label."""
    label: str
    true_positives: int = 0   # Engine said label, human said label
    false_positives: int = 0  # Engine said label, human said otherwise
    false_negatives: int = 0  # Human said label, engine said otherwise

    @property
    def precision(self) -> float:
        denom = self.true_positives + self.false_positives
        return self.true_positives / denom if denom > 0 else 0.0

    @property
    def recall(self) -> float:
        denom = self.true_positives + self.false_negatives
        return self.true_positives / denom if denom > 0 else 0.0

    @property
    def f1(self) -> float:
        p, r = self.precision, self.recall
        return 2 * p * r / (p + r) if (p + r) > 0 else 0.0

    @property
    def support(self) -> int:
        """Number of human-labelled samples with this label."""
        return self.true_positives + self.false_negatives


@dataclass
class BenchmarkResult:
    """Full benchmark output."""
    total_samples: int
    correct: int
    label_metrics: dict[str, LabelMetrics]
    accuracy: float
    macro_precision: float
    macro_recall: float
    macro_f1: float
    thresholds: Thresholds
    misclassified: list[dict] = field(default_factory=list)
    rule_mismatches: list[dict] = field(default_factory=list)


def evaluate_sample(sample: CalibrationSample, thresholds: Optional[Thresholds] = None) -> str:
    """Run one sample through the extractor and record its verdict on the sample."""
    result = extract_shadow_statements(
        [{"model_index": 0, "content": sample.text}], thresholds=thresholds
    )
    if result.validated.flatten():
        sample.predicted = result.validated.flatten()[0].category.value
    elif result.disqualified:
        sample.predicted = DISQUALIFIED
        sample.fired_rule = result.disqualified[0].disqualified_by
    else:
        sample.predicted = NONE
    return sample.predicted


def run_benchmark(
    corpus_dir: str | Path = "calibration/corpus",
    thresholds: Optional[Thresholds] = None,
) -> BenchmarkResult:
    """
    Run the full calibration benchmark.

    Args:
        corpus_dir: Path to directory containing corpus .txt files.
        thresholds: Optional override of the tuned constants.

    Raises:
        ValueError: The directory holds no samples.
    """
    samples = parse_all_corpora(corpus_dir)
    if not samples:
        raise ValueError(f"No samples found in {corpus_dir}")

    thresholds = thresholds or Thresholds()
    metrics = {label: LabelMetrics(label=label) for label in VALID_LABELS}
    misclassified = []
    rule_mismatches = []
    correct = 0

    for sample in samples:
        predicted = evaluate_sample(sample, thresholds)

        if predicted == sample.expect:
            correct += 1
            metrics[predicted].true_positives += 1
            if sample.rule and predicted == DISQUALIFIED and sample.fired_rule != sample.rule:
                rule_mismatches.append({
                    "text": sample.text[:200],
                    "expected_rule": sample.rule,
                    "fired_rule": sample.fired_rule,
                })
            continue

        metrics[predicted].false_positives += 1
        metrics[sample.expect].false_negatives += 1
        misclassified.append({
            "text": sample.text[:200],
            "expected": sample.expect,
            "predicted": predicted,
            "fired_rule": sample.fired_rule,
            "source": sample.source,
            "notes": sample.notes,
        })

    active = [m for m in metrics.values() if m.support > 0]
    if active:
        macro_precision = sum(m.precision for m in active) / len(active)
        macro_recall = sum(m.recall for m in active) / len(active)
        macro_f1 = sum(m.f1 for m in active) / len(active)
    else:
        macro_precision = macro_recall = macro_f1 = 0.0

    return BenchmarkResult(
        total_samples=len(samples),
        correct=correct,
        label_metrics=metrics,
        accuracy=round(correct / len(samples), 4),
        macro_precision=round(macro_precision, 4),
        macro_recall=round(macro_recall, 4),
        macro_f1=round(macro_f1, 4),
        thresholds=thresholds,
        misclassified=misclassified,
        rule_mismatches=rule_mismatches,
    )


def format_report(result: BenchmarkResult) -> str:
    """Format benchmark results as a human-readable report."""
    t = result.thresholds
    lines = [
        "=" * 60,
        "SHADOW MAPPER CALIBRATION REPORT",
        "=" * 60,
        "",
        f"Samples: {result.total_samples} ({result.correct} correct)",
        f"Thresholds: floor={t.confidence_floor} decay={t.soft_decay} "
        f"min_length={t.min_sentence_length}",
        "",
        "--- OVERALL METRICS ---",
        f"Accuracy:  {result.accuracy:.1%}",
        f"Precision: {result.macro_precision:.1%}",
        f"Recall:    {result.macro_recall:.1%}",
        f"F1 Score:  {result.macro_f1:.1%}",
        "",
        "--- PER-LABEL BREAKDOWN ---",
        f"{'Label':<16} {'Prec':>6} {'Recall':>6} {'F1':>6} {'TP':>4} {'FP':>4} {'FN':>4} {'Support':>7}",
        "-" * 64,
    ]

    for m in sorted(result.label_metrics.values(), key=lambda m: (-m.support, -m.f1)):
        if m.support > 0 or m.false_positives > 0:
            lines.append(
                f"{m.label:<16} {m.precision:>5.0%} {m.recall:>6.0%} "
                f"{m.f1:>5.0%} {m.true_positives:>4} {m.false_positives:>4} "
                f"{m.false_negatives:>4} {m.support:>7}"
            )

    if result.misclassified:
        lines.extend(["", "--- MISCLASSIFIED ---"])
        for miss in result.misclassified[:10]:
            lines.append(
                f"  [{miss['expected']} -> {miss['predicted']}] {miss['text'][:80]}"
            )
            if miss.get("notes"):
                lines.append(f"    Notes: {miss['notes']}")

    if result.rule_mismatches:
        lines.extend(["", "--- RULE MISMATCHES ---"])
        for mm in result.rule_mismatches[:10]:
            lines.append(
                f"  [{mm['expected_rule']} != {mm['fired_rule']}] {mm['text'][:80]}"
            )

    lines.extend(["", "=" * 60])
    return "\n".join(lines)


def result_to_json(result: BenchmarkResult) -> dict:
    t = result.thresholds
    return {
        "total_samples": result.total_samples,
        "correct": result.correct,
        "thresholds": {
            "confidence_floor": t.confidence_floor,
            "soft_decay": t.soft_decay,
            "min_sentence_length": t.min_sentence_length,
        },
        "overall": {
            "accuracy": result.accuracy,
            "precision": result.macro_precision,
            "recall": result.macro_recall,
            "f1": result.macro_f1,
        },
        "per_label": {
            label: {
                "precision": m.precision,
                "recall": m.recall,
                "f1": m.f1,
                "tp": m.true_positives,
                "fp": m.false_positives,
                "fn": m.false_negatives,
                "support": m.support,
            }
            for label, m in result.label_metrics.items()
            if m.support > 0 or m.false_positives > 0
        },
        "misclassified": result.misclassified,
        "rule_mismatches": result.rule_mismatches,
    }


def save_report(result: BenchmarkResult, output_dir: str | Path = "calibration/reports"):
    """Save benchmark results as both human-readable report and JSON."""
    output_dir = Path(output_dir)
    output_dir.mkdir(parents=True, exist_ok=True)

    report_path = output_dir / "calibration_report.txt"
    report_path.write_text(format_report(result), encoding="utf-8")

    json_path = output_dir / "calibration_report.json"
    json_path.write_text(json.dumps(result_to_json(result), indent=2), encoding="utf-8")

    return report_path, json_path
