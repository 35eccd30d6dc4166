"""
Corpus Parser — Reads Labelled Calibration Samples

Parses the simple text format used for calibration corpus files.
Each sample is one sentence preceded by metadata tags, separated
by '---' delimiters.

Format:
    ---
    expect: prerequisite
    rule: meta_let_me
    source: provider transcript, 2024-03
    notes: Ordering cue inside advice

    You should always validate input before processing.

    ---

`expect` is a statement category, `disqualified`, or `none`
(nothing fires in pass 1). `rule` optionally names the exclusion
rule expected to disqualify the sample.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from pathlib import Path
from typing import Optional

from shadowmapper.frozen_core import StatementCategory

DISQUALIFIED = "disqualified"
NONE = "none"

VALID_LABELS = tuple(c.value for c in StatementCategory) + (DISQUALIFIED, NONE)

_META_LINE = re.compile(r"^(expect|rule|source|notes)\s*:\s*(.+)$", re.IGNORECASE)


class CorpusFormatError(ValueError):
    """A corpus block carries an unknown `expect` label."""


@dataclass
class CalibrationSample:
    """A single labelled sample from the calibration corpus."""
    text: str
    expect: str                  # Category value, "disqualified" or "none"
    rule: Optional[str]          # Expected disqualifying rule id
    source: str
    notes: str

    # Populated after engine evaluation
    predicted: Optional[str] = None
    fired_rule: Optional[str] = None


def parse_corpus(filepath: str | Path) -> list[CalibrationSample]:
    """
    Parse a calibration corpus file into a list of samples.

    Raises:
        FileNotFoundError: The file does not exist.
        CorpusFormatError: A block has an unknown `expect` label.
    """
    filepath = Path(filepath)
    if not filepath.exists():
        raise FileNotFoundError(f"Corpus file not found: {filepath}")

    content = filepath.read_text(encoding="utf-8")

    # Split on lines that are just ---, wherever they appear
    blocks = re.split(r"(?:^|\n)\s*---\s*(?:\n|$)", content)

    samples = []
    for block in blocks:
        block = block.strip()
        if not block or block.startswith("#"):
            continue

        sample = _parse_block(block)
        if sample:
            samples.append(sample)

    return samples


def _parse_block(block: str) -> Optional[CalibrationSample]:
    """Parse a single sample block."""
    metadata = {}
    text_lines = []
    in_text = False

    for line in block.split("\n"):
        stripped = line.strip()
        if stripped.startswith("#"):
            continue

        if not in_text:
            match = _META_LINE.match(stripped)
            if match:
                metadata[match.group(1).lower()] = match.group(2).strip()
            elif stripped:
                in_text = True
                text_lines.append(line)
        else:
            text_lines.append(line)

    text = "\n".join(text_lines).strip()
    if not text:
        return None

    expect = metadata.get("expect", NONE).lower()
    if expect not in VALID_LABELS:
        raise CorpusFormatError(
            f"Unknown expect label '{expect}' (valid: {', '.join(VALID_LABELS)})"
        )

    return CalibrationSample(
        text=text,
        expect=expect,
        rule=metadata.get("rule"),
        source=metadata.get("source", "unknown"),
        notes=metadata.get("notes", ""),
    )


def parse_all_corpora(corpus_dir: str | Path) -> list[CalibrationSample]:
    """Parse all .txt corpus files in a directory."""
    corpus_dir = Path(corpus_dir)
    samples = []
    for filepath in sorted(corpus_dir.glob("*.txt")):
        samples.extend(parse_corpus(filepath))
    return samples
