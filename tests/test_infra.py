"""
Tests for structured logging, configuration and result serialization.
"""

import json
import logging
import sys
from dataclasses import FrozenInstanceError, dataclass
from enum import Enum
from types import MappingProxyType

import pytest

from shadowmapper import delta, engine, extractor, shape, structural
from shadowmapper.claims import Claim, Edge, coerce_claims, coerce_edges
from shadowmapper.config import Settings, Thresholds, settings
from shadowmapper.logging import JSONFormatter, TextFormatter, get_logger, setup_logging
from shadowmapper.serialize import fields_to_dict, to_plain


def _record(msg="hello", **extra):
    record = logging.LogRecord("shadowmapper.test", logging.INFO, __file__, 1, msg, None, None)
    for key, value in extra.items():
        setattr(record, key, value)
    return record


class TestLogging:

    def test_json_formatter_core_fields(self):
        entry = json.loads(JSONFormatter().format(_record()))
        assert entry["level"] == "INFO"
        assert entry["logger"] == "shadowmapper.test"
        assert entry["message"] == "hello"
        assert "timestamp" in entry

    def test_json_formatter_extra_fields(self):
        entry = json.loads(JSONFormatter().format(_record(validated=3, shape="forked")))
        assert entry["validated"] == 3
        assert entry["shape"] == "forked"

    def test_json_formatter_skips_unknown_extras(self):
        entry = json.loads(JSONFormatter().format(_record(secret="x")))
        assert "secret" not in entry

    def test_json_formatter_exception(self):
        try:
            raise ValueError("boom")
        except ValueError:
            record = logging.LogRecord(
                "shadowmapper.test", logging.ERROR, __file__, 1, "failed", None, sys.exc_info()
            )
        entry = json.loads(JSONFormatter().format(record))
        assert "ValueError: boom" in entry["exception"]

    def test_text_formatter(self):
        line = TextFormatter().format(_record())
        assert "[INFO    ] shadowmapper.test: hello" in line

    def test_setup_logging_single_handler(self):
        root = setup_logging()
        setup_logging()
        assert root.name == "shadowmapper"
        assert len(root.handlers) == 1

    def test_get_logger_namespace(self):
        assert get_logger("api").name == "shadowmapper.api"
        assert get_logger("shadowmapper.delta") is get_logger("delta")

    @pytest.mark.parametrize("module,name", [
        (extractor, "extractor"),
        (delta, "delta"),
        (structural, "structural"),
        (shape, "shape"),
        (engine, "engine"),
    ])
    def test_core_modules_log_under_namespace(self, module, name):
        assert module.logger is get_logger(name)

    def test_json_formatter_custom_fields(self):
        entry = json.loads(JSONFormatter(fields=("secret",)).format(_record(secret="x", shape="y")))
        assert entry["secret"] == "x"
        assert "shape" not in entry

    def test_setup_logging_overrides(self):
        root = setup_logging(level="debug", fmt="text")
        try:
            assert root.level == logging.DEBUG
            assert isinstance(root.handlers[0].formatter, TextFormatter)
        finally:
            setup_logging()
        assert len(root.handlers) == 1


class TestConfig:

    def test_settings_frozen(self):
        with pytest.raises(FrozenInstanceError):
            settings.CORE_VERSION = "9.9.9"

    def test_thresholds_frozen(self):
        with pytest.raises(FrozenInstanceError):
            settings.THRESHOLDS.soft_decay = 0.5

    def test_threshold_defaults(self):
        t = Thresholds()
        assert t.base_confidence == 0.5
        assert t.pattern_bonus == 0.1
        assert t.max_base_confidence == 0.9

    def test_settings_instances_independent(self):
        assert Settings().THRESHOLDS == settings.THRESHOLDS


class Color(str, Enum):
    RED = "red"


@dataclass(frozen=True)
class Box:
    color: Color
    tags: frozenset
    items: tuple
    meta: MappingProxyType


class TestSerialize:

    def test_plain_conversion(self):
        box = Box(
            color=Color.RED,
            tags=frozenset({"b", "a"}),
            items=(1, (2, 3)),
            meta=MappingProxyType({"k": Color.RED}),
        )
        assert fields_to_dict(box) == {
            "color": "red",
            "tags": ["a", "b"],
            "items": [1, [2, 3]],
            "meta": {"k": "red"},
        }

    def test_nested_to_dict_used(self):
        assert to_plain([Edge("a", "b", "supports")]) == [{"from": "a", "to": "b", "type": "supports"}]


class TestClaimInputs:

    def test_claim_from_dict_defaults(self):
        c = Claim.from_dict({"id": 7})
        assert c.id == "7"
        assert c.supporters == ()
        assert c.support_count == 0

    def test_edge_aliases(self):
        assert Edge.from_dict({"source": "a", "target": "b", "type": "tradeoff"}) == Edge("a", "b", "tradeoff")
        assert Edge.from_dict({"from": "a", "to": "b", "type": "tradeoff"}) == Edge("a", "b", "tradeoff")

    def test_edge_without_endpoint_rejected(self):
        with pytest.raises(ValueError):
            Edge.from_dict({"from": "a", "type": "supports"})

    def test_coerce_drops_edges_without_endpoints(self):
        edges = coerce_edges([
            {"from": "a", "type": "supports"},
            {"target": "b", "type": "supports"},
            {"from": "a", "to": None, "type": "supports"},
            {"from": "a", "to": "b", "type": "supports"},
        ])
        assert edges == [Edge("a", "b", "supports")]

    def test_coerce_passes_objects_through(self):
        c = Claim(id="x")
        assert coerce_claims([c])[0] is c
        assert coerce_edges(None) == []
