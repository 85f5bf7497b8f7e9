"""EngineConfig validation, environment overrides and logging setup."""
import logging

import pytest

from ket_engine.circuit.evaluate import apply_gate
from ket_engine.config import DEFAULT_CONFIG, EngineConfig
from ket_engine.errors import ContractViolation
from ket_engine.tests.fixtures.states import random_state
from ket_engine.utils.logging_config import ROOT_LOGGER, configure_logging, get_logger, setup_logging


def test_defaults():
    assert DEFAULT_CONFIG.max_span == 16
    assert DEFAULT_CONFIG.max_qubit_count == 16
    assert DEFAULT_CONFIG.coder == "floats"
    assert DEFAULT_CONFIG.debug_checks is True
    assert DEFAULT_CONFIG.validate() is DEFAULT_CONFIG


@pytest.mark.parametrize("overrides,match", [
    ({"coder": "halfs"}, "unknown coder"),
    ({"max_span": 0}, "max_span"),
    ({"max_span": 8, "max_qubit_count": 4}, "max_qubit_count"),
    ({"max_span": 8, "max_qubit_count": 24}, "exact float32"),
    ({"phase_tolerance": 0.0}, "phase_tolerance"),
    ({"log_level": "loud"}, "unknown log_level"),
])
def test_invalid_config(overrides, match):
    with pytest.raises(ContractViolation, match=match):
        DEFAULT_CONFIG.with_overrides(**overrides)


def test_with_overrides_returns_new_config():
    cfg = DEFAULT_CONFIG.with_overrides(coder="bytes", max_span=8)
    assert cfg.coder == "bytes" and cfg.max_span == 8
    assert DEFAULT_CONFIG.coder == "floats"


def test_from_env(monkeypatch):
    monkeypatch.setenv("KET_ENGINE_CODER", "bytes")
    monkeypatch.setenv("KET_ENGINE_DEBUG_CHECKS", "off")
    monkeypatch.setenv("KET_ENGINE_LOG_LEVEL", "debug")
    cfg = EngineConfig.from_env()
    assert cfg.coder == "bytes"
    assert cfg.debug_checks is False
    assert cfg.log_level == "DEBUG"


def test_from_env_defaults(monkeypatch):
    for var in ("KET_ENGINE_CODER", "KET_ENGINE_DEBUG_CHECKS", "KET_ENGINE_LOG_LEVEL"):
        monkeypatch.delenv(var, raising=False)
    assert EngineConfig.from_env() == DEFAULT_CONFIG


def test_from_env_rejects_bad_coder(monkeypatch):
    monkeypatch.setenv("KET_ENGINE_CODER", "floats16")
    with pytest.raises(ContractViolation):
        EngineConfig.from_env()


# ── logging ──────────────────────────────────────────────────────────

@pytest.fixture
def restore_package_logger():
    logger = logging.getLogger(ROOT_LOGGER)
    handlers, level = list(logger.handlers), logger.level
    yield logger
    logger.handlers[:] = handlers
    logger.setLevel(level)


def test_setup_logging_configures_package_logger(restore_package_logger, tmp_path):
    log_file = tmp_path / "logs" / "ket.log"
    logger = setup_logging("debug", log_file=log_file)
    assert logger is restore_package_logger
    assert logger.level == logging.DEBUG
    assert len(logger.handlers) == 2

    get_logger("gates").debug("synthesized inc3")
    for h in logger.handlers:
        h.flush()
    assert "synthesized inc3" in log_file.read_text()


def test_setup_logging_replaces_handlers(restore_package_logger):
    setup_logging(logging.INFO)
    setup_logging(logging.WARNING)
    assert len(restore_package_logger.handlers) == 1
    assert restore_package_logger.level == logging.WARNING


def test_setup_logging_unknown_level(restore_package_logger):
    with pytest.raises(ValueError, match="unknown log level 'loud'"):
        setup_logging("loud")


def test_get_logger_names():
    assert get_logger("shader.ket").name == "ket_engine.shader.ket"
    assert get_logger("ket_engine.gates").name == "ket_engine.gates"
    assert get_logger(ROOT_LOGGER).name == ROOT_LOGGER


def test_env_log_level_applied_by_apply_gate(restore_package_logger, monkeypatch):
    restore_package_logger.setLevel(logging.WARNING)
    monkeypatch.setenv("KET_ENGINE_LOG_LEVEL", "debug")
    apply_gate(random_state(2), "inc", 2, 0, config=EngineConfig.from_env())
    assert restore_package_logger.getEffectiveLevel() == logging.DEBUG


def test_default_config_leaves_logger_level(restore_package_logger):
    restore_package_logger.setLevel(logging.ERROR)
    assert DEFAULT_CONFIG.log_level is None
    configure_logging(DEFAULT_CONFIG)
    apply_gate(random_state(2), "inc", 1, 0)
    assert restore_package_logger.level == logging.ERROR
