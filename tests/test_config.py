import logging

import pytest

from vimscript import EngineConfig, ScriptRunner


def test_defaults():
    config = EngineConfig()
    assert config.maxfuncdepth == 100
    assert config.max_render_depth == 100
    assert config.ignorecase_option == "ignorecase"
    assert config.log_level is None


def test_from_yaml():
    config = EngineConfig.from_yaml("maxfuncdepth: 20\nlog_level: debug\n")
    assert config.maxfuncdepth == 20
    assert config.log_level == "debug"
    assert config.max_render_depth == 100


def test_empty_yaml_gives_defaults():
    assert EngineConfig.from_yaml("") == EngineConfig()


def test_load_from_file(tmp_path):
    path = tmp_path / "engine.yaml"
    path.write_text("max_render_depth: 5\n", encoding="utf-8")
    assert EngineConfig.load(path).max_render_depth == 5


@pytest.mark.parametrize("text, message", [
    ("maxfuncdepth: 0", "positive integer"),
    ("maxfuncdepth: many", "positive integer"),
    ("colour: red", "Unknown configuration keys: colour"),
    ("- 1\n- 2", "must be a mapping"),
])
def test_invalid_configuration(text, message):
    with pytest.raises(ValueError, match=message):
        EngineConfig.from_yaml(text)


def test_log_level_is_applied_to_package_logger():
    logger = logging.getLogger("vimscript")
    previous = logger.level
    try:
        ScriptRunner(config=EngineConfig(log_level="warning"))
        assert logger.level == logging.WARNING
    finally:
        logger.setLevel(previous)


def test_render_depth_reaches_printer():
    runner = ScriptRunner(config=EngineConfig(max_render_depth=1))
    assert runner.evaluator.printer.max_depth == 1
