import logging
import os

import pytest
import yaml

from src.logging_config import LOGGER_NAME


@pytest.fixture(autouse=True)
def restore_translator_logger():
    """Undo handler and level changes that load_app_config makes to the shared logger."""
    logger = logging.getLogger(LOGGER_NAME)
    saved_handlers = list(logger.handlers)
    saved_level = logger.level
    saved_propagate = logger.propagate
    yield
    for handler in logger.handlers:
        if handler not in saved_handlers:
            handler.close()
    logger.handlers[:] = saved_handlers
    logger.setLevel(saved_level)
    logger.propagate = saved_propagate


@pytest.fixture
def write_config(tmp_path, monkeypatch):
    """Write a config.yaml into tmp_path and point LANG_TRANSLATOR_CONFIG_FILE at it."""
    def _write(config_dict):
        config_dict = dict(config_dict)
        config_dict.setdefault('logging', {
            'log_level': 'DEBUG',
            'log_file_path': os.path.join(str(tmp_path), 'logs', 'test.log'),
            'log_to_console': False
        })
        config_path = tmp_path / 'config.yaml'
        config_path.write_text(yaml.safe_dump(config_dict, allow_unicode=True), encoding='utf-8')
        monkeypatch.setenv('LANG_TRANSLATOR_CONFIG_FILE', str(config_path))
        return str(config_path)
    return _write
