import logging
import os

import pytest

from taskdeck import config as cfgmod
from taskdeck.logging_setup import LOGGER_NAME, setup_logging


def _write(tmp_path, text: str) -> str:
    path = tmp_path / 'taskdeck.yaml'
    path.write_text(text, encoding='utf-8')
    return str(path)


def test_empty_config_uses_defaults(tmp_path):
    cfg = cfgmod.load_config(_write(tmp_path, ''))
    assert cfg.base_url is None
    assert cfg.page_size == 20
    assert cfg.debounce_ms == 300
    assert cfg.debounce_seconds == pytest.approx(0.3)
    assert cfg.request_timeout == 30.0
    assert cfg.max_retry_wait == 60.0
    assert cfg.export_path == 'tasks.csv'
    assert cfg.cache_max_entries == 100


def test_values_are_parsed(tmp_path):
    cfg = cfgmod.load_config(_write(tmp_path, (
        'base_url: https://tasks.example.com/api/\n'
        'page_size: "50"\n'
        'debounce_ms: 0\n'
        'request_timeout: 5\n'
        'export_path: out/tasks.csv\n'
        'cache_max_entries: 8\n'
    )))
    assert cfg.base_url == 'https://tasks.example.com/api/'
    assert cfg.page_size == 50
    assert cfg.debounce_ms == 0
    assert cfg.request_timeout == 5.0
    assert cfg.export_path == 'out/tasks.csv'
    assert cfg.cache_max_entries == 8


@pytest.mark.parametrize('text', [
    '- just\n- a list\n',
    'page_size: 0\n',
    'page_size: lots\n',
    'request_timeout: -1\n',
    'cache_max_entries: 0\n',
    'base_url: ftp://nope\n',
])
def test_bad_config_raises(tmp_path, text):
    with pytest.raises(ValueError, match='^Config:'):
        cfgmod.load_config(_write(tmp_path, text))


def test_dotenv_token(tmp_path):
    (tmp_path / '.env').write_text('# comment\nOTHER=1\nTASKDECK_TOKEN="abc123"\n', encoding='utf-8')
    assert cfgmod.load_dotenv_token([str(tmp_path)]) == 'abc123'
    assert cfgmod.load_dotenv_token([str(tmp_path / 'missing')]) is None


def test_env_token_wins_over_dotenv(tmp_path, monkeypatch):
    (tmp_path / '.env').write_text('TOKEN=from-file\n', encoding='utf-8')
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv(cfgmod.TOKEN_ENV, raising=False)
    assert cfgmod.resolve_token() == 'from-file'
    monkeypatch.setenv(cfgmod.TOKEN_ENV, 'from-env')
    assert cfgmod.resolve_token() == 'from-env'


def test_setup_logging_replaces_handlers(tmp_path):
    logger = logging.getLogger(LOGGER_NAME)
    log_path = tmp_path / 'logs' / 'taskdeck.log'
    try:
        setup_logging(str(log_path), 'info')
        setup_logging(str(log_path), 'WARNING')
        assert len(logger.handlers) == 1
        assert logger.handlers[0].level == logging.WARNING
        logging.getLogger('taskdeck.board').warning('hello %s', 'file')
        logging.getLogger('taskdeck.board').info('not written')
        for h in logger.handlers:
            h.flush()
        text = log_path.read_text(encoding='utf-8')
        assert 'WARNING hello file' in text
        assert 'not written' not in text
        setup_logging(str(log_path), 'nonsense')
        assert logger.handlers[0].level == logging.ERROR
    finally:
        for h in list(logger.handlers):
            logger.removeHandler(h)
            h.close()
        logger.propagate = True
        logger.setLevel(logging.NOTSET)
    assert os.path.isdir(tmp_path / 'logs')
