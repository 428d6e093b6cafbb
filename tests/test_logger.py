import logging

from filewatcher.logger import setup_logger


def test_setup_logger_writes_file(tmp_path):
    log_dir = tmp_path / "logs"
    logger = setup_logger("filewatcher-test", str(log_dir), "test.log", level="DEBUG", console=False)
    logger.debug("hello from test")
    for handler in logger.handlers:
        handler.flush()

    assert logger.level == logging.DEBUG
    assert "hello from test" in (log_dir / "test.log").read_text()


def test_setup_logger_replaces_handlers(tmp_path):
    setup_logger("filewatcher-replace", str(tmp_path), console=True)
    logger = setup_logger("filewatcher-replace", None, console=True)
    assert len(logger.handlers) == 1
    assert isinstance(logger.handlers[0], logging.StreamHandler)
