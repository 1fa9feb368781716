import logging

from relaybot.logging_config import SensitiveDataFilter, setup_logging


def record(msg, args=()):
    return logging.LogRecord("relaybot", logging.INFO, __file__, 1, msg, args, None)


def test_masks_tokens_in_message():
    r = record("headers={'Authorization': 'abc123', 'token': 'zzz'}")
    SensitiveDataFilter().filter(r)
    assert "abc123" not in r.getMessage()
    assert "zzz" not in r.getMessage()
    assert "***MASKED***" in r.getMessage()


def test_masks_bearer_in_args():
    r = record("sending %s", ("Bearer sk-secret",))
    SensitiveDataFilter().filter(r)
    assert r.getMessage() == "sending Bearer ***MASKED***"


def test_leaves_ordinary_messages_alone():
    r = record("Relaying a.bin (10 bytes) via chunked")
    SensitiveDataFilter().filter(r)
    assert r.getMessage() == "Relaying a.bin (10 bytes) via chunked"


def test_setup_logging_installs_one_filtered_handler():
    root = logging.getLogger()
    before = list(root.handlers)
    try:
        setup_logging("DEBUG")
        setup_logging("DEBUG")
        added = [h for h in root.handlers if h not in before]
        assert len(added) == 1
        assert any(isinstance(f, SensitiveDataFilter) for f in added[0].filters)
        assert logging.getLogger("discord").level == logging.WARNING
    finally:
        for h in root.handlers:
            if h not in before:
                root.removeHandler(h)
