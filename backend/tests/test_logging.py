import logging

from predsync.core.logging import QUIET_LOGGERS, SIGNED_URL_LOGGERS, redact_url, setup_logging


def test_setup_logging_quiets_transport_loggers() -> None:
    saved = {name: logging.getLogger(name).level for name in QUIET_LOGGERS}
    try:
        for name in QUIET_LOGGERS:
            logging.getLogger(name).setLevel(logging.DEBUG)

        setup_logging()

        assert set(SIGNED_URL_LOGGERS) <= set(QUIET_LOGGERS)
        for name in QUIET_LOGGERS:
            assert logging.getLogger(name).level == logging.WARNING
    finally:
        for name, level in saved.items():
            logging.getLogger(name).setLevel(level)


def test_redact_url_strips_signature() -> None:
    signed = "https://signed.test/tradebook?sig=secret&expires=123#frag"

    assert redact_url(signed) == "https://signed.test/tradebook"
    assert redact_url("https://api.test/predictions/daily") == "https://api.test/predictions/daily"
    assert redact_url(None) is None
