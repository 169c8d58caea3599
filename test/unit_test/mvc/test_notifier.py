"""Unit tests for throttled error and exception emails."""

import logging
import smtplib
from unittest.mock import MagicMock, patch

import pytest

from plinth.mvc.notifier import (
    MailSettings,
    Notifier,
    ThrottledEmailHandler,
    describe_exception,
    format_exception_text,
    sidecar_path,
)

NOW = 1_700_000_000


class Clock:
    def __init__(self, now: float = NOW) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now


@pytest.fixture
def clock():
    return Clock()


@pytest.fixture
def notifier(clock):
    return Notifier(
        MailSettings(host="mock", port=2525),
        from_email="noreply@example.com",
        to_email="support@example.com",
        logger=MagicMock(spec=logging.Logger),
        clock=clock,
    )


def chained_error() -> Exception:
    try:
        try:
            raise KeyError("missing row")
        except KeyError as e:
            raise RuntimeError("query failed") from e
    except RuntimeError as e:
        return e


class TestDescribeException:
    def test_single_exception(self):
        error = ValueError("bad")
        assert describe_exception(error) == [("Exception [ValueError]", error)]

    def test_chain_starts_with_first_cause(self):
        error = chained_error()
        labels = [label for label, _ in describe_exception(error)]
        assert labels == ["First Exception [KeyError]", "Next Exception [RuntimeError]"]

    def test_format_exception_text(self):
        text = format_exception_text(chained_error())
        assert "First Exception [KeyError]: 'missing row'. Trace:" in text
        assert "Next Exception [RuntimeError]: query failed. Trace:" in text


class TestThrottling:
    def test_first_notification_is_sent_without_log(self, notifier, tmp_path):
        assert notifier.should_send(tmp_path / "error.log", 3600) == (True, False)

    def test_within_delay_is_throttled(self, notifier, clock, tmp_path):
        log = tmp_path / "error.log"
        notifier.mark_sent(log)
        assert sidecar_path(log).read_text() == str(NOW)
        clock.now += 3599
        assert notifier.should_send(log, 3600) == (False, False)

    def test_after_delay_includes_log(self, notifier, clock, tmp_path):
        log = tmp_path / "error.log"
        notifier.mark_sent(log)
        clock.now += 3600
        assert notifier.should_send(log, 3600) == (True, True)

    def test_unreadable_sidecar_counts_as_expired(self, notifier, tmp_path):
        log = tmp_path / "error.log"
        sidecar_path(log).write_text("garbage")
        assert notifier.should_send(log, 3600) == (True, True)


class TestSend:
    def test_send_html(self, notifier):
        with patch("plinth.mvc.notifier.smtplib.SMTP") as smtp_class:
            assert notifier.send("Subject", "<p>body</p>")

        smtp_class.assert_called_once_with("mock", 2525, timeout=30)
        smtp = smtp_class.return_value.__enter__.return_value
        message = smtp.send_message.call_args[0][0]
        assert message["Subject"] == "Subject"
        assert message["To"] == "Support <support@example.com>"
        assert message.get_body(("html",)).get_content().strip() == "<p>body</p>"
        smtp.starttls.assert_not_called()
        smtp.login.assert_not_called()

    def test_send_with_tls_and_login(self, clock):
        notifier = Notifier(
            MailSettings(host="mock", use_tls=True, username="mailer", password="pw"),
            from_email="a@example.com",
            to_email="b@example.com",
            clock=clock,
        )
        with patch("plinth.mvc.notifier.smtplib.SMTP") as smtp_class:
            notifier.send("Subject", "plain", html=False)
        smtp = smtp_class.return_value.__enter__.return_value
        smtp.starttls.assert_called_once()
        smtp.login.assert_called_once_with("mailer", "pw")

    def test_failure_is_logged_not_raised(self, notifier):
        with patch("plinth.mvc.notifier.smtplib.SMTP", side_effect=smtplib.SMTPConnectError(421, b"busy")):
            assert notifier.send("Subject", "body") is False
        notifier.logger.error.assert_called_once()

    def test_connection_refused(self, notifier):
        with patch("plinth.mvc.notifier.smtplib.SMTP", side_effect=ConnectionRefusedError()):
            assert notifier.send("Subject", "body") is False


class TestNotify:
    def test_notify_exception(self, notifier, clock, tmp_path):
        log = tmp_path / "exception.log"
        with patch.object(notifier, "send", return_value=True) as send:
            assert notifier.notify_exception(chained_error(), log, 600)
            subject, body = send.call_args[0]
        assert subject == "Exception Caught!"
        assert "First Exception [KeyError]" in body
        assert "14 Nov 2023" in body
        assert "Exception Log" not in body
        assert sidecar_path(log).exists()

    def test_notify_exception_throttled(self, notifier, clock, tmp_path):
        log = tmp_path / "exception.log"
        with patch.object(notifier, "send", return_value=True) as send:
            notifier.notify_exception(ValueError("one"), log, 600)
            clock.now += 60
            assert not notifier.notify_exception(ValueError("two"), log, 600)
        assert send.call_count == 1

    def test_notify_exception_includes_log_after_quiet_period(self, notifier, clock, tmp_path):
        log = tmp_path / "exception.log"
        log.write_text("earlier exception\n")
        notifier.mark_sent(log)
        clock.now += 601
        with patch.object(notifier, "send", return_value=True) as send:
            notifier.notify_exception(ValueError("again"), log, 600)
        body = send.call_args[0][1]
        assert "Exception Log" in body
        assert "earlier exception" in body

    def test_notify_error(self, notifier, clock, tmp_path):
        log = tmp_path / "error.log"
        log.write_text("old error\n")
        with patch.object(notifier, "send", return_value=True) as send:
            notifier.notify_error("disk full", log, 600)
        subject, body = send.call_args[0]
        assert subject == "An error occurred!"
        assert body.endswith("disk full")
        assert "old error" not in body
        assert send.call_args[1] == {"html": False}

    def test_time_is_quoted_in_configured_timezone(self, clock):
        notifier = Notifier(MailSettings(), "a@example.com", "b@example.com", timezone="Africa/Nairobi", clock=clock)
        # 2023-11-14 22:13:20 UTC
        assert notifier._now() == ("15 Nov 2023", "1:13 am")


class TestThrottledEmailHandler:
    def test_records_are_emailed(self, notifier, tmp_path):
        logger = logging.getLogger("plinth.test.notifier")
        logger.propagate = False
        handler = ThrottledEmailHandler(notifier, tmp_path / "error.log", 600, level=logging.ERROR)
        handler.setFormatter(logging.Formatter("%(levelname)s %(message)s"))
        logger.addHandler(handler)
        try:
            with patch.object(notifier, "notify_error", return_value=True) as notify:
                logger.warning("not emailed")
                logger.error("emailed")
        finally:
            logger.removeHandler(handler)
        notify.assert_called_once_with("ERROR emailed", tmp_path / "error.log", 600)
