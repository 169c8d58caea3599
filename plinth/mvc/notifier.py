"""
Error and exception notification by email.

Notifications are throttled per log file: the time of the last email is kept
in a sidecar ``<log>.info.txt`` file and another email is only sent once the
configured delay has elapsed. When an email goes out after a quiet period the
current contents of the log are included, so nothing logged in between is
missed.
"""

from __future__ import annotations

import logging
import smtplib
import time
import traceback
from datetime import datetime
from email.message import EmailMessage
from pathlib import Path
from typing import Callable, List, Optional, Tuple
from zoneinfo import ZoneInfo

from pydantic import BaseModel

from plinth.mvc.util import dump

SIDECAR_SUFFIX = ".info.txt"
FROM_NAME = "System Autogenerated"
TO_NAME = "Support"

EMAIL_STYLE = (
    "html,body{margin:0;padding:0;}"
    "body{font-family:Tahoma,Verdana,Arial,sans-serif;font-size:12px;line-height:20px;color:#222;}"
    ".echo{clear:both;border:1px #c9c7c7 solid;padding:5px;}"
    ".echo ul{list-style-type:none;}"
    ".echo h1{background-color:#c9c7c7;font-size:18px;margin:-5px;padding:5px;}"
)


class MailSettings(BaseModel):
    """SMTP server used for notifications."""

    host: str = "localhost"
    port: int = 25
    username: Optional[str] = None
    password: Optional[str] = None
    use_tls: bool = False


def sidecar_path(log_path: Path) -> Path:
    return Path(str(log_path) + SIDECAR_SUFFIX)


def describe_exception(exc: BaseException) -> List[Tuple[str, BaseException]]:
    """Return ``(label, exception)`` pairs, the first cause in the chain first."""
    chain: List[BaseException] = []
    current: Optional[BaseException] = exc
    while current is not None and current not in chain:
        chain.append(current)
        current = current.__cause__ or current.__context__
    chain.reverse()
    if len(chain) == 1:
        return [(f"Exception [{type(exc).__name__}]", exc)]
    labelled = [(f"First Exception [{type(chain[0]).__name__}]", chain[0])]
    labelled.extend((f"Next Exception [{type(e).__name__}]", e) for e in chain[1:])
    return labelled


def format_exception_text(exc: BaseException) -> str:
    """Plain-text form of ``exc`` and its chain for the exception log."""
    parts = []
    for label, e in describe_exception(exc):
        trace = "".join(traceback.format_tb(e.__traceback__)) if e.__traceback__ else ""
        parts.append(f"{label}: {e}. Trace:\n{trace}")
    return "\n" + "\n".join(parts)


class Notifier:
    """Send throttled notification emails for one module.

    Args:
        mail: SMTP settings
        from_email: Sender address
        to_email: Recipient address
        timezone: Time zone used for the times quoted in emails
        logger: Logger receiving delivery failures
        clock: Returns the current Unix time
    """

    def __init__(
        self,
        mail: MailSettings,
        from_email: str,
        to_email: str,
        timezone: str = "UTC",
        logger: Optional[logging.Logger] = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.mail = mail
        self.from_email = from_email
        self.to_email = to_email
        self.timezone = ZoneInfo(timezone)
        self.logger = logger or logging.getLogger(__name__)
        self._clock = clock

    # ------------------------------------------------------------------
    # Throttling
    # ------------------------------------------------------------------

    def should_send(self, log_path: Path, delay: int) -> Tuple[bool, bool]:
        """Decide whether to email now.

        Returns:
            ``(send, include_log)``: ``send`` when no email was sent for this
            log yet or ``delay`` seconds have passed since the last one;
            ``include_log`` when sending after such a delay.
        """
        sidecar = sidecar_path(log_path)
        if not sidecar.exists():
            return True, False
        try:
            last_sent = int(sidecar.read_text().strip() or 0)
        except ValueError:
            last_sent = 0
        if last_sent + delay <= self._clock():
            return True, True
        return False, False

    def mark_sent(self, log_path: Path) -> None:
        sidecar = sidecar_path(log_path)
        sidecar.parent.mkdir(parents=True, exist_ok=True)
        sidecar.write_text(str(int(self._clock())))

    def _now(self) -> Tuple[str, str]:
        now = datetime.fromtimestamp(self._clock(), tz=self.timezone)
        return f"{now.day} {now:%b %Y}", f"{now:%I:%M %p}".lstrip("0").lower()

    # ------------------------------------------------------------------
    # Delivery
    # ------------------------------------------------------------------

    def send(self, subject: str, body: str, html: bool = True) -> bool:
        """Send one email. Delivery failures are logged, never raised.

        Returns:
            True when the SMTP server accepted the message.
        """
        message = EmailMessage()
        message["Subject"] = subject
        message["From"] = f"{FROM_NAME} <{self.from_email}>"
        message["To"] = f"{TO_NAME} <{self.to_email}>"
        if html:
            message.set_content("This message needs an HTML capable mail client.")
            message.add_alternative(body, subtype="html")
        else:
            message.set_content(body)

        try:
            with smtplib.SMTP(self.mail.host, self.mail.port, timeout=30) as smtp:
                if self.mail.use_tls:
                    smtp.starttls()
                if self.mail.username:
                    smtp.login(self.mail.username, self.mail.password or "")
                smtp.send_message(message)
        except (OSError, smtplib.SMTPException) as e:
            self.logger.error(
                f"Exception caught while emailing support ({subject}): {e}",
                exc_info=True,
            )
            return False
        return True

    def notify_exception(self, exc: BaseException, exception_log: Path, delay: int) -> bool:
        """Email the details of a caught exception, subject to throttling.

        Returns:
            True when an email was attempted.
        """
        send, include_log = self.should_send(exception_log, delay)
        if not send:
            return False

        date, clock_time = self._now()
        parts = [
            f"<html><head><title>Exception Caught</title><style type=\"text/css\">{EMAIL_STYLE}</style></head><body>",
            "<h1>Exception Caught!</h1>",
            f"<p>An exception was caught and saved to the exception log at {clock_time} on {date}:</p>",
        ]
        for label, e in describe_exception(exc):
            parts.append(dump(str(e), label))
            parts.append(dump(traceback.format_tb(e.__traceback__) if e.__traceback__ else [], "Trace"))
        if include_log and exception_log.exists():
            parts.append("<p>These are the current contents of the exception log:</p>")
            parts.append(dump(exception_log.read_text(encoding="utf-8", errors="replace"), "Exception Log"))
        parts.append("</body></html>")

        self.send("Exception Caught!", "".join(parts))
        self.mark_sent(exception_log)
        return True

    def notify_error(self, error: str, error_log: Path, delay: int) -> bool:
        """Email a logged error, subject to throttling.

        Returns:
            True when an email was attempted.
        """
        send, include_log = self.should_send(error_log, delay)
        if not send:
            return False

        date, clock_time = self._now()
        body = f"An error occurred and was saved to the error log at {clock_time} on {date}.\n\n{error}"
        if include_log and error_log.exists():
            body = error_log.read_text(encoding="utf-8", errors="replace") + "\n" + body
        self.send("An error occurred!", body, html=False)
        self.mark_sent(error_log)
        return True


class ThrottledEmailHandler(logging.Handler):
    """Logging handler that emails records through a :class:`Notifier`."""

    def __init__(self, notifier: Notifier, error_log: Path, delay: int, level: int = logging.NOTSET) -> None:
        super().__init__(level)
        self.notifier = notifier
        self.error_log = error_log
        self.delay = delay

    def emit(self, record: logging.LogRecord) -> None:
        try:
            self.notifier.notify_error(self.format(record), self.error_log, self.delay)
        except Exception:
            self.handleError(record)
