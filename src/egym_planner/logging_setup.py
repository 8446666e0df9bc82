import asyncio
import logging
import re
import traceback

import httpx

from .config import SETTINGS

_tasks: list[asyncio.Task[None]] = []

_SENSITIVE_PATTERNS: list[tuple[re.Pattern[str], str]] = [
    (re.compile(r"sk-[A-Za-z0-9_\-]{8,}"), "<REDACTED>"),
    (re.compile(r"(Bearer\s+)[A-Za-z0-9_\-\.=]+"), r"\1<REDACTED>"),
    (re.compile(r"(api_key=)[^&\s]+"), r"\1<REDACTED>"),
]


def redact(text: str) -> str:
    """Mask API keys and bearer tokens in ``text``."""
    for pattern, replacement in _SENSITIVE_PATTERNS:
        text = pattern.sub(replacement, text)
    return text


class SensitiveDataFilter(logging.Filter):
    """
    Logging filter that redacts provider keys and caller tokens from records.
    """

    def filter(self, record: logging.LogRecord) -> bool:
        if isinstance(record.msg, str):
            record.msg = redact(record.msg)
        if record.args:
            if isinstance(record.args, dict):
                record.args = {
                    k: redact(v) if isinstance(v, str) else v for k, v in record.args.items()
                }
            else:
                record.args = tuple(redact(a) if isinstance(a, str) else a for a in record.args)
        return True


class WebhookErrorHandler(logging.Handler):
    """
    Logging handler that forwards error logs to an alert webhook.
    """

    def emit(self, record: logging.LogRecord) -> None:
        if not SETTINGS.FF_ADMIN_ALERTS:
            return
        if not SETTINGS.ALERT_WEBHOOK_URL:
            return
        try:
            msg = self.format(record)
            # Compact stack if exists
            if record.exc_info:
                exc_text = "".join(traceback.format_exception(*record.exc_info))
                if len(exc_text) > 3500:
                    exc_text = exc_text[-3500:]
                    exc_text = "[truncated]\n" + exc_text
                msg = f"{msg}\n\n{exc_text}"
            url = SETTINGS.ALERT_WEBHOOK_URL
            data = {"text": redact(msg)[:3900], "level": record.levelname, "logger": record.name}

            async def _post() -> None:
                try:
                    async with httpx.AsyncClient(timeout=5.0) as client:
                        await client.post(url, json=data)
                except Exception as e:  # pragma: no cover - network
                    logging.getLogger(__name__).warning("Failed to send alert: %s", e)

            try:
                task = asyncio.get_running_loop().create_task(_post())
                _tasks.append(task)
                task.add_done_callback(_tasks.remove)
            except RuntimeError:
                # No running loop; fall back to blocking call
                try:
                    httpx.post(url, json=data, timeout=5.0)
                except Exception as e:  # pragma: no cover - network
                    logging.getLogger(__name__).warning("Failed to send alert: %s", e)
        except Exception as e:
            logging.getLogger(__name__).warning("Failed to send alert: %s", e)


def setup_logging(level: int | str | None = None) -> None:
    """
    Set up root logger with stream and alert handlers.
    """
    root = logging.getLogger()
    if root.handlers:
        return  # already configured
    root.setLevel(level or SETTINGS.LOG_LEVEL.upper())
    fmt = logging.Formatter("[%(asctime)s] %(levelname)s %(name)s: %(message)s")
    redactor = SensitiveDataFilter()
    ch = logging.StreamHandler()
    ch.setFormatter(fmt)
    ch.addFilter(redactor)
    root.addHandler(ch)
    alerts = WebhookErrorHandler()
    alerts.setLevel(logging.ERROR)
    alerts.setFormatter(fmt)
    alerts.addFilter(redactor)
    root.addHandler(alerts)
