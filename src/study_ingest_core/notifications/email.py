"""
Deck-ready e-mail notification.

Delivery is best effort: callers treat any exception from `send_deck_ready` as non-fatal.
Recipient addresses are never logged in clear; the logging filter redacts them.
"""

from __future__ import annotations

import html
import logging
import smtplib
from dataclasses import dataclass
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Protocol

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeckReadyMessage:
    to: str
    document_title: str
    document_id: str
    total_sections: int
    total_quizzes: int
    dashboard_url: str | None = None


class Notifier(Protocol):
    def send_deck_ready(self, message: DeckReadyMessage) -> None: ...


@dataclass(frozen=True)
class SmtpConfig:
    host: str | None
    port: int = 587
    user: str | None = None
    password: str | None = None
    sender: str | None = None
    timeout_s: float = 10.0

    @property
    def enabled(self) -> bool:
        return bool(self.host)


def build_deck_url(app_url: str | None, document_id: str) -> str | None:
    if not app_url:
        return None
    return f"{app_url.rstrip('/')}/documents/{document_id}"


def render_deck_ready(message: DeckReadyMessage) -> tuple[str, str, str]:
    """Returns (subject, text body, html body)."""
    subject = f'Ton deck "{message.document_title}" est prêt'
    link_line = (
        f"Accède-y directement : {message.dashboard_url}"
        if message.dashboard_url
        else "Connecte-toi pour le consulter."
    )
    text = "\n".join(
        [
            "Hello !",
            "",
            f'Ton deck "{message.document_title}" est maintenant disponible.',
            f"• Sections générées : {message.total_sections}",
            f"• Quiz générés : {message.total_quizzes}",
            "",
            link_line,
        ]
    )
    title = html.escape(message.document_title)
    button = (
        f'<p><a href="{html.escape(message.dashboard_url, quote=True)}">Voir le deck</a></p>'
        if message.dashboard_url
        else ""
    )
    body = (
        f"<div><h2>Ton deck <em>{title}</em> est prêt</h2>"
        f"<ul><li><strong>Sections générées :</strong> {message.total_sections}</li>"
        f"<li><strong>Quiz générés :</strong> {message.total_quizzes}</li></ul>"
        f"{button}</div>"
    )
    return subject, text, body


class SmtpNotifier:
    def __init__(self, cfg: SmtpConfig):
        self._cfg = cfg

    def _connect(self) -> smtplib.SMTP:
        if self._cfg.port == 465:
            return smtplib.SMTP_SSL(self._cfg.host, self._cfg.port, timeout=self._cfg.timeout_s)
        server = smtplib.SMTP(self._cfg.host, self._cfg.port, timeout=self._cfg.timeout_s)
        server.starttls()
        return server

    def send_deck_ready(self, message: DeckReadyMessage) -> None:
        if not self._cfg.enabled:
            logger.info("SMTP not configured; skipping deck-ready email for %s", message.document_id)
            return

        subject, text, body = render_deck_ready(message)
        mime = MIMEMultipart("alternative")
        mime["Subject"] = subject
        mime["From"] = self._cfg.sender or self._cfg.user or ""
        mime["To"] = message.to
        mime.attach(MIMEText(text, "plain", "utf-8"))
        mime.attach(MIMEText(body, "html", "utf-8"))

        with self._connect() as server:
            if self._cfg.user and self._cfg.password:
                server.login(self._cfg.user, self._cfg.password)
            server.sendmail(mime["From"], [message.to], mime.as_string())
        logger.info("deck-ready email sent for document %s", message.document_id)
