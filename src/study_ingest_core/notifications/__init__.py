from __future__ import annotations

from study_ingest_core.notifications.email import (
    DeckReadyMessage,
    Notifier,
    SmtpConfig,
    SmtpNotifier,
    build_deck_url,
)

__all__ = ["DeckReadyMessage", "Notifier", "SmtpConfig", "SmtpNotifier", "build_deck_url"]
