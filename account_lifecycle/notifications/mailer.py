"""Inactivity warning delivery through the Resend API."""

from __future__ import annotations

import html
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any

import resend

logger = logging.getLogger(__name__)

SUBJECT = "Aviso: sua conta será removida por inatividade"


class NotificationError(RuntimeError):
    """Raised when the mail provider rejects or fails a send."""


@dataclass(slots=True)
class InactivityWarning:
    to: str
    name: str
    deletion_date: datetime
    resource_link: str
    unsubscribe_link: str = ""


class ResendNotifier:
    """Send inactivity warnings; unconfigured delivery is skipped, not failed."""

    def __init__(self, *, api_key: str, sender: str) -> None:
        self._api_key = api_key
        self._sender = sender

    def send_inactivity_warning(self, warning: InactivityWarning) -> dict[str, Any]:
        """Send one warning email.

        Returns a status dict. A missing sender or API key yields
        ``{"status": "skipped"}``; provider failures raise ``NotificationError``.
        """
        if not self._sender:
            logger.warning("MAIL_FROM not configured; skipping inactivity warning to %s", warning.to)
            return {"status": "skipped", "reason": "MAIL_FROM missing"}
        if not self._api_key:
            logger.warning("RESEND_API_KEY not configured; skipping inactivity warning to %s", warning.to)
            return {"status": "skipped", "reason": "RESEND_API_KEY missing"}

        resend.api_key = self._api_key
        params: dict[str, Any] = {
            "from": self._sender,
            "to": [warning.to],
            "subject": SUBJECT,
            "html": render_inactivity_html(warning),
        }
        if warning.unsubscribe_link:
            params["headers"] = {"List-Unsubscribe": f"<{warning.unsubscribe_link}>"}
        try:
            response = resend.Emails.send(params)
        except Exception as exc:
            logger.error("inactivity warning to %s failed: %s", warning.to, exc)
            raise NotificationError(str(exc)) from exc

        message_id = response.get("id") if isinstance(response, dict) else None
        logger.info("inactivity warning sent to %s, id=%s", warning.to, message_id)
        return {"status": "sent", "message_id": message_id}


def render_inactivity_html(warning: InactivityWarning) -> str:
    name = html.escape(warning.name.strip()) or "Olá"
    date = warning.deletion_date.strftime("%d/%m/%Y")
    link = html.escape(warning.resource_link, quote=True)
    body = f"""
      <div style="font-family: Arial, sans-serif; line-height: 1.5;">
        <h2 style="margin: 0 0 12px;">{name}, aviso de inatividade</h2>
        <p>
          Identificamos que sua conta está inativa. Para liberar armazenamento,
          sua conta está programada para remoção em <b>{date}</b>.
        </p>
        <p>Antes disso, você pode baixar seu desempenho e suas redações:</p>
        <p><a href="{link}">Baixar meus dados</a></p>
        <p style="color:#666;font-size:12px;margin-top:18px;">
          Se você voltar a usar a plataforma, a remoção pode ser evitada automaticamente.
        </p>
    """
    if warning.unsubscribe_link:
        unsubscribe = html.escape(warning.unsubscribe_link, quote=True)
        body += f'    <p style="color:#666;font-size:12px;"><a href="{unsubscribe}">Não quero mais receber estes e-mails</a></p>\n'
    return body + "      </div>\n"
