"""Human-facing links embedded in inactivity notifications."""

from __future__ import annotations

from urllib.parse import quote

from ..repository import AccountRepository
from ..security.tokens import issue_unsubscribe_token


class LinkBuilder:
    """Build the dashboard and unsubscribe URLs for an account."""

    def __init__(self, repository: AccountRepository, *, app_web_url: str, api_public_url: str) -> None:
        self._repository = repository
        self._app_web_url = app_web_url.rstrip("/")
        self._api_public_url = api_public_url.rstrip("/")

    def resource_link(self, account_id: str) -> str:
        """Link to the performance dashboard of the account's latest room, or the site root."""
        room_id = self._repository.find_latest_room_id(account_id)
        if not room_id:
            return self._app_web_url
        return f"{self._app_web_url}/app/frontend/desempenho.html?roomId={quote(room_id, safe='')}"

    def unsubscribe_link(self, account_id: str, email: str) -> str:
        token = issue_unsubscribe_token(account_id=account_id, email=email)
        if not token:
            return ""
        return f"{self._api_public_url}/v1/mail/unsubscribe?token={quote(token, safe='')}"
