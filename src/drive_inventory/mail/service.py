"""Mailbox operations for the signed-in user."""

from __future__ import annotations

import logging
from typing import Any
from urllib.parse import quote, urlencode

from drive_inventory.graph.client import GraphClient
from drive_inventory.graph.models import (
    ODATA_NEXT_LINK,
    ODATA_VALUE,
    InboxPage,
    MailMessage,
    UserProfile,
    parse_datetime,
)

logger = logging.getLogger(__name__)

USER_SELECT = "displayName,mail,userPrincipalName"
INBOX_SELECT = "from,isRead,receivedDateTime,subject"
INBOX_ORDER_BY = "receivedDateTime DESC"
DEFAULT_INBOX_PAGE_SIZE = 25


def _query(params: dict[str, Any]) -> str:
    # Graph expects literal '$' and ',' in OData options; spaces must be %20.
    return urlencode(params, quote_via=quote, safe="$,")


class MailService:
    """Reads the signed-in user's profile and inbox and sends mail."""

    def __init__(self, graph_client: GraphClient) -> None:
        self._graph = graph_client

    def get_user(self) -> UserProfile:
        """Return the signed-in user's display name and addresses."""
        raw = self._graph.get(f"/me?{_query({'$select': USER_SELECT})}")
        return UserProfile(
            display_name=raw.get("displayName") or "",
            mail=raw.get("mail") or "",
            user_principal_name=raw.get("userPrincipalName") or "",
        )

    def get_inbox(self, top: int = DEFAULT_INBOX_PAGE_SIZE) -> InboxPage:
        """Return the newest messages in the Inbox folder.

        Only subject, sender, read state and received time are requested.
        ``more_available`` reports whether the server has a further page.
        """
        params = {"$select": INBOX_SELECT, "$top": top, "$orderby": INBOX_ORDER_BY}
        response = self._graph.get(f"/me/mailFolders/inbox/messages?{_query(params)}")
        messages = [_parse_message(raw) for raw in response.get(ODATA_VALUE, [])]
        logger.info("[get_inbox] listed inbox; message_count:%d", len(messages))
        return InboxPage(messages=messages, more_available=bool(response.get(ODATA_NEXT_LINK)))

    def send_mail(self, subject: str, body: str, recipient: str) -> None:
        """Send a plain-text message to a single recipient."""
        message = {
            "subject": subject,
            "body": {"contentType": "Text", "content": body},
            "toRecipients": [{"emailAddress": {"address": recipient}}],
        }
        self._graph.post_json("/me/sendMail", {"message": message})
        logger.info("[send_mail] message sent; recipient:%s", recipient)


def _parse_message(raw: dict[str, Any]) -> MailMessage:
    sender = (raw.get("from") or {}).get("emailAddress") or {}
    return MailMessage(
        subject=raw.get("subject") or "",
        sender_name=sender.get("name") or "",
        is_read=bool(raw.get("isRead")),
        received=parse_datetime(raw.get("receivedDateTime")),
    )
