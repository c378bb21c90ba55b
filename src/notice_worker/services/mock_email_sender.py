"""Mock email sender for account notices."""

import json
from datetime import datetime, timezone
from pathlib import Path
from typing import Any
from uuid import uuid4

import structlog

logger = structlog.get_logger()


class MockEmailSender:
    """
    Writes outgoing notices to disk instead of delivering them.

    Account notices are outside the relay's delivery scope; the files let
    an operator (or a test) inspect exactly what would have been sent.
    """

    def __init__(self, storage_path: str | None = None):
        self.storage_path = Path(storage_path or "/tmp/restock_mock_emails")
        self.storage_path.mkdir(parents=True, exist_ok=True)
        self.sent_emails: list[dict[str, Any]] = []

    async def send_email(
        self,
        to_email: str,
        subject: str,
        html_content: str,
        from_email: str = "alerts@restock-relay.app",
        from_name: str = "Back in Stock Alerts",
        metadata: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """
        Record one email.

        Returns:
            dict: ``message_id``, ``status`` and the file it was stored at
        """
        message_id = str(uuid4())
        timestamp = datetime.now(timezone.utc)

        email_record = {
            "message_id": message_id,
            "to_email": to_email,
            "from_email": from_email,
            "from_name": from_name,
            "subject": subject,
            "html_content": html_content,
            "metadata": metadata or {},
            "sent_at": timestamp.isoformat(),
            "status": "sent",
        }
        self.sent_emails.append(email_record)

        filepath = self.storage_path / f"{timestamp.strftime('%Y%m%d_%H%M%S')}_{message_id}.json"
        with open(filepath, "w") as f:
            json.dump(email_record, f, indent=2)

        logger.info(
            "Mock email sent",
            message_id=message_id,
            to_email=to_email,
            subject=subject,
            stored_at=str(filepath),
        )
        return {"success": True, "message_id": message_id, "status": "sent", "stored_at": str(filepath)}

    def get_sent_emails(self, to_email: str | None = None) -> list[dict[str, Any]]:
        if to_email:
            return [e for e in self.sent_emails if e["to_email"] == to_email]
        return list(self.sent_emails)
