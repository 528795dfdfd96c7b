"""
Push Notifications via the Expo push service

Used to tell users with notifications enabled that a new app was added.
Delivery is best-effort: callers treat any failure as non-fatal.
"""

from typing import Optional, List, Dict, Any

import httpx

from config import settings
from utils.logger import logger

# Expo accepts at most 100 messages per request
EXPO_BATCH_SIZE = 100


class PushService:
    """Sends notifications to Expo push tokens"""

    def __init__(self, push_url: Optional[str] = None, timeout: Optional[float] = None):
        self.push_url = push_url or settings.EXPO_PUSH_URL
        self.timeout = timeout or settings.HTTP_TIMEOUT_SECONDS

    @staticmethod
    def build_messages(
        tokens: List[str],
        title: str,
        body: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> List[Dict[str, Any]]:
        messages = []
        for token in tokens:
            message = {"to": token, "title": title, "body": body}
            if data:
                message["data"] = data
            messages.append(message)
        return messages

    async def send(
        self,
        tokens: List[str],
        title: str,
        body: str,
        data: Optional[Dict[str, Any]] = None,
    ) -> int:
        """
        Send one notification to every token.

        Returns:
            Number of messages accepted by Expo
        """
        if not tokens:
            return 0

        messages = self.build_messages(tokens, title, body, data)
        accepted = 0

        async with httpx.AsyncClient(timeout=self.timeout) as client:
            for start in range(0, len(messages), EXPO_BATCH_SIZE):
                batch = messages[start:start + EXPO_BATCH_SIZE]
                response = await client.post(
                    self.push_url,
                    json=batch,
                    headers={"Accept": "application/json", "Content-Type": "application/json"},
                )
                if response.status_code >= 400:
                    logger.error(f"Expo push error: {response.status_code} {response.text[:200]}")
                    continue
                accepted += len(batch)

        return accepted

    async def notify_new_app(self, tokens: List[str], app_id: str, app_name: str, developer_name: str) -> int:
        return await self.send(
            tokens,
            "New App Added",
            f"{app_name} by {developer_name} is now available",
            {"appId": app_id, "appName": app_name},
        )


# Singleton instance
_push_service: Optional[PushService] = None


def get_push_service() -> PushService:
    """Get or create the push service singleton"""
    global _push_service
    if _push_service is None:
        _push_service = PushService()
    return _push_service
