#!/usr/bin/env python3
"""
Notification Service Tests

Expo push batching and the admin review email, with the network patched out.
"""

import sys
import os
from unittest.mock import AsyncMock, MagicMock, patch

import httpx
import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from store.email_service import EmailService, EmailTemplates
from store.push_service import PushService, EXPO_BATCH_SIZE


def expo_response(status_code=200):
    return httpx.Response(status_code, json={"data": []}, request=httpx.Request("POST", "http://push.test"))


class TestPushService:

    def test_build_messages(self):
        messages = PushService.build_messages(["a", "b"], "Title", "Body", {"appId": "1"})
        assert messages == [
            {"to": "a", "title": "Title", "body": "Body", "data": {"appId": "1"}},
            {"to": "b", "title": "Title", "body": "Body", "data": {"appId": "1"}},
        ]

    def test_build_messages_without_data(self):
        assert "data" not in PushService.build_messages(["a"], "T", "B")[0]

    async def test_no_tokens_no_request(self):
        with patch("httpx.AsyncClient.post", new_callable=AsyncMock) as mock_post:
            assert await PushService("http://push.test").send([], "T", "B") == 0
        mock_post.assert_not_called()

    async def test_batches_of_one_hundred(self):
        tokens = [f"ExponentPushToken[{i}]" for i in range(EXPO_BATCH_SIZE * 2 + 50)]

        with patch("httpx.AsyncClient.post", new_callable=AsyncMock, return_value=expo_response()) as mock_post:
            accepted = await PushService("http://push.test").send(tokens, "T", "B")

        assert accepted == 250
        assert [len(call.kwargs["json"]) for call in mock_post.call_args_list] == [100, 100, 50]
        assert mock_post.call_args_list[0].args[0] == "http://push.test"

    async def test_rejected_batch_not_counted(self):
        responses = [expo_response(200), expo_response(500)]
        tokens = [f"t{i}" for i in range(150)]

        with patch("httpx.AsyncClient.post", new_callable=AsyncMock, side_effect=responses):
            accepted = await PushService("http://push.test").send(tokens, "T", "B")

        assert accepted == 100

    async def test_notify_new_app(self):
        service = PushService("http://push.test")
        with patch.object(service, "send", new_callable=AsyncMock, return_value=1) as mock_send:
            await service.notify_new_app(["t"], "app-1", "Delta", "Yoshi")

        mock_send.assert_awaited_once_with(
            ["t"], "New App Added", "Delta by Yoshi is now available", {"appId": "app-1", "appName": "Delta"}
        )


class TestEmailService:

    async def test_console_mode(self):
        service = EmailService(admin_email="review@antimatter.io")
        service.sendgrid_api_key = None

        with patch("sendgrid.SendGridAPIClient") as mock_client:
            assert await service.send_app_pending_review("id-1", "Delta", "Yoshi", "1.0", "games")

        mock_client.assert_not_called()

    async def test_sendgrid(self):
        service = EmailService(sendgrid_api_key="SG.test", admin_email="review@antimatter.io")

        with patch("sendgrid.SendGridAPIClient") as mock_client:
            mock_client.return_value.send.return_value = MagicMock(status_code=202)
            assert await service.send_app_pending_review("id-1", "Delta", "Yoshi", "1.0", "games")

        mock_client.assert_called_once_with("SG.test")
        message = mock_client.return_value.send.call_args.args[0]
        assert message.subject.subject == "[Anti-Matter] New app pending review: Delta"

    async def test_sendgrid_error_status(self):
        service = EmailService(sendgrid_api_key="SG.test")

        with patch("sendgrid.SendGridAPIClient") as mock_client:
            mock_client.return_value.send.return_value = MagicMock(status_code=401)
            assert not await service.send_app_pending_review("id-1", "Delta", "Yoshi", "1.0", "games")

    def test_template_escapes_fields(self):
        content = EmailTemplates.app_pending_review("id-1", "<b>Delta</b>", "A & B", "1.0", "games")
        assert "&lt;b&gt;Delta&lt;/b&gt;" in content
        assert "A &amp; B" in content
