"""Resend delivery and demo mode."""
import threading

import pytest

from services import email as email_service
from services.email import EmailResult


@pytest.mark.asyncio
async def test_demo_mode_without_api_key(monkeypatch):
    monkeypatch.delenv("RESEND_API_KEY", raising=False)
    result = await email_service.send_welcome_email("new@example.com", "New")
    assert result == EmailResult(success=True, message_id="demo-welcome")


@pytest.mark.asyncio
async def test_resend_call_runs_in_worker_thread(monkeypatch):
    monkeypatch.setenv("RESEND_API_KEY", "re_test")
    calls = []

    def blocking_send(params):
        calls.append((threading.get_ident(), params))
        return {"id": "msg_1"}

    monkeypatch.setattr(email_service.resend.Emails, "send", blocking_send)
    result = await email_service.send_invitation_email("new@example.com", "New", "tok")

    assert result == EmailResult(success=True, message_id="msg_1")
    thread_id, params = calls[0]
    assert thread_id != threading.get_ident()
    assert params["to"] == ["new@example.com"]
    assert "/auth/setup-password/tok" in params["html"]


@pytest.mark.asyncio
async def test_resend_failure_is_reported_not_raised(monkeypatch):
    monkeypatch.setenv("RESEND_API_KEY", "re_test")

    def failing_send(params):
        raise RuntimeError("rate limited")

    monkeypatch.setattr(email_service.resend.Emails, "send", failing_send)
    result = await email_service.send_welcome_email("new@example.com", "New")

    assert result.success is False
    assert result.error == "rate limited"
