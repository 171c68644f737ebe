# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Email notification executor.

Recipient, subject and body are templates over the node input:
`{{order.id}}` or `{{$.order.id}}`. Placeholders that do not resolve are
left untouched. Mail goes out through an injected transport; in emulation
mode nothing is sent and a synthetic confirmation is returned.
"""

import json
import re
from email.message import EmailMessage
from typing import Any, Dict, List, Optional

import aiosmtplib

from flowbridge.core.errors import ConfigurationError, ConnectivityError
from flowbridge.core.logging import get_service_logger
from flowbridge.models.flow import ExecutionContext, FlowNode, NodeExecutionResult, NodeKind
from flowbridge.paths import MISSING, resolve_path
from .base import BaseExecutor

logger = get_service_logger("notification")

_PLACEHOLDER = re.compile(r"\{\{\s*([^{}]+?)\s*\}\}")

_PRIORITY_HEADERS = {
    "high": {"X-Priority": "1", "Importance": "high"},
    "low": {"X-Priority": "5", "Importance": "low"},
}


def render_template(template: str, data: Any) -> str:
    """Replace {{path}} placeholders with values from data."""
    if not template:
        return ""

    def replace(match: re.Match) -> str:
        value = resolve_path(data, match.group(1))
        if value is MISSING:
            return match.group(0)
        if isinstance(value, (dict, list)):
            return json.dumps(value, default=str)
        return str(value)

    return _PLACEHOLDER.sub(replace, str(template))


def _split_addresses(value: str) -> List[str]:
    return [address.strip() for address in value.split(",") if address.strip()]


class SmtpTransport:
    """Sends EmailMessage objects over SMTP with aiosmtplib."""

    def __init__(
        self,
        host: str,
        port: int = 587,
        username: Optional[str] = None,
        password: Optional[str] = None,
        use_tls: bool = True,
        timeout: float = 30.0
    ):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.timeout = timeout

    async def send(self, message: EmailMessage) -> None:
        await aiosmtplib.send(
            message,
            hostname=self.host,
            port=self.port,
            username=self.username or None,
            password=self.password or None,
            use_tls=self.use_tls and self.port == 465,
            start_tls=self.use_tls and self.port != 465,
            timeout=self.timeout,
        )


class EmailNotificationExecutor(BaseExecutor):
    """
    Config:
        to, cc, subject, body: templates (to/cc are comma-separated)
        body_type: "text" or "html"
        from_address, reply_to: sender overrides
        priority: "high" | "normal" | "low"
        attach_data: attach the input as data.json
        emulate: force emulation for this node
    """

    kind = NodeKind.EMAIL_NOTIFICATION

    def __init__(self, transport: Optional[SmtpTransport] = None, default_from: str = "flowbridge@localhost"):
        self.transport = transport
        self.default_from = default_from

    async def execute(self, node: FlowNode, input_data: Any, context: ExecutionContext) -> NodeExecutionResult:
        config = node.config
        to = _split_addresses(render_template(self.require(node, "to"), input_data))
        if not to:
            raise ConfigurationError(f"Email node '{node.id}' resolved to no recipients")
        cc = _split_addresses(render_template(config.get("cc", ""), input_data))
        subject = render_template(config.get("subject", ""), input_data)
        body = render_template(config.get("body", ""), input_data)

        details: Dict[str, Any] = {"to": to, "cc": cc, "subject": subject}
        emulated = context.emulation_mode or bool(config.get("emulate", False))

        if emulated:
            details["body_preview"] = body[:100] + ("..." if len(body) > 100 else "")
            details["emulated"] = True
            logger.info(f"Emulated email for node {node.id} to {', '.join(to)}")
        else:
            message = self._build_message(config, input_data, to, cc, subject, body)
            await self._send(message)
            details["emulated"] = False
            logger.info(f"Sent email for node {node.id} to {', '.join(to)}")

        base = dict(input_data) if isinstance(input_data, dict) else {"data": input_data}
        base["email_sent"] = True
        base["email_details"] = details
        return NodeExecutionResult(
            output=base,
            metadata={"emulated": emulated, "to": to, "subject": subject},
        )

    def _build_message(
        self,
        config: Dict[str, Any],
        input_data: Any,
        to: List[str],
        cc: List[str],
        subject: str,
        body: str
    ) -> EmailMessage:
        message = EmailMessage()
        message["From"] = config.get("from_address") or self.default_from
        message["To"] = ", ".join(to)
        if cc:
            message["Cc"] = ", ".join(cc)
        message["Subject"] = subject
        reply_to = render_template(config.get("reply_to", ""), input_data)
        if reply_to:
            message["Reply-To"] = reply_to
        for header, value in _PRIORITY_HEADERS.get(config.get("priority", "normal"), {}).items():
            message[header] = value

        if config.get("body_type", "text") == "html":
            message.set_content(body, subtype="html")
        else:
            message.set_content(body)

        if config.get("attach_data"):
            message.add_attachment(
                json.dumps(input_data, indent=2, default=str).encode("utf-8"),
                maintype="application",
                subtype="json",
                filename="data.json",
            )
        return message

    async def _send(self, message: EmailMessage) -> None:
        if self.transport is None:
            raise ConfigurationError("Email transport is not configured; enable emulation or configure SMTP")
        try:
            await self.transport.send(message)
        except (aiosmtplib.SMTPException, OSError) as e:
            raise ConnectivityError(
                f"Email send failed: {e}",
                attempts=[{"attempt": 1, "error": str(e)}]
            )
