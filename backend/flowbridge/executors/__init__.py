# Copyright (c) 2025 adcl.io
# All Rights Reserved.
#
# This software is proprietary and confidential. Unauthorized copying,
# distribution, or use of this software is strictly prohibited.

"""
Executor catalog.

build_default_registry wires every built-in node kind to its executor.
"""

from typing import Optional

from flowbridge.interfaces.dispatcher import InterfaceDispatcher
from flowbridge.interfaces.repository import InterfaceRepository
from .base import BaseExecutor, ExecutorRegistry
from .conditional import ConditionalExecutor
from .custom_code import CustomCodeExecutor
from .interface import InterfaceDestinationExecutor, InterfaceSourceExecutor
from .notification import EmailNotificationExecutor, SmtpTransport
from .parsers import CsvParserExecutor, XmlParserExecutor
from .transform import JsonBuilderExecutor, ObjectMapperExecutor
from .triggers import ManualTriggerExecutor, WebhookTriggerExecutor
from .validation import ValidationExecutor


def build_default_registry(
    interfaces: InterfaceRepository,
    dispatcher: InterfaceDispatcher,
    mail_transport: Optional[SmtpTransport] = None,
    email_from: str = "flowbridge@localhost"
) -> ExecutorRegistry:
    return ExecutorRegistry([
        ManualTriggerExecutor(),
        WebhookTriggerExecutor(),
        XmlParserExecutor(),
        CsvParserExecutor(),
        ObjectMapperExecutor(),
        JsonBuilderExecutor(),
        ValidationExecutor(),
        ConditionalExecutor(interfaces),
        InterfaceSourceExecutor(dispatcher),
        InterfaceDestinationExecutor(dispatcher),
        EmailNotificationExecutor(mail_transport, default_from=email_from),
        CustomCodeExecutor(),
    ])


__all__ = [
    "BaseExecutor",
    "ExecutorRegistry",
    "build_default_registry",
]
