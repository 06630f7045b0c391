"""SMS transport backends. The active backend is chosen by settings.SMS_BACKEND."""

import logging

from django.conf import settings
from django.utils.module_loading import import_string

from .templates import redact_pii

logger = logging.getLogger(__name__)


class BaseSmsBackend:
    def send(self, phone_number: str, message: str) -> None:
        raise NotImplementedError


class ConsoleSmsBackend(BaseSmsBackend):
    """Writes messages to the log instead of a carrier; used in development."""

    def send(self, phone_number: str, message: str) -> None:
        logger.info("SMS -> %s: %s", redact_pii(phone_number), redact_pii(message))


class LocmemSmsBackend(BaseSmsBackend):
    """Keeps sent messages in memory for tests."""

    outbox = []

    def send(self, phone_number: str, message: str) -> None:
        self.outbox.append((phone_number, message))


def get_sms_backend() -> BaseSmsBackend:
    return import_string(settings.SMS_BACKEND)()
