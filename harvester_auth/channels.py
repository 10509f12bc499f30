from __future__ import annotations

import logging
from typing import Protocol

import requests

from harvester_auth.config import Settings
from harvester_auth.errors import DeliveryFailed

logger = logging.getLogger(__name__)

GRAPH_BASE = "https://graph.facebook.com"


class DeliveryGateway(Protocol):
    name: str

    def send(self, subject: str, code: str, timeout: float) -> None:
        ...


def _post(url: str, timeout: float, **kwargs) -> dict:
    try:
        r = requests.post(url, timeout=timeout, **kwargs)
        r.raise_for_status()
        return r.json()
    except (requests.RequestException, ValueError) as exc:
        # the request body holds the code, so only the failure type is logged
        logger.warning("otp delivery to %s failed: %s", url.split("?", 1)[0], type(exc).__name__)
        raise DeliveryFailed() from exc


class Fast2SmsGateway:
    name = "sms"

    def __init__(self, api_key: str, url: str = "https://www.fast2sms.com/dev/bulkV2"):
        self.api_key = api_key
        self.url = url

    def send(self, subject: str, code: str, timeout: float) -> None:
        headers = {"authorization": self.api_key}
        payload = {"route": "otp", "variables_values": code, "numbers": subject}
        body = _post(self.url, timeout, headers=headers, json=payload)
        # Fast2SMS answers 200 with {"return": false} on rejected requests
        if body.get("return") is False:
            logger.warning("fast2sms rejected otp request: %s", body.get("message"))
            raise DeliveryFailed()


class WhatsAppGateway:
    name = "whatsapp"

    def __init__(self, phone_number_id: str, access_token: str, country_code: str = "91", ttl_seconds: int = 60):
        self.phone_number_id = phone_number_id
        self.access_token = access_token
        self.country_code = country_code
        self.ttl_seconds = ttl_seconds

    def send(self, subject: str, code: str, timeout: float) -> None:
        url = f"{GRAPH_BASE}/v20.0/{self.phone_number_id}/messages"
        headers = {"Authorization": f"Bearer {self.access_token}", "Content-Type": "application/json"}
        text = f"Your Harvester verification code is {code}. It is valid for {self.ttl_seconds} seconds."
        payload = {
            "messaging_product": "whatsapp",
            "to": f"{self.country_code}{subject}",
            "type": "text",
            "text": {"body": text},
        }
        _post(url, timeout, headers=headers, json=payload)


def build_gateway(settings: Settings) -> DeliveryGateway:
    channel = settings.DELIVERY_CHANNEL.lower()
    if channel == "sms":
        if not settings.FAST2SMS_API_KEY:
            raise ValueError("FAST2SMS_API_KEY is required for DELIVERY_CHANNEL=sms")
        return Fast2SmsGateway(settings.FAST2SMS_API_KEY, settings.FAST2SMS_URL)
    if channel == "whatsapp":
        if not settings.WHATSAPP_PHONE_NUMBER_ID or not settings.WHATSAPP_ACCESS_TOKEN:
            raise ValueError("WHATSAPP_PHONE_NUMBER_ID and WHATSAPP_ACCESS_TOKEN are required for DELIVERY_CHANNEL=whatsapp")
        return WhatsAppGateway(
            settings.WHATSAPP_PHONE_NUMBER_ID,
            settings.WHATSAPP_ACCESS_TOKEN,
            settings.WHATSAPP_COUNTRY_CODE,
            settings.OTP_TTL_SECONDS,
        )
    raise ValueError(f"Unknown DELIVERY_CHANNEL: {settings.DELIVERY_CHANNEL}")
