"""Telegram user session for the Saved Messages channel.

Only the ``telegram_saved`` channel needs a user session; the Bot API channel
works with a token alone. The session is created once with ``pulse login``
and reused from the local .session file afterwards.
"""

from __future__ import annotations

import logging
import os
from getpass import getpass

import qrcode
from dotenv import load_dotenv
from telethon import TelegramClient, errors

LOGGER = logging.getLogger(__name__)

LOGIN_METHODS = ("qr", "phone")


def build_client() -> TelegramClient:
    """Create a Telethon client from environment variables.

    We read API_ID/API_HASH via python-dotenv to keep secrets out of the repo.
    The session name defaults to "pulse" to create a local .session file.
    """

    load_dotenv()

    api_id = os.getenv("API_ID")
    api_hash = os.getenv("API_HASH")
    session_name = os.getenv("SESSION_NAME", "pulse")

    # Fail fast on missing credentials to avoid an ambiguous login prompt.
    if not api_id or not api_hash:
        raise RuntimeError("Missing API_ID or API_HASH in environment")

    LOGGER.info("Initializing Telegram client")
    return TelegramClient(session_name, int(api_id), api_hash)


def _two_factor_password() -> str:
    return os.getenv("TG_2FA_PASSWORD") or getpass("2FA password: ")


async def _login_with_qr(client: TelegramClient, timeout: int) -> None:
    qr_login = await client.qr_login()
    code = qrcode.QRCode(border=1)
    code.add_data(qr_login.url)
    code.make(fit=True)
    code.print_ascii(invert=True)
    print(f"Scan the code in Telegram > Settings > Devices within {timeout}s")
    await qr_login.wait(timeout=timeout)


async def _login_with_phone(client: TelegramClient) -> None:
    phone = os.getenv("PHONE") or input("Phone number (international format): ").strip()
    await client.send_code_request(phone)
    await client.sign_in(phone=phone, code=input("Login code: ").strip())


async def authorize(client: TelegramClient, method: str = "qr", qr_timeout: int = 120) -> bool:
    """Log the session in if needed; return True when a new login happened."""

    if method not in LOGIN_METHODS:
        raise ValueError(f"login method must be one of {LOGIN_METHODS}")
    if await client.is_user_authorized():
        return False

    try:
        if method == "phone":
            await _login_with_phone(client)
        else:
            await _login_with_qr(client, qr_timeout)
    except errors.SessionPasswordNeededError:
        await client.sign_in(password=_two_factor_password())

    me = await client.get_me()
    LOGGER.info("Logged in as %s", me.first_name)
    return True
