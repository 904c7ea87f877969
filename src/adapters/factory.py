"""Build channel adapters from the ``channels`` config section.

Each channel entry may name its adapter with ``"adapter"``; otherwise the
channel name is used. Secrets are read from the environment so they never
live in config.json.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Mapping, Optional

from adapters.console_notifier import ConsoleNotifier
from adapters.dingtalk_notifier import DingTalkNotifier
from adapters.discord_notifier import DiscordNotifier
from adapters.email_notifier import EmailNotifier
from adapters.feishu_notifier import FeishuNotifier
from adapters.slack_notifier import SlackNotifier
from adapters.telegram_bot_notifier import TelegramBotNotifier
from adapters.telegram_notifier import TelegramSavedMessagesNotifier
from adapters.wechat_work_notifier import WeChatWorkNotifier
from core.config import ChannelConfig, RouterConfig
from core.errors import InvalidConfiguration
from core.ports import ChannelAdapter

LOGGER = logging.getLogger(__name__)

ADAPTER_TYPES = (
    "console",
    "telegram",
    "telegram_saved",
    "discord",
    "slack",
    "email",
    "feishu",
    "dingtalk",
    "wechat_work",
)


def _secret(env: Mapping[str, str], settings: Mapping[str, Any], key: str, default_env: str, channel: str) -> str:
    env_name = settings.get(key, default_env)
    value = env.get(env_name)
    if not value:
        raise InvalidConfiguration(f"{env_name} is required for channel '{channel}'")
    return value


def _require(settings: Mapping[str, Any], key: str, channel: str) -> Any:
    value = settings.get(key)
    if value in (None, ""):
        raise InvalidConfiguration(f"channels.{channel}.{key} is required")
    return value


def build_adapter(
    channel: ChannelConfig,
    env: Mapping[str, str],
    telegram_client_factory: Optional[Callable[[], Any]] = None,
) -> ChannelAdapter:
    settings = channel.settings
    kind = settings.get("adapter", channel.name)
    name = channel.name

    if kind == "console":
        return ConsoleNotifier(name=name)
    if kind == "telegram":
        return TelegramBotNotifier(
            bot_token=_secret(env, settings, "tokenEnv", "BOT_API", name),
            chat_id=str(_require(settings, "chatId", name)),
            name=name,
        )
    if kind == "telegram_saved":
        if telegram_client_factory is None:
            raise InvalidConfiguration(f"channel '{name}' needs a Telegram user session")
        try:
            client = telegram_client_factory()
        except RuntimeError as e:
            raise InvalidConfiguration(f"channel '{name}': {e}") from e
        return TelegramSavedMessagesNotifier(client, name=name)
    if kind == "discord":
        return DiscordNotifier(
            webhook_url=_secret(env, settings, "webhookEnv", "DISCORD_WEBHOOK_URL", name),
            username=settings.get("username", "Pulse"),
            avatar_url=settings.get("avatarUrl"),
            name=name,
        )
    if kind == "slack":
        return SlackNotifier(
            webhook_url=_secret(env, settings, "webhookEnv", "SLACK_WEBHOOK_URL", name),
            channel=settings.get("channel"),
            username=settings.get("username", "Pulse"),
            icon_emoji=settings.get("iconEmoji", ":robot_face:"),
            name=name,
        )
    if kind == "email":
        password_env = settings.get("passwordEnv", "SMTP_PASSWORD")
        return EmailNotifier(
            host=_require(settings, "host", name),
            port=int(settings.get("port", 587)),
            sender=_require(settings, "from", name),
            recipient=_require(settings, "to", name),
            username=settings.get("username"),
            password=env.get(password_env),
            use_tls=bool(settings.get("tls", True)),
            name=name,
        )
    if kind == "feishu":
        return FeishuNotifier(
            webhook_url=_secret(env, settings, "webhookEnv", "FEISHU_WEBHOOK_URL", name),
            secret=env.get(settings.get("secretEnv", "FEISHU_SECRET")),
            name=name,
        )
    if kind == "dingtalk":
        return DingTalkNotifier(
            webhook_url=_secret(env, settings, "webhookEnv", "DINGTALK_WEBHOOK_URL", name),
            secret=env.get(settings.get("secretEnv", "DINGTALK_SECRET")),
            at_mobiles=settings.get("atMobiles", ()),
            name=name,
        )
    if kind == "wechat_work":
        return WeChatWorkNotifier(
            webhook_url=_secret(env, settings, "webhookEnv", "WECHAT_WORK_WEBHOOK_URL", name),
            mention_list=settings.get("mentionList", ()),
            mention_mobiles=settings.get("mentionMobiles", ()),
            name=name,
        )
    raise InvalidConfiguration(f"channels.{name}.adapter must be one of {', '.join(ADAPTER_TYPES)}, got {kind!r}")


def build_adapters(
    config: RouterConfig,
    env: Mapping[str, str],
    telegram_client_factory: Optional[Callable[[], Any]] = None,
) -> dict[str, ChannelAdapter]:
    """Build adapters for every enabled channel; disabled ones are skipped."""

    adapters: dict[str, ChannelAdapter] = {}
    for channel in config.channels:
        if not channel.enabled:
            continue
        adapters[channel.name] = build_adapter(channel, env, telegram_client_factory)
        LOGGER.info("Channel %s ready (%s)", channel.name, channel.settings.get("adapter", channel.name))
    return adapters
