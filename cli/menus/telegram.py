"""
Telegram notifications setup menu.
"""
import asyncio

from cli.utils import prompt
from core import telegram_notifier as tn
from core.telegram_notifier import TelegramConfig, TelegramNotifier


async def _send_test(config: TelegramConfig) -> None:
    notifier = TelegramNotifier(config)
    notifier.notify_success("Test notification from baseswap")
    await notifier.flush()


def menu_telegram_setup() -> None:
    """Configure Telegram notifications for swap outcomes."""
    print("\nTelegram Notifications Setup")
    print("\nHow to get Bot Token and Chat ID:")
    print("  1. Open Telegram and search for @BotFather")
    print("  2. Send /newbot and copy the Bot Token")
    print("  3. Send any message to your bot")
    print("  4. Visit: https://api.telegram.org/bot<YOUR_BOT_TOKEN>/getUpdates and copy 'chat':{'id': ...}")
    print("\nCurrent Configuration:")

    config = tn.load_config(tn.TELEGRAM_CONFIG_PATH)
    if config:
        print(f"  Bot Token: {'*' * 20}{config.bot_token[-6:] if len(config.bot_token) > 6 else '***'}")
        print(f"  Chat ID: {config.chat_id}")
        print(f"  Enabled: {'Yes' if config.enabled else 'No'}")
        print(f"  Batch Interval: {config.batch_interval}s")
    else:
        print("  Not configured yet")

    print("\nOptions:")
    print("  1) Configure Bot Token and Chat ID")
    print("  2) Enable/Disable notifications")
    print("  3) Test notification")
    print("  0) Back")

    choice = prompt("Select: ").strip()
    if choice == "1":
        token = prompt("Enter Bot Token: ").strip()
        chat_id = prompt("Enter Chat ID: ").strip()
        if not token or not chat_id:
            print("Bot Token and Chat ID are required.")
            return
        tn.save_config(TelegramConfig(bot_token=token, chat_id=chat_id), tn.TELEGRAM_CONFIG_PATH)
        print("✓ Telegram configuration saved!")
    elif choice == "2":
        if not config:
            print("Please configure Telegram first (option 1)")
            return
        config.enabled = prompt("Enable notifications? (yes/no): ").strip().lower() in {"yes", "y"}
        tn.save_config(config, tn.TELEGRAM_CONFIG_PATH)
        print(f"✓ Notifications {'enabled' if config.enabled else 'disabled'}")
    elif choice == "3":
        if not config or not config.enabled:
            print("Telegram is not configured or disabled")
            return
        try:
            asyncio.run(_send_test(config))
            print("✓ Test notification sent! Check your Telegram.")
        except Exception as e:
            print(f"✗ Failed to send: {e}")
