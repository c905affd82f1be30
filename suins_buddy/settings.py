import os
from dotenv import load_dotenv

load_dotenv()

class Settings:
    # Telegram credential. Startup refuses to run without it.
    NS_BOT_TOKEN: str = os.getenv("NS_BOT_TOKEN", "")

    REDIS_URL: str = os.getenv("REDIS_URL", "redis://localhost:6379/0")

    # Telegram Bot API
    TELEGRAM_API_BASE: str = os.getenv("TELEGRAM_API_BASE", "https://api.telegram.org").rstrip("/")
    TELEGRAM_TIMEOUT_SEC: float = float(os.getenv("TELEGRAM_TIMEOUT_SEC", "10"))
    # Modes:
    # - "polling": long-poll getUpdates from inside the process (default, no public URL needed)
    # - "webhook": Telegram pushes updates to POST /telegram/webhook
    UPDATE_MODE: str = os.getenv("UPDATE_MODE", "polling").lower()
    WEBHOOK_URL: str = os.getenv("WEBHOOK_URL", "")
    WEBHOOK_SECRET: str = os.getenv("WEBHOOK_SECRET", "")
    POLL_TIMEOUT_SEC: int = int(os.getenv("POLL_TIMEOUT_SEC", "30"))

    # Sui full node (JSON-RPC) used to resolve SuiNS records
    SUI_RPC_URL: str = os.getenv("SUI_RPC_URL", "https://fullnode.mainnet.sui.io:443")
    SUI_RPC_TIMEOUT_SEC: float = float(os.getenv("SUI_RPC_TIMEOUT_SEC", "8.0"))
    SUI_RPC_BUDGET_SEC: float = float(os.getenv("SUI_RPC_BUDGET_SEC", "20.0"))
    SUI_RPC_MAX_RETRIES: int = int(os.getenv("SUI_RPC_MAX_RETRIES", "2"))
    SUI_OWNED_PAGE_SIZE: int = int(os.getenv("SUI_OWNED_PAGE_SIZE", "50"))
    SUI_OWNED_MAX_PAGES: int = int(os.getenv("SUI_OWNED_MAX_PAGES", "200"))

    # SuiNS mainnet objects
    SUINS_PACKAGE_ID: str = os.getenv(
        "SUINS_PACKAGE_ID",
        "0xd22b24490e0bae52676651b4f56660a5ff8022a2576e0089f79b3c88d44e08f0",
    )
    SUINS_REGISTRY_TABLE_ID: str = os.getenv(
        "SUINS_REGISTRY_TABLE_ID",
        "0xe64cd9db9f829c6cc405d9790bd71567ae07259855f4fba6f02c84f52298c106",
    )

    # Notification sweep
    SWEEP_INTERVAL_SEC: int = int(os.getenv("SWEEP_INTERVAL_SEC", "3600"))
    SWEEP_INITIAL_DELAY_SEC: int = int(os.getenv("SWEEP_INITIAL_DELAY_SEC", "5"))
    SWEEP_DRAIN_TIMEOUT_SEC: int = int(os.getenv("SWEEP_DRAIN_TIMEOUT_SEC", "60"))
    NOTIFICATION_TTL_DAYS: int = int(os.getenv("NOTIFICATION_TTL_DAYS", "60"))

    # Conversation sessions
    SESSION_TTL_SEC: int = int(os.getenv("SESSION_TTL_SEC", "86400"))
    NAMES_PER_MESSAGE: int = int(os.getenv("NAMES_PER_MESSAGE", "50"))

    # Redis key namespaces
    TRACKERS_KEY_PREFIX: str = os.getenv("TRACKERS_KEY_PREFIX", "trackers:")
    ALL_TRACKED_NAMES_KEY: str = os.getenv("ALL_TRACKED_NAMES_KEY", "all-tracked-names")
    ALL_SUBSCRIBERS_KEY: str = os.getenv("ALL_SUBSCRIBERS_KEY", "all-subscribers")
    NOTIFICATIONS_KEY_PREFIX: str = os.getenv("NOTIFICATIONS_KEY_PREFIX", "notifications:")
    SESSION_KEY_PREFIX: str = os.getenv("SESSION_KEY_PREFIX", "chat-session:")

    # Links rendered into replies
    EXPLORER_URL: str = os.getenv("EXPLORER_URL", "https://suiscan.xyz/mainnet").rstrip("/")
    RENEW_URL: str = os.getenv("RENEW_URL", "https://suins.io/")

    # Security & Privacy
    ENABLE_PII_REDACTION: bool = os.getenv("ENABLE_PII_REDACTION", "true").lower() == "true"
    ADMIN_RBAC_ENABLED: bool = os.getenv("ADMIN_RBAC_ENABLED", "true").lower() == "true"
    ADMIN_API_KEY: str = os.getenv("ADMIN_API_KEY", "")

settings = Settings()
