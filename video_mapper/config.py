from pydantic_settings import BaseSettings, SettingsConfigDict
from functools import lru_cache
from typing import Literal

SERVICE_NAME = "next-video-mapper"
SERVICE_DESCRIPTION = "Catch native video content transform into Content and send back to queue."
VERSION = "0.1.0"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    # Queue proxy addresses, comma-separated, tried in order
    Q_ADDR: str
    Q_GROUP: str
    Q_READ_TOPIC: str
    Q_READ_QUEUE: str
    Q_WRITE_TOPIC: str
    Q_WRITE_QUEUE: str
    Q_AUTHORIZATION: str = ""
    PORT: int = 8080
    LOG_JSON: bool = True
    # Backend adapter selection: "proxy" or "memory"
    QUEUE_ADAPTER: Literal["proxy", "memory"] = "proxy"
    # Outbound HTTP client
    HTTP_CONNECT_TIMEOUT: float = 30.0
    HTTP_READ_TIMEOUT: float = 30.0
    HTTP_MAX_KEEPALIVE: int = 20
    CONSUMER_BACKOFF_SECONDS: float = 8.0

    @property
    def queue_addresses(self) -> list[str]:
        return [a.strip().rstrip("/") for a in self.Q_ADDR.split(",") if a.strip()]

    @property
    def producer_address(self) -> str:
        return self.queue_addresses[0]

    def describe(self) -> dict:
        """Effective queue configuration, safe to log (no authorization key)."""
        return {
            "consumer": {
                "addr": self.queue_addresses,
                "group": self.Q_GROUP,
                "topic": self.Q_READ_TOPIC,
                "read_queue_header": self.Q_READ_QUEUE,
            },
            "producer": {
                "addr": self.producer_address if self.queue_addresses else None,
                "topic": self.Q_WRITE_TOPIC,
                "write_queue_header": self.Q_WRITE_QUEUE,
            },
        }


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    return Settings()
