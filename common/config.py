from __future__ import annotations

import os
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional

from dotenv import load_dotenv


def _default_env_file() -> str:
    # .env en el directorio de trabajo
    return str(Path.cwd() / ".env")


def _env_float(name: str, default: str) -> float:
    return float(os.getenv(name, default))


def _env_int(name: str, default: str) -> int:
    return int(os.getenv(name, default))


@dataclass(frozen=True)
class Settings:
    mqtt_host: str
    mqtt_port: int
    mqtt_user: Optional[str]
    mqtt_password: Optional[str]
    mqtt_client_id: str

    topic_sensors: str
    topic_pump_control: str
    topic_pump_status: str
    topic_system_status: str
    topic_alerts: str

    redis_url: str
    ts_stream_name: str
    ts_stream_maxlen: int

    telegram_bot_token: Optional[str]
    telegram_chat_id: Optional[str]

    low_water_threshold: float
    high_water_threshold: float
    alert_cooldown_seconds: float
    leak_drop_threshold: float
    critical_level: float
    vibration_alert_rms: float
    current_alert_amps: float

    timezone: str
    ws_ping_interval_seconds: float
    ingest_queue_size: int

    cb_failure_threshold: int
    cb_recovery_timeout_seconds: float
    cb_success_threshold: int

    api_key: Optional[str]
    log_level: str
    host: str
    port: int

    @property
    def telegram_enabled(self) -> bool:
        return bool(self.telegram_bot_token and self.telegram_chat_id)

    def missing_required(self) -> List[str]:
        """Variables de integración que no están configuradas.

        No impide el arranque: el hub funciona degradado sin Telegram ni
        credenciales MQTT, pero se deja constancia en el log.
        """
        required = {
            "MQTT_HOST": os.getenv("MQTT_HOST"),
            "MQTT_PORT": os.getenv("MQTT_PORT"),
            "REDIS_URL": os.getenv("REDIS_URL"),
            "TELEGRAM_BOT_TOKEN": self.telegram_bot_token,
            "TELEGRAM_CHAT_ID": self.telegram_chat_id,
        }
        return [name for name, value in required.items() if not value or not str(value).strip()]


def get_settings() -> Settings:
    # Load env file (if present) but still allow overriding via real environment variables.
    env_file = os.getenv("ACQUASYS_ENV_FILE", _default_env_file())
    if env_file and Path(env_file).exists():
        load_dotenv(env_file, override=False)

    return Settings(
        mqtt_host=os.getenv("MQTT_HOST", "localhost").strip() or "localhost",
        mqtt_port=_env_int("MQTT_PORT", "1883"),
        mqtt_user=os.getenv("MQTT_USER") or None,
        mqtt_password=os.getenv("MQTT_PASS") or None,
        mqtt_client_id=os.getenv("MQTT_CLIENT_ID", "acquasys-hub"),
        topic_sensors=os.getenv("MQTT_TOPIC_SENSORS", "acquasys/sensors"),
        topic_pump_control=os.getenv("MQTT_TOPIC_PUMP_CONTROL", "acquasys/pump/control"),
        topic_pump_status=os.getenv("MQTT_TOPIC_PUMP_STATUS", "acquasys/pump/status"),
        topic_system_status=os.getenv("MQTT_TOPIC_SYSTEM_STATUS", "acquasys/system/status"),
        topic_alerts=os.getenv("MQTT_TOPIC_ALERTS", "acquasys/alerts"),
        redis_url=os.getenv("REDIS_URL", "redis://localhost:6379/0"),
        ts_stream_name=os.getenv("TS_STREAM_NAME", "acquasys:readings"),
        ts_stream_maxlen=_env_int("TS_STREAM_MAXLEN", "100000"),
        telegram_bot_token=os.getenv("TELEGRAM_BOT_TOKEN") or None,
        telegram_chat_id=os.getenv("TELEGRAM_CHAT_ID") or None,
        low_water_threshold=_env_float("LOW_WATER_THRESHOLD", "20"),
        high_water_threshold=_env_float("HIGH_WATER_THRESHOLD", "95"),
        alert_cooldown_seconds=_env_float("ALERT_COOLDOWN_SECONDS", "600"),
        leak_drop_threshold=_env_float("LEAK_DROP_THRESHOLD", "1.0"),
        critical_level=_env_float("CRITICAL_LEVEL", "10.0"),
        vibration_alert_rms=_env_float("VIBRATION_ALERT_RMS", "2.5"),
        current_alert_amps=_env_float("CURRENT_ALERT_AMPS", "5.0"),
        timezone=os.getenv("HUB_TIMEZONE", "America/Sao_Paulo"),
        ws_ping_interval_seconds=_env_float("WS_PING_INTERVAL_SECONDS", "30"),
        ingest_queue_size=_env_int("INGEST_QUEUE_SIZE", "1000"),
        cb_failure_threshold=_env_int("CB_FAILURE_THRESHOLD", "3"),
        cb_recovery_timeout_seconds=_env_float("CB_RECOVERY_TIMEOUT", "30"),
        cb_success_threshold=_env_int("CB_SUCCESS_THRESHOLD", "1"),
        api_key=os.getenv("HUB_API_KEY") or None,
        log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        host=os.getenv("HOST", "0.0.0.0"),
        port=_env_int("PORT", "5000"),
    )
