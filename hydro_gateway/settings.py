from pydantic import BaseModel
import os

class Settings(BaseModel):
    database_url: str = os.getenv("DATABASE_URL", "sqlite:///./hydroponics.db")
    log_level: str = os.getenv("LOG_LEVEL", "INFO")

    # deployment-fixed device address scope
    project_id: str = os.getenv("GCP_PROJECT_ID", "hydroponics-378311")
    region: str = os.getenv("IOT_REGION", "asia-east1")
    registry_id: str = os.getenv("IOT_REGISTRY_ID", "hydroponics")

    mqtt_enabled: bool = os.getenv("MQTT_ENABLED", "1") == "1"
    mqtt_host: str = os.getenv("MQTT_HOST", "mqtt")
    mqtt_port: int = int(os.getenv("MQTT_PORT", "1883"))
    mqtt_username: str | None = os.getenv("MQTT_USERNAME") or None
    mqtt_password: str | None = os.getenv("MQTT_PASSWORD") or None
    mqtt_topic_base: str = os.getenv("MQTT_TOPIC_BASE", "devices")
    mqtt_publish_timeout: float = float(os.getenv("MQTT_PUBLISH_TIMEOUT", "5"))

    history_window_minutes: int = int(os.getenv("HISTORY_WINDOW_MINUTES", "60"))
    history_scope: str = os.getenv("HISTORY_SCOPE", "fleet")  # fleet|device
    history_strict: bool = os.getenv("HISTORY_STRICT", "0") == "1"

settings = Settings()
