from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import Field


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    app_name: str = "Weight Logger"

    # Sampling
    sample_seconds: float = 1.0
    window_size: int = 5  # readings per channel considered for stability

    # Filter thresholds (sensor units, grams on the HX711 driver)
    stable_eps: float = 10.0   # max spread of a stable window
    change_eps: float = 10.0   # single-step jump / delta since last commit

    # Status light auto-revert to idle
    changing_revert_seconds: float = 5.0
    stored_revert_seconds: float = 3.0
    client_revert_seconds: float = 3.0

    # Dashboard
    recent_limit: int = 10
    recent_broadcast_seconds: float = 1.0
    host: str = "0.0.0.0"
    port: int = 3000

    # Storage
    sqlite_path: str = Field(default="weight_logger.db")
    log_path: str = "weight_logger.log"

    # Sensor mode: "sim" for development, "file" reads the HX711 /proc entries
    sensor_mode: str = "sim"
    sensor_ids: list[str] = Field(default_factory=lambda: ["sensor1", "sensor2"])
    sensor_paths: list[str] = Field(default_factory=lambda: ["/proc/weight1", "/proc/weight2"])

    # Status light: "sim" or "gpio"
    status_light_mode: str = "sim"
    gpio_chip: int = 0
    led_red_pin: int = 16
    led_green_pin: int = 20
    led_blue_pin: int = 21


settings = Settings()
