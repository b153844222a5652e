from __future__ import annotations

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Mapping, Optional

import yaml
from dotenv import load_dotenv

_DEFAULT_CONFIG_PATH = Path(__file__).resolve().parent / "config" / "defaults.yaml"
load_dotenv()


def _bool_from_env(value: str | None) -> Optional[bool]:
    if value is None:
        return None
    value = value.strip().lower()
    if value in {"1", "true", "yes", "on"}:
        return True
    if value in {"0", "false", "no", "off"}:
        return False
    return None


def _merge_dicts(base: Dict, overrides: Mapping) -> Dict:
    merged = dict(base)
    for key, value in overrides.items():
        if isinstance(value, Mapping) and isinstance(base.get(key), Mapping):
            merged[key] = _merge_dicts(base[key], value)
        else:
            merged[key] = value
    return merged


def _load_yaml(path: Path) -> Dict:
    if not path.exists():
        return {}
    return yaml.safe_load(path.read_text()) or {}


def _first_env(env: Mapping[str, str], *names: str) -> Optional[str]:
    for name in names:
        value = env.get(name)
        if value:
            return value
    return None


@dataclass
class DefaultLocation:
    name: str = "New York, NY"
    latitude: float = 40.7128
    longitude: float = -74.006


@dataclass
class WeatherConfig:
    base_url: str = "https://api.weather.gov"
    user_agent: str = "SkyView Weather (weather-app@example.com)"
    timeout: float = 10.0
    time_zone: str = "America/New_York"
    default_location: DefaultLocation = field(default_factory=DefaultLocation)


@dataclass
class CacheConfig:
    fresh_ttl_seconds: float = 300.0
    stale_ttl_seconds: float = 1800.0
    retry_delays: List[float] = field(default_factory=lambda: [0.0, 0.3, 0.8])


@dataclass
class GeocodingConfig:
    base_url: str = "https://geocoding-api.open-meteo.com/v1/search"
    country: str = "US"
    count: int = 6
    timeout: float = 10.0


@dataclass
class EmailConfig:
    api_url: str = "https://api.resend.com/emails"
    api_key: Optional[str] = None
    sender: Optional[str] = None
    timeout: float = 10.0


@dataclass
class SubscriberConfig:
    path: str = "data/subscribers.json"


@dataclass
class DigestConfig:
    send_hour: int = 7
    default_timezone: str = "America/New_York"
    base_url: str = "http://localhost:8000"


@dataclass
class SchedulerConfig:
    cron: str = "0 * * * *"
    enabled: bool = True


@dataclass
class LoggingConfig:
    level: str = "INFO"
    json: bool = True


@dataclass
class AppConfig:
    weather: WeatherConfig = field(default_factory=WeatherConfig)
    cache: CacheConfig = field(default_factory=CacheConfig)
    geocoding: GeocodingConfig = field(default_factory=GeocodingConfig)
    email: EmailConfig = field(default_factory=EmailConfig)
    subscribers: SubscriberConfig = field(default_factory=SubscriberConfig)
    digest: DigestConfig = field(default_factory=DigestConfig)
    scheduler: SchedulerConfig = field(default_factory=SchedulerConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)


def _weather_config(data: Dict) -> WeatherConfig:
    data = dict(data)
    location_data = data.pop("default_location", None) or {}
    return WeatherConfig(default_location=DefaultLocation(**location_data), **data)


def load_config(*, config_path: str | None = None, env: Mapping[str, str] | None = None) -> AppConfig:
    env = dict(os.environ if env is None else env)
    data = _load_yaml(_DEFAULT_CONFIG_PATH)

    explicit_path = config_path or env.get("SKYVIEW_CONFIG_PATH")
    if explicit_path:
        data = _merge_dicts(data, _load_yaml(Path(explicit_path)))

    weather_data = data.get("weather", {})
    user_agent = _first_env(env, "SKYVIEW_NWS_USER_AGENT", "NWS_USER_AGENT")
    if user_agent:
        weather_data["user_agent"] = user_agent

    email_data = data.get("email", {})
    api_key = _first_env(env, "SKYVIEW_RESEND_API_KEY", "RESEND_API_KEY")
    if api_key:
        email_data["api_key"] = api_key
    sender = _first_env(env, "SKYVIEW_RESEND_FROM", "RESEND_FROM")
    if sender:
        email_data["sender"] = sender

    subscriber_data = data.get("subscribers", {})
    subscribers_path = env.get("SKYVIEW_SUBSCRIBERS_PATH")
    if subscribers_path:
        subscriber_data["path"] = subscribers_path

    digest_data = data.get("digest", {})
    app_url = _first_env(env, "SKYVIEW_APP_URL", "APP_URL")
    if app_url:
        digest_data["base_url"] = app_url.rstrip("/")
    send_hour = env.get("SKYVIEW_DIGEST_SEND_HOUR")
    if send_hour:
        try:
            digest_data["send_hour"] = int(send_hour)
        except ValueError:
            pass

    scheduler_data = data.get("scheduler", {})
    cron_override = env.get("SKYVIEW_SCHEDULER_CRON")
    if cron_override:
        scheduler_data["cron"] = cron_override
    enabled_override = _bool_from_env(env.get("SKYVIEW_SCHEDULER_ENABLED"))
    if enabled_override is not None:
        scheduler_data["enabled"] = enabled_override

    logging_data = data.get("logging", {})
    level_override = env.get("SKYVIEW_LOG_LEVEL")
    if level_override:
        logging_data["level"] = level_override
    json_override = _bool_from_env(env.get("SKYVIEW_LOG_JSON"))
    if json_override is not None:
        logging_data["json"] = json_override

    return AppConfig(
        weather=_weather_config(weather_data),
        cache=CacheConfig(**data.get("cache", {})),
        geocoding=GeocodingConfig(**data.get("geocoding", {})),
        email=EmailConfig(**email_data),
        subscribers=SubscriberConfig(**subscriber_data),
        digest=DigestConfig(**digest_data),
        scheduler=SchedulerConfig(**scheduler_data) if scheduler_data else SchedulerConfig(),
        logging=LoggingConfig(**logging_data) if logging_data else LoggingConfig(),
    )


app_config = load_config()
