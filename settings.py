import configparser
import logging
import os
from dataclasses import dataclass

from errors import ConfigurationError
from poddata import RESYNC_INTERVAL

LOG_FORMAT = "%(asctime)s - %(levelname)s - %(message)s"
LOG_LEVELS = {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}

path = os.path.dirname(os.path.abspath(__file__))
DEFAULT_CONFIG_PATH = os.path.join(path, "config.ini")

DEFAULTS = {
    "kubernetes": {"kubeconfig": "", "context": ""},
    "controller": {
        "namespace": "",
        "resync_interval": str(RESYNC_INTERVAL),
        "requeue_delay": "5",
        "watch_timeout": "300",
    },
    "logging": {"level": "INFO", "file": ""},
}


@dataclass(frozen=True)
class Settings:
    kubeconfig: str = ""
    context: str = ""
    namespace: str = ""
    resync_interval: int = RESYNC_INTERVAL
    requeue_delay: int = 5
    watch_timeout: int = 300
    log_level: str = "INFO"
    log_file: str = ""


def _positiveInt(parser, section, option, errors):
    raw = parser.get(section, option).strip()
    try:
        value = int(raw)
    except ValueError:
        errors.append(f"{section}.{option} must be an integer, got {raw!r}")
        return None
    if value <= 0:
        errors.append(f"{section}.{option} must be > 0, got {value}")
        return None
    return value


def loadSettings(config_path=None) -> Settings:
    """
    Read config.ini (or POD_LIFETIME_CONFIG). Missing file or keys fall back to defaults.
    raise ConfigurationError listing every invalid value
    """
    config_path = config_path or os.environ.get("POD_LIFETIME_CONFIG") or DEFAULT_CONFIG_PATH

    parser = configparser.ConfigParser()
    parser.read_dict(DEFAULTS)
    parser.read(config_path)

    errors = []
    resync_interval = _positiveInt(parser, "controller", "resync_interval", errors)
    requeue_delay = _positiveInt(parser, "controller", "requeue_delay", errors)
    watch_timeout = _positiveInt(parser, "controller", "watch_timeout", errors)

    log_level = parser.get("logging", "level").strip().upper()
    if log_level not in LOG_LEVELS:
        errors.append(f"logging.level must be one of {sorted(LOG_LEVELS)}, got {log_level!r}")

    if errors:
        raise ConfigurationError(f"Invalid configuration in {config_path}", errors)

    return Settings(
        kubeconfig=parser.get("kubernetes", "kubeconfig").strip(),
        context=parser.get("kubernetes", "context").strip(),
        namespace=parser.get("controller", "namespace").strip(),
        resync_interval=resync_interval,
        requeue_delay=requeue_delay,
        watch_timeout=watch_timeout,
        log_level=log_level,
        log_file=parser.get("logging", "file").strip(),
    )


def setupLogging(settings: Settings):
    kwargs = {"level": getattr(logging, settings.log_level), "format": LOG_FORMAT}
    if settings.log_file:
        kwargs["filename"] = settings.log_file
    logging.basicConfig(**kwargs)
