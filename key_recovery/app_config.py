"""Configuration for the key recovery engine and its command line tool."""
import logging
import os
import sys
from dataclasses import dataclass
from typing import Any, Dict, Optional

import jsonschema
import yaml
from dotenv import load_dotenv

from key_recovery.exceptions import ConfigError
from key_recovery.logging_config import setup_logger

CONFIG_ENV_VAR = 'KEY_RECOVERY_CONFIG_FILE'

CONFIG_SCHEMA = {
    "type": "object",
    "properties": {
        "stage_timeout_ms": {"type": "integer", "minimum": 1},
        "poll_interval_ms": {"type": "integer", "minimum": 1},
        "report_interval_ms": {"type": "integer", "minimum": 1},
        "max_filtered_strings": {"type": "integer", "minimum": 0},
        "affix_threshold": {"type": "integer", "minimum": 1},
        "majority_ratio": {"type": "number", "minimum": 0, "maximum": 1},
        "enable_stage_4": {"type": "boolean"},
        "enable_stage_5": {"type": "boolean"},
        "max_workers": {"type": ["integer", "null"], "minimum": 1},
        "strict_duplicates": {"type": "boolean"},
        "missing_threshold": {"type": "number", "minimum": 0, "maximum": 1},
        "show_progress": {"type": "boolean"},
        "logging": {
            "type": "object",
            "properties": {
                "log_level": {"type": "string"},
                "log_file_path": {"type": ["string", "null"]},
                "log_to_console": {"type": "boolean"}
            },
            "additionalProperties": False
        }
    },
    "additionalProperties": False
}


@dataclass
class RecoveryConfig:
    """Tuning knobs for one recovery pass."""
    # Stage executor
    stage_timeout_ms: int = 30_000
    poll_interval_ms: int = 100
    report_interval_ms: int = 5_000
    max_workers: Optional[int] = None
    show_progress: bool = False

    # Heuristics
    max_filtered_strings: int = 8_000
    affix_threshold: int = 3
    majority_ratio: float = 0.9
    enable_stage_4: bool = True
    # quadratic in the filtered pool; only for pathological projects
    enable_stage_5: bool = False

    # Reconciliation
    strict_duplicates: bool = False
    missing_threshold: float = 0.15

    # Logging
    log_level: str = 'INFO'
    log_file_path: Optional[str] = None
    log_to_console: bool = True

    @property
    def workers(self) -> int:
        return self.max_workers or os.cpu_count() or 1


def _compute_project_root() -> str:
    """Compute the project root directory."""
    script_dir = os.path.dirname(os.path.realpath(__file__))
    return os.path.abspath(os.path.join(script_dir, os.pardir))


def _load_dotenv_files(project_root: str) -> None:
    dotenv_path = os.path.join(project_root, '.env')
    if os.path.exists(dotenv_path):
        load_dotenv(dotenv_path)


def _load_yaml_config(project_root: str, config_path: Optional[str] = None) -> Dict[str, Any]:
    """Load the YAML configuration file; problems fall back to defaults with a notice on stderr."""
    default_config_path = os.path.join(project_root, 'config.yaml')
    config_file = config_path or os.environ.get(CONFIG_ENV_VAR, default_config_path)
    if not os.path.isabs(config_file):
        config_file = os.path.abspath(config_file)

    config: Dict[str, Any] = {}
    if not os.path.exists(config_file):
        print(f"Warning: Configuration file '{config_file}' not found. Using default configuration.",
              file=sys.stderr)
        return config

    try:
        with open(config_file, 'r', encoding='utf-8') as config_file_stream:
            loaded_config = yaml.safe_load(config_file_stream)
    except yaml.YAMLError as e:
        print(f"Error: Invalid YAML in configuration file '{config_file}': {e}", file=sys.stderr)
        print("Please check your YAML syntax. Using default configuration.", file=sys.stderr)
        return config
    except OSError as e:
        print(f"Error: Could not read configuration file '{config_file}': {e}", file=sys.stderr)
        return config

    if loaded_config is None:
        print(f"Warning: Configuration file '{config_file}' is empty. Using default configuration.",
              file=sys.stderr)
    elif isinstance(loaded_config, dict):
        config = loaded_config
    else:
        print(f"Error: Configuration file '{config_file}' must contain a YAML dictionary. Using defaults.",
              file=sys.stderr)
    return config


def validate_config(config: Dict[str, Any]) -> None:
    """Raise :class:`ConfigError` if ``config`` does not match :data:`CONFIG_SCHEMA`."""
    try:
        jsonschema.validate(instance=config, schema=CONFIG_SCHEMA)
    except jsonschema.ValidationError as e:
        location = '.'.join(str(part) for part in e.absolute_path) or '<root>'
        raise ConfigError(f"Invalid configuration at '{location}': {e.message}") from e


def _env_int(name: str, default: Optional[int]) -> Optional[int]:
    value = os.environ.get(name)
    if value is None or value == '':
        return default
    try:
        return int(value)
    except ValueError as e:
        raise ConfigError(f"Environment variable {name} must be an integer, got '{value}'") from e


def _env_bool(name: str, default: bool) -> bool:
    value = os.environ.get(name)
    if value is None or value == '':
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def build_config(config: Dict[str, Any]) -> RecoveryConfig:
    """Build a :class:`RecoveryConfig` from a validated dict plus ``KEY_RECOVERY_*`` overrides."""
    defaults = RecoveryConfig()
    log_config = config.get('logging', {})
    return RecoveryConfig(
        stage_timeout_ms=_env_int('KEY_RECOVERY_STAGE_TIMEOUT_MS',
                                  config.get('stage_timeout_ms', defaults.stage_timeout_ms)),
        poll_interval_ms=config.get('poll_interval_ms', defaults.poll_interval_ms),
        report_interval_ms=config.get('report_interval_ms', defaults.report_interval_ms),
        max_workers=_env_int('KEY_RECOVERY_MAX_WORKERS', config.get('max_workers', defaults.max_workers)),
        show_progress=_env_bool('KEY_RECOVERY_SHOW_PROGRESS', config.get('show_progress', defaults.show_progress)),
        max_filtered_strings=config.get('max_filtered_strings', defaults.max_filtered_strings),
        affix_threshold=config.get('affix_threshold', defaults.affix_threshold),
        majority_ratio=config.get('majority_ratio', defaults.majority_ratio),
        enable_stage_4=config.get('enable_stage_4', defaults.enable_stage_4),
        enable_stage_5=config.get('enable_stage_5', defaults.enable_stage_5),
        strict_duplicates=config.get('strict_duplicates', defaults.strict_duplicates),
        missing_threshold=config.get('missing_threshold', defaults.missing_threshold),
        log_level=os.environ.get('KEY_RECOVERY_LOG_LEVEL', log_config.get('log_level', defaults.log_level)),
        log_file_path=log_config.get('log_file_path', defaults.log_file_path),
        log_to_console=log_config.get('log_to_console', defaults.log_to_console),
    )


def load_app_config(config_path: Optional[str] = None, configure_logging: bool = True) -> RecoveryConfig:
    """
    Load configuration from a YAML file and the environment.

    Args:
        config_path: Explicit config file. Defaults to ``$KEY_RECOVERY_CONFIG_FILE``
            or ``config.yaml`` in the project root.
        configure_logging: Set up the ``key_recovery`` logger from the result.

    Returns:
        RecoveryConfig: The loaded configuration.
    """
    project_root = _compute_project_root()
    _load_dotenv_files(project_root)
    raw_config = _load_yaml_config(project_root, config_path)
    validate_config(raw_config)
    config = build_config(raw_config)

    if configure_logging:
        logger = setup_logger(config.log_level, config.log_file_path, config.log_to_console)
        logger.debug("Loaded configuration: %s", config)
    else:
        logging.getLogger(__name__).debug("Loaded configuration: %s", config)
    return config
