"""Application configuration module for the lang file translator."""
import logging
import os
import sys
from dataclasses import dataclass
from typing import Dict, Optional, Any

import yaml
from dotenv import load_dotenv
from openai import AsyncOpenAI

from src.errors import ConfigurationError
from src.locales import LocaleTable, build_locale_table
from src.logging_config import setup_logger

SUPPORTED_PROVIDERS = ('google', 'openai')


@dataclass
class AppConfig:
    """Application configuration dataclass."""
    project_root: str

    # Translation service
    provider: str
    model_name: str
    source_language: str
    request_timeout: Optional[float]

    # Processing settings
    use_batching: bool
    max_concurrent_api_calls: int
    rate_limit: float
    rate_period: float

    # Output settings
    output_extension: str

    # Locales
    locale_table: LocaleTable

    # OpenAI client, only created for the 'openai' provider
    openai_client: Optional[AsyncOpenAI]


def _compute_project_root() -> str:
    """Compute the project root directory."""
    script_real_path = os.path.realpath(__file__)
    script_dir = os.path.dirname(script_real_path)
    return os.path.abspath(os.path.join(script_dir, os.pardir))


def _load_dotenv_files(project_root: str) -> Optional[str]:
    """Load the .env file from the working directory or project root, returning its path."""
    for dotenv_path in (os.path.join(os.getcwd(), '.env'), os.path.join(project_root, '.env')):
        if os.path.exists(dotenv_path):
            load_dotenv(dotenv_path)
            return dotenv_path
    return None


def _load_yaml_config(project_root: str) -> Dict[str, Any]:
    """Load the YAML configuration file, falling back to an empty configuration on any problem."""
    default_config_path = os.path.join(project_root, 'config.yaml')
    config_file = os.environ.get('LANG_TRANSLATOR_CONFIG_FILE', default_config_path)

    if not os.path.isabs(config_file):
        config_file = os.path.abspath(config_file)

    config = {}
    try:
        if not os.path.exists(config_file):
            print(f"Warning: Configuration file '{config_file}' not found. Using default configuration.",
                  file=sys.stderr)
            return config

        if not os.access(config_file, os.R_OK):
            print(f"Error: Configuration file '{config_file}' exists but is not readable. Check file permissions.",
                  file=sys.stderr)
            return config

        with open(config_file, 'r', encoding='utf-8') as config_file_stream:
            loaded_config = yaml.safe_load(config_file_stream)
            if loaded_config is None:
                print(f"Warning: Configuration file '{config_file}' is empty. Using default configuration.",
                      file=sys.stderr)
            elif isinstance(loaded_config, dict):
                config = loaded_config
            else:
                print(f"Error: Configuration file '{config_file}' must contain a YAML dictionary. Using defaults.",
                      file=sys.stderr)

    except yaml.YAMLError as e:
        print(f"Error: Invalid YAML in configuration file '{config_file}': {e}", file=sys.stderr)
        print("Please check your YAML syntax. Using default configuration.", file=sys.stderr)
    except (OSError, IOError) as e:
        print(f"Error: Could not read configuration file '{config_file}': {e}", file=sys.stderr)
        print("Using default configuration.", file=sys.stderr)

    return config


TRUE_STRINGS = ('true', 'yes', 'on', '1')
FALSE_STRINGS = ('false', 'no', 'off', '0')


def _parse_int(name: str, value: Any) -> int:
    """Convert a config or environment value to an int, raising ConfigurationError if it is not one."""
    if isinstance(value, bool):
        raise ConfigurationError(f"{name} must be an integer, got {value!r}.")
    try:
        return int(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"{name} must be an integer, got {value!r}.") from exc


def _parse_float(name: str, value: Any) -> float:
    if isinstance(value, bool):
        raise ConfigurationError(f"{name} must be a number, got {value!r}.")
    try:
        return float(value)
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"{name} must be a number, got {value!r}.") from exc


def _parse_bool(name: str, value: Any) -> bool:
    """
    Convert a config or environment value to a bool.

    YAML booleans are taken as they are; strings such as "false" or "off"
    (quoted in YAML, or coming from the environment) are recognized too.
    """
    if isinstance(value, bool):
        return value
    normalized = str(value).strip().lower()
    if normalized in TRUE_STRINGS:
        return True
    if normalized in FALSE_STRINGS:
        return False
    raise ConfigurationError(f"{name} must be true or false, got {value!r}.")


def _setup_logger_from_config(config: Dict[str, Any]) -> logging.Logger:
    """Set up logger based on configuration."""
    log_config = config.get('logging', {}) or {}
    log_level_str = log_config.get('log_level', 'INFO').upper()
    log_file_path = log_config.get('log_file_path', 'logs/lang_translator.log')
    log_to_console = _parse_bool('log_to_console', log_config.get('log_to_console', True))
    return setup_logger(log_level_str, log_file_path, log_to_console)


def _create_openai_client(provider: str, logger: logging.Logger) -> Optional[AsyncOpenAI]:
    """Create the OpenAI client when the 'openai' provider is selected."""
    if provider != 'openai':
        return None

    api_key_from_env = os.environ.get('OPENAI_API_KEY')
    if not api_key_from_env:
        logger.critical("OPENAI_API_KEY environment variable not found.")
        raise ConfigurationError("The 'openai' provider requires the OPENAI_API_KEY environment variable.")

    if not api_key_from_env.startswith('sk-'):
        logger.warning("OPENAI_API_KEY does not start with 'sk-'. This may be invalid.")

    client = AsyncOpenAI(api_key=api_key_from_env)
    logger.info("OpenAI client initialized successfully")
    return client


def load_app_config(provider_override: Optional[str] = None) -> AppConfig:
    """
    Load application configuration from the YAML file and environment variables.

    Args:
        provider_override: Provider name given on the command line, taking
            precedence over the environment and the config file.

    Returns:
        AppConfig: The loaded application configuration.

    Raises:
        ConfigurationError: If the provider or the locale table is invalid.
    """
    project_root = _compute_project_root()
    dotenv_path = _load_dotenv_files(project_root)
    config = _load_yaml_config(project_root)
    logger = _setup_logger_from_config(config)

    if dotenv_path:
        logger.info("Loaded environment variables from: %s", dotenv_path)
    else:
        logger.debug("No .env file found. Relying on system environment variables if any.")

    provider = (provider_override
                or os.environ.get('TRANSLATION_PROVIDER')
                or config.get('provider', 'google')).lower()
    if provider not in SUPPORTED_PROVIDERS:
        raise ConfigurationError(
            f"Unknown translation provider '{provider}'. Expected one of: {', '.join(SUPPORTED_PROVIDERS)}."
        )

    max_concurrent_api_calls = _parse_int('max_concurrent_api_calls',
                                          os.environ.get('MAX_CONCURRENT_API_CALLS',
                                                         config.get('max_concurrent_api_calls', 8)))
    if max_concurrent_api_calls < 1:
        raise ConfigurationError("max_concurrent_api_calls must be at least 1.")

    rate_limit = _parse_float('rate_limit', config.get('rate_limit', 60))
    rate_period = _parse_float('rate_period', config.get('rate_period', 60))
    if rate_limit <= 0 or rate_period <= 0:
        raise ConfigurationError("rate_limit and rate_period must be greater than 0.")

    # 0 or null disables the timeout
    request_timeout = config.get('request_timeout', 30.0)
    if request_timeout is not None:
        request_timeout = _parse_float('request_timeout', request_timeout) or None
    locale_table = build_locale_table(config.get('locales'))

    return AppConfig(
        project_root=project_root,
        provider=provider,
        model_name=config.get('model_name', 'gpt-4o-mini'),
        source_language=config.get('source_language', 'auto'),
        request_timeout=request_timeout,
        use_batching=_parse_bool('use_batching', config.get('use_batching', True)),
        max_concurrent_api_calls=max_concurrent_api_calls,
        rate_limit=rate_limit,
        rate_period=rate_period,
        output_extension=config.get('output_extension', 'lang'),
        locale_table=locale_table,
        openai_client=_create_openai_client(provider, logger)
    )
