"""
Configuration management for the DAG canvas.

Handles persistent configuration including:
- Agent API key storage and validation
- Agent endpoint (OpenAI-compatible, xAI by default)
- Agent settings (model, temperature, system prompt)
- Storage backend selection

Config is stored in config.json next to the executable/project root.
"""

import json
import logging
import os
from dataclasses import dataclass
from typing import Optional

from dagcanvas.paths import get_config_path

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://api.x.ai/v1"
DEFAULT_MODEL = "grok-3"
DEFAULT_TEMPERATURE = 0.3
DEFAULT_SYSTEM_PROMPT = (
    "You are Grok. Be direct, helpful, and technical. Use short, actionable answers. "
    "Ask clarifying questions when needed."
)

# Environment variables checked for the agent key, in priority order
API_KEY_ENV_VARS = ("XAI_API_KEY", "OPENAI_API_KEY")


@dataclass(frozen=True)
class AgentSettings:
    """Settings sent along with every agent round-trip."""
    model: str = DEFAULT_MODEL
    temperature: float = DEFAULT_TEMPERATURE
    system_prompt: str = DEFAULT_SYSTEM_PROMPT
    web_scrape_enabled: bool = False


def load_config() -> dict:
    """Load configuration from config.json."""
    config_path = get_config_path()
    if config_path.exists():
        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                data = json.load(f)
                return data if isinstance(data, dict) else {}
        except (json.JSONDecodeError, IOError) as e:
            logger.warning(f"Failed to read config from {config_path}: {e}")
            return {}
    return {}


def save_config(config: dict) -> None:
    """Save configuration to config.json."""
    config_path = get_config_path()
    config_path.parent.mkdir(parents=True, exist_ok=True)
    with open(config_path, 'w', encoding='utf-8') as f:
        json.dump(config, f, indent=2)


def get_api_key() -> Optional[str]:
    """
    Get the agent API key.

    Priority:
    1. Environment variables XAI_API_KEY, OPENAI_API_KEY
    2. Stored in config.json
    """
    for var in API_KEY_ENV_VARS:
        env_key = os.environ.get(var)
        if env_key:
            return env_key

    config = load_config()
    return config.get("api_key")


def set_api_key(api_key: str) -> None:
    """Save the agent API key to config.json."""
    config = load_config()
    config["api_key"] = api_key
    save_config(config)
    # Also set in environment for current session
    os.environ["XAI_API_KEY"] = api_key


def get_base_url() -> str:
    """Resolve the OpenAI-compatible endpoint the agent talks to."""
    env_url = (os.environ.get("XAI_BASE_URL") or "").strip()
    if env_url:
        return env_url
    return load_config().get("base_url") or DEFAULT_BASE_URL


def validate_api_key(api_key: str) -> tuple[bool, str]:
    """
    Validate an API key without using tokens.

    Uses the /models endpoint which is free and returns the list of available models.

    Returns:
        (is_valid, message) tuple
    """
    if not api_key:
        return False, "API key is empty"

    try:
        from openai import OpenAI
        client = OpenAI(api_key=api_key, base_url=get_base_url())
        models = client.models.list()
        return True, f"API key is valid. Access to {len(list(models))} models."
    except Exception as e:
        error_msg = str(e)
        if "401" in error_msg or "invalid_api_key" in error_msg.lower():
            return False, "Invalid API key"
        elif "429" in error_msg:
            return False, "Rate limited - but key appears valid"
        else:
            return False, f"Validation error: {error_msg}"


def ensure_api_key_in_env() -> bool:
    """
    Ensure the API key is loaded into the environment.

    Returns True if an API key is available, False otherwise.
    """
    api_key = get_api_key()
    if api_key:
        os.environ["XAI_API_KEY"] = api_key
        return True
    return False


def get_agent_settings(config: Optional[dict] = None) -> AgentSettings:
    """
    Read agent settings from the 'agent' section of config.json.

    Every field is type-checked on its own; a wrong type falls back to the
    default for that field rather than invalidating the whole section.
    """
    if config is None:
        config = load_config()
    raw = config.get("agent")
    if not isinstance(raw, dict):
        return AgentSettings()

    model = raw.get("model")
    temperature = raw.get("temperature")
    system_prompt = raw.get("system_prompt")
    web_scrape = raw.get("web_scrape_enabled")

    return AgentSettings(
        model=model if isinstance(model, str) and model else DEFAULT_MODEL,
        temperature=float(temperature)
        if isinstance(temperature, (int, float)) and not isinstance(temperature, bool)
        else DEFAULT_TEMPERATURE,
        system_prompt=system_prompt if isinstance(system_prompt, str) else DEFAULT_SYSTEM_PROMPT,
        web_scrape_enabled=web_scrape if isinstance(web_scrape, bool) else False,
    )
