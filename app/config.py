"""Configuration management."""

import os
from pathlib import Path
from typing import Any, Dict

import yaml
from dotenv import load_dotenv

from tools.file_utils import resolve_path

BASE_DIR = Path(__file__).parent.parent

# Load .env file if it exists
env_file = BASE_DIR / '.env'
if env_file.exists():
    load_dotenv(env_file)


def _env_flag(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return bool(default)
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


def load_config() -> Dict[str, Any]:
    """Load configuration from YAML file and environment variables."""
    config_file = BASE_DIR / 'config' / 'config.yaml'

    # Load from YAML
    if config_file.exists():
        with open(config_file, 'r') as f:
            config = yaml.safe_load(f) or {}
    else:
        config = {}

    # Override with environment variables
    config['TEMPLATES_DIR'] = str(resolve_path(os.getenv('TEMPLATES_DIR', config.get('templates_dir', 'templates')), BASE_DIR))
    config['PUBLIC_DIR'] = str(resolve_path(os.getenv('PUBLIC_DIR', config.get('public_dir', 'public')), BASE_DIR))
    config['PROMPTS_DIR'] = str(resolve_path(os.getenv('PROMPTS_DIR', config.get('prompts_dir', 'config/prompts')), BASE_DIR))
    config['ANTHROPIC_API_KEY'] = os.getenv('ANTHROPIC_API_KEY', config.get('anthropic_api_key', ''))
    config['ANTHROPIC_BASE_URL'] = os.getenv('ANTHROPIC_BASE_URL', config.get('anthropic_base_url', ''))
    config['LLM_MODEL'] = os.getenv('LLM_MODEL', config.get('llm_model', 'claude-sonnet-4-20250514'))
    config['LLM_MAX_TOKENS'] = int(os.getenv('LLM_MAX_TOKENS', config.get('llm_max_tokens', 24000)))
    config['LLM_TIMEOUT'] = float(os.getenv('LLM_TIMEOUT', config.get('llm_timeout', 300)))
    config['LLM_MAX_RETRIES'] = int(os.getenv('LLM_MAX_RETRIES', config.get('llm_max_retries', 2)))
    config['LLM_FALLBACK_ENABLED'] = _env_flag('LLM_FALLBACK_ENABLED', config.get('llm_fallback_enabled', False))
    config['TEMPLATE_NAMES'] = dict(config.get('template_names') or {})
    config['HOST'] = os.getenv('HOST', config.get('host', '0.0.0.0'))
    config['PORT'] = int(os.getenv('PORT', config.get('port', 3000)))
    config['DEBUG'] = _env_flag('DEBUG', config.get('debug', False))

    return config


def get_config() -> Dict[str, Any]:
    """Get current configuration."""
    return load_config()
