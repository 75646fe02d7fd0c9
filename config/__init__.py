"""Configuration module for loading and managing application settings"""
from typing import Dict, Any, Optional
from dotenv import load_dotenv

from .lib.load_settings_conf import (
    DEFAULTS,
    load_settings_conf,
    validate_settings,
    SettingsError,
    PLACEHOLDER_SUPABASE_URL,
    PLACEHOLDER_SUPABASE_ANON_KEY
)

__all__ = [
    'get_settings',
    'default_settings',
    'load_settings_conf',
    'remote_configured',
    'SettingsError',
    'PLACEHOLDER_SUPABASE_URL',
    'PLACEHOLDER_SUPABASE_ANON_KEY'
]

def remote_configured(settings: Dict[str, Any]) -> bool:
    """Check whether settings point at a real Supabase project.

    Both the URL and the anon key must be present and must not be the
    placeholder values from the example configuration.
    """
    url = settings.get('supabase_url')
    key = settings.get('supabase_anon_key')
    return bool(
        url and key
        and url != PLACEHOLDER_SUPABASE_URL
        and key != PLACEHOLDER_SUPABASE_ANON_KEY
    )

def default_settings() -> Dict[str, Any]:
    """Validated built-in defaults, ignoring settings.conf and the environment."""
    return validate_settings(dict(DEFAULTS))

def get_settings(settings_path: str = ".", environ: Optional[Dict[str, str]] = None) -> Dict[str, Any]:
    """Load settings from settings.conf, .env and the environment.

    Settings are read on every call, so importing this package never fails
    on a bad configuration.

    Args:
        settings_path: Directory containing settings.conf
        environ: Environment mapping to read overrides from (defaults to os.environ)

    Returns:
        Dictionary containing validated settings

    Raises:
        SettingsError: If settings.conf or an override is invalid
    """
    # Pick up a local .env before reading the environment
    if environ is None:
        load_dotenv()

    try:
        return load_settings_conf(settings_path, environ)
    except SettingsError as e:
        # Re-raise the error but provide more context
        raise type(e)(
            f"Configuration Error\n"
            "=================\n\n"
            f"{str(e)}\n\n"
            "Please ensure settings.conf is properly configured.\n"
            "See settings.conf.example for the available settings."
        ) from e
