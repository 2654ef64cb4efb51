"""
Startup credentials and the interactive PIN prompt.

Credentials come from the environment (populated from .env by main.py).
The PIN is the only interactive input and is read once, before the poll
loop starts.
"""

import os

from errors import ConfigError
from models import Credentials
from tools import logger

REQUIRED_VARIABLES = {
    "EMAIL": "email",
    "PASSWORD": "password",
    "SAVE_DIRECTORY": "save_directory",
    "BLINK_API_SERVER": "api_host",
}

# Values shipped in the example .env / older script versions
PLACEHOLDERS = {
    "EMAIL": ("X", "Your Email Here"),
    "PASSWORD": ("X", "Your Password Here"),
    "SAVE_DIRECTORY": ("X",),
}


def load_credentials(environ=None) -> Credentials:
    """
    Read and validate the fixed credentials.

    Args:
        environ: Mapping to read from (defaults to os.environ)

    Returns:
        Credentials instance

    Raises:
        ConfigError: if any variable is missing, empty or left at a placeholder.
            The message names every offending variable.
    """
    environ = os.environ if environ is None else environ

    values = {name: (environ.get(name) or "").strip() for name in REQUIRED_VARIABLES}

    missing = [name for name, value in values.items() if not value]
    if missing:
        raise ConfigError(f"Please set {', '.join(missing)} in the .env file.")

    placeholders = [
        name for name, defaults in PLACEHOLDERS.items()
        if values[name] in defaults
    ]
    if placeholders:
        raise ConfigError(f"Please replace the placeholder value of {', '.join(placeholders)} in the .env file.")

    logger.debug(f"Loaded credentials for {values['EMAIL']} (API host: {values['BLINK_API_SERVER']})")

    return Credentials(**{field: values[name] for name, field in REQUIRED_VARIABLES.items()})


def prompt_pin(input_func=None) -> str:
    """Block until the operator types the PIN received by email/SMS."""
    input_func = input_func or input
    return input_func("Input PIN: ").strip()
