"""
Configuration

Settings are read from the environment, with a .env file loaded first when
present. CLI options override these values.
"""

import os

from dotenv import load_dotenv

# Load environment variables
load_dotenv()

DEFAULT_SERVER_URL = "http://localhost:8080"
DEFAULT_STATE_FILE = ".state.json"
DEFAULT_HOST = "127.0.0.1"
DEFAULT_PORT = 8080
DEFAULT_TIMEOUT = 30


def get_server_url() -> str:
    """Base URL of the storage service used by the client."""
    return os.getenv('MERKLE_STORAGE_URL', DEFAULT_SERVER_URL).rstrip('/')


def get_state_file() -> str:
    """Path of the client state file."""
    return os.getenv('MERKLE_STORAGE_STATE_FILE', DEFAULT_STATE_FILE)


def get_server_host() -> str:
    return os.getenv('MERKLE_STORAGE_HOST', DEFAULT_HOST)


def get_server_port() -> int:
    value = os.getenv('MERKLE_STORAGE_PORT')
    if not value:
        return DEFAULT_PORT
    try:
        return int(value)
    except ValueError:
        raise ValueError(f"MERKLE_STORAGE_PORT must be an integer, got '{value}'")


def get_request_timeout() -> float:
    """Client request timeout in seconds."""
    value = os.getenv('MERKLE_STORAGE_TIMEOUT')
    if not value:
        return float(DEFAULT_TIMEOUT)
    try:
        return float(value)
    except ValueError:
        raise ValueError(f"MERKLE_STORAGE_TIMEOUT must be a number, got '{value}'")
