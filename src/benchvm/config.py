from __future__ import annotations

import os
from collections.abc import Mapping

from dotenv import find_dotenv, load_dotenv
from pydantic import BaseModel, ConfigDict, Field

from .core import (
    DEFAULT_NETWORK_NAME,
    DEFAULT_POLL_INTERVAL,
    DEFAULT_SOURCE_IMAGE,
    DEFAULT_WAIT_TIME,
    DEFAULT_ZONE,
)
from .exceptions import MissingRequiredConfig
from .logger import logger


class BenchConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    project_id: str = ""
    zone: str = DEFAULT_ZONE
    source_image: str = Field(
        default=DEFAULT_SOURCE_IMAGE, description="Image or image family path"
    )
    network_name: str = Field(
        default=DEFAULT_NETWORK_NAME, description="VPC network name, not a full path"
    )
    wait_time: int = Field(
        default=DEFAULT_WAIT_TIME,
        ge=0,
        description="Seconds to wait after creation before reading benchmark logs",
    )
    operation_timeout: int | None = Field(
        default=None,
        ge=0,
        description="Seconds to wait on an operation; None blocks",
    )
    poll_interval: int = Field(
        default=DEFAULT_POLL_INTERVAL,
        ge=0,
        description="Seconds between benchmark log polls",
    )

    def ensure_valid(self) -> None:
        """Raises MissingRequiredConfig unless a project ID is set."""
        if not self.project_id.strip():
            raise MissingRequiredConfig("GCP project ID", env_var="GCP_PROJECT_ID")


def _get_env(env: Mapping[str, str], key: str, fallback: str) -> str:
    value = env.get(key, "")
    return value if value else fallback


def _get_int(
    env: Mapping[str, str], key: str, fallback: int | None
) -> int | None:
    raw = env.get(key, "")
    if not raw:
        return fallback
    try:
        value = int(raw)
    except ValueError:
        logger.warning(f"Invalid {key} value {raw!r}, using default: {fallback}")
        return fallback
    if value < 0:
        logger.warning(f"Negative {key} value {raw!r}, using default: {fallback}")
        return fallback
    return value


def load_config(
    env: Mapping[str, str] | None = None, dotenv_path: str | None = None
) -> BenchConfig:
    """
    Builds the configuration from a local .env file and the environment.

    Variables already present in the environment win over the .env file.
    A missing .env file is fine. The project ID is not validated here so
    the caller can decide whether to prompt for it.
    """
    if env is None:
        if not load_dotenv(dotenv_path or find_dotenv(usecwd=True)):
            logger.debug(".env file not found or empty, using environment only")
        env = os.environ

    wait_time = _get_int(env, "GCP_WAIT_TIME", DEFAULT_WAIT_TIME)
    poll_interval = _get_int(env, "GCP_POLL_INTERVAL", DEFAULT_POLL_INTERVAL)

    return BenchConfig(
        project_id=_get_env(env, "GCP_PROJECT_ID", "").strip(),
        zone=_get_env(env, "GCP_ZONE", DEFAULT_ZONE),
        source_image=_get_env(env, "GCP_SOURCE_IMAGE", DEFAULT_SOURCE_IMAGE),
        network_name=_get_env(env, "GCP_NETWORK_NAME", DEFAULT_NETWORK_NAME),
        wait_time=wait_time if wait_time is not None else DEFAULT_WAIT_TIME,
        operation_timeout=_get_int(env, "GCP_OPERATION_TIMEOUT", None),
        poll_interval=(
            poll_interval if poll_interval is not None else DEFAULT_POLL_INTERVAL
        ),
    )
