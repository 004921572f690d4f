"""Maintenance behaviour config — YAML loading and validation.

SECURITY: Uses yaml.safe_load() exclusively. Never use yaml.load().
Uses aiofiles for non-blocking file I/O.
"""

from __future__ import annotations

import os

import aiofiles
import structlog
import yaml
from pydantic import BaseModel, ConfigDict, Field, field_validator

logger = structlog.get_logger()

DEFAULT_NOTIFICATION_OFFSETS = [360, 300, 240, 180, 120, 60, 30, 20, 10, 5, 3, 1]

DEFAULT_KICK_MESSAGE = "The server is under maintenance.\nPlease wait until it has finished."

DEFAULT_CONFIG_YAML = """\
# How often the calendar feed is polled (minutes)
checkIntervalMinutes: 30

# Lead times (minutes before start) at which connected players are warned
notificationOffsetsMinutes:
  - 360
  - 300
  - 240
  - 180
  - 120
  - 60
  - 30
  - 20
  - 10
  - 5
  - 3
  - 1

# Extra warning 30 seconds before start
enable30SecondNotice: true

# Shown to players disconnected or refused while maintenance is active
kickMessageTemplate: |-
  The server is under maintenance.
  Please wait until it has finished.

# Tell players about upcoming maintenance when they join
loginNotificationEnabled: true
"""


class MaintenanceConfig(BaseModel):
    """Recognised maintenance options. YAML keys are camelCase."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True, frozen=True)

    check_interval_minutes: int = Field(default=30, ge=1, alias="checkIntervalMinutes")
    notification_offsets_minutes: list[int] = Field(
        default_factory=lambda: list(DEFAULT_NOTIFICATION_OFFSETS),
        alias="notificationOffsetsMinutes",
    )
    enable_30_second_notice: bool = Field(default=True, alias="enable30SecondNotice")
    kick_message_template: str = Field(default=DEFAULT_KICK_MESSAGE, alias="kickMessageTemplate")
    login_notification_enabled: bool = Field(default=True, alias="loginNotificationEnabled")

    @field_validator("notification_offsets_minutes")
    @classmethod
    def offsets_positive_unique(cls, v: list[int]) -> list[int]:
        """Offsets must be positive; duplicates are dropped, first one wins."""
        seen: list[int] = []
        for minutes in v:
            if minutes < 1:
                raise ValueError("notification offsets must be at least 1 minute")
            if minutes not in seen:
                seen.append(minutes)
        return seen


async def load_maintenance_config(
    file_path: str, *, create_missing: bool = True
) -> MaintenanceConfig:
    """Load and validate the maintenance YAML file.

    A missing file is written out with the defaults (when create_missing)
    and the defaults are returned. Anything else that is wrong raises —
    a broken config fails loudly.

    Args:
        file_path: Path to the maintenance YAML file.
        create_missing: Write a default file when none exists.

    Returns:
        A validated MaintenanceConfig.

    Raises:
        FileNotFoundError: If the file is missing and create_missing is False.
        yaml.YAMLError: If the YAML is malformed.
        pydantic.ValidationError: If the content fails validation.
    """
    if not os.path.exists(file_path):
        if not create_missing:
            raise FileNotFoundError(file_path)
        await write_default_config(file_path)

    async with aiofiles.open(file_path, mode="r", encoding="utf-8") as f:
        raw_content = await f.read()

    data = yaml.safe_load(raw_content)
    if data is None:
        data = {}
    if not isinstance(data, dict):
        raise ValueError(f"Maintenance config must be a mapping: {file_path}")

    config = MaintenanceConfig(**data)

    await logger.ainfo(
        "maintenance_config_loaded",
        file_path=file_path,
        check_interval_minutes=config.check_interval_minutes,
        offsets=config.notification_offsets_minutes,
        notice_30s=config.enable_30_second_notice,
    )
    return config


async def write_default_config(file_path: str) -> None:
    """Write the commented default config file, creating parent directories."""
    directory = os.path.dirname(file_path)
    if directory:
        os.makedirs(directory, exist_ok=True)
    async with aiofiles.open(file_path, mode="w", encoding="utf-8") as f:
        await f.write(DEFAULT_CONFIG_YAML)
    await logger.ainfo("maintenance_config_created", file_path=file_path)
