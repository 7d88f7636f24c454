"""
Configuration management using Pydantic models loaded from YAML.
"""

from pathlib import Path
from typing import List, Optional, Sequence

import yaml
from pendulum import Date
from pydantic import BaseModel, Field, field_validator

from .domain.exceptions import InvalidConfigError
from .domain.formatter import SUPPORTED_LOCALES
from .domain.models import DEFAULT_TIMEZONE, SlotConfig, WorkingHours, resolve_timezone


class DefaultsConfig(BaseModel):
    """Default settings for a search."""
    duration_minutes: int = 30
    start_hour: int = 9
    end_hour: int = 18
    buffer_before_minutes: int = 0
    buffer_after_minutes: int = 0
    merge_consecutive: bool = False
    ignore_all_day_events: bool = False
    calendar_ids: List[str] = Field(default_factory=lambda: ["primary"])

    @field_validator("duration_minutes")
    @classmethod
    def validate_duration(cls, value: int) -> int:
        """Ensure slot duration is positive."""
        if value <= 0:
            raise ValueError("duration_minutes must be greater than zero")
        return value

    @field_validator("start_hour", "end_hour")
    @classmethod
    def validate_hour(cls, v: int) -> int:
        """Validate hour is between 0 and 23."""
        if not 0 <= v <= 23:
            raise ValueError(f"Hour must be between 0 and 23, got {v}")
        return v

    @field_validator("buffer_before_minutes", "buffer_after_minutes")
    @classmethod
    def validate_buffer(cls, value: int) -> int:
        if value < 0:
            raise ValueError("Buffers must not be negative")
        return value

    @field_validator("calendar_ids")
    @classmethod
    def validate_calendar_ids(cls, value: List[str]) -> List[str]:
        if not value:
            raise ValueError("calendar_ids must name at least one calendar")
        return value


class CalendarAlias(BaseModel):
    """Short name for a calendar id."""
    name: str  # Used as alias
    calendar_id: str


class AppConfig(BaseModel):
    """Application configuration."""
    defaults: DefaultsConfig = Field(default_factory=DefaultsConfig)
    timezone: str = DEFAULT_TIMEZONE
    locale: str = "ja"
    calendars: List[CalendarAlias] = Field(default_factory=list)
    exclude_days: List[int] = Field(default_factory=lambda: [0, 6])  # Sunday, Saturday
    request_timeout: int = 30

    @field_validator("timezone")
    @classmethod
    def validate_timezone(cls, value: str) -> str:
        try:
            resolve_timezone(value)
        except InvalidConfigError as exc:
            raise ValueError(str(exc)) from exc
        return value

    @field_validator("locale")
    @classmethod
    def validate_locale(cls, value: str) -> str:
        if value not in SUPPORTED_LOCALES:
            raise ValueError(f"locale must be one of {', '.join(SUPPORTED_LOCALES)}, got {value!r}")
        return value

    @field_validator("exclude_days")
    @classmethod
    def validate_exclude_days(cls, value: List[int]) -> List[int]:
        """Ensure weekdays (0=Sunday) are in valid range and deduplicated."""
        invalid_days = [day for day in value if day not in range(7)]
        if invalid_days:
            raise ValueError(f"exclude_days must be between 0 and 6, got {invalid_days}")
        # Preserve order while removing duplicates
        return list(dict.fromkeys(value))

    @field_validator("calendars")
    @classmethod
    def validate_calendars(cls, value: List[CalendarAlias]) -> List[CalendarAlias]:
        """Ensure calendar aliases are unique."""
        seen_names: set[str] = set()
        for calendar in value:
            name_key = calendar.name.lower()
            if name_key in seen_names:
                raise ValueError(f"Duplicate calendar alias detected: {calendar.name}")
            seen_names.add(name_key)
        return value

    @classmethod
    def load_from_yaml(cls, config_path: Path) -> "AppConfig":
        """
        Load configuration from YAML file.

        Args:
            config_path: Path to the YAML config file

        Returns:
            AppConfig instance

        Raises:
            FileNotFoundError: If config file doesn't exist
            ValueError: If config is invalid
        """
        if not config_path.exists():
            raise FileNotFoundError(
                f"Config file not found: {config_path}\n"
                f"Please create a config.yaml file. See config.example.yaml for reference."
            )

        try:
            with open(config_path, "r", encoding="utf-8") as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as exc:
            raise ValueError(f"Invalid YAML in {config_path}: {exc}") from exc

        if not isinstance(data, dict):
            raise ValueError("Config file must contain a mapping at the root level.")

        return cls(**data)

    def find_calendar_by_name(self, name: str) -> CalendarAlias | None:
        """Find a calendar by its alias."""
        for calendar in self.calendars:
            if calendar.name.lower() == name.lower():
                return calendar
        return None

    def resolve_calendar(self, identifier: str) -> str:
        """
        Resolve an alias or a raw calendar id to a calendar id.

        Raises:
            ValueError: If identifier is neither an alias nor a calendar id
        """
        calendar = self.find_calendar_by_name(identifier)
        if calendar:
            return calendar.calendar_id

        # Google calendar ids are "primary" or address-like
        if identifier == "primary" or "@" in identifier:
            return identifier

        raise ValueError(
            f"Unknown calendar identifier: '{identifier}'. "
            f"Use a calendar id or a configured alias."
        )

    def resolve_calendars(self, identifiers: Sequence[str]) -> List[str]:
        """
        Resolve multiple calendar identifiers, ensuring uniqueness.

        Raises:
            ValueError: If nothing is given or any identifier is unknown
        """
        if not identifiers:
            raise ValueError("No calendars provided.")

        resolved: List[str] = []
        unknown_identifiers: List[str] = []

        for identifier in identifiers:
            try:
                calendar_id = self.resolve_calendar(identifier)
            except ValueError:
                unknown_identifiers.append(identifier)
                continue

            if calendar_id not in resolved:
                resolved.append(calendar_id)

        if unknown_identifiers:
            missing = ", ".join(sorted(set(unknown_identifiers)))
            raise ValueError(
                f"Unknown calendar identifier(s): {missing}. "
                "Ensure they exist in the configuration or provide valid calendar ids."
            )

        return resolved

    def build_slot_config(
        self,
        start_date: Date,
        end_date: Date,
        *,
        calendar_ids: Optional[Sequence[str]] = None,
        duration_minutes: Optional[int] = None,
        start_hour: Optional[int] = None,
        end_hour: Optional[int] = None,
        buffer_before_minutes: Optional[int] = None,
        buffer_after_minutes: Optional[int] = None,
        merge_consecutive: Optional[bool] = None,
        ignore_all_day_events: Optional[bool] = None,
        exclude_days: Optional[Sequence[int]] = None,
    ) -> SlotConfig:
        """Build the per-request SlotConfig, letting explicit values override defaults."""
        defaults = self.defaults

        def pick(value, default):
            return default if value is None else value

        return SlotConfig(
            start_date=start_date,
            end_date=end_date,
            working_hours=WorkingHours(
                start_hour=pick(start_hour, defaults.start_hour),
                end_hour=pick(end_hour, defaults.end_hour),
            ),
            slot_duration_minutes=pick(duration_minutes, defaults.duration_minutes),
            buffer_before_minutes=pick(buffer_before_minutes, defaults.buffer_before_minutes),
            buffer_after_minutes=pick(buffer_after_minutes, defaults.buffer_after_minutes),
            excluded_weekdays=frozenset(pick(exclude_days, self.exclude_days)),
            merge_consecutive=pick(merge_consecutive, defaults.merge_consecutive),
            ignore_all_day_events=pick(ignore_all_day_events, defaults.ignore_all_day_events),
            calendar_ids=tuple(calendar_ids or defaults.calendar_ids),
            timezone=self.timezone,
        )


def get_default_config_path() -> Path:
    """Get the default configuration file path."""
    # Look for config.yaml in current directory
    current_dir = Path.cwd()
    config_path = current_dir / "config.yaml"

    if not config_path.exists():
        # Try in the project root (parent of the package)
        project_root = Path(__file__).parent.parent
        config_path = project_root / "config.yaml"

    return config_path
