# core/settings/base.py
from pydantic_settings import BaseSettings, SettingsConfigDict


class PinkFlowBaseSettings(BaseSettings):
    """
    Base for every settings section.

    Values come from the environment or .env, matched on each field's alias.
    Fields may also be set by name (handy in tests).
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )
