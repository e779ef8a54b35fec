"""Pydantic models for config types."""

from typing import Optional
from pydantic import BaseModel, ConfigDict, Field, field_validator

class RepoConfig(BaseModel):
    """Repository configuration."""
    model_config = ConfigDict(extra="allow")

    remote: str = "origin"
    # None means detect from refs/remotes/<remote>/HEAD
    trunk: Optional[str] = None
    draft: bool = False

class UserConfig(BaseModel):
    """User configuration."""
    model_config = ConfigDict(extra="allow")

    # Log read-only git commands at INFO rather than DEBUG
    log_git_commands: bool = False

class ToolConfig(BaseModel):
    """Tool configuration."""
    model_config = ConfigDict(extra="allow")

    # Bound of the worker pool used for provider calls
    concurrency: int = 4

    @field_validator("concurrency")
    @classmethod
    def at_least_one_worker(cls, value: int) -> int:
        return max(1, value)

class RyuConfig(BaseModel):
    """Full pyryu configuration."""
    model_config = ConfigDict(extra="allow")

    repo: RepoConfig = Field(default_factory=RepoConfig)
    user: UserConfig = Field(default_factory=UserConfig)
    tool: ToolConfig = Field(default_factory=ToolConfig)
