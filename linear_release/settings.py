"""Plugin configuration: host-supplied map with environment fallback.

Precedence for the two credential fields (highest to lowest):
1. non-empty value in the host config map
2. LINEAR_API_KEY / LINEAR_TEAM_ID env vars (or .env in cwd)

Every other field comes from the host map or its default.
"""

from collections.abc import Mapping
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, SecretStr, ValidationError, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from linear_release.errors import ConfigError
from linear_release.models import ValidationIssue
from linear_release.templates import (
    DEFAULT_COMMENT_TEMPLATE,
    DEFAULT_DESCRIPTION_TEMPLATE,
    DEFAULT_TITLE_TEMPLATE,
)

API_KEY_PREFIX = "lin_api_"


class LinearEnv(BaseSettings):
    model_config = SettingsConfigDict(
        env_prefix="LINEAR_",
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    api_key: SecretStr | None = None
    team_id: str | None = None


def _drop_unset(raw: Mapping) -> dict:
    # Empty strings count as unset so defaults apply
    return {k: v for k, v in raw.items() if v is not None and v != ""}


class ReleaseIssueConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    title: str = DEFAULT_TITLE_TEMPLATE
    description: str = DEFAULT_DESCRIPTION_TEMPLATE
    labels: list[str] = []
    priority: int = 4  # 0 none, 1 urgent .. 4 low; range checked by validation, not parsing
    assignee: str = ""  # Linear user ID

    @model_validator(mode="before")
    @classmethod
    def _defaults_for_empty(cls, data: Any) -> Any:
        return _drop_unset(data) if isinstance(data, Mapping) else data


class PluginConfig(BaseModel):
    model_config = ConfigDict(frozen=True, extra="ignore")

    api_key: SecretStr | None = None
    team_id: str = ""
    team_key: str = ""
    project_id: str = ""
    issue_prefix: str = ""  # falls back to team_key
    released_state: str = "Done"
    create_release_issue: bool = True
    update_linked_issues: bool = True
    add_release_comment: bool = True
    comment_template: str = DEFAULT_COMMENT_TEMPLATE
    release_issue: ReleaseIssueConfig = Field(default_factory=lambda: ReleaseIssueConfig(labels=["release"]))

    @model_validator(mode="before")
    @classmethod
    def _apply_defaults(cls, data: Any) -> Any:
        if not isinstance(data, Mapping):
            return data
        values = _drop_unset(data)
        if "issue_prefix" not in values and values.get("team_key"):
            values["issue_prefix"] = values["team_key"]
        return values

    @property
    def api_key_value(self) -> str:
        return self.api_key.get_secret_value() if self.api_key else ""


def parse_config(raw: Mapping[str, Any] | None) -> PluginConfig:
    """Build a PluginConfig from the host map, filling credentials from the environment.

    Raises ConfigError listing every malformed field.
    """
    values = dict(raw or {})
    env = LinearEnv()
    if not values.get("api_key") and env.api_key:
        values["api_key"] = env.api_key.get_secret_value()
    if not values.get("team_id") and env.team_id:
        values["team_id"] = env.team_id

    try:
        return PluginConfig.model_validate(values)
    except ValidationError as exc:
        issues = [
            ValidationIssue(field=".".join(str(p) for p in err["loc"]) or "config", message=err["msg"])
            for err in exc.errors()
        ]
        detail = "; ".join(f"{i.field}: {i.message}" for i in issues)
        raise ConfigError(f"invalid configuration: {detail}", issues) from exc
