"""Linear plugin entry points: hook dispatch, config validation and plugin metadata."""

from collections.abc import Callable, Mapping
from enum import Enum
from typing import Any

import structlog

from linear_release.errors import ConfigError, LinearReleaseError
from linear_release.extract import collect_commit_messages, extract_issue_ids
from linear_release.models import (
    ExecuteRequest,
    ExecuteResponse,
    PluginInfo,
    ReleaseContext,
    ValidateResponse,
    ValidationIssue,
)
from linear_release.providers.base import Deadline, IssueTrackerClient
from linear_release.providers.linear import LinearClient
from linear_release.reconcile import ReleaseReconciler
from linear_release.settings import API_KEY_PREFIX, PluginConfig, parse_config

logger = structlog.get_logger()

VERSION = "0.1.0"

ClientFactory = Callable[[str], IssueTrackerClient]


class Hook(str, Enum):
    POST_PLAN = "post-plan"
    POST_PUBLISH = "post-publish"
    ON_ERROR = "on-error"


class LinearPlugin:
    def __init__(self, client_factory: ClientFactory = LinearClient) -> None:
        self._client_factory = client_factory

    def get_info(self) -> PluginInfo:
        return PluginInfo(
            name="linear",
            version=VERSION,
            description="Linear issue tracking integration - link releases to issues and update statuses",
            author="linear-release",
            hooks=[h.value for h in Hook],
        )

    def execute(self, request: ExecuteRequest, deadline: Deadline | None = None) -> ExecuteResponse:
        """Run the handler for ``request.hook``; always returns a response."""
        log = logger.bind(hook=request.hook, dry_run=request.dry_run)
        try:
            hook = Hook(request.hook)
        except ValueError:
            log.debug("hook_not_implemented")
            return ExecuteResponse(success=True, message=f"Hook {request.hook} not implemented")

        try:
            cfg = parse_config(request.config)
            match hook:
                case Hook.POST_PLAN:
                    return self._handle_post_plan(cfg, request.context)
                case Hook.POST_PUBLISH:
                    return self._handle_post_publish(cfg, request.context, request.dry_run, deadline)
                case Hook.ON_ERROR:
                    return self._handle_on_error()
        except LinearReleaseError as exc:
            log.error("hook_failed", error=str(exc))
            return ExecuteResponse(success=False, error=str(exc))
        return ExecuteResponse(success=True, message=f"Hook {request.hook} not implemented")

    def _handle_post_plan(self, cfg: PluginConfig, release: ReleaseContext) -> ExecuteResponse:
        issues = extract_issue_ids(collect_commit_messages(release), cfg.issue_prefix)
        if not issues:
            return ExecuteResponse(
                success=True,
                message="No linked Linear issues found in commits",
                outputs={"linked_issues": []},
            )
        return ExecuteResponse(
            success=True,
            message=f"Found {len(issues)} linked Linear issues: {', '.join(issues)}",
            outputs={"linked_issues": issues},
        )

    def _handle_post_publish(
        self,
        cfg: PluginConfig,
        release: ReleaseContext,
        dry_run: bool,
        deadline: Deadline | None,
    ) -> ExecuteResponse:
        if dry_run:
            preview = ReleaseReconciler(None, cfg).preview(release)
            return ExecuteResponse(success=True, message=preview.summary(), outputs=preview.outputs())

        client = self._client_factory(cfg.api_key_value)
        report = ReleaseReconciler(client, cfg, deadline=deadline).run(release)
        return ExecuteResponse(success=True, message=report.summary(), outputs=report.outputs())

    def _handle_on_error(self) -> ExecuteResponse:
        return ExecuteResponse(success=True, message="Release failure noted (no Linear action taken)")

    def validate(self, config: Mapping[str, Any], deadline: Deadline | None = None) -> ValidateResponse:
        """Check the config and, for a well-formed key, authenticate against Linear."""
        try:
            cfg = parse_config(config)
        except ConfigError as exc:
            return ValidateResponse(errors=exc.issues)

        errors: list[ValidationIssue] = []
        api_key = cfg.api_key_value
        if not api_key:
            errors.append(ValidationIssue(field="api_key", message="Linear API key is required"))
            return ValidateResponse(errors=errors)

        if not cfg.team_id and not cfg.team_key:
            errors.append(ValidationIssue(field="team_id", message="Either team_id or team_key is required"))

        if not 0 <= cfg.release_issue.priority <= 4:
            errors.append(
                ValidationIssue(field="release_issue.priority", message="Priority must be between 0 and 4")
            )

        if not api_key.startswith(API_KEY_PREFIX):
            errors.append(
                ValidationIssue(
                    field="api_key",
                    message=f"Invalid Linear API key format (should start with '{API_KEY_PREFIX}')",
                )
            )
        else:
            try:
                self._client_factory(api_key).get_viewer(deadline=deadline)
            except LinearReleaseError as exc:
                errors.append(ValidationIssue(field="api_key", message=f"Failed to authenticate with Linear: {exc}"))

        return ValidateResponse(errors=errors)
