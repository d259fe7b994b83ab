"""Exception hierarchy shared by the gateway, the reconciler and the plugin."""

from dataclasses import dataclass, field

from linear_release.models import ValidationIssue


class LinearReleaseError(Exception):
    """Base class; the plugin turns these into structured failure responses."""


class ConfigError(LinearReleaseError):
    def __init__(self, message: str, issues: list[ValidationIssue] | None = None) -> None:
        super().__init__(message)
        self.issues = issues or []


class TemplateError(LinearReleaseError):
    pass


class FatalRunError(LinearReleaseError):
    """A setup step failed and nothing downstream can run."""


class GatewayError(LinearReleaseError):
    pass


class NetworkError(GatewayError):
    """Connectivity failure, timeout, expired deadline or non-2xx response."""


@dataclass(frozen=True)
class GraphQLError:
    message: str
    path: list[str] = field(default_factory=list)
    code: str = ""

    @classmethod
    def from_payload(cls, payload: dict) -> "GraphQLError":
        return cls(
            message=payload.get("message", "unknown error"),
            path=[str(p) for p in payload.get("path") or []],
            code=(payload.get("extensions") or {}).get("code", ""),
        )


class RemoteRejected(GatewayError):
    """The transport succeeded but the API refused the request."""

    def __init__(self, message: str, errors: list[GraphQLError] | None = None) -> None:
        super().__init__(message)
        self.errors = errors or []


class NotFound(RemoteRejected):
    pass


class CreateFailed(RemoteRejected):
    pass


class MutationFailed(RemoteRejected):
    pass
