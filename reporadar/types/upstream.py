"""
Upstream response shapes, one per endpoint.

GitHub returns repository JSON in several envelopes. Each envelope gets its
own type so the rest of the package only ever handles RepositorySnapshot.
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from reporadar.types.repos import Release, RepositorySnapshot


def parse_timestamp(value: str | None) -> datetime | None:
    """Parse an ISO 8601 timestamp (``Z`` suffix allowed) into an aware datetime."""
    if not value:
        return None
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _license_name(data: dict[str, Any]) -> str | None:
    license_info = data.get("license") or {}
    spdx_id = license_info.get("spdx_id")
    if spdx_id and spdx_id != "NOASSERTION":
        return spdx_id
    return license_info.get("name")


@dataclass(frozen=True)
class RepositoryResponse:
    """Plain repository JSON (``/repositories/{id}``, ``/user/starred``)."""

    data: dict[str, Any]

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "RepositoryResponse":
        if "id" not in data or "full_name" not in data:
            raise ValueError("repository payload is missing id or full_name")
        return cls(data=data)

    def to_snapshot(self, starred_at: datetime | None = None) -> RepositorySnapshot:
        data = self.data
        owner = data.get("owner") or {}
        created_at = parse_timestamp(data.get("created_at"))
        updated_at = parse_timestamp(data.get("updated_at"))
        return RepositorySnapshot(
            id=int(data["id"]),
            name=data.get("name") or data["full_name"].split("/", 1)[-1],
            full_name=data["full_name"],
            owner_login=owner.get("login", data["full_name"].split("/", 1)[0]),
            owner_avatar_url=owner.get("avatar_url", ""),
            html_url=data.get("html_url", ""),
            description=data.get("description"),
            language=data.get("language"),
            license=_license_name(data),
            topics=tuple(data.get("topics") or ()),
            stars=int(data.get("stargazers_count") or 0),
            forks=int(data.get("forks_count") or 0),
            # "watchers_count" mirrors stargazers upstream; subscribers are the real watchers
            watchers=int(data.get("subscribers_count", data.get("watchers_count")) or 0),
            open_issues=int(data.get("open_issues_count") or 0),
            created_at=created_at or datetime.fromtimestamp(0, tz=timezone.utc),
            updated_at=updated_at or created_at or datetime.fromtimestamp(0, tz=timezone.utc),
            pushed_at=parse_timestamp(data.get("pushed_at")),
            starred_at=starred_at,
        )


@dataclass(frozen=True)
class StarredRepoResponse:
    """Item of ``/user/starred`` requested with the ``star+json`` media type."""

    starred_at: datetime | None
    repo: RepositoryResponse

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "StarredRepoResponse":
        if "repo" in data:
            return cls(
                starred_at=parse_timestamp(data.get("starred_at")),
                repo=RepositoryResponse.from_dict(data["repo"]),
            )
        # Plain media type: no starred_at wrapper
        return cls(starred_at=None, repo=RepositoryResponse.from_dict(data))

    def to_snapshot(self) -> RepositorySnapshot:
        return self.repo.to_snapshot(starred_at=self.starred_at)


@dataclass(frozen=True)
class SearchResultItem:
    """Item of ``/search/repositories``; carries a relevance score."""

    score: float | None
    repo: RepositoryResponse

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "SearchResultItem":
        score = data.get("score")
        return cls(
            score=float(score) if score is not None else None,
            repo=RepositoryResponse.from_dict(data),
        )

    def to_snapshot(self) -> RepositorySnapshot:
        return self.repo.to_snapshot()


def parse_release(data: dict[str, Any]) -> Release:
    """Convert a release payload."""
    return Release(
        id=int(data["id"]),
        tag_name=data["tag_name"],
        name=data.get("name") or None,
        html_url=data.get("html_url", ""),
        published_at=parse_timestamp(data.get("published_at")),
        prerelease=bool(data.get("prerelease", False)),
        draft=bool(data.get("draft", False)),
    )
