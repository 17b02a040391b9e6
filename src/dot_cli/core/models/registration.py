"""Project index models."""

from datetime import datetime, timezone

from pydantic import BaseModel, ConfigDict, Field


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class ProjectRegistration(BaseModel):
    """Binding of one hidden directory of a parent repository to its remote.

    Created once per (parent, hidden directory) and never modified.
    """

    model_config = ConfigDict(frozen=True)

    repository_key: str = Field(min_length=1)
    remote_repository_name: str
    owning_user: str
    parent_remote_url: str
    parent_disk_path: str
    hidden_directory_name: str
    # Remote as returned by the hosting provider; absent in older documents
    remote_url: str | None = None
    created_at: datetime = Field(default_factory=_utcnow)


class IndexData(BaseModel):
    """The serialized index document: repository key -> registration."""

    projects: dict[str, ProjectRegistration] = Field(default_factory=dict)
