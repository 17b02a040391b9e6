"""Organization configuration model."""

from pydantic import BaseModel, Field


class DotConfig(BaseModel):
    """Contents of ``~/.dot/dot.conf``."""

    authorized_organizations: list[str] = Field(default_factory=list)
    default_organization: str | None = None
    github_token: str | None = None
