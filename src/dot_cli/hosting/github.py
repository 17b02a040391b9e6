"""GitHub integration for creating and deleting remote repositories.

Uses the REST API when a token is available and falls back to the
``gh`` CLI otherwise.
"""

import subprocess

import httpx
import structlog

from dot_cli.core.exceptions import HostingProviderError
from dot_cli.git.keys import build_remote_url

logger = structlog.get_logger(__name__)

GITHUB_API_VERSION = "2022-11-28"


def _github_headers(token: str) -> dict[str, str]:
    return {
        "Accept": "application/vnd.github+json",
        "Authorization": f"Bearer {token}",
        "X-GitHub-Api-Version": GITHUB_API_VERSION,
        "User-Agent": "dot-cli",
    }


def _already_exists(response: httpx.Response) -> bool:
    # 422 is also returned for invalid names and other validation errors
    return response.status_code == 422 and "name already exists" in response.text


class GitHubClient:
    """Creates and deletes repositories on GitHub."""

    def __init__(
        self,
        token: str | None = None,
        api_url: str = "https://api.github.com",
        host: str = "github.com",
        timeout: float = 15.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._token = token
        self._api_url = api_url.rstrip("/")
        self._host = host
        self._timeout = timeout
        self._transport = transport

    @property
    def host(self) -> str:
        return self._host

    def remote_url(self, owner: str, name: str) -> str:
        """SSH remote URL of a repository on this host."""
        return build_remote_url(self._host, owner, name)

    def _client(self, token: str) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self._api_url,
            headers=_github_headers(token),
            timeout=self._timeout,
            transport=self._transport,
        )

    # --- Create ---

    async def create_repository(self, org: str, name: str, description: str) -> str:
        """Create a private repository and return its SSH remote URL.

        A repository that already exists counts as created.
        """
        if self._token:
            return await self._create_via_api(self._token, org, name, description)
        return self._create_via_gh_cli(org, name, description)

    async def _create_via_api(self, token: str, org: str, name: str, description: str) -> str:
        payload = {
            "name": name,
            "description": description,
            "private": True,
            "auto_init": False,
        }
        try:
            async with self._client(token) as client:
                response = await client.post(f"/orgs/{org}/repos", json=payload)
                if response.status_code == 404:
                    # Not an organization; create it for the authenticated user
                    return await self._create_for_user(client, name, payload)
                if response.is_success or _already_exists(response):
                    logger.info("Remote repository ready", org=org, name=name)
                    return build_remote_url(self._host, org, name)
        except httpx.HTTPError as e:
            raise HostingProviderError(
                f"GitHub request failed: {e}",
                details={"org": org, "name": name},
            ) from e

        raise HostingProviderError(
            f"GitHub API error ({response.status_code}): {response.text}",
            details={"org": org, "name": name, "status": response.status_code},
        )

    async def _create_for_user(
        self,
        client: httpx.AsyncClient,
        name: str,
        payload: dict,
    ) -> str:
        response = await client.post("/user/repos", json=payload)
        if response.is_success or _already_exists(response):
            user = await self._authenticated_user(client)
            logger.info("Remote repository ready", owner=user, name=name)
            return build_remote_url(self._host, user, name)
        raise HostingProviderError(
            f"GitHub API error ({response.status_code}): {response.text}",
            details={"name": name, "status": response.status_code},
        )

    async def _authenticated_user(self, client: httpx.AsyncClient) -> str:
        response = await client.get("/user")
        if not response.is_success:
            raise HostingProviderError("Failed to get authenticated GitHub user")
        try:
            return response.json()["login"]
        except (ValueError, KeyError) as e:
            raise HostingProviderError("Failed to parse GitHub user response") from e

    def _create_via_gh_cli(self, org: str, name: str, description: str) -> str:
        try:
            result = subprocess.run(
                [
                    "gh", "repo", "create", f"{org}/{name}",
                    "--private",
                    "--description", description,
                ],
                capture_output=True,
                text=True,
            )
        except FileNotFoundError as e:
            raise HostingProviderError(
                "GitHub CLI (gh) not available; set GITHUB_TOKEN or install gh"
            ) from e

        if result.returncode == 0 or "already exists" in result.stderr:
            return build_remote_url(self._host, org, name)
        raise HostingProviderError(
            f"gh CLI error: {result.stderr.strip()}. "
            "Run 'gh auth login' or set GITHUB_TOKEN",
            details={"org": org, "name": name},
        )

    # --- Exists ---

    async def repository_exists(self, org: str, name: str) -> bool:
        token = self._token
        if not token:
            try:
                result = subprocess.run(
                    ["gh", "repo", "view", f"{org}/{name}"],
                    capture_output=True,
                    text=True,
                )
            except FileNotFoundError as e:
                raise HostingProviderError("GitHub CLI (gh) not available") from e
            return result.returncode == 0
        try:
            async with self._client(token) as client:
                response = await client.get(f"/repos/{org}/{name}")
        except httpx.HTTPError as e:
            raise HostingProviderError(f"GitHub request failed: {e}") from e
        return response.is_success

    # --- Delete ---

    async def delete_repository(self, org: str, name: str) -> None:
        """Delete a repository. Best-effort: failures are logged, never raised."""
        token = self._token
        try:
            if token:
                async with self._client(token) as client:
                    response = await client.delete(f"/repos/{org}/{name}")
                if not (response.is_success or response.status_code == 404):
                    logger.warning(
                        "Failed to delete remote repository",
                        org=org,
                        name=name,
                        status=response.status_code,
                    )
                    return
            else:
                result = subprocess.run(
                    ["gh", "repo", "delete", f"{org}/{name}", "--yes"],
                    capture_output=True,
                    text=True,
                )
                if result.returncode != 0:
                    logger.warning(
                        "Failed to delete remote repository",
                        org=org,
                        name=name,
                        error=result.stderr.strip(),
                    )
                    return
        except (httpx.HTTPError, OSError) as e:
            logger.warning("Failed to delete remote repository", org=org, name=name, error=str(e))
            return
        logger.info("Deleted remote repository", org=org, name=name)
