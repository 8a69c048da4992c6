"""Minimal GraphQL client for the tarkov.dev API."""

from __future__ import annotations

from typing import Any, Mapping

import requests
import structlog
from requests import Session

log = structlog.get_logger(__name__)

DEFAULT_API_URL = "https://api.tarkov.dev/graphql"
DEFAULT_TIMEOUT = 30.0

_ITEM_REF = "id name shortName"
_REWARDS = f"""
      items {{ item {{ {_ITEM_REF} }} count }}
      traderStanding {{ trader {{ id name }} standing }}
      offerUnlock {{ id trader {{ id name }} level item {{ {_ITEM_REF} }} }}
      skillLevelReward {{ name level skill {{ id name }} }}
      traderUnlock {{ id name }}
      achievement {{ id name description }}
      customization {{ id name customizationType customizationTypeName }}
"""

TASKS_QUERY = f"""
query Tasks($gameMode: GameMode) {{
  tasks(lang: en, gameMode: $gameMode) {{
    id
    name
    minPlayerLevel
    wikiLink
    kappaRequired
    lightkeeperRequired
    factionName
    experience
    map {{ id name }}
    requiredPrestige {{ id name prestigeLevel }}
    taskRequirements {{ task {{ id name }} status }}
    traderRequirements {{ trader {{ id name }} value compareMethod }}
    objectives {{
      id
      type
      description
      optional
      maps {{ id name }}
      ... on TaskObjectiveItem {{ count foundInRaid items {{ {_ITEM_REF} }} }}
      ... on TaskObjectiveShoot {{ count usingWeapon {{ {_ITEM_REF} }} }}
      ... on TaskObjectiveQuestItem {{ count questItem {{ {_ITEM_REF} }} }}
      ... on TaskObjectiveUseItem {{ count useAny {{ {_ITEM_REF} }} }}
      ... on TaskObjectiveMark {{ markerItem {{ {_ITEM_REF} }} }}
    }}
    startRewards {{ {_REWARDS} }}
    finishRewards {{ {_REWARDS} }}
  }}
}}
"""


class TarkovAPIError(RuntimeError):
    """Raised when the tarkov.dev API cannot be queried."""


class TarkovClient:
    """Fetch canonical records from tarkov.dev."""

    def __init__(
        self,
        url: str = DEFAULT_API_URL,
        *,
        timeout: float = DEFAULT_TIMEOUT,
        session: Session | None = None,
    ) -> None:
        if not url:
            raise ValueError("url must be provided")
        self.url = url
        self.timeout = timeout
        self._session = session or requests.Session()
        self._session.headers.setdefault("Content-Type", "application/json")

    def execute(self, query: str, variables: Mapping[str, Any] | None = None) -> dict[str, Any]:
        """Run *query* and return its ``data`` payload."""

        payload: dict[str, Any] = {"query": query}
        if variables:
            payload["variables"] = dict(variables)

        log.debug("tarkov.request", url=self.url, variables=variables)
        try:
            response = self._session.post(self.url, json=payload, timeout=self.timeout)
        except requests.RequestException as exc:
            log.error("tarkov.request_failed", url=self.url, error=str(exc))
            raise TarkovAPIError(f"API request failed: {exc}") from exc

        if not response.ok:
            log.error("tarkov.request_failed", url=self.url, status=response.status_code)
            raise TarkovAPIError(
                f"API request failed: {response.status_code} {response.reason or ''}".rstrip()
            )

        try:
            result = response.json()
        except ValueError as exc:
            raise TarkovAPIError("API returned a non-JSON response") from exc

        if not isinstance(result, dict):
            raise TarkovAPIError("API returned an unexpected payload")
        if result.get("errors"):
            raise TarkovAPIError(f"GraphQL errors: {result['errors']}")
        data = result.get("data")
        if not isinstance(data, dict):
            raise TarkovAPIError("API response did not contain data")
        return data

    def fetch_tasks(self, game_mode: str = "regular") -> list[dict[str, Any]]:
        """Return every task for *game_mode*."""

        data = self.execute(TASKS_QUERY, {"gameMode": game_mode})
        tasks = data.get("tasks")
        if not isinstance(tasks, list):
            raise TarkovAPIError("API response did not contain a task list")
        log.info("tarkov.tasks.fetched", count=len(tasks), game_mode=game_mode)
        return tasks

    def close(self) -> None:
        self._session.close()


__all__ = [
    "DEFAULT_API_URL",
    "DEFAULT_TIMEOUT",
    "TASKS_QUERY",
    "TarkovAPIError",
    "TarkovClient",
]
