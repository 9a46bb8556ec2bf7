"""Execute a fired agent.

The dispatcher only decides *whether* an agent runs.  Running it (calling a
model with the agent's prompt and inputs) is delegated to an
:class:`AgentRunner`, so the model vendor stays outside this package.
"""

from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

import httpx

from triggerbrew.config_loader import RunnerConfig

logger = logging.getLogger(__name__)


class AgentRunError(Exception):
    """Raised when an agent could not be executed."""


@dataclass
class AgentRequest:
    """Everything a runner needs to execute one agent."""

    agent_id: str
    model: str
    prompt: str
    inputs: dict[str, Any] = field(default_factory=dict)
    context: dict[str, Any] = field(default_factory=dict)

    def to_payload(self) -> dict[str, Any]:
        return {
            "agentId": self.agent_id,
            "model": self.model,
            "prompt": self.prompt,
            "input": self.inputs,
            "context": self.context,
        }


class AgentRunner(ABC):
    @abstractmethod
    async def run(self, request: AgentRequest) -> Any:
        """Execute *request* and return the runner's output.

        Raises :class:`AgentRunError` on failure.
        """

    async def close(self) -> None:
        """Release any resources held by the runner."""


class NullAgentRunner(AgentRunner):
    """Used when no runner endpoint is configured; every run fails."""

    async def run(self, request: AgentRequest) -> Any:
        raise AgentRunError("No agent runner configured (runner.url is empty)")


class HttpAgentRunner(AgentRunner):
    """POST the agent request as JSON to ``config.url``.

    Transport errors and 5xx responses are retried with exponential
    backoff (``backoff_seconds * 4**attempt``); 4xx responses fail at once.
    """

    def __init__(
        self,
        config: RunnerConfig,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        if not config.url:
            raise ValueError("HttpAgentRunner requires runner.url")
        self._config = config
        self._client = client or httpx.AsyncClient(timeout=config.timeout_seconds)
        self._owns_client = client is None

    async def run(self, request: AgentRequest) -> Any:
        last_error = "unknown error"
        for attempt in range(self._config.max_attempts):
            if attempt:
                delay = self._config.backoff_seconds * (4 ** (attempt - 1))
                await asyncio.sleep(delay)
            try:
                resp = await self._client.post(self._config.url, json=request.to_payload())
            except httpx.HTTPError as exc:
                last_error = f"{type(exc).__name__}: {exc}"
                logger.warning(
                    "Runner request for agent %s failed (attempt %d/%d): %s",
                    request.agent_id, attempt + 1, self._config.max_attempts, last_error,
                )
                continue

            if resp.status_code >= 500:
                last_error = f"HTTP {resp.status_code}"
                logger.warning(
                    "Runner returned %d for agent %s (attempt %d/%d)",
                    resp.status_code, request.agent_id, attempt + 1,
                    self._config.max_attempts,
                )
                continue
            if resp.status_code >= 400:
                raise AgentRunError(f"HTTP {resp.status_code}: {resp.text[:200]}")

            try:
                return resp.json()
            except ValueError:
                return {"text": resp.text}

        raise AgentRunError(
            f"Runner failed after {self._config.max_attempts} attempts: {last_error}"
        )

    async def close(self) -> None:
        if self._owns_client:
            await self._client.aclose()


def build_runner(config: RunnerConfig) -> AgentRunner:
    if config.url:
        return HttpAgentRunner(config)
    logger.warning("runner.url is not set; fired agents will be recorded as failed")
    return NullAgentRunner()
