"""Batch and chained prompting over several models.

Prompts run one after another; within a prompt every model is queried
concurrently with a non-streamed completion. Failures are recorded per model.
"""

import asyncio
import csv
import io
import json
import logging
from collections.abc import Callable
from datetime import datetime
from enum import Enum
from pathlib import Path

from pydantic import BaseModel, ConfigDict, Field

from .transport import DEFAULT_MAX_TOKENS, DEFAULT_TEMPERATURE, Transport

logger = logging.getLogger(__name__)

INPUT_PLACEHOLDER = "{input}"


class OutputFormat(str, Enum):
    JSON = "json"
    CSV = "csv"
    MARKDOWN = "markdown"


class BatchResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    model: str
    response: str = ""
    error: str | None = None


class BatchResult(BaseModel):
    """All model responses to one prompt."""

    model_config = ConfigDict(frozen=True)

    prompt: str
    responses: list[BatchResponse] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=datetime.now)

    def first_success(self) -> BatchResponse | None:
        for response in self.responses:
            if response.error is None:
                return response
        return None


def read_prompts(path: Path) -> list[str]:
    """Non-empty, non-comment lines of a prompt file, trimmed."""
    prompts = []
    for line in path.read_text(encoding="utf-8").splitlines():
        line = line.strip()
        if line and not line.startswith("#"):
            prompts.append(line)
    return prompts


class BatchProcessor:
    """Sends prompts to a set of models through a transport."""

    def __init__(
        self,
        transport: Transport,
        temperature: float = DEFAULT_TEMPERATURE,
        max_tokens: int | None = DEFAULT_MAX_TOKENS,
    ):
        self._transport = transport
        self._temperature = temperature
        self._max_tokens = max_tokens

    async def _ask(self, prompt: str, model: str) -> BatchResponse:
        try:
            text = await self._transport.chat_completion(
                [{"role": "user", "content": prompt}],
                model,
                temperature=self._temperature,
                max_tokens=self._max_tokens,
            )
        except Exception as exc:
            logger.warning("Batch request to %s failed: %s", model, exc)
            return BatchResponse(model=model, error=str(exc))
        return BatchResponse(model=model, response=text)

    async def process_prompt(self, prompt: str, models: list[str]) -> BatchResult:
        responses = await asyncio.gather(*(self._ask(prompt, m) for m in models))
        return BatchResult(prompt=prompt, responses=list(responses))

    async def run(
        self,
        prompts: list[str],
        models: list[str],
        on_progress: Callable[[int, int], None] | None = None,
    ) -> list[BatchResult]:
        """Process prompts sequentially.

        Args:
            prompts: Prompt texts
            models: Model ids queried for every prompt
            on_progress: Called with (done, total) after each prompt
        """
        results = []
        for index, prompt in enumerate(prompts, start=1):
            results.append(await self.process_prompt(prompt, models))
            if on_progress is not None:
                on_progress(index, len(prompts))
        return results

    async def chain(
        self,
        initial: str,
        steps: list[str],
        models: list[str],
        on_progress: Callable[[int, int], None] | None = None,
    ) -> list[BatchResult]:
        """Run ``steps`` in order, feeding each step's first successful reply
        into the next through ``{input}``. Stops at a step with no success.
        """
        results: list[BatchResult] = []
        current = initial
        for index, step in enumerate(steps, start=1):
            result = await self.process_prompt(step.replace(INPUT_PLACEHOLDER, current), models)
            results.append(result)
            if on_progress is not None:
                on_progress(index, len(steps))
            success = result.first_success()
            if success is None:
                logger.warning("Chain stopped at step %d: no successful responses", index)
                break
            current = success.response
        return results


def results_to_json(results: list[BatchResult]) -> str:
    return json.dumps([r.model_dump(mode="json") for r in results], indent=2, ensure_ascii=False)


def results_to_csv(results: list[BatchResult]) -> str:
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator="\n")
    writer.writerow(["Timestamp", "Prompt", "Model", "Response", "Error"])
    for result in results:
        for response in result.responses:
            writer.writerow([
                result.timestamp.isoformat(),
                result.prompt,
                response.model,
                response.response,
                response.error or "",
            ])
    return buffer.getvalue()


def results_to_markdown(results: list[BatchResult], generated_at: datetime | None = None) -> str:
    generated_at = generated_at or datetime.now()
    parts = ["# Batch Processing Results\n", f"Generated at: {generated_at.isoformat()}\n"]
    for result in results:
        parts.append(f"## Prompt\n\n{result.prompt}\n")
        parts.append(f"*Timestamp: {result.timestamp.isoformat()}*\n")
        for response in result.responses:
            parts.append(f"### {response.model}\n")
            if response.error is not None:
                parts.append(f"**Error:** {response.error}\n")
            else:
                parts.append(f"{response.response}\n")
            parts.append("---\n")
    return "\n".join(parts)


def save_results(results: list[BatchResult], path: Path, fmt: OutputFormat = OutputFormat.JSON) -> Path:
    if fmt is OutputFormat.CSV:
        content = results_to_csv(results)
    elif fmt is OutputFormat.MARKDOWN:
        content = results_to_markdown(results)
    else:
        content = results_to_json(results)
    path.write_text(content, encoding="utf-8")
    return path
