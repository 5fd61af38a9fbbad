"""Generic HTTP backend adapter for self-hosted or custom model servers.

Wire contract:

- ``POST <base_url>`` with a JSON body rendered from the configured request
  template (or ``{"model": ..., **request fields}`` without one).
- The JSON response either reports a job (``{"status": "pending",
  "jobId": ...}``), a failure (``{"status": "failed", "error": ...}``), or
  carries the result at the configured response path.
- ``GET <base_url>/job/<id>`` returns ``{status, data?, error?}``.
- ``GET <base_url><health_check_path>`` gates generate, stream, and embed
  calls when a health path is configured.
"""

from __future__ import annotations

import asyncio
import json
import logging
from typing import TYPE_CHECKING, Any

import httpx

from switchyard._http import DEFAULT_TIMEOUT_S, HEALTH_CACHE_TTL_S
from switchyard.adapters._errors import wrap_provider_error
from switchyard.adapters.base import AdapterCapabilities
from switchyard.errors import APIError, TemplateError
from switchyard.health import HealthGate
from switchyard.result import GenerateResult, JobStatusResult, StreamResult
from switchyard.templating import extract_value, placeholder_values, render_request_body

if TYPE_CHECKING:
    from collections.abc import AsyncIterator, Callable, Sequence

    from switchyard.catalog import ProviderSpec
    from switchyard.request import GenerateRequest

logger = logging.getLogger(__name__)

_UNHEALTHY = "Custom server is unhealthy."
_JOB_STATUSES = frozenset({"pending", "completed", "failed"})


class CustomAdapter:
    """Adapter for backends described entirely by configuration."""

    def __init__(
        self,
        spec: ProviderSpec,
        *,
        client: httpx.AsyncClient | None = None,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        health_ttl_s: float = HEALTH_CACHE_TTL_S,
        clock: Callable[[], float] | None = None,
    ) -> None:
        if not spec.base_url:
            raise APIError(f"Custom provider {spec.name!r} has no base_url")
        self.spec = spec
        self.name = spec.name
        self.base_url: str = spec.base_url
        self._timeout_s = timeout_s
        self._client = client
        self._owns_client = client is None
        probe = self._probe_health if spec.health_check_path else None
        gate_kwargs: dict[str, Any] = {"ttl_s": health_ttl_s}
        if clock is not None:
            gate_kwargs["clock"] = clock
        self.health = HealthGate(probe, **gate_kwargs)

    @property
    def capabilities(self) -> AdapterCapabilities:
        """Return supported feature flags."""
        return AdapterCapabilities(
            job_status=True,
            streaming=True,
            embeddings=True,
            token_counting=False,
            sessions=False,
        )

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self._timeout_s)
        return self._client

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.spec.api_key:
            headers[self.spec.auth_header] = f"{self.spec.auth_scheme}{self.spec.api_key}"
        return headers

    async def _probe_health(self) -> bool:
        url = f"{self.base_url}{self.spec.health_check_path}"
        try:
            response = await self._get_client().get(url)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning("Health check for %s failed: %s", self.name, e)
            return False
        return response.is_success

    def _request_body(self, request: GenerateRequest, model_id: str) -> dict[str, Any]:
        return render_request_body(
            self.spec.template_for(model_id),
            placeholder_values(model_id, request),
            default={**request.fields(), "model": model_id},
        )

    async def generate(self, request: GenerateRequest, model_id: str) -> GenerateResult:
        """Generate via the backend, honoring the health gate."""
        if not await self.health.is_healthy():
            return GenerateResult.failed(_UNHEALTHY, provider=self.name, model=model_id)

        try:
            body = self._request_body(request, model_id)
            response = await self._get_client().post(
                self.base_url, json=body, headers=self._headers()
            )
            response.raise_for_status()
            payload = response.json()
        except asyncio.CancelledError:
            raise
        except TemplateError as e:
            return GenerateResult.failed(str(e), provider=self.name, model=model_id)
        except json.JSONDecodeError:
            return GenerateResult.failed(
                "Custom server returned a malformed JSON response.",
                provider=self.name,
                model=model_id,
            )
        except Exception as e:
            err = wrap_provider_error(
                e, provider=self.name, phase="generate", message="Custom server error"
            )
            return GenerateResult.failed(str(err), provider=self.name, model=model_id)

        return self._interpret(payload, model_id)

    def _interpret(self, payload: Any, model_id: str) -> GenerateResult:
        status = payload.get("status") if isinstance(payload, dict) else None
        if status == "pending":
            job_id = payload.get("jobId") or payload.get("job_id")
            if not job_id:
                return GenerateResult.failed(
                    "Custom server reported a pending job without a job id.",
                    provider=self.name,
                    model=model_id,
                )
            return GenerateResult.pending(str(job_id), provider=self.name, model=model_id)
        if status == "failed":
            return GenerateResult.failed(
                str(payload.get("error") or "Custom server reported a failure."),
                provider=self.name,
                model=model_id,
            )

        path = self.spec.response_path_for(model_id)
        value = extract_value(payload, path)
        if not isinstance(value, str):
            where = f"path '{path}'" if path else "the default response fields"
            return GenerateResult.failed(
                f"Could not extract a string result from the response using {where}.",
                provider=self.name,
                model=model_id,
            )
        return GenerateResult.completed(
            value, provider=self.name, model=model_id, usage=_parse_usage(payload)
        )

    async def check_job_status(self, provider_job_id: str) -> JobStatusResult:
        """Poll ``<base_url>/job/<id>``."""
        try:
            response = await self._get_client().get(
                f"{self.base_url}/job/{provider_job_id}", headers=self._headers()
            )
            response.raise_for_status()
            payload = response.json()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            err = wrap_provider_error(
                e,
                provider=self.name,
                phase="job_status",
                message="Custom server job status error",
            )
            return JobStatusResult(status="failed", error=str(err))

        status = payload.get("status") if isinstance(payload, dict) else None
        if status not in _JOB_STATUSES:
            return JobStatusResult(
                status="failed", error=f"Unknown job status from custom server: {status!r}"
            )
        if status == "failed":
            return JobStatusResult(
                status="failed", error=str(payload.get("error") or "Job failed.")
            )
        if status == "pending":
            return JobStatusResult(status="pending")
        return JobStatusResult(status="completed", data=payload.get("data"))

    async def generate_stream(
        self, request: GenerateRequest, model_id: str
    ) -> AsyncIterator[StreamResult]:
        """Stream newline-delimited JSON chunks from the backend.

        Each line is a JSON object; its text is found at the response path
        (or the default fields). A line with ``error`` ends the stream.
        """
        if not await self.health.is_healthy():
            yield StreamResult(
                status="error", error=_UNHEALTHY, provider=self.name, model=model_id
            )
            return

        path = self.spec.response_path_for(model_id)
        chunks: list[str] = []
        try:
            body = self._request_body(request, model_id)
            body.setdefault("stream", True)
            async with self._get_client().stream(
                "POST", self.base_url, json=body, headers=self._headers()
            ) as response:
                response.raise_for_status()
                async for line in response.aiter_lines():
                    if not line.strip():
                        continue
                    payload = json.loads(line)
                    if isinstance(payload, dict) and payload.get("error"):
                        yield StreamResult(
                            status="error",
                            error=str(payload["error"]),
                            provider=self.name,
                            model=model_id,
                        )
                        return
                    value = extract_value(payload, path)
                    if isinstance(value, str) and value:
                        chunks.append(value)
                        yield StreamResult(
                            status="partial",
                            data=value,
                            provider=self.name,
                            model=model_id,
                        )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            err = wrap_provider_error(
                e, provider=self.name, phase="stream", message="Custom server stream error"
            )
            yield StreamResult(
                status="error", error=str(err), provider=self.name, model=model_id
            )
            return

        yield StreamResult(
            status="completed", data="".join(chunks), provider=self.name, model=model_id
        )

    async def embed_content(
        self, texts: Sequence[str], model_id: str
    ) -> list[list[float]]:
        """Embed *texts* via ``embedding_url`` (or ``base_url``).

        The configured request template is used only when it references
        ``{{texts}}``; otherwise the body is ``{"model": ..., "texts": [...]}``.
        """
        if not await self.health.is_healthy():
            raise APIError(_UNHEALTHY, provider=self.name, phase="embed")

        template = self.spec.template_for(model_id)
        if template is not None and "{{texts}}" not in template.replace(" ", ""):
            template = None
        body = render_request_body(
            template,
            placeholder_values(model_id, texts=texts),
            default={"model": model_id, "texts": list(texts)},
        )
        url = self.spec.embedding_url or self.base_url
        try:
            response = await self._get_client().post(
                url, json=body, headers=self._headers()
            )
            response.raise_for_status()
            payload = response.json()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            raise wrap_provider_error(
                e, provider=self.name, phase="embed", message="Custom server embedding error"
            ) from e
        return _parse_embeddings(payload, provider=self.name)

    async def aclose(self) -> None:
        """Close the HTTP client when this adapter created it."""
        client = self._client
        if client is None or not self._owns_client:
            return
        self._client = None
        await client.aclose()


def _parse_usage(payload: Any) -> dict[str, int]:
    usage = payload.get("usage") if isinstance(payload, dict) else None
    if not isinstance(usage, dict):
        return {}
    return {k: v for k, v in usage.items() if isinstance(v, int)}


def _parse_embeddings(payload: Any, *, provider: str) -> list[list[float]]:
    vectors: Any = None
    if isinstance(payload, dict):
        vectors = payload.get("embeddings")
        if vectors is None and isinstance(payload.get("data"), list):
            vectors = [
                item.get("embedding") if isinstance(item, dict) else None
                for item in payload["data"]
            ]
    if not isinstance(vectors, list) or not all(
        isinstance(v, list) and all(isinstance(x, (int, float)) for x in v)
        for v in vectors
    ):
        raise APIError(
            "Custom server returned no usable embeddings.",
            provider=provider,
            phase="embed",
        )
    return [[float(x) for x in v] for v in vectors]
