"""Single-attempt client for the external text-to-image API.

:class:`GenerationClient` performs exactly one ``:predict`` request and
reports what happened as a :data:`GenerationOutcome` value.  It never
retries and never raises for upstream failures; the retry controller
decides what to do with each outcome.

Wire format
-----------
Request (``POST {base}/{model}:predict?key=<secret>``)::

    {
      "instances": [{"prompt": "..."}],
      "parameters": {"sampleCount": 1, "personGeneration": "ALLOW_ADULT",
                     "aspectRatio": "1:1"}
    }

Successful response::

    {"predictions": [{"bytesBase64Encoded": "<base64 PNG>"}]}

Outcome mapping
---------------
=================================  =====================
Upstream result                    Outcome
=================================  =====================
HTTP 429                           :class:`RateLimited`
HTTP 503                           :class:`Unavailable`
2xx without image data             :class:`Empty`
2xx with image data                :class:`Success`
anything else (incl. transport)    :class:`OtherFailure`
=================================  =====================
"""

from __future__ import annotations

import base64
import binascii
import logging
from dataclasses import dataclass, field
from typing import Union

import httpx

from zulepfp.core.config import ZulePfpConfig
from zulepfp.core.key_pool import Credential

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GenerationRequest:
    """Prompt plus the fixed generation parameters."""

    prompt: str
    sample_count: int = 1
    person_generation: str = "ALLOW_ADULT"
    aspect_ratio: str = "1:1"

    def to_payload(self) -> dict:
        return {
            "instances": [{"prompt": self.prompt}],
            "parameters": {
                "sampleCount": self.sample_count,
                "personGeneration": self.person_generation,
                "aspectRatio": self.aspect_ratio,
            },
        }


@dataclass(frozen=True)
class Success:
    image_bytes: bytes = field(repr=False)


@dataclass(frozen=True)
class Empty:
    pass


@dataclass(frozen=True)
class RateLimited:
    pass


@dataclass(frozen=True)
class Unavailable:
    pass


@dataclass(frozen=True)
class OtherFailure:
    message: str


GenerationOutcome = Union[Success, Empty, RateLimited, Unavailable, OtherFailure]


def _extract_image(payload: object) -> str | None:
    """Return ``predictions[0].bytesBase64Encoded`` if present."""
    if not isinstance(payload, dict):
        return None
    predictions = payload.get("predictions")
    if not isinstance(predictions, list) or not predictions:
        return None
    first = predictions[0]
    if not isinstance(first, dict):
        return None
    data = first.get("bytesBase64Encoded")
    return data or None


class GenerationClient:
    """Issue one generation request per call with a given credential.

    Args:
        config: Service configuration (endpoint and fixed parameters).
        http_client: Optional pre-built ``httpx.AsyncClient``.  When omitted
            the client creates and owns one.
    """

    def __init__(self, config: ZulePfpConfig, http_client: httpx.AsyncClient | None = None) -> None:
        self._config = config
        self._owns_client = http_client is None
        self._http = http_client or httpx.AsyncClient(timeout=config.request_timeout)

    def build_request(self, prompt: str) -> GenerationRequest:
        return GenerationRequest(
            prompt=prompt,
            sample_count=self._config.sample_count,
            person_generation=self._config.person_generation,
            aspect_ratio=self._config.aspect_ratio,
        )

    async def generate(self, prompt: str, credential: Credential) -> GenerationOutcome:
        """Perform a single generation attempt.

        Args:
            prompt: Text prompt.
            credential: Credential used for this attempt only.

        Returns:
            The classified outcome of the attempt.
        """
        request = self.build_request(prompt)
        logger.info(f"Using {credential.name} to generate image...")

        try:
            response = await self._http.post(
                self._config.predict_url,
                params={"key": credential.secret},
                json=request.to_payload(),
                headers={"Content-Type": "application/json"},
            )
        except httpx.RequestError as e:
            return OtherFailure(f"{type(e).__name__}: {e}")

        if response.status_code == 429:
            return RateLimited()
        if response.status_code == 503:
            return Unavailable()
        if not response.is_success:
            return OtherFailure(f"HTTP {response.status_code}")

        try:
            data = _extract_image(response.json())
        except ValueError:
            return OtherFailure("Response body is not valid JSON")
        if data is None:
            return Empty()

        try:
            return Success(base64.b64decode(data, validate=True))
        except (binascii.Error, ValueError):
            return OtherFailure("Image payload is not valid base64")

    async def aclose(self) -> None:
        """Close the underlying HTTP client if this instance created it."""
        if self._owns_client:
            await self._http.aclose()
