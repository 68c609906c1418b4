"""Shared pytest fixtures for Zule PFP tests."""

from __future__ import annotations

import base64
import io
import shutil
import tempfile
from collections.abc import Callable
from pathlib import Path
from typing import Generator

import httpx
import pytest
from fastapi.testclient import TestClient
from PIL import Image

from zulepfp.api.main import create_app
from zulepfp.core.config import ZulePfpConfig
from zulepfp.core.generation_client import GenerationOutcome
from zulepfp.core.key_pool import Credential


def make_image_bytes(
    size: tuple[int, int],
    color: tuple[int, ...] = (0, 0, 255),
    mode: str = "RGB",
    image_format: str = "PNG",
) -> bytes:
    """Encode a solid-colour image in memory."""
    buffer = io.BytesIO()
    Image.new(mode, size, color).save(buffer, format=image_format)
    return buffer.getvalue()


def make_credentials(count: int) -> list[Credential]:
    return [Credential(name=f"GEMINI_API_KEY_{i}", secret=f"secret-{i}") for i in range(1, count + 1)]


class StubGenerationClient:
    """Generation client that replays scripted outcomes.

    ``outcomes`` is either a list consumed in call order (the last entry
    repeats) or a callable ``(prompt, credential) -> outcome``.
    """

    def __init__(self, outcomes: list[GenerationOutcome] | Callable[..., GenerationOutcome]):
        self._outcomes = outcomes
        self.calls: list[tuple[str, Credential]] = []

    async def generate(self, prompt: str, credential: Credential) -> GenerationOutcome:
        self.calls.append((prompt, credential))
        if callable(self._outcomes):
            return self._outcomes(prompt, credential)
        index = min(len(self.calls) - 1, len(self._outcomes) - 1)
        return self._outcomes[index]

    @property
    def credentials_used(self) -> list[str]:
        return [credential.name for _, credential in self.calls]


class SleepRecorder:
    """Awaitable stand-in for ``asyncio.sleep`` that records delays."""

    def __init__(self) -> None:
        self.delays: list[float] = []

    async def __call__(self, seconds: float) -> None:
        self.delays.append(seconds)


@pytest.fixture
def temp_dir() -> Generator[Path, None, None]:
    """Create a temporary directory for test files.

    Yields:
        Path to temporary directory

    Cleanup:
        Directory is removed after test completes
    """
    temp_path = Path(tempfile.mkdtemp())
    try:
        yield temp_path
    finally:
        shutil.rmtree(temp_path, ignore_errors=True)


@pytest.fixture
def test_config(temp_dir: Path) -> ZulePfpConfig:
    """Create a test configuration rooted in a temporary directory."""
    return ZulePfpConfig(
        data_dir=temp_dir / "data",
        uploads_dir=temp_dir / "uploads",
        temp_dir=temp_dir / "scratch",
        logo_path=temp_dir / "assets" / "watermark_logo.png",
        env_file=temp_dir / "missing.env",
        imagen_base_url="https://imagen.test/v1beta",
        public_base_url="/uploads",
        _env_file=None,
    )


@pytest.fixture
def logo_file(test_config: ZulePfpConfig) -> Path:
    """Write an opaque red 200x100 logo at the configured path."""
    test_config.logo_path.parent.mkdir(parents=True, exist_ok=True)
    test_config.logo_path.write_bytes(make_image_bytes((200, 100), (255, 0, 0, 255), mode="RGBA"))
    return test_config.logo_path


@pytest.fixture
def generated_png() -> bytes:
    return make_image_bytes((256, 256), (0, 0, 255))


@pytest.fixture
def sleep_recorder() -> SleepRecorder:
    return SleepRecorder()


@pytest.fixture
def upstream(generated_png: bytes) -> dict:
    """Scriptable fake of the generation API.

    Map a secret to a status code (or ``"empty"``) to make that credential
    fail; unmapped secrets succeed.  Every request is appended to
    ``requests``.
    """
    state: dict = {"failures": {}, "requests": [], "image": generated_png}

    def handler(request: httpx.Request) -> httpx.Response:
        state["requests"].append(request)
        secret = request.url.params.get("key")
        failure = state["failures"].get(secret)
        if failure == "empty":
            return httpx.Response(200, json={"predictions": []})
        if failure is not None:
            return httpx.Response(failure, json={"error": {"message": "upstream says no"}})
        encoded = base64.b64encode(state["image"]).decode("ascii")
        return httpx.Response(200, json={"predictions": [{"bytesBase64Encoded": encoded}]})

    state["transport"] = httpx.MockTransport(handler)
    return state


@pytest.fixture
def test_client(
    test_config: ZulePfpConfig,
    logo_file: Path,
    upstream: dict,
    sleep_recorder: SleepRecorder,
) -> Generator[TestClient, None, None]:
    """FastAPI TestClient wired to the fake upstream with three credentials."""
    app = create_app(
        test_config,
        credentials=make_credentials(3),
        http_client=httpx.AsyncClient(transport=upstream["transport"]),
        sleep=sleep_recorder,
    )
    with TestClient(app) as client:
        yield client


@pytest.fixture
def make_image() -> Callable[..., bytes]:
    """Factory fixture: ``make_image((w, h), color, mode, image_format)``."""
    return make_image_bytes


@pytest.fixture
def credentials_factory() -> Callable[[int], list[Credential]]:
    """Factory fixture: ``credentials_factory(n)`` -> n named credentials."""
    return make_credentials


@pytest.fixture
def stub_client_factory() -> type[StubGenerationClient]:
    return StubGenerationClient
