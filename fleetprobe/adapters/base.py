"""
Protocol adapter interface.

An adapter encodes one workflow: the exact sequence of calls against one
endpoint, their payload shapes and how success is detected.  It reports
progress through the :class:`RunContext` it is given and either returns a
:class:`RunResult` or raises a :class:`ProbeError`.
"""

from __future__ import annotations

import abc
import asyncio
import base64
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Sequence

from fleetprobe.config import POLL_INTERVAL, POLL_MAX_ATTEMPTS
from fleetprobe.cropping import Cropper, center_crop
from fleetprobe.errors import HttpFailure, MissingField
from fleetprobe.extract import ENCODED_IMAGE, error_message, first_present
from fleetprobe.http_client import EndpointClient
from fleetprobe.models import Endpoint, ReferenceImage, RunResult, RunStatus, WorkflowKind

PORTRAIT_IMAGE = "IMAGE_ASPECT_RATIO_PORTRAIT"


@dataclass
class RunContext:
    endpoint: Endpoint
    client: EndpointClient
    prompt: str
    images: Sequence[ReferenceImage | None]
    seed: int
    log: Callable[[str], None]
    set_status: Callable[[RunStatus], None]
    set_media_id: Callable[[str], None]
    cropper: Cropper = center_crop
    poll_interval: float = POLL_INTERVAL
    poll_max_attempts: int = POLL_MAX_ATTEMPTS
    sleep: Callable[[float], Awaitable[None]] = asyncio.sleep

    @property
    def available_images(self) -> list[ReferenceImage]:
        return [img for img in self.images if img is not None]


class ProtocolAdapter(abc.ABC):
    kind: WorkflowKind
    initial_status: RunStatus = RunStatus.RUNNING

    @abc.abstractmethod
    async def execute(self, ctx: RunContext) -> RunResult:
        """Drive the workflow to completion or raise a ProbeError."""
        ...


def encode_image(image: ReferenceImage | bytes) -> str:
    data = image.data if isinstance(image, ReferenceImage) else image
    return base64.b64encode(data).decode("ascii")


async def post_checked(ctx: RunContext, path: str, payload: dict[str, Any], failure_message: str) -> Any:
    """POST and raise :class:`HttpFailure` on a non-success status."""
    resp, data = await ctx.client.post_json(path, payload)
    if not resp.is_success:
        raise HttpFailure(error_message(data, failure_message), status_code=resp.status_code)
    return data


def require_encoded_image(data: Any) -> str:
    image = first_present(data, ENCODED_IMAGE)
    if not image:
        raise MissingField("No image returned")
    return image
