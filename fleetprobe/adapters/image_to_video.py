"""
Image-to-video: crop → upload → generate → poll → download.

The generate call returns opaque operation handles.  They are resubmitted
unchanged to the status call, and replaced by whatever each status
response returns.  The final video is fetched through the endpoint's own
download proxy, never from the result URL directly.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any

import httpx

from fleetprobe.adapters.base import PORTRAIT_IMAGE, ProtocolAdapter, RunContext, encode_image, post_checked
from fleetprobe.errors import DownloadFailure, MissingField, OperationError, TransientPollFailure
from fleetprobe.extract import VIDEO_UPLOAD_MEDIA_ID, VIDEO_URL, error_message, first_present
from fleetprobe.models import ReferenceImage, ResultKind, RunResult, RunStatus, WorkflowKind
from fleetprobe.polling import poll

logger = logging.getLogger(__name__)

UPLOAD_PATH = "/api/veo/upload"
GENERATE_PATH = "/api/veo/generate-i2v"
STATUS_PATH = "/api/veo/status"
DOWNLOAD_PATH = "/api/veo/download-video"

CROP_ASPECT_RATIO = "9:16"
PORTRAIT_VIDEO = "VIDEO_ASPECT_RATIO_PORTRAIT"
VIDEO_MODEL_KEY = "veo_3_1_i2v_s_fast_portrait_ultra"

COMPLETION_STATUSES = frozenset(
    {
        "MEDIA_GENERATION_STATUS_COMPLETED",
        "MEDIA_GENERATION_STATUS_SUCCESS",
        "MEDIA_GENERATION_STATUS_SUCCESSFUL",
    }
)


def pick_start_image(ctx: RunContext) -> ReferenceImage:
    for img in ctx.images[:2]:
        if img is not None:
            return img
    raise MissingField("No reference image provided")


def is_complete(op: dict[str, Any]) -> bool:
    status = op.get("status")
    return bool(op.get("done")) or (isinstance(status, str) and status in COMPLETION_STATUSES)


class ImageToVideoAdapter(ProtocolAdapter):
    kind = WorkflowKind.IMAGE_TO_VIDEO
    initial_status = RunStatus.UPLOADING

    async def execute(self, ctx: RunContext) -> RunResult:
        image = pick_start_image(ctx)
        raw = await self._crop(ctx, image)

        ctx.log("Uploading image to Veo...")
        data = await post_checked(
            ctx,
            UPLOAD_PATH,
            {
                "imageInput": {
                    "rawImageBytes": encode_image(raw),
                    "mimeType": image.mime_type,
                    "isUserUploaded": True,
                    "aspectRatio": PORTRAIT_IMAGE,
                }
            },
            "Upload failed",
        )
        media_id = first_present(data, VIDEO_UPLOAD_MEDIA_ID)
        if not media_id:
            raise MissingField("No media ID returned")
        ctx.set_media_id(str(media_id))
        ctx.log(f"Upload success. Media ID: {media_id}")

        ctx.set_status(RunStatus.RUNNING)
        ctx.log("Starting generation...")
        data = await post_checked(
            ctx,
            GENERATE_PATH,
            {
                "requests": [
                    {
                        "aspectRatio": PORTRAIT_VIDEO,
                        "textInput": {"prompt": ctx.prompt},
                        "seed": ctx.seed,
                        "videoModelKey": VIDEO_MODEL_KEY,
                        "startImage": {"mediaId": str(media_id)},
                    }
                ]
            },
            "Generation failed",
        )
        operations = data.get("operations") if isinstance(data, dict) else None
        if not operations:
            raise MissingField("No operations returned")

        ctx.log("Polling status...")
        video_url = await self._await_video_url(ctx, operations)

        ctx.log("Downloading video blob...")
        try:
            resp = await ctx.client.get(DOWNLOAD_PATH, params={"url": video_url})
        except httpx.HTTPError as exc:
            raise DownloadFailure("Failed to download video blob") from exc
        if not resp.is_success:
            raise DownloadFailure("Failed to download video blob")
        ctx.log("Success: Video generated and downloaded.")
        return RunResult(kind=ResultKind.VIDEO, payload=video_url, content=resp.content)

    async def _crop(self, ctx: RunContext, image: ReferenceImage) -> bytes:
        ctx.log(f"Cropping image to {CROP_ASPECT_RATIO}...")
        try:
            return await asyncio.to_thread(ctx.cropper, image.data, CROP_ASPECT_RATIO)
        except Exception as exc:
            logger.warning("Crop failed for %s: %s", ctx.endpoint.id, exc)
            ctx.log("Cropping failed, using original image.")
            return image.data

    async def _await_video_url(self, ctx: RunContext, operations: list[Any]) -> str:
        handles = operations

        async def check(attempt: int) -> Any:
            nonlocal handles
            try:
                resp, data = await ctx.client.post_json(STATUS_PATH, {"operations": handles})
            except httpx.HTTPError as exc:
                raise TransientPollFailure(f"Status check failed: {exc.__class__.__name__}") from exc
            if not resp.is_success:
                raise TransientPollFailure(f"Status check failed: {resp.status_code}")
            returned = data.get("operations") if isinstance(data, dict) else None
            if not returned:
                raise TransientPollFailure("Status check failed: no operations returned")
            handles = returned
            return handles[0]

        def evaluate(op: Any) -> str | None:
            if not isinstance(op, dict):
                ctx.log("Status: Processing...")
                return None
            if is_complete(op):
                url = first_present(op, VIDEO_URL)
                if url:
                    return str(url)
                ctx.log("Status success but URL not found yet...")
            if op.get("error"):
                raise OperationError(error_message({"error": op["error"]}, "Generation error"))
            ctx.log(f"Status: {op.get('status') or 'Processing'}...")
            return None

        return await poll(
            check,
            evaluate,
            interval=ctx.poll_interval,
            max_attempts=ctx.poll_max_attempts,
            timeout_message="Timeout or no URL returned",
            on_transient=lambda attempt, exc: ctx.log(exc.detail),
            sleep=ctx.sleep,
        )
