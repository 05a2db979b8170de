"""Text-to-image: a single generate call."""

from __future__ import annotations

from fleetprobe.adapters.base import PORTRAIT_IMAGE, ProtocolAdapter, RunContext, post_checked, require_encoded_image
from fleetprobe.models import ResultKind, RunResult, WorkflowKind

GENERATE_PATH = "/api/imagen/generate"
IMAGE_MODEL = "IMAGEN_3_5"


class TextToImageAdapter(ProtocolAdapter):
    kind = WorkflowKind.TEXT_TO_IMAGE

    async def execute(self, ctx: RunContext) -> RunResult:
        ctx.log("Sending generate request (Imagen)...")
        data = await post_checked(
            ctx,
            GENERATE_PATH,
            {
                "prompt": ctx.prompt,
                "seed": ctx.seed,
                "imageModelSettings": {"imageModel": IMAGE_MODEL, "aspectRatio": PORTRAIT_IMAGE},
            },
            "Fetch failed",
        )
        image = require_encoded_image(data)
        ctx.log("Success: Image generated.")
        return RunResult(kind=ResultKind.IMAGE, payload=image)
