"""
Image-to-image: upload every reference image, then run the edit recipe.

Uploads are strictly sequential so log lines keep their image index; the
recipe call starts only once every upload returned a media id.
"""

from __future__ import annotations

from fleetprobe.adapters.base import (
    PORTRAIT_IMAGE,
    ProtocolAdapter,
    RunContext,
    encode_image,
    post_checked,
    require_encoded_image,
)
from fleetprobe.errors import MissingField
from fleetprobe.extract import IMAGE_UPLOAD_MEDIA_ID, first_present
from fleetprobe.models import ResultKind, RunResult, RunStatus, WorkflowKind

UPLOAD_PATH = "/api/imagen/upload"
RECIPE_PATH = "/api/imagen/run-recipe"
RECIPE_MODEL = "R2I"
MEDIA_CATEGORY = "MEDIA_CATEGORY_SUBJECT"
CAPTION = "reference"


class ImageToImageAdapter(ProtocolAdapter):
    kind = WorkflowKind.IMAGE_TO_IMAGE
    initial_status = RunStatus.UPLOADING

    async def execute(self, ctx: RunContext) -> RunResult:
        images = ctx.available_images
        if not images:
            raise MissingField("No reference image provided")

        media_ids: list[str] = []
        for i, img in enumerate(images, 1):
            ctx.log(f"Uploading image {i}/{len(images)}...")
            data = await post_checked(
                ctx,
                UPLOAD_PATH,
                {"imageInput": {"rawImageBytes": encode_image(img), "mimeType": img.mime_type}},
                f"Upload failed for image {i}",
            )
            media_id = first_present(data, IMAGE_UPLOAD_MEDIA_ID)
            if not media_id:
                raise MissingField(f"No media ID returned for image {i}")
            media_ids.append(str(media_id))
            ctx.set_media_id(str(media_id))
            ctx.log(f"Image {i} uploaded. ID: {media_id}")

        ctx.set_status(RunStatus.RUNNING)
        ctx.log("Running edit recipe...")
        data = await post_checked(
            ctx,
            RECIPE_PATH,
            {
                "userInstruction": ctx.prompt,
                "seed": ctx.seed,
                "imageModelSettings": {"imageModel": RECIPE_MODEL, "aspectRatio": PORTRAIT_IMAGE},
                "recipeMediaInputs": [
                    {
                        "mediaInput": {"mediaCategory": MEDIA_CATEGORY, "mediaGenerationId": media_id},
                        "caption": CAPTION,
                    }
                    for media_id in media_ids
                ],
            },
            "Recipe failed",
        )
        image = require_encoded_image(data)
        ctx.log("Success: Image edited.")
        return RunResult(kind=ResultKind.IMAGE, payload=image)
