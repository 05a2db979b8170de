"""Workflow adapters, one per :class:`WorkflowKind`."""

from __future__ import annotations

from fleetprobe.adapters.base import ProtocolAdapter, RunContext
from fleetprobe.adapters.image_to_image import ImageToImageAdapter
from fleetprobe.adapters.image_to_video import ImageToVideoAdapter
from fleetprobe.adapters.text_to_image import TextToImageAdapter
from fleetprobe.models import WorkflowKind

_ADAPTERS: dict[WorkflowKind, type[ProtocolAdapter]] = {
    WorkflowKind.TEXT_TO_IMAGE: TextToImageAdapter,
    WorkflowKind.IMAGE_TO_IMAGE: ImageToImageAdapter,
    WorkflowKind.IMAGE_TO_VIDEO: ImageToVideoAdapter,
}


def get_adapter(kind: WorkflowKind | str) -> ProtocolAdapter:
    return _ADAPTERS[WorkflowKind(kind)]()


__all__ = [
    "ImageToImageAdapter",
    "ImageToVideoAdapter",
    "ProtocolAdapter",
    "RunContext",
    "TextToImageAdapter",
    "get_adapter",
]
