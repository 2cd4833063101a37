from sentinel_pipeline.processing.prompts.draft_prompt import (
    build_draft_prompt,
    build_image_description_prompt,
    build_image_generation_prompt,
    build_normalize_prompt,
    build_translate_prompt,
)

__all__ = [
    "build_draft_prompt",
    "build_image_description_prompt",
    "build_image_generation_prompt",
    "build_normalize_prompt",
    "build_translate_prompt",
]
