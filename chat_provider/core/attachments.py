"""Attachments sent alongside a prompt. Only described to the model, never transmitted."""

from __future__ import annotations

from typing import Annotated, Literal, Optional, Sequence, Union

from pydantic import BaseModel, Field


class ImageAttachment(BaseModel):
    kind: Literal["image"] = "image"
    name: str
    mime_type: Optional[str] = None
    path: Optional[str] = None

    def describe(self) -> str:
        return f"[Image attachment: {self.name}]"


class FileAttachment(BaseModel):
    kind: Literal["file"] = "file"
    name: str
    mime_type: Optional[str] = None
    path: Optional[str] = None

    def describe(self) -> str:
        return f"[File attachment: {self.name}]"


class LinkAttachment(BaseModel):
    kind: Literal["link"] = "link"
    url: str
    name: str = ""

    def describe(self) -> str:
        return f"[Link: {self.url}]"


Attachment = Annotated[
    Union[ImageAttachment, FileAttachment, LinkAttachment],
    Field(discriminator="kind"),
]


def compose_content(prompt: str, attachments: Sequence[Attachment] = ()) -> str:
    """Prompt text followed by a blank line and one description per attachment."""
    if not attachments:
        return prompt
    descriptions = "\n".join(a.describe() for a in attachments)
    return f"{prompt}\n\n{descriptions}"
