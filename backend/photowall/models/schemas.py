from __future__ import annotations

from typing import Annotated, Any, List, Literal, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, TypeAdapter, field_validator

from .wall import Photo


class PhotoPayload(BaseModel):
    # Accept both the wall's field names and the upstream photo API's (`id`, `imageRef`)
    model_config = ConfigDict(populate_by_name=True)

    key: str = Field(..., min_length=1, validation_alias=AliasChoices("key", "id"))
    image_ref: str = Field(..., min_length=1, validation_alias=AliasChoices("image_ref", "imageRef"))
    caption: str = Field(default="", description="Free text shown under the photo")

    @field_validator("key", mode="before")
    @classmethod
    def _coerce_key(cls, value: Any) -> Any:
        # Database ids arrive as integers from some producers
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("caption", mode="before")
    @classmethod
    def _normalize_caption(cls, value: Any) -> Any:
        if value is None:
            return ""
        return value

    def to_photo(self) -> Photo:
        return Photo(key=self.key, image_ref=self.image_ref, caption=self.caption)


class PhotoAddedEvent(BaseModel):
    type: Literal["photo-added"]
    photo: PhotoPayload


class PhotoRemovedEvent(BaseModel):
    type: Literal["photo-removed"]
    key: str = Field(..., min_length=1, validation_alias=AliasChoices("key", "id"))

    @field_validator("key", mode="before")
    @classmethod
    def _coerce_key(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value


LiveEvent = Annotated[Union[PhotoAddedEvent, PhotoRemovedEvent], Field(discriminator="type")]
live_event_adapter: TypeAdapter[Union[PhotoAddedEvent, PhotoRemovedEvent]] = TypeAdapter(LiveEvent)


class PointerRequest(BaseModel):
    action: Literal["down", "move", "up", "click"]
    key: Optional[str] = Field(default=None, description="Photo under the pointer (down/click)")
    x: float = 0.0
    y: float = 0.0


class CreateWallRequest(BaseModel):
    viewport_width: Optional[float] = Field(default=None, gt=0)
    viewport_height: Optional[float] = Field(default=None, gt=0)
    photos: List[PhotoPayload] = Field(default_factory=list, description="Existing photos, oldest first")
    seed: Optional[int] = Field(default=None, description="Seed for reproducible cell and jitter draws")


class ResizeRequest(BaseModel):
    viewport_width: float = Field(..., gt=0)
    viewport_height: float = Field(..., gt=0)


class ExportRequest(BaseModel):
    quality: str = Field(default="standard", description="standard|high|ultra")
    format: str = Field(default="png", description="png or jpeg")
