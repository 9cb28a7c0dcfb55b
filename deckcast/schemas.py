from __future__ import annotations

from pydantic import BaseModel, Field, field_validator

from .models import Presentation, Slide, SlideRole, VoiceGender, apply_voice_to_all

ALLOWED_LANGUAGES = {"en", "ar"}
ALLOWED_LAYOUTS = {"text_left", "image_left", "image_top", "image_bottom"}


class SlidePayload(BaseModel):
    id: str | int
    slide_number: int = Field(..., alias="slideNumber", ge=0)
    role: SlideRole = SlideRole.CONTENT
    title: str = ""
    subtitle: str | None = None
    bullets: list[str] = Field(default_factory=list)
    background: str | None = Field(None, alias="slideBg")
    image_url: str | None = Field(None, alias="imageUrl")
    voice_gender: VoiceGender = Field(VoiceGender.MALE, alias="voiceGender")
    layout_variant: str = Field("text_left", alias="layoutVariant")

    model_config = {"populate_by_name": True}

    @field_validator("voice_gender", mode="before")
    @classmethod
    def _coerce_voice(cls, value):
        return VoiceGender.coerce(value)

    @field_validator("layout_variant", mode="before")
    @classmethod
    def _coerce_layout(cls, value):
        normalized = (value or "").strip().lower()
        return normalized if normalized in ALLOWED_LAYOUTS else "text_left"

    def to_slide(self) -> Slide:
        return Slide(
            id=str(self.id),
            slide_number=self.slide_number,
            role=self.role,
            title=self.title or "",
            subtitle=self.subtitle or "",
            bullets=tuple(self.bullets),
            background=(self.background or "").strip() or None,
            image_url=(self.image_url or "").strip() or None,
            voice_gender=self.voice_gender,
            layout_variant=self.layout_variant,
        )


class ExportRequest(BaseModel):
    subject: str = ""
    language: str = "en"
    theme: str | None = None
    slides: list[SlidePayload] = Field(..., min_length=1)
    apply_voice_to_all: VoiceGender | None = Field(None, alias="applyVoiceToAll")

    model_config = {"populate_by_name": True}

    @field_validator("language", mode="before")
    @classmethod
    def _normalize_language(cls, value):
        normalized = (value or "en").strip().lower()
        if normalized.startswith("ar"):
            return "ar"
        return "en" if normalized not in ALLOWED_LANGUAGES else normalized

    def to_presentation(self, default_theme: str = "professional") -> Presentation:
        slides = [payload.to_slide() for payload in self.slides]
        if self.apply_voice_to_all is not None:
            slides = apply_voice_to_all(slides, self.apply_voice_to_all)
        return Presentation(
            subject=self.subject.strip(),
            slides=tuple(slides),
            language=self.language,
            theme=(self.theme or default_theme).strip().lower(),
        )


class NarrationPreviewRequest(BaseModel):
    text: str = Field(..., min_length=1)
    language: str = "en"
    gender: VoiceGender = VoiceGender.MALE

    @field_validator("text", mode="before")
    @classmethod
    def _strip_text(cls, value):
        return (value or "").strip()

    @field_validator("gender", mode="before")
    @classmethod
    def _coerce_gender(cls, value):
        return VoiceGender.coerce(value)


__all__ = ["SlidePayload", "ExportRequest", "NarrationPreviewRequest"]
