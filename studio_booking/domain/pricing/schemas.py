"""Pricing domain schemas - session configuration and rate quotes"""

from decimal import Decimal
from typing import Annotated, FrozenSet, List, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from ...models import Studio

KaraokeOption = Literal["upto_5", "10", "20", "21_30"]
LiveOption = Literal["upto_2", "upto_4_or_5", "upto_8", "9_12"]
BandItem = Literal["drum", "amps", "guitars", "keyboard"]
RecordingOption = Literal["audio_recording", "video_recording", "chroma_key", "sd_card_recording"]


class _SessionConfigBase(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class KaraokeConfig(_SessionConfigBase):
    session_type: Literal["Karaoke"] = "Karaoke"
    karaoke_option: KaraokeOption


class LiveConfig(_SessionConfigBase):
    session_type: Literal["Live with musicians"] = "Live with musicians"
    live_option: LiveOption


class DrumPracticeConfig(_SessionConfigBase):
    session_type: Literal["Only Drum Practice"] = "Only Drum Practice"


class BandConfig(_SessionConfigBase):
    session_type: Literal["Band"] = "Band"
    band_equipment: FrozenSet[BandItem] = Field(min_length=1)


class RecordingConfig(_SessionConfigBase):
    session_type: Literal["Recording"] = "Recording"
    recording_option: RecordingOption


SessionConfig = Annotated[
    Union[KaraokeConfig, LiveConfig, DrumPracticeConfig, BandConfig, RecordingConfig],
    Field(discriminator="session_type"),
]

session_config_adapter = TypeAdapter(SessionConfig)


class StudioSuggestion(BaseModel):
    recommended_studio: Studio
    allowed_studios: List[Studio]
    explanation: str


class QuoteRequest(BaseModel):
    """Price a session configuration in a studio for a duration"""

    studio: Studio
    session_options: SessionConfig
    duration_hours: Optional[Decimal] = Field(default=None, gt=0)


class QuoteResponse(BaseModel):
    studio: Studio
    session_type: str
    session_details: str
    rate_per_hour: Decimal
    duration_hours: Optional[Decimal] = None
    total_amount: Optional[Decimal] = None
    allowed_studios: List[Studio]
    recommended_studio: Studio
