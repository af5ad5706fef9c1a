"""
Rate Calculator - pure functions over the session configuration.

Nothing here touches the database; the booking service calls these to price a
booking and to check that the chosen studio can host the session.
"""

import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Tuple

from ...errors import RateNotFoundError, ValidationError
from ...models import Studio
from .rate_card import (
    ALLOWED_STUDIOS,
    BAND_ITEM_LABELS,
    BAND_ITEM_ORDER,
    OPTION_LABELS,
    STUDIO_RATES,
)
from .schemas import (
    BandConfig,
    DrumPracticeConfig,
    KaraokeConfig,
    LiveConfig,
    RecordingConfig,
    SessionConfig,
    StudioSuggestion,
)

logger = logging.getLogger(__name__)

FULL_BAND = frozenset({"drum", "amps", "guitars", "keyboard"})
DRUM_GUITARS_AMPS = frozenset({"drum", "amps", "guitars"})
DRUM_AMPS = frozenset({"drum", "amps"})

# Smallest room first
STUDIO_SIZE_ORDER = (Studio.C, Studio.B, Studio.A)


def option_key(config: SessionConfig) -> str:
    """Normalize a session configuration to its rate-card option key"""
    if isinstance(config, KaraokeConfig):
        return config.karaoke_option
    if isinstance(config, LiveConfig):
        return config.live_option
    if isinstance(config, DrumPracticeConfig):
        return "drum_practice"
    if isinstance(config, BandConfig):
        if config.band_equipment == FULL_BAND:
            return "full_stack"
        if config.band_equipment >= DRUM_GUITARS_AMPS:
            return "drum_guitars_amps"
        if config.band_equipment >= DRUM_AMPS:
            return "drum_amps"
        if "drum" in config.band_equipment:
            return "drum_only"
        # No drum kit: priced on the drum + amps tier in the larger rooms
        return "other"
    if isinstance(config, RecordingConfig):
        return config.recording_option
    raise ValidationError(f"Unsupported session configuration: {config!r}", field="session_type")


def allowed_studios(config: SessionConfig) -> Tuple[Studio, ...]:
    """Studios that can host this configuration, smallest first"""
    key = (config.session_type, option_key(config))
    studios = ALLOWED_STUDIOS.get(key)
    if not studios:
        raise ValidationError(f"No studio can host {key[0]} ({key[1]})", field="session_options")
    return tuple(s for s in STUDIO_SIZE_ORDER if s in studios)


def suggest_studio(config: SessionConfig) -> StudioSuggestion:
    """Recommend the smallest studio that can host the session"""
    studios = allowed_studios(config)
    recommended = studios[0]

    if len(studios) == 1:
        explanation = f"{describe(config)} needs {recommended.value}"
    else:
        names = ", ".join(s.value for s in studios)
        explanation = f"{recommended.value} is the best fit for {describe(config)} (also fits: {names})"

    return StudioSuggestion(
        recommended_studio=recommended,
        allowed_studios=list(studios),
        explanation=explanation,
    )


def get_rate(studio: Studio, config: SessionConfig) -> Decimal:
    """
    Look up the hourly rate for a studio and session configuration.

    Raises:
        RateNotFoundError: The rate card has no entry for this pair.
    """
    key = (Studio(studio), config.session_type, option_key(config))
    rate = STUDIO_RATES.get(key)
    if rate is None:
        logger.error(f"❌ Rate card has no entry for {key}")
        raise RateNotFoundError(
            f"No rate configured for {key[0].value} / {key[1]} / {key[2]}",
            details={"studio": key[0].value, "session_type": key[1], "option": key[2]},
        )
    return rate


def describe(config: SessionConfig) -> str:
    """Human-readable sub-option summary stored as session_details"""
    if isinstance(config, DrumPracticeConfig):
        return "Drum practice session"
    if isinstance(config, BandConfig):
        items = [BAND_ITEM_LABELS[i] for i in BAND_ITEM_ORDER if i in config.band_equipment]
        return f"Band with {', '.join(items)}"
    return f"{config.session_type} - {OPTION_LABELS[option_key(config)]}"


def compute_total(rate_per_hour: Decimal, duration_hours: Decimal) -> Decimal:
    """rate x hours, rounded to a whole currency unit"""
    total = Decimal(rate_per_hour) * Decimal(duration_hours)
    return total.quantize(Decimal("1"), rounding=ROUND_HALF_UP)
