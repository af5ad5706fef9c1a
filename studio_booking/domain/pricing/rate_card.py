"""
Studio rate card and studio suitability table.

Both tables are keyed by (session_type, option_key) where option_key is the
normalized sub-option of a session configuration (see ``option_key`` in
service.py). Rates are per hour, in whole currency units. There are no
defaults: a studio without an entry cannot be priced for that configuration.
"""

from decimal import Decimal

from ...models import Studio

A, B, C = Studio.A, Studio.B, Studio.C

# (session_type, option_key) -> studios that can host it
ALLOWED_STUDIOS = {
    ("Karaoke", "upto_5"): (C, B, A),
    ("Karaoke", "10"): (B, A),
    ("Karaoke", "20"): (A,),
    ("Karaoke", "21_30"): (A,),
    ("Live with musicians", "upto_2"): (C, B, A),
    ("Live with musicians", "upto_4_or_5"): (B, A),
    ("Live with musicians", "upto_8"): (A,),
    ("Live with musicians", "9_12"): (A,),
    ("Only Drum Practice", "drum_practice"): (A,),
    ("Band", "full_stack"): (A,),
    ("Band", "drum_guitars_amps"): (B, A),
    ("Band", "drum_amps"): (C, B, A),
    ("Band", "drum_only"): (C, B, A),
    ("Band", "other"): (B, A),
    ("Recording", "audio_recording"): (A,),
    ("Recording", "video_recording"): (A,),
    ("Recording", "chroma_key"): (A,),
    ("Recording", "sd_card_recording"): (A,),
}

# (studio, session_type, option_key) -> hourly rate
STUDIO_RATES = {
    # Karaoke: 21-30 people needs the large karaoke setup
    (A, "Karaoke", "upto_5"): Decimal("400"),
    (A, "Karaoke", "10"): Decimal("400"),
    (A, "Karaoke", "20"): Decimal("400"),
    (A, "Karaoke", "21_30"): Decimal("500"),
    (B, "Karaoke", "upto_5"): Decimal("300"),
    (B, "Karaoke", "10"): Decimal("300"),
    (C, "Karaoke", "upto_5"): Decimal("250"),
    # Live with musicians
    (A, "Live with musicians", "upto_2"): Decimal("600"),
    (A, "Live with musicians", "upto_4_or_5"): Decimal("600"),
    (A, "Live with musicians", "upto_8"): Decimal("600"),
    (A, "Live with musicians", "9_12"): Decimal("800"),
    (B, "Live with musicians", "upto_2"): Decimal("400"),
    (B, "Live with musicians", "upto_4_or_5"): Decimal("500"),
    (C, "Live with musicians", "upto_2"): Decimal("350"),
    # Drum practice
    (A, "Only Drum Practice", "drum_practice"): Decimal("350"),
    # Band
    (A, "Band", "full_stack"): Decimal("600"),
    (A, "Band", "drum_guitars_amps"): Decimal("600"),
    (A, "Band", "drum_amps"): Decimal("500"),
    (A, "Band", "drum_only"): Decimal("400"),
    (A, "Band", "other"): Decimal("500"),
    (B, "Band", "drum_guitars_amps"): Decimal("450"),
    (B, "Band", "drum_amps"): Decimal("400"),
    (B, "Band", "drum_only"): Decimal("350"),
    (B, "Band", "other"): Decimal("400"),
    (C, "Band", "drum_amps"): Decimal("350"),
    (C, "Band", "drum_only"): Decimal("300"),
    # Recording
    (A, "Recording", "audio_recording"): Decimal("700"),
    (A, "Recording", "video_recording"): Decimal("800"),
    (A, "Recording", "chroma_key"): Decimal("1200"),
    (A, "Recording", "sd_card_recording"): Decimal("100"),
}

OPTION_LABELS = {
    "upto_5": "Up to 5 people",
    "10": "Up to 10 people",
    "20": "Up to 20 people",
    "21_30": "21-30 people",
    "upto_2": "Up to 2 musicians",
    "upto_4_or_5": "4-5 musicians",
    "upto_8": "Up to 8 musicians",
    "9_12": "9-12 musicians",
    "audio_recording": "Audio Recording",
    "video_recording": "Video Recording",
    "chroma_key": "Chroma Key",
    "sd_card_recording": "SD Card Recording",
}

BAND_ITEM_ORDER = ("drum", "guitars", "amps", "keyboard")
BAND_ITEM_LABELS = {"drum": "Drum", "guitars": "Guitars", "amps": "Amps", "keyboard": "Keyboard"}
