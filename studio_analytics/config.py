"""
Configuration management for the session analytics engine.

Loads environment variables and validates required settings.
"""

import os
from dotenv import load_dotenv
from typing import Dict, List, Tuple

# Load environment variables from .env file
load_dotenv()


def _env_list(name: str, default: List[str]) -> List[str]:
    """Read a comma-separated list from the environment."""
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return list(default)
    return [item.strip() for item in raw.split(",") if item.strip()]


def _env_weights(name: str, default: Dict[str, float]) -> Dict[str, float]:
    """Read composite weights as "attendance=0.4,fill_rate=0.35,sessions=0.25"."""
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return dict(default)
    weights = dict(default)
    for part in raw.split(","):
        if "=" not in part:
            continue
        key, value = part.split("=", 1)
        key = key.strip()
        if key in weights:
            weights[key] = float(value)
    return weights


class Config:
    """Configuration class for the session analytics engine."""

    # Supabase credentials (required only for remote loading)
    SUPABASE_URL: str = os.getenv("SUPABASE_URL", "")
    SUPABASE_SERVICE_ROLE_KEY: str = os.getenv("SUPABASE_SERVICE_ROLE_KEY", "")

    # Remote tables
    SESSIONS_TABLE: str = os.getenv("SESSIONS_TABLE", "class_sessions")
    SCHEDULE_TABLE: str = os.getenv("SCHEDULE_TABLE", "active_schedule")

    # Hosted / one-off events, matched case-insensitively against session and class names
    HOSTED_CLASS_KEYWORDS: List[str] = _env_list(
        "HOSTED_CLASS_KEYWORDS",
        [
            "hosted", "bridal", "lrs", "x p57", "rugby", "wework", "olympics",
            "birthday", "host", "raheja", "pop", "workshop", "community",
            "physique", "soundrise", "outdoor", "p57 x",
        ],
    )

    # Class name canonicalisation: first matching pattern wins, "Express" is kept as a suffix
    CLASS_NAME_PATTERNS: List[Tuple[str, str]] = [
        (r"barre 57|barre57", "Studio Barre 57"),
        (r"mat", "Studio Mat 57"),
        (r"trainer|trainer's", "Studio Trainer's Choice"),
        (r"cardio barre|studio cardio", "Studio Cardio Barre"),
        (r"back body", "Studio Back Body Blaze"),
        (r"fit", "Studio FIT"),
        (r"powercycle", "Studio powerCycle"),
        (r"amped", "Studio Amped Up!"),
        (r"sweat", "Studio SWEAT In 30"),
        (r"foundation", "Studio Foundations"),
        (r"recovery", "Studio Recovery"),
        (r"pre/post", "Studio Pre/Post Natal"),
        (r"hiit", "Studio HIIT"),
    ]

    # Composite ranking score
    COMPOSITE_WEIGHTS: Dict[str, float] = _env_weights(
        "COMPOSITE_WEIGHTS",
        {"attendance": 0.40, "fill_rate": 0.35, "sessions": 0.25},
    )
    COMPOSITE_ATTENDANCE_SCALE: float = 5.0  # 20 check-ins per class scores 100
    COMPOSITE_SESSION_SCALE: float = 2.0  # 50 sessions scores 100

    # Status classification
    ACTIVE_FALLBACK_DAYS: int = int(os.getenv("ACTIVE_FALLBACK_DAYS", "30"))

    # Grouping
    GROUP_KEY_SEPARATOR: str = "|"
    MULTIPLE_VALUES_LABEL: str = "Multiple Values"

    # Orchestrator
    WATCHDOG_SECONDS: float = float(os.getenv("WATCHDOG_SECONDS", "30"))
    AUTO_ADJUST_DATE_RANGE: bool = os.getenv("AUTO_ADJUST_DATE_RANGE", "true").lower() in ("1", "true", "yes")

    @classmethod
    def validate(cls) -> None:
        """
        Validate that all configuration required for remote loading is present.

        Raises:
            ValueError: If required configuration is missing.
        """
        missing = []

        if not cls.SUPABASE_URL:
            missing.append("SUPABASE_URL")
        if not cls.SUPABASE_SERVICE_ROLE_KEY:
            missing.append("SUPABASE_SERVICE_ROLE_KEY")

        if missing:
            raise ValueError(
                f"Missing required environment variables: {', '.join(missing)}. "
                f"Please create a .env file with these values (see .env.example)."
            )
