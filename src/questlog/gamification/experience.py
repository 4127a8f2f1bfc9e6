"""Experience awards and level computation.

Levels are 100 XP wide and are always derived from cumulative experience,
never incremented on their own.
"""

from __future__ import annotations

XP_PER_LEVEL = 100
DEFAULT_DIFFICULTY = "medium"
DEFAULT_AWARD = 10

DIFFICULTY_AWARDS: dict[str, int] = {
    "easy": 5,
    "medium": 10,
    "hard": 20,
    "epic": 50,
}


def award_for_difficulty(difficulty: str | None) -> int:
    """XP awarded for completing a task of the given difficulty.

    Unknown or missing difficulties award the default.
    """
    if difficulty is None:
        return DEFAULT_AWARD
    return DIFFICULTY_AWARDS.get(difficulty, DEFAULT_AWARD)


def normalize_difficulty(difficulty: str | None) -> str:
    """Map anything outside the closed set to the default tier."""
    if difficulty in DIFFICULTY_AWARDS:
        return difficulty  # type: ignore[return-value]
    return DEFAULT_DIFFICULTY


def compute_level(experience: int) -> int:
    """Level for a cumulative experience total."""
    return experience // XP_PER_LEVEL + 1


def experience_to_next_level(experience: int) -> int:
    """XP still needed to reach the next level.

    At an exact boundary (including 0) this is the full band width, not 0.
    """
    return XP_PER_LEVEL - experience % XP_PER_LEVEL


def level_progress(experience: int) -> dict:
    """Level info for display."""
    return {
        "level": compute_level(experience),
        "xp_into_level": experience % XP_PER_LEVEL,
        "xp_for_level": XP_PER_LEVEL,
        "xp_to_next_level": experience_to_next_level(experience),
    }


def is_level_up(old_experience: int, new_experience: int) -> bool:
    """True when the two totals fall in different level bands."""
    return compute_level(new_experience) > compute_level(old_experience)
