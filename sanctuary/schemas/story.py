"""
Story vocabulary shared by the wizard, the prompts and the emails.

Step keys are ints in memory and strings on the wire / in JSON columns;
``normalize_content`` is the one place that converts between the two.
"""
from __future__ import annotations

import enum
from dataclasses import dataclass
from typing import Dict, List, Mapping


class Bucket(str, enum.Enum):
    PERSONAL = "personal"
    BUSINESS = "business"
    INDUSTRY = "industry"

    @classmethod
    def parse(cls, value: str) -> "Bucket":
        """Accept the enum values plus the legacy ``emotional`` alias."""
        value = (value or "").strip().lower()
        if value == "emotional":
            return cls.INDUSTRY
        return cls(value)


class StoryStatus(str, enum.Enum):
    DRAFT = "draft"
    LOCKED = "locked"


@dataclass(frozen=True)
class StepConfig:
    number: int
    title: str
    prompt: str
    placeholder: str


STORY_STEPS: List[StepConfig] = [
    StepConfig(1, "THE MOMENT", "describe a specific moment that changed everything. not a period of time. one moment.", "i was standing in..."),
    StepConfig(2, "THE CONTEXT", "what was happening in your life before this moment? paint the scene.", "at that time in my life..."),
    StepConfig(3, "WHAT HAPPENED", "what exactly happened? facts only. no interpretation yet.", "then..."),
    StepConfig(4, "THE FEELING", "what did you feel in your body? not what you thought. what you felt.", "my chest felt..."),
    StepConfig(5, "THE THOUGHT", "what was the first thought that entered your mind?", "i remember thinking..."),
    StepConfig(6, "THE ACTION", "what did you do next? not what you should have done. what you did.", "so i..."),
    StepConfig(7, "THE CONSEQUENCE", "what happened as a result of that action?", "which led to..."),
    StepConfig(8, "THE REALIZATION", "what did you learn that you didn't know before?", "i realized that..."),
    StepConfig(9, "THE COST", "what did this cost you? time, money, relationships, identity?", "it cost me..."),
    StepConfig(10, "THE GIFT", "what unexpected gift came from this experience?", "but it gave me..."),
    StepConfig(11, "THE TRUTH", "if you could tell your past self one thing, what would it be?", "i would say..."),
    StepConfig(12, "THE MESSAGE", "what does this story mean for someone else going through the same thing?", "if you're experiencing this..."),
]

STEP_TITLES: Dict[int, str] = {s.number: s.title for s in STORY_STEPS}


def step_title(step: int) -> str:
    return STEP_TITLES.get(step, f"STEP {step}")


def normalize_content(raw: Mapping) -> Dict[int, str]:
    """Convert ``{"1": "...", 2: "..."}`` into ``{1: "...", 2: "..."}``.

    Raises ``ValueError`` for keys that are not step numbers or values that
    are not strings.
    """
    content: Dict[int, str] = {}
    for key, text in raw.items():
        try:
            step = int(key)
        except (TypeError, ValueError):
            raise ValueError(f"Invalid step key: {key!r}")
        if not isinstance(text, str):
            raise ValueError(f"Step {step} content must be a string")
        content[step] = text
    return content


def serialize_content(content: Mapping[int, str]) -> Dict[str, str]:
    return {str(step): text for step, text in sorted(content.items())}


def format_narrative(content: Mapping[int, str]) -> str:
    """Join steps in ascending numeric order as ``Step N: text`` paragraphs."""
    return "\n\n".join(
        f"Step {step}: {text}" for step, text in sorted(content.items())
    )
