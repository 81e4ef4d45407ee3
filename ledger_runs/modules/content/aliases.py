from __future__ import annotations

import re

SCENE_ALIASES: dict[str, str] = {
    "2A": "2.1",
    "2B": "2.2",
    "2C": "2.3",
    "2D": "2.4",
    "2A-V": "2.1.v",
    "3A": "3.1",
    "3B": "3.2",
    "3C": "3.3",
    "3D": "3.4",
    "4.GOLDEN": "4.golden",
    "4.DARK": "4.dark",
    "CUSTODIAN": "boss.custodian",
    "GREMLIN_KING": "boss.gremlin_king",
    "ENDING_HERO": "ending.hero",
    "ENDING_VILLAIN": "ending.villain",
    "ENDING_NEUTRAL": "ending.neutral",
}

_ARROW_PREFIX = re.compile(r"^\s*(?:→|->)?\s*")
_SCENE_PREFIX = re.compile(r"^Scene\s*", re.IGNORECASE)


def normalize_scene_code(code: str | None) -> str:
    """Resolve a legacy or decorated scene code to its canonical scene id.

    Strips authoring decorations such as ``"→ Scene 2B"`` and maps symbolic
    codes through the closed alias table. Unknown codes pass through.
    """
    text = _ARROW_PREFIX.sub("", str(code or ""))
    text = _SCENE_PREFIX.sub("", text).strip()
    return SCENE_ALIASES.get(text, text)
