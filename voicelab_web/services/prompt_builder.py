from __future__ import annotations

from typing import Tuple

SYSTEM_INSTRUCTION = (
    "You are a QA Lead for Character Voice Production.\n"
    "\n"
    "ROLE:\n"
    "You will receive two audio files.\n"
    'File A is the "IN-GAME REFERENCE". It represents the proven, production-ready voice used in the game.\n'
    'File B is a "NEW TTS GENERATION".\n'
    "\n"
    "YOUR JOB:\n"
    "Compare B *against* A.\n"
    "Do not critique A. A is the law. A is the target.\n"
    "Critique B based ONLY on how well it reproduces the qualities of A.\n"
    "\n"
    "STRICT FAIL CONDITIONS (Automatic Low Score):\n"
    "- If B stresses words differently than A: PENALIZE.\n"
    '- If B has robotic "micro-pauses" that A does not have: PENALIZE.\n'
    "- If B sounds older/younger or more synthetic than A: PENALIZE.\n"
    "- If B is breathless or rushed compared to A: PENALIZE.\n"
)

RESULT_SCHEMA = (
    "{\n"
    '  "similarity_score": number (0-100),\n'
    '  "quality_grade": "S" | "A" | "B" | "C" | "F",\n'
    '  "verdict_summary": "string (1 sentence verdict)",\n'
    '  "comparison_points": {\n'
    '     "intonation_match": "string (comment on pitch curve)",\n'
    '     "pacing_match": "string (comment on pauses/speed)",\n'
    '     "timbre_match": "string (comment on voice age/texture)"\n'
    "  },\n"
    '  "flaws_detected_in_candidate": [\n'
    '     "string", "string"\n'
    "  ],\n"
    '  "is_improvement": boolean (only true if B is actually objectively clearer/better than A)\n'
    "}"
)

NO_SCRIPT = "No script provided"


def build_system_instruction() -> str:
    return SYSTEM_INSTRUCTION


def build_user_prompt(character_description: str, reference_script: str = "") -> str:
    character = (character_description or "").strip() or "Narrator"
    script = (reference_script or "").strip() or NO_SCRIPT

    return (
        "Context:\n"
        f"Character: {character}\n"
        f'Script: "{script}"\n'
        "\n"
        "Task:\n"
        "1. Listen to the In-Game Reference (A) to establish the baseline for pitch, speed, and emotion.\n"
        "2. Listen to the New TTS (B) and evaluate it against that baseline.\n"
        "3. List every specific moment where B fails to match A's quality.\n"
        "4. Respond with the JSON object below and nothing else: no markdown, no commentary.\n"
        "\n"
        "Output strictly valid JSON:\n"
        f"{RESULT_SCHEMA}\n"
    )


def build_prompts(character_description: str, reference_script: str = "") -> Tuple[str, str]:
    """Returns (system_instruction, user_prompt)."""
    return build_system_instruction(), build_user_prompt(character_description, reference_script)
