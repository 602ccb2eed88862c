"""Scene block parser for production-script responses.

Turns the free-text output of the vision model into Scene records. The model
is asked to follow a small line-oriented format:

    Scene 1: <title>
    Panels: 1, 2
    Duration: 15 sec
    Voice:
    "<narration>"
    ---

followed by a ``[SUMMARY]...[/SUMMARY]`` continuity tag. None of this is
guaranteed, so parsing is total: every field has a fallback and no input
raises.
"""

import logging
import re
from dataclasses import dataclass, field
from typing import List, Tuple

from src.schemas.scene import Scene


logger = logging.getLogger(__name__)


DEFAULT_CONTEXT_UPDATE = "Continuing the story…"
DEFAULT_PAGES_LABEL = "Active Panels"
DEFAULT_DURATION_LABEL = "15 sec"

SUMMARY_PATTERN = re.compile(r'\[SUMMARY\](.*?)\[/SUMMARY\]', re.DOTALL)
BLOCK_DELIMITER = re.compile(r'^[ \t]*-{3,}[ \t]*$', re.MULTILINE)
TITLE_PATTERN = re.compile(r'Scene\s*\d+\s*:\s*(.*)')
PANELS_PATTERN = re.compile(r'Panels\s*:\s*(.*)')
DURATION_PATTERN = re.compile(r'Duration\s*:\s*(.*)')
VOICE_PREFIX = 'voice:'
INTEGER_TOKEN = re.compile(r'\d+')


@dataclass
class ParsedBatch:
    """Result of parsing one batch response.

    Attributes:
        scenes: Parsed scenes with ids starting at the requested first id
        context_update: Story context to carry into the next batch
        summary_found: Whether the response contained a summary tag
    """
    scenes: List[Scene] = field(default_factory=list)
    context_update: str = DEFAULT_CONTEXT_UPDATE
    summary_found: bool = False


def extract_summary(text: str) -> Tuple[str, str, bool]:
    """Pull the continuity summary out of a response.

    Args:
        text: Raw model response

    Returns:
        Tuple of (context update, text with every tagged region removed,
        whether a non-empty summary was found)
    """
    match = SUMMARY_PATTERN.search(text)
    remaining = SUMMARY_PATTERN.sub('', text)

    if match is None:
        return DEFAULT_CONTEXT_UPDATE, remaining, False

    summary = match.group(1).strip()
    if not summary:
        return DEFAULT_CONTEXT_UPDATE, remaining, False
    return summary, remaining, True


def split_blocks(text: str) -> List[str]:
    """Split on ``---`` delimiter lines, dropping blank blocks."""
    return [block.strip() for block in BLOCK_DELIMITER.split(text) if block.strip()]


def parse_panel_numbers(panels_text: str) -> List[int]:
    """Convert 1-based panel numbers in free text to 0-based indices.

    Non-numeric tokens are ignored, as is panel number 0, which has no
    0-based counterpart.
    """
    indices: List[int] = []
    for token in INTEGER_TOKEN.findall(panels_text):
        number = int(token)
        if number >= 1:
            indices.append(number - 1)
    return indices


def _match_line(lines: List[str], position: int, pattern: re.Pattern) -> str:
    """Return the captured group of ``pattern`` on a given line, or ''."""
    if position >= len(lines):
        return ''
    match = pattern.search(lines[position])
    if not match:
        return ''
    return match.group(1).strip()


def _extract_voice_over(lines: List[str]) -> str:
    """Return the narration after the first ``Voice:`` line, or ''.

    Text on the ``Voice:`` line itself is kept as the first narration line.
    Surrounding double quotes are stripped.
    """
    for position, line in enumerate(lines):
        stripped = line.strip()
        if stripped.lower().startswith(VOICE_PREFIX):
            inline = stripped[len(VOICE_PREFIX):].strip()
            body = [inline] if inline else []
            body.extend(lines[position + 1:])
            return '\n'.join(body).strip().strip('"').strip()
    return ''


def fallback_title(scene_id: int) -> str:
    return f"Production Beat {scene_id}"


def parse_scene_block(block: str, scene_id: int) -> Scene:
    """Parse a single ``---``-delimited block into a Scene.

    Args:
        block: Block text (already trimmed)
        scene_id: Identifier to assign to the scene

    Returns:
        Scene with fallbacks applied to any field that could not be read
    """
    lines = block.split('\n')

    title = _match_line(lines, 0, TITLE_PATTERN).strip('*').strip()
    panels_text = _match_line(lines, 1, PANELS_PATTERN)
    duration = _match_line(lines, 2, DURATION_PATTERN)

    return Scene(
        id=scene_id,
        title=title or fallback_title(scene_id),
        pages_label=f"Panels {panels_text}" if panels_text else DEFAULT_PAGES_LABEL,
        panel_indices=parse_panel_numbers(panels_text),
        duration_label=duration or DEFAULT_DURATION_LABEL,
        voice_over=_extract_voice_over(lines),
    )


def parse_production_script(text: str, first_id: int = 1) -> ParsedBatch:
    """Parse a full batch response.

    Panel numbers are only converted from 1-based to 0-based here; mapping
    them into the global page sequence is the orchestrator's job.

    Args:
        text: Raw model response (may be empty)
        first_id: Identifier for the first scene of the batch

    Returns:
        ParsedBatch with scenes and the context update
    """
    text = (text or '').replace('\r\n', '\n').replace('\r', '\n')
    context_update, remaining, summary_found = extract_summary(text)

    scenes = [
        parse_scene_block(block, first_id + position)
        for position, block in enumerate(split_blocks(remaining))
    ]

    if not scenes:
        logger.warning("Model response contained no scene blocks")
    if not summary_found:
        logger.debug("No summary tag found; using default context update")

    return ParsedBatch(scenes=scenes, context_update=context_update, summary_found=summary_found)
