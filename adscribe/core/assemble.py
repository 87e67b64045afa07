"""
Assemble diarized word tokens into speaker-labelled transcript lines.
"""

from itertools import groupby
from typing import Iterable

from adscribe.core.constants import TokenKind, UNKNOWN_SPEAKER
from adscribe.core.models import DiarizedToken


def _speaker_of(token: DiarizedToken) -> str:
    return token.speaker_id or UNKNOWN_SPEAKER


def assemble_lines(tokens: Iterable[DiarizedToken]) -> list[str]:
    """
    One line per maximal run of consecutive word tokens sharing a speaker.
    Non-speech events are skipped and never split a run.

    >>> assemble_lines([DiarizedToken("Hello", speaker_id="A"),
    ...                 DiarizedToken("there", speaker_id="A"),
    ...                 DiarizedToken("Hi", speaker_id="B")])
    ['A: Hello there', 'B: Hi']
    """
    spoken = (t for t in tokens if t.kind == TokenKind.WORD)
    return [
        f"{speaker}: {' '.join(t.text for t in run).strip()}"
        for speaker, run in groupby(spoken, key=_speaker_of)
    ]


def format_transcript(lines: list[str]) -> str:
    """Newline-terminated lines, the on-disk transcript format."""
    return ''.join(f"{line}\n" for line in lines)
