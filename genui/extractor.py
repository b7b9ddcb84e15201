"""
Code Extractor - recover a single component unit from raw engine output.

Strategies are tried in order and the first one that yields code wins:

1. the whole reply is a [[CODE]]...[[/CODE]] pair
2. a marker pair surrounded by prose
3. an unclosed [[CODE]] marker followed by the anchor
4. a fenced code block containing the anchor
5. a `def GeneratedComponent():` block that returns something
6. any capitalized zero-argument def that returns, renamed to the anchor

Extraction never raises; total failure yields an empty string.
"""

import logging
import re
from typing import List, Optional, Tuple

from genui.sandbox.catalog import ANCHOR_NAME
from genui.schemas import CodeArtifact

logger = logging.getLogger(__name__)


OPEN_MARKER = "[[CODE]]"
CLOSE_MARKER = "[[/CODE]]"

_WHOLE_PAIR = re.compile(r"^\s*\[\[CODE\]\](.*?)\[\[/CODE\]\]\s*$", re.IGNORECASE | re.DOTALL)
_ANY_PAIR = re.compile(r"\[\[CODE\]\](.*?)\[\[/CODE\]\]", re.IGNORECASE | re.DOTALL)
_UNCLOSED = re.compile(r"\[\[CODE\]\](.+)", re.IGNORECASE | re.DOTALL)
_FENCED_PATTERNS = (
    re.compile(r"```(?:python|py|python3)[ \t]*\n(.*?)```", re.IGNORECASE | re.DOTALL),
    re.compile(r"```[ \t]*\n(.*?)```", re.DOTALL),
    re.compile(r"```(.*?)```", re.DOTALL),
)
_SINGLE_FENCE = re.compile(r"^```[\w+-]*[ \t]*\n(.*?)\n?```$", re.DOTALL)
_ANCHOR_DEF = re.compile(rf"^[ \t]*def[ \t]+{ANCHOR_NAME}[ \t]*\([ \t]*\)[ \t]*(?:->[^:\n]+)?:", re.MULTILINE)
_CAPITALIZED_DEF = re.compile(r"^[ \t]*def[ \t]+([A-Z]\w*)[ \t]*\([ \t]*\)[ \t]*(?:->[^:\n]+)?:", re.MULTILINE)
_RETURN_VALUE = re.compile(r"^[ \t]+return\b[ \t]*[^\s#]", re.MULTILINE)


def _unwrap_fence(text: str) -> str:
    """Strip a single fenced block wrapped inside the markers."""
    match = _SINGLE_FENCE.match(text.strip())
    return match.group(1).strip() if match else text


def _strip_trailing_fence(text: str) -> str:
    text = text.strip()
    if text.endswith("```"):
        text = text[:-3].rstrip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else ""
    return text.strip()


def _def_block(text: str, start: int) -> str:
    """
    Take the def that begins at `start` plus its indented body.

    The body ends at the first non-blank line indented no deeper than the
    def line itself.
    """
    lines = text[start:].splitlines()
    if not lines:
        return ""
    header = lines[0]
    base_indent = len(header) - len(header.lstrip())
    block = [header[base_indent:]]
    for line in lines[1:]:
        if line.strip() == "":
            block.append("")
            continue
        indent = len(line) - len(line.lstrip())
        if indent <= base_indent:
            break
        block.append(line[base_indent:])
    return "\n".join(block).rstrip()


def _returning_blocks(text: str, pattern: re.Pattern) -> List[Tuple[str, str]]:
    """All (name, block) pairs for defs matched by `pattern` whose body returns a value."""
    blocks = []
    for match in pattern.finditer(text):
        block = _def_block(text, match.start())
        if _RETURN_VALUE.search(block):
            name = match.group(1) if pattern.groups else ANCHOR_NAME
            blocks.append((name, block))
    return blocks


# =============================================================================
# STRATEGIES
# =============================================================================

def _paired_markers(text: str) -> Optional[str]:
    match = _WHOLE_PAIR.match(text)
    # With several pairs the match runs from the first open to the last close
    if match and match.group(1).strip() and CLOSE_MARKER.lower() not in match.group(1).lower():
        return _unwrap_fence(match.group(1).strip())
    return None


def _markers_with_prose(text: str) -> Optional[str]:
    match = _ANY_PAIR.search(text)
    if match and match.group(1).strip():
        return _unwrap_fence(match.group(1).strip())
    return None


def _unclosed_marker(text: str) -> Optional[str]:
    match = _UNCLOSED.search(text)
    if match and ANCHOR_NAME in match.group(1):
        return _strip_trailing_fence(match.group(1)) or None
    return None


def _fenced_block(text: str) -> Optional[str]:
    for pattern in _FENCED_PATTERNS:
        for match in pattern.finditer(text):
            body = match.group(1).strip()
            if body and ANCHOR_NAME in body:
                return body
    return None


def _anchor_pattern(text: str) -> Optional[str]:
    blocks = _returning_blocks(text, _ANCHOR_DEF)
    if not blocks:
        return None
    # Longest match is most likely the complete definition
    return max((block for _, block in blocks), key=len)


def _renamed_declaration(text: str) -> Optional[str]:
    blocks = _returning_blocks(text, _CAPITALIZED_DEF)
    if not blocks:
        return None
    name, block = blocks[0]
    logger.warning("Renaming component %r to %s", name, ANCHOR_NAME)
    return re.sub(rf"^def[ \t]+{re.escape(name)}\b", f"def {ANCHOR_NAME}", block, count=1)


STRATEGIES = (
    ("paired_markers", _paired_markers),
    ("markers_with_prose", _markers_with_prose),
    ("unclosed_marker", _unclosed_marker),
    ("fenced_block", _fenced_block),
    ("anchor_pattern", _anchor_pattern),
    ("renamed_declaration", _renamed_declaration),
)


# =============================================================================
# PUBLIC API
# =============================================================================

def extract(raw_text: Optional[str]) -> CodeArtifact:
    """Run the extraction strategies in order and record which one succeeded."""
    text = raw_text or ""
    if not text.strip():
        logger.error("Extractor received empty text")
        return CodeArtifact(raw_text=text)

    for name, strategy in STRATEGIES:
        try:
            code = strategy(text)
        except (re.error, RecursionError) as e:
            logger.warning("Extraction strategy %s failed: %s", name, e)
            continue
        if code:
            logger.debug("Extracted %d chars using %s", len(code), name)
            return CodeArtifact(raw_text=text, extracted_code=code, extraction_strategy=name)

    logger.error("All extraction strategies failed (%s)", extraction_diagnostics(text))
    return CodeArtifact(raw_text=text)


def extract_code(raw_text: Optional[str]) -> str:
    """Extract the component source, or return an empty string."""
    return extract(raw_text).extracted_code or ""


def extraction_diagnostics(raw_text: Optional[str]) -> str:
    """Describe why extraction may have failed, for retry feedback."""
    text = raw_text or ""
    upper = text.upper()
    preview = text[:200].replace("\n", " ")
    return (
        f"Response length: {len(text)} chars. "
        f"Contains {OPEN_MARKER}: {OPEN_MARKER in upper}. "
        f"Contains {CLOSE_MARKER}: {CLOSE_MARKER in upper}. "
        f"Contains {ANCHOR_NAME}: {ANCHOR_NAME in text}. "
        f"Contains ```: {'```' in text}. "
        f"First 200 chars: {preview}"
    )
