"""
Reasoning Steps - Split step-by-step model output into structured steps

Regex-based segmentation of the reasoning agent's answer so callers can
show the chain of reasoning alongside the final text
"""

import re
import logging
from typing import List

from src.models.orchestration import ReasoningStep

logger = logging.getLogger(__name__)

# "Step 2:" / "STEP 3 -" / "1." / "2)" / "## Heading" at the start of a line
STEP_MARKER = re.compile(
    r'^[ \t]*(?:'
    r'(?P<step>step[ \t]*\d+)[ \t]*[:.)\-]'
    r'|(?P<number>\d+)[.)](?=\s)'
    r'|#{1,6}[ \t]+(?P<heading>[^\n]+)$'
    r')',
    re.IGNORECASE | re.MULTILINE,
)

CONCLUSION_PATTERN = re.compile(
    r'\b(?:therefore|thus|in conclusion|to summarize|hence|so),?\s+.+$',
    re.IGNORECASE,
)

NO_CONCLUSION = "No specific conclusion"


def _header_for(match: re.Match) -> str:
    if match.group("step"):
        number = re.search(r'\d+', match.group("step")).group()
        return f"Step {number}"
    if match.group("number"):
        return f"Step {match.group('number')}"
    return match.group("heading").strip().rstrip('#').strip()


def find_conclusion(text: str) -> str:
    """
    Pick the concluding sentence of a section

    The last line opening a conclusion ("Therefore", "Thus", ...) wins;
    otherwise the last non-empty line is used.
    """
    lines = [line.strip() for line in text.splitlines() if line.strip()]
    if not lines:
        return NO_CONCLUSION

    for line in reversed(lines):
        match = CONCLUSION_PATTERN.search(line)
        if match:
            return match.group(0).strip()

    return lines[-1]


def parse_reasoning_steps(text: str) -> List[ReasoningStep]:
    """
    Parse reasoning text into structured steps

    Args:
        text: Model output, typically numbered steps or markdown sections

    Returns:
        One ReasoningStep per marker. Text without markers becomes a single
        step holding the raw text; empty text yields no steps.
    """
    if not text or not text.strip():
        return []

    matches = list(STEP_MARKER.finditer(text))
    if not matches:
        return [ReasoningStep(step="Step 1", reasoning=text.strip(), conclusion=find_conclusion(text))]

    steps: List[ReasoningStep] = []

    preamble = text[:matches[0].start()].strip()
    if preamble:
        steps.append(ReasoningStep(step="Overview", reasoning=preamble, conclusion=find_conclusion(preamble)))

    for index, match in enumerate(matches):
        end = matches[index + 1].start() if index + 1 < len(matches) else len(text)
        content = text[match.end():end].strip()
        steps.append(ReasoningStep(
            step=_header_for(match),
            reasoning=content,
            conclusion=find_conclusion(content),
        ))

    logger.debug(f"Parsed {len(steps)} reasoning steps")
    return steps
