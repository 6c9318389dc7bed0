"""
Renders an analysis record as the standardized one-line SITREP.
"""

import re

from intelsuite.data.schemas import AnalysisRecord

# Detail markers that rewrite the target segment instead of being printed
ALLEGED_MARKER = "alleged"
HIDEOUT_MARKER = "HO"

_WHITESPACE = re.compile(r"\s+")
_SPACE_BEFORE_SEPARATOR = re.compile(r" ([,;])")
_AT_PLACE_CODE = re.compile(r"\bat\s+(?!en-route\b)([^,;.]+?)\s*,?\s*([A-Z]{3})\b")


def _target_segment(analysis: AnalysisRecord) -> str:
    if not analysis.target:
        return ""
    target = f"on {analysis.target}"
    if ALLEGED_MARKER in analysis.details:
        target = f"on alleged {analysis.target}"
    if analysis.target == "CTD" and HIDEOUT_MARKER in analysis.details:
        target = "on CTD HO"
    if analysis.target == "LEAs" and "police station" in target:
        target = target.replace("police station", "PS")
    return target


def assemble_report(analysis: AnalysisRecord) -> str:
    """
    Build ``who action target location details; casualties. source [Notes]``.

    Pure function of the record: assembling the same record twice gives the
    same string.
    """
    target = _target_segment(analysis)
    location = f"at {analysis.location}" if analysis.location else ""

    details = ""
    printable = [d for d in analysis.details if d not in (ALLEGED_MARKER, HIDEOUT_MARKER)]
    if printable:
        details = ", " + ", ".join(printable)

    casualties = ""
    if analysis.casualties:
        casualties = "; " + ", ".join(analysis.casualties)

    source = f". {analysis.source}" if analysis.source else "."
    notes = f" [Notes: {analysis.notes}]" if analysis.notes else ""

    report = f"{analysis.who} {analysis.action} {target} {location}{details}{casualties}{source}{notes}"

    report = _WHITESPACE.sub(" ", report)
    report = _SPACE_BEFORE_SEPARATOR.sub(r"\1", report)
    report = report.replace(" .", ".", 1)
    report = _AT_PLACE_CODE.sub(r"at \1, \2", report)
    return report.strip()
