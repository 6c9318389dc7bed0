"""
Report parser that converts shorthand field reports into a structured
analysis record and a standardized SITREP line.

Extraction runs as a fixed cascade, each step reading the lookup tables
and the fields set by the steps before it:
- Source (trailing @handle, social-media attribution)
- Who (militant group / unknown actor)
- Action (first matching action category)
- Target (special cases, then the target map, then normalisation)
- Location (corrections, code/area patterns, known place names)
- Casualties (personnel, equipment, generic casualty phrasing)
- Details (free-standing annotations)
"""

import logging
import re
from dataclasses import dataclass, field
from typing import Callable, Optional

from intelsuite.core.config import (
    CLAIMED_ACTION,
    DEFAULT_SOURCE,
    GENERIC_ACTOR_NOUNS,
    SOCIAL_MEDIA_FALLBACK_GROUP,
    UNKNOWN_ACTOR,
)
from intelsuite.data.schemas import AnalysisRecord, ConversionResult
from intelsuite.intel.report_assembler import assemble_report
from intelsuite.intel.tables import ConfigurationTables

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DetailRule:
    """Regex rule producing a detail fragment from its match."""

    pattern: re.Pattern
    label: Callable[[re.Match], str]


def _constant(text: str) -> Callable[[re.Match], str]:
    return lambda match: text


@dataclass(frozen=True)
class CasualtyRule:
    """Personnel casualty pattern. ``role`` is None when it must be inferred from the target."""

    pattern: re.Pattern
    role: Optional[str]
    outcome: str


@dataclass
class _CasualtyTally:
    """Insertion-ordered counts; a ``None`` count marks an uncounted fragment."""

    counts: dict = field(default_factory=dict)

    def add(self, category: str, quantity: Optional[int] = None) -> None:
        if quantity is None:
            self.counts.setdefault(category, None)
            return
        self.counts[category] = (self.counts.get(category) or 0) + quantity

    def fragments(self) -> list[str]:
        return [
            category if count is None else f"{count} x {category}"
            for category, count in self.counts.items()
        ]

    def __bool__(self) -> bool:
        return bool(self.counts)


_KILLED = r"(?:shot(?:\s+dead)?|sh|killed|dead|martyred)\b"
_INJURED = r"(?:inj|injured)\b"
# Bounded so a long digit run never reaches int()
_COUNT = r"(\d{1,6})"
_QTY = rf"\b{_COUNT}\s*x?\s*"


def _personnel(role_tokens: str, outcome: str) -> re.Pattern:
    return re.compile(rf"{_QTY}(?:{role_tokens})\b\s*{outcome}")


class ReportParser:
    """
    Converts free-text field reports into AnalysisRecord + SITREP string.
    Designed for the shorthand used in KP/Balochistan incident reporting.
    """

    HANDLE_PATTERN = re.compile(r"(@[A-Za-z0-9_]+)\s*$")
    CLAIMED_PATTERN = re.compile(r"claimed\s*", re.IGNORECASE)
    SOCIAL_MEDIA_PHRASES = ["sources report", "militant sources"]

    # Area rewrite helpers
    BAZAR_PATTERN = re.compile(r"\bbazar\b", re.IGNORECASE)
    AREA_QUALIFIER_PATTERN = re.compile(r"\s*\b(?:valley|area|tehsil|district)$", re.IGNORECASE)
    PLACE_PREFIX_PATTERN = re.compile(r"^(?:.*\b)?(?:at|in|near|of|on|from|to)(?:\s+|$)", re.IGNORECASE)

    CODE_AREA_PATTERN = re.compile(r"\b([A-Za-z]{3})-([\w\s]+)")
    # Place names are short; bounded spans keep matching linear on long reports
    PREPOSITION_AREA_PATTERN = re.compile(
        r"\b(?:at|in|near)\s+([\w\s]{1,60}?),\s*([A-Za-z]{3})\b", re.IGNORECASE
    )
    MOVEMENT_PATTERN = re.compile(
        r"\b(?:from|to)\s+[\w\s]{1,80}(?:\bto|,)\s+([\w\s]{1,80})", re.IGNORECASE
    )
    CLAUSE_BREAK_PATTERN = re.compile(r"[^\w\s,]")

    EXAGGERATED_CLAIM_PATTERN = re.compile(
        r"exaggerated claims?\s+of\s+(\d+)\s*x?\s*sldrs?\s+sh,?\s*(\d+)\s*x?\s*inj"
    )

    # Counted equipment, accumulated like personnel
    EQUIPMENT_COUNT_PATTERNS = [
        (re.compile(rf"\b{_COUNT}\s*x?\s*veh(?:icle)?s?\s*destr(?:oyed)?"), "vehs destr"),
        (re.compile(rf"\b{_COUNT}\s*x?\s*(?:truck|vehicle)s?\s*seized"), "veh seized"),
    ]
    EQUIPMENT_FLAG_PATTERNS = [
        (re.compile(r"qpt\s*destr"), "A/QC destr and seized"),
        (re.compile(r"\b(?:wpns?|weapons?)\s*seized"), "W&A seized"),
    ]

    CASUALTY_RULES = [
        CasualtyRule(re.compile(rf"{_QTY}(sfs?|sldrs?|sf\s*pers|security\s*forces?)?\s*{_KILLED}"), None, "sh"),
        CasualtyRule(re.compile(rf"{_QTY}(sfs?|sldrs?|sf\s*pers|security\s*forces?)?\s*{_INJURED}"), None, "inj"),
        CasualtyRule(_personnel(r"pc|police\s*constables?|constables?", _KILLED), "PC", "sh"),
        CasualtyRule(_personnel(r"pc|police\s*constables?|constables?", _INJURED), "PC", "inj"),
        CasualtyRule(_personnel(r"asi|assistant\s*sub[\s-]*inspectors?", _KILLED), "ASI", "sh"),
        CasualtyRule(_personnel(r"asi|assistant\s*sub[\s-]*inspectors?", _INJURED), "ASI", "inj"),
        CasualtyRule(_personnel(r"fc\s*pers|fc", _KILLED), "FC pers", "sh"),
        CasualtyRule(_personnel(r"fc\s*pers|fc", _INJURED), "FC pers", "inj"),
        CasualtyRule(_personnel(r"ctd\s*pers|ctd", _KILLED), "CTD pers", "sh"),
        CasualtyRule(_personnel(r"ctd\s*pers|ctd", _INJURED), "CTD pers", "inj"),
        CasualtyRule(_personnel(r"leas?\s*pers|police\s*pers|policem[ae]n", _KILLED), "LEAs pers", "sh"),
        CasualtyRule(_personnel(r"leas?\s*pers|police\s*pers|policem[ae]n", _INJURED), "LEAs pers", "inj"),
        CasualtyRule(_personnel(r"ts?|ks?|terrorists?|militants?", r"(?:shot(?:\s+dead)?|sh|killed|dead)\b"), "Ts", "killed"),
        CasualtyRule(_personnel(r"ts?|ks?|terrorists?|militants?", _INJURED), "Ts", "inj"),
    ]

    # Checked in order, only when nothing else was tallied
    GENERIC_CASUALTY_PHRASES = [
        (("cas reported", "cas rptd", "casualties reported"), "multiple cas reported"),
        (("poss cas", "possible casualties"), "multiple cas likely"),
        (("additional cas",), "additional cas likely"),
    ]

    DETAIL_RULES = [
        DetailRule(re.compile(r"\balleged\b"), _constant("alleged")),
        DetailRule(re.compile(r"as per ([\w\s]+?) intel\b"), lambda m: f"tgt as per {m.group(1).strip()} intel"),
        DetailRule(re.compile(r"(?:intense|heavy)\s*(?:exchange of )?fire"), _constant("intense EoF")),
        DetailRule(
            re.compile(r"search\s*(?:and clearance )?op(?:eration)?s?\s*(?:underway|conducted|launched)"),
            _constant("search op underway"),
        ),
        DetailRule(re.compile(r"area\s*(?:has been\s*)?(?:cordoned|sealed)"), _constant("area cordoned")),
        DetailRule(re.compile(r"attackers?\s*(?:managed to )?fled|fled the area"), _constant("attackers fled")),
        DetailRule(
            re.compile(r"\b(house|shop|school|building|vehicle)\s*(?:was\s*)?set\s*on\s*fire"),
            lambda m: f"{m.group(1)} set on fire",
        ),
        DetailRule(
            re.compile(r"abducted\s*(?:his\s*)?(\d+)\s*(?:nephews?|sons?|pers(?:ons)?|people|civilians|men)\b"),
            lambda m: f"{m.group(1)} pers abducted",
        ),
        DetailRule(re.compile(r"hideout"), _constant("HO")),
    ]

    # Target categories whose casualties inherit the role
    TARGET_ROLE_INFERENCE = [
        ("LEAs", "LEAs pers"),
        ("FC", "FC pers"),
        ("CTD", "CTD pers"),
    ]
    EXACT_TARGET_ROLES = {"PC": "PC", "ASI": "ASI"}

    def __init__(self, tables: Optional[ConfigurationTables] = None):
        self.tables = tables if tables is not None else ConfigurationTables()

    def convert(self, text: str) -> ConversionResult:
        """
        Run the extraction cascade over one report and assemble the SITREP.

        Never raises for any text input; worst case is a sparse record.
        """
        if not text or not text.strip():
            return ConversionResult(report="", analysis=AnalysisRecord())

        tables = self.tables.snapshot()
        original = text.strip()
        analysis = AnalysisRecord()

        is_claimed = "claimed" in original.lower()
        working = self.CLAIMED_PATTERN.sub("", original, count=1)

        self._extract_source(working, original, analysis, tables)
        working = self.HANDLE_PATTERN.sub("", working).strip()
        self._extract_who(original, analysis, tables)
        self._extract_action(working, analysis, tables, is_claimed)
        self._extract_target(working, analysis, tables)
        self._extract_location(working, analysis, tables)
        self._extract_casualties(original, analysis)
        self._extract_details(original, analysis)

        logger.debug(f"Parsed report: who={analysis.who} action={analysis.action} target={analysis.target}")

        return ConversionResult(report=assemble_report(analysis), analysis=analysis)

    def batch_convert(self, text: str) -> list[ConversionResult]:
        """Convert several reports pasted together, one per non-blank line."""
        lines = [line.strip() for line in text.splitlines() if line.strip()]
        return [self.convert(line) for line in lines]

    # --- Source ---

    def _extract_source(self, text: str, original: str, analysis: AnalysisRecord,
                        tables: ConfigurationTables) -> None:
        match = self.HANDLE_PATTERN.search(text)
        analysis.source = match.group(1) if match else DEFAULT_SOURCE

        lower = text.lower()
        if any(phrase in lower for phrase in self.SOCIAL_MEDIA_PHRASES):
            actor = self._resolve_actor(original, tables)
            group = actor if actor and actor != UNKNOWN_ACTOR else SOCIAL_MEDIA_FALLBACK_GROUP
            analysis.source = f"@{group} SM"

    # --- Who ---

    def _extract_who(self, text: str, analysis: AnalysisRecord,
                     tables: ConfigurationTables) -> None:
        actor = self._resolve_actor(text, tables)
        if actor:
            analysis.who = actor

    def _resolve_actor(self, text: str, tables: ConfigurationTables) -> Optional[str]:
        groups = [g for g in tables.militant_groups if g]
        if groups:
            alternation = "|".join(re.escape(g) for g in groups)
            match = re.match(rf"({alternation})(?!\w)", text, re.IGNORECASE)
            if match:
                return match.group(1).upper()

            match = re.search(rf"(?:claimed|owned) by ({alternation})(?!\w)", text, re.IGNORECASE)
            if match:
                return match.group(1).upper()

        lower = text.lower()
        if any(lower.startswith(noun) for noun in GENERIC_ACTOR_NOUNS):
            return UNKNOWN_ACTOR
        return None

    # --- Action ---

    def _extract_action(self, text: str, analysis: AnalysisRecord,
                        tables: ConfigurationTables, is_claimed: bool) -> None:
        action = tables.action_map.first_match(text.lower())
        if action:
            analysis.action = action
        elif is_claimed:
            analysis.action = CLAIMED_ACTION

    # --- Target ---

    def _extract_target(self, text: str, analysis: AnalysisRecord,
                        tables: ConfigurationTables) -> None:
        lower = text.lower()
        target = self._special_target(lower)
        if target is None:
            target = tables.target_map.first_match(lower)

        if target == "Army":
            target = "SFs"
        # A constable or ASI "at <place>" was present at, not the object of, the attack
        if target in ("PC", "ASI") and re.search(r"\bat\s+\w", lower):
            target = "LEAs"
        analysis.target = target

    @staticmethod
    def _special_target(lower: str) -> Optional[str]:
        if "post" in lower and "cp" in lower:
            return "SFs Post/CP"
        if re.search(r"\bctd\b", lower):
            return "CTD"
        if "fc pers" in lower or (re.search(r"\bfc\b", lower) and "post" in lower):
            return "FC"
        if "police constable" in lower or re.search(r"\bpc\b", lower):
            return "PC"
        if re.search(r"\basi\b", lower):
            return "ASI"
        return None

    # --- Location ---

    def _extract_location(self, text: str, analysis: AnalysisRecord,
                          tables: ConfigurationTables) -> None:
        corrected = text
        for wrong, right in tables.location_corrections.items():
            corrected = re.sub(re.escape(wrong), right, corrected, flags=re.IGNORECASE)

        location = self._locate(corrected, tables)
        if location:
            analysis.location = location

    def _locate(self, text: str, tables: ConfigurationTables) -> Optional[str]:
        # District-area shorthand, e.g. "NWD-Dosali"
        match = self.CODE_AREA_PATTERN.search(text)
        if match:
            area = self._clean_area(match.group(2))
            if area:
                return f"{area}, {match.group(1).upper()}"

        # "at Tirah Valley, Khy"
        match = self.PREPOSITION_AREA_PATTERN.search(text)
        if match:
            area = self._clean_area(match.group(1))
            if area:
                return f"{area}, {match.group(2).upper()}"

        # Convoy movement, e.g. "from Bannu to Mir Ali, North Waziristan"
        match = self.MOVEMENT_PATTERN.search(text)
        if match:
            destination = match.group(1).strip().lower()
            for name, loc in tables.location_codes.items():
                if name.lower() in destination:
                    return f"en-route to {loc.code}"

        # Longest names first so "Dir Lower" wins over shorter overlaps
        names = sorted(tables.location_codes, key=len, reverse=True)

        for name in names:
            name_pattern = r"\s+".join(re.escape(part) for part in name.split())
            match = re.search(rf"{name_pattern}\b", text, re.IGNORECASE)
            if match:
                place = self._place_before(text[:match.start()])
                if place:
                    return f"{place}, {tables.location_codes[name].code}"

        for loc in tables.location_codes.values():
            if loc.code in text:
                return loc.code

        lower = text.lower()
        for name in names:
            if name.lower() in lower:
                return tables.location_codes[name].code
        return None

    def _place_before(self, prefix: str) -> str:
        """Area named just before a known place, e.g. "Shewa" in "in Shewa, North Waziristan"."""
        clause = self.CLAUSE_BREAK_PATTERN.split(prefix)[-1].rstrip(", ")
        clause = clause.rsplit(",", 1)[-1]
        return self._clean_area(self.PLACE_PREFIX_PATTERN.sub("", clause))

    def _clean_area(self, area: str) -> str:
        area = self.BAZAR_PATTERN.sub("Bazaar", area.strip())
        return self.AREA_QUALIFIER_PATTERN.sub("", area).strip(" ,")

    # --- Casualties ---

    def _extract_casualties(self, text: str, analysis: AnalysisRecord) -> None:
        lower = text.lower()

        match = self.EXAGGERATED_CLAIM_PATTERN.search(lower)
        if match:
            analysis.add_casualty(f"claims killing of {match.group(1)} sldrs, {match.group(2)} inj")
            return

        tally = _CasualtyTally()

        for pattern, category in self.EQUIPMENT_COUNT_PATTERNS:
            for m in pattern.finditer(lower):
                tally.add(category, int(m.group(1)))
        for pattern, category in self.EQUIPMENT_FLAG_PATTERNS:
            if pattern.search(lower):
                tally.add(category)

        for rule in self.CASUALTY_RULES:
            for m in rule.pattern.finditer(lower):
                role = rule.role
                if role is None:
                    role = "sldrs" if m.group(2) else self._infer_role(analysis.target)
                tally.add(f"{role} {rule.outcome}", int(m.group(1)))

        if not tally:
            for phrases, fragment in self.GENERIC_CASUALTY_PHRASES:
                if any(phrase in lower for phrase in phrases):
                    tally.add(fragment)
                    break

        for fragment in tally.fragments():
            analysis.add_casualty(fragment)

    def _infer_role(self, target: Optional[str]) -> str:
        if not target:
            return "sldrs"
        for marker, role in self.TARGET_ROLE_INFERENCE:
            if marker in target:
                return role
        return self.EXACT_TARGET_ROLES.get(target, "sldrs")

    # --- Details ---

    def _extract_details(self, text: str, analysis: AnalysisRecord) -> None:
        lower = text.lower()
        for rule in self.DETAIL_RULES:
            match = rule.pattern.search(lower)
            if match:
                analysis.add_detail(rule.label(match))

