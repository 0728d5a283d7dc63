"""Evidence-based noise filter for extracted candidates.

News copy mentions many places that are not part of the event: the dateline,
the wire service's bureau, the country that brokered a deal, the venue of a
signing ceremony, background comparisons. This module drops those candidates
using an ordered table of named lexical rules. Each rule returns KEEP, DROP or
UNDECIDED; the first rule that decides wins, and a candidate no rule decides
is kept.

Rule order:
  1. signing_venue      drop the place where an agreement was signed
  2. signatory          keep the parties to a signing or agreement
  3. dateline           drop wire-service datelines and bureau locations
  4. mediator_or_host   drop mediators and witnesses
  5. generic_noise      drop attributions, background and comparisons
  6. context            read the source text around the evidence quote
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import Callable, List, Optional, Pattern, Sequence, Tuple

from config.defaults import NO_EVIDENCE_MIN_CONFIDENCE, NOISE_CONTEXT_WINDOW
from geomapagent.models.geo_targets import GeoTarget

logger = logging.getLogger(__name__)

KEEP = "keep"
DROP = "drop"
UNDECIDED = "undecided"


def _compile(patterns: Sequence[str]) -> Tuple[Pattern[str], ...]:
    return tuple(re.compile(p, re.IGNORECASE) for p in patterns)


def _any_match(patterns: Sequence[Pattern[str]], text: str) -> bool:
    return any(p.search(text) for p in patterns)


# ── Pattern tables ─────────────────────────────────────────────────────────────

_SIGN_VERB = r"(?:sign|signs|signed|signing|reach|reaches|reached|conclude|concludes|concluded|ink|inks|inked)"
_SIGNED = r"(?:sign|signs|signed|signing|ink|inks|inked)"
_AGREEMENT = r"(?:agreement|accord|deal|treaty|pact|ceasefire|truce|declaration|memorandum)"
_CJK_SIGNED = r"(?:簽署|签署|簽訂|签订)"

SIGNATORY_PATTERNS = _compile([
    rf"\b(?:and|with)\b[^.;]{{0,80}}?\b{_SIGN_VERB}\b[^.;]{{0,60}}?\b{_AGREEMENT}\b",
    rf"\b{_SIGN_VERB}\b[^.;]{{0,60}}?\b{_AGREEMENT}\b[^.;]{{0,40}}?\bwith\b",
    r".+?[與和同].+?(?:簽署|簽訂|签署|签订|達成|达成)",
    r"(?:雙方|双方|兩國|两国).*?(?:簽署|签署|達成|达成)",
    r"(?:達成|达成).*?(?:協議|协议|共識|共识)",
    r"(?:簽署|签署).*?(?:協議|协议|條約|条约)",
])

DATELINE_PATTERNS = _compile([
    r"\breport(?:ed|s|ing)?\s+from\b",
    r"\b(?:agency|reuters|afp|xinhua|bloomberg|associated press|news service)\b[^.;]{0,60}?\bbureau\b",
    r"^\s*\(?\s*(?:reuters|ap|afp|cna|xinhua)\s*\)",
    r"\bdatelined?\b",
    r"中央社.*?報導",
    r"綜合外電報導|综合外电报道",
    r"通訊社|通讯社",
    r"記者.*?從|记者.*?从",
    r"從.*?發回|从.*?发回",
    r"本報記者|本报记者",
    r"當地媒體|当地媒体",
    r"\d{1,2}日[^，。,]{0,8}?(?:電|电|報導|报道)",
])

MEDIATOR_PATTERNS = _compile([
    r"\bbroker(?:ed|ing|s)?\b",
    r"\bmediat(?:ed|ing|ion|or|ors)\b",
    r"\bhost(?:ed|ing|s)?\b[^.;]{0,30}?\b(?:talks|negotiations|summit|signing|ceremony)\b",
    r"\bwitness(?:ed|ing|es)?\b[^.;]{0,20}?\bsigning\b",
    r"\bfacilitat(?:ed|ing|ion)\b",
    r"\bsigning ceremony\b",
    r"由.*?(?:斡旋|調解|调解)",
    r"斡旋|調解|调解|協助|协助|促成",
    r"見證下|见证下",
    r"總統期間|总统期间",
    r"簽署儀式|签署仪式",
])

# Venues that host signings and press briefings far from the events they describe
SIGNING_VENUES: Tuple[str, ...] = (
    "white house", "whitehouse", "washington", "d.c.", "dc",
    "白宮", "白宫", "華盛頓", "华盛顿",
)

# Evidence wording that casts a known venue as the place of a signing
SIGNING_CONTEXT_PATTERNS = _compile([
    r"\bsigning ceremony\b",
    rf"\b{_SIGNED}\b[^.;]{{0,60}}?\b(?:at|in)\b",
    rf"在.{{0,20}}?{_CJK_SIGNED}",
    r"簽署儀式|签署仪式",
    r"見證下|见证下",
])

GENERIC_NOISE_PATTERNS = _compile([
    # Attribution and indirect citation
    r"\baccording to\b",
    r"\bspokes(?:person|man|woman)\b",
    r"\btold reporters\b",
    r"\bsources?\s+(?:said|say|says)\b",
    r"\b(?:cited|citing|quoted|quoting)\b",
    r"據.*?(?:報道|報導|报道)",
    r"透露",
    r"發言人|发言人",
    r"引述|援引|轉述|转述",
    r"根據.*?的說法|根据.*?的说法",
    # Background, comparison and neighbourhood references
    r"\bhistorically\b",
    r"\bsimilar to\b",
    r"\bcompared (?:with|to)\b",
    r"\bneighbou?r(?:ing|s)?\b",
    r"\bbordering\b",
    r"\bshares? a border\b",
    r"\bexpressed concern\b",
    r"歷史上|历史上",
    r"曾經|曾经",
    r"類似於|类似于",
    r"與.*?相比|与.*?相比",
    r"鄰近|邻近",
    r"接壤",
    r"表示關注|表示关注",
    r"可能不滿|可能不满",
])

# Attribution and mediation wording that, just before a quote in the same
# sentence, marks the candidate as reported speech or a go-between
CONTEXT_NOISE_PATTERNS = _compile([
    r"\baccording to\b",
    r"\bspokes(?:person|man|woman)\b",
    r"\btold reporters\b",
    r"\b(?:cited|citing|quoted|quoting)\b",
    r"\b(?:mediated|brokered|facilitated)\s+by\b",
    r"\bsimilar to\b",
    r"\bcompared (?:with|to)\b",
    r"據|据|稱|称|透露",
    r"報道|報導|报道|記者|记者",
    r"發言人|发言人",
    r"引述|援引|轉述|转述",
    r"類似|类似|相比|鄰近|邻近",
    r"會晤|会晤|總統期間|总统期间",
    r"斡旋|協助|协助|調解|调解|促成",
    r"簽署儀式|签署仪式",
])

_SENTENCE_BREAK_RE = re.compile(r"[.!?;。！？；\n]")


# ── Candidate-specific checks ──────────────────────────────────────────────────

def _name_pattern(name: str) -> str:
    return re.escape(name.strip())


def is_signing_venue(name: str) -> bool:
    """True when ``name`` is, or contains as a whole word, a known signing venue."""
    lowered = (name or "").strip().lower()
    if not lowered:
        return False
    return any(
        re.search(rf"(?<![a-z0-9]){re.escape(venue)}(?![a-z0-9])", lowered)
        for venue in SIGNING_VENUES
    )


def is_signing_location(name: str, evidence: str) -> bool:
    """True when the evidence names ``name`` as the place something was signed."""
    if not name or not name.strip():
        return False
    n = _name_pattern(name)
    patterns = (
        rf"\b{_SIGNED}\b[^.;]{{0,60}}?\b(?:at|in)\s+(?:the\s+)?{n}",
        rf"\bsigning ceremony\b[^.;]{{0,40}}?\b(?:at|in)\s+(?:the\s+)?{n}",
        rf"在{n}.{{0,10}}?{_CJK_SIGNED}",
    )
    return any(re.search(p, evidence, re.IGNORECASE) for p in patterns)


def is_non_party(name: str, evidence: str) -> bool:
    """True when the evidence casts ``name`` as mediator, witness, venue or dateline."""
    if not name or not name.strip():
        return False
    n = _name_pattern(name)
    patterns = (
        rf"\breport(?:ed|s|ing)?\s+from\s+(?:the\s+)?{n}",
        rf"\b(?:brokered|mediated|hosted|facilitated|witnessed)\s+by\s+(?:the\s+)?{n}",
        rf"{n}\s+(?:has\s+|had\s+)?(?:brokered|mediated|hosted|facilitated|witnessed)\b",
        rf"\b(?:at|in)\s+(?:the\s+)?{n}\b[^.;]{{0,40}}?\b(?:ceremony|signing|talks)\b",
        rf"\b(?:ceremony|signing|talks)\b[^.;]{{0,40}}?\b(?:at|in)\s+(?:the\s+)?{n}",
        rf"由{n}.{{0,10}}?(?:斡旋|調解|调解|協助|协助|促成)",
        rf"{n}(?:的)?(?:斡旋|調解|调解|協助|协助|促成|見證|见证)",
        rf"在{n}.{{0,10}}?(?:見證|见证|協助|协助|斡旋|舉行|举行)",
        rf"中央社{n}",
        rf"{n}.{{0,8}}?(?:綜合外電報導|综合外电报道)",
    )
    return any(re.search(p, evidence, re.IGNORECASE) for p in patterns) or is_signing_location(
        name, evidence
    )


def is_signing_subject(name: str, evidence: str) -> bool:
    """True when ``name`` is itself the subject of a signing verb."""
    if not name or not name.strip():
        return False
    n = _name_pattern(name)
    patterns = (
        rf"{n}\s+(?:and\s+[^.;,]{{1,40}}?\s+)?(?:has\s+|have\s+)?{_SIGN_VERB}\b",
        rf"\b(?:and|with)\s+(?:the\s+)?{n}\s+(?:have\s+|has\s+)?{_SIGN_VERB}\b",
        rf"{n}.{{0,2}}[與和同].{{1,20}}?{_CJK_SIGNED}",
        rf"[與和同]{n}.{{0,10}}?{_CJK_SIGNED}",
    )
    return any(re.search(p, evidence, re.IGNORECASE) for p in patterns)


# ── Rules ──────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class NoiseCase:
    """What a rule sees for one candidate.

    ``window`` is the source text around the located evidence quote and
    ``preceding`` the part of that window before the quote, cut back to the
    start of the quote's sentence. Both are empty when the quote was not
    found in the source text.
    """

    name: str
    evidence: str
    window: str = ""
    preceding: str = ""


def build_case(
    target: GeoTarget, source_text: str = "", radius: int = NOISE_CONTEXT_WINDOW
) -> NoiseCase:
    evidence = (target.evidence_span or "").strip()
    start, end = target.evidence_start, target.evidence_end
    if not source_text or not 0 <= start <= end <= len(source_text):
        return NoiseCase(name=target.name, evidence=evidence)
    lo = max(0, start - radius)
    return NoiseCase(
        name=target.name,
        evidence=evidence,
        window=source_text[lo:min(len(source_text), end + radius)],
        preceding=_SENTENCE_BREAK_RE.split(source_text[lo:start])[-1],
    )


@dataclass(frozen=True)
class NoiseRule:
    """One named rule: decide(case) -> KEEP | DROP | UNDECIDED."""

    name: str
    decide: Callable[[NoiseCase], str]


def _signing_venue_rule(case: NoiseCase) -> str:
    if is_signing_subject(case.name, case.evidence):
        return UNDECIDED
    if is_signing_location(case.name, case.evidence):
        return DROP
    if is_signing_venue(case.name) and _any_match(SIGNING_CONTEXT_PATTERNS, case.evidence):
        return DROP
    return UNDECIDED


def _signatory_rule(case: NoiseCase) -> str:
    if _any_match(SIGNATORY_PATTERNS, case.evidence) and not is_non_party(case.name, case.evidence):
        return KEEP
    return UNDECIDED


def _dateline_rule(case: NoiseCase) -> str:
    return DROP if _any_match(DATELINE_PATTERNS, case.evidence) else UNDECIDED


def _mediator_or_host_rule(case: NoiseCase) -> str:
    if _any_match(MEDIATOR_PATTERNS, case.evidence) and not is_signing_subject(
        case.name, case.evidence
    ):
        return DROP
    return UNDECIDED


def _generic_noise_rule(case: NoiseCase) -> str:
    return DROP if _any_match(GENERIC_NOISE_PATTERNS, case.evidence) else UNDECIDED


def _context_rule(case: NoiseCase) -> str:
    if not case.window:
        return UNDECIDED
    if _any_match(SIGNATORY_PATTERNS, case.window):
        return KEEP
    if _any_match(CONTEXT_NOISE_PATTERNS, case.preceding):
        return DROP
    return UNDECIDED


DEFAULT_RULES: Tuple[NoiseRule, ...] = (
    NoiseRule("signing_venue", _signing_venue_rule),
    NoiseRule("signatory", _signatory_rule),
    NoiseRule("dateline", _dateline_rule),
    NoiseRule("mediator_or_host", _mediator_or_host_rule),
    NoiseRule("generic_noise", _generic_noise_rule),
    NoiseRule("context", _context_rule),
)


class NoiseFilter:
    """Applies the ordered rule table to candidates.

    Args:
        rules: Ordered rules; defaults to DEFAULT_RULES.
        no_evidence_min_confidence: Candidates without evidence are kept only
            at or above this confidence.
        context_window: Characters of source text read on each side of a
            located evidence quote.
    """

    def __init__(
        self,
        rules: Optional[Sequence[NoiseRule]] = None,
        no_evidence_min_confidence: float = NO_EVIDENCE_MIN_CONFIDENCE,
        context_window: int = NOISE_CONTEXT_WINDOW,
    ) -> None:
        self.rules: Tuple[NoiseRule, ...] = tuple(rules if rules is not None else DEFAULT_RULES)
        self.no_evidence_min_confidence = no_evidence_min_confidence
        self.context_window = context_window

    def evaluate(self, target: GeoTarget, source_text: str = "") -> Tuple[str, str]:
        """Decide one candidate.

        Returns:
            ``(decision, rule_name)`` where decision is KEEP or DROP. The rule
            name is "no_evidence" or "default" when no table rule decided.
        """
        case = build_case(target, source_text, self.context_window)
        if not case.evidence:
            if target.confidence >= self.no_evidence_min_confidence:
                return KEEP, "no_evidence"
            return DROP, "no_evidence"

        for rule in self.rules:
            decision = rule.decide(case)
            if decision != UNDECIDED:
                return decision, rule.name
        return KEEP, "default"

    def filter(self, targets: List[GeoTarget], source_text: str = "") -> List[GeoTarget]:
        """Return the candidates the rules keep, in input order."""
        kept: List[GeoTarget] = []
        for target in targets:
            decision, rule_name = self.evaluate(target, source_text)
            if decision == KEEP:
                kept.append(target)
            else:
                logger.info(
                    "NoiseFilter: dropped %s (%s) by rule %s: %.60s",
                    target.name, target.kind, rule_name, target.evidence_span,
                )
        if len(kept) < len(targets):
            logger.info("NoiseFilter: %d -> %d candidates", len(targets), len(kept))
        return kept
