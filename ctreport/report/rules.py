"""Redaction rules applied to the merged sentence list.

Handles, in order:
- Plural merge of both-sides normal kidney / urinary-tract sentences
- Contradiction removal (an organ's normal sentence dropped when a finding
  sentence describes pathology of that organ)
- "No se observan lesiones focales" -> "No se observan otras lesiones focales"
  when a cyst, microlithiasis or granuloma is described in the same section
- Dedup by normalized text, first occurrence wins
- Pulmonary suppression of the parenchyma and pleura normal sentences
- Full anatomical reorder when the dictation ends with "valida frases normales"
- Closing sentence forced last and unique

Keyword triggers are searched only in finding sentences (sentences that are
not catalog normal phrases). A negated term is blanked out first: "Sin
derrame pleural" triggers nothing, "Sin cambios del nódulo pulmonar" still
mentions the nodule.
"""

import logging
import re
from dataclasses import dataclass

from ctreport.report.normalizer import normalize
from ctreport.report.sections import Section, SectionResolver

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Literal normal sentences
# ---------------------------------------------------------------------------

KIDNEY_RIGHT = "Riñón derecho de tamaño y morfología normales."
KIDNEY_LEFT = "Riñón izquierdo de tamaño y morfología normales."
KIDNEYS_PLURAL = "Riñones de tamaño y morfología normales."
URETER_RIGHT = "No se observan lesiones focales ni dilatación de la vía urinaria derecha."
URETER_LEFT = "No se observan lesiones focales ni dilatación de la vía urinaria izquierda."
URETERS_PLURAL = "No se observan lesiones focales ni dilatación de las vías urinarias."

PLURAL_LITERALS = (KIDNEYS_PLURAL, URETERS_PLURAL)

# A negation and the single term it governs ("sin derrame", "no se observa
# hiperplasia", "sin signos de colecistitis")
_NEGATION = re.compile(
    r"\b(?:sin|ni|no hay|no se (?:observan?|identifican?|aprecian?|evidencian?|visualizan?))"
    r"(?: (?:signos|evidencia|imagenes|datos|presencia) de)? \w+"
)

# ---------------------------------------------------------------------------
# Rule tables
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PluralMergeRule:
    right: str
    left: str
    plural: str
    triggers: re.Pattern


PLURAL_MERGE_RULES = (
    PluralMergeRule(
        KIDNEY_RIGHT, KIDNEY_LEFT, KIDNEYS_PLURAL,
        re.compile(
            r"atrofi|nefrectom|hipoplasi|tumor|masa renal|pielonefritis|litiasis|quiste|cicatri"
            r"|\baumentado de tamano|signos inflamatorios|angiomiolipoma"
        ),
    ),
    PluralMergeRule(
        URETER_RIGHT, URETER_LEFT, URETERS_PLURAL,
        re.compile(
            r"ectasia|hidronefrosis|dilatacion de (?:la )?pelvis|pelvis extrarrenal"
            r"|sindrome de la union|engrosamiento urotelial|tumor de vias|ureterolitiasis|litiasis ureteral"
        ),
    ),
)


@dataclass(frozen=True)
class SuppressionRule:
    """Drop normal sentences starting with ``prefixes`` when a finding sentence
    matches every pattern. ``scope`` limits which sections' sentences count."""
    name: str
    prefixes: tuple[str, ...]
    patterns: tuple[re.Pattern, ...]
    scope: frozenset[Section] | None = None

    def triggered_by(self, normalized: str) -> bool:
        return all(p.search(normalized) for p in self.patterns)


def _suppress(name: str, prefixes, *patterns: str, scope=None) -> SuppressionRule:
    if isinstance(prefixes, str):
        prefixes = (prefixes,)
    return SuppressionRule(
        name,
        tuple(normalize(p) for p in prefixes),
        tuple(re.compile(p) for p in patterns),
        frozenset(scope) if scope else None,
    )


CONTRADICTION_RULES = (
    _suppress("tep", "No se observan signos de TEP", r"\btep\b|tromboembol|defectos? de reple"),
    _suppress(
        "mediastinal_nodes", "No se observan adenopatías mediastínicas",
        r"\badenopat", r"mediastin|hiliar",
    ),
    _suppress(
        "axillary_nodes", "No se observan adenopatías supraclaviculares",
        r"\badenopat", r"axilar|supraclavicul",
    ),
    _suppress(
        "liver", "Hígado de tamaño y morfología normal",
        r"hepatomegalia|cirrosis|hepatopatia cronica|higado de contornos lobulados",
    ),
    _suppress(
        "liver_focal", ("No se observan lesiones focales hepáticas", "No se identifican lesiones focales hepáticas"),
        r"\blesion(?:es)?\b.*\bhepatic|metastasis hepatic|hepatocarcinoma",
    ),
    _suppress(
        "biliary", "No se observa dilatación de la vía biliar",
        r"dilatacion de (?:la )?via biliar|coledocolitiasis|ectasia de (?:la )?via biliar",
    ),
    _suppress(
        "gallbladder", "Vesícula biliar sin evidencia de litiasis",
        r"colelitiasis|colecistitis|litiasis (?:biliar|vesicular)|barro biliar|colecistectomia|escleroatrofica",
    ),
    _suppress("spleen", "Bazo de tamaño y morfología normal", r"esplenomegalia|bazo aumentado"),
    _suppress(
        "pancreas", "Páncreas de tamaño y morfología normal",
        r"pancreatitis|pancreatectomia|(?:masa|neoplasia|tumor|lesion)\w*.*\bpancrea|\bpancrea\w*.*(?:masa|neoplasia|tumor|lesion)",
    ),
    _suppress(
        "adrenal", "Glándulas suprarrenales de tamaño y morfología normal",
        r"suprarrenal|adrenal", r"hiperplasia|adenoma|nodul|masa|engrosamiento|metastasi|lesion",
    ),
    _suppress(
        "abdominal_nodes", "No se observan adenopatías intraabdominales",
        r"\badenopat", r"intraabdominal|retroperitone|mesenteric|paraaortic",
    ),
    _suppress(
        "pelvic_nodes", "No se observan adenopatías pélvicas",
        r"\badenopat", r"pelvic|inguinal|iliac",
    ),
    _suppress(
        "peritoneum", "No se observan colecciones, neumoperitoneo",
        r"ascitis|liquido libre|coleccion|neumoperitoneo|carcinomatosis",
    ),
)

PULMONARY_RULES = (
    _suppress(
        "lung_parenchyma", "Parénquima pulmonar sin alteraciones",
        r"enfisema|vidrio|condensaci|nodul|\bmasa|metastasi|linfangitis|engrosamientos? bronquial"
        r"|broncopatia|bronquiectasi|opacidad|patron intersticial|reticulaci|engrosamientos? septal"
        r"|atelectasi|fibrosis|\bbullas?\b",
        scope=(Section.THORAX_PARENCHYMA, Section.UNCLASSIFIED),
    ),
    _suppress(
        "pleura", "Espacios pleurales libres",
        r"derrame|engrosamientos? pleural|pleurodesis|calcificaciones pleurales|placas? pleural"
        r"|liquido pleural|neumotorax",
        scope=(Section.THORAX_PLEURA, Section.UNCLASSIFIED),
    ),
)

_FOCAL_LESIONS = re.compile(r"\b(no se observan) (lesiones focales)\b", re.IGNORECASE)
_BENIGN_MODIFIERS = re.compile(r"quist|microlitiasis|granuloma")


# ---------------------------------------------------------------------------
# Engine
# ---------------------------------------------------------------------------

@dataclass
class RuleContext:
    resolver: SectionResolver
    closing_text: str
    normal_keys: frozenset[str]
    template_mode: bool = False

    def __post_init__(self):
        self.normal_keys = frozenset(self.normal_keys) | {normalize(p) for p in PLURAL_LITERALS}

    def is_normal(self, line: str) -> bool:
        n = normalize(line)
        return n in self.normal_keys or n.replace("no se observan otras", "no se observan") in self.normal_keys

    def finding_lines(self, lines: list[str]) -> list[tuple[str, str]]:
        """(sentence, searchable text) for sentences whose keywords may trigger a rule."""
        return [
            (line, _NEGATION.sub(" ", normalize(line)))
            for line in lines if not self.is_normal(line)
        ]


def merge_plurals(lines: list[str], ctx: RuleContext) -> list[str]:
    findings_text = [text for _, text in ctx.finding_lines(lines)]
    for rule in PLURAL_MERGE_RULES:
        keys = [normalize(line) for line in lines]
        right, left = normalize(rule.right), normalize(rule.left)
        if right not in keys or left not in keys:
            continue
        if any(rule.triggers.search(n) for n in findings_text):
            continue
        first = min(keys.index(right), keys.index(left))
        merged = []
        for i, (line, n) in enumerate(zip(lines, keys)):
            if i == first:
                merged.append(rule.plural)
            elif n not in (right, left):
                merged.append(line)
        logger.debug("Merged %r and %r into %r", rule.right, rule.left, rule.plural)
        lines = merged
    return lines


def _apply_suppression(lines: list[str], rules, ctx: RuleContext) -> list[str]:
    candidates = ctx.finding_lines(lines)
    for rule in rules:
        scoped = candidates
        if rule.scope is not None:
            scoped = [(line, text) for line, text in candidates if ctx.resolver.section(line) in rule.scope]
        if not any(rule.triggered_by(text) for _, text in scoped):
            continue
        kept = [line for line in lines if not (ctx.is_normal(line) and normalize(line).startswith(rule.prefixes))]
        if len(kept) != len(lines):
            logger.debug("Rule %s dropped %d normal sentence(s)", rule.name, len(lines) - len(kept))
        lines = kept
    return lines


def remove_contradictions(lines: list[str], ctx: RuleContext) -> list[str]:
    return _apply_suppression(lines, CONTRADICTION_RULES, ctx)


def suppress_pulmonary_normals(lines: list[str], ctx: RuleContext) -> list[str]:
    return _apply_suppression(lines, PULMONARY_RULES, ctx)


def substitute_focal_lesions(lines: list[str], ctx: RuleContext) -> list[str]:
    modifiers = [
        (line, ctx.resolver.placement(line))
        for line, text in ctx.finding_lines(lines)
        if _BENIGN_MODIFIERS.search(text)
    ]
    if not modifiers:
        return lines

    result = []
    for line in lines:
        if _FOCAL_LESIONS.search(line):
            placement = ctx.resolver.placement(line)
            if any(p == placement and other != line for other, p in modifiers):
                line = _FOCAL_LESIONS.sub(r"\1 otras \2", line, count=1)
        result.append(line)
    return result


def dedupe(lines: list[str], ctx: RuleContext | None = None) -> list[str]:
    seen = set()
    unique = []
    for line in lines:
        key = normalize(line)
        if key and key not in seen:
            seen.add(key)
            unique.append(line)
    return unique


def reorder_by_section(lines: list[str], ctx: RuleContext) -> list[str]:
    if not ctx.template_mode:
        return lines
    return ctx.resolver.sort(lines)


def close_last(lines: list[str], ctx: RuleContext) -> list[str]:
    closing = normalize(ctx.closing_text)
    return [line for line in lines if normalize(line) != closing] + [ctx.closing_text]


REDACTION_RULES = (
    merge_plurals,
    remove_contradictions,
    substitute_focal_lesions,
    dedupe,
    suppress_pulmonary_normals,
    reorder_by_section,
    close_last,
)


def apply_redaction_rules(lines: list[str], ctx: RuleContext) -> list[str]:
    for rule in REDACTION_RULES:
        lines = rule(lines, ctx)
    return lines
