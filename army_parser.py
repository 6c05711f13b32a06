"""
Army List Parser
Parses free-form army list text into unit groups, weapons and special rules
"""

import re
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union


RuleValue = Union[int, bool]


# ============================================================================
# DATA CLASSES
# ============================================================================

@dataclass
class Weapon:
    """A weapon entry from an equipment line"""
    name: str
    amount: int = 1  # Number of copies
    range: int = 0  # Inches, 0 = melee
    attacks: int = 1  # Per copy
    ap: int = 0
    special: Dict[str, RuleValue] = field(default_factory=dict)  # rending, blast, deadly...

    @property
    def is_melee(self) -> bool:
        return self.range == 0

    @property
    def blast(self) -> int:
        return int(self.special.get('blast', 0) or 0)

    @property
    def deadly(self) -> int:
        return int(self.special.get('deadly', 0) or 0)

    def has(self, rule: str) -> bool:
        return bool(self.special.get(rule))

    def with_amount(self, amount: int) -> 'Weapon':
        return replace(self, amount=amount, special=dict(self.special))

    @property
    def profile_key(self) -> Tuple:
        """Identity of the weapon profile, ignoring the copy count"""
        return (self.name, self.range, self.attacks, self.ap,
                tuple(sorted(self.special.items())))


@dataclass
class SpecialRules:
    """Unit-level special rules; booleans are flags, ints are rule values"""
    hero: bool = False
    relentless: bool = False
    medical_training: bool = False
    shield_wall: bool = False
    good_shot: bool = False
    fast: bool = False
    slow: bool = False
    robot: bool = False
    scout: bool = False
    strider: bool = False
    fearless: bool = False
    self_repair: bool = False
    ambush: bool = False
    company_standard: bool = False
    take_aim: bool = False
    hold_the_line: bool = False
    stealth: bool = False
    flying: bool = False
    precision_shots: bool = False
    furious: bool = False
    furious_original: bool = False  # Furious printed on the unit, not granted by Battle Drills
    battle_drills: bool = False

    tough: int = 0
    deadly: int = 0
    fear: int = 0
    impact: int = 0
    caster: int = 0
    transport: int = 0

    def as_dict(self) -> Dict[str, RuleValue]:
        """Only the rules that are set"""
        return {f.name: getattr(self, f.name) for f in fields(self)
                if getattr(self, f.name) and f.name != 'furious_original'}


@dataclass
class SubUnitDefinition:
    """One statline parsed from a unit header"""
    name: str
    models: int
    quality: int  # Roll-to-hit / morale threshold
    defense: int  # Roll-to-save threshold
    points: int
    weapons: List[Weapon] = field(default_factory=list)
    special: SpecialRules = field(default_factory=SpecialRules)
    keywords: List[str] = field(default_factory=list)


@dataclass
class UnitGroup:
    """One or two joined sub-units sharing a footprint"""
    name: str
    sub_units: List[SubUnitDefinition] = field(default_factory=list)

    @property
    def total_models(self) -> int:
        return sum(su.models for su in self.sub_units)

    @property
    def points(self) -> int:
        return sum(su.points for su in self.sub_units)


@dataclass
class ArmyList:
    """A parsed army list"""
    name: str = "Unnamed Army"
    units: Dict[str, UnitGroup] = field(default_factory=dict)

    @property
    def points_total(self) -> int:
        return sum(group.points for group in self.units.values())


# ============================================================================
# RULE DICTIONARY
# ============================================================================

# name -> (attribute, kind)
SPECIAL_RULE_DEFINITIONS: Dict[str, Tuple[str, str]] = {
    "Hero": ("hero", "boolean"),
    "Relentless": ("relentless", "boolean"),
    "Medical Training": ("medical_training", "boolean"),
    "Shield Wall": ("shield_wall", "boolean"),
    "Combat Shield": ("shield_wall", "boolean"),
    "Good Shot": ("good_shot", "boolean"),
    "Fast": ("fast", "boolean"),
    "Robot": ("robot", "boolean"),
    "Scout": ("scout", "boolean"),
    "Strider": ("strider", "boolean"),
    "Fearless": ("fearless", "boolean"),
    "Self-Repair": ("self_repair", "boolean"),
    "Ambush": ("ambush", "boolean"),
    "Company Standard": ("company_standard", "boolean"),
    "Take Aim": ("take_aim", "boolean"),
    "Hold the Line": ("hold_the_line", "boolean"),
    "Stealth": ("stealth", "boolean"),
    "Flying": ("flying", "boolean"),
    "Precision Shots": ("precision_shots", "boolean"),
    "Tough": ("tough", "numeric"),
    "Deadly": ("deadly", "numeric"),
    "Fear": ("fear", "numeric"),
    "Impact": ("impact", "numeric"),
    "Caster": ("caster", "numeric"),
    "Transport": ("transport", "numeric"),
    "Furious": ("furious", "custom"),
    "Battle Drills": ("battle_drills", "custom"),
}

_RULE_PATTERNS = [
    (re.compile(rf"^{re.escape(name)}(?:\(\+?(\d+)\))?$", re.IGNORECASE), attr, kind)
    for name, (attr, kind) in SPECIAL_RULE_DEFINITIONS.items()
]

# Tags shown after a weapon profile: (label, predicate(weapon, sub_unit))
WEAPON_TAGS = [
    ("Furious", lambda w, su: w.is_melee and su is not None and su.special.furious),
    ("Relentless", lambda w, su: not w.is_melee and su is not None and su.special.relentless),
    ("Good Shot", lambda w, su: not w.is_melee and su is not None and su.special.good_shot),
    ("Precision", lambda w, su: not w.is_melee and su is not None and su.special.precision_shots),
    ("Rending", lambda w, su: w.has('rending')),
    ("Reliable", lambda w, su: w.has('reliable')),
    ("Flux", lambda w, su: w.has('flux')),
    ("Sniper", lambda w, su: w.has('sniper')),
    ("Limited", lambda w, su: w.has('limited')),
    (lambda w: f"Blast({w.blast})", lambda w, su: w.has('blast')),
    (lambda w: f"Deadly({w.deadly})", lambda w, su: w.has('deadly')),
]

ARMY_NAME_RE = re.compile(r"^\+\+\s*(.+?)\s*(?:\(v[\d.]+\))?(?:\s*\[\w+\s*\d*pts\])?\s*\+\+$",
                          re.IGNORECASE)
UNIT_HEADER_RE = re.compile(r"^(.+?)\s*\[(\d+)\]\s*Q(\d+)\+\s*D(\d+)\+\s*\|\s*(\d+)pts", re.IGNORECASE)
UNIT_LINE_RE = re.compile(
    r"^(.+?)\s*\[(\d+)\]\s*Q(\d+)\+\s*D(\d+)\+\s*\|\s*(\d+)pts\s*(?:\|\s*(.*))?$", re.IGNORECASE)
JOINED_TO_RE = re.compile(r"^\|\s*Joined to:", re.IGNORECASE)
WEAPON_TOKEN_RE = re.compile(r"^(?:(\d+)x\s*)?([^(]+?)\s*\((.+)\)$")


# ============================================================================
# LOW-LEVEL HELPERS
# ============================================================================

def split_top_level(text: str, sep: str = ",") -> List[str]:
    """Split on sep, ignoring separators nested inside parentheses"""
    out = []
    level = 0
    buf = ""
    for ch in text:
        if ch == "(":
            level += 1
        elif ch == ")":
            level = max(0, level - 1)

        if ch == sep and level == 0:
            out.append(buf)
            buf = ""
        else:
            buf += ch
    if buf:
        out.append(buf)
    return out


def parse_weapons(equip_line: str) -> List[Weapon]:
    """Parse an equipment line like '2x Rifle(24", A2, AP(1)), Claws(A3)'"""
    if not equip_line or not equip_line.strip():
        return []

    weapons = []
    for spec in (s.strip() for s in split_top_level(equip_line, ",")):
        if not re.search(r"\w+\s*\(.*\)", spec):
            continue
        weapon = parse_weapon(spec)
        if weapon:
            weapons.append(weapon)
    return weapons


def parse_weapon(spec: str) -> Optional[Weapon]:
    """Parse a single weapon token; None if it does not look like a weapon"""
    m = WEAPON_TOKEN_RE.match(spec)
    if not m:
        return None

    amount_str, name, inner = m.groups()
    weapon = Weapon(name=name.strip(), amount=int(amount_str) if amount_str else 1)

    for part in (p.strip() for p in split_top_level(inner, ",")):
        range_match = re.match(r'^(\d+)"$', part)
        attacks_match = re.match(r"^A?(\d+)$", part, re.IGNORECASE)
        ap_match = re.match(r"^AP\((-?\d+)\)$", part, re.IGNORECASE)
        rule_match = re.match(r"^([a-zA-Z\s-]+)(?:\((\d+)\))?$", part)

        if range_match:
            weapon.range = int(range_match.group(1))
        elif attacks_match:
            weapon.attacks = int(attacks_match.group(1))
        elif ap_match:
            weapon.ap = int(ap_match.group(1))
        elif rule_match:
            rule = rule_match.group(1).strip().lower()
            weapon.special[rule] = int(rule_match.group(2)) if rule_match.group(2) else True

    return weapon


def parse_rule(rule_text: str, special: SpecialRules) -> bool:
    """Apply one rule token to special; False if it is not a known rule"""
    for pattern, attr, kind in _RULE_PATTERNS:
        match = pattern.match(rule_text)
        if not match:
            continue

        if kind == "boolean":
            setattr(special, attr, True)
        elif kind == "numeric":
            setattr(special, attr, int(match.group(1)) if match.group(1) else 1)
        elif attr == "furious":
            special.furious = True
            special.furious_original = True
        elif attr == "battle_drills":
            special.battle_drills = True
            if not special.furious:
                special.furious = True
                special.furious_original = False
        return True
    return False


def parse_special_rules(items: List[str]) -> Tuple[SpecialRules, List[str]]:
    """Split spec-line tokens into known rules and free-form keywords"""
    special = SpecialRules()
    keywords = []
    for item in (i.strip() for i in items):
        if not item:
            continue
        matched = parse_rule(item, special)
        if not matched:
            embedded = re.match(r".*\((.+)\)", item)
            if embedded and parse_rule(embedded.group(1).strip(), special):
                matched = True
        if not matched and "(" not in item and ")" not in item:
            keywords.append(item)
    return special, keywords


def parse_unit(header_line: str, equip_line: str = "") -> Optional[SubUnitDefinition]:
    """Parse a header (and optional equipment line) into a SubUnitDefinition"""
    m = UNIT_LINE_RE.match(header_line)
    if not m:
        return None

    name, models, quality, defense, points, spec_text = m.groups()
    items = [s.strip() for s in split_top_level(spec_text)] if spec_text else []
    special, keywords = parse_special_rules(items)

    return SubUnitDefinition(
        name=name.strip(),
        models=max(int(models), 1),
        quality=int(quality),
        defense=int(defense),
        points=int(points),
        weapons=parse_weapons(equip_line),
        special=special,
        keywords=keywords,
    )


def weapon_display_string(weapon: Weapon, sub_unit: Optional[SubUnitDefinition] = None) -> str:
    """Compact profile, e.g. '(24", A2, AP(1)) [Rending]'"""
    stats = []
    if weapon.range > 0:
        stats.append(f'{weapon.range}"')
    stats.append(f"A{weapon.attacks}")
    if weapon.ap:
        stats.append(f"AP({weapon.ap})")

    tags = [label(weapon) if callable(label) else label
            for label, applies in WEAPON_TAGS if applies(weapon, sub_unit)]

    text = f"({', '.join(stats)})"
    if tags:
        text += f" [{', '.join(tags)}]"
    return text


# ============================================================================
# PARSER
# ============================================================================

class ArmyListParser:
    """Parse army list text exported from a list builder"""

    def __init__(self):
        self.army = ArmyList()

    def parse_file(self, file_path: str) -> ArmyList:
        """Parse an army list text file"""
        return self.parse_text(Path(file_path).read_text(encoding='utf-8'))

    def parse_text(self, raw_text: str) -> ArmyList:
        """Parse raw army list text"""
        self.army = ArmyList(name=self._parse_army_name(raw_text))

        for block in re.split(r"\r?\n\s*\r?\n", raw_text):
            block = block.strip()
            if not block:
                continue
            group = self._parse_block(block)
            if group:
                self._add_group(group)

        return self.army

    @staticmethod
    def _parse_army_name(raw_text: str) -> str:
        first_line = next((line for line in raw_text.splitlines() if line.strip()), None)
        if first_line:
            match = ARMY_NAME_RE.match(first_line.strip())
            if match:
                return match.group(1).strip()
        return "Unnamed Army"

    @staticmethod
    def _equipment_line(lines: List[str], index: int) -> str:
        if index < len(lines) and re.search(r"\(.*\)", lines[index]):
            return lines[index]
        return ""

    def _parse_block(self, block: str) -> Optional[UnitGroup]:
        """Parse one blank-line-delimited block; None if it is not a unit"""
        lines = [line.strip() for line in block.splitlines() if line.strip()]
        if not lines or not UNIT_HEADER_RE.match(lines[0]):
            return None

        primary = parse_unit(lines[0], self._equipment_line(lines, 1))
        if not primary:
            return None

        group = UnitGroup(name=primary.name, sub_units=[primary])

        join_idx = next((i for i, line in enumerate(lines) if JOINED_TO_RE.match(line)), -1)
        if join_idx > -1 and join_idx + 1 < len(lines) and UNIT_HEADER_RE.match(lines[join_idx + 1]):
            secondary = parse_unit(lines[join_idx + 1], self._equipment_line(lines, join_idx + 2))
            if secondary:
                group.sub_units.append(secondary)
                group.name = f"{primary.name} + {secondary.name}"

        return group

    def _add_group(self, group: UnitGroup):
        """Store a group under a unique name"""
        base_name = group.name
        final_name = base_name
        counter = 1
        while final_name in self.army.units:
            counter += 1
            final_name = f"{base_name} ({counter})"
        group.name = final_name
        self.army.units[final_name] = group


def parse_army_list(raw_text: str) -> ArmyList:
    """Convenience function to parse army list text"""
    parser = ArmyListParser()
    return parser.parse_text(raw_text)


def parse_army_file(file_path: str) -> ArmyList:
    """Convenience function to parse an army list file"""
    parser = ArmyListParser()
    return parser.parse_file(file_path)


if __name__ == "__main__":
    # Example usage
    import sys

    if len(sys.argv) > 1:
        army = parse_army_file(sys.argv[1])
        print(f"Army: {army.name}")
        print(f"Points: {army.points_total}")
        print(f"\nUnits ({len(army.units)}):")
        for group in army.units.values():
            print(f"  - {group.name} ({group.points} pts)")
            for sub_unit in group.sub_units:
                print(f"      {sub_unit.name} [{sub_unit.models}] Q{sub_unit.quality}+ D{sub_unit.defense}+")
                for weapon in sub_unit.weapons:
                    print(f"        {weapon.amount}x {weapon.name} {weapon_display_string(weapon, sub_unit)}")
