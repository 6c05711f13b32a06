"""
Attack Sequence Resolver
Hit rolls, save rolls and wound packets for one weapon profile against one target
"""

from dataclasses import dataclass, field
from typing import Callable, List, Tuple

from army_parser import SubUnitDefinition, UnitGroup, Weapon, weapon_display_string
from dice import Dice


@dataclass
class ActionContext:
    """What kind of action the attack is part of"""
    is_melee: bool = False
    is_charge: bool = False
    is_hold: bool = False


@dataclass
class Hit:
    """One successful hit waiting for its save"""
    ap: int
    roll: int
    from_extra: bool = False
    from_blast: bool = False  # Blast hits ignore cover


@dataclass
class AttackResult:
    """Outcome of one weapon profile's attacks"""
    wound_packets: List[int] = field(default_factory=list)
    total_damage: int = 0
    hits: int = 0  # After extra hits and Blast
    saves: int = 0
    log: List[str] = field(default_factory=list)


# ============================================================================
# THRESHOLDS
# ============================================================================

def hit_threshold(attacker: SubUnitDefinition, weapon: Weapon, context: ActionContext,
                  fatigued: bool = False) -> int:
    """Quality needed to hit, after Good Shot and Reliable"""
    quality = attacker.quality
    if weapon.is_melee and fatigued:
        return quality

    if attacker.special.good_shot and not weapon.is_melee and context.is_hold:
        quality = min(attacker.quality, 4)
    if weapon.has('reliable'):
        quality = max(2, quality - 1)
    return quality


def save_threshold(defense: int, shield_wall: bool, in_cover: bool, ap: int) -> int:
    """Roll needed to save; never better than 2+"""
    return max(2, defense - (1 if shield_wall else 0) - (1 if in_cover else 0) + ap)


def is_hit(roll: int, quality: int, fatigued_melee: bool = False) -> bool:
    """Fatigued melee hits only on a 6; otherwise 1 always misses and 6 always hits"""
    if roll == 1:
        return False
    if fatigued_melee:
        return roll == 6
    return roll == 6 or roll >= quality


def is_save(roll: int, threshold: int) -> bool:
    """1 always fails, 6 always saves"""
    if roll == 1:
        return False
    return roll == 6 or roll >= threshold


def extra_hit_threshold(attacker: SubUnitDefinition, weapon: Weapon, group: UnitGroup,
                        context: ActionContext) -> Tuple[int, List[str]]:
    """Roll at or above which a hit spawns a bonus hit (0 = no bonus hits)"""
    threshold = 0
    labels = []

    if context.is_charge and weapon.is_melee:
        group_has_drills = any(su.special.battle_drills for su in group.sub_units) if group else False
        if group_has_drills and attacker.special.furious_original:
            labels.append("Double Furious (Battle Drills)")
            threshold = 5
        elif attacker.special.furious or group_has_drills:
            labels.append("Furious")
            threshold = 6

    if context.is_hold and attacker.special.relentless:
        labels.append("Relentless")
        threshold = 6

    if weapon.has('flux'):
        labels.append("Flux")
        threshold = max(threshold, 6)

    return threshold, labels


def _prevent_wounds(packets: List[int], dice: Dice,
                    prevents: Callable[[int], bool]) -> Tuple[List[int], List[int], List[int]]:
    """Roll once per point of damage; drop packets reduced to nothing"""
    kept = []
    successes = []
    failures = []
    for packet in packets:
        prevented = 0
        for _ in range(packet):
            roll = dice.d6()
            if prevents(roll):
                prevented += 1
                successes.append(roll)
            else:
                failures.append(roll)
        if packet - prevented > 0:
            kept.append(packet - prevented)
    return kept, successes, failures


def _rolls(values: List[int], empty: str = "None") -> str:
    return ",".join(str(v) for v in values) or empty


# ============================================================================
# RESOLVER
# ============================================================================

def resolve_attack(attacker: SubUnitDefinition, weapon: Weapon, defender: SubUnitDefinition,
                   defender_name: str, defender_models_for_blast: int,
                   context: ActionContext, dice: Dice,
                   target_in_cover: bool = False, attacker_fatigued: bool = False,
                   attacker_group: UnitGroup = None) -> AttackResult:
    """
    Resolve every attack of one weapon entry.

    Args:
        attacker: Sub-unit statline making the attacks
        weapon: Weapon entry (amount x attacks dice are rolled)
        defender: Sub-unit statline used for saves
        defender_name: Name of the target cluster, for the log
        defender_models_for_blast: Current models in the target cluster
        context: Melee / charge / hold flags
        dice: Random source
        target_in_cover: Cover bonus on saves (not against Blast hits)
        attacker_fatigued: Already fought this round or shaken (melee only)
        attacker_group: The attacker's whole group, for Battle Drills

    Returns:
        AttackResult with wound packets; the caller applies them
    """
    result = AttackResult()
    fatigued_melee = weapon.is_melee and attacker_fatigued
    quality = hit_threshold(attacker, weapon, context, attacker_fatigued)
    precision_bonus = 1 if attacker.special.precision_shots and not weapon.is_melee else 0

    display_defense = save_threshold(defender.defense, defender.special.shield_wall, target_in_cover, 0)
    result.log.append(
        f"{attacker.name} (Q{quality}+) with {weapon.amount}x {weapon.name} "
        f"{weapon_display_string(weapon, attacker)} vs {defender_name}'s D{display_defense}+"
    )

    # Roll to hit
    bonus_threshold, bonus_labels = extra_hit_threshold(attacker, weapon, attacker_group, context)
    hits: List[Hit] = []
    hit_rolls = []
    miss_rolls = []
    for _ in range(weapon.amount * weapon.attacks):
        roll = dice.d6()
        ap = weapon.ap or 0
        if weapon.has('rending') and (roll == 6 or (roll > 1 and roll >= quality)):
            ap = max(ap, 4)
        ap += precision_bonus

        if is_hit(roll, quality, fatigued_melee):
            hit_rolls.append(roll)
            hits.append(Hit(ap=ap, roll=roll))
            if bonus_threshold and roll >= bonus_threshold:
                hits.append(Hit(ap=ap, roll=roll, from_extra=True))
        else:
            miss_rolls.append(roll)

    result.log.append(
        f"  Hits: {len(hit_rolls)} [{_rolls(hit_rolls)}] ({len(hits)} total after extras) | "
        f"Misses: {len(miss_rolls)} [{_rolls(miss_rolls)}]"
    )
    if bonus_labels:
        result.log.append(f"  Special Hit Rules: {', '.join(bonus_labels)}")

    # Blast
    if weapon.has('blast') and defender_models_for_blast > 0:
        multiplier = min(weapon.blast, defender_models_for_blast)
        before = len(hits)
        hits = [Hit(ap=h.ap, roll=h.roll, from_extra=h.from_extra, from_blast=True)
                for h in hits for _ in range(multiplier)]
        if multiplier > 1 and len(hits) > before:
            result.log.append(
                f"  Blast({weapon.blast}) vs {defender_models_for_blast} models -> "
                f"{len(hits)} total hits (was {before})"
            )
    result.hits = len(hits)

    # Saves
    save_rolls = []
    fail_rolls = []
    for hit in hits:
        threshold = save_threshold(defender.defense, defender.special.shield_wall,
                                   target_in_cover and not hit.from_blast, hit.ap)
        roll = dice.d6()
        if is_save(roll, threshold):
            save_rolls.append(roll)
        else:
            fail_rolls.append(roll)
    result.saves = len(save_rolls)
    result.log.append(
        f"  Saves: {len(save_rolls)} [{_rolls(save_rolls)}] | Fails: {len(fail_rolls)} [{_rolls(fail_rolls)}]"
    )

    # Wound packets
    packet_size = weapon.deadly or 1
    if weapon.deadly:
        result.log.append(
            f"  Applying Deadly({weapon.deadly}) -> {len(fail_rolls)} packets of {weapon.deadly}")
    packets = [packet_size] * len(fail_rolls)

    if defender.special.medical_training and packets:
        packets, ok, failed = _prevent_wounds(packets, dice, lambda r: r >= 5)
        result.log.append(f"    Medical Training: {len(ok)} [{_rolls(ok, '-')}] | {len(failed)} [{_rolls(failed, '-')}]")

    if defender.special.self_repair and packets:
        packets, ok, failed = _prevent_wounds(packets, dice, lambda r: r == 6)
        result.log.append(f"    Self-Repair: {len(ok)} [{_rolls(ok, '-')}] | {len(failed)} [{_rolls(failed, '-')}]")

    result.wound_packets = packets
    result.total_damage = sum(packets)
    result.log.append(f"  -> Total wound packets: {len(packets)}, total wounds: {result.total_damage}")
    return result
