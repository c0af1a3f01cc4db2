"""Static activity catalogue: mode types, known raids/dungeons and their groups."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Iterable, Mapping, Optional

STORY_ACTIVITY_MODE = 2
RAID_ACTIVITY_MODE = 4
STRIKE_ACTIVITY_MODE = 18
DUNGEON_ACTIVITY_MODE = 82
LOSTSECTOR_ACTIVITY_MODE = 87

# Insertion order matters only for display; lookups go mode by mode.
ACTIVITY_TYPES: dict[int, str] = {
    STORY_ACTIVITY_MODE: "Story",
    RAID_ACTIVITY_MODE: "Raid",
    DUNGEON_ACTIVITY_MODE: "Dungeon",
    STRIKE_ACTIVITY_MODE: "Strike",
    LOSTSECTOR_ACTIVITY_MODE: "Lost Sector",
}

KNOWN_RAIDS: dict[int, str] = {
    2122313384: "Last Wish",
    1042180643: "Garden of Salvation",
    910380154: "Deep Stone Crypt",
    3881495763: "Vault of Glass",
    3022541210: "Vault of Glass (Master)",
    1441982566: "Vow of the Disciple",
    3889634515: "Vow of the Disciple (Master)",
    1374392663: "King's Fall",
    3257594522: "King's Fall (Master)",
    2381413764: "Root of Nightmares",
    2918919505: "Root of Nightmares (Master)",
    107319834: "Crota's End",
    1507509200: "Crota's End (Master)",
    1541433876: "Salvation's Edge",
    4129614942: "Salvation's Edge (Master)",
    1044919065: "The Desert Perpetual",
    3817322389: "The Desert Perpetual (Epic)",
}

KNOWN_DUNGEONS: dict[int, str] = {
    2032534090: "The Shattered Throne",
    2582501063: "Pit of Heresy",
    1077850348: "Prophecy",
    4078656646: "Grasp of Avarice",
    1112917203: "Grasp of Avarice (Master)",
    2823159265: "Duality",
    3012587626: "Duality (Master)",
    1262462921: "Spire of the Watcher",
    2296818662: "Spire of the Watcher (Master)",
    313828469: "Ghosts of the Deep",
    2716998124: "Ghosts of the Deep (Master)",
    2004855007: "Warlord's Ruin",
    2534833093: "Warlord's Ruin (Master)",
    300092127: "Vesper's Host",
    4293676253: "Vesper's Host (Master)",
    3834447244: "The Sundered Doctrine",
    3521648250: "The Sundered Doctrine (Master)",
    2727361621: "Equilibrium",
}

ACTIVITY_ALIASES: dict[str, str] = {
    "lw": "last-wish",
    "gos": "garden-of-salvation",
    "dsc": "deep-stone-crypt",
    "vog": "vault-of-glass",
    "kf": "king-s-fall",
    "ron": "root-of-nightmares",
    "se": "salvation-s-edge",
    "dp": "the-desert-perpetual",
    "gotd": "ghosts-of-the-deep",
    "wr": "warlord-s-ruin",
    "vh": "vesper-s-host",
    "sd": "the-sundered-doctrine",
}

# Shooting Range
EXCLUDED_ACTIVITIES: frozenset[int] = frozenset({3830679567})

_DIFFICULTY_SUFFIX_PATTERN = re.compile(r"\s*\([^)]*\)$")
_SLUG_SEPARATOR_PATTERN = re.compile(r"[^a-z0-9]+")


@dataclass(frozen=True, slots=True)
class ActivityGroup:
    """An activity and its harder difficulty variants under one key."""

    key: str
    name: str
    hashes: frozenset[int]


def strip_difficulty(name: str) -> str:
    return _DIFFICULTY_SUFFIX_PATTERN.sub("", name)


def group_key(name: str) -> str:
    """Slugify an activity name with its difficulty suffix removed."""
    return _SLUG_SEPARATOR_PATTERN.sub("-", strip_difficulty(name).lower())


def build_groups(activities: Mapping[int, str]) -> dict[str, ActivityGroup]:
    names: dict[str, str] = {}
    members: dict[str, set[int]] = {}
    for activity_hash, name in activities.items():
        key = group_key(name)
        names.setdefault(key, strip_difficulty(name))
        members.setdefault(key, set()).add(activity_hash)
    return {
        key: ActivityGroup(key=key, name=names[key], hashes=frozenset(hashes))
        for key, hashes in members.items()
    }


GROUPED_RAIDS = build_groups(KNOWN_RAIDS)
GROUPED_DUNGEONS = build_groups(KNOWN_DUNGEONS)


def resolve_alias(key: str) -> str:
    return ACTIVITY_ALIASES.get(key.lower(), key)


def determine_activity_type(modes: Optional[Iterable[int]]) -> Optional[str]:
    """Return the type name of the first mode found in the type table."""
    if not modes:
        return None
    for mode in modes:
        activity_type = ACTIVITY_TYPES.get(mode)
        if activity_type:
            return activity_type
    return None


def should_have_timer(modes: Optional[Iterable[int]]) -> bool:
    return determine_activity_type(modes) is not None


def resolve_activity_name(activity_hash: int, fallback_name: str) -> str:
    if activity_hash in KNOWN_RAIDS:
        return KNOWN_RAIDS[activity_hash]
    if activity_hash in KNOWN_DUNGEONS:
        return KNOWN_DUNGEONS[activity_hash]
    return fallback_name
