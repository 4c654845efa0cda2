"""
backend/marketsync/services/team_alias_resolver.py

Purpose:
    Canonicalize free-text team names per league. One raw name may resolve to
    different canonical teams in different leagues, and one canonical name may
    carry aliases shared across several leagues (multi-sport universities).
    Lookups are tolerant to case, accents, punctuation and whitespace.

Dependencies:
    - re
    - unicodedata
    - json
"""

from __future__ import annotations

import json
import logging
import re
import unicodedata
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from pathlib import Path

logger = logging.getLogger("marketsync.team_alias_resolver")

_PUNCT_RE = re.compile(r"[^a-z0-9\s]")
_SPACE_RE = re.compile(r"\s+")

# JSONOdds sport ids whose secondary feeds split name and mascot:
# MLB, NBA, NFL, NHL, WNBA.
MASCOT_SPORTS: frozenset[int] = frozenset({0, 1, 4, 5, 8})


def normalize_team_alias(raw: str) -> str:
    """
    Normalize alias text into an ASCII-safe key.

    Steps:
        1. lowercase + trim
        2. NFKD accent removal
        3. punctuation cleanup
        4. whitespace collapse
    """
    text = str(raw or "").strip().lower()
    if not text:
        return ""

    text = unicodedata.normalize("NFKD", text)
    text = text.encode("ascii", "ignore").decode("ascii")
    text = _PUNCT_RE.sub(" ", text)
    return _SPACE_RE.sub(" ", text).strip()


@dataclass(frozen=True)
class TeamAlias:
    leagues: tuple[int, ...]
    aliases: tuple[str, ...]


DEFAULT_TEAM_ALIASES: dict[str, list[TeamAlias]] = {
    "Los Angeles Clippers": [TeamAlias((1,), ("LA Clippers", "Los Angeles Clippers"))],
    "Portland Trail Blazers": [TeamAlias((1,), ("Portland Trailblazers", "Portland Trail Blazers"))],
    "Miami Florida": [TeamAlias((2, 3), ("Miami (FL)", "Miami Florida", "Miami FL"))],
    "Miami Ohio": [TeamAlias((2, 3), ("Miami (OH)", "Miami Ohio", "Miami OH"))],
    "Connecticut": [TeamAlias((2, 3), ("UConn", "Connecticut"))],
}


class TeamAliasResolver:
    def __init__(
        self,
        table: Mapping[str, Iterable[TeamAlias]] | None = None,
        mascot_sports: Iterable[int] = MASCOT_SPORTS,
    ):
        self._mascot_sports = frozenset(mascot_sports)
        self._index: dict[tuple[int, str], str] = {}
        for canonical, entries in (table if table is not None else DEFAULT_TEAM_ALIASES).items():
            self.add(canonical, entries)

    def add(self, canonical: str, entries: Iterable[TeamAlias]) -> None:
        for entry in entries:
            for league in entry.leagues:
                for alias in entry.aliases:
                    key = (int(league), normalize_team_alias(alias))
                    previous = self._index.get(key)
                    if previous and previous != canonical:
                        logger.warning(
                            "Alias %r in league %s remapped from %r to %r", alias, league, previous, canonical
                        )
                    self._index[key] = canonical

    def resolve(self, raw: str, league: int) -> str:
        """Canonical name for raw in league, or raw unchanged when no alias exists."""
        return self._index.get((int(league), normalize_team_alias(raw)), raw)

    def name_for_sport(self, sport: int, name: str, mascot: str | None = None) -> str:
        if int(sport) in self._mascot_sports and mascot:
            return self.resolve(f"{name} {mascot}", sport)
        return self.resolve(name, sport)

    def match_key(self, raw: str, league: int) -> str:
        """Comparison form of the resolved name."""
        return normalize_team_alias(self.resolve(raw, league))


def load_alias_file(path: str | Path) -> dict[str, list[TeamAlias]]:
    """Read {"Canonical": [{"leagues": [..], "aliases": [..]}]} from a JSON file."""
    raw = json.loads(Path(path).read_text(encoding="utf-8"))
    table: dict[str, list[TeamAlias]] = {}
    for canonical, entries in raw.items():
        table[canonical] = [
            TeamAlias(tuple(int(x) for x in entry["leagues"]), tuple(str(a) for a in entry["aliases"]))
            for entry in entries
        ]
    return table


def build_resolver(aliases_file: str = "") -> TeamAliasResolver:
    resolver = TeamAliasResolver()
    if aliases_file:
        extra = load_alias_file(aliases_file)
        for canonical, entries in extra.items():
            resolver.add(canonical, entries)
        logger.info("Loaded %d team alias overrides from %s", len(extra), aliases_file)
    return resolver
