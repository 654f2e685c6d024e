"""
Genre Classifier.

Maps free-text genre labels ("jazz rap", "electropop", "vaporwave") onto the
seven semantic categories with fractional weights, using an ordered
dictionary of substring rules.
"""
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional, Tuple

from .categories import CLASSICAL, ELECTRONIC, FOLK, HIP_HOP, JAZZ, POP, ROCK
from .core import CategoryVector

Weights = Tuple[Tuple[str, float], ...]


@dataclass(frozen=True)
class Rule:
    """
    One rule family: fires when any keyword is a substring of the label.
    Refinements are checked in order and override the family's base weights.
    """
    keywords: Tuple[str, ...]
    weights: Weights
    refinements: Tuple[Tuple[Tuple[str, ...], Weights], ...] = ()

    def matches(self, label: str) -> bool:
        return any(k in label for k in self.keywords)

    def resolve(self, label: str) -> Weights:
        for keywords, weights in self.refinements:
            if any(k in label for k in keywords):
                return weights
        return self.weights


# Order matters: hip-hop before pop, pop before rock, rock before electronic.
# "pop rap" must land in the hip-hop family and "electropop" in the pop family.
RULES: Tuple[Rule, ...] = (
    Rule(
        keywords=("hip hop", "hip-hop", "rap", "r&b", "trap", "drill", "grime"),
        weights=((HIP_HOP, 1.0),),
        refinements=(
            (("jazz", "neo"), ((HIP_HOP, 0.6), (JAZZ, 0.4))),
            (("pop",), ((HIP_HOP, 0.5), (POP, 0.5))),
        ),
    ),
    Rule(
        keywords=("soul", "funk", "disco"),
        weights=((HIP_HOP, 0.8), (JAZZ, 0.2)),
        refinements=(
            (("neo",), ((HIP_HOP, 0.7), (JAZZ, 0.3))),
            (("pop",), ((POP, 0.6), (HIP_HOP, 0.4))),
            (("disco",), ((HIP_HOP, 0.4), (ELECTRONIC, 0.6))),
        ),
    ),
    Rule(
        keywords=("pop",),
        weights=((POP, 1.0),),
        refinements=(
            (("indie",), ((POP, 0.6), (ROCK, 0.4))),
            (("synth", "elect"), ((POP, 0.5), (ELECTRONIC, 0.5))),
            (("rap", "hop"), ((POP, 0.5), (HIP_HOP, 0.5))),
            (("punk",), ((POP, 0.4), (ROCK, 0.6))),
        ),
    ),
    Rule(
        keywords=("rock", "metal", "punk", "grunge"),
        weights=((ROCK, 1.0),),
        refinements=(
            (("soft", "folk"), ((ROCK, 0.5), (FOLK, 0.5))),
            (("electronic", "industrial"), ((ROCK, 0.5), (ELECTRONIC, 0.5))),
            (("psychedelic",), ((ROCK, 0.7), (ELECTRONIC, 0.3))),
        ),
    ),
    Rule(
        keywords=("electronic", "edm", "house", "techno", "dance", "trance", "dubstep", "bass"),
        weights=((ELECTRONIC, 1.0),),
        refinements=(
            (("pop",), ((ELECTRONIC, 0.6), (POP, 0.4))),
            (("rock",), ((ELECTRONIC, 0.6), (ROCK, 0.4))),
            (("ambient",), ((ELECTRONIC, 0.8), (CLASSICAL, 0.2))),
        ),
    ),
    Rule(
        keywords=("jazz", "blues", "bossa", "swing"),
        weights=((JAZZ, 1.0),),
        refinements=(
            (("r&b",), ((JAZZ, 0.6), (HIP_HOP, 0.4))),
            (("pop",), ((JAZZ, 0.4), (POP, 0.6))),
        ),
    ),
    Rule(
        keywords=("country", "folk", "americana", "bluegrass", "acoustic", "roots"),
        weights=((FOLK, 1.0),),
        refinements=(
            (("rock",), ((FOLK, 0.6), (ROCK, 0.4))),
            (("indie",), ((FOLK, 0.7), (POP, 0.3))),
        ),
    ),
    Rule(
        keywords=("classical", "orchestra", "piano", "soundtrack", "score", "baroque"),
        weights=((CLASSICAL, 1.0),),
        refinements=(
            (("ambient",), ((CLASSICAL, 0.5), (ELECTRONIC, 0.5))),
        ),
    ),
    # Keyword fallbacks
    Rule(keywords=("indie",), weights=((ROCK, 0.6), (POP, 0.4))),
    Rule(keywords=("alternative",), weights=((ROCK, 0.7), (POP, 0.3))),
    Rule(keywords=("ambient", "chill"), weights=((ELECTRONIC, 0.8), (CLASSICAL, 0.2))),
    Rule(keywords=("latin", "reggaeton"), weights=((POP, 0.5), (HIP_HOP, 0.5))),
    Rule(keywords=("reggae",), weights=((HIP_HOP, 0.7), (POP, 0.3))),
    Rule(keywords=("singer-songwriter",), weights=((FOLK, 0.7), (POP, 0.3))),
    Rule(keywords=("lo-fi", "lofi"), weights=((HIP_HOP, 0.5), (ELECTRONIC, 0.5))),
)

# Unknown genres drift to the top of the map, between Pop and Rock.
FALLBACK: Weights = ((POP, 0.5), (ROCK, 0.5))


@lru_cache(maxsize=4096)
def _classify_normalized(label: str) -> Weights:
    for rule in RULES:
        if rule.matches(label):
            return rule.resolve(label)
    return FALLBACK


def normalize_label(label: Optional[str]) -> str:
    return " ".join((label or "").lower().split())


def classify(label: Optional[str]) -> CategoryVector:
    """
    Returns the category vector for a genre label. Total: every input,
    including empty or unknown labels, gets a non-empty vector.
    """
    return dict(_classify_normalized(normalize_label(label)))


def dominant_category(label: Optional[str]) -> str:
    """The heaviest category of a label (first one on ties)."""
    weights = _classify_normalized(normalize_label(label))
    return max(weights, key=lambda kv: kv[1])[0]


class GenreClassifier:
    """
    Rule-based classifier. Stateless apart from an optional rule table
    override, which is handy for experimenting with new rule families.
    """

    def __init__(self, rules: Tuple[Rule, ...] = RULES, fallback: Weights = FALLBACK):
        if not fallback or not any(w > 0 for _, w in fallback):
            raise ValueError("Fallback vector needs at least one non-zero weight.")
        self.rules = rules
        self.fallback = fallback

    def classify(self, label: Optional[str]) -> CategoryVector:
        if self.rules is RULES and self.fallback is FALLBACK:
            return classify(label)
        g = normalize_label(label)
        for rule in self.rules:
            if rule.matches(g):
                return dict(rule.resolve(g))
        return dict(self.fallback)
