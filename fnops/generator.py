"""Random, readable function names."""

from __future__ import annotations

import secrets

ADJECTIVES = (
    "admiring", "adoring", "affectionate", "agitated", "amazing", "angry",
    "awesome", "beautiful", "blissful", "bold", "boring", "brave", "busy",
    "charming", "clever", "cool", "compassionate", "competent", "condescending",
    "confident", "cranky", "crazy", "dazzling", "determined", "distracted",
    "dreamy", "eager", "ecstatic", "elastic", "elated", "elegant", "eloquent",
    "epic", "exciting", "fervent", "festive", "flamboyant", "focused",
    "friendly", "frosty", "funny", "gallant", "gifted", "goofy", "gracious",
    "great", "happy", "hardcore", "heuristic", "hopeful", "hungry",
    "infallible", "inspiring", "interesting", "intelligent", "jolly", "jovial",
    "keen", "kind", "laughing", "loving", "lucid", "magical", "mystifying",
    "modest", "musing", "naughty", "nervous", "nice", "nifty", "nostalgic",
    "objective", "optimistic", "peaceful", "pedantic", "pensive", "practical",
    "priceless", "quirky", "quizzical", "recursing", "relaxed", "reverent",
    "romantic", "sad", "serene", "sharp", "silly", "sleepy", "stoic",
    "strange", "stupefied", "suspicious", "sweet", "tender", "thirsty",
    "trusting", "unruffled", "upbeat", "vibrant", "vigilant", "vigorous",
    "wizardly", "wonderful", "xenodochial", "youthful", "zealous", "zen",
)

NAMES = (
    "karolina", "rafal", "krzysztof", "michal", "mateusz", "tomasz",
    "marcin", "damian", "filip", "artur", "karol", "maciej",
)


def generate_name(suffix: bool = False) -> str:
    """Return a name like 'quizzical-rafal'; with suffix, a digit 0-9 is appended."""
    name = f"{secrets.choice(ADJECTIVES)}-{secrets.choice(NAMES)}"
    if suffix:
        name = f"{name}{secrets.randbelow(10)}"
    return name