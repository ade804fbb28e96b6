# offerwatch/scanners/sites.py
"""
The fixed set of target sites.

Override with TARGET_SITES_FILE pointing at a JSON list of objects with
keys slug, name, url and optionally promotionsUrl / signupUrl.
"""

from __future__ import annotations

import json
import logging
from typing import List, Optional

from offerwatch.config import ConfigError
from offerwatch.scanners.base import TargetSite

logger = logging.getLogger(__name__)

DEFAULT_SITES: List[TargetSite] = [
    TargetSite("chumba", "Chumba Casino", "https://www.chumbacasino.com"),
    TargetSite("luckyland", "LuckyLand Slots", "https://www.luckylandslots.com"),
    TargetSite("global-poker", "Global Poker", "https://www.globalpoker.com"),
    TargetSite("pulsz", "Pulsz", "https://www.pulsz.com"),
    TargetSite("stake-us", "Stake.us", "https://stake.us"),
    TargetSite("wow-vegas", "WOW Vegas", "https://www.wowvegas.com"),
    TargetSite("fortune-coins", "Fortune Coins", "https://www.fortunecoins.com"),
    TargetSite("high5", "High 5 Casino", "https://high5casino.com"),
    TargetSite("mcluck", "McLuck", "https://www.mcluck.com"),
    TargetSite("funrize", "Funrize", "https://funrize.com"),
    TargetSite("zula", "Zula Casino", "https://www.zulacasino.com"),
    TargetSite("crown-coins", "Crown Coins Casino", "https://crowncoinscasino.com"),
    TargetSite("sportzino", "Sportzino", "https://sportzino.com"),
    TargetSite("modo", "Modo", "https://modo.us"),
    TargetSite("hello-millions", "Hello Millions", "https://www.hellomillions.com"),
    TargetSite("realprize", "RealPrize", "https://www.realprize.com"),
    TargetSite("dingdingding", "DingDingDing", "https://www.dingdingding.com"),
    TargetSite("spree", "Spree", "https://spree.com"),
    TargetSite("jackpota", "Jackpota", "https://www.jackpota.com"),
    TargetSite("lonestar", "LoneStar Casino", "https://lonestarcasino.com"),
]


def load_sites(path: Optional[str] = None) -> List[TargetSite]:
    if not path:
        return list(DEFAULT_SITES)

    try:
        with open(path, encoding="utf-8") as fh:
            raw = json.load(fh)
    except (OSError, json.JSONDecodeError) as e:
        raise ConfigError(f"cannot read TARGET_SITES_FILE {path}: {e}")
    if not isinstance(raw, list):
        raise ConfigError(f"TARGET_SITES_FILE {path} must hold a JSON list")

    sites: List[TargetSite] = []
    seen = set()
    for entry in raw:
        try:
            site = TargetSite(
                slug=entry["slug"],
                name=entry["name"],
                url=entry["url"],
                promotions_url=entry.get("promotionsUrl"),
                signup_url=entry.get("signupUrl"),
            )
        except (KeyError, TypeError) as e:
            raise ConfigError(f"invalid site entry in {path}: {entry!r} ({e})")
        if site.slug in seen:
            raise ConfigError(f"duplicate site slug {site.slug!r} in {path}")
        seen.add(site.slug)
        sites.append(site)

    logger.info("Loaded %d target sites from %s", len(sites), path)
    return sites
