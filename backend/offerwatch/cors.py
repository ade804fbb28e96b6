# offerwatch/cors.py
"""
CORS origin policy.

Origins are checked against an ordered rule list, first match wins:

    localhost          http(s)://localhost:<port>
    loopback           http(s)://127.0.0.1:<port>
    browser-extension  chrome-extension://<id>
    replit-app         *.replit.app
    replit-dev         *.replit.dev
    allow-all          anything (only when CORS_ALLOW_ALL is on)

allow-all is a deliberate, permissive policy kept for the browser
extension and bookmarklet, which call the API from arbitrary pages.
Because credentials are allowed, the request origin is echoed back
rather than "*". Set CORS_ALLOW_ALL=false to restrict to the named rules.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from typing import List, Optional

from flask import Flask
from flask_cors import CORS

logger = logging.getLogger(__name__)

ALLOWED_METHODS = ["GET", "POST", "PUT", "DELETE", "OPTIONS", "PATCH"]
ALLOWED_HEADERS = ["Content-Type", "Authorization"]


@dataclass(frozen=True)
class OriginRule:
    name: str
    pattern: re.Pattern
    permissive: bool = False

    def matches(self, origin: str) -> bool:
        return bool(self.pattern.match(origin))


ORIGIN_RULES: List[OriginRule] = [
    OriginRule("localhost", re.compile(r"^https?://localhost:[0-9]+$")),
    OriginRule("loopback", re.compile(r"^https?://127\.0\.0\.1:[0-9]+$")),
    OriginRule("browser-extension", re.compile(r"^chrome-extension://[a-zA-Z0-9]+$")),
    OriginRule("replit-app", re.compile(r".*\.replit\.app$")),
    OriginRule("replit-dev", re.compile(r".*\.replit\.dev$")),
]

ALLOW_ALL_RULE = OriginRule("allow-all", re.compile(r".*"), permissive=True)


def origin_rules(allow_all: bool = True) -> List[OriginRule]:
    rules = list(ORIGIN_RULES)
    if allow_all:
        rules.append(ALLOW_ALL_RULE)
    return rules


def match_origin_rule(origin: str, rules: List[OriginRule]) -> Optional[OriginRule]:
    for rule in rules:
        if rule.matches(origin):
            return rule
    return None


def init_cors(app: Flask) -> List[OriginRule]:
    rules = origin_rules(app.config.get("CORS_ALLOW_ALL", True))
    if rules[-1].permissive:
        logger.info("CORS: permissive allow-all origin rule is active")

    CORS(app, resources={
        r"/*": {
            "origins": [rule.pattern for rule in rules],
            "supports_credentials": True,
            "allow_headers": ALLOWED_HEADERS,
            "methods": ALLOWED_METHODS,
        }
    })
    app.extensions["offerwatch.cors_rules"] = rules
    return rules
