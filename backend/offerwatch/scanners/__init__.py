# offerwatch/scanners/__init__.py
"""
Scanner subsystems: independent implementations of a scan over the
target sites. The bootstrap starts them; it does not know how they work.

    DailyScanner       primary, requests + page text
    ProxyScanner       redundant, httpx via optional proxy + page metadata
    NewMemberScanner   validates and refreshes new-member offers

Scanner API blueprint:
    from offerwatch.scanners import scanner_bp
"""

from .routes import scanner_bp

__all__ = ["scanner_bp"]
