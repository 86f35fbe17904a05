"""Candidate screening: résumé extraction, oracle-backed analysis and comparative ranking."""

from talent_screen.service import ScreeningService, build_service

__all__ = ["ScreeningService", "build_service"]
