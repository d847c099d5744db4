"""
Web 서비스 패키지

비즈니스 로직 처리
"""

from web.services.sync_service import SyncService

__all__ = [
    "SyncService",
]
