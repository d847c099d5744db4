"""
Sync Engine

QuickBooks 미러 동기화, GL 정규화, 시산표 대사 실행 계층.
"""
