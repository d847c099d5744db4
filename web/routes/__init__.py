"""
API 라우트 패키지

각 기능별 라우터 모듈:
- health: 헬스 체크
- sync: 동기화 실행 / 로그 조회
- reconciliation: 시산표 대사 결과
"""
