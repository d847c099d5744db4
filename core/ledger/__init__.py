"""
GL (General Ledger) 정규화

QBO 거래 원본을 차변/대변 GL 라인으로 재구성한다.

사용 예시:
```python
from core.ledger import GLNormalizer, GLStore

normalizer = GLNormalizer(GLStore(db))
line_count = await normalizer.normalize(
    tenant_id, qb_transaction_id, "Invoice", raw_json, lookups
)
```
"""

from core.ledger.normalizer import POSTING_RULES, GLNormalizer, build_gl_transaction
from core.ledger.store import GLStore
from core.ledger.types import (
    FAMILY_BY_ENTITY,
    GLLine,
    GLTransaction,
    JournalSide,
    LookupTables,
    TransactionFamily,
    family_for,
)

__all__ = [
    # 핵심 클래스
    "GLNormalizer",
    "GLStore",
    "GLLine",
    "GLTransaction",
    "LookupTables",
    # Enum
    "JournalSide",
    "TransactionFamily",
    # 규칙
    "FAMILY_BY_ENTITY",
    "POSTING_RULES",
    "build_gl_transaction",
    "family_for",
]
