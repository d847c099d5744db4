"""
Trial Balance Reconciler

외부 시산표(TrialBalance 리포트)와 내부 GL 합계를 비교.

동작 방식:
1. 외부 합계 = 시산표 Summary 행의 차변 - 대변, 계정별 순액
2. 외부 AR/AP = AgedReceivables / AgedPayables 합계
3. 내부 합계 = 삭제/무효 거래를 제외한 GL 라인 Σ차변 - Σ대변
   내부 AR = Invoice - CreditMemo 미결 잔액, 내부 AP = Bill - VendorCredit 미결 잔액
4. 허용 오차(0.01) 초과 시 불일치
5. 스냅샷 1행 저장, 불일치면 차단성 에스컬레이션 + Slack 알림(설정 시)

후속 incremental 실행은 ReconcileHandler가 담당한다.
"""

import logging
from decimal import Decimal

from adapters.interfaces import INotifier
from adapters.quickbooks.rest_client import QuickBooksRestClient
from core.constants import ReconcileThresholds
from core.ledger.store import GLStore
from core.storage.escalation_store import EscalationStore, HumanTask, TrialBalanceCheck
from core.storage.mirror_store import MirrorStore
from core.types import Connection, EscalationSeverity
from engine.errors import ENTITY_ERRORS
from engine.reconciler.drift import AccountDrift, detect_account_drift, exceeds_tolerance
from engine.reconciler.report_parser import parse_report_total, parse_trial_balance
from engine.results import ReconcileResult

logger = logging.getLogger(__name__)

ESCALATION_CATEGORY = "accounting"
ESCALATION_ENTITY_TYPE = "qb_sync"
# 에스컬레이션 설명에 포함할 계정 수
MAX_DESCRIBED_ACCOUNTS = 10

AR_TYPES = (("Invoice",), ("CreditMemo",))
AP_TYPES = (("Bill",), ("VendorCredit",))


def mismatch_title(diff: Decimal) -> str:
    return f"Trial Balance Mismatch: ${abs(diff):.2f}"


def mismatch_description(
    qb_total: Decimal,
    erp_total: Decimal,
    diff: Decimal,
    drifts: list[AccountDrift],
    unresolved_line_count: int,
    unresolved_party_count: int = 0,
) -> str:
    lines = [
        f"QB Trial Balance differs from ERP by ${abs(diff):.2f}. "
        f"QB={qb_total:.2f}, ERP={erp_total:.2f}. Review and run incremental sync.",
    ]
    if drifts:
        lines.append("")
        lines.append("Account differences:")
        for drift in drifts[:MAX_DESCRIBED_ACCOUNTS]:
            label = drift.account_name or drift.account_qb_id
            lines.append(
                f"- {label} ({drift.account_qb_id}): "
                f"QB={drift.qb_amount:.2f}, ERP={drift.erp_amount:.2f}, diff={drift.diff:.2f}"
            )
        if len(drifts) > MAX_DESCRIBED_ACCOUNTS:
            lines.append(f"- ... {len(drifts) - MAX_DESCRIBED_ACCOUNTS} more")
    if unresolved_line_count or unresolved_party_count:
        lines.append("")
    if unresolved_line_count:
        lines.append(f"GL lines without a resolved account: {unresolved_line_count}")
    if unresolved_party_count:
        lines.append(f"GL lines without a resolved customer/vendor: {unresolved_party_count}")
    return "\n".join(lines)


class TrialBalanceReconciler:
    """시산표 대사기

    Args:
        client: QBO REST 클라이언트
        mirror: 미러 저장소 (AR/AP 미결 잔액)
        gl_store: GL 저장소 (내부 합계)
        escalations: 대사 스냅샷 / 에스컬레이션 저장소
        notifier: 불일치 알림 (선택)
        tolerance: 허용 오차
    """

    def __init__(
        self,
        client: QuickBooksRestClient,
        mirror: MirrorStore,
        gl_store: GLStore,
        escalations: EscalationStore,
        notifier: INotifier | None = None,
        tolerance: Decimal = ReconcileThresholds.TOLERANCE,
    ):
        self.client = client
        self.mirror = mirror
        self.gl_store = gl_store
        self.escalations = escalations
        self.notifier = notifier
        self.tolerance = tolerance

    async def reconcile(self, connection: Connection) -> ReconcileResult:
        """대사 1회 실행

        외부 시산표 조회에 실패하면 비교/스냅샷/에스컬레이션을 생략하고
        에러만 기록한다 (외부 값 0으로 비교하면 거짓 불일치가 된다).
        """
        tenant_id = connection.tenant_id
        result = ReconcileResult()

        try:
            report = await self.client.get_report(connection, "TrialBalance")
            trial_balance = parse_trial_balance(report)
        except ENTITY_ERRORS as e:
            logger.warning("시산표 조회 실패", extra={"tenant_id": tenant_id, "error": str(e)})
            result.errors.append(f"QB Trial Balance fetch: {e}")
            return result

        total_debit, total_credit = await self.gl_store.get_totals(tenant_id)
        erp_total = total_debit - total_credit
        diff = abs(trial_balance.total - erp_total)

        result.qb_total = trial_balance.total
        result.erp_total = erp_total
        result.total_diff = diff
        result.is_balanced = not exceeds_tolerance(diff, self.tolerance)
        result.unresolved_line_count = await self.gl_store.count_unresolved_lines(tenant_id)
        result.unresolved_party_count = await self.gl_store.count_unresolved_party_lines(tenant_id)
        if result.unresolved_line_count or result.unresolved_party_count:
            logger.warning(
                "미해결 참조 GL 라인 존재",
                extra={
                    "tenant_id": tenant_id,
                    "unresolved_accounts": result.unresolved_line_count,
                    "unresolved_parties": result.unresolved_party_count,
                },
            )

        drifts = detect_account_drift(
            trial_balance.accounts,
            await self.gl_store.get_account_nets(tenant_id),
            trial_balance.names,
            self.tolerance,
        )
        result.account_diffs = [drift.to_dict() for drift in drifts]

        ar_qb, ar_erp = await self._aged_totals(connection, "AgedReceivables", AR_TYPES, result)
        ap_qb, ap_erp = await self._aged_totals(connection, "AgedPayables", AP_TYPES, result)
        if ar_qb is not None:
            result.ar_diff = ar_qb - ar_erp
        if ap_qb is not None:
            result.ap_diff = ap_qb - ap_erp

        result.check_id = await self.escalations.record_check(
            TrialBalanceCheck(
                tenant_id=tenant_id,
                qb_total=trial_balance.total,
                erp_total=erp_total,
                total_diff=diff,
                is_balanced=result.is_balanced,
                ar_qb=ar_qb,
                ar_erp=ar_erp if ar_qb is not None else None,
                ar_diff=result.ar_diff,
                ap_qb=ap_qb,
                ap_erp=ap_erp if ap_qb is not None else None,
                ap_diff=result.ap_diff,
                unresolved_line_count=result.unresolved_line_count,
                unresolved_party_count=result.unresolved_party_count,
                account_diffs=result.account_diffs,
            )
        )

        if result.is_balanced:
            logger.info(
                "시산표 일치",
                extra={"tenant_id": tenant_id, "qb_total": str(trial_balance.total), "diff": str(diff)},
            )
        else:
            result.escalation_id = await self._escalate(tenant_id, result, drifts)

        return result

    async def _aged_totals(
        self,
        connection: Connection,
        report_name: str,
        types: tuple[tuple[str, ...], tuple[str, ...]],
        result: ReconcileResult,
    ) -> tuple[Decimal | None, Decimal]:
        """(외부 총액, 내부 미결 잔액). 외부 조회 실패 시 외부 총액 None"""
        positive, negative = types
        erp_total = await self.mirror.get_open_balance(connection.tenant_id, positive, negative)
        try:
            report = await self.client.get_report(connection, report_name)
        except ENTITY_ERRORS as e:
            logger.warning(
                "Aged 리포트 조회 실패",
                extra={"tenant_id": connection.tenant_id, "report": report_name, "error": str(e)},
            )
            result.errors.append(f"{report_name} fetch: {e}")
            return None, erp_total
        return parse_report_total(report), erp_total

    async def _escalate(
        self,
        tenant_id: str,
        result: ReconcileResult,
        drifts: list[AccountDrift],
    ) -> int:
        """불일치 에스컬레이션 + 알림"""
        diff = result.total_diff
        escalation_id = await self.escalations.create_task(
            HumanTask(
                tenant_id=tenant_id,
                title=mismatch_title(diff),
                description=mismatch_description(
                    result.qb_total,
                    result.erp_total,
                    diff,
                    drifts,
                    result.unresolved_line_count,
                    result.unresolved_party_count,
                ),
                severity=EscalationSeverity.CRITICAL,
                category=ESCALATION_CATEGORY,
                entity_type=ESCALATION_ENTITY_TYPE,
                is_blocking=True,
                payload={
                    "qb_total": str(result.qb_total),
                    "erp_total": str(result.erp_total),
                    "total_diff": str(diff),
                    "check_id": result.check_id,
                    "account_diffs": result.account_diffs[:MAX_DESCRIBED_ACCOUNTS],
                },
            )
        )

        if self.notifier is not None:
            sent = await self.notifier.send_reconciliation_alert(
                tenant_id=tenant_id,
                total_diff=str(diff),
                qb_total=str(result.qb_total),
                erp_total=str(result.erp_total),
                escalation_id=escalation_id,
            )
            if not sent:
                logger.warning("대사 불일치 알림 전송 실패", extra={"tenant_id": tenant_id})

        return escalation_id
