"""
QuickBooks API 응답 -> 미러 행 모델 변환

QBO 엔티티 JSON을 adapters.models의 표준 모델로 변환.
금액은 Decimal로 변환하고 원본 JSON은 raw로 보존한다.
"""

from typing import Any

from adapters.models import (
    AccountRow,
    CompanyInfoRow,
    ItemRow,
    NamedRow,
    PartyRow,
    TransactionRow,
)
from core.ledger.normalizer import ref_value
from core.utils.money import to_decimal


def _active(data: dict[str, Any]) -> bool:
    # Active 필드가 없는 엔티티는 활성으로 간주
    return bool(data.get("Active", True))


def parse_company_info(realm_id: str, data: dict[str, Any]) -> CompanyInfoRow:
    """GET companyinfo/{realmId} → CompanyInfoRow"""
    address = data.get("CompanyAddr") or {}
    return CompanyInfoRow(
        realm_id=realm_id,
        company_name=data.get("CompanyName"),
        legal_name=data.get("LegalName"),
        country=data.get("Country") or address.get("Country"),
        fiscal_year_start_month=data.get("FiscalYearStartMonth"),
        raw=data,
    )


def parse_account(data: dict[str, Any]) -> AccountRow:
    """Account 응답 → AccountRow

    예시:
    {
        "Id": "33", "SyncToken": "0", "Name": "Accounts Receivable (A/R)",
        "AccountType": "Accounts Receivable", "AccountSubType": "AccountsReceivable",
        "Classification": "Asset", "CurrentBalance": 5281.52, "Active": true
    }
    """
    return AccountRow(
        qb_id=str(data["Id"]),
        sync_token=data.get("SyncToken"),
        name=data.get("Name"),
        fully_qualified_name=data.get("FullyQualifiedName"),
        account_type=data.get("AccountType"),
        account_sub_type=data.get("AccountSubType"),
        classification=data.get("Classification"),
        current_balance=to_decimal(data.get("CurrentBalance")),
        is_active=_active(data),
        raw=data,
    )


def parse_party(data: dict[str, Any]) -> PartyRow:
    """Customer / Vendor 응답 → PartyRow"""
    email = (data.get("PrimaryEmailAddr") or {}).get("Address")
    return PartyRow(
        qb_id=str(data["Id"]),
        sync_token=data.get("SyncToken"),
        display_name=data.get("DisplayName"),
        company_name=data.get("CompanyName"),
        email=email,
        balance=to_decimal(data.get("Balance")),
        is_active=_active(data),
        raw=data,
    )


def parse_item(data: dict[str, Any]) -> ItemRow:
    """Item 응답 → ItemRow"""
    unit_price = data.get("UnitPrice")
    return ItemRow(
        qb_id=str(data["Id"]),
        sync_token=data.get("SyncToken"),
        name=data.get("Name"),
        item_type=data.get("Type"),
        unit_price=to_decimal(unit_price) if unit_price is not None else None,
        description=data.get("Description"),
        income_account_qb_id=ref_value(data.get("IncomeAccountRef")),
        expense_account_qb_id=ref_value(data.get("ExpenseAccountRef")),
        is_active=_active(data),
        raw=data,
    )


def parse_named(data: dict[str, Any]) -> NamedRow:
    """Class / Department 응답 → NamedRow"""
    return NamedRow(
        qb_id=str(data["Id"]),
        sync_token=data.get("SyncToken"),
        name=data.get("Name"),
        fully_qualified_name=data.get("FullyQualifiedName"),
        is_active=_active(data),
        raw=data,
    )


def parse_transaction(entity_type: str, data: dict[str, Any]) -> TransactionRow:
    """거래 응답 → TransactionRow

    Transfer/Deposit처럼 고객/거래처가 없는 거래도 허용.
    Bill/VendorCredit/PurchaseOrder는 VendorRef, 매출 문서는 CustomerRef를 가진다.
    """
    total_amt = data.get("TotalAmt")
    if total_amt is None and entity_type == "Transfer":
        total_amt = data.get("Amount")
    balance = data.get("Balance")
    private_note = str(data.get("PrivateNote") or "")

    return TransactionRow(
        qb_id=str(data["Id"]),
        entity_type=entity_type,
        sync_token=data.get("SyncToken"),
        txn_date=data.get("TxnDate"),
        doc_number=data.get("DocNumber"),
        total_amt=to_decimal(total_amt) if total_amt is not None else None,
        balance=to_decimal(balance) if balance is not None else None,
        customer_qb_id=ref_value(data.get("CustomerRef")),
        vendor_qb_id=ref_value(data.get("VendorRef")),
        # QBO는 무효화 거래의 금액을 0으로 만들고 메모에 "Voided"를 남긴다
        is_voided=private_note.startswith("Voided"),
        raw=data,
    )
