"""
미러 행 모델 변환 테스트

QBO 응답 JSON → adapters.models (Decimal 변환, raw 보존)
"""

from decimal import Decimal

from adapters.quickbooks.models import (
    parse_account,
    parse_company_info,
    parse_item,
    parse_named,
    parse_party,
    parse_transaction,
)


class TestParseCompanyInfo:
    def test_country_from_address(self) -> None:
        data = {
            "CompanyName": "Sandbox Company_US_1",
            "LegalName": "Sandbox Company_US_1",
            "CompanyAddr": {"Country": "US"},
            "FiscalYearStartMonth": "January",
        }

        row = parse_company_info("9130", data)

        assert row.realm_id == "9130"
        assert row.country == "US"
        assert row.fiscal_year_start_month == "January"
        assert row.raw is data


class TestParseAccount:
    def test_account(self) -> None:
        data = {
            "Id": 33,
            "SyncToken": "0",
            "Name": "Accounts Receivable (A/R)",
            "AccountType": "Accounts Receivable",
            "Classification": "Asset",
            "CurrentBalance": 5281.52,
            "Active": True,
        }

        row = parse_account(data)

        assert row.qb_id == "33"
        assert row.current_balance == Decimal("5281.52")
        assert row.account_type == "Accounts Receivable"
        assert row.is_active is True

    def test_missing_active_means_active(self) -> None:
        assert parse_account({"Id": "1"}).is_active is True

    def test_inactive(self) -> None:
        assert parse_account({"Id": "1", "Active": False}).is_active is False


class TestParseParty:
    def test_customer(self) -> None:
        row = parse_party({
            "Id": "58",
            "DisplayName": "Amy's Bird Sanctuary",
            "PrimaryEmailAddr": {"Address": "birds@example.com"},
            "Balance": "239.00",
        })

        assert row.display_name == "Amy's Bird Sanctuary"
        assert row.email == "birds@example.com"
        assert row.balance == Decimal("239.00")

    def test_no_email(self) -> None:
        assert parse_party({"Id": "41"}).email is None


class TestParseItem:
    def test_item_accounts(self) -> None:
        row = parse_item({
            "Id": "5",
            "Name": "Rock Fountain",
            "Type": "Inventory",
            "UnitPrice": 275,
            "IncomeAccountRef": {"value": "79"},
            "ExpenseAccountRef": {"value": "80"},
        })

        assert row.unit_price == Decimal("275")
        assert row.income_account_qb_id == "79"
        assert row.expense_account_qb_id == "80"

    def test_no_unit_price(self) -> None:
        assert parse_item({"Id": "6"}).unit_price is None


class TestParseNamed:
    def test_class(self) -> None:
        row = parse_named({"Id": "200", "Name": "East", "FullyQualifiedName": "Region:East"})

        assert row.fully_qualified_name == "Region:East"


class TestParseTransaction:
    def test_invoice(self) -> None:
        row = parse_transaction("Invoice", {
            "Id": "130",
            "SyncToken": "2",
            "TxnDate": "2024-03-01",
            "DocNumber": "1037",
            "TotalAmt": 169.50,
            "Balance": 169.50,
            "CustomerRef": {"value": "58"},
        })

        assert row.total_amt == Decimal("169.5")
        assert row.balance == Decimal("169.5")
        assert row.customer_qb_id == "58"
        assert row.vendor_qb_id is None
        assert row.is_voided is False

    def test_transfer_uses_amount(self) -> None:
        row = parse_transaction("Transfer", {"Id": "1", "Amount": 500})

        assert row.total_amt == Decimal("500")
        assert row.customer_qb_id is None

    def test_voided_memo(self) -> None:
        row = parse_transaction("Bill", {
            "Id": "9",
            "TotalAmt": 0,
            "PrivateNote": "Voided - duplicate",
            "VendorRef": {"value": "41"},
        })

        assert row.is_voided is True
        assert row.total_amt == Decimal("0")
        assert row.vendor_qb_id == "41"
