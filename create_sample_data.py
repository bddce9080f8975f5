#!/usr/bin/env python3
"""Script to create sample customers, invoices and a report template."""

import random
from datetime import datetime, timedelta
from decimal import Decimal

from advanced_reports.core.database import DWSessionLocal, SessionLocal, create_all_tables
from advanced_reports.datawarehouse.models import Customer, Invoice
from advanced_reports.reporting.models import AdvancedReport

REGIONS = ["North", "South", "East", "West"]
STATUSES = ["open", "paid", "paid", "paid", "void"]


def financial_year(issued_at: datetime) -> str:
    """April to March financial years, e.g. ``2023-2024``."""
    start = issued_at.year if issued_at.month >= 4 else issued_at.year - 1
    return f"{start}-{start + 1}"


def create_sample_data(customer_count: int = 12, invoices_per_customer: int = 8, seed: int = 42):
    """Replace the warehouse contents with generated customers and invoices."""
    rng = random.Random(seed)
    dw_db = DWSessionLocal()

    try:
        print("Clearing existing data...")
        dw_db.query(Invoice).delete()
        dw_db.query(Customer).delete()
        dw_db.commit()

        print("Creating sample customers and invoices...")
        start = datetime(2023, 1, 1)
        invoice_number = 1
        for index in range(1, customer_count + 1):
            customer = Customer(
                id=index,
                name=f"Customer {index:02d}",
                region=rng.choice(REGIONS),
                age=rng.choice([None, rng.randint(18, 80)]),
            )
            dw_db.add(customer)

            for _ in range(invoices_per_customer):
                issued_at = start + timedelta(days=rng.randint(0, 720))
                dw_db.add(
                    Invoice(
                        number=f"{invoice_number}-{rng.choice(['doc', 'inv', 'cr'])}",
                        customer_id=customer.id,
                        status=rng.choice(STATUSES),
                        amount=Decimal(rng.randint(1000, 500000)) / 100,
                        issued_at=issued_at,
                        financial_year=financial_year(issued_at),
                    )
                )
                invoice_number += 1

        dw_db.commit()
        print(f"Created {customer_count} customers with {customer_count * invoices_per_customer} invoices")
    except Exception:
        dw_db.rollback()
        raise
    finally:
        dw_db.close()


def create_sample_report():
    """Add a paid-invoices template paginated by region."""
    db = SessionLocal()
    try:
        report = AdvancedReport(
            title="Paid Invoices by Region",
            description="Paid invoices in the requested financial year",
            report_type="invoices",
            report_fields=["Customer.name", "Invoice.number", "Invoice.issued_at", "Invoice.amount"],
            report_headers=["Customer", "Invoice", "Issued", "Amount"],
            condition_fields=["Invoice.status", "Invoice.financial_year"],
            condition_ops=["=", "="],
            condition_values=["paid", "param:year"],
            sort_by=["Customer.name", "Invoice.number"],
            sort_dir=["ASC"],
            numeric_sort=["Invoice.number"],
            clear_columns=["Customer.name"],
            add_cols=["Invoice.amount"],
            paginate_by="Customer.region",
            page_header="Region: $name",
            report_params={"year": "2023-2024"},
        )
        db.add(report)
        db.commit()
        print(f"Created report template {report.id}: {report.title}")
    finally:
        db.close()


if __name__ == "__main__":
    create_all_tables()
    create_sample_data()
    create_sample_report()
