"""
Test configuration and shared fixtures for the advanced reports test suite.
Provides database setup, sample warehouse records and report definitions.
"""

import pytest
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool
from fastapi.testclient import TestClient

from advanced_reports.app import create_app
from advanced_reports.core.config import ReportSettings, get_settings
from advanced_reports.core.database import Base, DWBase, get_db, get_dw_db
from advanced_reports.datawarehouse.models import Customer, Invoice
from advanced_reports.reporting.models import AdvancedReport


# ===== DATABASE SETUP =====

@pytest.fixture(scope="session")
def config_engine():
    """Create in-memory SQLite engine for config database"""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    # Import all config models to register them
    from advanced_reports.reporting.models import AdvancedReport, ReportGenerationLog  # noqa: F401
    from advanced_reports.logging.models import Log  # noqa: F401
    Base.metadata.create_all(bind=engine)
    return engine


@pytest.fixture(scope="session")
def dw_engine():
    """Create in-memory SQLite engine for data warehouse database"""
    engine = create_engine(
        "sqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    DWBase.metadata.create_all(bind=engine)
    return engine


@pytest.fixture(scope="session")
def config_session_factory(config_engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=config_engine)


@pytest.fixture(scope="function")
def config_db_session(config_engine, config_session_factory):
    """Create a database session for config database"""
    session = config_session_factory()
    try:
        yield session
    finally:
        session.rollback()
        session.close()
        # Clean up all data after each test
        Base.metadata.drop_all(bind=config_engine)
        Base.metadata.create_all(bind=config_engine)


@pytest.fixture(scope="function")
def dw_db_session(dw_engine):
    """Create a database session for data warehouse database"""
    TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=dw_engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.rollback()
        session.close()
        DWBase.metadata.drop_all(bind=dw_engine)
        DWBase.metadata.create_all(bind=dw_engine)


@pytest.fixture
def report_settings(tmp_path) -> ReportSettings:
    """Settings storing generated files below a temporary directory"""
    return ReportSettings(
        database_url="sqlite:///:memory:",
        data_warehouse_url="sqlite:///:memory:",
        storage_dir=str(tmp_path / "storage"),
        formats=["html", "csv"],
    )


@pytest.fixture
def client(config_db_session, dw_db_session, config_session_factory, report_settings):
    """Create FastAPI test client with database overrides"""
    app = create_app(init_database=False, log_sessions=config_session_factory)

    def override_get_db():
        try:
            yield config_db_session
        finally:
            pass

    def override_get_dw_db():
        try:
            yield dw_db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_dw_db] = override_get_dw_db
    app.dependency_overrides[get_settings] = lambda: report_settings

    with TestClient(app) as test_client:
        yield test_client

    app.dependency_overrides.clear()


# ===== SAMPLE DATA FIXTURES =====

@pytest.fixture
def sample_customers(dw_db_session) -> List[Customer]:
    """Create sample customers for testing"""
    customers = [
        Customer(id=1, name="Acme", region="North", age=40),
        Customer(id=2, name="Globex", region="South", age=35),
        Customer(id=3, name="Initech", region="North", age=None),
    ]
    for customer in customers:
        dw_db_session.add(customer)
    dw_db_session.commit()
    return customers


@pytest.fixture
def sample_invoices(dw_db_session, sample_customers) -> List[Invoice]:
    """Create sample invoices; numbers are free text with leading digits"""
    invoices = [
        Invoice(id=1, number="11-doc", customer_id=1, status="paid", amount=Decimal("150.00"),
                issued_at=datetime(2024, 1, 15), financial_year="2023-2024"),
        Invoice(id=2, number="2-doc", customer_id=1, status="open", amount=Decimal("75.50"),
                issued_at=datetime(2024, 2, 1), financial_year="2023-2024"),
        Invoice(id=3, number="100", customer_id=2, status="paid", amount=Decimal("300.00"),
                issued_at=datetime(2024, 3, 10), financial_year="2023-2024"),
        Invoice(id=4, number="9-misc", customer_id=3, status="void", amount=Decimal("20.00"),
                issued_at=datetime(2024, 4, 5), financial_year="2024-2025"),
    ]
    for invoice in invoices:
        dw_db_session.add(invoice)
    dw_db_session.commit()
    return invoices


@pytest.fixture
def invoice_records() -> List[Dict[str, Any]]:
    """The sample invoices as flat records keyed by field name"""
    return [
        {"ID": 1, "Invoice.number": "11-doc", "Invoice.status": "paid", "Invoice.amount": Decimal("150.00"),
         "Customer.name": "Acme", "Customer.region": "North", "Customer.age": 40},
        {"ID": 2, "Invoice.number": "2-doc", "Invoice.status": "open", "Invoice.amount": Decimal("75.50"),
         "Customer.name": "Acme", "Customer.region": "North", "Customer.age": 40},
        {"ID": 3, "Invoice.number": "100", "Invoice.status": "paid", "Invoice.amount": Decimal("300.00"),
         "Customer.name": "Globex", "Customer.region": "South", "Customer.age": 35},
        {"ID": 4, "Invoice.number": "9-misc", "Invoice.status": "void", "Invoice.amount": Decimal("20.00"),
         "Customer.name": "Initech", "Customer.region": "North", "Customer.age": None},
    ]


@pytest.fixture
def sample_report(config_db_session) -> AdvancedReport:
    """Create a sample invoice report template"""
    report = AdvancedReport(
        title="Invoices by Customer",
        description="Paid and open invoices",
        report_type="invoices",
        report_fields=["Customer.name", "Invoice.number", "Invoice.amount"],
        report_headers=["Client", "", ""],
        condition_fields=["Invoice.financial_year"],
        condition_ops=["="],
        condition_values=["param:year"],
        sort_by=["Customer.name", "Invoice.number"],
        sort_dir=["ASC"],
        numeric_sort=["Invoice.number"],
        add_cols=["Invoice.amount"],
        report_params={"year": "2023-2024"},
        created_by="test_user",
        is_active=True,
    )
    config_db_session.add(report)
    config_db_session.commit()
    config_db_session.refresh(report)
    return report


# ===== UTILITY FIXTURES =====

@pytest.fixture
def api_headers():
    """Standard API headers for testing"""
    return {
        "Content-Type": "application/json",
        "Accept": "application/json"
    }
