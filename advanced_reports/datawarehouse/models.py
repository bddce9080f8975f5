"""Database models for the data warehouse the default report type reads from."""

from datetime import datetime

from sqlalchemy import Column, Integer, String, Numeric, DateTime, ForeignKey
from sqlalchemy.orm import relationship
from advanced_reports.core.database import DWBase as Base


class Customer(Base):
    """Customer billed by invoices."""

    __tablename__ = "customer"

    id = Column(Integer, primary_key=True)
    name = Column(String(128), nullable=False)
    region = Column(String(64), nullable=True)
    age = Column(Integer, nullable=True)

    invoices = relationship("Invoice", back_populates="customer")


class Invoice(Base):
    """Invoice record. ``number`` is free text such as ``11-doc``."""

    __tablename__ = "invoice"

    id = Column(Integer, primary_key=True)
    number = Column(String(32), nullable=False)
    customer_id = Column(Integer, ForeignKey("customer.id"), nullable=False)
    status = Column(String(16), nullable=False, default="open")
    amount = Column(Numeric(12, 2), nullable=False, default=0)
    issued_at = Column(DateTime, default=datetime.now)
    financial_year = Column(String(9), nullable=True)

    customer = relationship("Customer", back_populates="invoices")
