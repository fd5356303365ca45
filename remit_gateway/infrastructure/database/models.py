"""SQLAlchemy ORM models for the transfer store"""

from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, Numeric, String, Text, JSON
from sqlalchemy.orm import declarative_base, relationship

Base = declarative_base()

# Amounts and frozen rates share one column type
Money = Numeric(28, 10)


class TransferRecord(Base):
    """Cross-border transfer row; status is the compare-and-swap key"""

    __tablename__ = "remittance_transfer"

    id = Column(String(64), primary_key=True)
    tracking_number = Column(String(32), nullable=False, unique=True, index=True)
    sender_id = Column(Text, nullable=False, index=True)
    recipient = Column(JSON, nullable=False)
    origin_country = Column(String(2), nullable=False)
    destination_country = Column(String(2), nullable=False)
    origin_currency = Column(String(8), nullable=False)
    destination_currency = Column(String(8), nullable=False)
    send_amount = Column(Money, nullable=False)
    fee = Column(Money, nullable=False)
    exchange_rate = Column(Money, nullable=False)
    receive_amount = Column(Money, nullable=False)
    total_cost = Column(Money, nullable=False)
    payment_method = Column(Text, nullable=False, index=True)
    delivery_method = Column(Text, nullable=False)
    compliance_level = Column(String(16), nullable=False)
    status = Column(String(32), nullable=False, index=True)
    estimated_delivery = Column(DateTime(timezone=True), nullable=False)
    actual_delivery = Column(DateTime(timezone=True), nullable=True)
    purpose = Column(Text, nullable=False)
    source_of_funds = Column(Text, nullable=False)
    beneficiary_relationship = Column(Text, nullable=False)
    partner_id = Column(Text, nullable=True)
    partner_reference = Column(Text, nullable=True)
    cancellation_reason = Column(Text, nullable=True)
    failure_reason = Column(Text, nullable=True)
    refund_amount = Column(Money, nullable=True)
    refund_date = Column(DateTime(timezone=True), nullable=True)
    status_history = Column(JSON, nullable=False, default=list)
    created_at = Column(DateTime(timezone=True), nullable=False, index=True)
    updated_at = Column(DateTime(timezone=True), nullable=False)

    checks = relationship(
        "ComplianceCheckRecord",
        back_populates="transfer",
        cascade="all, delete-orphan",
        order_by="ComplianceCheckRecord.position",
    )


class ComplianceCheckRecord(Base):
    """Append-only screening result attached to a transfer"""

    __tablename__ = "compliance_check"

    id = Column(Integer, primary_key=True, autoincrement=True)
    transfer_id = Column(String(64), ForeignKey("remittance_transfer.id", ondelete="CASCADE"), nullable=False, index=True)
    position = Column(Integer, nullable=False)
    check_type = Column(String(32), nullable=False)
    status = Column(String(32), nullable=False)
    risk_score = Column(Float, nullable=False)
    flags = Column(JSON, nullable=False, default=list)
    detail = Column(Text, nullable=True)
    checked_at = Column(DateTime(timezone=True), nullable=False)

    transfer = relationship("TransferRecord", back_populates="checks")
