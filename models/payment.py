from datetime import datetime
from sqlalchemy import String, DateTime, ForeignKey, Numeric, JSON
from sqlalchemy.orm import Mapped, mapped_column, relationship

from core.db import Base


PAYMENT_METHODS = ("vnpay", "momo", "cod", "bank_transfer")
PAYMENT_STATUSES = ("pending", "processing", "completed", "failed", "cancelled", "refunded")

# Refund rows written before refund_of_payment_id existed are only
# recognisable by this transaction id prefix.
REFUND_PREFIX = "REFUND-"


class Payment(Base):
    __tablename__ = "payments"

    id: Mapped[int] = mapped_column(primary_key=True, index=True)
    order_id: Mapped[int | None] = mapped_column(ForeignKey("orders.id", ondelete="SET NULL"), nullable=True, index=True)
    payment_method: Mapped[str] = mapped_column(String(30))
    payment_provider: Mapped[str | None] = mapped_column(String(50), nullable=True)
    transaction_id: Mapped[str | None] = mapped_column(String(100), nullable=True, index=True)
    amount: Mapped[float] = mapped_column(Numeric(12, 2))
    currency: Mapped[str] = mapped_column(String(3), default="VND")
    status: Mapped[str] = mapped_column(String(30), default="pending", index=True)
    gateway_response: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    refund_of_payment_id: Mapped[int | None] = mapped_column(
        ForeignKey("payments.id", ondelete="RESTRICT"), nullable=True, index=True
    )
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
    processed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    order = relationship("Order", back_populates="payments")

    @property
    def is_refund(self) -> bool:
        if self.refund_of_payment_id is not None:
            return True
        return bool(self.transaction_id and self.transaction_id.startswith(REFUND_PREFIX))
