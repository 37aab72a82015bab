from sqlalchemy import Column, Integer, String, Float, Date, Enum as SAEnum

from erp_insights.core.database import Base
from erp_insights.models.records import Channel, OrderRecord


class Order(Base):
    __tablename__ = "orders"

    id = Column(Integer, primary_key=True, index=True)
    order_number = Column(String(64), nullable=False, default="")
    product_id = Column(String(64), nullable=False, index=True)
    customer = Column(String(255), nullable=False, default="Unknown", index=True)
    country = Column(String(100), nullable=False, default="Unknown")
    quantity = Column(Float, nullable=False, default=0.0)  # MT
    value = Column(Float, nullable=False, default=0.0)
    order_date = Column(Date, nullable=True, index=True)
    month = Column(String(7), nullable=True, index=True)  # YYYY-MM, derived from order_date
    channel = Column(SAEnum(Channel, name="order_channel"), nullable=False, index=True)
    import_job_id = Column(Integer, nullable=True)

    def to_record(self) -> OrderRecord:
        return OrderRecord(
            order_number=self.order_number or "",
            product_id=self.product_id,
            customer=self.customer,
            country=self.country,
            quantity=self.quantity or 0.0,
            value=self.value or 0.0,
            date=self.order_date,
            channel=self.channel,
        )

    def __repr__(self):
        return f"<Order({self.channel.value} {self.order_number} {self.product_id} {self.quantity} MT)>"
