"""
Customer model.
"""
from sqlalchemy import Column, String, Boolean, Text
from sqlalchemy.orm import relationship

from .base import BaseModel


class Customer(BaseModel):
    """Customer an order is billed to; receipts are emailed when ``email`` is set."""
    __tablename__ = 'customers'

    name = Column(String(255), nullable=False, index=True)
    email = Column(String(255), nullable=True)
    phone = Column(String(20), nullable=True)
    address = Column(Text, nullable=True)
    vat_registered = Column(Boolean, default=False, nullable=False)
    vat_number = Column(String(50), nullable=True)

    orders = relationship("Order", back_populates="customer", lazy="dynamic")

    def __repr__(self):
        return f"<Customer(id={self.id}, name='{self.name}')>"
