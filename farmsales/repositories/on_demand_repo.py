from typing import List
from sqlalchemy.orm import Session
from sqlalchemy import asc

from ..models.on_demand import OnDemandOrder
from ..schemas.on_demand import ConsolidatedSaleLine
from .base import CRUDBase


class OnDemandOrderRepository(CRUDBase[OnDemandOrder, ConsolidatedSaleLine, ConsolidatedSaleLine]):
    def __init__(self):
        super().__init__(OnDemandOrder)

    def get_group(self, db: Session, receipt_no: str) -> List[OnDemandOrder]:
        """Member rows of a consolidated group in insertion order"""
        return self.get_multi_by_field(db, "receipt_no", receipt_no)

    def get_group_for_update(self, db: Session, receipt_no: str) -> List[OnDemandOrder]:
        """Lock every member row; the last row (by id) absorbs distribution residue"""
        return (
            db.query(self.model)
            .filter(self.model.receipt_no == receipt_no)
            .order_by(asc(self.model.id))
            .with_for_update(of=self.model)
            .all()
        )


on_demand_order_repository = OnDemandOrderRepository()
