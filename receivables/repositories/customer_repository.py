from uuid import UUID

from sqlalchemy.orm import Session

from receivables.models.customer import Customer
from receivables.schemas.customer import CustomerCreate


class CustomerRepository:
    def __init__(self, db: Session):
        self.db = db

    def get_by_id(self, customer_id: UUID) -> Customer | None:
        return self.db.query(Customer).filter(Customer.id == customer_id).first()

    def exists(self, customer_id: UUID) -> bool:
        return self.get_by_id(customer_id) is not None

    def create(self, data: CustomerCreate) -> Customer:
        customer = Customer(**data.model_dump())
        self.db.add(customer)
        self.db.commit()
        self.db.refresh(customer)
        return customer
