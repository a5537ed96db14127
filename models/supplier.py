from pydantic import BaseModel, Field


class Supplier(BaseModel):
    """
    A vendor products are bought from.

    Products, purchase orders, and requisitions refer to suppliers by id
    only; deleting a supplier leaves those references dangling.
    """
    id: str
    name: str
    contact_email: str = ""
    lead_time_days: int = Field(default=7, ge=1)
