from pydantic import BaseModel


class AuthenticatedAccount(BaseModel):
    """Account context passed through authentication dependencies"""

    account_id: int

    class Config:
        from_attributes = True
