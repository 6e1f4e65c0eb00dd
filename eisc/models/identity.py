from pydantic import BaseModel


class Identity(BaseModel):
    """Acting user as supplied by the identity provider."""
    user_id: str
    display_name: str
    email: str = ""
    is_new_user: bool = False  # seeds the registration bonus on first ledger load
