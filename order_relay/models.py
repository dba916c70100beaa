"""
models.py — Data Models of the Relay

Pydantic models for the canonical shapes the relay hands to browser clients
and for the cart lines it accepts on order submission.

Models:
    - CatalogItem: One normalized catalog entry.
    - CartLine: One line of a submitted cart.
    - AdminRecord: One administrator as reported by the backend.
    - RegisterAdminRequest / AdminTargetRequest / UserIdRequest: Inbound POST bodies.
"""

from typing import Optional, Union

from pydantic import BaseModel, Field, NonNegativeInt, confloat

# JSON such as 1e999 decodes to inf; prices must stay finite
Price = Union[NonNegativeInt, confloat(ge=0, allow_inf_nan=False)]


class CatalogItem(BaseModel):
    """
    A normalized catalog entry.

    Attributes:
        id (str): Backend id, or a slug derived from category, subcategory, name and row index.
        category (str): Top-level category.
        subcategory (str): Second-level category.
        name (str): Display name. Never empty.
        price (int | float): Unit price, never negative.
        imageUrl (str): Image address, may be empty.
    """
    id: str
    category: str = ""
    subcategory: str = ""
    name: str = Field(..., min_length=1)
    price: Price = 0
    imageUrl: str = ""


class CartLine(BaseModel):
    """
    A single line of a cart as sent by the client.

    Attributes:
        id (str): Catalog item id.
        name (str): Item name at the time it was added.
        price (int | float): Unit price reported by the client.
        qty (int): Quantity. Must be at least 1.
    """
    id: str = ""
    name: str = ""
    price: Price
    qty: int = Field(..., ge=1)


class AdminRecord(BaseModel):
    """
    An administrator as listed by the backend.

    Attributes:
        userId (str): Identity-provider user id.
        displayName (str): Name shown in the admin list, may be empty.
    """
    userId: str
    displayName: str = ""


class RegisterAdminRequest(BaseModel):
    """
    Body of a first-admin claim.

    Attributes:
        userId (str): User claiming the first-admin slot.
        displayName (str): Name recorded with the claim.
    """
    userId: str = ""
    displayName: str = ""


class AdminTargetRequest(BaseModel):
    """
    Body of an admin add or remove.

    Attributes:
        targetUserId (str, optional): User to add or remove.
        userId (str, optional): Same as targetUserId, sent by the older admin UI.
    """
    targetUserId: Optional[str] = None
    # older admin UI sends the target as userId
    userId: Optional[str] = None

    @property
    def target(self) -> str:
        return (self.targetUserId or self.userId or "").strip()


class UserIdRequest(BaseModel):
    """
    Body carrying only a user id (legacy admin check).

    Attributes:
        userId (str): User to look up.
    """
    userId: str = ""


class CategoryRemoveRequest(BaseModel):
    """
    Body of a catalog row removal from the admin UI.

    Attributes:
        rowNumber (int | str): Spreadsheet row of the item; row 1 is the header.
        action (str): Must be "remove".
    """
    rowNumber: Optional[Union[int, str]] = None
    action: str = "remove"
