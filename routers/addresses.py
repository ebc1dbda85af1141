from typing import Any, Dict

from fastapi import APIRouter, Depends
from pymongo.database import Database

from address_book import AddressBook
from auth import CurrentUser, get_current_user
from database import USERS, get_db, utcnow
from schemas import AddressCreate, AddressUpdate

router = APIRouter(prefix="/api/addresses", tags=["addresses"])


def _save(db: Database, user_id: str, book: AddressBook) -> None:
    db[USERS].update_one(
        {"_id": user_id},
        {"$set": {"addresses": book.to_list(), "updatedAt": utcnow()}},
    )


def _book(current_user: CurrentUser) -> AddressBook:
    return AddressBook(current_user.user.get("addresses"))


def _payload(data: Any) -> Dict[str, Any]:
    return data.model_dump(by_alias=True, exclude_unset=True)


@router.get("")
def list_addresses(current_user: CurrentUser = Depends(get_current_user)):
    return _book(current_user).to_list()


@router.post("", status_code=201)
def add_address(data: AddressCreate, current_user: CurrentUser = Depends(get_current_user),
                db: Database = Depends(get_db)):
    book = _book(current_user)
    address = book.add(data.model_dump(by_alias=True))
    _save(db, current_user.user["_id"], book)
    return {"message": "Address added successfully", "address": address}


@router.put("/{address_id}")
def update_address(address_id: str, data: AddressUpdate, current_user: CurrentUser = Depends(get_current_user),
                   db: Database = Depends(get_db)):
    book = _book(current_user)
    address = book.update(address_id, _payload(data))
    _save(db, current_user.user["_id"], book)
    return {"message": "Address updated successfully", "address": address}


@router.delete("/{address_id}")
def delete_address(address_id: str, current_user: CurrentUser = Depends(get_current_user),
                   db: Database = Depends(get_db)):
    book = _book(current_user)
    book.remove(address_id)
    _save(db, current_user.user["_id"], book)
    return {"message": "Address deleted successfully"}


@router.patch("/{address_id}/default")
def set_default_address(address_id: str, current_user: CurrentUser = Depends(get_current_user),
                        db: Database = Depends(get_db)):
    book = _book(current_user)
    address = book.set_default(address_id)
    _save(db, current_user.user["_id"], book)
    return {"message": "Default address updated successfully", "address": address}
