import copy
import uuid
from typing import Any, Dict, List, Optional

from errors import NotFound


def generate_address_id() -> str:
    return uuid.uuid4().hex


class AddressBook:
    """Embedded address list; exactly one entry is the default whenever it is non-empty."""

    def __init__(self, addresses: Optional[List[Dict[str, Any]]] = None):
        self.addresses: List[Dict[str, Any]] = [dict(a) for a in (addresses or [])]
        self._normalize()

    def __len__(self) -> int:
        return len(self.addresses)

    def to_list(self) -> List[Dict[str, Any]]:
        return [dict(a) for a in self.addresses]

    @property
    def default(self) -> Optional[Dict[str, Any]]:
        return next((a for a in self.addresses if a.get("isDefault")), None)

    def find(self, address_id: str) -> Optional[Dict[str, Any]]:
        return next((a for a in self.addresses if a.get("id") == address_id), None)

    def get(self, address_id: str) -> Dict[str, Any]:
        address = self.find(address_id)
        if address is None:
            raise NotFound("Address not found")
        return address

    def snapshot(self, address_id: str) -> Optional[Dict[str, Any]]:
        address = self.find(address_id)
        return copy.deepcopy(address) if address is not None else None

    def add(self, data: Dict[str, Any]) -> Dict[str, Any]:
        address = dict(data)
        address["id"] = generate_address_id()
        make_default = not self.addresses or bool(address.get("isDefault"))
        address["isDefault"] = False
        self.addresses.append(address)
        if make_default:
            self._mark_default(address)
        return address

    def update(self, address_id: str, changes: Dict[str, Any]) -> Dict[str, Any]:
        address = self.get(address_id)
        make_default = changes.get("isDefault") is True
        address.update({k: v for k, v in changes.items() if k not in ("id", "isDefault")})
        # clearing the flag is ignored: the list always keeps one default
        if make_default:
            self._mark_default(address)
        return address

    def remove(self, address_id: str) -> Dict[str, Any]:
        address = self.get(address_id)
        self.addresses.remove(address)
        if address.get("isDefault") and self.addresses:
            self._mark_default(self.addresses[0])
        return address

    def set_default(self, address_id: str) -> Dict[str, Any]:
        address = self.get(address_id)
        self._mark_default(address)
        return address

    def _mark_default(self, address: Dict[str, Any]) -> None:
        for entry in self.addresses:
            entry["isDefault"] = entry is address

    def _normalize(self) -> None:
        # repairs lists written before the invariant was enforced
        if not self.addresses:
            return
        current = self.default or self.addresses[0]
        self._mark_default(current)
