import logging
import re
from typing import Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from .base import StoreService
from ..core.config import settings
from ..core.exceptions import NotFoundError, ValidationError
from ..core.security import PasskeyType, get_passkey_hash, verify_passkey_hash
from ..models.passkey import Passkey

logger = logging.getLogger(__name__)

PASSKEY_PATTERN = re.compile(r"^[0-9]{6}$")

# Seed data for development databases
DEFAULT_PASSKEYS = [
    ("2023-0456", "123456"),
    ("EMP-0123", "654321"),
    ("2023-1234", "111111"),
    ("2022-5678", "222222"),
    ("2021-9012", "333333"),
]

ROLE_PASSKEY_SETTINGS = {
    PasskeyType.ADMIN: "ADMIN_PASSKEY",
    PasskeyType.STAFF: "STAFF_PASSKEY",
    PasskeyType.DR_ABUNDO: "DR_ABUNDO_PASSKEY",
    PasskeyType.DR_DECASTRO: "DR_DECASTRO_PASSKEY",
}

# (role, configured value) -> bcrypt hash
_role_hash_cache: Dict[Tuple[PasskeyType, str], str] = {}
_dummy_hash: Optional[str] = None


def is_valid_passkey_format(passkey) -> bool:
    return isinstance(passkey, str) and bool(PASSKEY_PATTERN.fullmatch(passkey))


def validate_passkey_format(passkey) -> str:
    if not is_valid_passkey_format(passkey):
        raise ValidationError("Passkey must be 6 digits")
    return passkey


def _dummy_passkey_hash() -> str:
    global _dummy_hash
    if _dummy_hash is None:
        _dummy_hash = get_passkey_hash("000000")
    return _dummy_hash


def _role_passkey_hash(passkey_type: PasskeyType) -> Optional[str]:
    configured = getattr(settings, ROLE_PASSKEY_SETTINGS[passkey_type])
    if not configured:
        return None
    key = (passkey_type, configured)
    if key not in _role_hash_cache:
        _role_hash_cache[key] = get_passkey_hash(configured)
    return _role_hash_cache[key]


class PasskeyService(StoreService):
    """Shared-secret credentials keyed by identification number.

    Plaintext passkeys are hashed before they reach the store and are never
    logged.
    """

    def __init__(self, db: Session):
        super().__init__(db)

    def set_passkey(self, id_number: str, passkey: str) -> Passkey:
        """Create or replace the passkey for ``id_number``."""
        id_number = (id_number or "").strip()
        if not id_number:
            raise ValidationError("ID number is required")
        validate_passkey_format(passkey)

        passkey_hash = get_passkey_hash(passkey)

        with self._store_call("saving passkey"):
            record = self.db.query(Passkey).filter(
                Passkey.id_number == id_number
            ).first()

            if record:
                record.passkey_hash = passkey_hash
            else:
                record = Passkey(id_number=id_number, passkey_hash=passkey_hash)
                self.db.add(record)

            self.db.commit()
            self.db.refresh(record)

        logger.info(f"Passkey saved for id number {id_number}")
        return record

    def verify_passkey(self, id_number: str, passkey: str) -> bool:
        """Check a patient passkey.

        Unknown ids and wrong passkeys are indistinguishable to the caller.
        """
        if not is_valid_passkey_format(passkey) or not id_number:
            return False

        with self._store_call("looking up passkey"):
            record = self.db.query(Passkey).filter(
                Passkey.id_number == id_number.strip()
            ).first()

        if not record:
            # Spend the same hashing effort as a real comparison
            verify_passkey_hash(passkey, _dummy_passkey_hash())
            return False

        return verify_passkey_hash(passkey, record.passkey_hash)

    def verify_role_passkey(self, passkey_type, passkey: str) -> bool:
        """Check one of the configured role passkeys (admin, staff, doctors)."""
        try:
            passkey_type = PasskeyType(passkey_type)
        except ValueError:
            raise ValidationError("Invalid passkey type") from None

        stored_hash = _role_passkey_hash(passkey_type)
        if not is_valid_passkey_format(passkey):
            return False
        if stored_hash is None:
            logger.warning(f"No passkey configured for role {passkey_type.value}")
            verify_passkey_hash(passkey, _dummy_passkey_hash())
            return False

        return verify_passkey_hash(passkey, stored_hash)

    def list_passkeys(self) -> List[Passkey]:
        with self._store_call("listing passkeys"):
            return self.db.query(Passkey).order_by(Passkey.id_number).all()

    def delete_passkey(self, passkey_id: str) -> None:
        with self._store_call("deleting passkey"):
            record = self.db.query(Passkey).filter(Passkey.id == passkey_id).first()
            if not record:
                raise NotFoundError("Passkey not found")
            self.db.delete(record)
            self.db.commit()

        logger.info(f"Passkey {passkey_id} deleted")

    def initialize_default_passkeys(self) -> int:
        """Seed the sample passkeys used on development databases."""
        for id_number, passkey in DEFAULT_PASSKEYS:
            self.set_passkey(id_number, passkey)
        return len(DEFAULT_PASSKEYS)
