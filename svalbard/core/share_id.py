"""
Hash-based share id derivation.

A share id is the digest of the owner id type, owner id and secret name.
Fields are length-prefixed before hashing so that no two distinct triples
share an encoding; the hex digest never contains protocol delimiters.
"""

import hashlib
import logging
from typing import Iterable, Optional

from .contracts import ShareIdDeriver
from .errors import ErrorKind, SvalbardError

logger = logging.getLogger(__name__)

DEFAULT_OWNER_ID_TYPES = ("email", "sms", "phone")


class HashShareIdDeriver(ShareIdDeriver):
    """
    Derive share ids by hashing owner and secret attributes.

    Owner id types are matched case-insensitively against the supported set;
    owner ids and secret names are used verbatim.
    """

    def __init__(
        self,
        supported_owner_id_types: Optional[Iterable[str]] = None,
        hash_algorithm: str = "sha256",
    ):
        """
        Initialize share id deriver.

        Args:
            supported_owner_id_types: Accepted owner id types (default: email, sms, phone)
            hash_algorithm: Hash algorithm to use (sha256, sha3_256, blake2b, sha512)
        """
        if supported_owner_id_types is None:
            supported_owner_id_types = DEFAULT_OWNER_ID_TYPES
        self.supported_owner_id_types = frozenset(t.lower() for t in supported_owner_id_types)
        self.hash_algorithm = hash_algorithm

        self.hash_functions = {
            "sha256": hashlib.sha256,
            "sha3_256": hashlib.sha3_256,
            "blake2b": hashlib.blake2b,
            "sha512": hashlib.sha512,
        }

        if hash_algorithm not in self.hash_functions:
            raise ValueError(f"Unsupported hash algorithm: {hash_algorithm}")

        logger.info(
            f"Initialized share id deriver with {hash_algorithm}, "
            f"owner id types: {sorted(self.supported_owner_id_types)}"
        )

    def derive(self, owner_id_type: str, owner_id: str, secret_name: str) -> str:
        if not owner_id_type:
            raise SvalbardError(ErrorKind.MISSING_OWNER_TYPE)
        if not owner_id:
            raise SvalbardError(ErrorKind.MISSING_OWNER_ID)
        if not secret_name:
            raise SvalbardError(ErrorKind.MISSING_SECRET_NAME)

        normalized_type = owner_id_type.lower()
        if normalized_type not in self.supported_owner_id_types:
            raise SvalbardError(ErrorKind.UNSUPPORTED_OWNER_ID_TYPE)

        hasher = self.hash_functions[self.hash_algorithm]()
        for field in (normalized_type, owner_id, secret_name):
            encoded = field.encode("utf-8")
            hasher.update(len(encoded).to_bytes(4, "big"))
            hasher.update(encoded)
        return hasher.hexdigest()
