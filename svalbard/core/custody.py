"""
Share custody service.

Sequences the token-gated protocol for storing, retrieving and deleting
shares:

    request token -> deliver token -> redeem token -> perform operation

Each call moves one hop. The token store is the durable record of issued
tokens and the share store the durable record of redeemed operations; the
service itself keeps no mutable state and may be shared between threads.
"""

import logging
from typing import Optional

from .contracts import Recipient, SecondaryChannel, ShareIdDeriver, ShareStore, TokenStore
from .errors import CustodyError, ErrorKind, ResponseClass, SvalbardError
from .message import DELIMITER, TokenMessage
from .operations import Operation
from .sanitize import classify, error_kind, to_public_message
from .share_id import HashShareIdDeriver

logger = logging.getLogger(__name__)

_ACTIONS = {
    Operation.STORE: "store",
    Operation.RETRIEVE: "retrieve",
    Operation.DELETE: "delete",
}


class ShareCustodyService:
    """
    Token-gated custody of secret shares.

    A share is never read or mutated on the strength of request parameters
    alone: every share store access apart from the existence pre-check of a
    token request happens after check_valid_now accepted a token scoped to
    exactly that share and operation.

    All failures leave the service as CustodyError with a sanitized message.
    """

    def __init__(
        self,
        share_store: ShareStore,
        token_store: TokenStore,
        secondary_channel: SecondaryChannel,
        share_id_deriver: Optional[ShareIdDeriver] = None,
    ):
        """
        Initialize custody service.

        Args:
            share_store: Storage for share values
            token_store: Issues and validates access tokens
            secondary_channel: Delivers tokens to share owners
            share_id_deriver: Share id derivation (default: HashShareIdDeriver)
        """
        self.share_store = share_store
        self.token_store = token_store
        self.secondary_channel = secondary_channel
        self.share_id_deriver = share_id_deriver or HashShareIdDeriver()

    # Token requests

    def request_token(
        self,
        op: Operation,
        request_id: str,
        owner_id_type: str,
        owner_id: str,
        secret_name: str,
    ) -> str:
        """
        Issue a token for op and deliver it to the share owner.

        Args:
            op: Operation the token will authorize
            request_id: Client correlator echoed in the token message
            owner_id_type: Type of owner id, e.g. "email" or "sms"
            owner_id: Owner id, e.g. an e-mail address or phone number
            secret_name: Name of the secret the share belongs to

        Returns:
            Confirmation that the token was sent

        Raises:
            CustodyError: On validation, pre-check, issuance or delivery failure.
                A delivery failure does not invalidate the issued token.
        """
        label = op.token_label
        if not request_id:
            raise self._reject(SvalbardError(ErrorKind.MISSING_REQUEST_ID))
        if DELIMITER in request_id:
            raise self._reject(SvalbardError(ErrorKind.INVALID_MESSAGE_PARAMETERS))

        share_id = self._derive_share_id(owner_id_type, owner_id, secret_name)
        prefix = f"Req. {request_id}: "

        try:
            exists = self.share_store.exists(share_id)
        except Exception as e:
            raise self._reject(e, prefix)

        if op == Operation.STORE and exists:
            raise self._reject(SvalbardError(ErrorKind.SHARE_ALREADY_EXISTS), prefix)
        if op != Operation.STORE and not exists:
            raise self._reject(SvalbardError(ErrorKind.SHARE_NOT_FOUND), prefix)

        try:
            token = self.token_store.issue_token(share_id, op)
        except Exception as e:
            logger.error(
                f"--- req. {request_id}: generation of {label} token for share of "
                f"[{secret_name}] failed: {e!r}"
            )
            raise CustodyError(
                ResponseClass.INTERNAL,
                f"{prefix}could not generate {label} token, try later again.",
            )

        recipient = Recipient(owner_id_type, owner_id)
        try:
            self.secondary_channel.send(recipient, TokenMessage(request_id, token))
        except Exception as e:
            # The token stays valid; the client recovers by requesting a new one.
            logger.error(
                f"--- req. {request_id}: sending {label} token for share of "
                f"[{secret_name}] to [{recipient}] failed: {e!r}"
            )
            raise CustodyError(
                ResponseClass.INTERNAL,
                f"{prefix}error occurred while sending {label} token: {to_public_message(e)}",
            )

        logger.info(
            f"--- req. {request_id}: generated {label} token for share of "
            f"[{secret_name}] sent to [{recipient}]"
        )
        return f"{prefix}{label} token for share of [{secret_name}] sent to [{recipient}]"

    def request_storage_token(self, request_id: str, owner_id_type: str, owner_id: str,
                              secret_name: str) -> str:
        return self.request_token(Operation.STORE, request_id, owner_id_type, owner_id, secret_name)

    def request_retrieval_token(self, request_id: str, owner_id_type: str, owner_id: str,
                                secret_name: str) -> str:
        return self.request_token(Operation.RETRIEVE, request_id, owner_id_type, owner_id, secret_name)

    def request_deletion_token(self, request_id: str, owner_id_type: str, owner_id: str,
                               secret_name: str) -> str:
        return self.request_token(Operation.DELETE, request_id, owner_id_type, owner_id, secret_name)

    # Token redemption

    def perform_operation(
        self,
        op: Operation,
        token: str,
        owner_id_type: str,
        owner_id: str,
        secret_name: str,
        share_value: Optional[str] = None,
    ) -> str:
        """
        Redeem a token and perform the operation it authorizes.

        Args:
            op: Operation to perform
            token: Token the owner received over the secondary channel
            owner_id_type: Type of owner id
            owner_id: Owner id
            secret_name: Name of the secret the share belongs to
            share_value: Value to store (STORE only)

        Returns:
            The share value for RETRIEVE, otherwise a confirmation

        Raises:
            CustodyError: If validation fails, the token is rejected or the
                share store fails. Nothing is retried.
        """
        if not token:
            raise self._reject(SvalbardError(ErrorKind.MISSING_TOKEN))
        if op == Operation.STORE and not share_value:
            raise self._reject(SvalbardError(ErrorKind.MISSING_SHARE_VALUE))

        share_id = self._derive_share_id(owner_id_type, owner_id, secret_name)
        prefix = f"could not {_ACTIONS[op]} the share: "

        try:
            self.token_store.check_valid_now(token, share_id, op)
        except Exception as e:
            raise self._reject(e, prefix)

        owner = f"{owner_id_type}:{owner_id}"
        try:
            if op == Operation.STORE:
                self.share_store.store(share_id, share_value)
                logger.info(f"--- stored a share of secret [{secret_name}] for owner [{owner}]")
                return f"Stored a share of secret [{secret_name}] for owner [{owner}]"

            if op == Operation.RETRIEVE:
                value = self.share_store.retrieve(share_id)
                logger.info(f"--- retrieved a share of secret [{secret_name}] of owner [{owner}]")
                return value

            self.share_store.delete(share_id)
            logger.info(f"--- deleted a share of secret [{secret_name}] of owner [{owner}]")
            return f"Deleted a share of secret [{secret_name}] of owner [{owner}]"
        except Exception as e:
            raise self._reject(e, prefix)

    def store_share(self, token: str, owner_id_type: str, owner_id: str, secret_name: str,
                    share_value: Optional[str]) -> str:
        return self.perform_operation(Operation.STORE, token, owner_id_type, owner_id,
                                      secret_name, share_value)

    def retrieve_share(self, token: str, owner_id_type: str, owner_id: str, secret_name: str) -> str:
        return self.perform_operation(Operation.RETRIEVE, token, owner_id_type, owner_id, secret_name)

    def delete_share(self, token: str, owner_id_type: str, owner_id: str, secret_name: str) -> str:
        return self.perform_operation(Operation.DELETE, token, owner_id_type, owner_id, secret_name)

    # Internal methods

    def _derive_share_id(self, owner_id_type: str, owner_id: str, secret_name: str) -> str:
        try:
            return self.share_id_deriver.derive(owner_id_type, owner_id, secret_name)
        except Exception as e:
            raise self._reject(e)

    def _reject(self, err: BaseException, prefix: str = "") -> CustodyError:
        """Turn err into a sanitized CustodyError, logging internal detail."""
        response_class = classify(err)
        if response_class == ResponseClass.INTERNAL:
            logger.error(f"--- {prefix}internal failure: {err!r}")
        return CustodyError(response_class, prefix + to_public_message(err), error_kind(err))
