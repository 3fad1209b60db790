"""
Test suite for the share custody service.

Covers the token request / redemption protocol end to end against the
reference collaborators, and failure handling against faulty fakes.
"""

import pytest

from svalbard.auth.token_store import InMemoryTokenStore
from svalbard.backends import MemoryShareStore
from svalbard.channels import OutboxChannel
from svalbard.core.contracts import Recipient, SecondaryChannel, TokenStore
from svalbard.core.custody import ShareCustodyService
from svalbard.core.errors import (
    CustodyError,
    DeliveryError,
    ErrorKind,
    ResponseClass,
    TokenIssuanceError,
)
from svalbard.core.message import TokenMessage, decode_token_message
from svalbard.core.operations import Operation

OWNER_TYPE = "email"
OWNER_ID = "a@example.com"
SECRET = "s1"
OWNER = (OWNER_TYPE, OWNER_ID, SECRET)
RECIPIENT = Recipient(OWNER_TYPE, OWNER_ID)


# ===== FAKES =====

class SpyShareStore(MemoryShareStore):
    """Memory share store recording every call."""

    def __init__(self):
        super().__init__()
        self.calls = []

    def store(self, share_id, share_value):
        self.calls.append("store")
        super().store(share_id, share_value)

    def retrieve(self, share_id):
        self.calls.append("retrieve")
        return super().retrieve(share_id)

    def delete(self, share_id):
        self.calls.append("delete")
        super().delete(share_id)

    def exists(self, share_id):
        self.calls.append("exists")
        return super().exists(share_id)


class BrokenRetrieveShareStore(MemoryShareStore):
    """Share store whose reads fail with backend detail in the error."""

    def retrieve(self, share_id):
        raise OSError("I/O error reading /var/lib/svalbard/3f/3f2a.share")


class FailingTokenStore(TokenStore):
    def issue_token(self, share_id, op):
        raise TokenIssuanceError("token db at postgres://admin:hunter2@db unreachable")

    def check_valid_now(self, token, share_id, op):
        raise AssertionError("not reached")


class CapturingFailingChannel(SecondaryChannel):
    """Sees the message, then reports a transport failure."""

    def __init__(self):
        self.attempted = []

    def send(self, recipient, msg):
        self.attempted.append(msg)
        raise DeliveryError(f"SMTP relay rejected message {msg.token}")


# ===== FIXTURES =====

@pytest.fixture
def share_store():
    return SpyShareStore()


@pytest.fixture
def token_store():
    return InMemoryTokenStore(ttl_seconds=300)


@pytest.fixture
def outbox():
    return OutboxChannel()


@pytest.fixture
def custody(share_store, token_store, outbox):
    """Provide a custody service wired to in-memory collaborators."""
    return ShareCustodyService(share_store, token_store, outbox)


def delivered_token(outbox, recipient=RECIPIENT):
    return decode_token_message(outbox.last_message(recipient)).token


def rejection(func, *args) -> CustodyError:
    with pytest.raises(CustodyError) as exc_info:
        func(*args)
    return exc_info.value


def store_value(custody, outbox, value="V", owner=OWNER):
    custody.request_storage_token("setup", *owner)
    custody.store_share(delivered_token(outbox, Recipient(owner[0], owner[1])), *owner, value)


# ===== END-TO-END SCENARIOS =====

@pytest.mark.integration
class TestEndToEnd:
    """Full request / deliver / redeem flows."""

    def test_store_flow_and_token_reuse(self, custody, outbox):
        result = custody.request_storage_token("r1", *OWNER)
        assert result == "Req. r1: storage token for share of [s1] sent to [email:a@example.com]"

        message = outbox.last_message(RECIPIENT)
        assert message.startswith("SVBD:r1:")
        token = decode_token_message(message).token

        result = custody.store_share(token, *OWNER, "V")
        assert result == "Stored a share of secret [s1] for owner [email:a@example.com]"

        err = rejection(custody.store_share, token, *OWNER, "V")
        assert err.response_class == ResponseClass.FORBIDDEN
        assert err.kind == ErrorKind.TOKEN_NOT_VALID
        assert err.message == "could not store the share: token not valid"

    def test_retrieval_token_for_missing_share(self, custody, outbox, token_store):
        err = rejection(custody.request_retrieval_token, "r2", *OWNER)

        assert err.response_class == ResponseClass.NOT_FOUND
        assert err.message == "Req. r2: share not found"
        assert token_store.live_token_count() == 0
        assert outbox.messages_for(RECIPIENT) == []

    def test_deletion_token_for_missing_share(self, custody, token_store):
        err = rejection(custody.request_deletion_token, "r3", *OWNER)

        assert err.response_class == ResponseClass.NOT_FOUND
        assert token_store.live_token_count() == 0

    def test_retrieve_requires_retrieval_scoped_token(self, custody, outbox):
        store_value(custody, outbox, "V")

        custody.request_deletion_token("r3", *OWNER)
        deletion_token = delivered_token(outbox)
        err = rejection(custody.retrieve_share, deletion_token, *OWNER)
        assert err.response_class == ResponseClass.FORBIDDEN
        assert err.kind == ErrorKind.TOKEN_NOT_VALID

        custody.request_retrieval_token("r4", *OWNER)
        assert custody.retrieve_share(delivered_token(outbox), *OWNER) == "V"

        # The misused deletion token is still good for deletion
        result = custody.delete_share(deletion_token, *OWNER)
        assert result == "Deleted a share of secret [s1] of owner [email:a@example.com]"

    def test_delete_flow(self, custody, outbox, share_store):
        store_value(custody, outbox)

        result = custody.request_deletion_token("r5", *OWNER)
        assert result == "Req. r5: deletion token for share of [s1] sent to [email:a@example.com]"
        custody.delete_share(delivered_token(outbox), *OWNER)

        assert len(share_store) == 0
        err = rejection(custody.request_retrieval_token, "r6", *OWNER)
        assert err.response_class == ResponseClass.NOT_FOUND

    @pytest.mark.parametrize("op", [Operation.RETRIEVE, Operation.DELETE])
    def test_storage_token_grants_nothing_else(self, custody, outbox, op):
        store_value(custody, outbox)
        custody.request_token(Operation.STORE, "r7", OWNER_TYPE, OWNER_ID, "other-secret")
        storage_token = delivered_token(outbox)

        err = rejection(custody.perform_operation, op, storage_token, *OWNER)
        assert err.response_class == ResponseClass.FORBIDDEN
        assert err.kind == ErrorKind.TOKEN_NOT_VALID

    def test_token_bound_to_its_share(self, custody, outbox):
        store_value(custody, outbox, "V1", (OWNER_TYPE, OWNER_ID, "s1"))
        store_value(custody, outbox, "V2", (OWNER_TYPE, OWNER_ID, "s2"))

        custody.request_retrieval_token("r8", OWNER_TYPE, OWNER_ID, "s1")
        token = delivered_token(outbox)

        err = rejection(custody.retrieve_share, token, OWNER_TYPE, OWNER_ID, "s2")
        assert err.kind == ErrorKind.TOKEN_NOT_VALID
        assert custody.retrieve_share(token, OWNER_TYPE, OWNER_ID, "s1") == "V1"

    def test_storage_token_for_existing_share(self, custody, outbox):
        store_value(custody, outbox)

        err = rejection(custody.request_storage_token, "r9", *OWNER)
        assert err.response_class == ResponseClass.FORBIDDEN
        assert err.kind == ErrorKind.SHARE_ALREADY_EXISTS
        assert err.message == "Req. r9: share already exists"

    def test_second_storage_token_loses_race(self, custody, outbox):
        custody.request_storage_token("ra", *OWNER)
        first = delivered_token(outbox)
        custody.request_storage_token("rb", *OWNER)
        second = delivered_token(outbox)
        assert first != second

        custody.store_share(first, *OWNER, "V1")
        err = rejection(custody.store_share, second, *OWNER, "V2")

        assert err.response_class == ResponseClass.FORBIDDEN
        assert err.kind == ErrorKind.SHARE_ALREADY_EXISTS
        assert err.message == "could not store the share: share already exists"

    def test_share_deleted_between_token_and_retrieval(self, custody, outbox, share_store):
        store_value(custody, outbox)
        custody.request_retrieval_token("rc", *OWNER)
        token = delivered_token(outbox)

        for share_id in list(share_store._shares):
            share_store.delete(share_id)

        err = rejection(custody.retrieve_share, token, *OWNER)
        assert err.response_class == ResponseClass.NOT_FOUND
        assert err.message == "could not retrieve the share: share not found"


# ===== VALIDATION =====

@pytest.mark.unit
class TestValidation:
    """Input validation happens before any collaborator is consulted."""

    @pytest.mark.parametrize("op", list(Operation))
    def test_missing_request_id(self, custody, share_store, op):
        err = rejection(custody.request_token, op, "", *OWNER)

        assert err.response_class == ResponseClass.BAD_REQUEST
        assert err.message == "missing request_id"
        assert share_store.calls == []

    def test_request_id_with_delimiter(self, custody, token_store):
        err = rejection(custody.request_storage_token, "r:1", *OWNER)

        assert err.response_class == ResponseClass.BAD_REQUEST
        assert err.kind == ErrorKind.INVALID_MESSAGE_PARAMETERS
        assert token_store.live_token_count() == 0

    @pytest.mark.parametrize("op", list(Operation))
    def test_missing_token(self, custody, op):
        err = rejection(custody.perform_operation, op, "", *OWNER, "V")

        assert err.response_class == ResponseClass.BAD_REQUEST
        assert err.message == "missing token"

    @pytest.mark.parametrize("value", [None, ""])
    def test_missing_share_value(self, custody, outbox, value):
        custody.request_storage_token("r1", *OWNER)

        err = rejection(custody.store_share, delivered_token(outbox), *OWNER, value)
        assert err.response_class == ResponseClass.BAD_REQUEST
        assert err.message == "missing share_value"

    @pytest.mark.parametrize("owner,message", [
        (("", OWNER_ID, SECRET), "missing owner id type"),
        ((OWNER_TYPE, "", SECRET), "missing owner id"),
        ((OWNER_TYPE, OWNER_ID, ""), "missing secret name"),
        (("fax", OWNER_ID, SECRET), "unsupported owner id type"),
    ])
    def test_share_id_errors_propagate(self, custody, share_store, owner, message):
        err = rejection(custody.request_storage_token, "r1", *owner)
        assert err.response_class == ResponseClass.BAD_REQUEST
        assert err.message == message

        err = rejection(custody.retrieve_share, "some-token", *owner)
        assert err.message == message
        assert share_store.calls == []

    def test_unknown_token(self, custody):
        err = rejection(custody.retrieve_share, "forged", *OWNER)

        assert err.response_class == ResponseClass.FORBIDDEN
        assert err.message == "could not retrieve the share: token not found"


# ===== AUTHORIZATION INVARIANT =====

@pytest.mark.unit
class TestNoAccessWithoutToken:
    """Shares are never touched on the strength of request parameters alone."""

    @pytest.mark.parametrize("op", list(Operation))
    def test_rejected_token_touches_no_share(self, custody, share_store, op):
        rejection(custody.perform_operation, op, "forged", *OWNER, "V")
        assert share_store.calls == []

    def test_token_request_only_checks_existence(self, custody, share_store):
        custody.request_storage_token("r1", *OWNER)
        assert share_store.calls == ["exists"]

    def test_token_and_share_value_not_logged(self, custody, outbox, caplog):
        with caplog.at_level("DEBUG", logger="svalbard.core.custody"):
            custody.request_storage_token("r1", *OWNER)
            token = delivered_token(outbox)
            custody.store_share(token, *OWNER, "TOP-SECRET-SHARE")
            custody.request_retrieval_token("r2", *OWNER)
            custody.retrieve_share(delivered_token(outbox), *OWNER)

        assert token not in caplog.text
        assert "TOP-SECRET-SHARE" not in caplog.text


# ===== COLLABORATOR FAILURES =====

@pytest.mark.unit
class TestCollaboratorFailures:
    """Internal failures are reported generically and never retried."""

    def test_token_issuance_failure(self, share_store, outbox):
        custody = ShareCustodyService(share_store, FailingTokenStore(), outbox)

        err = rejection(custody.request_storage_token, "r1", *OWNER)
        assert err.response_class == ResponseClass.INTERNAL
        assert err.message == "Req. r1: could not generate storage token, try later again."
        assert "hunter2" not in err.message
        assert outbox.messages_for(RECIPIENT) == []

    def test_delivery_failure_keeps_token_valid(self, share_store, token_store):
        channel = CapturingFailingChannel()
        custody = ShareCustodyService(share_store, token_store, channel)

        err = rejection(custody.request_storage_token, "r1", *OWNER)
        assert err.response_class == ResponseClass.INTERNAL
        assert err.message == "Req. r1: error occurred while sending storage token: unknown error"

        token = channel.attempted[0].token
        assert token not in err.message
        assert channel.attempted[0] == TokenMessage("r1", token)

        assert custody.store_share(token, *OWNER, "V").startswith("Stored a share")

    def test_unencodable_token_is_internal_failure(self, share_store, outbox):
        class DelimiterTokenStore(InMemoryTokenStore):
            def issue_token(self, share_id, op):
                return "abc:def"

        custody = ShareCustodyService(share_store, DelimiterTokenStore(), outbox)

        err = rejection(custody.request_storage_token, "r1", *OWNER)
        assert err.response_class == ResponseClass.INTERNAL
        assert err.message == (
            "Req. r1: error occurred while sending storage token: "
            "invalid parameters for message with token"
        )
        assert outbox.messages_for(RECIPIENT) == []

    def test_delivery_failure_then_retry(self, share_store, token_store, outbox):
        failing = ShareCustodyService(share_store, token_store, CapturingFailingChannel())
        rejection(failing.request_storage_token, "r1", *OWNER)

        working = ShareCustodyService(share_store, token_store, outbox)
        working.request_storage_token("r1", *OWNER)
        working.store_share(delivered_token(outbox), *OWNER, "V")

        assert token_store.live_token_count() == 2

    def test_share_store_failure_is_sanitized(self, token_store, outbox):
        share_store = BrokenRetrieveShareStore()
        custody = ShareCustodyService(share_store, token_store, outbox)
        store_value(custody, outbox)

        custody.request_retrieval_token("r1", *OWNER)
        err = rejection(custody.retrieve_share, delivered_token(outbox), *OWNER)

        assert err.response_class == ResponseClass.INTERNAL
        assert err.message == "could not retrieve the share: unknown error"
        assert err.kind is None

    def test_share_store_failure_on_token_request(self, token_store, outbox):
        class BrokenExistsStore(MemoryShareStore):
            def exists(self, share_id):
                raise ConnectionError("redis://10.0.0.5 timed out")

        custody = ShareCustodyService(BrokenExistsStore(), token_store, outbox)
        err = rejection(custody.request_retrieval_token, "r1", *OWNER)

        assert err.response_class == ResponseClass.INTERNAL
        assert err.message == "Req. r1: unknown error"
        assert token_store.live_token_count() == 0
