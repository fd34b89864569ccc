"""
Owner signature tests.
"""
from types import SimpleNamespace

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from merchant_onboarding.core.errors import InvalidSignatureError, NotFoundError
from merchant_onboarding.core.signatures import SignatureService
from merchant_onboarding.database.models import OutboxEvent


@pytest.fixture
def signatures(db: AsyncSession) -> SignatureService:
    return SignatureService(db)


class TestSignatureService:
    """Test suite for owner creation, signature requests and storage."""

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_record_creates_owner_lazily(
        self, signatures: SignatureService, seed: SimpleNamespace
    ) -> None:
        signature = await signatures.record_signature(
            seed.prospect_id, "Pat Prospect", "pat@shop.example.com", "60", "Pat Prospect", "type"
        )

        owners = await signatures.owners_for(seed.prospect_id)
        assert len(owners) == 1
        assert owners[0].email == "pat@shop.example.com"
        assert float(owners[0].ownership_percentage) == 60.0
        assert signature.owner_id == owners[0].id
        assert signature.signature_token

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_resigning_adds_new_record(
        self, signatures: SignatureService, seed: SimpleNamespace
    ) -> None:
        first = await signatures.record_signature(
            seed.prospect_id, "Pat", "pat@shop.example.com", 60, "data:image/png;base64,AAA", "draw"
        )
        second = await signatures.record_signature(
            seed.prospect_id, "Pat", "PAT@shop.example.com ", 60, "Pat Prospect", "type"
        )

        stored = await signatures.signatures_for(seed.prospect_id)
        assert [s.id for s in stored] == [first.id, second.id]
        assert first.owner_id == second.owner_id
        assert first.signature_token != second.signature_token
        assert first.signature_type == "draw"
        assert len(await signatures.owners_for(seed.prospect_id)) == 1

    @pytest.mark.integration
    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "signature,signature_type",
        [("Pat", "stamp"), ("", "type"), ("   ", "draw")],
    )
    async def test_invalid_signature_rejected(
        self,
        signatures: SignatureService,
        seed: SimpleNamespace,
        signature: str,
        signature_type: str,
    ) -> None:
        with pytest.raises(InvalidSignatureError):
            await signatures.record_signature(
                seed.prospect_id, "Pat", "pat@shop.example.com", 60, signature, signature_type
            )

        assert await signatures.owners_for(seed.prospect_id) == []

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_request_signature_issues_token_and_event(
        self, db: AsyncSession, signatures: SignatureService, seed: SimpleNamespace
    ) -> None:
        owner = await signatures.request_signature(
            seed.prospect_id, "Sam Partner", "sam@shop.example.com", "40"
        )

        assert owner.signature_token
        assert owner.email_sent is True
        assert owner.email_sent_at is not None

        result = await db.execute(
            select(OutboxEvent).where(OutboxEvent.event_type == "signature.requested")
        )
        event = result.scalars().one()
        assert event.aggregate_id == seed.prospect_id
        assert event.payload["owner_email"] == "sam@shop.example.com"
        assert event.payload["signature_token"] == owner.signature_token

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_lookup_by_request_token(
        self, signatures: SignatureService, seed: SimpleNamespace
    ) -> None:
        owner = await signatures.request_signature(
            seed.prospect_id, "Sam Partner", "sam@shop.example.com", 40
        )

        pending = await signatures.get_by_token(owner.signature_token)
        assert pending["signed"] is False
        assert pending["owner_email"] == "sam@shop.example.com"

        await signatures.record_signature(
            seed.prospect_id, "Sam Partner", "sam@shop.example.com", 40, "Sam Partner", "type"
        )
        signed = await signatures.get_by_token(owner.signature_token)
        assert signed["signed"] is True
        assert signed["signature_type"] == "type"

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_lookup_by_signature_token(
        self, signatures: SignatureService, seed: SimpleNamespace
    ) -> None:
        signature = await signatures.record_signature(
            seed.prospect_id, "Pat", "pat@shop.example.com", 60, "Pat", "type"
        )

        status = await signatures.get_by_token(signature.signature_token)

        assert status["signed"] is True
        assert status["prospect_id"] == seed.prospect_id

    @pytest.mark.integration
    @pytest.mark.asyncio
    async def test_unknown_token(self, signatures: SignatureService, seed: SimpleNamespace) -> None:
        with pytest.raises(NotFoundError):
            await signatures.get_by_token("does-not-exist")
