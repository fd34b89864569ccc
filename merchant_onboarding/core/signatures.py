"""
Owner signatures.

Owners are created lazily the first time a signature is requested or
recorded for their email. Signature rows are never updated; signing again
adds a new row.
"""
import secrets
from decimal import Decimal
from typing import Any, Dict, List, Optional, Union

import structlog
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from merchant_onboarding.core.errors import InvalidSignatureError, NotFoundError
from merchant_onboarding.core.evaluator import parse_percentage
from merchant_onboarding.core.outbox import write_outbox_event
from merchant_onboarding.database.models import ProspectOwner, ProspectSignature, utcnow

logger = structlog.get_logger(__name__)

SIGNATURE_TYPES = ("draw", "type")


def _new_token() -> str:
    return secrets.token_urlsafe(32)


class SignatureService:
    """Creates owners, issues signature requests and stores signatures."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _get_or_create_owner(
        self,
        prospect_id: int,
        owner_name: str,
        owner_email: str,
        ownership_percentage: Union[Decimal, float, str],
    ) -> ProspectOwner:
        email = owner_email.strip()
        result = await self.db.execute(
            select(ProspectOwner).where(
                ProspectOwner.prospect_id == prospect_id,
                func.lower(ProspectOwner.email) == email.lower(),
            )
        )
        owner = result.scalars().first()
        if owner is not None:
            return owner

        owner = ProspectOwner(
            prospect_id=prospect_id,
            name=owner_name,
            email=email,
            ownership_percentage=parse_percentage(ownership_percentage),
            email_sent=False,
        )
        self.db.add(owner)
        await self.db.flush()

        logger.info("prospect_owner_created", prospect_id=prospect_id, owner_id=owner.id)
        return owner

    async def record_signature(
        self,
        prospect_id: int,
        owner_name: str,
        owner_email: str,
        ownership_percentage: Union[Decimal, float, str],
        signature: str,
        signature_type: str,
    ) -> ProspectSignature:
        """
        Store a signature for an owner of the prospect.

        Args:
            prospect_id: Prospect being signed for
            owner_name: Owner display name
            owner_email: Owner email (matches form-declared owners)
            ownership_percentage: Declared ownership share
            signature: Drawn image data or typed name
            signature_type: 'draw' or 'type'

        Returns:
            ProspectSignature: The new signature record

        Raises:
            InvalidSignatureError: If the type is unknown or the signature is empty
        """
        if signature_type not in SIGNATURE_TYPES:
            raise InvalidSignatureError("Signature type must be draw or type")
        if not signature or not signature.strip():
            raise InvalidSignatureError("Signature is required")
        if not owner_email or not owner_email.strip():
            raise InvalidSignatureError("Owner email is required")

        owner = await self._get_or_create_owner(
            prospect_id, owner_name, owner_email, ownership_percentage
        )

        record = ProspectSignature(
            prospect_id=prospect_id,
            owner_id=owner.id,
            signature_token=_new_token(),
            signature=signature,
            signature_type=signature_type,
        )
        self.db.add(record)
        await self.db.flush()

        logger.info(
            "signature_recorded",
            prospect_id=prospect_id,
            owner_id=owner.id,
            signature_id=record.id,
            signature_type=signature_type,
        )
        return record

    async def request_signature(
        self,
        prospect_id: int,
        owner_name: str,
        owner_email: str,
        ownership_percentage: Union[Decimal, float, str],
    ) -> ProspectOwner:
        """
        Issue a signature token for an owner and queue the request email.

        Returns:
            ProspectOwner: Owner with a fresh signature_token
        """
        if not owner_email or not owner_email.strip():
            raise InvalidSignatureError("Owner email is required")

        owner = await self._get_or_create_owner(
            prospect_id, owner_name, owner_email, ownership_percentage
        )
        owner.signature_token = _new_token()
        owner.email_sent = True
        owner.email_sent_at = utcnow()
        await self.db.flush()

        await write_outbox_event(
            self.db,
            aggregate_type="prospect",
            aggregate_id=prospect_id,
            event_type="signature.requested",
            payload={
                "prospect_id": prospect_id,
                "owner_id": owner.id,
                "owner_name": owner.name,
                "owner_email": owner.email,
                "signature_token": owner.signature_token,
            },
        )

        logger.info("signature_requested", prospect_id=prospect_id, owner_id=owner.id)
        return owner

    async def get_by_token(self, token: str) -> Dict[str, Any]:
        """
        Public lookup of a signature request or stored signature.

        Raises:
            NotFoundError: If no owner or signature carries the token
        """
        result = await self.db.execute(
            select(ProspectOwner).where(ProspectOwner.signature_token == token)
        )
        owner: Optional[ProspectOwner] = result.scalars().first()
        signature: Optional[ProspectSignature] = None

        if owner is None:
            result = await self.db.execute(
                select(ProspectSignature).where(ProspectSignature.signature_token == token)
            )
            signature = result.scalars().first()
            if signature is None:
                raise NotFoundError("Signature", token)
            owner = await self.db.get(ProspectOwner, signature.owner_id)
        else:
            result = await self.db.execute(
                select(ProspectSignature)
                .where(ProspectSignature.owner_id == owner.id)
                .order_by(ProspectSignature.submitted_at.desc(), ProspectSignature.id.desc())
            )
            signature = result.scalars().first()

        return {
            "prospect_id": owner.prospect_id if owner else signature.prospect_id,
            "owner_name": owner.name if owner else None,
            "owner_email": owner.email if owner else None,
            "signed": signature is not None,
            "signature_type": signature.signature_type if signature else None,
            "submitted_at": signature.submitted_at if signature else None,
        }

    async def owners_for(self, prospect_id: int) -> List[ProspectOwner]:
        result = await self.db.execute(
            select(ProspectOwner)
            .where(ProspectOwner.prospect_id == prospect_id)
            .order_by(ProspectOwner.id)
        )
        return list(result.scalars().all())

    async def signatures_for(self, prospect_id: int) -> List[ProspectSignature]:
        result = await self.db.execute(
            select(ProspectSignature)
            .where(ProspectSignature.prospect_id == prospect_id)
            .order_by(ProspectSignature.id)
        )
        return list(result.scalars().all())
