"""
Praxis OS Backend: Push Service
================================

What:  Manages a patient's push subscriptions and preferences, and dispatches
       notifications to every device of a patient.
Who:   routes/me.py (subscribe, unsubscribe, preferences) with the
       caller-scoped session; routes/push.py and the reminder job with the
       privileged session.

Dispatch Flow:
    ┌────────────────────┐    ┌────────────────────────┐    ┌────────────────────┐
    │ Load subscriptions │───▶│ Send to every device   │───▶│ Delete GONE rows   │
    │ (+ optional filter)│    │ concurrently (sender)  │    │ count sent/failed  │
    └────────────────────┘    └────────────────────────┘    └────────────────────┘

    Only the provider calls run concurrently. All database work for one
    dispatch happens sequentially on the one session.
"""

import asyncio
import logging
import uuid
from typing import Iterable, List, Optional

from sqlalchemy import delete, select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from praxis.config import settings
from praxis.exceptions import UpstreamError
from praxis.models.push import PushSubscription
from praxis.schemas.push import (
    DispatchFilter,
    DispatchResult,
    PreferencesResponse,
    PreferencesUpdate,
    PushMessage,
    SubscribeRequest,
)
from praxis.services.push_base import DeliveryOutcome, PushSender

logger = logging.getLogger(__name__)


# subscription_json->>'endpoint'
ENDPOINT = PushSubscription.subscription_json["endpoint"].astext


def build_payload(message: PushMessage) -> dict:
    """JSON document the service worker receives in its `push` event."""
    return {
        "title": message.title,
        "body": message.body,
        "icon": message.icon or settings.push_default_icon,
        "badge": settings.push_default_icon,
        "url": message.url or settings.push_default_url,
        "tag": message.tag,
    }


class PushService:
    """
    Responsibilities:
        - subscribe() / unsubscribe(): device registration, keyed by endpoint
        - get_preferences() / update_preferences(): reminder and chat toggles
        - send_to_patient() / send_to_patients(): fan-out with cleanup
    """

    # ── Subscriptions ─────────────────────────────────────────────────────
    async def subscribe(self, db: AsyncSession, patient_id: uuid.UUID, request: SubscribeRequest) -> None:
        """Creates the subscription, or refreshes it when the endpoint is already known."""
        subscription_json = request.subscription.model_dump()
        endpoint = request.subscription.endpoint
        try:
            result = await db.execute(
                update(PushSubscription)
                .where(ENDPOINT == endpoint)
                .values(
                    patient_id=patient_id,
                    subscription_json=subscription_json,
                    device_type=request.device_type.value,
                )
                .returning(PushSubscription.id)
            )
            if result.scalar_one_or_none() is None:
                db.add(
                    PushSubscription(
                        patient_id=patient_id,
                        subscription_json=subscription_json,
                        device_type=request.device_type.value,
                    )
                )
                await db.flush()
        except SQLAlchemyError as e:
            logger.error("Saving push subscription for patient %s failed: %s", patient_id, e)
            raise UpstreamError(
                message="Subscription konnte nicht gespeichert werden.",
                context={"patient_id": str(patient_id), "error": type(e).__name__},
            ) from e

        logger.info("Push subscription saved for patient %s (%s)", patient_id, request.device_type.value)

    async def unsubscribe(self, db: AsyncSession, patient_id: uuid.UUID, endpoint: str) -> None:
        try:
            await db.execute(
                delete(PushSubscription).where(
                    PushSubscription.patient_id == patient_id,
                    ENDPOINT == endpoint,
                )
            )
        except SQLAlchemyError as e:
            logger.error("Removing push subscription for patient %s failed: %s", patient_id, e)
            raise UpstreamError(
                message="Subscription konnte nicht entfernt werden.",
                context={"patient_id": str(patient_id), "error": type(e).__name__},
            ) from e

    # ── Preferences ───────────────────────────────────────────────────────
    async def get_preferences(self, db: AsyncSession, patient_id: uuid.UUID) -> PreferencesResponse:
        """Preferences of the oldest subscription; defaults when there is none."""
        try:
            result = await db.execute(
                select(PushSubscription)
                .where(PushSubscription.patient_id == patient_id)
                .order_by(PushSubscription.created_at)
                .limit(1)
            )
            subscription = result.scalars().first()
        except SQLAlchemyError as e:
            logger.error("Loading push preferences for patient %s failed: %s", patient_id, e)
            raise UpstreamError(
                message="Einstellungen konnten nicht geladen werden.",
                context={"patient_id": str(patient_id), "error": type(e).__name__},
            ) from e

        if subscription is None:
            return PreferencesResponse()
        return PreferencesResponse(
            reminderEnabled=subscription.reminder_enabled,
            reminderTime=subscription.reminder_time,
            chatEnabled=subscription.chat_enabled,
        )

    async def update_preferences(
        self, db: AsyncSession, patient_id: uuid.UUID, changes: PreferencesUpdate
    ) -> None:
        """Applies the change to every device of the patient."""
        try:
            await db.execute(
                update(PushSubscription)
                .where(PushSubscription.patient_id == patient_id)
                .values(**changes.changes())
            )
        except SQLAlchemyError as e:
            logger.error("Updating push preferences for patient %s failed: %s", patient_id, e)
            raise UpstreamError(
                message="Einstellungen konnten nicht gespeichert werden.",
                context={"patient_id": str(patient_id), "error": type(e).__name__},
            ) from e

    # ── Dispatch ──────────────────────────────────────────────────────────
    async def send_to_patient(
        self,
        db: AsyncSession,
        sender: PushSender,
        patient_id: uuid.UUID,
        message: PushMessage,
        dispatch_filter: Optional[DispatchFilter] = None,
    ) -> DispatchResult:
        sender.ensure_configured()

        query = select(PushSubscription).where(PushSubscription.patient_id == patient_id)
        if dispatch_filter is not None:
            if dispatch_filter.chat_enabled is not None:
                query = query.where(PushSubscription.chat_enabled.is_(dispatch_filter.chat_enabled))
            if dispatch_filter.reminder_enabled is not None:
                query = query.where(PushSubscription.reminder_enabled.is_(dispatch_filter.reminder_enabled))

        try:
            result = await db.execute(query)
            subscriptions: List[PushSubscription] = list(result.scalars().all())
        except SQLAlchemyError as e:
            logger.error("Loading push subscriptions for patient %s failed: %s", patient_id, e)
            raise UpstreamError(context={"patient_id": str(patient_id), "error": type(e).__name__}) from e

        if not subscriptions:
            return DispatchResult()

        payload = build_payload(message)
        outcomes = await asyncio.gather(
            *(sender.send(subscription.subscription_json, payload) for subscription in subscriptions)
        )

        gone_ids = [s.id for s, outcome in zip(subscriptions, outcomes) if outcome is DeliveryOutcome.GONE]
        if gone_ids:
            try:
                await db.execute(delete(PushSubscription).where(PushSubscription.id.in_(gone_ids)))
            except SQLAlchemyError as e:
                logger.error("Removing expired push subscriptions failed: %s", e)
                raise UpstreamError(context={"patient_id": str(patient_id), "error": type(e).__name__}) from e

        dispatch = DispatchResult(
            sent=sum(1 for outcome in outcomes if outcome is DeliveryOutcome.SENT),
            failed=sum(1 for outcome in outcomes if outcome is DeliveryOutcome.FAILED),
            cleaned=len(gone_ids),
        )
        logger.info(
            "Push to patient %s: sent=%d failed=%d cleaned=%d",
            patient_id,
            dispatch.sent,
            dispatch.failed,
            dispatch.cleaned,
        )
        return dispatch

    async def send_to_patients(
        self,
        db: AsyncSession,
        sender: PushSender,
        patient_ids: Iterable[uuid.UUID],
        message: PushMessage,
        dispatch_filter: Optional[DispatchFilter] = None,
    ) -> DispatchResult:
        total = DispatchResult()
        for patient_id in patient_ids:
            total = total + await self.send_to_patient(db, sender, patient_id, message, dispatch_filter)
        return total


# Singleton instance
push_service = PushService()
