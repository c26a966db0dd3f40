"""
Dealer applications.
Approving an application moves the applicant to the wholesale price tier.
"""
import logging
from typing import Optional

from sqlalchemy.orm import Session

from storefront.exceptions import BusinessLogicError, NotFoundError
from storefront.models import DealerApplication, DealerStatus, Profile
from storefront.services.pricing_service import wholesale_role
from storefront.utils.dates import utcnow

logger = logging.getLogger(__name__)


def submit_application(session: Session, profile_id: str, company_name: str, tax_number: Optional[str] = None) -> DealerApplication:
    """Create a pending application; one pending application per profile."""
    company_name = (company_name or '').strip()
    if not company_name:
        raise BusinessLogicError('Company name is required')

    if session.get(Profile, profile_id) is None:
        raise NotFoundError('Profile not found.')

    pending = (
        session.query(DealerApplication.id)
        .filter(
            DealerApplication.profile_id == profile_id,
            DealerApplication.status == DealerStatus.PENDING.value,
        )
        .first()
    )
    if pending:
        raise BusinessLogicError('You already have a pending dealer application')

    try:
        application = DealerApplication(
            profile_id=profile_id,
            company_name=company_name,
            tax_number=(tax_number or '').strip() or None,
            status=DealerStatus.PENDING.value,
        )
        session.add(application)
        session.commit()
    except Exception:
        session.rollback()
        raise
    logger.info(f"[DEALERS] Application {application.id} submitted by {profile_id}")
    return application


def _pending_application(session: Session, application_id: str) -> DealerApplication:
    application = session.get(DealerApplication, application_id)
    if application is None:
        raise NotFoundError('Dealer application not found.')
    if application.status != DealerStatus.PENDING.value:
        raise BusinessLogicError(f'Application is already {application.status}')
    return application


def approve_application(session: Session, application_id: str) -> DealerApplication:
    """Approve and upgrade the applicant's role in one transaction."""
    try:
        application = _pending_application(session, application_id)
        profile = session.get(Profile, application.profile_id)
        if profile is None:
            raise NotFoundError('Profile not found.')
        application.status = DealerStatus.APPROVED.value
        application.reviewed_at = utcnow()
        profile.role = wholesale_role()
        session.commit()
    except Exception:
        session.rollback()
        raise
    logger.info(f"[DEALERS] Application {application_id} approved, profile {profile.id} is now {profile.role}")
    return application


def reject_application(session: Session, application_id: str) -> DealerApplication:
    try:
        application = _pending_application(session, application_id)
        application.status = DealerStatus.REJECTED.value
        application.reviewed_at = utcnow()
        session.commit()
    except Exception:
        session.rollback()
        raise
    logger.info(f"[DEALERS] Application {application_id} rejected")
    return application
