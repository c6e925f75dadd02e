"""
Quotation CRUD Operations
Listings and the back-office notification feed
"""
from datetime import date, datetime, time
from typing import List, Optional, Tuple

from sqlalchemy import func, or_
from sqlalchemy.orm import Session

from app.models.quotation import Quotation, QuotationNotification


class QuotationCRUD:
    """
    Read-side queries for quotations
    """

    @staticmethod
    def list_quotations(
        db: Session,
        status: Optional[str] = None,
        search: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> List[Tuple[Quotation, int]]:
        """Quotations newest first, each paired with its unread notification count"""
        unread = db.query(
            QuotationNotification.quotation_id.label("quotation_id"),
            func.count(QuotationNotification.id).label("unread_count")
        ).filter(
            QuotationNotification.is_read.is_(False)
        ).group_by(
            QuotationNotification.quotation_id
        ).subquery()

        query = db.query(
            Quotation,
            func.coalesce(unread.c.unread_count, 0)
        ).outerjoin(unread, unread.c.quotation_id == Quotation.id)

        if status and status != "all":
            query = query.filter(Quotation.status == status)

        if search:
            search_pattern = f"%{search}%"
            query = query.filter(
                or_(
                    Quotation.quotation_id.ilike(search_pattern),
                    Quotation.customer_name.ilike(search_pattern),
                    Quotation.customer_email.ilike(search_pattern),
                    Quotation.customer_company.ilike(search_pattern)
                )
            )

        if date_from:
            query = query.filter(Quotation.created_at >= datetime.combine(date_from, time.min))
        if date_to:
            query = query.filter(Quotation.created_at <= datetime.combine(date_to, time.max))

        rows = query.order_by(Quotation.created_at.desc()).all()
        return [(quotation, int(count)) for quotation, count in rows]

    @staticmethod
    def list_notifications(db: Session, limit: int) -> List[dict]:
        rows = db.query(
            QuotationNotification,
            Quotation.quotation_id,
            Quotation.customer_name,
            Quotation.total
        ).join(
            Quotation, Quotation.id == QuotationNotification.quotation_id
        ).order_by(
            QuotationNotification.created_at.desc()
        ).limit(limit).all()

        return [
            {
                "id": notification.id,
                "quotation_id": notification.quotation_id,
                "quotation_reference": reference,
                "customer_name": customer_name,
                "total": float(total),
                "notification_type": notification.notification_type,
                "is_read": notification.is_read,
                "created_at": notification.created_at,
            }
            for notification, reference, customer_name, total in rows
        ]

    @staticmethod
    def count_unread(db: Session) -> int:
        return db.query(func.count(QuotationNotification.id)).filter(
            QuotationNotification.is_read.is_(False)
        ).scalar() or 0
