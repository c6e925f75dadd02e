"""
Invoice CRUD Operations
Filtered listings and statistics queries for invoices
"""
from collections import OrderedDict
from datetime import date
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import and_, case, func, or_
from sqlalchemy.orm import Session

from app.models.invoice import Invoice, InvoicePayment


def _months_back(today: date, months: int) -> date:
    """First day of the month `months` months before today's month"""
    month_index = today.year * 12 + (today.month - 1) - months
    return date(month_index // 12, month_index % 12 + 1, 1)


class InvoiceCRUD:
    """
    Read-side queries for invoices
    """

    @staticmethod
    def overdue_clause(today: date):
        """SQL form of the derived overdue status"""
        return and_(
            Invoice.due_date < today,
            Invoice.balance_due > 0,
            Invoice.status.notin_(["paid", "cancelled"])
        )

    @staticmethod
    def list_invoices(
        db: Session,
        today: date,
        status: Optional[str] = None,
        search: Optional[str] = None,
        customer: Optional[str] = None,
        date_from: Optional[date] = None,
        date_to: Optional[date] = None,
    ) -> List[Invoice]:
        query = db.query(Invoice)

        if status and status != "all":
            if status == "overdue":
                query = query.filter(InvoiceCRUD.overdue_clause(today))
            else:
                query = query.filter(Invoice.status == status)

        if search:
            search_pattern = f"%{search}%"
            query = query.filter(
                or_(
                    Invoice.invoice_number.ilike(search_pattern),
                    Invoice.customer_name.ilike(search_pattern),
                    Invoice.customer_email.ilike(search_pattern),
                    Invoice.customer_company.ilike(search_pattern)
                )
            )

        if customer:
            query = query.filter(Invoice.customer_email == customer)

        if date_from:
            query = query.filter(Invoice.issue_date >= date_from)
        if date_to:
            query = query.filter(Invoice.issue_date <= date_to)

        return query.order_by(Invoice.created_at.desc()).all()

    @staticmethod
    def list_payments(db: Session, invoice_id) -> List[InvoicePayment]:
        return db.query(InvoicePayment).filter(
            InvoicePayment.invoice_id == invoice_id
        ).order_by(
            InvoicePayment.payment_date.desc(),
            InvoicePayment.created_at.desc()
        ).all()

    @staticmethod
    def get_stats(db: Session, today: date) -> Dict[str, Any]:
        """
        Counts and amounts across all invoices
        Overdue is computed, not read from the status column
        """
        def count_status(value):
            return func.coalesce(func.sum(case((Invoice.status == value, 1), else_=0)), 0)

        open_invoice = Invoice.status.notin_(["paid", "cancelled"])

        row = db.query(
            func.count(Invoice.id).label("total"),
            count_status("draft").label("draft"),
            count_status("pending").label("pending"),
            count_status("paid").label("paid"),
            count_status("cancelled").label("cancelled"),
            func.coalesce(
                func.sum(case((InvoiceCRUD.overdue_clause(today), 1), else_=0)), 0
            ).label("overdue"),
            func.coalesce(func.sum(Invoice.total), 0).label("total_amount"),
            func.coalesce(
                func.sum(case((Invoice.status == "paid", Invoice.total), else_=0)), 0
            ).label("paid_amount"),
            func.coalesce(
                func.sum(case((open_invoice, Invoice.total), else_=0)), 0
            ).label("outstanding_amount"),
            func.coalesce(func.sum(Invoice.balance_due), 0).label("total_balance_due"),
            func.coalesce(func.avg(Invoice.total), 0).label("average_invoice_value"),
            func.min(Invoice.issue_date).label("first_invoice_date"),
            func.max(Invoice.issue_date).label("latest_invoice_date"),
        ).one()

        # Last 6 months, newest first
        recent = db.query(Invoice.issue_date, Invoice.total).filter(
            Invoice.issue_date >= _months_back(today, 6)
        ).all()
        monthly: Dict[str, Dict[str, Any]] = OrderedDict()
        for issue_date, total in sorted(recent, key=lambda r: r.issue_date, reverse=True):
            bucket = monthly.setdefault(issue_date.strftime("%Y-%m"), {"count": 0, "total": Decimal("0")})
            bucket["count"] += 1
            bucket["total"] += Decimal(str(total))

        top_customers = db.query(
            Invoice.customer_name,
            Invoice.customer_email,
            func.count(Invoice.id).label("invoice_count"),
            func.sum(Invoice.total).label("total_spent")
        ).filter(
            Invoice.status == "paid"
        ).group_by(
            Invoice.customer_name, Invoice.customer_email
        ).order_by(
            func.sum(Invoice.total).desc()
        ).limit(5).all()

        return {
            "total": int(row.total or 0),
            "draft": int(row.draft),
            "pending": int(row.pending),
            "paid": int(row.paid),
            "cancelled": int(row.cancelled),
            "overdue": int(row.overdue),
            "total_amount": float(row.total_amount),
            "paid_amount": float(row.paid_amount),
            "outstanding_amount": float(row.outstanding_amount),
            "total_balance_due": float(row.total_balance_due),
            "average_invoice_value": round(float(row.average_invoice_value), 2),
            "first_invoice_date": row.first_invoice_date,
            "latest_invoice_date": row.latest_invoice_date,
            "monthly": [
                {"month": month, "count": data["count"], "total": float(data["total"])}
                for month, data in monthly.items()
            ],
            "top_customers": [
                {
                    "customer_name": c.customer_name,
                    "customer_email": c.customer_email,
                    "invoice_count": int(c.invoice_count),
                    "total_spent": float(c.total_spent or 0),
                }
                for c in top_customers
            ],
        }
