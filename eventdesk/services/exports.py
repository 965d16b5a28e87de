"""CSV export of an event's registrations."""

from __future__ import annotations

import csv
import io
import re
from datetime import datetime
from typing import Iterable

from eventdesk.models import Event, PaymentStatus, Registration, as_utc
from eventdesk.services.admission import resolve_amount
from eventdesk.services.notifications import position_label

BASE_COLUMNS = [
    'Position', 'Name', 'Category', 'Email', 'Phone', 'School', 'Note',
    'Registration ID', 'Registered At',
]
PAID_COLUMNS = ['Amount', 'Payment Status', 'Transaction ID']


def export_filename(event: Event, today: datetime) -> str:
    safe_title = re.sub(r'[\\/*?:\[\]]', '-', event.title or 'event')[:30]
    return f"registrations-{safe_title}-{today:%Y-%m-%d}.csv"


def registration_rows(event: Event, registrations: Iterable[Registration]) -> list[dict]:
    rows = []
    for registration in registrations:
        created = as_utc(registration.created_at)
        row = {
            'Position': position_label(registration.position) if registration.position else '',
            'Name': registration.name,
            'Category': registration.category or '',
            'Email': registration.email,
            'Phone': registration.phone,
            'School': registration.school,
            'Note': registration.note or '',
            'Registration ID': registration.id,
            'Registered At': created.strftime('%Y-%m-%d %H:%M') if created else '',
        }
        if event.is_paid:
            row['Amount'] = (
                registration.amount_paid
                if registration.amount_paid is not None
                else resolve_amount(event, registration.category)
            )
            row['Payment Status'] = (
                'Pending' if registration.payment_status == PaymentStatus.PENDING else 'Completed'
            )
            row['Transaction ID'] = registration.transaction_id or ''
        rows.append(row)
    return rows


def export_registrations_csv(event: Event, registrations: Iterable[Registration]) -> str:
    fields = BASE_COLUMNS + (PAID_COLUMNS if event.is_paid else [])
    output = io.StringIO()
    writer = csv.DictWriter(output, fieldnames=fields)
    writer.writeheader()
    writer.writerows(registration_rows(event, registrations))
    return output.getvalue()


__all__ = ['export_filename', 'registration_rows', 'export_registrations_csv']
