import uuid
from tourbook import db
from tourbook.utils.timeutils import utcnow, isoformat_utc


def _new_tour_id():
    return str(uuid.uuid4())


class Tour(db.Model):
    __tablename__ = 'tours'
    __table_args__ = (
        db.Index('ix_tours_property_slot', 'property_id', 'scheduled_at'),
    )

    id = db.Column(db.String(36), primary_key=True, default=_new_tour_id)

    # Parties, fixed at creation
    property_id = db.Column(db.String(36), db.ForeignKey('properties.id'), nullable=False, index=True)
    landlord_id = db.Column(db.String(36), nullable=False, index=True)
    tenant_id = db.Column(db.String(36), nullable=False, index=True)

    # Status: requested, confirmed, rescheduled, completed, cancelled
    status = db.Column(db.String(20), nullable=False, default='requested', index=True)

    # Slot
    scheduled_at = db.Column(db.DateTime, nullable=False)
    timezone = db.Column(db.String(64), nullable=True)

    # Annotations
    notes = db.Column(db.Text, nullable=True)
    cancelled_reason = db.Column(db.Text, nullable=True)
    cancelled_by = db.Column(db.String(36), nullable=True)

    # Timestamps
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)
    completed_at = db.Column(db.DateTime, nullable=True)

    def role_of(self, user_id):
        """Return 'landlord', 'tenant' or None for the given user"""
        if user_id is None:
            return None
        if str(self.landlord_id) == str(user_id):
            return 'landlord'
        if str(self.tenant_id) == str(user_id):
            return 'tenant'
        return None

    def other_party(self, user_id):
        if self.role_of(user_id) == 'landlord':
            return self.tenant_id
        return self.landlord_id

    def to_dict(self, viewer_id=None, include_property=False):
        from tourbook.services.tour_status import actions_for, TOUR_STATUS_META

        data = {
            'id': self.id,
            'property_id': self.property_id,
            'landlord_id': self.landlord_id,
            'tenant_id': self.tenant_id,
            'status': self.status,
            'status_label': TOUR_STATUS_META.get(self.status, {}).get('label'),
            'scheduled_at': isoformat_utc(self.scheduled_at),
            'timezone': self.timezone,
            'notes': self.notes,
            'cancelled_reason': self.cancelled_reason,
            'cancelled_by': self.cancelled_by,
            'created_at': isoformat_utc(self.created_at),
            'updated_at': isoformat_utc(self.updated_at),
            'completed_at': isoformat_utc(self.completed_at),
        }

        role = self.role_of(viewer_id)
        if role:
            data['viewer_role'] = role
            data['available_actions'] = actions_for(role, self.status)

        if include_property and self.property:
            data['property'] = self.property.to_summary()

        if include_property and self.scheduled_at:
            from tourbook.services.tour_calendar import event_for_tour, google_calendar_url
            data['calendar_url'] = google_calendar_url(event_for_tour(self))

        return data

    def __repr__(self):
        return f'<Tour {self.id} {self.status}>'
