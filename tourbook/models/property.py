from tourbook.utils.timeutils import utcnow
from tourbook import db


class Property(db.Model):
    """Listing reference owned by the listings service; read-only for tours"""
    __tablename__ = 'properties'

    id = db.Column(db.String(36), primary_key=True)
    landlord_id = db.Column(db.String(36), nullable=False, index=True)
    title = db.Column(db.String(255), nullable=False)
    slug = db.Column(db.String(255), nullable=True, unique=True)
    address = db.Column(db.String(500), nullable=True)
    city = db.Column(db.String(100), nullable=True)

    tours = db.relationship('Tour', backref='property', lazy='dynamic')

    created_at = db.Column(db.DateTime, default=utcnow)

    def is_owned_by(self, user_id):
        return str(self.landlord_id) == str(user_id)

    def to_summary(self):
        return {
            'id': self.id,
            'title': self.title,
            'slug': self.slug,
            'address': self.address,
            'city': self.city,
        }

    def __repr__(self):
        return f'<Property {self.id}>'
