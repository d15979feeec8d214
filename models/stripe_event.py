from extensions import db
from .stripe_subscription import utcnow


class StripeEvent(db.Model):
    """
    Webhook events that were processed successfully, keyed by Stripe event ID.

    The webhook handler checks this table first and acknowledges duplicates without
    touching the billing tables again (Stripe resends events it thinks weren't delivered).
    """
    __tablename__ = 'stripe_events'

    id = db.Column(db.Integer, primary_key=True)
    stripe_event_id = db.Column(db.String(255), unique=True, nullable=False) # e.g. "evt_1Abc..."
    event_type = db.Column(db.String(255), nullable=False) # e.g. "checkout.session.completed"
    processed_at = db.Column(db.DateTime(timezone=True), default=utcnow)

    @classmethod
    def already_processed(cls, stripe_event_id):
        return cls.query.filter_by(stripe_event_id=stripe_event_id).first() is not None

    def __repr__(self):
        return f'<StripeEvent {self.stripe_event_id} ({self.event_type})>'
