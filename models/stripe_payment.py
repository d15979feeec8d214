import enum
from extensions import db
from .stripe_subscription import utcnow, enum_values


class PaymentStatusEnum(enum.Enum):
    """Outcome of a payment as recorded in stripe_payments.status."""
    SUCCEEDED = 'succeeded'
    FAILED = 'failed'


class StripePayment(db.Model):
    """
    A completed checkout session or subscription invoice payment, mirrored into the
    Supabase `stripe_payments` table.

    Checkout payments are keyed on `stripe_checkout_session_id`. Invoice payments (renewals)
    have no checkout session and carry `stripe_payment_intent_id` instead.
    """
    __tablename__ = 'stripe_payments'

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.String(64), nullable=True, index=True) # Supabase auth user ID.

    # --- Stripe identifiers ---
    # Unique but nullable: invoice-driven payments leave it empty.
    stripe_checkout_session_id = db.Column(db.String(255), unique=True, nullable=True, index=True)
    stripe_payment_intent_id = db.Column(db.String(255), nullable=True, index=True)
    stripe_subscription_id = db.Column(db.String(100), nullable=True, index=True)

    # --- Amount ---
    amount = db.Column(db.Numeric(10, 2, asdecimal=False), nullable=False, default=0) # Major units.
    currency = db.Column(db.String(3), nullable=False, default='USD')

    status = db.Column(
        db.Enum(PaymentStatusEnum, native_enum=False, length=16, values_callable=enum_values),
        nullable=False,
        default=PaymentStatusEnum.SUCCEEDED,
    )
    payment_method_type = db.Column(db.String(50), nullable=False, default='card')

    # When the payment happened in Stripe (session/invoice creation time).
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)

    @classmethod
    def upsert(cls, row):
        """
        Inserts or updates a checkout payment keyed on `stripe_checkout_session_id`.
        Rows without a session ID (invoice payments) are always inserted.
        """
        session_id = row.get('stripe_checkout_session_id')
        record = cls.query.filter_by(stripe_checkout_session_id=session_id).first() if session_id else None
        if record is None:
            record = cls(**row)
            db.session.add(record)
            return record

        for field, value in row.items():
            setattr(record, field, value)
        return record

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'stripe_checkout_session_id': self.stripe_checkout_session_id,
            'stripe_payment_intent_id': self.stripe_payment_intent_id,
            'stripe_subscription_id': self.stripe_subscription_id,
            'amount': self.amount,
            'currency': self.currency,
            'status': self.status.value if self.status else None,
            'payment_method_type': self.payment_method_type,
            'created_at': self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f'<StripePayment {self.stripe_checkout_session_id or self.stripe_payment_intent_id} - {self.amount} {self.currency}>'
