import enum
from datetime import datetime, timezone
from extensions import db # Import the SQLAlchemy instance.


def utcnow():
    """Timezone-aware 'now' used for column defaults."""
    return datetime.now(timezone.utc)


class SubscriptionStatusEnum(enum.Enum):
    """
    Enumeration for the statuses stored in stripe_subscriptions.status.
    Values are the plain strings the frontend reads from Supabase.
    """
    ACTIVE = 'active'        # Subscription is currently active and paid.
    CANCELLED = 'cancelled'  # Subscription has ended or was deleted in Stripe.
    PAST_DUE = 'past_due'    # Latest invoice payment failed; Stripe is retrying.
    TRIALING = 'trialing'    # Customer is in a free trial period.
    INCOMPLETE = 'incomplete' # Initial payment failed or requires further action.
    INCOMPLETE_EXPIRED = 'incomplete_expired' # Incomplete payment expired.
    UNPAID = 'unpaid'        # Retries exhausted without payment.
    PAUSED = 'paused'        # Trial ended without a payment method.
    UNKNOWN = 'unknown'      # Status string we don't recognise.

    @staticmethod
    def from_stripe_status(stripe_status_str):
        """
        Maps a Stripe subscription status string to a SubscriptionStatusEnum member.
        Args:
            stripe_status_str (str or None): The status string from Stripe (e.g., "active", "canceled").
        Returns:
            SubscriptionStatusEnum: The corresponding member; UNKNOWN if there is no match.
        """
        # Stripe status reference: https://stripe.com/docs/api/subscriptions/object#subscription_object-status
        mapping = {
            'active': SubscriptionStatusEnum.ACTIVE,
            'trialing': SubscriptionStatusEnum.TRIALING,
            'past_due': SubscriptionStatusEnum.PAST_DUE,
            'canceled': SubscriptionStatusEnum.CANCELLED, # Stripe uses "canceled"
            'cancelled': SubscriptionStatusEnum.CANCELLED,
            'unpaid': SubscriptionStatusEnum.UNPAID,
            'incomplete': SubscriptionStatusEnum.INCOMPLETE,
            'incomplete_expired': SubscriptionStatusEnum.INCOMPLETE_EXPIRED,
            'paused': SubscriptionStatusEnum.PAUSED,
        }
        if not stripe_status_str:
            return SubscriptionStatusEnum.UNKNOWN
        return mapping.get(stripe_status_str.lower(), SubscriptionStatusEnum.UNKNOWN)


def enum_values(enum_cls):
    """Makes db.Enum persist member values ('past_due') instead of names ('PAST_DUE')."""
    return [member.value for member in enum_cls]


class StripeSubscription(db.Model):
    """
    A Stripe subscription mirrored into the Supabase `stripe_subscriptions` table.

    Rows are written by the manual sync endpoint and by the Stripe webhook. `user_id` is the
    Supabase auth user ID stored in the Stripe customer's metadata, so it is a string (UUID),
    not a foreign key.
    """
    __tablename__ = 'stripe_subscriptions'

    id = db.Column(db.Integer, primary_key=True)

    # --- Ownership ---
    user_id = db.Column(db.String(64), nullable=False, index=True) # Supabase auth user ID.
    stripe_customer_id = db.Column(db.String(100), nullable=True, index=True)

    # --- Stripe identifiers ---
    # Natural key for upserts; one Stripe subscription maps to one row.
    stripe_subscription_id = db.Column(db.String(100), unique=True, nullable=False, index=True)
    stripe_product_id = db.Column(db.String(100), nullable=True)
    stripe_price_id = db.Column(db.String(100), nullable=True)
    subscription_type = db.Column(db.String(50), nullable=False, default='unknown') # See products.SUBSCRIPTION_TYPES.

    # --- Status and billing period ---
    status = db.Column(
        db.Enum(SubscriptionStatusEnum, native_enum=False, length=32, values_callable=enum_values),
        nullable=False,
        default=SubscriptionStatusEnum.INCOMPLETE,
        index=True,
    )
    current_period_start = db.Column(db.DateTime(timezone=True), nullable=True)
    current_period_end = db.Column(db.DateTime(timezone=True), nullable=True)
    cancel_at_period_end = db.Column(db.Boolean, nullable=False, default=False)

    # --- Price snapshot ---
    amount_total = db.Column(db.Numeric(10, 2, asdecimal=False), nullable=True) # Major units (e.g. 680.00).
    currency = db.Column(db.String(3), nullable=False, default='USD')

    # --- Timestamps ---
    created_at = db.Column(db.DateTime(timezone=True), default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), default=utcnow, onupdate=utcnow)

    @classmethod
    def upsert(cls, row):
        """
        Inserts or updates a subscription keyed on `stripe_subscription_id`.

        The caller owns the transaction (commit/rollback). On update, `created_at` is kept
        so re-syncing doesn't rewrite when we first saw the subscription.

        Args:
            row (dict): Column values, as built by utils.stripe_sync.subscription_row.
        Returns:
            StripeSubscription: The pending (added or modified) instance.
        """
        record = cls.query.filter_by(stripe_subscription_id=row['stripe_subscription_id']).first()
        if record is None:
            record = cls(**row)
            db.session.add(record)
            return record

        for field, value in row.items():
            if field == 'created_at':
                continue
            setattr(record, field, value)
        return record

    def to_dict(self):
        return {
            'id': self.id,
            'user_id': self.user_id,
            'stripe_customer_id': self.stripe_customer_id,
            'stripe_subscription_id': self.stripe_subscription_id,
            'stripe_product_id': self.stripe_product_id,
            'stripe_price_id': self.stripe_price_id,
            'subscription_type': self.subscription_type,
            'status': self.status.value if self.status else None,
            'current_period_start': self.current_period_start.isoformat() if self.current_period_start else None,
            'current_period_end': self.current_period_end.isoformat() if self.current_period_end else None,
            'cancel_at_period_end': self.cancel_at_period_end,
            'amount_total': self.amount_total,
            'currency': self.currency,
            'created_at': self.created_at.isoformat() if self.created_at else None,
            'updated_at': self.updated_at.isoformat() if self.updated_at else None,
        }

    def __repr__(self):
        return f'<StripeSubscription {self.stripe_subscription_id} - User {self.user_id} - Status {self.status.value if self.status else None}>'
