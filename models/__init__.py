# Supabase tables mirrored from Stripe.
from .stripe_subscription import StripeSubscription, SubscriptionStatusEnum
from .stripe_payment import StripePayment, PaymentStatusEnum
from .stripe_event import StripeEvent
