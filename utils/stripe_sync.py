import stripe # Stripe Python library.
from datetime import datetime, timezone
from flask import current_app # For config values and the app logger.
from sqlalchemy.exc import SQLAlchemyError # Base class for database write failures.

from extensions import db
from models import StripeSubscription, StripePayment, SubscriptionStatusEnum, PaymentStatusEnum
from products import subscription_type_for_product

# Stripe responses are dumped with .to_dict() where they are fetched; the helpers below take plain dicts.


def from_unix(timestamp):
    """Converts a Stripe unix timestamp to an aware UTC datetime (None stays None)."""
    if not timestamp:
        return None
    return datetime.fromtimestamp(timestamp, tz=timezone.utc)


def stripe_id(value):
    """
    Returns the ID of a Stripe reference that may be either a plain ID string
    or an expanded object (e.g. `price.product` after expand=['data.items.data.price.product']).
    """
    if isinstance(value, dict):
        return value.get('id')
    return value


def first_subscription_item(subscription):
    """Returns the first subscription item (the site sells one price per subscription)."""
    items = subscription.get('items') or {}
    data = items.get('data') or []
    return data[0] if data else {}


def invoice_subscription_id(invoice):
    """
    Subscription ID an invoice belongs to.
    Newer API versions move it from `invoice.subscription` to `invoice.parent.subscription_details`.
    """
    if invoice.get('subscription'):
        return stripe_id(invoice.get('subscription'))
    parent = invoice.get('parent') or {}
    details = parent.get('subscription_details') or {}
    return stripe_id(details.get('subscription'))


def find_customers_for_user(user_id):
    """
    Finds the Stripe customers that belong to a site user.

    customers.list can't filter on metadata, so the most recent customers are listed
    (STRIPE_CUSTOMER_SCAN_LIMIT of them) and matched on `metadata.user_id` here.

    Args:
        user_id (str): Supabase auth user ID.
    Returns:
        list: Matching customers as plain dicts (possibly empty).
    Raises:
        stripe.StripeError: If the Stripe API call fails.
    """
    customers = stripe.Customer.list(limit=current_app.config['STRIPE_CUSTOMER_SCAN_LIMIT']).to_dict()
    return [
        customer for customer in customers['data']
        if (customer.get('metadata') or {}).get('user_id') == user_id
    ]


def find_customer_for_user(user_id):
    matches = find_customers_for_user(user_id)
    return matches[0] if matches else None


def subscription_row(subscription, user_id):
    """
    Maps a Stripe Subscription to a stripe_subscriptions row.

    Args:
        subscription (dict-like): Stripe Subscription, ideally with items.data.price expanded.
        user_id (str): Supabase auth user ID that owns it.
    Returns:
        dict: Column values for StripeSubscription.upsert.
    """
    item = first_subscription_item(subscription)
    price = item.get('price') or {}
    product_id = stripe_id(price.get('product'))
    unit_amount = price.get('unit_amount')
    now = datetime.now(timezone.utc)

    return {
        'user_id': user_id,
        'stripe_customer_id': stripe_id(subscription.get('customer')),
        'stripe_subscription_id': subscription['id'],
        'stripe_product_id': product_id,
        'stripe_price_id': price.get('id'),
        'subscription_type': subscription_type_for_product(product_id),
        'status': SubscriptionStatusEnum.from_stripe_status(subscription.get('status')),
        # Billing period lives on the subscription in older API versions and on the item in newer ones.
        'current_period_start': from_unix(subscription.get('current_period_start') or item.get('current_period_start')),
        'current_period_end': from_unix(subscription.get('current_period_end') or item.get('current_period_end')),
        'cancel_at_period_end': bool(subscription.get('cancel_at_period_end')),
        'amount_total': unit_amount / 100 if unit_amount is not None else 0,
        'currency': (price.get('currency') or 'usd').upper(),
        'created_at': now,
        'updated_at': now,
    }


def payment_row_from_session(session, user_id):
    """Maps a paid Checkout Session to a stripe_payments row."""
    amount_total = session.get('amount_total')
    method_types = session.get('payment_method_types') or []
    return {
        'user_id': user_id,
        'stripe_checkout_session_id': session['id'],
        'stripe_payment_intent_id': stripe_id(session.get('payment_intent')),
        'stripe_subscription_id': stripe_id(session.get('subscription')),
        'amount': amount_total / 100 if amount_total else 0,
        'currency': (session.get('currency') or 'usd').upper(),
        'status': PaymentStatusEnum.SUCCEEDED,
        'payment_method_type': method_types[0] if method_types else 'card',
        'created_at': from_unix(session.get('created')) or datetime.now(timezone.utc),
    }


def payment_row_from_invoice(invoice, user_id, status):
    """
    Maps a subscription Invoice to a stripe_payments row.

    Args:
        invoice (dict-like): Stripe Invoice from an invoice.payment_* webhook.
        user_id (str): Owner taken from the subscription's metadata.
        status (PaymentStatusEnum): SUCCEEDED records `amount_paid`, FAILED records `amount_due`.
    """
    cents = invoice.get('amount_paid') if status == PaymentStatusEnum.SUCCEEDED else invoice.get('amount_due')
    return {
        'user_id': user_id,
        'stripe_checkout_session_id': None,
        'stripe_payment_intent_id': stripe_id(invoice.get('payment_intent')),
        'stripe_subscription_id': invoice_subscription_id(invoice),
        'amount': (cents or 0) / 100,
        'currency': (invoice.get('currency') or 'usd').upper(),
        'status': status,
        'payment_method_type': 'card', # Invoices don't say which method paid; cards are all we accept.
        'created_at': from_unix(invoice.get('created')) or datetime.now(timezone.utc),
    }


def save_row(model, row, label, object_id):
    """
    Upserts one row and commits it on its own.

    A failed write is rolled back and logged, and the rest of the sync carries on.

    Returns:
        bool: True if the row was committed.
    """
    try:
        model.upsert(row)
        db.session.commit()
    except SQLAlchemyError as e:
        db.session.rollback()
        current_app.logger.error(f"Error saving {label} {object_id}: {e}")
        return False
    current_app.logger.info(f"{label.capitalize()} synced: {object_id}")
    return True


def sync_user_billing(user_id):
    """
    Copies a user's Stripe subscriptions and paid checkout sessions into Supabase.

    Args:
        user_id (str): Supabase auth user ID, matched against customer `metadata.user_id`.
    Returns:
        tuple: (synced_count, customer_found). synced_count counts committed rows only.
    Raises:
        stripe.StripeError: Any Stripe API failure; nothing is retried.
    """
    customers = find_customers_for_user(user_id)
    if not customers:
        current_app.logger.info(f"No Stripe customer found for user {user_id}; nothing to sync.")
        return 0, False

    synced_count = 0
    for customer in customers:
        subscriptions = stripe.Subscription.list(
            customer=customer['id'],
            expand=['data.items.data.price'],
        ).to_dict()
        for subscription in subscriptions['data']:
            if save_row(StripeSubscription, subscription_row(subscription, user_id), 'subscription', subscription['id']):
                synced_count += 1

        # One-off purchases (consultations) only show up as checkout sessions.
        sessions = stripe.checkout.Session.list(
            customer=customer['id'],
            limit=current_app.config['STRIPE_SESSION_SYNC_LIMIT'],
        ).to_dict()
        for session in sessions['data']:
            if session.get('payment_status') != 'paid':
                continue
            if save_row(StripePayment, payment_row_from_session(session, user_id), 'payment', session['id']):
                synced_count += 1

    return synced_count, True
