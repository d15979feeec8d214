from datetime import datetime, timezone
from flask import Blueprint, request, jsonify, current_app
import stripe # Stripe Python library, for signature verification and subscription lookups

from extensions import db
from models import StripeSubscription, StripePayment, StripeEvent, SubscriptionStatusEnum, PaymentStatusEnum
from utils.stripe_sync import (
    subscription_row,
    payment_row_from_session,
    payment_row_from_invoice,
    invoice_subscription_id,
)

# Blueprint for inbound webhooks. Must stay publicly reachable (Stripe POSTs to it);
# authenticity is established by the Stripe-Signature header instead.
webhooks_bp = Blueprint('webhooks', __name__, url_prefix='/api/webhooks')


@webhooks_bp.route('/stripe', methods=['POST'])
def stripe_webhook():
    """
    Handles incoming Stripe webhook events and mirrors them into the billing tables.

    Responds 400 for an invalid payload/signature, 200 {"received": true} once the event is
    handled (or was already handled), and 500 if processing fails so Stripe retries later.
    """
    # The signature is computed over the raw body, so request.data (not get_json) is used.
    payload = request.get_data()
    sig_header = request.headers.get('Stripe-Signature')

    # --- Webhook Signature Verification ---
    try:
        event = stripe.Webhook.construct_event(
            payload, sig_header, current_app.config['STRIPE_WEBHOOK_SECRET']
        )
    except ValueError as e:
        # Invalid payload (e.g., not valid JSON).
        current_app.logger.error(f"Webhook payload error: {e}")
        return f'Webhook Error: {e}', 400
    except stripe.SignatureVerificationError as e:
        # Spoofed request or misconfigured STRIPE_WEBHOOK_SECRET.
        current_app.logger.error(f"Webhook signature verification failed: {e}")
        return f'Webhook Error: {e}', 400

    event = event.to_dict() # Plain dicts from here on.
    event_id = event['id']
    event_type = event['type']
    current_app.logger.info(f"Received webhook event: {event_type} {event_id}")

    # Idempotency: Stripe resends events it thinks weren't delivered.
    if StripeEvent.already_processed(event_id):
        current_app.logger.info(f"Webhook event {event_id} already processed; skipping.")
        return jsonify({'received': True})

    handler = EVENT_HANDLERS.get(event_type)
    try:
        if handler:
            handler(event['data']['object'])
        else:
            current_app.logger.info(f"Unhandled event type: {event_type}")
        db.session.add(StripeEvent(stripe_event_id=event_id, event_type=event_type))
        db.session.commit()
    except Exception as e:
        db.session.rollback()
        current_app.logger.error(f"Error processing webhook {event_type} {event_id}: {e}", exc_info=True)
        return jsonify({'error': 'Webhook processing failed'}), 500

    return jsonify({'received': True})


# ====================================
# Event handlers. Each one stages its changes in db.session; the webhook route commits
# them together with the StripeEvent marker. Exceptions propagate to the route.
# ====================================

def handle_checkout_completed(session):
    """checkout.session.completed: record the payment for the buying user."""
    user_id = (session.get('metadata') or {}).get('user_id') or session.get('client_reference_id')
    customer_details = session.get('customer_details') or {}
    customer_email = customer_details.get('email') or session.get('customer_email')
    current_app.logger.info(f"Checkout completed for user: {user_id} email: {customer_email}")

    # Subscription rows are written by customer.subscription.created.
    StripePayment.upsert(payment_row_from_session(session, user_id))


def handle_subscription_created(subscription):
    """customer.subscription.created: store the new subscription."""
    user_id = (subscription.get('metadata') or {}).get('user_id')
    if not user_id:
        current_app.logger.warning(f"No user_id found in subscription metadata for {subscription['id']}")
        return

    current_app.logger.info(f"Creating subscription {subscription['id']} for user: {user_id}")
    StripeSubscription.upsert(subscription_row(subscription, user_id))


def handle_subscription_updated(subscription):
    """customer.subscription.updated: refresh status, billing period and the cancel flag."""
    record = StripeSubscription.query.filter_by(stripe_subscription_id=subscription['id']).first()
    if record is None:
        current_app.logger.warning(f"Subscription {subscription['id']} not found locally; nothing to update.")
        return

    row = subscription_row(subscription, record.user_id)
    record.status = row['status']
    record.current_period_start = row['current_period_start']
    record.current_period_end = row['current_period_end']
    record.cancel_at_period_end = row['cancel_at_period_end']
    record.updated_at = datetime.now(timezone.utc)
    current_app.logger.info(f"Subscription {subscription['id']} updated: status {record.status.value}")


def handle_subscription_deleted(subscription):
    """customer.subscription.deleted: mark the subscription cancelled."""
    mark_subscription_status(subscription['id'], SubscriptionStatusEnum.CANCELLED)


def handle_payment_succeeded(invoice):
    """invoice.payment_succeeded: record the renewal payment and make the subscription active."""
    record_invoice_payment(invoice, PaymentStatusEnum.SUCCEEDED, SubscriptionStatusEnum.ACTIVE)


def handle_payment_failed(invoice):
    """invoice.payment_failed: record the failed attempt and flag the subscription past due."""
    record_invoice_payment(invoice, PaymentStatusEnum.FAILED, SubscriptionStatusEnum.PAST_DUE)


def record_invoice_payment(invoice, payment_status, subscription_status):
    """
    Shared body of the invoice.payment_* handlers.

    The invoice doesn't carry our user ID, so the subscription is fetched from Stripe and its
    `metadata.user_id` is used. Invoices for one-off charges (no subscription) are ignored.
    """
    subscription_id = invoice_subscription_id(invoice)
    if not subscription_id:
        current_app.logger.info(f"Invoice {invoice['id']} has no subscription; ignoring.")
        return

    subscription = stripe.Subscription.retrieve(subscription_id).to_dict()
    user_id = (subscription.get('metadata') or {}).get('user_id')
    if not user_id:
        current_app.logger.warning(f"No user_id in metadata of subscription {subscription_id}; invoice {invoice['id']} not recorded.")
        return

    StripePayment.upsert(payment_row_from_invoice(invoice, user_id, payment_status))
    mark_subscription_status(subscription_id, subscription_status)
    current_app.logger.info(f"Invoice {invoice['id']} recorded as {payment_status.value} for user {user_id}")


def mark_subscription_status(subscription_id, status):
    record = StripeSubscription.query.filter_by(stripe_subscription_id=subscription_id).first()
    if record is None:
        current_app.logger.warning(f"Subscription {subscription_id} not found locally; status {status.value} not applied.")
        return
    record.status = status
    record.updated_at = datetime.now(timezone.utc)
    current_app.logger.info(f"Subscription {subscription_id} marked as {status.value}")


EVENT_HANDLERS = {
    'checkout.session.completed': handle_checkout_completed,
    'customer.subscription.created': handle_subscription_created,
    'customer.subscription.updated': handle_subscription_updated,
    'customer.subscription.deleted': handle_subscription_deleted,
    'invoice.payment_succeeded': handle_payment_succeeded,
    'invoice.payment_failed': handle_payment_failed,
}
