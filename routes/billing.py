import math
from datetime import datetime, timezone
from flask import Blueprint, request, jsonify, current_app
import stripe # Import the Stripe Python library

from models import StripeSubscription, StripePayment # Synced rows, for the records endpoint
from products import get_all_products, get_products_by_category
from utils.stripe_sync import find_customer_for_user, find_customers_for_user, sync_user_billing

# Blueprint for the Stripe JSON API consumed by the frontend.
# Note: stripe.api_key is set once in create_app() from app.config['STRIPE_SECRET_KEY'].
billing_bp = Blueprint('billing', __name__, url_prefix='/api/stripe')


def stripe_error_response(e, default_message):
    """
    Turns an exception from a Stripe call into the JSON 500 the frontend expects.
    The underlying SDK message is passed through; `default_message` is used when there is none.
    """
    message = getattr(e, 'user_message', None) or str(e) or default_message
    return jsonify({'error': message}), 500


# Route to copy a user's existing Stripe data into Supabase.
# Used by the profile page when webhook delivery was missed (e.g. local development).
@billing_bp.route('/sync-to-database', methods=['POST'])
def sync_to_database():
    """
    Syncs Stripe subscriptions and paid checkout sessions for one user into the database.

    Request JSON:
        customerId (str): The Supabase user ID stored in Stripe customer metadata as `user_id`.
    Returns:
        JSON {message, synced}; 400 without customerId; 500 with the Stripe error message.
    """
    data = request.get_json(silent=True) or {}
    customer_id = data.get('customerId')

    if not customer_id:
        return jsonify({'error': 'Customer ID (user_id) is required'}), 400

    current_app.logger.info(f"Manually syncing Stripe data to database for user: {customer_id}")

    try:
        synced_count, customer_found = sync_user_billing(customer_id)
    except stripe.StripeError as e:
        current_app.logger.error(f"Stripe error syncing to database for user {customer_id}: {e}")
        return stripe_error_response(e, 'Failed to sync to database')
    except Exception as e:
        current_app.logger.error(f"Unexpected error syncing to database for user {customer_id}: {e}", exc_info=True)
        return stripe_error_response(e, 'Failed to sync to database')

    if not customer_found:
        return jsonify({'message': 'No Stripe customer found for this user', 'synced': 0})

    return jsonify({
        'message': f'Successfully synced {synced_count} records to database',
        'synced': synced_count,
    })


# Route to create a Stripe Checkout session (subscription or one-time payment).
@billing_bp.route('/create-checkout-session', methods=['POST'])
def create_checkout_session():
    """
    Creates a Stripe Checkout session and returns its ID and hosted URL.

    Request JSON:
        priceId (str): Required Stripe Price ID.
        mode (str): 'subscription' (default) or 'payment'.
        customerId (str): Supabase user ID; reuses or creates the matching Stripe customer.
        customerEmail (str): Prefilled email (and email for a newly created customer).
        successUrl / cancelUrl (str): Redirect URLs; default to the frontend's payment pages.
        metadata (dict): Extra metadata copied onto the subscription or payment intent.
    """
    data = request.get_json(silent=True) or {}
    price_id = data.get('priceId')
    mode = data.get('mode') or 'subscription'
    customer_id = data.get('customerId')
    customer_email = data.get('customerEmail')
    metadata = data.get('metadata') or {}

    if not price_id:
        return jsonify({'error': 'Price ID is required'}), 400
    if mode not in ('subscription', 'payment'):
        return jsonify({'error': "Mode must be 'subscription' or 'payment'"}), 400

    current_app.logger.info(f"Creating checkout session for price: {price_id} mode: {mode}")

    origin = request.headers.get('Origin') or current_app.config['FRONTEND_URL']
    session_params = {
        'payment_method_types': ['card'],
        'line_items': [{'price': price_id, 'quantity': 1}],
        'mode': mode,
        # {CHECKOUT_SESSION_ID} is a Stripe template variable replaced with the real session ID.
        'success_url': data.get('successUrl') or f'{origin}/payment-success?session_id={{CHECKOUT_SESSION_ID}}',
        'cancel_url': data.get('cancelUrl') or f'{origin}/payment-cancel',
        'metadata': {'priceId': price_id, **metadata},
        'allow_promotion_codes': True,
    }

    # Attach the user's Stripe customer so all their purchases live under one customer.
    if customer_id:
        try:
            customer = find_customer_for_user(customer_id)
            if customer:
                current_app.logger.info(f"Found existing customer: {customer['id']}")
            else:
                customer = stripe.Customer.create(email=customer_email, metadata={'user_id': customer_id}).to_dict()
                current_app.logger.info(f"Created new customer: {customer['id']}")
            session_params['customer'] = customer['id']
        except stripe.StripeError as e:
            # Not fatal: Checkout creates a customer itself when none is given.
            current_app.logger.warning(f"Error handling Stripe customer for user {customer_id}: {e}")
    if 'customer' not in session_params and customer_email:
        session_params['customer_email'] = customer_email

    # user_id on the subscription/payment intent is what the webhook uses to find the owner.
    owner_metadata = {
        'user_id': customer_id or 'anonymous',
        'price_id': price_id,
        'created_at': datetime.now(timezone.utc).isoformat(),
        **metadata,
    }
    if mode == 'subscription':
        session_params['subscription_data'] = {'metadata': owner_metadata}
    else:
        session_params['payment_intent_data'] = {'metadata': owner_metadata}

    try:
        session = stripe.checkout.Session.create(**session_params).to_dict()
    except stripe.StripeError as e:
        current_app.logger.error(f"Stripe error creating checkout session for price {price_id}: {e}")
        return stripe_error_response(e, 'Failed to create checkout session')

    current_app.logger.info(f"Checkout session created: {session['id']}")
    return jsonify({'sessionId': session['id'], 'url': session['url']})


# Route used by the payment-success page to show what was bought.
@billing_bp.route('/checkout-session/<session_id>', methods=['GET'])
def get_checkout_session(session_id):
    """Retrieves a Checkout session with line items, customer and subscription expanded."""
    try:
        session = stripe.checkout.Session.retrieve(
            session_id,
            expand=['line_items', 'customer', 'subscription'],
        ).to_dict()
    except stripe.StripeError as e:
        current_app.logger.error(f"Error retrieving checkout session {session_id}: {e}")
        return stripe_error_response(e, 'Failed to retrieve checkout session')
    return jsonify(session)


def parse_amount(value):
    """
    Reads a cents amount from JSON, accepting numbers and numeric strings ("100").
    Returns the amount as a float, or None for anything that isn't a finite number.
    """
    if isinstance(value, bool):
        return None
    try:
        amount = float(value)
    except (TypeError, ValueError):
        return None
    if not math.isfinite(amount):
        return None
    return amount


# Route to create a PaymentIntent for the custom (Elements) checkout.
@billing_bp.route('/create-payment-intent', methods=['POST'])
def create_payment_intent():
    """
    Creates a Stripe PaymentIntent.

    Request JSON:
        amount (int, float or numeric str): Amount in cents, rounded to a whole cent; Stripe's minimum is 50.
        currency (str): Defaults to 'usd'.
        customerId (str): Optional Supabase user ID used to attach an existing customer.
        metadata (dict): Extra metadata.
    Returns:
        JSON {clientSecret, id}.
    """
    data = request.get_json(silent=True) or {}
    amount = parse_amount(data.get('amount'))
    currency = (data.get('currency') or 'usd').lower()
    customer_id = data.get('customerId')
    metadata = data.get('metadata') or {}

    if amount is None or amount < 50:
        return jsonify({'error': 'Amount must be at least 50 cents'}), 400

    current_app.logger.info(f"Creating payment intent for amount: {amount} {currency}")

    intent_params = {
        'amount': int(round(amount)), # Stripe requires an integer amount.
        'currency': currency,
        'automatic_payment_methods': {'enabled': True},
        'metadata': {**metadata, 'created_at': datetime.now(timezone.utc).isoformat()},
    }

    if customer_id:
        try:
            customer = find_customer_for_user(customer_id)
            if customer:
                intent_params['customer'] = customer['id']
        except stripe.StripeError as e:
            current_app.logger.warning(f"Error finding Stripe customer for user {customer_id}: {e}")

    try:
        payment_intent = stripe.PaymentIntent.create(**intent_params).to_dict()
    except stripe.StripeError as e:
        current_app.logger.error(f"Error creating payment intent: {e}")
        return stripe_error_response(e, 'Failed to create payment intent')

    current_app.logger.info(f"Payment intent created: {payment_intent['id']}")
    return jsonify({'clientSecret': payment_intent['client_secret'], 'id': payment_intent['id']})


# Route to list a user's subscriptions straight from Stripe.
@billing_bp.route('/subscriptions', methods=['GET'])
def list_subscriptions():
    """
    Lists Stripe subscriptions across every customer belonging to a user.

    Query args:
        customerId (str): Supabase user ID.
    """
    customer_id = request.args.get('customerId')
    if not customer_id:
        return jsonify({'error': 'Customer ID is required'}), 400

    current_app.logger.info(f"Fetching subscriptions for customer: {customer_id}")

    try:
        customers = find_customers_for_user(customer_id)
        all_subscriptions = []
        for customer in customers:
            subscriptions = stripe.Subscription.list(
                customer=customer['id'],
                expand=['data.items.data.price', 'data.latest_invoice'],
            ).to_dict()
            all_subscriptions.extend(subscriptions['data'])
    except stripe.StripeError as e:
        current_app.logger.error(f"Error retrieving subscriptions for {customer_id}: {e}")
        return stripe_error_response(e, 'Failed to retrieve subscriptions')

    current_app.logger.info(f"Found {len(all_subscriptions)} subscriptions")
    return jsonify({'subscriptions': all_subscriptions})


# Route to cancel a subscription, at period end (default) or immediately.
@billing_bp.route('/subscriptions/<subscription_id>/cancel', methods=['POST'])
def cancel_subscription(subscription_id):
    data = request.get_json(silent=True) or {}
    cancel_at_period_end = data.get('cancelAtPeriodEnd', True)

    current_app.logger.info(f"Cancelling subscription: {subscription_id} at period end: {cancel_at_period_end}")

    try:
        if cancel_at_period_end:
            subscription = stripe.Subscription.modify(subscription_id, cancel_at_period_end=True).to_dict()
        else:
            subscription = stripe.Subscription.cancel(subscription_id).to_dict()
    except stripe.StripeError as e:
        current_app.logger.error(f"Error canceling subscription {subscription_id}: {e}")
        return stripe_error_response(e, 'Failed to cancel subscription')

    current_app.logger.info(f"Subscription cancelled: {subscription['id']} status: {subscription.get('status')}")
    return jsonify(subscription)


# Route to undo a pending cancel-at-period-end.
@billing_bp.route('/subscriptions/<subscription_id>/reactivate', methods=['POST'])
def reactivate_subscription(subscription_id):
    current_app.logger.info(f"Reactivating subscription: {subscription_id}")
    try:
        subscription = stripe.Subscription.modify(subscription_id, cancel_at_period_end=False).to_dict()
    except stripe.StripeError as e:
        current_app.logger.error(f"Error reactivating subscription {subscription_id}: {e}")
        return stripe_error_response(e, 'Failed to reactivate subscription')

    current_app.logger.info(f"Subscription reactivated: {subscription['id']}")
    return jsonify(subscription)


# Route to switch the card a subscription is billed to.
@billing_bp.route('/subscriptions/<subscription_id>/payment-method', methods=['POST'])
def update_payment_method(subscription_id):
    """
    Makes a payment method the default for both the customer's invoices and the subscription.

    Request JSON:
        paymentMethodId (str): Required; an already attached Stripe PaymentMethod ID.
    """
    data = request.get_json(silent=True) or {}
    payment_method_id = data.get('paymentMethodId')
    if not payment_method_id:
        return jsonify({'error': 'Payment method ID is required'}), 400

    current_app.logger.info(f"Updating payment method for subscription: {subscription_id}")

    try:
        subscription = stripe.Subscription.retrieve(subscription_id).to_dict()
        stripe.Customer.modify(
            subscription['customer'],
            invoice_settings={'default_payment_method': payment_method_id},
        )
        updated_subscription = stripe.Subscription.modify(
            subscription_id,
            default_payment_method=payment_method_id,
        ).to_dict()
    except stripe.StripeError as e:
        current_app.logger.error(f"Error updating payment method for subscription {subscription_id}: {e}")
        return stripe_error_response(e, 'Failed to update payment method')

    current_app.logger.info(f"Payment method updated for subscription: {subscription_id}")
    return jsonify(updated_subscription)


# Route to read back what has been synced for a user (profile page billing history).
@billing_bp.route('/records', methods=['GET'])
def billing_records():
    customer_id = request.args.get('customerId')
    if not customer_id:
        return jsonify({'error': 'Customer ID is required'}), 400

    subscriptions = StripeSubscription.query.filter_by(user_id=customer_id)\
        .order_by(StripeSubscription.created_at.desc()).all()
    payments = StripePayment.query.filter_by(user_id=customer_id)\
        .order_by(StripePayment.created_at.desc()).all()

    return jsonify({
        'subscriptions': [subscription.to_dict() for subscription in subscriptions],
        'payments': [payment.to_dict() for payment in payments],
    })


# Route serving the product catalog to the pricing page.
@billing_bp.route('/products', methods=['GET'])
def list_products():
    category = request.args.get('category')
    products = get_products_by_category(category) if category else get_all_products()
    return jsonify({'products': products})
