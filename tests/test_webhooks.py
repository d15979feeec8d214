import pytest
import stripe
from models import StripeSubscription, StripePayment, StripeEvent, SubscriptionStatusEnum, PaymentStatusEnum

USER_ID = 'user-123'

STRIPE_KEY = 'sk_test_dummy'

def make_event(event_type, obj, event_id='evt_1'):
    """A stripe.Event as construct_event returns it, with the payload as nested SDK objects."""
    return stripe.Event.construct_from(
        {'id': event_id, 'object': 'event', 'type': event_type, 'data': {'object': obj}},
        STRIPE_KEY,
    )

def as_subscription(values):
    return stripe.Subscription.construct_from(values, STRIPE_KEY)

def make_subscription(**overrides):
    subscription = {
        'id': 'sub_1',
        'customer': 'cus_1',
        'status': 'active',
        'current_period_start': 1735689600,
        'current_period_end': 1738368000,
        'cancel_at_period_end': False,
        'metadata': {'user_id': USER_ID},
        'items': {'data': [{'price': {
            'id': 'price_1Rg5R6HIeYfvCylDcsV3T2Kr',
            'product': 'prod_SbI1dssS5NElLZ',
            'unit_amount': 30000,
            'currency': 'usd',
        }}]},
    }
    subscription.update(overrides)
    return subscription

def post_event(client, mocker, event):
    construct = mocker.patch('stripe.Webhook.construct_event', return_value=event)
    response = client.post('/api/webhooks/stripe', data=b'{}', headers={'Stripe-Signature': 't=1,v1=abc'})
    return response, construct

def seed_subscription(db, status=SubscriptionStatusEnum.ACTIVE):
    db.session.add(StripeSubscription(user_id=USER_ID, stripe_subscription_id='sub_1', status=status))
    db.session.commit()

# --- Verification ---

def test_invalid_signature_returns_400(client, db, mocker):
    mocker.patch('stripe.Webhook.construct_event',
                 side_effect=stripe.SignatureVerificationError('No signatures found', 'bad-header'))
    response = client.post('/api/webhooks/stripe', data=b'{}', headers={'Stripe-Signature': 'bad-header'})
    assert response.status_code == 400
    assert response.get_data(as_text=True).startswith('Webhook Error:')

def test_invalid_payload_returns_400(client, db, mocker):
    mocker.patch('stripe.Webhook.construct_event', side_effect=ValueError('Invalid payload'))
    response = client.post('/api/webhooks/stripe', data=b'not json')
    assert response.status_code == 400

def test_signature_checked_against_raw_body_and_secret(client, db, mocker):
    response, construct = post_event(client, mocker, make_event('customer.created', {'id': 'cus_1'}))
    assert response.status_code == 200
    construct.assert_called_once_with(b'{}', 't=1,v1=abc', 'whsec_test_dummy')

# --- Event handling ---

def test_unhandled_event_acknowledged_and_recorded(client, db, mocker):
    response, _ = post_event(client, mocker, make_event('customer.created', {'id': 'cus_1'}))
    assert response.get_json() == {'received': True}
    assert StripeEvent.already_processed('evt_1') == True

def test_checkout_completed_records_payment(client, db, mocker):
    session = {
        'id': 'cs_1',
        'client_reference_id': USER_ID,
        'metadata': {},
        'payment_intent': 'pi_1',
        'subscription': None,
        'amount_total': 65000,
        'currency': 'usd',
        'payment_method_types': ['card'],
        'customer_details': {'email': 'a@example.com'},
        'created': 1735689600,
    }
    response, _ = post_event(client, mocker, make_event('checkout.session.completed', session))

    assert response.status_code == 200
    payment = StripePayment.query.filter_by(stripe_checkout_session_id='cs_1').first()
    assert payment.user_id == USER_ID
    assert payment.amount == 650.0
    assert payment.status == PaymentStatusEnum.SUCCEEDED

def test_subscription_created_inserts_row(client, db, mocker):
    post_event(client, mocker, make_event('customer.subscription.created', make_subscription()))
    record = StripeSubscription.query.filter_by(stripe_subscription_id='sub_1').first()
    assert record.user_id == USER_ID
    assert record.subscription_type == 'podcast_consultation'
    assert record.amount_total == 300.0

def test_subscription_created_without_user_is_skipped(client, db, mocker):
    response, _ = post_event(client, mocker, make_event('customer.subscription.created', make_subscription(metadata={})))
    assert response.status_code == 200
    assert StripeSubscription.query.count() == 0

def test_subscription_updated_refreshes_status(client, db, mocker):
    seed_subscription(db)
    post_event(client, mocker, make_event('customer.subscription.updated',
                                          make_subscription(status='past_due', cancel_at_period_end=True)))
    record = StripeSubscription.query.filter_by(stripe_subscription_id='sub_1').first()
    assert record.status == SubscriptionStatusEnum.PAST_DUE
    assert record.cancel_at_period_end == True
    assert record.current_period_end is not None

def test_subscription_updated_unknown_subscription(client, db, mocker):
    response, _ = post_event(client, mocker, make_event('customer.subscription.updated', make_subscription()))
    assert response.status_code == 200
    assert StripeSubscription.query.count() == 0

def test_subscription_deleted_marks_cancelled(client, db, mocker):
    seed_subscription(db)
    post_event(client, mocker, make_event('customer.subscription.deleted', make_subscription(status='canceled')))
    record = StripeSubscription.query.filter_by(stripe_subscription_id='sub_1').first()
    assert record.status == SubscriptionStatusEnum.CANCELLED

def test_invoice_payment_succeeded(client, db, mocker):
    seed_subscription(db, status=SubscriptionStatusEnum.PAST_DUE)
    mocker.patch('stripe.Subscription.retrieve', return_value=as_subscription(make_subscription()))
    invoice = {'id': 'in_1', 'subscription': 'sub_1', 'payment_intent': 'pi_9',
               'amount_paid': 30000, 'amount_due': 30000, 'currency': 'usd', 'created': 1738368000}

    post_event(client, mocker, make_event('invoice.payment_succeeded', invoice))

    payment = StripePayment.query.filter_by(stripe_payment_intent_id='pi_9').first()
    assert payment.status == PaymentStatusEnum.SUCCEEDED
    assert payment.amount == 300.0
    assert StripeSubscription.query.first().status == SubscriptionStatusEnum.ACTIVE

def test_invoice_payment_failed(client, db, mocker):
    seed_subscription(db)
    mocker.patch('stripe.Subscription.retrieve', return_value=as_subscription(make_subscription()))
    invoice = {'id': 'in_2', 'parent': {'subscription_details': {'subscription': 'sub_1'}},
               'amount_paid': 0, 'amount_due': 30000, 'currency': 'usd'}

    post_event(client, mocker, make_event('invoice.payment_failed', invoice))

    payment = StripePayment.query.first()
    assert payment.status == PaymentStatusEnum.FAILED
    assert payment.amount == 300.0
    assert StripeSubscription.query.first().status == SubscriptionStatusEnum.PAST_DUE

def test_invoice_without_subscription_ignored(client, db, mocker):
    retrieve = mocker.patch('stripe.Subscription.retrieve')
    post_event(client, mocker, make_event('invoice.payment_succeeded', {'id': 'in_3', 'amount_paid': 100}))
    retrieve.assert_not_called()
    assert StripePayment.query.count() == 0

# --- Idempotency and failures ---

def test_duplicate_event_is_not_processed_twice(client, db, mocker):
    event = make_event('customer.subscription.created', make_subscription())
    post_event(client, mocker, event)
    StripeSubscription.query.delete()
    db.session.commit()

    response, _ = post_event(client, mocker, event)

    assert response.get_json() == {'received': True}
    assert StripeSubscription.query.count() == 0

def test_handler_failure_returns_500_and_allows_retry(client, db, mocker):
    mocker.patch('stripe.Subscription.retrieve', side_effect=stripe.StripeError('API down'))
    invoice = {'id': 'in_4', 'subscription': 'sub_1', 'amount_paid': 100}

    response, _ = post_event(client, mocker, make_event('invoice.payment_succeeded', invoice))

    assert response.status_code == 500
    assert response.get_json() == {'error': 'Webhook processing failed'}
    assert StripeEvent.already_processed('evt_1') == False
