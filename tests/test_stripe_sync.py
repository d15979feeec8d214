import pytest
from datetime import datetime, timezone
from sqlalchemy.exc import SQLAlchemyError
from models import StripeSubscription, StripePayment, SubscriptionStatusEnum, PaymentStatusEnum
from utils.stripe_sync import (
    from_unix,
    stripe_id,
    invoice_subscription_id,
    find_customer_for_user,
    subscription_row,
    payment_row_from_session,
    payment_row_from_invoice,
    save_row,
    sync_user_billing,
)

PERIOD_START = 1735689600 # 2025-01-01T00:00:00Z
PERIOD_END = 1738368000   # 2025-02-01T00:00:00Z

def make_subscription(**overrides):
    subscription = {
        'id': 'sub_1',
        'customer': 'cus_1',
        'status': 'active',
        'current_period_start': PERIOD_START,
        'current_period_end': PERIOD_END,
        'cancel_at_period_end': False,
        'items': {'data': [{
            'price': {
                'id': 'price_1Rg5R8HIeYfvCylDJ4Xfg5hr',
                'product': 'prod_SbI1Lu7FWbybUO',
                'unit_amount': 68000,
                'currency': 'usd',
            },
        }]},
        'metadata': {'user_id': 'user-123'},
    }
    subscription.update(overrides)
    return subscription

def make_session(**overrides):
    session = {
        'id': 'cs_1',
        'payment_status': 'paid',
        'payment_intent': 'pi_1',
        'subscription': None,
        'amount_total': 65000,
        'currency': 'usd',
        'payment_method_types': ['card'],
        'created': PERIOD_START,
    }
    session.update(overrides)
    return session

# --- Pure mapping helpers ---

def test_from_unix():
    assert from_unix(PERIOD_START) == datetime(2025, 1, 1, tzinfo=timezone.utc)
    assert from_unix(None) is None

def test_stripe_id_accepts_id_or_expanded_object():
    assert stripe_id('prod_1') == 'prod_1'
    assert stripe_id({'id': 'prod_1', 'name': 'x'}) == 'prod_1'
    assert stripe_id(None) is None

def test_invoice_subscription_id_legacy_and_parent_shapes():
    assert invoice_subscription_id({'subscription': 'sub_1'}) == 'sub_1'
    assert invoice_subscription_id({
        'parent': {'subscription_details': {'subscription': 'sub_2'}},
    }) == 'sub_2'
    assert invoice_subscription_id({}) is None

def test_subscription_row_maps_fields(app_context):
    row = subscription_row(make_subscription(), 'user-123')
    assert row['stripe_subscription_id'] == 'sub_1'
    assert row['stripe_customer_id'] == 'cus_1'
    assert row['subscription_type'] == 'better_pro'
    assert row['status'] == SubscriptionStatusEnum.ACTIVE
    assert row['amount_total'] == 680.0
    assert row['currency'] == 'USD'
    assert row['current_period_start'] == datetime(2025, 1, 1, tzinfo=timezone.utc)
    assert row['current_period_end'] == datetime(2025, 2, 1, tzinfo=timezone.utc)

def test_subscription_row_expanded_product_and_item_periods(app_context):
    subscription = make_subscription(current_period_start=None, current_period_end=None)
    item = subscription['items']['data'][0]
    item['price']['product'] = {'id': 'prod_SbI0A23T20wul3'}
    item['current_period_start'] = PERIOD_START
    item['current_period_end'] = PERIOD_END
    row = subscription_row(subscription, 'user-123')
    assert row['subscription_type'] == 'nutrition_only'
    assert row['current_period_end'] == datetime(2025, 2, 1, tzinfo=timezone.utc)

def test_subscription_row_without_items(app_context):
    row = subscription_row(make_subscription(items={'data': []}, status='weird'), 'user-123')
    assert row['amount_total'] == 0
    assert row['subscription_type'] == 'unknown'
    assert row['status'] == SubscriptionStatusEnum.UNKNOWN

def test_payment_row_from_session():
    row = payment_row_from_session(make_session(), 'user-123')
    assert row['amount'] == 650.0
    assert row['currency'] == 'USD'
    assert row['status'] == PaymentStatusEnum.SUCCEEDED
    assert row['stripe_payment_intent_id'] == 'pi_1'
    assert row['payment_method_type'] == 'card'
    assert row['created_at'] == datetime(2025, 1, 1, tzinfo=timezone.utc)

def test_payment_row_from_session_missing_amount():
    row = payment_row_from_session(make_session(amount_total=None, payment_method_types=[]), None)
    assert row['amount'] == 0
    assert row['payment_method_type'] == 'card'

def test_payment_row_from_invoice_uses_paid_or_due_amount():
    invoice = {'id': 'in_1', 'subscription': 'sub_1', 'amount_paid': 30000, 'amount_due': 45000, 'currency': 'usd'}
    succeeded = payment_row_from_invoice(invoice, 'user-123', PaymentStatusEnum.SUCCEEDED)
    failed = payment_row_from_invoice(invoice, 'user-123', PaymentStatusEnum.FAILED)
    assert succeeded['amount'] == 300.0
    assert failed['amount'] == 450.0
    assert failed['stripe_checkout_session_id'] is None
    assert failed['stripe_subscription_id'] == 'sub_1'

# --- Stripe lookups and the sync itself ---

CUSTOMERS = {'object': 'list', 'data': [
    {'id': 'cus_other', 'object': 'customer', 'metadata': {'user_id': 'someone-else'}},
    {'id': 'cus_1', 'object': 'customer', 'metadata': {'user_id': 'user-123'}},
    {'id': 'cus_bare', 'object': 'customer', 'metadata': None},
]}

def mock_stripe_lists(mocker, stripe_object, subscriptions=(), sessions=()):
    """Patches the three list calls the sync makes with SDK list objects."""
    mocker.patch('stripe.Customer.list', return_value=stripe_object(CUSTOMERS))
    mocker.patch('stripe.Subscription.list',
                 return_value=stripe_object({'object': 'list', 'data': list(subscriptions)}))
    mocker.patch('stripe.checkout.Session.list',
                 return_value=stripe_object({'object': 'list', 'data': list(sessions)}))

def test_find_customer_for_user_matches_metadata(app_context, mocker, stripe_object):
    mocker.patch('stripe.Customer.list', return_value=stripe_object(CUSTOMERS))
    assert find_customer_for_user('user-123')['id'] == 'cus_1'
    assert find_customer_for_user('nobody') is None

def test_save_row_rolls_back_on_database_error(db, mocker):
    mocker.patch.object(StripeSubscription, 'upsert', side_effect=SQLAlchemyError('boom'))
    rollback = mocker.patch.object(db.session, 'rollback')
    assert save_row(StripeSubscription, {}, 'subscription', 'sub_1') == False
    rollback.assert_called_once()

def test_sync_user_billing_no_customer(db, mocker, stripe_object):
    mocker.patch('stripe.Customer.list', return_value=stripe_object({'object': 'list', 'data': []}))
    subscription_list = mocker.patch('stripe.Subscription.list')
    assert sync_user_billing('user-123') == (0, False)
    subscription_list.assert_not_called()

def test_sync_user_billing_writes_subscriptions_and_paid_sessions(db, mocker, stripe_object):
    mock_stripe_lists(mocker, stripe_object,
                      subscriptions=[make_subscription()],
                      sessions=[make_session(), make_session(id='cs_unpaid', payment_status='unpaid')])

    count, found = sync_user_billing('user-123')

    assert found == True
    assert count == 2
    record = StripeSubscription.query.first()
    assert record.subscription_type == 'better_pro'
    assert record.amount_total == 680.0
    payments = StripePayment.query.all()
    assert [p.stripe_checkout_session_id for p in payments] == ['cs_1']

def test_sync_user_billing_expanded_price_product(db, mocker, stripe_object):
    subscription = make_subscription()
    subscription['items']['data'][0]['price']['product'] = {'id': 'prod_SbI0A23T20wul3', 'object': 'product'}
    mock_stripe_lists(mocker, stripe_object, subscriptions=[subscription])

    sync_user_billing('user-123')

    assert StripeSubscription.query.first().subscription_type == 'nutrition_only'

def test_sync_user_billing_skips_failed_row_and_carries_on(db, mocker, stripe_object):
    mock_stripe_lists(mocker, stripe_object,
                      subscriptions=[make_subscription(id='sub_bad'), make_subscription(id='sub_ok')],
                      sessions=[make_session()])
    real_upsert = StripeSubscription.upsert

    def upsert_or_fail(row):
        if row['stripe_subscription_id'] == 'sub_bad':
            raise SQLAlchemyError('constraint violated')
        return real_upsert(row)

    mocker.patch.object(StripeSubscription, 'upsert', side_effect=upsert_or_fail)

    count, found = sync_user_billing('user-123')

    # sub_ok and cs_1 are written; sub_bad is rolled back and not counted.
    assert found == True
    assert count == 2
    assert [s.stripe_subscription_id for s in StripeSubscription.query.all()] == ['sub_ok']
    assert StripePayment.query.filter_by(stripe_checkout_session_id='cs_1').count() == 1

def test_sync_user_billing_is_idempotent(db, mocker, stripe_object):
    mock_stripe_lists(mocker, stripe_object, subscriptions=[make_subscription()], sessions=[make_session()])

    sync_user_billing('user-123')
    sync_user_billing('user-123')

    assert StripeSubscription.query.count() == 1
    assert StripePayment.query.count() == 1
