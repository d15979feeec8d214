"""
Stripe products and prices sold on the site.

Product and price IDs are the live IDs from the Stripe Dashboard. Amounts are in cents.
The podcast room and the one-on-one consultation are sold under the same Stripe product,
so the catalog is keyed by slug rather than by product ID.
"""
import copy

STRIPE_PRODUCTS = {
    'BETTER_PRO': 'prod_SbI1Lu7FWbybUO',
    'PODCAST': 'prod_SbI1dssS5NElLZ',
    'NUTRITION_TRAINING': 'prod_SbI1AIv2A46oJ9',
    'NUTRITION_ONLY': 'prod_SbI0A23T20wul3',
    'CONSULTATION': 'prod_SbI1dssS5NElLZ',
}

STRIPE_PRICES = {
    # BetterPro - 2 pricing options
    'BETTER_PRO_OPTION_1': 'price_1Rg5R8HIeYfvCylDJ4Xfg5hr',
    'BETTER_PRO_OPTION_2': 'price_1Rg5R8HIeYfvCylDxX2PsOrR',
    # Podcast Room
    'PODCAST_ROOM': 'price_1Rg5R6HIeYfvCylDcsV3T2Kr',
    # Nutrition + Training
    'NUTRITION_TRAINING_MONTHLY_1': 'price_1Rg5R4HIeYfvCylDy1OT1YJc',
    'NUTRITION_TRAINING_MONTHLY_2': 'price_1Rg5R4HIeYfvCylDAshP6FOk',
    'NUTRITION_TRAINING_BIWEEKLY': 'price_1Rg5RGHIeYfvCylDxuQODpK4',
    # Nutrition Only
    'NUTRITION_ONLY_MONTHLY_1': 'price_1Rg5QtHIeYfvCylDyXHY5X6G',
    'NUTRITION_ONLY_MONTHLY_2': 'price_1Rg5QtHIeYfvCylDwr9v599a',
    'NUTRITION_ONLY_BIWEEKLY': 'price_1Rg5RGHIeYfvCylDxuQODpK4',
    # Consultation
    'CONSULTATION': 'price_1Rg5R6HIeYfvCylDcsV3T2Kr',
}

# Label written to stripe_subscriptions.subscription_type for each product.
SUBSCRIPTION_TYPES = {
    STRIPE_PRODUCTS['BETTER_PRO']: 'better_pro',
    STRIPE_PRODUCTS['PODCAST']: 'podcast_consultation',
    STRIPE_PRODUCTS['NUTRITION_TRAINING']: 'nutrition_training',
    STRIPE_PRODUCTS['NUTRITION_ONLY']: 'nutrition_only',
}
UNKNOWN_SUBSCRIPTION_TYPE = 'unknown'

PRODUCT_CONFIG = {
    'better_pro': {
        'product_id': STRIPE_PRODUCTS['BETTER_PRO'],
        'name': 'BetterPro Plan',
        'description': 'Complete nutrition and training program with premium features',
        'features': [
            'Advanced meal planning',
            'Personal trainer support',
            'Progress tracking',
            'Priority support',
            'Custom workout plans',
        ],
        'category': 'premium',
        'prices': [
            {
                'id': STRIPE_PRICES['BETTER_PRO_OPTION_1'],
                'name': '3 Month Plan',
                'interval': 'month',
                'interval_count': 1,
                'commitment': 3,
                'amount': 68000,
                'currency': 'USD',
                'popular': False,
            },
            {
                'id': STRIPE_PRICES['BETTER_PRO_OPTION_2'],
                'name': '6 Month Plan',
                'interval': 'month',
                'interval_count': 1,
                'commitment': 6,
                'amount': 60000,
                'currency': 'USD',
                'discount': '15% off',
                'popular': True,
            },
        ],
    },
    'nutrition_training': {
        'product_id': STRIPE_PRODUCTS['NUTRITION_TRAINING'],
        'name': 'Nutrition + Training',
        'description': 'Comprehensive nutrition guidance with training support',
        'features': [
            'Personalized meal plans',
            'Workout routines',
            'Progress monitoring',
            'Expert consultations',
            'Mobile app access',
        ],
        'category': 'complete',
        'prices': [
            {
                'id': STRIPE_PRICES['NUTRITION_TRAINING_MONTHLY_1'],
                'name': 'Monthly Sessions',
                'interval': 'month',
                'interval_count': 1,
                'frequency': 'monthly',
                'amount': 75000,
                'currency': 'USD',
                'popular': False,
            },
            {
                'id': STRIPE_PRICES['NUTRITION_TRAINING_MONTHLY_2'],
                'name': 'Monthly Premium',
                'interval': 'month',
                'interval_count': 1,
                'frequency': 'monthly',
                'amount': 83000,
                'currency': 'USD',
                'popular': True,
            },
            {
                'id': STRIPE_PRICES['NUTRITION_TRAINING_BIWEEKLY'],
                'name': 'Bi-weekly Sessions',
                'interval': 'month',
                'interval_count': 1,
                'frequency': 'biweekly',
                'amount': 50000,
                'currency': 'USD',
                'popular': False,
            },
        ],
    },
    'nutrition_only': {
        'product_id': STRIPE_PRODUCTS['NUTRITION_ONLY'],
        'name': 'Nutrition Only',
        'description': 'Focused nutrition planning and guidance',
        'features': [
            'Custom meal plans',
            'Nutritional analysis',
            'Progress tracking',
            'Email support',
            'Recipe library',
        ],
        'category': 'nutrition',
        'prices': [
            {
                'id': STRIPE_PRICES['NUTRITION_ONLY_MONTHLY_1'],
                'name': 'Monthly Basic',
                'interval': 'month',
                'interval_count': 1,
                'frequency': 'monthly',
                'amount': 50000,
                'currency': 'USD',
                'popular': False,
            },
            {
                'id': STRIPE_PRICES['NUTRITION_ONLY_MONTHLY_2'],
                'name': 'Monthly Pro',
                'interval': 'month',
                'interval_count': 1,
                'frequency': 'monthly',
                'amount': 58000,
                'currency': 'USD',
                'popular': True,
            },
            {
                'id': STRIPE_PRICES['NUTRITION_ONLY_BIWEEKLY'],
                'name': 'Bi-weekly Support',
                'interval': 'month',
                'interval_count': 1,
                'frequency': 'biweekly',
                'amount': 73000,
                'currency': 'USD',
                'popular': False,
            },
        ],
    },
    'podcast_room': {
        'product_id': STRIPE_PRODUCTS['PODCAST'],
        'name': 'Podcast Room',
        'description': 'Access to premium podcast content and community',
        'features': [
            'Exclusive podcast episodes',
            'Community access',
            'Live Q&A sessions',
            'Downloadable content',
            'Early access to new content',
        ],
        'category': 'content',
        'prices': [
            {
                'id': STRIPE_PRICES['PODCAST_ROOM'],
                'name': 'Monthly Access',
                'interval': 'month',
                'interval_count': 1,
                'amount': 30000,
                'currency': 'USD',
                'popular': True,
            },
        ],
    },
    'consultation': {
        'product_id': STRIPE_PRODUCTS['CONSULTATION'],
        'name': 'One-on-One Consultation',
        'description': 'Personal consultation with nutrition expert',
        'features': [
            '60-minute session',
            'Personalized recommendations',
            'Follow-up support',
            'Action plan',
            'Progress evaluation',
        ],
        'category': 'consultation',
        'prices': [
            {
                'id': STRIPE_PRICES['CONSULTATION'],
                'name': 'Single Session',
                'interval': None, # One-time payment.
                'amount': 65000,
                'currency': 'USD',
                'popular': True,
            },
        ],
    },
}


def subscription_type_for_product(product_id):
    """Returns the subscription_type label for a Stripe product ID ('unknown' if unmapped)."""
    return SUBSCRIPTION_TYPES.get(product_id, UNKNOWN_SUBSCRIPTION_TYPE)


def get_product(product_id):
    """
    Looks up a catalog entry by Stripe product ID.

    Returns the first matching entry (a copy), or None. For the shared podcast/consultation
    product this is the podcast room entry.
    """
    for slug, product in PRODUCT_CONFIG.items():
        if product['product_id'] == product_id:
            return dict(copy.deepcopy(product), slug=slug)
    return None


def get_all_products():
    """Returns every catalog entry as a list, with 'id' set to the Stripe product ID."""
    products = []
    for slug, product in PRODUCT_CONFIG.items():
        entry = copy.deepcopy(product)
        entry['id'] = entry['product_id']
        entry['slug'] = slug
        products.append(entry)
    return products


def get_products_by_category(category):
    return [product for product in get_all_products() if product['category'] == category]


def get_price_by_id(price_id):
    """
    Finds a price in the catalog.

    Args:
        price_id (str): Stripe Price ID.

    Returns:
        dict or None: The price dict with an extra 'product' key holding its catalog entry.
    """
    for product in get_all_products():
        for price in product.get('prices') or []:
            if price['id'] == price_id:
                return dict(price, product=product)
    return None
