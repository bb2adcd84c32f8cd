import stripe


def as_dict(obj) -> dict:
    """Plain dict copy of a Stripe response.

    StripeObject is not a dict and carries the request options (API key
    included), so it must never reach a JSON response or dict-style access.
    """
    if isinstance(obj, stripe.StripeObject):
        return obj.to_dict()
    return dict(obj)
