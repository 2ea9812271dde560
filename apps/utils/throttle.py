from rest_framework.throttling import UserRateThrottle


class BurstRateThrottle(UserRateThrottle):
    """
    Short-window limit, mainly protects checkout from double submits and bots.
    """
    scope = 'burst'


class SustainedRateThrottle(UserRateThrottle):
    """
    General API usage.
    """
    scope = 'sustained'
