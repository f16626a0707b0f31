"""
API throttling classes.
"""

from rest_framework.throttling import UserRateThrottle


class GenerationThrottle(UserRateThrottle):
    """
    Throttle for endpoints that start a crawl.

    Rate: 60 requests per hour per user.
    Applied to: /api/v1/generate/, /api/v1/watch/<id>/regenerate/
    """

    rate = '60/hour'
    scope = 'generation'


class WatchListThrottle(UserRateThrottle):
    """
    Throttle for watch-list changes.

    Rate: 120 requests per hour per user.
    Applied to: POST /api/v1/watch/, DELETE /api/v1/watch/<id>/
    """

    rate = '120/hour'
    scope = 'watch_list'
