"""Rate limiting adapters.

Two in-process strategies live here: a per-identifier fixed window backed by
request timestamps, and a refilling token bucket. Both share the
AbstractRateLimiter interface so the HTTP layer does not care which one is
configured.
"""
