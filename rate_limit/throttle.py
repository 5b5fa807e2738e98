def delay_for(used_count, delay_after, per_request_delay_ms, max_delay_ms):
    """Added latency in milliseconds for the ``used_count``-th request of a window."""
    if used_count <= delay_after:
        return 0
    return min((used_count - delay_after) * per_request_delay_ms, max_delay_ms)


class ProgressiveThrottle:
    # hanya menghitung delay; yang menunda response adalah pipeline

    def __init__(self, delay_after=1, per_request_delay_ms=500, max_delay_ms=5000):
        self.delay_after = delay_after
        self.per_request_delay_ms = per_request_delay_ms
        self.max_delay_ms = max_delay_ms

    def delay_for(self, used_count):
        return delay_for(used_count, self.delay_after, self.per_request_delay_ms, self.max_delay_ms)
