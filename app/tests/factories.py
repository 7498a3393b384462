from datetime import datetime, timedelta, timezone
from typing import List, Optional

import numpy as np

PASSWORD = "Correct-Horse-9!"


class FakeClock:
    """Controllable UTC clock for lockout and expiry tests."""

    def __init__(self, start: Optional[datetime] = None):
        self.now = start or datetime.now(timezone.utc).replace(microsecond=0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


class RecordingNotifier:
    def __init__(self):
        self.sent: List[tuple] = []

    def send_temporary_password(self, to: str, temporary_password: str) -> bool:
        self.sent.append((to, temporary_password))
        return True


def random_descriptor(seed: int) -> List[float]:
    rng = np.random.default_rng(seed)
    return rng.uniform(-0.2, 0.2, 128).tolist()


def shifted(descriptor: List[float], offset: float) -> List[float]:
    """Same descriptor with one component moved, so the distance equals `offset`."""
    values = list(descriptor)
    values[0] += offset
    return values
