# app/core/clock.py
import datetime as dt

def utcnow() -> dt.datetime:
    # columnas DateTime(timezone=False): se guarda UTC naive
    return dt.datetime.now(tz=dt.timezone.utc).replace(tzinfo=None)
