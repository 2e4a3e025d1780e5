from slowapi import Limiter
from slowapi.util import get_remote_address

from tabiplan.core.settings import Settings

settings = Settings()

# Shared by every router; installed as app.state.limiter in tabiplan.main
limiter = Limiter(key_func=get_remote_address, enabled=settings.ENABLE_RATE_LIMITING)

WRITE_LIMIT = settings.RATE_LIMIT_WRITE
READ_LIMIT = settings.RATE_LIMIT_READ
