"""
Settings entry point for the GIR Availability Sync service.

DJANGO_ENV picks the layer on top of base.py: "production", "test", or
"development" (the default). Pointing DJANGO_SETTINGS_MODULE at a concrete
module such as config.settings.test skips this lookup.
"""

import os

DJANGO_ENV = os.getenv("DJANGO_ENV", "development").strip().lower()

if DJANGO_ENV in ("production", "prod"):
    from .production import *
elif DJANGO_ENV == "test":
    from .test import *
else:
    from .development import *
