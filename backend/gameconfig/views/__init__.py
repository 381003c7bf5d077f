from gameconfig.views import admin_handlers as admin_handlers
from gameconfig.views import config_handlers as config_handlers
