from studio import create_app
from studio.bootstrap import auto_migrate_requested, migrate_on_boot

app = create_app()

if auto_migrate_requested():
    migrate_on_boot(app)
