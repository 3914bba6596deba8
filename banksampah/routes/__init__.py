from . import admin, auth, bank_sampah, stats, submissions, users

BLUEPRINTS = (
    auth.bp,
    users.bp,
    submissions.bp,
    bank_sampah.bp,
    stats.bp,
    admin.bp,
)


def register_blueprints(app):
    for blueprint in BLUEPRINTS:
        app.register_blueprint(blueprint)
