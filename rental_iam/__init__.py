"""Rental IAM: user management backed by Keycloak.

To use the Flask app:
    from rental_iam.flask_app import create_app

To use the user synchronizer directly:
    from rental_iam.config import load_settings
    from rental_iam.core.user_synchronizer import UserSynchronizer

    users = UserSynchronizer.from_settings(load_settings())
"""
# flask_app is not imported here so the core layer stays usable without Flask
