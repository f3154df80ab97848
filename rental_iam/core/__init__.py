"""Core identity logic, independent of the HTTP layer.

Module Structure:
    - keycloak/             : Keycloak Admin API client, connector, role handling
    - user_synchronizer.py  : User create/read/update/delete with rollback
    - guard.py              : Protected administrator exclusion
    - user_mapper.py        : Keycloak ↔ User transformations
    - models.py             : User domain model
    - errors.py             : Error kinds and provider error normalization

Modules are not auto-imported; import them explicitly:
    from rental_iam.core.user_synchronizer import UserSynchronizer
    from rental_iam.core.errors import ForbiddenError
"""
