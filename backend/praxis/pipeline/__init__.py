# Pipeline package init
"""
Praxis OS Backend: Authorization & Validation Pipeline
=======================================================

What:  The small stages every route is assembled from.
How:   Always applied in this order:

    1. Session Resolver      session.authenticated(...)       → 401
    2. Role Gate             roles.require_roles(...)         → 403
                             roles.ensure_owner(...)          → 403
    3. Identifier Validator  identifiers.validate_identifier  → 400
    4. Payload Validator     payload.parse_payload(...)       → 400 / 422
    5. Data Operation        one service call on ctx.db       → 404 / 409 / 410 / 500
    6. Response Mapper       exception handlers in main.py

Stages 1-2 are FastAPI dependencies declared in the route signature, so they
finish before the handler body runs. Stages 3-4 are plain functions called at
the top of the handler body, before the first service call. A stage that
fails raises a PraxisError subclass and nothing after it runs.

Fail-open vs fail-closed:
    The Role Gate always fails closed. Own-record lookups declare their
    policy explicitly with records.MissingRecordPolicy.
"""
