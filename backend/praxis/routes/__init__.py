# Routes package init
"""
Praxis OS Backend: API Routes Package
======================================

What:  HTTP route handlers, one module per resource.

Route Inventory:
    - courses.py:  POST  /api/courses/{id}/archive
                   POST  /api/courses/{id}/publish
                   PATCH /api/courses/{id}/enrollments/{enrollmentId}
    - patients.py: GET   /api/patients/check-duplicate
                   GET   /api/patients/invite/{token}
                   POST  /api/patients/invite/{token}/complete
                   PATCH /api/patients/{id}/archive
    - me.py:       GET   /api/me/profile
                   POST/DELETE/GET/PATCH /api/me/push/...
    - admin.py:    GET   /api/admin/webhook-events
    - push.py:     POST  /api/push/send            (x-cron-secret)
    - cron.py:     GET   /api/cron/training-reminder (cron secret)
    - health.py:   GET   /health

Every handler follows the same stage order:
    session → role gate → identifiers → payload → ownership → service call

A stage that fails raises a PraxisError; main.py maps it to the response.
Handlers never build error responses themselves.
"""
