# Services package init
"""
Praxis OS Backend: Services Layer
==================================

What:  The Data Operation stage. Each public method is one logical operation
       against the store, conditioned on the state it expects.
How:   Services receive the session (caller-scoped or privileged) from the
       route; they never open their own. SQLAlchemy errors are wrapped in
       UpstreamError, expected outcomes raise the matching PraxisError.

Service Inventory:
    - AuthClient (abstract) / SupabaseAuthClient: token → caller identity
    - CourseService: archive, publish (typed result), enrollment status
    - AdminService: webhook audit log
    - PatientService: invites, archive, duplicate check
    - PushSender (abstract) / WebPushSender: one notification to one device
    - PushService: subscriptions, preferences, fan-out dispatch
    - ReminderService: hourly training reminder job
"""
